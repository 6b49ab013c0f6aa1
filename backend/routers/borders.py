"""Profile border endpoints."""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from config import PURCHASE_RATE_LIMIT
from database import get_db
from models.user import User
from schemas.borders import BorderCodeRequest, BordersResponse, BorderStatus, PurchaseResponse
from services.auth import get_current_user
from services.border_service import BorderService


def get_user_id_from_request(request: Request) -> str:
    """Extract user ID for rate limiting key."""
    # Set by get_rate_limited_user; anonymous requests fall back to the
    # client address.
    if hasattr(request.state, "user_id"):
        return str(request.state.user_id)
    return get_remote_address(request)


def get_rate_limited_user(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> User:
    """Authenticate and attach the user id for the limiter key.

    Dependencies resolve before the limiter wrapper runs, so the limit is
    counted per user rather than per address.
    """
    request.state.user_id = current_user.id
    return current_user


limiter = Limiter(key_func=get_user_id_from_request)
router = APIRouter()


@router.get("", response_model=BordersResponse)
def list_borders(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the active border catalog with the current user's unlock status."""
    borders = BorderService(db, current_user.id).list_borders()
    return {"borders": borders, "total": len(borders)}


@router.get("/unlocked", response_model=BordersResponse)
def list_unlocked_borders(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the borders the current user owns, newest first."""
    borders = BorderService(db, current_user.id).list_unlocked()
    return {"borders": borders, "total": len(borders)}


@router.post("/purchase", response_model=PurchaseResponse)
@limiter.limit(PURCHASE_RATE_LIMIT)
def purchase_border(
    request: Request,
    payload: BorderCodeRequest,
    current_user: User = Depends(get_rate_limited_user),
    db: Session = Depends(get_db),
):
    """
    Buy a border with points.

    Buying a border the user already owns succeeds with `already_owned`
    set and charges nothing. Not enough points returns 400.
    """
    return BorderService(db, current_user.id).purchase(payload.border_code)


@router.post("/select", response_model=BorderStatus)
def select_border(
    payload: BorderCodeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Equip an owned border (or the default border) on the profile."""
    return BorderService(db, current_user.id).select(payload.border_code)
