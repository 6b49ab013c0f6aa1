"""Points balance, history and leaderboard endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config import HISTORY_MAX_LIMIT, LEADERBOARD_MAX_LIMIT
from database import get_db
from models.user import User
from schemas.points import LeaderboardResponse, PointsBalanceResponse, PointsHistoryResponse
from services.auth import get_current_user
from services.points_service import PointsService


router = APIRouter()


@router.get("", response_model=PointsBalanceResponse)
def get_points(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"points": PointsService(db, current_user.id).get_balance()}


@router.get("/history", response_model=PointsHistoryResponse)
def get_points_history(
    limit: int = Query(20, ge=1, le=HISTORY_MAX_LIMIT),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the current user's most recent point transactions."""
    transactions = PointsService(db, current_user.id).get_history(limit=limit)
    return {"transactions": transactions, "total": len(transactions)}


@router.get("/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(
    limit: int = Query(10, ge=1, le=LEADERBOARD_MAX_LIMIT),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get users ranked by point total."""
    return {"entries": PointsService(db, current_user.id).get_leaderboard(limit=limit)}
