"""Achievement progress endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.user import User
from schemas.achievements import AchievementsResponse
from services.auth import get_current_user
from services.reward_engine import RewardEngine


router = APIRouter()


@router.get("", response_model=AchievementsResponse)
def get_my_achievements(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get every achievement with the current user's progress and point total.

    Missing progress rows are created on first access.
    """
    return RewardEngine(db, current_user.id).get_progress()


@router.get("/unlocked", response_model=AchievementsResponse)
def get_unlocked_achievements(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get only the achievements the current user has completed."""
    result = RewardEngine(db, current_user.id).get_progress()
    unlocked = [a for a in result["achievements"] if a["completed"]]
    return {**result, "achievements": unlocked, "total": len(unlocked)}


@router.get("/users/{user_id}", response_model=AchievementsResponse)
def get_user_achievements(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get another user's achievements for their profile page."""
    return RewardEngine(db, user_id).get_progress()
