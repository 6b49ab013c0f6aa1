"""Model package exports for database initialization."""

from models.user import User
from models.achievements import UserAchievement
from models.points import PointTransaction, PointTransactionType
from models.borders import Border, BorderRarity, BorderUnlock, UnlockType

__all__ = [
    "User",
    "UserAchievement",
    "PointTransaction",
    "PointTransactionType",
    "Border",
    "BorderRarity",
    "BorderUnlock",
    "UnlockType",
]
