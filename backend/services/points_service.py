"""Points balance, ledger history, manual credits and the leaderboard."""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import HISTORY_MAX_LIMIT, LEADERBOARD_MAX_LIMIT
from exceptions import NotFoundError, PersistenceError, ValidationError
from models.points import PointTransactionType
from repositories.rewards import RewardRepository
from services.achievement_catalog import ActivityType
from services.reward_engine import RewardEngine


logger = logging.getLogger(__name__)

# Debits and achievement rewards are written only by their own flows.
CREDIT_TYPES = {PointTransactionType.EARNED.value, PointTransactionType.ADMIN_GIVEN.value}


class PointsService:
    """Service for points-related queries."""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.repo = RewardRepository(db)

    def get_balance(self) -> int:
        points = self._load(self.repo.get_points, self.user_id)
        if points is None:
            raise NotFoundError(f"User {self.user_id} not found")
        return points

    def get_history(self, limit: int = 20) -> list[dict]:
        """Most recent ledger entries first."""
        self.get_balance()
        limit = max(1, min(limit, HISTORY_MAX_LIMIT))
        entries = self._load(self.repo.ledger_history, self.user_id, limit)
        return [
            {
                "id": entry.id,
                "transaction_type": entry.transaction_type,
                "amount": entry.amount,
                "description": entry.description,
                "metadata": entry.metadata_json,
                "created_at": entry.created_at,
            }
            for entry in entries
        ]

    def add_points(
        self,
        amount: int,
        transaction_type: str = PointTransactionType.EARNED.value,
        description: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> int:
        """Credit points and return the new balance.

        Ledger entry and running total commit together. The credit then counts
        towards the points-collecting achievement on a best-effort basis.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount must be a positive integer")
        transaction_type = getattr(transaction_type, "value", transaction_type)
        if transaction_type not in CREDIT_TYPES:
            raise ValidationError(f"Unsupported transaction type: {transaction_type}")
        self.get_balance()

        try:
            self.repo.append_ledger(
                self.user_id,
                amount,
                transaction_type,
                description=description or f"Points added ({transaction_type})",
                metadata=metadata,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Adding %d points failed for user %s", amount, self.user_id)
            raise PersistenceError() from e

        RewardEngine(self.db, self.user_id).track(ActivityType.POINTS_EARNED, amount)
        return self.get_balance()

    def verify_balance(self) -> dict:
        """Compare the denormalized total with the ledger sum."""
        balance = self.get_balance()
        ledger_total = self._load(self.repo.ledger_sum, self.user_id)
        if balance != ledger_total:
            logger.warning(
                "Points drift for user %s: total=%d ledger=%d", self.user_id, balance, ledger_total
            )
        return {"points": balance, "ledger_total": ledger_total, "consistent": balance == ledger_total}

    def get_leaderboard(self, limit: int = 10) -> list[dict]:
        limit = max(1, min(limit, LEADERBOARD_MAX_LIMIT))
        rows = self._load(self.repo.leaderboard, limit)
        return [
            {
                "rank": rank,
                "user_id": row.id,
                "username": row.username,
                "points": row.points,
                "achievements_completed": row.achievements_completed,
            }
            for rank, row in enumerate(rows, start=1)
        ]

    def _load(self, query, *args):
        try:
            return query(*args)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Loading points data failed for user %s", self.user_id)
            raise PersistenceError("Couldn't load points right now") from e
