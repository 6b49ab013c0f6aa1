"""Storage access for achievement progress, the point ledger and border unlocks.

Every write here runs inside the caller's transaction; committing and rolling
back is left to the service that owns the unit of work. Counters are changed
with relative UPDATE statements so concurrent requests never overwrite each
other with stale values.
"""

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from database import is_sqlite_session
from models.achievements import UserAchievement
from models.borders import Border, BorderUnlock
from models.points import PointTransaction
from models.user import User


class RewardRepository:
    def __init__(self, db: Session):
        self.db = db
        self._is_sqlite = is_sqlite_session(db)

    def _insert(self, model):
        # Both dialects support INSERT ... ON CONFLICT DO NOTHING
        if self._is_sqlite:
            return sqlite.insert(model)
        return postgresql.insert(model)

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).populate_existing().first()

    def get_points(self, user_id: int) -> Optional[int]:
        return self.db.execute(
            select(User.points).where(User.id == user_id)
        ).scalar_one_or_none()

    # Achievement progress

    def achievement_types_for(self, user_id: int) -> set[str]:
        rows = self.db.execute(
            select(UserAchievement.achievement_type).where(UserAchievement.user_id == user_id)
        ).scalars()
        return set(rows)

    def insert_achievement_rows(self, user_id: int, achievement_types: Iterable[str]) -> None:
        """Create zero-progress rows, skipping any that already exist."""
        values = [
            {
                "user_id": user_id,
                "achievement_type": achievement_type,
                "progress": 0,
                "completed": False,
                "created_at": datetime.utcnow(),
            }
            for achievement_type in achievement_types
        ]
        if not values:
            return
        stmt = self._insert(UserAchievement).values(values).on_conflict_do_nothing(
            index_elements=["user_id", "achievement_type"]
        )
        self.db.execute(stmt)

    def list_achievements(self, user_id: int) -> list[UserAchievement]:
        return (
            self.db.query(UserAchievement)
            .filter(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.id)
            .populate_existing()
            .all()
        )

    def increment_progress(self, user_id: int, achievement_type: str, amount: int, target: int) -> bool:
        """Add ``amount`` to an open row's progress, clamped to ``target``.

        Returns False when there is no open row (missing or already completed).
        """
        incremented = UserAchievement.progress + amount
        stmt = (
            update(UserAchievement)
            .where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_type == achievement_type,
                UserAchievement.completed.is_(False),
            )
            .values(progress=case((incremented >= target, target), else_=incremented))
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount > 0

    def mark_completed(self, user_id: int, achievement_type: str, target: int) -> bool:
        """Flip ``completed`` once the stored progress reaches ``target``.

        Only one caller can observe True for a given row: the predicate on
        ``completed`` makes the flip a compare-and-set in the database.
        """
        stmt = (
            update(UserAchievement)
            .where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_type == achievement_type,
                UserAchievement.completed.is_(False),
                UserAchievement.progress >= target,
            )
            .values(completed=True, completed_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def count_completed(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count(UserAchievement.id)).where(
                UserAchievement.user_id == user_id,
                UserAchievement.completed.is_(True),
            )
        ).scalar_one()

    # Point ledger

    def append_ledger(
        self,
        user_id: int,
        amount: int,
        transaction_type: str,
        description: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PointTransaction:
        """Record a ledger entry and apply the same delta to the running total."""
        entry = PointTransaction(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            description=description,
            metadata_json=metadata,
        )
        self.db.add(entry)
        self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + amount)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return entry

    def spend_points(self, user_id: int, amount: int) -> bool:
        """Decrement the total only if it covers ``amount``."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.points >= amount)
            .values(points=User.points - amount)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def record_spend(
        self,
        user_id: int,
        amount: int,
        transaction_type: str,
        description: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PointTransaction:
        """Ledger row for a debit already applied by ``spend_points``."""
        entry = PointTransaction(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=-amount,
            description=description,
            metadata_json=metadata,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def ledger_history(self, user_id: int, limit: int) -> list[PointTransaction]:
        return (
            self.db.query(PointTransaction)
            .filter(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .limit(limit)
            .all()
        )

    def ledger_sum(self, user_id: int) -> int:
        return self.db.execute(
            select(func.coalesce(func.sum(PointTransaction.amount), 0)).where(
                PointTransaction.user_id == user_id
            )
        ).scalar_one()

    def leaderboard(self, limit: int) -> list:
        completed = (
            select(
                UserAchievement.user_id.label("user_id"),
                func.count(UserAchievement.id).label("completed"),
            )
            .where(UserAchievement.completed.is_(True))
            .group_by(UserAchievement.user_id)
            .subquery()
        )
        stmt = (
            select(
                User.id,
                User.username,
                User.points,
                func.coalesce(completed.c.completed, 0).label("achievements_completed"),
            )
            .outerjoin(completed, completed.c.user_id == User.id)
            .order_by(User.points.desc(), User.username.asc())
            .limit(limit)
        )
        return self.db.execute(stmt).fetchall()

    # Borders

    def get_border_by_code(self, code: str) -> Optional[Border]:
        return self.db.query(Border).filter(Border.code == code).first()

    def list_active_borders(self) -> list[Border]:
        return (
            self.db.query(Border)
            .filter(Border.is_active.is_(True))
            .order_by(Border.sort_order, Border.name)
            .all()
        )

    def get_unlock(self, user_id: int, border_id: int) -> Optional[BorderUnlock]:
        return (
            self.db.query(BorderUnlock)
            .filter(BorderUnlock.user_id == user_id, BorderUnlock.border_id == border_id)
            .first()
        )

    def list_unlocks(self, user_id: int) -> list[BorderUnlock]:
        return (
            self.db.query(BorderUnlock)
            .filter(BorderUnlock.user_id == user_id)
            .order_by(BorderUnlock.unlocked_at.desc(), BorderUnlock.id.desc())
            .all()
        )

    def insert_border_unlock(
        self,
        user_id: int,
        border_id: int,
        unlock_type: str,
        price_paid: Optional[int] = None,
    ) -> bool:
        """Insert an unlock row; returns False if the user already owns the border."""
        stmt = self._insert(BorderUnlock).values(
            user_id=user_id,
            border_id=border_id,
            unlock_type=unlock_type,
            price_paid=price_paid,
            unlocked_at=datetime.utcnow(),
        ).on_conflict_do_nothing(index_elements=["user_id", "border_id"])
        return self.db.execute(stmt).rowcount == 1

    def set_selected_border(self, user_id: int, border_id: Optional[int]) -> None:
        self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(selected_border_id=border_id)
            .execution_options(synchronize_session=False)
        )
