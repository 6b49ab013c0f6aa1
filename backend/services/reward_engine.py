"""Reward Progress Engine: achievement progress, completion and reward grants."""

import logging
from typing import Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import NotFoundError, PersistenceError, RewardsError, ValidationError
from models.borders import UnlockType
from models.points import PointTransactionType
from repositories.rewards import RewardRepository
from services import achievement_catalog
from services.achievement_catalog import AchievementDefinition, AchievementType, ActivityType


logger = logging.getLogger(__name__)

EventKind = Union[ActivityType, AchievementType, str]


class RewardEngine:
    """Advances one user's achievements and applies their rewards.

    Each mutating call is a single unit of work: progress, completion, ledger
    entry, point total and border unlock commit together or not at all.
    """

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.repo = RewardRepository(db)

    def ensure_initialized(self) -> None:
        """Create a zero-progress row for every catalog achievement the user lacks."""
        try:
            self._require_user()
            self._initialize_missing()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Achievement initialization failed for user %s", self.user_id)
            raise PersistenceError() from e

    def record_progress(self, kind: EventKind, increment: int = 1) -> list[str]:
        """Advance every achievement matched by ``kind``.

        Returns the achievement types completed by this call. Achievements that
        were already completed are left untouched.
        """
        if isinstance(increment, bool) or not isinstance(increment, int) or increment <= 0:
            raise ValidationError("increment must be a positive integer")
        definitions = achievement_catalog.resolve(kind)

        try:
            self._require_user()
            self._initialize_missing()
            completed = self._advance(definitions, increment)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(
                "Recording %s progress failed for user %s", kind, self.user_id
            )
            raise PersistenceError() from e

        for achievement_type in completed:
            logger.info("User %s completed achievement %s", self.user_id, achievement_type)
        return completed

    def track(self, kind: EventKind, increment: int = 1) -> list[str]:
        """Best-effort ``record_progress`` for side effects of other actions.

        Failures are logged and swallowed so the triggering action is never
        affected by reward bookkeeping.
        """
        try:
            return self.record_progress(kind, increment)
        except RewardsError:
            logger.exception(
                "Reward tracking for %s failed for user %s; continuing", kind, self.user_id
            )
            return []

    def get_progress(self) -> dict:
        """Return every achievement joined with its definition, plus the point total."""
        self.ensure_initialized()
        try:
            rows = {row.achievement_type: row for row in self.repo.list_achievements(self.user_id)}
            points = self.repo.get_points(self.user_id) or 0
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Loading achievements failed for user %s", self.user_id)
            raise PersistenceError("Couldn't load achievements right now") from e

        achievements = []
        for definition in achievement_catalog.all_definitions():
            row = rows.get(definition.type.value)
            achievements.append({
                "type": definition.type.value,
                "title": definition.title,
                "description": definition.description,
                "progress": row.progress if row else 0,
                "target": definition.target,
                "completed": bool(row.completed) if row else False,
                "completed_at": row.completed_at if row else None,
                "reward_points": definition.reward.points,
                "reward_border": definition.reward.border_code,
            })

        return {
            "user_id": self.user_id,
            "points": points,
            "achievements": achievements,
            "total": len(achievements),
            "completed_count": sum(1 for a in achievements if a["completed"]),
        }

    def _require_user(self) -> None:
        if self.repo.get_user(self.user_id) is None:
            raise NotFoundError(f"User {self.user_id} not found")

    def _initialize_missing(self) -> None:
        existing = self.repo.achievement_types_for(self.user_id)
        missing = [
            definition.type.value
            for definition in achievement_catalog.all_definitions()
            if definition.type.value not in existing
        ]
        if missing:
            self.repo.insert_achievement_rows(self.user_id, missing)

    def _advance(self, definitions, increment: int) -> list[str]:
        completed = []
        for definition in definitions:
            achievement_type = definition.type.value
            if not self.repo.increment_progress(
                self.user_id, achievement_type, increment, definition.target
            ):
                continue
            # Re-read through the database: the flip is decided on the
            # post-increment value, never on anything fetched earlier.
            if self.repo.mark_completed(self.user_id, achievement_type, definition.target):
                completed.append(achievement_type)
                completed.extend(self._apply_reward(definition))
        return completed

    def _apply_reward(self, definition: AchievementDefinition) -> list[str]:
        reward = definition.reward
        cascaded = []

        if reward.points:
            self.repo.append_ledger(
                self.user_id,
                reward.points,
                PointTransactionType.ACHIEVEMENT_REWARD.value,
                description=f"Achievement unlocked: {definition.title}",
                metadata={"achievement_type": definition.type.value},
            )
            # POINTS_COLLECTOR is already closed by the time its own reward is
            # credited, so this recursion stops after one level.
            cascaded = self._advance(
                achievement_catalog.resolve(ActivityType.POINTS_EARNED), reward.points
            )

        if reward.border_code:
            border = self.repo.get_border_by_code(reward.border_code)
            if border is None:
                logger.warning(
                    "Achievement %s rewards unknown border %r; skipping unlock",
                    definition.type.value,
                    reward.border_code,
                )
            elif not self.repo.insert_border_unlock(
                self.user_id, border.id, UnlockType.ACHIEVEMENT.value
            ):
                logger.debug(
                    "User %s already owns border %s", self.user_id, reward.border_code
                )

        return cascaded
