"""Tests for the reward progress engine."""

from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from database import Base
from exceptions import NotFoundError, PersistenceError, ValidationError
from models.achievements import UserAchievement
from models.borders import Border, BorderUnlock
from models.points import PointTransaction
from models.user import User
from repositories.rewards import RewardRepository
from services.achievement_catalog import AchievementType, ActivityType
from services.border_service import BorderService, ensure_default_borders
from services.reward_engine import RewardEngine
from tests.conftest import make_user
from tests.fixtures.test_data import (
    FIRST_FORUM_POST_REWARD,
    FRIEND_CONNECTOR_REWARD,
    FRIEND_CONNECTOR_TARGET,
)


def _row(db: Session, user_id: int, achievement_type: AchievementType) -> UserAchievement:
    db.expire_all()
    return (
        db.query(UserAchievement)
        .filter(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_type == achievement_type.value,
        )
        .one()
    )


def _points(db: Session, user_id: int) -> int:
    return db.execute(select(User.points).where(User.id == user_id)).scalar_one()


def _ledger_sum(db: Session, user_id: int) -> int:
    return db.execute(
        select(func.coalesce(func.sum(PointTransaction.amount), 0)).where(
            PointTransaction.user_id == user_id
        )
    ).scalar_one()


def _unlocked_codes(db: Session, user_id: int) -> list[str]:
    rows = (
        db.query(Border.code)
        .join(BorderUnlock, BorderUnlock.border_id == Border.id)
        .filter(BorderUnlock.user_id == user_id)
        .order_by(Border.code)
        .all()
    )
    return [row.code for row in rows]


def _db_error() -> OperationalError:
    return OperationalError("INSERT INTO point_transactions", {}, Exception("database is down"))


class TestEnsureInitialized:
    def test_creates_row_for_every_definition(self, db_session: Session, test_user: User):
        RewardEngine(db_session, test_user.id).ensure_initialized()

        rows = db_session.query(UserAchievement).filter(UserAchievement.user_id == test_user.id).all()
        assert len(rows) == len(AchievementType)
        assert all(row.progress == 0 and row.completed is False for row in rows)

    def test_is_idempotent(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)
        engine.ensure_initialized()
        engine.ensure_initialized()

        count = db_session.query(UserAchievement).filter(UserAchievement.user_id == test_user.id).count()
        assert count == len(AchievementType)

    def test_unknown_user_raises_not_found(self, db_session: Session):
        with pytest.raises(NotFoundError):
            RewardEngine(db_session, 9999).ensure_initialized()


class TestFirstForumPostScenario:
    def test_single_call_completes_and_rewards(self, db_session: Session, test_user: User):
        completed = RewardEngine(db_session, test_user.id).record_progress(
            AchievementType.FIRST_FORUM_POST
        )

        assert completed == ["FIRST_FORUM_POST"]
        row = _row(db_session, test_user.id, AchievementType.FIRST_FORUM_POST)
        assert row.progress == 1
        assert row.completed is True
        assert row.completed_at is not None
        assert _points(db_session, test_user.id) == FIRST_FORUM_POST_REWARD["points"]
        assert _unlocked_codes(db_session, test_user.id) == [FIRST_FORUM_POST_REWARD["border"]]

    def test_second_call_changes_nothing(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)
        engine.record_progress(AchievementType.FIRST_FORUM_POST)
        first_row = _row(db_session, test_user.id, AchievementType.FIRST_FORUM_POST)
        completed_at = first_row.completed_at

        assert engine.record_progress(AchievementType.FIRST_FORUM_POST) == []

        row = _row(db_session, test_user.id, AchievementType.FIRST_FORUM_POST)
        assert row.progress == 1
        assert row.completed is True
        assert row.completed_at == completed_at
        assert _points(db_session, test_user.id) == 10
        assert _unlocked_codes(db_session, test_user.id) == ["bronze"]
        assert db_session.query(PointTransaction).filter(PointTransaction.user_id == test_user.id).count() == 1


class TestFriendConnectorScenario:
    def test_only_fifth_call_completes(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)

        for expected_progress in range(1, FRIEND_CONNECTOR_TARGET):
            assert engine.record_progress(ActivityType.FRIEND_CONNECTED) == []
            row = _row(db_session, test_user.id, AchievementType.FRIEND_CONNECTOR)
            assert row.progress == expected_progress
            assert row.completed is False
            assert _points(db_session, test_user.id) == 0
            assert _unlocked_codes(db_session, test_user.id) == []

        assert engine.record_progress(ActivityType.FRIEND_CONNECTED) == ["FRIEND_CONNECTOR"]
        row = _row(db_session, test_user.id, AchievementType.FRIEND_CONNECTOR)
        assert row.progress == FRIEND_CONNECTOR_TARGET
        assert row.completed is True
        assert _points(db_session, test_user.id) == FRIEND_CONNECTOR_REWARD["points"]
        assert _unlocked_codes(db_session, test_user.id) == [FRIEND_CONNECTOR_REWARD["border"]]


class TestProgressInvariants:
    def test_progress_is_monotonic_and_bounded(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)
        seen = []

        for _ in range(FRIEND_CONNECTOR_TARGET + 3):
            engine.record_progress(ActivityType.FRIEND_CONNECTED)
            seen.append(_row(db_session, test_user.id, AchievementType.FRIEND_CONNECTOR).progress)
            assert _points(db_session, test_user.id) == _ledger_sum(db_session, test_user.id)

        assert seen == sorted(seen)
        assert max(seen) == FRIEND_CONNECTOR_TARGET

    def test_large_increment_is_clamped_to_target(self, db_session: Session, test_user: User):
        RewardEngine(db_session, test_user.id).record_progress(
            AchievementType.FRIEND_CONNECTOR, increment=12
        )

        row = _row(db_session, test_user.id, AchievementType.FRIEND_CONNECTOR)
        assert row.progress == FRIEND_CONNECTOR_TARGET
        assert row.completed is True

    def test_activity_advances_every_matching_achievement(self, db_session: Session, test_user: User):
        RewardEngine(db_session, test_user.id).record_progress(ActivityType.FORUM_THREAD_CREATED)

        assert _row(db_session, test_user.id, AchievementType.FIRST_FORUM_POST).completed is True
        assert _row(db_session, test_user.id, AchievementType.FORUM_REGULAR).progress == 1
        assert _row(db_session, test_user.id, AchievementType.DISCUSSION_STARTER).progress == 1
        assert _row(db_session, test_user.id, AchievementType.SOCIAL_BUTTERFLY).progress == 0

    def test_reward_points_count_towards_points_collector(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)
        engine.record_progress(ActivityType.POINTS_EARNED, increment=995)

        completed = engine.record_progress(AchievementType.FIRST_FORUM_POST)

        assert completed == ["FIRST_FORUM_POST", "POINTS_COLLECTOR"]
        assert _row(db_session, test_user.id, AchievementType.POINTS_COLLECTOR).progress == 1000
        assert _points(db_session, test_user.id) == 10 + 100
        assert _points(db_session, test_user.id) == _ledger_sum(db_session, test_user.id)
        assert _unlocked_codes(db_session, test_user.id) == ["bronze", "diamond"]


class TestValidation:
    @pytest.mark.parametrize("increment", [0, -1, True, 1.5])
    def test_rejects_non_positive_increment(self, db_session: Session, test_user: User, increment):
        with pytest.raises(ValidationError):
            RewardEngine(db_session, test_user.id).record_progress(
                ActivityType.FRIEND_CONNECTED, increment=increment
            )

    def test_rejects_unknown_event_kind(self, db_session: Session, test_user: User):
        with pytest.raises(ValidationError):
            RewardEngine(db_session, test_user.id).record_progress("MYSTERY_EVENT")

    def test_unknown_user_raises_not_found(self, db_session: Session):
        with pytest.raises(NotFoundError):
            RewardEngine(db_session, 9999).record_progress(ActivityType.FRIEND_CONNECTED)


class TestBorderRewards:
    def test_already_owned_border_is_a_no_op(self, db_session: Session, test_user: User):
        BorderService(db_session, test_user.id).grant("bronze")

        completed = RewardEngine(db_session, test_user.id).record_progress(
            AchievementType.FIRST_FORUM_POST
        )

        assert completed == ["FIRST_FORUM_POST"]
        unlocks = db_session.query(BorderUnlock).filter(BorderUnlock.user_id == test_user.id).all()
        assert len(unlocks) == 1
        assert unlocks[0].unlock_type == "ADMIN"
        assert _points(db_session, test_user.id) == 10

    def test_missing_border_still_grants_points(self, db_session: Session, test_user: User):
        db_session.query(Border).filter(Border.code == "bronze").delete()
        db_session.commit()

        RewardEngine(db_session, test_user.id).record_progress(AchievementType.FIRST_FORUM_POST)

        assert _points(db_session, test_user.id) == 10
        assert _unlocked_codes(db_session, test_user.id) == []


class TestAtomicity:
    def test_reward_failure_rolls_back_completion(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)

        with patch.object(RewardRepository, "append_ledger", side_effect=_db_error()):
            with pytest.raises(PersistenceError):
                engine.record_progress(AchievementType.FIRST_FORUM_POST)

        progress = {a["type"]: a for a in engine.get_progress()["achievements"]}
        assert progress["FIRST_FORUM_POST"]["progress"] == 0
        assert progress["FIRST_FORUM_POST"]["completed"] is False
        assert _points(db_session, test_user.id) == 0
        assert _unlocked_codes(db_session, test_user.id) == []

    def test_failed_unit_can_be_retried(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)
        with patch.object(RewardRepository, "insert_border_unlock", side_effect=_db_error()):
            with pytest.raises(PersistenceError):
                engine.record_progress(AchievementType.FIRST_FORUM_POST)

        assert engine.record_progress(AchievementType.FIRST_FORUM_POST) == ["FIRST_FORUM_POST"]
        assert _points(db_session, test_user.id) == 10
        assert _unlocked_codes(db_session, test_user.id) == ["bronze"]

    def test_track_swallows_failures(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)
        with patch.object(RewardRepository, "append_ledger", side_effect=_db_error()):
            assert engine.track(AchievementType.FIRST_FORUM_POST) == []

    def test_track_swallows_unknown_user(self, db_session: Session):
        assert RewardEngine(db_session, 9999).track(ActivityType.FRIEND_CONNECTED) == []


class TestGetProgress:
    def test_new_user_sees_full_catalog(self, db_session: Session, test_user: User):
        result = RewardEngine(db_session, test_user.id).get_progress()

        assert result["points"] == 0
        assert result["total"] == len(AchievementType)
        assert result["completed_count"] == 0
        first = result["achievements"][0]
        assert first["type"] == "FIRST_FORUM_POST"
        assert first["target"] == 1
        assert first["reward_border"] == "bronze"

    def test_reflects_recorded_progress(self, db_session: Session, test_user: User):
        engine = RewardEngine(db_session, test_user.id)
        engine.record_progress(ActivityType.FORUM_COMMENT_CREATED, increment=3)

        by_type = {a["type"]: a for a in engine.get_progress()["achievements"]}
        assert by_type["SOCIAL_BUTTERFLY"]["progress"] == 3
        assert by_type["FORUM_REGULAR"]["progress"] == 3
        assert by_type["SOCIAL_BUTTERFLY"]["completed"] is False


@pytest.fixture
def file_sessions(tmp_path):
    """Two independent sessions on one on-disk database."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'rewards.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)

    seed = factory()
    ensure_default_borders(seed)
    user_id = make_user(seed, "double_submitter").id
    seed.close()

    first, second = factory(), factory()
    try:
        yield user_id, first, second
    finally:
        first.close()
        second.close()
        file_engine.dispose()


@pytest.mark.integration
class TestDoubleSubmission:
    def test_second_request_with_stale_view_grants_nothing(self, file_sessions):
        user_id, first, second = file_sessions

        # The second request has already seen the achievement as open.
        RewardEngine(second, user_id).ensure_initialized()
        stale = (
            second.query(UserAchievement)
            .filter(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_type == "FIRST_FORUM_POST",
            )
            .one()
        )
        assert stale.completed is False

        assert RewardEngine(first, user_id).record_progress(AchievementType.FIRST_FORUM_POST) == [
            "FIRST_FORUM_POST"
        ]
        assert RewardEngine(second, user_id).record_progress(AchievementType.FIRST_FORUM_POST) == []

        assert _points(first, user_id) == 10
        assert _ledger_sum(first, user_id) == 10
        assert first.query(BorderUnlock).filter(BorderUnlock.user_id == user_id).count() == 1
