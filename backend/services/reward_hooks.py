"""Entry points for primary actions that earn achievement progress.

Call these after the primary action has committed. They never raise: reward
tracking failures are logged by the engine and the caller carries on.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import config
from services.achievement_catalog import ActivityType
from services.reward_engine import RewardEngine


def on_forum_thread_created(db: Session, user_id: int) -> list[str]:
    return RewardEngine(db, user_id).track(ActivityType.FORUM_THREAD_CREATED)


def on_forum_comment_created(db: Session, user_id: int) -> list[str]:
    return RewardEngine(db, user_id).track(ActivityType.FORUM_COMMENT_CREATED)


def on_comment_liked(db: Session, comment_author_id: int) -> list[str]:
    """Credit the author of the liked comment, not the user who liked it."""
    return RewardEngine(db, comment_author_id).track(ActivityType.COMMENT_LIKED)


def on_friend_connected(db: Session, user_id: int, friend_id: int) -> dict[int, list[str]]:
    """A friendship counts for both sides. Self-connections count once."""
    return {
        uid: RewardEngine(db, uid).track(ActivityType.FRIEND_CONNECTED)
        for uid in dict.fromkeys((user_id, friend_id))
    }


def on_recipe_created(db: Session, user_id: int) -> list[str]:
    return RewardEngine(db, user_id).track(ActivityType.RECIPE_CREATED)


def on_purchase_completed(db: Session, user_id: int) -> list[str]:
    return RewardEngine(db, user_id).track(ActivityType.PURCHASE_COMPLETED)


def on_user_registered(
    db: Session, user_id: int, registered_at: Optional[datetime] = None
) -> list[str]:
    """Credit EARLY_ADOPTER when the account was created before the launch-week cutoff."""
    deadline = config.EARLY_ADOPTER_DEADLINE
    if deadline is not None and (registered_at or datetime.utcnow()) > deadline:
        return []
    return RewardEngine(db, user_id).track(ActivityType.USER_REGISTERED)
