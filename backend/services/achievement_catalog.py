"""Static achievement catalog and activity-to-achievement index.

Built once at import time and exposed through read-only mappings. Progress
rows reference definitions by ``AchievementType`` value.
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Union

from exceptions import ValidationError


class ActivityType(str, enum.Enum):
    """Inbound event kinds reported by primary actions."""

    FORUM_THREAD_CREATED = "FORUM_THREAD_CREATED"
    FORUM_COMMENT_CREATED = "FORUM_COMMENT_CREATED"
    COMMENT_LIKED = "COMMENT_LIKED"
    FRIEND_CONNECTED = "FRIEND_CONNECTED"
    RECIPE_CREATED = "RECIPE_CREATED"
    PURCHASE_COMPLETED = "PURCHASE_COMPLETED"
    POINTS_EARNED = "POINTS_EARNED"
    USER_REGISTERED = "USER_REGISTERED"


class AchievementType(str, enum.Enum):
    FIRST_FORUM_POST = "FIRST_FORUM_POST"
    FORUM_REGULAR = "FORUM_REGULAR"
    DISCUSSION_STARTER = "DISCUSSION_STARTER"
    SOCIAL_BUTTERFLY = "SOCIAL_BUTTERFLY"
    HELPFUL_MEMBER = "HELPFUL_MEMBER"
    FRIEND_CONNECTOR = "FRIEND_CONNECTOR"
    RECIPE_CREATOR = "RECIPE_CREATOR"
    EARLY_ADOPTER = "EARLY_ADOPTER"
    PURCHASE_MASTER = "PURCHASE_MASTER"
    POINTS_COLLECTOR = "POINTS_COLLECTOR"


@dataclass(frozen=True)
class Reward:
    points: int = 0
    border_code: Optional[str] = None


@dataclass(frozen=True)
class AchievementDefinition:
    type: AchievementType
    title: str
    description: str
    target: int
    triggers: tuple
    reward: Reward


_DEFINITIONS = (
    AchievementDefinition(
        type=AchievementType.FIRST_FORUM_POST,
        title="First Poster",
        description="Create your first forum thread",
        target=1,
        triggers=(ActivityType.FORUM_THREAD_CREATED,),
        reward=Reward(points=10, border_code="bronze"),
    ),
    AchievementDefinition(
        type=AchievementType.FORUM_REGULAR,
        title="Active Speaker",
        description="Make 10 forum posts",
        target=10,
        triggers=(ActivityType.FORUM_THREAD_CREATED, ActivityType.FORUM_COMMENT_CREATED),
        reward=Reward(points=50, border_code="silver"),
    ),
    AchievementDefinition(
        type=AchievementType.DISCUSSION_STARTER,
        title="Discussion Starter",
        description="Start 10 discussion threads",
        target=10,
        triggers=(ActivityType.FORUM_THREAD_CREATED,),
        reward=Reward(points=60, border_code="gold"),
    ),
    AchievementDefinition(
        type=AchievementType.SOCIAL_BUTTERFLY,
        title="Good Listener",
        description="Write 20 forum comments",
        target=20,
        triggers=(ActivityType.FORUM_COMMENT_CREATED,),
        reward=Reward(points=40, border_code="silver"),
    ),
    AchievementDefinition(
        type=AchievementType.HELPFUL_MEMBER,
        title="Helpful Member",
        description="Receive 50 likes on your comments",
        target=50,
        triggers=(ActivityType.COMMENT_LIKED,),
        reward=Reward(points=80, border_code="crystal"),
    ),
    AchievementDefinition(
        type=AchievementType.FRIEND_CONNECTOR,
        title="Friend Connector",
        description="Make 5 friend connections",
        target=5,
        triggers=(ActivityType.FRIEND_CONNECTED,),
        reward=Reward(points=30, border_code="silver"),
    ),
    AchievementDefinition(
        type=AchievementType.RECIPE_CREATOR,
        title="Creative Chef",
        description="Share 5 new matcha recipes",
        target=5,
        triggers=(ActivityType.RECIPE_CREATED,),
        reward=Reward(points=30, border_code="silver"),
    ),
    AchievementDefinition(
        type=AchievementType.EARLY_ADOPTER,
        title="Early Adopter",
        description="Join HikariCha during its first week",
        target=1,
        triggers=(ActivityType.USER_REGISTERED,),
        reward=Reward(points=25, border_code="bronze"),
    ),
    AchievementDefinition(
        type=AchievementType.PURCHASE_MASTER,
        title="Loyal Shopper",
        description="Complete 5 purchases",
        target=5,
        triggers=(ActivityType.PURCHASE_COMPLETED,),
        reward=Reward(points=75, border_code="gold"),
    ),
    AchievementDefinition(
        type=AchievementType.POINTS_COLLECTOR,
        title="Point Hunter",
        description="Collect 1000 points",
        target=1000,
        triggers=(ActivityType.POINTS_EARNED,),
        reward=Reward(points=100, border_code="diamond"),
    ),
)


def _build_index(definitions) -> Mapping[ActivityType, tuple]:
    index: dict = {activity: [] for activity in ActivityType}
    for definition in definitions:
        for activity in definition.triggers:
            index[activity].append(definition)
    return MappingProxyType({activity: tuple(defs) for activity, defs in index.items()})


ACHIEVEMENTS: Mapping[AchievementType, AchievementDefinition] = MappingProxyType(
    {definition.type: definition for definition in _DEFINITIONS}
)
DEFINITIONS_BY_ACTIVITY = _build_index(_DEFINITIONS)


def all_definitions() -> tuple:
    """Catalog in display order."""
    return _DEFINITIONS


def get_definition(achievement_type: Union[AchievementType, str]) -> Optional[AchievementDefinition]:
    try:
        return ACHIEVEMENTS.get(AchievementType(achievement_type))
    except ValueError:
        return None


def resolve(kind: Union[ActivityType, AchievementType, str]) -> tuple:
    """Return the definitions advanced by ``kind``.

    An activity advances every achievement it triggers; an achievement type
    addresses that single achievement directly.
    """
    if isinstance(kind, ActivityType):
        return DEFINITIONS_BY_ACTIVITY[kind]
    if isinstance(kind, AchievementType):
        return (ACHIEVEMENTS[kind],)
    if isinstance(kind, str) and kind:
        normalized = kind.strip().upper()
        if normalized in ActivityType.__members__:
            return DEFINITIONS_BY_ACTIVITY[ActivityType[normalized]]
        if normalized in AchievementType.__members__:
            return (ACHIEVEMENTS[AchievementType[normalized]],)
    raise ValidationError(f"Unknown event kind: {kind!r}")
