# Schemas package

from .achievements import (
    AchievementProgress,
    AchievementsResponse,
)

from .borders import (
    BorderStatus,
    BordersResponse,
    BorderCodeRequest,
    PurchaseResponse,
)

from .points import (
    PointsBalanceResponse,
    PointTransactionOut,
    PointsHistoryResponse,
    LeaderboardEntry,
    LeaderboardResponse,
)
