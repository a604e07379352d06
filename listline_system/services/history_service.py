# listline_system/services/history_service.py
"""
Aggregator - periodic snapshots of running totals for charting.
"""
import logging
from collections import deque
from decimal import Decimal
from typing import List

from models.history import HistoryPoint
from listline_system.services.referral_forest import ReferralForest

logger = logging.getLogger(__name__)


class HistoryAggregator:
    """Bounded time series; the oldest point drops out once full."""

    def __init__(self, maxlen: int, interval: int = 1):
        self._points = deque(maxlen=maxlen)
        self.interval = interval
        self._labelCounter = 0

    def __len__(self) -> int:
        return len(self._points)

    def is_due(self, tick: int) -> bool:
        return tick % self.interval == 0

    def record(
            self,
            forest: ReferralForest,
            total_revenue: Decimal,
            successor_count: int,
            timestamp: float
    ) -> HistoryPoint:
        total = deposited = verified = 0
        for member in forest.real_members():
            total += 1
            deposited += member.hasDeposited
            verified += member.isVerified

        self._labelCounter += 1
        point = HistoryPoint(
            timestamp=timestamp,
            label=f"T{self._labelCounter}",
            totalUsers=total,
            depositedUsers=deposited,
            verifiedUsers=verified,
            totalRevenue=total_revenue,
            systemBalance=forest.system.balance,
            successorCount=successor_count,
            pendingUsers=total - deposited,
        )
        self._points.append(point)
        return point

    def points(self) -> List[HistoryPoint]:
        """Oldest first, as a chart consumes them."""
        return list(self._points)

    def resize(self, maxlen: int, interval: int) -> None:
        self.interval = interval
        if maxlen != self._points.maxlen:
            self._points = deque(self._points, maxlen=maxlen)
