# models/history.py
"""
History point - one periodic snapshot of the aggregate counters.
"""
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class HistoryPoint:
    timestamp: float
    label: str
    totalUsers: int
    depositedUsers: int
    verifiedUsers: int
    totalRevenue: Decimal
    systemBalance: Decimal
    successorCount: int
    pendingUsers: int
