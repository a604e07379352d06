# models/member.py
"""
Member model - a participant in the referral forest.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional

SYSTEM_ID = "system"
SYSTEM_NAME = "SYSTEM"


@dataclass
class NodeStats:
    """Link analytics attached to one member's referral link."""
    views: int = 0
    clicks: int = 0
    registrations: int = 0
    deposits: int = 0


@dataclass
class LinkStats:
    """Aggregate link analytics of a whole run."""
    totalViews: int = 0
    uniqueViews: int = 0
    registrations: int = 0
    deposits: int = 0


@dataclass
class Member:
    """
    One node of the referral forest.

    Exactly one member per run is the system account (referrerId=None,
    isSystem=True); every other member points at an existing referrer.
    """
    id: str
    name: str
    referrerId: Optional[str]
    sequence: int = 0  # creation order inside the run
    balance: Decimal = Decimal("0.00")
    totalEarnings: Decimal = Decimal("0.00")
    directRecruits: int = 0
    depositingRecruits: int = 0
    hasDeposited: bool = False
    isVerified: bool = False
    successorNominated: bool = False
    successorId: Optional[str] = None
    isSystem: bool = False
    createdAt: float = 0.0
    stats: NodeStats = field(default_factory=NodeStats)

    @property
    def referralCode(self) -> str:
        return self.id[:6].upper()

    def copy(self) -> "Member":
        """Detached copy for read-only consumers."""
        return replace(self, stats=replace(self.stats))

    def __repr__(self):
        return (
            f"<Member(id={self.id}, name={self.name}, referrerId={self.referrerId}, "
            f"deposited={self.hasDeposited})>"
        )


def create_system_member(created_at: float = 0.0) -> Member:
    """Root account that absorbs fees and payments with no real payee."""
    return Member(
        id=SYSTEM_ID,
        name=SYSTEM_NAME,
        referrerId=None,
        hasDeposited=True,
        isVerified=True,
        isSystem=True,
        createdAt=created_at,
    )
