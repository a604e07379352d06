# listline_system/services/position_index.py
"""
Position index - derived read-model for O(1) dashboard lookups.

Not authoritative: it can always be rebuilt from the listline log and the
forest. The engine keeps it current incrementally.
"""
import bisect
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from models.member import SYSTEM_ID
from models.listline import Listline, Payment
from listline_system.services.referral_forest import ReferralForest

logger = logging.getLogger(__name__)


@dataclass
class PositionStats:
    """How often one member occupies each listline position."""
    p1: int = 0
    p2: int = 0
    p3: int = 0
    p4: int = 0
    payments: List[Payment] = field(default_factory=list)

    def copy(self) -> "PositionStats":
        return PositionStats(self.p1, self.p2, self.p3, self.p4, list(self.payments))


class PositionIndex:
    """member id -> PositionStats, plus referrer id -> direct recruit ids."""

    def __init__(self):
        self.positions: Dict[str, PositionStats] = {}
        self.referrals: Dict[str, List[str]] = {}
        self._sequence: Dict[str, int] = {}

    def __eq__(self, other):
        if not isinstance(other, PositionIndex):
            return NotImplemented
        return self.positions == other.positions and self.referrals == other.referrals

    # ═══════════════════════════════════════════════════════════════════
    # INCREMENTAL UPDATES
    # ═══════════════════════════════════════════════════════════════════

    def add_member(self, member_id: str, referrer_id: str, sequence: int) -> None:
        """Register a new direct recruit under referrer_id."""
        self._sequence[member_id] = sequence
        self._insert_recruit(referrer_id, member_id)

    def move_member(self, member_id: str, old_parent_id: str, new_parent_id: str) -> None:
        """Mirror a forest re-parenting in the referrals map."""
        recruits = self.referrals.get(old_parent_id, [])
        if member_id in recruits:
            recruits.remove(member_id)
            if not recruits:
                del self.referrals[old_parent_id]
        self._insert_recruit(new_parent_id, member_id)

    def record_listline(self, listline: Listline, payment: Payment) -> None:
        """Count a new listline; the payment is attributed to position 1."""
        for slot, member_id in enumerate(listline.positions, start=1):
            if member_id == SYSTEM_ID:
                continue
            entry = self.positions.setdefault(member_id, PositionStats())
            if slot == 1:
                entry.p1 += 1
                entry.payments.append(payment)
            elif slot == 2:
                entry.p2 += 1
            elif slot == 3:
                entry.p3 += 1
            else:
                entry.p4 += 1

    def _insert_recruit(self, referrer_id: str, member_id: str) -> None:
        recruits = self.referrals.setdefault(referrer_id, [])
        keys = [self._sequence[r] for r in recruits]
        recruits.insert(bisect.bisect_left(keys, self._sequence[member_id]), member_id)

    # ═══════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════

    def get(self, member_id: str) -> PositionStats:
        """Copy of member's stats; zeros when the member never appeared."""
        entry = self.positions.get(member_id)
        return entry.copy() if entry else PositionStats()

    def referrals_of(self, member_id: str) -> List[str]:
        return list(self.referrals.get(member_id, []))

    # ═══════════════════════════════════════════════════════════════════
    # REBUILD
    # ═══════════════════════════════════════════════════════════════════

    @classmethod
    def rebuild(
            cls,
            forest: ReferralForest,
            listlines: Iterable[Listline],
            payments: Iterable[Payment]
    ) -> "PositionIndex":
        """
        Build a fresh index from the authoritative logs.

        listlines and payments are parallel, in append order.
        """
        index = cls()

        for member in forest.members():
            index._sequence[member.id] = member.sequence

        for member in sorted(forest.real_members(), key=lambda m: m.sequence):
            index._insert_recruit(member.referrerId, member.id)

        count = 0
        for listline, payment in zip(listlines, payments):
            index.record_listline(listline, payment)
            count += 1

        logger.debug(f"Position index rebuilt: {len(index.referrals)} referrers, {count} listlines")
        return index
