# models/snapshot.py
"""
Immutable view of an engine between ticks.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from models.member import LinkStats, Member
from models.listline import Listline, Payment
from models.event import SimulationEvent
from models.history import HistoryPoint
from models.nomination import SuccessorNomination


@dataclass(frozen=True)
class SimulationSnapshot:
    """
    Everything a reader may see after a tick.

    Members, nominations and link stats are copies; mutating them does not
    touch the engine. events are most-recent-first, history oldest-first.
    """
    tick: int
    members: Tuple[Member, ...]
    listlines: Tuple[Listline, ...]
    payments: Tuple[Payment, ...]
    events: Tuple[SimulationEvent, ...]
    history: Tuple[HistoryPoint, ...]
    nominations: Tuple[SuccessorNomination, ...]
    totalDeposited: Decimal
    systemBalance: Decimal
    successorCount: int
    linkStats: LinkStats

    def member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    @property
    def realMemberCount(self) -> int:
        return sum(1 for m in self.members if not m.isSystem)

    @property
    def depositedCount(self) -> int:
        return sum(1 for m in self.members if not m.isSystem and m.hasDeposited)
