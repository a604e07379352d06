# models/nomination.py
"""
Successor nomination - result of a winning lottery draw.

State machine: proposed -> confirmed | declined.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class NominationStatus(Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


@dataclass
class SuccessorNomination:
    id: str
    nominatorId: str
    successorId: str
    newParentId: str
    sequence: int  # drawn lottery number
    depositCountAtNomination: int
    status: NominationStatus = NominationStatus.PROPOSED
    createdAt: float = 0.0
    resolvedAt: Optional[float] = None

    @property
    def isPending(self) -> bool:
        return self.status == NominationStatus.PROPOSED

    def copy(self) -> "SuccessorNomination":
        return replace(self)

    def __repr__(self):
        return (
            f"<SuccessorNomination(id={self.id}, nominator={self.nominatorId}, "
            f"successor={self.successorId}, status={self.status.value})>"
        )
