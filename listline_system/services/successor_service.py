# listline_system/services/successor_service.py
"""
Successor lottery and nomination resolution.

After a deposit raises a member's count of depositing recruits, a number in
[1, N] is drawn. When it equals the count, the recruit who just deposited is
proposed as that member's successor, to be re-attached under the deposit's
position 1. Each member wins at most once per run ("member" scope); with the
"global" scope only the first nomination of the run can ever fire.
"""
import logging
import random
from typing import Callable, Dict, List, Optional, Set

from config import SimulationConfig
from models.member import Member
from models.listline import Listline
from models.nomination import NominationStatus, SuccessorNomination
from listline_system.exceptions import (
    ListlineError, NominationConflictError, UnknownNomination
)
from listline_system.services.position_index import PositionIndex
from listline_system.services.referral_forest import ReferralForest

logger = logging.getLogger(__name__)


class SuccessorService:
    """Owns the lottery draws and the nomination registry of one run."""

    def __init__(
            self,
            forest: ReferralForest,
            index: PositionIndex,
            rng: random.Random,
            id_factory: Callable[[], str]
    ):
        self.forest = forest
        self.index = index
        self.rng = rng
        self._id_factory = id_factory
        self.nominations: Dict[str, SuccessorNomination] = {}
        self._fired: Set[str] = set()
        self._inFlight: Set[str] = set()

    @property
    def successorCount(self) -> int:
        """Nominations proposed this run, whatever their outcome."""
        return len(self.nominations)

    def hasFired(self, member_id: str) -> bool:
        return member_id in self._fired

    # ═══════════════════════════════════════════════════════════════════
    # LOTTERY
    # ═══════════════════════════════════════════════════════════════════

    def isEligible(self, member: Member, listline: Listline, config: SimulationConfig) -> bool:
        if member.isSystem or listline.recipientIsSystem:
            return False
        if config.successor_cap_scope == "global":
            return not self._fired
        return member.id not in self._fired and not member.successorNominated

    def drawForDeposit(
            self,
            depositor: Member,
            listline: Listline,
            config: SimulationConfig,
            timestamp: float
    ) -> Optional[SuccessorNomination]:
        """
        Run the lottery for the depositor's direct referrer.

        Returns:
            The new proposed nomination, or None when nothing fired
        """
        member = self.forest.get(depositor.referrerId)
        if not self.isEligible(member, listline, config):
            return None

        sequence = self.rng.randint(1, config.successor_sequence_max)
        count = member.depositingRecruits

        if count != sequence:
            logger.debug(
                f"Successor draw for {member.id}: sequence={sequence}, recruits={count}, no match"
            )
            return None

        nomination = SuccessorNomination(
            id=self._id_factory(),
            nominatorId=member.id,
            successorId=depositor.id,
            newParentId=listline.position1,
            sequence=sequence,
            depositCountAtNomination=count,
            createdAt=timestamp,
        )
        self.nominations[nomination.id] = nomination
        self._fired.add(member.id)

        logger.info(
            f"✓ Successor proposed: {depositor.name} for {member.name} "
            f"(sequence {sequence}, nomination {nomination.id})"
        )
        return nomination

    # ═══════════════════════════════════════════════════════════════════
    # HANDSHAKE
    # ═══════════════════════════════════════════════════════════════════

    def getPending(self, nomination_id: str) -> SuccessorNomination:
        """
        Raises:
            UnknownNomination: If the id was never proposed
            NominationConflictError: If the nomination is already resolved
        """
        nomination = self.nominations.get(nomination_id)
        if nomination is None:
            raise UnknownNomination(nomination_id)
        if not nomination.isPending:
            raise NominationConflictError(
                f"Nomination {nomination_id} is already {nomination.status.value}"
            )
        return nomination

    def beginHandshake(self, nomination_id: str) -> SuccessorNomination:
        """
        Claim a pending nomination for one confirm or decline call.

        Raises:
            UnknownNomination: If the id was never proposed
            NominationConflictError: If it is resolved or another call holds it
        """
        nomination = self.getPending(nomination_id)
        if nomination_id in self._inFlight:
            raise NominationConflictError(
                f"Nomination {nomination_id} is already being confirmed or declined"
            )
        self._inFlight.add(nomination_id)
        return nomination

    def endHandshake(self, nomination_id: str) -> None:
        self._inFlight.discard(nomination_id)

    def checkConfirmable(self, nomination: SuccessorNomination, reparent: bool) -> None:
        """Fail before any write if the move can no longer be applied."""
        self.forest.get(nomination.nominatorId)
        self.forest.get(nomination.successorId)
        self.forest.get(nomination.newParentId)
        if reparent and self.forest.walker.is_descendant(
                nomination.newParentId, nomination.successorId
        ):
            raise ListlineError(
                f"Cannot move {nomination.successorId} under its own downline "
                f"member {nomination.newParentId}"
            )

    def applyConfirm(self, nomination: SuccessorNomination, reparent: bool, timestamp: float) -> None:
        successor = self.forest.get(nomination.successorId)
        nominator = self.forest.get(nomination.nominatorId)

        if reparent:
            old_parent_id = successor.referrerId
            self.forest.reparent(successor.id, nomination.newParentId)
            self.index.move_member(successor.id, old_parent_id, nomination.newParentId)

        nominator.successorNominated = True
        nominator.successorId = successor.id
        nomination.status = NominationStatus.CONFIRMED
        nomination.resolvedAt = timestamp

    def applyDecline(self, nomination: SuccessorNomination, timestamp: float) -> None:
        nomination.status = NominationStatus.DECLINED
        nomination.resolvedAt = timestamp

    def pending(self) -> List[SuccessorNomination]:
        return [n.copy() for n in self.nominations.values() if n.isPending]
