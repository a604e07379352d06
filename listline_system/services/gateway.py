# listline_system/services/gateway.py
"""
Gateway to the external actor behind successor handshakes and withdrawals.

The engine never talks to a backing store directly; a deployment plugs in a
gateway that may fail. InMemoryGateway accepts everything.
"""
import logging
from decimal import Decimal

from models.member import Member
from models.nomination import SuccessorNomination

logger = logging.getLogger(__name__)


class LedgerGateway:
    """Base gateway. Subclasses raise on failure; the engine keeps its state."""

    async def confirm_successor(self, nomination: SuccessorNomination) -> None:
        raise NotImplementedError

    async def decline_successor(self, nomination: SuccessorNomination) -> None:
        raise NotImplementedError

    async def send_payout(self, member: Member, amount: Decimal) -> None:
        raise NotImplementedError


class InMemoryGateway(LedgerGateway):
    """Accepts every request and keeps a record of what it was asked to do."""

    def __init__(self):
        self.confirmed = []
        self.declined = []
        self.payouts = []

    async def confirm_successor(self, nomination: SuccessorNomination) -> None:
        self.confirmed.append(nomination.id)
        logger.debug(f"Gateway confirmed nomination {nomination.id}")

    async def decline_successor(self, nomination: SuccessorNomination) -> None:
        self.declined.append(nomination.id)
        logger.debug(f"Gateway declined nomination {nomination.id}")

    async def send_payout(self, member: Member, amount: Decimal) -> None:
        self.payouts.append((member.id, amount))
        logger.debug(f"Gateway paid {amount} to {member.id}")
