# listline_system/services/payout_service.py
"""
Payout calculation service - listline positions and the deposit split.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Tuple
import logging

from config import CENTS
from models.member import Member, SYSTEM_ID, SYSTEM_NAME
from models.listline import Listline, Payment
from listline_system.config.business import LISTLINE_DEPTH
from listline_system.services.referral_forest import ReferralForest

logger = logging.getLogger(__name__)


def compute_listline(member_id: str, forest: ReferralForest) -> Dict[str, str]:
    """
    Resolve the four listline positions of member_id.

    position3 = direct referrer, position2 = 2nd ancestor,
    position1 = 3rd ancestor (payee), position4 = the member itself.
    Ancestors missing above the system account resolve to SYSTEM_ID.

    Raises:
        UnknownMember: If member_id is not in the forest
    """
    upline = forest.get_upline_chain(member_id, LISTLINE_DEPTH)
    padded = upline + [SYSTEM_ID] * (LISTLINE_DEPTH - len(upline))

    return {
        "position1": padded[2],
        "position2": padded[1],
        "position3": padded[0],
        "position4": member_id,
    }


def split_deposit(gross: Decimal, maintenance_fee_rate: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Split a gross deposit into (net payout, maintenance fee).

    Rounding happens once, on the net amount, at 2 decimal places; the fee is
    the exact remainder so net + fee == gross always holds.

    Example:
        >>> split_deposit(Decimal("10.00"), Decimal("0.10"))
        (Decimal('9.00'), Decimal('1.00'))
    """
    gross = Decimal(gross).quantize(CENTS, rounding=ROUND_HALF_UP)
    net = (gross * (Decimal("1") - Decimal(maintenance_fee_rate))).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )
    fee = gross - net
    return net, fee


class PayoutService:
    """Applies the ledger effects of a deposit to the forest."""

    def __init__(self, forest: ReferralForest):
        self.forest = forest

    def processDeposit(
            self,
            member: Member,
            gross: Decimal,
            maintenance_fee_rate: Decimal,
            listline_id: str,
            payment_id: str,
            timestamp: float
    ) -> Tuple[Listline, Payment]:
        """
        Record a deposit by member and pay its position 1.

        Everything is computed before the first write, so a failure while
        resolving the listline leaves balances untouched.

        Returns:
            (Listline, Payment) records for the append-only logs
        """
        positions = compute_listline(member.id, self.forest)
        recipient = self.forest.get(positions["position1"])
        system = self.forest.system
        net, fee = split_deposit(gross, maintenance_fee_rate)
        recipient_name = SYSTEM_NAME if recipient.isSystem else recipient.name

        listline = Listline(
            id=listline_id,
            userId=member.id,
            userName=member.name,
            recipientName=recipient_name,
            timestamp=timestamp,
            **positions,
        )

        payment = Payment(
            id=payment_id,
            listlineId=listline_id,
            payerId=member.id,
            payerName=member.name,
            recipientId=recipient.id,
            recipientName=recipient_name,
            grossAmount=net + fee,
            netAmount=net,
            feeAmount=fee,
            timestamp=timestamp,
        )

        # ═══════════════════════════════════════════════════════════
        # Writes
        # ═══════════════════════════════════════════════════════════
        member.hasDeposited = True

        system.balance += fee
        system.totalEarnings += fee

        # Net payout to position 1, or retained when position 1 is the system
        recipient.balance += net
        recipient.totalEarnings += net

        logger.debug(
            f"Deposit {payment.grossAmount} from {member.id}: "
            f"net {net} -> {recipient.id}, fee {fee} -> {SYSTEM_ID}"
        )

        return listline, payment
