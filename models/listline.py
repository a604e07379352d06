# models/listline.py
"""
Listline and Payment records - immutable ledger entries written on deposit.
"""
from dataclasses import dataclass
from decimal import Decimal

from models.member import SYSTEM_ID


@dataclass(frozen=True)
class Listline:
    """
    Four-position ancestor snapshot taken when a member deposits.

    position1 = 3rd ancestor (payee), position2 = 2nd ancestor,
    position3 = direct referrer, position4 = the depositing member.
    Missing ancestors are SYSTEM_ID.
    """
    id: str
    userId: str
    userName: str
    position1: str
    position2: str
    position3: str
    position4: str
    recipientName: str
    timestamp: float

    @property
    def positions(self) -> tuple:
        return (self.position1, self.position2, self.position3, self.position4)

    @property
    def recipientIsSystem(self) -> bool:
        return self.position1 == SYSTEM_ID


@dataclass(frozen=True)
class Payment:
    """
    Money movement caused by one deposit.

    grossAmount = netAmount + feeAmount, all at 2 decimal places.
    netAmount goes to recipientId (the system account when position1 is empty),
    feeAmount always stays with the system account.
    """
    id: str
    listlineId: str
    payerId: str
    payerName: str
    recipientId: str
    recipientName: str
    grossAmount: Decimal
    netAmount: Decimal
    feeAmount: Decimal
    timestamp: float

    @property
    def recipientIsSystem(self) -> bool:
        return self.recipientId == SYSTEM_ID
