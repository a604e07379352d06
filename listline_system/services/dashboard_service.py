# listline_system/services/dashboard_service.py
"""
Dashboard read-models built from the forest and the position index.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from models.member import Member, SYSTEM_ID, SYSTEM_NAME
from listline_system.config.business import LISTLINE_DEPTH, TOP_LIST_SIZE
from listline_system.services.position_index import PositionIndex
from listline_system.services.referral_forest import ReferralForest


def get_member_name(forest: ReferralForest, member_id: Optional[str]) -> str:
    member = forest.find(member_id)
    if member is None or member.isSystem:
        return SYSTEM_NAME
    return member.name


def build_dashboard(
        forest: ReferralForest,
        index: PositionIndex,
        member_id: str
) -> Optional[Dict[str, Any]]:
    """
    Personal dashboard of one member.

    Returns:
        Dict with listline stats, upline names, referrals and payments;
        None for the system account

    Raises:
        UnknownMember: If member_id does not exist
    """
    member = forest.get(member_id)
    if member.isSystem:
        return None

    stats = index.get(member_id)
    upline = forest.get_upline_chain(member_id, LISTLINE_DEPTH)
    upline = upline + [SYSTEM_ID] * (LISTLINE_DEPTH - len(upline))

    referrals = []
    for recruit_id in index.referrals_of(member_id):
        recruit = forest.get(recruit_id)
        referrals.append({
            "id": recruit.id,
            "name": recruit.name,
            "createdAt": recruit.createdAt,
            "hasDeposited": recruit.hasDeposited,
        })

    payments = [
        {
            "fromUserId": p.payerId,
            "fromUserName": p.payerName,
            "grossAmount": p.grossAmount,
            "netAmount": p.netAmount,
            "timestamp": p.timestamp,
        }
        for p in stats.payments
    ]

    return {
        "username": member.name,
        "referralCode": member.referralCode,
        "balance": member.balance,
        "listlineStats": {
            "position1": stats.p1,
            "position2": stats.p2,
            "position3": stats.p3,
            "position4": stats.p4,
            "totalEarningsFromPosition1": sum(
                (p.netAmount for p in stats.payments), Decimal("0.00")
            ),
        },
        "upline": {
            "position1": get_member_name(forest, upline[2]),
            "position2": get_member_name(forest, upline[1]),
            "position3": get_member_name(forest, upline[0]),
        },
        "referrals": referrals,
        "payments": payments,
    }


def compute_member_categories(
        forest: ReferralForest,
        successor_sequence_max: int
) -> Dict[str, List[Member]]:
    """Split real members into dashboard lists in a single pass. Members are copies."""
    real, deposited, pending, verified, unverified, close = [], [], [], [], [], []

    for member in forest.real_members():
        member = member.copy()
        real.append(member)
        (deposited if member.hasDeposited else pending).append(member)
        (verified if member.isVerified else unverified).append(member)

        if (not member.successorNominated
                and 1 <= member.depositingRecruits < successor_sequence_max):
            close.append(member)

    close.sort(key=lambda m: m.depositingRecruits, reverse=True)

    return {
        "realUsers": real,
        "depositedUsers": deposited,
        "pendingUsers": pending,
        "verifiedUsers": verified,
        "unverifiedUsers": unverified,
        "topEarners": sorted(real, key=lambda m: m.totalEarnings, reverse=True)[:TOP_LIST_SIZE],
        "topRecruiters": sorted(real, key=lambda m: m.directRecruits, reverse=True)[:TOP_LIST_SIZE],
        "closeToSuccessor": close,
    }
