# listline_system/utils/chain_walker.py
"""
Safe referral chain walking utilities.
Cycle detection and depth limits keep a damaged chain from looping forever.
"""
from typing import Callable, List, TYPE_CHECKING
import logging

from models.member import Member, SYSTEM_ID

if TYPE_CHECKING:
    from listline_system.services.referral_forest import ReferralForest

logger = logging.getLogger(__name__)


class ChainWalker:
    """
    Safe utilities for walking the upline chains of a ReferralForest.
    Used for listline positions and for re-parent cycle checks.
    """

    def __init__(self, forest: "ReferralForest"):
        self.forest = forest

    def is_system_root(self, member: Member) -> bool:
        """
        Check if member is the system account (the only member without referrer).

        Args:
            member: Member to check

        Returns:
            True if member is system root
        """
        return member.isSystem and member.id == SYSTEM_ID and member.referrerId is None

    def walk_upline(
            self,
            start_member: Member,
            callback: Callable[[Member, int], bool],
            max_depth: int = 50
    ) -> int:
        """
        Safely walk up the upline chain, calling callback for each ancestor.

        Args:
            start_member: Starting member
            callback: Function(member, level) -> continue_walking (bool)
            max_depth: Maximum number of ancestors to visit

        Returns:
            Number of ancestors processed

        Example:
            def process_upline(member, level):
                print(f"Level {level}: {member.id}")
                return True  # Continue walking

            walker.walk_upline(member, process_upline)
        """
        current = start_member
        level = 1
        processed = 0
        visited = set()

        while current.referrerId and level <= max_depth:
            # Check for cycles
            if current.id in visited:
                logger.error(f"Cycle detected at member {current.id}")
                break

            visited.add(current.id)

            upline = self.forest.find(current.referrerId)

            if upline is None:
                logger.warning(
                    f"Upline not found: referrerId={current.referrerId} "
                    f"for member {current.id}"
                )
                break

            should_continue = callback(upline, level)
            processed += 1

            if not should_continue:
                break

            current = upline
            level += 1

        return processed

    def get_upline_chain(self, member: Member, max_depth: int = 50) -> List[Member]:
        """
        Get list of ancestors, nearest first.

        Stops early when the system account is reached; a short list is valid.

        Args:
            member: Starting member
            max_depth: Maximum number of ancestors

        Returns:
            List of members from direct referrer upwards
        """
        chain = []

        def collect(upline_member, level):
            chain.append(upline_member)
            return True  # Continue

        self.walk_upline(member, collect, max_depth)
        return chain

    def is_descendant(self, member_id: str, ancestor_id: str) -> bool:
        """True if ancestor_id appears in member_id's upline chain."""
        found = [False]

        def check(upline_member, level):
            if upline_member.id == ancestor_id:
                found[0] = True
                return False
            return True

        self.walk_upline(self.forest.get(member_id), check, max_depth=len(self.forest))
        return found[0]
