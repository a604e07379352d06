# listline_system/services/referral_forest.py
"""
Referral forest - members linked by their referrer relation.

The system account is the single root. A member can only be inserted under a
referrer that already exists, so the structure is acyclic by construction.
"""
import bisect
import logging
from typing import Callable, Dict, Iterator, List, Optional, Any

from models.member import Member, SYSTEM_ID, create_system_member
from listline_system.exceptions import ListlineError, UnknownMember, UnknownReferrer
from listline_system.utils.chain_walker import ChainWalker

logger = logging.getLogger(__name__)


class ReferralForest:
    """Mutable member tree owned by a single engine."""

    def __init__(self, created_at: float = 0.0):
        system = create_system_member(created_at)
        self._members: Dict[str, Member] = {system.id: system}
        self._children: Dict[str, List[str]] = {system.id: []}
        self._depth: Dict[str, int] = {system.id: 0}
        self.walker = ChainWalker(self)

    # ═══════════════════════════════════════════════════════════════════
    # LOOKUP
    # ═══════════════════════════════════════════════════════════════════

    @property
    def system(self) -> Member:
        return self._members[SYSTEM_ID]

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, member_id: str) -> bool:
        return member_id in self._members

    def find(self, member_id: Optional[str]) -> Optional[Member]:
        if member_id is None:
            return None
        return self._members.get(member_id)

    def get(self, member_id: str) -> Member:
        """
        Get member by id.

        Raises:
            UnknownMember: If id is not part of the forest
        """
        member = self._members.get(member_id)
        if member is None:
            logger.error(f"Lookup of unknown member {member_id}")
            raise UnknownMember(member_id)
        return member

    def members(self) -> Iterator[Member]:
        """All members in creation order, system account first."""
        return iter(self._members.values())

    def real_members(self) -> Iterator[Member]:
        return (m for m in self._members.values() if not m.isSystem)

    def children_of(self, member_id: str) -> List[str]:
        """Direct recruits of member_id ordered by creation."""
        if member_id not in self._members:
            raise UnknownMember(member_id)
        return list(self._children[member_id])

    def depth_of(self, member_id: str) -> int:
        """Distance from the system account (system=0, its recruits=1)."""
        if member_id not in self._depth:
            raise UnknownMember(member_id)
        return self._depth[member_id]

    def nodes_within_depth(
            self,
            max_depth: int,
            predicate: Optional[Callable[[Member], bool]] = None
    ) -> List[Member]:
        """Real members at depth 1..max_depth, optionally filtered."""
        return [
            m for m in self.real_members()
            if self._depth[m.id] <= max_depth and (predicate is None or predicate(m))
        ]

    # ═══════════════════════════════════════════════════════════════════
    # MUTATION
    # ═══════════════════════════════════════════════════════════════════

    def insert_member(
            self,
            name: str,
            referrer_id: str,
            member_id: str,
            created_at: float = 0.0,
            is_verified: bool = False
    ) -> Member:
        """
        Create a member attached under an existing referrer.

        Raises:
            UnknownReferrer: If referrer_id does not exist
            ListlineError: If member_id is already taken
        """
        referrer = self._members.get(referrer_id)
        if referrer is None:
            logger.error(f"Cannot insert {name}: unknown referrer {referrer_id}")
            raise UnknownReferrer(referrer_id)

        if member_id in self._members:
            raise ListlineError(f"Member id {member_id} already exists")

        member = Member(
            id=member_id,
            name=name,
            referrerId=referrer_id,
            sequence=len(self._members),
            isVerified=is_verified,
            createdAt=created_at,
        )

        self._members[member_id] = member
        self._children[member_id] = []
        self._children[referrer_id].append(member_id)
        self._depth[member_id] = self._depth[referrer_id] + 1
        referrer.directRecruits += 1

        logger.debug(f"Inserted member {member_id} ({name}) under {referrer_id}")
        return member

    def reparent(self, member_id: str, new_parent_id: str) -> Member:
        """
        Move member (with its whole downline) under new_parent_id.

        Raises:
            UnknownMember: If either id does not exist
            ListlineError: If the move would detach the system account or create a cycle
        """
        member = self.get(member_id)
        new_parent = self.get(new_parent_id)

        if member.isSystem:
            raise ListlineError("The system account cannot be moved")

        if new_parent_id == member_id or self.walker.is_descendant(new_parent_id, member_id):
            raise ListlineError(
                f"Moving {member_id} under {new_parent_id} would create a cycle"
            )

        old_parent = self.get(member.referrerId)
        if old_parent.id == new_parent.id:
            return member

        self._children[old_parent.id].remove(member_id)
        siblings = self._children[new_parent.id]
        position = bisect.bisect_left(
            [self._members[s].sequence for s in siblings], member.sequence
        )
        siblings.insert(position, member_id)

        member.referrerId = new_parent.id
        old_parent.directRecruits -= 1
        new_parent.directRecruits += 1
        if member.hasDeposited:
            if not old_parent.isSystem:
                old_parent.depositingRecruits -= 1
            if not new_parent.isSystem:
                new_parent.depositingRecruits += 1

        # Refresh depth of the moved subtree
        shift = self._depth[new_parent.id] + 1 - self._depth[member_id]
        stack = [member_id]
        while stack:
            current = stack.pop()
            self._depth[current] += shift
            stack.extend(self._children[current])

        logger.info(f"Moved member {member_id} from {old_parent.id} to {new_parent.id}")
        return member

    # ═══════════════════════════════════════════════════════════════════
    # TRAVERSAL
    # ═══════════════════════════════════════════════════════════════════

    def get_upline_chain(self, member_id: str, depth: int) -> List[str]:
        """
        Ancestor ids of member_id, nearest first, at most `depth` long.

        A shorter list means the chain reached the system account; the
        missing slots are the system account.

        Raises:
            UnknownMember: If member_id does not exist
        """
        member = self.get(member_id)
        return [m.id for m in self.walker.get_upline_chain(member, depth)]

    def to_tree(self, root_id: str = SYSTEM_ID, max_depth: Optional[int] = None) -> Dict[str, Any]:
        """
        Serializable nested dict of the subtree under root_id.

        Money is rendered as strings so the result is JSON-safe.
        """
        root = self.get(root_id)

        def build(member: Member, level: int) -> Dict[str, Any]:
            node = {
                "id": member.id,
                "name": member.name,
                "referrerId": member.referrerId,
                "level": level,
                "deposited": member.hasDeposited,
                "verified": member.isVerified,
                "isSystem": member.isSystem,
                "balance": str(member.balance),
                "directRecruits": member.directRecruits,
                "depositingRecruits": member.depositingRecruits,
                "stats": {
                    "views": member.stats.views,
                    "clicks": member.stats.clicks,
                    "registrations": member.stats.registrations,
                    "deposits": member.stats.deposits,
                },
                "children": [],
            }
            if max_depth is None or level < max_depth:
                node["children"] = [
                    build(self._members[child_id], level + 1)
                    for child_id in self._children[member.id]
                ]
            return node

        return build(root, 0)
