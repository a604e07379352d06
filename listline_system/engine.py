# listline_system/engine.py
"""
Simulation engine - owns the whole ledger state of one run.

One engine instance holds the referral forest, the listline and payment
logs, the position index, the event log, the history series and the
successor nominations. Ticks mutate state synchronously; readers get
snapshots and copies only.
"""
import logging
import random
import time
from decimal import Decimal, ROUND_CEILING
from typing import Any, Callable, Dict, List, Mapping, Optional

from config import CENTS, SimulationConfig, get_random_seed
from models.member import LinkStats, Member, SYSTEM_ID
from models.listline import Payment
from models.event import EventKind, Severity, SimulationEvent
from models.history import HistoryPoint
from models.nomination import NominationStatus, SuccessorNomination
from models.snapshot import SimulationSnapshot
from listline_system.config.business import (
    CURRENCY_SYMBOL,
    MAX_CLICK_RATIO,
    MAX_NODE_VIEWS_PER_TICK,
    MAX_REGISTRATION_DEPTH,
    MAX_SITE_VIEWS_PER_TICK,
    MAX_VIEW_DEPTH,
    MIN_CLICK_RATIO,
    UNIQUE_VIEW_RATIO,
)
from listline_system.events.event_log import EventLog
from listline_system.exceptions import (
    TransientOperationError, UnknownReferrer, WithdrawalError
)
from listline_system.services.dashboard_service import (
    build_dashboard, compute_member_categories, get_member_name
)
from listline_system.services.gateway import InMemoryGateway, LedgerGateway
from listline_system.services.history_service import HistoryAggregator
from listline_system.services.payout_service import PayoutService
from listline_system.services.position_index import PositionIndex, PositionStats
from listline_system.services.referral_forest import ReferralForest
from listline_system.services.successor_service import SuccessorService
from listline_system.utils.name_pool import NamePool

logger = logging.getLogger(__name__)


def money(amount: Decimal) -> str:
    return f"{CURRENCY_SYMBOL}{amount:.2f}"


class SimulationEngine:
    """
    Listline ledger engine.

    Usage:
        engine = SimulationEngine(SimulationConfig(), rng=random.Random(42))
        engine.add_member(name="Alice")
        snapshot = engine.step()
    """

    def __init__(
            self,
            config: Optional[SimulationConfig] = None,
            rng: Optional[random.Random] = None,
            clock: Optional[Callable[[], float]] = None,
            gateway: Optional[LedgerGateway] = None
    ):
        """
        Initialize engine.

        Args:
            config: Validated parameters (defaults when omitted)
            rng: Random source; seeded from RANDOM_SEED when omitted
            clock: Returns the timestamp stamped on new records
            gateway: External actor for successor handshakes and payouts
        """
        self.config = config or SimulationConfig()
        self.rng = rng if rng is not None else random.Random(get_random_seed())
        self.clock = clock or time.time
        self.gateway = gateway or InMemoryGateway()

        # reset() rewinds the random source to this point
        self._initialRngState = self.rng.getstate()
        self._runId = 0

        self._init_state()
        logger.info(f"Simulation engine created (tick interval {self.config.tick_interval_ms}ms)")

    def _init_state(self) -> None:
        # Bumped on every reset; async work started in an older run is void
        self._runId += 1
        self.tick = 0
        self._counters = {"evt": 0, "ll": 0, "pay": 0, "nom": 0}

        self.forest = ReferralForest(created_at=self.clock())
        self.index = PositionIndex()
        self.listlines = []
        self.payments = []
        self.totalDeposited = Decimal("0.00")
        self.linkStats = LinkStats()

        self.eventLog = EventLog(self.config.event_log_cap, lambda: self._next_id("evt"))
        self.historyLog = HistoryAggregator(self.config.history_cap, self.config.history_interval)
        self.names = NamePool(self.rng)
        self.payouts = PayoutService(self.forest)
        self.successors = SuccessorService(
            self.forest, self.index, self.rng, lambda: self._next_id("nom")
        )
        self._reservedWithdrawals: Dict[str, Decimal] = {}

    def _next_id(self, prefix: str) -> str:
        self._counters[prefix] += 1
        return f"{prefix}_{self._counters[prefix]}"

    def _new_member_id(self) -> str:
        while True:
            member_id = f"{self.rng.getrandbits(48):012x}"
            if member_id not in self.forest:
                return member_id

    def _log(self, kind: EventKind, message: str, severity: Optional[Severity] = None) -> SimulationEvent:
        return self.eventLog.append(kind, message, self.clock(), severity)

    # ═══════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════

    def configure(self, params: Mapping[str, Any]) -> SimulationConfig:
        """
        Merge params into the current configuration.

        Raises:
            ConfigurationError: If any value is invalid; nothing changes then
        """
        new_config = self.config.replace(**dict(params))

        self.config = new_config
        self.eventLog.resize(new_config.event_log_cap)
        self.historyLog.resize(new_config.history_cap, new_config.history_interval)

        changes = ", ".join(f"{k}={v}" for k, v in sorted(params.items()))
        self._log(EventKind.INFO, f"Configuration updated: {changes}")
        logger.info(f"Configuration updated: {changes}")
        return new_config

    def reset(self) -> SimulationSnapshot:
        """Discard all state and start over with only the system account."""
        self.rng.setstate(self._initialRngState)
        self._init_state()
        logger.info("Simulation reset")
        return self.snapshot()

    # ═══════════════════════════════════════════════════════════════════
    # TICK
    # ═══════════════════════════════════════════════════════════════════

    def step(self) -> SimulationSnapshot:
        """Advance one tick and return the resulting state."""
        self._advance()
        return self.snapshot()

    def run(self, ticks: int) -> SimulationSnapshot:
        for _ in range(ticks):
            self._advance()
        return self.snapshot()

    def _advance(self) -> None:
        """Exactly one weighted action, then maybe a history point."""
        self.tick += 1
        roll = self.rng.random()

        view_edge = float(self.config.view_weight)
        registration_edge = float(self.config.view_weight + self.config.conversion_rate)

        if roll < view_edge:
            self._simulate_view()
        elif roll < registration_edge:
            self._simulate_registration()
        else:
            self._simulate_deposit()

        if self.historyLog.is_due(self.tick):
            self.record_history()

    def _simulate_view(self) -> None:
        views = self.rng.randint(1, MAX_SITE_VIEWS_PER_TICK)
        self.linkStats.totalViews += views
        self.linkStats.uniqueViews += int(
            (views * UNIQUE_VIEW_RATIO).to_integral_value(rounding=ROUND_CEILING)
        )

        candidates = self.forest.nodes_within_depth(MAX_VIEW_DEPTH)
        if not candidates:
            self._log(EventKind.VIEW, f"{views} visitor(s) viewed the landing page")
            return

        node = self.rng.choice(candidates)
        node_views = self.rng.randint(1, MAX_NODE_VIEWS_PER_TICK)
        clicks = int(node_views * self.rng.uniform(MIN_CLICK_RATIO, MAX_CLICK_RATIO))
        node.stats.views += node_views
        node.stats.clicks += clicks

        self._log(EventKind.VIEW, f"{node.name}'s link viewed {node_views}x ({clicks} clicks)")

    def _simulate_registration(self) -> None:
        self._create_member(self.names.draw(), self._pick_registration_parent(), EventKind.REGISTRATION)

    def _pick_registration_parent(self) -> str:
        # Only members that already paid can recruit
        parents = self.forest.nodes_within_depth(
            MAX_REGISTRATION_DEPTH - 1, lambda m: m.hasDeposited
        )
        return self.rng.choice(parents).id if parents else SYSTEM_ID

    def _simulate_deposit(self) -> None:
        candidates = [m for m in self.forest.real_members() if not m.hasDeposited]
        if not candidates:
            logger.debug(f"Tick {self.tick}: no undeposited members, deposit skipped")
            return
        self._apply_deposit(self.rng.choice(candidates))

    # ═══════════════════════════════════════════════════════════════════
    # MEMBERS AND DEPOSITS
    # ═══════════════════════════════════════════════════════════════════

    def add_member(self, referrer_id: Optional[str] = None, name: Optional[str] = None) -> Member:
        """
        Create a member under referrer_id.

        Without a referrer the parent is picked the way registrations pick
        one: a deposited member near the top, else the system account.

        Raises:
            UnknownReferrer: If referrer_id does not exist
        """
        if referrer_id is None:
            referrer_id = self._pick_registration_parent()
        elif referrer_id not in self.forest:
            logger.error(f"Cannot add member: unknown referrer {referrer_id}")
            raise UnknownReferrer(referrer_id)

        if name is not None:
            self.names.mark_used(name)
        member = self._create_member(
            name if name is not None else self.names.draw(),
            referrer_id,
            EventKind.MEMBER_CREATED,
        )
        return member.copy()

    def _create_member(
            self,
            name: str,
            referrer_id: str,
            kind: Optional[EventKind],
            member_id: Optional[str] = None
    ) -> Member:
        if referrer_id not in self.forest:
            logger.error(f"Cannot create {name}: unknown referrer {referrer_id}")
            raise UnknownReferrer(referrer_id)

        is_verified = self.rng.random() < float(self.config.verification_rate)
        member = self.forest.insert_member(
            name,
            referrer_id,
            member_id or self._new_member_id(),
            created_at=self.clock(),
            is_verified=is_verified,
        )
        self.index.add_member(member.id, referrer_id, member.sequence)

        if kind is None:
            return member

        referrer = self.forest.get(referrer_id)
        if kind == EventKind.REGISTRATION:
            referrer.stats.registrations += 1
            self.linkStats.registrations += 1

        via = "" if referrer.isSystem else f" via {referrer.name}"
        self._log(kind, f"{name} joined{via}")
        logger.info(f"Member {member.id} ({name}) joined under {referrer_id}")

        if self.rng.random() < float(self.config.fraud_alert_rate):
            self._log(
                EventKind.FRAUD_ALERT,
                f"Rapid registration pattern detected for {name}",
                Severity.MEDIUM,
            )
            logger.warning(f"Fraud alert raised for new member {member.id}")

        return member

    def process_deposit(self, member_id: str) -> Optional[Payment]:
        """
        Deposit on behalf of member_id.

        Returns:
            The Payment, or None when the member already deposited
            or is the system account

        Raises:
            UnknownMember: If member_id does not exist
        """
        member = self.forest.get(member_id)
        if member.isSystem or member.hasDeposited:
            return None
        return self._apply_deposit(member)

    def _apply_deposit(self, member: Member, replay: bool = False) -> Payment:
        """Ledger effects of one deposit. Replayed deposits log nothing and skip the lottery."""
        now = self.clock()
        listline, payment = self.payouts.processDeposit(
            member,
            self.config.deposit_amount,
            self.config.maintenance_fee_rate,
            self._next_id("ll"),
            self._next_id("pay"),
            now,
        )
        self.listlines.append(listline)
        self.payments.append(payment)
        self.index.record_listline(listline, payment)
        self.totalDeposited += payment.grossAmount

        referrer = self.forest.get(member.referrerId)
        if not referrer.isSystem:
            referrer.depositingRecruits += 1
            referrer.stats.deposits += 1
        self.linkStats.deposits += 1

        if replay:
            return payment

        self._log(
            EventKind.DEPOSIT,
            f"{member.name} deposited {money(payment.grossAmount)} "
            f"(position 1: {listline.recipientName})",
        )
        if not payment.recipientIsSystem:
            self._log(
                EventKind.PAYMENT,
                f"{payment.recipientName} received {money(payment.netAmount)} "
                f"from {member.name} (fee {money(payment.feeAmount)})",
            )
        logger.info(
            f"Deposit by {member.id}: {payment.netAmount} -> {payment.recipientId}, "
            f"fee {payment.feeAmount}"
        )

        nomination = self.successors.drawForDeposit(member, listline, self.config, now)
        if nomination is not None:
            self._log(
                EventKind.SUCCESSOR,
                f"{member.name} proposed as successor of {referrer.name} "
                f"(sequence {nomination.sequence})",
            )

        return payment

    # ═══════════════════════════════════════════════════════════════════
    # SUCCESSOR HANDSHAKE
    # ═══════════════════════════════════════════════════════════════════

    def _check_same_run(self, run_id: int, operation: str) -> None:
        if run_id != self._runId:
            logger.warning(f"{operation} finished after a reset; result discarded")
            raise TransientOperationError(f"{operation} was interrupted by a reset")

    async def confirm_successor(self, nomination_id: str) -> SuccessorNomination:
        """
        Confirm a proposed nomination through the gateway.

        Only one confirm or decline may be in flight per nomination.

        Raises:
            UnknownNomination: If the id was never proposed
            NominationConflictError: If it is no longer proposed or already in flight
            TransientOperationError: If the gateway failed; retry is safe
        """
        reparent = self.config.successor_reparent
        run_id = self._runId
        successors = self.successors
        nomination = successors.beginHandshake(nomination_id)

        try:
            successors.checkConfirmable(nomination, reparent)
            try:
                await self.gateway.confirm_successor(nomination.copy())
            except Exception as e:
                logger.warning(f"Confirm of nomination {nomination_id} failed: {e}", exc_info=True)
                raise TransientOperationError(f"Confirm of {nomination_id} failed: {e}") from e

            # Ticks may have run while awaiting
            self._check_same_run(run_id, f"Confirm of {nomination_id}")
            nomination = successors.getPending(nomination_id)
            successors.checkConfirmable(nomination, reparent)
            successors.applyConfirm(nomination, reparent, self.clock())
        finally:
            successors.endHandshake(nomination_id)

        successor = self.get_member_name(nomination.successorId)
        if reparent:
            message = (f"{successor} confirmed as successor and moved under "
                       f"{self.get_member_name(nomination.newParentId)}")
        else:
            message = f"{successor} confirmed as successor of {self.get_member_name(nomination.nominatorId)}"
        self._log(EventKind.SUCCESSOR, message)
        logger.info(f"✓ Nomination {nomination_id} confirmed")
        return nomination.copy()

    async def decline_successor(self, nomination_id: str) -> SuccessorNomination:
        """
        Decline a proposed nomination through the gateway.

        Raises:
            UnknownNomination, NominationConflictError, TransientOperationError
        """
        run_id = self._runId
        successors = self.successors
        nomination = successors.beginHandshake(nomination_id)

        try:
            try:
                await self.gateway.decline_successor(nomination.copy())
            except Exception as e:
                logger.warning(f"Decline of nomination {nomination_id} failed: {e}", exc_info=True)
                raise TransientOperationError(f"Decline of {nomination_id} failed: {e}") from e

            self._check_same_run(run_id, f"Decline of {nomination_id}")
            nomination = successors.getPending(nomination_id)
            successors.applyDecline(nomination, self.clock())
        finally:
            successors.endHandshake(nomination_id)

        self._log(
            EventKind.SUCCESSOR,
            f"{self.get_member_name(nomination.successorId)} declined as successor",
        )
        logger.info(f"Nomination {nomination_id} declined")
        return nomination.copy()

    # ═══════════════════════════════════════════════════════════════════
    # WITHDRAWALS
    # ═══════════════════════════════════════════════════════════════════

    def available_balance(self, member_id: str) -> Decimal:
        member = self.forest.get(member_id)
        return member.balance - self._reservedWithdrawals.get(member_id, Decimal("0.00"))

    async def request_withdrawal(self, member_id: str, amount) -> Decimal:
        """
        Pay out part of a member's balance.

        The amount is reserved while the gateway runs and debited only
        on success.

        Returns:
            New balance

        Raises:
            UnknownMember: If member_id does not exist
            WithdrawalError: Below minimum, above balance, or system account
            TransientOperationError: If the gateway failed or a reset
                happened meanwhile; balance unchanged
        """
        member = self.forest.get(member_id)
        amount = Decimal(str(amount)).quantize(CENTS)

        if member.isSystem:
            raise WithdrawalError("The system account cannot withdraw")
        if amount < self.config.min_withdrawal_amount:
            raise WithdrawalError(
                f"Minimum withdrawal is {money(self.config.min_withdrawal_amount)}, "
                f"requested {money(amount)}"
            )
        if amount > self.available_balance(member_id):
            raise WithdrawalError(
                f"Insufficient balance: {money(self.available_balance(member_id))} "
                f"available, requested {money(amount)}"
            )

        run_id = self._runId
        reserved = self._reservedWithdrawals
        reserved[member_id] = reserved.get(member_id, Decimal("0.00")) + amount
        try:
            await self.gateway.send_payout(member.copy(), amount)
        except Exception as e:
            logger.warning(f"Withdrawal of {amount} for {member_id} failed: {e}", exc_info=True)
            raise TransientOperationError(f"Withdrawal for {member_id} failed: {e}") from e
        else:
            self._check_same_run(run_id, f"Withdrawal for {member_id}")
            member.balance -= amount
            self._log(EventKind.INFO, f"{member.name} withdrew {money(amount)}")
            logger.info(f"✓ Withdrawal {amount} for {member_id}, balance {member.balance}")
            return member.balance
        finally:
            # After a reset this is the old run's dict, not the live one
            remaining = reserved.get(member_id, Decimal("0.00")) - amount
            if remaining > 0:
                reserved[member_id] = remaining
            else:
                reserved.pop(member_id, None)

    # ═══════════════════════════════════════════════════════════════════
    # SCENARIOS
    # ═══════════════════════════════════════════════════════════════════

    def load_successor_scenario(self) -> SimulationSnapshot:
        """
        Reset and build a two-branch network where nominations come quickly.

        Founder -> Alice -> Bob -> Carol with 13 recruits, and
        Founder -> Zara -> Yuki -> Xavier with 7 recruits, all deposited.
        """
        self.reset()

        def add(name: str, referrer_id: str) -> Member:
            self.names.mark_used(name)
            member = self._create_member(name, referrer_id, None, member_id=f"user_{name.lower()}")
            self._apply_deposit(member, replay=True)
            return member

        founder = add("Founder", SYSTEM_ID)
        carol = add("Carol", add("Bob", add("Alice", founder.id).id).id)
        for name in ("Dave", "Eve", "Frank", "Grace", "Henry", "Ivy", "Jack",
                     "Kate", "Leo", "Mia", "Nick", "Olivia", "Pete"):
            add(name, carol.id)

        xavier = add("Xavier", add("Yuki", add("Zara", founder.id).id).id)
        for name in ("Quinn", "Rose", "Sam", "Tina", "Uma", "Victor", "Wendy"):
            add(name, xavier.id)

        max_seq = self.config.successor_sequence_max
        self._log(EventKind.INFO, "Click Play to watch successor nominations happen!")
        self._log(EventKind.INFO, "When the Nth depositing recruit draws N, a successor is proposed")
        self._log(EventKind.INFO, f"Sequence-based successor: each deposit draws 1-{max_seq}")
        self._log(EventKind.INFO, "Successor scenario loaded - 2 branches ready")

        logger.info(f"✓ Successor scenario loaded: {len(self.forest) - 1} members")
        return self.snapshot()

    # ═══════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════

    @property
    def systemBalance(self) -> Decimal:
        return self.forest.system.balance

    @property
    def successorCount(self) -> int:
        return self.successors.successorCount

    def record_history(self) -> HistoryPoint:
        return self.historyLog.record(
            self.forest, self.totalDeposited, self.successorCount, self.clock()
        )

    def snapshot(self) -> SimulationSnapshot:
        return SimulationSnapshot(
            tick=self.tick,
            members=tuple(m.copy() for m in self.forest.members()),
            listlines=tuple(self.listlines),
            payments=tuple(self.payments),
            events=tuple(self.eventLog.recent()),
            history=tuple(self.historyLog.points()),
            nominations=tuple(n.copy() for n in self.successors.nominations.values()),
            totalDeposited=self.totalDeposited,
            systemBalance=self.systemBalance,
            successorCount=self.successorCount,
            linkStats=LinkStats(**vars(self.linkStats)),
        )

    def get_member(self, member_id: str) -> Member:
        return self.forest.get(member_id).copy()

    def get_member_name(self, member_id: Optional[str]) -> str:
        return get_member_name(self.forest, member_id)

    def get_forest_tree(self, root_id: str = SYSTEM_ID, max_depth: Optional[int] = None) -> Dict[str, Any]:
        return self.forest.to_tree(root_id, max_depth)

    def get_position_index(self, member_id: str) -> PositionStats:
        self.forest.get(member_id)
        return self.index.get(member_id)

    def rebuild_position_index(self) -> PositionIndex:
        """Fresh index from the listline log; the live one is left alone."""
        return PositionIndex.rebuild(self.forest, self.listlines, self.payments)

    def events(self, kind: Optional[EventKind] = None) -> List[SimulationEvent]:
        return self.eventLog.recent(kind)

    def event_count(self, kind: EventKind) -> int:
        """Events of kind appended this run, including ones truncated away."""
        return self.eventLog.counts[kind]

    def fraud_alerts(self) -> List[SimulationEvent]:
        return self.eventLog.recent(EventKind.FRAUD_ALERT)

    def history(self) -> List[HistoryPoint]:
        return self.historyLog.points()

    def nominations(self, status: Optional[NominationStatus] = None) -> List[SuccessorNomination]:
        return [
            n.copy() for n in self.successors.nominations.values()
            if status is None or n.status == status
        ]

    def get_dashboard(self, member_id: str) -> Optional[Dict[str, Any]]:
        return build_dashboard(self.forest, self.index, member_id)

    def compute_member_categories(self) -> Dict[str, List[Member]]:
        return compute_member_categories(self.forest, self.config.successor_sequence_max)

    def summary(self) -> Dict[str, Any]:
        snap = self.snapshot()
        return {
            "tick": self.tick,
            "members": snap.realMemberCount,
            "deposited": snap.depositedCount,
            "totalDeposited": self.totalDeposited,
            "systemBalance": self.systemBalance,
            "successorCount": self.successorCount,
            "views": self.linkStats.totalViews,
            "fraudAlerts": self.event_count(EventKind.FRAUD_ALERT),
        }
