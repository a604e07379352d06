# tests/test_successor.py
"""
Tests for the successor lottery and the confirm/decline handshake.

Run:
    pytest tests/test_successor.py -v
"""
import asyncio
from decimal import Decimal

import pytest

from config import SimulationConfig
from models.event import EventKind
from models.member import SYSTEM_ID
from models.nomination import NominationStatus
from listline_system.exceptions import (
    NominationConflictError, TransientOperationError, UnknownNomination
)
from listline_system.services.gateway import InMemoryGateway
from listline_system.services.payout_service import PayoutService
from listline_system.services.position_index import PositionIndex
from listline_system.services.referral_forest import ReferralForest
from listline_system.services.successor_service import SuccessorService

from conftest import FailingGateway, FixedDraw, SlowGateway


@pytest.fixture
def lottery():
    """
    Bare forest: system -> a -> b -> c -> d1..d3, and system -> x -> y -> z -> w1.
    """
    forest = ReferralForest()
    for member_id, referrer in [("a", SYSTEM_ID), ("b", "a"), ("c", "b"),
                                ("d1", "c"), ("d2", "c"), ("d3", "c"),
                                ("x", SYSTEM_ID), ("y", "x"), ("z", "y"), ("w1", "z")]:
        forest.insert_member(member_id.upper(), referrer, member_id)

    counter = iter(range(1, 1000))
    draw = FixedDraw(1)
    service = SuccessorService(forest, PositionIndex(), draw, lambda: f"nom_{next(counter)}")
    payouts = PayoutService(forest)

    def deposit(member_id, config=SimulationConfig()):
        member = forest.get(member_id)
        listline, _ = payouts.processDeposit(
            member, Decimal("10.00"), Decimal("0.10"), f"ll_{member_id}", f"pay_{member_id}", 0.0
        )
        forest.get(member.referrerId).depositingRecruits += 1
        return service.drawForDeposit(member, listline, config, 0.0)

    return service, draw, deposit


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# TEST CLASS: Lottery
# =============================================================================

class TestLottery:

    def test_fires_when_count_matches_draw(self, lottery):
        service, draw, deposit = lottery

        nomination = deposit("d1")

        assert nomination is not None
        assert nomination.nominatorId == "c"
        assert nomination.successorId == "d1"
        assert nomination.newParentId == "a"
        assert nomination.sequence == 1
        assert nomination.depositCountAtNomination == 1
        assert nomination.status == NominationStatus.PROPOSED

    def test_no_fire_on_mismatch(self, lottery):
        service, draw, deposit = lottery
        draw.value = 3

        assert deposit("d1") is None
        assert deposit("d2") is None
        assert deposit("d3") is not None

    def test_fires_at_most_once_per_member(self, lottery):
        service, draw, deposit = lottery

        assert deposit("d1") is not None
        draw.value = 2
        assert deposit("d2") is None
        assert service.successorCount == 1
        assert service.hasFired("c")

    def test_member_scope_lets_other_members_fire(self, lottery):
        service, draw, deposit = lottery

        assert deposit("d1") is not None
        assert deposit("w1") is not None
        assert service.successorCount == 2

    def test_global_scope_first_only(self, lottery):
        service, draw, deposit = lottery
        config = SimulationConfig(successor_cap_scope="global")

        assert deposit("d1", config) is not None
        assert deposit("w1", config) is None
        assert service.successorCount == 1

    def test_never_fires_for_system_account(self, lottery):
        service, draw, deposit = lottery

        assert deposit("a") is None
        assert deposit("x") is None
        assert not service.hasFired(SYSTEM_ID)

    def test_never_fires_without_real_position1(self, lottery):
        service, draw, deposit = lottery

        # b's referrer a matches the draw, but the deposit's position 1 is the system account
        assert deposit("b") is None
        assert not service.hasFired("a")

    @pytest.mark.parametrize("scope", ["member", "global"])
    def test_random_run_properties(self, make_engine, scope):
        """
        TEST: over a long run each member is nominator at most once,
        the system account never is.
        """
        engine = make_engine(seed=2024, view_weight="0.1", conversion_rate="0.4",
                             successor_sequence_max=2, successor_cap_scope=scope)
        engine.run(1500)

        nominators = [n.nominatorId for n in engine.nominations()]
        assert len(nominators) == len(set(nominators))
        assert SYSTEM_ID not in nominators
        assert engine.successorCount == len(nominators)
        if scope == "global":
            assert len(nominators) <= 1


# =============================================================================
# TEST CLASS: Handshake
# =============================================================================

class TestHandshake:

    def test_proposal_is_logged(self, nominated):
        engine, nomination, ids = nominated

        assert engine.successorCount == 1
        assert engine.event_count(EventKind.SUCCESSOR) == 1
        assert not engine.get_member(ids["C"]).successorNominated

    def test_confirm_moves_successor(self, nominated, gateway):
        engine, nomination, ids = nominated

        result = run(engine.confirm_successor(nomination.id))

        assert result.status == NominationStatus.CONFIRMED
        assert result.resolvedAt is not None
        assert gateway.confirmed == [nomination.id]

        dave = engine.get_member(ids["D"])
        carol = engine.get_member(ids["C"])
        alice = engine.get_member(ids["A"])
        assert dave.referrerId == ids["A"]
        assert carol.successorNominated
        assert carol.successorId == ids["D"]
        assert carol.directRecruits == 0
        assert carol.depositingRecruits == 0
        assert alice.directRecruits == 2
        assert alice.depositingRecruits == 1
        assert engine.index.referrals_of(ids["A"]) == [ids["B"], ids["D"]]
        assert engine.rebuild_position_index() == engine.index

    def test_confirm_without_reparent(self, nominated):
        engine, nomination, ids = nominated
        engine.configure({"successor_reparent": False})

        run(engine.confirm_successor(nomination.id))

        assert engine.get_member(ids["D"]).referrerId == ids["C"]
        assert engine.get_member(ids["C"]).successorNominated

    def test_decline(self, nominated, gateway):
        engine, nomination, ids = nominated

        result = run(engine.decline_successor(nomination.id))

        assert result.status == NominationStatus.DECLINED
        assert gateway.declined == [nomination.id]
        assert engine.get_member(ids["D"]).referrerId == ids["C"]
        assert not engine.get_member(ids["C"]).successorNominated
        assert engine.nominations(NominationStatus.DECLINED)[0].id == nomination.id

    def test_resolved_nomination_conflicts(self, nominated):
        engine, nomination, ids = nominated
        run(engine.decline_successor(nomination.id))

        with pytest.raises(NominationConflictError):
            run(engine.confirm_successor(nomination.id))
        with pytest.raises(NominationConflictError):
            run(engine.decline_successor(nomination.id))

    def test_unknown_nomination(self, engine):
        with pytest.raises(UnknownNomination):
            run(engine.confirm_successor("nom_404"))

    def test_gateway_failure_keeps_nomination_pending(self, nominated):
        """
        TEST: a failing handshake reports TransientOperationError and changes nothing.

        Verify: status still proposed, successor not moved, retry succeeds.
        """
        engine, nomination, ids = nominated
        failing = FailingGateway()
        engine.gateway = failing
        before = engine.snapshot()

        with pytest.raises(TransientOperationError) as exc:
            run(engine.confirm_successor(nomination.id))
        with pytest.raises(TransientOperationError):
            run(engine.decline_successor(nomination.id))

        assert isinstance(exc.value.__cause__, ConnectionError)
        assert failing.calls == 2
        assert engine.snapshot() == before
        assert engine.nominations()[0].status == NominationStatus.PROPOSED

        engine.gateway = InMemoryGateway()
        result = run(engine.confirm_successor(nomination.id))
        assert result.status == NominationStatus.CONFIRMED

    def test_concurrent_confirm_and_decline(self, nominated):
        """
        TEST: confirm and decline racing on a gateway that really awaits.

        Verify: the second call is rejected before it reaches the gateway,
        so the backing store hears about exactly one outcome.
        """
        engine, nomination, ids = nominated
        slow = SlowGateway()
        engine.gateway = slow

        async def race():
            return await asyncio.gather(
                engine.confirm_successor(nomination.id),
                engine.decline_successor(nomination.id),
                return_exceptions=True,
            )

        results = run(race())

        assert results[0].status == NominationStatus.CONFIRMED
        assert isinstance(results[1], NominationConflictError)
        assert slow.confirmed == [nomination.id]
        assert slow.declined == []
        assert engine.nominations()[0].status == NominationStatus.CONFIRMED

    def test_handshake_marker_cleared_after_failure(self, nominated):
        engine, nomination, ids = nominated
        engine.gateway = FailingGateway()

        with pytest.raises(TransientOperationError):
            run(engine.decline_successor(nomination.id))

        engine.gateway = SlowGateway()
        result = run(engine.decline_successor(nomination.id))

        assert result.status == NominationStatus.DECLINED

    def test_reset_during_handshake_discards_result(self, nominated):
        engine, nomination, ids = nominated
        engine.gateway = SlowGateway()

        async def confirm_then_reset():
            task = asyncio.ensure_future(engine.confirm_successor(nomination.id))
            await asyncio.sleep(0)
            engine.reset()
            return await asyncio.gather(task, return_exceptions=True)

        [result] = run(confirm_then_reset())

        assert isinstance(result, TransientOperationError)
        assert engine.nominations() == []
        assert engine.events(EventKind.SUCCESSOR) == []
