# tests/test_payout.py
"""
Tests for listline resolution and the deposit split.

Run:
    pytest tests/test_payout.py -v
"""
from decimal import Decimal

import pytest

from models.event import EventKind
from models.member import SYSTEM_ID
from listline_system.exceptions import UnknownMember
from listline_system.services.payout_service import compute_listline, split_deposit


# =============================================================================
# TEST CLASS: Deposit split
# =============================================================================

class TestSplitDeposit:

    def test_reference_amounts(self):
        net, fee = split_deposit(Decimal("10.00"), Decimal("0.10"))

        assert net == Decimal("9.00")
        assert fee == Decimal("1.00")

    def test_net_plus_fee_is_gross_for_every_rate(self):
        """
        TEST: net + fee == gross exactly, at 2 decimal places, for fee rates in [0, 1].
        """
        for gross in (Decimal("10.00"), Decimal("0.01"), Decimal("33.33"), Decimal("999.99")):
            for step in range(0, 1001):
                rate = Decimal(step) / Decimal(1000)
                net, fee = split_deposit(gross, rate)

                assert net + fee == gross
                assert net == net.quantize(Decimal("0.01"))
                assert fee >= 0 and net >= 0

    def test_extreme_rates(self):
        assert split_deposit(Decimal("10.00"), Decimal("0")) == (Decimal("10.00"), Decimal("0.00"))
        assert split_deposit(Decimal("10.00"), Decimal("1")) == (Decimal("0.00"), Decimal("10.00"))

    def test_half_cent_rounds_up(self):
        net, fee = split_deposit(Decimal("0.05"), Decimal("0.5"))

        assert net == Decimal("0.03")
        assert fee == Decimal("0.02")


# =============================================================================
# TEST CLASS: Listline positions
# =============================================================================

class TestListlinePositions:

    def test_second_level_member_pays_system(self, engine, chain):
        """
        TEST: B (A under system, B under A) resolves position 1 to the system account.
        """
        positions = compute_listline(chain["B"], engine.forest)

        assert positions == {
            "position1": SYSTEM_ID,
            "position2": SYSTEM_ID,
            "position3": chain["A"],
            "position4": chain["B"],
        }

    def test_third_level_member(self, engine, chain):
        """
        TEST: C's ancestors are B, A, system; position 1 is the system account.
        """
        positions = compute_listline(chain["C"], engine.forest)

        assert positions["position3"] == chain["B"]
        assert positions["position2"] == chain["A"]
        assert positions["position1"] == SYSTEM_ID

    def test_fourth_level_member_pays_first(self, engine, chain):
        positions = compute_listline(chain["D"], engine.forest)

        assert positions["position1"] == chain["A"]
        assert positions["position2"] == chain["B"]
        assert positions["position3"] == chain["C"]

    def test_unknown_member(self, engine):
        with pytest.raises(UnknownMember):
            compute_listline("ghost", engine.forest)


# =============================================================================
# TEST CLASS: Ledger effects
# =============================================================================

class TestDepositLedger:

    def test_system_retains_everything_without_real_payee(self, engine, chain):
        payment = engine.process_deposit(chain["B"])

        assert payment.recipientId == SYSTEM_ID
        assert payment.grossAmount == Decimal("10.00")
        assert payment.netAmount == Decimal("9.00")
        assert payment.feeAmount == Decimal("1.00")
        assert engine.systemBalance == Decimal("10.00")
        assert engine.get_member(chain["A"]).balance == Decimal("0.00")

    def test_real_payee_receives_net(self, engine, chain):
        payment = engine.process_deposit(chain["D"])

        alice = engine.get_member(chain["A"])
        assert payment.recipientId == chain["A"]
        assert alice.balance == Decimal("9.00")
        assert alice.totalEarnings == Decimal("9.00")
        assert engine.systemBalance == Decimal("1.00")
        assert engine.totalDeposited == Decimal("10.00")

    def test_deposit_records(self, engine, chain):
        engine.process_deposit(chain["D"])

        listline = engine.listlines[-1]
        assert listline.userId == chain["D"]
        assert listline.recipientName == "Alice"
        assert engine.get_member(chain["D"]).hasDeposited
        assert engine.get_member(chain["C"]).depositingRecruits == 1
        assert engine.get_member(chain["C"]).stats.deposits == 1

        assert engine.event_count(EventKind.DEPOSIT) == 1
        assert engine.event_count(EventKind.PAYMENT) == 1
        assert engine.events(EventKind.PAYMENT)[0].message.startswith("Alice received €9.00")

    def test_system_account_keeps_no_recruit_counters(self, engine, chain):
        engine.process_deposit(chain["A"])

        system = engine.get_member(SYSTEM_ID)
        assert system.depositingRecruits == 0
        assert system.stats.deposits == 0
        assert engine.linkStats.deposits == 1

    def test_no_payment_event_for_system_payee(self, engine, chain):
        engine.process_deposit(chain["A"])

        assert engine.event_count(EventKind.DEPOSIT) == 1
        assert engine.event_count(EventKind.PAYMENT) == 0

    def test_second_deposit_is_noop(self, engine, chain):
        engine.process_deposit(chain["A"])

        assert engine.process_deposit(chain["A"]) is None
        assert engine.process_deposit(SYSTEM_ID) is None
        assert engine.totalDeposited == Decimal("10.00")

    def test_custom_fee_rate(self, make_engine):
        engine = make_engine(maintenance_fee_rate="0.25", deposit_amount="20.00")
        member = engine.add_member(name="Solo")

        payment = engine.process_deposit(member.id)

        assert payment.netAmount == Decimal("15.00")
        assert payment.feeAmount == Decimal("5.00")
        assert engine.systemBalance == Decimal("20.00")
