# tests/test_position_index.py
"""
Tests for the derived position index.

Key principle: the incrementally maintained index ALWAYS equals a rebuild
from the listline log and the forest.

Run:
    pytest tests/test_position_index.py -v
"""
import asyncio

from models.member import SYSTEM_ID
from listline_system.services.position_index import PositionIndex


# =============================================================================
# TEST CLASS: Incremental updates
# =============================================================================

class TestIncrementalIndex:

    def test_positions_counted_per_deposit(self, engine, chain):
        engine.process_deposit(chain["D"])

        alice = engine.get_position_index(chain["A"])
        assert (alice.p1, alice.p2, alice.p3, alice.p4) == (1, 0, 0, 0)
        assert [p.payerId for p in alice.payments] == [chain["D"]]

        carol = engine.get_position_index(chain["C"])
        assert (carol.p1, carol.p2, carol.p3, carol.p4) == (0, 0, 1, 0)

        dave = engine.get_position_index(chain["D"])
        assert dave.p4 == 1

    def test_system_not_indexed(self, engine, chain):
        engine.process_deposit(chain["A"])

        assert SYSTEM_ID not in engine.index.positions

    def test_referrals_in_creation_order(self, engine):
        root = engine.add_member(name="Root")
        recruits = [engine.add_member(root.id, name=f"R{i}").id for i in range(5)]

        assert engine.index.referrals_of(root.id) == recruits

    def test_reads_are_copies(self, engine, chain):
        engine.process_deposit(chain["D"])

        stats = engine.get_position_index(chain["A"])
        stats.p1 = 99
        stats.payments.clear()

        assert engine.get_position_index(chain["A"]).p1 == 1
        assert len(engine.get_position_index(chain["A"]).payments) == 1


# =============================================================================
# TEST CLASS: Rebuild consistency
# =============================================================================

class TestRebuildConsistency:

    def test_rebuild_matches_incremental_after_ticks(self, make_engine):
        """
        TEST: index consistency after a long random run.

        Verify: PositionIndex.rebuild(...) == live index.
        """
        engine = make_engine(seed=99, view_weight="0.2", conversion_rate="0.3")
        engine.run(800)

        assert len(engine.listlines) > 0
        assert engine.rebuild_position_index() == engine.index

    def test_rebuild_matches_after_confirmed_moves(self, make_engine):
        engine = make_engine(seed=7, view_weight="0.1", conversion_rate="0.4",
                             successor_sequence_max=2)

        async def confirm_all():
            for nomination in engine.nominations():
                if nomination.isPending:
                    await engine.confirm_successor(nomination.id)

        for _ in range(10):
            engine.run(100)
            asyncio.run(confirm_all())

        assert engine.rebuild_position_index() == engine.index

    def test_empty_rebuild(self, engine):
        assert PositionIndex.rebuild(engine.forest, [], []) == PositionIndex()
