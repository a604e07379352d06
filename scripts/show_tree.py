#!/usr/bin/env python3
"""
Display a simulated listline forest.

Runs a seeded simulation and prints the member hierarchy with status indicators.

Usage:
    python scripts/show_tree.py [--ticks N] [--seed SEED] [--max-depth DEPTH] [--scenario]
"""

import sys
import os
import argparse
import random

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config, SimulationConfig
from models.member import SYSTEM_ID
from listline_system.engine import SimulationEngine, money

import logging

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def print_tree(engine, root_id=SYSTEM_ID, max_depth=None):
    """Print ASCII tree of the structure."""
    walker = engine.forest.walker

    def print_member(member, prefix="", is_last=True, depth=0):
        if max_depth and depth > max_depth:
            return

        connector = "└─ " if is_last else "├─ "
        root_marker = "👑 " if walker.is_system_root(member) else ""
        successor_marker = "🏆 " if member.successorNominated else ""
        deposit_marker = "✅" if member.hasDeposited else "⏳"
        verified_marker = "" if member.isVerified else " ⚠️"
        balance_display = money(member.balance) if member.balance > 0 else ""

        print(
            f"{prefix}{connector}{root_marker}{successor_marker}"
            f"{member.name} ({member.referralCode}) {deposit_marker}{verified_marker} {balance_display}"
        )

        children = [engine.forest.get(c) for c in engine.forest.children_of(member.id)]
        for i, child in enumerate(children):
            is_last_child = (i == len(children) - 1)
            new_prefix = prefix + ("    " if is_last else "│   ")
            print_member(child, new_prefix, is_last_child, depth + 1)

    print("\n" + "=" * 80)
    print("LISTLINE FOREST")
    print("=" * 80)
    print("\nLegend:")
    print("  👑 = System account")
    print("  🏆 = Successor granted")
    print("  ✅ = Deposited")
    print("  ⏳ = Pending deposit")
    print("  ⚠️ = Unverified")
    print("\n" + "=" * 80 + "\n")
    print_member(engine.forest.get(root_id))
    print("\n" + "=" * 80 + "\n")


def print_statistics(engine):
    """Print run statistics."""
    categories = engine.compute_member_categories()
    total = len(categories["realUsers"])

    print("\n" + "=" * 80)
    print("SIMULATION STATISTICS")
    print("=" * 80 + "\n")

    print(f"Ticks:           {engine.tick}")
    print(f"Total members:   {total}")
    if total:
        deposited = len(categories["depositedUsers"])
        print(f"Deposited:       {deposited} ({deposited/total*100:.1f}%)")
        print(f"Pending:         {total - deposited}")
        print(f"Unverified:      {len(categories['unverifiedUsers'])}")
    print(f"Total deposited: {money(engine.totalDeposited)}")
    print(f"System balance:  {money(engine.systemBalance)}")
    print(f"Successors:      {engine.successorCount}")

    print("\nTop earners:")
    for member in categories["topEarners"][:5]:
        print(f"  {member.name:12} {money(member.totalEarnings)}")

    print("\n" + "=" * 80 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Display simulated listline forest')
    parser.add_argument('--ticks', type=int, default=300,
                        help='Number of ticks to simulate')
    parser.add_argument('--seed', type=int,
                        help='Random seed (default: RANDOM_SEED from .env)')
    parser.add_argument('--root-id', default=SYSTEM_ID,
                        help='Member id to start the tree from')
    parser.add_argument('--max-depth', type=int,
                        help='Maximum depth to display')
    parser.add_argument('--scenario', action='store_true',
                        help='Start from the successor demo network')
    parser.add_argument('--stats', action='store_true',
                        help='Show statistics only')
    args = parser.parse_args()

    # Initialize config
    Config.initialize_from_env()
    seed = args.seed if args.seed is not None else Config.get(Config.RANDOM_SEED)

    engine = SimulationEngine(SimulationConfig.from_env(), rng=random.Random(seed))
    if args.scenario:
        engine.load_successor_scenario()
    engine.run(args.ticks)

    if args.stats:
        print_statistics(engine)
        return

    if args.root_id not in engine.forest:
        print(f"❌ Member {args.root_id} not found!")
        return

    print_tree(engine, args.root_id, args.max_depth)
    print_statistics(engine)


if __name__ == "__main__":
    main()
