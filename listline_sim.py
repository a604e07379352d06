# listline/listline_sim.py
"""
Listline simulator - Main entry point.
Runs a referral payout simulation for a number of ticks or for a wall-clock duration.
"""
import argparse
import asyncio
import logging
import random
import sys

from config import Config, ConfigurationError, SimulationConfig
from listline_system.engine import SimulationEngine, money
from background.simulation_scheduler import SimulationScheduler

logger = logging.getLogger(__name__)


def setup_logging():
    logging.basicConfig(
        level=Config.get(Config.LOG_LEVEL, "INFO"),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def build_engine(seed=None, scenario=False) -> SimulationEngine:
    """
    Create an engine from environment configuration.

    Raises:
        ConfigurationError: If the environment holds invalid parameters
    """
    config = SimulationConfig.from_env()
    if seed is None:
        seed = Config.get(Config.RANDOM_SEED)

    engine = SimulationEngine(config, rng=random.Random(seed))
    if scenario:
        engine.load_successor_scenario()
    return engine


async def run_timed(engine: SimulationEngine, seconds: float, interval_ms=None):
    """Step on the timer for `seconds`, then stop."""
    scheduler = SimulationScheduler(engine)
    await scheduler.start(interval_ms)
    try:
        await asyncio.sleep(seconds)
    finally:
        await scheduler.stop()
    return scheduler.getStatus()


def print_summary(engine: SimulationEngine):
    summary = engine.summary()
    print("\n" + "=" * 60)
    print("SIMULATION SUMMARY")
    print("=" * 60)
    print(f"Ticks:           {summary['tick']}")
    print(f"Members:         {summary['members']} ({summary['deposited']} deposited)")
    print(f"Total deposited: {money(summary['totalDeposited'])}")
    print(f"System balance:  {money(summary['systemBalance'])}")
    print(f"Successors:      {summary['successorCount']}")
    print(f"Link views:      {summary['views']}")
    print(f"Fraud alerts:    {summary['fraudAlerts']}")
    print("\nRecent events:")
    for event in engine.events()[:10]:
        print(f"  [{event.kind.value}] {event.message}")
    print("=" * 60 + "\n")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run a listline referral simulation')
    parser.add_argument('--ticks', type=int, default=500,
                        help='Number of ticks to run (ignored with --seconds)')
    parser.add_argument('--seconds', type=float,
                        help='Run on the timer for this many seconds instead')
    parser.add_argument('--interval-ms', type=int,
                        help='Delay between timed ticks (default: TICK_INTERVAL_MS)')
    parser.add_argument('--seed', type=int, help='Random seed')
    parser.add_argument('--scenario', action='store_true',
                        help='Start from the successor demo network')
    args = parser.parse_args(argv)

    try:
        Config.initialize_from_env()
        setup_logging()

        logger.info("=" * 60)
        logger.info("LISTLINE SIMULATION")
        logger.info("=" * 60)

        engine = build_engine(args.seed, args.scenario)
        logger.info("✓ Engine ready")

        if args.seconds is not None:
            asyncio.run(run_timed(engine, args.seconds, args.interval_ms))
        else:
            engine.run(args.ticks)

        print_summary(engine)
        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Simulation interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
