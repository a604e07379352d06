# background/simulation_scheduler.py
"""
Simulation scheduler - timer-driven stepping of a SimulationEngine.
Uses APScheduler; ticks never overlap.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import ConfigurationError
from listline_system.engine import SimulationEngine

logger = logging.getLogger(__name__)

TICK_JOB_ID = "simulation_tick"


class SimulationScheduler:
    """
    Runs engine.step() on an interval.

    The job is a coroutine so it executes on the event loop thread,
    one tick at a time.
    """

    def __init__(self, engine: SimulationEngine):
        """
        Initialize scheduler.

        Args:
            engine: Engine whose ticks this scheduler drives
        """
        self.engine = engine
        self.isRunning = False
        self.intervalMs: int = engine.config.tick_interval_ms
        self.scheduler: Optional[AsyncIOScheduler] = None

        # Statistics
        self.stats = {
            "ticksExecuted": 0,
            "errors": 0,
            "lastError": None,
            "startedAt": None,
            "lastExecutedAt": None
        }

    def _trigger(self) -> IntervalTrigger:
        return IntervalTrigger(seconds=self.intervalMs / 1000)

    async def start(self, interval_ms: Optional[int] = None):
        """
        Start timed stepping.

        A running timer is fully stopped first, so two timers never
        step the same engine.
        """
        if self.isRunning:
            logger.info("Simulation scheduler already running, restarting")
            await self.stop()

        if interval_ms is not None:
            self._check_interval(interval_ms)
            self.intervalMs = interval_ms

        logger.info("=" * 60)
        logger.info(f"Starting simulation scheduler (every {self.intervalMs}ms)")
        logger.info("=" * 60)

        self.scheduler = AsyncIOScheduler(
            timezone='UTC',
            job_defaults={
                'coalesce': True,  # Combine missed ticks into one
                'max_instances': 1,  # Never overlap ticks
                'misfire_grace_time': 1
            }
        )
        self.scheduler.add_job(
            func=self._safe_tick_wrapper,
            trigger=self._trigger(),
            id=TICK_JOB_ID,
            name='Simulation Tick',
            replace_existing=True
        )
        self.scheduler.start()

        self.isRunning = True
        self.stats["startedAt"] = datetime.now(timezone.utc)
        logger.info("✓ Simulation scheduler started")

    async def stop(self):
        """Stop timed stepping. In-flight ticks finish first."""
        if not self.isRunning:
            return

        logger.info("Stopping simulation scheduler...")
        self.isRunning = False

        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        self.scheduler = None

        logger.info(f"✓ Simulation scheduler stopped after {self.stats['ticksExecuted']} ticks")

    def set_speed(self, interval_ms: int):
        """Change the delay between ticks; tick semantics are untouched."""
        self._check_interval(interval_ms)
        self.intervalMs = interval_ms

        if self.isRunning and self.scheduler is not None:
            self.scheduler.reschedule_job(TICK_JOB_ID, trigger=self._trigger())
        logger.info(f"Simulation speed set to {interval_ms}ms per tick")

    @staticmethod
    def _check_interval(interval_ms: int):
        if not isinstance(interval_ms, int) or isinstance(interval_ms, bool) or interval_ms < 1:
            raise ConfigurationError(f"Tick interval must be a positive integer, got {interval_ms!r}")

    # ═══════════════════════════════════════════════════════════════════
    # SAFE WRAPPER (error handling for APScheduler jobs)
    # ═══════════════════════════════════════════════════════════════════

    async def _safe_tick_wrapper(self):
        """Safe wrapper for one engine tick."""
        try:
            self.engine.step()
            self.stats["ticksExecuted"] += 1
            self.stats["lastExecutedAt"] = datetime.now(timezone.utc)
        except Exception as e:
            logger.error(f"Error in simulation tick: {e}", exc_info=True)
            self.stats["errors"] += 1
            self.stats["lastError"] = str(e)

    def getStatus(self) -> dict:
        """Get scheduler status."""
        next_run = None
        if self.scheduler is not None and self.scheduler.running:
            job = self.scheduler.get_job(TICK_JOB_ID)
            if job is not None and job.next_run_time:
                next_run = job.next_run_time.isoformat()

        return {
            "isRunning": self.isRunning,
            "intervalMs": self.intervalMs,
            "tick": self.engine.tick,
            "nextRun": next_run,
            "stats": self.stats
        }
