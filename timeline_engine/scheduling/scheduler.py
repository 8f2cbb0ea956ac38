"""
Cron-driven scheduler for timeline generation.

Four triggers, one per scheduled cadence, each running as an asyncio task that
sleeps until its next cron fire time (Asia/Kolkata) and then launches that
cadence's batch run in a worker thread.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from croniter import croniter

from timeline_engine.models import GenerationSummary, JobRunResult
from timeline_engine.processing.batch_processor import BatchProcessor, scheduled_cadence
from timeline_engine.processing.frequency_config import Cadence
from timeline_engine.utils.clock import PRACTICE_TIMEZONE, PRACTICE_TIMEZONE_NAME, now_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronTrigger:
    """A named cron trigger bound to one cadence."""
    name: str
    cadence: Cadence
    expression: str

    def next_fire_time(self, after: datetime) -> datetime:
        return croniter(self.expression, after.astimezone(PRACTICE_TIMEZONE)).get_next(datetime)


TRIGGERS: List[CronTrigger] = [
    CronTrigger("daily", Cadence.DAILY, "0 1 * * *"),
    CronTrigger("monthly", Cadence.MONTHLY, "0 2 1 * *"),
    CronTrigger("quarterly", Cadence.QUARTERLY, "0 3 1 1,4,7,10 *"),
    CronTrigger("yearly", Cadence.YEARLY, "0 4 1 4 *"),
]


async def _sleep_until(moment: datetime, clock: Callable[[], datetime]) -> None:
    delay = (moment - clock()).total_seconds()
    await asyncio.sleep(max(delay, 0))


class TimelineScheduler:
    """
    Owns the four cron triggers of the timeline engine.

    Lifecycle: inactive -> start() -> active -> stop() -> inactive.
    ``start`` must be called from a running event loop.
    """

    def __init__(
        self,
        processor: BatchProcessor,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[datetime], Awaitable[None]]] = None
    ):
        """
        Args:
            processor: Batch processor the triggers run
            clock: Returns the current aware datetime (default: now in Asia/Kolkata)
            sleep: Awaitable that returns once the given fire time is reached
        """
        self.processor = processor
        self.clock = clock or now_local
        self._sleep = sleep or (lambda moment: _sleep_until(moment, self.clock))
        self._tasks: Dict[str, asyncio.Task] = {}
        self._runs: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    # ==================== LIFECYCLE ====================

    def start(self) -> bool:
        """
        Arm all four triggers.

        Returns:
            True if the triggers were armed, False if already running
        """
        if self.is_running:
            logger.warning("Timeline scheduler already running; start ignored")
            return False

        loop = asyncio.get_running_loop()
        for trigger in TRIGGERS:
            self._tasks[trigger.name] = loop.create_task(
                self._trigger_loop(trigger), name=f"timeline-trigger-{trigger.name}"
            )
            logger.info(
                f"Armed {trigger.name} trigger '{trigger.expression}' ({PRACTICE_TIMEZONE_NAME})"
            )

        logger.info(f"Timeline scheduler started with {len(self._tasks)} triggers")
        return True

    def stop(self) -> None:
        """Disarm all triggers. Batch runs already in flight are left to finish."""
        for name, task in self._tasks.items():
            task.cancel()
            logger.info(f"Disarmed {name} trigger")
        self._tasks.clear()
        logger.info("Timeline scheduler stopped")

    def restart(self) -> bool:
        self.stop()
        return self.start()

    def status(self) -> Dict[str, Any]:
        """Report running state and the next fire time of each trigger."""
        now = self.clock()
        jobs = []
        for trigger in TRIGGERS:
            task = self._tasks.get(trigger.name)
            armed = task is not None and not task.done()
            jobs.append({
                "name": trigger.name,
                "cadence": trigger.cadence.value,
                "expression": trigger.expression,
                "timezone": PRACTICE_TIMEZONE_NAME,
                "armed": armed,
                "next_run": trigger.next_fire_time(now).isoformat() if armed else None,
            })
        return {"is_running": self.is_running, "jobs": jobs}

    # ==================== RUNS ====================

    async def _trigger_loop(self, trigger: CronTrigger) -> None:
        last_fire: Optional[datetime] = None
        while True:
            now = self.clock()
            # A clock still reading just before the last fire time must not repeat it
            fire_time = trigger.next_fire_time(max(now, last_fire) if last_fire else now)
            logger.debug(f"{trigger.name} trigger sleeping until {fire_time.isoformat()}")
            await self._sleep(fire_time)
            last_fire = fire_time

            # Runs are detached so a slow batch never delays the next fire time
            run = asyncio.create_task(self._run_cadence(trigger.cadence))
            self._runs.add(run)
            run.add_done_callback(self._runs.discard)

    async def _run_cadence(self, cadence: Cadence) -> Optional[JobRunResult]:
        started = time.monotonic()
        logger.info(f"Running scheduled {cadence.value} timeline generation")
        try:
            result = await asyncio.to_thread(self.processor.run, cadence)
        except Exception as e:
            logger.error(
                f"Scheduled {cadence.value} timeline generation failed after "
                f"{time.monotonic() - started:.2f}s: {e}",
                exc_info=True
            )
            return None

        logger.info(
            f"Scheduled {cadence.value} timeline generation completed in "
            f"{time.monotonic() - started:.2f}s: created={result.created} failed={result.failed}"
        )
        return result

    async def run_cadence(self, cadence: Union[str, Cadence]) -> JobRunResult:
        """
        Run one cadence on demand, independent of trigger state.

        Raises:
            ValueError: If the cadence has no scheduled run
        """
        cadence = scheduled_cadence(cadence)
        started = time.monotonic()
        result = await asyncio.to_thread(self.processor.run, cadence)
        logger.info(
            f"Manual {cadence.value} timeline generation completed in "
            f"{time.monotonic() - started:.2f}s"
        )
        return result

    async def run_all(self) -> GenerationSummary:
        """Run Daily, Monthly, Quarterly and Yearly one after another."""
        started = time.monotonic()
        summary = GenerationSummary()
        for trigger in TRIGGERS:
            summary.results[trigger.cadence.value] = await asyncio.to_thread(
                self.processor.run, trigger.cadence
            )
        summary.duration_seconds = time.monotonic() - started

        logger.info(
            f"Manual timeline generation for all cadences completed in "
            f"{summary.duration_seconds:.2f}s: processed={summary.processed} "
            f"created={summary.created} failed={summary.failed}"
        )
        return summary
