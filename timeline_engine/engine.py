"""
Wiring of the timeline engine components.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from timeline_engine.processing.batch_processor import BatchProcessor
from timeline_engine.processing.materializer import Materializer
from timeline_engine.scheduling.scheduler import TimelineScheduler
from timeline_engine.storage.database import Database
from timeline_engine.storage.directory import ClientDirectory
from timeline_engine.storage.timeline_store import TimelineStore
from timeline_engine.utils.clock import now_local
from timeline_engine.utils.config import EngineSettings

logger = logging.getLogger(__name__)


class TimelineEngine:
    """Holds one database, its stores, the batch processor and the scheduler."""

    def __init__(self, settings: EngineSettings, clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings
        self.clock = clock or now_local
        self.database = Database(settings.database_path, busy_timeout=settings.busy_timeout)
        self.directory = ClientDirectory(self.database)
        self.store = TimelineStore(self.database)
        self.materializer = Materializer(self.store, clock=self.clock)
        self.processor = BatchProcessor(
            self.directory, self.materializer, clock=self.clock, fail_fast=settings.fail_fast
        )
        self.scheduler = TimelineScheduler(self.processor, clock=self.clock)

    def startup(self) -> None:
        """Create the schema and arm the scheduler when autostart is enabled."""
        self.database.init_schema()
        if self.settings.scheduler_autostart:
            self.scheduler.start()
        else:
            logger.info("Scheduler autostart disabled")

    def shutdown(self) -> None:
        if self.scheduler.is_running:
            self.scheduler.stop()
