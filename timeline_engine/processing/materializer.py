"""
Idempotent timeline materialization.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from timeline_engine.errors import MaterializationConflict, TimelineEngineError
from timeline_engine.models import TimelineKey, TimelineMetadata, UpsertResult
from timeline_engine.storage.timeline_store import TimelineStore
from timeline_engine.utils.clock import now_local

logger = logging.getLogger(__name__)


class Materializer:
    """Creates at most one timeline per materialization key."""

    def __init__(self, store: TimelineStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or now_local

    def upsert(self, key: TimelineKey, due_date: datetime, metadata: TimelineMetadata) -> UpsertResult:
        """
        Create the timeline for ``key`` unless one exists already.

        The insert either wins and returns ``created=True``, or loses to an
        existing record (possibly written concurrently) which is returned
        untouched with ``created=False``.
        """
        try:
            record = self.store.insert(key, due_date, metadata, created_at=self.clock())
            return UpsertResult(created=True, record=record)
        except MaterializationConflict:
            existing = self.store.get(key)
            if existing is None:
                raise TimelineEngineError(f"Conflicting timeline for {key} disappeared") from None
            logger.debug(f"Timeline already exists for {key}")
            return UpsertResult(created=False, record=existing)
