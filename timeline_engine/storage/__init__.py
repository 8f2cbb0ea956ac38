"""Storage layer: SQLite database, client directory and timeline store."""

from timeline_engine.storage.database import Database
from timeline_engine.storage.directory import ClientDirectory
from timeline_engine.storage.timeline_store import TimelineStore

__all__ = ["Database", "ClientDirectory", "TimelineStore"]
