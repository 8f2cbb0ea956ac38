"""Cron scheduling of timeline generation."""

from timeline_engine.scheduling.scheduler import TRIGGERS, TimelineScheduler

__all__ = ["TRIGGERS", "TimelineScheduler"]
