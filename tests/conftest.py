"""
Pytest configuration and fixtures for test suite.
"""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from timeline_engine.engine import TimelineEngine
from timeline_engine.models import (
    Client,
    ClientObligationAssignment,
    FieldTemplate,
    Obligation,
    SubObligation,
)
from timeline_engine.utils.clock import PRACTICE_TIMEZONE
from timeline_engine.utils.config import EngineSettings

# Wednesday morning in the practice timezone
FIXED_NOW = datetime(2024, 7, 10, 9, 0, tzinfo=PRACTICE_TIMEZONE)


class FrozenClock:
    """Callable clock that tests can move."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def build_compliance_obligation() -> Obligation:
    """One obligation with a sub-obligation per cadence, plus a Weekly one nothing schedules."""
    return Obligation(
        id="compliance",
        name="Statutory Compliance",
        sub_obligations=[
            SubObligation(
                id="daily-log",
                name="Daily cash log",
                cadence="Daily",
                frequency_config={"dailyTime": "06:00 PM"},
            ),
            SubObligation(
                id="gstr1",
                name="GSTR-1",
                cadence="Monthly",
                frequency_config={"monthlyDay": 20, "monthlyTime": "09:00 AM", "dailyTime": "01:00 AM"},
                fields=[FieldTemplate("ARN", "text"), FieldTemplate("Filed on", "date")],
            ),
            SubObligation(
                id="tds-return",
                name="TDS Return",
                cadence="Quarterly",
                frequency_config={
                    "quarterlyMonths": ["April", "July", "October", "January"],
                    "quarterlyDay": 15,
                    "quarterlyTime": "10:00 AM",
                },
            ),
            SubObligation(
                id="itr",
                name="Income Tax Return",
                cadence="Yearly",
                frequency_config={"yearlyMonth": "July", "yearlyDate": 31, "yearlyTime": "05:00 PM"},
            ),
            SubObligation(
                id="weekly-review",
                name="Weekly review",
                cadence="Weekly",
                frequency_config={"weeklyDays": ["Friday"], "weeklyTime": "04:00 PM"},
            ),
        ],
    )


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def settings(tmp_path):
    return EngineSettings(
        database_path=str(tmp_path / "timelines.db"),
        scheduler_autostart=False,
        fail_fast=False,
    )


@pytest.fixture
def engine(settings, clock):
    """Engine over a fresh database with the schema created."""
    engine = TimelineEngine(settings, clock=clock)
    engine.database.init_schema()
    return engine


@pytest.fixture
def database(engine):
    return engine.database


@pytest.fixture
def store(engine):
    return engine.store


@pytest.fixture
def directory(engine):
    return engine.directory


@pytest.fixture
def seeded_directory(directory):
    """
    Clients:
        acme     - active, assigned the whole obligation
        globex   - active, pinned to the GSTR-1 sub-obligation
        initech  - inactive client with an active assignment
        umbrella - active client whose only assignment is inactive
    """
    directory.save_obligation(build_compliance_obligation())
    directory.save_client(Client(
        id="acme", name="Acme Traders", branch_id="branch-1",
        assignments=[ClientObligationAssignment("compliance")],
    ))
    directory.save_client(Client(
        id="globex", name="Globex LLP", branch_id="branch-2",
        assignments=[ClientObligationAssignment("compliance", "gstr1")],
    ))
    directory.save_client(Client(
        id="initech", name="Initech", branch_id="branch-1", status="inactive",
        assignments=[ClientObligationAssignment("compliance")],
    ))
    directory.save_client(Client(
        id="umbrella", name="Umbrella Corp", branch_id="branch-3",
        assignments=[ClientObligationAssignment("compliance", status="inactive")],
    ))
    return directory


@pytest.fixture
def client(engine):
    """
    Fixture that provides a TestClient for an application wired to the test engine.
    """
    from app import create_app

    with TestClient(create_app(engine=engine)) as test_client:
        yield test_client
