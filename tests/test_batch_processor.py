"""
Batch Processor Tests.
Cadence runs over the client directory, failure policy and assignment-time materialization.

Run with: pytest tests/test_batch_processor.py -v
"""
import json
import logging
from datetime import datetime
from unittest.mock import patch

import pytest

from timeline_engine.errors import BatchItemFailure, ConfigValidationError
from timeline_engine.models import (
    Client,
    ClientObligationAssignment,
    Obligation,
    SubObligation,
    TimelineKey,
)
from timeline_engine.processing.batch_processor import BatchProcessor, scheduled_cadence
from timeline_engine.processing.frequency_config import Cadence
from timeline_engine.utils.clock import PRACTICE_TIMEZONE


@pytest.fixture
def processor(engine, seeded_directory):
    return engine.processor


def _corrupt_sub_obligation(database, sub_obligation_id, config):
    """Write a configuration straight to storage, bypassing validation."""
    with database.connect() as conn:
        conn.execute(
            "UPDATE sub_obligations SET frequency_config = ? WHERE id = ?",
            (json.dumps(config), sub_obligation_id),
        )


class TestScheduledCadence:
    """Test which cadences can be run."""

    @pytest.mark.parametrize("value", ["Daily", "Monthly", "Quarterly", "Yearly"])
    def test_scheduled(self, value):
        assert scheduled_cadence(value) is Cadence(value)

    @pytest.mark.parametrize("value", ["Hourly", "Weekly", "OneTime", "None", "Fortnightly"])
    def test_not_scheduled(self, value):
        with pytest.raises(ValueError):
            scheduled_cadence(value)


class TestCadenceRuns:
    """Test one cadence run against the seeded directory."""

    def test_monthly_run(self, processor, store):
        result = processor.run("Monthly")

        # acme (whole obligation) and globex (pinned to GSTR-1)
        assert result.processed == 2
        assert result.created == 2
        assert result.failures == []

        record = store.get(TimelineKey("acme", "compliance", "gstr1", "July-2024"))
        assert record.due_date == datetime(2024, 7, 20, 9, 0, tzinfo=PRACTICE_TIMEZONE)
        assert record.branch_id == "branch-1"
        assert record.financial_year == "2024-2025"
        assert record.frequency_config == {"monthlyDay": 20, "monthlyTime": "09:00 AM"}
        assert record.sub_obligation["name"] == "GSTR-1"
        assert [f["field_name"] for f in record.fields] == ["ARN", "Filed on"]
        assert all(f["field_value"] is None for f in record.fields)

    def test_daily_run_respects_pin(self, processor, store):
        result = processor.run("Daily")

        assert result.processed == 1
        assert store.get(TimelineKey("acme", "compliance", "daily-log", "2024-07-10")) is not None
        assert store.count(client_id="globex") == 0

    def test_quarterly_run(self, processor, store):
        result = processor.run(Cadence.QUARTERLY)

        assert result.created == 1
        record = store.get(TimelineKey("acme", "compliance", "tds-return", "Q1-2024"))
        assert record.due_date == datetime(2024, 7, 15, 10, 0, tzinfo=PRACTICE_TIMEZONE)

    def test_yearly_run(self, processor, store):
        processor.run("Yearly")
        record = store.get(TimelineKey("acme", "compliance", "itr", "2024-2025"))
        assert record.due_date == datetime(2024, 7, 31, 17, 0, tzinfo=PRACTICE_TIMEZONE)

    def test_inactive_clients_and_assignments_skipped(self, processor, store):
        processor.run("Monthly")
        assert store.count(client_id="initech") == 0
        assert store.count(client_id="umbrella") == 0

    def test_rerun_creates_nothing(self, processor, store):
        processor.run("Monthly")
        again = processor.run("Monthly")

        assert again.processed == 2
        assert again.created == 0
        assert store.count() == 2

    def test_next_period_creates_new_records(self, processor, store, clock):
        processor.run("Monthly")
        clock.now = datetime(2024, 8, 2, 9, 0, tzinfo=PRACTICE_TIMEZONE)

        result = processor.run("Monthly")

        assert result.created == 2
        assert store.count(period="August-2024") == 2

    def test_weekly_cannot_run(self, processor):
        with pytest.raises(ValueError):
            processor.run("Weekly")

    def test_unknown_obligation_skipped(self, engine, seeded_directory, store):
        seeded_directory.save_client(Client(
            id="hooli", name="Hooli", assignments=[ClientObligationAssignment("missing")],
        ))
        result = engine.processor.run("Monthly")
        assert result.processed == 2
        assert store.count(client_id="hooli") == 0


class TestFailurePolicy:
    """Test collect-and-continue and fail-fast behaviour."""

    def test_invalid_stored_config_recorded_and_skipped(self, processor, database, store, caplog):
        _corrupt_sub_obligation(database, "gstr1", {"monthlyTime": "09:00 AM"})

        with caplog.at_level(logging.WARNING):
            result = processor.run("Monthly")

        assert result.processed == 2
        assert result.created == 0
        assert len(result.failures) == 2
        failure = result.failures[0]
        assert failure.error_type == "ConfigValidationError"
        assert failure.sub_obligation_id == "gstr1"
        assert "monthlyDay" in failure.message
        assert "Skipping Monthly item" in caplog.text

    def test_one_failure_does_not_stop_other_items(self, processor, store):
        original = processor._materialize
        calls = []

        def flaky(client, obligation, sub, cadence, now):
            calls.append(client.id)
            if client.id == "acme":
                raise RuntimeError("store unavailable")
            return original(client, obligation, sub, cadence, now)

        with patch.object(processor, "_materialize", side_effect=flaky):
            result = processor.run("Monthly")

        assert calls == ["acme", "globex"]
        assert result.created == 1
        assert result.failures[0].error_type == "RuntimeError"
        assert store.count(client_id="globex") == 1

    def test_fail_fast_raises_first_failure(self, engine, seeded_directory, database):
        _corrupt_sub_obligation(database, "gstr1", {"monthlyTime": "09:00 AM"})
        processor = BatchProcessor(
            engine.directory, engine.materializer, clock=engine.clock, fail_fast=True
        )

        with pytest.raises(BatchItemFailure) as exc_info:
            processor.run("Monthly")

        assert exc_info.value.failure.client_id == "acme"
        assert isinstance(exc_info.value.cause, ConfigValidationError)


class TestMaterializeAssignment:
    """Test materialization at assignment time."""

    def test_whole_obligation(self, processor, store):
        results = processor.materialize_assignment("acme", "compliance")

        assert set(results) == {"Daily", "Monthly", "Quarterly", "Yearly"}
        assert sum(r.created for r in results.values()) == 4
        # The weekly sub-obligation has no scheduled bucket
        assert store.count(client_id="acme", sub_obligation_id="weekly-review") == 0

    def test_pinned_sub_obligation(self, processor, store):
        results = processor.materialize_assignment("globex", "compliance", "gstr1")
        assert list(results) == ["Monthly"]
        assert store.count(client_id="globex") == 1

    def test_then_scheduled_run_is_noop(self, processor):
        processor.materialize_assignment("acme", "compliance")
        assert processor.run("Daily").created == 0

    def test_unknown_client(self, processor):
        with pytest.raises(LookupError):
            processor.materialize_assignment("nobody", "compliance")

    def test_unknown_obligation(self, processor):
        with pytest.raises(LookupError):
            processor.materialize_assignment("acme", "missing")

    def test_unknown_sub_obligation(self, processor):
        with pytest.raises(LookupError):
            processor.materialize_assignment("acme", "compliance", "missing")


class TestDirectory:
    """Test the create/update paths the processor reads from."""

    def test_save_obligation_normalizes(self, directory):
        saved = directory.save_obligation(Obligation("gst", "GST", [
            SubObligation("gstr3b", "GSTR-3B", "Monthly", {
                "monthlyDay": 20, "monthlyTime": "9:00 am", "weeklyDays": ["Monday"],
            }),
        ]))
        assert saved.sub_obligations[0].frequency_config == {"monthlyDay": 20, "monthlyTime": "09:00 AM"}
        assert directory.get_obligation("gst") == saved

    def test_save_obligation_rejects_invalid_config(self, directory):
        with pytest.raises(ConfigValidationError) as exc_info:
            directory.save_obligation(Obligation("tds", "TDS", [
                SubObligation("q", "Quarterly TDS", "Quarterly", {
                    "quarterlyMonths": ["April", "July", "October"],
                    "quarterlyDay": 15,
                    "quarterlyTime": "10:00 AM",
                }),
            ]))
        assert exc_info.value.field == "quarterlyMonths"
        assert directory.get_obligation("tds") is None

    def test_active_clients(self, seeded_directory):
        clients = list(seeded_directory.iter_active_clients())
        assert [c.id for c in clients] == ["acme", "globex"]
        assert clients[1].assignments[0].sub_obligation_id == "gstr1"
