"""
Timeline store backed by the ``timelines`` table.
Inserts are conditional on the materialization key being unused.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, List, Optional

from timeline_engine.errors import MaterializationConflict
from timeline_engine.models import TimelineKey, TimelineMetadata, TimelineRecord
from timeline_engine.storage.database import Database

logger = logging.getLogger(__name__)

_COLUMNS = (
    "client_id, obligation_id, sub_obligation_id, sub_obligation_key, period, "
    "branch_id, due_date, start_date, end_date, status, cadence, frequency_config, "
    "sub_obligation, financial_year, fields, timeline_type, metadata, created_at"
)

_KEY_CLAUSE = (
    "client_id = ? AND obligation_id = ? AND sub_obligation_key = ? AND period = ?"
)


def _key_params(key: TimelineKey) -> tuple:
    # NULL never collides in a UNIQUE index, so a missing sub-obligation is stored as ''
    return (key.client_id, key.obligation_id, key.sub_obligation_id or "", key.period)


def _row_to_record(row: sqlite3.Row) -> TimelineRecord:
    return TimelineRecord(
        id=row["id"],
        key=TimelineKey(
            client_id=row["client_id"],
            obligation_id=row["obligation_id"],
            sub_obligation_id=row["sub_obligation_id"],
            period=row["period"],
        ),
        branch_id=row["branch_id"],
        due_date=datetime.fromisoformat(row["due_date"]),
        start_date=datetime.fromisoformat(row["start_date"]),
        end_date=datetime.fromisoformat(row["end_date"]),
        status=row["status"],
        cadence=row["cadence"],
        frequency_config=json.loads(row["frequency_config"]),
        sub_obligation=json.loads(row["sub_obligation"]),
        financial_year=row["financial_year"],
        fields=json.loads(row["fields"]),
        timeline_type=row["timeline_type"],
        metadata=json.loads(row["metadata"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class TimelineStore:
    """Reads and conditionally inserts timeline records."""

    def __init__(self, database: Database):
        self.database = database

    def insert(
        self,
        key: TimelineKey,
        due_date: datetime,
        metadata: TimelineMetadata,
        created_at: datetime,
        status: str = "pending",
        timeline_type: str = "recurring"
    ) -> TimelineRecord:
        """
        Insert a new timeline for ``key``.

        The unique index on the key makes this an atomic insert-if-absent:
        when two writers race, exactly one insert succeeds.

        Returns:
            The stored record

        Raises:
            MaterializationConflict: If a timeline already exists for ``key``
        """
        params = (
            key.client_id,
            key.obligation_id,
            key.sub_obligation_id,
            key.sub_obligation_id or "",
            key.period,
            metadata.branch_id,
            due_date.isoformat(),
            due_date.isoformat(),
            due_date.isoformat(),
            status,
            metadata.cadence,
            json.dumps(metadata.frequency_config),
            json.dumps(metadata.sub_obligation),
            metadata.financial_year,
            json.dumps(metadata.fields),
            timeline_type,
            json.dumps(metadata.extra),
            created_at.isoformat(),
        )
        placeholders = ", ".join("?" for _ in params)

        try:
            with self.database.connect() as conn:
                cursor = conn.execute(
                    f"INSERT INTO timelines ({_COLUMNS}) VALUES ({placeholders})", params
                )
                row = conn.execute(
                    "SELECT * FROM timelines WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()
        except sqlite3.IntegrityError as e:
            if "UNIQUE constraint failed" in str(e):
                raise MaterializationConflict(key) from e
            raise

        logger.debug(f"Inserted timeline {row['id']} for {key}")
        return _row_to_record(row)

    def get(self, key: TimelineKey) -> Optional[TimelineRecord]:
        """Return the timeline stored under ``key``, if any."""
        with self.database.connect() as conn:
            row = conn.execute(
                f"SELECT * FROM timelines WHERE {_KEY_CLAUSE}", _key_params(key)
            ).fetchone()
        return _row_to_record(row) if row else None

    def count(self, **filters: Any) -> int:
        """
        Count timelines, optionally filtered by column equality.

        Example:
            store.count(client_id="c1", period="July-2024")
        """
        allowed = {"client_id", "obligation_id", "sub_obligation_id", "period", "status", "cadence"}
        unknown = set(filters) - allowed
        if unknown:
            raise ValueError(f"Cannot filter timelines by {sorted(unknown)}")

        clauses: List[str] = []
        params: List[Any] = []
        for column, value in filters.items():
            if column == "sub_obligation_id":
                clauses.append("sub_obligation_key = ?")
                params.append(value or "")
            else:
                clauses.append(f"{column} = ?")
                params.append(value)

        query = "SELECT COUNT(*) FROM timelines"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        with self.database.connect() as conn:
            return conn.execute(query, params).fetchone()[0]

