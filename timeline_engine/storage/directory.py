"""
Client directory: obligation definitions, clients and their assignments.
"""

import json
import logging
import sqlite3
from typing import Dict, Iterator, List, Optional

from timeline_engine.models import (
    Client,
    ClientObligationAssignment,
    FieldTemplate,
    Obligation,
    SubObligation,
)
from timeline_engine.processing.frequency_config import normalize_frequency_config, parse_cadence
from timeline_engine.storage.database import Database

logger = logging.getLogger(__name__)

CLIENT_STATUSES = ("active", "inactive")


def _row_to_sub_obligation(row: sqlite3.Row) -> SubObligation:
    return SubObligation(
        id=row["id"],
        name=row["name"],
        cadence=row["cadence"],
        frequency_config=json.loads(row["frequency_config"]),
        fields=[FieldTemplate(**item) for item in json.loads(row["fields"])],
    )


class ClientDirectory:
    """Read/write access to obligation definitions and client assignments."""

    def __init__(self, database: Database):
        self.database = database

    # ==================== OBLIGATIONS ====================

    def save_obligation(self, obligation: Obligation) -> Obligation:
        """
        Create or replace an obligation together with its sub-obligations.

        Every sub-obligation's frequency configuration is validated and
        normalized first, so fields left over from a previously selected
        cadence never reach storage.

        Returns:
            The obligation as stored (normalized configurations)

        Raises:
            ConfigValidationError: If any sub-obligation configuration is invalid
        """
        normalized: List[SubObligation] = []
        for sub in obligation.sub_obligations:
            cadence = parse_cadence(sub.cadence)
            normalized.append(SubObligation(
                id=sub.id,
                name=sub.name,
                cadence=cadence.value,
                frequency_config=normalize_frequency_config(cadence, sub.frequency_config),
                fields=list(sub.fields),
            ))

        with self.database.connect() as conn:
            conn.execute(
                "INSERT INTO obligations (id, name) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET name = excluded.name",
                (obligation.id, obligation.name),
            )
            conn.execute("DELETE FROM sub_obligations WHERE obligation_id = ?", (obligation.id,))
            conn.executemany(
                "INSERT INTO sub_obligations "
                "(id, obligation_id, name, cadence, frequency_config, fields, position) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        sub.id, obligation.id, sub.name, sub.cadence,
                        json.dumps(sub.frequency_config),
                        json.dumps([{"name": f.name, "type": f.type} for f in sub.fields]),
                        position,
                    )
                    for position, sub in enumerate(normalized)
                ],
            )

        logger.info(f"Saved obligation {obligation.id} with {len(normalized)} sub-obligations")
        return Obligation(id=obligation.id, name=obligation.name, sub_obligations=normalized)

    def get_obligation(self, obligation_id: str) -> Optional[Obligation]:
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT id, name FROM obligations WHERE id = ?", (obligation_id,)
            ).fetchone()
            if row is None:
                return None
            sub_rows = conn.execute(
                "SELECT * FROM sub_obligations WHERE obligation_id = ? ORDER BY position",
                (obligation_id,),
            ).fetchall()

        return Obligation(
            id=row["id"],
            name=row["name"],
            sub_obligations=[_row_to_sub_obligation(sub) for sub in sub_rows],
        )

    # ==================== CLIENTS ====================

    def save_client(self, client: Client) -> Client:
        """Create or replace a client and its obligation assignments."""
        if client.status not in CLIENT_STATUSES:
            raise ValueError(f"Invalid client status '{client.status}'")

        with self.database.connect() as conn:
            conn.execute(
                "INSERT INTO clients (id, name, branch_id, status) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET name = excluded.name, "
                "branch_id = excluded.branch_id, status = excluded.status",
                (client.id, client.name, client.branch_id, client.status),
            )
            conn.execute("DELETE FROM client_assignments WHERE client_id = ?", (client.id,))
            conn.executemany(
                "INSERT INTO client_assignments (client_id, obligation_id, sub_obligation_id, status) "
                "VALUES (?, ?, ?, ?)",
                [
                    (client.id, a.obligation_id, a.sub_obligation_id, a.status)
                    for a in client.assignments
                ],
            )

        logger.info(f"Saved client {client.id} with {len(client.assignments)} assignments")
        return client

    def _load_assignments(self, conn: sqlite3.Connection, client_ids: List[str]) -> Dict[str, List[ClientObligationAssignment]]:
        assignments: Dict[str, List[ClientObligationAssignment]] = {cid: [] for cid in client_ids}
        if not client_ids:
            return assignments

        placeholders = ", ".join("?" for _ in client_ids)
        rows = conn.execute(
            f"SELECT client_id, obligation_id, sub_obligation_id, status FROM client_assignments "
            f"WHERE client_id IN ({placeholders}) ORDER BY id",
            client_ids,
        ).fetchall()
        for row in rows:
            assignments[row["client_id"]].append(ClientObligationAssignment(
                obligation_id=row["obligation_id"],
                sub_obligation_id=row["sub_obligation_id"],
                status=row["status"],
            ))
        return assignments

    def get_client(self, client_id: str) -> Optional[Client]:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM clients WHERE id = ?", (client_id,)).fetchone()
            if row is None:
                return None
            assignments = self._load_assignments(conn, [client_id])[client_id]

        return Client(
            id=row["id"],
            name=row["name"],
            branch_id=row["branch_id"],
            status=row["status"],
            assignments=assignments,
        )

    def iter_active_clients(self) -> Iterator[Client]:
        """
        Yield active clients holding at least one active assignment.

        Each yielded client carries only its active assignments.
        """
        with self.database.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM clients c WHERE c.status = 'active' AND EXISTS ("
                "SELECT 1 FROM client_assignments a "
                "WHERE a.client_id = c.id AND a.status = 'active') ORDER BY c.id"
            ).fetchall()
            assignments = self._load_assignments(conn, [row["id"] for row in rows])

        for row in rows:
            yield Client(
                id=row["id"],
                name=row["name"],
                branch_id=row["branch_id"],
                status=row["status"],
                assignments=[a for a in assignments[row["id"]] if a.is_active],
            )
