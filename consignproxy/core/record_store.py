"""Consignment record store backed by SQLite.

One row per blinded UTXO. Rows are inserted once (first writer wins) and
updated at most once, when the token is acked or nacked.

Design:
- ``token`` is the PRIMARY KEY, so duplicate creation fails in SQLite
  itself instead of in a read-then-insert race.
- The ack/nack write is a single conditional UPDATE guarded by
  ``responded = 0``; SQLite serializes writers, so at most one
  transition out of UNSET can ever succeed per token.
- WAL journal mode for concurrent readers.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from consignproxy.models.records import (
    VALID_ACK_TRANSITIONS,
    AckResult,
    AckState,
    ConsignmentRecord,
    CreateResult,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_CONSIGNMENTS = """
CREATE TABLE IF NOT EXISTS consignments (
    token             TEXT PRIMARY KEY,
    artifact_address  TEXT NOT NULL,
    ack_state         TEXT NOT NULL DEFAULT 'unset',
    responded         INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT NOT NULL,
    responded_at      TEXT
);
"""

_COLUMNS = "token, artifact_address, ack_state, responded, created_at, responded_at"


class RecordStore:
    """Token-keyed consignment records.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    timeout:
        Seconds a writer waits on a locked database before failing.
    """

    def __init__(self, db_path: Path, *, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path), timeout=self._timeout, check_same_thread=False
        )
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_CONSIGNMENTS)
            conn.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_token(self, token: str) -> ConsignmentRecord | None:
        """Return the record for ``token``, or None."""
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM consignments WHERE token = ?",
                (token,),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def list_records(self, limit: int = 100) -> list[ConsignmentRecord]:
        """Return the most recently created records first."""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM consignments ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM consignments").fetchone()
        return row[0] if row else 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, token: str, artifact_address: str) -> CreateResult:
        """Insert a fresh UNSET record. Never overwrites an existing token."""
        record = ConsignmentRecord(token=token, artifact_address=artifact_address)
        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO consignments ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        record.token,
                        record.artifact_address,
                        record.ack_state.value,
                        int(record.responded),
                        record.created_at.isoformat(),
                        None,
                    ),
                )
                conn.commit()
        except sqlite3.IntegrityError:
            logger.debug("Record for %s already exists", token)
            return CreateResult.CONFLICT
        return CreateResult.CREATED

    def set_ack_state(self, token: str, state: AckState) -> AckResult:
        """Move ``token`` out of UNSET into ``state``, at most once.

        The guard and the write happen in one UPDATE statement. When no
        row changes, a follow-up lookup tells a missing token apart from
        one that was already acked or nacked.
        """
        if state not in VALID_ACK_TRANSITIONS[AckState.UNSET]:
            raise ValueError(f"Cannot set ack state to {state.value}")

        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE consignments
                   SET ack_state = ?, responded = 1, responded_at = ?
                 WHERE token = ? AND responded = 0
                """,
                (state.value, datetime.now(timezone.utc).isoformat(), token),
            )
            conn.commit()
            updated = cursor.rowcount

        if updated == 1:
            return AckResult.OK
        if self.find_by_token(token) is None:
            return AckResult.NOT_FOUND
        return AckResult.ALREADY_RESPONDED

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_record(row: tuple) -> ConsignmentRecord:
        """Convert a SQLite row tuple to a ConsignmentRecord."""
        token, artifact_address, ack_state, responded, created_at, responded_at = row
        return ConsignmentRecord(
            token=token,
            artifact_address=artifact_address,
            ack_state=AckState(ack_state),
            responded=bool(responded),
            created_at=created_at,
            responded_at=responded_at,
        )
