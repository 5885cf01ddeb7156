"""
Switch History — append-only SQLite store of decision cycle outcomes.

Every cycle lands here, suppressed or executed, so a failed switch always
leaves a persistent entry even when nothing is shown to the user.
"""

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional


@dataclass
class SwitchRecord:
    id: Optional[int]
    surface_id: str
    context_tag: str
    region_kind: str
    target_mode: str
    decision: str
    success: Optional[bool] = None       # None when the gate suppressed the cycle
    detail: str = ""
    timestamp: float = field(default_factory=time.time)


class SwitchHistory:
    """Thread-safe SQLite-backed history store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._init_db()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(self, record: SwitchRecord) -> int:
        success = None if record.success is None else int(record.success)
        with self._conn() as conn:
            cur = conn.execute(
                """
                INSERT INTO switch_history
                    (timestamp, surface_id, context_tag, region_kind,
                     target_mode, decision, success, detail)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.timestamp,
                    record.surface_id,
                    record.context_tag,
                    record.region_kind,
                    record.target_mode,
                    record.decision,
                    success,
                    record.detail,
                ),
            )
            return cur.lastrowid  # type: ignore[return-value]

    def clear(self) -> int:
        with self._conn() as conn:
            return conn.execute("DELETE FROM switch_history").rowcount

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def query(
        self,
        since: Optional[float] = None,
        surface_id: Optional[str] = None,
        decision: Optional[str] = None,
        limit: int = 200,
    ) -> List[SwitchRecord]:
        clauses = []
        params: list = []

        if since:
            clauses.append("timestamp >= ?")
            params.append(since)
        if surface_id:
            clauses.append("surface_id = ?")
            params.append(surface_id)
        if decision:
            clauses.append("decision = ?")
            params.append(decision)

        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        params.append(limit)

        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT id, surface_id, context_tag, region_kind, target_mode, decision, "
                f"success, detail, timestamp "
                f"FROM switch_history {where} ORDER BY timestamp DESC, id DESC LIMIT ?",
                params,
            ).fetchall()

        return [
            SwitchRecord(
                id=row[0],
                surface_id=row[1],
                context_tag=row[2],
                region_kind=row[3],
                target_mode=row[4],
                decision=row[5],
                success=None if row[6] is None else bool(row[6]),
                detail=row[7],
                timestamp=row[8],
            )
            for row in rows
        ]

    def last_mode_by_context(self) -> Dict[str, str]:
        """Most recent successfully committed mode per context tag."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT context_tag, target_mode FROM switch_history
                WHERE success = 1 AND id IN (
                    SELECT MAX(id) FROM switch_history WHERE success = 1 GROUP BY context_tag
                )
                """
            ).fetchall()
        return {tag: mode for tag, mode in rows}

    def decision_counts(self, since: Optional[float] = None) -> Dict[str, int]:
        where, params = ("WHERE timestamp >= ?", [since]) if since else ("", [])
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT decision, COUNT(*) FROM switch_history {where} GROUP BY decision",
                params,
            ).fetchall()
        return {decision: count for decision, count in rows}

    def failure_count(self, since: Optional[float] = None) -> int:
        where = "WHERE success = 0" + (" AND timestamp >= ?" if since else "")
        params = [since] if since else []
        with self._conn() as conn:
            (count,) = conn.execute(
                f"SELECT COUNT(*) FROM switch_history {where}", params
            ).fetchone()
        return count

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS switch_history (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp    REAL    NOT NULL,
                    surface_id   TEXT    NOT NULL,
                    context_tag  TEXT    NOT NULL DEFAULT '',
                    region_kind  TEXT    NOT NULL DEFAULT 'undetermined',
                    target_mode  TEXT    NOT NULL DEFAULT 'undetermined',
                    decision     TEXT    NOT NULL,
                    success      INTEGER,
                    detail       TEXT    NOT NULL DEFAULT ''
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_history_ts ON switch_history(timestamp)")

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()
