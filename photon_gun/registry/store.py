"""Configuration store — SQLite-backed healthchecks + result history.

Ids come from AUTOINCREMENT columns, so they are monotonic and never reused.
Deleting a healthcheck leaves a tombstone (deleted_at) instead of removing the
row, which keeps its result history addressable by check_id.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from photon_gun.models import Healthcheck, HealthcheckResult, SummaryWindow

logger = logging.getLogger(__name__)

DATA_DIR = Path("data")
DB_PATH = DATA_DIR / "photon.db"

# strftime formats used to bucket results into time windows
RESOLUTIONS = {
    "second": "%Y-%m-%dT%H:%M:%S",
    "minute": "%Y-%m-%dT%H:%M:00",
    "hour": "%Y-%m-%dT%H:00:00",
    "day": "%Y-%m-%d",
}

_UPDATABLE = ("name", "endpoint", "interval")


class HealthcheckStore:
    """SQLite storage for Healthcheck definitions and HealthcheckResult history."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        path = Path(db_path or DB_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = str(path)
        self._init_db()

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS healthchecks (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    name       TEXT,
                    endpoint   TEXT    NOT NULL,
                    interval   INTEGER NOT NULL,
                    enabled    INTEGER NOT NULL DEFAULT 1,
                    created_at REAL    NOT NULL,
                    deleted_at REAL
                );

                CREATE INDEX IF NOT EXISTS idx_healthchecks_enabled
                    ON healthchecks (enabled, id);

                CREATE TABLE IF NOT EXISTS healthcheck_results (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    check_id     INTEGER NOT NULL,
                    start_time   REAL    NOT NULL,
                    elapsed_time INTEGER NOT NULL,
                    "pass"       INTEGER NOT NULL,
                    message      TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_results_check
                    ON healthcheck_results (check_id, start_time DESC);
            """)

    # ── Healthchecks ──────────────────────────────────────────────────────

    def create(
        self,
        endpoint: str,
        interval: int,
        name: str | None = None,
        enabled: bool = True,
    ) -> Healthcheck:
        """Insert a new healthcheck; the id is assigned here."""
        with self._conn() as conn:
            cursor = conn.execute(
                "INSERT INTO healthchecks (name, endpoint, interval, enabled, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (name, endpoint, interval, int(enabled), time.time()),
            )
            check_id = cursor.lastrowid
        return Healthcheck(
            id=check_id, name=name, endpoint=endpoint, interval=interval, enabled=enabled,
        )

    def get(self, check_id: int) -> Healthcheck | None:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM healthchecks WHERE id = ? AND deleted_at IS NULL",
                (check_id,),
            ).fetchone()
        return Healthcheck.model_validate(dict(row)) if row else None

    def list_all(
        self,
        enabled: bool | None = None,
        limit: int = 10,
        after_id: int | None = None,
    ) -> list[Healthcheck]:
        """Live healthchecks ordered by id, optionally filtered by enabled.

        ``after_id`` skips every id up to and including it, so callers can
        page through the table by passing the last id they saw.
        """
        clauses = ["deleted_at IS NULL"]
        params: list[Any] = []
        if enabled is not None:
            clauses.append("enabled = ?")
            params.append(int(enabled))
        if after_id is not None:
            clauses.append("id > ?")
            params.append(after_id)
        params.append(limit)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM healthchecks WHERE {' AND '.join(clauses)} "
                "ORDER BY id LIMIT ?",
                params,
            ).fetchall()
        return [Healthcheck.model_validate(dict(r)) for r in rows]

    def update(self, check_id: int, **fields: Any) -> Healthcheck | None:
        """Update the supplied fields of a live healthcheck (never `enabled`)."""
        updates = {k: v for k, v in fields.items() if k in _UPDATABLE}
        if not updates:
            return self.get(check_id)

        set_clause = ", ".join(f'"{k}" = :{k}' for k in updates)
        updates["id"] = check_id
        with self._conn() as conn:
            cursor = conn.execute(
                f"UPDATE healthchecks SET {set_clause} "
                "WHERE id = :id AND deleted_at IS NULL",
                updates,
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM healthchecks WHERE id = ?", (check_id,)).fetchone()
        return Healthcheck.model_validate(dict(row))

    def set_enabled(self, check_id: int, enabled: bool) -> Healthcheck | None:
        with self._conn() as conn:
            cursor = conn.execute(
                "UPDATE healthchecks SET enabled = ? WHERE id = ? AND deleted_at IS NULL",
                (int(enabled), check_id),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM healthchecks WHERE id = ?", (check_id,)).fetchone()
        return Healthcheck.model_validate(dict(row))

    def delete(self, check_id: int) -> Healthcheck | None:
        """Tombstone a healthcheck and return its last known value."""
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT * FROM healthchecks WHERE id = ? AND deleted_at IS NULL",
                (check_id,),
            ).fetchone()
            if not row:
                return None
            conn.execute(
                "UPDATE healthchecks SET deleted_at = ? WHERE id = ?",
                (time.time(), check_id),
            )
        return Healthcheck.model_validate(dict(row))

    def is_known(self, check_id: int) -> bool:
        """True if the id was ever allocated, deleted or not."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT 1 FROM healthchecks WHERE id = ?", (check_id,)
            ).fetchone()
        return row is not None

    # ── Results ───────────────────────────────────────────────────────────

    def add_result(
        self,
        check_id: int,
        start_time: float,
        elapsed_time: int,
        passed: bool,
        message: str | None = None,
    ) -> HealthcheckResult:
        """Record one probe outcome; the result id is assigned here."""
        with self._conn() as conn:
            cursor = conn.execute(
                "INSERT INTO healthcheck_results "
                '(check_id, start_time, elapsed_time, "pass", message) '
                "VALUES (?, ?, ?, ?, ?)",
                (check_id, start_time, elapsed_time, int(passed), message),
            )
            result_id = cursor.lastrowid
        return HealthcheckResult(
            id=result_id,
            check_id=check_id,
            start_time=start_time,
            elapsed_time=elapsed_time,
            passed=passed,
            message=message,
        )

    def list_results(self, check_id: int, limit: int = 10) -> list[HealthcheckResult]:
        """Most recent results first."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM healthcheck_results WHERE check_id = ? "
                "ORDER BY start_time DESC, id DESC LIMIT ?",
                (check_id, limit),
            ).fetchall()
        return [HealthcheckResult.model_validate(dict(r)) for r in rows]

    def summarize(
        self, check_id: int, resolution: str = "minute", limit: int = 60,
    ) -> list[SummaryWindow]:
        """Pass/fail counts per time window, newest window first."""
        fmt = RESOLUTIONS[resolution]
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT strftime(?, start_time, 'unixepoch') AS time_window, "
                '  SUM(CASE WHEN "pass" THEN 1 ELSE 0 END) AS passed, '
                '  SUM(CASE WHEN "pass" THEN 0 ELSE 1 END) AS failed '
                "FROM healthcheck_results WHERE check_id = ? "
                "GROUP BY time_window ORDER BY time_window DESC LIMIT ?",
                (fmt, check_id, limit),
            ).fetchall()
        return [SummaryWindow.model_validate(dict(r)) for r in rows]

    def close(self) -> None:
        """No-op, connections are created per call."""
        pass
