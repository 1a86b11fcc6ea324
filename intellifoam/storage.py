"""
storage.py — Intellifoam SQLite Store

Single persistence layer for pricing settings and installer scheduling:
  - Cost variables, project multipliers and JSON system settings
  - Installers and their blocked dates
  - Bookings, installer assignments and confirmation requests
  - In-app tasks and the notification outbox (failed sends for retry)

Each method opens its own WAL connection, so the store can be shared
between the scheduler jobs and request handlers.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional

from intellifoam.pricing.cost_variables import DEFAULT_COST_VARIABLES, DEFAULT_PROJECT_MULTIPLIERS
from intellifoam.scheduling.models import (
    Assignment,
    AssignmentStatus,
    Booking,
    BookingStatus,
    Channel,
    ConfirmationRequest,
    Installer,
    SlotType,
    Task,
    TaskType,
)

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


_SCHEMA = """
    PRAGMA journal_mode = WAL;
    PRAGMA foreign_keys = ON;

    CREATE TABLE IF NOT EXISTS cost_variables (
        variable_key    TEXT PRIMARY KEY,
        variable_value  REAL NOT NULL,
        unit            TEXT NOT NULL DEFAULT '',
        category        TEXT NOT NULL DEFAULT '',
        updated_at      TEXT NOT NULL DEFAULT ''
    );

    CREATE TABLE IF NOT EXISTS project_multipliers (
        project_type    TEXT PRIMARY KEY,
        multiplier      REAL NOT NULL DEFAULT 1.0,
        is_active       INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS system_settings (
        key             TEXT PRIMARY KEY,
        value           TEXT NOT NULL DEFAULT '{}',
        updated_at      TEXT NOT NULL DEFAULT ''
    );

    CREATE TABLE IF NOT EXISTS installers (
        id                  TEXT PRIMARY KEY,
        first_name          TEXT NOT NULL DEFAULT '',
        last_name           TEXT NOT NULL DEFAULT '',
        email               TEXT NOT NULL DEFAULT '',
        installer_type      TEXT NOT NULL DEFAULT 'installer',
        hardplast_expiry    TEXT,
        priority_order      INTEGER NOT NULL DEFAULT 99,
        is_active           INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS installer_blocked_dates (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        installer_id    TEXT NOT NULL REFERENCES installers(id),
        blocked_date    TEXT NOT NULL,
        slot            TEXT NOT NULL DEFAULT 'full',
        reason          TEXT NOT NULL DEFAULT ''
    );

    CREATE TABLE IF NOT EXISTS bookings (
        id                  INTEGER PRIMARY KEY AUTOINCREMENT,
        quote_id            INTEGER,
        customer_name       TEXT NOT NULL DEFAULT '',
        customer_email      TEXT NOT NULL DEFAULT '',
        customer_address    TEXT NOT NULL DEFAULT '',
        scheduled_date      TEXT NOT NULL,
        scheduled_time      TEXT NOT NULL DEFAULT '',
        slot_type           TEXT NOT NULL DEFAULT 'full',
        num_installers      INTEGER NOT NULL DEFAULT 2,
        booking_type        TEXT NOT NULL DEFAULT 'installation',
        status              TEXT NOT NULL DEFAULT 'scheduled',
        created_at          TEXT NOT NULL DEFAULT '',
        confirmed_at        TEXT NOT NULL DEFAULT ''
    );

    CREATE TABLE IF NOT EXISTS booking_installers (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        booking_id      INTEGER NOT NULL REFERENCES bookings(id),
        installer_id    TEXT NOT NULL REFERENCES installers(id),
        is_lead         INTEGER NOT NULL DEFAULT 0,
        status          TEXT NOT NULL DEFAULT 'pending',
        reason          TEXT NOT NULL DEFAULT '',
        created_at      TEXT NOT NULL DEFAULT '',
        responded_at    TEXT NOT NULL DEFAULT '',
        UNIQUE (booking_id, installer_id)
    );

    CREATE UNIQUE INDEX IF NOT EXISTS idx_booking_single_lead
        ON booking_installers (booking_id) WHERE is_lead = 1;

    CREATE TABLE IF NOT EXISTS booking_confirmation_requests (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        booking_id      INTEGER NOT NULL REFERENCES bookings(id),
        installer_id    TEXT NOT NULL REFERENCES installers(id),
        channel         TEXT NOT NULL,
        token           TEXT UNIQUE,
        status          TEXT NOT NULL DEFAULT 'pending',
        created_at      TEXT NOT NULL DEFAULT '',
        responded_at    TEXT NOT NULL DEFAULT ''
    );

    CREATE INDEX IF NOT EXISTS idx_requests_pending
        ON booking_confirmation_requests (status, created_at);

    CREATE TABLE IF NOT EXISTS tasks (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        title           TEXT NOT NULL,
        description     TEXT NOT NULL DEFAULT '',
        status          TEXT NOT NULL DEFAULT 'pending',
        priority        TEXT NOT NULL DEFAULT 'urgent',
        task_type       TEXT NOT NULL DEFAULT 'custom',
        assigned_to     TEXT,
        booking_id      INTEGER,
        due_date        TEXT,
        created_at      TEXT NOT NULL DEFAULT '',
        completed_at    TEXT NOT NULL DEFAULT ''
    );

    CREATE TABLE IF NOT EXISTS notification_outbox (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        channel         TEXT NOT NULL,
        payload         TEXT NOT NULL,
        status          TEXT NOT NULL DEFAULT 'failed',
        attempts        INTEGER NOT NULL DEFAULT 0,
        last_error      TEXT NOT NULL DEFAULT '',
        created_at      TEXT NOT NULL DEFAULT '',
        updated_at      TEXT NOT NULL DEFAULT ''
    );
"""


class FoamStore:
    """SQLite-backed store. One connection per call, WAL for concurrent readers."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        # an in-memory database lives only as long as its connection, so keep one
        self._shared: Optional[sqlite3.Connection] = None
        if self.db_path == ":memory:":
            self._shared = self._connect()
        else:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._ensure_db()

    def _ensure_db(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10, check_same_thread=self.db_path != ":memory:")
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager that yields an auto-committing SQLite connection."""
        conn = self._shared or self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if conn is not self._shared:
                conn.close()

    def close(self) -> None:
        """Close the shared in-memory connection (file-backed stores hold none)."""
        if self._shared is not None:
            self._shared.close()
            self._shared = None

    # ─── Pricing Settings ────────────────────────────────────────────────────

    def seed_defaults(self) -> None:
        """Insert default cost variables and multipliers without overwriting edits."""
        now = utc_now()
        with self._conn() as conn:
            conn.executemany(
                """
                INSERT OR IGNORE INTO cost_variables
                    (variable_key, variable_value, unit, category, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(k, v, unit, cat, now) for k, (v, unit, cat) in DEFAULT_COST_VARIABLES.items()],
            )
            conn.executemany(
                "INSERT OR IGNORE INTO project_multipliers (project_type, multiplier) VALUES (?, ?)",
                list(DEFAULT_PROJECT_MULTIPLIERS.items()),
            )
        logger.info(f"Seeded {len(DEFAULT_COST_VARIABLES)} cost variables")

    def load_cost_variables(self) -> dict[str, float]:
        with self._conn() as conn:
            rows = conn.execute("SELECT variable_key, variable_value FROM cost_variables").fetchall()
        return {r["variable_key"]: r["variable_value"] for r in rows}

    def set_cost_variable(self, key: str, value: float, unit: str = "", category: str = "") -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO cost_variables (variable_key, variable_value, unit, category, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(variable_key) DO UPDATE SET
                    variable_value = excluded.variable_value,
                    updated_at = excluded.updated_at
                """,
                (key, value, unit, category, utc_now()),
            )

    def load_project_multipliers(self) -> dict[str, float]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT project_type, multiplier FROM project_multipliers WHERE is_active = 1"
            ).fetchall()
        return {r["project_type"]: r["multiplier"] for r in rows}

    def set_project_multiplier(self, project_type: str, multiplier: float, is_active: bool = True) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO project_multipliers (project_type, multiplier, is_active) VALUES (?, ?, ?)
                ON CONFLICT(project_type) DO UPDATE SET
                    multiplier = excluded.multiplier, is_active = excluded.is_active
                """,
                (project_type, multiplier, int(is_active)),
            )

    def get_setting(self, key: str) -> Optional[dict[str, Any]]:
        with self._conn() as conn:
            row = conn.execute("SELECT value FROM system_settings WHERE key = ?", (key,)).fetchone()
        if not row:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning(f"Setting '{key}' is not valid JSON, ignoring")
            return None

    def set_setting(self, key: str, value: dict[str, Any]) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO system_settings (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), utc_now()),
            )

    # ─── Installers ──────────────────────────────────────────────────────────

    def upsert_installer(self, installer: Installer) -> Installer:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO installers
                    (id, first_name, last_name, email, installer_type,
                     hardplast_expiry, priority_order, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    first_name = excluded.first_name,
                    last_name = excluded.last_name,
                    email = excluded.email,
                    installer_type = excluded.installer_type,
                    hardplast_expiry = excluded.hardplast_expiry,
                    priority_order = excluded.priority_order,
                    is_active = excluded.is_active
                """,
                (
                    installer.id, installer.first_name, installer.last_name, installer.email,
                    installer.installer_type,
                    installer.hardplast_expiry.isoformat() if installer.hardplast_expiry else None,
                    installer.priority_order, int(installer.is_active),
                ),
            )
        return installer

    def get_installer(self, installer_id: str) -> Optional[Installer]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM installers WHERE id = ?", (installer_id,)).fetchone()
        return self._row_to_installer(row) if row else None

    def list_installers(self, active_only: bool = True) -> list[Installer]:
        """Installers in assignment priority order."""
        query = "SELECT * FROM installers"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY priority_order ASC, id ASC"
        with self._conn() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_installer(r) for r in rows]

    def add_blocked_date(self, installer_id: str, blocked_date: date, slot: SlotType | str = SlotType.FULL,
                         reason: str = "") -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO installer_blocked_dates (installer_id, blocked_date, slot, reason) VALUES (?, ?, ?, ?)",
                (installer_id, blocked_date.isoformat(), SlotType(slot).value, reason),
            )

    def blocked_slots(self, installer_id: str, on_date: date) -> list[SlotType]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT slot FROM installer_blocked_dates WHERE installer_id = ? AND blocked_date = ?",
                (installer_id, on_date.isoformat()),
            ).fetchall()
        return [SlotType(r["slot"]) for r in rows]

    def booked_slots(self, installer_id: str, on_date: date) -> list[SlotType]:
        """Slots of non-cancelled bookings the installer holds a non-declined assignment on."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT b.slot_type FROM booking_installers bi
                JOIN bookings b ON b.id = bi.booking_id
                WHERE bi.installer_id = ?
                  AND bi.status != 'declined'
                  AND b.status != 'cancelled'
                  AND b.scheduled_date = ?
                """,
                (installer_id, on_date.isoformat()),
            ).fetchall()
        return [SlotType(r["slot_type"]) for r in rows]

    # ─── Bookings ────────────────────────────────────────────────────────────

    def create_booking(self, booking: Booking) -> Booking:
        with self._conn() as conn:
            cursor = conn.execute(
                """
                INSERT INTO bookings
                    (quote_id, customer_name, customer_email, customer_address, scheduled_date,
                     scheduled_time, slot_type, num_installers, booking_type, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    booking.quote_id, booking.customer_name, booking.customer_email,
                    booking.customer_address, booking.scheduled_date.isoformat(), booking.scheduled_time,
                    booking.slot_type.value, booking.num_installers, booking.booking_type,
                    booking.status.value, utc_now(),
                ),
            )
        booking.id = cursor.lastrowid
        logger.info(f"Created booking #{booking.id} on {booking.scheduled_date} ({booking.slot_type.value})")
        return booking

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)).fetchone()
        return self._row_to_booking(row) if row else None

    def set_booking_status(self, booking_id: int, status: BookingStatus) -> None:
        with self._conn() as conn:
            conn.execute("UPDATE bookings SET status = ? WHERE id = ?", (BookingStatus(status).value, booking_id))

    def mark_booking_confirmed(self, booking_id: int) -> bool:
        """Conditional scheduled -> confirmed. True only for the call that made the change."""
        with self._conn() as conn:
            cursor = conn.execute(
                "UPDATE bookings SET status = 'confirmed', confirmed_at = ? WHERE id = ? AND status = 'scheduled'",
                (utc_now(), booking_id),
            )
        return cursor.rowcount == 1

    # ─── Assignments ─────────────────────────────────────────────────────────

    def add_assignment(self, booking_id: int, installer_id: str, is_lead: bool = False,
                       max_active: Optional[int] = None) -> Optional[Assignment]:
        """
        Insert a pending assignment. Returns None if the installer already has a
        row on the booking, or if max_active non-declined assignments already exist.
        The count check runs inside the INSERT, so it holds across processes.
        """
        now = utc_now()
        with self._conn() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO booking_installers
                    (booking_id, installer_id, is_lead, status, created_at)
                SELECT ?, ?, ?, 'pending', ?
                WHERE ? IS NULL OR (
                    SELECT COUNT(*) FROM booking_installers
                    WHERE booking_id = ? AND status != 'declined'
                ) < ?
                """,
                (booking_id, installer_id, int(is_lead), now, max_active, booking_id, max_active),
            )
            if cursor.rowcount == 0:
                return None
            assignment_id = cursor.lastrowid
        return Assignment(
            booking_id=booking_id, installer_id=installer_id, is_lead=is_lead,
            created_at=now, id=assignment_id,
        )

    def get_assignment(self, booking_id: int, installer_id: str) -> Optional[Assignment]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM booking_installers WHERE booking_id = ? AND installer_id = ?",
                (booking_id, installer_id),
            ).fetchone()
        return self._row_to_assignment(row) if row else None

    def list_assignments(self, booking_id: int) -> list[Assignment]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM booking_installers WHERE booking_id = ? ORDER BY id", (booking_id,)
            ).fetchall()
        return [self._row_to_assignment(r) for r in rows]

    def resolve_assignment(self, booking_id: int, installer_id: str, status: AssignmentStatus,
                           reason: str = "") -> bool:
        """
        pending -> accepted/declined for one installer, together with their pending
        confirmation requests and open confirmation task. False if nothing was pending.
        """
        status = AssignmentStatus(status)
        now = utc_now()
        with self._conn() as conn:
            cursor = conn.execute(
                """
                UPDATE booking_installers SET status = ?, reason = ?, responded_at = ?
                WHERE booking_id = ? AND installer_id = ? AND status = 'pending'
                """,
                (status.value, reason, now, booking_id, installer_id),
            )
            if cursor.rowcount == 0:
                return False
            if status == AssignmentStatus.DECLINED:
                conn.execute(
                    "UPDATE booking_installers SET is_lead = 0 WHERE booking_id = ? AND installer_id = ?",
                    (booking_id, installer_id),
                )
            conn.execute(
                """
                UPDATE booking_confirmation_requests SET status = ?, responded_at = ?
                WHERE booking_id = ? AND installer_id = ? AND status = 'pending'
                """,
                (status.value, now, booking_id, installer_id),
            )
            conn.execute(
                """
                UPDATE tasks SET status = 'completed', completed_at = ?
                WHERE booking_id = ? AND assigned_to = ? AND task_type = ? AND status != 'completed'
                """,
                (now, booking_id, installer_id, TaskType.BOOKING_CONFIRMATION.value),
            )
        return True

    def set_lead(self, booking_id: int, installer_id: str) -> bool:
        """Make installer_id the only lead on the booking."""
        with self._conn() as conn:
            conn.execute("UPDATE booking_installers SET is_lead = 0 WHERE booking_id = ?", (booking_id,))
            cursor = conn.execute(
                "UPDATE booking_installers SET is_lead = 1 WHERE booking_id = ? AND installer_id = ?",
                (booking_id, installer_id),
            )
        return cursor.rowcount == 1

    # ─── Confirmation Requests & Tasks ───────────────────────────────────────

    def add_confirmation_request(self, booking_id: int, installer_id: str, channel: Channel,
                                 token: Optional[str] = None, created_at: Optional[str] = None) -> ConfirmationRequest:
        request = ConfirmationRequest(
            booking_id=booking_id, installer_id=installer_id, channel=Channel(channel),
            token=token, created_at=created_at or utc_now(),
        )
        with self._conn() as conn:
            cursor = conn.execute(
                """
                INSERT INTO booking_confirmation_requests
                    (booking_id, installer_id, channel, token, status, created_at)
                VALUES (?, ?, ?, ?, 'pending', ?)
                """,
                (booking_id, installer_id, request.channel.value, token, request.created_at),
            )
        request.id = cursor.lastrowid
        return request

    def get_request_by_token(self, token: str) -> Optional[ConfirmationRequest]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM booking_confirmation_requests WHERE token = ?", (token,)
            ).fetchone()
        return self._row_to_request(row) if row else None

    def list_requests(self, booking_id: int, installer_id: Optional[str] = None) -> list[ConfirmationRequest]:
        query = "SELECT * FROM booking_confirmation_requests WHERE booking_id = ?"
        params: list = [booking_id]
        if installer_id:
            query += " AND installer_id = ?"
            params.append(installer_id)
        with self._conn() as conn:
            rows = conn.execute(query + " ORDER BY id", params).fetchall()
        return [self._row_to_request(r) for r in rows]

    def stale_pending_requests(self, created_before: str) -> list[tuple[int, str]]:
        """Distinct (booking_id, installer_id) with a pending request created before the cutoff."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT r.booking_id, r.installer_id
                FROM booking_confirmation_requests r
                JOIN booking_installers bi
                  ON bi.booking_id = r.booking_id AND bi.installer_id = r.installer_id
                WHERE r.status = 'pending' AND bi.status = 'pending' AND r.created_at < ?
                ORDER BY r.booking_id
                """,
                (created_before,),
            ).fetchall()
        return [(r["booking_id"], r["installer_id"]) for r in rows]

    def add_task(self, task: Task) -> Task:
        task.created_at = task.created_at or utc_now()
        with self._conn() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks
                    (title, description, status, priority, task_type, assigned_to,
                     booking_id, due_date, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.title, task.description, task.status, task.priority,
                    TaskType(task.task_type).value, task.assigned_to, task.booking_id,
                    task.due_date, task.created_at,
                ),
            )
        task.id = cursor.lastrowid
        return task

    def list_tasks(self, booking_id: Optional[int] = None, task_type: Optional[TaskType] = None,
                   status: Optional[str] = None) -> list[Task]:
        clauses, params = [], []
        if booking_id is not None:
            clauses.append("booking_id = ?")
            params.append(booking_id)
        if task_type is not None:
            clauses.append("task_type = ?")
            params.append(TaskType(task_type).value)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM tasks{where} ORDER BY id", params).fetchall()
        return [self._row_to_task(r) for r in rows]

    # ─── Notification Outbox ─────────────────────────────────────────────────

    def add_outbox(self, channel: str, payload: dict, attempts: int, error: str) -> int:
        now = utc_now()
        with self._conn() as conn:
            cursor = conn.execute(
                """
                INSERT INTO notification_outbox
                    (channel, payload, status, attempts, last_error, created_at, updated_at)
                VALUES (?, ?, 'failed', ?, ?, ?, ?)
                """,
                (channel, json.dumps(payload, ensure_ascii=False), attempts, error, now, now),
            )
        return cursor.lastrowid

    def list_outbox(self, status: str = "failed") -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM notification_outbox WHERE status = ? ORDER BY id", (status,)
            ).fetchall()
        return [{**dict(r), "payload": json.loads(r["payload"])} for r in rows]

    def update_outbox(self, outbox_id: int, status: str, attempts: int, error: str = "") -> None:
        with self._conn() as conn:
            conn.execute(
                """
                UPDATE notification_outbox SET status = ?, attempts = ?, last_error = ?, updated_at = ?
                WHERE id = ?
                """,
                (status, attempts, error, utc_now(), outbox_id),
            )

    # ─── Internal Helpers ────────────────────────────────────────────────────

    @staticmethod
    def _row_to_installer(row: sqlite3.Row) -> Installer:
        expiry = row["hardplast_expiry"]
        return Installer(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            installer_type=row["installer_type"],
            hardplast_expiry=date.fromisoformat(expiry) if expiry else None,
            priority_order=row["priority_order"],
            is_active=bool(row["is_active"]),
        )

    @staticmethod
    def _row_to_booking(row: sqlite3.Row) -> Booking:
        return Booking(
            id=row["id"],
            quote_id=row["quote_id"],
            customer_name=row["customer_name"],
            customer_email=row["customer_email"],
            customer_address=row["customer_address"],
            scheduled_date=date.fromisoformat(row["scheduled_date"]),
            scheduled_time=row["scheduled_time"],
            slot_type=SlotType(row["slot_type"]),
            num_installers=row["num_installers"],
            booking_type=row["booking_type"],
            status=BookingStatus(row["status"]),
        )

    @staticmethod
    def _row_to_assignment(row: sqlite3.Row) -> Assignment:
        return Assignment(
            id=row["id"],
            booking_id=row["booking_id"],
            installer_id=row["installer_id"],
            is_lead=bool(row["is_lead"]),
            status=AssignmentStatus(row["status"]),
            reason=row["reason"],
            created_at=row["created_at"],
            responded_at=row["responded_at"],
        )

    @staticmethod
    def _row_to_request(row: sqlite3.Row) -> ConfirmationRequest:
        return ConfirmationRequest(
            id=row["id"],
            booking_id=row["booking_id"],
            installer_id=row["installer_id"],
            channel=Channel(row["channel"]),
            token=row["token"],
            status=AssignmentStatus(row["status"]),
            created_at=row["created_at"],
            responded_at=row["responded_at"],
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            status=row["status"],
            priority=row["priority"],
            task_type=TaskType(row["task_type"]),
            assigned_to=row["assigned_to"],
            booking_id=row["booking_id"],
            due_date=row["due_date"],
            created_at=row["created_at"],
            completed_at=row["completed_at"],
        )
