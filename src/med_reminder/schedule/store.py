# src/med_reminder/schedule/store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterable
from pathlib import Path

from .models import Medication, ScheduleEntry, User, parse_clock_time

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class ScheduleStore:
    """
    SQLite schedule store: users, medications and their schedule entries.

    The scheduler only reads from it (find_medications_due). The write helpers exist for
    the host application and for tests; HTTP CRUD lives elsewhere.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "schedules.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_medications()
        except Exception:
            total = -1
        logger.info("ScheduleStore ready db=%s medications=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    push_token TEXT,
                    notification_sound TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS medications (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    precautions TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS schedule_entries (
                    id TEXT PRIMARY KEY,
                    medication_id TEXT NOT NULL REFERENCES medications(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL DEFAULT 0,
                    time_of_day TEXT NOT NULL,
                    taken INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            # Older databases predate the per-user sound preference.
            cur.execute("PRAGMA table_info(users)")
            cols = {row["name"] for row in cur.fetchall()}
            if "notification_sound" not in cols:
                cur.execute("ALTER TABLE users ADD COLUMN notification_sound TEXT")
                logger.info("ScheduleStore migration: added column users.notification_sound")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_entries_time ON schedule_entries(time_of_day)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_entries_medication "
                "ON schedule_entries(medication_id, position)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_medications_user ON medications(user_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_user(row: sqlite3.Row, prefix: str = "") -> User:
        return User(
            id=str(row[f"{prefix}id"]),
            username=str(row[f"{prefix}username"] or ""),
            push_token=row[f"{prefix}push_token"],
            notification_sound=row[f"{prefix}notification_sound"],
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> ScheduleEntry:
        return ScheduleEntry(
            id=str(row["id"]),
            time_of_day=str(row["time_of_day"]),
            taken=bool(row["taken"]),
        )

    def _load_entries(
            self, conn: sqlite3.Connection, medication_ids: list[str]
    ) -> dict[str, list[ScheduleEntry]]:
        out: dict[str, list[ScheduleEntry]] = {mid: [] for mid in medication_ids}
        if not medication_ids:
            return out
        placeholders = ",".join("?" for _ in medication_ids)
        cur = conn.execute(
            f"""
            SELECT id, medication_id, time_of_day, taken
            FROM schedule_entries
            WHERE medication_id IN ({placeholders})
            ORDER BY medication_id, position ASC, rowid ASC
            """,
            medication_ids,
        )
        for row in cur.fetchall():
            out[str(row["medication_id"])].append(self._row_to_entry(row))
        return out

    @staticmethod
    def _row_to_medication(row: sqlite3.Row, entries: Iterable[ScheduleEntry]) -> Medication:
        return Medication(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            name=str(row["name"]),
            amount=str(row["amount"]),
            precautions=row["precautions"],
            schedules=tuple(entries),
        )

    # ---- scheduler API ----

    def find_medications_due(self, time_of_day: str) -> list[tuple[Medication, User | None]]:
        """
        Medications with any schedule entry at exactly time_of_day ("HH:MM"),
        joined with the owning user (None if the user row is gone).

        Each medication carries ALL of its schedule entries; the caller picks the matching ones.
        """
        parse_clock_time(time_of_day)

        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT m.id, m.user_id, m.name, m.amount, m.precautions,
                       u.id AS u_id, u.username AS u_username,
                       u.push_token AS u_push_token,
                       u.notification_sound AS u_notification_sound
                FROM medications m
                LEFT JOIN users u ON u.id = m.user_id
                WHERE EXISTS (
                    SELECT 1 FROM schedule_entries s
                    WHERE s.medication_id = m.id AND s.time_of_day = ?
                )
                ORDER BY m.rowid ASC
                """,
                (time_of_day,),
            )
            rows = cur.fetchall()
            entries = self._load_entries(conn, [str(r["id"]) for r in rows])

            out: list[tuple[Medication, User | None]] = []
            for row in rows:
                med = self._row_to_medication(row, entries.get(str(row["id"]), []))
                user = self._row_to_user(row, prefix="u_") if row["u_id"] is not None else None
                out.append((med, user))
            return out
        finally:
            conn.close()

    # ---- write helpers ----

    def count_medications(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM medications").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_user(
            self,
            *,
            username: str,
            push_token: str | None = None,
            notification_sound: str | None = None,
    ) -> User:
        if not username or not username.strip():
            raise ValueError("username is required")

        now = time.time()
        user = User(
            id=_new_id(),
            username=username.strip(),
            push_token=(push_token or "").strip() or None,
            notification_sound=notification_sound,
        )
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO users(id, username, push_token, notification_sound, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user.id, user.username, user.push_token, user.notification_sound, now, now),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("User added id=%s username=%s", user.id, user.username)
        return user

    def update_user_push(
            self,
            user_id: str,
            *,
            push_token: str | None = None,
            notification_sound: str | None = None,
    ) -> None:
        """Update push settings; None leaves a field unchanged, "" clears it."""
        fields: list[str] = []
        params: list[object] = []

        if push_token is not None:
            fields.append("push_token = ?")
            params.append(push_token.strip() or None)

        if notification_sound is not None:
            fields.append("notification_sound = ?")
            params.append(notification_sound or None)

        if not fields:
            return

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(user_id)

        conn = self._get_conn()
        try:
            conn.execute(f"UPDATE users SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
        finally:
            conn.close()

    def delete_user(self, user_id: str) -> None:
        """Delete a user; their medications and schedule entries go with them."""
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
        finally:
            conn.close()

    def add_medication(
            self,
            *,
            user_id: str,
            name: str,
            amount: str,
            times: Iterable[str],
            precautions: str | None = None,
    ) -> Medication:
        if not name or not name.strip():
            raise ValueError("name is required")
        if not amount or not amount.strip():
            raise ValueError("amount is required")

        time_list = list(times)
        for t in time_list:
            parse_clock_time(t)

        now = time.time()
        med_id = _new_id()
        entries = tuple(ScheduleEntry(id=_new_id(), time_of_day=t) for t in time_list)

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO medications(id, user_id, name, amount, precautions, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (med_id, user_id, name.strip(), amount.strip(), (precautions or "").strip() or None, now, now),
            )
            conn.executemany(
                """
                INSERT INTO schedule_entries(id, medication_id, position, time_of_day, taken)
                VALUES (?, ?, ?, ?, 0)
                """,
                [(e.id, med_id, pos, e.time_of_day) for pos, e in enumerate(entries)],
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Medication added id=%s user_id=%s times=%s", med_id, user_id, time_list)
        return Medication(
            id=med_id,
            user_id=user_id,
            name=name.strip(),
            amount=amount.strip(),
            precautions=(precautions or "").strip() or None,
            schedules=entries,
        )

    def set_entry_taken(self, entry_id: str, taken: bool = True) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE schedule_entries SET taken = ? WHERE id = ?",
                (1 if taken else 0, entry_id),
            )
            conn.commit()
        finally:
            conn.close()
