"""PostgreSQL-backed storage with automatic table migration."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, date, datetime
from typing import Any

from task_tracker.storage.models import NewTask, TaskRecord, UserRecord

logger = logging.getLogger(__name__)

# Columns a PATCH may touch; owner, id and created_at stay immutable.
UPDATABLE_COLUMNS = ("title", "description", "priority", "due_date", "is_complete")


class PostgresTaskStorage:
    """Persist principals and their tasks in PostgreSQL.

    Every task query carries an ``owner`` predicate, so rows belonging to other
    principals are never read or written through this class.
    """

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("TASK_TRACKER_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            # gen_random_uuid() is built in from PostgreSQL 13; older servers need pgcrypto.
            conn.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id UUID PRIMARY KEY,
                    is_anonymous BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    owner UUID NOT NULL REFERENCES users (id) ON DELETE CASCADE,
                    title TEXT NOT NULL CHECK (length(btrim(title)) > 0),
                    is_complete BOOLEAN NOT NULL DEFAULT FALSE,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    description TEXT,
                    priority TEXT NOT NULL DEFAULT 'normal'
                        CHECK (priority IN ('low', 'normal', 'high')),
                    due_date DATE
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_owner_created_at
                ON tasks(owner, created_at DESC)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS refresh_tokens (
                    token_hash TEXT PRIMARY KEY,
                    user_id UUID NOT NULL REFERENCES users (id) ON DELETE CASCADE,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """)
            conn.commit()
        logger.info("storage event=migrated backend=postgres")

    def create_user(self, *, is_anonymous: bool = True) -> UserRecord:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO users (id, is_anonymous, created_at)
                VALUES (gen_random_uuid(), %s, %s)
                RETURNING *
                """,
                (is_anonymous, datetime.now(tz=UTC)),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to persist user")
        return self._row_to_user(row)

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id::text = %s",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def delete_user(self, user_id: str) -> bool:
        with self._lock, self._connect() as conn:
            cur = conn.execute("DELETE FROM users WHERE id::text = %s", (user_id,))
            conn.commit()
        return cur.rowcount == 1

    def add_refresh_token(self, user_id: str, token_hash: str) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO refresh_tokens (token_hash, user_id, created_at)
                VALUES (%s, %s::uuid, %s)
                """,
                (token_hash, user_id, datetime.now(tz=UTC)),
            )
            conn.commit()

    def redeem_refresh_token(self, token_hash: str) -> str | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "DELETE FROM refresh_tokens WHERE token_hash = %s RETURNING user_id",
                (token_hash,),
            ).fetchone()
            conn.commit()
        if row is None:
            return None
        return str(row["user_id"])

    def list_tasks(self, owner: str) -> list[TaskRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE owner::text = %s
                ORDER BY created_at DESC
                """,
                (owner,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def get_task(self, owner: str, task_id: str) -> TaskRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id::text = %s AND owner::text = %s",
                (task_id, owner),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def insert_task(self, owner: str, task: NewTask) -> TaskRecord:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO tasks (
                    owner,
                    title,
                    description,
                    priority,
                    due_date,
                    is_complete,
                    created_at
                ) VALUES (%s::uuid, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    owner,
                    task.title,
                    task.description,
                    task.priority,
                    task.due_date,
                    task.is_complete,
                    datetime.now(tz=UTC),
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError("Failed to persist task")
        return self._row_to_task(row)

    def update_task(
        self, owner: str, task_id: str, changes: dict[str, Any]
    ) -> TaskRecord | None:
        unknown = set(changes) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Columns are not updatable: {sorted(unknown)}")
        if not changes:
            return self.get_task(owner, task_id)

        columns = [name for name in UPDATABLE_COLUMNS if name in changes]
        assignments = ", ".join(f"{name} = %s" for name in columns)
        params = [changes[name] for name in columns]
        with self._lock, self._connect() as conn:
            row = conn.execute(
                f"""
                UPDATE tasks
                SET {assignments}
                WHERE id::text = %s AND owner::text = %s
                RETURNING *
                """,
                (*params, task_id, owner),
            ).fetchone()
            conn.commit()
        if row is None:
            return None
        return self._row_to_task(row)

    def delete_task(self, owner: str, task_id: str) -> bool:
        with self._lock, self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM tasks WHERE id::text = %s AND owner::text = %s",
                (task_id, owner),
            )
            conn.commit()
        return cur.rowcount == 1

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @staticmethod
    def _parse_date_optional(raw: Any) -> date | None:
        if raw is None or isinstance(raw, date):
            return raw
        if isinstance(raw, str):
            return date.fromisoformat(raw)
        raise TypeError(f"Unsupported date value: {type(raw)!r}")

    @classmethod
    def _row_to_user(cls, row: Any) -> UserRecord:
        return UserRecord(
            id=str(row["id"]),
            is_anonymous=bool(row["is_anonymous"]),
            created_at=cls._parse_datetime(row["created_at"]),
        )

    @classmethod
    def _row_to_task(cls, row: Any) -> TaskRecord:
        return TaskRecord(
            id=str(row["id"]),
            owner=str(row["owner"]),
            title=row["title"],
            description=row["description"],
            priority=row["priority"] or "normal",
            due_date=cls._parse_date_optional(row["due_date"]),
            is_complete=bool(row["is_complete"]),
            created_at=cls._parse_datetime(row["created_at"]),
        )
