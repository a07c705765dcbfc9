"""SQLite-backed row store for candidates, analysis jobs and roles."""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

import aiosqlite

from swimr.db.notifier import ChangeEvent, ChangeNotifier
from swimr.errors import StoreError, UpsertNotSupportedError

logger = logging.getLogger("swimr.db.store")


@dataclass(frozen=True)
class TableSchema:
    """Columns of a table and which of them hold JSON documents."""

    columns: tuple[str, ...]
    json_columns: tuple[str, ...] = ()


TABLES: dict[str, TableSchema] = {
    "candidates": TableSchema(
        columns=(
            "id",
            "candidate_name",
            "email",
            "cv_text",
            "analysis_json",
            "overall_score",
            "recommendation",
            "job_description",
            "status",
            "created_at",
            "updated_at",
        ),
        json_columns=("analysis_json",),
    ),
    "analysis_jobs": TableSchema(
        columns=(
            "id",
            "candidate_id",
            "role_id",
            "cv_hash",
            "job_context_hash",
            "job_context",
            "status",
            "result_json",
            "error_message",
            "created_at",
            "updated_at",
        ),
        json_columns=("result_json",),
    ),
    "roles": TableSchema(
        columns=(
            "id",
            "job_title",
            "description",
            "required_skills",
            "target_universities",
            "created_at",
            "updated_at",
        ),
        json_columns=("required_skills", "target_universities"),
    ),
}

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS candidates (
        id TEXT PRIMARY KEY,
        candidate_name TEXT NOT NULL,
        email TEXT,
        cv_text TEXT,
        analysis_json TEXT,
        overall_score REAL DEFAULT 0,
        recommendation TEXT,
        job_description TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS analysis_jobs (
        id TEXT PRIMARY KEY,
        candidate_id TEXT NOT NULL,
        role_id TEXT,
        cv_hash TEXT NOT NULL,
        job_context_hash TEXT NOT NULL,
        job_context TEXT,
        status TEXT NOT NULL DEFAULT 'processing',
        result_json TEXT,
        error_message TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_analysis_jobs_key
    ON analysis_jobs(candidate_id, cv_hash, job_context_hash)
    """,
    """
    CREATE TABLE IF NOT EXISTS roles (
        id TEXT PRIMARY KEY,
        job_title TEXT NOT NULL,
        description TEXT,
        required_skills TEXT,
        target_universities TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RowStore:
    """Generic select/insert/update/upsert/delete over named tables.

    Every successful update is published to the attached ChangeNotifier so
    subscribers see the post-change row.
    """

    def __init__(
        self,
        db_path: Path | str,
        notifier: Optional[ChangeNotifier] = None,
        candidate_name_unique: bool = False,
    ):
        """Initialize the row store.

        Args:
            db_path: Path to the SQLite database file.
            notifier: Optional realtime change notifier.
            candidate_name_unique: Create a unique index on candidates.candidate_name.
        """
        self._db_path = Path(db_path)
        self._notifier = notifier
        self._candidate_name_unique = candidate_name_unique
        self._initialized = False

    @property
    def notifier(self) -> Optional[ChangeNotifier]:
        return self._notifier

    async def initialize(self) -> None:
        """Initialize the database schema."""
        if self._initialized:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self._db_path) as db:
            for statement in SCHEMA:
                await db.execute(statement)
            if self._candidate_name_unique:
                await db.execute(
                    """
                    CREATE UNIQUE INDEX IF NOT EXISTS idx_candidates_name
                    ON candidates(candidate_name)
                    """
                )
            await db.commit()

        self._initialized = True
        logger.debug(f"Row store initialized at {self._db_path}")

    def _schema(self, table: str) -> TableSchema:
        schema = TABLES.get(table)
        if schema is None:
            raise StoreError(f"Unknown table: {table}")
        return schema

    def _check_columns(self, table: str, columns: Iterable[str]) -> None:
        schema = self._schema(table)
        unknown = [c for c in columns if c not in schema.columns]
        if unknown:
            raise StoreError(f"Unknown column(s) for {table}: {', '.join(unknown)}")

    def _encode(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        schema = self._schema(table)
        encoded = {}
        for key, value in row.items():
            if key in schema.json_columns and value is not None:
                value = json.dumps(value)
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            encoded[key] = value
        return encoded

    def _decode(self, table: str, row: aiosqlite.Row) -> dict[str, Any]:
        schema = self._schema(table)
        decoded = dict(row)
        for column in schema.json_columns:
            raw = decoded.get(column)
            if raw is not None:
                decoded[column] = json.loads(raw)
        return decoded

    def _where(
        self,
        filters: Optional[dict[str, Any]],
        in_filters: Optional[dict[str, Iterable[Any]]] = None,
    ) -> tuple[str, list[Any]]:
        clauses = []
        params: list[Any] = []
        for column, value in (filters or {}).items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(value.value if isinstance(value, Enum) else value)
        for column, values in (in_filters or {}).items():
            values = [v.value if isinstance(v, Enum) else v for v in values]
            if not values:
                clauses.append("0")
                continue
            clauses.append(f"{column} IN ({', '.join('?' * len(values))})")
            params.extend(values)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        *,
        in_filters: Optional[dict[str, Iterable[Any]]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Select rows.

        Args:
            table: Table name.
            filters: Equality filters; None matches NULL.
            in_filters: Membership filters.
            order_by: Optional column to order by.
            descending: Order descending.
            limit: Maximum number of rows.

        Returns:
            Matching rows as dicts.
        """
        await self.initialize()
        self._check_columns(table, list(filters or {}) + list(in_filters or {}))

        where, params = self._where(filters, in_filters)
        sql = f"SELECT * FROM {table}{where}"
        if order_by is not None:
            self._check_columns(table, [order_by])
            # rowid breaks ties between rows created in the same instant
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        try:
            async with aiosqlite.connect(self._db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(sql, params) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StoreError(f"Select from {table} failed: {e}") from e

        return [self._decode(table, row) for row in rows]

    async def get(self, table: str, row_id: str) -> Optional[dict[str, Any]]:
        """Get a single row by id."""
        rows = await self.select(table, {"id": row_id}, limit=1)
        return rows[0] if rows else None

    def _prepare(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        now = _now()
        record = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        record.update({k: v for k, v in row.items() if v is not None or k not in record})
        self._check_columns(table, record)
        return self._encode(table, record)

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored.

        Raises:
            StoreError: If the insert is rejected.
        """
        await self.initialize()
        record = self._prepare(table, row)
        columns = list(record)

        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    f"INSERT INTO {table} ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' * len(columns))})",
                    [record[c] for c in columns],
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Insert into {table} failed: {e}") from e

        stored = await self.get(table, record["id"])
        if self._notifier is not None and stored is not None:
            self._notifier.publish(table, ChangeEvent.INSERT, stored)
        return stored

    async def upsert(self, table: str, row: dict[str, Any], on_conflict: str) -> dict[str, Any]:
        """Insert a row, or update the existing row sharing the conflict column.

        Args:
            table: Table name.
            row: Row values; must include the conflict column.
            on_conflict: Column carrying a unique constraint.

        Returns:
            The stored row.

        Raises:
            UpsertNotSupportedError: If the column has no unique constraint.
            StoreError: If the statement is otherwise rejected.
        """
        await self.initialize()
        self._check_columns(table, [on_conflict])
        if row.get(on_conflict) is None:
            raise StoreError(f"Upsert into {table} requires a value for {on_conflict}")

        record = self._prepare(table, row)
        columns = list(record)
        updates = [c for c in columns if c not in ("id", "created_at", on_conflict)]

        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' * len(columns))}) "
            f"ON CONFLICT({on_conflict}) DO UPDATE SET "
            + ", ".join(f"{c} = excluded.{c}" for c in updates)
        )

        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(sql, [record[c] for c in columns])
                await db.commit()
        except aiosqlite.OperationalError as e:
            if "ON CONFLICT clause does not match" in str(e):
                raise UpsertNotSupportedError(
                    f"No unique constraint on {table}.{on_conflict}"
                ) from e
            raise StoreError(f"Upsert into {table} failed: {e}") from e
        except aiosqlite.Error as e:
            raise StoreError(f"Upsert into {table} failed: {e}") from e

        rows = await self.select(table, {on_conflict: record[on_conflict]}, limit=1)
        return rows[0]

    async def update(
        self,
        table: str,
        row_id: str,
        patch: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """Merge-patch a row and publish the change.

        Returns:
            The post-change row, or None if no such row exists.
        """
        await self.initialize()
        values = {k: v for k, v in patch.items() if k not in ("id", "created_at")}
        values["updated_at"] = _now()
        self._check_columns(table, values)
        values = self._encode(table, values)

        try:
            async with aiosqlite.connect(self._db_path) as db:
                cursor = await db.execute(
                    f"UPDATE {table} SET {', '.join(f'{c} = ?' for c in values)} WHERE id = ?",
                    [*values.values(), row_id],
                )
                await db.commit()
                changed = cursor.rowcount
        except aiosqlite.Error as e:
            raise StoreError(f"Update of {table}/{row_id} failed: {e}") from e

        if changed == 0:
            return None

        stored = await self.get(table, row_id)
        if self._notifier is not None and stored is not None:
            self._notifier.publish(table, ChangeEvent.UPDATE, stored)
        return stored

    async def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Delete rows matching the filters.

        Returns:
            Number of rows deleted.
        """
        await self.initialize()
        if not filters:
            raise StoreError("Refusing to delete without filters")
        self._check_columns(table, filters)

        where, params = self._where(filters)
        try:
            async with aiosqlite.connect(self._db_path) as db:
                cursor = await db.execute(f"DELETE FROM {table}{where}", params)
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as e:
            raise StoreError(f"Delete from {table} failed: {e}") from e
