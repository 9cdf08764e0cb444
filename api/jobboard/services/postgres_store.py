from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from jobboard.services.store import (
    DESCENDING,
    Document,
    SortOrder,
    StoreError,
    StoreUnavailableError,
    parse_uuid,
)

logger = logging.getLogger(__name__)

DATE_TAG = "$date"
FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_UNAVAILABLE_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    pg_exc.PostgresConnectionError,
    pg_exc.InterfaceError,
    pg_exc.CannotConnectNowError,
    pg_exc.TooManyConnectionsError,
)

SCHEMA_SQL = """
create table if not exists job_listings (
  id uuid primary key,
  document jsonb not null
);
create index if not exists job_listings_document_idx on job_listings using gin (document jsonb_path_ops);
create index if not exists job_listings_status_idx on job_listings ((document ->> 'status'));
create index if not exists job_listings_created_at_idx on job_listings ((document #>> '{createdAt,$date}') desc);
"""


def encode_document(value: Any) -> str:
    return json.dumps(value, default=_encode_value, ensure_ascii=False)


def decode_document(raw: str) -> Any:
    return json.loads(raw, object_hook=_decode_object)


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {DATE_TAG: value.astimezone(timezone.utc).isoformat(timespec="microseconds")}
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"unsupported document value type: {type(value).__name__}")


def _decode_object(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and isinstance(obj.get(DATE_TAG), str):
        try:
            return datetime.fromisoformat(obj[DATE_TAG])
        except ValueError:
            return obj
    return obj


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=encode_document,
        decoder=decode_document,
        schema="pg_catalog",
    )


class PostgresDocumentStore:
    """Listings kept as JSONB documents, one row per document."""

    backend = "postgres"

    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        connect_timeout_seconds: float,
        command_timeout_seconds: float,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max(min_pool_size, max_pool_size)
        self.connect_timeout_seconds = connect_timeout_seconds
        self.command_timeout_seconds = command_timeout_seconds
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def connect(self) -> None:
        await self._get_pool()

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> bool:
        async with self._connection() as conn:
            return await conn.fetchval("select 1") == 1

    def parse_id(self, raw: str) -> UUID:
        return parse_uuid(raw)

    async def find(self, filter: Mapping[str, Any], *, sort: SortOrder | None = None) -> list[Document]:
        order_by_sql = self._build_order_by(sort)
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                select id, document
                from job_listings
                where document @> $1::jsonb
                {order_by_sql}
                """,
                dict(filter),
            )
        return [self._row_to_document(row) for row in rows]

    async def find_one(self, doc_id: UUID) -> Document | None:
        async with self._connection() as conn:
            row = await conn.fetchrow("select id, document from job_listings where id = $1", doc_id)
        return self._row_to_document(row) if row else None

    async def insert_one(self, document: Mapping[str, Any]) -> UUID:
        body = dict(document)
        doc_id = body.pop("_id", None)
        if not isinstance(doc_id, UUID):
            doc_id = uuid4()
        async with self._connection() as conn:
            await conn.execute("insert into job_listings (id, document) values ($1, $2::jsonb)", doc_id, body)
        return doc_id

    async def update_one(self, doc_id: UUID, fields: Mapping[str, Any]) -> int:
        patch = {key: value for key, value in fields.items() if key != "_id"}
        async with self._connection() as conn:
            status = await conn.execute(
                "update job_listings set document = document || $2::jsonb where id = $1",
                doc_id,
                patch,
            )
        return self._affected_rows(status)

    async def delete_one(self, doc_id: UUID) -> int:
        async with self._connection() as conn:
            status = await conn.execute("delete from job_listings where id = $1", doc_id)
        return self._affected_rows(status)

    async def count(self, filter: Mapping[str, Any] | None = None) -> int:
        async with self._connection() as conn:
            value = await conn.fetchval(
                "select count(*) from job_listings where document @> $1::jsonb",
                dict(filter or {}),
            )
        return int(value or 0)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                yield conn
        except _UNAVAILABLE_ERRORS as exc:
            raise StoreUnavailableError("database unavailable") from exc
        except pg_exc.PostgresError as exc:
            raise StoreError(f"database error: {exc}") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise StoreUnavailableError("JB_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is not None:
                return self._pool
            try:
                pool = await asyncpg.create_pool(
                    dsn=self.database_url,
                    min_size=self.min_pool_size,
                    max_size=self.max_pool_size,
                    timeout=self.connect_timeout_seconds,
                    command_timeout=self.command_timeout_seconds,
                    init=_init_connection,
                )
            except Exception as exc:  # pragma: no cover - depends on environment
                raise StoreUnavailableError("database unavailable") from exc
            try:
                await pool.execute(SCHEMA_SQL)
            except Exception as exc:
                await pool.close()
                raise StoreUnavailableError("database schema setup failed") from exc
            logger.info("document store connected backend=%s", self.backend)
            self._pool = pool
            return pool

    @staticmethod
    def _build_order_by(sort: SortOrder | None) -> str:
        if not sort:
            return ""
        clauses: list[str] = []
        for field, direction in sort:
            if not FIELD_NAME_RE.match(field):
                raise StoreError(f"invalid sort field: {field!r}")
            order = "desc" if direction == DESCENDING else "asc"
            clauses.append(
                f"coalesce(document #>> '{{{field},{DATE_TAG}}}', document ->> '{field}') {order} nulls last"
            )
        clauses.append("id asc")
        return "order by " + ", ".join(clauses)

    @staticmethod
    def _row_to_document(row: asyncpg.Record) -> Document:
        document = row["document"]
        if not isinstance(document, dict):
            document = {}
        return {**document, "_id": UUID(str(row["id"]))}

    @staticmethod
    def _affected_rows(status: str) -> int:
        try:
            return int(status.rsplit(" ", maxsplit=1)[-1])
        except (AttributeError, ValueError):
            return 0
