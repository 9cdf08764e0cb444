#!/usr/bin/env python3
"""Seed the listing store with the sample listings."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from datetime import datetime, timezone

from jobboard.services.fallback import build_seed_documents
from jobboard.services.normalizer import to_iso8601
from jobboard.services.postgres_store import PostgresDocumentStore


def render_documents(now: datetime) -> str:
    documents = []
    for document in build_seed_documents(now):
        documents.append(
            {
                key: to_iso8601(value) if isinstance(value, datetime) else value
                for key, value in document.items()
            }
        )
    return json.dumps(documents, indent=2, ensure_ascii=False)


async def seed(database_url: str, now: datetime) -> int:
    store = PostgresDocumentStore(
        database_url=database_url,
        min_pool_size=1,
        max_pool_size=2,
        connect_timeout_seconds=5.0,
        command_timeout_seconds=15.0,
    )
    try:
        await store.connect()
        inserted = 0
        for document in build_seed_documents(now):
            await store.insert_one(document)
            inserted += 1
        return inserted
    finally:
        await store.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Insert the sample job listings into the listing store.")
    parser.add_argument(
        "--database-url",
        default=os.getenv("JB_DATABASE_URL"),
        help="Postgres DSN (defaults to JB_DATABASE_URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the seed documents as JSON instead of inserting them",
    )
    args = parser.parse_args()
    now = datetime.now(timezone.utc)

    if args.dry_run:
        print(render_documents(now))
        return

    if not args.database_url:
        parser.error("--database-url or JB_DATABASE_URL is required unless --dry-run is set")
    inserted = asyncio.run(seed(args.database_url, now))
    print(f"inserted {inserted} listings")


if __name__ == "__main__":
    main()
