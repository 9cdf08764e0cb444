from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

STORE_ID_FIELD = "_id"
TIMESTAMP_FIELDS = ("createdAt", "updatedAt", "applicationDeadline")


def normalize_listing(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a stored document into the wire record.

    The store identifier is exposed as a string ``id`` and native timestamps
    become ISO-8601 strings. Values that are already plain (strings seeded by
    other tools, for example) are passed through untouched.
    """
    listing = {key: value for key, value in raw.items() if key != STORE_ID_FIELD}
    if STORE_ID_FIELD in raw:
        listing["id"] = str(raw[STORE_ID_FIELD])
    for field in TIMESTAMP_FIELDS:
        value = listing.get(field)
        if isinstance(value, datetime):
            listing[field] = to_iso8601(value)
    return listing


def to_iso8601(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
