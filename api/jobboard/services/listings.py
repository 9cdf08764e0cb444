from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Literal

from pydantic import ValidationError

from jobboard.core.config import get_settings
from jobboard.schemas.listings import REQUIRED_LISTING_FIELDS, ListingCreate, ListingPatch
from jobboard.services.fallback import build_fallback_listings
from jobboard.services.normalizer import normalize_listing
from jobboard.services.postgres_store import PostgresDocumentStore
from jobboard.services.salary import SalaryRangeError, format_salary_range
from jobboard.services.store import (
    DESCENDING,
    DocumentStore,
    InMemoryDocumentStore,
    StoreError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

OFFLINE_ID_PREFIX = "offline-"
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"draft", "published"}),
    "published": frozenset({"published"}),
}


class ListingError(Exception):
    """Base listing service error."""


class ListingValidationError(ListingError):
    """Raised when a payload field is missing or malformed."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class InvalidListingIdError(ListingError):
    """Raised when an id does not have the store's identifier format."""


class ListingNotFoundError(ListingError):
    """Raised when no listing matches a well-formed id."""


class ListingConflictError(ListingError):
    """Raised when an update violates the status transition rules."""


@dataclass(slots=True)
class ListingPage:
    listings: list[dict[str, Any]]
    source: Literal["store", "fallback"]


@dataclass(slots=True)
class CreatedListing:
    listing: dict[str, Any]
    persisted: bool


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingService:
    def __init__(
        self,
        store: DocumentStore,
        *,
        fallback_on_empty: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.fallback_on_empty = fallback_on_empty
        self._clock = clock

    async def list_listings(self, status: str = "published") -> ListingPage:
        serve_fallback = status == "published"
        try:
            documents = await self.store.find({"status": status}, sort=[("createdAt", DESCENDING)])
        except StoreError as exc:
            if not serve_fallback:
                raise
            logger.warning("listing store unavailable, serving fallback listings: %s", exc)
            return ListingPage(listings=build_fallback_listings(self._clock()), source="fallback")

        if not documents and serve_fallback and self.fallback_on_empty:
            logger.info("listing store returned no %s listings, serving fallback listings", status)
            return ListingPage(listings=build_fallback_listings(self._clock()), source="fallback")

        logger.info("found %s %s listings in store", len(documents), status)
        return ListingPage(listings=[normalize_listing(document) for document in documents], source="store")

    async def get_listing(self, listing_id: str) -> dict[str, Any]:
        doc_id = self._parse_id(listing_id)
        document = await self.store.find_one(doc_id)
        if document is None:
            raise ListingNotFoundError("listing not found")
        return normalize_listing(document)

    async def create_listing(self, payload: Mapping[str, Any]) -> CreatedListing:
        fields = dict(payload)
        for field in REQUIRED_LISTING_FIELDS:
            if field == "salaryRange" and not _is_present(fields.get(field)):
                if _is_present(fields.get("salaryFrom")) and _is_present(fields.get("salaryTo")):
                    continue
            if not _is_present(fields.get(field)):
                raise ListingValidationError(field, f"{field} is required")

        if not _is_present(fields.get("salaryRange")):
            fields["salaryRange"] = self._salary_range_from_bounds(fields["salaryFrom"], fields["salaryTo"])

        try:
            listing = ListingCreate.model_validate(fields)
        except ValidationError as exc:
            raise _validation_error(exc) from exc

        now = self._clock()
        document = listing.model_dump(by_alias=True)
        document["createdAt"] = now
        document["updatedAt"] = now

        try:
            doc_id = await self.store.insert_one(document)
        except StoreUnavailableError as exc:
            offline_id = f"{OFFLINE_ID_PREFIX}{int(now.timestamp() * 1000)}"
            logger.warning("listing store unavailable, returning unsaved listing id=%s: %s", offline_id, exc)
            return CreatedListing(listing=normalize_listing({**document, "id": offline_id}), persisted=False)

        logger.info("created listing id=%s status=%s", doc_id, document["status"])
        return CreatedListing(listing=normalize_listing({**document, "_id": doc_id}), persisted=True)

    async def update_listing(self, listing_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        doc_id = self._parse_id(listing_id)
        try:
            fields = ListingPatch.model_validate(dict(patch)).to_document_fields()
        except ValidationError as exc:
            raise _validation_error(exc) from exc

        current = await self.store.find_one(doc_id)
        if current is None:
            raise ListingNotFoundError("listing not found")
        if "status" in fields:
            self._check_status_transition(current.get("status"), fields["status"])

        fields["updatedAt"] = self._next_updated_at(current)
        matched = await self.store.update_one(doc_id, fields)
        if matched == 0:
            raise ListingNotFoundError("listing not found")

        updated = await self.store.find_one(doc_id)
        if updated is None:
            raise ListingNotFoundError("listing not found")
        logger.info("updated listing id=%s fields=%s", doc_id, sorted(fields))
        return normalize_listing(updated)

    async def delete_listing(self, listing_id: str) -> None:
        doc_id = self._parse_id(listing_id)
        deleted = await self.store.delete_one(doc_id)
        if deleted == 0:
            raise ListingNotFoundError("listing not found")
        logger.info("deleted listing id=%s", doc_id)

    async def store_status(self) -> dict[str, Any]:
        try:
            await self.store.ping()
            listings_count = await self.store.count()
        except StoreError as exc:
            return {
                "status": "error",
                "backend": self.store.backend,
                "reachable": False,
                "message": str(exc),
            }
        return {
            "status": "ok",
            "backend": self.store.backend,
            "reachable": True,
            "listings_count": listings_count,
        }

    def _parse_id(self, listing_id: str) -> Any:
        try:
            return self.store.parse_id(listing_id)
        except (TypeError, ValueError) as exc:
            raise InvalidListingIdError("invalid listing id") from exc

    def _next_updated_at(self, current: Mapping[str, Any]) -> datetime:
        now = self._clock()
        # naive stored timestamps are UTC
        previous = [
            value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
            for value in (current.get("updatedAt"), current.get("createdAt"))
            if isinstance(value, datetime)
        ]
        return max([now, *previous])

    @staticmethod
    def _check_status_transition(from_status: Any, to_status: str) -> None:
        allowed = STATUS_TRANSITIONS.get(from_status) if isinstance(from_status, str) else None
        if allowed is None:
            return
        if to_status not in allowed:
            raise ListingConflictError(f"invalid status transition: {from_status} -> {to_status}")

    @staticmethod
    def _salary_range_from_bounds(salary_from: Any, salary_to: Any) -> str:
        lower = _coerce_salary_bound(salary_from)
        if lower is None:
            raise ListingValidationError("salaryFrom", "salaryFrom must be a whole number")
        upper = _coerce_salary_bound(salary_to)
        if upper is None:
            raise ListingValidationError("salaryTo", "salaryTo must be a whole number")
        try:
            return format_salary_range(lower, upper)
        except SalaryRangeError as exc:
            raise ListingValidationError("salaryTo", str(exc)) from exc


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _coerce_salary_bound(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _validation_error(exc: ValidationError) -> ListingValidationError:
    first = exc.errors()[0]
    loc = first.get("loc") or ("payload",)
    field = str(loc[0])
    return ListingValidationError(field, f"{field}: {first.get('msg', 'invalid value')}")


@lru_cache
def get_store() -> DocumentStore:
    settings = get_settings()
    if settings.store_backend == "memory":
        return InMemoryDocumentStore()
    return PostgresDocumentStore(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        connect_timeout_seconds=settings.database_connect_timeout_seconds,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )


@lru_cache
def get_listing_service() -> ListingService:
    settings = get_settings()
    return ListingService(get_store(), fallback_on_empty=settings.fallback_on_empty)
