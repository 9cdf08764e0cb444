from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import pytest

from jobboard.services.fallback import FALLBACK_LISTING_IDS, build_fallback_listings
from jobboard.services.listings import (
    OFFLINE_ID_PREFIX,
    InvalidListingIdError,
    ListingConflictError,
    ListingNotFoundError,
    ListingService,
    ListingValidationError,
)
from jobboard.services.store import InMemoryDocumentStore, StoreUnavailableError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
REQUIRED_FIELDS = [
    "title",
    "companyName",
    "location",
    "jobType",
    "salaryRange",
    "description",
    "applicationDeadline",
]


class UnavailableStore(InMemoryDocumentStore):
    async def find(self, filter: Any, *, sort: Any = None) -> list[dict[str, Any]]:
        raise StoreUnavailableError("database unavailable")

    async def find_one(self, doc_id: UUID) -> dict[str, Any] | None:
        raise StoreUnavailableError("database unavailable")

    async def insert_one(self, document: Any) -> UUID:
        raise StoreUnavailableError("database unavailable")

    async def update_one(self, doc_id: UUID, fields: Any) -> int:
        raise StoreUnavailableError("database unavailable")

    async def delete_one(self, doc_id: UUID) -> int:
        raise StoreUnavailableError("database unavailable")


class TickingClock:
    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


def _payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "title": "Backend Engineer",
        "companyName": "Acme",
        "location": "Pune",
        "jobType": "Full-time",
        "salaryRange": "₹15L - ₹25L",
        "description": "Build and operate listing APIs for the job board.",
        "applicationDeadline": "2026-12-01T00:00:00Z",
    }
    payload.update(overrides)
    return payload


def _document(**overrides: Any) -> dict[str, Any]:
    document: dict[str, Any] = {
        "title": "Backend Engineer",
        "companyName": "Acme",
        "location": "Pune",
        "jobType": "Full-time",
        "salaryRange": "₹15L - ₹25L",
        "description": "Build and operate listing APIs for the job board.",
        "applicationDeadline": datetime(2026, 12, 1, tzinfo=timezone.utc),
        "status": "published",
        "createdAt": NOW - timedelta(days=1),
        "updatedAt": NOW - timedelta(days=1),
    }
    document.update(overrides)
    return document


def _service(store: InMemoryDocumentStore, **kwargs: Any) -> ListingService:
    kwargs.setdefault("clock", lambda: NOW)
    return ListingService(store, **kwargs)


def test_list_returns_only_published_newest_first() -> None:
    store = InMemoryDocumentStore(
        [
            _document(title="Older", createdAt=NOW - timedelta(days=3)),
            _document(title="Draft", status="draft", createdAt=NOW),
            _document(title="Newer", createdAt=NOW - timedelta(hours=1)),
        ]
    )

    page = asyncio.run(_service(store).list_listings())

    assert page.source == "store"
    assert [listing["title"] for listing in page.listings] == ["Newer", "Older"]
    assert all(listing["status"] == "published" for listing in page.listings)
    assert all("_id" not in listing for listing in page.listings)


def test_list_serves_fallback_when_store_is_empty() -> None:
    store = InMemoryDocumentStore([_document(status="draft")])

    page = asyncio.run(_service(store).list_listings())

    assert page.source == "fallback"
    assert page.listings == build_fallback_listings(NOW)
    assert [listing["id"] for listing in page.listings] == list(FALLBACK_LISTING_IDS)


def test_list_returns_empty_result_when_fallback_on_empty_is_disabled() -> None:
    page = asyncio.run(_service(InMemoryDocumentStore(), fallback_on_empty=False).list_listings())

    assert page.source == "store"
    assert page.listings == []


def test_list_serves_fallback_when_store_is_unavailable() -> None:
    page = asyncio.run(_service(UnavailableStore(), fallback_on_empty=False).list_listings())

    assert page.source == "fallback"
    assert page.listings == build_fallback_listings(NOW)


def test_non_published_query_never_uses_fallback() -> None:
    service = _service(UnavailableStore())

    with pytest.raises(StoreUnavailableError):
        asyncio.run(service.list_listings(status="draft"))

    page = asyncio.run(_service(InMemoryDocumentStore()).list_listings(status="draft"))
    assert page.listings == []


@pytest.mark.parametrize("listing_id", ["abc", "sample-1", "", "12345", "6f1c2a8e4b1d4d599a630b6f2f7c1e11"])
def test_get_rejects_malformed_ids_before_lookup(listing_id: str) -> None:
    with pytest.raises(InvalidListingIdError):
        asyncio.run(_service(InMemoryDocumentStore()).get_listing(listing_id))
    with pytest.raises(InvalidListingIdError):
        asyncio.run(_service(UnavailableStore()).get_listing(listing_id))


def test_get_reports_missing_listing_without_fallback() -> None:
    with pytest.raises(ListingNotFoundError):
        asyncio.run(_service(InMemoryDocumentStore()).get_listing(str(uuid4())))


def test_get_surfaces_store_unavailability() -> None:
    with pytest.raises(StoreUnavailableError):
        asyncio.run(_service(UnavailableStore()).get_listing(str(uuid4())))


def test_list_passes_plain_stored_values_through() -> None:
    store = InMemoryDocumentStore(
        [
            _document(title="Epoch deadline", applicationDeadline=1767225600000),
            _document(
                title="Text timestamps",
                applicationDeadline="2026-12-31",
                createdAt="2026-10-01T00:00:00.000Z",
                updatedAt="2026-10-02T00:00:00.000Z",
            ),
        ]
    )

    page = asyncio.run(_service(store).list_listings())

    by_title = {listing["title"]: listing for listing in page.listings}
    assert page.source == "store"
    assert by_title["Epoch deadline"]["applicationDeadline"] == 1767225600000
    assert by_title["Text timestamps"]["applicationDeadline"] == "2026-12-31"
    assert by_title["Text timestamps"]["createdAt"] == "2026-10-01T00:00:00.000Z"
    assert by_title["Text timestamps"]["updatedAt"] == "2026-10-02T00:00:00.000Z"


def test_get_returns_normalized_listing() -> None:
    store = InMemoryDocumentStore()
    doc_id = asyncio.run(store.insert_one(_document()))

    listing = asyncio.run(_service(store).get_listing(str(doc_id)))

    assert listing["id"] == str(doc_id)
    assert listing["applicationDeadline"] == "2026-12-01T00:00:00.000Z"


@pytest.mark.parametrize("field", REQUIRED_FIELDS)
def test_create_names_the_missing_required_field(field: str) -> None:
    store = InMemoryDocumentStore()
    payload = _payload()
    payload.pop(field)

    with pytest.raises(ListingValidationError) as exc_info:
        asyncio.run(_service(store).create_listing(payload))

    assert exc_info.value.field == field
    assert exc_info.value.message == f"{field} is required"
    assert asyncio.run(store.count()) == 0


def test_create_treats_blank_values_as_missing() -> None:
    with pytest.raises(ListingValidationError) as exc_info:
        asyncio.run(_service(InMemoryDocumentStore()).create_listing(_payload(companyName="  ")))

    assert exc_info.value.field == "companyName"


def test_create_defaults_status_and_assigns_timestamps() -> None:
    store = InMemoryDocumentStore()

    created = asyncio.run(_service(store).create_listing(_payload(createdAt="1999-01-01T00:00:00Z")))

    listing = created.listing
    assert created.persisted is True
    assert listing["status"] == "published"
    assert listing["createdAt"] == "2026-10-19T12:00:00.000Z"
    assert listing["updatedAt"] == "2026-10-19T12:00:00.000Z"
    assert listing["applicationDeadline"] == "2026-12-01T00:00:00.000Z"
    stored = asyncio.run(store.find_one(UUID(listing["id"])))
    assert stored is not None
    assert stored["applicationDeadline"] == datetime(2026, 12, 1, tzinfo=timezone.utc)


def test_create_keeps_draft_status() -> None:
    created = asyncio.run(_service(InMemoryDocumentStore()).create_listing(_payload(status="draft")))

    assert created.listing["status"] == "draft"


def test_create_builds_salary_range_from_bounds() -> None:
    payload = _payload(salaryFrom="15", salaryTo=25)
    payload.pop("salaryRange")

    created = asyncio.run(_service(InMemoryDocumentStore()).create_listing(payload))

    assert created.listing["salaryRange"] == "₹15L - ₹25L"
    assert "salaryFrom" not in created.listing


def test_create_rejects_inverted_salary_bounds_before_store() -> None:
    store = InMemoryDocumentStore()
    payload = _payload(salaryFrom=15, salaryTo=5)
    payload.pop("salaryRange")

    with pytest.raises(ListingValidationError) as exc_info:
        asyncio.run(_service(store).create_listing(payload))

    assert exc_info.value.field == "salaryTo"
    assert "maximum salary must be greater than minimum salary" in exc_info.value.message
    assert asyncio.run(store.count()) == 0


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"title": "x" * 101}, "title"),
        ({"location": "Atlantis"}, "location"),
        ({"jobType": "Freelance"}, "jobType"),
        ({"salaryRange": "₹25L - ₹15L"}, "salaryRange"),
        ({"salaryRange": "lots"}, "salaryRange"),
        ({"description": "too short"}, "description"),
        ({"applicationDeadline": "not a date"}, "applicationDeadline"),
        ({"status": "archived"}, "status"),
    ],
)
def test_create_validates_field_constraints(overrides: dict[str, Any], field: str) -> None:
    with pytest.raises(ListingValidationError) as exc_info:
        asyncio.run(_service(InMemoryDocumentStore()).create_listing(_payload(**overrides)))

    assert exc_info.value.field == field


def test_create_returns_unsaved_listing_when_store_is_unavailable() -> None:
    created = asyncio.run(_service(UnavailableStore()).create_listing(_payload()))

    assert created.persisted is False
    assert created.listing["id"] == f"{OFFLINE_ID_PREFIX}{int(NOW.timestamp() * 1000)}"
    assert created.listing["title"] == "Backend Engineer"
    assert created.listing["createdAt"] == "2026-10-19T12:00:00.000Z"


def test_update_with_empty_patch_refreshes_updated_at() -> None:
    store = InMemoryDocumentStore()
    doc_id = asyncio.run(store.insert_one(_document()))
    service = _service(store, clock=TickingClock(NOW))

    first = asyncio.run(service.update_listing(str(doc_id), {}))
    second = asyncio.run(service.update_listing(str(doc_id), {}))

    assert first["updatedAt"] == "2026-10-19T12:00:00.000Z"
    assert second["updatedAt"] == "2026-10-19T12:00:01.000Z"
    assert first["title"] == second["title"] == "Backend Engineer"


def test_update_never_moves_updated_at_backwards() -> None:
    store = InMemoryDocumentStore()
    doc_id = asyncio.run(store.insert_one(_document(updatedAt=NOW + timedelta(hours=2))))

    updated = asyncio.run(_service(store).update_listing(str(doc_id), {"title": "Platform Engineer"}))

    assert updated["title"] == "Platform Engineer"
    assert updated["updatedAt"] == "2026-10-19T14:00:00.000Z"


def test_update_reads_naive_stored_timestamps_as_utc() -> None:
    store = InMemoryDocumentStore()
    naive_later = (NOW + timedelta(hours=3)).replace(tzinfo=None)
    doc_id = asyncio.run(store.insert_one(_document(updatedAt=naive_later, createdAt=naive_later)))

    updated = asyncio.run(_service(store).update_listing(str(doc_id), {}))

    assert updated["updatedAt"] == "2026-10-19T15:00:00.000Z"


def test_update_reparses_text_deadline() -> None:
    store = InMemoryDocumentStore()
    doc_id = asyncio.run(store.insert_one(_document()))

    updated = asyncio.run(
        _service(store).update_listing(str(doc_id), {"applicationDeadline": "2027-01-15T10:00:00+05:30"})
    )

    assert updated["applicationDeadline"] == "2027-01-15T04:30:00.000Z"
    stored = asyncio.run(store.find_one(doc_id))
    assert stored is not None
    assert isinstance(stored["applicationDeadline"], datetime)


@pytest.mark.parametrize(
    ("patch", "field"),
    [
        ({"companyLogo": "https://example.com/logo.png"}, "companyLogo"),
        ({"createdAt": "2026-01-01T00:00:00Z"}, "createdAt"),
        ({"title": None}, "title"),
        ({"jobType": "Freelance"}, "jobType"),
    ],
)
def test_update_rejects_unknown_or_invalid_fields(patch: dict[str, Any], field: str) -> None:
    store = InMemoryDocumentStore()
    doc_id = asyncio.run(store.insert_one(_document()))

    with pytest.raises(ListingValidationError) as exc_info:
        asyncio.run(_service(store).update_listing(str(doc_id), patch))

    assert exc_info.value.field == field


def test_update_publishes_draft_but_never_unpublishes() -> None:
    store = InMemoryDocumentStore()
    draft_id = asyncio.run(store.insert_one(_document(status="draft")))
    published_id = asyncio.run(store.insert_one(_document(status="published")))
    service = _service(store)

    published = asyncio.run(service.update_listing(str(draft_id), {"status": "published"}))
    assert published["status"] == "published"

    with pytest.raises(ListingConflictError):
        asyncio.run(service.update_listing(str(published_id), {"status": "draft"}))


def test_update_error_rules_match_get() -> None:
    with pytest.raises(InvalidListingIdError):
        asyncio.run(_service(InMemoryDocumentStore()).update_listing("nope", {}))
    with pytest.raises(ListingNotFoundError):
        asyncio.run(_service(InMemoryDocumentStore()).update_listing(str(uuid4()), {}))
    with pytest.raises(StoreUnavailableError):
        asyncio.run(_service(UnavailableStore()).update_listing(str(uuid4()), {}))


def test_delete_removes_listing() -> None:
    store = InMemoryDocumentStore()
    doc_id = asyncio.run(store.insert_one(_document()))
    service = _service(store)

    asyncio.run(service.delete_listing(str(doc_id)))

    with pytest.raises(ListingNotFoundError):
        asyncio.run(service.get_listing(str(doc_id)))
    with pytest.raises(ListingNotFoundError):
        asyncio.run(service.delete_listing(str(doc_id)))


def test_delete_error_rules_match_get() -> None:
    with pytest.raises(InvalidListingIdError):
        asyncio.run(_service(UnavailableStore()).delete_listing("sample-1"))
    with pytest.raises(StoreUnavailableError):
        asyncio.run(_service(UnavailableStore()).delete_listing(str(uuid4())))
