import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status as http_status
from pydantic import ValidationError

from jobboard.schemas.listings import ListingDeleted, ListingOut
from jobboard.services.filtering import ALL, FilterConfig, filter_listings
from jobboard.services.listings import (
    InvalidListingIdError,
    ListingConflictError,
    ListingNotFoundError,
    ListingValidationError,
    get_listing_service,
)
from jobboard.services.store import StoreUnavailableError

router = APIRouter()
logger = logging.getLogger(__name__)

LISTINGS_SOURCE_HEADER = "X-Listings-Source"
LISTING_PERSISTED_HEADER = "X-Listing-Persisted"


@router.get("", response_model=list[ListingOut], response_model_exclude_none=True)
async def list_jobs(
    response: Response,
    q: str | None = Query(default=None),
    location: str | None = Query(default=None, min_length=1),
    job_type: str | None = Query(default=None, alias="jobType", min_length=1),
    salary_min_k: float | None = Query(default=None, alias="salaryMinK", ge=0),
    salary_max_k: float | None = Query(default=None, alias="salaryMaxK", ge=0),
    service=Depends(get_listing_service),
) -> list[ListingOut]:
    try:
        page = await service.list_listings()
    except Exception as exc:
        raise _unexpected_failure("list", exc, subject="listings") from exc
    response.headers[LISTINGS_SOURCE_HEADER] = page.source

    listings = page.listings
    if any(value is not None for value in (q, location, job_type, salary_min_k, salary_max_k)):
        config = FilterConfig(
            search_term=q or "",
            location=location or ALL,
            job_type=job_type or ALL,
            salary_range_k=(
                salary_min_k if salary_min_k is not None else 0,
                salary_max_k if salary_max_k is not None else math.inf,
            ),
        )
        listings = filter_listings(listings, config)
    return _served_listings(listings)


@router.get("/{listing_id}", response_model=ListingOut, response_model_exclude_none=True)
async def get_job(listing_id: str, service=Depends(get_listing_service)) -> ListingOut:
    try:
        listing = await service.get_listing(listing_id)
        served = ListingOut.model_validate(listing)
    except InvalidListingIdError as exc:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ListingNotFoundError as exc:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:
        raise _unexpected_failure("fetch", exc) from exc
    return served


@router.post(
    "",
    response_model=ListingOut,
    response_model_exclude_none=True,
    status_code=http_status.HTTP_201_CREATED,
)
async def create_job(
    response: Response,
    payload: dict[str, Any] = Body(...),
    service=Depends(get_listing_service),
) -> ListingOut:
    try:
        created = await service.create_listing(payload)
    except ListingValidationError as exc:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail={"error": exc.message, "field": exc.field},
        ) from exc
    except Exception as exc:
        raise _unexpected_failure("create", exc) from exc
    response.headers[LISTING_PERSISTED_HEADER] = "true" if created.persisted else "false"
    return ListingOut.model_validate(created.listing)


@router.put("/{listing_id}", response_model=ListingOut, response_model_exclude_none=True)
async def update_job(
    listing_id: str,
    patch: dict[str, Any] = Body(...),
    service=Depends(get_listing_service),
) -> ListingOut:
    try:
        listing = await service.update_listing(listing_id, patch)
    except InvalidListingIdError as exc:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ListingValidationError as exc:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail={"error": exc.message, "field": exc.field},
        ) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ListingNotFoundError as exc:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ListingConflictError as exc:
        raise HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except Exception as exc:
        raise _unexpected_failure("update", exc) from exc
    return ListingOut.model_validate(listing)


@router.delete("/{listing_id}", response_model=ListingDeleted)
async def delete_job(listing_id: str, service=Depends(get_listing_service)) -> ListingDeleted:
    try:
        await service.delete_listing(listing_id)
    except InvalidListingIdError as exc:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ListingNotFoundError as exc:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:
        raise _unexpected_failure("delete", exc) from exc
    return ListingDeleted()


def _served_listings(listings: Iterable[Mapping[str, Any]]) -> list[ListingOut]:
    served: list[ListingOut] = []
    for listing in listings:
        try:
            served.append(ListingOut.model_validate(listing))
        except ValidationError as exc:
            logger.warning(
                "skipping malformed listing id=%s errors=%s",
                listing.get("id"),
                exc.error_count(),
            )
    return served


def _unexpected_failure(action: str, exc: Exception, subject: str = "listing") -> HTTPException:
    logger.exception("failed to %s %s", action, subject)
    return HTTPException(
        status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": f"failed to {action} {subject}",
            "details": str(exc),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
