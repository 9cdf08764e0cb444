from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from jobboard.services.salary import salary_floor_thousands

ALL = "all"
DEFAULT_SALARY_RANGE_K: tuple[float, float] = (50, 150)


@dataclass(frozen=True, slots=True)
class FilterConfig:
    search_term: str = ""
    location: str = ALL
    job_type: str = ALL
    salary_range_k: tuple[float, float] = DEFAULT_SALARY_RANGE_K


def filter_listings(listings: Iterable[Mapping[str, Any]], config: FilterConfig) -> list[Mapping[str, Any]]:
    """Keep the listings that pass every predicate, in input order."""
    return [listing for listing in listings if matches(listing, config)]


def matches(listing: Mapping[str, Any], config: FilterConfig) -> bool:
    return (
        _matches_search(listing, config.search_term)
        and _matches_exact(listing.get("location"), config.location)
        and _matches_exact(listing.get("jobType"), config.job_type)
        and _matches_salary(listing.get("salaryRange"), config.salary_range_k)
    )


def _matches_search(listing: Mapping[str, Any], search_term: str) -> bool:
    if not search_term:
        return True
    needle = search_term.lower()
    for field in ("title", "companyName"):
        value = listing.get(field)
        if isinstance(value, str) and needle in value.lower():
            return True
    return False


def _matches_exact(value: Any, selected: str) -> bool:
    if not selected or selected == ALL:
        return True
    return value == selected


def _matches_salary(salary_range: Any, salary_range_k: tuple[float, float]) -> bool:
    floor_k = salary_floor_thousands(salary_range)
    if floor_k is None:
        # unparseable salary data is never hidden
        return True
    low, high = salary_range_k
    return low <= floor_k <= high
