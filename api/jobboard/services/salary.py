"""Salary range strings in lakh units, e.g. ``₹5L - ₹10L``."""

from __future__ import annotations

import re

SALARY_RANGE_RE = re.compile(r"^₹(\d+)L - ₹(\d+)L$")
THOUSANDS_PER_LAKH = 10


class SalaryRangeError(ValueError):
    """Raised when raw salary bounds cannot form a valid range."""


def format_salary_range(salary_from: int, salary_to: int) -> str:
    if salary_from < 0 or salary_to < 0:
        raise SalaryRangeError("salary bounds must be non-negative")
    if salary_to <= salary_from:
        raise SalaryRangeError("maximum salary must be greater than minimum salary")
    return f"₹{salary_from}L - ₹{salary_to}L"


def parse_salary_range(value: str) -> tuple[int, int] | None:
    match = SALARY_RANGE_RE.match(value.strip())
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def salary_floor_thousands(value: object) -> int | None:
    """Lower bound of a salary range converted from lakh to thousands.

    Returns None unless the whole value is a ``₹<min>L - ₹<max>L`` range, so
    partial strings such as ``Up to ₹50L`` are treated as unparseable.
    """
    if not isinstance(value, str):
        return None
    bounds = parse_salary_range(value)
    if bounds is None:
        return None
    return bounds[0] * THOUSANDS_PER_LAKH
