from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from jobboard.services.salary import parse_salary_range

ListingStatus = Literal["draft", "published"]
Location = Literal["Bangalore", "Mumbai", "Delhi", "Pune", "Chennai", "Hyderabad"]
JobType = Literal["Full-time", "Part-time", "Contract", "Internship"]

REQUIRED_LISTING_FIELDS = (
    "title",
    "companyName",
    "location",
    "jobType",
    "salaryRange",
    "description",
    "applicationDeadline",
)


def _validate_salary_range(value: str) -> str:
    bounds = parse_salary_range(value)
    if bounds is None:
        raise ValueError("salary range must look like '₹<min>L - ₹<max>L'")
    if bounds[1] <= bounds[0]:
        raise ValueError("maximum salary must be greater than minimum salary")
    return value.strip()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ListingOut(BaseModel):
    """Listing as served; stored values that are not timestamps pass through untouched."""

    id: str
    title: str | None = None
    company_name: str | None = None
    location: str | None = None
    job_type: str | None = None
    salary_range: str | None = None
    description: str | None = None
    application_deadline: str | int | float | None = None
    status: str | None = None
    created_at: str | int | float | None = None
    updated_at: str | int | float | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ListingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    company_name: str = Field(min_length=1, max_length=100)
    location: Location
    job_type: JobType
    salary_range: str
    description: str = Field(min_length=10, max_length=2000)
    application_deadline: datetime
    status: ListingStatus = "published"

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    @field_validator("salary_range")
    @classmethod
    def check_salary_range(cls, value: str) -> str:
        return _validate_salary_range(value)

    @field_validator("application_deadline")
    @classmethod
    def deadline_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class ListingPatch(BaseModel):
    """Partial update; only the fields listed here may be changed."""

    title: str | None = Field(default=None, min_length=1, max_length=100)
    company_name: str | None = Field(default=None, min_length=1, max_length=100)
    location: Location | None = None
    job_type: JobType | None = None
    salary_range: str | None = None
    description: str | None = Field(default=None, min_length=10, max_length=2000)
    application_deadline: datetime | None = None
    status: ListingStatus | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("field cannot be null")
        return value

    @field_validator("salary_range")
    @classmethod
    def check_salary_range(cls, value: str | None) -> str | None:
        return _validate_salary_range(value) if value is not None else None

    @field_validator("application_deadline")
    @classmethod
    def deadline_as_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None

    def to_document_fields(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class ListingDeleted(BaseModel):
    message: str = "listing deleted"


class StoreStatusOut(BaseModel):
    status: Literal["ok", "error"]
    backend: str
    reachable: bool
    listings_count: int | None = None
    message: str | None = None
