"""Sample listings served when the store cannot provide any."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from jobboard.services.normalizer import to_iso8601

_SAMPLES: tuple[dict[str, Any], ...] = (
    {
        "id": "sample-1",
        "title": "Full Stack Developer",
        "companyName": "Amazon",
        "location": "Bangalore",
        "jobType": "Full-time",
        "salaryRange": "₹70L - ₹90L",
        "description": (
            "A user-friendly interface lets you browse stunning photos and videos. Filter destinations based on "
            "interests and travel style, and create personalized itineraries."
        ),
        "deadline_in_days": 30,
        "created_hours_ago": 20,
    },
    {
        "id": "sample-2",
        "title": "Node.js Developer",
        "companyName": "Google",
        "location": "Mumbai",
        "jobType": "Full-time",
        "salaryRange": "₹60L - ₹80L",
        "description": (
            "Join our backend team to build scalable APIs and microservices. Work with cutting-edge technologies "
            "and contribute to products used by millions."
        ),
        "deadline_in_days": 25,
        "created_hours_ago": 20,
    },
    {
        "id": "sample-3",
        "title": "UX/UI Designer",
        "companyName": "Microsoft",
        "location": "Delhi",
        "jobType": "Full-time",
        "salaryRange": "₹55L - ₹75L",
        "description": (
            "Create intuitive and beautiful user experiences for our enterprise software products. Collaborate "
            "with product managers and engineers."
        ),
        "deadline_in_days": 35,
        "created_hours_ago": 20,
    },
    {
        "id": "sample-4",
        "title": "Frontend Developer",
        "companyName": "Meta",
        "location": "Pune",
        "jobType": "Contract",
        "salaryRange": "₹50L - ₹70L",
        "description": (
            "Build responsive and interactive user interfaces using React and modern frontend technologies. "
            "Focus on performance and user experience."
        ),
        "deadline_in_days": 20,
        "created_hours_ago": 24,
    },
)

FALLBACK_LISTING_IDS = tuple(sample["id"] for sample in _SAMPLES)


def build_fallback_listings(now: datetime) -> list[dict[str, Any]]:
    """Wire records for the sample set, with dates anchored at ``now``."""
    listings: list[dict[str, Any]] = []
    for sample in _SAMPLES:
        listing = {
            key: value for key, value in sample.items() if key not in {"deadline_in_days", "created_hours_ago"}
        }
        listing["applicationDeadline"] = to_iso8601(now + timedelta(days=sample["deadline_in_days"]))
        listing["status"] = "published"
        listing["createdAt"] = to_iso8601(now - timedelta(hours=sample["created_hours_ago"]))
        listings.append(listing)
    return listings


def build_seed_documents(now: datetime) -> list[dict[str, Any]]:
    """Store documents for the sample set, with native timestamps."""
    documents: list[dict[str, Any]] = []
    for sample in _SAMPLES:
        created_at = now - timedelta(hours=sample["created_hours_ago"])
        documents.append(
            {
                "title": sample["title"],
                "companyName": sample["companyName"],
                "location": sample["location"],
                "jobType": sample["jobType"],
                "salaryRange": sample["salaryRange"],
                "description": sample["description"],
                "applicationDeadline": now + timedelta(days=sample["deadline_in_days"]),
                "status": "published",
                "createdAt": created_at,
                "updatedAt": created_at,
            }
        )
    return documents
