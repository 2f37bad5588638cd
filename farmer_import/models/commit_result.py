from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

"""Commit payload and result models.

The payload is what the persistence collaborator receives: free-text
district/organization names have already been resolved to ids. The result
aggregates per-row outcomes of one commit attempt.
"""

__all__ = [
    "FarmPayload",
    "FarmerPayload",
    "CommittedFarmer",
    "CommitError",
    "CommitResult",
]


@dataclass(frozen=True)
class FarmPayload:
    name: str
    acreage: float | None = None
    crop_type: str | None = None
    soil_type: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None


@dataclass(frozen=True)
class FarmerPayload:
    first_name: str
    last_name: str
    gender: str
    organization_id: str
    phone: str | None = None
    email: str | None = None
    date_of_birth: date | None = None
    community: str | None = None
    address: str | None = None
    district_id: str | None = None
    id_type: str | None = None
    id_number: str | None = None
    household_size: int | None = None
    is_leader: bool = False
    is_phone_smart: bool = False
    legacy_farmer_id: str | None = None


@dataclass(frozen=True)
class CommittedFarmer:
    """Identifiers handed back by the persistence collaborator."""
    farmer_id: Any
    farm_ids: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class CommitError:
    """One farmer rejected at commit time, kept for display after the batch."""
    row: int
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommitResult:
    """Aggregated outcome of one commit attempt (partial success allowed)."""
    successful: int
    failed: int
    errors: list[CommitError] = field(default_factory=list)
    committed: dict[int, CommittedFarmer] = field(default_factory=dict)  # row -> ids
    farms_created: int = 0
    farms_skipped: int = 0  # invalid farms left out of created farmers
    elapsed_seconds: float = 0.0

    @property
    def total(self) -> int:
        return self.successful + self.failed
