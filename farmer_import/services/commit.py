from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Protocol

from ..models.commit_result import (
    CommitError,
    CommitResult,
    CommittedFarmer,
    FarmerPayload,
    FarmPayload,
)
from ..models.reference import ReferenceData, ReferenceEntry
from ..models.staged import StagedFarm, StagedFarmer
from .progress import ProgressTracker

"""Commit stage: staged farmers -> persistent farmers via a collaborator.

The persistence collaborator is called once per valid farmer, in row order.
A rejected farmer is recorded as a per-row CommitError and the loop moves on;
farmers created earlier in the batch are kept (partial success, at most one
attempt per row per call).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CommitFailure",
    "ResolutionError",
    "CommitAborted",
    "FarmerCommitter",
    "InMemoryCommitter",
    "build_farm_payload",
    "build_payload",
    "commit_farmers",
]


class CommitFailure(Exception):
    """A single farmer was rejected by the persistence layer."""


class ResolutionError(CommitFailure):
    """A free-text name could not be resolved to a reference id."""


class CommitAborted(Exception):
    """The collaborator failed in a way that stops the whole batch.

    result holds what was created before the failure; those rows must not
    be sent again.
    """

    def __init__(self, message: str, result: CommitResult) -> None:
        super().__init__(message)
        self.result = result


class FarmerCommitter(Protocol):
    def create_farmer_with_farms(
        self, farmer: FarmerPayload, farms: Sequence[FarmPayload]
    ) -> CommittedFarmer:
        ...


class InMemoryCommitter:
    """Dry-run collaborator: keeps created farmers in memory.

    Phone numbers must be unique across everything it has created, the
    same way the persistence layer rejects a duplicate phone.
    """

    def __init__(self) -> None:
        self.farmers: list[FarmerPayload] = []
        self.farms: dict[int, list[FarmPayload]] = {}
        self._phones: set[str] = set()
        self._next_farm_id = 1

    def create_farmer_with_farms(
        self, farmer: FarmerPayload, farms: Sequence[FarmPayload]
    ) -> CommittedFarmer:
        if farmer.phone and farmer.phone in self._phones:
            raise CommitFailure(f"Phone number already registered: {farmer.phone}")
        if farmer.phone:
            self._phones.add(farmer.phone)
        self.farmers.append(farmer)
        farmer_id = len(self.farmers)
        self.farms[farmer_id] = list(farms)
        farm_ids = list(range(self._next_farm_id, self._next_farm_id + len(farms)))
        self._next_farm_id += len(farms)
        return CommittedFarmer(farmer_id=farmer_id, farm_ids=farm_ids)


def _or_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_farm_payload(farm: StagedFarm) -> FarmPayload:
    return FarmPayload(
        name=farm.name.strip(),
        acreage=farm.acreage or None,
        crop_type=_or_none(farm.crop_type),
        soil_type=_or_none(farm.soil_type),
        location_lat=farm.location_lat,
        location_lng=farm.location_lng,
    )


def build_payload(
    staged: StagedFarmer,
    organization: ReferenceEntry,
    reference: ReferenceData | None = None,
) -> tuple[FarmerPayload, list[FarmPayload]]:
    """Resolve names to ids and build the collaborator payload.

    Only valid farms are included. When a district reference list is loaded
    the district name must resolve; without one the district is left unset.

    Raises
    ------
    ResolutionError: district name does not match the reference list
    """
    data = staged.data
    district_id: str | None = None
    if reference is not None and reference.districts:
        district = reference.find_district(data.district_name)
        if district is None:
            raise ResolutionError(f"Unknown district: {data.district_name}")
        district_id = district.id

    dob: date | None = None
    if data.date_of_birth:
        try:
            dob = date.fromisoformat(data.date_of_birth)
        except ValueError as e:
            raise ResolutionError(f"Invalid date of birth: {data.date_of_birth}") from e

    farmer = FarmerPayload(
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        gender=data.gender,
        organization_id=organization.id,
        phone=_or_none(data.phone),
        email=_or_none(data.email),
        date_of_birth=dob,
        community=_or_none(data.community),
        address=_or_none(data.address),
        district_id=district_id,
        id_type=_or_none(data.id_type),
        id_number=_or_none(data.id_number),
        household_size=data.household_size or None,
        is_leader=data.is_leader,
        is_phone_smart=data.is_phone_smart,
        legacy_farmer_id=_or_none(data.legacy_farmer_id),
    )
    return farmer, [build_farm_payload(f) for f in staged.valid_farms]


def _error_data(staged: StagedFarmer) -> dict[str, str]:
    return {
        "first_name": staged.data.first_name,
        "last_name": staged.data.last_name,
        "district_name": staged.data.district_name,
    }


def commit_farmers(
    farmers: Sequence[StagedFarmer],
    committer: FarmerCommitter,
    organization: ReferenceEntry,
    reference: ReferenceData | None = None,
    *,
    show_progress: bool | None = None,
) -> CommitResult:
    """Create every valid farmer through committer and collect per-row outcomes.

    Invalid farmers are skipped (they are neither successful nor failed).
    Invalid farms of a created farmer are counted in farms_skipped.

    Raises
    ------
    CommitAborted: committer raised something other than CommitFailure; the
        exception carries the rows created before it
    """
    start = datetime.now(UTC)
    to_commit = sorted((f for f in farmers if f.is_valid), key=lambda f: f.row_number)

    farms_created = 0
    farms_skipped = 0
    errors: list[CommitError] = []
    committed: dict[int, CommittedFarmer] = {}

    def result() -> CommitResult:
        return CommitResult(
            successful=len(committed),
            failed=len(errors),
            errors=list(errors),
            committed=dict(committed),
            farms_created=farms_created,
            farms_skipped=farms_skipped,
            elapsed_seconds=(datetime.now(UTC) - start).total_seconds(),
        )

    with ProgressTracker(len(to_commit), enabled=show_progress) as progress:
        for staged in to_commit:
            progress.start_farmer(staged.row_number, staged.data.full_name)
            try:
                payload, farm_payloads = build_payload(staged, organization, reference)
                created = committer.create_farmer_with_farms(payload, farm_payloads)
            except CommitFailure as e:
                message = str(e) or "Failed to create farmer"
                errors.append(CommitError(row=staged.row_number, message=message, data=_error_data(staged)))
                logger.warning(message, extra={"row": staged.row_number})
                progress.finish_farmer(success=False)
                continue
            except Exception as e:
                progress.finish_farmer(success=False)
                raise CommitAborted(f"row {staged.row_number}: {e}", result()) from e
            farms_created += len(created.farm_ids)
            skipped = len(staged.farms) - len(farm_payloads)
            farms_skipped += skipped
            committed[staged.row_number] = created
            if skipped:
                logger.warning(f"{skipped} invalid farm(s) not created", extra={"row": staged.row_number})
            logger.debug(
                "created farmer_id=%s farms=%d",
                created.farmer_id,
                len(created.farm_ids),
                extra={"row": staged.row_number},
            )
            progress.finish_farmer(success=True)

    return result()
