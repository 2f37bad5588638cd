from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any

from ..excel.reader import ImportFileError, WorkbookRows, check_upload, read_workbook
from ..logging.error_log import ErrorLogBuffer
from ..models.commit_result import CommitResult
from ..models.config_models import ImportConfig
from ..models.import_state import SessionState
from ..models.reference import ReferenceData, ReferenceEntry
from ..models.staged import FarmerData, StagedFarm, StagedFarmer
from ..models.upload import UploadedFile
from .commit import CommitAborted, FarmerCommitter, commit_farmers
from .mapping import stage_workbook
from .validation import validate_staged_farmer

"""Import session: the staging store of one bulk upload.

The session owns the staged farmers exclusively (no shared global store).
It walks the lifecycle in models/import_state.py: a file is selected, parsed
into staged records, reviewed (edited / deleted / re-validated in place) and
finally committed through a persistence collaborator.

Edits never change a farmer's or farm's id, only data / is_valid / errors.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "SessionError",
    "InvalidSessionState",
    "StagedRecordNotFound",
    "UnknownFieldError",
    "CommitRefused",
    "PendingParse",
    "ImportSession",
]

FARMER_FIELDS = frozenset(f.name for f in dataclasses.fields(FarmerData))
FARM_FIELDS = frozenset({"name", "acreage", "crop_type", "soil_type", "location_lat", "location_lng"})


class SessionError(Exception):
    """Base exception for session operations."""


class InvalidSessionState(SessionError):
    pass


class StagedRecordNotFound(SessionError):
    pass


class UnknownFieldError(SessionError):
    pass


class CommitRefused(SessionError):
    """Commit requested while no staged farmer is valid."""


@dataclass(frozen=True)
class PendingParse:
    """Raw rows read from one file selection, waiting to be staged."""
    generation: int
    file_name: str
    rows: WorkbookRows


class ImportSession:
    """Mutable staging area for one import.

    Parameters
    ----------
    config: import configuration (upload limits, mapping defaults, staging options)
    reference: pre-fetched districts / organizations; defaults to config.reference
    organization: the organization every farmer of this upload joins
    auto_validate: re-validate the touched farmer after each edit
        (default from config.staging.auto_validate)
    """

    def __init__(
        self,
        config: ImportConfig | None = None,
        reference: ReferenceData | None = None,
        organization: ReferenceEntry | None = None,
        *,
        auto_validate: bool | None = None,
    ) -> None:
        self.config = config or ImportConfig()
        self.reference = reference if reference is not None else self.config.reference
        self.organization = organization
        self.auto_validate = self.config.staging.auto_validate if auto_validate is None else auto_validate
        self.state = SessionState.EMPTY
        self.file: UploadedFile | None = None
        self.generation = 0  # bumped whenever the selected file changes
        self.last_error: ImportFileError | None = None
        self.commit_result: CommitResult | None = None
        self._farmers: list[StagedFarmer] = []

    # ------------------------------------------------------------------ file

    def _require(self, allowed: bool, action: str) -> None:
        if not allowed:
            raise InvalidSessionState(f"cannot {action} while session is {self.state.value}")

    def _discard(self) -> None:
        self._farmers = []
        self.last_error = None
        self.commit_result = None
        self.generation += 1

    def set_file(self, upload: UploadedFile) -> None:
        """Select a file, discarding any earlier file and its staged records.

        Raises FileTooLarge / UnsupportedFileType; the session is then left
        EMPTY and a new file must be selected.
        """
        self._require(self.state.before_commit, "select a file")
        self._discard()
        self.file = None
        try:
            check_upload(upload, self.config.upload.max_file_size, self.config.upload.accepted_media_types)
        except ImportFileError as e:
            self.state = SessionState.EMPTY
            self.last_error = e
            logger.error(f"file rejected: {e}")
            raise
        self.file = upload
        self.state = SessionState.FILE_SELECTED
        logger.info(f"file selected: {upload.name} ({upload.size} bytes)")

    def remove_file(self) -> None:
        self._require(self.state.before_commit, "remove the file")
        self._discard()
        self.file = None
        self.state = SessionState.EMPTY

    def select_organization(self, organization: ReferenceEntry) -> None:
        """Set the organization for the upload; staged farmers pick up its name."""
        self._require(self.state.before_commit, "change the organization")
        self.organization = organization
        for farmer in self._farmers:
            farmer.data = dataclasses.replace(farmer.data, organization_name=organization.name)
        if self.auto_validate and self._farmers:
            self.validate_all()

    def read_file(self) -> PendingParse:
        """Decode the selected file into raw rows, leaving the session PARSING.

        The rows are tagged with the current generation; stage() drops them
        when another file has been selected or the file was removed since.
        On a file-level error the session becomes FAILED and the error is
        re-raised (also kept in last_error).
        """
        upload = self.file
        if upload is None or not self.state.before_commit:
            raise InvalidSessionState(f"cannot parse while session is {self.state.value}")
        self._farmers = []
        self.commit_result = None
        self.state = SessionState.PARSING
        try:
            rows = read_workbook(upload)
        except ImportFileError as e:
            self.state = SessionState.FAILED
            self.last_error = e
            logger.error(f"parse failed for {upload.name}: {e}")
            raise
        return PendingParse(generation=self.generation, file_name=upload.name, rows=rows)

    def stage(self, pending: PendingParse) -> list[StagedFarmer]:
        """Map and validate rows from read_file(); [] when they are stale."""
        if pending.generation != self.generation:
            logger.debug("discarding parse result of superseded file %s", pending.file_name)
            return []
        farmers = stage_workbook(
            pending.rows,
            defaults=self.config.defaults,
            organization_name=self.organization.name if self.organization else "",
        )
        self._farmers = farmers
        self.last_error = None
        self.validate_all()
        self.state = SessionState.STAGED
        logger.info(
            f"staged {len(farmers)} farmers ({self.valid_count} valid, {self.invalid_count} invalid) "
            f"with {self.farm_count} farms from {pending.file_name}"
        )
        return self.farmers

    def parse(self) -> list[StagedFarmer]:
        """Read, map and validate the selected file in one step."""
        return self.stage(self.read_file())

    # ---------------------------------------------------------------- lookup

    def get_farmer(self, farmer_id: str) -> StagedFarmer:
        for farmer in self._farmers:
            if farmer.id == farmer_id:
                return farmer
        raise StagedRecordNotFound(f"no staged farmer with id {farmer_id}")

    def get_farm(self, farmer_id: str, farm_id: str) -> StagedFarm:
        farm = self.get_farmer(farmer_id).find_farm(farm_id)
        if farm is None:
            raise StagedRecordNotFound(f"farmer {farmer_id} has no staged farm with id {farm_id}")
        return farm

    # ------------------------------------------------------------- mutation

    def _touch(self, farmer: StagedFarmer | None) -> None:
        self.state = SessionState.REVIEWING
        if self.auto_validate and farmer is not None:
            validate_staged_farmer(farmer, self.reference)

    def update_farmer(self, farmer_id: str, **changes: Any) -> StagedFarmer:
        """Merge changes into the farmer's data. Does not re-validate unless auto_validate."""
        self._require(self.state.is_editable, "edit farmers")
        unknown = set(changes) - FARMER_FIELDS
        if unknown:
            raise UnknownFieldError(f"unknown farmer fields: {sorted(unknown)}")
        farmer = self.get_farmer(farmer_id)
        farmer.data = dataclasses.replace(farmer.data, **changes)
        self._touch(farmer)
        return farmer

    def update_farm(self, farmer_id: str, farm_id: str, **changes: Any) -> StagedFarm:
        self._require(self.state.is_editable, "edit farms")
        unknown = set(changes) - FARM_FIELDS
        if unknown:
            raise UnknownFieldError(f"unknown farm fields: {sorted(unknown)}")
        farmer = self.get_farmer(farmer_id)
        farm = self.get_farm(farmer_id, farm_id)
        for name, value in changes.items():
            setattr(farm, name, value)
        self._touch(farmer)
        return farm

    def delete_farmer(self, farmer_id: str) -> None:
        """Remove the farmer together with all of its farms."""
        self._require(self.state.is_editable, "delete farmers")
        farmer = self.get_farmer(farmer_id)
        self._farmers = [f for f in self._farmers if f.id != farmer.id]
        self._touch(None)

    def delete_farm(self, farmer_id: str, farm_id: str) -> None:
        self._require(self.state.is_editable, "delete farms")
        farmer = self.get_farmer(farmer_id)
        farm = self.get_farm(farmer_id, farm_id)
        farmer.farms = [f for f in farmer.farms if f.id != farm.id]
        self._touch(farmer)

    def validate_all(self) -> None:
        """Re-run validation over every staged farmer and farm, in place."""
        for farmer in self._farmers:
            validate_staged_farmer(farmer, self.reference)

    # --------------------------------------------------------------- queries

    @property
    def farmers(self) -> list[StagedFarmer]:
        return list(self._farmers)

    @property
    def valid_farmers(self) -> list[StagedFarmer]:
        return [f for f in self._farmers if f.is_valid]

    @property
    def invalid_farmers(self) -> list[StagedFarmer]:
        return [f for f in self._farmers if not f.is_valid]

    @property
    def valid_count(self) -> int:
        return len(self.valid_farmers)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_farmers)

    @property
    def farm_count(self) -> int:
        return sum(len(f.farms) for f in self._farmers)

    def all_farms(self) -> list[StagedFarm]:
        return [farm for farmer in self._farmers for farm in farmer.farms]

    @property
    def invalid_farm_count(self) -> int:
        return sum(1 for farm in self.all_farms() if not farm.is_valid)

    @property
    def ready_to_continue(self) -> bool:
        """At least one valid farmer is staged."""
        return any(f.is_valid for f in self._farmers)

    # ---------------------------------------------------------------- commit

    def begin_commit(self) -> ReferenceEntry:
        """Re-validate and move to COMMITTING; refused when nothing is valid.

        Returns the organization the farmers are created under.
        """
        self._require(self.state.is_editable, "commit")
        self.validate_all()
        if not self.ready_to_continue:
            raise CommitRefused("no valid farmers to create; fix the errors first")
        organization = self.organization
        if organization is None:
            raise CommitRefused("no organization selected")
        self.state = SessionState.COMMITTING
        return organization

    def _settle(self, result: CommitResult, error_log: ErrorLogBuffer | None) -> None:
        # created rows leave the session whatever happens next
        self._farmers = [f for f in self._farmers if f.row_number not in result.committed]
        self.commit_result = result
        if error_log is not None and result.errors:
            error_log.add_commit_errors(self.file.name if self.file else "<unknown>", result.errors)

    def commit(
        self,
        committer: FarmerCommitter,
        error_log: ErrorLogBuffer | None = None,
        *,
        show_progress: bool | None = None,
    ) -> CommitResult:
        """Create every valid staged farmer through committer.

        Committed farmers leave the session; rejected and invalid ones stay
        staged, so a later commit() only sends what is left. The session is
        DONE once nothing is left, FAILED when rows were rejected, and back in
        REVIEWING when only invalid farmers remain.
        """
        organization = self.begin_commit()
        try:
            result = commit_farmers(
                self._farmers,
                committer,
                organization,
                self.reference,
                show_progress=show_progress,
            )
        except CommitAborted as e:
            self._settle(e.result, error_log)
            self.state = SessionState.FAILED
            raise

        self._settle(result, error_log)
        if result.failed:
            self.state = SessionState.FAILED
        elif self._farmers:
            self.state = SessionState.REVIEWING
        else:
            self.state = SessionState.DONE
        logger.info(f"commit finished: {result.successful} created, {result.failed} failed")
        return result
