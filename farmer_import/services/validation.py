from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..models.reference import ReferenceData
from ..models.staged import FieldError, Gender, IdType, SoilType, StagedFarm, StagedFarmer

"""Validation engine.

One rule table serves both the bulk import (district / organization given by
name) and the single-farmer manual entry form (given by id). Each rule
reports at most one message for its field, and errors come out in the order
the rules are declared, which is the order the review screen shows them.

All checks are pure: reference lists are pre-fetched and passed in.
"""

__all__ = [
    "ValidationResult",
    "FieldRule",
    "FARMER_RULES",
    "MANUAL_FARMER_RULES",
    "FARM_RULES",
    "PHONE_MIN_LENGTH",
    "ADDRESS_MIN_LENGTH",
    "ID_NUMBER_MIN_LENGTH",
    "validate_farmer",
    "validate_manual_farmer",
    "validate_farm",
    "validate_staged_farmer",
]

PHONE_MIN_LENGTH = 6
ADDRESS_MIN_LENGTH = 5
ID_NUMBER_MIN_LENGTH = 5

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

GENDERS = frozenset(g.value for g in Gender)
ID_TYPES = frozenset(t.value for t in IdType)
SOIL_TYPES = frozenset(s.value for s in SoilType)

Check = Callable[[Any, ReferenceData | None], str | None]


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: list[FieldError] = field(default_factory=list)


@dataclass(frozen=True)
class FieldRule:
    field: str
    check: Check

    def apply(self, record: Any, reference: ReferenceData | None) -> FieldError | None:
        if isinstance(record, Mapping):
            value = record.get(self.field)
        else:
            value = getattr(record, self.field, None)
        message = self.check(value, reference)
        if message is None:
            return None
        return FieldError(field=self.field, message=message)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def required(message: str) -> Check:
    def check(value: Any, _ref: ReferenceData | None) -> str | None:
        return message if not _text(value) else None
    return check


def min_length(length: int, message: str, missing_message: str | None = None) -> Check:
    def check(value: Any, _ref: ReferenceData | None) -> str | None:
        text = _text(value)
        if not text and missing_message:
            return missing_message
        return message if len(text) < length else None
    return check


def one_of(choices: frozenset[str], message: str, allow_empty: bool = False) -> Check:
    def check(value: Any, _ref: ReferenceData | None) -> str | None:
        text = _text(value)
        if not text and allow_empty:
            return None
        return message if text not in choices else None
    return check


def _check_email(value: Any, _ref: ReferenceData | None) -> str | None:
    text = _text(value)
    if text and not EMAIL_RE.match(text):
        return "Invalid email format"
    return None


def _check_date_of_birth(value: Any, _ref: ReferenceData | None) -> str | None:
    text = _text(value)
    if not text:
        return "Date of birth is required"
    if not DATE_RE.match(text):
        return "Date must be in YYYY-MM-DD format"
    try:
        date.fromisoformat(text)
    except ValueError:
        return "Invalid date"
    return None


def _check_district_name(value: Any, ref: ReferenceData | None) -> str | None:
    text = _text(value)
    if not text:
        return "District name is required"
    if ref is not None and ref.districts and ref.find_district(text) is None:
        return f"Unknown district: {text}"
    return None


def _check_organization_name(value: Any, ref: ReferenceData | None) -> str | None:
    text = _text(value)
    if not text:
        return "Organization is required"
    if ref is not None and ref.organizations and ref.find_organization(text) is None:
        return f"Unknown organization: {text}"
    return None


def _check_district_id(value: Any, ref: ReferenceData | None) -> str | None:
    text = _text(value)
    if not text:
        return "Select a district"
    if ref is None or ref.district_by_id(text) is None:
        return "Selected district does not exist"
    return None


def _check_organization_id(value: Any, ref: ReferenceData | None) -> str | None:
    text = _text(value)
    if not text:
        return "Select an organization"
    if ref is None or ref.organization_by_id(text) is None:
        return "Selected organization does not exist"
    return None


def _check_household_size(value: Any, _ref: ReferenceData | None) -> str | None:
    if value is None or value == "":
        return None
    if not _is_number(value) or (isinstance(value, float) and not value.is_integer()):
        return "Household size must be a whole number"
    if value <= 0:
        return "Household size must be greater than 0"
    return None


def _check_acreage(value: Any, _ref: ReferenceData | None) -> str | None:
    if value is None or value == "":
        return None
    if not _is_number(value):
        return "Acreage must be a number"
    if value <= 0:
        return "Acreage must be greater than 0"
    return None


def _range(low: float, high: float, message: str) -> Check:
    def check(value: Any, _ref: ReferenceData | None) -> str | None:
        if value is None or value == "":
            return None
        if not _is_number(value) or not (low <= value <= high):
            return message
        return None
    return check


def _farmer_rules(district: FieldRule, organization: FieldRule) -> tuple[FieldRule, ...]:
    return (
        FieldRule("first_name", required("First name is required")),
        FieldRule("last_name", required("Last name is required")),
        FieldRule(
            "phone",
            min_length(
                PHONE_MIN_LENGTH,
                f"Phone number must be at least {PHONE_MIN_LENGTH} characters",
                missing_message="Phone number is required",
            ),
        ),
        FieldRule("email", _check_email),
        FieldRule("date_of_birth", _check_date_of_birth),
        FieldRule("gender", one_of(GENDERS, "Invalid gender")),
        FieldRule("community", required("Community is required")),
        FieldRule(
            "address",
            min_length(ADDRESS_MIN_LENGTH, f"Address must be at least {ADDRESS_MIN_LENGTH} characters"),
        ),
        district,
        organization,
        FieldRule("id_type", one_of(ID_TYPES, "Invalid ID type")),
        FieldRule(
            "id_number",
            min_length(ID_NUMBER_MIN_LENGTH, f"ID number must be at least {ID_NUMBER_MIN_LENGTH} characters"),
        ),
        FieldRule("household_size", _check_household_size),
    )


FARMER_RULES = _farmer_rules(
    FieldRule("district_name", _check_district_name),
    FieldRule("organization_name", _check_organization_name),
)

MANUAL_FARMER_RULES = _farmer_rules(
    FieldRule("district_id", _check_district_id),
    FieldRule("organization_id", _check_organization_id),
)

FARM_RULES: tuple[FieldRule, ...] = (
    FieldRule("name", required("Farm name is required")),
    FieldRule("acreage", _check_acreage),
    FieldRule("soil_type", one_of(SOIL_TYPES, "Invalid soil type", allow_empty=True)),
    FieldRule("location_lat", _range(-90, 90, "Latitude must be between -90 and 90")),
    FieldRule("location_lng", _range(-180, 180, "Longitude must be between -180 and 180")),
)


def _run(rules: Sequence[FieldRule], record: Any, reference: ReferenceData | None) -> ValidationResult:
    errors = [e for e in (rule.apply(record, reference) for rule in rules) if e is not None]
    return ValidationResult(is_valid=not errors, errors=errors)


def validate_farmer(data: Any, reference: ReferenceData | None = None) -> ValidationResult:
    """Validate staged farmer data (district / organization by name)."""
    return _run(FARMER_RULES, data, reference)


def validate_manual_farmer(form: Mapping[str, Any], reference: ReferenceData) -> ValidationResult:
    """Validate the single-farmer entry form (district / organization by id)."""
    return _run(MANUAL_FARMER_RULES, form, reference)


def validate_farm(farm: Any) -> ValidationResult:
    return _run(FARM_RULES, farm, None)


def validate_staged_farmer(farmer: StagedFarmer, reference: ReferenceData | None = None) -> StagedFarmer:
    """Recompute is_valid / errors of a staged farmer and each of its farms in place.

    The farmer's validity depends on its own data only; farm validity is
    tracked per farm.
    """
    result = validate_farmer(farmer.data, reference)
    farmer.is_valid = result.is_valid
    farmer.errors = list(result.errors)
    for farm in farmer.farms:
        _apply_farm(farm)
    return farmer


def _apply_farm(farm: StagedFarm) -> None:
    result = validate_farm(farm)
    farm.is_valid = result.is_valid
    farm.errors = list(result.errors)
