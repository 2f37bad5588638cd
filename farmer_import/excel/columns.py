from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.staged import Gender, IdType, SoilType

"""Column schema descriptor shared by the row mapper and the template generator.

Column position is the contract: header text in an uploaded sheet is
decorative and never looked up. Both sheets are described here once so the
generated template and the parser can not drift apart.

Every coercion is best-effort and silent: a malformed cell degrades to an
empty string / None instead of raising.
"""

__all__ = [
    "ColumnSpec",
    "FARMERS_SHEET",
    "FARMS_SHEET",
    "FARMER_COLUMNS",
    "FARM_COLUMNS",
    "YES_NO_CHOICES",
    "is_missing",
    "as_text",
    "as_date_text",
    "as_optional_text",
    "as_lower_text",
    "as_int",
    "as_float",
    "as_row_reference",
    "as_yes_no",
    "cell",
]

FARMERS_SHEET = "Farmers"
FARMS_SHEET = "Farms"

YES_NO_CHOICES: tuple[str, ...] = ("Yes", "No")


def is_missing(value: Any) -> bool:
    """True for None, NaN/NaT and empty or whitespace-only strings. Numeric 0 is present."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def as_text(value: Any) -> str:
    if is_missing(value):
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        # phone / id numbers typed as numbers come back as 233244123456.0
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return as_date_text(value)
    return str(value).strip()


def as_date_text(value: Any) -> str:
    if is_missing(value):
        return ""
    if isinstance(value, datetime):  # pd.Timestamp is a datetime subclass
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    # "1985-03-15 00:00:00" from CSV exports of date cells
    if len(text) > 10 and text[10] == " " and text[11:].strip("0: ") == "":
        return text[:10]
    return text


def as_optional_text(value: Any) -> str | None:
    text = as_text(value)
    return text or None


def as_lower_text(value: Any) -> str:
    return as_text(value).lower()


def _as_finite_float(value: Any) -> float | None:
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def as_int(value: Any) -> int | None:
    """Integer if the cell is numeric (fraction truncated), else None."""
    number = _as_finite_float(value)
    if number is None:
        return None
    return int(number)


def as_float(value: Any) -> float | None:
    return _as_finite_float(value)


def as_row_reference(value: Any) -> int | None:
    """A farmerRow cell: the sheet row number of the owning farmer."""
    number = _as_finite_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def as_yes_no(value: Any) -> bool:
    return as_text(value).casefold() == "yes"


@dataclass(frozen=True)
class ColumnSpec:
    """One positional column of a sheet."""
    index: int  # 0-based position in the row
    field: str  # attribute name on the staged record
    header: str  # header text written to the template
    coerce: Callable[[Any], Any]
    description: str = ""
    choices: Sequence[str] | None = None  # dropdown values in the template
    width: int = 15  # template column width

    @property
    def letter(self) -> str:
        """Spreadsheet column letter (A, B, ...)."""
        n = self.index + 1
        letters = ""
        while n:
            n, rem = divmod(n - 1, 26)
            letters = chr(ord("A") + rem) + letters
        return letters


FARMER_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec(0, "first_name", "firstName", as_text, "First name (required)"),
    ColumnSpec(1, "last_name", "lastName", as_text, "Last name (required)"),
    ColumnSpec(2, "phone", "phone", as_text, "Phone number, at least 6 characters", width=20),
    ColumnSpec(3, "email", "email", as_text, "Email address (optional)", width=25),
    ColumnSpec(4, "date_of_birth", "dateOfBirth", as_date_text, "Date of birth, YYYY-MM-DD", width=12),
    ColumnSpec(
        5, "gender", "gender", as_lower_text, "male, female or other",
        choices=tuple(g.value for g in Gender), width=10,
    ),
    ColumnSpec(6, "community", "community", as_text, "Community (required)"),
    ColumnSpec(7, "address", "address", as_text, "Address, at least 5 characters", width=25),
    ColumnSpec(8, "district_name", "districtName", as_text, "District name as registered", width=30),
    ColumnSpec(
        9, "id_type", "idType", as_lower_text, "ghana_card, voters_id, passport or drivers_license",
        choices=tuple(t.value for t in IdType), width=30,
    ),
    ColumnSpec(10, "id_number", "idNumber", as_text, "ID number, at least 5 characters"),
    ColumnSpec(11, "household_size", "householdSize", as_int, "Household size (optional, > 0)", width=18),
    ColumnSpec(12, "is_leader", "isLeader", as_yes_no, "Yes or No", choices=YES_NO_CHOICES, width=12),
    ColumnSpec(13, "is_phone_smart", "isPhoneSmart", as_yes_no, "Yes or No", choices=YES_NO_CHOICES, width=10),
    ColumnSpec(14, "legacy_farmer_id", "legacyFarmerId", as_optional_text, "Previous system ID (optional)", width=12),
)

FARM_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec(0, "farmer_row", "farmerRow", as_row_reference, "Row number of the farmer in the Farmers sheet", width=12),
    ColumnSpec(1, "name", "farmName", as_text, "Farm name (required)", width=25),
    ColumnSpec(2, "acreage", "acreage", as_float, "Size in acres (optional, > 0)", width=12),
    ColumnSpec(3, "crop_type", "cropType", as_text, "Main crop (optional)", width=25),
    ColumnSpec(
        4, "soil_type", "soilType", as_lower_text, "sandy, clay, loamy, silt or rocky",
        choices=tuple(s.value for s in SoilType), width=12,
    ),
    ColumnSpec(5, "location_lat", "locationLat", as_float, "Latitude (optional, -90 to 90)", width=12),
    ColumnSpec(6, "location_lng", "locationLng", as_float, "Longitude (optional, -180 to 180)", width=12),
)


def cell(row: Sequence[Any], column: ColumnSpec) -> Any:
    """Value at column's position, None when the row is shorter."""
    if column.index < len(row):
        return row[column.index]
    return None
