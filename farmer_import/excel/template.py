from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Font
from openpyxl.worksheet.datavalidation import DataValidation

from .columns import FARM_COLUMNS, FARMER_COLUMNS, FARMERS_SHEET, FARMS_SHEET, ColumnSpec

"""Template workbook generator.

Writes the reference upload file: an Instructions sheet, the Farmers and
Farms sheets laid out from the shared column descriptor (header row + sample
rows), and a "Validation Lists" sheet. Enum columns get dropdown validation.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "INSTRUCTIONS_SHEET",
    "VALIDATION_SHEET",
    "SAMPLE_DISTRICTS",
    "SAMPLE_ORGANIZATIONS",
    "SAMPLE_FARMER_ROWS",
    "SAMPLE_FARM_ROWS",
    "write_template",
]

INSTRUCTIONS_SHEET = "Instructions"
VALIDATION_SHEET = "Validation Lists"
VALIDATED_ROWS = 1000  # dropdowns cover data rows 2..1000

SAMPLE_DISTRICTS = (
    "Accra Metropolitan",
    "Kumasi Metropolitan",
    "Tamale Metropolitan",
    "Cape Coast Metropolitan",
    "Takoradi Municipal",
    "Ho Municipal",
    "Bolgatanga Municipal",
    "Wa Municipal",
)

SAMPLE_ORGANIZATIONS = (
    "Demo Farmers Cooperative",
    "Sample Farmers Union",
    "Example Agro Cooperative",
)

SAMPLE_FARMER_ROWS: tuple[tuple[Any, ...], ...] = (
    ("Kwame", "Asante", "+233244123456", "kwame.asante@example.com", "1985-03-15", "male",
     "Akim Oda", "House 12, Market Street", "Accra Metropolitan", "ghana_card",
     "GHA-123456789-0", 5, "Yes", "Yes", "LEGACY001"),
    ("Akosua", "Mensah", "+233245789012", "akosua.mensah@example.com", "1978-07-22", "female",
     "Bunso", "Plot 45, Chief Palace Road", "Kumasi Metropolitan", "voters_id",
     "VID-987654321", 8, "No", "No", "LEGACY002"),
    ("Yaw", "Osei", "+233246345678", "", "1990-11-08", "male",
     "Kyebi", "Near Methodist Church", "Tamale Metropolitan", "passport",
     "P0012345", 3, "Yes", "Yes", ""),
)

# farmerRow refers to the sheet row of the farmer (header is row 1)
SAMPLE_FARM_ROWS: tuple[tuple[Any, ...], ...] = (
    (2, "Main Cocoa Farm", 5.5, "Cocoa", "loamy", 6.0769, -0.8761),
    (2, "Rice Paddies", 2.3, "Rice", "clay", 6.0785, -0.8745),
    (3, "Cassava Plantation", 4.0, "Cassava", "sandy", 6.1234, -0.9012),
    (4, "Maize Field", 3.2, "Maize", "loamy", 6.21, -0.95),
)


def _instructions() -> list[list[str]]:
    lines = [
        "Farmer bulk upload template",
        "",
        "1. Fill one farmer per row in the Farmers sheet, starting at row 2.",
        "2. Do not reorder or remove columns: columns are read by position.",
        "3. Add farms in the Farms sheet; farmerRow is the row number of the farmer in the Farmers sheet.",
        "4. Use the dropdown menus where available (see the Validation Lists sheet).",
        "5. The organization is chosen when uploading, not per row.",
        "",
        "Farmers columns:",
    ]
    lines += [f"  {c.letter} {c.header} - {c.description}" for c in FARMER_COLUMNS]
    lines += ["", "Farms columns:"]
    lines += [f"  {c.letter} {c.header} - {c.description}" for c in FARM_COLUMNS]
    return [[line] for line in lines]


def _sheet_frame(columns: Sequence[ColumnSpec], rows: Sequence[Sequence[Any]]) -> pd.DataFrame:
    header = [c.header for c in columns]
    return pd.DataFrame([header, *[list(r) for r in rows]])


def _validation_frame(districts: Sequence[str], organizations: Sequence[str]) -> pd.DataFrame:
    lists: dict[str, list[str]] = {
        "gender": [],
        "idType": [],
        "soilType": [],
        "yesNo": [],
    }
    for column in (*FARMER_COLUMNS, *FARM_COLUMNS):
        if column.choices is None:
            continue
        key = "yesNo" if column.field.startswith("is_") else column.header
        lists[key] = list(column.choices)
    lists["districts"] = list(districts)
    lists["organizations"] = list(organizations)
    depth = max(len(v) for v in lists.values())
    body = [[lst[i] if i < len(lst) else None for lst in lists.values()] for i in range(depth)]
    return pd.DataFrame([list(lists.keys()), *body])


def _format_sheet(ws: Any, columns: Sequence[ColumnSpec]) -> None:
    for column in columns:
        ws.column_dimensions[column.letter].width = column.width
        ws.cell(row=1, column=column.index + 1).font = Font(bold=True)
        if column.choices:
            dv = DataValidation(
                type="list",
                formula1='"' + ",".join(column.choices) + '"',
                allow_blank=True,
                showErrorMessage=True,
                errorTitle=f"Invalid {column.header}",
                error=f"Choose one of: {', '.join(column.choices)}",
            )
            ws.add_data_validation(dv)
            dv.add(f"{column.letter}2:{column.letter}{VALIDATED_ROWS}")


def write_template(
    path: Path,
    districts: Sequence[str] | None = None,
    organizations: Sequence[str] | None = None,
    include_samples: bool = True,
) -> Path:
    """Write the upload template workbook to path and return it."""
    districts = list(districts) if districts else list(SAMPLE_DISTRICTS)
    organizations = list(organizations) if organizations else list(SAMPLE_ORGANIZATIONS)
    farmer_rows = SAMPLE_FARMER_ROWS if include_samples else ()
    farm_rows = SAMPLE_FARM_ROWS if include_samples else ()

    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(_instructions()).to_excel(writer, sheet_name=INSTRUCTIONS_SHEET, header=False, index=False)
        _sheet_frame(FARMER_COLUMNS, farmer_rows).to_excel(
            writer, sheet_name=FARMERS_SHEET, header=False, index=False
        )
        _sheet_frame(FARM_COLUMNS, farm_rows).to_excel(writer, sheet_name=FARMS_SHEET, header=False, index=False)
        _validation_frame(districts, organizations).to_excel(
            writer, sheet_name=VALIDATION_SHEET, header=False, index=False
        )

        writer.sheets[INSTRUCTIONS_SHEET].column_dimensions["A"].width = 80
        writer.sheets[INSTRUCTIONS_SHEET]["A1"].font = Font(bold=True, size=16)
        _format_sheet(writer.sheets[FARMERS_SHEET], FARMER_COLUMNS)
        _format_sheet(writer.sheets[FARMS_SHEET], FARM_COLUMNS)
        validation_ws = writer.sheets[VALIDATION_SHEET]
        for idx in range(1, 7):
            validation_ws.cell(row=1, column=idx).font = Font(bold=True)

    logger.info(f"template written: {path}")
    return path
