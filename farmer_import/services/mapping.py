from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..excel.columns import FARM_COLUMNS, FARMER_COLUMNS, ColumnSpec, cell
from ..excel.reader import WorkbookRows, is_blank_row
from ..models.config_models import MappingDefaults
from ..models.staged import FarmerData, StagedFarm, StagedFarmer

"""Row-to-record mapping.

Converts raw sheet rows into staged records using the positional column
descriptor, then attaches each farm to the farmer whose row_number equals the
farm's farmerRow reference.

Mapping never raises for a malformed cell; only structural problems (which
the reader reports) abort an import.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "FarmRow",
    "map_farmer_row",
    "map_farmer_rows",
    "map_farm_rows",
    "attach_farms",
    "stage_workbook",
]

HEADER_ROWS = 1


@dataclass(frozen=True)
class FarmRow:
    """A mapped Farms row before attachment."""
    row_number: int  # row of this farm in the Farms sheet
    farmer_row: int | None  # row_number of the owning farmer in the Farmers sheet
    farm: StagedFarm


def _values(row: Sequence[Any], columns: Sequence[ColumnSpec]) -> dict[str, Any]:
    return {c.field: c.coerce(cell(row, c)) for c in columns}


def map_farmer_row(
    row: Sequence[Any],
    row_number: int,
    defaults: MappingDefaults | None = None,
    organization_name: str = "",
) -> StagedFarmer:
    defaults = defaults or MappingDefaults()
    values = _values(row, FARMER_COLUMNS)
    if not values["gender"] and defaults.gender:
        values["gender"] = defaults.gender
    if not values["id_type"] and defaults.id_type:
        values["id_type"] = defaults.id_type
    data = FarmerData(organization_name=organization_name, **values)
    return StagedFarmer(row_number=row_number, data=data)


def map_farmer_rows(
    rows: Sequence[Sequence[Any]],
    defaults: MappingDefaults | None = None,
    organization_name: str = "",
) -> list[StagedFarmer]:
    """Map a Farmers sheet (header included) into staged farmers.

    The farmer at 0-based index i gets row_number i + 1, matching the
    spreadsheet's own row numbering.
    """
    farmers: list[StagedFarmer] = []
    for index, row in enumerate(rows):
        if index < HEADER_ROWS or is_blank_row(row):
            continue
        farmers.append(map_farmer_row(row, index + 1, defaults, organization_name))
    return farmers


def map_farm_rows(rows: Sequence[Sequence[Any]]) -> list[FarmRow]:
    """Map a Farms sheet (header included) into unattached farm rows."""
    mapped: list[FarmRow] = []
    for index, row in enumerate(rows):
        if index < HEADER_ROWS or is_blank_row(row):
            continue
        values = _values(row, FARM_COLUMNS)
        farmer_row = values.pop("farmer_row")
        farm = StagedFarm(**values, sheet_row=index + 1)
        mapped.append(FarmRow(row_number=index + 1, farmer_row=farmer_row, farm=farm))
    return mapped


def attach_farms(farmers: Sequence[StagedFarmer], farm_rows: Sequence[FarmRow]) -> int:
    """Attach farms to their farmer by row number; return how many were dropped.

    A farm whose farmerRow matches no farmer in this batch is discarded
    without error.
    """
    by_row = {f.row_number: f for f in farmers}
    dropped = 0
    for farm_row in farm_rows:
        owner = by_row.get(farm_row.farmer_row) if farm_row.farmer_row is not None else None
        if owner is None:
            dropped += 1
            logger.debug(
                "farm row=%d references farmer row=%s which is not staged; dropped",
                farm_row.row_number,
                farm_row.farmer_row,
            )
            continue
        owner.farms.append(farm_row.farm)
    return dropped


def stage_workbook(
    workbook: WorkbookRows,
    defaults: MappingDefaults | None = None,
    organization_name: str = "",
) -> list[StagedFarmer]:
    """Map both sheets and attach farms. Validation is not run here."""
    farmers = map_farmer_rows(workbook.farmers, defaults, organization_name)
    dropped = attach_farms(farmers, map_farm_rows(workbook.farms))
    logger.debug("staged farmers=%d dropped_farms=%d", len(farmers), dropped)
    return farmers
