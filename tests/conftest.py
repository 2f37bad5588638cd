# Shared pytest fixtures
from __future__ import annotations
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from farmer_import.excel.columns import FARM_COLUMNS, FARMER_COLUMNS, FARMERS_SHEET, FARMS_SHEET
from farmer_import.logging.init import reset_logging
from farmer_import.models.reference import ReferenceData, ReferenceEntry

KWAME_ROW: list[Any] = [
    "Kwame", "Asante", "+233244123456", "", "1985-03-15", "male", "Akim Oda", "House 12",
    "Birim Central", "ghana_card", "GHA-123456789-0", 5, "Yes", "Yes", "",
]
AKOSUA_ROW: list[Any] = [
    "Akosua", "Mensah", "+233245789012", "akosua@example.com", "1978-07-22", "female", "Bunso",
    "Plot 45, Chief Palace Road", "Kumasi Metropolitan", "voters_id", "VID-987654321", 8, "No", "No", "LEGACY002",
]
FARM_ROW: list[Any] = [2, "Main Cocoa Farm", 5.5, "Cocoa", "loamy", 6.0769, -0.8761]
ORPHAN_FARM_ROW: list[Any] = [99, "Orphan Farm", 1.0, "Rice", "clay", 0, 0]

FARMER_HEADER = [c.header for c in FARMER_COLUMNS]
FARM_HEADER = [c.header for c in FARM_COLUMNS]

ORGANIZATION = ReferenceEntry(id="10", name="Demo Farmers Cooperative")


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handlers bind sys.stdout at setup time; rebuild per test so capsys sees output
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """upload:
  max_file_size: 1048576
defaults:
  gender: male
  id_type: ghana_card
staging:
  auto_validate: false
reference:
  districts:
    - {id: 1, name: Birim Central}
    - {id: 2, name: Kumasi Metropolitan}
  organizations:
    - {id: 10, name: Demo Farmers Cooperative}
    - {id: 11, name: Sample Farmers Union}
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def reference() -> ReferenceData:
    return ReferenceData(
        districts=[ReferenceEntry("1", "Birim Central"), ReferenceEntry("2", "Kumasi Metropolitan")],
        organizations=[ORGANIZATION, ReferenceEntry("11", "Sample Farmers Union")],
    )


@pytest.fixture()
def organization() -> ReferenceEntry:
    return ORGANIZATION


def write_workbook(
    path: Path,
    farmers: Sequence[Sequence[Any]] = (),
    farms: Sequence[Sequence[Any]] | None = (),
    extra_sheets: Sequence[str] = (),
    farmers_sheet: str = FARMERS_SHEET,
) -> Path:
    """Write a workbook with header rows; farms=None leaves out the Farms sheet."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame([FARMER_HEADER, *[list(r) for r in farmers]]).to_excel(
            writer, sheet_name=farmers_sheet, header=False, index=False
        )
        if farms is not None:
            pd.DataFrame([FARM_HEADER, *[list(r) for r in farms]]).to_excel(
                writer, sheet_name=FARMS_SHEET, header=False, index=False
            )
        for name in extra_sheets:
            pd.DataFrame([["notes"]]).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


@pytest.fixture()
def workbook_factory(temp_workdir: Path):
    def make(name: str = "farmers.xlsx", **kwargs: Any) -> Path:
        return write_workbook(temp_workdir / "data" / name, **kwargs)
    return make


@pytest.fixture()
def kwame_row() -> list[Any]:
    return list(KWAME_ROW)


@pytest.fixture()
def akosua_row() -> list[Any]:
    return list(AKOSUA_ROW)


@pytest.fixture()
def farm_row() -> list[Any]:
    return list(FARM_ROW)


@pytest.fixture()
def orphan_farm_row() -> list[Any]:
    return list(ORPHAN_FARM_ROW)


@pytest.fixture()
def farmer_header() -> list[str]:
    return list(FARMER_HEADER)


@pytest.fixture()
def farm_header() -> list[str]:
    return list(FARM_HEADER)
