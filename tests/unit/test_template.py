from __future__ import annotations

from pathlib import Path

from openpyxl import load_workbook

from farmer_import.excel.columns import FARM_COLUMNS, FARMER_COLUMNS
from farmer_import.excel.template import (
    INSTRUCTIONS_SHEET,
    SAMPLE_FARMER_ROWS,
    VALIDATION_SHEET,
    write_template,
)


def test_template_sheets_and_headers(temp_workdir: Path):
    path = write_template(temp_workdir / "out" / "template.xlsx")
    wb = load_workbook(path)
    assert wb.sheetnames == [INSTRUCTIONS_SHEET, "Farmers", "Farms", VALIDATION_SHEET]
    farmers = wb["Farmers"]
    assert [c.value for c in farmers[1]] == [c.header for c in FARMER_COLUMNS]
    assert [c.value for c in wb["Farms"][1]] == [c.header for c in FARM_COLUMNS]
    assert farmers.max_row == 1 + len(SAMPLE_FARMER_ROWS)
    assert farmers["A1"].font.bold


def test_template_dropdowns(temp_workdir: Path):
    wb = load_workbook(write_template(temp_workdir / "template.xlsx"))
    formulas = {dv.formula1 for dv in wb["Farmers"].data_validations.dataValidation}
    assert '"male,female,other"' in formulas
    assert '"Yes,No"' in formulas
    soil = {dv.formula1 for dv in wb["Farms"].data_validations.dataValidation}
    assert '"sandy,clay,loamy,silt,rocky"' in soil


def test_template_without_samples_and_custom_lists(temp_workdir: Path):
    path = write_template(
        temp_workdir / "template.xlsx",
        districts=["Birim Central"],
        organizations=["Demo Farmers Cooperative"],
        include_samples=False,
    )
    wb = load_workbook(path)
    assert wb["Farmers"].max_row == 1
    lists = wb[VALIDATION_SHEET]
    header = [c.value for c in lists[1]]
    districts_col = header.index("districts") + 1
    assert lists.cell(row=2, column=districts_col).value == "Birim Central"
