from __future__ import annotations

from farmer_import.models.commit_result import CommitError, CommitResult
from farmer_import.models.staged import FarmerData, FieldError, StagedFarm, StagedFarmer
from farmer_import.services.summary import format_number, render_review_report, render_summary_line


def test_render_summary_line_basic():
    result = CommitResult(successful=2, failed=1, errors=[CommitError(3, "dup")], farms_created=3, elapsed_seconds=2.0)
    assert render_summary_line(result) == "SUMMARY farmers=3 success=2 failed=1 farms=3 farms_skipped=0 elapsed_sec=2"


def test_render_summary_line_zero():
    assert render_summary_line(CommitResult(successful=0, failed=0)) == (
        "SUMMARY farmers=0 success=0 failed=0 farms=0 farms_skipped=0 elapsed_sec=0"
    )


def test_format_number():
    assert format_number(0) == "0"
    assert format_number(3.0) == "3"
    assert format_number(0.84) == "0.84"
    assert format_number(0.001234) == "0.001234"
    assert format_number(1.23456) == "1.235"
    assert "e" not in format_number(0.0000012)


def test_render_review_report():
    good = StagedFarmer(
        row_number=2,
        data=FarmerData(first_name="Kwame", last_name="Asante", phone="+233244123456", district_name="Birim Central"),
        farms=[StagedFarm(name="Main Cocoa Farm", is_valid=True)],
        is_valid=True,
    )
    bad = StagedFarmer(
        row_number=3,
        data=FarmerData(first_name="Ama"),
        farms=[StagedFarm(name="", errors=[FieldError("name", "Farm name is required")])],
        errors=[FieldError("phone", "Phone number is required")],
    )
    lines = render_review_report([good, bad]).splitlines()
    assert lines[0] == "staged farmers=2 valid=1 invalid=1 farms=2"
    assert lines[1].startswith("  [OK ] row 2: Kwame Asante phone=+233244123456 district=Birim Central")
    assert lines[2].startswith("  [ERR] row 3: Ama phone=- district=-")
    assert lines[3].strip() == "phone: Phone number is required"
    assert lines[4].strip() == "farm '<unnamed>' name: Farm name is required"
