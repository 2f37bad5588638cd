from __future__ import annotations

from collections.abc import Iterable

from ..models.commit_result import CommitResult
from ..models.staged import StagedFarmer

"""Summary rendering for the import CLI.

Two outputs:
- the one-line SUMMARY after a commit attempt
- a review report listing staged farmers with their validation errors
"""

__all__ = [
    "format_number",
    "render_summary_line",
    "render_review_report",
]


def format_number(value: float) -> str:
    """Render a metric without scientific notation or a trailing .0."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: CommitResult) -> str:
    """Render the SUMMARY line of one commit attempt.

    Format:
    SUMMARY farmers={total} success={successful} failed={failed}
    farms={farms_created} farms_skipped={farms_skipped} elapsed_sec={elapsed}

    >>> render_summary_line(CommitResult(successful=2, failed=1, farms_created=3, elapsed_seconds=1.5))
    'SUMMARY farmers=3 success=2 failed=1 farms=3 farms_skipped=0 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY farmers={result.total} "
        f"success={result.successful} "
        f"failed={result.failed} "
        f"farms={result.farms_created} "
        f"farms_skipped={result.farms_skipped} "
        f"elapsed_sec={format_number(result.elapsed_seconds)}"
    )


def _status(farmer: StagedFarmer) -> str:
    return "OK " if farmer.is_valid else "ERR"


def render_review_report(farmers: Iterable[StagedFarmer]) -> str:
    """Text table of staged farmers for review before commit."""
    farmers = list(farmers)
    valid = sum(1 for f in farmers if f.is_valid)
    farms = sum(len(f.farms) for f in farmers)
    lines = [f"staged farmers={len(farmers)} valid={valid} invalid={len(farmers) - valid} farms={farms}"]
    for farmer in farmers:
        data = farmer.data
        lines.append(
            f"  [{_status(farmer)}] row {farmer.row_number}: {data.full_name or '<no name>'}"
            f" phone={data.phone or '-'} district={data.district_name or '-'} farms={len(farmer.farms)}"
        )
        for err in farmer.errors:
            lines.append(f"        {err.field}: {err.message}")
        for farm in farmer.farms:
            if farm.is_valid:
                continue
            for err in farm.errors:
                lines.append(f"        farm '{farm.name or '<unnamed>'}' {err.field}: {err.message}")
    return "\n".join(lines)
