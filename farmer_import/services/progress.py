from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Commit progress bar.

One tqdm bar per commit attempt, advanced once per farmer, with running
created / failed counts as postfix. The bar is only drawn on a TTY so that
redirected output stays plain log lines.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]

NAME_WIDTH = 24  # farmer name shown in the bar description


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


def _short(name: str) -> str:
    if len(name) <= NAME_WIDTH:
        return name
    return name[: NAME_WIDTH - 3] + "..."


class ProgressTracker:
    """Counts created / failed farmers and mirrors them on a tqdm bar."""

    def __init__(self, total: int, *, description: str = "Creating farmers", enabled: bool | None = None) -> None:
        self.total = total
        self.description = description
        self.created = 0
        self.failed = 0
        show = is_tty_enabled() if enabled is None else enabled
        self.pbar: Any = None
        if show and total > 0:
            self.pbar = tqdm(total=total, desc=description, unit="farmer", leave=True, ncols=80, ascii=True)

    @property
    def enabled(self) -> bool:
        return self.pbar is not None

    @property
    def processed(self) -> int:
        return self.created + self.failed

    def start_farmer(self, row_number: int, name: str) -> None:
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} (row {row_number}: {_short(name)})")

    def finish_farmer(self, success: bool = True) -> None:
        if success:
            self.created += 1
        else:
            self.failed += 1
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
            self.pbar.set_postfix(created=self.created, failed=self.failed)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
