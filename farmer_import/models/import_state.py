from __future__ import annotations

from enum import Enum

"""SessionState enum for the import session lifecycle.

State transitions:
    EMPTY → FILE_SELECTED → PARSING → (STAGED | FAILED)
    STAGED / REVIEWING → REVIEWING          (edit / delete, self-loop)
    STAGED / REVIEWING → COMMITTING         (only with at least one valid farmer)
    COMMITTING → DONE        (nothing left staged)
    COMMITTING → FAILED      (some rows rejected or the batch aborted)
    COMMITTING → REVIEWING   (no rejections, invalid farmers still staged)
    any state before COMMITTING → EMPTY / FILE_SELECTED (remove / replace file)
"""

__all__ = [
    "SessionState",
]


class SessionState(Enum):
    """Status of one import session.

    - EMPTY: no file selected
    - FILE_SELECTED: file chosen, not parsed yet
    - PARSING: ingestion + mapping in progress
    - STAGED: records available for review
    - REVIEWING: user has edited or deleted records
    - COMMITTING: bulk create in flight
    - DONE: every staged farmer committed, nothing left to review
    - FAILED: parse failed, or some farmers failed to commit
    """
    EMPTY = "empty"
    FILE_SELECTED = "file_selected"
    PARSING = "parsing"
    STAGED = "staged"
    REVIEWING = "reviewing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_editable(self) -> bool:
        return self in (SessionState.STAGED, SessionState.REVIEWING, SessionState.FAILED)

    @property
    def before_commit(self) -> bool:
        return self not in (SessionState.COMMITTING, SessionState.DONE)
