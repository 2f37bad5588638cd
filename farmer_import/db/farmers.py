from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import astuple, dataclass, fields
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

from ..models.commit_result import CommittedFarmer, FarmerPayload, FarmPayload
from ..services.commit import CommitFailure

"""PostgreSQL commit collaborator.

Each farmer is written inside its own SAVEPOINT so that a rejected row
(duplicate phone, constraint violation) rolls back only itself; the
surrounding transaction is committed by the caller once the batch is done.

Farms are inserted in one execute_values call per farmer with RETURNING id.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "FARMER_TABLE",
    "FARM_TABLE",
    "UNIQUE_VIOLATION",
    "InsertMetrics",
    "PostgresFarmerCommitter",
]

FARMER_TABLE = "farmer"
FARM_TABLE = "farm"
UNIQUE_VIOLATION = "23505"

FARMER_COLUMNS = [f.name for f in fields(FarmerPayload)]
FARM_COLUMNS = ["farmer_id", *(f.name for f in fields(FarmPayload))]


@dataclass(frozen=True)
class InsertMetrics:
    """Timing of one farmer (+ farms) insert."""
    row_count: int  # farmer row + farm rows
    elapsed_seconds: float


def _db_message(e: psycopg2.Error) -> str:
    diag = getattr(e, "diag", None)
    primary = getattr(diag, "message_primary", None) if diag is not None else None
    message = primary or (e.pgerror or str(e)).strip()
    if getattr(e, "pgcode", None) == UNIQUE_VIOLATION:
        detail = getattr(diag, "message_detail", None) if diag is not None else None
        return f"Duplicate record: {detail or message}"
    return message


class PostgresFarmerCommitter:
    """Create farmers and their farms through a psycopg2 cursor."""

    def __init__(
        self,
        cursor: Any,
        farmer_table: str = FARMER_TABLE,
        farm_table: str = FARM_TABLE,
        metrics_callback: Callable[[InsertMetrics], None] | None = None,
    ) -> None:
        self.cursor = cursor
        self.farmer_table = farmer_table
        self.farm_table = farm_table
        self.metrics_callback = metrics_callback
        self._savepoints = 0

    def _insert_farmer(self, farmer: FarmerPayload) -> Any:
        cols_sql = ",".join(f'"{c}"' for c in FARMER_COLUMNS)
        placeholders = ",".join(["%s"] * len(FARMER_COLUMNS))
        self.cursor.execute(
            f"INSERT INTO {self.farmer_table} ({cols_sql}) VALUES ({placeholders}) RETURNING id",
            astuple(farmer),
        )
        row = self.cursor.fetchone()
        if row is None:
            raise CommitFailure("farmer insert returned no id")
        return row[0]

    def _insert_farms(self, farmer_id: Any, farms: Sequence[FarmPayload]) -> list[Any]:
        if not farms:
            return []
        cols_sql = ",".join(f'"{c}"' for c in FARM_COLUMNS)
        rows = [(farmer_id, *astuple(f)) for f in farms]
        returned = execute_values(
            self.cursor,
            f"INSERT INTO {self.farm_table} ({cols_sql}) VALUES %s RETURNING id",
            rows,
            fetch=True,
        )
        return [r[0] for r in returned]

    def create_farmer_with_farms(
        self, farmer: FarmerPayload, farms: Sequence[FarmPayload]
    ) -> CommittedFarmer:
        self._savepoints += 1
        savepoint = f"farmer_import_{self._savepoints}"
        start_time = time.time()
        self.cursor.execute(f"SAVEPOINT {savepoint}")
        try:
            farmer_id = self._insert_farmer(farmer)
            farm_ids = self._insert_farms(farmer_id, farms)
        except psycopg2.Error as e:
            self.cursor.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
            raise CommitFailure(_db_message(e)) from e
        except CommitFailure:
            self.cursor.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
            raise
        self.cursor.execute(f"RELEASE SAVEPOINT {savepoint}")

        if self.metrics_callback is not None:
            self.metrics_callback(
                InsertMetrics(row_count=1 + len(farm_ids), elapsed_seconds=time.time() - start_time)
            )
        return CommittedFarmer(farmer_id=farmer_id, farm_ids=farm_ids)
