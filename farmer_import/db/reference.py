from __future__ import annotations

from typing import Any

import psycopg2

from ..models.reference import ReferenceData, ReferenceEntry

"""Reference list loader: districts and organizations from the database.

Fetched once per import before validation; validation then only does
in-memory lookups.
"""

__all__ = [
    "ReferenceLoadError",
    "load_reference_data",
]

DISTRICT_TABLE = "district"
ORGANIZATION_TABLE = "organization"


class ReferenceLoadError(Exception):
    pass


def _entries(cursor: Any, table: str) -> list[ReferenceEntry]:
    cursor.execute(f"SELECT id, name FROM {table} ORDER BY name")
    return [ReferenceEntry(id=str(r[0]), name=str(r[1])) for r in cursor.fetchall()]


def load_reference_data(
    cursor: Any,
    district_table: str = DISTRICT_TABLE,
    organization_table: str = ORGANIZATION_TABLE,
) -> ReferenceData:
    try:
        return ReferenceData(
            districts=_entries(cursor, district_table),
            organizations=_entries(cursor, organization_table),
        )
    except psycopg2.Error as e:
        raise ReferenceLoadError(f"failed loading reference lists: {e}") from e
