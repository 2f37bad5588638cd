from __future__ import annotations

from dataclasses import dataclass, field

"""Reference lists (districts, organizations) used to resolve free-text names.

The lists are fetched once (from config or from the database) before
validation runs; validation and payload building only do in-memory lookups.
"""

__all__ = [
    "ReferenceEntry",
    "ReferenceData",
]


@dataclass(frozen=True)
class ReferenceEntry:
    id: str
    name: str


def _key(name: str) -> str:
    return name.strip().casefold()


@dataclass(frozen=True)
class ReferenceData:
    districts: list[ReferenceEntry] = field(default_factory=list)
    organizations: list[ReferenceEntry] = field(default_factory=list)

    def find_district(self, name: str) -> ReferenceEntry | None:
        return _find_by_name(self.districts, name)

    def find_organization(self, name: str) -> ReferenceEntry | None:
        return _find_by_name(self.organizations, name)

    def district_by_id(self, district_id: str) -> ReferenceEntry | None:
        return _find_by_id(self.districts, district_id)

    def organization_by_id(self, organization_id: str) -> ReferenceEntry | None:
        return _find_by_id(self.organizations, organization_id)

    @staticmethod
    def from_mapping(raw: dict[str, list[dict[str, object]]] | None) -> ReferenceData:
        """Build from the `reference` section of the YAML config."""
        raw = raw or {}

        def entries(key: str) -> list[ReferenceEntry]:
            return [
                ReferenceEntry(id=str(item["id"]), name=str(item["name"]))
                for item in raw.get(key, []) or []
            ]

        return ReferenceData(districts=entries("districts"), organizations=entries("organizations"))


def _find_by_name(entries: list[ReferenceEntry], name: str) -> ReferenceEntry | None:
    if not name or not name.strip():
        return None
    wanted = _key(name)
    for entry in entries:
        if _key(entry.name) == wanted:
            return entry
    return None


def _find_by_id(entries: list[ReferenceEntry], entry_id: str) -> ReferenceEntry | None:
    for entry in entries:
        if entry.id == entry_id:
            return entry
    return None
