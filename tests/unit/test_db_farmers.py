from __future__ import annotations

from datetime import date

import psycopg2
import pytest

from farmer_import.db.farmers import FARMER_COLUMNS, InsertMetrics, PostgresFarmerCommitter
from farmer_import.db.reference import ReferenceLoadError, load_reference_data
from farmer_import.models.commit_result import FarmerPayload, FarmPayload
from farmer_import.services.commit import CommitFailure

FARMER = FarmerPayload(
    first_name="Kwame",
    last_name="Asante",
    gender="male",
    organization_id="10",
    phone="+233244123456",
    date_of_birth=date(1985, 3, 15),
    district_id="1",
)
FARMS = [FarmPayload(name="Main Cocoa Farm", acreage=5.5), FarmPayload(name="Rice Paddies")]


class DummyCursor:
    def __init__(self, fail_on: str | None = None, error: Exception | None = None) -> None:
        self.queries: list[str] = []
        self.params: list[tuple] = []
        self.fail_on = fail_on
        self.error = error
        self.next_id = 100

    def execute(self, sql, params=None):
        self.queries.append(sql)
        if params is not None:
            self.params.append(tuple(params))
        if self.fail_on and self.fail_on in sql:
            raise self.error

    def fetchone(self):
        self.next_id += 1
        return (self.next_id,)

    def fetchall(self):
        return [(2, "Kumasi Metropolitan"), (1, "Birim Central")]


class UniqueViolation(psycopg2.IntegrityError):
    pgcode = "23505"


@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    # avoid psycopg2's C-level cursor requirements
    import farmer_import.db.farmers as farmers_mod

    def fake_execute_values(cursor, sql, rows, template=None, page_size=100, fetch=False):
        cursor.queries.append(sql)
        cursor.params.extend(rows)
        return [(i,) for i in range(500, 500 + len(rows))] if fetch else None

    monkeypatch.setattr(farmers_mod, "execute_values", fake_execute_values)


def test_create_farmer_with_farms():
    cur = DummyCursor()
    created = PostgresFarmerCommitter(cur).create_farmer_with_farms(FARMER, FARMS)
    assert created.farmer_id == 101
    assert created.farm_ids == [500, 501]
    assert cur.queries[0] == "SAVEPOINT farmer_import_1"
    assert cur.queries[1].startswith('INSERT INTO farmer ("first_name","last_name"')
    assert cur.queries[1].endswith("RETURNING id")
    assert "INSERT INTO farm" in cur.queries[2]
    assert cur.queries[-1] == "RELEASE SAVEPOINT farmer_import_1"
    # farmer insert binds every payload column in order
    assert len(cur.params[0]) == len(FARMER_COLUMNS)
    assert cur.params[0][:2] == ("Kwame", "Asante")
    # farm rows are prefixed with the new farmer id
    assert cur.params[1][:2] == (101, "Main Cocoa Farm")


def test_create_farmer_without_farms_skips_farm_insert():
    cur = DummyCursor()
    created = PostgresFarmerCommitter(cur).create_farmer_with_farms(FARMER, [])
    assert created.farm_ids == []
    assert not any("INSERT INTO farm " in q for q in cur.queries)


def test_savepoints_are_numbered_per_farmer():
    cur = DummyCursor()
    committer = PostgresFarmerCommitter(cur)
    committer.create_farmer_with_farms(FARMER, [])
    committer.create_farmer_with_farms(FARMER, [])
    assert "SAVEPOINT farmer_import_2" in cur.queries


def test_db_error_rolls_back_to_savepoint():
    cur = DummyCursor(fail_on="INSERT INTO farmer", error=UniqueViolation("duplicate key value"))
    with pytest.raises(CommitFailure) as e:
        PostgresFarmerCommitter(cur).create_farmer_with_farms(FARMER, FARMS)
    assert str(e.value).startswith("Duplicate record:")
    assert cur.queries[-1] == "ROLLBACK TO SAVEPOINT farmer_import_1"


def test_generic_db_error_message():
    cur = DummyCursor(fail_on="INSERT INTO farmer", error=psycopg2.DataError("value too long"))
    with pytest.raises(CommitFailure, match="value too long"):
        PostgresFarmerCommitter(cur).create_farmer_with_farms(FARMER, [])


def test_metrics_callback():
    captured: list[InsertMetrics] = []
    PostgresFarmerCommitter(DummyCursor(), metrics_callback=captured.append).create_farmer_with_farms(FARMER, FARMS)
    assert captured[0].row_count == 3
    assert captured[0].elapsed_seconds >= 0


def test_custom_table_names():
    cur = DummyCursor()
    PostgresFarmerCommitter(cur, farmer_table="app.farmers", farm_table="app.farms").create_farmer_with_farms(
        FARMER, FARMS
    )
    assert "INSERT INTO app.farmers" in cur.queries[1]
    assert "INSERT INTO app.farms" in cur.queries[2]


def test_load_reference_data():
    cur = DummyCursor()
    ref = load_reference_data(cur)
    assert cur.queries == [
        "SELECT id, name FROM district ORDER BY name",
        "SELECT id, name FROM organization ORDER BY name",
    ]
    assert ref.find_district("birim central").id == "1"
    assert ref.organizations[0].id == "2"


def test_load_reference_data_error():
    cur = DummyCursor(fail_on="FROM district", error=psycopg2.ProgrammingError("relation does not exist"))
    with pytest.raises(ReferenceLoadError):
        load_reference_data(cur)
