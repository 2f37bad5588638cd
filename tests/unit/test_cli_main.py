from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path

import psycopg2
import pytest

import farmer_import.cli.__main__ as cli
from farmer_import.cli.__main__ import main as cli_main
from farmer_import.services.commit import InMemoryCommitter

ORG = "Demo Farmers Cooperative"


def error_lines(temp_workdir: Path) -> list[dict]:
    files = sorted((temp_workdir / "logs").glob("errors-*.log"))
    if not files:
        return []
    return [json.loads(x) for x in files[-1].read_text(encoding="utf-8").splitlines()]


def test_template_command(temp_workdir: Path, capsys):
    code = cli_main(["template", "out/template.xlsx"])
    assert code == 0
    assert (temp_workdir / "out" / "template.xlsx").exists()
    assert "INFO template written" in capsys.readouterr().out


def test_import_dry_run_success(write_config, workbook_factory, kwame_row, akosua_row, farm_row, capsys, temp_workdir):
    path = workbook_factory(farmers=[kwame_row, akosua_row], farms=[farm_row])
    code = cli_main(["import", str(path), "--organization", ORG, "--dry-run"])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO staged farmers=2 valid=2 invalid=0 farms=1" in out
    assert "SUMMARY farmers=2 success=2 failed=0 farms=1" in out
    assert error_lines(temp_workdir) == []


def test_disable_db_connect_env(write_config, workbook_factory, kwame_row, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    path = workbook_factory(farmers=[kwame_row])
    assert cli_main(["import", str(path), "-o", "10"]) == 0
    assert "SUMMARY farmers=1 success=1" in capsys.readouterr().out


def test_dotenv_is_loaded(write_config, workbook_factory, kwame_row, monkeypatch, temp_workdir):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "0")
    (temp_workdir / ".env").write_text("DISABLE_DB_CONNECT=1\n", encoding="utf-8")
    path = workbook_factory(farmers=[kwame_row])
    # would try a live connection without the .env override
    assert cli_main(["import", str(path), "-o", ORG]) == 0


def test_check_with_invalid_rows(write_config, workbook_factory, kwame_row, akosua_row, capsys, temp_workdir):
    akosua_row[2] = ""
    path = workbook_factory(farmers=[kwame_row, akosua_row])
    code = cli_main(["check", str(path), "-o", ORG, "--dry-run"])
    out = capsys.readouterr().out
    assert code == 2
    assert "[ERR] row 3: Akosua Mensah" in out
    assert "SUMMARY" not in out
    records = error_lines(temp_workdir)
    assert [(r["row"], r["error_type"], r["message"]) for r in records] == [
        (3, "VALIDATION_ERROR", "phone: Phone number is required")
    ]


def test_import_partial(write_config, workbook_factory, kwame_row, akosua_row, capsys):
    akosua_row[8] = "Atlantis"
    path = workbook_factory(farmers=[kwame_row, akosua_row])
    assert cli_main(["import", str(path), "-o", ORG, "--dry-run"]) == 2
    assert "SUMMARY farmers=1 success=1 failed=0" in capsys.readouterr().out


def test_import_nothing_valid(write_config, workbook_factory, kwame_row, capsys):
    kwame_row[0] = ""
    path = workbook_factory(farmers=[kwame_row])
    assert cli_main(["import", str(path), "-o", ORG, "--dry-run"]) == 1
    assert "ERROR commit: no valid farmers" in capsys.readouterr().out


def test_import_missing_sheet(write_config, workbook_factory, kwame_row, capsys, temp_workdir):
    path = workbook_factory(farmers=[kwame_row], farmers_sheet="Sheet1")
    assert cli_main(["import", str(path), "-o", ORG, "--dry-run"]) == 1
    records = error_lines(temp_workdir)
    assert records[0]["error_type"] == "MISSING_REQUIRED_SHEET"
    assert records[0]["row"] == -1


def test_unknown_organization(write_config, workbook_factory, kwame_row, capsys):
    path = workbook_factory(farmers=[kwame_row])
    assert cli_main(["import", str(path), "-o", "Nobody", "--dry-run"]) == 1
    assert "ERROR unknown organization: Nobody" in capsys.readouterr().out


def test_missing_input_file(write_config, temp_workdir, capsys):
    assert cli_main(["check", str(temp_workdir / "data" / "nope.xlsx"), "--dry-run"]) == 1
    assert "ERROR cannot read" in capsys.readouterr().out


def test_debug_flag(write_config, workbook_factory, kwame_row, capsys):
    path = workbook_factory(farmers=[kwame_row])
    cli_main(["--debug", "check", str(path), "-o", ORG, "--dry-run"])
    assert "DEBUG debug mode enabled" in capsys.readouterr().out


def test_live_mode_uses_database(write_config, workbook_factory, kwame_row, monkeypatch, capsys, reference):
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    used: dict[str, object] = {}

    @contextmanager
    def fake_connection(cfg):
        used["cfg"] = cfg
        yield object()

    def fake_committer(cur):
        used["cursor"] = cur
        return InMemoryCommitter()

    monkeypatch.setattr(cli, "_db_connection", fake_connection)
    monkeypatch.setattr(cli, "load_reference_data", lambda cur: reference)
    monkeypatch.setattr(cli, "PostgresFarmerCommitter", fake_committer)
    path = workbook_factory(farmers=[kwame_row])
    assert cli_main(["import", str(path), "-o", ORG]) == 0
    assert "cursor" in used
    assert "SUMMARY farmers=1 success=1" in capsys.readouterr().out


def test_live_mode_connection_failure(write_config, workbook_factory, kwame_row, monkeypatch, capsys):
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)

    @contextmanager
    def failing_connection(cfg):
        raise psycopg2.OperationalError("could not connect to server")
        yield  # pragma: no cover

    monkeypatch.setattr(cli, "_db_connection", failing_connection)
    path = workbook_factory(farmers=[kwame_row])
    assert cli_main(["import", str(path), "-o", ORG]) == 1
    assert "ERROR database: could not connect" in capsys.readouterr().out


def test_build_dsn_precedence(monkeypatch, write_config):
    from farmer_import.config.loader import load_config

    cfg = load_config(write_config)
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    assert cli._build_dsn(cfg) == "host=localhost port=5432 user=appuser dbname=appdb password=secret"
    monkeypatch.setenv("PGHOST", "db.internal")
    assert "host=db.internal" in cli._build_dsn(cfg)
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
    assert cli._build_dsn(cfg) == "postgresql://u@h/db"


def test_subcommand_required():
    with pytest.raises(SystemExit):
        cli_main([])


def test_import_reports_skipped_invalid_farm(write_config, workbook_factory, kwame_row, farm_row, capsys, temp_workdir):
    farm_row[2] = -3
    path = workbook_factory(farmers=[kwame_row], farms=[farm_row])
    assert cli_main(["import", str(path), "-o", ORG, "--dry-run"]) == 2
    out = capsys.readouterr().out
    assert "SUMMARY farmers=1 success=1 failed=0 farms=0 farms_skipped=1" in out
    records = error_lines(temp_workdir)
    assert [(r["sheet"], r["row"], r["error_type"]) for r in records] == [("Farms", 2, "VALIDATION_ERROR")]
    assert records[0]["message"].startswith("farm 'Main Cocoa Farm' acreage:")


def test_import_aborted_batch_is_fatal(write_config, workbook_factory, kwame_row, akosua_row, monkeypatch, capsys):
    class FailsSecond(InMemoryCommitter):
        def create_farmer_with_farms(self, farmer, farms):
            if self.farmers:
                raise RuntimeError("connection reset")
            return super().create_farmer_with_farms(farmer, farms)

    monkeypatch.setattr(cli, "InMemoryCommitter", FailsSecond)
    path = workbook_factory(farmers=[kwame_row, akosua_row])
    assert cli_main(["import", str(path), "-o", ORG, "--dry-run"]) == 1
    out = capsys.readouterr().out
    assert "ERROR commit aborted at row 3: connection reset" in out
    assert "SUMMARY farmers=1 success=1 failed=0" in out
