from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from farmer_import.config.loader import ConfigError, load_config_or_default
from farmer_import.db.farmers import PostgresFarmerCommitter
from farmer_import.db.reference import ReferenceLoadError, load_reference_data
from farmer_import.excel.reader import ImportFileError
from farmer_import.excel.template import write_template
from farmer_import.logging.error_log import ErrorLogBuffer
from farmer_import.logging.init import log_summary, set_debug, setup_logging
from farmer_import.models.config_models import ImportConfig
from farmer_import.models.reference import ReferenceData, ReferenceEntry
from farmer_import.models.upload import UploadedFile
from farmer_import.services.commit import CommitAborted, FarmerCommitter, InMemoryCommitter
from farmer_import.services.session import ImportSession, SessionError
from farmer_import.services.summary import render_review_report, render_summary_line

"""CLI entrypoint.

Subcommands:
- template: write the upload template workbook
- check:    parse + validate a file and print the review report (no writes)
- import:   parse + validate + create the valid farmers

Exit codes:
- 0: every staged farmer was valid (and, for import, created)
- 2: some farmers or farms were invalid, or farmers were rejected at commit
- 1: fatal (config, file-level error, database unreachable, nothing valid)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _build_dsn(cfg: ImportConfig) -> str:
    """Resolve connection parameters.

    Precedence:
    1. DATABASE_URL / PGDSN (whole DSN)
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the database section of config/import.yml
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (needs a live server)
    """Yield a cursor inside one transaction; commit on success, roll back otherwise.

    Rejected farmers are already rolled back to their savepoint by the
    committer, so committing here keeps every farmer that was created.
    """
    conn = psycopg2.connect(_build_dsn(cfg))
    conn.autocommit = False
    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="farmer-import", description="Bulk farmer onboarding from spreadsheets")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Config file (default: config/import.yml if present)")
    sub = p.add_subparsers(dest="command", required=True)

    t = sub.add_parser("template", help="Write the upload template workbook")
    t.add_argument("output", type=Path, help="Destination .xlsx path")
    t.add_argument("--no-samples", action="store_true", help="Leave the Farmers/Farms sheets without sample rows")

    for name, help_text in (
        ("check", "Parse and validate a file without creating anything"),
        ("import", "Parse, validate and create the valid farmers"),
    ):
        s = sub.add_parser(name, help=help_text)
        s.add_argument("file", type=Path, help="Spreadsheet to import (.xlsx, .xls or .csv)")
        s.add_argument("--organization", "-o", default=None, help="Organization name or id the farmers join")
        s.add_argument(
            "--dry-run",
            action="store_true",
            help="Use config reference lists and an in-memory store instead of the database",
        )
    return p.parse_args(argv)


def _check_exit(session: ImportSession) -> int:
    if session.invalid_count or session.invalid_farm_count:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _use_database(args: argparse.Namespace) -> bool:
    return not getattr(args, "dry_run", False) and os.getenv("DISABLE_DB_CONNECT") != "1"


def _resolve_organization(value: str | None, reference: ReferenceData) -> ReferenceEntry | None:
    """Match --organization by name first, then by id.

    Without an organization reference list the value is taken as both id
    and name.
    """
    if value is None:
        return None
    if not reference.organizations:
        return ReferenceEntry(id=value, name=value)
    return reference.find_organization(value) or reference.organization_by_id(value)


def _run_template(args: argparse.Namespace, cfg: ImportConfig, logger: Any) -> int:
    districts = [d.name for d in cfg.reference.districts]
    organizations = [o.name for o in cfg.reference.organizations]
    try:
        write_template(args.output, districts, organizations, include_samples=not args.no_samples)
    except OSError as e:
        logger.error(f"template: {e}")
        return EXIT_FATAL
    return EXIT_SUCCESS_ALL


def _stage(
    args: argparse.Namespace,
    cfg: ImportConfig,
    reference: ReferenceData,
    error_log: ErrorLogBuffer,
    logger: Any,
) -> ImportSession | None:
    """Select, parse and validate the file; None on a fatal error (already logged)."""
    organization = _resolve_organization(args.organization, reference)
    if args.organization is not None and organization is None:
        logger.error(f"unknown organization: {args.organization}")
        return None
    if organization is None:
        logger.warning("no --organization given; every farmer will be flagged 'Organization is required'")

    try:
        upload = UploadedFile.from_path(args.file)
    except OSError as e:
        logger.error(f"cannot read {args.file}: {e}")
        return None

    session = ImportSession(cfg, reference, organization)
    try:
        session.set_file(upload)
        session.parse()
    except ImportFileError as e:
        error_log.add_file_error(upload.name, e.error_type, str(e))
        logger.error(f"{upload.name}: {e}")
        return None

    for line in render_review_report(session.farmers).splitlines():
        logger.info(line)
    error_log.add_validation_errors(upload.name, session.farmers)
    return session


def _commit(
    session: ImportSession, committer: FarmerCommitter, error_log: ErrorLogBuffer, logger: Any
) -> int:
    invalid = session.invalid_count
    try:
        result = session.commit(committer, error_log)
    except SessionError as e:
        logger.error(f"commit: {e}")
        return EXIT_FATAL
    except CommitAborted as e:
        logger.error(f"commit aborted at {e}")
        log_summary(render_summary_line(e.result)[len("SUMMARY "):])
        return EXIT_FATAL

    for err in result.errors:
        logger.error(err.message, extra={"row": err.row})
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    if result.failed > 0 or invalid > 0 or result.farms_skipped > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _run_file_command(args: argparse.Namespace, cfg: ImportConfig, logger: Any) -> int:
    error_log = ErrorLogBuffer()
    try:
        if not _use_database(args):
            logger.debug("database disabled -> in-memory store with config reference lists")
            session = _stage(args, cfg, cfg.reference, error_log, logger)
            if session is None:
                return EXIT_FATAL
            if args.command == "check":
                return _check_exit(session)
            return _commit(session, InMemoryCommitter(), error_log, logger)

        try:
            with _db_connection(cfg) as cur:
                reference = load_reference_data(cur)
                session = _stage(args, cfg, reference, error_log, logger)
                if session is None:
                    return EXIT_FATAL
                if args.command == "check":
                    return _check_exit(session)
                return _commit(session, PostgresFarmerCommitter(cur), error_log, logger)
        except (psycopg2.Error, ReferenceLoadError) as e:
            logger.error(f"database: {e}")
            return EXIT_FATAL
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"error log written: {path}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] must not fall back to sys.argv (tests call main([...]) directly)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config_or_default(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "template":
        return _run_template(args, cfg, logger)
    return _run_file_command(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
