from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, default_config, load_config
from ..db.content_store import InMemoryContentStore, PostgresContentStore
from ..db.store import InMemoryStagedUploadStore, PostgresStagedUploadStore
from ..errors import StagingError
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import StagingConfig
from ..models.staged_upload import Uploader
from ..services.bulk_upload import BulkUploadService
from ..services.linker import link_days
from ..services.parser import parse_workbook
from ..services.summary import render_commit_summary, render_reject_summary, render_upload_summary

"""Command line interface: ``python -m bulk_staging.cli <command>``.

Results are printed as JSON on stdout; log lines carry INFO|WARN|ERROR|SUMMARY
labels. Connection settings come from ``.env`` / ``DATABASE_URL`` / ``PGDSN``
/ ``PG*`` environment variables, then the config file ``database`` block.
With ``DISABLE_DB_CONNECT=1`` an in-process memory backend is used instead
(kept for the lifetime of the process).

Exit codes: 0 success, 1 fatal, 2 an approval finished with commit errors.
"""

__all__ = [
    "main",
    "EXIT_SUCCESS",
    "EXIT_FATAL",
    "EXIT_PARTIAL_FAILURE",
]

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

# offline backend shared by every main() call of this process
_offline_backend: tuple[InMemoryStagedUploadStore, InMemoryContentStore] | None = None


def _offline_stores(cfg: StagingConfig) -> tuple[InMemoryStagedUploadStore, InMemoryContentStore]:
    global _offline_backend
    if _offline_backend is None:
        _offline_backend = (InMemoryStagedUploadStore(cfg.pagination.max_limit), InMemoryContentStore())
    return _offline_backend


def reset_offline_backend() -> None:
    global _offline_backend
    _offline_backend = None


def _resolve_dsn(cfg: StagingConfig) -> str:
    """DSN precedence: DATABASE_URL / PGDSN, then PG* variables, then the config ``database`` block."""
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
def _db_connection(cfg: StagingConfig) -> Iterator[Any]:
    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def _open_service(cfg: StagingConfig, error_log: ErrorLogBuffer) -> Iterator[BulkUploadService]:
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        store, content = _offline_stores(cfg)
        yield BulkUploadService(store, content, cfg, error_log)
        return
    with _db_connection(cfg) as conn:
        store = PostgresStagedUploadStore(conn, max_limit=cfg.pagination.max_limit)
        store.ensure_schema()
        content_store = PostgresContentStore(conn)
        content_store.ensure_schema()
        yield BulkUploadService(store, content_store, cfg, error_log)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the inherited environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="bulk-staging", description="Bulk spreadsheet staging and approval")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("inspect", help="Parse and link a workbook without staging it")
    s.add_argument("file", type=Path)

    s = sub.add_parser("upload", help="Stage a workbook")
    s.add_argument("file", type=Path)
    s.add_argument("--admin-email", default="", help="Uploading admin's email")
    s.add_argument("--admin-id", default="cli", help="Uploading admin's id")

    s = sub.add_parser("list", help="List staged uploads, newest first")
    s.add_argument("--status", choices=["PENDING", "PARTIALLY_APPROVED", "FULLY_APPROVED", "REJECTED"])
    s.add_argument("--page", type=int, default=1)
    s.add_argument("--limit", type=int, default=None)

    s = sub.add_parser("show", help="Show one staged upload")
    s.add_argument("upload_id")
    s.add_argument("--summary-only", action="store_true")

    s = sub.add_parser("sheet", help="Show one page of a staged sheet")
    s.add_argument("upload_id")
    s.add_argument("sheet")
    s.add_argument("--page", type=int, default=1)
    s.add_argument("--limit", type=int, default=None)

    s = sub.add_parser("relationships", help="Show day relationships")
    s.add_argument("upload_id")
    s.add_argument("--page", type=int, default=1)
    s.add_argument("--limit", type=int, default=None)

    s = sub.add_parser("set-status", help="Change one item's status")
    s.add_argument("upload_id")
    s.add_argument("sheet")
    s.add_argument("index", type=int)
    s.add_argument("status", choices=["pending", "approved", "rejected"])

    for name, verb in (("approve", "Approve"), ("reject", "Reject")):
        s = sub.add_parser(name, help=f"{verb} every pending item, or only --item SHEET:INDEX entries")
        s.add_argument("upload_id")
        s.add_argument("--item", action="append", dest="items", default=None, metavar="SHEET:INDEX")

    s = sub.add_parser("edit", help="Edit one field of a pending or rejected item")
    s.add_argument("upload_id")
    s.add_argument("sheet")
    s.add_argument("index", type=int)
    s.add_argument("field")
    s.add_argument("value")

    s = sub.add_parser("delete-item", help="Delete one pending or rejected item")
    s.add_argument("upload_id")
    s.add_argument("sheet")
    s.add_argument("index", type=int)

    s = sub.add_parser("delete", help="Delete a staged upload")
    s.add_argument("upload_id")
    return p


def _inspect(cfg: StagingConfig, path: Path) -> int:
    parsed = parse_workbook(path, cfg)
    relationships = link_days(parsed.sheets, cfg.link_policy)
    _print_json(
        {
            "file": path.name,
            "sheets": {
                key.value: {
                    "worksheet": parsed.sheet_sources.get(key),
                    "items": [item.to_dict() for item in items],
                }
                for key, items in parsed.sheets.items()
            },
            "parseErrors": parsed.parse_errors,
            "relationships": [rel.to_dict() for rel in relationships],
        }
    )
    return EXIT_SUCCESS


def _run(args: argparse.Namespace, service: BulkUploadService) -> int:
    cmd = args.command
    if cmd == "upload":
        uploader = Uploader(id=args.admin_id, email=args.admin_email)
        response = service.upload_workbook(args.file, uploaded_by=uploader)
        _print_json(response)
        log_summary(render_upload_summary(service.get_staged_upload(response["uploadId"])))
    elif cmd == "list":
        page = service.list_staged_uploads(status=args.status, page=args.page, limit=args.limit)
        _print_json(page.to_dict(lambda u: u.to_dict(include_items=False)))
    elif cmd == "show":
        if args.summary_only:
            _print_json(service.get_upload_summary(args.upload_id).to_dict())
        else:
            _print_json(service.get_staged_upload(args.upload_id).to_dict())
    elif cmd == "sheet":
        _print_json(service.get_staged_sheet(args.upload_id, args.sheet, page=args.page, limit=args.limit).to_dict())
    elif cmd == "relationships":
        _print_json(service.get_staged_relationships(args.upload_id, page=args.page, limit=args.limit).to_dict())
    elif cmd == "set-status":
        change = service.set_item_status(args.upload_id, args.sheet, args.index, args.status)
        _print_json(change.to_dict())
        if change.commit is not None:
            log_summary(render_commit_summary(args.upload_id, change.commit))
            if change.commit.errors:
                return EXIT_PARTIAL_FAILURE
    elif cmd in ("approve", "reject"):
        mode = "selective" if args.items else "bulk"
        if cmd == "approve":
            result = service.bulk_approve(args.upload_id, mode, args.items)
            _print_json(result.to_dict())
            log_summary(render_commit_summary(args.upload_id, result))
            if result.errors:
                return EXIT_PARTIAL_FAILURE
        else:
            rejected = service.bulk_reject(args.upload_id, mode, args.items)
            _print_json(rejected.to_dict())
            log_summary(render_reject_summary(args.upload_id, rejected))
    elif cmd == "edit":
        _print_json(service.edit_staged_item(args.upload_id, args.sheet, args.index, args.field, args.value).to_dict())
    elif cmd == "delete-item":
        item = service.delete_staged_item(args.upload_id, args.sheet, args.index)
        _print_json({"deleted": item.to_dict(), "summary": service.get_upload_summary(args.upload_id).to_dict()})
    elif cmd == "delete":
        service.delete_staged_upload(args.upload_id)
        _print_json({"deleted": args.upload_id})
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    # argv=[] must not fall back to sys.argv (pytest flags would leak in)
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        if args.config is not None:
            cfg = load_config(args.config)
        elif DEFAULT_CONFIG_PATH.exists():
            cfg = load_config(DEFAULT_CONFIG_PATH)
        else:
            cfg = default_config()
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(cfg.error_log_dir)
    try:
        if args.command == "inspect":
            return _inspect(cfg, args.file)
        with _open_service(cfg, error_log) as service:
            return _run(args, service)
    except StagingError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except ValueError as e:
        logger.error(f"{args.command}: invalid argument: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"error log written: {path}")
