"""
Command line — schema setup, one-off imports, stale job reaping.

    storefront init-db
    storefront import products.csv --user u1
    storefront reap --minutes 30

Settings come from STOREFRONT_* variables; --database overrides the URL.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

from kungfu import Ok, Error

from storefront._config import Settings
from storefront._logging import configure_logging
from storefront._services import build_services
from storefront.db import create_engine, create_schema
from storefront.importing import JobStatus, reap_stale_jobs


# ═══════════════════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════════════════


async def init_db(settings: Settings) -> int:
    engine = create_engine(settings.database_url)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()
    print(f"Schema ready at {settings.database_url}")
    return 0


async def run_import(
    settings: Settings, path: Path, user_id: str, mime_type: str | None
) -> int:
    """Upload a local file and wait for its job to reach a terminal state."""
    try:
        data = path.read_bytes()
    except OSError as e:
        print(f"Cannot read {path}: {e}", file=sys.stderr)
        return 2

    services = await build_services(settings)
    try:
        async with services.running():
            match await services.imports.upload_and_import(
                user_id, data, path.name, mime_type
            ):
                case Ok(receipt):
                    job_id = receipt.job_id
                case Error(e):
                    print(f"Upload rejected: {e.message}", file=sys.stderr)
                    return 1
            await services.queue.join()

        match await services.imports.get_job_status(job_id):
            case Ok(view):
                print(
                    f"job {view.job_id}: {view.status.value} "
                    f"total={view.total_rows} processed={view.processed_rows} "
                    f"errors={view.error_rows}"
                )
                if view.error_file_url:
                    print(f"error report: {view.error_file_url}")
                return 1 if view.status is JobStatus.FAILED else 0
            case Error(e):
                print(e.message, file=sys.stderr)
                return 1
    finally:
        await services.close()


async def reap(settings: Settings) -> int:
    services = await build_services(settings)
    try:
        reaped = await reap_stale_jobs(services.session_factory, settings.stale_job_after)
    finally:
        await services.close()
    for job_id in reaped:
        print(job_id)
    print(f"{len(reaped)} stale job(s) failed", file=sys.stderr)
    return 0


# ═══════════════════════════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════════════════════════


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront")
    parser.add_argument("--database", help="SQLAlchemy async URL")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables")

    imp = sub.add_parser("import", help="import a CSV file and wait for the job")
    imp.add_argument("path", type=Path)
    imp.add_argument("--user", required=True, help="id of the store owner")
    imp.add_argument("--mime-type", default="text/csv")

    rp = sub.add_parser("reap", help="fail PROCESSING jobs without recent progress")
    rp.add_argument("--minutes", type=float, default=None)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    if args.database:
        settings = settings.with_database(args.database)
    configure_logging((args.log_level or settings.log_level).upper(), json=settings.log_json)

    match args.command:
        case "init-db":
            return asyncio.run(init_db(settings))
        case "import":
            return asyncio.run(run_import(settings, args.path, args.user, args.mime_type))
        case "reap":
            if args.minutes is not None:
                settings = settings.with_stale_after(minutes=args.minutes)
            return asyncio.run(reap(settings))
        case _:
            raise AssertionError(args.command)


if __name__ == "__main__":
    sys.exit(main())
