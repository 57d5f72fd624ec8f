"""fhir-sync command line entry point.

Run locally:
    fhir-sync export.xml --days 7 --server http://localhost:8080
    fhir-sync export.xml --dry-run > bundle.json
    fhir-sync --check-status
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from fhir_sync.bundle import BundleBuilder
from fhir_sync.client import SyncClient
from fhir_sync.config import Settings, get_settings
from fhir_sync.sources import AppleHealthExportSource
from fhir_sync.sync import SyncCycle

logger = logging.getLogger("fhir_sync")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fhir-sync",
        description="Convert an Apple Health export to FHIR and submit it to the backend.",
    )
    parser.add_argument("export", nargs="?", help="Path to Apple Health export.xml")
    parser.add_argument("--days", type=int, default=None, help="Trailing window in days")
    parser.add_argument("--server", default=None, help="Backend base URL")
    parser.add_argument("--device-id", default=None, help="Value for the X-Device-Id header")
    parser.add_argument(
        "--check-status", action="store_true", help="Only probe the backend status endpoint"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Print the bundle instead of submitting it"
    )
    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    client = SyncClient(settings=settings)

    if args.check_status:
        online = await client.check_status()
        print("Server online" if online else "Server offline")
        return 0 if online else 1

    cycle = SyncCycle(AppleHealthExportSource(args.export), client=client, settings=settings)

    if args.dry_run:
        try:
            points = await cycle.gather(args.days)
        except (OSError, ValueError) as exc:
            logger.error("Reading %s failed: %s", args.export, exc)
            print(f"FAILED: Source error: {exc}")
            return 1
        bundle = BundleBuilder().build(points)
        print(bundle.model_dump_json(by_alias=True, exclude_none=True, indent=2))
        return 0

    outcome = await cycle.run(days=args.days, device_id=args.device_id)
    print(
        f"{'OK' if outcome.success else 'FAILED'}: {outcome.message} "
        f"(accepted={outcome.accepted}, rejected={outcome.rejected})"
    )
    return 0 if outcome.success else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.server:
        settings = settings.model_copy(update={"server_url": args.server})
    _configure_logging(settings.log_level)

    if not args.check_status and not args.export:
        parser.error("an export file is required unless --check-status is given")

    logger.info("fhir-sync starting against %s", settings.server_url)
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
