from __future__ import annotations

import argparse
import asyncio

from offboardly.core.logging import configure_logging
from offboardly.persistence.db import engine
from offboardly.services.lifecycle.scanner import scan_and_process_due_changes


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Execute due lifecycle changes once")
    parser.add_argument("--limit", type=int, default=None, help="Override the scan batch size")
    return parser


async def _run(args: argparse.Namespace) -> None:
    configure_logging()
    try:
        summary = await scan_and_process_due_changes(limit=args.limit)
    finally:
        await engine.dispose()
    print(
        f"processed={summary.processed} completed={summary.completed} "
        f"failed={summary.failed} skipped={summary.skipped} errors={summary.errors} reaped={summary.reaped}"
    )


if __name__ == "__main__":
    asyncio.run(_run(_build_parser().parse_args()))
