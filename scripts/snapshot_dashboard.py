"""
Solar Ops Hub — Dashboard Snapshot
====================================
Runs one dashboard refresh cycle against the Solar CRM API and prints the
view model as JSON, or writes it to a file.

Usage:
    python scripts/snapshot_dashboard.py                         # print to stdout
    python scripts/snapshot_dashboard.py --pretty                # indented output
    python scripts/snapshot_dashboard.py --output data/dashboard.json
    python scripts/snapshot_dashboard.py --no-summary            # always compose from sources

Exit codes:
    0  Ready
    1  Failed
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup
# ---------------------------------------------------------------------------
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

from dashboard.aggregation.orchestrator import DashboardOrchestrator, DashboardRefresher
from integrations.solar_crm import SolarCRMClient
from models.dashboard_models import RefreshResult, RefreshState
from scripts.lib.logger import setup_logger
from scripts.lib.utils import atomic_write_json

logger = setup_logger("snapshot_dashboard")


async def take_snapshot(client=None, use_summary: bool = True) -> RefreshResult:
    """Run a single refresh cycle."""
    client = client if client is not None else SolarCRMClient()
    refresher = DashboardRefresher(DashboardOrchestrator(client, use_summary=use_summary))
    return await refresher.refresh()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Solar Ops Hub dashboard snapshot")
    parser.add_argument("--output", type=Path, help="Write JSON here instead of stdout")
    parser.add_argument("--pretty", action="store_true", help="Indent JSON output")
    parser.add_argument(
        "--no-summary", action="store_true",
        help="Skip the combined report and compose from individual sources",
    )
    return parser


def main(argv: Optional[List[str]] = None, client=None) -> int:
    args = build_parser().parse_args(argv)

    result = asyncio.run(take_snapshot(client, use_summary=not args.no_summary))

    if result.state is RefreshState.FAILED:
        logger.error("Snapshot failed: %s", result.error)
        return 1

    payload = {
        "meta": result.summary(),
        "dashboard": result.view_model.to_payload(),
    }

    if args.output:
        if not atomic_write_json(payload, args.output, indent=2 if args.pretty else None):
            return 1
        logger.info("Snapshot written to %s", args.output)
    else:
        print(json.dumps(payload, indent=2 if args.pretty else None))

    if result.degraded_sources:
        logger.warning("Degraded sources: %s", ", ".join(result.degraded_sources))
    return 0


if __name__ == "__main__":
    sys.exit(main())
