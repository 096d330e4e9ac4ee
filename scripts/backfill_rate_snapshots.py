#!/usr/bin/env python
"""Capture rate snapshots on labor records that predate snapshotting.

Usage:
    python scripts/backfill_rate_snapshots.py --start 2024-01-01 --end 2024-02-01
    python scripts/backfill_rate_snapshots.py --start 2024-01-01 --end 2024-02-01 --actor ops
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone

from payroll_recon.database import dispose_db, get_session
from payroll_recon.errors import PayrollError
from payroll_recon.services.payroll_run_service import PayrollRunService


def parse_instant(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def run(start: datetime, end: datetime, actor: str) -> int:
    try:
        async with get_session() as session:
            result = await PayrollRunService(session).backfill_rate_snapshots(start, end, actor)
    except PayrollError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        await dispose_db()

    print(f"Records in range: {result.total}")
    print(f"  Backfilled: {result.updated}")
    print(f"  Skipped:    {result.skipped}")
    print(f"  Errors:     {result.errors}")
    return 0 if result.errors == 0 else 2


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill labor record rate snapshots")
    parser.add_argument("--start", required=True, type=parse_instant, help="Range start (ISO 8601)")
    parser.add_argument("--end", required=True, type=parse_instant, help="Range end, exclusive (ISO 8601)")
    parser.add_argument("--actor", default="backfill-script", help="Recorded as backfilled_by")
    args = parser.parse_args()

    return asyncio.run(run(args.start, args.end, args.actor))


if __name__ == "__main__":
    sys.exit(main())
