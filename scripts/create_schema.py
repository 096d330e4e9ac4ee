#!/usr/bin/env python
"""Create the payroll reconciliation tables.

Usage:
    python scripts/create_schema.py
    python scripts/create_schema.py --database-url postgresql+asyncpg://...
    python scripts/create_schema.py --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from payroll_recon.config import get_settings
from payroll_recon.database import create_schema
from payroll_recon.models import Base


def redact(database_url: str) -> str:
    return database_url.split("@")[-1] if "@" in database_url else database_url


async def run(database_url: str) -> int:
    engine = create_async_engine(database_url, echo=False)
    try:
        await create_schema(engine)
    except SQLAlchemyError as e:
        print(f"ERROR: Could not create schema: {e}")
        return 1
    finally:
        await engine.dispose()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create payroll reconciliation tables")
    parser.add_argument(
        "--database-url",
        default=get_settings().database_url,
        help="Async database URL",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the tables without creating them",
    )
    args = parser.parse_args()

    print("Schema setup")
    print("=" * 50)
    print(f"Database: {redact(args.database_url)}")
    print()

    tables = sorted(Base.metadata.tables)
    for name in tables:
        print(f"  {name}")
    print()

    if args.dry_run:
        print(f"[DRY RUN] Would create {len(tables)} tables")
        return 0

    code = asyncio.run(run(args.database_url))
    if code == 0:
        print(f"Created {len(tables)} tables (existing tables left untouched)")
    return code


if __name__ == "__main__":
    sys.exit(main())
