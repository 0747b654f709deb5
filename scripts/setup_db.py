"""Create tables, seed quarters and load public holidays.

Usage:
    python -m scripts.setup_db --years 2024 2025
    python -m scripts.setup_db --years 2025 --holidays holidays_nw.csv --jurisdiction DE-NW

The holidays file is a CSV with ``date,name`` rows (ISO dates, no header).
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import sys
from datetime import date
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hourly_billing.config import settings
from hourly_billing.database import create_all, get_engine
from hourly_billing.holidays import HolidayRepository
from hourly_billing.models import Holiday
from hourly_billing.services.quarters import seed_quarters


def read_holidays(path: Path) -> list[tuple[date, str | None]]:
    """Parse ``date,name`` rows."""
    rows = []
    with path.open(newline="", encoding="utf-8") as handle:
        for record in csv.reader(handle):
            if not record or record[0].startswith("#"):
                continue
            name = record[1].strip() if len(record) > 1 else None
            rows.append((date.fromisoformat(record[0].strip()), name or None))
    return rows


async def setup(
    database_url: str,
    years: list[int],
    holidays_file: Path | None,
    jurisdiction: str,
) -> None:
    engine = get_engine(database_url)
    print(f"Target database: {database_url.split('@')[1] if '@' in database_url else database_url}")

    try:
        await create_all(engine)
        print("Tables created")

        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with factory() as session:
            for year in years:
                await seed_quarters(session, year)
                print(f"Quarters of {year} seeded")

            if holidays_file is not None:
                existing = set(
                    (
                        await session.execute(
                            select(Holiday.holiday_date).where(Holiday.jurisdiction == jurisdiction)
                        )
                    ).scalars()
                )
                repo = HolidayRepository(session)
                added = 0
                for on, name in read_holidays(holidays_file):
                    if on in existing:
                        continue
                    await repo.add_holiday(on, jurisdiction, name)
                    added += 1
                print(f"Loaded {added} holiday(s) for {jurisdiction}")

            await session.commit()
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Prepare the billing database")
    parser.add_argument("--database-url", default=settings.database_url, help="Database URL")
    parser.add_argument(
        "--years",
        type=int,
        nargs="+",
        default=[date.today().year],
        help="Years whose quarters to seed",
    )
    parser.add_argument("--holidays", type=Path, default=None, help="CSV file of holidays")
    parser.add_argument(
        "--jurisdiction",
        default=settings.holiday_jurisdiction,
        help="Jurisdiction the holidays belong to",
    )
    args = parser.parse_args()

    if args.holidays is not None and not args.holidays.exists():
        print(f"Error: holidays file not found: {args.holidays}")
        sys.exit(1)

    asyncio.run(setup(args.database_url, args.years, args.holidays, args.jurisdiction))


if __name__ == "__main__":
    main()
