"""Script to initialize the appointment store and the country databases."""

import argparse
import asyncio
from datetime import UTC, datetime, timedelta

from sqlalchemy import insert

from app.config import get_settings
from app.database import create_engine
from app.domain.appointment import validate_country
from app.models.appointments import metadata as store_metadata
from app.models.country import metadata as country_metadata
from app.models.country import schedules

# Local development schedules, one set per country
SAMPLE_SCHEDULE_IDS = (678, 679, 680)


def sample_schedules(country_iso: str) -> list[dict]:
    """Schedule rows used to try the saga locally."""
    start = datetime.now(UTC).replace(hour=9, minute=0, second=0, microsecond=0)
    return [
        {
            "id": schedule_id,
            "country_iso": country_iso,
            "center_id": 1,
            "specialty_id": 1 + offset,
            "medic_id": 10 + offset,
            "date": start + timedelta(days=offset + 1),
        }
        for offset, schedule_id in enumerate(SAMPLE_SCHEDULE_IDS)
    ]


async def init_db(seed_schedules: bool = False) -> None:
    """Create all tables, optionally seeding sample schedules."""
    settings = get_settings()

    engine = create_engine(settings.database_url, settings)
    async with engine.begin() as conn:
        await conn.run_sync(store_metadata.create_all)
    await engine.dispose()
    print("✓ Appointment store initialized")

    for code, url in settings.country_database_urls.items():
        validate_country(code)
        engine = create_engine(url, settings)
        async with engine.begin() as conn:
            await conn.run_sync(country_metadata.create_all)
            if seed_schedules:
                await conn.execute(insert(schedules), sample_schedules(code))
        await engine.dispose()
        print(f"✓ {code} ledger and schedule directory initialized")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--seed-schedules",
        action="store_true",
        help="Insert sample schedules into every country database",
    )
    args = parser.parse_args()
    asyncio.run(init_db(seed_schedules=args.seed_schedules))
