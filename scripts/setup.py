#!/usr/bin/env python3
"""Setup script for the package pricing API."""

import asyncio
import logging
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from package_pricing.core.database import async_session_factory, init_db
from package_pricing.models import FlightSource, Package, PricingModule, Season

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ALEMBIC_INI = server_dir / "db" / "alembic.ini"


async def setup_database():
    """Create the schema, through Alembic when it is configured."""
    logger.info("Setting up database...")

    try:
        if ALEMBIC_INI.exists():
            alembic_cfg = Config(str(ALEMBIC_INI))
            alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

            logger.info("Running database migrations...")
            await asyncio.to_thread(command.upgrade, alembic_cfg, "head")
            logger.info("Database migrations completed")
        else:
            await init_db()
            logger.info("Tables created from model metadata")

        logger.info("Database setup completed successfully!")

    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        raise


async def create_sample_data():
    """Seed one open-jaw seasonal package with two seasons."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing = await db.execute(select(func.count()).select_from(Package))
            if existing.scalar() > 0:
                logger.info("Sample data already exists, skipping...")
                return

            package = Package(
                title="Golden Triangle Explorer",
                slug="golden-triangle-explorer",
                currency="GBP",
                duration_nights=9,
                pricing_module=PricingModule.OPEN_JAW_SEASONAL.value,
                flight_source=FlightSource.SERP.value,
            )
            db.add(package)
            await db.flush()

            year = date.today().year + 1
            db.add(Season(
                package_id=package.id,
                label=f"Winter {year}",
                start_date=date(year, 1, 1),
                end_date=date(year, 3, 31),
                land_cost_per_person=Decimal("649.00"),
                hotel_cost_per_person=Decimal("120.00"),
            ))
            db.add(Season(
                package_id=package.id,
                label=f"Spring {year}",
                start_date=date(year, 4, 1),
                end_date=date(year, 4, 1) + timedelta(days=60),
                land_cost_per_person=Decimal("599.00"),
            ))

            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise


async def main():
    """Main setup function."""
    logger.info("Starting package pricing API setup...")

    await setup_database()
    await create_sample_data()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn package_pricing.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
