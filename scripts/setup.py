#!/usr/bin/env python3
"""Setup script for the hostmatch engine: run migrations and seed sample data."""

import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from hostmatch.core.clock import utcnow
from hostmatch.core.database import async_session_factory, close_db
from hostmatch.models import (
    Booking,
    BookingStatus,
    DepositMode,
    Host,
    HostReviewStatus,
    RequestPriority,
    RequestStatus,
    ReservationRequest,
    Vehicle,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """Apply Alembic migrations up to head."""
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create two hosts with vehicles, open demand and one rejected booking."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing_hosts = await db.scalar(select(func.count()).select_from(Host))
            if existing_hosts:
                logger.info("Sample data already exists, skipping...")
                return

            coastal = Host(name="Coastal Car Share", email="fleet@coastal.example", default_deposit=250)
            summit = Host(name="Summit Rentals", email="ops@summit.example", make_deposits={"Tesla": 500})
            db.add_all([coastal, summit])
            await db.flush()

            corolla = Vehicle(host_id=coastal.id, make="Toyota", model="Corolla", year=2022, daily_rate=45)
            rav4 = Vehicle(host_id=coastal.id, make="Toyota", model="RAV4", year=2023, daily_rate=70)
            model_y = Vehicle(
                host_id=summit.id,
                make="Tesla",
                model="Model Y",
                year=2024,
                daily_rate=140,
                deposit_mode=DepositMode.INDIVIDUAL,
                deposit_amount=750,
            )
            db.add_all([corolla, rav4, model_y])
            await db.flush()

            today = utcnow().date()
            db.add_all([
                ReservationRequest(
                    request_code="REQ-SEED01",
                    guest_name="Dana Reyes",
                    guest_email="dana@example.com",
                    vehicle_type="SUV",
                    start_date=today + timedelta(days=10),
                    end_date=today + timedelta(days=14),
                    duration_days=4,
                    offered_rate=65,
                    pickup_city="Miami",
                    pickup_state="FL",
                    priority=RequestPriority.HIGH,
                    status=RequestStatus.OPEN,
                ),
                ReservationRequest(
                    request_code="REQ-SEED02",
                    guest_name="Sam Ito",
                    vehicle_type="Sedan",
                    pickup_city="Denver",
                    pickup_state="CO",
                    status=RequestStatus.OPEN,
                ),
            ])

            # A booking the host rejected, ready for a vehicle change
            db.add(
                Booking(
                    car_id=corolla.id,
                    host_id=coastal.id,
                    guest_name="Lee Park",
                    guest_email="lee@example.com",
                    start_date=today + timedelta(days=3),
                    end_date=today + timedelta(days=6),
                    status=BookingStatus.PENDING,
                    host_review_status=HostReviewStatus.REJECTED,
                    host_reviewed_by=coastal.email,
                    host_reviewed_at=utcnow(),
                    host_review_notes="Vehicle in the shop",
                )
            )

            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise


async def seed() -> None:
    try:
        await create_sample_data()
    finally:
        await close_db()


def main() -> None:
    """Main setup function."""
    logger.info("Starting hostmatch engine setup...")

    run_migrations()
    asyncio.run(seed())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn hostmatch.main:app --reload")


if __name__ == "__main__":
    main()
