#!/usr/bin/env python3
"""
Seed script to create a demo admin account and sample reservations
"""

import asyncio
import uuid
from datetime import timedelta

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


async def seed_demo_data():
    """Seed demo data for development"""
    from app.database import SessionLocal, create_all
    from app.models.profile import Profile, ProfileRole
    from app.models.reservation import Reservation, ReservationStatus
    from app.models.user import User
    from app.validation import local_today

    # Create tables
    await create_all()

    async with SessionLocal() as db:
        # Check if demo admin already exists
        from sqlalchemy import select
        result = await db.execute(
            select(User).where(User.email == "admin@onesip.co.in")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo admin...")

        admin = User(
            id=uuid.uuid4(),
            email="admin@onesip.co.in",
            hashed_password=pwd_context.hash("admin123"),
            display_name="One Sip Manager",
        )
        db.add(admin)
        db.add(
            Profile(
                uid=admin.id,
                email=admin.email,
                display_name=admin.display_name,
                role=ProfileRole.ADMIN,
                reservations=[],
            )
        )

        print("Creating sample reservations...")

        today = local_today()
        reservations_data = [
            {
                "customer_name": "Asha Rao",
                "customer_phone": "9876543210",
                "customer_email": "asha@example.com",
                "party_size": 2,
                "reservation_date": today,
                "reservation_time": "19:00",
                "status": ReservationStatus.PENDING,
            },
            {
                "customer_name": "Rohan Sen",
                "customer_phone": "9123456780",
                "party_size": 6,
                "reservation_date": today + timedelta(days=1),
                "reservation_time": "20:00",
                "special_requests": "Birthday dinner, window table if possible",
                "status": ReservationStatus.CONFIRMED,
            },
            {
                "customer_name": "Meera Iyer",
                "customer_phone": "8012345678",
                "party_size": 4,
                "reservation_date": today + timedelta(days=3),
                "reservation_time": "13:00",
                "status": ReservationStatus.CANCELLED,
            },
        ]

        for reservation_data in reservations_data:
            db.add(Reservation(**reservation_data))

        await db.commit()

        print(f"""
Demo data created successfully!

Admin:
  Email: admin@onesip.co.in
  Password: admin123

Reservations: {len(reservations_data)} created
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
