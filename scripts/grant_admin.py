#!/usr/bin/env python3
"""
Grant or revoke the admin role on an existing account

    python scripts/grant_admin.py manager@onesip.co.in
    python scripts/grant_admin.py manager@onesip.co.in --revoke
"""

import argparse
import asyncio
import sys


async def set_role(email: str, revoke: bool) -> int:
    from sqlalchemy import select

    from app.database import SessionLocal
    from app.models.profile import Profile, ProfileRole

    role = ProfileRole.CUSTOMER if revoke else ProfileRole.ADMIN

    async with SessionLocal() as db:
        result = await db.execute(
            select(Profile).where(Profile.email == email.strip().lower())
        )
        profile = result.scalar_one_or_none()

        if profile is None:
            print(f"No profile found for {email}")
            return 1

        profile.role = role
        await db.commit()

    print(f"{email} is now {role.value}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Change an account's role")
    parser.add_argument("email")
    parser.add_argument("--revoke", action="store_true", help="demote to customer")
    args = parser.parse_args()
    return asyncio.run(set_role(args.email, args.revoke))


if __name__ == "__main__":
    sys.exit(main())
