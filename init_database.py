"""
Database Initialization Script for the CPS API

Creates every table used by the FastAPI backend and, when ADMIN_EMAIL and
ADMIN_PASSWORD are set, seeds an administrator account.

Usage:
    python init_database.py
    ADMIN_EMAIL=admin@cps.co.id ADMIN_PASSWORD=secret123 python init_database.py
"""

import asyncio
import os
import sys

from sqlalchemy import inspect, select

from src.api.core.database import AsyncSessionLocal, Base, engine
from src.api.core.security import get_password_hash
from src.api.models import User


async def seed_admin(email: str, password: str, name: str) -> bool:
    """Create the administrator account unless the email is already taken"""
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none() is not None:
            print(f"   - Admin {email} already exists, skipped")
            return False
        session.add(User(
            name=name,
            email=email,
            password_hash=get_password_hash(password),
            is_admin=True,
        ))
        await session.commit()
        print(f"   ✓ Admin {email} created")
        return True


async def init_database():
    """Initialize database schema"""
    print("=" * 60)
    print("CPS Database Initialization")
    print("=" * 60)
    print()

    print("1. Creating database tables...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    except Exception as e:
        print(f"   ✗ Failed to create tables: {e}")
        print()
        print("Please ensure:")
        print("  1. PostgreSQL is reachable with the POSTGRES_* settings")
        print("  2. Or SQLALCHEMY_DATABASE_URI points at a reachable database")
        return False

    print(f"   ✓ Found {len(tables)} tables:")
    for table in sorted(tables):
        print(f"      - {table}")
    print()

    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    if admin_email and admin_password:
        print("2. Seeding administrator...")
        try:
            await seed_admin(
                admin_email.strip().lower(),
                admin_password,
                os.getenv("ADMIN_NAME", "Administrator"),
            )
        except Exception as e:
            print(f"   ✗ Failed to seed admin: {e}")
            return False
        print()

    await engine.dispose()

    print("=" * 60)
    print("Database initialization completed successfully!")
    print("=" * 60)
    print()
    print("Next steps:")
    print("  1. Start the API server: uvicorn src.api.main:app --reload")
    print("  2. Run tests: pytest")
    print()

    return True


if __name__ == "__main__":
    result = asyncio.run(init_database())
    sys.exit(0 if result else 1)
