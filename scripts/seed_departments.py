#!/usr/bin/env python3
"""
Script to seed the reference departments. Safe to run repeatedly.
"""
import sys
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import Database
from database.repository import IdentityRepository
from services.department_service import DepartmentService
import config


def seed_departments():
    """Insert or update the default departments."""
    db = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )
    db.create_tables()

    print("Seeding departments...")
    print("=" * 50)

    try:
        with db.get_session() as session:
            counts = DepartmentService(IdentityRepository(session)).seed()
        print(f"\n✓ Departments seeded: {counts['created']} created, {counts['updated']} updated")
    except Exception as e:
        print(f"\n✗ Unexpected error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == "__main__":
    seed_departments()
