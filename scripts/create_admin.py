#!/usr/bin/env python3
"""
Script to create an admin user. Admins cannot self-register through the API.
"""
import sys
from getpass import getpass
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from auth.errors import AuthError
from auth.security import PasswordHasher
from database.connection import Database
from database.models import UserRole
from database.repository import IdentityRepository, UniqueViolation
import config


def create_admin():
    """Create an admin user."""
    db = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )
    db.create_tables()

    print("Creating admin user...")
    print("=" * 50)

    email = input("Email: ").strip().lower()
    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()
    password = getpass("Password: ")

    if not email or not first_name or not last_name or not password:
        print("Error: Email, first name, last name and password are required")
        sys.exit(1)

    try:
        hasher = PasswordHasher(rounds=config.BCRYPT_ROUNDS)
        with db.get_session() as session:
            user = IdentityRepository(session).create_identity(
                email=email,
                password=hasher.hash(password),
                first_name=first_name,
                last_name=last_name,
                role=UserRole.ADMIN,
                is_active=True,
                is_email_verified=True,
            )
            print(f"\n✓ Admin user created successfully!")
            print(f"  Email: {user.email}")
            print(f"  Role: {user.role.value}")
    except UniqueViolation:
        print(f"\n✗ Error: A user with email {email} already exists")
        sys.exit(1)
    except AuthError as e:
        print(f"\n✗ Error: {e.message}")
        sys.exit(1)
    except Exception as e:
        print(f"\n✗ Unexpected error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == "__main__":
    create_admin()
