"""Shared fixtures: in-memory database, fast hasher, test token issuer,
recording email gateway and a temporary picture store."""

from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient

from app import create_app
from auth.security import PasswordHasher, TokenIssuer
from database.connection import Database
from database.repository import IdentityRepository
from services.auth_service import AuthService
from services.notifications import NotificationDispatcher
from storage.file_store import LocalFileStore

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"


class RecordingGateway:
    """Notification gateway that records sends instead of delivering them."""

    def __init__(self) -> None:
        self.verifications: List[Tuple[str, str]] = []
        self.resets: List[Tuple[str, str]] = []
        self.fail = False

    def send_verification_email(self, to_email: str, token: str) -> bool:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.verifications.append((to_email, token))
        return True

    def send_password_reset_email(self, to_email: str, token: str) -> bool:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.resets.append((to_email, token))
        return True


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    with database.get_session() as s:
        yield s


@pytest.fixture
def repository(session) -> IdentityRepository:
    return IdentityRepository(session)


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture(scope="session")
def tokens() -> TokenIssuer:
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def notifier(gateway) -> NotificationDispatcher:
    return NotificationDispatcher(gateway)


@pytest.fixture
def file_store(tmp_path) -> LocalFileStore:
    return LocalFileStore(tmp_path / "profile-pictures")


@pytest.fixture
def departments(repository):
    """Active CS and inactive OLD departments, keyed by code."""
    cs = repository.add_department(name="Computer Science", code="CS", is_active=True)
    old = repository.add_department(name="Old Department", code="OLD", is_active=False)
    return {"CS": cs, "OLD": old}


@pytest.fixture
def auth_service(repository, hasher, tokens, notifier, file_store) -> AuthService:
    return AuthService(
        repository=repository,
        hasher=hasher,
        tokens=tokens,
        notifier=notifier,
        file_store=file_store,
    )


@pytest.fixture
def student_data(departments) -> dict:
    return {
        "email": "a@test.com",
        "password": "password123",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "role": "student",
        "departmentId": departments["CS"].id,
        "enrollmentYear": 2024,
    }


@pytest.fixture
def faculty_data(departments) -> dict:
    return {
        "email": "prof@test.com",
        "password": "password123",
        "firstName": "Alan",
        "lastName": "Turing",
        "role": "faculty",
        "departmentId": departments["CS"].id,
        "title": "professor",
    }


@pytest.fixture
def client(database, hasher, tokens, gateway, file_store, departments):
    app = create_app(
        database=database,
        hasher=hasher,
        tokens=tokens,
        gateway=gateway,
        file_store=file_store,
    )
    with TestClient(app) as c:
        yield c
