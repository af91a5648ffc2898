"""Pytest fixtures — throwaway SQLite database for fast, isolated tests."""
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from clearance.database import Base, get_db
from clearance.main import app

# Import all models so they register with Base.metadata
from clearance.models.user import User                                            # noqa: F401
from clearance.models.department import Department                                # noqa: F401
from clearance.models.clearance_request import ClearanceRequest, ApprovalEntry    # noqa: F401

SQLITE_URL = "sqlite:///./test.db"
DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: drive the API and return response JSON
# ---------------------------------------------------------------------------
def auth(user: dict) -> dict:
    """Authorization header for a user returned by register_user()."""
    return {"Authorization": f"Bearer {user['access_token']}"}


def register_user(client: TestClient, name: str, role: str = "student",
                  email: str | None = None, department_name: str | None = None) -> dict:
    """Helper — POST /api/auth/register and return response JSON (token + user)."""
    payload = {
        "name": name,
        "email": email or f"{name.lower().replace(' ', '.')}@example.edu",
        "password": DEFAULT_PASSWORD,
        "role": role,
    }
    if department_name is not None:
        payload["department_name"] = department_name
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_department(client: TestClient, admin: dict, name: str) -> dict:
    """Helper — POST /api/departments as an admin and return response JSON."""
    resp = client.post("/api/departments/", json={"name": name}, headers=auth(admin))
    assert resp.status_code == 201, resp.text
    return resp.json()


def setup_campus(client: TestClient, department_names=("Accounts", "Hostel", "Library")) -> dict:
    """Admin, departments, one staff member per department and a student."""
    admin = register_user(client, "Site Admin", role="admin")
    departments = {name: create_department(client, admin, name) for name in department_names}
    staff = {
        name: register_user(client, f"{name} Clerk", role="staff", department_name=name)
        for name in department_names
    }
    student = register_user(client, "Asha Verma")
    return {"admin": admin, "departments": departments, "staff": staff, "student": student}


def open_request(client: TestClient, student: dict) -> dict:
    """Helper — POST /api/requests as a student and return response JSON."""
    resp = client.post("/api/requests/", headers=auth(student))
    assert resp.status_code == 201, resp.text
    return resp.json()


def decide(client: TestClient, staff: dict, request_id: str, decision: str, comment: str | None = None):
    """Helper — PUT /api/requests/{id}/action as a staff member, returns the raw response."""
    body = {"status": decision}
    if comment is not None:
        body["comment"] = comment
    return client.put(f"/api/requests/{request_id}/action", json=body, headers=auth(staff))
