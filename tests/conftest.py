"""
Shared test fixtures.

Sets up an isolated SQLite database (through aiosqlite) so tests
never touch the real database. Tables are created before each test
and dropped after it, so every test starts from a clean database.
"""

import os

# Must be set before finance_console is imported: the application
# engine is created from it at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from finance_console.main import app
from finance_console.models import Base, Employee
from finance_console.models.base import get_db
from finance_console.models.enums import EmployeeRole
from finance_console.security import Principal


TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


@pytest.fixture
async def engine():
    """
    Create all tables before each test, drop them after.

    NullPool keeps no connection alive between tests, so nothing
    outlives the event loop of the test that opened it.
    """
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Sessions configured like the application's SessionLocal."""
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for direct service testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(db_session):
    """
    Provide an HTTP client bound to the app and the test database.

    The get_db dependency is overridden so the app uses our test
    session instead of the real database.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# --- Principals ---

@pytest.fixture
def admin():
    return Principal(id="u-admin", name="Alice Admin", role=EmployeeRole.ADMIN)


@pytest.fixture
def manager():
    return Principal(id="u-manager", name="Mark Manager", role=EmployeeRole.MANAGER)


@pytest.fixture
def staff():
    return Principal(id="u-staff", name="Sam Staff", role=EmployeeRole.EMPLOYEE)


def headers_for(principal: Principal) -> dict[str, str]:
    """Gateway headers identifying a principal."""
    return {
        "X-User-Id": principal.id,
        "X-User-Name": principal.name,
        "X-User-Role": principal.role.value,
    }


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def manager_headers(manager):
    return headers_for(manager)


@pytest.fixture
def staff_headers(staff):
    return headers_for(staff)


@pytest.fixture
def make_employee(db_session):
    """
    Factory: insert an employee and return its id.

    Tests keep ids rather than ORM instances, because a failed
    operation rolls the session back and expires loaded rows.
    """
    async def _make(name: str = "Jane Doe", role=EmployeeRole.EMPLOYEE) -> int:
        employee = Employee(name=name, role=role)
        db_session.add(employee)
        await db_session.commit()
        return employee.id

    return _make
