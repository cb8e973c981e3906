import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.core.auth import create_access_token, get_current_user
from app.db.mongo import create_indexes, get_db
from app.main import app
from app.models.user import UserRole
from app.repositories.user_repo import UserRepository
from app.services.student_service import StudentService

TEST_MONGODB_DB = "lms_admin_test"


@pytest_asyncio.fixture
async def test_db():
    """In-process MongoDB double with the production indexes."""
    client = AsyncMongoMockClient()
    db = client[TEST_MONGODB_DB]
    await create_indexes(db)
    yield db


@pytest_asyncio.fixture
async def admin_user(test_db):
    """Regular back-office admin."""
    user_repo = UserRepository(test_db)
    return await user_repo.create_user(
        username="admin",
        password="AdminPass123",
        name="Office Admin",
        role=UserRole.ADMIN
    )


@pytest_asyncio.fixture
async def super_admin(test_db):
    user_repo = UserRepository(test_db)
    return await user_repo.create_user(
        username="owner",
        password="OwnerPass123",
        name="Owner",
        role=UserRole.SUPER_ADMIN
    )


@pytest_asyncio.fixture
async def valid_token(admin_user):
    return create_access_token(str(admin_user.id))


@pytest_asyncio.fixture
async def enrolled_student(test_db, admin_user):
    """Student with fee 50000 and a 10000 down payment already on the ledger."""
    return await StudentService(test_db).enroll(
        actor=admin_user,
        name="Asha Verma",
        email="asha@example.com",
        course="Full Stack Development",
        fee_offered=50000,
        down_payment=10000
    )


@pytest_asyncio.fixture
async def client(test_db, admin_user):
    """HTTP client acting as a regular admin."""
    app.dependency_overrides[get_db] = lambda: test_db
    app.dependency_overrides[get_current_user] = lambda: admin_user
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def super_client(test_db, super_admin):
    """HTTP client acting as a super admin."""
    app.dependency_overrides[get_db] = lambda: test_db
    app.dependency_overrides[get_current_user] = lambda: super_admin
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def anonymous_client(test_db):
    """HTTP client without credentials; real auth dependency runs."""
    app.dependency_overrides[get_db] = lambda: test_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
