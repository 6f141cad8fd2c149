import os
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables - use in-memory SQLite for testing
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.core import config
from app.core.database.base import Base
from app.core.database.engine import get_db, import_models
from app.features.organizations.models import Organization
from app.features.organizations.paths import child_path, root_path
from app.features.organizations.repository import OrganizationRepository
from app.features.organizations.service import OrganizationTree
from app.features.permissions.authorization import AuthorizationFacade
from app.features.permissions.catalog import PERMISSION_CODES
from app.features.permissions.models import DataScope, Role, RolePermission
from app.features.permissions.schemas import Principal
from app.features.permissions.scopes import ScopeResolver
from app.features.users.models import User

import_models()

from app.main import app  # noqa: E402


ASYNC_TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def async_db_session():
    """Create a fresh in-memory database and ASYNC session for each test."""
    # StaticPool keeps the single in-memory connection alive for the whole test
    engine = create_async_engine(
        ASYNC_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(async_db_session):
    """Create async test client with ASYNC database override."""
    import httpx

    async def override_get_db():
        yield async_db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def repository(async_db_session):
    return OrganizationRepository(async_db_session)


@pytest.fixture
def resolver(repository):
    return ScopeResolver(repository)


@pytest.fixture
def authorization(resolver):
    return AuthorizationFacade(resolver)


@pytest.fixture
def tree(repository, authorization):
    return OrganizationTree(repository, authorization)


# =============================================================================
# Sample Data Factories
# =============================================================================

@pytest.fixture
def make_org(async_db_session):
    """Insert an organization directly, with a consistent path and level."""
    async def _make(code: str, parent: Organization | None = None, name: str | None = None, sort_order: int = 0):
        org = Organization(
            name=name or code,
            code=code,
            parent_id=parent.id if parent else None,
            path="",
            level=parent.level + 1 if parent else 0,
            sort_order=sort_order,
        )
        async_db_session.add(org)
        await async_db_session.flush()
        org.path = child_path(parent.path, org.id) if parent else root_path(org.id)
        await async_db_session.commit()
        await async_db_session.refresh(org)
        return org

    return _make


@pytest.fixture
def make_role(async_db_session):
    async def _make(name: str, data_scope: DataScope = DataScope.SELF, codes=(), is_system: bool = False):
        role = Role(
            name=name,
            data_scope=data_scope,
            is_system=is_system,
            permissions=[RolePermission(permission_code=code) for code in codes],
        )
        async_db_session.add(role)
        await async_db_session.commit()
        await async_db_session.refresh(role)
        return role

    return _make


@pytest.fixture
def make_user(async_db_session):
    async def _make(username: str, org: Organization, roles=(), is_active: bool = True):
        user = User(
            username=username,
            email=f"{username}@example.com",
            name=username.title(),
            org_id=org.id,
            is_active=is_active,
            roles=list(roles),
        )
        async_db_session.add(user)
        await async_db_session.commit()
        await async_db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def principal_for():
    """Build a principal attached to an organization without going through the user table."""
    def _principal(org: Organization, data_scope=DataScope.ALL, user_id: str = "user-1", permissions=PERMISSION_CODES):
        return Principal(
            id=user_id,
            org_id=org.id,
            org_path=org.path,
            permissions=frozenset(permissions),
            data_scope=data_scope,
        )

    return _principal


def token_for(user_id: str, expires_in: timedelta = timedelta(minutes=5)) -> str:
    payload = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    """Bearer headers for a user, or for a raw token when given one."""
    def _headers(
        user: User | None = None,
        token: str | None = None,
        expires_in: timedelta = timedelta(minutes=5),
    ) -> dict[str, str]:
        return {"Authorization": f"Bearer {token or token_for(user.id, expires_in)}"}

    return _headers


@pytest_asyncio.fixture
async def admin(make_org, make_role, make_user):
    """A super admin user attached to a root organization."""
    root = await make_org("ROOT")
    role = await make_role("super_admin", DataScope.ALL, sorted(PERMISSION_CODES), is_system=True)
    return await make_user("admin", root, [role])
