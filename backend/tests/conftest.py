"""
FRA Patta - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
TEST_DIR = tempfile.mkdtemp(prefix='fra-patta-tests-')
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = f'sqlite+aiosqlite:///{TEST_DIR}/test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['UPLOAD_DIR'] = os.path.join(TEST_DIR, 'uploads')
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_FILE'] = ''
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''

from fra_patta.main import app
from fra_patta.core.database import Base, get_db
from fra_patta.models.user import User, UserRole
from fra_patta.core.security import get_password_hash, create_access_token

fake = Faker()

TEST_PASSWORD = 'testpassword123'

# Test database setup
TEST_DATABASE_URL = os.environ['DATABASE_URL']
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session
        if db_session.new or db_session.dirty or db_session.deleted:
            await db_session.commit()

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db_session: AsyncSession, role: UserRole, approved: bool = True, **fields) -> User:
    """Persist a user with the shared test password"""
    values = {
        'email': fake.unique.user_name() + ('@fra.gov.in' if role == UserRole.MINISTRY else '@fra-ngo.org'),
        'name': fake.name(),
        'organization': fake.company(),
        'district': 'Mandla',
    }
    values.update(fields)
    user = User(
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=role,
        is_approved=approved,
        is_active=True,
        **values
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token({'sub': str(user.id), 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
async def ministry_user(db_session: AsyncSession) -> User:
    """Create a ministry official"""
    return await make_user(db_session, UserRole.MINISTRY, organization='Ministry of Tribal Affairs')


@pytest.fixture
async def ngo_user(db_session: AsyncSession) -> User:
    """Create an approved NGO"""
    return await make_user(db_session, UserRole.NGO)


@pytest.fixture
async def other_ngo_user(db_session: AsyncSession) -> User:
    """A second approved NGO, for ownership checks"""
    return await make_user(db_session, UserRole.NGO, district='Dindori')


@pytest.fixture
async def pending_ngo(db_session: AsyncSession) -> User:
    """Create an NGO still waiting for approval"""
    return await make_user(db_session, UserRole.NGO, approved=False)


@pytest.fixture
def ministry_headers(ministry_user: User) -> dict:
    """Authentication headers for the ministry user"""
    return headers_for(ministry_user)


@pytest.fixture
def ngo_headers(ngo_user: User) -> dict:
    """Authentication headers for the approved NGO"""
    return headers_for(ngo_user)


@pytest.fixture
def other_ngo_headers(other_ngo_user: User) -> dict:
    return headers_for(other_ngo_user)


@pytest.fixture
def patta_text() -> str:
    """A well-formed patta with every scored field and coordinates"""
    return (
        "FOREST RIGHTS ACT - TITLE FOR FOREST LAND\n"
        "Claimant Name: Ramesh Kumar\n"
        "Village: Bhimpur\n"
        "District: Mandla\n"
        "State: Madhya Pradesh\n"
        "Land Area: 2.5 hectares\n"
        "Approval Date: 15/08/2020\n"
        "Latitude: 22.5975, Longitude: 80.3712\n"
    )
