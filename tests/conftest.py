"""
CIDCO Records - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError
from httpx import AsyncClient, ASGITransport
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite://'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['AUTH_REQUIRED'] = 'true'
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''
os.environ['FRONTEND_URL'] = 'https://records.test'

from cidco_records.main import app
from cidco_records.core.database import Base, get_db
from cidco_records.core.security import get_password_hash, create_access_token
from cidco_records.models.plot_record import all_data
from cidco_records.models.user import User, UserRole
from cidco_records.api.deps import get_storage_service, get_email_service
from cidco_records.services.email_service import EmailService

fake = Faker()

TEST_PASSWORD = 'testpassword123'


class FakeStorage:
    """In-memory stand-in for StorageService"""

    def __init__(self, keys: Optional[List[str]] = None):
        self.keys = set(keys or [])
        self.fail_listing = False
        self.fail_signing = False

    def _error(self, operation: str) -> ClientError:
        return ClientError({'Error': {'Code': 'InternalError', 'Message': 'boom'}}, operation)

    async def list_keys(self, prefix: str) -> List[str]:
        if self.fail_listing:
            raise self._error('ListObjectsV2')
        return sorted(
            key for key in self.keys
            if key.startswith(prefix) and '/' not in key[len(prefix):]
        )

    async def sign_url(self, key: str, expiration: int = 3600) -> str:
        if self.fail_signing:
            raise self._error('GetObject')
        return f'https://signed.test/{key}?expires={expiration}'

    async def sign_url_if_exists(self, key: str, expiration: int = 3600) -> Optional[str]:
        if key not in self.keys:
            return None
        return await self.sign_url(key, expiration)


class FakeEmailService(EmailService):
    """
    Records reset emails instead of sending them. Set `deliver` to False to
    report a failed send, or `error` to have the send raise.
    """

    def __init__(self):
        super().__init__()
        self.sent: List[Dict[str, str]] = []
        self.deliver = True
        self.error: Optional[Exception] = None

    async def send_password_reset_email(self, to_email: str, name: str, reset_link: str) -> bool:
        self.sent.append({'to': to_email, 'name': name, 'link': reset_link})
        if self.error is not None:
            raise self.error
        return self.deliver


PLOT_ROWS = [
    {
        'ID': 1, 'REGION': 'NAVI MUMBAI', 'NAME_OF_NODE': 'PANVEL EAST', 'SECTOR_NO_': '12',
        'BLOCK_ROAD_NAME': 'A', 'PLOT_NO_': '1', 'PLOT_NO_AFTER_SURVEY': '1A',
        'PLOT_USE_FOR_INVOICE': 'COMMERCIAL', 'PLOT_AREA_FOR_INVOICE': '1000',
        'Additional_Plot_Count': 1, 'Base_Plot_Count': 2, 'Department_Remark': 'Estate',
    },
    {
        'ID': 2, 'REGION': 'NAVI MUMBAI', 'NAME_OF_NODE': 'PANVEL EAST', 'SECTOR_NO_': '12',
        'BLOCK_ROAD_NAME': 'B', 'PLOT_NO_': '2', 'PLOT_NO_AFTER_SURVEY': None,
        'PLOT_USE_FOR_INVOICE': 'RESIDENTIAL', 'PLOT_AREA_FOR_INVOICE': '1,500.5 sqm',
        'Additional_Plot_Count': 0, 'Base_Plot_Count': 1, 'Department_Remark': 'Estate',
    },
    {
        'ID': 3, 'REGION': 'RAIGAD', 'NAME_OF_NODE': 'PANVEL EAST', 'SECTOR_NO_': '12',
        'BLOCK_ROAD_NAME': 'A', 'PLOT_NO_': '3', 'PLOT_NO_AFTER_SURVEY': None,
        'PLOT_USE_FOR_INVOICE': None, 'PLOT_AREA_FOR_INVOICE': '500',
        'Additional_Plot_Count': 2, 'Base_Plot_Count': 1, 'Department_Remark': None,
    },
    {
        'ID': 4, 'REGION': 'NAVI MUMBAI', 'NAME_OF_NODE': 'VASHI', 'SECTOR_NO_': '17',
        'BLOCK_ROAD_NAME': 'C', 'PLOT_NO_': '4', 'PLOT_NO_AFTER_SURVEY': None,
        'PLOT_USE_FOR_INVOICE': 'SCHOOL', 'PLOT_AREA_FOR_INVOICE': 'abc',
        'Additional_Plot_Count': None, 'Base_Plot_Count': 1, 'Department_Remark': 'Planning',
    },
    {
        'ID': 5, 'REGION': 'NAVI MUMBAI', 'NAME_OF_NODE': 'VASHI', 'SECTOR_NO_': '12',
        'BLOCK_ROAD_NAME': 'A', 'PLOT_NO_': '5', 'PLOT_NO_AFTER_SURVEY': '5',
        'PLOT_USE_FOR_INVOICE': 'COMMERCIAL', 'PLOT_AREA_FOR_INVOICE': '1000',
        'Additional_Plot_Count': 1, 'Base_Plot_Count': 1, 'Department_Remark': 'Planning',
        'NAME_OF_ORIGINAL_ALLOTTEE': 'Sharma Traders', 'pdf_url': 'http://old-host/5.pdf',
    },
]


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database for each test"""
    engine = create_async_engine(
        'sqlite+aiosqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def fake_email() -> FakeEmailService:
    return FakeEmailService()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    fake_storage: FakeStorage,
    fake_email: FakeEmailService,
) -> AsyncGenerator[AsyncClient, None]:
    """Test client with database and external services overridden"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_service] = lambda: fake_storage
    app.dependency_overrides[get_email_service] = lambda: fake_email

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, role: UserRole, password_hash: str) -> User:
    user = User(
        username=f'{fake.user_name()}_{fake.unique.random_int(1, 10**6)}',
        email=fake.unique.email(),
        name=fake.name(),
        role=role.value,
        password_hash=password_hash,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a regular user"""
    return await _create_user(db_session, UserRole.USER, get_password_hash(TEST_PASSWORD))


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin user"""
    return await _create_user(db_session, UserRole.ADMIN, get_password_hash('adminpassword123'))


@pytest_asyncio.fixture
async def legacy_user(db_session: AsyncSession) -> User:
    """User whose password is still stored in plain text"""
    return await _create_user(db_session, UserRole.USER, 'legacy-pass-1')


def _headers_for(user: User) -> dict:
    token = create_access_token({
        'sub': str(user.id),
        'username': user.username,
        'role': user.role,
    })
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authentication headers for the regular user"""
    return _headers_for(test_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Authentication headers for the admin user"""
    return _headers_for(admin_user)


@pytest_asyncio.fixture
async def plot_rows(db_session: AsyncSession) -> List[dict]:
    """Seed the registry with a small mixed data set"""
    columns = [column.name for column in all_data.columns]
    rows = [{name: row.get(name) for name in columns} for row in PLOT_ROWS]
    await db_session.execute(insert(all_data), rows)
    await db_session.commit()
    return PLOT_ROWS
