import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./learnlink_test.db")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from learnlink import auth, models
from learnlink.auth import Principal
from learnlink.cloudinary_utils import StoredFile, get_storage
from learnlink.database import get_db
from learnlink.exceptions import StorageError
from learnlink.main import app
from learnlink.models import Base
from learnlink.schemas import ResourceStatus, Role
from learnlink.utils import file_format, format_file_size


class FakeStorage:
    """In-memory stand-in for the Cloudinary client."""

    def __init__(self):
        self.blobs = {}
        self.destroyed = []
        self.fail_upload = False
        self.fail_destroy = False

    async def upload(self, content, filename, folder=None):
        if self.fail_upload:
            raise StorageError("File upload failed: storage unavailable")
        fmt = file_format(filename)
        key = f"ll/fake{len(self.blobs) + 1}.{fmt.lower()}"
        self.blobs[key] = content
        return StoredFile(key=key, format=fmt, size=format_file_size(len(content)))

    def build_url(self, key, delivery_type="upload", signed=False):
        signature = "s--sig--/" if signed else ""
        return f"https://files.test/raw/{delivery_type}/{signature}{key}"

    async def fetch(self, key):
        if key not in self.blobs:
            raise StorageError("The file could not be retrieved from storage.")
        return self.blobs[key]

    async def destroy(self, key):
        if self.fail_destroy:
            raise StorageError("File deletion failed: storage unavailable")
        self.destroyed.append(key)
        self.blobs.pop(key, None)
        return True


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "learnlink.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest_asyncio.fixture
async def async_client(session_maker, storage):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_storage, None)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(role=Role.STUDENT, first_name="Test", last_name="User", password="secret123"):
        counter["n"] += 1
        user = models.User(
            first_name=first_name,
            last_name=last_name,
            email=f"{role.value.lower()}{counter['n']}@learnlink.org",
            password_hash=auth.hash_password(password),
            role=role.value,
            status="Active",
            initials=f"{first_name[:1]}{last_name[:1]}",
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def make_resource(db):
    async def _make_resource(owner, status=ResourceStatus.PENDING, title="Fractions Reviewer", **fields):
        resource = models.Resource(
            title=title,
            description=fields.pop("description", "Practice problems on fractions."),
            subject=fields.pop("subject", "Math"),
            grade_level=fields.pop("grade_level", "Grade 5"),
            resource_type=fields.pop("resource_type", "Reviewer"),
            quarter=fields.pop("quarter", "Q1"),
            file_path=fields.pop("file_path", "ll/fractions.pdf"),
            file_format=fields.pop("file_format", "PDF"),
            file_size=fields.pop("file_size", "12.0 KB"),
            status=status.value,
            user_id=owner.id,
            **fields,
        )
        db.add(resource)
        await db.commit()
        return resource

    return _make_resource


def principal_for(user):
    return Principal.from_user(user)


def auth_headers(user):
    token = auth.create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}
