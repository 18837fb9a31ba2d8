"""
Pytest configuration and fixtures.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import io
import uuid

import pytest
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from httpx import ASGITransport, AsyncClient
from PIL import Image as PILImage
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from suipic.api.auth import get_verified_identity
from suipic.core.database import Base, get_db
from suipic.core.errors import NotFound, Unauthenticated, UpstreamFailure
from suipic.core.security import VerifiedIdentity
from suipic.main import app
from suipic.models import Album, AlbumClient, AlbumCollaborator, Image, User, UserRole
from suipic.services.storage_factory import get_storage


class InMemoryStorage:
    """StorageInterface fake keeping objects in a dict."""

    def __init__(self):
        self.objects = {}
        self.signed = []
        self.fail_put = False
        self.fail_delete = False

    def put(self, key, data, content_type):
        if self.fail_put:
            raise UpstreamFailure("Failed to store image")
        self.objects[key] = (data, content_type)

    def get(self, key):
        if key not in self.objects:
            raise NotFound("Stored object not found")
        return self.objects[key][0]

    def delete(self, key):
        if self.fail_delete:
            raise UpstreamFailure(f"Failed to delete {key}")
        self.objects.pop(key, None)

    def signed_url(self, key, ttl_seconds):
        self.signed.append((key, ttl_seconds))
        return f"https://storage.test/{key}?X-Amz-Expires={ttl_seconds}&sig={uuid.uuid4().hex}"


_bearer = HTTPBearer(auto_error=False)


async def override_verified_identity(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer),
) -> VerifiedIdentity:
    """
    Treat the bearer token itself as the verified identity.

    Tokens are `<subject>` or `<subject>|<email>[|unverified]`.
    """
    if credentials is None:
        raise Unauthenticated("Missing bearer token")
    subject, *rest = credentials.credentials.split("|")
    claims = {"sub": subject}
    if rest:
        claims["email"] = rest[0]
        claims["email_verified"] = rest[1:] != ["unverified"]
    return VerifiedIdentity(subject=subject, claims=claims)


def auth(user_or_subject, email=None, email_verified=True) -> dict:
    token = getattr(user_or_subject, "identity_key", user_or_subject)
    if email is not None:
        token = f"{token}|{email}" if email_verified else f"{token}|{email}|unverified"
    return {"Authorization": f"Bearer {token}"}


def image_bytes(width=64, height=48, fmt="PNG", mode="RGB", color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    PILImage.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(scope="function")
async def engine(tmp_path):
    """Create a file-backed SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(scope="function")
async def test_db(session_factory):
    """Session used by tests to arrange data."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def storage():
    return InMemoryStorage()


@pytest.fixture(scope="function")
async def client(session_factory, storage):
    """HTTP client against the app with test database, storage and identity."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_verified_identity] = override_verified_identity
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def count_rows(session_factory):
    """Count rows in a fresh session so results never come from a stale identity map."""
    async def _count(model, *criteria):
        async with session_factory() as session:
            query = select(func.count()).select_from(model)
            if criteria:
                query = query.where(*criteria)
            return await session.scalar(query)
    return _count


@pytest.fixture
def make_user(test_db):
    async def _make(role=UserRole.CLIENT, email=None, first_name="Test", last_name="User", created_by=None):
        identity_key = f"idp-{uuid.uuid4()}"
        user = User(
            identity_key=identity_key,
            email=email or f"{identity_key}@example.com",
            first_name=first_name,
            last_name=last_name,
            role=role,
            created_by_id=created_by.id if created_by is not None else None,
        )
        test_db.add(user)
        await test_db.commit()
        return user
    return _make


@pytest.fixture
def make_album(test_db):
    async def _make(owner, collaborators=(), clients=(), name="Wedding"):
        album = Album(owner_id=owner.id, name=name)
        test_db.add(album)
        await test_db.flush()
        for photographer in collaborators:
            test_db.add(AlbumCollaborator(album_id=album.id, photographer_id=photographer.id))
        for client_user in clients:
            test_db.add(AlbumClient(album_id=album.id, client_id=client_user.id))
        await test_db.commit()
        return album
    return _make


@pytest.fixture
def make_image(test_db, storage):
    async def _make(album, photographer=None, filename="IMG_0001.jpg"):
        storage_key = f"images/1700000000000-{uuid.uuid4()}.webp"
        storage.objects[storage_key] = (b"webp", "image/webp")
        image = Image(
            album_id=album.id,
            photographer_id=photographer.id if photographer is not None else album.owner_id,
            storage_key=storage_key,
            original_filename=filename,
            width=640,
            height=480,
        )
        test_db.add(image)
        await test_db.commit()
        return image
    return _make
