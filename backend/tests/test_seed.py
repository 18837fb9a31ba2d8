"""
Tests for the first-admin bootstrap.
"""
import pytest

from suipic.core.config import settings
from suipic.core.errors import Conflict
from suipic.models import User, UserRole
from suipic.seed import seed_admin

from conftest import auth


async def test_creates_pending_admin(test_db, count_rows):
    admin, created = await seed_admin(test_db, email="root@example.com")

    assert created is True
    assert admin.role is UserRole.ADMIN
    assert admin.is_pending
    assert await count_rows(User, User.role == UserRole.ADMIN) == 1


async def test_is_idempotent(test_db, count_rows):
    first, _ = await seed_admin(test_db, email="root@example.com")
    second, created = await seed_admin(test_db, email="other@example.com")

    assert created is False
    assert second.id == first.id
    assert await count_rows(User) == 1


async def test_uses_configured_identity_key(test_db):
    admin, _ = await seed_admin(test_db, email="root@example.com", identity_key="idp-root")

    assert admin.identity_key == "idp-root"
    assert not admin.is_pending


async def test_refuses_to_promote_existing_account(test_db, make_user):
    await make_user(UserRole.PHOTOGRAPHER, email="root@example.com")

    with pytest.raises(Conflict):
        await seed_admin(test_db, email="root@example.com")


async def test_seeded_admin_is_claimed_at_first_sync(client, test_db):
    admin, _ = await seed_admin(test_db, email="root@example.com")

    response = await client.post(
        "/api/v1/auth/sync",
        json={"identityKey": "idp-root", "email": "root@example.com"},
        headers=auth("idp-root", email="root@example.com"),
    )

    assert response.status_code == 200
    assert response.json()["data"]["id"] == str(admin.id)
    assert response.json()["data"]["role"] == "admin"


async def test_default_admin_email_can_be_claimed(client, test_db, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_IDENTITY_KEY", "")
    admin, _ = await seed_admin(test_db)
    assert admin.email == settings.ADMIN_EMAIL

    response = await client.post(
        "/api/v1/auth/sync",
        json={"identityKey": "idp-root", "email": settings.ADMIN_EMAIL},
        headers=auth("idp-root", email=settings.ADMIN_EMAIL),
    )

    assert response.status_code == 200
    assert response.json()["data"]["id"] == str(admin.id)
    assert response.json()["data"]["role"] == "admin"
