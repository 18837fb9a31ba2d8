"""
Tests for image upload, detail, caption edits, deletion and the file redirect.
"""
import io
import os
import re
import uuid
from urllib.parse import parse_qs, urlparse

from PIL import Image as PILImage
from starlette.datastructures import UploadFile as StarletteUploadFile

from suipic.main import app
from suipic.models import Image, Rating, UserRole
from suipic.services.entity_store import EntityStore
from suipic.services.media_pipeline import MediaIngestionPipeline, get_media_pipeline

from conftest import auth, image_bytes

KEY_PATTERN = re.compile(r"^images/\d{13}-[0-9a-f-]{36}\.webp$")


def _upload(data, filename="IMG_0042.png", content_type="image/png"):
    return {"file": (filename, data, content_type)}


async def test_owner_uploads_image(client, make_user, make_album, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)

    response = await client.post(
        f"/api/v1/albums/{album.id}/images",
        files=_upload(image_bytes(3000, 1500)),
        data={"caption": "First look"},
        headers=auth(owner),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["albumId"] == str(album.id)
    assert data["photographerId"] == str(owner.id)
    assert data["originalFilename"] == "IMG_0042.png"
    assert data["caption"] == "First look"
    assert (data["width"], data["height"]) == (2048, 1024)
    assert KEY_PATTERN.match(data["storageKey"])
    assert data["exifData"]["width"] == 3000

    stored, content_type = storage.objects[data["storageKey"]]
    assert content_type == "image/webp"
    assert PILImage.open(io.BytesIO(stored)).format == "WEBP"
    assert await count_rows(Image) == 1


async def test_collaborator_uploads_heic_sent_as_octet_stream(client, make_user, make_album):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    collaborator = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner, collaborators=[collaborator])

    # Browser sent a generic type; the extension decides, the decoder gets PNG bytes here
    response = await client.post(
        f"/api/v1/albums/{album.id}/images",
        files=_upload(image_bytes(), filename="IMG_1.HEIC", content_type="application/octet-stream"),
        headers=auth(collaborator),
    )

    assert response.status_code == 201
    assert response.json()["data"]["photographerId"] == str(collaborator.id)


async def test_client_cannot_upload(client, make_user, make_album, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, clients=[client_user])

    response = await client.post(
        f"/api/v1/albums/{album.id}/images", files=_upload(image_bytes()), headers=auth(client_user)
    )

    assert response.status_code == 403
    assert storage.objects == {}
    assert await count_rows(Image) == 0


async def test_upload_to_missing_album_is_404(client, make_user):
    photographer = await make_user(UserRole.PHOTOGRAPHER)

    response = await client.post(
        f"/api/v1/albums/{uuid.uuid4()}/images", files=_upload(image_bytes()), headers=auth(photographer)
    )

    assert response.status_code == 404


async def test_upload_rejects_unsupported_type(client, make_user, make_album, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)

    response = await client.post(
        f"/api/v1/albums/{album.id}/images",
        files=_upload(b"hello", filename="notes.txt", content_type="text/plain"),
        headers=auth(owner),
    )

    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["error"]
    assert storage.objects == {}
    assert await count_rows(Image) == 0


async def test_upload_rejects_corrupt_image(client, make_user, make_album, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)

    response = await client.post(
        f"/api/v1/albums/{album.id}/images",
        files=_upload(b"\x89PNG not really", filename="broken.png"),
        headers=auth(owner),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Could not decode image"
    assert storage.objects == {}
    assert await count_rows(Image) == 0


async def test_oversize_upload_rejected_before_reading_body(
    client, make_user, make_album, storage, count_rows, monkeypatch
):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)
    app.dependency_overrides[get_media_pipeline] = lambda: MediaIngestionPipeline(storage, max_bytes=1024)

    async def unread(self, size=-1):
        raise AssertionError("upload body was read")

    monkeypatch.setattr(StarletteUploadFile, "read", unread)

    response = await client.post(
        f"/api/v1/albums/{album.id}/images", files=_upload(os.urandom(4096)), headers=auth(owner)
    )

    assert response.status_code == 400
    assert "too large" in response.json()["error"]
    assert storage.objects == {}
    assert await count_rows(Image) == 0


async def test_upload_storage_failure_writes_no_record(client, make_user, make_album, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)
    storage.fail_put = True

    response = await client.post(
        f"/api/v1/albums/{album.id}/images", files=_upload(image_bytes()), headers=auth(owner)
    )

    assert response.status_code == 502
    assert response.json()["success"] is False
    assert await count_rows(Image) == 0


async def test_failed_record_save_removes_stored_file(client, make_user, make_album, storage, count_rows, monkeypatch):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)

    async def broken_create_image(self, image):
        raise RuntimeError("database went away")

    monkeypatch.setattr(EntityStore, "create_image", broken_create_image)

    try:
        response = await client.post(
            f"/api/v1/albums/{album.id}/images", files=_upload(image_bytes()), headers=auth(owner)
        )
    except RuntimeError:
        pass
    else:
        assert response.status_code == 500

    assert storage.objects == {}
    assert await count_rows(Image) == 0


async def test_image_detail(client, make_user, make_album, make_image, test_db, storage):
    owner = await make_user(UserRole.PHOTOGRAPHER, first_name="Pat")
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, clients=[client_user])
    image = await make_image(album)
    test_db.add(Rating(image_id=image.id, user_id=client_user.id, rating=4))
    await test_db.commit()

    response = await client.get(f"/api/v1/images/{image.id}", headers=auth(client_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["photographer"]["firstName"] == "Pat"
    assert data["averageRating"] == 4.0
    assert data["ratingCount"] == 1
    assert data["myRating"] == 4
    assert data["myFlag"] is None
    assert data["comments"] == []
    assert parse_qs(urlparse(data["imageUrl"]).query)["X-Amz-Expires"] == ["3600"]
    assert storage.signed[-1] == (image.storage_key, 3600)


async def test_image_access_is_404_before_403(client, make_user, make_album, make_image):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    stranger = await make_user(UserRole.CLIENT)
    album = await make_album(owner)
    image = await make_image(album)

    response = await client.get(f"/api/v1/images/{uuid.uuid4()}", headers=auth(stranger))
    assert response.status_code == 404
    assert response.json()["error"] == "Image not found"

    response = await client.get(f"/api/v1/images/{image.id}", headers=auth(stranger))
    assert response.status_code == 403


async def test_file_redirects_to_short_lived_url(client, make_user, make_album, make_image, storage):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, clients=[client_user])
    image = await make_image(album)

    first = await client.get(f"/api/v1/images/{image.id}/file", headers=auth(client_user))
    second = await client.get(f"/api/v1/images/{image.id}/file", headers=auth(client_user))

    assert first.status_code == 302
    location = first.headers["location"]
    assert location.startswith(f"https://storage.test/{image.storage_key}")
    assert parse_qs(urlparse(location).query)["X-Amz-Expires"] == ["300"]
    assert first.headers["cache-control"] == "private, max-age=60"
    assert first.headers["x-content-type-options"] == "nosniff"
    # Signed fresh for every request
    assert second.headers["location"] != location
    assert storage.signed == [(image.storage_key, 300), (image.storage_key, 300)]


async def test_file_requires_view_access(client, make_user, make_album, make_image, storage):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    stranger = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)
    image = await make_image(album)

    response = await client.get(f"/api/v1/images/{image.id}/file", headers=auth(stranger))

    assert response.status_code == 403
    assert storage.signed == []


async def test_caption_edit_rules(client, make_user, make_album, make_image):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    collaborator = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, collaborators=[collaborator], clients=[client_user])
    owners_image = await make_image(album)
    collaborators_image = await make_image(album, photographer=collaborator)

    response = await client.patch(
        f"/api/v1/images/{collaborators_image.id}", json={"caption": "Golden hour"}, headers=auth(collaborator)
    )
    assert response.status_code == 200
    assert response.json()["data"]["caption"] == "Golden hour"

    response = await client.patch(
        f"/api/v1/images/{owners_image.id}", json={"caption": "Nope"}, headers=auth(collaborator)
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/api/v1/images/{collaborators_image.id}", json={"caption": None}, headers=auth(owner)
    )
    assert response.status_code == 200
    assert response.json()["data"]["caption"] is None

    response = await client.patch(
        f"/api/v1/images/{owners_image.id}", json={"caption": "Mine"}, headers=auth(client_user)
    )
    assert response.status_code == 403


async def test_delete_image_removes_record_feedback_and_file(
    client, make_user, make_album, make_image, test_db, storage, count_rows
):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, clients=[client_user])
    image = await make_image(album)
    test_db.add(Rating(image_id=image.id, user_id=client_user.id, rating=2))
    await test_db.commit()

    response = await client.delete(f"/api/v1/images/{image.id}", headers=auth(client_user))
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/images/{image.id}", headers=auth(owner))

    assert response.status_code == 200
    assert response.json()["message"] == "Image deleted"
    assert await count_rows(Image) == 0
    assert await count_rows(Rating) == 0
    assert storage.objects == {}


async def test_delete_image_survives_storage_failure(client, make_user, make_album, make_image, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)
    image = await make_image(album)
    storage.fail_delete = True

    response = await client.delete(f"/api/v1/images/{image.id}", headers=auth(owner))

    assert response.status_code == 200
    assert response.json()["message"] == "Image deleted; 1 stored file(s) could not be removed"
    assert await count_rows(Image) == 0
    assert image.storage_key in storage.objects
