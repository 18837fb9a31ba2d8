"""
Tests for album CRUD, membership and the feedback summary.
"""
import uuid

from suipic.models import Album, AlbumClient, AlbumCollaborator, Comment, Flag, FlagType, Image, Rating, UserRole

from conftest import auth


async def test_photographer_creates_album(client, make_user):
    photographer = await make_user(UserRole.PHOTOGRAPHER)

    response = await client.post(
        "/api/v1/albums",
        json={"name": "Smith Wedding", "description": "June", "displayMode": "filmstrip"},
        headers=auth(photographer),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["ownerId"] == str(photographer.id)
    assert data["name"] == "Smith Wedding"
    assert data["displayMode"] == "filmstrip"


async def test_client_cannot_create_album(client, make_user, count_rows):
    client_user = await make_user(UserRole.CLIENT)

    response = await client.post("/api/v1/albums", json={"name": "Mine"}, headers=auth(client_user))

    assert response.status_code == 403
    assert await count_rows(Album) == 0


async def test_album_name_is_required(client, make_user):
    photographer = await make_user(UserRole.PHOTOGRAPHER)

    response = await client.post("/api/v1/albums", json={"name": ""}, headers=auth(photographer))

    assert response.status_code == 400


async def test_list_albums_by_membership(client, make_user, make_album, make_image):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    collaborator = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    stranger = await make_user(UserRole.PHOTOGRAPHER)
    admin = await make_user(UserRole.ADMIN)
    album = await make_album(owner, collaborators=[collaborator], clients=[client_user])
    await make_album(stranger, name="Other")
    await make_image(album)
    await make_image(album)

    for user in (owner, collaborator, client_user):
        response = await client.get("/api/v1/albums", headers=auth(user))
        assert response.status_code == 200
        items = response.json()["data"]
        assert [item["id"] for item in items] == [str(album.id)]
        assert items[0]["imageCount"] == 2
        assert items[0]["owner"]["id"] == str(owner.id)

    response = await client.get("/api/v1/albums", headers=auth(admin))
    assert len(response.json()["data"]) == 2


async def test_album_detail(client, make_user, make_album, make_image):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    collaborator = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, collaborators=[collaborator], clients=[client_user])
    image = await make_image(album)

    response = await client.get(f"/api/v1/albums/{album.id}", headers=auth(client_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["owner"]["id"] == str(owner.id)
    assert [u["id"] for u in data["collaborators"]] == [str(collaborator.id)]
    assert [u["id"] for u in data["clients"]] == [str(client_user.id)]
    assert [i["id"] for i in data["images"]] == [str(image.id)]


async def test_album_access_is_404_before_403(client, make_user, make_album):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    stranger = await make_user(UserRole.CLIENT)
    album = await make_album(owner)

    response = await client.get(f"/api/v1/albums/{uuid.uuid4()}", headers=auth(stranger))
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Album not found"}

    response = await client.get(f"/api/v1/albums/{album.id}", headers=auth(stranger))
    assert response.status_code == 403


async def test_only_owner_updates_album(client, make_user, make_album):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    collaborator = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner, collaborators=[collaborator])

    response = await client.patch(f"/api/v1/albums/{album.id}", json={"name": "X"}, headers=auth(collaborator))
    assert response.status_code == 403

    response = await client.patch(
        f"/api/v1/albums/{album.id}", json={"name": "Renamed", "description": None}, headers=auth(owner)
    )
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Renamed"
    assert response.json()["data"]["description"] is None


async def test_manage_collaborators(client, make_user, make_album, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    photographer = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner)
    url = f"/api/v1/albums/{album.id}/collaborators"

    response = await client.post(url, json={"photographerId": str(photographer.id)}, headers=auth(owner))
    assert response.status_code == 201
    assert response.json()["data"]["id"] == str(photographer.id)

    response = await client.post(url, json={"photographerId": str(photographer.id)}, headers=auth(owner))
    assert response.status_code == 409
    assert await count_rows(AlbumCollaborator) == 1

    response = await client.post(url, json={"photographerId": str(client_user.id)}, headers=auth(owner))
    assert response.status_code == 400
    assert response.json()["error"] == "Photographer not found"

    response = await client.post(url, json={"photographerId": str(owner.id)}, headers=auth(owner))
    assert response.status_code == 400

    # Collaborators cannot manage collaborators
    other = await make_user(UserRole.PHOTOGRAPHER)
    response = await client.post(url, json={"photographerId": str(other.id)}, headers=auth(photographer))
    assert response.status_code == 403

    response = await client.delete(f"{url}/{photographer.id}", headers=auth(owner))
    assert response.status_code == 200
    assert await count_rows(AlbumCollaborator) == 0

    response = await client.delete(f"{url}/{photographer.id}", headers=auth(owner))
    assert response.status_code == 404


async def test_collaborator_manages_clients(client, make_user, make_album, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    collaborator = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, collaborators=[collaborator])
    url = f"/api/v1/albums/{album.id}/clients"

    response = await client.post(url, json={"clientId": str(client_user.id)}, headers=auth(collaborator))
    assert response.status_code == 201

    response = await client.post(url, json={"clientId": str(client_user.id)}, headers=auth(owner))
    assert response.status_code == 409

    response = await client.post(url, json={"clientId": str(collaborator.id)}, headers=auth(owner))
    assert response.status_code == 400
    assert response.json()["error"] == "Client not found"

    # Clients cannot manage membership, not even their own
    response = await client.delete(f"{url}/{client_user.id}", headers=auth(client_user))
    assert response.status_code == 403

    response = await client.delete(f"{url}/{client_user.id}", headers=auth(collaborator))
    assert response.status_code == 200
    assert await count_rows(AlbumClient) == 0


async def test_delete_album_cascades(client, make_user, make_album, make_image, test_db, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    client_user = await make_user(UserRole.CLIENT)
    album = await make_album(owner, clients=[client_user])
    first = await make_image(album)
    await make_image(album)
    test_db.add_all([
        Rating(image_id=first.id, user_id=client_user.id, rating=5),
        Flag(image_id=first.id, user_id=client_user.id, flag_type=FlagType.PICK),
        Comment(image_id=first.id, user_id=client_user.id, content="Love it"),
    ])
    await test_db.commit()

    response = await client.delete(f"/api/v1/albums/{album.id}", headers=auth(client_user))
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/albums/{album.id}", headers=auth(owner))

    assert response.status_code == 200
    assert response.json()["message"] == "Album deleted"
    for model in (Album, AlbumClient, Image, Rating, Flag, Comment):
        assert await count_rows(model) == 0
    assert storage.objects == {}


async def test_delete_album_reports_storage_failures(client, make_user, make_album, make_image, storage, count_rows):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner)
    await make_image(album)
    await make_image(album)
    storage.fail_delete = True

    response = await client.delete(f"/api/v1/albums/{album.id}", headers=auth(owner))

    assert response.status_code == 200
    assert response.json()["message"] == "Album deleted; 2 stored file(s) could not be removed"
    assert await count_rows(Album) == 0


async def test_album_summary(client, make_user, make_album, make_image, test_db):
    owner = await make_user(UserRole.PHOTOGRAPHER, first_name="Pat", last_name="Owner")
    collaborator = await make_user(UserRole.PHOTOGRAPHER)
    alice = await make_user(UserRole.CLIENT, first_name="Alice", last_name="A")
    bob = await make_user(UserRole.CLIENT, first_name="Bob", last_name="B")
    album = await make_album(owner, collaborators=[collaborator], clients=[alice, bob])
    image = await make_image(album)
    test_db.add_all([
        Rating(image_id=image.id, user_id=alice.id, rating=4),
        Rating(image_id=image.id, user_id=bob.id, rating=5),
        Flag(image_id=image.id, user_id=alice.id, flag_type=FlagType.PICK),
        Flag(image_id=image.id, user_id=bob.id, flag_type=FlagType.NONE),
    ])
    await test_db.commit()

    response = await client.get(f"/api/v1/albums/{album.id}/summary", headers=auth(alice))
    assert response.status_code == 403

    response = await client.get(f"/api/v1/albums/{album.id}/summary", headers=auth(collaborator))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["albumId"] == str(album.id)
    (entry,) = data["images"]
    assert entry["photographerName"] == "Pat Owner"
    assert entry["averageRating"] == 4.5
    assert entry["ratingCount"] == 2
    assert entry["pickCount"] == 1
    assert entry["rejectCount"] == 0
    assert sorted(r["userName"] for r in entry["ratings"]) == ["Alice A", "Bob B"]
    assert sorted((f["userName"], f["flag"]) for f in entry["flags"]) == [("Alice A", "pick"), ("Bob B", "none")]


async def test_summary_of_empty_album(client, make_user, make_album):
    owner = await make_user(UserRole.PHOTOGRAPHER)
    album = await make_album(owner, name="Empty")

    response = await client.get(f"/api/v1/albums/{album.id}/summary", headers=auth(owner))

    assert response.status_code == 200
    assert response.json()["data"] == {"albumId": str(album.id), "albumName": "Empty", "images": []}
