"""Tests for the /files routes, including end-to-end upload scenarios."""
import asyncio
import base64
import io
import uuid

import httpx
import pytest
import pytest_asyncio
from PIL import Image as PILImage

from files_manager.main import create_app
from files_manager.services.job_worker import ThumbnailWorker


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


async def login(client, email: str = "bob@dylan.com", password: str = "toto1234!") -> dict:
    await client.post("/users", json={"email": email, "password": password})
    creds = base64.b64encode(f"{email}:{password}".encode()).decode()
    response = await client.get("/connect", headers={"Authorization": f"Basic {creds}"})
    return {"X-Token": response.json()["token"]}


async def drain_worker(app) -> None:
    state = app.state
    await ThumbnailWorker(state.queue, state.session_factory, state.storage).drain()


@pytest_asyncio.fixture
async def headers(client):
    return await login(client)


class TestUpload:
    @pytest.mark.asyncio
    async def test_folder_at_root(self, client, headers):
        response = await client.post("/files", headers=headers, json={"name": "images", "type": "folder"})

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "images"
        assert body["type"] == "folder"
        assert body["isPublic"] is False
        assert body["parentId"] == 0
        assert set(body) == {"id", "userId", "name", "type", "isPublic", "parentId"}

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.post("/files", json={"name": "images", "type": "folder"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload,error", [
        ({"type": "folder"}, "Missing name"),
        ({"name": "x"}, "Missing type"),
        ({"name": "x", "type": "video"}, "Missing type"),
        ({"name": "x.txt", "type": "file"}, "Missing data"),
        ({"name": "x.png", "type": "image"}, "Missing data"),
        ({"name": "x.txt", "type": "file", "data": "abc"}, "Invalid data"),
    ])
    async def test_validation(self, client, headers, payload, error):
        response = await client.post("/files", headers=headers, json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": error}

    @pytest.mark.asyncio
    async def test_null_parent_is_root(self, client, headers):
        response = await client.post("/files", headers=headers, json={
            "name": "docs", "type": "folder", "parentId": None, "isPublic": None,
        })

        assert response.status_code == 201
        assert response.json()["parentId"] == 0
        assert response.json()["isPublic"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload,error", [
        ({"name": 5, "type": "folder"}, "Missing name"),
        ({"name": "x", "type": ["folder"]}, "Missing type"),
        ({"name": "x", "type": "folder", "isPublic": "maybe"}, "Invalid isPublic"),
        ({"name": "x", "type": "folder", "parentId": [1]}, "Parent not found"),
        ({"name": "x.txt", "type": "file", "data": 42}, "Invalid data"),
    ])
    async def test_malformed_fields(self, client, headers, payload, error):
        response = await client.post("/files", headers=headers, json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": error}

    @pytest.mark.asyncio
    async def test_body_not_an_object(self, client, headers):
        response = await client.post("/files", headers=headers, json=["docs"])

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request"}

    @pytest.mark.asyncio
    async def test_unknown_parent(self, client, headers):
        response = await client.post("/files", headers=headers, json={
            "name": "a.txt", "type": "file", "data": b64(b"hi"), "parentId": str(uuid.uuid4()),
        })

        assert response.status_code == 400
        assert response.json() == {"error": "Parent not found"}
        assert (await client.get("/files", headers=headers)).json() == []

    @pytest.mark.asyncio
    async def test_parent_not_a_folder(self, client, headers):
        leaf = await client.post("/files", headers=headers, json={
            "name": "a.txt", "type": "file", "data": b64(b"hi"),
        })

        response = await client.post("/files", headers=headers, json={
            "name": "b.txt", "type": "file", "data": b64(b"yo"), "parentId": leaf.json()["id"],
        })

        assert response.status_code == 400
        assert response.json() == {"error": "Parent is not a folder"}


class TestShowAndList:
    @pytest.mark.asyncio
    async def test_scenario_folder_then_file(self, client, headers):
        folder = (await client.post("/files", headers=headers, json={
            "name": "docs", "type": "folder", "parentId": 0,
        })).json()
        leaf = await client.post("/files", headers=headers, json={
            "name": "a.txt", "type": "file", "data": b64(b"hi"), "parentId": folder["id"],
        })
        assert leaf.status_code == 201
        assert leaf.json()["parentId"] == folder["id"]

        listed = await client.get("/files", headers=headers, params={"parentId": folder["id"]})

        assert listed.status_code == 200
        assert [f["name"] for f in listed.json()] == ["a.txt"]

    @pytest.mark.asyncio
    async def test_show(self, client, headers):
        folder = (await client.post("/files", headers=headers, json={"name": "docs", "type": "folder"})).json()

        response = await client.get(f"/files/{folder['id']}", headers=headers)

        assert response.status_code == 200
        assert response.json() == folder

    @pytest.mark.asyncio
    async def test_show_other_users_file(self, client, headers):
        folder = (await client.post("/files", headers=headers, json={"name": "docs", "type": "folder"})).json()
        other = await login(client, "alice@dylan.com", "secret")

        response = await client.get(f"/files/{folder['id']}", headers=other)

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("file_id", ["12345", str(uuid.uuid4())])
    async def test_show_missing(self, client, headers, file_id):
        response = await client.get(f"/files/{file_id}", headers=headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_pagination(self, client, headers):
        for i in range(23):
            await client.post("/files", headers=headers, json={"name": f"f{i}", "type": "folder"})

        first = await client.get("/files", headers=headers)
        second = await client.get("/files", headers=headers, params={"page": 1})
        beyond = await client.get("/files", headers=headers, params={"page": 5})
        garbage = await client.get("/files", headers=headers, params={"page": "abc"})

        assert len(first.json()) == 20
        assert len(second.json()) == 3
        assert beyond.json() == []
        assert garbage.json() == first.json()

    @pytest.mark.asyncio
    async def test_huge_page_is_empty(self, client, headers):
        await client.post("/files", headers=headers, json={"name": "docs", "type": "folder"})

        response = await client.get("/files", headers=headers, params={"page": "100000000000000000000"})

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_root_listing(self, client, headers):
        folder = (await client.post("/files", headers=headers, json={"name": "docs", "type": "folder"})).json()
        await client.post("/files", headers=headers, json={
            "name": "a.txt", "type": "file", "data": b64(b"hi"), "parentId": folder["id"],
        })

        root = await client.get("/files", headers=headers, params={"parentId": "0"})

        assert [f["name"] for f in root.json()] == ["docs"]

    @pytest.mark.asyncio
    async def test_list_requires_token(self, client):
        response = await client.get("/files")

        assert response.status_code == 401


class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_and_unpublish(self, client, headers):
        leaf = (await client.post("/files", headers=headers, json={
            "name": "a.txt", "type": "file", "data": b64(b"hi"),
        })).json()

        published = await client.put(f"/files/{leaf['id']}/publish", headers=headers)
        assert published.status_code == 200
        assert published.json()["isPublic"] is True

        anonymous = await client.get(f"/files/{leaf['id']}/data")
        assert anonymous.status_code == 200
        assert anonymous.content == b"hi"

        unpublished = await client.put(f"/files/{leaf['id']}/unpublish", headers=headers)
        assert unpublished.status_code == 200
        assert unpublished.json()["isPublic"] is False

        assert (await client.get(f"/files/{leaf['id']}/data")).status_code == 404
        owner_read = await client.get(f"/files/{leaf['id']}/data", headers=headers)
        assert owner_read.status_code == 200
        assert owner_read.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["publish", "unpublish"])
    async def test_unknown_file(self, client, headers, action):
        response = await client.put(f"/files/{uuid.uuid4()}/{action}", headers=headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["publish", "unpublish"])
    async def test_requires_token(self, client, action):
        response = await client.put(f"/files/{uuid.uuid4()}/{action}")

        assert response.status_code == 401


class TestData:
    @pytest.mark.asyncio
    async def test_folder_has_no_content(self, client, headers):
        folder = (await client.post("/files", headers=headers, json={"name": "docs", "type": "folder"})).json()

        response = await client.get(f"/files/{folder['id']}/data", headers=headers)

        assert response.status_code == 400
        assert response.json() == {"error": "A folder doesn't have content"}

    @pytest.mark.asyncio
    async def test_invalid_token_on_private_file(self, client, headers):
        leaf = (await client.post("/files", headers=headers, json={
            "name": "a.txt", "type": "file", "data": b64(b"hi"),
        })).json()

        response = await client.get(f"/files/{leaf['id']}/data", headers={"X-Token": "bogus"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_scenario_image_thumbnails(self, app, client, headers, png):
        image = (await client.post("/files", headers=headers, json={
            "name": "pic.png", "type": "image", "isPublic": True, "data": b64(png),
        })).json()

        invalid = await client.get(f"/files/{image['id']}/data", params={"size": "999"})
        assert invalid.status_code == 400
        assert invalid.json() == {"error": "Invalid size"}

        pending = await client.get(f"/files/{image['id']}/data", params={"size": "100"})
        assert pending.status_code == 404

        await drain_worker(app)

        thumb = await client.get(f"/files/{image['id']}/data", params={"size": "100"})
        assert thumb.status_code == 200
        assert thumb.headers["content-type"] == "image/png"
        with PILImage.open(io.BytesIO(thumb.content)) as im:
            assert im.width == 100

    @pytest.mark.asyncio
    async def test_scenario_size_on_plain_file(self, client, headers):
        leaf = (await client.post("/files", headers=headers, json={
            "name": "a.txt", "type": "file", "isPublic": True, "data": b64(b"hi"),
        })).json()

        response = await client.get(f"/files/{leaf['id']}/data", params={"size": "100"})

        assert response.status_code == 400
        assert response.json() == {"error": "Size is only available for images"}


class TestDisconnectedToken:
    @pytest.mark.asyncio
    async def test_scenario_every_operation_rejected(self, client, headers):
        folder = (await client.post("/files", headers=headers, json={"name": "docs", "type": "folder"})).json()
        await client.get("/disconnect", headers=headers)

        responses = [
            await client.post("/files", headers=headers, json={"name": "x", "type": "folder"}),
            await client.get(f"/files/{folder['id']}", headers=headers),
            await client.get("/files", headers=headers),
            await client.put(f"/files/{folder['id']}/publish", headers=headers),
            await client.put(f"/files/{folder['id']}/unpublish", headers=headers),
        ]

        assert [r.status_code for r in responses] == [401] * 5


class TestBackgroundWorker:
    @pytest_asyncio.fixture
    async def live_client(self, settings, redis_client):
        app = create_app(
            settings.model_copy(update={"WORKER_ENABLED": True}),
            redis_client=redis_client,
        )
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
                yield c

    @pytest.mark.asyncio
    async def test_thumbnail_appears_without_manual_drain(self, live_client, png):
        headers = await login(live_client)
        image = (await live_client.post("/files", headers=headers, json={
            "name": "pic.png", "type": "image", "isPublic": True, "data": b64(png),
        })).json()

        status = None
        for _ in range(100):
            response = await live_client.get(f"/files/{image['id']}/data", params={"size": "250"})
            status = response.status_code
            if status == 200:
                break
            await asyncio.sleep(0.05)

        assert status == 200
