"""Tests for the link management endpoints."""

import pytest

from shortlink.core.config import settings
from tests.utils import auth_headers, random_url

LINKS = "/api/v1/links"


async def create_link(client, headers=None, **payload):
    payload.setdefault("url", random_url())
    response = await client.post(LINKS, json=payload, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.api
class TestLinkLifecycle:

    @pytest.mark.asyncio
    async def test_create_redirect_deactivate(self, client):
        """Create a link, follow it, switch it off and follow it again."""
        headers = auth_headers("user-1")

        response = await client.post(
            LINKS,
            json={"url": "https://example.com/docs", "keyword": "docs2024", "title": "Docs"},
            headers=headers,
        )
        assert response.status_code == 201
        link = response.json()["data"]
        assert link["domain"] == "elga.io"
        assert link["keyword"] == "docs2024"
        assert link["short_url"] == "https://elga.io/docs2024"
        assert link["clicks"] == 0
        assert link["active"] is True
        assert "owner_id" not in link

        response = await client.get("/elga.io/docs2024")
        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/docs"

        response = await client.patch(f"{LINKS}/{link['id']}", json={"active": False}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["active"] is False

        response = await client.get("/elga.io/docs2024")
        assert response.status_code == 404
        assert response.json()["message"] == "link not found"

    @pytest.mark.asyncio
    async def test_create_with_generated_keyword(self, client):
        link = await create_link(client, headers=auth_headers())

        assert len(link["keyword"]) == settings.KEYWORD_LENGTH
        assert link["short_url"] == f"https://elga.io/{link['keyword']}"

    @pytest.mark.asyncio
    async def test_anonymous_create_and_read(self, client):
        link = await create_link(client, domain="go.example.com")

        response = await client.get(f"{LINKS}/{link['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["domain"] == "go.example.com"

    @pytest.mark.asyncio
    async def test_get_link(self, client):
        headers = auth_headers("user-1")
        link = await create_link(client, headers=headers, title="Mine")

        response = await client.get(f"{LINKS}/{link['id']}", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"] == link

    @pytest.mark.asyncio
    async def test_update_keeps_unset_fields(self, client):
        headers = auth_headers("user-1")
        link = await create_link(client, headers=headers, title="Keep me")
        new_url = random_url()

        response = await client.patch(f"{LINKS}/{link['id']}", json={"url": new_url}, headers=headers)

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["url"] == new_url
        assert data["title"] == "Keep me"
        assert data["keyword"] == link["keyword"]

    @pytest.mark.asyncio
    async def test_delete_link(self, client):
        headers = auth_headers("user-1")
        link = await create_link(client, headers=headers, keyword="byebye1")

        response = await client.delete(f"{LINKS}/{link['id']}", headers=headers)
        assert response.status_code == 204
        assert response.content == b""

        assert (await client.get(f"{LINKS}/{link['id']}", headers=headers)).status_code == 404
        assert (await client.get("/elga.io/byebye1")).status_code == 404
        assert (await client.delete(f"{LINKS}/{link['id']}", headers=headers)).status_code == 404

        response = await client.post(LINKS, json={"url": random_url(), "keyword": "byebye1"}, headers=headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_cookie_authentication(self, client):
        token = auth_headers("user-9")["Authorization"].split(" ", 1)[1]
        cookie = {"Cookie": f"{settings.AUTH_COOKIE_NAME}={token}"}
        link = await create_link(client, headers=cookie)

        response = await client.get(LINKS, headers=cookie)

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["data"]] == [link["id"]]


@pytest.mark.api
class TestLinkErrors:

    @pytest.mark.asyncio
    async def test_keyword_conflict(self, client):
        await create_link(client, keyword="taken01")

        response = await client.post(LINKS, json={"url": random_url(), "keyword": "taken01"})

        assert response.status_code == 409
        body = response.json()
        assert body["status"] == 409
        assert body["url"] == LINKS
        assert "taken01" in body["message"]

    @pytest.mark.asyncio
    async def test_same_keyword_other_domain(self, client):
        await create_link(client, keyword="twice01")

        link = await create_link(client, keyword="twice01", domain="go.example.com")

        assert link["short_url"] == "https://go.example.com/twice01"

    @pytest.mark.asyncio
    async def test_error_envelope_carries_request_id(self, client):
        response = await client.post(
            LINKS,
            json={"url": "not a url"},
            headers={"X-Request-ID": "req-123"},
        )

        assert response.status_code == 400
        assert response.headers["x-request-id"] == "req-123"
        body = response.json()
        assert body["id"] == "req-123"
        assert body["url"] == LINKS
        assert body["status"] == 400
        assert "url" in body["errors"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload, field", [
        ({}, "url"),
        ({"url": "https://example.com", "keyword": "abc"}, "keyword"),
        ({"url": "https://example.com", "domain": "bit.ly"}, "domain"),
        ({"url": "https://example.com", "owner_id": "someone"}, "owner_id"),
        ({"url": "https://elga.io/loop"}, "url"),
    ])
    async def test_invalid_create_payload(self, client, payload, field):
        response = await client.post(LINKS, json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == 400
        assert field in body["errors"]

    @pytest.mark.asyncio
    async def test_keyword_cannot_be_changed(self, client):
        headers = auth_headers("user-1")
        link = await create_link(client, headers=headers)

        response = await client.patch(f"{LINKS}/{link['id']}", json={"keyword": "renamed1"}, headers=headers)

        assert response.status_code == 400
        assert "keyword" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_other_users_link_is_forbidden(self, client):
        link = await create_link(client, headers=auth_headers("user-1"))
        intruder = auth_headers("user-2")
        path = f"{LINKS}/{link['id']}"

        assert (await client.get(path, headers=intruder)).status_code == 403
        assert (await client.patch(path, json={"title": "mine now"}, headers=intruder)).status_code == 403
        assert (await client.delete(path, headers=intruder)).status_code == 403
        assert (await client.get(f"{path}/clicks", headers=intruder)).status_code == 403

    @pytest.mark.asyncio
    async def test_anonymous_link_cannot_be_modified(self, client):
        link = await create_link(client)

        response = await client.patch(
            f"{LINKS}/{link['id']}", json={"title": "claimed"}, headers=auth_headers("user-1")
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_authentication_required(self, client):
        link = await create_link(client, headers=auth_headers("user-1"))

        response = await client.get(LINKS)
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["status"] == 401

        assert (await client.patch(f"{LINKS}/{link['id']}", json={"title": "x"})).status_code == 401
        assert (await client.delete(f"{LINKS}/{link['id']}")).status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.get(LINKS, headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401
        assert response.json()["message"] == "invalid token"

    @pytest.mark.asyncio
    async def test_anonymous_create_disabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_ANONYMOUS_LINKS", False)

        response = await client.post(LINKS, json={"url": random_url()})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_link(self, client):
        response = await client.get(f"{LINKS}/does-not-exist", headers=auth_headers())

        assert response.status_code == 404
        assert response.json() == {
            "id": response.headers["x-request-id"],
            "url": f"{LINKS}/does-not-exist",
            "status": 404,
            "message": "link not found",
        }

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/a/b/c/d")

        assert response.status_code == 404
        assert response.json()["message"] == "not found"


@pytest.mark.api
class TestLinkListing:

    @pytest.mark.asyncio
    async def test_pages_cover_every_link_once(self, client):
        headers = auth_headers("user-1")
        created = {(await create_link(client, headers=headers))["id"] for _ in range(25)}
        await create_link(client, headers=auth_headers("user-2"))

        seen = []
        for page in (1, 2, 3):
            response = await client.get(LINKS, params={"page": page, "limit": 10}, headers=headers)
            assert response.status_code == 200
            body = response.json()
            assert body["total"] == 25
            assert body["pages"] == 3
            assert body["page"] == page
            assert body["limit"] == 10
            assert body["sort"] == "created_at:desc"
            seen.extend(item["id"] for item in body["data"])

        assert len(seen) == 25
        assert set(seen) == created

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, client):
        headers = auth_headers("user-1")
        await create_link(client, headers=headers)

        default = (await client.get(LINKS, params={"limit": 0, "page": -1}, headers=headers)).json()
        capped = (await client.get(LINKS, params={"limit": 1000}, headers=headers)).json()

        assert default["limit"] == settings.PAGINATION_DEFAULT_LIMIT
        assert default["page"] == 1
        assert capped["limit"] == settings.PAGINATION_MAX_LIMIT

    @pytest.mark.asyncio
    async def test_search_sort_and_active_filter(self, client):
        headers = auth_headers("user-1")
        await create_link(client, headers=headers, keyword="alpha01", title="Quarterly report")
        beta = await create_link(client, headers=headers, keyword="beta001", title="Annual report")
        await create_link(client, headers=headers, keyword="gamma01", title="Pictures")
        await client.patch(f"{LINKS}/{beta['id']}", json={"active": False}, headers=headers)

        body = (await client.get(LINKS, params={"q": "REPORT", "sort": "keyword"}, headers=headers)).json()
        assert [item["keyword"] for item in body["data"]] == ["alpha01", "beta001"]
        assert body["sort"] == "keyword:asc"

        body = (await client.get(LINKS, params={"active": "false"}, headers=headers)).json()
        assert [item["keyword"] for item in body["data"]] == ["beta001"]

    @pytest.mark.asyncio
    async def test_invalid_sort(self, client):
        response = await client.get(LINKS, params={"sort": "owner_id"}, headers=auth_headers())

        assert response.status_code == 400
        assert "sort" in response.json()["errors"]
