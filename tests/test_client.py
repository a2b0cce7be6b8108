"""Tests for the HTTP transport."""

from urllib.parse import parse_qs

import httpx
import pytest

from mal_query.client import API_BASE, MalClient
from mal_query.errors import (
    AuthenticationRequiredError,
    RequestFailedError,
    SchemaError,
    TransportError,
)
from mal_query.normalize import normalize_ranking_item


class TestGetRequests:
    """Tests for authenticated and anonymous GETs."""

    @pytest.mark.asyncio
    async def test_relative_url_uses_api_base(self, fake_api, credentials, katanagatari_payload) -> None:
        api = fake_api(katanagatari_payload)
        async with api.client(credentials) as client:
            await client.get_json("/anime/6594?fields=num_episodes,")

        assert str(api.last.url).startswith(f"{API_BASE}/anime/6594")
        assert api.last.method == "GET"

    @pytest.mark.asyncio
    async def test_anonymous_sends_client_id(self, fake_api, credentials, katanagatari_payload) -> None:
        api = fake_api(katanagatari_payload)
        async with api.client(credentials) as client:
            await client.get_json("/anime/6594")

        assert api.last.headers["X-MAL-CLIENT-ID"] == "test-client-id"
        assert "Authorization" not in api.last.headers

    @pytest.mark.asyncio
    async def test_authenticated_sends_bearer(self, fake_api, authed_credentials, katanagatari_payload) -> None:
        api = fake_api(katanagatari_payload)
        async with api.client(authed_credentials) as client:
            await client.get_json("/anime/6594")

        assert api.last.headers["Authorization"] == "Bearer user-token"
        assert "X-MAL-CLIENT-ID" not in api.last.headers

    @pytest.mark.asyncio
    async def test_headers_follow_token_changes(self, fake_api, credentials, katanagatari_payload) -> None:
        """Each request uses the token held at send time."""
        api = fake_api(katanagatari_payload)
        async with api.client(credentials) as client:
            await client.get_json("/anime/6594")
            credentials.set_token("later-token", persist=False)
            await client.get_json("/anime/6594")

        assert "Authorization" not in api.requests[0].headers
        assert api.requests[1].headers["Authorization"] == "Bearer later-token"

    @pytest.mark.asyncio
    async def test_get_anime_decodes(self, fake_api, credentials, katanagatari_payload) -> None:
        api = fake_api(katanagatari_payload)
        async with api.client(credentials) as client:
            anime = await client.get_anime("/anime/6594?fields=num_episodes,start_season,")

        assert anime.title == "Katanagatari"
        assert anime.num_episodes == 12

    @pytest.mark.asyncio
    async def test_get_search_uses_normalizer(self, fake_api, credentials, ranking_payload) -> None:
        api = fake_api(ranking_payload)
        async with api.client(credentials) as client:
            results = await client.get_search("/anime/ranking", normalize_ranking_item)

        assert [a.rank for a in results] == [1, 2, 3]


class TestErrors:
    """Tests for error mapping."""

    @pytest.mark.asyncio
    async def test_non_2xx(self, fake_api, credentials) -> None:
        api = fake_api({"error": "not_found", "message": ""}, status_code=404)
        async with api.client(credentials) as client:
            with pytest.raises(RequestFailedError) as exc_info:
                await client.get_json("/anime/0")

        assert exc_info.value.status_code == 404
        assert "not_found" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_invalid_json(self, fake_api, credentials) -> None:
        api = fake_api(text="<html>maintenance</html>")
        async with api.client(credentials) as client:
            with pytest.raises(SchemaError, match="not valid JSON"):
                await client.get_json("/anime/1")

    @pytest.mark.asyncio
    async def test_anime_response_not_object(self, fake_api, credentials) -> None:
        api = fake_api([1, 2, 3])
        async with api.client(credentials) as client:
            with pytest.raises(SchemaError):
                await client.get_anime("/anime/1")

    @pytest.mark.asyncio
    async def test_network_error(self, fake_api, credentials) -> None:
        api = fake_api(error=httpx.ConnectError("connection refused"))
        async with api.client(credentials) as client:
            with pytest.raises(TransportError, match="connection refused"):
                await client.get_json("/anime/1")

    @pytest.mark.asyncio
    async def test_timeout(self, fake_api, credentials) -> None:
        api = fake_api(error=httpx.ReadTimeout("too slow"))
        async with api.client(credentials) as client:
            with pytest.raises(TransportError, match="Timeout"):
                await client.get_json("/anime/1")


class TestWrites:
    """Tests for PUT and DELETE."""

    @pytest.mark.asyncio
    async def test_put_form(self, fake_api, authed_credentials, list_status_payload) -> None:
        api = fake_api(list_status_payload)
        async with api.client(authed_credentials) as client:
            result = await client.put_form("/anime/6594/my_list_status", {"score": "9"})

        assert result["score"] == 9
        assert api.last.method == "PUT"
        assert api.last.headers["Authorization"] == "Bearer user-token"
        assert api.last.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert parse_qs(api.last.content.decode()) == {"score": ["9"]}

    @pytest.mark.asyncio
    async def test_put_requires_token(self, fake_api, credentials) -> None:
        api = fake_api({})
        async with api.client(credentials) as client:
            with pytest.raises(AuthenticationRequiredError):
                await client.put_form("/anime/1/my_list_status", {"score": "1"})

        assert api.requests == []

    @pytest.mark.asyncio
    async def test_delete(self, fake_api, authed_credentials) -> None:
        api = fake_api({})
        async with api.client(authed_credentials) as client:
            await client.delete("/anime/6594/my_list_status")

        assert api.last.method == "DELETE"
        assert api.last.url.path == "/v2/anime/6594/my_list_status"

    @pytest.mark.asyncio
    async def test_delete_requires_token(self, fake_api, credentials) -> None:
        api = fake_api({})
        async with api.client(credentials) as client:
            with pytest.raises(AuthenticationRequiredError):
                await client.delete("/anime/1/my_list_status")

        assert api.requests == []


class TestLifecycle:
    """Tests for HTTP client ownership."""

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, fake_api, credentials) -> None:
        api = fake_api({})
        http = api.http_client()
        async with MalClient(credentials, http_client=http):
            pass

        assert not http.is_closed
        await http.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, credentials) -> None:
        client = MalClient(credentials)
        await client.aclose()
        assert client._http.is_closed
