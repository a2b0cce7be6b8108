"""Shared fixtures and utilities for mal-query tests."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import httpx
import pytest

from mal_query.client import MalClient
from mal_query.credentials import Credentials


# ============================================================================
# Sample Data Fixtures
# ============================================================================


def anime_node(anime_id: int, title: str, **extra: Any) -> dict[str, Any]:
    """Build a minimal anime node as the API returns it."""
    node: dict[str, Any] = {
        "id": anime_id,
        "title": title,
        "main_picture": {
            "medium": f"https://cdn.myanimelist.net/images/anime/{anime_id}.jpg",
            "large": f"https://cdn.myanimelist.net/images/anime/{anime_id}l.jpg",
        },
    }
    node.update(extra)
    return node


@pytest.fixture
def katanagatari_payload() -> dict[str, Any]:
    """Recorded response for /anime/6594?fields=num_episodes,start_season,"""
    return anime_node(
        6594,
        "Katanagatari",
        num_episodes=12,
        start_season={"year": 2010, "season": "winter"},
    )


@pytest.fixture
def full_anime_payload() -> dict[str, Any]:
    """An anime with most optional fields populated."""
    return anime_node(
        22199,
        "Akame ga Kill!",
        alternative_titles={"synonyms": ["Akame ga Kiru"], "en": "Akame ga Kill!", "ja": "アカメが斬る!"},
        start_date="2014-07-07",
        end_date="2014-12-15",
        synopsis="Night Raid is the covert assassination branch of the Revolutionary Army.",
        mean=7.47,
        rank=1403,
        popularity=35,
        num_list_users=2100000,
        num_scoring_users=1300000,
        nsfw="white",
        genres=[{"id": 1, "name": "Action"}, {"id": 10, "name": "Fantasy"}],
        created_at="2013-11-26T10:17:03+00:00",
        updated_at="2024-01-10T02:51:22+00:00",
        media_type="tv",
        status="finished_airing",
        my_list_status={
            "status": "completed",
            "score": 8,
            "num_episodes_watched": 24,
            "is_rewatching": False,
            "updated_at": "2020-05-01T12:00:00+00:00",
        },
        num_episodes=24,
        start_season={"year": 2014, "season": "summer"},
        broadcast={"day_of_the_week": "monday", "start_time": "00:30"},
        source="manga",
        average_episode_duration=1380,
        rating="r",
        pictures=[
            {"medium": "https://cdn.myanimelist.net/a.jpg", "large": "https://cdn.myanimelist.net/al.jpg"}
        ],
        background="",
        related_anime=[
            {
                "node": anime_node(29145, "Akame ga Kill! Theater"),
                "relation_type": "side_story",
                "relation_type_formatted": "Side story",
            }
        ],
        related_manga=[],
        recommendations=[
            {"node": anime_node(31964, "Boku no Hero Academia"), "num_recommendations": 12}
        ],
        studios=[{"id": 1, "name": "White Fox"}],
        statistics={
            "status": {
                "watching": "80000",
                "completed": "1800000",
                "on_hold": "40000",
                "dropped": "60000",
                "plan_to_watch": "120000",
            },
            "num_list_users": 2100000,
        },
    )


@pytest.fixture
def search_payload() -> dict[str, Any]:
    """Listing envelope as returned by /anime?q=..."""
    return {
        "data": [
            {"node": anime_node(6594, "Katanagatari")},
            {"node": anime_node(22199, "Akame ga Kill!")},
            {"node": anime_node(5114, "Fullmetal Alchemist: Brotherhood")},
        ],
        "paging": {"next": "https://api.myanimelist.net/v2/anime?offset=3&q=k&limit=3"},
    }


@pytest.fixture
def ranking_payload() -> dict[str, Any]:
    """Listing envelope as returned by /anime/ranking."""
    return {
        "data": [
            {"node": anime_node(52991, "Sousou no Frieren"), "ranking": {"rank": 1}},
            {"node": anime_node(5114, "Fullmetal Alchemist: Brotherhood"), "ranking": {"rank": 2}},
            {"node": anime_node(9253, "Steins;Gate"), "ranking": {"rank": 3}},
        ],
        "paging": {},
    }


@pytest.fixture
def user_list_payload() -> dict[str, Any]:
    """Listing envelope as returned by /users/{name}/animelist."""
    return {
        "data": [
            {
                "node": anime_node(6594, "Katanagatari"),
                "list_status": {
                    "status": "completed",
                    "score": 9,
                    "num_episodes_watched": 12,
                    "is_rewatching": False,
                    "updated_at": "2021-03-02T10:00:00+00:00",
                    "start_date": "2021-02-01",
                    "finish_date": "2021-03-01",
                    "priority": 0,
                    "num_times_rewatched": 1,
                    "rewatch_value": 4,
                    "tags": ["favorites"],
                    "comments": "Great ending",
                },
            },
            {
                "node": anime_node(22199, "Akame ga Kill!"),
                "list_status": {
                    "status": "watching",
                    "score": 0,
                    "num_episodes_watched": 3,
                    "is_rewatching": False,
                    "updated_at": "2024-01-02T10:00:00+00:00",
                },
            },
        ],
        "paging": {},
    }


@pytest.fixture
def list_status_payload() -> dict[str, Any]:
    """Response body of PUT /anime/{id}/my_list_status."""
    return {
        "status": "completed",
        "score": 9,
        "num_episodes_watched": 12,
        "is_rewatching": False,
        "updated_at": "2024-02-01T10:00:00+00:00",
        "priority": 1,
        "num_times_rewatched": 0,
        "rewatch_value": 0,
        "tags": [],
        "comments": "",
    }


# ============================================================================
# Credential Fixtures
# ============================================================================


@pytest.fixture
def token_path(tmp_path: Path) -> Path:
    """Token file location inside a temporary directory."""
    return tmp_path / "cache" / "token.txt"


@pytest.fixture
def credentials(token_path: Path) -> Credentials:
    """Unauthenticated credentials with a client id."""
    return Credentials("test-client-id", token_path=token_path)


@pytest.fixture
def authed_credentials(token_path: Path) -> Credentials:
    """Credentials holding a user token."""
    return Credentials("test-client-id", token="user-token", token_path=token_path)


# ============================================================================
# HTTP Fixtures
# ============================================================================


class FakeApi:
    """httpx MockTransport handler that records requests and replies with one response."""

    def __init__(
        self,
        json_body: Any = None,
        status_code: int = 200,
        text: str | None = None,
        error: Exception | None = None,
    ):
        self.json_body = json_body
        self.status_code = status_code
        self.text = text
        self.error = error
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.json_body)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def client(self, credentials: Credentials) -> MalClient:
        return MalClient(credentials, http_client=self.http_client())

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def fake_api() -> Callable[..., FakeApi]:
    """Factory for FakeApi instances."""
    return FakeApi


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Temporarily clear MAL_* environment variables."""
    old_env = os.environ.copy()
    for key in list(os.environ.keys()):
        if key.startswith("MAL_"):
            del os.environ[key]
    yield
    os.environ.clear()
    os.environ.update(old_env)
