"""Query builders for anime retrieval.

A builder accumulates the pieces of one request URL. Chain methods mutate
the builder and return it; constructing or configuring a builder never
touches the network. ``await builder.run()`` sends exactly one request
through the MalClient and decodes the response.

Fields are rendered in the order they were added, each followed by a
comma, and duplicates are kept::

    AnimeBuilder(client, 6594).add_id().add_id().url
    # '/anime/6594?fields=id,id,'
"""

import logging
from enum import Enum
from typing import TypeVar
from urllib.parse import quote

from .client import MalClient
from .errors import ValidationError
from .models import AnimeData, AnimeSearch, RankingType, Season, Sort, Status
from .normalize import normalize_list_item, normalize_ranking_item, normalize_search_item

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

# Every anime field the API understands, in request order
ANIME_FIELDS = [
    "id",
    "title",
    "main_picture",
    "alternative_titles",
    "start_date",
    "end_date",
    "synopsis",
    "mean",
    "rank",
    "popularity",
    "num_list_users",
    "num_scoring_users",
    "nsfw",
    "created_at",
    "updated_at",
    "media_type",
    "status",
    "genres",
    "my_list_status",
    "num_episodes",
    "start_season",
    "broadcast",
    "source",
    "average_episode_duration",
    "rating",
    "pictures",
    "background",
    "related_anime",
    "related_manga",
    "recommendations",
    "studios",
    "statistics",
]

# Sub-fields of a user list entry's list_status
LIST_STATUS_FIELDS = [
    "status",
    "score",
    "num_episodes_watched",
    "is_rewatching",
    "updated_at",
    "start_date",
    "finish_date",
    "priority",
    "num_times_rewatched",
    "rewatch_value",
    "tags",
    "comments",
]

DEFAULT_LIST_STATUS_FIELDS = [
    "is_rewatching",
    "num_times_rewatched",
    "rewatch_value",
    "priority",
    "tags",
    "comments",
    "start_date",
    "finish_date",
]


def _non_negative(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _coerce(enum_cls: type[E], value: E | str, label: str) -> E:
    """Accept an enum member or its string value."""
    try:
        return enum_cls(value)
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls if member.value)
        raise ValidationError(f"Unknown {label} {value!r}. Valid values: {valid}") from None


class FieldsMixin:
    """Field selection shared by every builder.

    Each ``add_*`` method appends one field name to ``fields``.
    """

    fields: list[str]

    def _add(self, name: str):
        self.fields.append(name)
        return self

    def add_fields(self, *names: str):
        """Append several field names at once.

        Raises:
            ValidationError: If a name is not an anime field
        """
        unknown = [name for name in names if name not in ANIME_FIELDS]
        if unknown:
            raise ValidationError(
                f"Unknown anime field(s): {', '.join(unknown)}. "
                f"Valid fields: {', '.join(ANIME_FIELDS)}"
            )
        self.fields.extend(names)
        return self

    def add_all_fields(self):
        self.fields.extend(ANIME_FIELDS)
        return self

    def _render_fields(self) -> str:
        return "fields=" + "".join(f"{name}," for name in self.fields)

    def add_id(self):
        return self._add("id")

    def add_title(self):
        return self._add("title")

    def add_main_picture(self):
        return self._add("main_picture")

    def add_alt_titles(self):
        return self._add("alternative_titles")

    def add_start_date(self):
        return self._add("start_date")

    def add_end_date(self):
        return self._add("end_date")

    def add_synopsis(self):
        return self._add("synopsis")

    def add_mean(self):
        return self._add("mean")

    def add_rank(self):
        return self._add("rank")

    def add_popularity(self):
        return self._add("popularity")

    def add_num_list_users(self):
        return self._add("num_list_users")

    def add_num_scoring_users(self):
        return self._add("num_scoring_users")

    def add_nsfw(self):
        return self._add("nsfw")

    def add_created_at(self):
        return self._add("created_at")

    def add_updated_at(self):
        return self._add("updated_at")

    def add_media_type(self):
        return self._add("media_type")

    def add_status(self):
        return self._add("status")

    def add_genres(self):
        return self._add("genres")

    def add_my_list_status(self):
        return self._add("my_list_status")

    def add_start_season(self):
        return self._add("start_season")

    def add_num_episodes(self):
        return self._add("num_episodes")

    def add_broadcast(self):
        return self._add("broadcast")

    def add_source(self):
        return self._add("source")

    def add_average_episode_duration(self):
        return self._add("average_episode_duration")

    def add_rating(self):
        return self._add("rating")

    def add_pictures(self):
        return self._add("pictures")

    def add_background(self):
        return self._add("background")

    def add_related_anime(self):
        return self._add("related_anime")

    def add_related_manga(self):
        return self._add("related_manga")

    def add_recommendations(self):
        return self._add("recommendations")

    def add_studios(self):
        return self._add("studios")

    def add_statistics(self):
        return self._add("statistics")


class AnimeBuilder(FieldsMixin):
    """Fetch one anime by id.

    Usage:
        anime = await AnimeBuilder(client, 6594).add_num_episodes().run()
    """

    def __init__(self, client: MalClient, anime_id: int):
        self.client = client
        self.anime_id = _non_negative("anime_id", anime_id)
        self.fields: list[str] = []

    @property
    def url(self) -> str:
        return f"/anime/{self.anime_id}?{self._render_fields()}"

    async def run(self) -> AnimeData:
        return await self.client.get_anime(self.url)


class SearchBuilder(FieldsMixin):
    """Search anime by name. The query is URL-escaped."""

    def __init__(self, client: MalClient, query: str, limit: int):
        self.client = client
        self.query = query
        self.limit = _non_negative("limit", limit)
        self.fields: list[str] = []

    @property
    def url(self) -> str:
        return f"/anime?q={quote(self.query, safe='')}&limit={self.limit}&{self._render_fields()}"

    async def run(self) -> AnimeSearch:
        return await self.client.get_search(self.url, normalize_search_item)


class _ParamsMixin:
    """``key=value&`` query parameters kept in call order."""

    params: list[tuple[str, str]]

    def _param(self, key: str, value: str):
        self.params.append((key, value))
        return self

    def _render_params(self) -> str:
        return "".join(f"{key}={value}&" for key, value in self.params)


class SeasonalBuilder(_ParamsMixin, FieldsMixin):
    """List the anime of one broadcast season."""

    def __init__(self, client: MalClient, year: int, season: Season | str):
        self.client = client
        self.year = _non_negative("year", year)
        self.season = _coerce(Season, season, "season")
        self.params: list[tuple[str, str]] = []
        self.fields: list[str] = []

    def limit(self, limit: int) -> "SeasonalBuilder":
        return self._param("limit", str(_non_negative("limit", limit)))

    def offset(self, offset: int) -> "SeasonalBuilder":
        return self._param("offset", str(_non_negative("offset", offset)))

    @property
    def url(self) -> str:
        return (
            f"/anime/season/{self.year}/{self.season.value}?"
            f"{self._render_params()}{self._render_fields()}"
        )

    async def run(self) -> AnimeSearch:
        return await self.client.get_search(self.url, normalize_search_item)


class RankingBuilder(FieldsMixin):
    """Anime ranking for a category; each result carries its ``rank``."""

    def __init__(self, client: MalClient, ranking_type: RankingType | str, limit: int):
        self.client = client
        self.ranking_type = _coerce(RankingType, ranking_type, "ranking type")
        self.limit = _non_negative("limit", limit)
        self.fields: list[str] = []

    @property
    def url(self) -> str:
        return (
            f"/anime/ranking?ranking_type={self.ranking_type.value}"
            f"&limit={self.limit}&{self._render_fields()}"
        )

    async def run(self) -> AnimeSearch:
        return await self.client.get_search(self.url, normalize_ranking_item)


class UserListBuilder(_ParamsMixin, FieldsMixin):
    """A user's anime list.

    ``status``, ``sort``, ``limit`` and ``offset`` are appended to the URL
    in the order they are called. ``include_list_status`` asks for details
    of each entry's list status, which end up on ``AnimeData.list_status``.

    Usage:
        entries = await (
            UserListBuilder(client, "someone")
            .status(Status.COMPLETED)
            .sort(Sort.LIST_SCORE)
            .limit(10)
            .include_list_status()
            .run()
        )
    """

    def __init__(self, client: MalClient, username: str):
        if not username or "/" in username:
            raise ValidationError(f"Invalid username: {username!r}")
        self.client = client
        self.username = username
        self.params: list[tuple[str, str]] = []
        self.fields: list[str] = []
        self.list_status_fields: list[str] = []

    def status(self, status: Status | str) -> "UserListBuilder":
        return self._param("status", _coerce(Status, status, "status").value)

    def sort(self, sort: Sort | str) -> "UserListBuilder":
        return self._param("sort", _coerce(Sort, sort, "sort").value)

    def limit(self, limit: int) -> "UserListBuilder":
        return self._param("limit", str(_non_negative("limit", limit)))

    def offset(self, offset: int) -> "UserListBuilder":
        return self._param("offset", str(_non_negative("offset", offset)))

    def include_list_status(self, *names: str) -> "UserListBuilder":
        """Request list status details.

        Args:
            *names: list_status sub-fields; the common detail fields when
                none are given

        Raises:
            ValidationError: If a name is not a list_status field
        """
        unknown = [name for name in names if name not in LIST_STATUS_FIELDS]
        if unknown:
            raise ValidationError(
                f"Unknown list status field(s): {', '.join(unknown)}. "
                f"Valid fields: {', '.join(LIST_STATUS_FIELDS)}"
            )
        self.list_status_fields.extend(names or DEFAULT_LIST_STATUS_FIELDS)
        return self

    def _render_user_fields(self) -> str:
        if not self.fields and not self.list_status_fields:
            return ""
        rendered = self._render_fields()
        if self.list_status_fields:
            rendered += "list_status{" + ",".join(self.list_status_fields) + "}"
        return rendered + "&"

    @property
    def url(self) -> str:
        return (
            f"/users/{quote(self.username, safe='@')}/animelist?"
            f"{self._render_params()}{self._render_user_fields()}"
        )

    async def run(self) -> AnimeSearch:
        return await self.client.get_search(self.url, normalize_list_item)
