"""Data structures decoded from MyAnimeList API responses.

Records are plain dataclasses. Each has a ``from_dict`` classmethod that
decodes the API's JSON (raising SchemaError on a shape mismatch) and a
``to_dict`` method that re-serializes to JSON-safe types, leaving out
fields that were not returned.

Optional attributes are None when the field was not requested or the API
did not return it; requesting a field through a builder is the only way to
populate it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Callable, Iterator, TypeVar

from .errors import SchemaError

T = TypeVar("T")
E = TypeVar("E", bound=Enum)


# -------- enums --------


class Season(str, Enum):
    """Anime season of a year."""

    WINTER = "winter"
    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"


class Nsfw(str, Enum):
    WHITE = "white"
    GRAY = "gray"
    BLACK = "black"


class MediaType(str, Enum):
    UNKNOWN = "unknown"
    TV = "tv"
    OVA = "ova"
    MOVIE = "movie"
    SPECIAL = "special"
    ONA = "ona"
    MUSIC = "music"
    TV_SPECIAL = "tv_special"
    CM = "cm"
    PV = "pv"


class AiringStatus(str, Enum):
    FINISHED_AIRING = "finished_airing"
    CURRENTLY_AIRING = "currently_airing"
    NOT_YET_AIRED = "not_yet_aired"


class Status(str, Enum):
    """Status of an entry on a user's list."""

    WATCHING = "watching"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"
    PLAN_TO_WATCH = "plan_to_watch"


class Source(str, Enum):
    OTHER = "other"
    ORIGINAL = "original"
    MANGA = "manga"
    FOUR_KOMA_MANGA = "4_koma_manga"
    WEB_MANGA = "web_manga"
    DIGITAL_MANGA = "digital_manga"
    NOVEL = "novel"
    LIGHT_NOVEL = "light_novel"
    VISUAL_NOVEL = "visual_novel"
    GAME = "game"
    CARD_GAME = "card_game"
    BOOK = "book"
    PICTURE_BOOK = "picture_book"
    RADIO = "radio"
    MUSIC = "music"
    MIXED_MEDIA = "mixed_media"
    WEB_NOVEL = "web_novel"


class Rating(str, Enum):
    G = "g"
    PG = "pg"
    PG_13 = "pg_13"
    R = "r"
    R_PLUS = "r+"
    RX = "rx"


class Sort(str, Enum):
    """Sort orders accepted by the user list endpoint."""

    LIST_SCORE = "list_score"
    LIST_UPDATED_AT = "list_updated_at"
    ANIME_TITLE = "anime_title"
    ANIME_START_DATE = "anime_start_date"
    ANIME_ID = "anime_id"


class RankingType(str, Enum):
    """Ranking categories. NONE sends an empty ranking_type."""

    ALL = "all"
    AIRING = "airing"
    UPCOMING = "upcoming"
    TV = "tv"
    OVA = "ova"
    MOVIE = "movie"
    SPECIAL = "special"
    BY_POPULARITY = "bypopularity"
    FAVORITE = "favorite"
    NONE = ""


# -------- decoding helpers --------


def _require(data: dict[str, Any], key: str) -> Any:
    """Get a required key, raising SchemaError if absent."""
    if not isinstance(data, dict):
        raise SchemaError(f"Expected a JSON object, got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise SchemaError(f"Missing required field '{key}'")
    return data[key]


def _int(value: Any, key: str) -> int:
    # bool is an int subclass; the API never sends booleans for counters
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f"Field '{key}' should be an integer, got {value!r}")
    return value


def _float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"Field '{key}' should be a number, got {value!r}")
    return float(value)


def _str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise SchemaError(f"Field '{key}' should be a string, got {value!r}")
    return value


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise SchemaError(f"Field '{key}' should be a boolean, got {value!r}")
    return value


def _enum(enum_cls: type[E], value: Any, key: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise SchemaError(
            f"Field '{key}' has unknown {enum_cls.__name__} value {value!r}"
        ) from None


def _list(value: Any, key: str, item: Callable[[Any], T]) -> list[T]:
    if not isinstance(value, list):
        raise SchemaError(f"Field '{key}' should be a list, got {type(value).__name__}")
    return [item(v) for v in value]


def _optional(data: dict[str, Any], key: str, decode: Callable[[Any], T]) -> T | None:
    """Decode an optional key; absent or null means None."""
    value = data.get(key)
    if value is None:
        return None
    return decode(value)


def _serialize(value: Any) -> Any:
    """Convert records, enums and lists into JSON-safe values."""
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        result: dict[str, Any] = {}
        for f in fields(value):
            item = getattr(value, f.name)
            if item is None:
                continue
            result[f.name] = _serialize(item)
        return result
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


# -------- records --------


@dataclass
class Picture:
    """Cover image URLs."""

    large: str
    medium: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Picture":
        return cls(
            large=_str(_require(data, "large"), "large"),
            medium=_str(_require(data, "medium"), "medium"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class AlternativeTitles:
    synonyms: list[str]
    en: str
    ja: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlternativeTitles":
        return cls(
            synonyms=_list(data.get("synonyms", []), "synonyms", lambda v: _str(v, "synonyms")),
            en=_str(data.get("en", ""), "en"),
            ja=_str(data.get("ja", ""), "ja"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class Genre:
    id: int
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Genre":
        return cls(
            id=_int(_require(data, "id"), "id"),
            name=_str(_require(data, "name"), "name"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class Studio:
    id: int
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Studio":
        return cls(
            id=_int(_require(data, "id"), "id"),
            name=_str(_require(data, "name"), "name"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class StartSeason:
    year: int
    season: Season

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StartSeason":
        return cls(
            year=_int(_require(data, "year"), "year"),
            season=_enum(Season, _require(data, "season"), "season"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class Broadcast:
    day_of_the_week: str
    start_time: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Broadcast":
        return cls(
            day_of_the_week=_str(_require(data, "day_of_the_week"), "day_of_the_week"),
            start_time=_optional(data, "start_time", lambda v: _str(v, "start_time")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class StatisticsStatus:
    """Per-status user counts. The API returns these as strings."""

    watching: str
    completed: str
    on_hold: str
    dropped: str
    plan_to_watch: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatisticsStatus":
        # Counts arrive as strings ("1234"); str() keeps older int payloads working
        return cls(**{
            key: str(_require(data, key))
            for key in ("watching", "completed", "on_hold", "dropped", "plan_to_watch")
        })

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class Statistics:
    num_list_users: int
    status: StatisticsStatus

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Statistics":
        return cls(
            num_list_users=_int(_require(data, "num_list_users"), "num_list_users"),
            status=StatisticsStatus.from_dict(_require(data, "status")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class ListStatus:
    """A user's tracking state for one anime.

    Embedded in AnimeData.list_status when requested, or returned on its own
    by a list update.

    Attributes:
        status: Where the anime sits on the user's list
        score: User score, 0-10 (0 means unscored)
        num_episodes_watched: Progress counter
        is_rewatching: Whether a rewatch is in progress
        updated_at: ISO 8601 timestamp of the last change
        start_date: YYYY-MM-DD, or a partial date
        finish_date: YYYY-MM-DD, or a partial date
        priority: 0-2
        num_times_rewatched: Completed rewatches
        rewatch_value: 0-5
        tags: Free-form user tags
        comments: Free-form user comment
    """

    status: Status
    score: int
    num_episodes_watched: int
    is_rewatching: bool
    updated_at: str
    start_date: str | None = None
    finish_date: str | None = None
    priority: int | None = None
    num_times_rewatched: int | None = None
    rewatch_value: int | None = None
    tags: list[str] | None = None
    comments: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListStatus":
        return cls(
            status=_enum(Status, _require(data, "status"), "status"),
            score=_int(_require(data, "score"), "score"),
            num_episodes_watched=_int(
                _require(data, "num_episodes_watched"), "num_episodes_watched"
            ),
            is_rewatching=_bool(_require(data, "is_rewatching"), "is_rewatching"),
            updated_at=_str(_require(data, "updated_at"), "updated_at"),
            start_date=_optional(data, "start_date", lambda v: _str(v, "start_date")),
            finish_date=_optional(data, "finish_date", lambda v: _str(v, "finish_date")),
            priority=_optional(data, "priority", lambda v: _int(v, "priority")),
            num_times_rewatched=_optional(
                data, "num_times_rewatched", lambda v: _int(v, "num_times_rewatched")
            ),
            rewatch_value=_optional(data, "rewatch_value", lambda v: _int(v, "rewatch_value")),
            tags=_optional(data, "tags", lambda v: _list(v, "tags", lambda t: _str(t, "tags"))),
            comments=_optional(data, "comments", lambda v: _str(v, "comments")),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class RelatedAnime:
    node: AnimeData
    relation_type: str
    relation_type_formatted: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RelatedAnime":
        return cls(
            node=AnimeData.from_dict(_require(data, "node")),
            relation_type=_str(_require(data, "relation_type"), "relation_type"),
            relation_type_formatted=_optional(
                data, "relation_type_formatted", lambda v: _str(v, "relation_type_formatted")
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class Recommendation:
    node: AnimeData
    num_recommendations: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recommendation":
        return cls(
            node=AnimeData.from_dict(_require(data, "node")),
            num_recommendations=_optional(
                data, "num_recommendations", lambda v: _int(v, "num_recommendations")
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass
class AnimeData:
    """A single anime and whichever of its fields were requested.

    ``id``, ``title`` and ``main_picture`` are always returned by the API.
    ``rank`` and ``list_status`` may also be filled from the listing
    envelope of ranking and user list responses (see mal_query.normalize).
    """

    id: int
    title: str
    main_picture: Picture
    alternative_titles: AlternativeTitles | None = None
    start_date: str | None = None
    end_date: str | None = None
    synopsis: str | None = None
    mean: float | None = None
    rank: int | None = None
    popularity: int | None = None
    num_list_users: int | None = None
    num_scoring_users: int | None = None
    nsfw: Nsfw | None = None
    genres: list[Genre] | None = None
    created_at: str | None = None
    updated_at: str | None = None
    media_type: MediaType | None = None
    status: AiringStatus | None = None
    list_status: ListStatus | None = None
    num_episodes: int | None = None
    start_season: StartSeason | None = None
    broadcast: Broadcast | None = None
    source: Source | None = None
    average_episode_duration: int | None = None
    rating: Rating | None = None
    studios: list[Studio] | None = None
    pictures: list[Picture] | None = None
    background: str | None = None
    related_anime: list[RelatedAnime] | None = None
    related_manga: list[dict[str, Any]] | None = None
    recommendations: list[Recommendation] | None = None
    statistics: Statistics | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnimeData":
        """Decode an anime node.

        Args:
            data: The JSON object for one anime (a response body, or the
                ``node`` of a listing item)

        Returns:
            AnimeData instance

        Raises:
            SchemaError: If a required field is missing or a value has the
                wrong type
        """
        # The detail endpoint reports the caller's entry as my_list_status
        list_status = _optional(data, "my_list_status", ListStatus.from_dict)

        return cls(
            id=_int(_require(data, "id"), "id"),
            title=_str(_require(data, "title"), "title"),
            main_picture=Picture.from_dict(_require(data, "main_picture")),
            alternative_titles=_optional(data, "alternative_titles", AlternativeTitles.from_dict),
            start_date=_optional(data, "start_date", lambda v: _str(v, "start_date")),
            end_date=_optional(data, "end_date", lambda v: _str(v, "end_date")),
            synopsis=_optional(data, "synopsis", lambda v: _str(v, "synopsis")),
            mean=_optional(data, "mean", lambda v: _float(v, "mean")),
            rank=_optional(data, "rank", lambda v: _int(v, "rank")),
            popularity=_optional(data, "popularity", lambda v: _int(v, "popularity")),
            num_list_users=_optional(data, "num_list_users", lambda v: _int(v, "num_list_users")),
            num_scoring_users=_optional(
                data, "num_scoring_users", lambda v: _int(v, "num_scoring_users")
            ),
            nsfw=_optional(data, "nsfw", lambda v: _enum(Nsfw, v, "nsfw")),
            genres=_optional(data, "genres", lambda v: _list(v, "genres", Genre.from_dict)),
            created_at=_optional(data, "created_at", lambda v: _str(v, "created_at")),
            updated_at=_optional(data, "updated_at", lambda v: _str(v, "updated_at")),
            media_type=_optional(data, "media_type", lambda v: _enum(MediaType, v, "media_type")),
            status=_optional(data, "status", lambda v: _enum(AiringStatus, v, "status")),
            list_status=list_status,
            num_episodes=_optional(data, "num_episodes", lambda v: _int(v, "num_episodes")),
            start_season=_optional(data, "start_season", StartSeason.from_dict),
            broadcast=_optional(data, "broadcast", Broadcast.from_dict),
            source=_optional(data, "source", lambda v: _enum(Source, v, "source")),
            average_episode_duration=_optional(
                data, "average_episode_duration", lambda v: _int(v, "average_episode_duration")
            ),
            rating=_optional(data, "rating", lambda v: _enum(Rating, v, "rating")),
            studios=_optional(data, "studios", lambda v: _list(v, "studios", Studio.from_dict)),
            pictures=_optional(data, "pictures", lambda v: _list(v, "pictures", Picture.from_dict)),
            background=_optional(data, "background", lambda v: _str(v, "background")),
            related_anime=_optional(
                data, "related_anime", lambda v: _list(v, "related_anime", RelatedAnime.from_dict)
            ),
            # Manga nodes are kept raw; manga records are not modelled
            related_manga=_optional(
                data, "related_manga", lambda v: _list(v, "related_manga", lambda m: m)
            ),
            recommendations=_optional(
                data,
                "recommendations",
                lambda v: _list(v, "recommendations", Recommendation.from_dict),
            ),
            statistics=_optional(data, "statistics", Statistics.from_dict),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dictionary, omitting unset fields."""
        return _serialize(self)


@dataclass
class AnimeSearch:
    """Ordered list of anime returned by a listing endpoint.

    Order is the order the API returned (relevance, rank or list sort).
    """

    data: list[AnimeData] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self) -> Iterator[AnimeData]:
        return iter(self.data)

    def __getitem__(self, index: int) -> AnimeData:
        return self.data[index]

    def get(self, index: int) -> AnimeData | None:
        """Get the entry at index, or None if out of range."""
        if -len(self.data) <= index < len(self.data):
            return self.data[index]
        return None

    def titles(self) -> list[str]:
        """Titles of all entries, in order."""
        return [anime.title for anime in self.data]

    def to_dict(self) -> dict[str, Any]:
        return {"data": [anime.to_dict() for anime in self.data]}
