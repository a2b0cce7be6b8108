"""One-call retrieval shortcuts built on the query builders."""

import logging
import re
from urllib.parse import urlsplit

from .builders import AnimeBuilder, RankingBuilder, SearchBuilder, SeasonalBuilder, UserListBuilder
from .client import MalClient
from .errors import InvalidUrlError
from .models import AnimeData, AnimeSearch, RankingType, Season

logger = logging.getLogger(__name__)

# The season endpoint's maximum page size
SEASON_LIMIT = 500

_NUMERIC_SEGMENT = re.compile(r"[0-9]+")


async def search_anime(client: MalClient, name: str, limit: int) -> AnimeSearch:
    """Search anime by name (id, title and main_picture of each result)."""
    return await SearchBuilder(client, name, limit).run()


async def get_season(client: MalClient, year: int, season: Season | str) -> AnimeSearch:
    """Every anime of a season, up to 500 entries."""
    return await SeasonalBuilder(client, year, season).limit(SEASON_LIMIT).run()


async def get_anime(client: MalClient, anime_id: int) -> AnimeData:
    """Fetch one anime with every field populated."""
    return await AnimeBuilder(client, anime_id).add_all_fields().run()


def anime_id_from_url(url: str) -> int:
    """Extract the anime id from a MyAnimeList URL.

    The id is the first path segment made only of digits, so
    ``https://myanimelist.net/anime/6594/Katanagatari`` gives 6594.

    Raises:
        InvalidUrlError: If the URL has no numeric path segment
    """
    try:
        path = urlsplit(url.strip()).path
    except ValueError as e:
        raise InvalidUrlError(f"Could not parse URL {url!r}: {e}") from e

    for segment in path.split("/"):
        if _NUMERIC_SEGMENT.fullmatch(segment):
            return int(segment)

    raise InvalidUrlError(f"No anime id found in URL {url!r}")


async def get_anime_from_url(client: MalClient, url: str) -> AnimeData:
    """Fetch the anime a MyAnimeList page URL points at, with every field."""
    anime_id = anime_id_from_url(url)
    logger.debug(f"Resolved {url} to anime id {anime_id}")
    return await get_anime(client, anime_id)


async def get_anime_rankings(
    client: MalClient,
    ranking_type: RankingType | str,
    limit: int,
) -> AnimeSearch:
    """Top anime for a ranking category; ``rank`` is set on every entry."""
    return await RankingBuilder(client, ranking_type, limit).run()


async def get_user_animelist(client: MalClient, username: str, limit: int) -> AnimeSearch:
    """A user's anime list with list status details on every entry."""
    return await UserListBuilder(client, username).include_list_status().limit(limit).run()
