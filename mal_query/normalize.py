"""Response-shape normalization for listing endpoints.

Listing endpoints wrap every anime in an envelope::

    {"data": [{"node": {...}, "ranking": {"rank": 1}}, ...], "paging": {...}}

The envelope can carry information that belongs on the anime itself:
ranking endpoints put the position in ``ranking.rank`` and user list
endpoints put the user's entry in ``list_status``. Each endpoint family
gets its own normalizer that lifts those siblings onto the decoded
AnimeData.
"""

from typing import Any, Callable

from .errors import SchemaError
from .models import AnimeData, AnimeSearch, ListStatus

ItemNormalizer = Callable[[dict[str, Any]], AnimeData]


def _node(item: dict[str, Any]) -> AnimeData:
    if not isinstance(item, dict) or not isinstance(item.get("node"), dict):
        raise SchemaError("Listing item has no 'node' object")
    return AnimeData.from_dict(item["node"])


def normalize_search_item(item: dict[str, Any]) -> AnimeData:
    """Decode an item from search and seasonal listings."""
    return _node(item)


def normalize_ranking_item(item: dict[str, Any]) -> AnimeData:
    """Decode a ranking item, setting ``rank`` from the envelope."""
    anime = _node(item)
    ranking = item.get("ranking")
    if ranking is not None:
        rank = ranking.get("rank") if isinstance(ranking, dict) else None
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise SchemaError(f"Ranking item has invalid rank: {ranking!r}")
        anime.rank = rank
    return anime


def normalize_list_item(item: dict[str, Any]) -> AnimeData:
    """Decode a user list item, setting ``list_status`` from the envelope."""
    anime = _node(item)
    list_status = item.get("list_status")
    if list_status is not None:
        anime.list_status = ListStatus.from_dict(list_status)
    return anime


def decode_listing(payload: Any, normalize: ItemNormalizer) -> AnimeSearch:
    """Decode a listing response into an ordered AnimeSearch.

    Args:
        payload: Parsed JSON response body
        normalize: Per-item normalizer for the endpoint family

    Returns:
        AnimeSearch preserving the API's order

    Raises:
        SchemaError: If the payload has no ``data`` array
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise SchemaError("Listing response has no 'data' array")
    return AnimeSearch([normalize(item) for item in payload["data"]])
