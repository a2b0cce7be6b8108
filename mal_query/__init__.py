"""mal-query - A typed async client for the MyAnimeList API."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("mal-query")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development

__all__ = [
    "__version__",
    # Setup
    "Config",
    "load_config",
    "Credentials",
    "MalClient",
    # Retrieval
    "AnimeBuilder",
    "SearchBuilder",
    "SeasonalBuilder",
    "RankingBuilder",
    "UserListBuilder",
    "search_anime",
    "get_season",
    "get_anime",
    "get_anime_from_url",
    "get_anime_rankings",
    "get_user_animelist",
    # User list
    "UpdateAnime",
    "delete_anime",
    # Login
    "LoginFlow",
]

_RETRIEVAL = (
    "search_anime",
    "get_season",
    "get_anime",
    "get_anime_from_url",
    "get_anime_rankings",
    "get_user_animelist",
)
_BUILDERS = ("AnimeBuilder", "SearchBuilder", "SeasonalBuilder", "RankingBuilder", "UserListBuilder")


# Lazy imports keep `import mal_query` free of httpx/keyring imports
def __getattr__(name: str) -> object:
    """Lazy import module components."""
    if name in ("Config", "load_config"):
        from . import config
        return getattr(config, name)
    elif name == "Credentials":
        from .credentials import Credentials
        return Credentials
    elif name == "MalClient":
        from .client import MalClient
        return MalClient
    elif name in _BUILDERS:
        from . import builders
        return getattr(builders, name)
    elif name in _RETRIEVAL:
        from . import retrieval
        return getattr(retrieval, name)
    elif name in ("UpdateAnime", "delete_anime"):
        from . import user
        return getattr(user, name)
    elif name == "LoginFlow":
        from .oauth import LoginFlow
        return LoginFlow
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
