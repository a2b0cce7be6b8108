"""Changes to the logged-in user's anime list.

UpdateAnime accumulates the fields to change as a ``dict[str, str]`` of
form parameters. Each setter validates its input before touching
``params``, so a rejected value leaves the pending update unchanged.
``await update()`` sends everything in one PUT and returns the entry's new
list status.
"""

import datetime
import logging

from .client import MalClient
from .errors import ValidationError
from .models import AnimeData, ListStatus, Status

logger = logging.getLogger(__name__)

MAX_SCORE = 10
MAX_PRIORITY = 2
MAX_REWATCH_VALUE = 5


def list_status_url(anime_id: int) -> str:
    return f"/anime/{anime_id}/my_list_status"


def _bounded(name: str, value: int, upper: int) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= upper:
        raise ValidationError(f"{name} has to be 0-{upper}, got {value}")
    return str(value)


def _counter(name: str, value: int) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} cannot be negative, got {value}")
    return str(value)


def _date(name: str, year: int, month: int, day: int) -> str:
    try:
        return datetime.date(year, month, day).isoformat()
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {name} {year}-{month}-{day}: {e}") from None


class UpdateAnime:
    """Pending update to one entry of the user's list.

    Usage:
        status = await (
            UpdateAnime(client, 6594)
            .update_status(Status.COMPLETED)
            .update_score(9)
            .update()
        )

    Attributes:
        anime_id: Id of the anime whose list entry is updated
        params: Form parameters accumulated so far
    """

    def __init__(self, client: MalClient, anime_id: int):
        self.client = client
        self.anime_id = anime_id
        self.params: dict[str, str] = {}

    @classmethod
    def from_anime(cls, client: MalClient, anime: AnimeData) -> "UpdateAnime":
        """Start an update for an anime that was already fetched."""
        return cls(client, anime.id)

    def update_status(self, status: Status | str) -> "UpdateAnime":
        try:
            value = Status(status).value
        except ValueError:
            raise ValidationError(
                f"Unknown status {status!r}. Valid values: {', '.join(s.value for s in Status)}"
            ) from None
        self.params["status"] = value
        return self

    def update_is_rewatching(self, is_rewatching: bool) -> "UpdateAnime":
        if not isinstance(is_rewatching, bool):
            raise ValidationError(f"is_rewatching must be a boolean, got {is_rewatching!r}")
        self.params["is_rewatching"] = "true" if is_rewatching else "false"
        return self

    def update_score(self, score: int) -> "UpdateAnime":
        """Set the score (0-10, 0 clears it).

        Raises:
            ValidationError: If score is outside 0-10
        """
        self.params["score"] = _bounded("score", score, MAX_SCORE)
        return self

    def update_num_watched_episodes(self, num_watched_episodes: int) -> "UpdateAnime":
        self.params["num_watched_episodes"] = _counter(
            "num_watched_episodes", num_watched_episodes
        )
        return self

    def update_priority(self, priority: int) -> "UpdateAnime":
        """Set the priority (0 low, 1 medium, 2 high).

        Raises:
            ValidationError: If priority is outside 0-2
        """
        self.params["priority"] = _bounded("priority", priority, MAX_PRIORITY)
        return self

    def update_num_times_rewatched(self, num_times_rewatched: int) -> "UpdateAnime":
        self.params["num_times_rewatched"] = _counter("num_times_rewatched", num_times_rewatched)
        return self

    def update_rewatch_value(self, rewatch_value: int) -> "UpdateAnime":
        """Set the rewatch value (0-5).

        Raises:
            ValidationError: If rewatch_value is outside 0-5
        """
        self.params["rewatch_value"] = _bounded("rewatch_value", rewatch_value, MAX_REWATCH_VALUE)
        return self

    def update_tags(self, tags: list[str]) -> "UpdateAnime":
        """Replace the entry's tags. Sent comma-separated."""
        if isinstance(tags, str) or any(not isinstance(tag, str) for tag in tags):
            raise ValidationError("tags must be a list of strings")
        self.params["tags"] = ",".join(tag.strip() for tag in tags)
        return self

    def update_comments(self, comments: str) -> "UpdateAnime":
        if not isinstance(comments, str):
            raise ValidationError(f"comments must be a string, got {comments!r}")
        self.params["comments"] = comments
        return self

    def update_start_date(self, year: int, month: int, day: int) -> "UpdateAnime":
        self.params["start_date"] = _date("start_date", year, month, day)
        return self

    def update_finish_date(self, year: int, month: int, day: int) -> "UpdateAnime":
        self.params["finish_date"] = _date("finish_date", year, month, day)
        return self

    async def update(self) -> ListStatus:
        """Send the pending update.

        Returns:
            The entry's list status as stored by MyAnimeList

        Raises:
            ValidationError: If nothing has been set
            AuthenticationRequiredError: If no user is logged in (checked first, nothing is sent)
            RequestFailedError: If the API rejects the update
        """
        self.client.credentials.require_token()
        if not self.params:
            raise ValidationError("Nothing to update: set at least one field first")

        logger.debug(f"Updating list entry {self.anime_id}: {sorted(self.params)}")
        payload = await self.client.put_form(list_status_url(self.anime_id), dict(self.params))
        return ListStatus.from_dict(payload)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(anime_id={self.anime_id}, params={self.params!r})"


async def delete_anime(client: MalClient, anime_id: int) -> None:
    """Remove an anime from the logged-in user's list.

    Raises:
        AuthenticationRequiredError: If no user is logged in (nothing is sent)
        RequestFailedError: If the API rejects the request (404 if not on the list)
    """
    await client.delete(list_status_url(anime_id))
    logger.debug(f"Deleted list entry {anime_id}")
