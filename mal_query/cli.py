"""CLI entry point for mal-query."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, NoReturn, TypeVar

import click
from keyring.errors import KeyringError

from . import __version__
from .builders import AnimeBuilder, RankingBuilder, SeasonalBuilder, UserListBuilder
from .client import MalClient
from .config import Config, load_config, store_client_id
from .credentials import Credentials
from .errors import (
    AuthenticationRequiredError,
    InvalidUrlError,
    LoginError,
    MalQueryError,
    RequestFailedError,
    SchemaError,
    TransportError,
    ValidationError,
)
from .models import RankingType, Season, Sort, Status
from .oauth import CallbackBindError, CallbackTimeoutError, LoginFlow
from .output import OutputHandler, format_anime, format_list_status
from .retrieval import (
    SEASON_LIMIT,
    anime_id_from_url,
    get_anime,
    get_anime_from_url,
    get_season,
    search_anime,
)
from .user import UpdateAnime, delete_anime

# Logger for CLI
logger = logging.getLogger("malq")

T = TypeVar("T")


def _help_for(error: Exception) -> str | None:
    """Suggest a fix for a library error."""
    if isinstance(error, AuthenticationRequiredError):
        return "Run 'malq login' to log in to MyAnimeList."
    if isinstance(error, RequestFailedError):
        if error.status_code == 401:
            return (
                "MyAnimeList rejected the credentials. Check the client id "
                "('malq status') or log in again with 'malq login'."
            )
        if error.status_code == 404:
            return "Nothing found. Check the id or username."
        return None
    if isinstance(error, TransportError):
        return "Could not reach MyAnimeList. Check your network connection."
    if isinstance(error, SchemaError):
        return "MyAnimeList returned an unexpected response. Run with -v for details."
    if isinstance(error, InvalidUrlError):
        return "Pass an anime id or a URL like https://myanimelist.net/anime/6594."
    if isinstance(error, CallbackBindError):
        return "Close any other running 'malq login' or free the redirect port."
    if isinstance(error, CallbackTimeoutError):
        return "Run 'malq login' again and finish authorizing in the browser."
    if isinstance(error, LoginError):
        return "Run 'malq login' again."
    return None


@click.group()
@click.option("--json", "json_mode", is_flag=True, help="Output in JSON format")
@click.option("--env-file", "env_path", type=click.Path(exists=True), help="Path to .env file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, json_mode: bool, env_path: str | None, verbose: bool) -> None:
    """malq - Query and update MyAnimeList from the terminal."""
    ctx.ensure_object(dict)
    ctx.obj["json_mode"] = json_mode
    ctx.obj["env_path"] = Path(env_path) if env_path else None
    ctx.obj["output"] = OutputHandler(json_mode, verbose=verbose)

    # Configure logging based on verbosity
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
    else:
        logging.basicConfig(level=logging.WARNING)


def get_config(ctx: click.Context) -> Config | NoReturn:
    """Get config from context, handling errors."""
    output: OutputHandler = ctx.obj["output"]
    try:
        return load_config(ctx.obj["env_path"])
    except ValueError as e:
        output.error(
            e,
            error_type="ConfigError",
            help_text="Fix the MAL_* environment variable named above.",
        )
        raise SystemExit(1)  # Never reached due to sys.exit in output.error


def get_credentials(config: Config) -> Credentials:
    credentials = Credentials.load(config)
    if not config.client_id and not credentials.is_authenticated():
        logger.warning("No client id configured; MyAnimeList will reject the request")
    return credentials


def run_api(ctx: click.Context, call: Callable[[MalClient], Awaitable[T]]) -> T:
    """Run one API call with a client built from the current config.

    Library errors are reported through the output handler (which exits).
    """
    output: OutputHandler = ctx.obj["output"]
    config = get_config(ctx)
    credentials = get_credentials(config)

    async def runner() -> T:
        async with MalClient(credentials, timeout=config.request_timeout) as client:
            return await call(client)

    try:
        return asyncio.run(runner())
    except MalQueryError as e:
        output.error(e, help_text=_help_for(e))
        raise SystemExit(1)  # Never reached due to sys.exit in output.error


# -------- authentication --------


@main.command()
@click.option(
    "--timeout",
    "-t",
    type=float,
    default=None,
    help="Seconds to wait for the browser redirect (0 waits forever)",
)
@click.option("--no-browser", is_flag=True, help="Only print the authorization URL")
@click.pass_context
def login(ctx: click.Context, timeout: float | None, no_browser: bool) -> None:
    """Log in to MyAnimeList in the browser and store the token."""
    output: OutputHandler = ctx.obj["output"]
    config = get_config(ctx)
    credentials = Credentials.load(config)

    if timeout is None:
        callback_timeout = config.callback_timeout
    else:
        callback_timeout = timeout or None

    flow = LoginFlow(
        credentials,
        host=config.redirect_host,
        port=config.redirect_port,
        callback_timeout=callback_timeout,
        redirect_uri=config.redirect_uri,
        open_browser=not no_browser,
        # Status lines go to stderr so JSON output stays parseable
        on_status=lambda msg: click.echo(msg, err=True),
    )

    try:
        asyncio.run(flow.run())
    except MalQueryError as e:
        output.error(e, help_text=_help_for(e))
        return
    except OSError as e:
        output.error(
            e,
            error_type="TokenStoreError",
            help_text=f"Logged in, but the token could not be saved to {config.token_path}.",
        )
        return

    output.success(
        {"authenticated": True, "token_path": str(config.token_path)},
        "Logged in to MyAnimeList.",
    )


@main.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Forget the stored token."""
    output: OutputHandler = ctx.obj["output"]
    config = get_config(ctx)
    credentials = Credentials.load(config)

    try:
        removed = credentials.clear()
    except OSError as e:
        output.error(e, help_text=f"Could not delete {config.token_path}.")
        return

    output.success(
        {"logged_out": removed},
        "Logged out." if removed else "Not logged in.",
    )


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show login state and configuration."""
    output: OutputHandler = ctx.obj["output"]
    config = get_config(ctx)
    credentials = Credentials.load(config)

    data: dict[str, Any] = {
        "client_id_configured": bool(config.client_id),
        "authenticated": credentials.is_authenticated(),
        "token_path": str(config.token_path),
        "redirect": f"http://{config.redirect_host}:{config.redirect_port}",
        "env_file": str(config.env_path) if config.env_path else None,
    }

    lines = [
        f"Client id: {'configured' if config.client_id else click.style('missing', fg='red')}",
        f"Logged in: {'yes' if data['authenticated'] else 'no'}",
        f"Token file: {data['token_path']}",
        f"Redirect: {data['redirect']}",
    ]
    if data["env_file"]:
        lines.append(f"Env file: {data['env_file']}")
    output.success(data, "\n".join(lines))


@main.command("set-client-id")
@click.argument("client_id")
@click.pass_context
def set_client_id(ctx: click.Context, client_id: str) -> None:
    """Store the MyAnimeList API client id in the OS keyring."""
    output: OutputHandler = ctx.obj["output"]
    client_id = client_id.strip()
    if not client_id:
        output.error(ValidationError("Client id cannot be empty"))
        return

    try:
        store_client_id(client_id)
    except KeyringError as e:
        output.error(
            e,
            error_type="KeyringError",
            help_text=(
                "No usable keyring. Set MAL_CLIENT_ID instead, or write the id to "
                "~/.config/mal-query/client_id."
            ),
        )
        return

    output.success({"stored": True}, "Client id saved to the keyring.")


# -------- retrieval --------


@main.command()
@click.argument("id_or_url")
@click.option(
    "--field",
    "-f",
    "fields",
    multiple=True,
    help="Only request this field (repeatable, default: every field)",
)
@click.pass_context
def anime(ctx: click.Context, id_or_url: str, fields: tuple[str, ...]) -> None:
    """Show one anime by id or MyAnimeList URL."""
    output: OutputHandler = ctx.obj["output"]

    async def fetch(client: MalClient):
        if fields:
            anime_id = int(id_or_url) if id_or_url.isdigit() else anime_id_from_url(id_or_url)
            return await AnimeBuilder(client, anime_id).add_fields(*fields).run()
        if id_or_url.isdigit():
            return await get_anime(client, int(id_or_url))
        return await get_anime_from_url(client, id_or_url)

    output.anime(run_api(ctx, fetch))


@main.command()
@click.argument("query")
@click.option("--limit", "-l", default=10, type=click.IntRange(1, 100), help="Maximum results")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int) -> None:
    """Search anime by name."""
    output: OutputHandler = ctx.obj["output"]
    results = run_api(ctx, lambda client: search_anime(client, query, limit))
    output.listing(results)


@main.command()
@click.argument("year", type=int)
@click.argument("season", type=click.Choice([s.value for s in Season]))
@click.option("--limit", "-l", type=click.IntRange(1, SEASON_LIMIT), help="Maximum results (default: every entry)")
@click.pass_context
def season(ctx: click.Context, year: int, season: str, limit: int | None) -> None:
    """List the anime of a season."""
    output: OutputHandler = ctx.obj["output"]

    def build(client: MalClient) -> Awaitable[Any]:
        if limit is None:
            return get_season(client, year, season)
        return SeasonalBuilder(client, year, season).limit(limit).add_num_episodes().add_mean().run()

    results = run_api(ctx, build)
    output.listing(results)


@main.command()
@click.argument(
    "ranking_type",
    required=False,
    default="all",
    type=click.Choice([t.value for t in RankingType if t.value]),
)
@click.option("--limit", "-l", default=10, type=click.IntRange(1, 500), help="Maximum results")
@click.pass_context
def ranking(ctx: click.Context, ranking_type: str, limit: int) -> None:
    """Show the top anime of a ranking."""
    output: OutputHandler = ctx.obj["output"]
    results = run_api(
        ctx,
        lambda client: RankingBuilder(client, ranking_type, limit)
        .add_num_episodes()
        .add_mean()
        .run(),
    )
    output.listing(results)


@main.command("list")
@click.argument("username")
@click.option("--status", "list_status", type=click.Choice([s.value for s in Status]), help="Only entries with this status")
@click.option("--sort", type=click.Choice([s.value for s in Sort]), help="Sort order")
@click.option("--limit", "-l", default=100, type=click.IntRange(1, 1000), help="Maximum results")
@click.option("--offset", default=0, type=click.IntRange(0), help="Skip this many entries")
@click.option("--details", "-d", is_flag=True, help="Show every list status field")
@click.pass_context
def list_cmd(
    ctx: click.Context,
    username: str,
    list_status: str | None,
    sort: str | None,
    limit: int,
    offset: int,
    details: bool,
) -> None:
    """Show a user's anime list ('@me' for your own)."""
    output: OutputHandler = ctx.obj["output"]

    def build(client: MalClient) -> Awaitable[Any]:
        builder = UserListBuilder(client, username)
        if list_status:
            builder.status(list_status)
        if sort:
            builder.sort(sort)
        builder.limit(limit)
        if offset:
            builder.offset(offset)
        return builder.add_num_episodes().include_list_status().run()

    results = run_api(ctx, build)

    if details and not output.json_mode:
        for entry in results:
            output.success(entry.to_dict(), format_anime(entry))
        return
    output.listing(results)


# -------- list updates --------


@main.command()
@click.argument("anime_id", type=int)
@click.option("--status", "new_status", type=click.Choice([s.value for s in Status]), help="List status")
@click.option("--score", type=int, help="Score 0-10 (0 clears it)")
@click.option("--episodes", type=int, help="Number of watched episodes")
@click.option("--rewatching/--not-rewatching", default=None, help="Whether a rewatch is in progress")
@click.option("--priority", type=int, help="Priority 0-2")
@click.option("--times-rewatched", type=int, help="Number of completed rewatches")
@click.option("--rewatch-value", type=int, help="Rewatch value 0-5")
@click.option("--tags", help="Comma-separated tags")
@click.option("--comments", help="Comment text")
@click.option("--start-date", type=click.DateTime(formats=["%Y-%m-%d"]), help="YYYY-MM-DD")
@click.option("--finish-date", type=click.DateTime(formats=["%Y-%m-%d"]), help="YYYY-MM-DD")
@click.pass_context
def update(
    ctx: click.Context,
    anime_id: int,
    new_status: str | None,
    score: int | None,
    episodes: int | None,
    rewatching: bool | None,
    priority: int | None,
    times_rewatched: int | None,
    rewatch_value: int | None,
    tags: str | None,
    comments: str | None,
    start_date: datetime | None,
    finish_date: datetime | None,
) -> None:
    """Update an entry on your anime list."""
    output: OutputHandler = ctx.obj["output"]

    async def send(client: MalClient):
        pending = UpdateAnime(client, anime_id)
        if new_status is not None:
            pending.update_status(new_status)
        if score is not None:
            pending.update_score(score)
        if episodes is not None:
            pending.update_num_watched_episodes(episodes)
        if rewatching is not None:
            pending.update_is_rewatching(rewatching)
        if priority is not None:
            pending.update_priority(priority)
        if times_rewatched is not None:
            pending.update_num_times_rewatched(times_rewatched)
        if rewatch_value is not None:
            pending.update_rewatch_value(rewatch_value)
        if tags is not None:
            pending.update_tags([tag for tag in tags.split(",") if tag.strip()])
        if comments is not None:
            pending.update_comments(comments)
        if start_date is not None:
            pending.update_start_date(start_date.year, start_date.month, start_date.day)
        if finish_date is not None:
            pending.update_finish_date(finish_date.year, finish_date.month, finish_date.day)
        return await pending.update()

    new_list_status = run_api(ctx, send)
    output.success(
        new_list_status.to_dict(),
        f"Updated anime #{anime_id}:\n" + "\n".join(format_list_status(new_list_status)),
    )


@main.command()
@click.argument("anime_id", type=int)
@click.pass_context
def delete(ctx: click.Context, anime_id: int) -> None:
    """Remove an anime from your list."""
    output: OutputHandler = ctx.obj["output"]
    run_api(ctx, lambda client: delete_anime(client, anime_id))
    output.success({"deleted": anime_id}, f"Removed anime #{anime_id} from your list.")


if __name__ == "__main__":
    main()
