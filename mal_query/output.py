"""Output formatters for human-readable and JSON output."""

import json
import sys
import traceback
from typing import Any

import click

from .models import AnimeData, AnimeSearch, ListStatus


def format_json(data: Any, success: bool = True) -> str:
    """Format data as a JSON envelope."""
    if success:
        output = {"success": True, "data": data}
    else:
        output = data
    return json.dumps(output, indent=2, default=str, ensure_ascii=False)


def format_error_json(
    error: Exception,
    error_type: str | None = None,
    help_text: str | None = None,
    include_traceback: bool = False,
) -> str:
    """Format an error as JSON with helpful information."""
    payload: dict[str, Any] = {
        "type": error_type or type(error).__name__,
        "message": str(error),
        "help": help_text or "",
    }
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        payload["status_code"] = status_code
    if include_traceback:
        payload["traceback"] = traceback.format_exc()
    return json.dumps({"success": False, "error": payload}, indent=2)


def _value(value: Any) -> str:
    if value is None:
        return "-"
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def format_list_status(status: ListStatus) -> list[str]:
    """Render a list status as indented ``key: value`` lines."""
    lines = [
        f"  status: {status.status.value}",
        f"  score: {status.score}",
        f"  episodes watched: {status.num_episodes_watched}",
    ]
    if status.is_rewatching or status.num_times_rewatched:
        lines.append(f"  rewatching: {'yes' if status.is_rewatching else 'no'}")
        lines.append(f"  times rewatched: {_value(status.num_times_rewatched)}")
    for label, value in (
        ("priority", status.priority),
        ("rewatch value", status.rewatch_value),
        ("started", status.start_date),
        ("finished", status.finish_date),
        ("comments", status.comments),
    ):
        if value not in (None, ""):
            lines.append(f"  {label}: {value}")
    if status.tags:
        lines.append(f"  tags: {', '.join(status.tags)}")
    lines.append(f"  updated: {status.updated_at}")
    return lines


def format_anime(anime: AnimeData) -> str:
    """Render one anime: a title line followed by every populated field."""
    lines = [click.style(f"{anime.title}", bold=True) + f" (#{anime.id})"]

    if anime.alternative_titles and anime.alternative_titles.en:
        lines.append(f"  english title: {anime.alternative_titles.en}")
    if anime.media_type is not None or anime.num_episodes is not None:
        lines.append(
            f"  {_value(anime.media_type)}, {_value(anime.num_episodes)} episodes"
        )
    if anime.start_season is not None:
        lines.append(
            f"  season: {anime.start_season.season.value} {anime.start_season.year}"
        )
    if anime.status is not None:
        lines.append(f"  airing: {anime.status.value}")
    if anime.mean is not None:
        lines.append(f"  mean score: {anime.mean:.2f}")
    if anime.rank is not None:
        lines.append(f"  rank: {anime.rank}")
    if anime.popularity is not None:
        lines.append(f"  popularity: {anime.popularity}")
    if anime.genres:
        lines.append(f"  genres: {', '.join(g.name for g in anime.genres)}")
    if anime.studios:
        lines.append(f"  studios: {', '.join(s.name for s in anime.studios)}")
    if anime.source is not None:
        lines.append(f"  source: {anime.source.value}")
    if anime.rating is not None:
        lines.append(f"  rating: {anime.rating.value}")
    if anime.synopsis:
        lines.append("")
        lines.append(anime.synopsis)
    if anime.list_status is not None:
        lines.append("  my list:")
        lines.extend(f"  {line}" for line in format_list_status(anime.list_status))

    return "\n".join(lines)


def search_rows(results: AnimeSearch) -> list[list[str]]:
    """Table rows (rank/position, id, title, episodes, score) for a listing."""
    rows = []
    for position, anime in enumerate(results, start=1):
        rows.append([
            str(anime.rank if anime.rank is not None else position),
            str(anime.id),
            anime.title,
            _value(anime.num_episodes),
            _value(anime.list_status.score if anime.list_status else anime.mean),
        ])
    return rows


def output_json(data: Any, success: bool = True) -> None:
    """Output data as JSON to stdout."""
    click.echo(format_json(data, success))


def output_error_json(
    error: Exception,
    error_type: str | None = None,
    help_text: str | None = None,
    include_traceback: bool = False,
) -> None:
    """Output an error as JSON to stdout and exit."""
    click.echo(format_error_json(error, error_type, help_text, include_traceback))
    sys.exit(1)


def output_human(message: str) -> None:
    click.echo(message)


def output_error_human(error: Exception, help_text: str | None = None) -> None:
    """Output an error in human-readable format and exit."""
    click.secho(f"Error: {error}", fg="red", err=True)
    if help_text:
        click.echo(f"\n{help_text}", err=True)
    sys.exit(1)


class OutputHandler:
    """Handles output formatting based on mode (JSON or human)."""

    def __init__(self, json_mode: bool = False, verbose: bool = False):
        self.json_mode = json_mode
        self.verbose = verbose

    def success(self, data: Any, human_message: str | None = None) -> None:
        """Output success response."""
        if self.json_mode:
            output_json(data)
        elif human_message is not None:
            output_human(human_message)
        else:
            output_human(json.dumps(data, indent=2, default=str, ensure_ascii=False))

    def anime(self, anime: AnimeData) -> None:
        self.success(anime.to_dict(), format_anime(anime))

    def listing(self, results: AnimeSearch, title_header: str = "Title") -> None:
        """Output a listing as a table (human) or the decoded records (JSON)."""
        if self.json_mode:
            output_json(results.to_dict()["data"])
        elif not len(results):
            output_human("No results.")
        else:
            self.table(["#", "ID", title_header, "Episodes", "Score"], search_rows(results))

    def error(
        self,
        error: Exception,
        error_type: str | None = None,
        help_text: str | None = None,
    ) -> None:
        """Output error response and exit with status 1."""
        if self.json_mode:
            output_error_json(error, error_type, help_text, include_traceback=self.verbose)
        else:
            output_error_human(error, help_text)

    def table(self, headers: list[str], rows: list[list[str]]) -> None:
        """Output a table (human mode only, JSON mode outputs raw data)."""
        if self.json_mode:
            data = [dict(zip(headers, row)) for row in rows]
            output_json(data)
            return

        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(str(cell)))

        header_line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
        click.secho(header_line, bold=True)
        click.echo("-" * len(header_line))

        for row in rows:
            click.echo("  ".join(str(c).ljust(widths[i]) for i, c in enumerate(row)))
