"""Tests for output formatting."""

import json

import pytest

from mal_query.errors import RequestFailedError
from mal_query.models import AnimeData, AnimeSearch
from mal_query.normalize import decode_listing, normalize_list_item, normalize_search_item
from mal_query.output import OutputHandler, format_anime, format_error_json, format_json, search_rows


class TestFormatJson:
    """Tests for the JSON envelope."""

    def test_success_envelope(self) -> None:
        result = json.loads(format_json({"title": "Katanagatari"}))
        assert result == {"success": True, "data": {"title": "Katanagatari"}}

    def test_non_ascii_kept(self) -> None:
        assert "アカメ" in format_json({"ja": "アカメが斬る!"})

    def test_error_payload(self) -> None:
        result = json.loads(format_error_json(ValueError("bad"), help_text="Try again"))
        assert result == {
            "success": False,
            "error": {"type": "ValueError", "message": "bad", "help": "Try again"},
        }

    def test_error_status_code(self) -> None:
        error = RequestFailedError(404, '{"error":"not_found"}')
        result = json.loads(format_error_json(error))
        assert result["error"]["status_code"] == 404
        assert result["error"]["type"] == "RequestFailedError"

    def test_traceback_only_when_requested(self) -> None:
        assert "traceback" not in json.loads(format_error_json(ValueError("x")))["error"]
        assert "traceback" in json.loads(format_error_json(ValueError("x"), include_traceback=True))["error"]


class TestFormatAnime:
    """Tests for the human rendering of one anime."""

    def test_full_anime(self, full_anime_payload) -> None:
        text = format_anime(AnimeData.from_dict(full_anime_payload))

        assert "Akame ga Kill!" in text
        assert "(#22199)" in text
        assert "tv, 24 episodes" in text
        assert "season: summer 2014" in text
        assert "mean score: 7.47" in text
        assert "genres: Action, Fantasy" in text
        assert "studios: White Fox" in text
        assert "my list:" in text
        assert "status: completed" in text

    def test_minimal_anime(self, katanagatari_payload) -> None:
        text = format_anime(AnimeData.from_dict(katanagatari_payload))

        assert "-, 12 episodes" in text
        assert "my list" not in text
        assert "genres" not in text


class TestSearchRows:
    """Tests for listing rows."""

    def test_position_when_unranked(self, search_payload) -> None:
        rows = search_rows(decode_listing(search_payload, normalize_search_item))
        assert [row[0] for row in rows] == ["1", "2", "3"]
        assert rows[0][1:3] == ["6594", "Katanagatari"]

    def test_list_score_preferred(self, user_list_payload) -> None:
        rows = search_rows(decode_listing(user_list_payload, normalize_list_item))
        assert rows[0][4] == "9"


class TestOutputHandler:
    """Tests for OutputHandler."""

    def test_listing_json(self, capsys, search_payload) -> None:
        OutputHandler(json_mode=True).listing(decode_listing(search_payload, normalize_search_item))
        result = json.loads(capsys.readouterr().out)

        assert result["success"] is True
        assert [a["id"] for a in result["data"]] == [6594, 22199, 5114]

    def test_listing_human(self, capsys, search_payload) -> None:
        OutputHandler().listing(decode_listing(search_payload, normalize_search_item))
        out = capsys.readouterr().out

        assert "Title" in out
        assert "Fullmetal Alchemist: Brotherhood" in out

    def test_listing_empty(self, capsys) -> None:
        OutputHandler().listing(AnimeSearch())
        assert capsys.readouterr().out.strip() == "No results."

    def test_table_json(self, capsys) -> None:
        OutputHandler(json_mode=True).table(["ID", "Title"], [["1", "Cowboy Bebop"]])
        result = json.loads(capsys.readouterr().out)
        assert result["data"] == [{"ID": "1", "Title": "Cowboy Bebop"}]

    def test_success_human_message(self, capsys) -> None:
        OutputHandler().success({"ignored": True}, "Logged out.")
        assert capsys.readouterr().out.strip() == "Logged out."

    def test_error_human_exits(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            OutputHandler().error(ValueError("boom"), help_text="Check the id")

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "Error: boom" in err
        assert "Check the id" in err

    def test_error_json_exits(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            OutputHandler(json_mode=True).error(ValueError("boom"))

        assert exc_info.value.code == 1
        assert json.loads(capsys.readouterr().out)["error"]["message"] == "boom"
