"""Tests for listing normalization."""

import pytest

from mal_query.errors import SchemaError
from mal_query.models import Status
from mal_query.normalize import (
    decode_listing,
    normalize_list_item,
    normalize_ranking_item,
    normalize_search_item,
)

from conftest import anime_node


class TestNormalizers:
    """Tests for the per-endpoint item normalizers."""

    def test_search_item(self) -> None:
        anime = normalize_search_item({"node": anime_node(6594, "Katanagatari")})
        assert anime.id == 6594
        assert anime.rank is None

    def test_ranking_item_sets_rank(self) -> None:
        anime = normalize_ranking_item({"node": anime_node(1, "x"), "ranking": {"rank": 7}})
        assert anime.rank == 7

    def test_ranking_item_envelope_overrides_node(self) -> None:
        """The envelope's rank wins over a rank field inside the node."""
        anime = normalize_ranking_item({"node": anime_node(1, "x", rank=99), "ranking": {"rank": 3}})
        assert anime.rank == 3

    def test_ranking_item_invalid_rank(self) -> None:
        with pytest.raises(SchemaError, match="rank"):
            normalize_ranking_item({"node": anime_node(1, "x"), "ranking": {"rank": "1"}})

    def test_list_item_sets_list_status(self, user_list_payload) -> None:
        anime = normalize_list_item(user_list_payload["data"][0])

        assert anime.list_status is not None
        assert anime.list_status.status is Status.COMPLETED
        assert anime.list_status.score == 9

    def test_list_item_without_list_status(self) -> None:
        anime = normalize_list_item({"node": anime_node(1, "x")})
        assert anime.list_status is None

    def test_missing_node(self) -> None:
        with pytest.raises(SchemaError, match="node"):
            normalize_search_item({"id": 1})


class TestDecodeListing:
    """Tests for decode_listing."""

    def test_preserves_order(self, search_payload) -> None:
        results = decode_listing(search_payload, normalize_search_item)
        assert [a.id for a in results] == [6594, 22199, 5114]

    def test_ranking_rank_matches_position(self, ranking_payload) -> None:
        results = decode_listing(ranking_payload, normalize_ranking_item)
        for position, anime in enumerate(results, start=1):
            assert anime.rank == position

    def test_empty_data(self) -> None:
        assert len(decode_listing({"data": []}, normalize_search_item)) == 0

    def test_missing_data_array(self) -> None:
        with pytest.raises(SchemaError, match="data"):
            decode_listing({"error": "not_found"}, normalize_search_item)

    def test_non_object_payload(self) -> None:
        with pytest.raises(SchemaError):
            decode_listing([], normalize_search_item)
