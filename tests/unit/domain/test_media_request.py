"""Tests for request/webhook -> indexer query builders."""

from __future__ import annotations

from schrodrive.domain.entities.media_request import (
    MediaSearch,
    build_query_from_payload,
    build_search_from_request,
    request_identifier,
)


class TestBuildSearchFromRequest:
    def test_title_year_and_tmdb_tag(self) -> None:
        request = {
            "id": 7,
            "media": {"title": "Dune", "year": 2021, "mediaType": "movie", "tmdbId": 438631},
        }
        assert build_search_from_request(request) == MediaSearch(
            query="Dune 2021 TMDB438631", categories=("5000",)
        )

    def test_tv_uses_name_and_release_year(self) -> None:
        request = {"media": {"name": "Severance", "releaseYear": "2022", "type": "tv"}}
        search = build_search_from_request(request)
        assert search is not None
        assert search.query == "Severance 2022"
        assert search.categories == ("5000",)

    def test_falls_back_to_media_id(self) -> None:
        request = {"mediaId": 603, "media": {"title": "The Matrix"}}
        search = build_search_from_request(request)
        assert search is not None
        assert search.query == "The Matrix TMDB603"

    def test_non_numeric_tmdb_id_is_ignored(self) -> None:
        request = {"media": {"title": "Alien", "tmdbId": "abc"}}
        search = build_search_from_request(request)
        assert search is not None
        assert search.query == "Alien"

    def test_unknown_media_type_has_no_categories(self) -> None:
        request = {"media": {"title": "Alien", "mediaType": "music"}}
        search = build_search_from_request(request)
        assert search is not None
        assert search.categories == ()

    def test_missing_title_returns_none(self) -> None:
        assert build_search_from_request({"media": {"year": 2020}}) is None
        assert build_search_from_request({}) is None


class TestBuildQueryFromPayload:
    def test_subject_wins(self) -> None:
        payload = {
            "subject": "  Dune (2021)  ",
            "media": {"title": "ignored", "media_type": "movie"},
        }
        search = build_query_from_payload(payload)
        assert search == MediaSearch(query="Dune (2021)", categories=("5000",))

    def test_blank_subject_uses_media_fields(self) -> None:
        payload = {
            "subject": "  ",
            "media": {"title": "Arrival", "year": 2016, "tmdbId": "329865", "media_type": "movie"},
        }
        search = build_query_from_payload(payload)
        assert search is not None
        assert search.query == "Arrival 2016 TMDB329865"

    def test_no_derivable_query(self) -> None:
        assert build_query_from_payload({"notification_type": "TEST_NOTIFICATION"}) is None

    def test_non_dict_payload(self) -> None:
        assert build_query_from_payload(["not", "a", "dict"]) is None


class TestRequestIdentifier:
    def test_prefers_request_id(self) -> None:
        assert request_identifier({"id": 12, "mediaId": 99}) == "12"

    def test_media_id_with_quality_suffix(self) -> None:
        assert request_identifier({"mediaId": 99, "is4k": True}) == "99:4k"
        assert request_identifier({"mediaId": 99}) == "99:hd"
