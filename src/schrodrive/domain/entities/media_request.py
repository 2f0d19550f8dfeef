"""Turning Overseerr requests and webhook payloads into indexer queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Overseerr media type -> indexer category ids.
MEDIA_TYPE_CATEGORIES: dict[str, tuple[str, ...]] = {
    "movie": ("5000",),
    "tv": ("5000",),
}


@dataclass(frozen=True)
class MediaSearch:
    """Indexer query derived from an Overseerr request or webhook."""

    query: str
    categories: tuple[str, ...] = ()


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    try:
        number = float(str(value).strip())
    except ValueError:
        return False
    return number.is_integer()


def _compose_query(title: Any, year: Any, tmdb_id: Any) -> str:
    if not title:
        return ""
    query = f"{title} {year}" if year else str(title)
    if tmdb_id and _is_integer(tmdb_id):
        query += f" TMDB{int(float(str(tmdb_id)))}"
    return query.strip()


def _categories_for(media_type: Any) -> tuple[str, ...]:
    return MEDIA_TYPE_CATEGORIES.get(str(media_type or "").strip().lower(), ())


def build_search_from_request(request: dict[str, Any]) -> MediaSearch | None:
    """Query for a polled media request (``/request`` item)."""
    media = request.get("media") if isinstance(request.get("media"), dict) else {}
    title = media.get("title") or media.get("name")
    year = media.get("year") or media.get("releaseYear")
    media_type = media.get("mediaType") or media.get("type")
    tmdb_id = media.get("tmdbId") or request.get("mediaId")

    query = _compose_query(title, year, tmdb_id)
    if not query:
        return None
    return MediaSearch(query=query, categories=_categories_for(media_type))


def build_query_from_payload(payload: Any) -> MediaSearch | None:
    """Query for a webhook notification; a non-empty ``subject`` wins."""
    if not isinstance(payload, dict):
        return None
    media = payload.get("media") if isinstance(payload.get("media"), dict) else {}
    subject = payload.get("subject")

    if isinstance(subject, str) and subject.strip():
        query = subject.strip()
    else:
        query = _compose_query(
            media.get("title") or media.get("name"),
            media.get("year") or media.get("releaseYear"),
            media.get("tmdbId"),
        )
    if not query:
        return None
    return MediaSearch(query=query, categories=_categories_for(media.get("media_type")))


def request_identifier(request: dict[str, Any]) -> str:
    """Stable id of a media request: ``id``, else ``<mediaId>:<4k|hd>``."""
    if request.get("id") is not None:
        return str(request["id"])
    quality = "4k" if request.get("is4k") else "hd"
    return f"{request.get('mediaId') or ''}:{quality}"
