import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from .config import Config
from .errors import CatalogError, ErrorKind
from .stores import MemoryStore

TMDB_BASE_URL = "https://api.themoviedb.org/3"
POSTER_URL_TEMPLATE = "https://image.tmdb.org/t/p/w342{path}"
MAX_RESULTS = 5


@dataclass
class MovieSummary:
    title: str
    year: str
    rating: str
    overview: str
    poster_url: Optional[str] = None


def summarize(movie: dict) -> MovieSummary:
    release_date = movie.get("release_date") or ""
    vote = movie.get("vote_average")
    poster_path = movie.get("poster_path")
    return MovieSummary(
        title=movie.get("title") or movie.get("original_title") or "N/A",
        year=release_date[:4] or "N/A",
        rating=f"{vote:.1f}" if isinstance(vote, (int, float)) else "N/A",
        overview=movie.get("overview") or "",
        poster_url=POSTER_URL_TEMPLATE.format(path=poster_path) if poster_path else None,
    )


class MovieCatalog:
    """TMDB movie search with a short per-query cache."""

    def __init__(self, config: Config, client: Optional[httpx.AsyncClient] = None):
        self.api_key = config.tmdb_api_key
        self.language = config.tmdb_language
        self.region = config.tmdb_region
        self.cache = MemoryStore(ttl=config.cache_ttl_seconds)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=TMDB_BASE_URL, timeout=config.tmdb_timeout_seconds)

    async def search(self, query: str) -> List[MovieSummary]:
        cleaned = (query or "").strip()
        if not cleaned:
            return []
        if not self.api_key:
            raise CatalogError(ErrorKind.API_KEY_MISSING, "TMDB_API_KEY is not set")

        cache_key = cleaned.lower()
        cached = self.cache.get(cache_key)
        if cached is not None:
            logging.info("Movie search cache hit: %r", cache_key)
            return cached

        params = {
            "api_key": self.api_key,
            "query": cleaned,
            "include_adult": "false",
            "language": self.language,
        }
        if self.region:
            params["region"] = self.region

        resp = await self.client.get("/search/movie", params=params)
        resp.raise_for_status()
        results = resp.json().get("results") or []
        items = [summarize(m) for m in results[:MAX_RESULTS]]
        logging.info("Movie search %r: %d result(s)", cleaned, len(items))

        self.cache.set(cache_key, items)
        return items

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
