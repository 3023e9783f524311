import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from .config import TMDB_API_KEY, TMDB_BASE, TMDB_MAX_PAGE, _log
from .models import ContentItem, ProviderPage

_CONTENT = TypeAdapter(ContentItem)


class _ResultPage(BaseModel):
    """Raw paginated TMDB body. Fields can come back as null."""
    results: list[dict] | None = None
    total_results: int | None = None
    total_pages: int | None = None

_RATING_GTE = {"7.0+": 7.0, "8.0+": 8.0, "9.0+": 9.0}
_YEAR_RANGES = {
    "2020s": (2020, 2029),
    "2010s": (2010, 2019),
    "2000s": (2000, 2009),
    "1990s": (1990, 1999),
}


def parse_item(raw: dict, default_type: str | None = None):
    """TMDB result → Movie/Series. Person results and broken rows give None."""
    media_type = raw.get("media_type") or default_type
    if media_type not in ("movie", "tv"):
        return None
    try:
        return _CONTENT.validate_python({**raw, "media_type": media_type})
    except ValidationError as e:
        _log("TMDB PARSE", f"Ohitettu rivi id={raw.get('id')}: {e.error_count()} virhettä")
        return None


def _discover_params(media_type: str, filter_params: dict) -> dict:
    params: dict = {
        "sort_by": filter_params.get("sort_by") or "popularity.desc",
        "include_adult": True,
    }
    if params["sort_by"] == "vote_average.desc":
        params["vote_count.gte"] = 100

    rating = filter_params.get("rating")
    if rating in _RATING_GTE:
        params["vote_average.gte"] = _RATING_GTE[rating]

    year = filter_params.get("year")
    if year in _YEAR_RANGES:
        start, end = _YEAR_RANGES[year]
        field = "primary_release_date" if media_type == "movie" else "first_air_date"
        params[f"{field}.gte"] = f"{start}-01-01"
        params[f"{field}.lte"] = f"{end}-12-31"

    return params


class TMDBProvider:
    """
    Paginated content provider on top of the TMDB v3 API.

    query given           → /search/multi, or /search/{movie|tv} when
                            filter_params names a media_type (+ optional year)
    empty query           → /discover/{movie|tv} with the filters as params
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = TMDB_BASE,
        language: str = "en",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or TMDB_API_KEY
        self.base_url = base_url
        self.language = language
        self._transport = transport

    async def _get(self, endpoint: str, params: dict) -> _ResultPage:
        async with httpx.AsyncClient(transport=self._transport) as client:
            r = await client.get(
                f"{self.base_url}{endpoint}",
                params={"api_key": self.api_key, "language": self.language, **params},
            )
            r.raise_for_status()
        try:
            return _ResultPage.model_validate_json(r.content)
        except ValidationError as e:
            # Esim. välityspalvelimen HTML-sivu 200-statuksella
            _log("TMDB VASTAUS VIRHE", f"{endpoint}: {r.text[:200]!r}")
            raise httpx.DecodingError(
                f"TMDB returned an unreadable response ({e.error_count()} errors)", request=r.request
            ) from e

    async def fetch(self, query: str, page: int = 1, filter_params: dict | None = None) -> ProviderPage:
        filter_params = filter_params or {}
        query = (query or "").strip()
        media_type = filter_params.get("media_type")

        if query:
            params: dict = {"query": query, "page": page, "include_adult": True}
            if media_type in ("movie", "tv"):
                endpoint = f"/search/{media_type}"
                if filter_params.get("year"):
                    key = "year" if media_type == "movie" else "first_air_date_year"
                    params[key] = filter_params["year"]
            else:
                endpoint = "/search/multi"
                media_type = None
        else:
            if media_type not in ("movie", "tv"):
                media_type = "tv" if filter_params.get("content_type") == "tv" else "movie"
            endpoint = f"/discover/{media_type}"
            params = {**_discover_params(media_type, filter_params), "page": page}

        data = await self._get(endpoint, params)

        results = [
            item for raw in data.results or []
            if (item := parse_item(raw, media_type)) is not None
        ]
        total_pages = min(data.total_pages or 0, TMDB_MAX_PAGE)
        return ProviderPage(
            results=results,
            total_results=data.total_results or 0,
            has_more=page < total_pages,
        )
