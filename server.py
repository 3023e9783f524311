from contextlib import asynccontextmanager

import httpx
from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from discovery.aggregator import SearchAggregator, collect
from discovery.config import SAFETY_MODE_DEFAULT, _log
from discovery.models import SearchFilters, date_of, title_of
from discovery.ratings import JsonRatingStore
from discovery.smart import SmartSearchSession
from discovery.tmdb import TMDBProvider

_provider = TMDBProvider()
_ratings = JsonRatingStore()
_search = SearchAggregator(_provider)
_smart = SmartSearchSession(_provider)


@asynccontextmanager
async def lifespan(app):
    _ratings.reload()
    yield
    await _search.close()
    _smart.clear()


mcp = FastMCP("discovery", lifespan=lifespan)


def _safety(safety: bool | None) -> bool:
    return SAFETY_MODE_DEFAULT if safety is None else safety


def _format_items(items: list) -> list[str]:
    lines = []
    for item in items:
        kind = "movie" if item.media_type == "movie" else "tv"
        year = date_of(item)[:4] or "?"
        overview = (item.overview or "")[:150]
        lines.append(
            f"[{kind}/{item.id}] {title_of(item) or '?'} ({year})\n"
            f"  {item.vote_average:.1f}/10 ({item.vote_count} votes)\n"
            f"  {overview}"
        )
    return lines


def _format_search() -> str:
    s = _search.state
    if s["status"] == "errored":
        return f"Search failed: {s['error']}\nCall retry_search to try again."
    if s["status"] == "idle":
        return "No active search."
    if not s["filtered"]:
        return f"No results for '{s['query']}'."

    if s["filtered_total_results"] is not None:
        header = f"Results: {s['filtered_total_results']} (of {s['total_results']} before filtering)"
    else:
        header = f"Results: showing {s['shown']} of {s['total_results']}"
    if s["hidden"]:
        header += f", {s['hidden']} hidden"
    if s["is_truncated"]:
        header += " (truncated at the TMDB page limit)"
    if s["has_more"] and not s["filters"].is_active():
        header += " - call load_more for the next page"

    return "\n\n".join([header + "\n"] + _format_items(s["filtered"]))


@mcp.tool()
async def search(
    query: str,
    content_type: str = "all",
    rating: str = "all",
    year: str = "all",
    sort_by: str = "popularity.desc",
    safety: bool | None = None,
) -> str:
    """
    Search movies and TV series by free text.
    content_type: 'all', 'movie' or 'tv'
    rating: 'all', '7.0+', '8.0+' or '9.0+'
    year: 'all', '2020s', '2010s', '2000s' or '1990s'
    sort_by: 'popularity.desc', 'vote_average.desc' or 'revenue.desc'
    safety: child safety mode; hides adult movies
    With any filter set, every result page is fetched before counting.
    """
    try:
        filters = SearchFilters(content_type=content_type, rating=rating, year=year, sort_by=sort_by)
    except ValidationError as e:
        return f"Invalid filters: {e.errors()[0]['msg']}"
    await _search.submit(query, filters, _safety(safety), _ratings.disliked_ids())
    return _format_search()


@mcp.tool()
async def change_filters(
    content_type: str = "all",
    rating: str = "all",
    year: str = "all",
    sort_by: str = "popularity.desc",
) -> str:
    """Change the filters of the current search. Uses the already fetched results when they are complete."""
    try:
        filters = SearchFilters(content_type=content_type, rating=rating, year=year, sort_by=sort_by)
    except ValidationError as e:
        return f"Invalid filters: {e.errors()[0]['msg']}"
    if not _search.state["query"]:
        return "No active search."
    await _search.update_filters(filters)
    return _format_search()


@mcp.tool()
async def load_more() -> str:
    """Fetch the next page of the current search (only without filters)."""
    await _search.load_more()
    return _format_search()


@mcp.tool()
async def retry_search() -> str:
    """Run the current search again from the first page."""
    await _search.retry()
    return _format_search()


@mcp.tool()
async def discover_row(
    type: str = "movie",
    count: int = 20,
    rating: str = "all",
    year: str = "all",
    sort_by: str = "popularity.desc",
    safety: bool | None = None,
) -> str:
    """
    Fill a row of count titles from TMDB discover.
    type: 'movie' or 'tv'
    """
    try:
        filters = SearchFilters(content_type=type, rating=rating, year=year, sort_by=sort_by)
    except ValidationError as e:
        return f"Invalid filters: {e.errors()[0]['msg']}"
    try:
        items = await collect(
            _provider,
            "",
            count,
            safety_enabled=_safety(safety),
            disliked_ids=_ratings.disliked_ids(),
            filter_params={**filters.model_dump(), "media_type": filters.content_type},
        )
    except httpx.HTTPError as e:
        _log("DISCOVER_ROW VIRHE", repr(e))
        return f"Discover failed: {e}"
    if not items:
        return "No titles found with these filters."
    return "\n\n".join([f"Row: {len(items)} titles\n"] + _format_items(items))


def _format_smart() -> str:
    if _smart.error_kind == "quota":
        return f"AI limit reached: {_smart.error}"
    if _smart.error:
        return f"Smart search failed: {_smart.error}"
    if not _smart.results:
        return "No suggestions."
    name = _smart.generated_name or _smart.query
    return "\n\n".join([f"{name}: {len(_smart.results)} suggestions\n"] + _format_items(_smart.results))


@mcp.tool()
async def smart_search(query: str, mode: str = "suggestions", safety: bool | None = None) -> str:
    """
    Ask the AI for titles matching a free-form request, e.g. "dark 90s thrillers".
    mode: 'suggestions', 'row' or 'watchlist'
    """
    if mode not in ("suggestions", "row", "watchlist"):
        return f"Unknown mode '{mode}'."
    _smart.mode = mode
    await _smart.run(query, _safety(safety), _ratings.disliked_ids())
    return _format_smart()


@mcp.tool()
async def smart_search_more(safety: bool | None = None) -> str:
    """Ask the AI for more titles like the current smart search results, without repeats."""
    added = await _smart.ask_for_more(_safety(safety), _ratings.disliked_ids())
    if _smart.error:
        return _format_smart()
    return f"Added {added} more suggestions.\n\n" + _format_smart()


@mcp.tool()
async def clear_smart_search() -> str:
    """Forget the smart search conversation and results."""
    _smart.clear()
    return "Smart search cleared."


if __name__ == "__main__":
    mcp.run()
