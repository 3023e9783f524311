import httpx
from langchain_core.runnables import RunnableConfig

from .config import TMDB_MAX_PAGE, _log
from .filters import apply_search_filters, dedupe_by_id, filter_visible
from .models import ProviderPage, SearchFilters
from .state import SearchState


def _provider(config: RunnableConfig):
    return config["configurable"]["provider"]


def _filter_params(filters: SearchFilters) -> dict:
    return filters.model_dump()


# ValueError kattaa myös rikkinäisen JSONin ja pydanticin ValidationErrorin
FETCH_ERRORS = (httpx.HTTPError, ValueError)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        r = exc.response
        return f"TMDB API error: {r.status_code} {r.reason_phrase}".strip()
    return str(exc) or type(exc).__name__


def _is_complete(collected: list, page: ProviderPage, page_num: int) -> bool:
    if not page.results:
        return True
    if page.total_results and len(collected) >= page.total_results:
        return True
    if page_num >= TMDB_MAX_PAGE:
        # Tarjoaja voi itse katkaista sivutuksen rajaan, jolloin has_more on jo False
        return not page.has_more and not page.total_results
    return not page.has_more


def _collecting(state: SearchState) -> bool:
    """Filters need the whole result set before counts are reliable."""
    filters = state.get("filters") or SearchFilters()
    return (
        filters.is_active()
        and not state.get("error")
        and not state.get("has_all_results", False)
        and not state.get("is_truncated", False)
    )


# ── Solmufunktiot ──────────────────────────────────────────────────────────────

async def fetch_page(state: SearchState, config: RunnableConfig) -> dict:
    query = state["query"]
    page_num = state.get("page", 1)
    filters = state.get("filters") or SearchFilters()

    try:
        page = await _provider(config).fetch(query, page_num, _filter_params(filters))
    except FETCH_ERRORS as e:
        _log("FETCH_PAGE VIRHE", f"query={query!r} page={page_num}: {e!r}")
        return {"status": "errored", "error": _error_message(e)}

    if state.get("append"):
        results = dedupe_by_id([*state.get("results", []), *page.results])
    else:
        results = list(page.results)

    update: dict = {
        "results": results,
        "total_results": page.total_results,
        "has_more": page.has_more,
        "error": None,
    }

    if filters.is_active():
        superset = dedupe_by_id(page.results)
        update["superset"] = superset
        update["superset_page"] = page_num
        update["has_all_results"] = _is_complete(superset, page, page_num)
        update["is_truncated"] = not update["has_all_results"] and page_num >= TMDB_MAX_PAGE
    else:
        update["has_all_results"] = _is_complete(results, page, page_num)
        update["is_truncated"] = not update["has_all_results"] and page_num >= TMDB_MAX_PAGE

    _log(
        "FETCH_PAGE",
        f"query={query!r} page={page_num} | {len(page.results)} tulosta, "
        f"total={page.total_results}, has_more={page.has_more}, filters_active={filters.is_active()}",
    )
    return update


async def fetch_next_page(state: SearchState, config: RunnableConfig) -> dict:
    """One more page into the superset. Pages are fetched one at a time, in order."""
    query = state["query"]
    filters = state.get("filters") or SearchFilters()
    page_num = state.get("superset_page", 0) + 1

    try:
        page = await _provider(config).fetch(query, page_num, _filter_params(filters))
    except FETCH_ERRORS as e:
        # Osittainen superset säilytetään, mutta merkitään keskeneräiseksi
        _log("FETCH_ALL VIRHE", f"query={query!r} page={page_num}: {e!r}")
        return {"status": "errored", "error": _error_message(e), "has_all_results": False}

    superset = dedupe_by_id([*state.get("superset", []), *page.results])
    complete = _is_complete(superset, page, page_num)
    truncated = not complete and page_num >= TMDB_MAX_PAGE
    if truncated:
        _log("FETCH_ALL", f"query={query!r}: TMDB:n {TMDB_MAX_PAGE} sivun raja tuli vastaan")

    return {
        "superset": superset,
        "superset_page": page_num,
        "has_all_results": complete,
        "is_truncated": truncated,
    }


async def apply_filters(state: SearchState) -> dict:
    filters = state.get("filters") or SearchFilters()
    buffer = state.get("superset", []) if filters.is_active() else state.get("results", [])

    visible = filter_visible(buffer, state.get("safety_enabled", False), state.get("disliked_ids"))
    view = apply_search_filters(visible, filters)
    complete = state.get("has_all_results", False)

    if state.get("error"):
        status = "errored"
    elif _collecting(state):
        status = "fetching_all"
    else:
        status = "ready"

    return {
        "filtered": view,
        "shown": len(view),
        "hidden": len(buffer) - len(view),
        "total_before": len(buffer),
        "filtered_total_results": len(view) if complete else None,
        "status": status,
    }
