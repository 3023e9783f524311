from typing import Literal, TypedDict

from .models import SearchFilters

SearchStatus = Literal["idle", "fetching_page", "fetching_all", "ready", "errored"]


class SearchState(TypedDict, total=False):
    query: str
    # Syötteet
    filters: SearchFilters
    safety_enabled: bool
    disliked_ids: frozenset
    page: int               # viimeisin haettu sivu (load more)
    append: bool            # load more: lisätään results-listan perään
    # Tarjoajan vastaukset
    results: list           # suodattamaton sivu / sivut
    superset: list          # kaikki sivut, vain kun filtterit ovat päällä
    superset_page: int
    total_results: int      # tarjoajan luku ennen suodatusta
    has_more: bool
    has_all_results: bool
    is_truncated: bool
    # Näkymä
    filtered: list
    shown: int
    hidden: int
    total_before: int
    filtered_total_results: int | None
    status: SearchStatus
    error: str | None


def initial_state(
    query: str = "",
    filters: SearchFilters | None = None,
    safety_enabled: bool = False,
    disliked_ids=frozenset(),
) -> SearchState:
    return {
        "query": query,
        "filters": filters or SearchFilters(),
        "safety_enabled": safety_enabled,
        "disliked_ids": frozenset(disliked_ids or ()),
        "page": 1,
        "append": False,
        "results": [],
        "superset": [],
        "superset_page": 0,
        "total_results": 0,
        "has_more": False,
        "has_all_results": False,
        "is_truncated": False,
        "filtered": [],
        "shown": 0,
        "hidden": 0,
        "total_before": 0,
        "filtered_total_results": None,
        "status": "idle",
        "error": None,
    }
