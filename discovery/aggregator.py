import asyncio
from typing import Callable, Collection, Protocol

from .amplifier import amplify
from .config import TMDB_MAX_PAGE, _log
from .filters import dedupe_by_id, filter_visible
from .graph import build_graph
from .models import ProviderPage, SearchFilters
from .nodes import apply_filters
from .state import SearchState, initial_state


class ContentProvider(Protocol):
    async def fetch(self, query: str, page: int, filter_params: dict | None = None) -> ProviderPage: ...


class SearchAggregator:
    """
    One search session on top of a paginated provider.

    Without filters only the requested page is fetched. With filters on,
    every remaining page is pulled into a superset one page at a time so that
    the filtered counts cover the whole result set. A new query cancels the
    running fetch and nothing from the old run is applied afterwards.
    """

    def __init__(self, provider: ContentProvider, graph=None):
        self.provider = provider
        self.graph = graph or build_graph()
        self.state: SearchState = initial_state()
        self._task: asyncio.Task | None = None
        self._token = 0
        self._listeners: list[Callable[[SearchState], None]] = []

    def subscribe(self, callback: Callable[[SearchState], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def submit(
        self,
        query: str,
        filters: SearchFilters | None = None,
        safety_enabled: bool = False,
        disliked_ids: Collection = (),
    ) -> SearchState:
        self.cancel()
        state = initial_state(query.strip(), filters, safety_enabled, frozenset(disliked_ids or ()))
        if not state["query"]:
            self._apply(state)
            return self.state
        state["status"] = "fetching_page"
        return await self._start(state)

    async def load_more(self) -> SearchState:
        """Next page on the cheap path. With filters on, the superset already has everything there is."""
        s = self.state
        if s["status"] != "ready" or s["filters"].is_active() or not s["has_more"] or s["page"] >= TMDB_MAX_PAGE:
            return s
        return await self._start({**s, "page": s["page"] + 1, "append": True, "status": "fetching_page"})

    async def update_filters(self, filters: SearchFilters) -> SearchState:
        s = self.state
        if s["status"] == "ready" and s["has_all_results"]:
            # Kaikki tulokset on jo haettu, suodatetaan uudelleen ilman verkkoa
            everything = s["superset"] if s["filters"].is_active() else s["results"]
            refiltered = {
                **s,
                "filters": filters,
                "results": list(everything),
                "superset": list(everything),
                "page": max(s["page"], s["superset_page"]),
                "has_more": False,
            }
            self._apply({**refiltered, **await apply_filters(refiltered)})
            return self.state
        return await self.submit(s["query"], filters, s["safety_enabled"], s["disliked_ids"])

    async def retry(self) -> SearchState:
        s = self.state
        return await self.submit(s["query"], s["filters"], s["safety_enabled"], s["disliked_ids"])

    def cancel(self) -> None:
        self._token += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def close(self) -> None:
        task = self._task
        self.cancel()
        if task is not None:
            await asyncio.wait({task})

    async def _start(self, state: SearchState) -> SearchState:
        self.cancel()
        token = self._token
        self._apply(state)
        task = asyncio.create_task(self._run(token, state))
        self._task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if not task.cancelled():
            task.result()
        return self.state

    async def _run(self, token: int, state: SearchState) -> None:
        config = {
            "configurable": {"provider": self.provider},
            "recursion_limit": 2 * TMDB_MAX_PAGE + 10,
        }
        async for snapshot in self.graph.astream(state, config=config, stream_mode="values"):
            if token != self._token or snapshot.get("query") != state["query"]:
                _log("SEARCH", f"Vanhentunut vastaus ohitettu: {state['query']!r}")
                return
            self._apply(snapshot)

    def _apply(self, state: SearchState) -> None:
        self.state = state
        for callback in list(self._listeners):
            callback(state)


async def collect(
    provider: ContentProvider,
    query: str,
    desired_count: int,
    safety_enabled: bool = False,
    disliked_ids: Collection = (),
    filter_params: dict | None = None,
) -> list:
    """
    Fill one row of desired_count visible items.
    Asks for amplify(...) items up front so the safety filter does not starve the row.
    """
    request_count = amplify(safety_enabled, desired_count)
    if request_count <= 0:
        return []

    gathered: list = []
    page_num = 1
    while len(gathered) < request_count and page_num <= TMDB_MAX_PAGE:
        page = await provider.fetch(query, page_num, filter_params)
        gathered = dedupe_by_id([*gathered, *page.results])
        if not page.results or not page.has_more:
            break
        page_num += 1

    visible = filter_visible(gathered, safety_enabled, disliked_ids)
    _log(
        "COLLECT",
        f"query={query!r} pyydetty={request_count} haettu={len(gathered)} "
        f"näkyvissä={len(visible)} palautetaan={min(desired_count, len(visible))}",
    )
    return visible[:desired_count]
