from langgraph.graph import StateGraph, END

from .state import SearchState
from .nodes import fetch_page, fetch_next_page, apply_filters


def route_after_apply_filters(state: SearchState) -> str:
    if state.get("status") == "fetching_all":
        return "fetch_next_page"
    return END


def build_graph():
    builder = StateGraph(SearchState)

    builder.add_node("fetch_page", fetch_page)
    builder.add_node("fetch_next_page", fetch_next_page)
    builder.add_node("apply_filters", apply_filters)

    builder.set_entry_point("fetch_page")

    builder.add_edge("fetch_page", "apply_filters")
    builder.add_edge("fetch_next_page", "apply_filters")
    builder.add_conditional_edges("apply_filters", route_after_apply_filters)

    return builder.compile()
