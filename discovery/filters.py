from dataclasses import dataclass, field
from typing import Any, Collection, Iterable

from .dedup import key_of
from .models import SearchFilters, _get, content_key, media_type_of, year_of
from .ratings import is_restricted


@dataclass(frozen=True)
class FilterStats:
    items: list = field(default_factory=list)
    shown: int = 0
    hidden: int = 0
    total_before: int = 0


def filter_by_restriction_flag(items: Iterable, safety_enabled: bool) -> list:
    """Always a new list with the same item objects in the same order."""
    if not safety_enabled:
        return list(items)
    return [item for item in items if not is_restricted(item, True)]


def filter_with_statistics(items: Iterable, safety_enabled: bool) -> FilterStats:
    items = list(items)
    filtered = filter_by_restriction_flag(items, safety_enabled)
    return FilterStats(
        items=filtered,
        shown=len(filtered),
        hidden=len(items) - len(filtered),
        total_before=len(items),
    )


def is_disliked(item: Any, disliked_ids: Collection) -> bool:
    # Sama id voi olla sekä elokuva että sarja, joten (media_type, id) on tarkempi avain
    return _get(item, "id") in disliked_ids or content_key(item) in disliked_ids


def filter_by_user_dislikes(items: Iterable, disliked_ids: Collection | None) -> list:
    if not disliked_ids:
        return list(items)
    return [item for item in items if not is_disliked(item, disliked_ids)]


def filter_visible(items: Iterable, safety_enabled: bool, disliked_ids: Collection | None = None) -> list:
    """Safety filter first, then the user's dislikes."""
    return filter_by_user_dislikes(filter_by_restriction_flag(items, safety_enabled), disliked_ids)


def filter_duplicates_by_title_year(candidates: Iterable, existing: Iterable) -> list:
    """
    Candidates whose normalized (title, year) is not already in existing.
    AI suggestions can resolve to a different provider id for the same
    title between queries, so ids are not enough here.
    """
    candidates = list(candidates)
    if not candidates:
        return []
    existing_keys = {key_of(item) for item in existing}
    if not existing_keys:
        return candidates
    return [item for item in candidates if key_of(item) not in existing_keys]


def dedupe_by_id(items: Iterable) -> list:
    """Drop repeated provider entities, first occurrence wins. Movie 5 and series 5 are different."""
    seen: set = set()
    unique = []
    for item in items:
        key = content_key(item)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


_RATING_THRESHOLDS = {"7.0+": 7.0, "8.0+": 8.0, "9.0+": 9.0}
_YEAR_BUCKETS = {
    "2020s": (2020, 2029),
    "2010s": (2010, 2019),
    "2000s": (2000, 2009),
    "1990s": (1990, 1999),
}


def _year_number(item: Any) -> int | None:
    year = year_of(item)
    if len(year) == 4 and year.isdigit():
        value = int(year)
        if 1800 < value < 2100:
            return value
    return None


def _matches(item: Any, filters: SearchFilters) -> bool:
    if filters.content_type != "all" and media_type_of(item) != filters.content_type:
        return False

    if filters.rating != "all":
        if (_get(item, "vote_average") or 0) < _RATING_THRESHOLDS[filters.rating]:
            return False

    if filters.year != "all":
        year = _year_number(item)
        # Ilman vuotta oleva teos pääsee läpi
        if year is not None:
            start, end = _YEAR_BUCKETS[filters.year]
            if not start <= year <= end:
                return False

    return True


def _revenue(item: Any) -> float:
    if media_type_of(item) != "movie":
        return 0
    return _get(item, "revenue") or 0


def apply_search_filters(items: Iterable, filters: SearchFilters) -> list:
    """Content type, rating and year filters, then a stable sort. popularity.desc keeps provider order."""
    result = [item for item in items if _matches(item, filters)]

    if filters.sort_by == "vote_average.desc":
        result = sorted(result, key=lambda i: _get(i, "vote_average") or 0, reverse=True)
    elif filters.sort_by == "revenue.desc":
        result = sorted(result, key=_revenue, reverse=True)

    return result
