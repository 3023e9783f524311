from typing import Any, Iterable

from .models import title_of, year_of


def normalize_key(title: str, year: str) -> str:
    """Case- and whitespace-insensitive identity for a title + year pair."""
    return f"{(title or '').strip().lower()}::{(year or '').strip()}"


def key_of(item: Any) -> str:
    return normalize_key(title_of(item), year_of(item))


def merge_unique(existing: list, incoming: Iterable) -> list:
    """
    existing + those incoming items whose title/year key is not taken yet.
    Incoming order is kept among survivors. Used when AI follow-up
    suggestions are merged into results the user already sees.
    """
    seen = {key_of(item) for item in existing}
    merged = list(existing)
    for item in incoming:
        key = key_of(item)
        if key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return merged
