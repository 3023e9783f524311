from pathlib import Path
from typing import Any, Iterable, Protocol

from pydantic import TypeAdapter

from .config import RATINGS_FILE, _log
from .models import RatingRecord, _get, media_type_of

_RECORDS = TypeAdapter(list[RatingRecord])


def is_restricted(item: Any, safety_enabled: bool) -> bool:
    """
    Is the item blocked in child safety mode.
    Only movies carry the adult flag; series are never restricted here.
    Missing or null flag counts as safe.
    """
    if not safety_enabled:
        return False
    if media_type_of(item) != "movie":
        return False
    return _get(item, "adult") is True


def is_disliked_rating(value: str) -> bool:
    # hidden on sama asia kuin disliked suodatuksen kannalta
    return value in ("disliked", "hidden")


def _record_key(record: RatingRecord):
    media_type = record.media_type
    if media_type is None and record.content is not None:
        media_type = record.content.media_type
    return (media_type, record.content_id) if media_type else record.content_id


def latest_ratings(records: Iterable[RatingRecord]) -> dict:
    """
    Resolve ratings oldest-first: the last record for a content wins.
    A bare-id record and a (media_type, id) record for the same id replace each other.
    """
    latest: dict = {}
    for record in records:
        key = _record_key(record)
        if isinstance(key, tuple):
            latest.pop(key[1], None)
        else:
            for stale in [k for k in latest if isinstance(k, tuple) and k[1] == key]:
                del latest[stale]
        latest[key] = record
    return latest


def disliked_ids(records: Iterable[RatingRecord]) -> frozenset:
    """
    Keys of content whose latest rating is disliked/hidden.
    (media_type, id) when the record knows its media type, bare id otherwise.
    """
    return frozenset(
        key for key, record in latest_ratings(records).items()
        if is_disliked_rating(record.rating)
    )


class RatingStore(Protocol):
    def is_liked(self, content_id: int) -> bool: ...
    def is_hidden(self, content_id: int) -> bool: ...
    def disliked_ids(self) -> frozenset: ...


class JsonRatingStore:
    """Read-only rating store backed by a JSON list of rating records."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path is not None else RATINGS_FILE
        self._latest: dict = {}
        self.reload()

    def reload(self) -> None:
        records: list[RatingRecord] = []
        if self.path.exists():
            records = _RECORDS.validate_json(self.path.read_bytes())
        self._latest = latest_ratings(records)
        _log("RATINGS", f"{len(records)} arviota ladattu tiedostosta {self.path}")

    def _ratings_for(self, content_id: int) -> list[str]:
        return [
            record.rating for key, record in self._latest.items()
            if key == content_id or (isinstance(key, tuple) and key[1] == content_id)
        ]

    def is_liked(self, content_id: int) -> bool:
        return "liked" in self._ratings_for(content_id)

    def is_hidden(self, content_id: int) -> bool:
        return any(is_disliked_rating(r) for r in self._ratings_for(content_id))

    def disliked_ids(self) -> frozenset:
        return frozenset(
            key for key, record in self._latest.items()
            if is_disliked_rating(record.rating)
        )
