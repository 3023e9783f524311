from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Content(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    id: int
    popularity: float = 0.0
    vote_average: float = 0.0   # 0 = ei arvosteluja
    vote_count: int = 0
    overview: str = ""


class Movie(_Content):
    media_type: Literal["movie"] = "movie"
    title: str = ""
    release_date: str = ""
    adult: bool | None = None
    revenue: int | None = None


class Series(_Content):
    media_type: Literal["tv"] = "tv"
    name: str = ""
    first_air_date: str = ""


ContentItem = Annotated[Union[Movie, Series], Field(discriminator="media_type")]


class TitleYear(BaseModel):
    """Title + year pair, the identity the AI provider understands."""
    title: str
    year: str = ""


RatingValue = Literal["liked", "disliked", "hidden"]


class RatingRecord(BaseModel):
    content_id: int
    media_type: Literal["movie", "tv"] | None = None
    rating: RatingValue
    content: ContentItem | None = None


_CONTENT_TYPE_ALIASES = {"series": "tv", "tv show": "tv", "movies": "movie"}
_RATING_ALIASES = {"7+": "7.0+", "8+": "8.0+", "9+": "9.0+"}


class SearchFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_type: Literal["all", "movie", "tv"] = "all"
    rating: Literal["all", "7.0+", "8.0+", "9.0+"] = "all"
    year: Literal["all", "2020s", "2010s", "2000s", "1990s"] = "all"
    sort_by: Literal["popularity.desc", "vote_average.desc", "revenue.desc"] = "popularity.desc"

    @field_validator("content_type", mode="before")
    @classmethod
    def _content_type_alias(cls, v):
        if isinstance(v, str):
            return _CONTENT_TYPE_ALIASES.get(v.strip().lower(), v.strip().lower())
        return v

    @field_validator("rating", mode="before")
    @classmethod
    def _rating_alias(cls, v):
        if isinstance(v, str):
            return _RATING_ALIASES.get(v.strip(), v.strip())
        return v

    def is_active(self) -> bool:
        return (
            self.content_type != "all"
            or self.rating != "all"
            or self.year != "all"
            or self.sort_by != "popularity.desc"
        )


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


@dataclass
class ProviderPage:
    """One page from the paginated provider. total_results is counted before client-side filtering."""
    results: list = field(default_factory=list)
    total_results: int = 0
    has_more: bool = False


# ── Accessorit ────────────────────────────────────────────────────────────────

def _get(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def media_type_of(item: Any) -> str | None:
    return _get(item, "media_type")


def title_of(item: Any) -> str:
    """Movie → title, Series → name. Plain mappings try both."""
    media_type = media_type_of(item)
    if media_type == "movie":
        value = _get(item, "title")
    elif media_type == "tv":
        value = _get(item, "name")
    else:
        value = _get(item, "title") or _get(item, "name")
    return value if isinstance(value, str) else ""


def date_of(item: Any) -> str:
    media_type = media_type_of(item)
    if media_type == "movie":
        value = _get(item, "release_date")
    elif media_type == "tv":
        value = _get(item, "first_air_date")
    else:
        value = _get(item, "release_date") or _get(item, "first_air_date")
    return value if isinstance(value, str) else ""


def year_of(item: Any) -> str:
    """Literal year portion of the date, "" when unknown. Not parsed to int."""
    explicit = _get(item, "year")
    if explicit is not None and not isinstance(item, (Movie, Series)):
        return str(explicit)
    return date_of(item)[:4]


def content_key(item: Any) -> tuple[str | None, Any]:
    return (media_type_of(item), _get(item, "id"))
