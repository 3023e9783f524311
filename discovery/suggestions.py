import asyncio
from typing import Literal

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import BaseModel

from .config import GEMINI_API_KEY, GEMINI_MODEL, _log
from .models import ChatMessage, TitleYear, title_of, year_of

SuggestionMode = Literal["suggestions", "row", "watchlist"]


class SuggestionError(Exception):
    """AI provider failed to produce suggestions."""


class QuotaExceededError(SuggestionError):
    """AI provider rate/quota limit. Shown to the user as is, never retried automatically."""


class SuggestedTitle(BaseModel):
    title: str
    year: str = ""
    media_type: Literal["movie", "tv"] = "movie"
    reason: str = ""


class SuggestionBatch(BaseModel):
    titles: list[SuggestedTitle]
    generated_name: str = ""


def as_suggestion_error(exc: Exception) -> SuggestionError:
    """Map a provider exception to our error kinds. 429 / RESOURCE_EXHAUSTED is a quota error."""
    code = getattr(exc, "code", None) or getattr(exc, "status_code", None)
    status = str(getattr(exc, "status", "") or "")
    if code == 429 or status == "RESOURCE_EXHAUSTED":
        return QuotaExceededError(getattr(exc, "message", None) or str(exc))
    return SuggestionError(str(exc))


def _build_prompt(
    query: str,
    mode: SuggestionMode,
    history: list[ChatMessage],
    existing_titles: list[TitleYear],
) -> str:
    history_lines = "\n".join(f"{m.role}: {m.content}" for m in history) or "-"
    existing_lines = "\n".join(f"- {t.title} ({t.year or '?'})" for t in existing_titles) or "-"
    purpose = {
        "suggestions": "a list of recommendations",
        "row": "a themed row on the home page",
        "watchlist": "a personal watchlist",
    }[mode]

    return f"""The user is building {purpose}. Request: "{query}"

Conversation so far:
{history_lines}

Already shown, do NOT suggest these again:
{existing_lines}

Suggest 10-15 specific, real movies or TV series that match the request.
For each give the exact title, the release year (YYYY), media_type ("movie" or "tv")
and a one-sentence reason. Also give a short generated_name for the collection."""


async def suggest(
    query: str,
    mode: SuggestionMode = "suggestions",
    history: list[ChatMessage] | None = None,
    existing_titles: list[TitleYear] | None = None,
) -> SuggestionBatch:
    """
    Ask Gemini for titles. existing_titles are passed as title + year so the
    model can avoid repeats; callers still dedupe the answer themselves.
    """
    prompt = _build_prompt(query, mode, history or [], existing_titles or [])
    _log("GEMINI SUGGEST PROMPT", prompt)

    client = genai.Client(api_key=GEMINI_API_KEY)
    try:
        response = await asyncio.to_thread(
            client.models.generate_content,
            model=GEMINI_MODEL,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=SuggestionBatch,
            ),
        )
    except genai_errors.APIError as e:
        _log("GEMINI SUGGEST VIRHE", repr(e))
        raise as_suggestion_error(e) from e

    _log("GEMINI SUGGEST VASTAUS", response.text or "")
    try:
        return SuggestionBatch.model_validate_json(response.text or "")
    except ValueError as e:
        raise SuggestionError(f"Gemini returned an unreadable answer: {e}") from e


def existing_titles_of(items: list) -> list[TitleYear]:
    return [TitleYear(title=title_of(item), year=year_of(item)) for item in items]


async def resolve_titles(provider, titles: list[SuggestedTitle], media_type: str = "both") -> list:
    """Look each suggested title up from the provider. Unknown titles are dropped."""

    async def _resolve_one(suggestion: SuggestedTitle):
        mt = suggestion.media_type if media_type == "both" else media_type
        page = await provider.fetch(suggestion.title, 1, {"media_type": mt, "year": suggestion.year})
        if not page.results and suggestion.year:
            # Mallin vuosi heittää joskus vuodella, haetaan ilman vuotta
            page = await provider.fetch(suggestion.title, 1, {"media_type": mt})
        if not page.results:
            return None
        same_year = [item for item in page.results if year_of(item) == suggestion.year]
        return (same_year or page.results)[0]

    found = await asyncio.gather(*[_resolve_one(t) for t in titles])
    missing = [t.title for t, item in zip(titles, found) if item is None]
    if missing:
        _log("RESOLVE_TITLES", f"Ei löytynyt: {missing}")
    return [item for item in found if item is not None]
