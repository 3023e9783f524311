from typing import Collection, Literal

import httpx

from .classifier import classify_query
from .config import _log
from .dedup import merge_unique
from .filters import dedupe_by_id, filter_visible
from .models import ChatMessage
from .suggestions import (
    SuggestionError,
    QuotaExceededError,
    SuggestionMode,
    as_suggestion_error,
    existing_titles_of,
    resolve_titles,
    suggest,
)

MORE_SUFFIX = " - show me more similar titles"


async def _classify(query: str, history: list[ChatMessage]):
    # dspy/litellm heittää omia poikkeuksiaan, muunnetaan ne meidän virhetyypeiksi
    try:
        return await classify_query(query, history)
    except Exception as e:
        raise as_suggestion_error(e) from e


class SmartSearchSession:
    """
    AI-assisted search: Gemini suggests titles, TMDB resolves them.

    The conversation is append-only while the session lives and is used as
    context for follow-ups. Errors are kept on the session (error,
    error_kind) instead of being raised, so every outcome can be rendered.
    """

    def __init__(self, provider, mode: SuggestionMode = "suggestions"):
        self.provider = provider
        self.mode: SuggestionMode = mode
        self.query = ""
        self.conversation: list[ChatMessage] = []
        self.results: list = []
        self.generated_name = ""
        self.media_type = "both"
        self.error: str | None = None
        self.error_kind: Literal["quota", "failed"] | None = None
        self._token = 0

    def _fail(self, token: int, exc: SuggestionError) -> list:
        if token == self._token:
            self.error = str(exc)
            self.error_kind = "quota" if isinstance(exc, QuotaExceededError) else "failed"
            _log("SMART SEARCH VIRHE", f"{self.error_kind}: {self.error}")
        return self.results

    def _remember(self, user_text: str, assistant_text: str) -> None:
        self.conversation.append(ChatMessage(role="user", content=user_text))
        self.conversation.append(ChatMessage(role="assistant", content=assistant_text))

    async def run(self, query: str, safety_enabled: bool = False, disliked_ids: Collection = ()) -> list:
        self._token += 1
        token = self._token
        self.query = query.strip()
        self.results = []
        self.error = None
        self.error_kind = None

        try:
            intent = await _classify(self.query, self.conversation)
            batch = await suggest(self.query, self.mode, self.conversation, [])
            found = await resolve_titles(self.provider, batch.titles, intent.media_type)
        except SuggestionError as e:
            return self._fail(token, e)
        except httpx.HTTPError as e:
            return self._fail(token, SuggestionError(str(e)))

        if token != self._token:
            return self.results

        visible = dedupe_by_id(filter_visible(found, safety_enabled, disliked_ids))
        self.results = merge_unique([], visible)
        self.media_type = intent.media_type
        self.generated_name = intent.generated_name or batch.generated_name
        self._remember(self.query, f"Generated {len(self.results)} suggestions")
        return self.results

    async def ask_for_more(self, safety_enabled: bool = False, disliked_ids: Collection = ()) -> int:
        """Follow-up suggestions merged into the current results. Returns how many were added."""
        if not self.query:
            return 0
        token = self._token
        self.error = None
        self.error_kind = None

        try:
            batch = await suggest(
                self.query + MORE_SUFFIX,
                self.mode,
                self.conversation,
                existing_titles_of(self.results),
            )
            found = await resolve_titles(self.provider, batch.titles, self.media_type)
        except SuggestionError as e:
            self._fail(token, e)
            return 0
        except httpx.HTTPError as e:
            self._fail(token, SuggestionError(str(e)))
            return 0

        if token != self._token:
            return 0

        visible = filter_visible(found, safety_enabled, disliked_ids)
        merged = merge_unique(self.results, visible)
        added = len(merged) - len(self.results)
        self.results = merged
        self._remember("Show me more similar titles", f"Added {added} more suggestions")
        return added

    def clear(self) -> None:
        """Leaving the search surface: drop results and conversation, ignore anything still running."""
        self._token += 1
        self.query = ""
        self.conversation = []
        self.results = []
        self.generated_name = ""
        self.media_type = "both"
        self.error = None
        self.error_kind = None
