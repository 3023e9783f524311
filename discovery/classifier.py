import asyncio
from typing import Literal

import dspy
from pydantic import BaseModel

from .config import DSPY_MODEL, GEMINI_API_KEY, _log
from .models import ChatMessage

_lm = dspy.LM(DSPY_MODEL, api_key=GEMINI_API_KEY)
dspy.configure(lm=_lm)


class SmartQueryIntent(BaseModel):
    media_type: Literal["movie", "tv", "both"] = "both"
    generated_name: str = ""


class SmartQueryClassification(dspy.Signature):
    """You are the query interpreter of a movie and TV discovery app.
Read the user's request and the conversation so far and decide:

media_type:
- "movie" when the user clearly wants films (movie, film, flick)
- "tv" when the user clearly wants series (show, series, season, k-drama, anime series)
- "both" otherwise

generated_name: a short, catchy row title (max 5 words) describing the request,
e.g. "Mind-Bending Sci-Fi", "Cozy 90s Sitcoms". No quotes, no emoji.
"""

    query: str = dspy.InputField(desc="The user's smart search request")
    history: str = dspy.InputField(desc="Earlier turns as 'role: text' lines, or empty")
    result: SmartQueryIntent = dspy.OutputField()


_classifier = dspy.ChainOfThought(SmartQueryClassification)


def _format_history(history: list[ChatMessage]) -> str:
    return "\n".join(f"{m.role}: {m.content}" for m in history)


def _classify_sync(query: str, history: list[ChatMessage]) -> SmartQueryIntent:
    prediction = _classifier(query=query, history=_format_history(history))
    _log("DSPY REASONING", getattr(prediction, "reasoning", "—"))
    return prediction.result


async def classify_query(query: str, history: list[ChatMessage] | None = None) -> SmartQueryIntent:
    result = await asyncio.to_thread(_classify_sync, query, history or [])
    _log("SMART INTENT", result.model_dump_json(indent=2))
    return result
