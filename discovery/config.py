import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

TMDB_API_KEY = os.getenv("TMDB_API_KEY_V3")
TMDB_BASE = "https://api.themoviedb.org/3"

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = "gemini-2.5-flash-lite"
DSPY_MODEL = "gemini/gemini-2.5-flash-lite-preview-09-2025"

RATINGS_FILE = Path(os.getenv("RATINGS_FILE", Path(__file__).parent.parent / "data" / "ratings.json"))
SAFETY_MODE_DEFAULT = os.getenv("SAFETY_MODE_DEFAULT", "false").lower() in ("1", "true", "yes")

# TMDB palauttaa aina 20 tulosta sivulla ja enintään 500 sivua
RESULTS_PER_PAGE = 20
TMDB_MAX_PAGE = 500

_LOG_FILE = os.path.join(os.path.dirname(__file__), "..", "debug.log")


def _log(section: str, text: str) -> None:
    border = "─" * 60
    entry = f"\n{border}\n[LOG] {section}\n{border}\n{text}\n"
    with open(_LOG_FILE, "a", encoding="utf-8") as f:
        f.write(entry)
