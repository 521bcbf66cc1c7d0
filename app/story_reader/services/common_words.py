"""Loader for the per-language common-word dictionaries under data/common_words."""
from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict

COMMON_WORDS_ROOT = Path(__file__).resolve().parents[1] / "data" / "common_words"


@lru_cache(maxsize=None)
def load_common_words(language: str) -> Dict[str, str]:
    """Load the ``{word: gloss}`` map for a language code (e.g. ``'es'``)."""
    path = COMMON_WORDS_ROOT / f"{language}.json"
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            payload = json.load(handle)
        except json.JSONDecodeError:
            return {}
    if not isinstance(payload, dict):
        return {}
    return {str(k).lower(): str(v) for k, v in payload.items()}
