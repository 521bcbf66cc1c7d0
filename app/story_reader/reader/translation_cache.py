"""In-memory word gloss cache sitting in front of the translate endpoint."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, Mapping, Optional

from ..tokenizer import clean_word

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, str], str]


class TranslationCache:
    """Memoizes ``word -> gloss`` for the story being read.

    Keys are cleaned words (fixed punctuation removed, lowercased). Only one
    fetch per key is ever in flight: concurrent lookups of a word that is
    still being translated wait on the same pending future. Failed fetches
    are not cached; the error reaches every waiter.
    """

    def __init__(self, fetch: Fetcher):
        self._fetch = fetch
        self._entries: Dict[str, str] = {}
        self._pending: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def __contains__(self, word: str) -> bool:
        return clean_word(word) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, word: str) -> Optional[str]:
        return self._entries.get(clean_word(word))

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._entries)

    def seed(self, translations: Mapping[str, str]) -> None:
        with self._lock:
            for word, gloss in (translations or {}).items():
                key = clean_word(word)
                if key and gloss:
                    self._entries[key] = gloss

    def clear(self) -> None:
        """Forget every gloss (a new story is starting)."""
        with self._lock:
            self._entries.clear()
            self._pending.clear()

    def lookup(self, word: str, language: str) -> str:
        key = clean_word(word)
        if not key:
            return word

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                return cached
            future = self._pending.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._pending[key] = future

        if not owner:
            return future.result()

        try:
            translation = self._fetch(key, language)
        except Exception as exc:
            with self._lock:
                if self._pending.get(key) is future:
                    del self._pending[key]
            future.set_exception(exc)
            raise

        with self._lock:
            if self._pending.get(key) is future:
                del self._pending[key]
                self._entries[key] = translation
        future.set_result(translation)
        logger.debug("Cached translation for %r", key)
        return translation
