import threading

import pytest

from app.story_reader.reader.api_client import ApiError
from app.story_reader.reader.translation_cache import TranslationCache


class CountingFetch:
    def __init__(self, answer=lambda word: f"{word}-en"):
        self.answer = answer
        self.calls = []

    def __call__(self, word, language):
        self.calls.append((word, language))
        return self.answer(word)


def test_second_lookup_is_served_from_cache():
    fetch = CountingFetch()
    cache = TranslationCache(fetch)

    assert cache.lookup("gato", "es") == "gato-en"
    assert cache.lookup("gato", "es") == "gato-en"
    assert fetch.calls == [("gato", "es")]


def test_lookup_key_is_the_cleaned_word():
    fetch = CountingFetch()
    cache = TranslationCache(fetch)

    cache.lookup("¿Hola?", "es")
    cache.lookup("hola", "es")

    assert fetch.calls == [("hola", "es")]
    assert "HOLA!" in cache


def test_concurrent_lookups_share_one_fetch():
    started = threading.Event()
    release = threading.Event()

    def slow_answer(word):
        started.set()
        release.wait(timeout=5)
        return "cat"

    fetch = CountingFetch(slow_answer)
    cache = TranslationCache(fetch)
    results = []

    def worker():
        results.append(cache.lookup("gato", "es"))

    first = threading.Thread(target=worker)
    first.start()
    assert started.wait(timeout=5)
    others = [threading.Thread(target=worker) for _ in range(4)]
    for thread in others:
        thread.start()
    release.set()
    for thread in [first] + others:
        thread.join(timeout=5)

    assert results == ["cat"] * 5
    assert len(fetch.calls) == 1


def test_failed_fetch_is_not_cached():
    outcomes = [ApiError("offline"), "cat"]

    def flaky(word):
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    fetch = CountingFetch(flaky)
    cache = TranslationCache(fetch)

    with pytest.raises(ApiError):
        cache.lookup("gato", "es")
    assert "gato" not in cache
    assert cache.lookup("gato", "es") == "cat"
    assert len(fetch.calls) == 2


def test_seed_and_clear():
    fetch = CountingFetch()
    cache = TranslationCache(fetch)
    cache.seed({"Gato": "cat", "perro": ""})

    assert cache.lookup("gato", "es") == "cat"
    assert "perro" not in cache
    assert fetch.calls == []

    cache.clear()
    assert len(cache) == 0
    assert cache.snapshot() == {}


def test_result_arriving_after_clear_is_dropped():
    cache = None

    def answer_after_new_story(word):
        cache.clear()
        return "cat"

    cache = TranslationCache(CountingFetch(answer_after_new_story))

    assert cache.lookup("gato", "es") == "cat"
    assert "gato" not in cache
