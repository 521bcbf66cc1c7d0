"""Split story text into hoverable word tokens and verbatim separators."""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Mapping, Optional

from markupsafe import Markup, escape

from .languages import get_language_config

# Punctuation removed before a word is used as a translation key.
_CLEAN_PATTERN = re.compile(r'[¿?¡!,;:.]')


@dataclass(frozen=True)
class Token:
    text: str
    is_word: bool
    key: Optional[str] = None


@lru_cache(maxsize=None)
def _token_pattern(letters: str) -> re.Pattern:
    # word run | punctuation run | whitespace run
    return re.compile(rf'([{letters}]+)|([^{letters}\s]+)|(\s+)')


@lru_cache(maxsize=None)
def _word_pattern(letters: str) -> re.Pattern:
    return re.compile(rf'[{letters}]+')


def tokenize(text: str, language: str) -> List[Token]:
    """Return the ordered word/separator tokens of ``text``.

    >>> [t.text for t in tokenize('¡Hola, mundo!', 'es')]
    ['¡', 'Hola', ',', ' ', 'mundo', '!']
    """
    if not text:
        return []
    pattern = _token_pattern(get_language_config(language).letters)
    tokens: List[Token] = []
    for match in pattern.finditer(text):
        chunk = match.group(0)
        if not chunk:
            continue
        if match.group(1):
            tokens.append(Token(chunk, True, chunk.lower()))
        else:
            tokens.append(Token(chunk, False))
    return tokens


def split_paragraphs(text: str) -> List[str]:
    return [line for line in (text or '').split('\n') if line.strip()]


def extract_unique_words(text: str, language: str) -> List[str]:
    """Lowercased words of ``text`` in first-seen order, without repeats."""
    pattern = _word_pattern(get_language_config(language).letters)
    seen = {}
    for word in pattern.findall(text or ''):
        seen.setdefault(word.lower(), None)
    return list(seen)


def clean_word(word: str) -> str:
    return _CLEAN_PATTERN.sub('', word or '').strip().lower()


def annotate_paragraph(paragraph: str, language: str,
                       translations: Optional[Mapping[str, str]] = None) -> Markup:
    translations = translations or {}
    parts = []
    for token in tokenize(paragraph, language):
        if not token.is_word:
            parts.append(str(escape(token.text)))
            continue
        gloss = translations.get(token.key)
        title = f' title="{escape(gloss)}"' if gloss else ''
        parts.append(
            f'<span class="word" data-word="{escape(token.key)}"{title}>{escape(token.text)}</span>'
        )
    return Markup(''.join(parts))


def annotate_story(text: str, language: str,
                   translations: Optional[Mapping[str, str]] = None) -> List[Markup]:
    """Markup for every paragraph, one hoverable span per word."""
    return [annotate_paragraph(p, language, translations) for p in split_paragraphs(text)]
