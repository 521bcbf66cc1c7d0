"""Static tables for target languages and school grade levels."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


class ValidationError(ValueError):
    """Raised when a request names a language or grade we do not support."""


@dataclass(frozen=True)
class GradeConfig:
    complexity: str
    word_count: str
    vocabulary: str


@dataclass(frozen=True)
class LanguageConfig:
    """Per-language settings used for prompting, tokenizing and speech."""

    code: str
    name: str
    letters: str  # regex character-class body (no brackets)
    tts_lang: str
    tts_tld: str = 'com'
    prompt_note: str = ''


GRADE_CONFIGS: Dict[str, GradeConfig] = {
    'K': GradeConfig('very simple', '50-75', 'basic animals, colors, family words'),
    '1': GradeConfig('simple', '75-100', 'basic nouns, common verbs, simple adjectives'),
    '2': GradeConfig('simple', '100-150', 'everyday objects, simple actions, basic descriptions'),
    '3': GradeConfig('elementary', '150-200', 'expanded vocabulary with simple past tense'),
    '4': GradeConfig('elementary', '200-250', 'more complex sentences and common idioms'),
    '5': GradeConfig('intermediate', '250-300', 'varied vocabulary with multiple tenses'),
    '6': GradeConfig('intermediate', '300-350', 'descriptive language and compound sentences'),
    '7': GradeConfig('intermediate-advanced', '350-400', 'more sophisticated vocabulary and expressions'),
    '8': GradeConfig('intermediate-advanced', '400-450', 'complex sentence structures and varied vocabulary'),
    '9': GradeConfig('advanced', '450-500', 'advanced vocabulary with subjunctive mood'),
    '10': GradeConfig('advanced', '500-550', 'sophisticated expressions and literary devices'),
    '11': GradeConfig('advanced', '550-600', 'complex grammar and nuanced vocabulary'),
    '12': GradeConfig('very advanced', '600-700', 'near-native vocabulary and complex structures'),
}

# Basic Latin plus Latin-1 / Latin Extended letters, skipping × and ÷.
_LATIN = r'A-Za-zÀ-ÖØ-öø-ɏ'
_CYRILLIC = r'Ѐ-ӿ'
_ARABIC = r'ؠ-ٟٮ-ۓۺ-ۿ'
# Devanagari without the danda marks.
_DEVANAGARI = r'ऀ-ॣ०-ॿ'
_CJK = r'㐀-䶿一-鿿'
_KANA = r'ぁ-ゟ゠-ヿ'
_HANGUL = r'ᄀ-ᇿ가-힯'

LANGUAGES: Dict[str, LanguageConfig] = {
    'es': LanguageConfig('es', 'Spanish', _LATIN, 'es', 'com.mx',
                         'Use proper Spanish grammar, accents, and punctuation (¿ ¡).'),
    'fr': LanguageConfig('fr', 'French', _LATIN, 'fr', 'fr',
                         'Use proper French grammar, accents, and punctuation.'),
    'de': LanguageConfig('de', 'German', _LATIN, 'de', 'de',
                         'Capitalize nouns and use umlauts and ß correctly.'),
    'it': LanguageConfig('it', 'Italian', _LATIN, 'it', 'it'),
    'pt': LanguageConfig('pt', 'Portuguese', _LATIN, 'pt', 'com.br'),
    'ru': LanguageConfig('ru', 'Russian', _CYRILLIC, 'ru', 'com'),
    'ar': LanguageConfig('ar', 'Arabic', _ARABIC, 'ar', 'com',
                         'Write in Modern Standard Arabic.'),
    'hi': LanguageConfig('hi', 'Hindi', _DEVANAGARI, 'hi', 'co.in',
                         'Write in Devanagari script.'),
    'zh': LanguageConfig('zh', 'Chinese (Simplified)', _CJK, 'zh-CN', 'com',
                         'Use simplified characters only.'),
    'ja': LanguageConfig('ja', 'Japanese', _CJK + _KANA, 'ja', 'co.jp'),
    'ko': LanguageConfig('ko', 'Korean', _HANGUL, 'ko', 'co.kr'),
}

DEFAULT_LANGUAGE = 'es'


def get_grade_config(grade_level) -> GradeConfig:
    key = str(grade_level).strip().upper() if grade_level is not None else ''
    if not key or key not in GRADE_CONFIGS:
        raise ValidationError('Invalid grade level')
    return GRADE_CONFIGS[key]


def get_language_config(language) -> LanguageConfig:
    """Resolve a language code (``'es'``) or English name (``'Spanish'``)."""
    if not language or not isinstance(language, str):
        raise ValidationError('Invalid language')
    key = language.strip().lower()
    if key in LANGUAGES:
        return LANGUAGES[key]
    for config in LANGUAGES.values():
        if config.name.lower() == key:
            return config
    raise ValidationError('Invalid language')


def grade_label(grade_level) -> str:
    key = str(grade_level).strip().upper()
    return 'Kindergarten' if key == 'K' else f'Grade {key}'


def list_options() -> Dict[str, Any]:
    """Selector options for clients."""
    return {
        'languages': [{'code': c.code, 'name': c.name} for c in LANGUAGES.values()],
        'grades': [{'value': g, 'label': grade_label(g)} for g in GRADE_CONFIGS],
        'defaultLanguage': DEFAULT_LANGUAGE,
    }
