"""Story generation and word translation backed by Gemini."""
from __future__ import annotations

from typing import Dict, List, Optional

from flask import current_app

from ..languages import LanguageConfig, get_grade_config, get_language_config, grade_label
from ..tokenizer import extract_unique_words
from .common_words import load_common_words
from .gemini_client import GeminiClient, GenerationError, get_gemini_client

BATCH_TRANSLATION_LIMIT = 100


def _storyteller_system_prompt(language: LanguageConfig) -> str:
    return (
        f"You are a {language.name} language teacher who creates engaging, age-appropriate stories "
        f"in {language.name} for students. You write ONLY in {language.name} with proper grammar "
        "and spelling."
    )


def _translator_system_prompt(language: LanguageConfig) -> str:
    return (
        f"You are a {language.name}-English translator. Provide concise, accurate translations. "
        "Return ONLY the English translation, nothing else."
    )


def build_story_prompt(language_code: str, grade_level: str) -> str:
    """Prompt embedding the grade's complexity, length and vocabulary targets."""
    language = get_language_config(language_code)
    grade = get_grade_config(grade_level)
    lines = [
        f"Generate an engaging and educational {language.name} story appropriate for a "
        f"{grade_label(grade_level)} student learning {language.name}.",
        "",
        "Requirements:",
        f"- Write ONLY in {language.name} (no English in the story)",
        f"- Complexity level: {grade.complexity}",
        f"- Length: {grade.word_count} words",
        f"- Use vocabulary appropriate for: {grade.vocabulary}",
        "- Make the story interesting and age-appropriate",
        "- Include simple dialogue if appropriate for the grade level",
        "- Create a story with a clear beginning, middle, and end",
        "- Choose a random topic (animals, family, school, adventure, nature, friends, etc.)",
    ]
    if language.prompt_note:
        lines.append(f"- {language.prompt_note}")
    lines += ["", f"Write the complete story now in {language.name}:"]
    return "\n".join(lines)


def generate_story(language_code: str, grade_level: str,
                   client: Optional[GeminiClient] = None) -> Dict:
    """Generate a story and glosses for its words.

    Raises:
        ValidationError: unknown language or grade.
        GenerationError: the model call failed or returned nothing.
    """
    language = get_language_config(language_code)
    prompt = build_story_prompt(language.code, grade_level)
    client = client or get_gemini_client()

    story = client.generate_text(
        prompt,
        temperature=0.9,
        system_instruction=_storyteller_system_prompt(language),
        max_output_tokens=1000,
    )
    current_app.logger.info(
        "Generated %s story for grade %s (%s chars)", language.code, grade_level, len(story)
    )

    words = extract_unique_words(story, language.code)
    limit = current_app.config.get("BATCH_TRANSLATION_LIMIT", BATCH_TRANSLATION_LIMIT)
    translations = get_translations(words, language.code, client=client, limit=limit)
    return {
        'story': story,
        'translations': translations,
        'language': language.code,
        'gradeLevel': str(grade_level).strip().upper(),
    }


def get_translations(words: List[str], language_code: str,
                     client: Optional[GeminiClient] = None,
                     limit: int = BATCH_TRANSLATION_LIMIT) -> Dict[str, str]:
    """Common-word dictionary first, then one batched call for the rest.

    Only the first ``limit`` unresolved words are sent. A failed batch is
    logged and leaves those words out of the result.
    """
    language = get_language_config(language_code)
    common = load_common_words(language.code)
    translations: Dict[str, str] = {}

    for word in words:
        if word in common:
            translations[word] = common[word]

    remaining = [w for w in words if w not in translations][:limit]
    if not remaining:
        return translations

    prompt = (
        f"Translate these {language.name} words to English. Return ONLY a JSON object with "
        f"{language.name} words as keys and English translations as values. "
        'Format: {"word1": "translation1", "word2": "translation2"}\n\n'
        f"{language.name} words: {', '.join(remaining)}"
    )
    client = client or get_gemini_client()
    try:
        batch = client.generate_json(
            prompt,
            temperature=0.3,
            system_instruction=f"You are a {language.name}-English translator. "
                               "Provide accurate translations in JSON format.",
            max_output_tokens=1000,
        )
    except GenerationError as exc:
        current_app.logger.error("Error in batch translation: %s", exc)
        return translations

    if not isinstance(batch, dict):
        current_app.logger.error("Batch translation returned %s, expected object", type(batch).__name__)
        return translations

    for word, gloss in batch.items():
        if isinstance(gloss, str) and gloss.strip():
            translations[str(word).lower()] = gloss.strip()
    return translations


def translate_word(word: str, language_code: str,
                   client: Optional[GeminiClient] = None) -> str:
    """Translate one word with the model; the word itself is returned on failure."""
    language = get_language_config(language_code)
    client = client or get_gemini_client()
    try:
        return client.generate_text(
            f'Translate this {language.name} word to English: "{word}". '
            "Give only the most common English translation, no explanations.",
            temperature=0.3,
            system_instruction=_translator_system_prompt(language),
            max_output_tokens=50,
        )
    except GenerationError as exc:
        current_app.logger.warning('Error translating word "%s": %s', word, exc)
        return word
