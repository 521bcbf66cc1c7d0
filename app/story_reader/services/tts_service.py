"""
Text-to-speech for story playback.

Audio is synthesized with gTTS using a voice preset per language (language
code plus the regional Google domain that selects the accent). Finished MP3s
are kept under the Flask instance folder, keyed by a hash of language and
text, so replaying a story does not synthesize it again. The folder holds at
most TTS_CACHE_MAX_FILES files; the least recently played are deleted first.

Configuration:
    TTS_SLOW: set to 'true' to use gTTS's slower reading speed for every language
"""
from __future__ import annotations

import hashlib
import io
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from flask import current_app
from gtts import gTTS

from ..languages import get_language_config


class SpeechError(RuntimeError):
    """Synthesis failed."""


@dataclass(frozen=True)
class VoicePreset:
    lang: str
    tld: str
    slow: bool = False


def voice_for(language_code: str) -> VoicePreset:
    language = get_language_config(language_code)
    slow = os.getenv('TTS_SLOW', 'false').strip().lower() in {'1', 'true', 'yes'}
    return VoicePreset(language.tts_lang, language.tts_tld, slow)


class TTSService:
    """Synthesize MP3 audio for a story."""

    def __init__(self, cache_dir: Optional[Path] = None, max_files: int = 0):
        self.cache_dir = cache_dir
        self.max_files = max_files

    def _ensure_cache_dir(self) -> Path:
        if self.cache_dir is None:
            self.cache_dir = Path(current_app.instance_path) / "tts_cache"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir

    @staticmethod
    def cache_key(text: str, preset: VoicePreset) -> str:
        digest = hashlib.sha256(f"{preset.lang}|{preset.tld}|{preset.slow}|{text}".encode('utf-8'))
        return digest.hexdigest()

    def synthesize(self, text: str, language_code: str) -> bytes:
        """Return MP3 bytes for ``text`` read in the language's voice.

        Raises:
            ValidationError: unknown language.
            SpeechError: gTTS could not produce audio.
        """
        preset = voice_for(language_code)
        file_path = self._ensure_cache_dir() / f"{self.cache_key(text, preset)}.mp3"
        if file_path.exists():
            file_path.touch()
            return file_path.read_bytes()

        buffer = io.BytesIO()
        try:
            tts = gTTS(text=text, lang=preset.lang, tld=preset.tld, slow=preset.slow)
            tts.write_to_fp(buffer)
        except Exception as exc:  # gTTS raises several unrelated error types
            current_app.logger.error("TTS generation failed (%s): %s", preset.lang, exc)
            raise SpeechError("Failed to generate audio") from exc

        audio = buffer.getvalue()
        if not audio:
            raise SpeechError("Failed to generate audio")
        try:
            file_path.write_bytes(audio)
        except OSError as exc:
            current_app.logger.warning("Could not cache audio at %s: %s", file_path, exc)
        else:
            self.prune_cache(keep=file_path)
        current_app.logger.info("Synthesized %s bytes of %s audio", len(audio), preset.lang)
        return audio

    def prune_cache(self, keep: Optional[Path] = None) -> int:
        """Delete the oldest cached MP3s beyond ``max_files``; returns how many went."""
        if not self.max_files or self.cache_dir is None:
            return 0
        files = sorted(
            (p for p in self.cache_dir.glob("*.mp3") if p != keep),
            key=lambda p: p.stat().st_mtime,
        )
        excess = len(files) + (1 if keep is not None else 0) - self.max_files
        removed = 0
        for path in files[:max(excess, 0)]:
            try:
                path.unlink()
                removed += 1
            except OSError as exc:
                current_app.logger.warning("Could not remove cached audio %s: %s", path, exc)
        if removed:
            current_app.logger.info("Pruned %s cached audio files", removed)
        return removed


def get_tts_service() -> TTSService:
    return TTSService(max_files=current_app.config.get('TTS_CACHE_MAX_FILES', 0))
