"""Client wrapper around the Google Gemini Generative Language API."""
from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, Optional

import requests
from flask import current_app

_FENCE_PATTERN = re.compile(r'```(?:json)?\s*\n?|```', re.IGNORECASE)


class GenerationError(RuntimeError):
    """The model could not be reached or returned nothing usable."""


class GeminiClient:
    """Thin client for text and JSON generation. Each call makes one attempt."""

    DEFAULT_MODEL = "gemini-2.5-flash-lite"
    DEFAULT_TIMEOUT = 40

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY", "")
        self.model = os.getenv("GEMINI_MODEL", self.DEFAULT_MODEL)
        self.api_root = os.getenv(
            "GEMINI_API_URL",
            f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent",
        )
        try:
            self.timeout = int(os.getenv("GEMINI_TIMEOUT_SECONDS", str(self.DEFAULT_TIMEOUT)))
        except ValueError:
            self.timeout = self.DEFAULT_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def generate_text(
        self,
        prompt: str,
        temperature: float = 0.7,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Return the model's trimmed text answer.

        Raises:
            GenerationError: the API is not configured, the HTTP call failed,
                or the response carried no text.
        """
        data = self._post(prompt, temperature, system_instruction, "text/plain", max_output_tokens)
        text, finish_reason = self._extract_text_and_finish_reason(data)
        if not text:
            current_app.logger.error(
                "Gemini response contained empty text. Finish reason: %s, Response: %s",
                finish_reason,
                str(data)[:500],
            )
            raise GenerationError("Empty response from model")
        return text.strip()

    def generate_json(
        self,
        prompt: str,
        temperature: float = 0.3,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
    ) -> Any:
        """Send a prompt and parse the JSON document in the answer.

        Markdown code fences around the JSON are stripped first.
        """
        data = self._post(prompt, temperature, system_instruction, "application/json", max_output_tokens)
        text, finish_reason = self._extract_text_and_finish_reason(data)
        if not text:
            current_app.logger.error(
                "Gemini response contained empty text. Finish reason: %s, Response: %s",
                finish_reason,
                str(data)[:500],
            )
            raise GenerationError("Empty response from model")

        parsed = self.parse_json_text(text)
        if parsed is None:
            current_app.logger.error(
                "Gemini JSON parsing failed. Text length: %s, First 500 chars: %s",
                len(text),
                text[:500],
            )
            raise GenerationError("Model returned malformed JSON")
        return parsed

    def _post(
        self,
        prompt: str,
        temperature: float,
        system_instruction: Optional[str],
        response_mime: str,
        max_output_tokens: Optional[int],
    ) -> Dict[str, Any]:
        if not self.is_configured:
            current_app.logger.error("Gemini API not configured - API key missing")
            raise GenerationError("Gemini API key missing")

        payload: Dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "responseMimeType": response_mime,
            },
        }
        if max_output_tokens is not None:
            payload["generationConfig"]["maxOutputTokens"] = max_output_tokens
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        try:
            response = requests.post(
                f"{self.api_root}?key={self.api_key}",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            current_app.logger.error("Gemini HTTP error: %s - %s", status_code, exc)
            raise GenerationError(f"Gemini HTTP {status_code}") from exc
        except requests.exceptions.RequestException as exc:
            current_app.logger.error("Gemini request failed: %s", exc)
            raise GenerationError("Gemini request failed") from exc

        try:
            return response.json()
        except ValueError as exc:
            current_app.logger.error("Failed to parse Gemini response as JSON: %s", exc)
            raise GenerationError("Unreadable Gemini response") from exc

    @staticmethod
    def strip_code_fences(text: str) -> str:
        return _FENCE_PATTERN.sub('', text or '').strip()

    @staticmethod
    def parse_json_text(text: str) -> Optional[Any]:
        """Parse JSON even if wrapped in fences or surrounded by stray prose."""
        cleaned = GeminiClient.strip_code_fences(text)
        if not cleaned:
            return None
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            pass

        # Fall back to the outermost object or array in the text
        for opener, closer in (("{", "}"), ("[", "]")):
            start = cleaned.find(opener)
            end = cleaned.rfind(closer)
            if start != -1 and end > start:
                try:
                    return json.loads(cleaned[start:end + 1])
                except json.JSONDecodeError:
                    continue
        return None

    @staticmethod
    def _extract_text_and_finish_reason(data: Dict[str, Any]) -> tuple[str, Optional[str]]:
        """Join the text parts of the first candidate that has any."""
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                current_app.logger.error("Gemini blocked request. Reason: %s", block_reason)
            else:
                current_app.logger.warning("Gemini response missing candidates: %s", str(data)[:500])
            return "", None

        fallback_finish: Optional[str] = None
        for cand in candidates:
            finish_reason = cand.get("finishReason")
            fallback_finish = fallback_finish or finish_reason
            parts = (cand.get("content") or {}).get("parts", [])
            collected = [
                part["text"] for part in parts
                if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"].strip()
            ]
            if collected:
                return "".join(collected), finish_reason

        return "", fallback_finish


def get_gemini_client() -> GeminiClient:
    """Factory helper to allow lazy imports without circular references."""
    return GeminiClient()
