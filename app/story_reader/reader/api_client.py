"""HTTP client for the story reader's JSON API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from ..quiz_types import Question

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    """Non-2xx response or a transport failure (``status`` is None then)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ReaderApiClient:
    DEFAULT_TIMEOUT = 60

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, *, json: Any = None,
                 params: Optional[Dict[str, str]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=json, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise ApiError(f"Could not reach the server: {exc}") from exc

        if response.status_code >= 400:
            message = f"HTTP {response.status_code}"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get('error'):
                    message = str(body['error'])
            except ValueError:
                pass
            logger.warning("%s %s -> %s: %s", method, path, response.status_code, message)
            raise ApiError(message, response.status_code)
        return response

    def _json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        return self._request(method, path, **kwargs).json()

    def options(self) -> Dict[str, Any]:
        return self._json('GET', '/api/options')

    # Story, translation, audio
    def generate_story(self, language: str, grade_level: str) -> Dict[str, Any]:
        return self._json('POST', '/api/generate-story',
                          json={'language': language, 'gradeLevel': grade_level})

    def translate(self, word: str, language: str) -> str:
        data = self._json('POST', '/api/translate', json={'word': word, 'language': language})
        return data.get('translation') or word

    def text_to_speech(self, text: str, language: str) -> bytes:
        return self._request('POST', '/api/text-to-speech',
                             json={'text': text, 'language': language}).content

    # Quiz
    def generate_quiz(self, story: str, language: str) -> List[Question]:
        data = self._json('POST', '/api/generate-quiz', json={'story': story, 'language': language})
        return [Question.from_dict(q) for q in data.get('questions') or []]

    def grade_quiz(self, questions: Sequence[Question], answers: Sequence[Optional[str]],
                   language: str, grade_level: Optional[str] = None, story: Optional[str] = None,
                   submission_id: Optional[str] = None) -> Dict[str, Any]:
        payload = {
            'questions': [q.to_dict() for q in questions],
            'answers': list(answers),
            'language': language,
            'gradeLevel': grade_level,
            'story': story,
            'submissionId': submission_id,
        }
        return self._json('POST', '/api/grade-quiz', json=payload)

    # Account and saved items
    def auth_status(self) -> Dict[str, Any]:
        return self._json('GET', '/api/auth/status')

    def save_story(self, story: str, language: str, grade_level: str,
                   translations: Mapping[str, str]) -> Dict[str, Any]:
        data = self._json('POST', '/api/stories', json={
            'story': story,
            'language': language,
            'gradeLevel': grade_level,
            'translations': dict(translations),
        })
        return data['story']

    def list_stories(self) -> List[Dict[str, Any]]:
        return self._json('GET', '/api/stories').get('stories', [])

    def get_story(self, story_id: str) -> Dict[str, Any]:
        return self._json('GET', f'/api/stories/{story_id}')['story']

    def delete_story(self, story_id: str) -> None:
        self._request('DELETE', f'/api/stories/{story_id}')

    def save_word(self, word: str, translation: Optional[str], language: str,
                  context: Optional[str] = None) -> Dict[str, Any]:
        data = self._json('POST', '/api/vocabulary', json={
            'word': word,
            'translation': translation,
            'language': language,
            'context': context,
        })
        return data['entry']

    def list_vocabulary(self, language: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {'language': language} if language else None
        return self._json('GET', '/api/vocabulary', params=params).get('vocabulary', [])

    def delete_word(self, entry_id: str) -> None:
        self._request('DELETE', f'/api/vocabulary/{entry_id}')

    def quiz_scores(self) -> Dict[str, Any]:
        return self._json('GET', '/api/quiz-scores')
