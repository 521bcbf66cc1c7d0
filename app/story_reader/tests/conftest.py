import os

os.environ["FLASK_ENV"] = "testing"

import pytest
import requests

from app.story_reader import app as app_module
from app.story_reader.models import User, db
from app.story_reader.quiz_types import Question, QuestionType
from app.story_reader.reader.api_client import ApiError
from app.story_reader.services import quiz_service, story_generator
from app.story_reader.services.gemini_client import GenerationError


class FakeGemini:
    """Stands in for GeminiClient; answers come from per-method queues."""

    def __init__(self):
        self.text_responses = []
        self.json_responses = []
        self.calls = []

    def _next(self, queue, kind, prompt, kwargs):
        self.calls.append((kind, prompt, kwargs))
        if not queue:
            raise GenerationError("no response queued")
        value = queue.pop(0)
        if isinstance(value, Exception):
            raise value
        return value

    def generate_text(self, prompt, **kwargs):
        return self._next(self.text_responses, "text", prompt, kwargs)

    def generate_json(self, prompt, **kwargs):
        return self._next(self.json_responses, "json", prompt, kwargs)


@pytest.fixture
def app():
    flask_app = app_module.app
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gemini(monkeypatch):
    fake = FakeGemini()
    monkeypatch.setattr(story_generator, "get_gemini_client", lambda: fake)
    monkeypatch.setattr(quiz_service, "get_gemini_client", lambda: fake)
    return fake


@pytest.fixture
def user(app):
    reader = User(google_id="google-1", email="reader@example.com", name="Reader")
    db.session.add(reader)
    db.session.commit()
    return reader


@pytest.fixture
def auth_client(client, user):
    with client.session_transaction() as sess:
        sess["user_id"] = user.id
    return client


class FakeReaderApi:
    """Stands in for ReaderApiClient; names in ``fail`` raise ApiError."""

    STORY = "El gato come pescado.\n\nEl perro duerme."
    QUESTIONS = [
        Question("The cat eats fish.", QuestionType.TRUE_FALSE, "true"),
        Question("What does the dog do?", QuestionType.SHORT_ANSWER, "sleeps"),
    ]

    def __init__(self):
        self.calls = []
        self.fail = set()
        self.session = requests.Session()

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise ApiError("Server unavailable", 500)

    def names(self):
        return [call[0] for call in self.calls]

    def options(self):
        self._record("options")
        return {"languages": [{"code": "es", "name": "Spanish"}],
                "grades": [{"value": "K", "label": "Kindergarten"}], "defaultLanguage": "es"}

    def generate_story(self, language, grade_level):
        self._record("generate_story", language, grade_level)
        return {"story": self.STORY, "translations": {"gato": "cat"}, "language": language,
                "gradeLevel": grade_level}

    def translate(self, word, language):
        self._record("translate", word, language)
        return f"{word}-en"

    def text_to_speech(self, text, language):
        self._record("text_to_speech", text, language)
        return b"ID3-audio"

    def generate_quiz(self, story, language):
        self._record("generate_quiz", story, language)
        return list(self.QUESTIONS)

    def grade_quiz(self, questions, answers, language, grade_level=None, story=None, submission_id=None):
        self._record("grade_quiz", tuple(answers), submission_id)
        return {
            "score": 1,
            "total": 2,
            "results": [
                {"correct": True, "userAnswer": answers[0], "correctAnswer": "true"},
                {"correct": False, "userAnswer": answers[1], "correctAnswer": "sleeps",
                 "feedback": "The dog sleeps."},
            ],
            "pointsEarned": 10,
            "totalPoints": 110,
        }

    def auth_status(self):
        self._record("auth_status")
        return {"authenticated": True, "user": {"name": "Reader", "totalPoints": 100}}

    def save_story(self, story, language, grade_level, translations):
        self._record("save_story", story, language, grade_level, dict(translations))
        return {"id": "abc", "title": story[:50] + "..."}

    def save_word(self, word, translation, language, context=None):
        self._record("save_word", word, translation, language)
        return {"id": "w1", "word": word}

    def list_vocabulary(self, language=None):
        self._record("list_vocabulary", language)
        return [{"id": "w1", "word": "gato", "translation": "cat", "language": "es"}]

    def quiz_scores(self):
        self._record("quiz_scores")
        return {"scores": [{"createdAt": "2026-01-02T10:00:00", "language": "es", "gradeLevel": "2",
                            "score": 1, "total": 2, "pointsEarned": 10}], "totalPoints": 110}


@pytest.fixture
def api():
    return FakeReaderApi()
