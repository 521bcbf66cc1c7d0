"""Question variants and scoring rules shared by the server and the reader."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

TRUE_FALSE_OPTIONS = ('true', 'false')


class QuestionType(Enum):
    TRUE_FALSE = 'true-false'
    SHORT_ANSWER = 'short-answer'

    @classmethod
    def parse(cls, raw: Any) -> 'QuestionType':
        value = str(raw or '').strip().lower().replace('_', '-').replace(' ', '-')
        aliases = {'truefalse': 'true-false', 'tf': 'true-false', 'short': 'short-answer'}
        value = aliases.get(value, value)
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f'Unknown question type: {raw!r}')

    @property
    def input_kind(self) -> str:
        """How the answer is collected: a two-way toggle or a text field."""
        return 'toggle' if self is QuestionType.TRUE_FALSE else 'text'

    @property
    def options(self) -> Tuple[str, ...]:
        return TRUE_FALSE_OPTIONS if self is QuestionType.TRUE_FALSE else ()

    def is_answered(self, answer: Optional[str]) -> bool:
        if answer is None:
            return False
        if self is QuestionType.TRUE_FALSE:
            return answer.strip().lower() in TRUE_FALSE_OPTIONS
        return bool(answer.strip())

    def grade_exact(self, answer: str, expected: str) -> Optional[bool]:
        """Deterministic grade, or ``None`` when a model has to judge it."""
        if self is QuestionType.TRUE_FALSE:
            return (answer or '').strip().lower() == str(expected or '').strip().lower()
        return None


@dataclass(frozen=True)
class Question:
    question: str
    type: QuestionType
    correct_answer: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Question':
        if not isinstance(data, dict):
            raise ValueError('Question must be an object')
        text = str(data.get('question') or '').strip()
        if not text:
            raise ValueError('Question text is missing')
        qtype = QuestionType.parse(data.get('type'))
        answer = data.get('correctAnswer', data.get('correct_answer'))
        if isinstance(answer, bool):
            answer = 'true' if answer else 'false'
        answer = str(answer if answer is not None else '').strip()
        if qtype is QuestionType.TRUE_FALSE:
            answer = answer.lower()
            if answer not in TRUE_FALSE_OPTIONS:
                raise ValueError(f'True/false answer must be true or false, got {answer!r}')
        return cls(text, qtype, answer)

    def to_dict(self) -> Dict[str, str]:
        return {
            'question': self.question,
            'type': self.type.value,
            'correctAnswer': self.correct_answer,
        }


@dataclass(frozen=True)
class GradedAnswer:
    correct: bool
    user_answer: str
    correct_answer: str
    feedback: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GradedAnswer':
        return cls(
            bool(data.get('correct')),
            str(data.get('userAnswer') or ''),
            str(data.get('correctAnswer') or ''),
            str(data.get('feedback') or ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'correct': self.correct,
            'userAnswer': self.user_answer,
            'correctAnswer': self.correct_answer,
            'feedback': self.feedback,
        }


# (minimum percentage, tier, message), checked top to bottom
SCORE_BANNERS = [
    (100, 'perfect', 'Perfect score! You understood every part of the story.'),
    (66, 'great', 'Great job! You understood most of the story.'),
    (33, 'good', 'Good effort! Re-read the story and try again.'),
    (0, 'practice', 'Keep practicing! Every story you read helps.'),
]


def score_banner(score: int, total: int) -> Tuple[str, str]:
    """Return ``(tier, message)`` for a score out of ``total``."""
    percentage = (score * 100.0 / total) if total else 0.0
    for minimum, tier, message in SCORE_BANNERS:
        if percentage >= minimum:
            return tier, message
    return SCORE_BANNERS[-1][1], SCORE_BANNERS[-1][2]


def parse_questions(payload: Any) -> List[Question]:
    items = payload.get('questions') if isinstance(payload, dict) else payload
    if not isinstance(items, list) or not items:
        raise ValueError('Quiz payload has no questions')
    return [Question.from_dict(item) for item in items]
