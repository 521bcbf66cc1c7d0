"""Quiz phases and the pure transitions between them."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..quiz_types import GradedAnswer, Question, QuestionType, score_banner


class QuizPhase(Enum):
    IDLE = 'idle'
    GENERATING = 'generating'
    READY = 'ready'
    GRADING = 'grading'
    RESULTS = 'results'


class QuizCachePolicy(Enum):
    """Whether an already generated quiz is shown again or replaced."""

    REUSE = 'reuse'
    REGENERATE = 'regenerate'


class IncompleteQuizError(ValueError):
    def __init__(self, missing: Sequence[int]):
        self.missing = list(missing)
        numbers = ', '.join(str(i + 1) for i in self.missing)
        super().__init__(f'Please answer all questions before submitting (missing: {numbers}).')


@dataclass(frozen=True)
class QuizResults:
    score: int
    total: int
    results: Tuple[GradedAnswer, ...]
    tier: str
    message: str
    points_earned: int = 0
    total_points: Optional[int] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> 'QuizResults':
        """Build from a grade-quiz response; the banner is always chosen locally."""
        score = int(data.get('score') or 0)
        total = int(data.get('total') or 0)
        tier, message = score_banner(score, total)
        return cls(
            score=score,
            total=total,
            results=tuple(GradedAnswer.from_dict(r) for r in data.get('results') or []),
            tier=tier,
            message=message,
            points_earned=int(data.get('pointsEarned') or 0),
            total_points=data.get('totalPoints'),
        )

    @property
    def fraction(self) -> str:
        return f'{self.score}/{self.total}'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'total': self.total,
            'results': [r.to_dict() for r in self.results],
            'pointsEarned': self.points_earned,
            'totalPoints': self.total_points,
        }


@dataclass(frozen=True)
class QuizState:
    phase: QuizPhase = QuizPhase.IDLE
    questions: Tuple[Question, ...] = ()
    answers: Tuple[Optional[str], ...] = ()
    results: Optional[QuizResults] = None
    submission_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'questions': [q.to_dict() for q in self.questions],
            'answers': list(self.answers),
            'results': self.results.to_dict() if self.results else None,
            'submissionId': self.submission_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuizState':
        results = data.get('results')
        return cls(
            phase=QuizPhase(data.get('phase', 'idle')),
            questions=tuple(Question.from_dict(q) for q in data.get('questions') or []),
            answers=tuple(data.get('answers') or ()),
            results=QuizResults.from_response(results) if results else None,
            submission_id=data.get('submissionId'),
        )


def _generating() -> QuizState:
    return QuizState(phase=QuizPhase.GENERATING)


def show(state: QuizState, policy: QuizCachePolicy) -> QuizState:
    """Open the quiz; keep the current one under REUSE, otherwise ask for a new one."""
    if policy is QuizCachePolicy.REUSE and state.questions:
        if state.phase in (QuizPhase.READY, QuizPhase.RESULTS, QuizPhase.GRADING):
            return state
        return replace(state, phase=QuizPhase.READY)
    return _generating()


def retake(state: QuizState, policy: QuizCachePolicy) -> QuizState:
    if policy is QuizCachePolicy.REUSE and state.questions:
        return QuizState(
            phase=QuizPhase.READY,
            questions=state.questions,
            answers=(None,) * len(state.questions),
        )
    return _generating()


def loaded(state: QuizState, questions: Sequence[Question]) -> QuizState:
    questions = tuple(questions)
    return QuizState(phase=QuizPhase.READY, questions=questions, answers=(None,) * len(questions))


def load_failed(state: QuizState) -> QuizState:
    return QuizState()


def record_answer(state: QuizState, index: int, answer: Optional[str]) -> QuizState:
    """Store an answer; true/false toggles keep only the selected option."""
    if state.phase is not QuizPhase.READY or not 0 <= index < len(state.questions):
        return state
    question = state.questions[index]
    if answer is not None and question.type is QuestionType.TRUE_FALSE:
        answer = answer.strip().lower()
    if state.answers[index] == answer:
        return state
    answers = list(state.answers)
    answers[index] = answer
    # changed answers are a new submission
    return replace(state, answers=tuple(answers), submission_id=None)


def missing_answers(state: QuizState) -> List[int]:
    return [
        i for i, question in enumerate(state.questions)
        if not question.type.is_answered(state.answers[i] if i < len(state.answers) else None)
    ]


def start_grading(state: QuizState, submission_id: str) -> QuizState:
    """READY -> GRADING, or IncompleteQuizError if any answer is missing.

    A resubmission of unchanged answers (after a failed grading call) keeps
    the id it was first sent with, so the server can recognise it.
    """
    if state.phase is not QuizPhase.READY:
        return state
    missing = missing_answers(state)
    if missing:
        raise IncompleteQuizError(missing)
    return replace(state, phase=QuizPhase.GRADING, submission_id=state.submission_id or submission_id)


def graded(state: QuizState, results: QuizResults) -> QuizState:
    return replace(state, phase=QuizPhase.RESULTS, results=results)


def grading_failed(state: QuizState) -> QuizState:
    return replace(state, phase=QuizPhase.READY)
