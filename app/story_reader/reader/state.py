"""
Reader UI state and its transitions.

``ReaderState`` is an immutable snapshot of everything the reader shows:
the current screen, story, glosses, audio, quiz, signed-in user and the
error banner. ``reduce(state, event)`` is the only way to get a new state;
it never performs I/O. Time-dependent events carry their own timestamp.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from ..quiz_types import Question
from . import playback, quiz_flow
from .playback import PlaybackState
from .quiz_flow import IncompleteQuizError, QuizCachePolicy, QuizResults, QuizState

ERROR_BANNER_SECONDS = 5.0


class Screen(Enum):
    GENERATION = 'generation'
    STORY = 'story'
    QUIZ = 'quiz'
    ACCOUNT = 'account'


@dataclass(frozen=True)
class Banner:
    message: str
    expires_at: float


@dataclass(frozen=True)
class Tooltip:
    word: str
    text: str


@dataclass(frozen=True)
class ReaderState:
    screen: Screen = Screen.GENERATION
    language: Optional[str] = None
    grade_level: Optional[str] = None
    story: Optional[str] = None
    translations: Mapping[str, str] = field(default_factory=dict)
    generating: bool = False
    audio: PlaybackState = field(default_factory=PlaybackState)
    quiz: QuizState = field(default_factory=QuizState)
    user: Optional[Dict[str, Any]] = None
    error: Optional[Banner] = None
    tooltip: Optional[Tooltip] = None

    def visible_error(self, now: Optional[float] = None) -> Optional[str]:
        if self.error is None:
            return None
        now = time.time() if now is None else now
        return self.error.message if now < self.error.expires_at else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'screen': self.screen.value,
            'language': self.language,
            'gradeLevel': self.grade_level,
            'story': self.story,
            'translations': dict(self.translations),
            'generating': self.generating,
            'audio': self.audio.to_dict(),
            'quiz': self.quiz.to_dict(),
            'user': self.user,
            'error': {'message': self.error.message, 'expiresAt': self.error.expires_at} if self.error else None,
            'tooltip': {'word': self.tooltip.word, 'text': self.tooltip.text} if self.tooltip else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReaderState':
        error = data.get('error')
        tooltip = data.get('tooltip')
        return cls(
            screen=Screen(data.get('screen', 'generation')),
            language=data.get('language'),
            grade_level=data.get('gradeLevel'),
            story=data.get('story'),
            translations=dict(data.get('translations') or {}),
            generating=bool(data.get('generating')),
            audio=PlaybackState.from_dict(data.get('audio') or {}),
            quiz=QuizState.from_dict(data.get('quiz') or {}),
            user=data.get('user'),
            error=Banner(error['message'], error['expiresAt']) if error else None,
            tooltip=Tooltip(tooltip['word'], tooltip['text']) if tooltip else None,
        )


# ----------------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------------

@dataclass(frozen=True)
class StoryRequested:
    language: str
    grade_level: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class StoryLoaded:
    story: str
    translations: Mapping[str, str]
    language: str
    grade_level: str


@dataclass(frozen=True)
class StoryFailed:
    message: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class NewStoryRequested:
    pass


@dataclass(frozen=True)
class ShowStory:
    pass


@dataclass(frozen=True)
class TranslationCached:
    word: str
    translation: str


@dataclass(frozen=True)
class TooltipShown:
    word: str
    text: str


@dataclass(frozen=True)
class TooltipHidden:
    pass


@dataclass(frozen=True)
class AudioRequested:
    pass


@dataclass(frozen=True)
class AudioLoaded:
    resource: str


@dataclass(frozen=True)
class AudioFailed:
    message: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class AudioToggled:
    pass


@dataclass(frozen=True)
class AudioEnded:
    pass


@dataclass(frozen=True)
class QuizShown:
    policy: QuizCachePolicy


@dataclass(frozen=True)
class QuizRetaken:
    policy: QuizCachePolicy


@dataclass(frozen=True)
class QuizLoaded:
    questions: Tuple[Question, ...]


@dataclass(frozen=True)
class QuizFailed:
    message: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class AnswerRecorded:
    index: int
    answer: Optional[str]


@dataclass(frozen=True)
class QuizSubmitted:
    submission_id: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class QuizGraded:
    results: QuizResults


@dataclass(frozen=True)
class GradingFailed:
    message: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class AccountShown:
    pass


@dataclass(frozen=True)
class UserLoaded:
    user: Optional[Dict[str, Any]]


@dataclass(frozen=True)
class ErrorRaised:
    message: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ErrorExpired:
    now: float = field(default_factory=time.time)


# ----------------------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------------------

def _banner(state: ReaderState, message: str, at: float) -> ReaderState:
    return replace(state, error=Banner(message, at + ERROR_BANNER_SECONDS))


def _story_requested(state: ReaderState, event: StoryRequested) -> ReaderState:
    if not event.grade_level:
        return _banner(state, 'Please select a grade level first.', event.at)
    if not event.language:
        return _banner(state, 'Please select a language first.', event.at)
    return replace(state, generating=True, error=None)


def _story_loaded(state: ReaderState, event: StoryLoaded) -> ReaderState:
    return replace(
        state,
        screen=Screen.STORY,
        story=event.story,
        translations=dict(event.translations or {}),
        language=event.language,
        grade_level=event.grade_level,
        generating=False,
        audio=PlaybackState(),
        quiz=QuizState(),
        tooltip=None,
    )


def _story_failed(state: ReaderState, event: StoryFailed) -> ReaderState:
    return _banner(replace(state, generating=False), event.message, event.at)


def _new_story(state: ReaderState, event: NewStoryRequested) -> ReaderState:
    return replace(
        state,
        screen=Screen.GENERATION,
        story=None,
        translations={},
        audio=PlaybackState(),
        quiz=QuizState(),
        tooltip=None,
    )


def _show_story(state: ReaderState, event: ShowStory) -> ReaderState:
    if state.story is None:
        return replace(state, screen=Screen.GENERATION)
    return replace(state, screen=Screen.STORY)


def _translation_cached(state: ReaderState, event: TranslationCached) -> ReaderState:
    if state.translations.get(event.word) == event.translation:
        return state
    translations = dict(state.translations)
    translations[event.word] = event.translation
    return replace(state, translations=translations)


def _tooltip_shown(state: ReaderState, event: TooltipShown) -> ReaderState:
    return replace(state, tooltip=Tooltip(event.word, event.text))


def _tooltip_hidden(state: ReaderState, event: TooltipHidden) -> ReaderState:
    return replace(state, tooltip=None)


def _audio_requested(state: ReaderState, event: AudioRequested) -> ReaderState:
    return replace(state, audio=playback.start_loading(state.audio))


def _audio_loaded(state: ReaderState, event: AudioLoaded) -> ReaderState:
    return replace(state, audio=playback.loaded(state.audio, event.resource))


def _audio_failed(state: ReaderState, event: AudioFailed) -> ReaderState:
    return _banner(replace(state, audio=playback.load_failed(state.audio)), event.message, event.at)


def _audio_toggled(state: ReaderState, event: AudioToggled) -> ReaderState:
    return replace(state, audio=playback.toggle(state.audio))


def _audio_ended(state: ReaderState, event: AudioEnded) -> ReaderState:
    return replace(state, audio=playback.ended(state.audio))


def _quiz_shown(state: ReaderState, event: QuizShown) -> ReaderState:
    if state.story is None:
        return state
    return replace(state, screen=Screen.QUIZ, quiz=quiz_flow.show(state.quiz, event.policy))


def _quiz_retaken(state: ReaderState, event: QuizRetaken) -> ReaderState:
    if state.story is None:
        return state
    return replace(state, screen=Screen.QUIZ, quiz=quiz_flow.retake(state.quiz, event.policy))


def _quiz_loaded(state: ReaderState, event: QuizLoaded) -> ReaderState:
    if state.quiz.phase is not quiz_flow.QuizPhase.GENERATING:
        return state
    return replace(state, quiz=quiz_flow.loaded(state.quiz, event.questions))


def _quiz_failed(state: ReaderState, event: QuizFailed) -> ReaderState:
    return _banner(replace(state, quiz=quiz_flow.load_failed(state.quiz)), event.message, event.at)


def _answer_recorded(state: ReaderState, event: AnswerRecorded) -> ReaderState:
    return replace(state, quiz=quiz_flow.record_answer(state.quiz, event.index, event.answer))


def _quiz_submitted(state: ReaderState, event: QuizSubmitted) -> ReaderState:
    try:
        quiz = quiz_flow.start_grading(state.quiz, event.submission_id)
    except IncompleteQuizError as exc:
        return _banner(state, str(exc), event.at)
    return replace(state, quiz=quiz, error=None)


def _quiz_graded(state: ReaderState, event: QuizGraded) -> ReaderState:
    user = state.user
    if user is not None and event.results.total_points is not None:
        user = dict(user, totalPoints=event.results.total_points)
    return replace(state, quiz=quiz_flow.graded(state.quiz, event.results), user=user)


def _grading_failed(state: ReaderState, event: GradingFailed) -> ReaderState:
    return _banner(replace(state, quiz=quiz_flow.grading_failed(state.quiz)), event.message, event.at)


def _account_shown(state: ReaderState, event: AccountShown) -> ReaderState:
    return replace(state, screen=Screen.ACCOUNT)


def _user_loaded(state: ReaderState, event: UserLoaded) -> ReaderState:
    return replace(state, user=dict(event.user) if event.user else None)


def _error_raised(state: ReaderState, event: ErrorRaised) -> ReaderState:
    return _banner(state, event.message, event.at)


def _error_expired(state: ReaderState, event: ErrorExpired) -> ReaderState:
    if state.error is not None and event.now >= state.error.expires_at:
        return replace(state, error=None)
    return state


_TRANSITIONS: Dict[type, Callable[[ReaderState, Any], ReaderState]] = {
    StoryRequested: _story_requested,
    StoryLoaded: _story_loaded,
    StoryFailed: _story_failed,
    NewStoryRequested: _new_story,
    ShowStory: _show_story,
    TranslationCached: _translation_cached,
    TooltipShown: _tooltip_shown,
    TooltipHidden: _tooltip_hidden,
    AudioRequested: _audio_requested,
    AudioLoaded: _audio_loaded,
    AudioFailed: _audio_failed,
    AudioToggled: _audio_toggled,
    AudioEnded: _audio_ended,
    QuizShown: _quiz_shown,
    QuizRetaken: _quiz_retaken,
    QuizLoaded: _quiz_loaded,
    QuizFailed: _quiz_failed,
    AnswerRecorded: _answer_recorded,
    QuizSubmitted: _quiz_submitted,
    QuizGraded: _quiz_graded,
    GradingFailed: _grading_failed,
    AccountShown: _account_shown,
    UserLoaded: _user_loaded,
    ErrorRaised: _error_raised,
    ErrorExpired: _error_expired,
}


def reduce(state: ReaderState, event: Any) -> ReaderState:
    """Return the state that follows ``event``."""
    try:
        transition = _TRANSITIONS[type(event)]
    except KeyError:
        raise TypeError(f'Unknown reader event: {type(event).__name__}') from None
    return transition(state, event)


def reduce_all(state: ReaderState, events: Sequence[Any]) -> ReaderState:
    for event in events:
        state = reduce(state, event)
    return state
