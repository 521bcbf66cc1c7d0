"""
The reader component: owns a ``ReaderState`` and turns user actions into
API calls and state transitions.

Every action dispatches events through ``state.reduce``; network calls
happen only after the state says one is needed (for example the quiz is
in GENERATING or GRADING), which is also where the "button disabled"
flags are set.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..tokenizer import Token, clean_word, tokenize
from . import state as st
from .api_client import ApiError, ReaderApiClient
from .playback import AudioPlayer, AudioResourceStore, PlaybackController, PlaybackPhase, button_label
from .quiz_flow import QuizCachePolicy, QuizPhase, QuizResults
from .translation_cache import TranslationCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReaderSettings:
    show_quiz_policy: QuizCachePolicy = QuizCachePolicy.REUSE
    retake_quiz_policy: QuizCachePolicy = QuizCachePolicy.REGENERATE


class ReaderSession:

    def __init__(self, api: ReaderApiClient, settings: Optional[ReaderSettings] = None,
                 player: Optional[AudioPlayer] = None, store: Optional[AudioResourceStore] = None,
                 initial: Optional[st.ReaderState] = None):
        self.api = api
        self.settings = settings or ReaderSettings()
        self.playback = PlaybackController(store=store, player=player)
        self.cache = TranslationCache(api.translate)
        self._state = initial or st.ReaderState()
        self.cache.seed(self._state.translations)

    @property
    def state(self) -> st.ReaderState:
        return self._state

    def dispatch(self, event: Any) -> st.ReaderState:
        before = self._state
        after = st.reduce(before, event)
        self.playback.sync(before.audio, after.audio)
        self._state = after
        return after

    # ------------------------------------------------------------------
    # Story
    # ------------------------------------------------------------------

    def generate_story(self, language: str, grade_level: str) -> st.ReaderState:
        state = self.dispatch(st.StoryRequested(language, grade_level))
        if not state.generating:
            return state
        try:
            data = self.api.generate_story(language, grade_level)
        except ApiError as exc:
            logger.error("Error generating story: %s", exc)
            return self.dispatch(st.StoryFailed(
                'Sorry, there was an error generating your story. Please try again.'))

        self.cache.clear()
        self.cache.seed(data.get('translations') or {})
        return self.dispatch(st.StoryLoaded(
            story=data['story'],
            translations=data.get('translations') or {},
            language=data.get('language') or language,
            grade_level=data.get('gradeLevel') or grade_level,
        ))

    def new_story(self) -> st.ReaderState:
        self.cache.clear()
        return self.dispatch(st.NewStoryRequested())

    def back_to_story(self) -> st.ReaderState:
        return self.dispatch(st.ShowStory())

    def paragraphs(self) -> List[List[Token]]:
        """Tokens of the current story, one list per paragraph."""
        if not self._state.story or not self._state.language:
            return []
        return [
            tokenize(line, self._state.language)
            for line in self._state.story.split('\n') if line.strip()
        ]

    # ------------------------------------------------------------------
    # Hover translation
    # ------------------------------------------------------------------

    def hover(self, word: str) -> Optional[str]:
        """Show the gloss for ``word``; ``None`` if it could not be fetched."""
        key = clean_word(word)
        if not key or not self._state.language:
            return None
        try:
            translation = self.cache.lookup(key, self._state.language)
        except ApiError as exc:
            logger.error("Error fetching translation: %s", exc)
            return None
        self.dispatch(st.TranslationCached(key, translation))
        self.dispatch(st.TooltipShown(key, translation))
        return translation

    def leave(self) -> st.ReaderState:
        return self.dispatch(st.TooltipHidden())

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def toggle_audio(self) -> st.ReaderState:
        state = self._state
        if state.story is None or state.audio.loading:
            return state
        if state.audio.phase is not PlaybackPhase.IDLE:
            return self.dispatch(st.AudioToggled())

        self.dispatch(st.AudioRequested())
        try:
            resource = self.playback.fetch(lambda: self.api.text_to_speech(state.story, state.language))
        except ApiError as exc:
            logger.error("Error generating audio: %s", exc)
            return self.dispatch(st.AudioFailed(
                'Sorry, there was an error generating the audio. Please try again.'))
        return self.dispatch(st.AudioLoaded(resource))

    def audio_finished(self) -> st.ReaderState:
        return self.dispatch(st.AudioEnded())

    def audio_button(self):
        return button_label(self._state.audio)

    # ------------------------------------------------------------------
    # Quiz
    # ------------------------------------------------------------------

    def show_quiz(self) -> st.ReaderState:
        self.dispatch(st.QuizShown(self.settings.show_quiz_policy))
        return self._load_quiz_if_needed()

    def retake_quiz(self) -> st.ReaderState:
        self.dispatch(st.QuizRetaken(self.settings.retake_quiz_policy))
        return self._load_quiz_if_needed()

    def _load_quiz_if_needed(self) -> st.ReaderState:
        state = self._state
        if state.quiz.phase is not QuizPhase.GENERATING:
            return state
        try:
            questions = self.api.generate_quiz(state.story, state.language)
        except ApiError as exc:
            logger.error("Error generating quiz: %s", exc)
            return self.dispatch(st.QuizFailed('Sorry, there was an error creating the quiz. Please try again.'))
        if not questions:
            return self.dispatch(st.QuizFailed('Sorry, there was an error creating the quiz. Please try again.'))
        return self.dispatch(st.QuizLoaded(tuple(questions)))

    def record_answer(self, index: int, answer: Optional[str]) -> st.ReaderState:
        return self.dispatch(st.AnswerRecorded(index, answer))

    def submit_quiz(self) -> st.ReaderState:
        """Grade the quiz; incomplete answers only raise the error banner."""
        state = self.dispatch(st.QuizSubmitted(uuid4().hex))
        if state.quiz.phase is not QuizPhase.GRADING:
            return state
        try:
            data = self.api.grade_quiz(
                state.quiz.questions,
                state.quiz.answers,
                state.language,
                grade_level=state.grade_level,
                story=state.story,
                submission_id=state.quiz.submission_id,
            )
        except ApiError as exc:
            logger.error("Error grading quiz: %s", exc)
            return self.dispatch(st.GradingFailed('Sorry, there was an error grading your quiz. Please try again.'))
        return self.dispatch(st.QuizGraded(QuizResults.from_response(data)))

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def refresh_user(self) -> st.ReaderState:
        try:
            status = self.api.auth_status()
        except ApiError as exc:
            logger.warning("Could not load sign-in status: %s", exc)
            return self._state
        return self.dispatch(st.UserLoaded(status.get('user') if status.get('authenticated') else None))

    def show_account(self) -> st.ReaderState:
        return self.dispatch(st.AccountShown())

    def save_story(self) -> Optional[Dict[str, Any]]:
        state = self._state
        if state.story is None or state.user is None:
            self.dispatch(st.ErrorRaised('Sign in to save stories.'))
            return None
        try:
            return self.api.save_story(state.story, state.language, state.grade_level, state.translations)
        except ApiError as exc:
            logger.error("Error saving story: %s", exc)
            self.dispatch(st.ErrorRaised('Sorry, the story could not be saved.'))
            return None

    def save_word(self, word: str, context: Optional[str] = None) -> Optional[Dict[str, Any]]:
        state = self._state
        key = clean_word(word)
        if not key or state.user is None:
            self.dispatch(st.ErrorRaised('Sign in to build your vocabulary list.'))
            return None
        try:
            return self.api.save_word(key, self.cache.get(key), state.language, context)
        except ApiError as exc:
            logger.error("Error saving word: %s", exc)
            self.dispatch(st.ErrorRaised('Sorry, the word could not be saved.'))
            return None

    # ------------------------------------------------------------------
    # Banner and teardown
    # ------------------------------------------------------------------

    def expire_errors(self, now: Optional[float] = None) -> st.ReaderState:
        return self.dispatch(st.ErrorExpired() if now is None else st.ErrorExpired(now))

    def close(self) -> None:
        """Release any audio resource held by the session."""
        self.cache.clear()
        self.dispatch(st.NewStoryRequested())
