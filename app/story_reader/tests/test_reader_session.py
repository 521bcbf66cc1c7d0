import os

import pytest

from app.story_reader.reader.playback import AudioPlayer, AudioResourceStore, PlaybackPhase
from app.story_reader.reader.quiz_flow import QuizCachePolicy, QuizPhase
from app.story_reader.reader.session import ReaderSession, ReaderSettings
from app.story_reader.reader.state import Screen


STORY = "El gato come pescado.\n\nEl perro duerme."


class FakePlayer(AudioPlayer):
    def __init__(self):
        self.events = []

    def play(self, resource):
        self.events.append(("play", resource))

    def pause(self):
        self.events.append(("pause",))

    def stop(self):
        self.events.append(("stop",))


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def session(api, player, tmp_path):
    return ReaderSession(api, player=player, store=AudioResourceStore(directory=str(tmp_path)))


@pytest.fixture
def reading(session):
    session.generate_story("es", "2")
    return session


def test_generate_story_opens_story_screen(reading, api):
    assert reading.state.screen is Screen.STORY
    assert reading.state.story == STORY
    assert api.names() == ["generate_story"]
    assert [[t.text for t in p if t.is_word] for p in reading.paragraphs()] == [
        ["El", "gato", "come", "pescado"],
        ["El", "perro", "duerme"],
    ]


def test_generate_story_requires_grade(session, api):
    state = session.generate_story("es", "")

    assert state.screen is Screen.GENERATION
    assert state.visible_error() == "Please select a grade level first."
    assert api.calls == []


def test_generate_story_failure_shows_banner(session, api):
    api.fail.add("generate_story")

    state = session.generate_story("es", "2")

    assert state.screen is Screen.GENERATION
    assert not state.generating
    assert state.visible_error().startswith("Sorry, there was an error generating your story")


def test_hover_uses_story_translations_then_fetches_once(reading, api):
    assert reading.hover("Gato") == "cat"
    assert reading.hover("perro.") == "perro-en"
    assert reading.hover("perro") == "perro-en"

    assert api.names() == ["generate_story", "translate"]
    assert reading.state.translations["perro"] == "perro-en"
    assert reading.state.tooltip.text == "perro-en"
    assert reading.leave().tooltip is None


def test_hover_failure_leaves_no_tooltip(reading, api):
    api.fail.add("translate")

    assert reading.hover("perro") is None
    assert reading.state.tooltip is None


def test_audio_is_fetched_once_and_toggled(reading, api, player):
    state = reading.toggle_audio()
    resource = state.audio.resource

    assert state.audio.phase is PlaybackPhase.PLAYING
    assert os.path.exists(resource)
    assert reading.audio_button()[1] == "Pause Audio"

    assert reading.toggle_audio().audio.phase is PlaybackPhase.PAUSED
    assert reading.toggle_audio().audio.phase is PlaybackPhase.PLAYING
    assert reading.audio_finished().audio.phase is PlaybackPhase.PAUSED

    assert api.names().count("text_to_speech") == 1
    assert player.events == [("play", resource), ("pause",), ("play", resource), ("pause",)]


def test_new_story_releases_audio(reading, player):
    resource = reading.toggle_audio().audio.resource

    state = reading.new_story()

    assert state.audio.phase is PlaybackPhase.IDLE
    assert not os.path.exists(resource)
    assert ("stop",) in player.events
    assert len(reading.cache) == 0


def test_audio_failure_stays_idle(reading, api):
    api.fail.add("text_to_speech")

    state = reading.toggle_audio()

    assert state.audio.phase is PlaybackPhase.IDLE
    assert not state.audio.loading
    assert state.visible_error() is not None


def test_show_quiz_reuses_and_retake_regenerates(reading, api):
    assert reading.show_quiz().quiz.phase is QuizPhase.READY
    reading.back_to_story()
    assert reading.show_quiz().quiz.phase is QuizPhase.READY
    assert api.names().count("generate_quiz") == 1

    reading.retake_quiz()
    assert api.names().count("generate_quiz") == 2


def test_retake_policy_can_reuse(api, tmp_path):
    settings = ReaderSettings(retake_quiz_policy=QuizCachePolicy.REUSE)
    session = ReaderSession(api, settings=settings, store=AudioResourceStore(directory=str(tmp_path)))
    session.generate_story("es", "2")
    session.show_quiz()
    session.record_answer(0, "true")

    state = session.retake_quiz()

    assert state.quiz.answers == (None, None)
    assert api.names().count("generate_quiz") == 1


def test_incomplete_submission_makes_no_request(reading, api):
    reading.show_quiz()
    reading.record_answer(0, "true")

    state = reading.submit_quiz()

    assert state.quiz.phase is QuizPhase.READY
    assert state.visible_error().startswith("Please answer all questions")
    assert "grade_quiz" not in api.names()


def test_submission_grades_and_updates_points(reading, api):
    reading.refresh_user()
    reading.show_quiz()
    reading.record_answer(0, "True")
    reading.record_answer(1, "it sleeps")

    state = reading.submit_quiz()

    assert state.quiz.phase is QuizPhase.RESULTS
    assert state.quiz.results.fraction == "1/2"
    assert state.quiz.results.tier == "good"
    assert state.user["totalPoints"] == 110
    name, answers, submission_id = api.calls[-1]
    assert name == "grade_quiz"
    assert answers == ("true", "it sleeps")
    assert submission_id == state.quiz.submission_id


def test_grading_failure_returns_to_ready(reading, api):
    api.fail.add("grade_quiz")
    reading.show_quiz()
    reading.record_answer(0, "false")
    reading.record_answer(1, "sleeps")

    state = reading.submit_quiz()

    assert state.quiz.phase is QuizPhase.READY
    assert state.quiz.answers == ("false", "sleeps")


def test_resubmitting_after_grading_failure_reuses_submission_id(reading, api):
    api.fail.add("grade_quiz")
    reading.show_quiz()
    reading.record_answer(0, "false")
    reading.record_answer(1, "sleeps")
    reading.submit_quiz()
    first_id = reading.state.quiz.submission_id

    api.fail.discard("grade_quiz")
    state = reading.submit_quiz()

    assert state.quiz.phase is QuizPhase.RESULTS
    sent = [call[2] for call in api.calls if call[0] == "grade_quiz"]
    assert sent == [first_id, first_id]


def test_changed_answer_after_grading_failure_gets_new_submission_id(reading, api):
    api.fail.add("grade_quiz")
    reading.show_quiz()
    reading.record_answer(0, "false")
    reading.record_answer(1, "sleeps")
    reading.submit_quiz()
    reading.record_answer(1, "sleeps")
    reading.record_answer(0, "true")

    api.fail.discard("grade_quiz")
    reading.submit_quiz()

    first, second = [call[2] for call in api.calls if call[0] == "grade_quiz"]
    assert first != second


def test_saving_requires_sign_in(reading, api):
    assert reading.save_story() is None
    assert reading.save_word("gato") is None
    assert "save_story" not in api.names()


def test_save_story_and_word(reading, api):
    reading.refresh_user()

    assert reading.save_story()["id"] == "abc"
    assert reading.save_word("¡Gato!")["word"] == "gato"
    assert api.calls[-1] == ("save_word", "gato", "cat", "es")


def test_error_banner_expiry(session):
    session.generate_story("es", "")
    error = session.state.error

    assert session.expire_errors(now=error.expires_at - 1).error is error
    assert session.expire_errors(now=error.expires_at).error is None


def test_close_releases_audio(reading):
    resource = reading.toggle_audio().audio.resource
    reading.close()
    assert not os.path.exists(resource)
