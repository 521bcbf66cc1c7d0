import pytest

from app.story_reader import app as app_module
from app.story_reader.models import QuizScore, User, db
from app.story_reader.quiz_types import Question, QuestionType, parse_questions, score_banner
from app.story_reader.services.gemini_client import GenerationError


QUESTIONS = [
    {"question": "The cat eats fish.", "type": "true-false", "correctAnswer": "true"},
    {"question": "The dog is awake.", "type": "true-false", "correctAnswer": "false"},
    {"question": "What does the cat eat?", "type": "short-answer", "correctAnswer": "Fish"},
]


def _grade(client, answers, **extra):
    payload = {"questions": QUESTIONS, "answers": answers, "language": "es", "story": "El gato come pescado."}
    payload.update(extra)
    return client.post("/api/grade-quiz", json=payload)


def test_generate_quiz(client, gemini):
    gemini.json_responses.append({"questions": QUESTIONS})

    resp = client.post("/api/generate-quiz", json={"story": "El gato come pescado.", "language": "es"})

    assert resp.status_code == 200
    questions = resp.get_json()["questions"]
    assert [q["type"] for q in questions] == ["true-false", "true-false", "short-answer"]
    assert questions[2]["correctAnswer"] == "Fish"


def test_generate_quiz_rejects_bad_payload(client, gemini):
    gemini.json_responses.append({"questions": []})

    resp = client.post("/api/generate-quiz", json={"story": "El gato.", "language": "es"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to generate quiz"}


def test_generate_quiz_requires_story(client, gemini):
    assert client.post("/api/generate-quiz", json={"language": "es"}).status_code == 400
    assert gemini.calls == []


def test_true_false_grading_is_case_insensitive(client, gemini):
    gemini.json_responses.append({"correct": True, "feedback": "Nice!"})

    resp = _grade(client, ["TRUE", "False", "fish"])

    data = resp.get_json()
    assert resp.status_code == 200
    assert data["score"] == 3 and data["total"] == 3
    assert data["tier"] == "perfect"
    assert data["message"].startswith("Perfect score!")
    assert data["results"][2]["feedback"] == "Nice!"
    assert data["pointsEarned"] == 0
    assert data["totalPoints"] is None
    # only the short answer went to the model
    assert [kind for kind, _, _ in gemini.calls] == ["json"]


def test_string_verdicts_are_coerced(client, gemini):
    gemini.json_responses.append({"correct": "false", "feedback": "The cat eats fish."})

    data = _grade(client, ["true", "false", "milk"]).get_json()

    assert data["score"] == 2
    assert data["results"][2]["correct"] is False


def test_empty_short_answer_is_wrong_without_a_model_call(client, gemini):
    data = _grade(client, ["false", "true", "   "]).get_json()

    assert data["score"] == 0
    assert data["tier"] == "practice"
    assert data["results"][2]["feedback"] == "No answer given."
    assert gemini.calls == []


def test_grade_quiz_validates_answers(client, gemini):
    assert _grade(client, ["true"]).status_code == 400
    assert _grade(client, "true,false,fish").status_code == 400
    assert gemini.calls == []


def test_grade_quiz_validates_questions(client):
    bad = [{"question": "Q?", "type": "essay", "correctAnswer": "x"}]
    resp = client.post("/api/grade-quiz", json={"questions": bad, "answers": ["x"], "language": "es"})
    assert resp.status_code == 400


def test_grading_failure_is_500(client, gemini):
    gemini.json_responses.append(GenerationError("down"))

    resp = _grade(client, ["true", "false", "fish"])

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to grade quiz"}


def test_signed_in_user_earns_points_once_per_submission(auth_client, gemini, user):
    gemini.json_responses.append({"correct": False, "feedback": "Not quite."})

    first = _grade(auth_client, ["true", "false", "milk"], gradeLevel="3", submissionId="sub-1").get_json()

    assert first["pointsEarned"] == 20
    assert first["totalPoints"] == 20
    assert "duplicate" not in first

    again = _grade(auth_client, ["true", "false", "milk"], gradeLevel="3", submissionId="sub-1").get_json()

    assert again["duplicate"] is True
    assert again["score"] == 2
    assert again["totalPoints"] == 20
    assert len(gemini.calls) == 1
    assert QuizScore.query.filter_by(user_id=user.id).count() == 1
    assert db.session.get(User, user.id).total_points == 20


def test_concurrent_duplicate_submission_is_not_an_error(auth_client, gemini, user, monkeypatch):
    user.total_points = 20
    db.session.add(QuizScore(user_id=user.id, language="es", grade_level="3", score=2, total=3,
                             points_earned=20, submission_id="sub-race", results=[]))
    db.session.commit()
    gemini.json_responses.append({"correct": True})

    # the other request commits between our lookup and our insert
    lookups = []
    real_lookup = app_module.find_recorded_score

    def lookup_after_race(user_id, submission_id):
        lookups.append(submission_id)
        return None if len(lookups) == 1 else real_lookup(user_id, submission_id)

    monkeypatch.setattr(app_module, "find_recorded_score", lookup_after_race)

    resp = _grade(auth_client, ["true", "false", "fish"], gradeLevel="3", submissionId="sub-race")

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["duplicate"] is True
    assert data["score"] == 2
    assert data["totalPoints"] == 20
    assert lookups == ["sub-race", "sub-race"]
    assert QuizScore.query.filter_by(user_id=user.id).count() == 1
    assert db.session.get(User, user.id).total_points == 20

def test_quiz_score_history(auth_client, gemini):
    gemini.json_responses.append({"correct": True})
    _grade(auth_client, ["true", "false", "fish"], gradeLevel="k")

    data = auth_client.get("/api/quiz-scores").get_json()

    assert data["totalPoints"] == 30
    assert data["scores"][0]["gradeLevel"] == "K"
    assert data["scores"][0]["score"] == 3


@pytest.mark.parametrize("score, tier, opening", [
    (3, "perfect", "Perfect score!"),
    (2, "great", "Great job!"),
    (1, "good", "Good effort!"),
    (0, "practice", "Keep practicing!"),
])
def test_score_banner_thresholds(score, tier, opening):
    got_tier, message = score_banner(score, 3)
    assert got_tier == tier
    assert message.startswith(opening)


def test_score_banner_with_no_questions():
    assert score_banner(0, 0)[0] == "practice"


def test_question_from_dict_normalizes_answers():
    question = Question.from_dict({"question": "Is it?", "type": "true_false", "correctAnswer": True})

    assert question.type is QuestionType.TRUE_FALSE
    assert question.correct_answer == "true"
    assert question.type.input_kind == "toggle"
    assert QuestionType.SHORT_ANSWER.options == ()


def test_true_false_answer_must_be_true_or_false():
    with pytest.raises(ValueError):
        Question.from_dict({"question": "Is it?", "type": "true-false", "correctAnswer": "maybe"})


def test_parse_questions_accepts_bare_list():
    assert len(parse_questions(QUESTIONS)) == 3
    with pytest.raises(ValueError):
        parse_questions({"questions": "nope"})
