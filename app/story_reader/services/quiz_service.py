"""Reading-comprehension quiz generation and grading."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from flask import current_app

from ..languages import get_language_config
from ..quiz_types import GradedAnswer, Question, QuestionType, parse_questions, score_banner
from .gemini_client import GeminiClient, GenerationError, get_gemini_client

QUIZ_SYSTEM_PROMPT = (
    "You are a reading teacher who writes short comprehension quizzes for language learners. "
    "Always return valid JSON that exactly follows the requested schema."
)

GRADER_SYSTEM_PROMPT = (
    "You grade short answers from language learners. Be lenient with spelling mistakes, "
    "synonyms and paraphrases as long as the meaning is right. Return strict JSON only."
)


def build_quiz_prompt(story: str, language_name: str) -> str:
    return (
        f"Read this {language_name} story and write a reading comprehension quiz about it.\n\n"
        f"STORY:\n{story}\n\n"
        "OUTPUT RULES:\n"
        "1. Return a JSON object with a single key \"questions\".\n"
        "2. Write exactly 3 questions, in this order: 2 true/false questions, then 1 short-answer question.\n"
        "3. Write the questions in English so the learner is tested on understanding, not on translation.\n"
        "4. Each question has keys: question, type (\"true-false\" or \"short-answer\"), correctAnswer.\n"
        "5. For true/false questions correctAnswer is the string \"true\" or \"false\".\n"
        "6. For the short-answer question correctAnswer is a brief expected answer.\n\n"
        "Strict JSON example:\n"
        '{"questions":[{"question":"The dog is brown.","type":"true-false","correctAnswer":"true"},'
        '{"question":"The story happens at night.","type":"true-false","correctAnswer":"false"},'
        '{"question":"Where does the dog sleep?","type":"short-answer","correctAnswer":"Under the table"}]}'
    )


def generate_quiz(story: str, language_code: str,
                  client: Optional[GeminiClient] = None) -> List[Question]:
    """Ask the model for a 2 true/false + 1 short-answer quiz about ``story``.

    Raises:
        GenerationError: model failure or a payload that does not parse into questions.
    """
    language = get_language_config(language_code)
    client = client or get_gemini_client()
    payload = client.generate_json(
        build_quiz_prompt(story, language.name),
        temperature=0.5,
        system_instruction=QUIZ_SYSTEM_PROMPT,
        max_output_tokens=1024,
    )
    try:
        questions = parse_questions(payload)
    except ValueError as exc:
        current_app.logger.error("Quiz payload rejected: %s - %s", exc, str(payload)[:500])
        raise GenerationError("Malformed quiz payload") from exc

    current_app.logger.info("Generated %s quiz questions (%s)", len(questions), language.code)
    return questions


def grade_short_answer(question: Question, answer: str, language_name: str,
                       story: Optional[str] = None,
                       client: Optional[GeminiClient] = None) -> GradedAnswer:
    client = client or get_gemini_client()
    context = f"STORY ({language_name}):\n{story}\n\n" if story else ""
    prompt = (
        f"{context}"
        f"QUESTION: {question.question}\n"
        f"EXPECTED ANSWER: {question.correct_answer}\n"
        f"STUDENT ANSWER: {answer}\n\n"
        "Decide whether the student's answer is correct. Accept answers with spelling errors, "
        "synonyms or different wording if the meaning matches the expected answer.\n"
        'Return JSON: {"correct": true or false, "feedback": "one short encouraging sentence"}'
    )
    verdict = client.generate_json(
        prompt,
        temperature=0.2,
        system_instruction=GRADER_SYSTEM_PROMPT,
        max_output_tokens=256,
    )
    if not isinstance(verdict, dict) or 'correct' not in verdict:
        current_app.logger.error("Short-answer verdict malformed: %s", str(verdict)[:300])
        raise GenerationError("Malformed grading payload")

    correct = verdict.get('correct')
    if isinstance(correct, str):
        correct = correct.strip().lower() in {'true', 'yes', '1'}
    return GradedAnswer(
        correct=bool(correct),
        user_answer=answer,
        correct_answer=question.correct_answer,
        feedback=str(verdict.get('feedback') or '').strip(),
    )


def grade_quiz(questions: Sequence[Question], answers: Sequence[Any], language_code: str,
               story: Optional[str] = None,
               client: Optional[GeminiClient] = None) -> Dict[str, Any]:
    """Grade every answer and summarize the score.

    True/false answers are compared case-insensitively; short answers are
    judged by the model.
    """
    language = get_language_config(language_code)
    if len(answers) != len(questions):
        raise ValueError('Answers must match questions')

    results: List[GradedAnswer] = []
    for question, raw_answer in zip(questions, answers):
        answer = str(raw_answer if raw_answer is not None else '').strip()
        exact = question.type.grade_exact(answer, question.correct_answer)
        if exact is not None:
            results.append(GradedAnswer(exact, answer, question.correct_answer))
        elif not answer:
            results.append(GradedAnswer(False, answer, question.correct_answer, 'No answer given.'))
        elif question.type is QuestionType.SHORT_ANSWER:
            results.append(grade_short_answer(question, answer, language.name, story, client=client))

    score = sum(1 for r in results if r.correct)
    tier, message = score_banner(score, len(questions))
    return {
        'score': score,
        'total': len(questions),
        'results': [r.to_dict() for r in results],
        'tier': tier,
        'message': message,
    }
