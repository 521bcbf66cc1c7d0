"""
Story Reader - Flask Application
Graded-reading stories with word glosses, audio, quizzes and saved progress.
"""
import logging
import os

import click
from flask import Flask, Response, render_template, request, redirect, url_for, session, jsonify, current_app
from flask_cors import CORS
from sqlalchemy.exc import IntegrityError

from .config import config
from .languages import ValidationError, get_grade_config, get_language_config, list_options
from .models import db, SavedStory, VocabularyEntry, QuizScore
from .quiz_types import parse_questions
from .services.gemini_client import GenerationError
from .services.quiz_service import generate_quiz, grade_quiz
from .services.story_generator import generate_story, translate_word
from .services.tts_service import SpeechError, get_tts_service
from .tokenizer import annotate_story
from .utils import (
    login_required,
    get_current_user,
    find_or_create_user,
    find_recorded_score,
    record_quiz_score,
)

# Flask-Dance compares granted scopes strictly; Google expands "email"/"profile".
os.environ.setdefault('OAUTHLIB_RELAX_TOKEN_SCOPE', '1')

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(config[os.getenv('FLASK_ENV', 'development')])

logging.basicConfig(
    level=app.config.get('LOG_LEVEL', 'INFO'),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

# Initialize extensions
db.init_app(app)
CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ALLOWED_ORIGINS']}}, supports_credentials=True)


def google_sign_in_enabled() -> bool:
    return bool(app.config.get('GOOGLE_OAUTH_CLIENT_ID') and app.config.get('GOOGLE_OAUTH_CLIENT_SECRET'))


# Google OAuth blueprint (optional): /auth/google and /auth/google/callback
if google_sign_in_enabled():
    from flask_dance.contrib.google import make_google_blueprint

    google_bp = make_google_blueprint(
        scope=["openid", "email", "profile"],
        login_url="/google",
        authorized_url="/google/callback",
        redirect_to="auth_complete",
    )
    app.register_blueprint(google_bp, url_prefix="/auth")
else:
    @app.route('/auth/google')
    def google_sign_in_unavailable():
        """Sign-in requested while no OAuth client is configured."""
        return jsonify({'error': 'Google sign-in is not configured'}), 503


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _validated_language(value) -> str:
    return get_language_config(value).code


# ============================================================================
# DATABASE
# ============================================================================

def init_database():
    """Create all tables."""
    with app.app_context():
        db.create_all()
        current_app.logger.info("[DATABASE] Initialized successfully")


@app.cli.command('init-db')
def init_db_command():
    """Create database tables."""
    init_database()
    click.echo('Database initialized.')


# ============================================================================
# AUTHENTICATION ROUTES
# ============================================================================

@app.route('/auth/complete')
def auth_complete():
    """After Google OAuth: create/find user, set session, redirect home."""
    if not google_sign_in_enabled():
        return redirect(url_for('index'))

    from flask_dance.contrib.google import google

    if not google.authorized:
        return redirect(url_for('google.login'))

    resp = google.get("/oauth2/v2/userinfo")
    if not resp.ok:
        current_app.logger.error("Google userinfo request failed: %s", resp.status_code)
        return redirect(url_for('index'))

    info = resp.json()
    google_id = str(info.get('id') or info.get('sub') or '')
    email = (info.get('email') or '').strip().lower()
    if not google_id or not email:
        current_app.logger.error("Google userinfo missing id or email")
        return redirect(url_for('index'))

    user = find_or_create_user(google_id, email, info.get('name') or '', info.get('picture'))
    session['user_id'] = user.id
    session.permanent = True
    current_app.logger.info("User %s signed in", user.id)
    return redirect(url_for('index'))


@app.route('/auth/logout')
def logout():
    """Log out the user."""
    session.clear()
    return redirect(url_for('index'))


@app.route('/api/auth/status')
def auth_status():
    user = get_current_user()
    return jsonify({
        'authenticated': user is not None,
        'user': user.to_dict() if user else None,
        'signInAvailable': google_sign_in_enabled(),
    })


# ============================================================================
# READING PAGES
# ============================================================================

@app.route('/')
def index():
    """Home page with the language and grade selectors."""
    return render_template(
        'index.html',
        options=list_options(),
        user=get_current_user(),
        sign_in_available=google_sign_in_enabled(),
    )


@app.route('/read', methods=['POST'])
def read_story():
    """Generate a story from the home form and render it annotated."""
    language = request.form.get('language', '')
    grade_level = request.form.get('grade_level', '')
    try:
        result = generate_story(language, grade_level)
    except ValidationError as e:
        return render_template('index.html', options=list_options(), user=get_current_user(),
                               sign_in_available=google_sign_in_enabled(), error=str(e)), 400
    except GenerationError as e:
        current_app.logger.error("Error generating story: %s", e)
        return render_template('index.html', options=list_options(), user=get_current_user(),
                               sign_in_available=google_sign_in_enabled(),
                               error='Sorry, there was an error generating your story. Please try again.'), 500

    return render_template(
        'story.html',
        title=None,
        paragraphs=annotate_story(result['story'], result['language'], result['translations']),
        language=get_language_config(result['language']),
        grade_level=result['gradeLevel'],
        user=get_current_user(),
    )


@app.route('/stories/<story_id>')
def view_saved_story(story_id):
    user = get_current_user()
    if not user:
        return redirect(url_for('index'))
    story = SavedStory.query.filter_by(id=story_id, user_id=user.id).first()
    if story is None:
        return render_template('errors/404.html'), 404
    return render_template(
        'story.html',
        title=story.title,
        paragraphs=annotate_story(story.content, story.language, story.translations or {}),
        language=get_language_config(story.language),
        grade_level=story.grade_level,
        user=user,
    )


# ============================================================================
# STORY, TRANSLATION AND AUDIO API
# ============================================================================

@app.route('/api/options')
def api_options():
    return jsonify(list_options())


@app.route('/api/generate-story', methods=['POST'])
def api_generate_story():
    data = _json_body()
    try:
        result = generate_story(data.get('language'), data.get('gradeLevel'))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except GenerationError as e:
        current_app.logger.error("Error generating story: %s", e)
        return jsonify({'error': 'Failed to generate story'}), 500
    return jsonify(result)


@app.route('/api/translate', methods=['POST'])
def api_translate():
    data = _json_body()
    word = (data.get('word') or '').strip()
    if not word:
        return jsonify({'error': 'Word is required'}), 400
    try:
        language = _validated_language(data.get('language'))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'translation': translate_word(word, language)})


@app.route('/api/text-to-speech', methods=['POST'])
def api_text_to_speech():
    data = _json_body()
    text = (data.get('text') or '').strip()
    if not text or not data.get('language'):
        return jsonify({'error': 'Text and language are required'}), 400
    try:
        audio = get_tts_service().synthesize(text, _validated_language(data.get('language')))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except SpeechError as e:
        current_app.logger.error("Error generating speech: %s", e)
        return jsonify({'error': 'Failed to generate audio'}), 500

    return Response(
        audio,
        mimetype='audio/mpeg',
        headers={
            'Content-Length': str(len(audio)),
            'Cache-Control': f"public, max-age={app.config['AUDIO_CACHE_SECONDS']}",
        },
    )


# ============================================================================
# QUIZ API
# ============================================================================

@app.route('/api/generate-quiz', methods=['POST'])
def api_generate_quiz():
    data = _json_body()
    story = (data.get('story') or '').strip()
    if not story:
        return jsonify({'error': 'Story is required'}), 400
    try:
        questions = generate_quiz(story, _validated_language(data.get('language')))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except GenerationError as e:
        current_app.logger.error("Error generating quiz: %s", e)
        return jsonify({'error': 'Failed to generate quiz'}), 500
    return jsonify({'questions': [q.to_dict() for q in questions]})


def _duplicate_submission(recorded, user):
    current_app.logger.warning(
        "Duplicate quiz submission %s for user %s; points not re-awarded", recorded.submission_id, user.id
    )
    return jsonify({
        'score': recorded.score,
        'total': recorded.total,
        'results': recorded.results or [],
        'pointsEarned': recorded.points_earned,
        'totalPoints': user.total_points,
        'duplicate': True,
    })


@app.route('/api/grade-quiz', methods=['POST'])
def api_grade_quiz():
    """Grade answers; signed-in users also earn points and a history row."""
    data = _json_body()
    answers = data.get('answers')
    try:
        questions = parse_questions(data.get('questions'))
    except ValueError as e:
        return jsonify({'error': f'Invalid questions: {e}'}), 400
    if not isinstance(answers, list) or len(answers) != len(questions):
        return jsonify({'error': 'An answer is required for every question'}), 400

    grade_level = data.get('gradeLevel')
    try:
        language = _validated_language(data.get('language'))
        if grade_level is not None:
            get_grade_config(grade_level)
            grade_level = str(grade_level).strip().upper()
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    user = get_current_user()
    submission_id = str(data.get('submissionId') or '').strip() or None
    if user is not None:
        recorded = find_recorded_score(user.id, submission_id)
        if recorded is not None:
            return _duplicate_submission(recorded, user)

    try:
        graded = grade_quiz(questions, answers, language, story=data.get('story'))
    except GenerationError as e:
        current_app.logger.error("Error grading quiz: %s", e)
        return jsonify({'error': 'Failed to grade quiz'}), 500

    graded['pointsEarned'] = 0
    graded['totalPoints'] = None
    if user is not None:
        points = graded['score'] * app.config['POINTS_PER_CORRECT_ANSWER']
        try:
            record_quiz_score(
                user,
                language=language,
                grade_level=grade_level,
                score=graded['score'],
                total=graded['total'],
                points=points,
                submission_id=submission_id,
                results=graded['results'],
            )
        except IntegrityError:
            # the same submission was recorded by a concurrent request
            db.session.rollback()
            recorded = find_recorded_score(user.id, submission_id)
            if recorded is None:
                raise
            return _duplicate_submission(recorded, user)
        graded['pointsEarned'] = points
        graded['totalPoints'] = user.total_points
    return jsonify(graded)


# ============================================================================
# SAVED STORIES, VOCABULARY AND SCORES API
# ============================================================================

@app.route('/api/stories', methods=['POST'])
@login_required
def api_save_story():
    user = get_current_user()
    data = _json_body()
    content = (data.get('story') or '').strip()
    if not content:
        return jsonify({'error': 'Story is required'}), 400
    try:
        language = _validated_language(data.get('language'))
        get_grade_config(data.get('gradeLevel'))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    translations = data.get('translations')
    story = SavedStory(
        user_id=user.id,
        title=SavedStory.make_title(content),
        content=content,
        language=language,
        grade_level=str(data.get('gradeLevel')).strip().upper(),
        translations=translations if isinstance(translations, dict) else {},
    )
    db.session.add(story)
    db.session.commit()
    current_app.logger.info("User %s saved story %s", user.id, story.id)
    return jsonify({'story': story.to_dict()}), 201


@app.route('/api/stories')
@login_required
def api_list_stories():
    user = get_current_user()
    stories = (SavedStory.query.filter_by(user_id=user.id)
               .order_by(SavedStory.created_at.desc()).all())
    return jsonify({'stories': [s.to_dict(include_content=False) for s in stories]})


@app.route('/api/stories/<story_id>')
@login_required
def api_get_story(story_id):
    user = get_current_user()
    story = SavedStory.query.filter_by(id=story_id, user_id=user.id).first()
    if story is None:
        return jsonify({'error': 'Story not found'}), 404
    return jsonify({'story': story.to_dict()})


@app.route('/api/stories/<story_id>', methods=['DELETE'])
@login_required
def api_delete_story(story_id):
    user = get_current_user()
    story = SavedStory.query.filter_by(id=story_id, user_id=user.id).first()
    if story is None:
        return jsonify({'error': 'Story not found'}), 404
    db.session.delete(story)
    db.session.commit()
    return jsonify({'success': True})


@app.route('/api/vocabulary', methods=['POST'])
@login_required
def api_save_vocabulary():
    user = get_current_user()
    data = _json_body()
    word = (data.get('word') or '').strip().lower()
    if not word:
        return jsonify({'error': 'Word is required'}), 400
    try:
        language = _validated_language(data.get('language'))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    existing = VocabularyEntry.query.filter_by(user_id=user.id, word=word, language=language).first()
    if existing is not None:
        return jsonify({'entry': existing.to_dict(), 'created': False})

    entry = VocabularyEntry(
        user_id=user.id,
        word=word,
        translation=(data.get('translation') or '').strip() or None,
        language=language,
        context=(data.get('context') or '').strip() or None,
    )
    db.session.add(entry)
    db.session.commit()
    return jsonify({'entry': entry.to_dict(), 'created': True}), 201


@app.route('/api/vocabulary')
@login_required
def api_list_vocabulary():
    user = get_current_user()
    query = VocabularyEntry.query.filter_by(user_id=user.id)
    language = request.args.get('language')
    if language:
        try:
            query = query.filter_by(language=_validated_language(language))
        except ValidationError as e:
            return jsonify({'error': str(e)}), 400
    entries = query.order_by(VocabularyEntry.created_at.desc()).all()
    return jsonify({'vocabulary': [e.to_dict() for e in entries]})


@app.route('/api/vocabulary/<entry_id>', methods=['DELETE'])
@login_required
def api_delete_vocabulary(entry_id):
    user = get_current_user()
    entry = VocabularyEntry.query.filter_by(id=entry_id, user_id=user.id).first()
    if entry is None:
        return jsonify({'error': 'Word not found'}), 404
    db.session.delete(entry)
    db.session.commit()
    return jsonify({'success': True})


@app.route('/api/quiz-scores')
@login_required
def api_quiz_scores():
    user = get_current_user()
    scores = (QuizScore.query.filter_by(user_id=user.id)
              .order_by(QuizScore.created_at.desc()).limit(50).all())
    return jsonify({'scores': [s.to_dict() for s in scores], 'totalPoints': user.total_points})


@app.route('/health')
def health():
    """Health check for monitoring / load balancers."""
    return {'status': 'ok'}, 200


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.errorhandler(404)
def not_found(error):
    """404 error handler."""
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Not found'}), 404
    return render_template('errors/404.html'), 404


@app.errorhandler(500)
def internal_error(error):
    """500 error handler."""
    db.session.rollback()
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Internal server error'}), 500
    return render_template('errors/500.html'), 500


# ============================================================================
# INITIALIZATION
# ============================================================================

if __name__ == '__main__':
    init_database()
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 3000)), debug=True)
