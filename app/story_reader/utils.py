"""Utility functions for the Flask application."""
from functools import wraps
from typing import Optional

from flask import jsonify, session

from .models import db, User, QuizScore, utcnow


def login_required(f):
    """Decorator to require login for an API route (401 JSON otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if get_current_user() is None:
            return jsonify({'error': 'Not authenticated'}), 401
        return f(*args, **kwargs)
    return decorated_function


def get_current_user() -> Optional[User]:
    """Get the currently logged-in user."""
    user_id = session.get('user_id')
    if user_id:
        return db.session.get(User, user_id)
    return None


def find_or_create_user(google_id: str, email: str, name: str = '',
                        picture: Optional[str] = None) -> User:
    """Upsert the account for a Google identity and stamp the login time."""
    user = User.query.filter_by(google_id=google_id).first()
    if user is None:
        user = User(
            google_id=google_id,
            email=email,
            name=name or email,
            profile_picture=picture,
        )
        db.session.add(user)
    else:
        user.email = email or user.email
        user.name = name or user.name
        user.profile_picture = picture or user.profile_picture
    user.last_login = utcnow()
    db.session.commit()
    return user


def find_recorded_score(user_id: int, submission_id: Optional[str]) -> Optional[QuizScore]:
    if not submission_id:
        return None
    return QuizScore.query.filter_by(user_id=user_id, submission_id=submission_id).first()


def record_quiz_score(user: User, *, language: str, grade_level: Optional[str], score: int,
                      total: int, points: int, submission_id: Optional[str] = None,
                      results=None) -> QuizScore:
    """Add points to the user and append a score history row."""
    row = QuizScore(
        user_id=user.id,
        language=language,
        grade_level=grade_level,
        score=score,
        total=total,
        points_earned=points,
        submission_id=submission_id or None,
        results=results,
    )
    user.total_points = (user.total_points or 0) + points
    db.session.add(row)
    db.session.commit()
    return row
