"""SQLAlchemy database models for the story reader."""
from datetime import datetime, timezone
from uuid import uuid4
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

TITLE_LENGTH = 50


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite connections for better concurrency."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.execute("PRAGMA busy_timeout=15000;")
        cursor.close()


def utcnow():
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def new_id():
    return uuid4().hex


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    """Account created on first Google sign-in."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True, index=True)
    google_id = db.Column(db.String(255), unique=True, index=True, nullable=False)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    profile_picture = db.Column(db.String(500), nullable=True)
    total_points = db.Column(db.Integer, default=0, nullable=False)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    stories = db.relationship('SavedStory', back_populates='user', cascade='all, delete-orphan')
    vocabulary = db.relationship('VocabularyEntry', back_populates='user', cascade='all, delete-orphan')
    scores = db.relationship('QuizScore', back_populates='user', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'profilePicture': self.profile_picture,
            'totalPoints': self.total_points,
            'lastLogin': _iso(self.last_login),
        }


class SavedStory(db.Model):
    """A generated story the user chose to keep."""
    __tablename__ = 'saved_stories'

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(64), nullable=False)
    content = db.Column(db.Text, nullable=False)
    language = db.Column(db.String(16), nullable=False)
    grade_level = db.Column(db.String(8), nullable=False)
    translations = db.Column(db.JSON, nullable=True)  # {word: gloss}
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship('User', back_populates='stories')

    def __repr__(self):
        return f'<SavedStory {self.id} user={self.user_id}>'

    @staticmethod
    def make_title(content: str) -> str:
        return (content or '')[:TITLE_LENGTH] + '...'

    def to_dict(self, include_content=True):
        data = {
            'id': self.id,
            'title': self.title,
            'language': self.language,
            'gradeLevel': self.grade_level,
            'createdAt': _iso(self.created_at),
        }
        if include_content:
            data['story'] = self.content
            data['translations'] = self.translations or {}
        return data


class VocabularyEntry(db.Model):
    """Word the user added to their vocabulary list."""
    __tablename__ = 'vocabulary_entries'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'word', 'language', name='uq_user_vocabulary_word'),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    word = db.Column(db.String(255), nullable=False, index=True)
    translation = db.Column(db.String(255), nullable=True)
    language = db.Column(db.String(16), nullable=False)
    context = db.Column(db.Text, nullable=True)  # sentence the word was found in
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship('User', back_populates='vocabulary')

    def __repr__(self):
        return f'<VocabularyEntry user={self.user_id} word={self.word}>'

    def to_dict(self):
        return {
            'id': self.id,
            'word': self.word,
            'translation': self.translation,
            'language': self.language,
            'context': self.context,
            'createdAt': _iso(self.created_at),
        }


class QuizScore(db.Model):
    """One graded quiz attempt."""
    __tablename__ = 'quiz_scores'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'submission_id', name='uq_user_quiz_submission'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    language = db.Column(db.String(16), nullable=False)
    grade_level = db.Column(db.String(8), nullable=True)
    score = db.Column(db.Integer, nullable=False)
    total = db.Column(db.Integer, nullable=False)
    points_earned = db.Column(db.Integer, default=0, nullable=False)
    submission_id = db.Column(db.String(64), nullable=True)
    results = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship('User', back_populates='scores')

    def __repr__(self):
        return f'<QuizScore user={self.user_id} {self.score}/{self.total}>'

    def to_dict(self):
        return {
            'id': self.id,
            'language': self.language,
            'gradeLevel': self.grade_level,
            'score': self.score,
            'total': self.total,
            'pointsEarned': self.points_earned,
            'createdAt': _iso(self.created_at),
        }
