#!/usr/bin/env python3
"""
Database models and configuration for GameShelf.

Declares the four persistent entities (users, games, library entries and
follows) and the helpers that build an engine and a session factory for a
given database URL.  Nothing here opens a connection at import time: the
web process builds its engine once at start-up and hands the session
factory to the services that need it.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, Enum, Float, ForeignKey,
    Integer, String, Text, UniqueConstraint, create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

logger = logging.getLogger('gameshelf.database')

DEFAULT_DATABASE_URL = 'sqlite:///gameshelf.db'

# Play statuses a library entry may be in.  The first one is the default.
LIBRARY_STATUSES = (
    'plan-to-play',
    'playing',
    'completed',
    'on-hold',
    'dropped',
    'abandoned',
)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value is not None else None


class User(Base):
    """Registered account.  Never hard-deleted; see ``is_active``."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(128), unique=True, nullable=False, index=True)
    username = Column(String(32), unique=True, nullable=False, index=True)
    password_hash = Column(String(256), nullable=False)
    bio = Column(String(500), nullable=True)
    avatar = Column(String(500), nullable=True)
    preferences = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    library_entries = relationship("LibraryEntry", back_populates="user")

    def to_dict(self, include_email: bool = False) -> dict:
        """Public representation.  The password hash is never included."""
        data = {
            'id': self.id,
            'username': self.username,
            'bio': self.bio,
            'avatar': self.avatar,
            'preferences': self.preferences or {},
            'isActive': bool(self.is_active),
            'createdAt': _iso(self.created_at),
        }
        if include_email:
            data['email'] = self.email
            data['lastLoginAt'] = _iso(self.last_login_at)
        return data

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"


class Game(Base):
    """Catalog item cached locally.  ``id`` is the RAWG id."""
    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint('rating IS NULL OR (rating >= 0 AND rating <= 10)',
                        name='ck_games_rating_range'),
    )

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True)
    genres = Column(JSON, nullable=True)
    platforms = Column(JSON, nullable=True)
    release_date = Column(DateTime, nullable=True)
    rating = Column(Float, nullable=True)
    background_image = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    metacritic = Column(Integer, nullable=True)
    developers = Column(JSON, nullable=True)
    publishers = Column(JSON, nullable=True)
    website = Column(String(500), nullable=True)
    last_synced_at = Column(DateTime, nullable=True, default=utcnow)

    library_entries = relationship("LibraryEntry", back_populates="game")

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'released': self.release_date.date().isoformat() if self.release_date else None,
            'background_image': self.background_image,
            'rating': self.rating,
            'metacritic': self.metacritic,
            'platforms': list(self.platforms or []),
            'genres': list(self.genres or []),
            'developers': list(self.developers or []),
            'publishers': list(self.publishers or []),
            'website': self.website,
        }

    def __repr__(self):
        return f"<Game(id={self.id}, name='{self.name}')>"


class LibraryEntry(Base):
    """One user's relationship to one game."""
    __tablename__ = "library_entries"
    __table_args__ = (
        UniqueConstraint('user_id', 'game_id', name='uq_library_entry_user_game'),
        CheckConstraint('personal_rating IS NULL OR (personal_rating >= 0 AND personal_rating <= 10)',
                        name='ck_library_entry_rating_range'),
        CheckConstraint('completion_percentage IS NULL OR '
                        '(completion_percentage >= 0 AND completion_percentage <= 100)',
                        name='ck_library_entry_completion_range'),
        CheckConstraint('difficulty IS NULL OR (difficulty >= 1 AND difficulty <= 5)',
                        name='ck_library_entry_difficulty_range'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    status = Column(Enum(*LIBRARY_STATUSES, name='library_status', native_enum=False,
                         create_constraint=True, length=20),
                    nullable=False, default=LIBRARY_STATUSES[0])
    personal_rating = Column(Float, nullable=True)
    review = Column(Text, nullable=True)
    hours_played = Column(Float, nullable=True)
    completion_percentage = Column(Float, nullable=True)
    difficulty = Column(Integer, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    last_played_at = Column(DateTime, nullable=True)
    is_favorite = Column(Boolean, nullable=False, default=False)
    is_recommended = Column(Boolean, nullable=True)
    play_count = Column(Integer, nullable=False, default=0)
    tags = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="library_entries")
    game = relationship("Game", back_populates="library_entries")

    def __repr__(self):
        return (f"<LibraryEntry(user_id={self.user_id}, game_id={self.game_id}, "
                f"status='{self.status}')>")


class Follow(Base):
    """Directed follow edge between two users."""
    __tablename__ = "follows"

    follower_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    followee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    follower = relationship("User", foreign_keys=[follower_id])
    followee = relationship("User", foreign_keys=[followee_id])


def make_engine(database_url: str = DEFAULT_DATABASE_URL, echo: bool = False):
    """Create an engine for *database_url*.

    SQLite connections are shared across Flask's worker threads, so
    ``check_same_thread`` is disabled for them.
    """
    kwargs = {'echo': echo}
    if database_url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}
    else:
        kwargs['pool_pre_ping'] = True
    return create_engine(database_url, **kwargs)


def make_session_factory(engine):
    """Return a ``sessionmaker`` bound to *engine*."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine) -> bool:
    """Create all tables that do not exist yet."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables initialized successfully")
        return True
    except Exception as e:
        logger.error("Failed to initialize database: %s", e)
        return False
