"""Business logic for a user's game library."""
import logging
from typing import Dict, List, Optional, Union

from database import LibraryEntry, utcnow
from ..exceptions import Conflict, NotFound
from ..repositories import LibraryRepository, UserRepository
from .status_rules import (
    DEFAULT_STATUS, apply_status_transition, check_timeline, play_duration_days,
    transition_timestamps, validate_entry_changes,
)

logger = logging.getLogger('gameshelf.library')


def _iso(value):
    return value.isoformat() if value is not None else None


def entry_to_dict(entry: LibraryEntry, include_game: bool = True) -> Dict:
    """Serialize *entry* (and optionally its game) for the JSON API."""
    data = {
        'userId': entry.user_id,
        'gameId': entry.game_id,
        'status': entry.status,
        'personalRating': entry.personal_rating,
        'review': entry.review,
        'hoursPlayed': entry.hours_played,
        'completionPercentage': entry.completion_percentage,
        'difficulty': entry.difficulty,
        'startedAt': _iso(entry.started_at),
        'completedAt': _iso(entry.completed_at),
        'lastPlayedAt': _iso(entry.last_played_at),
        'isFavorite': bool(entry.is_favorite),
        'isRecommended': entry.is_recommended,
        'playCount': entry.play_count or 0,
        'tags': list(entry.tags or []),
        'notes': entry.notes,
        'playDurationDays': play_duration_days(entry.started_at, entry.completed_at),
        'createdAt': _iso(entry.created_at),
        'updatedAt': _iso(entry.updated_at),
    }
    if include_game and entry.game is not None:
        data['game'] = entry.game.to_dict()
    return data


class LibraryService:
    """Adds, updates, removes and reads library entries.

    Rules
    -----
    * One entry per ``(user_id, game_id)``; a second add raises ``Conflict``.
    * New entries start as ``plan-to-play`` unless the caller says otherwise.
    * Updates are partial: only the supplied fields change.
    * Every field is validated before the entry is touched, so a rejected
      update leaves the stored entry exactly as it was.
    * A status change stamps ``started_at`` / ``completed_at`` through
      :func:`~gameshelf.services.status_rules.transition_timestamps`.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    """

    def __init__(self, library_repository: LibraryRepository,
                 user_repository: UserRepository, catalog_service) -> None:
        """
        Args:
            library_repository: Persistence for library entries.
            user_repository:    Used to check that the owning user exists.
            catalog_service:    A :class:`~gameshelf.services.CatalogService`
                                that materializes the referenced game.
        """
        self._repo = library_repository
        self._users = user_repository
        self._catalog = catalog_service

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, db, user_id: int, game: Union[int, Dict],
            initial_status: Optional[str] = None,
            fields: Optional[Dict] = None) -> LibraryEntry:
        """Add a game to *user_id*'s library.

        Args:
            db:             SQLAlchemy session.
            user_id:        Owner of the new entry.
            game:           A catalog id, or a full catalog record (dict with
                            at least ``id`` and ``name``).  A bare id that is
                            not cached locally is fetched from the catalog
                            before anything is written.
            initial_status: Status to start in (default ``plan-to-play``).
            fields:         Optional initial values for other editable fields.

        Returns:
            The new :class:`~database.LibraryEntry`.

        Raises:
            NotFound:            unknown or deactivated user, unknown game.
            Conflict:            the game is already in the library.
            ValidationError:     bad status or field values.
            UpstreamUnavailable: the catalog could not be reached.
        """
        changes = dict(fields or {})
        if initial_status is not None:
            changes['status'] = initial_status
        clean = validate_entry_changes(changes)
        status = clean.pop('status', DEFAULT_STATUS)

        user = self._users.find(db, user_id)
        if user is None or not user.is_active:
            raise NotFound(f"User {user_id} not found")

        game_id = self._catalog.resolve_id(game)
        if self._repo.find(db, user_id, game_id) is not None:
            raise Conflict('Game already exists in your library')

        game_row = self._catalog.materialize(db, game)

        entry = LibraryEntry(user_id=user_id, game_id=game_row.id,
                             status=DEFAULT_STATUS, is_favorite=False, play_count=0)
        for name, value in clean.items():
            setattr(entry, name, value)
        apply_status_transition(entry, status)
        check_timeline(entry.started_at, entry.completed_at)

        self._repo.create(db, entry)
        logger.info("User %s added game %s as %s", user_id, game_row.id, status)
        return entry

    def update(self, db, user_id: int, game_id: int, changes: Dict) -> LibraryEntry:
        """Apply a partial update to an existing entry.

        Raises:
            NotFound:        no entry for ``(user_id, game_id)``.
            ValidationError: any supplied field is invalid; nothing is written.
        """
        entry = self._repo.find(db, user_id, game_id)
        if entry is None:
            raise NotFound('Game not found in your library')
        if not changes:
            return entry

        clean = validate_entry_changes(changes)

        started_at = clean.pop('started_at', entry.started_at)
        completed_at = clean.pop('completed_at', entry.completed_at)
        new_status = clean.pop('status', entry.status)
        if new_status != entry.status:
            started_at, completed_at = transition_timestamps(
                entry.status, new_status, started_at, completed_at, utcnow())
        check_timeline(started_at, completed_at)

        old_status = entry.status
        for name, value in clean.items():
            setattr(entry, name, value)
        entry.started_at = started_at
        entry.completed_at = completed_at
        entry.status = new_status
        self._repo.save(db, entry)

        if new_status != old_status:
            logger.info("User %s moved game %s from %s to %s",
                        user_id, game_id, old_status, new_status)
        return entry

    def remove(self, db, user_id: int, game_id: int) -> None:
        """Delete the entry for ``(user_id, game_id)``.  Irreversible.

        Raises:
            NotFound: no such entry.
        """
        if not self._repo.delete(db, user_id, game_id):
            raise NotFound('Game not found in your library')
        logger.info("User %s removed game %s", user_id, game_id)

    def get(self, db, user_id: int, game_id: int) -> Optional[LibraryEntry]:
        """Return the entry, or ``None`` when the game is not in the library."""
        return self._repo.find(db, user_id, game_id)

    def list_for_user(self, db, user_id: int, status: Optional[str] = None,
                      favorites_only: bool = False) -> List[LibraryEntry]:
        """Return *user_id*'s entries, newest first.

        Raises:
            NotFound:        unknown user.
            ValidationError: *status* is not a known status.
        """
        if status is not None:
            validate_entry_changes({'status': status})
        if self._users.find(db, user_id) is None:
            raise NotFound(f"User {user_id} not found")
        return self._repo.for_user(db, user_id, status=status, favorites_only=favorites_only)

