"""Repository for library entries (one row per user and game)."""
from typing import List, Optional

from database import Game, LibraryEntry, User
from .base import BaseRepository


class LibraryRepository(BaseRepository):
    """Reads and writes :class:`database.LibraryEntry` rows.

    The ``(user_id, game_id)`` unique constraint is the guard against
    duplicate entries; :meth:`create` surfaces its violation as
    ``Conflict``.
    """

    def find(self, db, user_id: int, game_id: int) -> Optional[LibraryEntry]:
        return (db.query(LibraryEntry)
                .filter(LibraryEntry.user_id == user_id,
                        LibraryEntry.game_id == game_id)
                .first())

    def create(self, db, entry: LibraryEntry) -> LibraryEntry:
        return self._add(db, entry, 'Game already exists in your library')

    def save(self, db, entry: LibraryEntry) -> LibraryEntry:
        self._commit(db)
        return entry

    def delete(self, db, user_id: int, game_id: int) -> bool:
        """Remove the entry.  Returns ``True`` if it existed."""
        entry = self.find(db, user_id, game_id)
        if entry is None:
            return False
        self._delete(db, entry)
        return True

    def for_user(self, db, user_id: int, status: Optional[str] = None,
                 favorites_only: bool = False) -> List[LibraryEntry]:
        """All entries of *user_id*, newest first, with their games loaded."""
        q = (db.query(LibraryEntry)
             .join(Game, LibraryEntry.game_id == Game.id)
             .filter(LibraryEntry.user_id == user_id))
        if status:
            q = q.filter(LibraryEntry.status == status)
        if favorites_only:
            q = q.filter(LibraryEntry.is_favorite.is_(True))
        return q.order_by(LibraryEntry.created_at.desc(), LibraryEntry.id.desc()).all()

    def for_game(self, db, game_id: int) -> List[LibraryEntry]:
        """All entries referencing *game_id*, with their users, newest update first."""
        return (db.query(LibraryEntry)
                .join(User, LibraryEntry.user_id == User.id)
                .filter(LibraryEntry.game_id == game_id)
                .order_by(LibraryEntry.updated_at.desc(), LibraryEntry.id.desc())
                .all())
