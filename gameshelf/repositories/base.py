"""Repository base class used by all concrete repositories."""
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError

from ..exceptions import Conflict


class BaseRepository:
    """Provides session-scoped persistence helpers for one entity type.

    Repositories hold no session of their own: every method takes the
    caller's SQLAlchemy session as its first argument, so the caller (a
    Flask request or a test) controls the session lifecycle.

    Writes go through :meth:`_commit`, which rolls the session back when
    the database rejects the write on a uniqueness constraint and raises
    :class:`~gameshelf.exceptions.Conflict` in place of the driver error.
    """

    def __init__(self) -> None:
        self._log = logging.getLogger(f'gameshelf.repository.{type(self).__name__}')

    def _commit(self, db, conflict_message: str = 'Already exists') -> None:
        """Commit *db*, translating integrity violations into ``Conflict``."""
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            self._log.info("Integrity violation: %s", exc.orig)
            raise Conflict(conflict_message) from exc
        except Exception:
            db.rollback()
            raise

    def _add(self, db, obj: Any, conflict_message: str = 'Already exists') -> Any:
        """Insert *obj* and commit it."""
        db.add(obj)
        self._commit(db, conflict_message)
        return obj

    def _delete(self, db, obj: Any) -> None:
        db.delete(obj)
        self._commit(db)
