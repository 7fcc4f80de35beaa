"""Repository for locally cached catalog games."""
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError

from database import Game, utcnow
from .base import BaseRepository


class GameRepository(BaseRepository):
    """Reads and writes :class:`database.Game` rows keyed by catalog id."""

    def find(self, db, game_id: int) -> Optional[Game]:
        return db.get(Game, game_id)

    def get_or_create(self, db, game_id: int, fields: Dict, refresh: bool = False) -> Game:
        """Return the game with *game_id*, inserting it from *fields* if absent.

        Two requests may both miss the lookup and try to insert the same
        id; the loser's insert fails on the primary key, is rolled back,
        and the winner's row is returned instead.  With *refresh* an
        existing row has its metadata overwritten from *fields*.
        """
        game = self.find(db, game_id)
        if game is None:
            game = Game(id=game_id, **fields)
            db.add(game)
            try:
                db.commit()
                self._log.info("Cached game %s (%s)", game_id, fields.get('name'))
                return game
            except IntegrityError:
                db.rollback()
                self._log.debug("Game %s inserted concurrently; re-fetching", game_id)
                game = self.find(db, game_id)
                if game is None:
                    raise
        if refresh:
            for key, value in fields.items():
                setattr(game, key, value)
            game.last_synced_at = utcnow()
            self._commit(db)
        return game
