"""Business logic bridging the external game catalog and the local ``games`` table."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Union

from catalog_client import normalize_game
from database import Game
from ..exceptions import ValidationError
from ..repositories import GameRepository

logger = logging.getLogger('gameshelf.catalog')

MAX_PAGE_SIZE = 40


def _parse_release(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d')
    except ValueError:
        return None


def _optional_int(value):
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class CatalogService:
    """Searches the catalog and keeps local :class:`~database.Game` rows in sync.

    The one invariant owned here is the idempotent upsert keyed by catalog
    id (:meth:`sync`), which :class:`LibraryService` relies on when a user
    adds a game.
    """

    def __init__(self, client, game_repository: GameRepository) -> None:
        """
        Args:
            client:          A :class:`catalog_client.RawgClient` (or any object
                             with ``search``, ``get_details`` and
                             ``get_related``).
            game_repository: Persistence for cached games.
        """
        self._client = client
        self._games = game_repository

    # ------------------------------------------------------------------
    # Remote catalog
    # ------------------------------------------------------------------

    def search(self, term: str, page: int = 1, page_size: int = 12) -> Dict[str, Any]:
        term = (term or '').strip()
        errors = {}
        if not term:
            errors['query'] = 'Query parameter is required'
        if page < 1:
            errors['page'] = 'page must be at least 1'
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            errors['page_size'] = f'page_size must be between 1 and {MAX_PAGE_SIZE}'
        if errors:
            raise ValidationError('Validation failed', fields=errors)
        return self._client.search(term, page=page, page_size=page_size)

    def details(self, game_id: int) -> Dict[str, Any]:
        return self._client.get_details(game_id)

    def related(self, game_id: int) -> List[Dict[str, Any]]:
        return self._client.get_related(game_id)

    # ------------------------------------------------------------------
    # Local sync
    # ------------------------------------------------------------------

    @staticmethod
    def to_game_fields(record: Dict[str, Any]) -> Dict[str, Any]:
        """Map a catalog record onto :class:`~database.Game` column values."""
        record = normalize_game(record)
        rating = record.get('rating')
        if not isinstance(rating, (int, float)) or isinstance(rating, bool) or not 0 <= rating <= 10:
            rating = None
        return {
            'name': str(record['name'])[:255],
            'slug': record.get('slug'),
            'genres': record.get('genres') or [],
            'platforms': record.get('platforms') or [],
            'release_date': _parse_release(record.get('released')),
            'rating': rating,
            'background_image': record.get('background_image'),
            'description': record.get('description'),
            'metacritic': _optional_int(record.get('metacritic')),
            'developers': record.get('developers') or [],
            'publishers': record.get('publishers') or [],
            'website': record.get('website'),
        }

    @staticmethod
    def resolve_id(game: Union[int, str, Dict[str, Any]]) -> int:
        """Return the catalog id of *game* (an id or a catalog record)."""
        raw = game.get('id') if isinstance(game, dict) else game
        if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
            raw = None
        try:
            game_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError('Validation failed', fields={'id': 'A numeric game id is required'})
        if game_id <= 0:
            raise ValidationError('Validation failed', fields={'id': 'A numeric game id is required'})
        return game_id

    def sync(self, db, record: Dict[str, Any], refresh: bool = False) -> Game:
        """Create-or-fetch the local row for *record*; idempotent per id.

        With *refresh* an existing row's metadata is overwritten.  The row's
        identity never changes.
        """
        game_id = self.resolve_id(record)
        if not record.get('name'):
            raise ValidationError('Validation failed', fields={'name': 'Game name is required'})
        return self._games.get_or_create(db, game_id, self.to_game_fields(record), refresh=refresh)

    def materialize(self, db, game: Union[int, str, Dict[str, Any]]) -> Game:
        """Return the local row for *game*, creating it if needed.

        A full record is synced directly.  A bare id is looked up locally
        first and only fetched from the catalog when absent, so an add for
        an already-cached game never depends on the catalog being up.
        """
        if isinstance(game, dict):
            return self.sync(db, game)
        game_id = self.resolve_id(game)
        existing = self._games.find(db, game_id)
        if existing is not None:
            return existing
        logger.info("Game %s not cached; fetching from catalog", game_id)
        return self.sync(db, self._client.get_details(game_id))

    def refresh(self, db, game_id: int) -> Game:
        """Re-fetch *game_id* from the catalog and overwrite the cached metadata."""
        return self.sync(db, self._client.get_details(game_id), refresh=True)
