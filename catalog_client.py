"""
catalog_client.py
=================
HTTP client for the RAWG game catalog (https://rawg.io/apidocs).

Every request carries a bounded timeout.  Failures are reported as typed
errors instead of empty results so callers can tell "the catalog is down"
apart from "that game does not exist":

* timeouts, connection errors, 5xx and unexpected 4xx responses raise
  :class:`~gameshelf.exceptions.UpstreamUnavailable` (retryable);
* a 404 for a specific game raises :class:`~gameshelf.exceptions.NotFound`.

Records returned by the client are normalized with :func:`normalize_game`
into flat dicts (platform, genre, developer and publisher names as plain
string lists).
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

import requests

from gameshelf.exceptions import GameShelfError, NotFound, UpstreamUnavailable

logger = logging.getLogger('gameshelf.catalog')

RELATED_LIMIT = 6


def _names(items, nested: Optional[str] = None) -> List[str]:
    """Flatten RAWG's ``[{"name": ...}]`` / ``[{"platform": {"name": ...}}]`` lists."""
    names: List[str] = []
    for item in items or []:
        if isinstance(item, str):
            names.append(item)
            continue
        if not isinstance(item, dict):
            continue
        if nested and isinstance(item.get(nested), dict):
            item = item[nested]
        name = item.get('name')
        if name:
            names.append(name)
    return names


def normalize_game(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Return the local shape of a RAWG game payload.

    Already-normalized records (plain string lists) pass through unchanged,
    so the function is safe to apply to client-supplied records as well.
    """
    esrb = raw.get('esrb_rating', raw.get('esrbRating'))
    if isinstance(esrb, dict):
        esrb = esrb.get('name')
    return {
        'id': raw.get('id'),
        'name': raw.get('name'),
        'slug': raw.get('slug'),
        'description': raw.get('description_raw') or raw.get('description'),
        'background_image': raw.get('background_image'),
        'rating': raw.get('rating'),
        'ratingsCount': raw.get('ratings_count', raw.get('ratingsCount')),
        'released': raw.get('released'),
        'platforms': _names(raw.get('platforms'), 'platform'),
        'genres': _names(raw.get('genres')),
        'developers': _names(raw.get('developers')),
        'publishers': _names(raw.get('publishers')),
        'website': raw.get('website') or None,
        'metacritic': raw.get('metacritic'),
        'esrbRating': esrb,
        'tags': _names(raw.get('tags'))[:10],
    }


class RawgClient:
    """Client for the RAWG REST API.

    Args:
        api_key:  RAWG API key.  Without one every call raises
                  ``UpstreamUnavailable``.
        timeout:  Per-request timeout in seconds.
        base_url: Override for the API root (tests, proxies).
    """

    BASE_URL = "https://api.rawg.io/api"

    def __init__(self, api_key: str, timeout: float = 10, base_url: Optional[str] = None) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip('/')
        self.session = requests.Session()
        self.session.headers.update({'User-Agent': 'GameShelf'})

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get(self, path: str, **params) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamUnavailable('Game catalog is not configured')
        params['key'] = self.api_key
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning("RAWG request to %s timed out after %ss", path, self.timeout)
            raise UpstreamUnavailable('Game catalog request timed out') from e
        except requests.RequestException as e:
            logger.error("RAWG request to %s failed: %s", path, e)
            raise UpstreamUnavailable('Game catalog is unavailable') from e

        if response.status_code == 404:
            raise NotFound('Game not found in catalog')
        if response.status_code >= 400:
            logger.error("RAWG returned HTTP %s for %s", response.status_code, path)
            raise UpstreamUnavailable(f'Game catalog returned HTTP {response.status_code}')
        try:
            return response.json()
        except ValueError as e:
            logger.error("RAWG returned a non-JSON body for %s", path)
            raise UpstreamUnavailable('Game catalog returned an invalid response') from e

    # ------------------------------------------------------------------
    # Catalog API
    # ------------------------------------------------------------------

    def search(self, term: str, page: int = 1, page_size: int = 12) -> Dict[str, Any]:
        """Search the catalog.

        Returns:
            ``{"games": [...], "pagination": {"page", "pageSize", "total",
            "totalPages"}}``.
        """
        data = self._get('/games', search=term, page=page, page_size=page_size)
        total = int(data.get('count') or 0)
        games = [normalize_game(g) for g in data.get('results') or []]
        logger.info("Found %d games for query %r", len(games), term)
        return {
            'games': games,
            'pagination': {
                'page': page,
                'pageSize': page_size,
                'total': total,
                'totalPages': math.ceil(total / page_size) if page_size else 0,
            },
        }

    def get_details(self, game_id: int) -> Dict[str, Any]:
        """Return the normalized record for one game."""
        return normalize_game(self._get(f'/games/{int(game_id)}'))

    def get_related(self, game_id: int) -> List[Dict[str, Any]]:
        """Games related to *game_id*.

        Prefers the game's series; otherwise the best-rated games sharing
        up to two of its genres.  Any catalog failure yields an empty list.
        """
        game_id = int(game_id)
        try:
            series = self._get(f'/games/{game_id}/game-series')
            results = series.get('results') or []
            if results:
                return [normalize_game(g) for g in results[:RELATED_LIMIT]]
        except GameShelfError as e:
            logger.info("Series lookup for %s failed (%s); using genres", game_id, e)

        try:
            genres = self.get_details(game_id)['genres'][:2]
            if not genres:
                return []
            similar = self._get('/games', genres=','.join(g.lower() for g in genres),
                                page_size=8, ordering='-rating')
        except GameShelfError as e:
            logger.warning("Related games for %s unavailable: %s", game_id, e)
            return []
        related = [normalize_game(g) for g in similar.get('results') or []
                   if g.get('id') != game_id]
        return related[:RELATED_LIMIT]
