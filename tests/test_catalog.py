#!/usr/bin/env python3
"""
Unit tests for catalog_client.RawgClient and the catalog service.

HTTP calls are mocked on the client's requests session.

Run with:
    python -m pytest tests/test_catalog.py
"""
import os
import sys
import unittest
from datetime import datetime
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from catalog_client import RELATED_LIMIT, RawgClient, normalize_game
from database import Game
from gameshelf.exceptions import NotFound, UpstreamUnavailable, ValidationError
from gameshelf.repositories import GameRepository
from gameshelf.services import CatalogService


RAW_GAME = {
    'id': 3498,
    'name': 'Grand Theft Auto V',
    'slug': 'grand-theft-auto-v',
    'released': '2013-09-17',
    'rating': 4.47,
    'ratings_count': 6500,
    'metacritic': 92,
    'background_image': 'https://media.rawg.io/gta5.jpg',
    'description_raw': 'Rockstar Games went bigger.',
    'platforms': [{'platform': {'id': 4, 'name': 'PC'}},
                  {'platform': {'id': 187, 'name': 'PlayStation 5'}}],
    'genres': [{'id': 4, 'name': 'Action'}, {'id': 3, 'name': 'Adventure'}],
    'developers': [{'name': 'Rockstar North'}],
    'publishers': [{'name': 'Rockstar Games'}],
    'esrb_rating': {'id': 4, 'name': 'Mature'},
    'website': 'http://www.rockstargames.com/V/',
}


def _response(status=200, payload=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload if payload is not None else {}
    return resp


def _make_session():
    engine = database.make_engine('sqlite://')
    database.init_db(engine)
    return database.make_session_factory(engine)()


# ===========================================================================
# normalize_game
# ===========================================================================

class TestNormalizeGame(unittest.TestCase):

    def test_flattens_nested_lists(self):
        game = normalize_game(RAW_GAME)
        self.assertEqual(game['platforms'], ['PC', 'PlayStation 5'])
        self.assertEqual(game['genres'], ['Action', 'Adventure'])
        self.assertEqual(game['developers'], ['Rockstar North'])
        self.assertEqual(game['publishers'], ['Rockstar Games'])
        self.assertEqual(game['esrbRating'], 'Mature')
        self.assertEqual(game['description'], 'Rockstar Games went bigger.')
        self.assertEqual(game['ratingsCount'], 6500)

    def test_normalized_record_passes_through(self):
        once = normalize_game(RAW_GAME)
        self.assertEqual(normalize_game(once), once)

    def test_missing_lists_become_empty(self):
        game = normalize_game({'id': 1, 'name': 'Bare'})
        self.assertEqual(game['platforms'], [])
        self.assertIsNone(game['website'])


# ===========================================================================
# RawgClient
# ===========================================================================

class TestRawgClient(unittest.TestCase):

    def setUp(self):
        self.client = RawgClient('test-key', timeout=3)

    def test_search_builds_pagination(self):
        payload = {'count': 25, 'results': [RAW_GAME]}
        with patch.object(self.client.session, 'get', return_value=_response(200, payload)) as get:
            result = self.client.search('gta', page=2, page_size=12)
        self.assertEqual(result['games'][0]['name'], 'Grand Theft Auto V')
        self.assertEqual(result['pagination'],
                         {'page': 2, 'pageSize': 12, 'total': 25, 'totalPages': 3})
        _, kwargs = get.call_args
        self.assertEqual(kwargs['params']['key'], 'test-key')
        self.assertEqual(kwargs['params']['search'], 'gta')
        self.assertEqual(kwargs['timeout'], 3)

    def test_empty_search(self):
        with patch.object(self.client.session, 'get',
                          return_value=_response(200, {'count': 0, 'results': []})):
            result = self.client.search('zzzz')
        self.assertEqual(result['games'], [])
        self.assertEqual(result['pagination']['totalPages'], 0)

    def test_timeout_is_upstream_unavailable(self):
        with patch.object(self.client.session, 'get', side_effect=requests.Timeout()):
            with self.assertRaises(UpstreamUnavailable) as ctx:
                self.client.search('gta')
        self.assertTrue(ctx.exception.to_dict()['retryable'])

    def test_connection_error_is_upstream_unavailable(self):
        with patch.object(self.client.session, 'get', side_effect=requests.ConnectionError()):
            with self.assertRaises(UpstreamUnavailable):
                self.client.get_details(3498)

    def test_404_is_not_found(self):
        with patch.object(self.client.session, 'get', return_value=_response(404)):
            with self.assertRaises(NotFound):
                self.client.get_details(999999)

    def test_server_error_is_upstream_unavailable(self):
        with patch.object(self.client.session, 'get', return_value=_response(502)):
            with self.assertRaises(UpstreamUnavailable):
                self.client.get_details(3498)

    def test_invalid_json_is_upstream_unavailable(self):
        resp = _response(200)
        resp.json.side_effect = ValueError('not json')
        with patch.object(self.client.session, 'get', return_value=resp):
            with self.assertRaises(UpstreamUnavailable):
                self.client.get_details(3498)

    def test_missing_api_key(self):
        client = RawgClient('')
        with patch.object(client.session, 'get') as get:
            with self.assertRaises(UpstreamUnavailable):
                client.search('gta')
        get.assert_not_called()

    def test_related_prefers_series(self):
        series = {'results': [dict(RAW_GAME, id=i) for i in range(1, 10)]}
        with patch.object(self.client.session, 'get', return_value=_response(200, series)) as get:
            related = self.client.get_related(3498)
        self.assertEqual(len(related), RELATED_LIMIT)
        self.assertEqual(get.call_count, 1)

    def test_related_falls_back_to_genres(self):
        similar = {'results': [RAW_GAME, dict(RAW_GAME, id=28, name='Red Dead Redemption 2')]}
        responses = [_response(200, {'results': []}),
                     _response(200, RAW_GAME),
                     _response(200, similar)]
        with patch.object(self.client.session, 'get', side_effect=responses) as get:
            related = self.client.get_related(3498)
        self.assertEqual([g['id'] for g in related], [28])
        params = get.call_args[1]['params']
        self.assertEqual(params['genres'], 'action,adventure')
        self.assertEqual(params['ordering'], '-rating')

    def test_related_swallows_failures(self):
        with patch.object(self.client.session, 'get', side_effect=requests.Timeout()):
            self.assertEqual(self.client.get_related(3498), [])


# ===========================================================================
# CatalogService
# ===========================================================================

class TestCatalogService(unittest.TestCase):

    def setUp(self):
        self.db = _make_session()
        self.client = MagicMock()
        self.service = CatalogService(self.client, GameRepository())

    def tearDown(self):
        self.db.close()

    def test_search_requires_query(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.search('   ')
        self.assertIn('query', ctx.exception.fields)
        self.client.search.assert_not_called()

    def test_search_page_size_bounds(self):
        with self.assertRaises(ValidationError):
            self.service.search('gta', page_size=41)
        with self.assertRaises(ValidationError):
            self.service.search('gta', page=0)

    def test_search_delegates(self):
        self.client.search.return_value = {'games': [], 'pagination': {}}
        self.service.search(' gta ', page=1, page_size=20)
        self.client.search.assert_called_once_with('gta', page=1, page_size=20)

    def test_to_game_fields(self):
        fields = CatalogService.to_game_fields(RAW_GAME)
        self.assertEqual(fields['release_date'], datetime(2013, 9, 17))
        self.assertEqual(fields['genres'], ['Action', 'Adventure'])
        self.assertEqual(fields['metacritic'], 92)

    def test_out_of_range_rating_dropped(self):
        self.assertIsNone(CatalogService.to_game_fields(dict(RAW_GAME, rating=42))['rating'])
        self.assertIsNone(CatalogService.to_game_fields(dict(RAW_GAME, released='soon'))['release_date'])

    def test_sync_is_idempotent(self):
        first = self.service.sync(self.db, RAW_GAME)
        second = self.service.sync(self.db, dict(RAW_GAME, name='Renamed'))
        self.assertIs(first, second)
        self.assertEqual(self.db.query(Game).count(), 1)
        self.assertEqual(second.name, 'Grand Theft Auto V')

    def test_sync_refresh_overwrites(self):
        self.service.sync(self.db, RAW_GAME)
        game = self.service.sync(self.db, dict(RAW_GAME, name='GTA V Enhanced'), refresh=True)
        self.assertEqual(game.name, 'GTA V Enhanced')
        self.assertEqual(game.id, 3498)

    def test_sync_requires_name(self):
        with self.assertRaises(ValidationError):
            self.service.sync(self.db, {'id': 5})

    def test_resolve_id(self):
        self.assertEqual(CatalogService.resolve_id('42'), 42)
        self.assertEqual(CatalogService.resolve_id({'id': 7}), 7)
        self.assertEqual(CatalogService.resolve_id(5.0), 5)
        for bad in (None, 'abc', 0, -3, True, 3.7, {'id': 3.7}, '3.7'):
            with self.assertRaises(ValidationError):
                CatalogService.resolve_id(bad)

    def test_refresh_fetches_details(self):
        self.service.sync(self.db, RAW_GAME)
        self.client.get_details.return_value = normalize_game(dict(RAW_GAME, metacritic=97))
        game = self.service.refresh(self.db, 3498)
        self.assertEqual(game.metacritic, 97)
        self.client.get_details.assert_called_once_with(3498)


if __name__ == '__main__':
    unittest.main()
