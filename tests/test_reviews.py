#!/usr/bin/env python3
"""
Unit tests for community reviews and per-game rating stats.

Run with:
    python -m pytest tests/test_reviews.py
"""
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from database import Game, LibraryEntry
from gameshelf.repositories import LibraryRepository, UserRepository
from gameshelf.services import ReviewService, UserService


def _make_session():
    engine = database.make_engine('sqlite://')
    database.init_db(engine)
    return database.make_session_factory(engine)()


class TestReviewService(unittest.TestCase):

    def setUp(self):
        self.db = _make_session()
        self.service = ReviewService(LibraryRepository())
        users = UserService(UserRepository())
        self.users = [users.register(self.db, f'{name}@example.com', name, 'password123')
                      for name in ('alice', 'bob', 'carol')]
        self.db.add(Game(id=10, name='Hades'))
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def _entry(self, user, **fields):
        self.db.add(LibraryEntry(user_id=user.id, game_id=10, **fields))
        self.db.commit()

    def test_no_entries(self):
        self.assertEqual(self.service.for_game(self.db, 10), [])
        stats = self.service.game_stats(self.db, 10)
        self.assertEqual(stats['totalRatings'], 0)
        self.assertIsNone(stats['averageRating'])
        self.assertEqual(sum(stats['ratingDistribution'].values()), 0)

    def test_only_non_empty_reviews_listed(self):
        alice, bob, carol = self.users
        self._entry(alice, personal_rating=9.0, review='Best roguelike', status='completed')
        self._entry(bob, personal_rating=7.0, review='   ')
        self._entry(carol)
        reviews = self.service.for_game(self.db, 10)
        self.assertEqual(len(reviews), 1)
        self.assertEqual(reviews[0]['username'], 'alice')
        self.assertEqual(reviews[0]['rating'], 9.0)
        self.assertEqual(reviews[0]['status'], 'completed')

    def test_game_stats(self):
        alice, bob, carol = self.users
        self._entry(alice, personal_rating=9.0, review='Great')
        self._entry(bob, personal_rating=7.5)
        self._entry(carol)
        stats = self.service.game_stats(self.db, 10)
        self.assertEqual(stats['gameId'], 10)
        self.assertEqual(stats['totalReviews'], 1)
        self.assertEqual(stats['totalRatings'], 2)
        self.assertEqual(stats['averageRating'], 8.25)
        self.assertEqual(stats['ratingDistribution']['9'], 1)
        self.assertEqual(stats['ratingDistribution']['7'], 1)


if __name__ == '__main__':
    unittest.main()
