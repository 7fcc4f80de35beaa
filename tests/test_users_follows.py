#!/usr/bin/env python3
"""
Unit tests for user accounts and follows.

Run with:
    python -m pytest tests/test_users_follows.py
"""
import os
import sys
import unittest

from sqlalchemy.exc import IntegrityError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from database import Follow
from gameshelf.exceptions import (
    AuthenticationError, Conflict, NotFound, ValidationError,
)
from gameshelf.repositories import FollowRepository, UserRepository
from gameshelf.services import FollowService, UserService


def _make_session():
    engine = database.make_engine('sqlite://')
    database.init_db(engine)
    return database.make_session_factory(engine)()


class TestUserService(unittest.TestCase):

    def setUp(self):
        self.db = _make_session()
        self.service = UserService(UserRepository())

    def tearDown(self):
        self.db.close()

    def test_register_hashes_password(self):
        user = self.service.register(self.db, 'Alice@Example.com', 'alice', 'password123')
        self.assertEqual(user.email, 'alice@example.com')
        self.assertNotEqual(user.password_hash, 'password123')
        self.assertTrue(user.is_active)
        self.assertNotIn('password_hash', user.to_dict(include_email=True))

    def test_register_validation(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.register(self.db, 'not-an-email', 'a', 'short')
        self.assertEqual(set(ctx.exception.fields), {'email', 'username', 'password'})

    def test_register_non_string_fields(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.register(self.db, 123, ['alice'], 12345678)
        self.assertEqual(set(ctx.exception.fields), {'email', 'username', 'password'})

    def test_authenticate_non_string_credentials(self):
        self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        with self.assertRaises(ValidationError):
            self.service.authenticate(self.db, 'alice', 12345678)
        with self.assertRaises(ValidationError):
            self.service.authenticate(self.db, {'name': 'alice'}, 'password123')

    def test_duplicate_username(self):
        self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        with self.assertRaises(Conflict) as ctx:
            self.service.register(self.db, 'other@example.com', 'alice', 'password123')
        self.assertEqual(ctx.exception.message, 'Username already taken')

    def test_duplicate_email_case_insensitive(self):
        self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        with self.assertRaises(Conflict) as ctx:
            self.service.register(self.db, 'ALICE@example.com', 'alice2', 'password123')
        self.assertEqual(ctx.exception.message, 'Email already in use')

    def test_authenticate(self):
        self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        user = self.service.authenticate(self.db, 'alice', 'password123')
        self.assertIsNotNone(user.last_login_at)

    def test_authenticate_wrong_password(self):
        self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        with self.assertRaises(AuthenticationError):
            self.service.authenticate(self.db, 'alice', 'wrong-password')
        with self.assertRaises(AuthenticationError):
            self.service.authenticate(self.db, 'nobody', 'password123')

    def test_deactivated_user_cannot_log_in(self):
        user = self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        self.service.deactivate(self.db, user.id)
        with self.assertRaises(AuthenticationError):
            self.service.authenticate(self.db, 'alice', 'password123')

    def test_update_profile(self):
        user = self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        self.service.update_profile(self.db, user.id, {'bio': 'RPG fan',
                                                       'preferences': {'theme': 'dark'}})
        self.assertEqual(user.bio, 'RPG fan')
        self.assertEqual(user.to_dict()['preferences'], {'theme': 'dark'})

    def test_update_profile_rejects_other_fields(self):
        user = self.service.register(self.db, 'alice@example.com', 'alice', 'password123')
        with self.assertRaises(ValidationError) as ctx:
            self.service.update_profile(self.db, user.id, {'username': 'mallory', 'bio': 'x'})
        self.assertIn('username', ctx.exception.fields)
        self.assertIsNone(user.bio)

    def test_search(self):
        for name in ('alice', 'alicia', 'bob'):
            self.service.register(self.db, f'{name}@example.com', name, 'password123')
        found = [u.username for u in self.service.search(self.db, 'ALI')]
        self.assertEqual(found, ['alice', 'alicia'])
        with self.assertRaises(ValidationError):
            self.service.search(self.db, '')

    def test_get_unknown(self):
        with self.assertRaises(NotFound):
            self.service.get(self.db, 77)


class TestFollowService(unittest.TestCase):

    def setUp(self):
        self.db = _make_session()
        users_repo = UserRepository()
        self.users = UserService(users_repo)
        self.service = FollowService(FollowRepository(), users_repo)
        self.alice = self.users.register(self.db, 'alice@example.com', 'alice', 'password123')
        self.bob = self.users.register(self.db, 'bob@example.com', 'bob', 'password123')

    def tearDown(self):
        self.db.close()

    def test_follow_and_lists(self):
        self.service.follow(self.db, self.alice.id, self.bob.id)
        self.assertEqual([u.username for u in self.service.following(self.db, self.alice.id)],
                         ['bob'])
        self.assertEqual([u.username for u in self.service.followers(self.db, self.bob.id)],
                         ['alice'])
        self.assertEqual(self.service.followers(self.db, self.alice.id), [])

    def test_follow_twice_conflicts(self):
        self.service.follow(self.db, self.alice.id, self.bob.id)
        with self.assertRaises(Conflict):
            self.service.follow(self.db, self.alice.id, self.bob.id)
        self.assertEqual(self.db.query(Follow).count(), 1)

    def test_follow_pair_is_unique_in_table(self):
        edge = {'follower_id': self.alice.id, 'followee_id': self.bob.id}
        self.db.execute(Follow.__table__.insert().values(**edge))
        with self.assertRaises(IntegrityError):
            self.db.execute(Follow.__table__.insert().values(**edge))
        self.db.rollback()

    def test_self_follow_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.follow(self.db, self.alice.id, self.alice.id)

    def test_follow_unknown_or_inactive_user(self):
        with self.assertRaises(NotFound):
            self.service.follow(self.db, self.alice.id, 999)
        self.users.deactivate(self.db, self.bob.id)
        with self.assertRaises(NotFound):
            self.service.follow(self.db, self.alice.id, self.bob.id)

    def test_unfollow(self):
        self.service.follow(self.db, self.alice.id, self.bob.id)
        self.service.unfollow(self.db, self.alice.id, self.bob.id)
        self.assertEqual(self.service.following(self.db, self.alice.id), [])
        with self.assertRaises(NotFound):
            self.service.unfollow(self.db, self.alice.id, self.bob.id)


if __name__ == '__main__':
    unittest.main()
