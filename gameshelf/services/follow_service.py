"""Business logic for following other users."""
import logging
from typing import List

from database import Follow, User
from ..exceptions import NotFound, ValidationError
from ..repositories import FollowRepository, UserRepository

logger = logging.getLogger('gameshelf.follows')


class FollowService:
    """Creates and removes follow edges.

    A user cannot follow themself, and can only follow active users.
    """

    def __init__(self, follow_repository: FollowRepository,
                 user_repository: UserRepository) -> None:
        self._repo = follow_repository
        self._users = user_repository

    def _require_user(self, db, user_id: int) -> User:
        user = self._users.find(db, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def follow(self, db, follower_id: int, followee_id: int) -> Follow:
        """Raises ``ValidationError`` for self-follows and ``Conflict`` for repeats."""
        if follower_id == followee_id:
            raise ValidationError('Validation failed',
                                  fields={'followee': 'You cannot follow yourself'})
        self._require_user(db, follower_id)
        followee = self._require_user(db, followee_id)
        if not followee.is_active:
            raise NotFound(f"User {followee_id} not found")
        edge = self._repo.create(db, follower_id, followee_id)
        logger.info("User %s now follows %s", follower_id, followee_id)
        return edge

    def unfollow(self, db, follower_id: int, followee_id: int) -> None:
        if not self._repo.delete(db, follower_id, followee_id):
            raise NotFound('You are not following this user')

    def followers(self, db, user_id: int) -> List[User]:
        self._require_user(db, user_id)
        return self._repo.followers(db, user_id)

    def following(self, db, user_id: int) -> List[User]:
        self._require_user(db, user_id)
        return self._repo.following(db, user_id)

