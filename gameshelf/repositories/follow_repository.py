"""Repository for follow edges between users."""
from typing import List, Optional

from database import Follow, User
from ..exceptions import Conflict
from .base import BaseRepository


class FollowRepository(BaseRepository):

    def find(self, db, follower_id: int, followee_id: int) -> Optional[Follow]:
        return db.get(Follow, (follower_id, followee_id))

    def create(self, db, follower_id: int, followee_id: int) -> Follow:
        if self.find(db, follower_id, followee_id) is not None:
            raise Conflict('Already following this user')
        return self._add(db, Follow(follower_id=follower_id, followee_id=followee_id),
                         'Already following this user')

    def delete(self, db, follower_id: int, followee_id: int) -> bool:
        edge = self.find(db, follower_id, followee_id)
        if edge is None:
            return False
        self._delete(db, edge)
        return True

    def followers(self, db, user_id: int) -> List[User]:
        return (db.query(User)
                .join(Follow, Follow.follower_id == User.id)
                .filter(Follow.followee_id == user_id)
                .order_by(User.username)
                .all())

    def following(self, db, user_id: int) -> List[User]:
        return (db.query(User)
                .join(Follow, Follow.followee_id == User.id)
                .filter(Follow.follower_id == user_id)
                .order_by(User.username)
                .all())
