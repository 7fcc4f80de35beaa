"""Repository for user accounts."""
from typing import List, Optional

from sqlalchemy import func

from database import User
from .base import BaseRepository


class UserRepository(BaseRepository):
    """Reads and writes :class:`database.User` rows.

    Emails are stored lower-cased, so lookups by email lower-case the
    argument as well.
    """

    def find(self, db, user_id: int) -> Optional[User]:
        return db.get(User, user_id)

    def find_by_username(self, db, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    def find_by_email(self, db, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    def create(self, db, **fields) -> User:
        """Insert a new user.  Raises ``Conflict`` on a duplicate email or username."""
        return self._add(db, User(**fields), 'Username or email already in use')

    def save(self, db, user: User) -> User:
        self._commit(db, 'Username or email already in use')
        return user

    def search(self, db, query: str, limit: int = 10) -> List[User]:
        """Active users whose username contains *query* (case-insensitive)."""
        pattern = f"%{query.lower()}%"
        return (db.query(User)
                .filter(func.lower(User.username).like(pattern))
                .filter(User.is_active.is_(True))
                .order_by(User.username)
                .limit(limit)
                .all())
