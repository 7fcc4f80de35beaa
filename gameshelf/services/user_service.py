"""Business logic for user accounts: registration, login and profile edits."""
import logging
import re
from typing import Dict, List

from werkzeug.security import check_password_hash, generate_password_hash

from database import User, utcnow
from ..exceptions import AuthenticationError, Conflict, NotFound, ValidationError
from ..repositories import UserRepository

logger = logging.getLogger('gameshelf.users')

USERNAME_RE = re.compile(r'^[A-Za-z0-9_-]{3,32}$')
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 8
MAX_EMAIL_LENGTH = 128
MAX_BIO_LENGTH = 500
MAX_AVATAR_LENGTH = 500
PROFILE_FIELDS = ('bio', 'avatar', 'preferences')
MAX_SEARCH_LIMIT = 50


class UserService:
    """Registers, authenticates and edits users.

    Rules
    -----
    * Usernames are 3 to 32 characters of letters, digits, ``-`` and ``_``.
    * Emails are compared case-insensitively (stored lower-cased).
    * Username and email are each unique; a clash raises ``Conflict``.
    * Users are never deleted; :meth:`deactivate` blocks further logins.
    """

    def __init__(self, repository: UserRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    def register(self, db, email: str, username: str, password: str) -> User:
        errors: Dict[str, str] = {}
        email = email.strip().lower() if isinstance(email, str) else ''
        username = username.strip() if isinstance(username, str) else ''
        if not EMAIL_RE.match(email) or len(email) > MAX_EMAIL_LENGTH:
            errors['email'] = 'Invalid email format'
        if not USERNAME_RE.match(username):
            errors['username'] = ('Username must be 3-32 characters of letters, '
                                  'numbers, underscores and hyphens')
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            errors['password'] = f'Password must be at least {MIN_PASSWORD_LENGTH} characters long'
        if errors:
            raise ValidationError('Validation failed', fields=errors)

        if self._repo.find_by_username(db, username) is not None:
            raise Conflict('Username already taken')
        if self._repo.find_by_email(db, email) is not None:
            raise Conflict('Email already in use')

        user = self._repo.create(db, email=email, username=username,
                                 password_hash=generate_password_hash(password),
                                 is_active=True)
        logger.info("Registered new user %s (id %s)", username, user.id)
        return user

    def authenticate(self, db, username: str, password: str) -> User:
        """Return the user for valid credentials and stamp ``last_login_at``."""
        if not isinstance(username, str) or not isinstance(password, str) \
                or not username or not password:
            raise ValidationError('Validation failed',
                                  fields={'credentials': 'Username and password are required'})
        user = self._repo.find_by_username(db, username)
        if user is None or not check_password_hash(user.password_hash, password):
            raise AuthenticationError('Invalid username or password')
        if not user.is_active:
            raise AuthenticationError('Account is deactivated')
        user.last_login_at = utcnow()
        self._repo.save(db, user)
        return user

    # ------------------------------------------------------------------
    # Lookup / profile
    # ------------------------------------------------------------------

    def get(self, db, user_id: int) -> User:
        user = self._repo.find(db, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def update_profile(self, db, user_id: int, changes: Dict) -> User:
        """Partially update ``bio``, ``avatar`` and ``preferences``."""
        user = self.get(db, user_id)
        errors: Dict[str, str] = {}
        for key, value in changes.items():
            if key not in PROFILE_FIELDS:
                errors[key] = f"{key} is not an editable profile field"
            elif key == 'bio' and value is not None and (
                    not isinstance(value, str) or len(value) > MAX_BIO_LENGTH):
                errors[key] = f"bio must be a string of at most {MAX_BIO_LENGTH} characters"
            elif key == 'avatar' and value is not None and (
                    not isinstance(value, str) or len(value) > MAX_AVATAR_LENGTH):
                errors[key] = f"avatar must be a URL of at most {MAX_AVATAR_LENGTH} characters"
            elif key == 'preferences' and value is not None and not isinstance(value, dict):
                errors[key] = "preferences must be an object"
        if errors:
            raise ValidationError('Validation failed', fields=errors)

        for key, value in changes.items():
            setattr(user, key, value)
        self._repo.save(db, user)
        return user

    def search(self, db, query: str, limit: int = 10) -> List[User]:
        query = (query or '').strip()
        if not query:
            raise ValidationError('Validation failed', fields={'query': 'Query parameter is required'})
        return self._repo.search(db, query, limit=max(1, min(limit, MAX_SEARCH_LIMIT)))

    def deactivate(self, db, user_id: int) -> User:
        user = self.get(db, user_id)
        user.is_active = False
        self._repo.save(db, user)
        logger.info("Deactivated user %s", user_id)
        return user
