"""Repository package: expose all concrete repositories from one import."""
from .user_repository import UserRepository
from .game_repository import GameRepository
from .library_repository import LibraryRepository
from .follow_repository import FollowRepository

__all__ = [
    'UserRepository',
    'GameRepository',
    'LibraryRepository',
    'FollowRepository',
]
