"""Services package: expose all concrete services from one import."""
from .catalog_service import CatalogService
from .library_service import LibraryService, entry_to_dict
from .profile_service import ProfileService, summarize
from .user_service import UserService
from .follow_service import FollowService
from .review_service import ReviewService

__all__ = [
    'CatalogService',
    'LibraryService',
    'ProfileService',
    'UserService',
    'FollowService',
    'ReviewService',
    'entry_to_dict',
    'summarize',
]
