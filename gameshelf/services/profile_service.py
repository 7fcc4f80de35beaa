"""Business logic for profile statistics."""
from typing import Dict, Iterable, List, Optional

from database import LIBRARY_STATUSES
from ..exceptions import NotFound
from ..repositories import FollowRepository, LibraryRepository, UserRepository


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def summarize(entries: Iterable) -> Dict:
    """Summary statistics over a user's library entries.

    Returns ``totalGames``, ``completedCount``, ``playingCount`` and
    ``averageRating`` (mean of the non-null personal ratings, ``None``
    when nothing is rated).
    """
    entries = list(entries)
    ratings = [e.personal_rating for e in entries if e.personal_rating is not None]
    return {
        'totalGames': len(entries),
        'completedCount': sum(1 for e in entries if e.status == 'completed'),
        'playingCount': sum(1 for e in entries if e.status == 'playing'),
        'averageRating': _mean(ratings),
    }


def extended_stats(entries: Iterable) -> Dict:
    """Per-status tallies, favourites and total hours for the profile page."""
    entries = list(entries)
    status_counts = {status: 0 for status in LIBRARY_STATUSES}
    for e in entries:
        status_counts[e.status] = status_counts.get(e.status, 0) + 1
    return {
        'statusCounts': status_counts,
        'favoriteCount': sum(1 for e in entries if e.is_favorite),
        'totalHoursPlayed': sum(e.hours_played or 0 for e in entries),
    }


class ProfileService:
    """Builds the public profile view: user fields plus library statistics.

    Statistics are recomputed from the stored entries on every call.
    """

    def __init__(self, user_repository: UserRepository,
                 library_repository: LibraryRepository,
                 follow_repository: FollowRepository) -> None:
        self._users = user_repository
        self._library = library_repository
        self._follows = follow_repository

    def get_profile(self, db, user_id: int) -> Dict:
        """Return the profile dict for *user_id*.

        Raises:
            NotFound: unknown user.
        """
        user = self._users.find(db, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        entries = self._library.for_user(db, user_id)
        profile = user.to_dict()
        profile.update(summarize(entries))
        profile.update(extended_stats(entries))
        profile['followerCount'] = len(self._follows.followers(db, user_id))
        profile['followingCount'] = len(self._follows.following(db, user_id))
        return profile
