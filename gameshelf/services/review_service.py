"""Business logic for community reviews and ratings of a game."""
import math
from typing import Dict, List

from ..repositories import LibraryRepository


class ReviewService:
    """Reads the reviews and ratings users left on their library entries.

    Reviews live on library entries, so removing a game from a library
    removes its review as well.
    """

    def __init__(self, library_repository: LibraryRepository) -> None:
        self._library = library_repository

    def for_game(self, db, game_id: int) -> List[Dict]:
        """Return every non-empty review of *game_id*, most recently updated first."""
        reviews = []
        for entry in self._library.for_game(db, game_id):
            if not entry.review or not entry.review.strip():
                continue
            reviews.append({
                'userId': entry.user_id,
                'username': entry.user.username,
                'rating': entry.personal_rating,
                'review': entry.review,
                'status': entry.status,
                'updatedAt': entry.updated_at.isoformat() if entry.updated_at else None,
            })
        return reviews

    def game_stats(self, db, game_id: int) -> Dict:
        """Rating statistics for *game_id* across all libraries.

        ``ratingDistribution`` buckets each rating by its whole-number part
        (0 through 10).
        """
        entries = self._library.for_game(db, game_id)
        ratings = [e.personal_rating for e in entries if e.personal_rating is not None]
        distribution = {str(i): 0 for i in range(11)}
        for rating in ratings:
            distribution[str(int(math.floor(rating)))] += 1
        return {
            'gameId': game_id,
            'totalReviews': sum(1 for e in entries if e.review and e.review.strip()),
            'totalRatings': len(ratings),
            'averageRating': sum(ratings) / len(ratings) if ratings else None,
            'ratingDistribution': distribution,
        }
