"""Field validation and status-transition rules for library entries.

Everything here is a plain function over plain values, so the rules can
be exercised without a database.  :class:`LibraryService` calls them
explicitly on its write paths before touching any row.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from database import LIBRARY_STATUSES, utcnow
from ..exceptions import ValidationError

DEFAULT_STATUS = LIBRARY_STATUSES[0]
MAX_REVIEW_LENGTH = 2000
MAX_NOTES_LENGTH = 2000
MAX_TAG_LENGTH = 50

# Fields a caller may set on a library entry.
EDITABLE_FIELDS = (
    'status',
    'personal_rating',
    'review',
    'hours_played',
    'completion_percentage',
    'difficulty',
    'started_at',
    'completed_at',
    'last_played_at',
    'is_favorite',
    'is_recommended',
    'play_count',
    'tags',
    'notes',
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_range(value, low, high, label):
    if not _is_number(value):
        return f"{label} must be a number"
    if not low <= value <= high:
        return f"{label} must be between {low} and {high}"
    return None


def _parse_timestamp(value) -> datetime:
    """Accept a datetime or an ISO-8601 string; return naive UTC."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        value = datetime.fromisoformat(text)
    if not isinstance(value, datetime):
        raise TypeError(value)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _clean_field(name: str, value):
    """Return ``(clean_value, error)`` for a single editable field."""
    if name == 'status':
        if value not in LIBRARY_STATUSES:
            return None, f"status must be one of: {', '.join(LIBRARY_STATUSES)}"
        return value, None

    if name == 'is_favorite':
        if not isinstance(value, bool):
            return None, f"{name} must be true or false"
        return value, None

    if name == 'play_count':
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            return None, "play_count must be a non-negative integer"
        return value, None

    # Everything below is nullable.
    if value is None:
        return None, None

    if name == 'personal_rating':
        error = _check_range(value, 0, 10, 'personal_rating')
        if error:
            return None, error
        return float(value), None

    if name == 'completion_percentage':
        error = _check_range(value, 0, 100, 'completion_percentage')
        return (None, error) if error else (float(value), None)

    if name == 'difficulty':
        if not isinstance(value, int) or isinstance(value, bool):
            return None, "difficulty must be an integer"
        error = _check_range(value, 1, 5, 'difficulty')
        return (None, error) if error else (value, None)

    if name == 'hours_played':
        if not _is_number(value) or value < 0:
            return None, "hours_played must be a non-negative number"
        return float(value), None

    if name in ('review', 'notes'):
        limit = MAX_REVIEW_LENGTH if name == 'review' else MAX_NOTES_LENGTH
        if not isinstance(value, str):
            return None, f"{name} must be a string"
        if len(value) > limit:
            return None, f"{name} must be at most {limit} characters"
        return value, None

    if name in ('started_at', 'completed_at', 'last_played_at'):
        try:
            return _parse_timestamp(value), None
        except (TypeError, ValueError):
            return None, f"{name} must be an ISO-8601 timestamp"

    if name == 'is_recommended':
        if not isinstance(value, bool):
            return None, "is_recommended must be true, false or null"
        return value, None

    if name == 'tags':
        if not isinstance(value, (list, tuple)) or not all(isinstance(t, str) for t in value):
            return None, "tags must be a list of strings"
        tags = []
        for tag in value:
            tag = tag.strip()
            if not tag:
                continue
            if len(tag) > MAX_TAG_LENGTH:
                return None, f"tags must be at most {MAX_TAG_LENGTH} characters each"
            if tag not in tags:
                tags.append(tag)
        return tags, None

    return None, f"{name} cannot be set"


def validate_entry_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a partial set of entry fields.

    Returns a new dict of normalized values.  Raises :class:`ValidationError`
    listing every offending field; nothing is returned for partially valid
    input.
    """
    clean: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    for name, value in changes.items():
        if name not in EDITABLE_FIELDS:
            errors[name] = f"{name} is not an editable field"
            continue
        clean_value, error = _clean_field(name, value)
        if error:
            errors[name] = error
        else:
            clean[name] = clean_value
    if errors:
        raise ValidationError('Validation failed', fields=errors)
    return clean


def transition_timestamps(old_status: str, new_status: str,
                          started_at: Optional[datetime],
                          completed_at: Optional[datetime],
                          now: Optional[datetime] = None
                          ) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Return ``(started_at, completed_at)`` after moving *old_status* -> *new_status*.

    * Leaving ``plan-to-play`` stamps ``started_at`` if it is unset. An
      earlier ``completed_at`` caps the stamp so the timeline stays ordered.
    * Entering ``completed`` stamps ``completed_at`` if it is unset.

    Existing timestamps are never overwritten, and nothing changes when the
    status stays the same.
    """
    if new_status == old_status:
        return started_at, completed_at
    now = now or utcnow()
    if old_status == DEFAULT_STATUS and started_at is None:
        started_at = min(now, completed_at) if completed_at is not None else now
    if new_status == 'completed' and completed_at is None:
        completed_at = now
    return started_at, completed_at


def apply_status_transition(entry, new_status: str, now: Optional[datetime] = None) -> None:
    """Move *entry* to *new_status*, stamping derived timestamps in place."""
    entry.started_at, entry.completed_at = transition_timestamps(
        entry.status, new_status, entry.started_at, entry.completed_at, now)
    entry.status = new_status


def play_duration_days(started_at: Optional[datetime],
                       completed_at: Optional[datetime]) -> Optional[int]:
    """Whole days from start to completion, rounded up; ``None`` unless both are set."""
    if started_at is None or completed_at is None:
        return None
    seconds = (completed_at - started_at).total_seconds()
    return math.ceil(seconds / 86400)


def check_timeline(started_at: Optional[datetime], completed_at: Optional[datetime]) -> None:
    if started_at is not None and completed_at is not None and completed_at < started_at:
        raise ValidationError('Validation failed',
                              fields={'completed_at': 'completed_at cannot be before started_at'})
