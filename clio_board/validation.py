"""Field validators shared by the board services. All raise InvalidArgument."""
from datetime import date, datetime, time
from typing import Optional

from .errors import InvalidArgument


def require_text(value, field_name: str, limit: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field_name} is required")
    if len(value) > limit:
        raise InvalidArgument(
            f"{field_name} exceeds {limit} character limit (provided: {len(value)} chars)"
        )
    return value


def optional_text(value, field_name: str, limit: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgument(f"{field_name} must be a string")
    if len(value) > limit:
        raise InvalidArgument(
            f"{field_name} exceeds {limit} character limit (provided: {len(value)} chars)"
        )
    return value


def due_date(value) -> Optional[str]:
    """Normalize an ISO date (YYYY-MM-DD) or date object."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise InvalidArgument(f"Invalid due_date: {value!r} (expected YYYY-MM-DD)")


def due_time(value) -> Optional[str]:
    """Normalize HH:MM[:SS] or a time object."""
    if value is None:
        return None
    if isinstance(value, time):
        return value.isoformat(timespec="minutes" if not value.second else "seconds")
    try:
        parsed = time.fromisoformat(str(value))
    except ValueError:
        raise InvalidArgument(f"Invalid due_time: {value!r} (expected HH:MM)")
    return parsed.isoformat(timespec="minutes" if not parsed.second else "seconds")


def flag(value, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidArgument(f"{field_name} must be true or false")
    return value
