"""
Identifier and timestamp helpers for policy rows.
"""

import uuid
from datetime import datetime, timedelta, timezone


_last_timestamp: datetime | None = None


def new_id() -> str:
    """
    Generate a random (version 4) UUID string.

    Used for every row's rowId and, on creation only, for the policyId.

    Returns:
        The canonical hyphenated UUID string.
    """
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """
    Get the current UTC time, strictly later than any previous call.

    Two writes for the same policy in the same process must never share a
    createdAt, so a repeated clock reading is bumped by one microsecond.

    Returns:
        A timezone-aware UTC datetime.
    """
    global _last_timestamp
    now = datetime.now(timezone.utc)
    if _last_timestamp is not None and now <= _last_timestamp:
        now = _last_timestamp + timedelta(microseconds=1)
    _last_timestamp = now
    return now


def utc_now_iso() -> str:
    """
    Get the current UTC time as an ISO-8601 string.

    Example: 2026-10-17T09:30:00.123456+00:00

    Returns:
        The timestamp string used for createdAt.
    """
    return utc_now().isoformat(timespec="microseconds")
