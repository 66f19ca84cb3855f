"""Shared utility functions for blueprints.

get_or_404:      tuple-return lookup, NOT abort
parse_datetime:  ISO date/datetime string → aware UTC datetime, raises ValueError
"""
from datetime import date, datetime, time, timezone

from residentone.models import db
from residentone.utils.errors import E, api_error


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or return a 404 error tuple.

    - Success: (obj, None)
    - Failure: (None, (jsonify_response, 404))

    Usage:
        stage, err = get_or_404(Stage, stage_id)
        if err:
            return err
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if not obj:
        return None, api_error(E.NOT_FOUND, f"{label} not found")
    return obj, None


def parse_datetime(value):
    """Parse a due-date style value to a timezone-aware UTC datetime.

    Accepts None/empty (→ None), datetime, date, ``YYYY-MM-DD`` and full ISO
    strings including a trailing ``Z``. Naive values are taken as UTC.

    Raises:
        ValueError: value cannot be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid datetime: {value!r}") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
