"""Miscellaneous helper functions."""

from __future__ import annotations

import datetime as dt
from typing import Optional


def to_naive_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    """Convert an aware datetime to naive UTC for storage.

    Columns are declared without time zone, so aware values coming from
    the API are normalised to UTC first.  Naive values are assumed to be
    UTC already and returned unchanged.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)


def month_key(value: Optional[dt.datetime] = None) -> str:
    """``YYYY-MM`` bucket used for monthly splits, defaulting to the current UTC month."""
    value = value or dt.datetime.now(dt.timezone.utc)
    return value.strftime("%Y-%m")
