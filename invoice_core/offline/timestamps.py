# =============================================================================
# invoice_core/offline/timestamps.py
# Remote timestamp normalization
# =============================================================================
"""
Converts the remote service's native timestamp representation into
``datetime.datetime`` across arbitrarily nested records.

The recogniser and converter come from the remote adapter, so this module
does not depend on any remote SDK type.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Callable

TimestampPredicate = Callable[[Any], bool]
TimestampConverter = Callable[[Any], datetime]


def normalize_timestamps(
    value: Any,
    is_remote_timestamp: TimestampPredicate,
    to_datetime: TimestampConverter,
) -> Any:
    """
    Return a copy of ``value`` with every remote timestamp converted.

    Dicts, lists and tuples are rebuilt; everything else is returned as is.
    The input is never modified and applying the function twice gives the
    same result as applying it once.
    """
    if is_remote_timestamp(value):
        return to_datetime(value)
    if isinstance(value, dict):
        return {
            key: normalize_timestamps(item, is_remote_timestamp, to_datetime)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [normalize_timestamps(item, is_remote_timestamp, to_datetime) for item in value]
    if isinstance(value, tuple):
        return tuple(normalize_timestamps(item, is_remote_timestamp, to_datetime) for item in value)
    return value
