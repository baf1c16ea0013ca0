#!/usr/bin/env python3
"""
data_utils.py - Shared Property Bag Utilities

Small helpers used by every stage of the explorer: reading values out of a
feature's loosely-typed property bag, turning them into numbers or text, and
resolving the ZIP group key from its alias spellings.
"""

import math
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

# Ordered alias spellings of the grouping attribute; the first non-empty wins.
ZIP_ALIASES: Tuple[str, ...] = ("Zip", "ZIP", "zipcode")

Feature = Dict[str, Any]


def properties_of(feature: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return a feature's property bag, or an empty mapping when it has none."""
    return feature.get("properties") or {}


def is_missing(value: Any) -> bool:
    """True for None, NaN and blank text."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a property value as a finite number.

    Thousands separators and surrounding whitespace are ignored. Booleans are
    not numbers.

    Returns:
        The number as float, or None if the value is not numeric
    """
    if isinstance(value, (bool, np.bool_)):
        return None

    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace(",", "").strip()
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def field_value(properties: Mapping[str, Any], name: str) -> Optional[float]:
    """
    Read a numeric field for summation.

    A missing field counts as zero. A present but non-numeric value returns
    None so the caller can skip it for that sum alone.
    """
    value = properties.get(name)
    if is_missing(value):
        return 0.0
    return parse_number(value)


def to_text(value: Any) -> str:
    """Textual form of a property value as shown to users and matched by search."""
    if is_missing(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def resolve_group_key(
    properties: Mapping[str, Any], aliases: Sequence[str] = ZIP_ALIASES
) -> Optional[str]:
    """
    Resolve a feature's group key from the first alias holding a value.

    Args:
        properties: Feature property bag
        aliases: Candidate attribute names in priority order

    Returns:
        The key as text, or None if no alias is present
    """
    for alias in aliases:
        value = properties.get(alias)
        if not is_missing(value):
            return to_text(value).strip()
    return None


def normalize_value(value: Any) -> Any:
    """Convert numpy/pandas scalars to plain JSON-friendly Python values."""
    if value is pd.NaT:
        return None
    if isinstance(value, np.datetime64):
        if np.isnat(value):
            return None
        value = pd.Timestamp(value).to_pydatetime()
    elif isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def iter_batches(items: Sequence[Any], batch_size: int) -> Iterator[Tuple[int, List[Any]]]:
    """Yield (start_index, batch) slices of at most batch_size items."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for start in range(0, len(items), batch_size):
        yield start, list(items[start : start + batch_size])
