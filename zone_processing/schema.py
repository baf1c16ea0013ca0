"""
Schema discovery over loosely-typed feature property bags.

One pass over a feature collection records, for every property key ever seen,
an inferred value type, the number of distinct values and the first three
distinct values. Keys are reported in the order they were first encountered,
which is the column order the explorer displays.

The type of a key is decided by the first value seen for it and never revised.
A key whose first value looks numeric stays ``numeric`` even if later values
are text. This is a known limitation: the inferred type is a display hint,
not a validation.
"""

import re
import warnings
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Hashable, List, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from .data_utils import Feature, is_missing, parse_number, properties_of
from .field_registry import FieldRegistry

NUMERIC = "numeric"
DATE = "date"
TEXT = "text"
UNKNOWN = "unknown"

SAMPLE_SIZE = 3

_TIME_SUFFIX = r"(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?"
_MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"

DATE_PATTERNS = [
    # ISO style: 2024-08-15, 2024/08/15, optionally with a time
    re.compile(r"\d{4}[-/]\d{1,2}[-/]\d{1,2}" + _TIME_SUFFIX),
    # US style: 08/15/2024, 8-15-24
    re.compile(r"\d{1,2}[-/]\d{1,2}[-/](?:\d{4}|\d{2})" + _TIME_SUFFIX),
    # Month names: Aug 15, 2024 / 15 August 2024
    re.compile(_MONTHS + r" \d{1,2},? \d{4}", re.IGNORECASE),
    re.compile(r"\d{1,2} " + _MONTHS + r" \d{4}", re.IGNORECASE),
]


@dataclass(frozen=True)
class SchemaEntry:
    """What the explorer knows about one property key."""

    name: str
    type: str
    unique_values: int
    sample_values: Tuple[Any, ...]


def looks_like_date(text: str) -> bool:
    """True if the text has a recognised date shape and parses as a date."""
    candidate = text.strip()
    if not any(pattern.fullmatch(candidate) for pattern in DATE_PATTERNS):
        return False

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(candidate)
        except (ValueError, TypeError, OverflowError):
            return False
    return not pd.isna(parsed)


def infer_value_type(value: Any) -> str:
    """Classify a single value: numeric first, then date, else text."""
    if is_missing(value):
        return UNKNOWN
    if isinstance(value, (datetime, date)):
        return DATE
    if parse_number(value) is not None:
        return NUMERIC
    if isinstance(value, str) and looks_like_date(value):
        return DATE
    return TEXT


def _distinct_key(value: Any) -> Hashable:
    # Keep True and 1 apart; fall back to repr for unhashable values.
    try:
        hash(value)
    except TypeError:
        return ("repr", repr(value))
    return (isinstance(value, bool), value)


def discover_schema(features: Sequence[Feature]) -> List[SchemaEntry]:
    """
    Infer the schema of a feature collection.

    Args:
        features: Any feature sequence, including empty

    Returns:
        One SchemaEntry per property key, in first-encounter order
    """
    types: Dict[str, str] = {}
    distinct: Dict[str, Dict[Hashable, Any]] = {}

    for feature in features:
        for key, value in properties_of(feature).items():
            if key not in types:
                types[key] = infer_value_type(value)
                distinct[key] = {}
            seen = distinct[key]
            marker = _distinct_key(value)
            if marker not in seen:
                seen[marker] = value

    entries = [
        SchemaEntry(
            name=key,
            type=types[key],
            unique_values=len(distinct[key]),
            sample_values=tuple(list(distinct[key].values())[:SAMPLE_SIZE]),
        )
        for key in types
    ]

    logger.debug(f"Discovered {len(entries)} properties across {len(features)} features")
    return entries


def schema_frame(
    entries: Sequence[SchemaEntry], registry: Optional[FieldRegistry] = None
) -> pd.DataFrame:
    """
    Tabulate schema entries, optionally annotated with field explanations.

    Args:
        entries: Output of discover_schema
        registry: Field registry used to explain each column

    Returns:
        DataFrame with one row per property, in schema order
    """
    if registry is not None:
        registry.auto_register_field_patterns(entry.name for entry in entries)

    rows = []
    for entry in entries:
        row = {
            "name": entry.name,
            "type": entry.type,
            "unique_values": entry.unique_values,
            "sample_values": ", ".join(str(v) for v in entry.sample_values),
        }
        if registry is not None:
            row["description"] = registry.get_explanation(entry.name)
        rows.append(row)

    columns = ["name", "type", "unique_values", "sample_values"]
    if registry is not None:
        columns.append("description")
    return pd.DataFrame(rows, columns=columns)
