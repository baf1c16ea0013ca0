"""
Processing package for the School Zone Explorer

This package contains the analytics engine: schema discovery, ZIP grouping,
aggregation, selection state and paging, plus the shapefile decoder and the
session object tying them together.
"""

__version__ = "0.1.0"

# Import key utilities for easy access
from .aggregation import (
    EMPTY_SUMMARY,
    NOT_APPLICABLE,
    Summary,
    rank_groups,
    summarize_group,
    summarize_selection,
)
from .data_utils import ZIP_ALIASES, resolve_group_key
from .decoder import decode, load_shapefile
from .grouping import FieldMap, GroupAggregate, build_group_index
from .projection import Page, project
from .schema import SchemaEntry, discover_schema
from .selection import ExplorerState, SelectionState, filter_features, matches_search
from .session import ExplorerSession

__all__ = [
    "discover_schema",
    "SchemaEntry",
    "ZIP_ALIASES",
    "resolve_group_key",
    "build_group_index",
    "GroupAggregate",
    "FieldMap",
    "summarize_group",
    "summarize_selection",
    "rank_groups",
    "Summary",
    "EMPTY_SUMMARY",
    "NOT_APPLICABLE",
    "SelectionState",
    "ExplorerState",
    "matches_search",
    "filter_features",
    "project",
    "Page",
    "decode",
    "load_shapefile",
    "ExplorerSession",
]
