"""
Selection and filter state for interactive exploration.

The state holds the active search text and the ordered list of selected ZIP
codes. The two are independent: searching never clears the selection and
clearing the selection never clears the search.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .data_utils import Feature, is_missing, properties_of, to_text

DISTRICT_ALIASES: Tuple[str, ...] = ("district", "DISTRICT", "District", "district_name", "DISTRICT_NAME")
ZIP_FILTER_ALIASES: Tuple[str, ...] = ("zip", "ZIP", "Zip", "zipcode", "ZIPCODE", "postal_code", "POSTAL_CODE")


class ExplorerState(Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    SELECTING = "selecting"


class SelectionState:
    """Search text plus an ordered, duplicate-free ZIP selection."""

    def __init__(self) -> None:
        self._selection: List[str] = []
        self._search = ""

    @property
    def selection(self) -> Tuple[str, ...]:
        """Selected keys in the order they were first selected."""
        return tuple(self._selection)

    @property
    def search(self) -> str:
        return self._search

    @property
    def state(self) -> ExplorerState:
        if self._selection:
            return ExplorerState.SELECTING
        if self._search.strip():
            return ExplorerState.SEARCHING
        return ExplorerState.IDLE

    def is_selected(self, key: str) -> bool:
        return key in self._selection

    def toggle_group(self, key: str) -> bool:
        """
        Add the key if absent, remove it if present.

        Returns:
            True if the key is selected afterwards
        """
        if key in self._selection:
            self._selection.remove(key)
            return False
        self._selection.append(key)
        return True

    def set_search(self, text: str) -> None:
        self._search = text

    def clear_selection(self) -> None:
        self._selection.clear()


def matches_search(feature: Feature, text: str) -> bool:
    """True if any property's text contains the search text, ignoring case."""
    if not text.strip():
        return True
    needle = text.lower()
    return any(needle in to_text(value).lower() for value in properties_of(feature).values())


def filter_features(features: Sequence[Feature], text: str) -> List[Feature]:
    """Features matching the search text; all of them for blank text."""
    if not text.strip():
        return list(features)
    return [feature for feature in features if matches_search(feature, text)]


def filter_group_keys(keys: Sequence[str], text: str) -> List[str]:
    """ZIP codes containing the search text, for narrowing the ZIP picker."""
    if not text.strip():
        return list(keys)
    needle = text.lower()
    return [key for key in keys if needle in key.lower()]


def _alias_values(properties: Mapping[str, Any], aliases: Sequence[str], require_text: bool = False) -> List[str]:
    values = []
    for alias in aliases:
        value = properties.get(alias)
        if is_missing(value) or (require_text and not isinstance(value, str)):
            continue
        values.append(to_text(value))
    return values


@dataclass(frozen=True)
class AttributeFilter:
    """Exact-match filters on district and ZIP, applied after the search text."""

    search: str = ""
    district: Optional[str] = None
    zip_code: Optional[str] = None

    def matches_attributes(self, feature: Feature) -> bool:
        """True if the feature passes the district and ZIP filters, ignoring the search text."""
        props = properties_of(feature)
        if self.district is not None and self.district not in _alias_values(props, DISTRICT_ALIASES):
            return False
        if self.zip_code is not None and self.zip_code not in _alias_values(props, ZIP_FILTER_ALIASES):
            return False
        return True

    def matches(self, feature: Feature) -> bool:
        return matches_search(feature, self.search) and self.matches_attributes(feature)

    def apply(self, features: Sequence[Feature]) -> List[Feature]:
        return [feature for feature in filter_features(features, self.search) if self.matches_attributes(feature)]


def available_filter_values(features: Sequence[Feature]) -> Dict[str, List[str]]:
    """
    Distinct values offered by the filter controls.

    Returns:
        Sorted 'districts', 'zips' and 'properties' lists
    """
    districts, zips, names = set(), set(), set()
    for feature in features:
        props = properties_of(feature)
        districts.update(_alias_values(props, DISTRICT_ALIASES, require_text=True))
        zips.update(_alias_values(props, ZIP_FILTER_ALIASES))
        names.update(props.keys())

    return {
        "districts": sorted(districts),
        "zips": sorted(zips),
        "properties": sorted(names),
    }
