"""
Explorer session: the single owner of the loaded data and the user's focus.

The session holds the feature collection and everything derived from it (the
schema, the ZIP group index), the selection and search state, and the summary
of the current selection. It is the one place where triggers happen: a new
collection, a search change, a selection toggle. Each trigger recomputes what
depends on it synchronously.

A new collection is swapped in only after its schema and group index have
been built, so a failed load leaves the previous data untouched.
"""

from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd
from loguru import logger

from zone_ops.config_loader import Config
from zone_ops.feature_cache import FeatureCache

from .aggregation import DEFAULT_TOP_N, EMPTY_SUMMARY, Summary, rank_groups, summaries_frame, summarize_selection
from .data_utils import ZIP_ALIASES, Feature
from .decoder import decode, read_shapefile_buffers, to_feature_collection
from .grouping import DEFAULT_BATCH_SIZE, DEFAULT_FIELDS, FieldMap, GroupAggregate, build_group_index
from .projection import Page, clamp_page, count_pages, project
from .schema import SchemaEntry, discover_schema
from .selection import (
    AttributeFilter,
    ExplorerState,
    SelectionState,
    available_filter_values,
    filter_group_keys,
)

DEFAULT_PAGE_SIZE = 10

Decoder = Callable[..., List[Feature]]


class ExplorerSession:
    """
    Interactive exploration of one school zone feature collection.

    Example:
        session = ExplorerSession.from_config(Config())
        session.load_from_cache()
        session.toggle_zip("75001")
        session.summary.total_students
    """

    def __init__(
        self,
        cache: Optional[FeatureCache] = None,
        decoder: Decoder = decode,
        aliases: Sequence[str] = ZIP_ALIASES,
        fields: FieldMap = DEFAULT_FIELDS,
        page_size: int = DEFAULT_PAGE_SIZE,
        rank_top_n: int = DEFAULT_TOP_N,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """Initialize an empty session.

        Args:
            cache: Feature cache service; None disables caching
            decoder: decode(shp_bytes, dbf_bytes, shx_bytes) -> features
            aliases: ZIP attribute names in priority order
            fields: Names of the specially treated attributes
            page_size: Records per page of the record view
            rank_top_n: Default number of rows in rankings
            batch_size: Features per progress step when building the index
        """
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")

        self.cache = cache
        self.decoder = decoder
        self.aliases = tuple(aliases)
        self.fields = fields
        self.page_size = page_size
        self.rank_top_n = rank_top_n
        self.batch_size = batch_size

        self.features: Tuple[Feature, ...] = ()
        self.schema: List[SchemaEntry] = []
        self.group_index: Dict[str, GroupAggregate] = {}
        self.selection_state = SelectionState()
        self.page = 1
        self.attribute_filter = AttributeFilter()
        self._summary: Summary = EMPTY_SUMMARY
        self._filtered: Optional[Tuple[AttributeFilter, List[Feature]]] = None

    @classmethod
    def from_config(cls, config: Config, **overrides: Any) -> "ExplorerSession":
        """Build a session wired to the cache and settings in a Config."""
        options: Dict[str, Any] = {
            "cache": FeatureCache(
                config.get_cache_path(), max_age=timedelta(hours=config.get_cache_max_age_hours())
            ),
            "aliases": config.get_zip_aliases(),
            "fields": FieldMap.from_config(config),
            "page_size": int(config.get_engine_setting("page_size")),
            "rank_top_n": int(config.get_engine_setting("rank_top_n")),
            "batch_size": int(config.get_engine_setting("batch_size")),
        }
        options.update(overrides)
        return cls(**options)

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------

    def replace_features(self, features: Sequence[Feature]) -> None:
        """Swap in a new feature collection and rebuild everything derived from it."""
        features = tuple(features)
        schema = discover_schema(features)
        group_index = build_group_index(
            features, aliases=self.aliases, fields=self.fields, batch_size=self.batch_size
        )

        self.features = features
        self.schema = schema
        self.group_index = group_index
        self._filtered = None
        self._refresh_summary()

        logger.info(
            f"📊 Loaded {len(features)} features: {len(schema)} columns, {len(group_index)} ZIP codes"
        )

    def load_from_cache(self) -> bool:
        """
        Load the cached collection, if there is a fresh one.

        Returns:
            True if data was loaded; False leaves the session as it was
        """
        if self.cache is None:
            return False

        collection = self.cache.load()
        if collection is None:
            logger.info("📭 No cached data; starting empty")
            return False

        self.replace_features(collection["features"])
        return True

    def load_shapefile(
        self, shp_bytes: bytes, dbf_bytes: bytes, shx_bytes: Optional[bytes] = None
    ) -> int:
        """
        Decode a shapefile, make it the session's data and cache it.

        Returns:
            Number of features loaded

        Raises:
            DecodeError: If the buffers cannot be decoded; session state is unchanged
        """
        features = self.decoder(shp_bytes, dbf_bytes, shx_bytes)
        self.replace_features(features)

        if self.cache is not None and self.cache.save(to_feature_collection(list(features))):
            logger.success("✅ Data saved to cache")
        return len(self.features)

    def load_files(self, base_path: Union[str, Path]) -> int:
        """
        Load a shapefile from disk by its base path (no extension).

        Raises:
            FileNotFoundError: If the .shp or .dbf component is missing
            DecodeError: If the files cannot be decoded
        """
        return self.load_shapefile(*read_shapefile_buffers(base_path))

    def clear_data(self) -> None:
        """Drop the loaded data, the selection and the cached copy."""
        if self.cache is not None:
            self.cache.clear()
        self.selection_state = SelectionState()
        self.attribute_filter = AttributeFilter()
        self.page = 1
        self.replace_features(())

    # ------------------------------------------------------------------
    # Selection and search
    # ------------------------------------------------------------------

    def _refresh_summary(self) -> None:
        self._summary = summarize_selection(self.group_index, self.selection_state.selection)

    @property
    def state(self) -> ExplorerState:
        return self.selection_state.state

    @property
    def selection(self) -> Tuple[str, ...]:
        return self.selection_state.selection

    @property
    def search(self) -> str:
        return self.selection_state.search

    @property
    def summary(self) -> Summary:
        """Summary of the current selection, kept in step with every change."""
        return self._summary

    def toggle_zip(self, key: str) -> bool:
        """Select or deselect a ZIP code. Returns True if it is now selected."""
        selected = self.selection_state.toggle_group(key)
        self._refresh_summary()
        return selected

    def clear_selection(self) -> None:
        self.selection_state.clear_selection()
        self._refresh_summary()

    def set_search(self, text: str) -> None:
        """Replace the search text and go back to the first page."""
        self.selection_state.set_search(text)
        self.page = 1

    def set_filters(self, district: Optional[str] = None, zip_code: Optional[str] = None) -> None:
        """Replace the district and ZIP filters and go back to the first page."""
        self.attribute_filter = AttributeFilter(district=district, zip_code=zip_code)
        self.page = 1

    def filter_options(self) -> Dict[str, List[str]]:
        """Districts, ZIP codes and property names the filters can be set to."""
        return available_filter_values(self.features)

    @property
    def filtered_features(self) -> List[Feature]:
        """Features passing the search text and filters, reused until either or the data changes."""
        active = AttributeFilter(
            search=self.selection_state.search,
            district=self.attribute_filter.district,
            zip_code=self.attribute_filter.zip_code,
        )
        if self._filtered is None or self._filtered[0] != active:
            self._filtered = (active, active.apply(self.features))
        return self._filtered[1]

    def zip_codes(self, search: str = "") -> List[str]:
        """ZIP codes in the index, narrowed by a ZIP search."""
        return filter_group_keys(list(self.group_index), search)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def go_to_page(self, page: int) -> None:
        if page < 1:
            raise ValueError(f"page must be at least 1, got {page}")
        self.page = page

    def current_page(self) -> Page:
        """The current window of filtered records, with the page pulled back into range."""
        records = self.filtered_features
        self.page = clamp_page(self.page, count_pages(len(records), self.page_size))
        return project(records, self.page, self.page_size)

    def ranking(self, metric: str, top_n: Optional[int] = None) -> List[Tuple[str, Optional[float]]]:
        """Rank the selected ZIP codes (all of them when none are selected)."""
        return rank_groups(
            self.group_index, self.selection, metric, top_n if top_n is not None else self.rank_top_n
        )

    def selection_frame(self) -> pd.DataFrame:
        """Per-ZIP summaries of the selection, in selection order."""
        return summaries_frame(self.group_index, self.selection)
