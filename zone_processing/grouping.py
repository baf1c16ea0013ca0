"""
Group index: partition features by ZIP code and fold their numbers together.

Each feature's ZIP is resolved through an ordered list of alias keys. Features
sharing a ZIP are folded, one at a time, into a mutable accumulator; once the
whole collection has been read every accumulator is frozen into an immutable
GroupAggregate. A changed collection means a new index, never a patched one.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from loguru import logger

from .data_utils import (
    ZIP_ALIASES,
    Feature,
    field_value,
    is_missing,
    iter_batches,
    parse_number,
    properties_of,
    resolve_group_key,
)

DEFAULT_BATCH_SIZE = 1000


@dataclass(frozen=True)
class FieldMap:
    """Names of the attributes the engine treats specially."""

    female: str = "Female"
    male: str = "Male"
    population: str = "pop"
    school_count: str = "Schl_Cn"
    ratio: str = "Stdnt_R"
    grades: Tuple[str, ...] = ("Pre_K", "KG", "Grade_1", "Grade_2", "Grade_3", "Grade_4", "Grade_5")

    @property
    def core_fields(self) -> Tuple[str, ...]:
        return self.grades + (self.school_count, self.ratio)

    @classmethod
    def from_config(cls, config: Any) -> "FieldMap":
        """Build a field map from a zone_ops Config."""
        return cls(
            female=config.get_field_name("female"),
            male=config.get_field_name("male"),
            population=config.get_field_name("population"),
            school_count=config.get_field_name("school_count"),
            ratio=config.get_field_name("ratio"),
            grades=tuple(config.get("fields.grades")),
        )


DEFAULT_FIELDS = FieldMap()


@dataclass(frozen=True)
class GroupAggregate:
    """Totals for every feature sharing one group key."""

    key: str
    features: Tuple[Feature, ...]
    record_count: int
    total_female: float
    total_male: float
    total_population: float
    total_schools: float
    core_totals: Mapping[str, float]
    field_totals: Mapping[str, float]

    @property
    def total_students(self) -> float:
        """Primary total: female plus male students, not any single source attribute."""
        return self.total_female + self.total_male


@dataclass
class _GroupAccumulator:
    key: str
    fields: FieldMap
    features: List[Feature] = field(default_factory=list)
    total_female: float = 0.0
    total_male: float = 0.0
    total_population: float = 0.0
    core_totals: Dict[str, float] = field(default_factory=dict)
    field_totals: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.core_totals = {name: 0.0 for name in self.fields.core_fields}

    def fold(self, feature: Feature) -> None:
        props = properties_of(feature)
        self.features.append(feature)

        female = field_value(props, self.fields.female)
        if female is not None:
            self.total_female += female
        male = field_value(props, self.fields.male)
        if male is not None:
            self.total_male += male
        population = field_value(props, self.fields.population)
        if population is not None:
            self.total_population += population

        for name in self.fields.core_fields:
            value = field_value(props, name)
            if value is not None:
                self.core_totals[name] += value

        for key, raw in props.items():
            value = 0.0 if is_missing(raw) else parse_number(raw)
            if value is not None and value >= 0:
                self.field_totals[key] = self.field_totals.get(key, 0.0) + value

    def freeze(self) -> GroupAggregate:
        return GroupAggregate(
            key=self.key,
            features=tuple(self.features),
            record_count=len(self.features),
            total_female=self.total_female,
            total_male=self.total_male,
            total_population=self.total_population,
            total_schools=self.core_totals[self.fields.school_count],
            core_totals=MappingProxyType(dict(self.core_totals)),
            field_totals=MappingProxyType(dict(self.field_totals)),
        )


def build_group_index(
    features: Sequence[Feature],
    aliases: Sequence[str] = ZIP_ALIASES,
    fields: FieldMap = DEFAULT_FIELDS,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Dict[str, GroupAggregate]:
    """
    Group features by ZIP and total their numeric attributes.

    Args:
        features: Feature collection, never modified
        aliases: Group key attribute names in priority order
        fields: Names of the specially treated attributes
        batch_size: Features folded between progress log lines

    Returns:
        Mapping of group key to GroupAggregate, ordered by key
    """
    accumulators: Dict[str, _GroupAccumulator] = {}
    ungrouped = 0

    for start, batch in iter_batches(features, batch_size):
        for feature in batch:
            key = resolve_group_key(properties_of(feature), aliases)
            if key is None:
                ungrouped += 1
                continue
            accumulator = accumulators.get(key)
            if accumulator is None:
                accumulator = _GroupAccumulator(key=key, fields=fields)
                accumulators[key] = accumulator
            accumulator.fold(feature)
        logger.debug(f"  Grouped features {start + 1}-{start + len(batch)} of {len(features)}")

    if ungrouped:
        logger.debug(f"  {ungrouped} features have no ZIP attribute and were left ungrouped")

    index = {key: accumulators[key].freeze() for key in sorted(accumulators)}
    logger.debug(f"Built group index: {len(index)} ZIP codes from {len(features)} features")
    return index
