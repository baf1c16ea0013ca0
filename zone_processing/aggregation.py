"""
Aggregate engine: summaries for one ZIP group or for a selection of groups.

Selection summaries add up the raw totals of every selected group and then
derive ratios and averages from those sums. Ratios are never averaged across
groups, so a small ZIP carries exactly its own weight.

A ratio whose denominator is zero is "not applicable" and reported as None.
Keys that name no group contribute nothing.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from .grouping import DEFAULT_FIELDS, GroupAggregate

NOT_APPLICABLE = None
DEFAULT_TOP_N = 10

SUMMARY_METRICS = (
    "record_count",
    "total_students",
    "total_female",
    "total_male",
    "total_population",
    "total_schools",
    "female_male_ratio",
    "avg_students_per_school",
)

GRADE_LABELS = {"Pre_K": "Pre-K", "KG": "KG"}


@dataclass(frozen=True)
class Summary:
    """Totals and derived figures for one group or a selection of groups."""

    keys: Tuple[str, ...]
    group_count: int
    record_count: int
    total_students: float
    total_female: float
    total_male: float
    total_population: float
    total_schools: float
    core_totals: Mapping[str, float]
    field_totals: Mapping[str, float]
    female_male_ratio: Optional[float]
    avg_students_per_school: float


def safe_ratio(numerator: float, denominator: float) -> Optional[float]:
    """numerator / denominator, or NOT_APPLICABLE when the denominator is zero."""
    if denominator == 0:
        return NOT_APPLICABLE
    return numerator / denominator


def per_unit_average(total: float, units: float) -> float:
    """Average per unit, treating zero units as an average of zero."""
    if units == 0:
        return 0.0
    return total / units


def _make_summary(
    keys: Tuple[str, ...],
    record_count: int,
    total_female: float,
    total_male: float,
    total_population: float,
    total_schools: float,
    core_totals: Mapping[str, float],
    field_totals: Mapping[str, float],
) -> Summary:
    total_students = total_female + total_male
    return Summary(
        keys=keys,
        group_count=len(keys),
        record_count=record_count,
        total_students=total_students,
        total_female=total_female,
        total_male=total_male,
        total_population=total_population,
        total_schools=total_schools,
        core_totals=MappingProxyType(dict(core_totals)),
        field_totals=MappingProxyType(dict(field_totals)),
        female_male_ratio=safe_ratio(total_female, total_male),
        avg_students_per_school=per_unit_average(total_students, total_schools),
    )


EMPTY_SUMMARY = _make_summary((), 0, 0.0, 0.0, 0.0, 0.0, {}, {})


def summarize_group(aggregate: GroupAggregate) -> Summary:
    """Summarize a single ZIP group."""
    return _make_summary(
        keys=(aggregate.key,),
        record_count=aggregate.record_count,
        total_female=aggregate.total_female,
        total_male=aggregate.total_male,
        total_population=aggregate.total_population,
        total_schools=aggregate.total_schools,
        core_totals=aggregate.core_totals,
        field_totals=aggregate.field_totals,
    )


def _selected_groups(
    index: Mapping[str, GroupAggregate], selection: Iterable[str]
) -> List[GroupAggregate]:
    # Duplicates counted once; keys absent from the index contribute nothing.
    return [index[key] for key in dict.fromkeys(selection) if key in index]


def _add_into(target: Dict[str, float], totals: Mapping[str, float]) -> None:
    for name, value in totals.items():
        target[name] = target.get(name, 0.0) + value


def summarize_selection(index: Mapping[str, GroupAggregate], selection: Sequence[str]) -> Summary:
    """
    Summarize a selection of ZIP groups.

    Args:
        index: Group index from build_group_index
        selection: Selected group keys, in selection order

    Returns:
        Element-wise sum of the selected groups' totals with ratios recomputed
        from those sums; EMPTY_SUMMARY when nothing is selected
    """
    if not selection:
        return EMPTY_SUMMARY

    groups = _selected_groups(index, selection)
    stale = len(dict.fromkeys(selection)) - len(groups)
    if stale:
        logger.debug(f"  {stale} selected ZIP codes are not in the current data")

    record_count = 0
    total_female = total_male = total_population = total_schools = 0.0
    core_totals: Dict[str, float] = {}
    field_totals: Dict[str, float] = {}

    for group in groups:
        record_count += group.record_count
        total_female += group.total_female
        total_male += group.total_male
        total_population += group.total_population
        total_schools += group.total_schools
        _add_into(core_totals, group.core_totals)
        _add_into(field_totals, group.field_totals)

    return _make_summary(
        keys=tuple(group.key for group in groups),
        record_count=record_count,
        total_female=total_female,
        total_male=total_male,
        total_population=total_population,
        total_schools=total_schools,
        core_totals=core_totals,
        field_totals=field_totals,
    )


def metric_value(summary: Summary, metric: str) -> Optional[float]:
    """Read a summary figure by name, falling back to the per-field sums."""
    if metric in SUMMARY_METRICS:
        return getattr(summary, metric)
    return summary.field_totals.get(metric, 0.0)


def rank_groups(
    index: Mapping[str, GroupAggregate],
    selection: Sequence[str],
    metric: str,
    top_n: Optional[int] = DEFAULT_TOP_N,
) -> List[Tuple[str, Optional[float]]]:
    """
    Rank groups by a metric, highest first.

    Args:
        index: Group index from build_group_index
        selection: Keys to rank; an empty selection ranks every group
        metric: A SUMMARY_METRICS name or any attribute name in field_totals
        top_n: Maximum rows returned, None for all

    Returns:
        (key, value) pairs; ties ordered by key, not-applicable values last
    """
    if top_n is not None and top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")

    groups = _selected_groups(index, selection) if selection else list(index.values())
    scored = [(group.key, metric_value(summarize_group(group), metric)) for group in groups]
    scored.sort(key=lambda item: (item[1] is None, -(item[1] or 0.0), item[0]))

    return scored if top_n is None else scored[:top_n]


def grade_distribution(
    summary: Summary, grades: Sequence[str] = DEFAULT_FIELDS.grades
) -> List[Tuple[str, float, float]]:
    """
    Enrollment per grade level.

    Returns:
        (label, students, percent of all grade-level students) per grade
    """
    counts = [(name, summary.core_totals.get(name, 0.0)) for name in grades]
    grade_total = sum(count for _, count in counts)
    return [
        (
            GRADE_LABELS.get(name, name.replace("_", " ")),
            count,
            per_unit_average(count, grade_total) * 100,
        )
        for name, count in counts
    ]


def gender_split(summary: Summary) -> Tuple[float, float]:
    """Female and male shares of the primary total, in percent."""
    return (
        per_unit_average(summary.total_female, summary.total_students) * 100,
        per_unit_average(summary.total_male, summary.total_students) * 100,
    )


def summaries_frame(
    index: Mapping[str, GroupAggregate], keys: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Tabulate per-group summaries.

    Args:
        index: Group index from build_group_index
        keys: Groups to include, in row order; all groups when None

    Returns:
        DataFrame with one row per group
    """
    groups = _selected_groups(index, keys) if keys is not None else list(index.values())
    rows = []
    for group in groups:
        summary = summarize_group(group)
        rows.append(
            {
                "zip": group.key,
                "records": summary.record_count,
                "students": summary.total_students,
                "female": summary.total_female,
                "male": summary.total_male,
                "population": summary.total_population,
                "schools": summary.total_schools,
                "female_male_ratio": summary.female_male_ratio,
                "avg_students_per_school": summary.avg_students_per_school,
            }
        )
    columns = [
        "zip",
        "records",
        "students",
        "female",
        "male",
        "population",
        "schools",
        "female_male_ratio",
        "avg_students_per_school",
    ]
    return pd.DataFrame(rows, columns=columns)
