"""
Tests for the aggregate engine.

Group and selection summaries, ratio safety, ranking and the derived
breakdowns shown next to a summary.
"""

import pytest

from conftest import make_feature
from zone_processing.aggregation import (
    EMPTY_SUMMARY,
    NOT_APPLICABLE,
    gender_split,
    grade_distribution,
    rank_groups,
    safe_ratio,
    summaries_frame,
    summarize_group,
    summarize_selection,
)
from zone_processing.grouping import build_group_index


class TestSummarizeGroup:
    """Single-group summaries."""

    def test_totals_and_ratio(self, sample_index):
        summary = summarize_group(sample_index["75001"])
        assert summary.keys == ("75001",)
        assert summary.total_students == 20
        assert summary.female_male_ratio == pytest.approx(13 / 7)

    def test_zero_denominator_not_applicable(self, sample_index):
        summary = summarize_group(sample_index["75002"])
        assert summary.female_male_ratio is NOT_APPLICABLE
        assert summary.avg_students_per_school == 0

    def test_students_per_school(self, school_index):
        summary = summarize_group(school_index["75001"])
        assert summary.avg_students_per_school == 110


class TestSummarizeSelection:
    """Summaries over several groups."""

    def test_scenario_selection(self, sample_index):
        summary = summarize_selection(sample_index, ["75001", "75002"])
        assert summary.total_students == 20
        assert summary.record_count == 3
        assert summary.group_count == 2

    def test_additivity(self, school_index):
        """Every total is the sum of the per-group totals."""
        keys = ["75001", "75002", "75003"]
        combined = summarize_selection(school_index, keys)
        parts = [summarize_group(school_index[key]) for key in keys]

        assert combined.total_students == sum(p.total_students for p in parts)
        assert combined.total_population == sum(p.total_population for p in parts)
        assert combined.total_schools == sum(p.total_schools for p in parts)
        for name, value in combined.core_totals.items():
            assert value == sum(p.core_totals[name] for p in parts)

    @pytest.mark.parametrize(
        "left, right",
        [(["75001"], ["75002", "75003"]), (["75001", "75003"], ["75002"])],
    )
    def test_disjoint_selections_add_up(self, school_index, left, right):
        """A selection summarizes to the sum of any split into disjoint parts."""
        union = summarize_selection(school_index, left + right)
        first = summarize_selection(school_index, left)
        second = summarize_selection(school_index, right)

        for name in (
            "group_count",
            "record_count",
            "total_students",
            "total_female",
            "total_male",
            "total_population",
            "total_schools",
        ):
            assert getattr(union, name) == getattr(first, name) + getattr(second, name), name

        for totals in ("core_totals", "field_totals"):
            combined = getattr(union, totals)
            parts = (getattr(first, totals), getattr(second, totals))
            assert set(combined) == set(parts[0]) | set(parts[1])
            for key, value in combined.items():
                assert value == pytest.approx(sum(part.get(key, 0.0) for part in parts)), key

    def test_ratio_from_sums_not_averaged(self, school_index):
        summary = summarize_selection(school_index, ["75001", "75002"])
        assert summary.female_male_ratio == pytest.approx(200 / 190)
        assert summary.avg_students_per_school == pytest.approx(390 / 3)

    def test_empty_selection_is_identity(self, school_index):
        assert summarize_selection(school_index, []) == EMPTY_SUMMARY
        assert EMPTY_SUMMARY.total_students == 0
        assert EMPTY_SUMMARY.female_male_ratio is NOT_APPLICABLE
        assert dict(EMPTY_SUMMARY.field_totals) == {}

    def test_absent_keys_contribute_nothing(self, sample_index):
        summary = summarize_selection(sample_index, ["75001", "99999"])
        assert summary.keys == ("75001",)
        assert summary.total_students == 20

    def test_duplicate_keys_counted_once(self, sample_index):
        summary = summarize_selection(sample_index, ["75001", "75001"])
        assert summary.total_students == 20

    def test_order_independent(self, school_index):
        forward = summarize_selection(school_index, ["75001", "75003"])
        backward = summarize_selection(school_index, ["75003", "75001"])
        assert forward.total_students == backward.total_students
        assert forward.female_male_ratio == backward.female_male_ratio

    def test_selection_of_zero_groups_only(self, sample_index):
        summary = summarize_selection(sample_index, ["75002"])
        assert summary.female_male_ratio is NOT_APPLICABLE
        assert summary.total_students == 0


class TestSafeRatio:
    """Division helpers."""

    def test_zero_denominator(self):
        assert safe_ratio(5, 0) is NOT_APPLICABLE
        assert safe_ratio(0, 0) is NOT_APPLICABLE

    def test_regular_division(self):
        assert safe_ratio(3, 4) == 0.75


class TestRankGroups:
    """Ranking groups by a metric."""

    def test_highest_first(self, school_index):
        rows = rank_groups(school_index, [], "total_students")
        assert rows == [("75001", 220), ("75002", 170), ("75003", 50)]

    def test_top_n(self, school_index):
        assert rank_groups(school_index, [], "total_students", top_n=1) == [("75001", 220)]

    def test_top_n_none_returns_all(self, school_index):
        assert len(rank_groups(school_index, [], "total_students", top_n=None)) == 3

    def test_selection_limits_candidates(self, school_index):
        rows = rank_groups(school_index, ["75003", "75002"], "total_students")
        assert [key for key, _ in rows] == ["75002", "75003"]

    def test_ties_ordered_by_key(self):
        index = build_group_index(
            [make_feature(Zip="75009", Female=5), make_feature(Zip="75004", Female=5)]
        )
        assert rank_groups(index, [], "total_female") == [("75004", 5), ("75009", 5)]

    def test_not_applicable_ranks_last(self, sample_index):
        rows = rank_groups(sample_index, [], "female_male_ratio")
        assert rows[-1] == ("75002", None)

    def test_any_attribute_by_name(self, school_index):
        rows = rank_groups(school_index, [], "Grade_2")
        assert rows[0] == ("75001", 60)

    def test_invalid_top_n(self, school_index):
        with pytest.raises(ValueError):
            rank_groups(school_index, [], "total_students", top_n=0)


class TestBreakdowns:
    """Grade distribution, gender split and summary tables."""

    def test_grade_distribution(self, school_index):
        summary = summarize_group(school_index["75001"])
        rows = grade_distribution(summary)

        labels = [label for label, _, _ in rows]
        assert labels[:3] == ["Pre-K", "KG", "Grade 1"]
        assert rows[1][1] == 40
        assert rows[1][2] == pytest.approx(40 / 220 * 100)
        assert sum(pct for _, _, pct in rows) == pytest.approx(100)

    def test_grade_distribution_of_empty_summary(self):
        assert all(pct == 0 for _, _, pct in grade_distribution(EMPTY_SUMMARY))

    def test_gender_split(self, sample_index):
        female, male = gender_split(summarize_group(sample_index["75001"]))
        assert female == pytest.approx(65)
        assert male == pytest.approx(35)
        assert gender_split(EMPTY_SUMMARY) == (0, 0)

    def test_summaries_frame(self, school_index):
        frame = summaries_frame(school_index, ["75002", "75001"])
        assert list(frame["zip"]) == ["75002", "75001"]
        assert list(frame["students"]) == [170, 220]

    def test_summaries_frame_all_groups(self, sample_index):
        frame = summaries_frame(sample_index)
        assert len(frame) == 2
        assert frame["female_male_ratio"].isna().iloc[1]
