"""
Tests for weighted group allocation and the algorithm selector
"""

import pytest
import numpy as np

from quota_allocator import (
    GradeLadder, TIER_COUNT, RatioStrategy, Algorithm, allocate, select_algorithm, achieved_total,
    distribute_weighted_groups, normalize_group_ratios, resolve_group_ratios, market_type_of,
    as_customer_frame, InvalidGroupRatioError, UnmappedGroupError, InvalidInputError,
)


def flat(value):
    return [value] * TIER_COUNT


SEGMENTS = ["n1", "n2", "s1"]
COUNTS = [flat(4), flat(6), flat(10)]
GROUPING = {"n1": "north", "n2": "north", "s1": "south"}


class TestGroupRatios:
    """Test cases for ratio normalization and strategies"""

    def test_normalize_drops_non_positive(self):
        ratios = normalize_group_ratios({"a": 3, "b": 1, "c": 0, "d": -2})
        assert ratios == pytest.approx({"a": 0.75, "b": 0.25})

    def test_normalize_rejects_all_zero(self):
        with pytest.raises(InvalidGroupRatioError):
            normalize_group_ratios({"a": 0, "b": -1})
        with pytest.raises(InvalidGroupRatioError):
            normalize_group_ratios({})

    def test_market_type_from_name(self):
        assert market_type_of("Hangzhou urban") == "urban"
        assert market_type_of("west rural 3") == "rural"
        assert market_type_of("杭州农网") == "rural"
        assert market_type_of("plain") == "urban"

    def test_customer_proportional(self):
        frame = as_customer_frame(SEGMENTS, COUNTS)
        raw = resolve_group_ratios(RatioStrategy.CUSTOMER_PROPORTIONAL, frame, GradeLadder.full(), GROUPING)
        assert raw == pytest.approx({"north": 0.5, "south": 0.5})

    def test_fixed_needs_ratios(self):
        frame = as_customer_frame(SEGMENTS, COUNTS)
        with pytest.raises(InvalidGroupRatioError):
            resolve_group_ratios(RatioStrategy.FIXED, frame, GradeLadder.full(), GROUPING, None)


class TestWeightedGroups:
    """Test cases for the group-splitting algorithm"""

    def test_ratio_scale_does_not_matter(self):
        """{north: 2, south: 2} and {north: 1, south: 1} give the same allocation"""
        a = distribute_weighted_groups(SEGMENTS, COUNTS, 1000, grouping=GROUPING,
                                       group_ratios={"north": 2, "south": 2})
        b = distribute_weighted_groups(SEGMENTS, COUNTS, 1000, grouping=GROUPING,
                                       group_ratios={"north": 1, "south": 1})
        assert a.equals(b)

    def test_group_totals_follow_ratios(self):
        counts = np.array(COUNTS, dtype=float)
        result = distribute_weighted_groups(SEGMENTS, counts, 1000, grouping=GROUPING,
                                            group_ratios={"north": 3, "south": 1})
        north = achieved_total(result.loc[["n1", "n2"]], counts[:2])
        south = achieved_total(result.loc[["s1"]], counts[2:])
        assert north == pytest.approx(750, abs=0.5)
        assert south == pytest.approx(250, abs=0.5)

    def test_rows_come_back_in_input_order(self):
        grouping = {"n1": "north", "s1": "south", "n2": "north"}
        segments = ["n1", "s1", "n2"]
        result = distribute_weighted_groups(segments, COUNTS, 500, grouping=grouping,
                                            group_ratios={"north": 1, "south": 1})
        assert list(result.index) == segments

    def test_single_segment_group_uses_its_own_counts(self):
        counts = [flat(10), flat(10), flat(7)]
        result = distribute_weighted_groups(SEGMENTS, counts, 400, grouping=GROUPING,
                                            group_ratios={"north": 1, "south": 1})
        assert achieved_total(result.loc[["s1"]], [counts[2]]) == pytest.approx(200, abs=0.1)

    def test_zero_ratio_group_stays_at_zero(self):
        result = distribute_weighted_groups(SEGMENTS, COUNTS, 600, grouping=GROUPING,
                                            group_ratios={"north": 1, "south": 0})
        assert not result.loc["s1"].to_numpy().any()
        assert achieved_total(result, COUNTS) == pytest.approx(600, abs=0.5)

    def test_unmapped_segment(self):
        grouping = {"n1": "north", "n2": "north"}
        with pytest.raises(UnmappedGroupError) as exc:
            distribute_weighted_groups(SEGMENTS, COUNTS, 100, grouping=grouping, group_ratios={"north": 1})
        assert exc.value.segment == "s1"

    def test_group_without_ratio_entry(self):
        with pytest.raises(UnmappedGroupError) as exc:
            distribute_weighted_groups(SEGMENTS, COUNTS, 100, grouping=GROUPING, group_ratios={"north": 1})
        assert exc.value.group == "south"

    def test_no_positive_ratio(self):
        with pytest.raises(InvalidGroupRatioError):
            distribute_weighted_groups(SEGMENTS, COUNTS, 100, grouping=GROUPING,
                                       group_ratios={"north": 0, "south": 0})

    def test_callable_grouping(self):
        result = distribute_weighted_groups(SEGMENTS, COUNTS, 300, grouping=lambda s: s[0],
                                            group_ratios={"n": 1, "s": 2})
        assert achieved_total(result.loc[["s1"]], [COUNTS[2]]) == pytest.approx(200, abs=0.1)

    def test_default_market_strategy(self):
        segments = ["city urban", "village rural"]
        counts = [flat(10), flat(10)]
        result = distribute_weighted_groups(segments, counts, 1000, strategy=RatioStrategy.DEFAULT_MARKET)
        assert achieved_total(result.loc[["city urban"]], [counts[0]]) == pytest.approx(400, abs=0.1)
        assert achieved_total(result.loc[["village rural"]], [counts[1]]) == pytest.approx(600, abs=0.1)


class TestSelector:
    """Test cases for algorithm selection and allocate()"""

    def test_selection_rules(self):
        assert select_algorithm(1, GROUPING, {"north": 1}) is Algorithm.SINGLE_LEVEL
        assert select_algorithm(3) is Algorithm.COLUMN_WISE
        assert select_algorithm(3, GROUPING, {"north": 1, "south": 1}) is Algorithm.GROUP_SPLITTING
        assert select_algorithm(3, None, None, RatioStrategy.DEFAULT_MARKET) is Algorithm.GROUP_SPLITTING

    def test_allocate_result(self):
        result = allocate(SEGMENTS, COUNTS, 1000, grouping=GROUPING, group_ratios={"north": 1, "south": 1})
        assert result.algorithm is Algorithm.GROUP_SPLITTING
        assert result.target == 1000
        assert result.error == pytest.approx(abs(result.achieved - 1000))
        assert result.error < 1

    def test_forced_algorithm(self):
        result = allocate(SEGMENTS, COUNTS, 1000, algorithm="single")
        assert result.algorithm is Algorithm.SINGLE_LEVEL
        assert (result.allocation.nunique(axis=0) == 1).all()

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError):
            allocate(SEGMENTS, COUNTS, 1000, algorithm="greedy")

    def test_invalid_input_surfaces_before_selection(self):
        with pytest.raises(InvalidInputError):
            allocate([], [], 1000)


if __name__ == "__main__":
    pytest.main([__file__])
