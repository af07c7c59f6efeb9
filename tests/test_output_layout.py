import numpy as np
import pytest

from keystone_graph import (
    encode_edges, plan_output_layout, NO_OUTPUT, KeystoneGraph, IndexOutOfRangeError,
)


def test_scenario_plan(scenario_plan):
    np.testing.assert_array_equal(scenario_plan.pair_counts, [3, 1, 1, 0])
    np.testing.assert_array_equal(scenario_plan.start_offsets, [0, 3, 4, NO_OUTPUT])
    assert scenario_plan.total_pairs == 5
    np.testing.assert_array_equal(scenario_plan.keystones(), [0, 1, 2])
    assert scenario_plan.slot_range(0) == (0, 3)
    assert scenario_plan.slot_range(3) == (0, 0)


def test_single_edge_has_no_output():
    plan = plan_output_layout(encode_edges([(0, 1)]))
    assert plan.total_pairs == 0
    np.testing.assert_array_equal(plan.start_offsets, [NO_OUTPUT, NO_OUTPUT])


def test_empty_graph_plan():
    plan = plan_output_layout(KeystoneGraph.empty())
    assert plan.total_pairs == 0
    assert plan.order == 0


def test_pair_counts_follow_degrees(random_graph):
    plan = plan_output_layout(random_graph)
    degrees = random_graph.degrees()
    for v in range(random_graph.order):
        d = int(degrees[v])
        if d >= 2:
            assert plan.pair_counts[v] == d * (d - 1) // 2
        else:
            assert plan.pair_counts[v] == 0
            assert plan.start_offsets[v] == NO_OUTPUT
    assert plan.total_pairs == int(plan.pair_counts.sum())
    plan.check_compatible(random_graph)


def test_regions_are_disjoint_and_contiguous(random_graph):
    plan = plan_output_layout(random_graph)
    expected_start = 0
    for v in plan.keystones():
        start, end = plan.slot_range(v)
        assert start == expected_start
        expected_start = end
    assert expected_start == plan.total_pairs


def test_hub_pair_count_is_exact_integer():
    leaves = 70_001
    star = np.column_stack([np.zeros(leaves, dtype=np.int64), np.arange(1, leaves + 1)])
    plan = plan_output_layout(encode_edges(star))
    assert plan.pair_counts[0] == leaves * (leaves - 1) // 2
    assert plan.total_pairs == leaves * (leaves - 1) // 2


def test_keystone_of_slot(scenario_plan):
    assert [scenario_plan.keystone_of_slot(s) for s in range(5)] == [0, 0, 0, 1, 2]
    with pytest.raises(IndexOutOfRangeError):
        scenario_plan.keystone_of_slot(5)


def test_check_compatible_rejects_foreign_plan(scenario_graph):
    other = plan_output_layout(encode_edges([(1, 2), (1, 3), (1, 4), (1, 5)]))
    with pytest.raises(IndexOutOfRangeError):
        other.check_compatible(scenario_graph)


def test_plan_arrays_are_read_only(scenario_plan):
    with pytest.raises(ValueError):
        scenario_plan.start_offsets[0] = 1
