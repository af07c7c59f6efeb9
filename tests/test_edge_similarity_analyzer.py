import numpy as np
import pytest

from keystone_graph import (
    EdgeSimilarityAnalyzer, compute_similarities, plan_output_layout, IndexOutOfRangeError,
)


@pytest.fixture
def analyzer():
    return EdgeSimilarityAnalyzer(verbose=False)


@pytest.fixture
def scenario_scores(scenario_graph, scenario_plan):
    return compute_similarities(scenario_graph, scenario_plan, dtype=np.float64)


def test_label_scores(analyzer, scenario_graph, scenario_plan, scenario_scores):
    frame = analyzer.label_scores(scenario_graph, scenario_plan, scenario_scores,
                                  include_intersections=True)
    rows = list(frame[['keystone', 'neighbor_i', 'neighbor_j']].itertuples(index=False, name=None))
    assert rows == [(1, 2, 3), (1, 2, 4), (1, 3, 4), (2, 1, 3), (3, 1, 2)]
    assert frame['intersection'].tolist() == [1, 1, 1, 1, 1]
    np.testing.assert_allclose(frame['score'], [0.2, 0.25, 0.25, 1 / 6, 1 / 6])


def test_label_slot_agrees_with_frame(analyzer, random_graph):
    plan = plan_output_layout(random_graph)
    keystones, neighbor_i, neighbor_j = analyzer.slot_labels(random_graph, plan)
    for slot in range(0, plan.total_pairs, max(1, plan.total_pairs // 50)):
        assert analyzer.label_slot(random_graph, plan, slot) == (
            keystones[slot], neighbor_i[slot], neighbor_j[slot])


def test_labelled_pairs_are_neighbors_of_their_keystone(analyzer, random_graph):
    plan = plan_output_layout(random_graph)
    keystones, neighbor_i, neighbor_j = analyzer.slot_labels(random_graph, plan)
    assert np.all(neighbor_i < neighbor_j)
    for k, a, b in zip(keystones[:200], neighbor_i[:200], neighbor_j[:200]):
        group = random_graph.get_neighbors(random_graph.position_of(k))
        assert a in group and b in group


def test_label_scores_rejects_wrong_length(analyzer, scenario_graph, scenario_plan):
    with pytest.raises(IndexOutOfRangeError):
        analyzer.label_scores(scenario_graph, scenario_plan, np.zeros(4))


def test_keystone_summary(analyzer, scenario_graph, scenario_plan, scenario_scores):
    summary = analyzer.keystone_summary(scenario_graph, scenario_plan, scenario_scores)
    assert summary.index.tolist() == [1, 2, 3]
    assert summary.loc[1, 'degree'] == 3
    assert summary.loc[1, 'pair_count'] == 3
    assert summary.loc[1, 'mean_score'] == pytest.approx(0.7 / 3)
    assert summary.loc[1, 'max_score'] == pytest.approx(0.25)
    assert summary.loc[3, 'mean_score'] == pytest.approx(1 / 6)


def test_score_statistics(analyzer, scenario_scores):
    stats = analyzer.score_statistics(scenario_scores, batch_size=2)
    assert stats['count'] == 5
    assert stats['mean'] == pytest.approx(np.mean(scenario_scores))
    assert stats['std'] == pytest.approx(np.std(scenario_scores))
    assert stats['max'] == pytest.approx(0.25)


def test_top_pairs(analyzer, scenario_graph, scenario_plan, scenario_scores):
    frame = analyzer.label_scores(scenario_graph, scenario_plan, scenario_scores)
    top = analyzer.top_pairs(frame, k=2)
    assert len(top) == 2
    assert top['score'].min() == pytest.approx(0.25)


def test_plot_score_distribution(analyzer, scenario_scores):
    fig, ax = analyzer.plot_score_distribution(scenario_scores, bins=10)
    assert ax.get_xlabel() == "score"
    assert sum(p.get_height() for p in ax.patches) == 5
