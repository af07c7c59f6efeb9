import numba
import numpy as np
import pytest

from keystone_graph import (
    EdgeSimilarityGenerator, SimilarityConfig, MalformedInputError, IndexOutOfRangeError,
    read_scores, write_scores, prewarm_numba_kernels,
)
from keystone_graph.edge_similarity_generator import numba_threads

SCENARIO_TEXT = "1 2\n1 3\n2 3\n1 4\n"
SCENARIO_SCORES = [0.2, 0.25, 0.25, 1 / 6, 1 / 6]


def test_run_returns_score_vector():
    generator = EdgeSimilarityGenerator(verbose=False)
    scores = generator.run(SCENARIO_TEXT)
    np.testing.assert_allclose(scores, SCENARIO_SCORES, rtol=1e-6)


@pytest.mark.parametrize("strategy", ["vertex", "pair"])
def test_run_with_reference_check(random_edges, strategy):
    config = SimilarityConfig(strategy=strategy, use_float32=False, verify_with_reference=True)
    generator = EdgeSimilarityGenerator(config, verbose=False)
    result = generator.run_edges(random_edges)
    assert result.scores.dtype == np.float64
    assert result.scores.shape == (result.plan.total_pairs,)
    np.testing.assert_allclose(result.scores,
                               generator.compute_reference(result.graph, result.plan))


def test_run_is_independent_of_line_order(random_edges):
    generator = EdgeSimilarityGenerator(verbose=False)
    text = "\n".join(f"{u} {w}" for u, w in random_edges.tolist())
    reordered = "\n".join(f"{w} {u}" for u, w in random_edges[::-1].tolist())
    np.testing.assert_array_equal(generator.run(text), generator.run(reordered))


def test_malformed_input_aborts_before_scoring():
    generator = EdgeSimilarityGenerator(verbose=False)
    with pytest.raises(MalformedInputError):
        generator.run("1 2\n2 x\n")
    assert "compute" not in generator.timing.get_stats(as_dict=True)


def test_single_edge_and_empty_input():
    generator = EdgeSimilarityGenerator(verbose=False)
    assert generator.run("0 1\n").shape == (0,)
    assert generator.run("").shape == (0,)


def test_mismatched_plan_is_rejected(scenario_graph):
    generator = EdgeSimilarityGenerator(verbose=False)
    foreign = generator.plan(generator.encode([(1, 2), (2, 3)]))
    with pytest.raises(IndexOutOfRangeError):
        generator.compute(scenario_graph, foreign)


def test_run_file_writes_scores(tmp_path):
    pairs = tmp_path / "simple.pairs"
    pairs.write_text(SCENARIO_TEXT)
    out = tmp_path / "out.jaccs"

    generator = EdgeSimilarityGenerator(verbose=False)
    result = generator.run_file(pairs, out)

    lines = out.read_text().splitlines()
    assert len(lines) == 5
    np.testing.assert_allclose([float(x) for x in lines], SCENARIO_SCORES, rtol=1e-6)
    np.testing.assert_array_equal(read_scores(out), result.scores)


def test_write_scores_float64_round_trip(tmp_path):
    scores = np.array([1 / 3, 1 / 7, 0.25])
    path = tmp_path / "scores.txt"
    write_scores(scores, path)
    np.testing.assert_array_equal(read_scores(path, dtype=np.float64), scores)


def test_missing_file_raises_os_error(tmp_path):
    generator = EdgeSimilarityGenerator(verbose=False)
    with pytest.raises(OSError):
        generator.run_file(tmp_path / "missing.pairs")


def test_numba_threads_are_restored():
    before = numba.get_num_threads()
    with numba_threads(1) as n:
        assert n == 1
        assert numba.get_num_threads() == 1
    assert numba.get_num_threads() == before

    with pytest.raises(RuntimeError):
        with numba_threads(1):
            raise RuntimeError("dispatch failed")
    assert numba.get_num_threads() == before


def test_single_thread_matches_all_threads(random_edges):
    serial = EdgeSimilarityGenerator(SimilarityConfig(n_jobs=1), verbose=False)
    parallel = EdgeSimilarityGenerator(SimilarityConfig(n_jobs=-1), verbose=False)
    np.testing.assert_array_equal(serial.run_edges(random_edges).scores,
                                  parallel.run_edges(random_edges).scores)


def test_unknown_strategy_rejected():
    with pytest.raises(ValueError):
        EdgeSimilarityGenerator(SimilarityConfig(strategy="opencl"), verbose=False)


def test_verbose_run_reports_progress(capsys):
    generator = EdgeSimilarityGenerator(verbose=True, prewarm=True)
    generator.run(SCENARIO_TEXT)
    out = capsys.readouterr().out
    assert "[Kernel]" in out
    assert "Timing statistics" in out
    assert generator.timing.get_operation_total("prewarm") > 0


def test_result_to_frame():
    generator = EdgeSimilarityGenerator(verbose=False)
    result = generator.run_edges([(1, 2), (1, 3), (2, 3), (1, 4)])
    frame = result.to_frame(include_intersections=True)
    assert list(frame.columns) == ['keystone', 'neighbor_i', 'neighbor_j', 'intersection', 'score']
    assert len(frame) == 5


def test_prewarm_is_repeatable():
    prewarm_numba_kernels()
    prewarm_numba_kernels()
