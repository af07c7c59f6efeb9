"""
EdgeSimilarityAnalyzer - Labelled views and summaries of keystone score vectors.

The score vector carries no labels; every view here reconstructs the
(keystone, neighbor_i, neighbor_j) triple of each slot from the graph and
its output plan.
"""
import numpy as np
import pandas as pd

from .core_utilities import TimingStats, BatchStats, pair_from_rank
from .exceptions import IndexOutOfRangeError
from .similarity_kernel import compute_intersection_counts


class EdgeSimilarityAnalyzer:
    """
    Class for analyzing keystone edge-similarity scores.
    """

    def __init__(self, verbose=True):
        """
        Initialize the analyzer.

        Parameters:
        -----------
        verbose : bool, default=True
            Whether to print progress messages
        """
        self.verbose = verbose
        self.timing = TimingStats()

    @staticmethod
    def _check_scores(plan, scores):
        if len(scores) != plan.total_pairs:
            raise IndexOutOfRangeError(
                f"Score vector has {len(scores)} entries, plan expects {plan.total_pairs}")

    def slot_labels(self, graph, plan):
        """
        Keystone and neighbor identifiers of every slot.

        Returns:
        --------
        keystones, neighbor_i, neighbor_j : numpy.ndarray
            Identifier arrays of length ``plan.total_pairs``
        """
        keystones = np.empty(plan.total_pairs, dtype=np.int64)
        neighbor_i = np.empty(plan.total_pairs, dtype=np.int64)
        neighbor_j = np.empty(plan.total_pairs, dtype=np.int64)

        for v in plan.keystones():
            start, end = plan.slot_range(v)
            group = graph.get_neighbors(v)
            degree = group.shape[0]
            # Row-major pair order: p repeats (d-1-p) times, q runs p+1..d-1
            p_idx = np.repeat(np.arange(degree - 1), np.arange(degree - 1, 0, -1))
            q_idx = np.concatenate([np.arange(p + 1, degree) for p in range(degree - 1)])
            keystones[start:end] = graph.vertex_ids[v]
            neighbor_i[start:end] = group[p_idx]
            neighbor_j[start:end] = group[q_idx]

        return keystones, neighbor_i, neighbor_j

    def label_slot(self, graph, plan, slot):
        """(keystone, neighbor_i, neighbor_j) identifiers of a single slot"""
        v = plan.keystone_of_slot(slot)
        start, _ = plan.slot_range(v)
        group = graph.get_neighbors(v)
        p, q = pair_from_rank(slot - start, group.shape[0])
        return int(graph.vertex_ids[v]), int(group[p]), int(group[q])

    def label_scores(self, graph, plan, scores, include_intersections=False):
        """
        Tabulate scores with their keystone and neighbor identifiers.

        Parameters:
        -----------
        graph : KeystoneGraph
            The graph the scores were computed on
        plan : OutputPlan
            The plan the scores were laid out with
        scores : array-like
            Score vector in slot order
        include_intersections : bool, default=False
            Add the exact shared-neighbor count of each pair

        Returns:
        --------
        pandas.DataFrame
            One row per slot with columns keystone, neighbor_i, neighbor_j,
            [intersection,] score
        """
        self._check_scores(plan, scores)
        self.timing.start("label_scores")

        keystones, neighbor_i, neighbor_j = self.slot_labels(graph, plan)
        frame = pd.DataFrame({
            'keystone': keystones,
            'neighbor_i': neighbor_i,
            'neighbor_j': neighbor_j,
        })
        if include_intersections:
            frame['intersection'] = compute_intersection_counts(graph, plan)
        frame['score'] = np.asarray(scores)

        elapsed = self.timing.end("label_scores")
        if self.verbose:
            print(f"Labelled {len(frame)} scores in {elapsed:.2f}s")
        return frame

    def score_statistics(self, scores, batch_size=1_000_000):
        """
        Count, mean, variance, std, min and max of a score vector,
        accumulated in batches.
        """
        stats = BatchStats()
        scores = np.asarray(scores)
        for s in range(0, scores.shape[0], batch_size):
            stats.update_batch(scores[s:s + batch_size])
        result = stats.get_stats()

        if self.verbose and result['count'] > 0:
            print(f"Score stats: n={result['count']}, mean={result['mean']:.4g}, "
                  f"std={result['std']:.4g}, min={result['min']:.4g}, max={result['max']:.4g}")
        return result

    def keystone_summary(self, graph, plan, scores):
        """
        Per-keystone degree, pair count, mean score and max score.

        Returns:
        --------
        pandas.DataFrame
            Indexed by keystone identifier
        """
        self._check_scores(plan, scores)
        scores = np.asarray(scores, dtype=np.float64)
        positions = plan.keystones()
        counts = plan.pair_counts[positions]
        starts = plan.start_offsets[positions]

        if positions.size:
            sums = np.add.reduceat(scores, starts)
            maxima = np.maximum.reduceat(scores, starts)
        else:
            sums = np.empty(0)
            maxima = np.empty(0)

        frame = pd.DataFrame({
            'keystone': graph.vertex_ids[positions],
            'degree': graph.degrees()[positions],
            'pair_count': counts,
            'mean_score': sums / np.maximum(counts, 1),
            'max_score': maxima,
        })
        return frame.set_index('keystone')

    def top_pairs(self, frame, k=10):
        """The ``k`` highest scoring rows of a ``label_scores`` frame"""
        return frame.nlargest(k, 'score')

    def plot_score_distribution(self, scores, bins=50, ax=None, title="Keystone edge similarities"):
        """
        Histogram of a score vector.

        Returns:
        --------
        fig, ax : matplotlib Figure and Axes
        """
        if ax is None:
            import matplotlib.pyplot as plt
            fig, ax = plt.subplots(figsize=(8, 5))
        else:
            fig = ax.figure

        ax.hist(np.asarray(scores), bins=bins, range=(0.0, 1.0), color='steelblue', alpha=0.8)
        ax.set_xlabel("score")
        ax.set_ylabel("edge pairs")
        ax.set_title(title)
        return fig, ax
