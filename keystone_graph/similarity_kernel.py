"""
Keystone edge-similarity kernels.

For every keystone (vertex of degree >= 2) and every pair of its neighbors
(a, b), the score is

    |N(a) & N(b)| / (deg(a) + deg(b) + 2 - |N(a) & N(b)|)

computed by merging the two sorted neighbor groups. Each keystone writes only
into its own region of the output, as laid out by ``plan_output_layout``, so
the parallel lanes never synchronize.
"""
import numpy as np
from numba import njit, prange

from .core_utilities import pair_count, pair_rank, pair_from_rank
from .exceptions import IndexOutOfRangeError

# Added to the degree sum in the score denominator.
DENOMINATOR_OFFSET = 2

STRATEGIES = ("vertex", "pair")


@njit
def intersection_size(neighbors, start_a, end_a, start_b, end_b):
    """Size of the intersection of two ascending runs of ``neighbors``"""
    i = start_a
    j = start_b
    count = 0
    while i < end_a and j < end_b:
        x = neighbors[i]
        y = neighbors[j]
        if x == y:
            count += 1
            i += 1
            j += 1
        elif x < y:
            i += 1
        else:
            j += 1
    return count


@njit
def _score_pair(bounds, neighbors, a, b):
    start_a = bounds[a]
    end_a = bounds[a + 1]
    start_b = bounds[b]
    end_b = bounds[b + 1]
    shared = intersection_size(neighbors, start_a, end_a, start_b, end_b)
    denominator = (end_a - start_a) + (end_b - start_b) + DENOMINATOR_OFFSET - shared
    return shared / denominator


@njit(parallel=True)
def _vertex_parallel_kernel(bounds, neighbors, neighbor_positions, start_offsets, out):
    order = bounds.shape[0] - 1
    for v in prange(order):
        start = start_offsets[v]
        if start < 0:
            continue
        lo = bounds[v]
        degree = bounds[v + 1] - lo
        for p in range(degree - 1):
            a = neighbor_positions[lo + p]
            for q in range(p + 1, degree):
                b = neighbor_positions[lo + q]
                out[start + pair_rank(p, q, degree)] = _score_pair(bounds, neighbors, a, b)


@njit(parallel=True)
def _pair_parallel_kernel(bounds, neighbors, neighbor_positions, region_ends, out):
    n_slots = out.shape[0]
    for slot in prange(n_slots):
        v = np.searchsorted(region_ends, slot, side='right')
        lo = bounds[v]
        degree = bounds[v + 1] - lo
        rank = slot - (region_ends[v] - pair_count(degree))
        p, q = pair_from_rank(rank, degree)
        a = neighbor_positions[lo + p]
        b = neighbor_positions[lo + q]
        out[slot] = _score_pair(bounds, neighbors, a, b)


@njit(parallel=True)
def _intersection_kernel(bounds, neighbors, neighbor_positions, start_offsets, out):
    order = bounds.shape[0] - 1
    for v in prange(order):
        start = start_offsets[v]
        if start < 0:
            continue
        lo = bounds[v]
        degree = bounds[v + 1] - lo
        for p in range(degree - 1):
            a = neighbor_positions[lo + p]
            for q in range(p + 1, degree):
                b = neighbor_positions[lo + q]
                out[start + pair_rank(p, q, degree)] = intersection_size(
                    neighbors, bounds[a], bounds[a + 1], bounds[b], bounds[b + 1])


def _check_layout(graph, plan):
    if plan.order != graph.order:
        raise IndexOutOfRangeError(
            f"Plan covers {plan.order} vertices, graph has {graph.order}")


def compute_similarities(graph, plan, strategy="vertex", dtype=np.float32):
    """
    Score every neighbor pair of every keystone in parallel.

    Parameters:
    -----------
    graph : KeystoneGraph
        The encoded graph
    plan : OutputPlan
        Output layout built from ``graph``
    strategy : str, default="vertex"
        "vertex" runs one parallel lane per vertex position; "pair" runs one
        lane per output slot, which balances graphs dominated by a few hubs
    dtype : numpy dtype, default=numpy.float32
        Score precision

    Returns:
    --------
    numpy.ndarray
        Score vector of length ``plan.total_pairs`` in slot order
    """
    _check_layout(graph, plan)
    out = np.empty(plan.total_pairs, dtype=dtype)
    if plan.total_pairs == 0:
        return out

    bounds = graph.bounds()
    if strategy == "vertex":
        _vertex_parallel_kernel(bounds, graph.neighbors, graph.neighbor_positions,
                                plan.start_offsets, out)
    elif strategy == "pair":
        _pair_parallel_kernel(bounds, graph.neighbors, graph.neighbor_positions,
                              plan.region_ends(), out)
    else:
        raise ValueError(f"Unknown kernel strategy: {strategy!r} (expected one of {STRATEGIES})")
    return out


def compute_intersection_counts(graph, plan):
    """Exact shared-neighbor count of every scored pair, in slot order"""
    _check_layout(graph, plan)
    out = np.zeros(plan.total_pairs, dtype=np.int64)
    if plan.total_pairs > 0:
        _intersection_kernel(graph.bounds(), graph.neighbors, graph.neighbor_positions,
                             plan.start_offsets, out)
    return out
