"""
Core utilities for the keystone_graph framework.
Contains timing/statistics helpers and the numba-compiled pair-rank bijection
shared by the layout planner, the kernels and the analyzer.
"""
import time
from contextlib import contextmanager
from collections import defaultdict

import numpy as np
from numba import njit


class TimingStats:
    """Tracks wall-clock time per named operation across repeated calls"""
    def __init__(self):
        self.stats = defaultdict(list)
        self.current_timers = {}

    def start(self, operation):
        """Start timing an operation"""
        self.current_timers[operation] = time.perf_counter()

    def end(self, operation):
        """End timing an operation and record the elapsed time"""
        started = self.current_timers.pop(operation, None)
        if started is None:
            return None
        elapsed = time.perf_counter() - started
        self.stats[operation].append(elapsed)
        return elapsed

    @contextmanager
    def timed(self, operation):
        """Time the body of a ``with`` block, also when it raises"""
        self.start(operation)
        try:
            yield
        finally:
            self.end(operation)

    def get_stats(self, as_dict=False):
        """Get statistics for all operations"""
        result = {}
        for op, times in self.stats.items():
            result[op] = {
                'count': len(times),
                'total': sum(times),
                'mean': sum(times) / len(times),
                'min': min(times),
                'max': max(times),
            }

        if as_dict:
            return result

        lines = ["Timing statistics:"]
        for op, stats in sorted(result.items(), key=lambda x: x[1]['total'], reverse=True):
            lines.append(f"  • {op}: {stats['total']:.4f}s total, "
                         f"{stats['count']} calls, "
                         f"{stats['mean']:.4f}s avg/call")
        return "\n".join(lines)

    def get_operation_total(self, operation):
        """Get total time for a specific operation"""
        return sum(self.stats.get(operation, ()))

    def report_nested_timing(self, parent_op, indent=2):
        """Report the ``parent_op.*`` operations as shares of ``parent_op``"""
        parent_total = self.get_operation_total(parent_op)
        if parent_total <= 0:
            return f"No timing data for {parent_op}"

        lines = [f"Breakdown of {parent_op} ({parent_total:.4f}s total):"]
        prefix = f"{parent_op}."
        children = [(op[len(prefix):], sum(times)) for op, times in self.stats.items()
                    if op.startswith(prefix)]
        children.sort(key=lambda x: x[1], reverse=True)

        indent_str = " " * indent
        for name, total in children:
            lines.append(f"{indent_str}• {name}: {total:.4f}s ({100 * total / parent_total:.1f}%)")

        other_time = parent_total - sum(t for _, t in children)
        if other_time > 0:
            lines.append(f"{indent_str}• other: {other_time:.4f}s "
                         f"({100 * other_time / parent_total:.1f}%)")
        return "\n".join(lines)


class BatchStats:
    """
    Online count/mean/variance/min/max over batches of values.
    Merges each batch with the parallel-variance update (Chan et al.).
    """
    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self.M2 = 0.0
        self.min_val = float('inf')
        self.max_val = float('-inf')

    def update_batch(self, batch_values):
        """
        Fold a batch of values into the running statistics

        Parameters:
        -----------
        batch_values : numpy.ndarray
            Array of new values to include in statistics
        """
        batch = np.asarray(batch_values, dtype=np.float64)
        if batch.size == 0:
            return

        batch_count = batch.size
        batch_mean = float(batch.mean())
        batch_M2 = float(np.sum((batch - batch_mean) ** 2))

        self.min_val = min(self.min_val, float(batch.min()))
        self.max_val = max(self.max_val, float(batch.max()))

        new_count = self.count + batch_count
        delta = batch_mean - self.mean
        self.mean += delta * batch_count / new_count
        self.M2 += batch_M2 + delta ** 2 * self.count * batch_count / new_count
        self.count = new_count

    def get_variance(self):
        """Population variance of everything seen so far"""
        if self.count < 2:
            return 0.0
        return self.M2 / self.count

    def get_std(self):
        return float(np.sqrt(self.get_variance()))

    def get_stats(self):
        """Get all statistics as a dictionary"""
        return {
            'count': self.count,
            'mean': self.mean if self.count > 0 else None,
            'variance': self.get_variance(),
            'std': self.get_std(),
            'min': self.min_val if self.count > 0 else None,
            'max': self.max_val if self.count > 0 else None,
        }


# Pair-rank bijection. For a keystone of degree d, the unordered neighbor
# pairs (p, q), p < q, are ranked row-major: row p holds d-1-p pairs.

@njit
def pair_count(degree):
    """Number of unordered neighbor pairs of a vertex with this degree"""
    if degree < 2:
        return 0
    return degree * (degree - 1) // 2


@njit
def _row_start(p, degree):
    return p * (2 * degree - p - 1) // 2


@njit
def pair_rank(p, q, degree):
    """
    Rank of the neighbor pair (p, q) among the pairs of a keystone.

    Parameters:
    -----------
    p, q : int
        Positions in the keystone's sorted neighbor list, ``0 <= p < q < degree``
    degree : int
        Degree of the keystone

    Returns:
    --------
    int
        Slot of the pair relative to the keystone's start offset
    """
    return _row_start(p, degree) + (q - p - 1)


@njit
def pair_from_rank(rank, degree):
    """
    Inverse of ``pair_rank``: recover (p, q) from a pair rank.

    The row is estimated from the quadratic ``p^2 - (2d-1)p + 2r = 0`` and then
    corrected with integer arithmetic, so floating-point error in the square
    root never shifts the result.
    """
    b = 2 * degree - 1
    disc = b * b - 8 * rank
    if disc < 0:
        disc = 0
    p = int((b - np.sqrt(disc)) // 2)
    if p < 0:
        p = 0
    while p > 0 and _row_start(p, degree) > rank:
        p -= 1
    while p + 1 < degree and _row_start(p + 1, degree) <= rank:
        p += 1
    q = rank - _row_start(p, degree) + p + 1
    return p, q
