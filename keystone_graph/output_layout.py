"""
Output layout planning - assigns every keystone a disjoint region of the
flat score vector.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .exceptions import IndexOutOfRangeError

NO_OUTPUT = -1


@dataclass(frozen=True, eq=False)
class OutputPlan:
    pair_counts: np.ndarray            # C(degree, 2) per vertex position, 0 below degree 2
    start_offsets: np.ndarray          # first slot per vertex position, NO_OUTPUT if none
    total_pairs: int

    @property
    def order(self) -> int:
        return int(self.pair_counts.shape[0])

    def keystones(self) -> np.ndarray:
        """Vertex positions that own an output region"""
        return np.flatnonzero(self.start_offsets != NO_OUTPUT)

    def slot_range(self, position: int) -> Tuple[int, int]:
        """Half-open slot range of a vertex position; (0, 0) if it has none"""
        start = int(self.start_offsets[position])
        if start == NO_OUTPUT:
            return 0, 0
        return start, start + int(self.pair_counts[position])

    def region_ends(self) -> np.ndarray:
        """Inclusive prefix sum of pair counts (end slot per vertex position)"""
        return np.cumsum(self.pair_counts)

    def keystone_of_slot(self, slot: int) -> int:
        """Vertex position whose region contains ``slot``"""
        if slot < 0 or slot >= self.total_pairs:
            raise IndexOutOfRangeError(
                f"Slot {slot} out of range [0, {self.total_pairs - 1}]")
        return int(np.searchsorted(self.region_ends(), slot, side='right'))

    def check_compatible(self, graph) -> None:
        """
        Raise IndexOutOfRangeError unless this plan was built for ``graph``.
        """
        if self.order != graph.order:
            raise IndexOutOfRangeError(
                f"Plan covers {self.order} vertices, graph has {graph.order}")
        expected = _pair_counts(graph.degrees())
        if not np.array_equal(expected, self.pair_counts):
            raise IndexOutOfRangeError("Plan pair counts do not match graph degrees")
        if int(self.pair_counts.sum()) != self.total_pairs:
            raise IndexOutOfRangeError(
                f"Plan total {self.total_pairs} differs from the sum of its pair counts")
        starts = np.zeros(self.order, dtype=np.int64)
        if self.order > 1:
            starts[1:] = np.cumsum(self.pair_counts)[:-1]
        starts[self.pair_counts == 0] = NO_OUTPUT
        if not np.array_equal(starts, self.start_offsets):
            raise IndexOutOfRangeError("Plan start offsets overlap or leave gaps")


def _pair_counts(degrees):
    degrees = np.asarray(degrees, dtype=np.int64)
    return np.where(degrees >= 2, degrees * (degrees - 1) // 2, 0).astype(np.int64)


def plan_output_layout(graph, verbose=False) -> OutputPlan:
    """
    Compute the per-vertex output regions of the similarity kernel.

    Parameters:
    -----------
    graph : KeystoneGraph
        The encoded graph
    verbose : bool, default=False
        Whether to print progress messages

    Returns:
    --------
    OutputPlan
        Pair counts, start offsets (NO_OUTPUT below degree 2) and the total
    """
    pair_counts = _pair_counts(graph.degrees())

    start_offsets = np.zeros(graph.order, dtype=np.int64)
    if graph.order > 1:
        start_offsets[1:] = np.cumsum(pair_counts)[:-1]
    start_offsets[pair_counts == 0] = NO_OUTPUT

    total_pairs = int(pair_counts.sum())
    pair_counts.setflags(write=False)
    start_offsets.setflags(write=False)

    if verbose:
        n_keystones = int(np.count_nonzero(pair_counts))
        print(f"[Plan] {n_keystones} of {graph.order} vertices are keystones, "
              f"{total_pairs} edge pairs to score")

    return OutputPlan(pair_counts=pair_counts,
                      start_offsets=start_offsets,
                      total_pairs=total_pairs)
