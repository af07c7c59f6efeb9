"""
KeystoneGraph - Immutable CSR adjacency structure of an undirected graph,
the input of the keystone edge-similarity kernels.
"""
import numpy as np
from scipy.sparse import csr_matrix

from .exceptions import IndexOutOfRangeError


def _frozen(values):
    arr = np.ascontiguousarray(values, dtype=np.int64)
    arr.setflags(write=False)
    return arr


class KeystoneGraph:
    """
    Compressed sparse row form of an undirected, unweighted graph.

    Vertices are enumerated by position ``0..order-1`` in ascending identifier
    order. ``neighbors`` keeps the original vertex identifiers; the derived
    ``neighbor_positions`` maps each of them to its vertex position so kernels
    can jump straight to a neighbor's own group.

    All arrays are read-only once constructed.
    """

    def __init__(self, vertex_ids, offsets, neighbors, validate=True):
        """
        Initialize a KeystoneGraph.

        Parameters:
        -----------
        vertex_ids : array-like of int
            Identifier of each vertex position, strictly ascending
        offsets : array-like of int
            Start of each vertex's neighbor group within ``neighbors``
        neighbors : array-like of int
            Concatenated neighbor groups, each strictly ascending
        validate : bool, default=True
            Check the CSR invariants and raise IndexOutOfRangeError if broken
        """
        self.vertex_ids = _frozen(vertex_ids)
        self.offsets = _frozen(offsets)
        self.neighbors = _frozen(neighbors)
        self.order = int(self.vertex_ids.shape[0])
        self.edge_count = int(self.neighbors.shape[0])

        if self.offsets.shape[0] != self.order:
            raise IndexOutOfRangeError(
                f"Expected {self.order} offsets, got {self.offsets.shape[0]}")

        if validate:
            self.validate()

        positions = np.searchsorted(self.vertex_ids, self.neighbors)
        self.neighbor_positions = _frozen(positions)

    @classmethod
    def empty(cls):
        """The graph with no vertices"""
        return cls(np.empty(0, dtype=np.int64),
                   np.empty(0, dtype=np.int64),
                   np.empty(0, dtype=np.int64))

    def validate(self):
        """
        Check every CSR invariant.

        Raises:
        -------
        IndexOutOfRangeError
            If offsets, groups or neighbor identifiers are inconsistent
        """
        if self.order == 0:
            if self.edge_count != 0:
                raise IndexOutOfRangeError("Graph without vertices has neighbor entries")
            return

        if np.any(np.diff(self.vertex_ids) <= 0):
            raise IndexOutOfRangeError("Vertex identifiers are not strictly ascending")
        if self.offsets[0] != 0:
            raise IndexOutOfRangeError(f"offsets[0] is {self.offsets[0]}, expected 0")

        bounds = self.bounds()
        if np.any(np.diff(bounds) < 0):
            raise IndexOutOfRangeError("Offsets are decreasing or exceed the edge count")

        # Within a group consecutive neighbors must increase; the only allowed
        # drops are at group boundaries.
        if self.edge_count > 1:
            steps = np.diff(self.neighbors)
            group_starts = np.zeros(self.edge_count, dtype=bool)
            group_starts[self.offsets[self.offsets < self.edge_count]] = True
            interior = ~group_starts[1:]
            if np.any(steps[interior] <= 0):
                raise IndexOutOfRangeError("A neighbor group is not strictly ascending")

        if self.edge_count > 0:
            pos = np.searchsorted(self.vertex_ids, self.neighbors)
            pos_clipped = np.minimum(pos, self.order - 1)
            if np.any(self.vertex_ids[pos_clipped] != self.neighbors):
                raise IndexOutOfRangeError("A neighbor identifier is not a vertex of the graph")

    def bounds(self):
        """Offsets followed by the ``edge_count`` sentinel (length order+1)"""
        return np.append(self.offsets, np.int64(self.edge_count))

    def degrees(self):
        """Get the degrees of all vertex positions"""
        return np.diff(self.bounds())

    def degree(self, position):
        """Get the degree of the vertex at ``position``"""
        self._check_position(position)
        end = self.offsets[position + 1] if position + 1 < self.order else self.edge_count
        return int(end - self.offsets[position])

    def get_neighbors(self, position):
        """Sorted neighbor identifiers of the vertex at ``position``"""
        self._check_position(position)
        start = self.offsets[position]
        return self.neighbors[start:start + self.degree(position)]

    def position_of(self, vertex_id):
        """
        Vertex position of an identifier.

        Raises:
        -------
        KeyError
            If ``vertex_id`` is not a vertex of the graph
        """
        pos = int(np.searchsorted(self.vertex_ids, vertex_id))
        if pos >= self.order or self.vertex_ids[pos] != vertex_id:
            raise KeyError(vertex_id)
        return pos

    def _check_position(self, position):
        if position < 0 or position >= self.order:
            raise IndexOutOfRangeError(
                f"Vertex position {position} out of range [0, {self.order - 1}]")

    def to_csr_matrix(self):
        """Unweighted adjacency matrix over vertex positions"""
        data = np.ones(self.edge_count, dtype=np.float32)
        return csr_matrix((data, self.neighbor_positions, self.bounds()),
                          shape=(self.order, self.order))

    def get_edge_list(self):
        """Each undirected edge once, as (u, w) identifier pairs with u <= w"""
        owners = np.repeat(self.vertex_ids, self.degrees())
        keep = owners <= self.neighbors
        return np.column_stack([owners[keep], self.neighbors[keep]])

    def flatten(self):
        """
        Single-buffer form ``[order, offsets..., edge_count, neighbors...]``
        for dispatch APIs that accept only one contiguous integer buffer.
        """
        return np.concatenate([
            np.array([self.order], dtype=np.int64),
            self.offsets,
            np.array([self.edge_count], dtype=np.int64),
            self.neighbors,
        ])

    @classmethod
    def from_flat(cls, buffer, vertex_ids=None):
        """
        Rebuild a graph from ``flatten()`` output.

        Parameters:
        -----------
        buffer : array-like of int
            Flattened graph
        vertex_ids : array-like of int, optional
            Identifiers of the vertex positions. The flat layout does not store
            them; by default positions are used as identifiers.
        """
        buffer = np.asarray(buffer, dtype=np.int64)
        if buffer.shape[0] < 2:
            raise IndexOutOfRangeError("Flat graph buffer is shorter than its header")
        order = int(buffer[0])
        if order < 0 or buffer.shape[0] < order + 2:
            raise IndexOutOfRangeError(f"Flat graph buffer too short for order {order}")
        edge_count = int(buffer[order + 1])
        if buffer.shape[0] != order + 2 + edge_count:
            raise IndexOutOfRangeError(
                f"Flat graph buffer has {buffer.shape[0]} entries, "
                f"header implies {order + 2 + edge_count}")
        if vertex_ids is None:
            vertex_ids = np.arange(order, dtype=np.int64)
        return cls(vertex_ids, buffer[1:order + 1], buffer[order + 2:])

    def save(self, path, compress=True):
        """Save the graph arrays to an ``.npz`` archive"""
        saver = np.savez_compressed if compress else np.savez
        saver(path, vertex_ids=self.vertex_ids, offsets=self.offsets,
              neighbors=self.neighbors)

    @classmethod
    def load(cls, path):
        """Load a graph written by ``save``"""
        with np.load(path, allow_pickle=False) as archive:
            return cls(archive["vertex_ids"], archive["offsets"], archive["neighbors"])

    def __eq__(self, other):
        if not isinstance(other, KeystoneGraph):
            return NotImplemented
        return (np.array_equal(self.vertex_ids, other.vertex_ids)
                and np.array_equal(self.offsets, other.offsets)
                and np.array_equal(self.neighbors, other.neighbors))

    __hash__ = None

    def __str__(self):
        return (f"KeystoneGraph with {self.order} vertices, "
                f"{self.edge_count // 2} edges")

    def __repr__(self):
        return self.__str__()
