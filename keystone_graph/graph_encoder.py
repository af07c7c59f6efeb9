"""
Graph encoding - turns a raw edge list into a KeystoneGraph.
"""
import numpy as np

from .exceptions import MalformedInputError
from .keystone_graph import KeystoneGraph

MAX_VERTEX_ID = np.iinfo(np.int64).max


def _parse_vertex_id(token, line_number, line):
    # Plain ASCII decimal digits only: no sign, underscores or Unicode digits
    if not (token.isascii() and token.isdigit()):
        if token[:1] == "-" and token[1:].isascii() and token[1:].isdigit():
            reason = "vertex identifiers must be non-negative"
        else:
            reason = "vertex identifiers must be plain decimal integers"
        raise MalformedInputError(f"{reason}: {line.strip()!r}",
                                  line_number=line_number, line=line)
    value = int(token)
    if value > MAX_VERTEX_ID:
        raise MalformedInputError(
            f"vertex identifier {token} exceeds {MAX_VERTEX_ID}",
            line_number=line_number, line=line)
    return value


def parse_edge_list(text):
    """
    Parse edge-list text into an integer array.

    Each non-blank line holds two whitespace-separated non-negative integers.

    Parameters:
    -----------
    text : str
        Edge-list content

    Returns:
    --------
    numpy.ndarray
        Array of shape (m, 2), dtype int64

    Raises:
    -------
    MalformedInputError
        On the first line that is not exactly two non-negative integers
    """
    edges = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        tokens = line.split()
        if not tokens:
            continue
        if len(tokens) != 2:
            raise MalformedInputError(
                f"expected 2 vertex identifiers, found {len(tokens)}",
                line_number=line_number, line=line)
        u = _parse_vertex_id(tokens[0], line_number, line)
        w = _parse_vertex_id(tokens[1], line_number, line)
        edges.append((u, w))

    if not edges:
        return np.empty((0, 2), dtype=np.int64)
    return np.array(edges, dtype=np.int64)


def read_edge_list(path):
    """Read and parse an edge-list file (see ``parse_edge_list``)"""
    with open(path, 'r') as f:
        return parse_edge_list(f.read())


def _as_edge_array(edges):
    try:
        arr = np.asarray(edges)
    except (ValueError, TypeError, OverflowError):
        raise MalformedInputError("every edge must be a pair of vertex identifiers") from None
    if arr.size == 0:
        return np.empty((0, 2), dtype=np.int64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise MalformedInputError(
            f"edge list must have shape (m, 2), got {arr.shape}")
    if not np.issubdtype(arr.dtype, np.integer):
        if not np.issubdtype(arr.dtype, np.floating) or not np.all(np.mod(arr, 1) == 0):
            raise MalformedInputError("vertex identifiers must be integers")
    arr = arr.astype(np.int64)
    if np.any(arr < 0):
        raise MalformedInputError("vertex identifiers must be non-negative")
    return arr


def encode_edges(edges, verbose=False):
    """
    Build the CSR graph of an undirected edge list.

    Every edge contributes both directions; duplicates collapse, so the
    result does not depend on edge order or repetition. Vertex positions
    follow ascending identifier order and neighbor groups are sorted.

    Parameters:
    -----------
    edges : array-like
        Sequence of (u, w) pairs or an array of shape (m, 2)
    verbose : bool, default=False
        Whether to print progress messages

    Returns:
    --------
    KeystoneGraph
        The encoded graph; the empty graph for an empty edge list

    Raises:
    -------
    MalformedInputError
        If the edges are not integer pairs or contain negative identifiers
    """
    arr = _as_edge_array(edges)
    if arr.shape[0] == 0:
        if verbose:
            print("[Encode] Empty edge list, returning empty graph")
        return KeystoneGraph.empty()

    if verbose:
        print(f"[Encode] Encoding {arr.shape[0]} input edges")

    # Both directions of every edge, sorted by (owner, neighbor)
    owners = np.concatenate([arr[:, 0], arr[:, 1]])
    targets = np.concatenate([arr[:, 1], arr[:, 0]])
    sort_idx = np.lexsort((targets, owners))
    owners = owners[sort_idx]
    targets = targets[sort_idx]

    keep = np.ones(owners.shape[0], dtype=bool)
    keep[1:] = (owners[1:] != owners[:-1]) | (targets[1:] != targets[:-1])
    owners = owners[keep]
    neighbors = targets[keep]

    vertex_ids, degrees = np.unique(owners, return_counts=True)
    offsets = np.zeros(vertex_ids.shape[0], dtype=np.int64)
    offsets[1:] = np.cumsum(degrees)[:-1]

    graph = KeystoneGraph(vertex_ids, offsets, neighbors, validate=False)

    if verbose:
        n_dupes = 2 * arr.shape[0] - neighbors.shape[0]
        print(f"         {graph.order} vertices, {graph.edge_count} neighbor entries "
              f"({n_dupes} duplicate entries dropped)")

    return graph


def encode_edge_list(text, verbose=False):
    """Parse edge-list text and encode it (``parse_edge_list`` + ``encode_edges``)"""
    return encode_edges(parse_edge_list(text), verbose=verbose)
