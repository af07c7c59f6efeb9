"""
Keystone Graph Package - Pairwise similarity of edges that share a vertex,
computed over a compact CSR graph with parallel numba kernels.
"""

# Import main classes for easy access
from .keystone_graph import KeystoneGraph
from .output_layout import OutputPlan, NO_OUTPUT, plan_output_layout
from .graph_encoder import encode_edges, encode_edge_list, parse_edge_list, read_edge_list
from .similarity_kernel import compute_similarities, compute_intersection_counts
from .edge_similarity_generator import (
    EdgeSimilarityGenerator,
    EdgeSimilarityResult,
    SimilarityConfig,
    compute_similarities_reference,
    prewarm_numba_kernels,
    write_scores,
    read_scores,
)
from .edge_similarity_analyzer import EdgeSimilarityAnalyzer
from .exceptions import KeystoneGraphError, MalformedInputError, IndexOutOfRangeError

# Import core utilities that might be directly useful
from .core_utilities import (
    TimingStats,
    BatchStats,
    pair_count,
    pair_rank,
    pair_from_rank,
)

__all__ = [
    # Main classes
    'KeystoneGraph',
    'OutputPlan',
    'EdgeSimilarityGenerator',
    'EdgeSimilarityResult',
    'EdgeSimilarityAnalyzer',
    'SimilarityConfig',

    # Errors
    'KeystoneGraphError',
    'MalformedInputError',
    'IndexOutOfRangeError',

    # Utility classes
    'TimingStats',
    'BatchStats',

    # Core functions
    'NO_OUTPUT',
    'encode_edges',
    'encode_edge_list',
    'parse_edge_list',
    'read_edge_list',
    'plan_output_layout',
    'compute_similarities',
    'compute_intersection_counts',
    'compute_similarities_reference',
    'prewarm_numba_kernels',
    'write_scores',
    'read_scores',
    'pair_count',
    'pair_rank',
    'pair_from_rank',
]

# Package metadata
__version__ = '1.0.0'
