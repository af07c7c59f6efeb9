"""
Pytest configuration and shared fixtures for keystone_graph tests.
"""
import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from keystone_graph import encode_edges, plan_output_layout


SCENARIO_EDGES = [(1, 2), (1, 3), (2, 3), (1, 4)]


@pytest.fixture
def scenario_edges():
    return list(SCENARIO_EDGES)


@pytest.fixture
def scenario_graph():
    return encode_edges(SCENARIO_EDGES)


@pytest.fixture
def scenario_plan(scenario_graph):
    return plan_output_layout(scenario_graph)


@pytest.fixture
def random_edges():
    """Loop-free random multigraph edges over sparse, non-contiguous identifiers"""
    rng = np.random.default_rng(7)
    edges = rng.integers(0, 80, size=(600, 2))
    edges = edges[edges[:, 0] != edges[:, 1]]
    return edges * 3 + 5


@pytest.fixture
def random_graph(random_edges):
    return encode_edges(random_edges)
