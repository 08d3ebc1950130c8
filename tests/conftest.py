"""
Shared lattices for the tests.

Each fixture returns (graph, node_map) where node_map maps the readable key
(e.g. "n6") to its node handle.
"""

import pytest

from refinym.lattice import build_lattice


def make_lattice(relations, payloads=None):
    payloads = payloads or {}
    return build_lattice(relations, lambda key: payloads.get(key, (key,)))


@pytest.fixture
def chain():
    """n1 -> n2 -> n3"""
    return make_lattice({
        "n1": {"n2"},
        "n2": {"n3"},
        "n3": set(),
    })


@pytest.fixture
def ten_node_dag():
    return make_lattice({
        "n10": {"n4", "n7", "n9"},
        "n9": set(),
        "n8": set(),
        "n7": {"n5", "n6"},
        "n6": {"n8", "n9"},
        "n5": {"n2"},
        "n4": {"n2", "n3"},
        "n3": {"n1"},
        "n2": {"n1"},
        "n1": set(),
    })


VEE_RELATIONS = {
    "n1": {"n2", "n3"},
    "n2": {"n3"},
    "n3": set(),
    "b1": {"b2"},
    "b2": {"b3"},
    "b3": set(),
    "root": {"n1", "b1"},
}

ONE_TOKEN_NAMES = {
    "n1": ("n",), "n2": ("n",), "n3": ("n",),
    "b1": ("b",), "b2": ("b",), "b3": ("b",),
    "root": ("root",),
}

TWO_TOKEN_NAMES = {
    "n1": ("n", "yellow"), "n2": ("n", "red"), "n3": ("n", "yellow"),
    "b1": ("b",), "b2": ("b",), "b3": ("b",),
    "root": ("root",),
}


@pytest.fixture
def vee_one_token():
    """root -> {n1, b1}, n1 -> {n2, n3}, n2 -> n3, b1 -> b2 -> b3; one subtoken per node."""
    return make_lattice(VEE_RELATIONS, ONE_TOKEN_NAMES)


@pytest.fixture
def vee_two_tokens():
    """Same shape as vee_one_token, but the n branch also carries a colour subtoken."""
    return make_lattice(VEE_RELATIONS, TWO_TOKEN_NAMES)


def handles(node_map, *keys):
    return frozenset(node_map[k] for k in keys)
