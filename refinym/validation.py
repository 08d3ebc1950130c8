"""
Lattice colouring invariants.

Hard-fail validation: assert_coloring_valid raises InvariantViolationError on the
first violated rule. Used by the tests and, when enabled, after every step of the
greedy search.
"""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .lattice import LatticeGraph


class InvariantViolationError(Exception):
    """Raised when a colouring breaks a lattice invariant."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[INVARIANT:{rule}] {detail}")


def assert_coloring_valid(graph: LatticeGraph,
                          clusters: Sequence[Set[int]],
                          cluster_parents: Sequence[Set[int]],
                          nodes: Optional[Iterable[int]] = None) -> None:
    """
    Check every invariant of a colouring. nodes is the set the clusters must partition
    (all lattice nodes by default; the search passes the nodes it started from, since
    components without any named node are dropped).
    """
    clusters = [frozenset(c) for c in clusters]
    cluster_parents = [frozenset(p) for p in cluster_parents]
    universe = frozenset(graph.all_nodes if nodes is None else nodes)

    _check_lengths(clusters, cluster_parents)
    _check_partition(graph, clusters, universe)
    _check_parents_within_cluster(clusters, cluster_parents)
    _check_parentless_are_parents(graph, cluster_parents, universe)
    _check_homogeneous_types(graph, clusters, cluster_parents)
    _check_acyclic(graph, clusters)


def _check_lengths(clusters, cluster_parents) -> None:
    if len(clusters) != len(cluster_parents):
        raise InvariantViolationError(
            "lengths",
            f"{len(clusters)} clusters but {len(cluster_parents)} cluster-parent sets"
        )


def _check_partition(graph: LatticeGraph, clusters, universe: frozenset) -> None:
    seen = Counter(n for c in clusters for n in c)
    duplicated = sorted(n for n, k in seen.items() if k > 1)
    if duplicated:
        raise InvariantViolationError("partition", f"nodes {duplicated} appear in more than one cluster")
    unknown = sorted(n for n in seen if not 0 <= n < graph.n_nodes())
    if unknown:
        raise InvariantViolationError("partition", f"nodes {unknown} are not in the lattice")
    missing = sorted(universe - set(seen))
    if missing:
        raise InvariantViolationError("partition", f"colouring is missing nodes {missing}")


def _check_parents_within_cluster(clusters, cluster_parents) -> None:
    for i, (cluster, parents) in enumerate(zip(clusters, cluster_parents)):
        outside = sorted(parents - cluster)
        if outside:
            raise InvariantViolationError(
                "parents_in_cluster",
                f"cluster {i} declares parents {outside} that are not in the cluster"
            )


def _check_parentless_are_parents(graph: LatticeGraph, cluster_parents, universe: frozenset) -> None:
    all_parents = frozenset().union(*cluster_parents) if cluster_parents else frozenset()
    for n in sorted(universe):
        if not graph.parents[n] and n not in all_parents:
            raise InvariantViolationError(
                "parentless_is_parent",
                f"node {n} has no parents but is not a cluster parent"
            )


def type_parents_per_node(graph: LatticeGraph, all_type_parents: frozenset) -> Dict[int, frozenset]:
    """
    For every node, the cluster-parent nodes among itself and its ancestors.

    Climbs the lattice in topological order (a node is processed once all its parents
    are); nodes stuck behind a parent cycle fall back to an explicit ancestor walk.
    """
    type_parents: Dict[int, frozenset] = {}
    pending_parents = [len(set(graph.parents[n])) for n in graph.all_nodes]
    frontier: List[int] = [n for n in graph.all_nodes if pending_parents[n] == 0]

    while frontier:
        node = frontier.pop()
        own = {node} if node in all_type_parents else set()
        type_parents[node] = frozenset(own.union(*(type_parents[p] for p in set(graph.parents[node]))))
        for child in set(graph.children[node]):
            pending_parents[child] -= 1
            if pending_parents[child] == 0:
                frontier.append(child)

    for node in graph.all_nodes:
        if node not in type_parents:
            type_parents[node] = frozenset(graph.transitive_parent_closure([node]) & all_type_parents)
    return type_parents


def _check_homogeneous_types(graph: LatticeGraph, clusters, cluster_parents) -> None:
    all_type_parents = frozenset().union(*cluster_parents) if cluster_parents else frozenset()
    type_parents = type_parents_per_node(graph, all_type_parents)

    for i, (cluster, parents) in enumerate(zip(clusters, cluster_parents)):
        reference = None
        for node in sorted(cluster):
            implemented = type_parents[node] - parents
            if reference is None:
                reference = (node, implemented)
            elif implemented != reference[1]:
                raise InvariantViolationError(
                    "homogeneous",
                    f"nodes {reference[0]} and {node} of cluster {i} implement different ancestor "
                    f"types {sorted(reference[1])} vs {sorted(implemented)}"
                )

        for node in sorted(cluster):
            node_parents = graph.parents[node]
            if (not node_parents or any(p not in cluster for p in node_parents)) and node not in parents:
                raise InvariantViolationError(
                    "anchored",
                    f"node {node} of cluster {i} has parents outside the cluster (or none) "
                    f"but is not a cluster parent"
                )


def _check_acyclic(graph: LatticeGraph, clusters) -> None:
    if graph.clusters_are_cyclic(clusters):
        raise InvariantViolationError("acyclic", "the cluster parent relation contains a cycle")
