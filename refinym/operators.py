from concurrent.futures import Executor
from enum import Enum
from typing import Iterator, List, NamedTuple, Optional, Tuple

from .coloring import Coloring
from .lattice import LatticeGraph


class ModificationType(Enum):
    MERGE = "merge"
    SPLIT = "split"


class SublatticeModification(NamedTuple):
    kind: ModificationType
    before: Tuple[frozenset, ...]           # clusters being replaced (one for a split, two for a merge)
    before_parents: Tuple[frozenset, ...]   # their cluster-parent sets, same order
    after: Tuple[frozenset, ...]            # replacement clusters
    after_parents: Tuple[frozenset, ...]    # their cluster-parent sets, same order
    data: Optional[int] = None              # node split on; None for merges

    def cache_key(self):
        return (self.kind, self.before, self.data)


def split_on(graph: LatticeGraph, nodes_in_type: frozenset, type_parents: frozenset,
             node: int) -> Optional[SublatticeModification]:
    """
    Split a cluster into the nodes reachable from `node` through child edges (inside the
    cluster) and everything else. Returns None if either side would be empty, or if the
    remaining part still has an ancestor on the split-off side (the cut goes through a cycle).
    """
    child_closure = frozenset(graph.transitive_children_closure(nodes_in_type, node))
    rest = nodes_in_type - child_closure
    if not rest or not child_closure:
        return None

    rest_parents = type_parents - child_closure
    child_parents = frozenset(
        [n for n in child_closure
         if n in type_parents or any(p not in child_closure for p in graph.parents[n])] + [node]
    )

    if not graph.transitive_parent_closure(rest).isdisjoint(child_closure):
        return None

    return SublatticeModification(
        kind=ModificationType.SPLIT,
        before=(nodes_in_type,),
        before_parents=(type_parents,),
        after=(rest, child_closure),
        after_parents=(rest_parents, child_parents),
        data=node,
    )


def propose_splits(graph: LatticeGraph, nodes_in_type: frozenset, type_parents: frozenset,
                   executor: Optional[Executor] = None) -> List[SublatticeModification]:
    """All legal splits of one cluster, one candidate per member node (in handle order)."""
    candidates = sorted(nodes_in_type)
    if executor is None:
        splits = [split_on(graph, nodes_in_type, type_parents, n) for n in candidates]
    else:
        splits = list(executor.map(lambda n: split_on(graph, nodes_in_type, type_parents, n), candidates))
    return [s for s in splits if s is not None]


def propose_split_modifications(graph: LatticeGraph, coloring: Coloring,
                                executor: Optional[Executor] = None) -> List[SublatticeModification]:
    proposals = []
    for cluster, parents in coloring:
        proposals.extend(propose_splits(graph, cluster, parents, executor))
    return proposals


def merged_parents(graph: LatticeGraph, merged: frozenset, *parent_sets: frozenset) -> frozenset:
    """Members of the union of parent_sets that are still anchors of the merged cluster."""
    candidates = frozenset().union(*parent_sets)
    return frozenset(n for n in candidates
                     if not graph.parents[n] or any(p not in merged for p in graph.parents[n]))


def merge_clusters(graph: LatticeGraph, coloring: Coloring, i: int, j: int) -> SublatticeModification:
    """Merge of clusters i and j of coloring (no legality check)."""
    ci, cj = coloring.clusters[i], coloring.clusters[j]
    pi, pj = coloring.cluster_parents[i], coloring.cluster_parents[j]
    merged = ci | cj
    return SublatticeModification(
        kind=ModificationType.MERGE,
        before=(ci, cj),
        before_parents=(pi, pj),
        after=(merged,),
        after_parents=(merged_parents(graph, merged, pj, pi),),
    )


def propose_merges(graph: LatticeGraph, coloring: Coloring) -> Iterator[SublatticeModification]:
    """
    Yield merges of two clusters, in (i, j) order:

      (a) the grandparents of cluster i (parents of its cluster parents) are non-empty and
          all lie in cluster j: i hangs directly below j;
      (b) i < j, neither cluster has grandparents and at least one of them has no children
          outside itself: two isolated top-level clusters;
      (c) i > j, both have grandparents and some third cluster k covers every grandparent
          of i and j that is not in i or j: siblings under a common context.
    """
    clusters = coloring.clusters
    grandparents = [{p for n in parents for p in graph.parents[n]} for parents in coloring.cluster_parents]
    outside_children = [{c for n in cluster for c in graph.children[n] if c not in cluster}
                        for cluster in clusters]
    n_clusters = len(clusters)

    for i in range(n_clusters):
        gp_i = grandparents[i]
        for j in range(n_clusters):
            if i == j:
                continue
            gp_j = grandparents[j]

            pure_parent = bool(gp_i) and gp_i <= clusters[j]
            isolated_tops = (i < j and not gp_i and not gp_j
                             and (not outside_children[i] or not outside_children[j]))
            if pure_parent or isolated_tops:
                yield merge_clusters(graph, coloring, i, j)
                continue

            if not gp_i or not gp_j or i < j:
                continue
            uncovered = (gp_i | gp_j) - clusters[i] - clusters[j]
            for k in range(n_clusters):
                if k == i or k == j:
                    continue
                if uncovered <= clusters[k]:
                    yield merge_clusters(graph, coloring, i, j)
                    break
