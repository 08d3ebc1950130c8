import random
from typing import Iterable, List, Optional, Set

from .lattice import LatticeGraph


class Coloring:
    """
    A partition of the lattice nodes into clusters.

    clusters[i]        : frozenset of node handles in colour i
    cluster_parents[i] : the cluster-parent set of colour i (always a subset of clusters[i])

    The two lists always have the same length and are only changed through
    apply() of a SublatticeModification or by reordering.
    """
    def __init__(self, clusters: Iterable[Iterable[int]],
                 cluster_parents: Optional[Iterable[Iterable[int]]] = None,
                 graph: Optional[LatticeGraph] = None):
        self.clusters: List[frozenset] = [frozenset(c) for c in clusters]
        if cluster_parents is None:
            if graph is None:
                raise ValueError("Either cluster_parents or a graph to derive them from is needed.")
            self.cluster_parents: List[frozenset] = [graph.parent_nodes_for_type(c) for c in self.clusters]
        else:
            self.cluster_parents = [frozenset(p) for p in cluster_parents]
        if len(self.clusters) != len(self.cluster_parents):
            raise ValueError(f"{len(self.clusters)} clusters but {len(self.cluster_parents)} parent sets")

    @classmethod
    def from_components(cls, graph: LatticeGraph, keep=None) -> 'Coloring':
        """
        Initial colouring: one cluster per independent component.
        keep(component) -> bool filters out degenerate components.
        """
        components = graph.independent_components()
        if keep is not None:
            components = [c for c in components if keep(c)]
        return cls(components, graph=graph)

    def __len__(self):
        return len(self.clusters)

    def __iter__(self):
        return iter(zip(self.clusters, self.cluster_parents))

    def copy(self) -> 'Coloring':
        return Coloring(list(self.clusters), list(self.cluster_parents))

    def apply(self, modification):
        """Remove the modification's Before clusters/parents and append its After ones."""
        for after, after_parents in zip(modification.after, modification.after_parents):
            if not after_parents <= after:
                raise ValueError("Cluster parents of a modification must lie within their cluster.")
        # clusters are unique within a colouring, parent sets need not be (several may be empty)
        for before, before_parents in zip(modification.before, modification.before_parents):
            idx = self.clusters.index(before)
            if self.cluster_parents[idx] != before_parents:
                raise ValueError("Modification parents do not match the colouring's parents for the cluster.")
            del self.clusters[idx]
            del self.cluster_parents[idx]
        self.clusters.extend(modification.after)
        self.cluster_parents.extend(modification.after_parents)

    def shuffle(self, rng: random.Random):
        """Reorder clusters (and their parent sets with them)."""
        order = list(range(len(self.clusters)))
        rng.shuffle(order)
        self.clusters = [self.clusters[i] for i in order]
        self.cluster_parents = [self.cluster_parents[i] for i in order]

    def nodes(self) -> Set[int]:
        return {n for c in self.clusters for n in c}

    def parent_cluster_indices(self, graph: LatticeGraph) -> List[Set[int]]:
        """For each cluster, the indices of its parent clusters (the induced type hierarchy)."""
        return graph.cluster_parent_indices(self.clusters)

    def __str__(self):
        return (
            "Coloring(\n"
            f"  n_clusters={len(self.clusters)},\n"
            f"  clusters={[sorted(c) for c in self.clusters]},\n"
            f"  cluster_parents={[sorted(p) for p in self.cluster_parents]}\n"
            ")"
        )
