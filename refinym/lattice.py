import logging
from collections import deque
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx


"""
NODE & CLUSTER GLOSSARY
-----------------------------------------------------
- node (handle) : integer index into the graph arena. Two usage sites with the same
                  name are two different handles; equality is handle equality.
- payload       : the data attached to a node (here: a tuple of lowercase name subtokens).
- parent/child  : a value produced at the parent can flow into the child
                  (parent is the more general usage site).
- cluster       : a frozenset of handles, one candidate refined type ("colour").
- cluster parents : the members of a cluster that have no parents at all, or at least
                    one parent outside the cluster. They anchor the cluster to the lattice.

Summary
-------------
- The graph owns the nodes; parent/child lists only hold handles.
- Clusters never own nodes, they only name them.
"""


logger = logging.getLogger(__name__)


class LatticeConstructionError(KeyError):
    """A relation referenced a key (or handle) the graph never allocated."""


def remove_self_links(relations: Dict[Hashable, Iterable[Hashable]]) -> Dict[Hashable, Set[Hashable]]:
    """Return a copy of the parent -> children relation without any key -> same key links."""
    return {parent: {c for c in children if c != parent} for parent, children in relations.items()}


class LatticeGraph:
    """
    Arena of usage nodes connected by directed flows-into (parent -> child) edges.

    payloads[h]  : payload of node h
    parents[h]   : list of parent handles of h
    children[h]  : list of child handles of h

    num_relationships counts every parent -> child edge ever added.
    """
    def __init__(self):
        self.payloads: List[Any] = []
        self.parents: List[List[int]] = []
        self.children: List[List[int]] = []
        self.num_relationships: int = 0

    def n_nodes(self) -> int:
        return len(self.payloads)

    @property
    def all_nodes(self) -> range:
        return range(len(self.payloads))

    def add_node(self, payload: Any) -> int:
        self.payloads.append(payload)
        self.parents.append([])
        self.children.append([])
        return len(self.payloads) - 1

    def add_edge(self, parent: int, child: int):
        n = self.n_nodes()
        if not (0 <= parent < n and 0 <= child < n):
            raise LatticeConstructionError(f"Edge ({parent}, {child}) references a node the graph does not own "
                                           f"(graph has {n} nodes).")
        self.children[parent].append(child)
        self.parents[child].append(parent)
        self.num_relationships += 1

    def add(self, relations: Dict[Hashable, Iterable[Hashable]],
            node_data: Callable[[Hashable], Any]) -> Dict[Hashable, int]:
        """
        Add one node per distinct external key (as source or sink) and wire the
        parent -> children relation. Self links are dropped first.
        Returns {external key -> node handle}.
        """
        relations = remove_self_links(relations)

        external_to_node: Dict[Hashable, int] = {}
        for key in list(relations.keys()) + [c for children in relations.values() for c in children]:
            if key not in external_to_node:
                external_to_node[key] = self.add_node(node_data(key))

        for parent_key, children in relations.items():
            parent = external_to_node.get(parent_key)
            if parent is None:
                raise LatticeConstructionError(f"Relation source {parent_key!r} has no node.")
            for child_key in children:
                child = external_to_node.get(child_key)
                if child is None:
                    raise LatticeConstructionError(f"Relation sink {child_key!r} has no node.")
                self.add_edge(parent, child)

        logger.debug("Added %d nodes, %d relationships in total", len(external_to_node), self.num_relationships)
        return external_to_node

    def remove_self_loops(self):
        for node in self.all_nodes:
            if node in self.parents[node]:
                self.parents[node] = [p for p in self.parents[node] if p != node]
            if node in self.children[node]:
                self.children[node] = [c for c in self.children[node] if c != node]

    # ------------------------------------------------------------------
    # closures
    # ------------------------------------------------------------------

    def transitive_closure(self, node: int) -> Set[int]:
        """All nodes (including node) connected to node, ignoring edge direction."""
        closure: Set[int] = set()
        to_visit = [node]
        while to_visit:
            nxt = to_visit.pop()
            if nxt in closure:
                continue
            closure.add(nxt)
            for other in self.parents[nxt] + self.children[nxt]:
                if other not in closure:
                    to_visit.append(other)
        return closure

    def transitive_children_closure(self, nodes_in_type: Set[int], root: int) -> Set[int]:
        """Nodes reachable from root through child edges without leaving nodes_in_type."""
        closure = {root}
        queue = deque([root])
        while queue:
            nxt = queue.popleft()
            for child in self.children[nxt]:
                if child in nodes_in_type and child not in closure:
                    closure.add(child)
                    queue.append(child)
        return closure

    def transitive_parent_closure(self, nodes: Iterable[int]) -> Set[int]:
        """nodes plus every ancestor of them (crosses cluster boundaries)."""
        closure = set(nodes)
        queue = deque(closure)
        while queue:
            nxt = queue.popleft()
            for parent in self.parents[nxt]:
                if parent not in closure:
                    closure.add(parent)
                    queue.append(parent)
        return closure

    def independent_components(self) -> List[Set[int]]:
        """Maximal groups of nodes connected when edge direction is ignored."""
        visited: Set[int] = set()
        components: List[Set[int]] = []
        for node in self.all_nodes:
            if node in visited:
                continue
            closure = self.transitive_closure(node)
            visited.update(closure)
            components.append(closure)
        return components

    def parent_nodes_for_type(self, nodes_in_group: Iterable[int]) -> frozenset:
        """Members of the group with no parents or with a parent outside the group."""
        group = nodes_in_group if isinstance(nodes_in_group, (set, frozenset)) else set(nodes_in_group)
        return frozenset(n for n in group
                         if not self.parents[n] or any(p not in group for p in self.parents[n]))

    # ------------------------------------------------------------------
    # cycles
    # ------------------------------------------------------------------

    def to_networkx(self) -> nx.DiGraph:
        """Parent -> child digraph over the node handles."""
        g = nx.DiGraph()
        g.add_nodes_from(self.all_nodes)
        g.add_edges_from((p, c) for c in self.all_nodes for p in self.parents[c])
        return g

    def detect_cycles(self) -> List[List[int]]:
        """
        Enumerate the elementary parent-edge cycles. Diagnostic only: the number of
        cycles can be exponential in the graph size.
        """
        return [list(cycle) for cycle in nx.simple_cycles(self.to_networkx())]

    def cluster_index_of(self, clusters: Sequence[Iterable[int]]) -> Dict[int, int]:
        """{node -> index of the first cluster containing it}"""
        index: Dict[int, int] = {}
        for i, cluster in enumerate(clusters):
            for node in cluster:
                index.setdefault(node, i)
        return index

    def cluster_parent_indices(self, clusters: Sequence[Iterable[int]]) -> List[Set[int]]:
        """
        For each cluster, the indices of the clusters that hold a parent of one of its
        nodes (parents inside the cluster itself are ignored).
        """
        index = self.cluster_index_of(clusters)
        parents: List[Set[int]] = []
        for cluster in clusters:
            members = set(cluster)
            parent_ids: Set[int] = set()
            for node in members:
                for p in self.parents[node]:
                    if p not in members and p in index:
                        parent_ids.add(index[p])
            parents.append(parent_ids)
        return parents

    def clusters_are_cyclic(self, clusters: Sequence[Iterable[int]]) -> bool:
        """True if the cluster -> parent cluster graph has a cycle."""
        cluster_parents = self.cluster_parent_indices(clusters)
        WHITE, GREY, BLACK = 0, 1, 2
        colour = [WHITE] * len(cluster_parents)

        for start in range(len(cluster_parents)):
            if colour[start] != WHITE:
                continue
            colour[start] = GREY
            stack: List[Tuple[int, List[int]]] = [(start, sorted(cluster_parents[start]))]
            while stack:
                cid, pending = stack[-1]
                if not pending:
                    colour[cid] = BLACK
                    stack.pop()
                    continue
                nxt = pending.pop()
                if colour[nxt] == GREY:
                    return True
                if colour[nxt] == WHITE:
                    colour[nxt] = GREY
                    stack.append((nxt, sorted(cluster_parents[nxt])))
        return False

    def cluster_ancestors(self, cluster: Iterable[int], clusters: Sequence[frozenset]) -> List[frozenset]:
        """All clusters holding a (transitive) ancestor of a node in cluster."""
        members = set(cluster)
        ancestors = self.transitive_parent_closure(members) - members
        return [c for c in clusters if not ancestors.isdisjoint(c)]

    def __str__(self):
        return (
            "LatticeGraph(\n"
            f"  n_nodes={self.n_nodes()},\n"
            f"  num_relationships={self.num_relationships},\n"
            f"  children={{{', '.join(f'{k}:{sorted(v)}' for k, v in enumerate(self.children))}}}\n"
            ")"
        )


def build_lattice(relations: Dict[Hashable, Iterable[Hashable]],
                  node_data: Callable[[Hashable], Any],
                  graph: Optional[LatticeGraph] = None) -> Tuple[LatticeGraph, Dict[Hashable, int]]:
    """Build (or extend) a lattice; returns (graph, {external key -> handle})."""
    graph = LatticeGraph() if graph is None else graph
    node_map = graph.add(relations, node_data)
    return graph, node_map
