import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from scipy.special import entr

from .config import BASE_TOLERANCE, DIRICHLET_ALPHA, DISTANCE_DISCOUNT
from .lattice import LatticeGraph

logger = logging.getLogger(__name__)


class SubtokenDistributionModel:
    """
    Scores a grouping of lattice nodes by the variation of information between
    the grouping and the name subtokens of its nodes:

        VI = H(subtoken | group) + H(group | subtoken)

    Subtoken distributions are count vectors over a vocabulary fixed by
    cache_global_information(). Per-group distributions can be smoothed with a
    Dirichlet prior built from the names of the group's ancestors.
    """
    def __init__(self, graph: LatticeGraph,
                 dirichlet_alpha: float = DIRICHLET_ALPHA,
                 distance_discount: float = DISTANCE_DISCOUNT,
                 tolerance: float = BASE_TOLERANCE):
        if dirichlet_alpha < 0:
            raise ValueError(f"dirichlet_alpha must be >= 0, got {dirichlet_alpha}")
        self.graph = graph
        self.dirichlet_alpha = float(dirichlet_alpha)
        self.distance_discount = distance_discount
        self.tolerance = tolerance

        self.vocabulary: Optional[Dict[str, int]] = None
        self.global_counts: Optional[np.ndarray] = None
        self.global_probs: Optional[np.ndarray] = None

    def cache_global_information(self):
        """Fix the vocabulary and the global subtoken distribution over every node of the graph."""
        nodes = self.graph.all_nodes
        vocabulary: Dict[str, int] = {}
        for n in nodes:
            for subtoken in self.graph.payloads[n]:
                vocabulary.setdefault(subtoken, len(vocabulary))
        self.vocabulary = vocabulary
        self.global_counts = np.zeros(len(vocabulary), dtype=float)
        for n in nodes:
            for subtoken in self.graph.payloads[n]:
                self.global_counts[vocabulary[subtoken]] += 1
        total = self.global_counts.sum()
        self.global_probs = self.global_counts / total if total > 0 else self.global_counts.copy()
        logger.debug("Cached global subtoken distribution: %d subtokens, %d occurrences",
                     len(vocabulary), int(total))

    def _require_global(self):
        if self.vocabulary is None:
            raise RuntimeError("cache_global_information() must be called before computing VI.")

    def num_effective_nodes(self, nodes: Iterable[int]) -> int:
        """Nodes with at least one subtoken."""
        return sum(1 for n in nodes if len(self.graph.payloads[n]) > 0)

    def subtoken_counts(self, nodes: Iterable[int]) -> np.ndarray:
        """Bag-of-subtokens count vector for nodes (multiplicities counted)."""
        self._require_global()
        counts = np.zeros(len(self.vocabulary), dtype=float)
        for n in nodes:
            for subtoken in self.graph.payloads[n]:
                counts[self.vocabulary[subtoken]] += 1
        return counts

    def parent_name_distribution(self, group: Iterable[int]) -> np.ndarray:
        """
        Prior counts for a group: a small fraction (tolerance) of the global distribution,
        plus the subtokens of every ancestor outside the group weighted by discount^depth,
        where the group's direct outside parents are at depth 1 (breadth first, each
        ancestor counted once at its shortest depth).
        """
        self._require_global()
        distribution = self.tolerance * self.global_probs

        visited = set(group)
        queue = deque()
        for n in list(visited):
            for parent in self.graph.parents[n]:
                if parent not in visited:
                    visited.add(parent)
                    queue.append((parent, 1))

        while queue:
            node, depth = queue.popleft()
            weight = self.distance_discount ** depth
            for subtoken in self.graph.payloads[node]:
                distribution[self.vocabulary[subtoken]] += weight
            for parent in self.graph.parents[node]:
                if parent not in visited:
                    visited.add(parent)
                    queue.append((parent, depth + 1))
        return distribution

    def smoothed_probabilities(self, counts: np.ndarray, prior: Optional[np.ndarray]) -> np.ndarray:
        """(count + alpha * prior_prob) / (size + alpha) for every vocabulary entry."""
        size = counts.sum()
        if prior is None or self.dirichlet_alpha == 0:
            return counts / size if size > 0 else counts.copy()
        prior_total = prior.sum()
        prior_probs = prior / prior_total if prior_total > 0 else prior
        return (counts + self.dirichlet_alpha * prior_probs) / (size + self.dirichlet_alpha)

    def compute_variation_of_information(self, grouping: Sequence[Iterable[int]], num_total_nodes: int) -> float:
        """
        VI of the grouping. num_total_nodes is the number of effective nodes the group
        weights P(group) are normalised by (usually all effective nodes in the lattice).
        """
        self._require_global()
        groups = [list(g) for g in grouping]
        if num_total_nodes <= 0 or not groups:
            return 0.0

        counts = np.vstack([self.subtoken_counts(g) for g in groups])  # (n_groups, n_subtokens)

        # H(subtoken | group)
        subtoken_given_group = 0.0
        for g, group in enumerate(groups):
            present = counts[g] > 0
            if not present.any():
                continue
            prior = self.parent_name_distribution(group) if self.dirichlet_alpha > 0 else None
            probs = self.smoothed_probabilities(counts[g], prior)
            p_group = self.num_effective_nodes(group) / num_total_nodes
            subtoken_given_group += p_group * float(entr(probs[present]).sum())

        # H(group | subtoken)
        group_given_subtoken = 0.0
        if counts.shape[1] > 0:
            fractions = counts / self.global_counts[np.newaxis, :]
            per_subtoken = entr(fractions).sum(axis=0)
            group_given_subtoken = float(np.dot(self.global_probs, per_subtoken))

        if subtoken_given_group < 0 or group_given_subtoken < 0:
            logger.warning("Negative conditional entropy (%.6g, %.6g); check the smoothing parameters",
                           subtoken_given_group, group_given_subtoken)
        return subtoken_given_group + group_given_subtoken

    def variation_of_information(self, grouping: Sequence[Iterable[int]]) -> float:
        """VI of the grouping, normalised by the effective nodes the grouping itself contains."""
        groups = [list(g) for g in grouping]
        total = self.num_effective_nodes(n for g in groups for n in g)
        return self.compute_variation_of_information(groups, total)


def most_common_subtokens(model: SubtokenDistributionModel, nodes: Iterable[int], k: int = 3) -> List[str]:
    """The k most frequent subtokens among nodes (ties broken by vocabulary order)."""
    counts = model.subtoken_counts(nodes)
    inverse = {idx: s for s, idx in model.vocabulary.items()}
    order = np.argsort(-counts, kind="stable")
    return [inverse[int(i)] for i in order[:k] if counts[i] > 0]
