import logging
import random
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, List, NamedTuple, Optional, Tuple

from .coloring import Coloring
from .config import (IMPORTANT, MAX_ITERATIONS, N_WORKERS, SHUFFLE_PROBABILITY,
                     TIMEOUT_MINUTES, CACHE_CAPACITY)
from .information import SubtokenDistributionModel
from .lattice import LatticeGraph
from .operators import SublatticeModification, propose_merges, propose_split_modifications
from .scoring import ModificationCache, speculative_gain
from .validation import InvariantViolationError, assert_coloring_valid

logger = logging.getLogger(__name__)


class ColoringResult(NamedTuple):
    coloring: Coloring
    total_improvement: float
    converged: bool     # False if the iteration or time budget stopped the search
    iterations: int


class GreedyColoringSearch:
    """
    "Super greedy" local search over lattice colourings.

    Starting from the independent components, each iteration scores every legal merge
    and applies the first one (in proposal order) that lowers VI; if there is none, it
    does the same for splits. The search ends when neither helps, or when the iteration
    or wall-clock budget runs out.

    By default a candidate is only rejected if it would make the cluster graph cyclic.
    Splits that are legal by construction can still leave a cluster inhomogeneous (e.g.
    with k0 -> {k3, k4} and k2 -> k3, splitting on k0 gives k3 the type parent k2 while
    k0 has none), so the returned colouring may fail assert_coloring_valid() on the
    homogeneity rule. Only acyclicity is guaranteed unless validate=True, which checks
    every invariant on each candidate.

    Scoring is fanned out over a thread pool; the colouring itself is only changed by
    the calling thread.
    """
    def __init__(self, graph: LatticeGraph, model: SubtokenDistributionModel,
                 cache_capacity: int = CACHE_CAPACITY,
                 n_workers: Optional[int] = N_WORKERS,
                 shuffle_probability: float = SHUFFLE_PROBABILITY,
                 seed: Optional[int] = None,
                 validate: bool = False):
        self.graph = graph
        self.model = model
        self.cache = ModificationCache(cache_capacity)
        self.n_workers = n_workers
        self.shuffle_probability = shuffle_probability
        self.rng = random.Random(seed)
        self.validate = validate
        self._universe: Optional[frozenset] = None  # nodes the colouring must cover (all nodes if None)

    def initial_coloring(self) -> Coloring:
        """One cluster per independent component, dropping components with no named node."""
        return Coloring.from_components(self.graph, keep=lambda c: self.model.num_effective_nodes(c) > 0)

    def is_legal(self, trial: Coloring, modification: SublatticeModification) -> bool:
        """
        Cheap check by default (cluster parents stay acyclic); with validate=True the
        trial colouring must pass every lattice invariant.
        """
        if self.validate:
            try:
                assert_coloring_valid(self.graph, trial.clusters, trial.cluster_parents, self._universe)
            except InvariantViolationError as e:
                logger.warning("Skipping %s: %s", modification.kind.value, e)
                return False
            return True
        if self.graph.clusters_are_cyclic(trial.clusters):
            logger.warning("Skipping %s on %d cluster(s): it would make the clusters cyclic",
                           modification.kind.value, len(modification.before))
            return False
        return True

    def first_improvement(self, candidates: Iterable[SublatticeModification], coloring: Coloring,
                          num_total_nodes: int, executor: ThreadPoolExecutor
                          ) -> Tuple[Optional[SublatticeModification], float]:
        """
        Score candidates in parallel and return the first one, in candidate order, whose
        VI gain is strictly positive and that passes is_legal().
        """
        candidates = list(candidates)
        futures: List[Future] = [
            executor.submit(speculative_gain, m, self.model, num_total_nodes, self.cache) for m in candidates
        ]
        try:
            for modification, future in zip(candidates, futures):
                gain = future.result()
                if gain <= 0.0:
                    continue
                trial = coloring.copy()
                trial.apply(modification)
                if not self.is_legal(trial, modification):
                    continue
                return modification, gain
            return None, 0.0
        finally:
            for future in futures:
                future.cancel()

    def infer_coloring(self, max_iterations: int = MAX_ITERATIONS,
                       timeout_minutes: float = TIMEOUT_MINUTES) -> ColoringResult:
        self.model.cache_global_information()
        num_total_nodes = self.model.num_effective_nodes(self.graph.all_nodes)
        self.graph.remove_self_loops()

        logger.info("Retrieving independent components...")
        coloring = self.initial_coloring()
        self._universe = frozenset(coloring.nodes())
        logger.info("Starting greedy optimisation over %d clusters (%d named nodes)",
                    len(coloring), num_total_nodes)
        if self.validate:
            assert_coloring_valid(self.graph, coloring.clusters, coloring.cluster_parents, self._universe)

        total_improvement = 0.0
        converged = False
        iterations = 0
        start = time.monotonic()

        with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
            while True:
                logger.debug("VI cache hit rate %.1f%%", 100 * self.cache.hit_rate())
                if iterations >= max_iterations:
                    logger.log(IMPORTANT, "Reached maximum number of iterations (%d).", max_iterations)
                    break
                if time.monotonic() - start > timeout_minutes * 60:
                    logger.log(IMPORTANT, "Clustering timed out after %.1f minutes.", timeout_minutes)
                    break
                iterations += 1

                # random reorder every so often so different candidates come first
                if self.shuffle_probability > 0 and self.rng.random() < self.shuffle_probability:
                    coloring.shuffle(self.rng)

                modification, gain = self.first_improvement(
                    propose_merges(self.graph, coloring), coloring, num_total_nodes, executor)
                if modification is None:
                    modification, gain = self.first_improvement(
                        propose_split_modifications(self.graph, coloring, executor),
                        coloring, num_total_nodes, executor)
                if modification is None:
                    converged = True
                    break

                coloring.apply(modification)
                total_improvement += gain
                logger.info("%d (num clusters %d): lattice %s with VI improvement %.6f",
                            iterations, len(coloring), modification.kind.value, gain)

        logger.log(IMPORTANT, "Colour inference finished after %d iterations: %d clusters, total VI improvement %.6f%s",
                   iterations, len(coloring), total_improvement, "" if converged else " (budget reached)")
        return ColoringResult(coloring, total_improvement, converged, iterations)


def infer_coloring(graph: LatticeGraph, model: SubtokenDistributionModel,
                   max_iterations: int = MAX_ITERATIONS,
                   timeout_minutes: float = TIMEOUT_MINUTES,
                   **kwargs) -> ColoringResult:
    """Run one greedy colour inference over graph with a fresh search (and cache)."""
    return GreedyColoringSearch(graph, model, **kwargs).infer_coloring(max_iterations, timeout_minutes)
