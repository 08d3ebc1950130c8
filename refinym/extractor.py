import logging
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .config import DIRICHLET_ALPHA, IMPORTANT, MAX_ITERATIONS, TIMEOUT_MINUTES
from .data_processing import get_splitter
from .information import SubtokenDistributionModel
from .lattice import LatticeGraph, remove_self_links
from .search import ColoringResult, GreedyColoringSearch

logger = logging.getLogger(__name__)


class ClusteringExtractor:
    """
    Caller-facing entry point: turns a flows-into relation over caller keys into a
    colouring of those keys.

    relations : {source key -> iterable of sink keys}
    names     : {key -> identifier name} or a callable key -> name
    keep      : optional predicate on keys; relations touching a rejected key are dropped
                (e.g. only usages of the type being refined)
    """
    def __init__(self, relations: Mapping[Hashable, Iterable[Hashable]],
                 names: Union[Mapping[Hashable, str], Callable[[Hashable], str]],
                 splitter: str = "subtoken",
                 keep: Optional[Callable[[Hashable], bool]] = None,
                 dirichlet_alpha: float = DIRICHLET_ALPHA,
                 **search_kwargs):
        relations = remove_self_links(relations)
        if keep is not None:
            relations = {source: {s for s in sinks if keep(s)}
                         for source, sinks in relations.items() if keep(source)}

        name_of = names if callable(names) else (lambda key: names.get(key, ""))
        split = get_splitter(splitter)

        self.graph = LatticeGraph()
        self.node_map: Dict[Hashable, int] = self.graph.add(relations, lambda key: split(name_of(key)))
        self.num_relationships = self.graph.num_relationships
        self.model = SubtokenDistributionModel(self.graph, dirichlet_alpha=dirichlet_alpha)
        self.search = GreedyColoringSearch(self.graph, self.model, **search_kwargs)
        self.result: Optional[ColoringResult] = None

        logger.info("Built lattice with %d nodes and %d relationships (splitter %s)",
                    self.graph.n_nodes(), self.num_relationships, splitter)

    def infer_colors(self, max_iterations: int = MAX_ITERATIONS,
                     timeout_minutes: float = TIMEOUT_MINUTES) -> Tuple[List[Set[Hashable]], List[Set[int]]]:
        """
        Run the colour inference. Returns the clusters as sets of caller keys, and for each
        cluster the indices of the clusters holding its outside parents.
        """
        self.result = self.search.infer_coloring(max_iterations, timeout_minutes)
        coloring = self.result.coloring
        logger.log(IMPORTANT, "Colour inference completed. Score: %.6f", self.result.total_improvement)

        inverse_map = {node: key for key, node in self.node_map.items()}
        clusters = [{inverse_map[n] for n in cluster} for cluster in coloring.clusters]
        return clusters, coloring.parent_cluster_indices(self.graph)
