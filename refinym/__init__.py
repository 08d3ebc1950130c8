from .coloring import Coloring
from .extractor import ClusteringExtractor
from .information import SubtokenDistributionModel
from .lattice import LatticeConstructionError, LatticeGraph, build_lattice
from .operators import ModificationType, SublatticeModification
from .scoring import ModificationCache
from .search import ColoringResult, GreedyColoringSearch, infer_coloring
from .validation import InvariantViolationError, assert_coloring_valid

__version__ = "0.1.0"
