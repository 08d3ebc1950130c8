import argparse
import logging
from datetime import datetime
from pathlib import Path

from . import data_processing, evaluation
from .config import DIRICHLET_ALPHA, IMPORTANT, MAX_ITERATIONS, N_WORKERS, SHUFFLE_PROBABILITY, TIMEOUT_MINUTES
from .extractor import ClusteringExtractor

logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Infer a refined type lattice from a flows-into edge list.")
    parser.add_argument("--file", type=str, required=True,
                        help="CSV edge list with columns source_id, source_name, sink_id, sink_name.")
    parser.add_argument("--splitter", type=str, default="subtoken", choices=sorted(data_processing.SPLITTERS),
                        help="How node names are split into subtokens.")
    parser.add_argument("--alpha", type=float, default=DIRICHLET_ALPHA,
                        help="Dirichlet concentration of the ancestor prior (0 disables smoothing).")
    parser.add_argument("--max-iterations", type=int, default=MAX_ITERATIONS)
    parser.add_argument("--timeout-minutes", type=float, default=TIMEOUT_MINUTES)
    parser.add_argument("--workers", type=int, default=N_WORKERS, help="Threads used to score candidates.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the cluster order shuffling.")
    parser.add_argument("--no-shuffle", action="store_true", help="Never shuffle the cluster order (deterministic run).")
    parser.add_argument("--validate", action="store_true",
                        help="Check every lattice invariant on each candidate (slow).")
    parser.add_argument("--log-dir", type=str, default="logs")
    args = parser.parse_args(argv)

    main_log, imp_log = setup_logging(Path(args.log_dir))
    logger.info("Logging to %s", main_log)
    logger.info("Important log at %s", imp_log)

    relations, names = data_processing.load_relations(args.file)
    extractor = ClusteringExtractor(
        relations, names,
        splitter=args.splitter,
        dirichlet_alpha=args.alpha,
        n_workers=args.workers,
        shuffle_probability=0.0 if args.no_shuffle else SHUFFLE_PROBABILITY,
        seed=args.seed,
        validate=args.validate,
    )
    if extractor.num_relationships == 0:
        logger.log(IMPORTANT, "No relationships in %s, nothing to cluster.", args.file)
        return

    clusters, cluster_parents = extractor.infer_colors(args.max_iterations, args.timeout_minutes)
    result = extractor.result

    logger.log(IMPORTANT, "Clusters: %d, iterations: %d, converged: %s, total VI improvement: %.6f",
               len(clusters), result.iterations, result.converged, result.total_improvement)
    logger.log(IMPORTANT, "")

    inverse_map = {node: key for key, node in extractor.node_map.items()}
    summary = evaluation.summarise_clusters(result.coloring, extractor.model, inverse_map=inverse_map)
    logger.log(IMPORTANT, "*** Clusters: ***\n%s", summary.to_string(index=False))

    for i, (cluster, parents) in enumerate(zip(clusters, cluster_parents)):
        logger.info("Cluster #%d (parents %s): %s", i, sorted(parents),
                    ", ".join(sorted(names.get(k, "") or str(k) for k in cluster)))


def setup_logging(log_dir: Path = Path("logs")):
    # one run = one unique file pair
    run_id = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_dir.mkdir(parents=True, exist_ok=True)

    main_log_path = log_dir / f"run-{run_id}.log"
    imp_log_path = log_dir / f"run-{run_id}-important.log"

    logging.addLevelName(IMPORTANT, "IMPORTANT")

    class StarFilter(logging.Filter):
        def filter(self, record):
            # add 'star' field used by the formatter
            setattr(record, "star", " *" if record.levelno == IMPORTANT else "")
            return True

    class ImportantOnly(logging.Filter):
        def filter(self, record):
            return record.levelno == IMPORTANT

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.handlers.clear()  # avoid dupes if setup_logging() is called multiple times

    # main file: everything, with a visible star on important lines
    main_fh = logging.FileHandler(main_log_path, encoding="utf-8")
    main_fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s]%(star)s %(name)s: %(message)s"
    ))
    main_fh.addFilter(StarFilter())
    root.addHandler(main_fh)

    # important-only file: just the flagged lines
    imp_fh = logging.FileHandler(imp_log_path, encoding="utf-8")
    imp_fh.setFormatter(logging.Formatter(
        "%(asctime)s [IMPORTANT] %(name)s: %(message)s"
    ))
    imp_fh.addFilter(ImportantOnly())
    root.addHandler(imp_fh)

    # echo to console too
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("[%(levelname)s]%(star)s %(message)s"))
    ch.addFilter(StarFilter())
    root.addHandler(ch)

    return main_log_path, imp_log_path


if __name__ == "__main__":
    main()
