from typing import Hashable, Mapping, Optional

import pandas as pd

from .coloring import Coloring
from .information import SubtokenDistributionModel, most_common_subtokens


def summarise_clusters(coloring: Coloring, model: SubtokenDistributionModel, k: int = 3,
                       inverse_map: Optional[Mapping[int, Hashable]] = None) -> pd.DataFrame:
    """
    One row per cluster: its size, number of cluster parents, k most frequent subtokens
    and the indices of its parent clusters. With inverse_map (handle -> caller key) a
    sample member key is added as well.
    """
    parent_ids = coloring.parent_cluster_indices(model.graph)
    rows = []
    for i, (cluster, parents) in enumerate(coloring):
        row = {
            "cluster": i,
            "size": len(cluster),
            "n_cluster_parents": len(parents),
            "top_subtokens": " ".join(most_common_subtokens(model, cluster, k)),
            "parent_clusters": sorted(parent_ids[i]),
        }
        if inverse_map is not None:
            row["example"] = inverse_map[min(cluster)]
        rows.append(row)
    return pd.DataFrame(rows, columns=["cluster", "size", "n_cluster_parents", "top_subtokens", "parent_clusters"]
                        + (["example"] if inverse_map is not None else []))

