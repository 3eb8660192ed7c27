"""
Entity clustering methods.

Both methods turn scored pairs into equivalence clusters covering every
entity (singletons included). Clusters are returned sorted by their smallest
member so that repeated runs produce identical output.
"""

from typing import Any

import networkx as nx
from optuna.distributions import FloatDistribution

from erflow.core.models import EquivalenceClusters, SimilarityPairs
from erflow.core.stage import DEFAULT_SEED, EntityClusterer

_THRESHOLD_SPACE = {"similarity_threshold": FloatDistribution(0.05, 0.95, step=0.05)}


def _validate_threshold(threshold: float) -> None:
    if not 0.0 <= threshold <= 1.0:
        raise ValueError("similarity_threshold must be between 0.0 and 1.0")


class ConnectedComponentsClustering(EntityClusterer):
    """Graph-based clustering via connected components (transitive closure).

    Example:
        clusterer = ConnectedComponentsClustering(similarity_threshold=0.7)
        clusters = clusterer.get_duplicates(similarity_pairs)
        # [{0, 3}, {1}, {2, 4, 5}]
    """

    method_name = "connected_components"
    parameter_space = _THRESHOLD_SPACE

    def __init__(self, similarity_threshold: float = 0.5, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)
        _validate_threshold(similarity_threshold)
        self.similarity_threshold = similarity_threshold

    def get_duplicates(self, similarity_pairs: SimilarityPairs) -> EquivalenceClusters:
        G: Any = nx.Graph()
        G.add_nodes_from(range(similarity_pairs.n_entities))

        for pair in similarity_pairs.pairs:
            if pair.score >= self.similarity_threshold:
                G.add_edge(pair.left, pair.right)

        clusters = [set(component) for component in nx.connected_components(G)]
        return sorted(clusters, key=min)


class UniqueMappingClustering(EntityClusterer):
    """One-to-one clustering for Clean-Clean ER.

    Pairs are visited by descending score and matched greedily when neither
    entity has been matched yet, so every cluster has at most one entity per
    collection.
    """

    method_name = "unique_mapping"
    parameter_space = _THRESHOLD_SPACE
    resolution_modes = ("clean_clean",)

    def __init__(self, similarity_threshold: float = 0.5, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)
        _validate_threshold(similarity_threshold)
        self.similarity_threshold = similarity_threshold

    def get_duplicates(self, similarity_pairs: SimilarityPairs) -> EquivalenceClusters:
        if similarity_pairs.dataset_limit is None:
            raise ValueError("unique_mapping clustering requires Clean-Clean ER input")

        ranked = sorted(similarity_pairs.pairs, key=lambda p: (-p.score, p.left, p.right))
        matched: set[int] = set()
        clusters: EquivalenceClusters = []
        for pair in ranked:
            if pair.score < self.similarity_threshold:
                break
            if pair.left in matched or pair.right in matched:
                continue
            matched.update((pair.left, pair.right))
            clusters.append({pair.left, pair.right})

        clusters.extend(
            {entity} for entity in range(similarity_pairs.n_entities) if entity not in matched
        )
        return sorted(clusters, key=min)
