"""Attribute clustering: groups attribute names whose values look alike."""

from itertools import combinations
from typing import Any

import networkx as nx
from optuna.distributions import FloatDistribution

from erflow.core.models import EntityProfile, SchemaPartition
from erflow.core.stage import DEFAULT_SEED, SchemaClusterer
from erflow.core.stages.block_building import tokenize


class AttributeClustering(SchemaClusterer):
    """Clusters attribute names by Jaccard similarity of their value tokens.

    Attributes whose token sets have Jaccard similarity of at least
    `similarity_threshold` are linked; clusters are the connected components
    of that graph. In Clean-Clean ER attributes of both collections are
    clustered together, so a cluster can span collections. Cluster ids start
    at 1; id 0 is left for attributes not seen during clustering.
    """

    method_name = "attribute_clustering"
    parameter_space = {"similarity_threshold": FloatDistribution(0.1, 0.9, step=0.1)}

    def __init__(self, similarity_threshold: float = 0.3, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be between 0.0 and 1.0")
        self.similarity_threshold = similarity_threshold

    def cluster_attributes(
        self,
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None = None,
    ) -> SchemaPartition:
        tokens: dict[tuple[int, str], set[str]] = {}
        for collection, profiles in ((1, profiles_d1), (2, profiles_d2 or [])):
            for profile in profiles:
                for attribute, value in profile.attributes.items():
                    tokens.setdefault((collection, attribute), set()).update(tokenize(value))

        G: Any = nx.Graph()
        G.add_nodes_from(tokens)
        for left, right in combinations(sorted(tokens), 2):
            union = tokens[left] | tokens[right]
            if not union:
                continue
            if len(tokens[left] & tokens[right]) / len(union) >= self.similarity_threshold:
                G.add_edge(left, right)

        components = sorted((sorted(c) for c in nx.connected_components(G)), key=lambda c: c[0])
        d1: dict[str, int] = {}
        d2: dict[str, int] = {}
        for cluster_id, component in enumerate(components, start=1):
            for collection, attribute in component:
                (d1 if collection == 1 else d2)[attribute] = cluster_id

        return SchemaPartition(d1=d1, d2=d2 if profiles_d2 is not None else None)
