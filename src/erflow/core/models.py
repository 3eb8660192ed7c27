"""
Data contracts for the erflow entity resolution workflow.

This module defines the Pydantic models that flow between pipeline stages:

- EntityProfile: Raw input record (opaque to the orchestration layer)
- DuplicateOracle: Immutable ground truth of known duplicate pairs
- Block / SchemaPartition / SimilarityPairs: Working-set artifacts
- StageConfig: Per-stage configuration mode and manual parameters

Entities are addressed by a global integer index. In Clean-Clean ER the
second collection is appended after the first, so indices >= dataset_limit
belong to collection 2.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from itertools import combinations
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ResolutionMode = Literal["dirty", "clean_clean"]
ConfigurationMode = Literal["default", "manual", "automatic"]
StageKind = Literal[
    "schema_clustering",
    "block_building",
    "block_cleaning",
    "comparison_cleaning",
    "entity_matching",
    "entity_clustering",
]

# Working-set artifact after entity clustering: sets of global entity indices
EquivalenceClusters = list[set[int]]


class EntityProfile(BaseModel):
    """A single input record: an identifier plus name/value attributes."""

    id: str
    attributes: dict[str, str] = Field(default_factory=dict)


def brute_force_comparisons(n_d1: int, n_d2: int | None = None) -> int:
    """Number of comparisons an exhaustive (unblocked) resolution performs."""
    if n_d2 is None:
        return n_d1 * (n_d1 - 1) // 2
    return n_d1 * n_d2


class Block(BaseModel):
    """A group of entities that are compared with each other.

    Dirty ER blocks only use `left`. Clean-Clean ER blocks hold the entities
    of collection 1 in `left` and those of collection 2 in `right`; only
    cross-collection pairs are compared.

    Attributes:
        key: Blocking key that produced this block
        left: Global indices of the (collection 1) entities
        right: Global indices of collection 2 entities, or None in Dirty ER
    """

    model_config = ConfigDict(frozen=True)

    key: str
    left: tuple[int, ...]
    right: tuple[int, ...] | None = None

    @property
    def is_clean_clean(self) -> bool:
        return self.right is not None

    @property
    def size(self) -> int:
        return len(self.left) + (len(self.right) if self.right is not None else 0)

    @property
    def comparisons(self) -> int:
        """Number of pairwise comparisons this block implies."""
        if self.right is None:
            return len(self.left) * (len(self.left) - 1) // 2
        return len(self.left) * len(self.right)

    def entities(self) -> tuple[int, ...]:
        if self.right is None:
            return self.left
        return self.left + self.right

    def pairs(self) -> Iterator[tuple[int, int]]:
        """Yield every comparison of this block as an ordered (low, high) pair."""
        if self.right is None:
            for i, j in combinations(self.left, 2):
                yield (i, j) if i < j else (j, i)
        else:
            for i in self.left:
                for j in self.right:
                    yield (i, j) if i < j else (j, i)


class SchemaPartition(BaseModel):
    """Attribute-name clusters produced by schema clustering.

    Attributes:
        d1: Attribute name -> cluster id for collection 1
        d2: Attribute name -> cluster id for collection 2 (Clean-Clean ER only)
    """

    d1: dict[str, int]
    d2: dict[str, int] | None = None

    def cluster_of(self, attribute: str, collection: int = 1) -> int:
        mapping = self.d1 if collection == 1 or self.d2 is None else self.d2
        # Attributes without a cluster share the catch-all cluster 0
        return mapping.get(attribute, 0)


class SimilarityPair(BaseModel):
    """A compared pair of entities and its similarity score."""

    left: int
    right: int
    score: float = Field(..., ge=0.0, le=1.0)


class SimilarityPairs(BaseModel):
    """Output of entity matching: scored pairs plus the entity universe."""

    pairs: list[SimilarityPair]
    n_entities: int
    dataset_limit: int | None = None


class DuplicateOracle(BaseModel):
    """Ground truth: the set of known duplicate pairs.

    Pairs are stored as (low, high) global indices. The oracle is frozen and
    is shared by reference for the whole run.

    Attributes:
        duplicates: Known duplicate pairs
        n_entities: Total number of entities across collections
        dataset_limit: Size of collection 1 in Clean-Clean ER, None for Dirty ER
    """

    model_config = ConfigDict(frozen=True)

    duplicates: frozenset[tuple[int, int]]
    n_entities: int
    dataset_limit: int | None = None

    def __len__(self) -> int:
        return len(self.duplicates)

    def is_duplicate(self, left: int, right: int) -> bool:
        pair = (left, right) if left < right else (right, left)
        return pair in self.duplicates

    @classmethod
    def from_id_pairs(
        cls,
        id_pairs: Iterable[tuple[str, str]],
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None = None,
    ) -> "DuplicateOracle":
        """Build an oracle from pairs of entity ids.

        In Clean-Clean ER the first id of each pair is looked up in
        collection 1 and the second in collection 2. Pairs referencing
        unknown ids are skipped and counted in a warning.

        Example:
            >>> oracle = DuplicateOracle.from_id_pairs([("a", "b")], profiles)
            >>> len(oracle)
            1
        """
        d1_index = {profile.id: i for i, profile in enumerate(profiles_d1)}
        limit = len(profiles_d1)
        if profiles_d2 is None:
            d2_index = d1_index
            dataset_limit = None
            n_entities = limit
        else:
            d2_index = {profile.id: limit + j for j, profile in enumerate(profiles_d2)}
            dataset_limit = limit
            n_entities = limit + len(profiles_d2)

        duplicates: set[tuple[int, int]] = set()
        unknown = 0
        for left_id, right_id in id_pairs:
            left = d1_index.get(str(left_id))
            right = d2_index.get(str(right_id))
            if left is None or right is None or left == right:
                unknown += 1
                continue
            duplicates.add((left, right) if left < right else (right, left))

        if unknown:
            logger.warning("Skipped %d ground-truth pairs with unknown or identical ids", unknown)

        return cls(
            duplicates=frozenset(duplicates), n_entities=n_entities, dataset_limit=dataset_limit
        )

    @classmethod
    def from_id_groups(
        cls, id_groups: Iterable[Iterable[str]], profiles: list[EntityProfile]
    ) -> "DuplicateOracle":
        """Build a Dirty ER oracle from groups of ids referring to one entity."""
        pairs = [
            (left, right)
            for group in id_groups
            for left, right in combinations(sorted({str(id_) for id_ in group}), 2)
        ]
        return cls.from_id_pairs(pairs, profiles)


class StageConfig(BaseModel):
    """User configuration of one pipeline stage.

    Attributes:
        method: Registered method name (e.g. "token_blocking")
        mode: "default" uses library defaults, "manual" uses manual_parameters,
            "automatic" starts from defaults and is searched by the optimizer
        manual_parameters: Ordered (name, value) pairs, positional per method
        enabled: Disabled stages are skipped entirely

    Example:
        >>> StageConfig(method="qgrams_blocking", mode="manual", manual_parameters=[("q", 3)])
    """

    method: str
    mode: ConfigurationMode = "default"
    manual_parameters: list[tuple[str, Any]] = Field(default_factory=list)
    enabled: bool = True

    @property
    def is_automatic(self) -> bool:
        return self.mode == "automatic"


OptimizerKind = Literal["none", "holistic_random", "stepwise_random", "stepwise_grid"]


class WorkflowSpec(BaseModel):
    """Complete description of one workflow run.

    Attributes:
        resolution_mode: "dirty" (one collection) or "clean_clean" (two)
        schema_clustering: Optional schema clustering stage
        block_building: Block building stages, run in order and accumulated
        block_cleaning: Block cleaning stages, run in order
        comparison_cleaning: Optional comparison cleaning stage
        entity_matching: Entity matching stage (required at execution)
        entity_clustering: Entity clustering stage (required at execution)
        optimizer: Auto-configuration strategy for stages in "automatic" mode
        load_profiles: Callable(spec) -> (profiles_d1, profiles_d2 or None)
        load_ground_truth: Callable(spec, profiles_d1, profiles_d2) -> DuplicateOracle
        n_trials: Random-search trials per search (defaults to settings)
        random_seed: Run seed each stage derives its own seed from (defaults to settings)

    Example:
        >>> spec = WorkflowSpec(
        ...     block_building=[StageConfig(method="token_blocking")],
        ...     entity_matching=StageConfig(method="profile_matcher", mode="automatic"),
        ...     entity_clustering=StageConfig(method="connected_components", mode="automatic"),
        ...     optimizer="holistic_random",
        ...     load_profiles=lambda spec: (profiles, None),
        ...     load_ground_truth=lambda spec, d1, d2: oracle,
        ... )
    """

    resolution_mode: ResolutionMode = "dirty"
    schema_clustering: StageConfig | None = None
    block_building: list[StageConfig] = Field(default_factory=list)
    block_cleaning: list[StageConfig] = Field(default_factory=list)
    comparison_cleaning: StageConfig | None = None
    entity_matching: StageConfig | None = None
    entity_clustering: StageConfig | None = None
    optimizer: OptimizerKind = "none"
    load_profiles: Callable[[Any], tuple[list[EntityProfile], list[EntityProfile] | None]]
    load_ground_truth: Callable[
        [Any, list[EntityProfile], list[EntityProfile] | None], DuplicateOracle
    ]
    n_trials: int | None = Field(default=None, ge=1)
    random_seed: int | None = Field(default=None, ge=0)
