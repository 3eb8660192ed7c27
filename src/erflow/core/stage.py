"""
Stage base classes: the capability contract of every pipeline stage.

Each ER stage kind has an abstract base class defining its transform:

- SchemaClusterer.cluster_attributes(): collections -> SchemaPartition
- BlockBuilder.build_blocks(): collections -> blocks
- BlockCleaner / ComparisonCleaner.refine_blocks(): blocks -> blocks
- EntityMatcher.execute_comparisons(): blocks -> SimilarityPairs
- EntityClusterer.get_duplicates(): SimilarityPairs -> EquivalenceClusters

All stages share the configuration-search primitives implemented by Stage.
The optimizer drives only these primitives and never looks at what the
parameters mean.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from erflow.core.models import (
    Block,
    EntityProfile,
    EquivalenceClusters,
    ResolutionMode,
    SchemaPartition,
    SimilarityPairs,
    StageKind,
)
from erflow.core.parameters import (
    ParameterSpace,
    grid_parameters,
    grid_size,
    random_parameters,
)

DEFAULT_SEED = 42


class Stage(ABC):
    """Abstract base class for all configurable pipeline stages.

    Subclasses declare `method_name` and a `parameter_space` mapping each
    constructor parameter to an Optuna distribution, and store every
    parameter as an attribute of the same name. Methods that only make
    sense for one resolution mode narrow `resolution_modes`.

    The i-th random configuration is derived from (seed, i) only, so
    set_numbered_random_configuration(i) reproduces exactly what
    set_next_random_configuration() applied on its i-th call.

    Example:
        class QGramsBlocking(BlockBuilder):
            method_name = "qgrams_blocking"
            parameter_space = {"q": IntDistribution(2, 6)}

            def __init__(self, q: int = 3, seed: int = DEFAULT_SEED):
                super().__init__(seed=seed)
                self.q = q
    """

    kind: ClassVar[StageKind]
    method_name: ClassVar[str]
    parameter_space: ClassVar[ParameterSpace] = {}
    resolution_modes: ClassVar[tuple[ResolutionMode, ...]] = ("dirty", "clean_clean")

    def __init__(self, seed: int = DEFAULT_SEED):
        self.seed = seed
        self._random_iteration = 0
        self._initial_configuration: dict[str, Any] | None = None

    def get_method_name(self) -> str:
        return self.method_name

    def get_method_configuration(self) -> dict[str, Any]:
        """Currently active parameters, for reporting."""
        return {name: getattr(self, name) for name in self.parameter_space}

    def configure(self, parameters: dict[str, Any]) -> None:
        """Apply a parameter assignment in place.

        Raises:
            ValueError: If a parameter is not part of the parameter space
        """
        unknown = set(parameters) - set(self.parameter_space)
        if unknown:
            raise ValueError(f"Unknown parameters for {self.method_name}: {sorted(unknown)}")
        if self._initial_configuration is None:
            self._initial_configuration = self.get_method_configuration()
        for name, value in parameters.items():
            setattr(self, name, value)

    def set_next_random_configuration(self) -> None:
        """Advance to the next random point of the parameter space."""
        self.configure(random_parameters(self.parameter_space, self.seed, self._random_iteration))
        self._random_iteration += 1

    def set_numbered_random_configuration(self, iteration: int) -> None:
        """Reproduce the configuration of the given random draw."""
        self.configure(random_parameters(self.parameter_space, self.seed, iteration))

    def get_number_of_grid_configurations(self) -> int:
        return grid_size(self.parameter_space)

    def set_numbered_grid_configuration(self, iteration: int) -> None:
        self.configure(grid_parameters(self.parameter_space, iteration))

    def reset_configuration(self) -> None:
        """Restore the parameters the stage had before any search step."""
        if self._initial_configuration is not None:
            for name, value in self._initial_configuration.items():
                setattr(self, name, value)
        self._random_iteration = 0

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v!r}" for k, v in self.get_method_configuration().items())
        return f"{type(self).__name__}({params})"


class SchemaClusterer(Stage):
    """Groups attribute names of the input collections into clusters."""

    kind = "schema_clustering"

    @abstractmethod
    def cluster_attributes(
        self,
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None = None,
    ) -> SchemaPartition:
        pass  # pragma: no cover


class BlockBuilder(Stage):
    """Generates blocks of candidate comparisons from the raw collections.

    Blocks must use global entity indices: collection 2 entities are offset
    by len(profiles_d1).
    """

    kind = "block_building"

    @abstractmethod
    def build_blocks(
        self,
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None = None,
        partition: SchemaPartition | None = None,
    ) -> list[Block]:
        pass  # pragma: no cover


class BlockProcessor(Stage):
    """Refines a set of blocks.

    Implementations must return a new list and leave the input untouched,
    since step-by-step search re-runs a stage on the same input many times.
    """

    @abstractmethod
    def refine_blocks(self, blocks: list[Block]) -> list[Block]:
        pass  # pragma: no cover


class BlockCleaner(BlockProcessor):
    """Block-level cleaning (removes or shrinks whole blocks)."""

    kind = "block_cleaning"


class ComparisonCleaner(BlockProcessor):
    """Comparison-level cleaning (removes individual comparisons)."""

    kind = "comparison_cleaning"


class EntityMatcher(Stage):
    """Executes the comparisons of a set of blocks and scores every pair."""

    kind = "entity_matching"

    @abstractmethod
    def execute_comparisons(
        self,
        blocks: list[Block],
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None = None,
    ) -> SimilarityPairs:
        pass  # pragma: no cover


class EntityClusterer(Stage):
    """Partitions entities into equivalence clusters from scored pairs.

    The returned clusters cover every entity, singletons included.
    """

    kind = "entity_clustering"

    @abstractmethod
    def get_duplicates(self, similarity_pairs: SimilarityPairs) -> EquivalenceClusters:
        pass  # pragma: no cover
