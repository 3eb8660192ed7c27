"""Stage registry and configuration-mode resolution.

Maps method names to stage classes per stage kind and turns a StageConfig
into a concrete, independently owned stage instance:

- default: the class's default parameters
- manual: parameters taken positionally from StageConfig.manual_parameters
- automatic: default parameters, flagged for the optimizer to search

Third-party strategies become available to WorkflowSpec by calling
register_stage() on their class.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from erflow.core.errors import ConfigurationError
from erflow.core.models import StageConfig, StageKind, WorkflowSpec
from erflow.core.parameters import contains, stage_seed
from erflow.core.stage import (
    BlockBuilder,
    BlockProcessor,
    EntityClusterer,
    EntityMatcher,
    SchemaClusterer,
    Stage,
)
from erflow.core.stages import (
    AttributeClustering,
    BlockFiltering,
    BlockPurging,
    CommonBlocksPruning,
    ComparisonPropagation,
    ConnectedComponentsClustering,
    ProfileMatcher,
    QGramsBlocking,
    TokenBlocking,
    UniqueMappingClustering,
)

logger = logging.getLogger(__name__)

STAGE_METHODS: dict[str, dict[str, type[Stage]]] = {
    "schema_clustering": {},
    "block_building": {},
    "block_cleaning": {},
    "comparison_cleaning": {},
    "entity_matching": {},
    "entity_clustering": {},
}


def register_stage(stage_cls: type[Stage]) -> type[Stage]:
    """Register a stage class under its kind and method name.

    Usable as a class decorator.
    """
    STAGE_METHODS[stage_cls.kind][stage_cls.method_name] = stage_cls
    return stage_cls


for _stage_cls in (
    AttributeClustering,
    TokenBlocking,
    QGramsBlocking,
    BlockPurging,
    BlockFiltering,
    ComparisonPropagation,
    CommonBlocksPruning,
    ProfileMatcher,
    ConnectedComponentsClustering,
    UniqueMappingClustering,
):
    register_stage(_stage_cls)


def get_stage_class(kind: StageKind, method: str, label: str | None = None) -> type[Stage]:
    """Look up a registered stage class.

    Raises:
        ConfigurationError: If the kind or method name is unknown
    """
    methods = STAGE_METHODS.get(kind)
    if methods is None:
        raise ConfigurationError(f"Unknown stage kind '{kind}'", stage=label or kind)
    if method not in methods:
        raise ConfigurationError(
            f"Unknown {kind} method '{method}'. Available: {sorted(methods)}",
            stage=label or kind,
        )
    return methods[method]


def apply_configuration(
    stage_cls: type[Stage], parameters: dict[str, Any], seed: int, label: str | None = None
) -> Stage:
    """Build a fresh stage instance with the given parameters."""
    try:
        return stage_cls(seed=seed, **parameters)  # type: ignore[call-arg]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid parameters for '{stage_cls.method_name}': {e}", stage=label
        ) from e


def manual_parameters(
    stage_cls: type[Stage], config: StageConfig, label: str | None = None
) -> dict[str, Any]:
    """Map the positional manual parameter list onto the class's parameter space.

    Raises:
        ConfigurationError: If there are too many values, a name does not match
            its position, or a value lies outside the parameter's domain
    """
    names = list(stage_cls.parameter_space)
    if len(config.manual_parameters) > len(names):
        raise ConfigurationError(
            f"'{stage_cls.method_name}' takes {len(names)} parameters, "
            f"got {len(config.manual_parameters)}",
            stage=label,
        )

    parameters: dict[str, Any] = {}
    for expected, (name, value) in zip(names, config.manual_parameters):
        if name != expected:
            raise ConfigurationError(
                f"Expected parameter '{expected}' at this position, got '{name}'", stage=label
            )
        if not contains(stage_cls.parameter_space[expected], value):
            raise ConfigurationError(
                f"Value {value!r} is outside the domain of '{expected}'", stage=label
            )
        parameters[expected] = value
    return parameters


@dataclass
class ResolvedStage:
    """A stage instance together with the configuration it was resolved from."""

    label: str
    config: StageConfig
    strategy: Any

    @property
    def automatic(self) -> bool:
        return self.config.is_automatic

    @property
    def method_name(self) -> str:
        return self.strategy.get_method_name()


def resolve_stage(
    kind: StageKind, config: StageConfig, seed: int, label: str | None = None
) -> ResolvedStage:
    """Resolve one StageConfig into a stage instance."""
    label = label or kind
    stage_cls = get_stage_class(kind, config.method, label)
    parameters = manual_parameters(stage_cls, config, label) if config.mode == "manual" else {}
    strategy = apply_configuration(stage_cls, parameters, seed, label)
    logger.debug("Resolved %s -> %r (mode: %s)", label, strategy, config.mode)
    return ResolvedStage(label=label, config=config, strategy=strategy)


@dataclass
class StageSet:
    """The ordered stage instances of one workflow."""

    block_building: list[ResolvedStage] = field(default_factory=list)
    block_cleaning: list[ResolvedStage] = field(default_factory=list)
    schema_clustering: ResolvedStage | None = None
    comparison_cleaning: ResolvedStage | None = None
    entity_matching: ResolvedStage | None = None
    entity_clustering: ResolvedStage | None = None

    def __iter__(self) -> Iterator[ResolvedStage]:
        if self.schema_clustering is not None:
            yield self.schema_clustering
        yield from self.block_building
        yield from self.block_cleaning
        for stage in (self.comparison_cleaning, self.entity_matching, self.entity_clustering):
            if stage is not None:
                yield stage

    def automatic(self) -> list[ResolvedStage]:
        return [stage for stage in self if stage.automatic]

    @property
    def any_automatic(self) -> bool:
        return any(stage.automatic for stage in self)


def _resolve_optional(
    kind: StageKind, config: StageConfig | None, seed: int
) -> ResolvedStage | None:
    if config is None or not config.enabled:
        return None
    return resolve_stage(kind, config, stage_seed(seed, kind))


def _resolve_list(kind: StageKind, configs: list[StageConfig], seed: int) -> list[ResolvedStage]:
    resolved = []
    for i, config in enumerate(configs):
        if config.enabled:
            label = f"{kind}[{i}]"
            resolved.append(resolve_stage(kind, config, stage_seed(seed, label), label))
    return resolved


def resolve_stages(spec: WorkflowSpec, seed: int) -> StageSet:
    """Resolve every enabled stage of a workflow spec.

    Disabled stages are dropped. Each stage gets its own seed derived from
    `seed` and its label, so automatic stages are searched independently.
    Stage instances are checked against their kind's base class and the
    workflow's resolution mode so a bad choice fails before any trial runs.

    Raises:
        ConfigurationError: For unknown methods, bad manual parameters, a
            method unavailable in the resolution mode, or a workflow without
            an enabled block building stage
    """
    stages = StageSet(
        schema_clustering=_resolve_optional("schema_clustering", spec.schema_clustering, seed),
        block_building=_resolve_list("block_building", spec.block_building, seed),
        block_cleaning=_resolve_list("block_cleaning", spec.block_cleaning, seed),
        comparison_cleaning=_resolve_optional(
            "comparison_cleaning", spec.comparison_cleaning, seed
        ),
        entity_matching=_resolve_optional("entity_matching", spec.entity_matching, seed),
        entity_clustering=_resolve_optional("entity_clustering", spec.entity_clustering, seed),
    )

    if not stages.block_building:
        raise ConfigurationError(
            "At least one enabled block building stage is required", stage="block_building"
        )

    expected_bases: dict[str, type[Stage]] = {
        "schema_clustering": SchemaClusterer,
        "block_building": BlockBuilder,
        "block_cleaning": BlockProcessor,
        "comparison_cleaning": BlockProcessor,
        "entity_matching": EntityMatcher,
        "entity_clustering": EntityClusterer,
    }
    for stage in stages:
        kind = stage.label.split("[")[0]
        if not isinstance(stage.strategy, expected_bases[kind]):
            raise ConfigurationError(
                f"'{stage.method_name}' does not implement {expected_bases[kind].__name__}",
                stage=stage.label,
            )
        if spec.resolution_mode not in stage.strategy.resolution_modes:
            raise ConfigurationError(
                f"'{stage.method_name}' is not available for {spec.resolution_mode} ER",
                stage=stage.label,
            )
    return stages
