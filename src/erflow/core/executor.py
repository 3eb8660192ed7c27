"""
Pipeline executor: runs one configured ER workflow end to end.

Stages run in a fixed order:

1. Schema clustering (optional) -> SchemaPartition
2. Every block building stage, accumulating blocks
3. Every block cleaning stage, in order
4. Comparison cleaning (optional)
5. Entity matching -> SimilarityPairs
6. Entity clustering -> EquivalenceClusters

A cleaning stage that leaves no blocks ends the run early: execute()
returns None instead of raising, so that search loops can skip the trial.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel

from erflow.core.errors import ConfigurationError, EmptyWorkingSetError, WorkflowCancelledError
from erflow.core.metrics import aggregate_cardinality, evaluate_blocks, evaluate_clusters
from erflow.core.models import (
    Block,
    DuplicateOracle,
    EntityProfile,
    EquivalenceClusters,
    ResolutionMode,
    SchemaPartition,
    SimilarityPairs,
    brute_force_comparisons,
)
from erflow.core.progress import ProgressChannel
from erflow.core.registry import ResolvedStage, StageSet
from erflow.core.reports import ClusterMetrics, TraceEntry, WorkflowTrace

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineRun(BaseModel):
    """Outcome of one successful pipeline execution."""

    metrics: ClusterMetrics
    clusters: list[set[int]]
    trace: WorkflowTrace


class PipelineExecutor:
    """Executes a StageSet over fixed input collections and ground truth.

    The executor holds no per-run state besides its inputs, so the same
    instance is reused for every trial of a search.

    Example:
        >>> executor = PipelineExecutor("dirty", profiles, None, oracle)
        >>> run = executor.execute(stages, record_trace=True)
        >>> if run is not None:
        ...     print(run.trace.to_markdown())
    """

    def __init__(
        self,
        mode: ResolutionMode,
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None,
        oracle: DuplicateOracle,
        progress: ProgressChannel | None = None,
        cancel_event: threading.Event | None = None,
    ):
        if mode == "clean_clean" and profiles_d2 is None:
            raise ConfigurationError("Clean-Clean ER requires a second entity collection")
        if mode == "dirty" and profiles_d2 is not None:
            raise ConfigurationError("Dirty ER takes a single entity collection")

        self.mode = mode
        self.profiles_d1 = profiles_d1
        self.profiles_d2 = profiles_d2
        self.oracle = oracle
        self.progress = progress
        self.cancel_event = cancel_event
        self.brute_force_comparisons = brute_force_comparisons(
            len(profiles_d1), len(profiles_d2) if profiles_d2 is not None else None
        )

        expected_limit = len(profiles_d1) if profiles_d2 is not None else None
        if oracle.dataset_limit != expected_limit:
            logger.warning(
                "Ground truth dataset_limit %s does not match collection 1 size %s",
                oracle.dataset_limit,
                expected_limit,
            )

    # -- Control ----------------------------------------------------------

    def check_cancelled(self) -> None:
        """Raise WorkflowCancelledError if cancellation was requested."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise WorkflowCancelledError("Workflow cancelled")

    def report(self, message: str, fraction: float | None = None) -> None:
        if self.progress is not None:
            self.progress.publish(message, fraction)

    @staticmethod
    def require_resolution_stages(stages: StageSet) -> None:
        """Raise ConfigurationError unless matching and clustering are configured."""
        if stages.entity_matching is None:
            raise ConfigurationError(
                "No entity matching stage configured", stage="entity_matching"
            )
        if stages.entity_clustering is None:
            raise ConfigurationError(
                "No entity clustering stage configured", stage="entity_clustering"
            )

    # -- Single-stage helpers (shared with step-by-step search) -----------

    def cluster_schema(self, stage: ResolvedStage) -> SchemaPartition:
        return stage.strategy.cluster_attributes(self.profiles_d1, self.profiles_d2)

    def build_blocks(
        self, stage: ResolvedStage, partition: SchemaPartition | None = None
    ) -> list[Block]:
        return stage.strategy.build_blocks(self.profiles_d1, self.profiles_d2, partition)

    def refine_blocks(self, stage: ResolvedStage, blocks: list[Block]) -> list[Block]:
        """Run a cleaning stage.

        Raises:
            EmptyWorkingSetError: If the stage removed every block
        """
        refined = stage.strategy.refine_blocks(blocks)
        if not refined:
            raise EmptyWorkingSetError(stage.label)
        return refined

    def match(self, stage: ResolvedStage, blocks: list[Block]) -> SimilarityPairs:
        return stage.strategy.execute_comparisons(blocks, self.profiles_d1, self.profiles_d2)

    def cluster(self, stage: ResolvedStage, pairs: SimilarityPairs) -> EquivalenceClusters:
        return stage.strategy.get_duplicates(pairs)

    def block_entry(
        self,
        stage: ResolvedStage,
        blocks: list[Block],
        original_comparisons: float,
        elapsed_time: float,
    ) -> TraceEntry:
        """Evaluate a stage's output blocks as a trace entry."""
        return TraceEntry(
            stage_name=stage.label,
            method_name=stage.method_name,
            metrics=evaluate_blocks(blocks, self.oracle, original_comparisons, elapsed_time),
            configuration=stage.strategy.get_method_configuration(),
        )

    def cluster_entry(
        self, stage: ResolvedStage, clusters: EquivalenceClusters, elapsed_time: float
    ) -> TraceEntry:
        return TraceEntry(
            stage_name=stage.label,
            method_name=stage.method_name,
            metrics=evaluate_clusters(clusters, self.oracle, elapsed_time),
            configuration=stage.strategy.get_method_configuration(),
        )

    # -- Full pipeline ----------------------------------------------------

    def execute(self, stages: StageSet, record_trace: bool = True) -> PipelineRun | None:
        """Run every stage in order.

        Args:
            stages: Resolved stage instances at their current configuration
            record_trace: Evaluate and record every block-affecting stage.
                When False only the final cluster metrics are computed.

        Returns:
            PipelineRun, or None if a cleaning stage emptied the working set

        Raises:
            ConfigurationError: If matching or clustering is not configured
            WorkflowCancelledError: If cancellation was requested
        """
        self.require_resolution_stages(stages)
        try:
            return self._execute(stages, record_trace)
        except EmptyWorkingSetError as e:
            logger.debug("Pipeline stopped early: %s", e)
            return None

    def _execute(self, stages: StageSet, record_trace: bool) -> PipelineRun:
        trace = WorkflowTrace()
        total = len(list(stages))
        done = 0

        def begin(stage: ResolvedStage) -> None:
            self.check_cancelled()
            if record_trace:
                self.report(f"Running {stage.label} ({stage.method_name})", done / total)

        partition = None
        if stages.schema_clustering is not None:
            begin(stages.schema_clustering)
            partition = self.cluster_schema(stages.schema_clustering)
            done += 1

        blocks: list[Block] = []
        for builder in stages.block_building:
            begin(builder)
            built, elapsed = _timed(self.build_blocks, builder, partition)
            if record_trace:
                trace.append(
                    self.block_entry(builder, built, self.brute_force_comparisons, elapsed)
                )
            blocks = blocks + built
            done += 1

        cleaners = list(stages.block_cleaning)
        if stages.comparison_cleaning is not None:
            cleaners.append(stages.comparison_cleaning)
        for cleaner in cleaners:
            begin(cleaner)
            original = aggregate_cardinality(blocks)
            blocks, elapsed = _timed(self.refine_blocks, cleaner, blocks)
            if record_trace:
                trace.append(self.block_entry(cleaner, blocks, original, elapsed))
            done += 1

        matcher = stages.entity_matching
        clusterer = stages.entity_clustering
        assert matcher is not None and clusterer is not None

        begin(matcher)
        pairs = self.match(matcher, blocks)
        done += 1

        begin(clusterer)
        clusters, elapsed = _timed(self.cluster, clusterer, pairs)
        entry = self.cluster_entry(clusterer, clusters, elapsed)
        if record_trace:
            trace.append(entry)
            self.report("Workflow finished", 1.0)

        return PipelineRun(metrics=entry.metrics, clusters=clusters, trace=trace)


def _timed(func: Callable[..., T], *args: Any) -> tuple[T, float]:
    start = time.perf_counter()
    result = func(*args)
    return result, time.perf_counter() - start
