"""
Step-by-step search: tune the pipeline one stage at a time.

Blocking stages are searched in pipeline order with the local objective
reduction_ratio * pairs_completeness on the stage's own output, then
finalized before the next stage is searched. Entity matching and entity
clustering are searched jointly on the full F-measure.
"""

import logging
import time
from collections.abc import Callable, Sequence

from erflow.core.errors import EmptyWorkingSetError
from erflow.core.executor import PipelineExecutor, PipelineRun
from erflow.core.metrics import (
    aggregate_cardinality,
    evaluate_blocks,
    evaluate_clusters,
    reduction_ratio_objective,
)
from erflow.core.models import Block, SchemaPartition
from erflow.core.optimizers.base import BestTracker, TrialCallback
from erflow.core.optimizers.holistic import DEFAULT_N_TRIALS
from erflow.core.registry import ResolvedStage, StageSet
from erflow.core.reports import SearchOutcome, WorkflowTrace

logger = logging.getLogger(__name__)


class StepByStepSearch:
    """Greedy per-stage search, random or exhaustive grid.

    Order of work:

    1. Schema clustering runs once at its configured parameters.
    2. Each automatic block building stage is searched on its own output,
       then run for real; outputs of all builders are accumulated.
    3. Each automatic block cleaning stage, then comparison cleaning, is
       searched on the cumulative output of the finalized stages before it.
    4. Entity matching and entity clustering are searched together. In grid
       mode the matching grid is the outer loop and the clustering grid the
       inner loop, trial index = outer * inner_size + inner. A stage that is
       not automatic contributes a loop of length 1.

    Iterations that empty the working set are skipped. If every iteration of
    a stage is skipped the stage is reset to its pre-search configuration.

    Args:
        random_search: Random draws (True) or the full grid (False)
        n_trials: Draws per stage in random mode
        callbacks: Called with every completed TrialResult

    Example:
        >>> search = StepByStepSearch(random_search=False)
        >>> run, outcomes = search.search(executor, stages)
        >>> for outcome in outcomes:
        ...     print(outcome.stage, outcome.best_iteration)
    """

    def __init__(
        self,
        random_search: bool = True,
        n_trials: int = DEFAULT_N_TRIALS,
        callbacks: Sequence[TrialCallback] = (),
    ):
        if n_trials < 1:
            raise ValueError(f"n_trials must be >= 1, got: {n_trials}")
        self.random_search = random_search
        self.n_trials = n_trials
        self.callbacks = list(callbacks)

    def search(
        self, executor: PipelineExecutor, stages: StageSet
    ) -> tuple[PipelineRun | None, list[SearchOutcome]]:
        """Search every automatic stage and run the finalized pipeline.

        Returns:
            Tuple of (final run or None if a finalized stage emptied the
            working set, one SearchOutcome per searched stage)
        """
        executor.require_resolution_stages(stages)
        logger.info(
            "Starting step-by-step %s search over %s",
            "random" if self.random_search else "grid",
            [stage.label for stage in stages.automatic()],
        )

        outcomes: list[SearchOutcome] = []
        trace = WorkflowTrace()

        partition: SchemaPartition | None = None
        if stages.schema_clustering is not None:
            executor.check_cancelled()
            partition = executor.cluster_schema(stages.schema_clustering)

        blocks: list[Block] = []
        for builder in stages.block_building:
            if builder.automatic:
                outcomes.append(
                    self._search_blocks(
                        executor,
                        builder,
                        lambda stage=builder: executor.build_blocks(stage, partition),
                        executor.brute_force_comparisons,
                    )
                )
            executor.check_cancelled()
            start = time.perf_counter()
            built = executor.build_blocks(builder, partition)
            trace.append(
                executor.block_entry(
                    builder, built, executor.brute_force_comparisons, time.perf_counter() - start
                )
            )
            blocks = blocks + built

        cleaners = list(stages.block_cleaning)
        if stages.comparison_cleaning is not None:
            cleaners.append(stages.comparison_cleaning)
        for cleaner in cleaners:
            original = aggregate_cardinality(blocks)
            if cleaner.automatic:
                outcomes.append(
                    self._search_blocks(
                        executor,
                        cleaner,
                        lambda stage=cleaner, current=blocks: executor.refine_blocks(
                            stage, current
                        ),
                        original,
                    )
                )
            executor.check_cancelled()
            start = time.perf_counter()
            try:
                blocks = executor.refine_blocks(cleaner, blocks)
            except EmptyWorkingSetError as e:
                logger.info("Finalized configuration emptied the working set: %s", e)
                return None, outcomes
            trace.append(
                executor.block_entry(cleaner, blocks, original, time.perf_counter() - start)
            )

        matcher = stages.entity_matching
        clusterer = stages.entity_clustering
        assert matcher is not None and clusterer is not None
        if matcher.automatic or clusterer.automatic:
            outcomes.append(self._search_resolution(executor, matcher, clusterer, blocks))

        executor.check_cancelled()
        pairs = executor.match(matcher, blocks)
        start = time.perf_counter()
        clusters = executor.cluster(clusterer, pairs)
        entry = executor.cluster_entry(clusterer, clusters, time.perf_counter() - start)
        trace.append(entry)
        executor.report("Workflow finished", 1.0)

        return PipelineRun(metrics=entry.metrics, clusters=clusters, trace=trace), outcomes

    def _search_blocks(
        self,
        executor: PipelineExecutor,
        stage: ResolvedStage,
        produce: Callable[[], list[Block]],
        original_comparisons: float,
    ) -> SearchOutcome:
        """Search one block-affecting stage and leave it at its best configuration."""
        strategy = stage.strategy
        tracker = BestTracker(stage.label, self.callbacks)
        if self.random_search:
            n_iterations = self.n_trials
        else:
            n_iterations = strategy.get_number_of_grid_configurations()
        logger.info("Searching %s over %d configurations", stage.label, n_iterations)

        for iteration in range(n_iterations):
            executor.check_cancelled()
            executor.report(
                f"Optimizing {stage.label}: {iteration + 1}/{n_iterations}",
                iteration / n_iterations,
            )
            if self.random_search:
                strategy.set_next_random_configuration()
            else:
                strategy.set_numbered_grid_configuration(iteration)

            try:
                output = produce()
            except EmptyWorkingSetError:
                output = []
            if not output:
                tracker.skip(iteration)
                continue

            metrics = evaluate_blocks(output, executor.oracle, original_comparisons)
            tracker.record(
                iteration,
                reduction_ratio_objective(metrics),
                {stage.label: strategy.get_method_configuration()},
            )

        self._finalize(stage, tracker.best_iteration)
        return tracker.outcome()

    def _search_resolution(
        self,
        executor: PipelineExecutor,
        matcher: ResolvedStage,
        clusterer: ResolvedStage,
        blocks: list[Block],
    ) -> SearchOutcome:
        """Jointly search entity matching and entity clustering on F-measure."""
        label = f"{matcher.label}+{clusterer.label}"
        tracker = BestTracker(label, self.callbacks)

        def record(iteration: int, clusters: list[set[int]]) -> None:
            metrics = evaluate_clusters(clusters, executor.oracle)
            tracker.record(
                iteration,
                metrics.f_measure,
                {
                    matcher.label: matcher.strategy.get_method_configuration(),
                    clusterer.label: clusterer.strategy.get_method_configuration(),
                },
            )

        if self.random_search:
            logger.info("Searching %s over %d random configurations", label, self.n_trials)
            for iteration in range(self.n_trials):
                executor.check_cancelled()
                executor.report(
                    f"Optimizing {label}: {iteration + 1}/{self.n_trials}",
                    iteration / self.n_trials,
                )
                for stage in (matcher, clusterer):
                    if stage.automatic:
                        stage.strategy.set_next_random_configuration()
                pairs = executor.match(matcher, blocks)
                record(iteration, executor.cluster(clusterer, pairs))

            for stage in (matcher, clusterer):
                if stage.automatic:
                    self._finalize(stage, tracker.best_iteration)
            return tracker.outcome()

        outer = matcher.strategy.get_number_of_grid_configurations() if matcher.automatic else 1
        inner = (
            clusterer.strategy.get_number_of_grid_configurations() if clusterer.automatic else 1
        )
        total = outer * inner
        logger.info("Searching %s over %d x %d grid configurations", label, outer, inner)

        for j in range(outer):
            if matcher.automatic:
                matcher.strategy.set_numbered_grid_configuration(j)
            executor.check_cancelled()
            pairs = executor.match(matcher, blocks)
            for k in range(inner):
                executor.check_cancelled()
                iteration = j * inner + k
                executor.report(f"Optimizing {label}: {iteration + 1}/{total}", iteration / total)
                if clusterer.automatic:
                    clusterer.strategy.set_numbered_grid_configuration(k)
                record(iteration, executor.cluster(clusterer, pairs))

        if tracker.best_iteration is None:
            matcher.strategy.reset_configuration()
            clusterer.strategy.reset_configuration()
        else:
            best_outer, best_inner = divmod(tracker.best_iteration, inner)
            if matcher.automatic:
                matcher.strategy.set_numbered_grid_configuration(best_outer)
            if clusterer.automatic:
                clusterer.strategy.set_numbered_grid_configuration(best_inner)
        return tracker.outcome()

    def _finalize(self, stage: ResolvedStage, best_iteration: int | None) -> None:
        """Rewind a searched stage to its winning configuration."""
        if best_iteration is None:
            stage.strategy.reset_configuration()
        elif self.random_search:
            stage.strategy.set_numbered_random_configuration(best_iteration)
        else:
            stage.strategy.set_numbered_grid_configuration(best_iteration)
