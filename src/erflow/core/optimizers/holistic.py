"""Holistic random search over every automatic stage at once."""

import logging
from collections.abc import Sequence

from erflow.core.executor import PipelineExecutor, PipelineRun
from erflow.core.optimizers.base import BestTracker, TrialCallback
from erflow.core.registry import StageSet
from erflow.core.reports import SearchOutcome

logger = logging.getLogger(__name__)

DEFAULT_N_TRIALS = 100


class HolisticRandomSearch:
    """Jointly sample all automatic stages and keep the best full-pipeline F1.

    Each trial advances every automatic stage to its next random
    configuration and runs the whole pipeline without a trace. Trials whose
    working set becomes empty are skipped. Afterwards every automatic stage
    is rewound to the winning draw and the pipeline runs once more with a
    full trace.

    If every trial is skipped, the automatic stages are reset to the
    configuration they had before the search and the final run is still
    attempted (it may itself come back empty).

    Example:
        >>> search = HolisticRandomSearch(n_trials=50)
        >>> run, outcome = search.search(executor, stages)
        >>> print(outcome.best_iteration, outcome.best_objective)
    """

    def __init__(self, n_trials: int = DEFAULT_N_TRIALS, callbacks: Sequence[TrialCallback] = ()):
        if n_trials < 1:
            raise ValueError(f"n_trials must be >= 1, got: {n_trials}")
        self.n_trials = n_trials
        self.callbacks = list(callbacks)

    def search(
        self, executor: PipelineExecutor, stages: StageSet
    ) -> tuple[PipelineRun | None, SearchOutcome]:
        """Run the search and the final traced execution.

        Returns:
            Tuple of (final run or None if it emptied the working set, outcome)
        """
        automatic = stages.automatic()
        tracker = BestTracker("holistic", self.callbacks)
        logger.info(
            "Starting holistic random search: %d trials over %s",
            self.n_trials,
            [stage.label for stage in automatic],
        )

        for iteration in range(self.n_trials):
            executor.check_cancelled()
            executor.report(
                f"Holistic search trial {iteration + 1}/{self.n_trials}",
                iteration / self.n_trials,
            )
            for stage in automatic:
                stage.strategy.set_next_random_configuration()

            run = executor.execute(stages, record_trace=False)
            if run is None:
                tracker.skip(iteration)
                continue
            tracker.record(
                iteration,
                run.metrics.f_measure,
                {stage.label: stage.strategy.get_method_configuration() for stage in automatic},
            )

        if tracker.best_iteration is None:
            for stage in automatic:
                stage.strategy.reset_configuration()
        else:
            for stage in automatic:
                stage.strategy.set_numbered_random_configuration(tracker.best_iteration)

        return executor.execute(stages, record_trace=True), tracker.outcome()
