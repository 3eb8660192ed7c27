"""Shared bookkeeping for configuration searches."""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from erflow.core.reports import SearchOutcome, TrialResult

logger = logging.getLogger(__name__)

TrialCallback = Callable[[TrialResult], None]


class BestTracker:
    """Tracks the best trial of a search.

    A trial replaces the current best only if its objective is strictly
    greater, so the earliest trial wins ties. Skipped trials (the working set
    became empty) are counted but never become the best.

    Example:
        >>> tracker = BestTracker("block_cleaning[0]")
        >>> tracker.record(0, 0.5)
        >>> tracker.record(1, 0.5)
        >>> tracker.best_iteration
        0
    """

    def __init__(self, stage: str, callbacks: Sequence[TrialCallback] = ()):
        self.stage = stage
        self.callbacks = list(callbacks)
        self.best_iteration: int | None = None
        self.best_objective = 0.0
        self.trials: list[TrialResult] = []
        self.skipped = 0

    def record(
        self,
        iteration: int,
        objective: float,
        parameters: dict[str, dict[str, Any]] | None = None,
    ) -> bool:
        """Record a completed trial.

        Returns:
            True if the trial became the new best
        """
        trial = TrialResult(
            iteration_index=iteration,
            objective_value=objective,
            stage=self.stage,
            parameters=parameters or {},
        )
        self.trials.append(trial)
        for callback in self.callbacks:
            callback(trial)

        improved = self.best_iteration is None or objective > self.best_objective
        if improved:
            self.best_iteration = iteration
            self.best_objective = objective
            logger.debug("%s: new best at iteration %d (%.4f)", self.stage, iteration, objective)
        return improved

    def skip(self, iteration: int) -> None:
        self.skipped += 1
        logger.debug("%s: iteration %d emptied the working set, skipped", self.stage, iteration)

    def outcome(self) -> SearchOutcome:
        if self.best_iteration is None:
            logger.info(
                "%s: no iteration produced a result (%d skipped)", self.stage, self.skipped
            )
            return SearchOutcome(stage=self.stage, skipped=self.skipped)

        logger.info(
            "%s: best iteration %d of %d (objective %.4f, %d skipped)",
            self.stage,
            self.best_iteration,
            len(self.trials) + self.skipped,
            self.best_objective,
            self.skipped,
        )
        return SearchOutcome(
            stage=self.stage,
            best_iteration=self.best_iteration,
            best_objective=self.best_objective,
            trials=self.trials,
            skipped=self.skipped,
        )
