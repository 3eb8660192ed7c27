"""
Workflow manager: the entry point for running ER workflows.

WorkflowManager loads the data of a WorkflowSpec, resolves its stages, picks
the configuration strategy and returns a WorkflowResult:

- optimizer "none" (or no automatic stage): one plain run
- "holistic_random": HolisticRandomSearch
- "stepwise_random" / "stepwise_grid": StepByStepSearch

Runs can execute synchronously (run) or on a dedicated worker thread
(submit). Only one run may be in progress per manager.
"""

import logging
import threading
import time
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor

from pydantic import BaseModel, Field

from erflow.clients.settings import Settings
from erflow.core.errors import (
    ConfigurationError,
    WorkflowCancelledError,
    WorkflowInProgressError,
)
from erflow.core.executor import PipelineExecutor, PipelineRun
from erflow.core.models import EntityProfile, WorkflowSpec
from erflow.core.optimizers import HolisticRandomSearch, StepByStepSearch, TrialCallback
from erflow.core.progress import ProgressChannel
from erflow.core.registry import resolve_stages
from erflow.core.reports import (
    ClusterMetrics,
    SearchOutcome,
    WorkflowSummary,
    WorkflowTrace,
)

logger = logging.getLogger(__name__)


class WorkflowResult(BaseModel):
    """Everything a finished run hands to presentation and export.

    Attributes:
        metrics: Final cluster metrics (all zero if the working set emptied)
        trace: Per-stage metrics of the final configuration
        summary: History row appended to WorkflowManager.history
        clusters: Final equivalence clusters over global entity indices
        profiles_d1: Collection 1, for mapping indices back to profiles
        profiles_d2: Collection 2 in Clean-Clean ER
        searches: One SearchOutcome per search that ran
        empty_working_set: True if the final configuration emptied the blocks
    """

    metrics: ClusterMetrics
    trace: WorkflowTrace
    summary: WorkflowSummary
    clusters: list[set[int]] = Field(default_factory=list)
    profiles_d1: list[EntityProfile] = Field(default_factory=list)
    profiles_d2: list[EntityProfile] | None = None
    searches: list[SearchOutcome] = Field(default_factory=list)
    empty_working_set: bool = False

    def profile(self, index: int) -> EntityProfile:
        """Map a global entity index back to its profile."""
        if index < len(self.profiles_d1):
            return self.profiles_d1[index]
        if self.profiles_d2 is None:
            raise IndexError(f"entity index {index} out of range")
        return self.profiles_d2[index - len(self.profiles_d1)]


class WorkflowManager:
    """Runs ER workflows and keeps their history.

    Example:
        >>> manager = WorkflowManager()
        >>> result = manager.run(spec)
        >>> print(f"F1: {result.metrics.f_measure:.2%}")
        >>> print(result.trace.to_markdown())

        >>> # Background run with progress and cancellation
        >>> channel = ProgressChannel()
        >>> manager = WorkflowManager(progress=channel)
        >>> future = manager.submit(spec)
        >>> manager.cancel()
        >>> future.result()  # raises WorkflowCancelledError
    """

    def __init__(
        self,
        settings: Settings | None = None,
        progress: ProgressChannel | None = None,
        trial_callbacks: Sequence[TrialCallback] = (),
    ):
        self.settings = settings or Settings()
        self.progress = progress
        self.trial_callbacks = list(trial_callbacks)
        self.history: list[WorkflowSummary] = []
        self._lock = threading.Lock()
        self._running = False
        self._cancel_event = threading.Event()
        self._pool: ThreadPoolExecutor | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def run(self, spec: WorkflowSpec) -> WorkflowResult:
        """Run a workflow on the calling thread.

        Raises:
            WorkflowInProgressError: If another run is in progress
            ConfigurationError: For invalid stage configuration
            WorkflowCancelledError: If cancel() was called during the run
        """
        self._acquire()
        return self._run_and_release(spec)

    def submit(self, spec: WorkflowSpec) -> "Future[WorkflowResult]":
        """Run a workflow on the manager's worker thread.

        The in-progress check happens immediately, so a second submit while
        a run is pending raises WorkflowInProgressError here rather than
        through the future.
        """
        self._acquire()
        if self._pool is None:
            self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="erflow")
        try:
            return self._pool.submit(self._run_and_release, spec)
        except RuntimeError:
            self._release()
            raise

    def cancel(self) -> None:
        """Request cancellation; the run stops at the next stage or trial boundary."""
        if self._running:
            logger.info("Cancellation requested")
            self._cancel_event.set()

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self) -> "WorkflowManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _acquire(self) -> None:
        with self._lock:
            if self._running:
                raise WorkflowInProgressError("A workflow is already running")
            self._running = True
            self._cancel_event.clear()

    def _release(self) -> None:
        with self._lock:
            self._running = False

    def _run_and_release(self, spec: WorkflowSpec) -> WorkflowResult:
        try:
            return self._execute(spec)
        except (ConfigurationError, WorkflowCancelledError) as e:
            logger.error("Workflow aborted: %s", e)
            raise
        except Exception:
            logger.exception("Workflow run failed")
            raise
        finally:
            self._release()

    def _execute(self, spec: WorkflowSpec) -> WorkflowResult:
        start = time.perf_counter()
        seed = spec.random_seed if spec.random_seed is not None else self.settings.random_seed
        n_trials = spec.n_trials or self.settings.n_trials

        profiles_d1, profiles_d2 = spec.load_profiles(spec)
        oracle = spec.load_ground_truth(spec, profiles_d1, profiles_d2)
        logger.info(
            "Starting %s ER workflow: %d + %d profiles, %d known duplicates, optimizer %s",
            spec.resolution_mode,
            len(profiles_d1),
            len(profiles_d2) if profiles_d2 is not None else 0,
            len(oracle),
            spec.optimizer,
        )

        stages = resolve_stages(spec, seed)
        executor = PipelineExecutor(
            spec.resolution_mode,
            profiles_d1,
            profiles_d2,
            oracle,
            progress=self.progress,
            cancel_event=self._cancel_event,
        )
        executor.require_resolution_stages(stages)

        run: PipelineRun | None
        searches: list[SearchOutcome] = []
        if spec.optimizer == "none" or not stages.any_automatic:
            run = executor.execute(stages, record_trace=True)
        elif spec.optimizer == "holistic_random":
            run, outcome = HolisticRandomSearch(n_trials, self.trial_callbacks).search(
                executor, stages
            )
            searches.append(outcome)
        else:
            search = StepByStepSearch(
                random_search=spec.optimizer == "stepwise_random",
                n_trials=n_trials,
                callbacks=self.trial_callbacks,
            )
            run, searches = search.search(executor, stages)

        if run is None:
            logger.warning("Final configuration emptied the working set; no clusters produced")
            metrics, trace, clusters = ClusterMetrics.empty(), WorkflowTrace(), []
        else:
            metrics, trace, clusters = run.metrics, run.trace, run.clusters

        summary = WorkflowSummary(
            run_index=len(self.history),
            recall=metrics.recall,
            precision=metrics.precision,
            f_measure=metrics.f_measure,
            total_elapsed_seconds=time.perf_counter() - start,
            input_instance_count=len(profiles_d1),
            cluster_count=len(clusters),
        )
        self.history.append(summary)
        logger.info(
            "Workflow %d finished in %.2fs: recall %.4f, precision %.4f, F1 %.4f",
            summary.run_index,
            summary.total_elapsed_seconds,
            summary.recall,
            summary.precision,
            summary.f_measure,
        )

        return WorkflowResult(
            metrics=metrics,
            trace=trace,
            summary=summary,
            clusters=clusters,
            profiles_d1=profiles_d1,
            profiles_d2=profiles_d2,
            searches=searches,
            empty_working_set=run is None,
        )
