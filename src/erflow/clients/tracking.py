"""wandb tracking client factory and trial logger."""

import logging
from typing import Any

import wandb

from erflow.clients.settings import Settings
from erflow.core.reports import TrialResult, WorkflowSummary

logger = logging.getLogger(__name__)


def create_wandb_tracker(settings: Settings | None = None, job_type: str = "er_workflow") -> Any:
    """Initialize wandb tracking for experiment logging.

    Args:
        settings: Optional Settings object. If None, loads from environment.
        job_type: Type of job for wandb categorization. Default: "er_workflow".

    Returns:
        wandb run object that can be used to log metrics.

    Raises:
        ValueError: If no wandb API key is configured.

    Example:
        run = create_wandb_tracker()
        manager = WorkflowManager(trial_callbacks=[WandbTrialLogger(run)])
        result = manager.run(spec)
        WandbTrialLogger(run).log_summary(result.summary)
        run.finish()
    """
    if settings is None:
        settings = Settings()

    if not settings.wandb_api_key:
        raise ValueError("WANDB_API_KEY environment variable is required")

    run = wandb.init(
        project=settings.wandb_project, entity=settings.wandb_entity, job_type=job_type
    )

    logger.info(
        "wandb tracker initialized (project: %s, entity: %s, job_type: %s)",
        settings.wandb_project,
        settings.wandb_entity,
        job_type,
    )

    return run


class WandbTrialLogger:
    """Trial callback that logs every search trial to a wandb run.

    Parameters are flattened to "<stage>/<parameter>" keys so that wandb
    can plot objective against each parameter.
    """

    def __init__(self, run: Any):
        self.run = run
        self._step = 0

    def __call__(self, trial: TrialResult) -> None:
        payload: dict[str, Any] = {
            "search": trial.stage,
            "iteration": trial.iteration_index,
            "objective": trial.objective_value,
        }
        for stage, parameters in trial.parameters.items():
            for name, value in parameters.items():
                payload[f"{stage}/{name}"] = value
        self.run.log(payload, step=self._step)
        self._step += 1

    def log_summary(self, summary: WorkflowSummary) -> None:
        """Write the final run metrics to the wandb run summary."""
        for key, value in summary.model_dump().items():
            self.run.summary[key] = value
