"""
erflow: Entity resolution workflow orchestration with auto-configuration.

- erflow.core: Pipeline executor, stage contract, search strategies, metrics
- erflow.clients: Settings and experiment tracking
- erflow.data: Dataset loaders
"""

from erflow.core import StageConfig, WorkflowManager, WorkflowResult, WorkflowSpec

__all__ = ["StageConfig", "WorkflowManager", "WorkflowResult", "WorkflowSpec"]

__version__ = "0.1.0"
