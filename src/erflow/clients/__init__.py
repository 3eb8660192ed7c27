"""
erflow.clients: Configuration and factories for external services.

- Settings: run defaults and credentials (pydantic-settings)
- Experiment tracking (wandb)
"""

from erflow.clients.settings import Settings
from erflow.clients.tracking import WandbTrialLogger, create_wandb_tracker

__all__ = [
    "Settings",
    "WandbTrialLogger",
    "create_wandb_tracker",
]
