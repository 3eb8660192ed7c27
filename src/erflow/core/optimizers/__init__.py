"""Auto-configuration strategies for ER workflows."""

from erflow.core.optimizers.base import BestTracker, TrialCallback
from erflow.core.optimizers.holistic import HolisticRandomSearch
from erflow.core.optimizers.stepwise import StepByStepSearch

__all__ = [
    "BestTracker",
    "HolisticRandomSearch",
    "StepByStepSearch",
    "TrialCallback",
]
