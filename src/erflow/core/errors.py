"""Exception hierarchy for erflow workflows.

Only ConfigurationError, WorkflowCancelledError and WorkflowInProgressError
reach callers. EmptyWorkingSetError is an expected outcome during search and
is handled inside the executor and optimizers.
"""


class ERFlowError(Exception):
    """Base class for all erflow errors."""


class ConfigurationError(ERFlowError):
    """A stage could not be resolved to a usable instance.

    Raised when a method name is unknown, manual parameters do not fit the
    method's parameter space, or a required stage (entity matching, entity
    clustering) is missing.

    Attributes:
        stage: Label of the offending stage (e.g. "entity_matching")
    """

    def __init__(self, message: str, stage: str | None = None):
        self.stage = stage
        if stage is not None:
            message = f"[{stage}] {message}"
        super().__init__(message)


class EmptyWorkingSetError(ERFlowError):
    """A block processing stage removed every block."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Stage '{stage}' produced an empty working set")


class WorkflowCancelledError(ERFlowError):
    """The run was cancelled at a stage or trial boundary."""


class WorkflowInProgressError(ERFlowError):
    """A run was submitted while another one is still in progress."""
