"""
erflow.core: Orchestration and auto-configuration of ER workflows.

This module provides the pipeline executor, the stage capability contract,
the configuration search strategies and the evaluation metrics.
"""

from erflow.core import metrics, optimizers, stages
from erflow.core.errors import (
    ConfigurationError,
    EmptyWorkingSetError,
    ERFlowError,
    WorkflowCancelledError,
    WorkflowInProgressError,
)
from erflow.core.executor import PipelineExecutor, PipelineRun
from erflow.core.models import (
    Block,
    DuplicateOracle,
    EntityProfile,
    SchemaPartition,
    SimilarityPair,
    SimilarityPairs,
    StageConfig,
    WorkflowSpec,
)
from erflow.core.optimizers import HolisticRandomSearch, StepByStepSearch
from erflow.core.progress import ProgressChannel, ProgressEvent
from erflow.core.registry import (
    ResolvedStage,
    StageSet,
    apply_configuration,
    register_stage,
    resolve_stage,
    resolve_stages,
)
from erflow.core.reports import (
    BlockMetrics,
    ClusterMetrics,
    SearchOutcome,
    TraceEntry,
    TrialResult,
    WorkflowSummary,
    WorkflowTrace,
)
from erflow.core.stage import (
    BlockBuilder,
    BlockCleaner,
    ComparisonCleaner,
    EntityClusterer,
    EntityMatcher,
    SchemaClusterer,
    Stage,
)
from erflow.core.workflow import WorkflowManager, WorkflowResult

__all__ = [
    "Block",
    "BlockBuilder",
    "BlockCleaner",
    "BlockMetrics",
    "ClusterMetrics",
    "ComparisonCleaner",
    "ConfigurationError",
    "DuplicateOracle",
    "EmptyWorkingSetError",
    "EntityClusterer",
    "EntityMatcher",
    "EntityProfile",
    "ERFlowError",
    "HolisticRandomSearch",
    "metrics",
    "optimizers",
    "PipelineExecutor",
    "PipelineRun",
    "ProgressChannel",
    "ProgressEvent",
    "ResolvedStage",
    "SchemaClusterer",
    "SchemaPartition",
    "SearchOutcome",
    "SimilarityPair",
    "SimilarityPairs",
    "Stage",
    "StageConfig",
    "stages",
    "StageSet",
    "StepByStepSearch",
    "TraceEntry",
    "TrialResult",
    "WorkflowCancelledError",
    "WorkflowInProgressError",
    "WorkflowManager",
    "WorkflowResult",
    "WorkflowSpec",
    "WorkflowSummary",
    "WorkflowTrace",
    "apply_configuration",
    "register_stage",
    "resolve_stage",
    "resolve_stages",
]
