"""Report models for stage evaluation, search and workflow runs.

Evaluation metrics (require ground truth):
- BlockMetrics: Quality of a set of blocks after a block-affecting stage
- ClusterMetrics: Quality of the final equivalence clusters

Search and run reporting:
- TrialResult / SearchOutcome: What the auto-configuration optimizer tried
- TraceEntry / WorkflowTrace: Per-stage metrics of the final configuration
- WorkflowSummary: One row of the run history
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BlockMetrics(BaseModel):
    """Block-level quality metrics.

    Attributes:
        pairs_completeness: Fraction of true duplicate pairs present in the blocks
        pairs_quality: Fraction of block comparisons that are true duplicates
        f_measure: Harmonic mean of pairs_completeness and pairs_quality
        reduction_ratio: 1 - aggregate_cardinality / original_comparisons
        aggregate_cardinality: Total comparisons over all blocks
        detected_duplicates: True duplicate pairs present in the blocks
        existing_duplicates: True duplicate pairs in the ground truth
        total_blocks: Number of blocks
        elapsed_time: Seconds spent in the stage that produced the blocks
    """

    model_config = ConfigDict(frozen=True)

    pairs_completeness: float = Field(ge=0.0, le=1.0)
    pairs_quality: float = Field(ge=0.0, le=1.0)
    f_measure: float = Field(ge=0.0, le=1.0)
    reduction_ratio: float
    aggregate_cardinality: int
    detected_duplicates: int
    existing_duplicates: int
    total_blocks: int
    elapsed_time: float = 0.0


class ClusterMetrics(BaseModel):
    """Cluster-level quality metrics.

    Attributes:
        recall: Fraction of true duplicate pairs that ended up co-clustered
        precision: Fraction of pairs implied by the clusters that are true duplicates
        f_measure: Harmonic mean of precision and recall (0 when both are 0)
        detected_duplicates: True duplicate pairs co-clustered
        existing_duplicates: True duplicate pairs in the ground truth
        total_matches: Pairs implied by the clusters
        cluster_count: Number of clusters (singletons included)
        elapsed_time: Seconds spent in entity clustering
    """

    model_config = ConfigDict(frozen=True)

    recall: float = Field(ge=0.0, le=1.0)
    precision: float = Field(ge=0.0, le=1.0)
    f_measure: float = Field(ge=0.0, le=1.0)
    detected_duplicates: int = 0
    existing_duplicates: int = 0
    total_matches: int = 0
    cluster_count: int = 0
    elapsed_time: float = 0.0

    @classmethod
    def empty(cls) -> ClusterMetrics:
        """Metrics of a run that produced no clusters."""
        return cls(recall=0.0, precision=0.0, f_measure=0.0)


class TrialResult(BaseModel):
    """One evaluated iteration of a configuration search.

    Attributes:
        iteration_index: Index of the trial (random draw or grid position)
        objective_value: Objective achieved by the trial
        stage: Label of the stage(s) being searched
        parameters: Method configuration of every searched stage in the trial
    """

    iteration_index: int
    objective_value: float
    stage: str = ""
    parameters: dict[str, dict[str, Any]] = Field(default_factory=dict)


class SearchOutcome(BaseModel):
    """Result of searching one stage (or the whole pipeline).

    Attributes:
        stage: Label of the searched stage, or "holistic"
        best_iteration: Winning iteration (0 when no trial succeeded)
        best_objective: Objective of the winning iteration
        trials: Every non-skipped trial, in evaluation order
        skipped: Number of trials skipped because the working set became empty
    """

    stage: str
    best_iteration: int = 0
    best_objective: float = 0.0
    trials: list[TrialResult] = Field(default_factory=list)
    skipped: int = 0

    @property
    def found(self) -> bool:
        """True if at least one trial produced a result."""
        return bool(self.trials)


class TraceEntry(BaseModel):
    """Metrics and configuration of one executed stage."""

    stage_name: str
    method_name: str
    metrics: BlockMetrics | ClusterMetrics
    configuration: dict[str, Any] = Field(default_factory=dict)


class WorkflowTrace(BaseModel):
    """Ordered per-stage trace of the final (winning) configuration."""

    entries: list[TraceEntry] = Field(default_factory=list)

    def append(self, entry: TraceEntry) -> None:
        self.entries.append(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def to_markdown(self) -> str:
        """Generate human-readable markdown report.

        Returns:
            Markdown table with one row per executed stage.
        """
        lines = ["# Workflow Trace\n"]
        if not self.entries:
            lines.append("No stages were executed.")
            return "\n".join(lines)

        lines.append(
            "| Stage | Method | Recall/PC | Precision/PQ | F1 | Time (s) | Configuration |"
        )
        lines.append("|---|---|---|---|---|---|---|")
        for entry in self.entries:
            metrics = entry.metrics
            if isinstance(metrics, BlockMetrics):
                recall, precision = metrics.pairs_completeness, metrics.pairs_quality
            else:
                recall, precision = metrics.recall, metrics.precision
            config = ", ".join(f"{k}={v}" for k, v in entry.configuration.items()) or "-"
            lines.append(
                f"| {entry.stage_name} | {entry.method_name} | {recall:.4f} | {precision:.4f} "
                f"| {metrics.f_measure:.4f} | {metrics.elapsed_time:.3f} | {config} |"
            )
        return "\n".join(lines)


class WorkflowSummary(BaseModel):
    """One row of the run history."""

    run_index: int
    recall: float
    precision: float
    f_measure: float
    total_elapsed_seconds: float
    input_instance_count: int
    cluster_count: int
