"""Evaluation metrics for entity resolution workflows.

This module provides metrics for evaluating the two kinds of working set:

- Blocking stages: evaluate_blocks() (pairs completeness, pairs quality,
  reduction ratio)
- Clustering stage: evaluate_clusters() (pairwise recall, precision, F-measure)

All functions are pure and can be called independently of the executor.
"""

from collections.abc import Iterable
from itertools import combinations

from erflow.core.models import Block, DuplicateOracle, EquivalenceClusters
from erflow.core.reports import BlockMetrics, ClusterMetrics


def f_measure(precision: float, recall: float) -> float:
    """Harmonic mean of precision and recall, 0.0 when both are 0."""
    if precision + recall <= 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def aggregate_cardinality(blocks: Iterable[Block]) -> int:
    """Total number of comparisons implied by a set of blocks."""
    return sum(block.comparisons for block in blocks)


def detected_pairs(blocks: Iterable[Block], oracle: DuplicateOracle) -> set[tuple[int, int]]:
    """True duplicate pairs that co-occur in at least one block."""
    detected: set[tuple[int, int]] = set()
    for block in blocks:
        for pair in block.pairs():
            if pair in oracle.duplicates:
                detected.add(pair)
    return detected


def evaluate_blocks(
    blocks: list[Block],
    oracle: DuplicateOracle,
    original_comparisons: float,
    elapsed_time: float = 0.0,
) -> BlockMetrics:
    """Evaluate a set of blocks against the ground truth.

    Args:
        blocks: Working set of blocks
        oracle: Ground truth duplicate pairs
        original_comparisons: Comparisons before the stage that produced
            `blocks` (brute-force count for block building, the input's
            aggregate cardinality for cleaning stages)
        elapsed_time: Seconds the producing stage took

    Returns:
        BlockMetrics where pairs_completeness = detected / existing and
        pairs_quality = detected / aggregate_cardinality.

    Example:
        >>> metrics = evaluate_blocks(blocks, oracle, original_comparisons=45)
        >>> print(f"PC: {metrics.pairs_completeness:.2%}")
    """
    cardinality = aggregate_cardinality(blocks)
    detected = len(detected_pairs(blocks, oracle))
    existing = len(oracle)

    pc = detected / existing if existing > 0 else 0.0
    pq = detected / cardinality if cardinality > 0 else 0.0
    rr = 1.0 - cardinality / original_comparisons if original_comparisons > 0 else 0.0

    return BlockMetrics(
        pairs_completeness=pc,
        pairs_quality=pq,
        f_measure=f_measure(pq, pc),
        reduction_ratio=rr,
        aggregate_cardinality=cardinality,
        detected_duplicates=detected,
        existing_duplicates=existing,
        total_blocks=len(blocks),
        elapsed_time=elapsed_time,
    )


def reduction_ratio_objective(metrics: BlockMetrics) -> float:
    """Local blocking objective: reduction ratio times pairs completeness."""
    return metrics.reduction_ratio * metrics.pairs_completeness


def pairs_from_clusters(
    clusters: EquivalenceClusters, dataset_limit: int | None = None
) -> set[tuple[int, int]]:
    """Convert clusters to the set of entity pairs they imply.

    In Clean-Clean ER (dataset_limit set) only pairs across the two
    collections count as matches.

    Example:
        >>> sorted(pairs_from_clusters([{0, 1, 2}, {3}]))
        [(0, 1), (0, 2), (1, 2)]
    """
    pairs: set[tuple[int, int]] = set()
    for cluster in clusters:
        for i, j in combinations(sorted(cluster), 2):
            if dataset_limit is not None and (i < dataset_limit) == (j < dataset_limit):
                continue
            pairs.add((i, j))
    return pairs


def evaluate_clusters(
    clusters: EquivalenceClusters,
    oracle: DuplicateOracle,
    elapsed_time: float = 0.0,
) -> ClusterMetrics:
    """Evaluate equivalence clusters against the ground truth.

    Args:
        clusters: Final clusters (sets of global entity indices)
        oracle: Ground truth duplicate pairs
        elapsed_time: Seconds entity clustering took

    Returns:
        ClusterMetrics with pairwise recall, precision and F-measure.
    """
    predicted = pairs_from_clusters(clusters, oracle.dataset_limit)
    detected = len(predicted & oracle.duplicates)
    existing = len(oracle)

    recall = detected / existing if existing > 0 else 0.0
    precision = detected / len(predicted) if predicted else 0.0

    return ClusterMetrics(
        recall=recall,
        precision=precision,
        f_measure=f_measure(precision, recall),
        detected_duplicates=detected,
        existing_duplicates=existing,
        total_matches=len(predicted),
        cluster_count=len(clusters),
        elapsed_time=elapsed_time,
    )
