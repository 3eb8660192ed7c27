"""Comparison cleaning methods.

Both methods restructure the working set into one block per retained
comparison, so every pair is executed at most once by entity matching.
"""

from collections import Counter

from optuna.distributions import IntDistribution

from erflow.core.models import Block
from erflow.core.stage import DEFAULT_SEED, ComparisonCleaner


def count_comparisons(blocks: list[Block]) -> Counter[tuple[int, int]]:
    """Number of blocks each distinct comparison appears in."""
    counts: Counter[tuple[int, int]] = Counter()
    for block in blocks:
        counts.update(block.pairs())
    return counts


def pair_blocks(pairs: list[tuple[int, int]], clean_clean: bool) -> list[Block]:
    """One block per (low, high) pair, in sorted pair order."""
    blocks = []
    for low, high in sorted(pairs):
        if clean_clean:
            blocks.append(Block(key=f"{low}-{high}", left=(low,), right=(high,)))
        else:
            blocks.append(Block(key=f"{low}-{high}", left=(low, high)))
    return blocks


class ComparisonPropagation(ComparisonCleaner):
    """Removes redundant comparisons (pairs repeated across blocks)."""

    method_name = "comparison_propagation"

    def __init__(self, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)

    def refine_blocks(self, blocks: list[Block]) -> list[Block]:
        clean_clean = any(block.is_clean_clean for block in blocks)
        return pair_blocks(list(count_comparisons(blocks)), clean_clean)


class CommonBlocksPruning(ComparisonCleaner):
    """Keeps only comparisons whose entities share at least `min_common_blocks` blocks."""

    method_name = "common_blocks_pruning"
    parameter_space = {"min_common_blocks": IntDistribution(1, 5)}

    def __init__(self, min_common_blocks: int = 2, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)
        if min_common_blocks < 1:
            raise ValueError("min_common_blocks must be at least 1")
        self.min_common_blocks = min_common_blocks

    def refine_blocks(self, blocks: list[Block]) -> list[Block]:
        clean_clean = any(block.is_clean_clean for block in blocks)
        counts = count_comparisons(blocks)
        kept = [pair for pair, count in counts.items() if count >= self.min_common_blocks]
        return pair_blocks(kept, clean_clean)
