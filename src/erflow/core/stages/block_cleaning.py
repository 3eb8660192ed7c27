"""Block cleaning methods: drop oversized blocks or trim entities' block lists."""

import math
from collections import defaultdict

from optuna.distributions import FloatDistribution

from erflow.core.models import Block
from erflow.core.stage import DEFAULT_SEED, BlockCleaner


class BlockPurging(BlockCleaner):
    """Size-based block purging.

    Removes every block containing more than `max_block_fraction` of the
    entities that appear in the input blocks. Very large blocks usually come
    from stop-word keys and contribute mostly superfluous comparisons.
    """

    method_name = "block_purging"
    parameter_space = {"max_block_fraction": FloatDistribution(0.05, 1.0, step=0.05)}

    def __init__(self, max_block_fraction: float = 0.5, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)
        if not 0.0 < max_block_fraction <= 1.0:
            raise ValueError("max_block_fraction must be in (0.0, 1.0]")
        self.max_block_fraction = max_block_fraction

    def refine_blocks(self, blocks: list[Block]) -> list[Block]:
        entities = {entity for block in blocks for entity in block.entities()}
        max_size = self.max_block_fraction * len(entities)
        return [block for block in blocks if block.size <= max_size]


class BlockFiltering(BlockCleaner):
    """Block filtering.

    Every entity is retained only in the `ratio` fraction of its smallest
    blocks (by comparisons). Blocks left with no comparisons are dropped.
    """

    method_name = "block_filtering"
    parameter_space = {"ratio": FloatDistribution(0.1, 1.0, step=0.05)}

    def __init__(self, ratio: float = 0.8, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)
        if not 0.0 < ratio <= 1.0:
            raise ValueError("ratio must be in (0.0, 1.0]")
        self.ratio = ratio

    def refine_blocks(self, blocks: list[Block]) -> list[Block]:
        ordered = sorted(range(len(blocks)), key=lambda i: (blocks[i].comparisons, blocks[i].key))

        entity_blocks: dict[int, list[int]] = defaultdict(list)
        for block_index in ordered:
            for entity in blocks[block_index].entities():
                entity_blocks[entity].append(block_index)

        retained: dict[int, set[int]] = defaultdict(set)
        for entity, block_indices in entity_blocks.items():
            limit = max(1, math.ceil(self.ratio * len(block_indices)))
            for block_index in block_indices[:limit]:
                retained[block_index].add(entity)

        refined: list[Block] = []
        for block_index, block in enumerate(blocks):
            kept = retained.get(block_index, set())
            left = tuple(e for e in block.left if e in kept)
            right = None if block.right is None else tuple(e for e in block.right if e in kept)
            candidate = Block(key=block.key, left=left, right=right)
            if candidate.comparisons > 0:
                refined.append(candidate)
        return refined
