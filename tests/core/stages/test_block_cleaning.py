"""Tests for erflow.core.stages.block_cleaning."""

import pytest

from erflow.core.models import Block
from erflow.core.stages.block_cleaning import BlockFiltering, BlockPurging


class TestBlockPurging:
    """Test size-based purging."""

    def test_drops_oversized_blocks(self):
        big = Block(key="big", left=(0, 1, 2, 3, 4))
        small = Block(key="small", left=(0, 1))

        assert BlockPurging(max_block_fraction=0.5).refine_blocks([big, small]) == [small]

    def test_full_fraction_keeps_everything(self):
        blocks = [Block(key="big", left=(0, 1, 2, 3, 4)), Block(key="small", left=(0, 1))]
        assert BlockPurging(max_block_fraction=1.0).refine_blocks(blocks) == blocks

    def test_input_not_mutated(self):
        blocks = [Block(key="big", left=(0, 1, 2, 3, 4)), Block(key="small", left=(0, 1))]
        snapshot = list(blocks)
        BlockPurging(max_block_fraction=0.1).refine_blocks(blocks)
        assert blocks == snapshot

    def test_can_empty_the_working_set(self):
        blocks = [Block(key="a", left=(0, 1))]
        assert BlockPurging(max_block_fraction=0.5).refine_blocks(blocks) == []

    def test_grid(self):
        assert BlockPurging().get_number_of_grid_configurations() == 20

    @pytest.mark.parametrize("fraction", [0.0, -0.1, 1.5])
    def test_invalid_fraction(self, fraction):
        with pytest.raises(ValueError, match="max_block_fraction"):
            BlockPurging(max_block_fraction=fraction)


class TestBlockFiltering:
    """Test per-entity block filtering."""

    def test_keeps_entities_in_their_smallest_blocks(self):
        a = Block(key="a", left=(0, 1))
        b = Block(key="b", left=(0, 1, 2))
        c = Block(key="c", left=(0, 1, 2, 3))

        refined = BlockFiltering(ratio=0.5).refine_blocks([a, b, c])

        assert refined == [a, b]

    def test_full_ratio_keeps_everything(self):
        blocks = [Block(key="a", left=(0, 1)), Block(key="b", left=(0, 1, 2))]
        assert BlockFiltering(ratio=1.0).refine_blocks(blocks) == blocks

    def test_clean_clean_blocks_keep_both_sides(self):
        a = Block(key="a", left=(0,), right=(3,))
        b = Block(key="b", left=(0, 1), right=(3, 4))

        refined = BlockFiltering(ratio=0.5).refine_blocks([a, b])

        assert refined == [a, Block(key="b", left=(1,), right=(4,))]

    def test_grid(self):
        assert BlockFiltering().get_number_of_grid_configurations() == 19

    def test_invalid_ratio(self):
        with pytest.raises(ValueError, match="ratio"):
            BlockFiltering(ratio=0.0)
