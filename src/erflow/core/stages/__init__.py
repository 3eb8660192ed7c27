"""Reference stage implementations, one module per stage kind."""

from erflow.core.stages.block_building import QGramsBlocking, TokenBlocking
from erflow.core.stages.block_cleaning import BlockFiltering, BlockPurging
from erflow.core.stages.comparison_cleaning import CommonBlocksPruning, ComparisonPropagation
from erflow.core.stages.entity_clustering import (
    ConnectedComponentsClustering,
    UniqueMappingClustering,
)
from erflow.core.stages.entity_matching import ProfileMatcher
from erflow.core.stages.schema_clustering import AttributeClustering

__all__ = [
    "AttributeClustering",
    "BlockFiltering",
    "BlockPurging",
    "CommonBlocksPruning",
    "ComparisonPropagation",
    "ConnectedComponentsClustering",
    "ProfileMatcher",
    "QGramsBlocking",
    "TokenBlocking",
    "UniqueMappingClustering",
]
