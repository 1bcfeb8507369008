"""
GoldMatch merge package: clustering and golden record creation.
"""

from .strategies import (
    MergeStrategyType,
    MergeStrategy,
    MergeConfig,
    Candidate,
    FieldResolver,
    ResolverFactory
)
from .clustering import ClusterReport, DuplicateClusterer, build_match_graph, unscored_pairs
from .processor import GoldenRecordMerger, golden_record_id

__all__ = [
    'MergeStrategyType',
    'MergeStrategy',
    'MergeConfig',
    'Candidate',
    'FieldResolver',
    'ResolverFactory',
    'ClusterReport',
    'DuplicateClusterer',
    'build_match_graph',
    'unscored_pairs',
    'GoldenRecordMerger',
    'golden_record_id'
]
