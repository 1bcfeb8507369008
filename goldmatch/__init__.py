"""
GoldMatch - Entity Resolution and Golden Record Engine
"""

from .exceptions import (
    GoldMatchError,
    ConfigurationError,
    MalformedRecordError,
    ResolutionCancelled
)
from .model import (
    EntityRecord,
    EntityType,
    MatchDecision,
    MatchResult,
    MergeConflict,
    GoldenRecord,
    QualityScore,
    ComparisonAnomaly
)
from .match import (
    MatchAlgorithm,
    FieldMatchConfig,
    MatchRuleConfig,
    DecisionThresholds,
    CompositeScorer,
    BlockingConfig,
    BlockingPass,
    KeyComponent,
    Blocker,
    similarity,
    distance
)
from .trust import QualityConfig, QualityScorer
from .merge import MergeStrategy, MergeStrategyType, MergeConfig, GoldenRecordMerger
from .config import ResolutionConfig
from .pipeline import ResolutionPipeline, ResolutionResult, CancellationToken
from .presets import preset_config

__version__ = "0.1.0"

__all__ = [
    # Errors
    "GoldMatchError",
    "ConfigurationError",
    "MalformedRecordError",
    "ResolutionCancelled",

    # Data model
    "EntityRecord",
    "EntityType",
    "MatchDecision",
    "MatchResult",
    "MergeConflict",
    "GoldenRecord",
    "QualityScore",
    "ComparisonAnomaly",

    # Matching
    "MatchAlgorithm",
    "FieldMatchConfig",
    "MatchRuleConfig",
    "DecisionThresholds",
    "CompositeScorer",
    "BlockingConfig",
    "BlockingPass",
    "KeyComponent",
    "Blocker",
    "similarity",
    "distance",

    # Quality and merging
    "QualityConfig",
    "QualityScorer",
    "MergeStrategy",
    "MergeStrategyType",
    "MergeConfig",
    "GoldenRecordMerger",

    # Runs
    "ResolutionConfig",
    "ResolutionPipeline",
    "ResolutionResult",
    "CancellationToken",
    "preset_config"
]
