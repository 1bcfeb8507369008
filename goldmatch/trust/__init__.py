"""
GoldMatch trust package: record quality scoring.
"""

from .config import (
    QualityConfig,
    QualityDimension,
    FieldType,
    ConsistencyRule,
    ConsistencyRuleType,
    DEFAULT_DIMENSION_WEIGHTS
)
from .scoring import QualityScorer

__all__ = [
    'QualityConfig',
    'QualityDimension',
    'FieldType',
    'ConsistencyRule',
    'ConsistencyRuleType',
    'DEFAULT_DIMENSION_WEIGHTS',
    'QualityScorer'
]
