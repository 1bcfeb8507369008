"""
GoldMatch data model.
"""

from .entity import (
    EntityRecord,
    EntityType,
    FieldValue,
    ValueKind,
    value_kind,
    is_missing,
    parse_timestamp
)
from .results import (
    MatchDecision,
    ExplainKind,
    FieldScore,
    ExplainEntry,
    ComparisonAnomaly,
    MatchResult,
    CandidateValue,
    MergeConflict,
    QualityScore,
    GoldenRecord
)

__all__ = [
    'EntityRecord',
    'EntityType',
    'FieldValue',
    'ValueKind',
    'value_kind',
    'is_missing',
    'parse_timestamp',
    'MatchDecision',
    'ExplainKind',
    'FieldScore',
    'ExplainEntry',
    'ComparisonAnomaly',
    'MatchResult',
    'CandidateValue',
    'MergeConflict',
    'QualityScore',
    'GoldenRecord'
]
