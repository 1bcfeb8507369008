"""
Immutable values produced by a resolution run.
"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .entity import FieldValue, EntityType


class MatchDecision(str, Enum):
    """Classification of a compared pair."""
    MATCH = "match"
    POSSIBLE_MATCH = "possible_match"
    NO_MATCH = "no_match"


class ExplainKind(str, Enum):
    CONTRIBUTING = "contributing"
    PENALIZING = "penalizing"
    VETO = "veto"
    ANOMALY = "anomaly"
    EXCLUDED = "excluded"


def _plain(value: Any) -> Any:
    """JSON-friendly form of a field value."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class FieldScore:
    """Score of one configured field comparison."""
    field_name: str
    algorithm: str
    score: float
    weight: float = 1.0
    included: bool = True


@dataclass(frozen=True)
class ExplainEntry:
    """One line of a pair's audit explanation."""
    field_name: str
    kind: ExplainKind
    weighted_contribution: float = 0.0
    note: str = ""


@dataclass(frozen=True)
class ComparisonAnomaly:
    """A field comparison that could not be carried out.

    Both values were present but of a kind the configured algorithm
    cannot compare. The field scores 0 and the comparison continues.
    """
    record_id_a: str
    record_id_b: str
    field_name: str
    algorithm: str
    reason: str


@dataclass(frozen=True)
class MatchResult:
    """Outcome of comparing two records."""
    record_id_a: str
    record_id_b: str
    field_scores: Tuple[FieldScore, ...]
    aggregate_score: float
    decision: MatchDecision
    explain: Tuple[ExplainEntry, ...] = ()
    anomalies: Tuple[ComparisonAnomaly, ...] = ()

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.record_id_a, self.record_id_b)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id_a": self.record_id_a,
            "record_id_b": self.record_id_b,
            "field_scores": [asdict(s) for s in self.field_scores],
            "aggregate_score": self.aggregate_score,
            "decision": self.decision.value,
            "explain": [
                {**asdict(e), "kind": e.kind.value} for e in self.explain
            ]
        }


@dataclass(frozen=True)
class CandidateValue:
    """A value offered by one source record during a merge.

    ``valid`` is False for values that failed their field type's format
    check; those are logged but never chosen.
    """
    value: FieldValue
    source_record_id: str
    quality: float
    valid: bool = True


@dataclass(frozen=True)
class MergeConflict:
    """A field whose source values disagreed, or that needs a human decision."""
    field_name: str
    candidate_values: Tuple[CandidateValue, ...]
    resolved_value: FieldValue
    strategy_used: str
    requires_manual_review: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_name": self.field_name,
            "candidate_values": [
                {
                    "value": _plain(c.value),
                    "source_record_id": c.source_record_id,
                    "quality": c.quality,
                    "valid": c.valid
                }
                for c in self.candidate_values
            ],
            "resolved_value": _plain(self.resolved_value),
            "strategy_used": self.strategy_used,
            "requires_manual_review": self.requires_manual_review
        }


@dataclass(frozen=True)
class QualityScore:
    """Quality of a single record."""
    overall: float
    completeness: float
    validity: float
    freshness: float
    consistency: float
    issues: Tuple[str, ...] = ()

    @property
    def dimensions(self) -> Dict[str, float]:
        return {
            "completeness": self.completeness,
            "validity": self.validity,
            "freshness": self.freshness,
            "consistency": self.consistency
        }


@dataclass(frozen=True)
class GoldenRecord:
    """Canonical merged representation of one real-world entity.

    A golden record is never changed after creation. Re-merging yields a
    new version and a copy of the prior one whose ``superseded_by`` points
    at the new id.
    """
    id: str
    entity_type: EntityType
    tenant_id: str
    fields: Mapping[str, FieldValue]
    source_record_ids: Tuple[str, ...]
    conflicts: Tuple[MergeConflict, ...] = ()
    quality_score: float = 0.0
    merged_at: Optional[datetime] = None
    superseded_by: Optional[str] = None
    version: int = 1
    previous_version_ids: Tuple[str, ...] = ()
    unresolved_fields: Tuple[str, ...] = ()
    review_flags: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.source_record_ids:
            raise ValueError("A golden record needs at least one source record")

    @property
    def manual_review_conflicts(self) -> Tuple[MergeConflict, ...]:
        return tuple(c for c in self.conflicts if c.requires_manual_review)

    @property
    def needs_review(self) -> bool:
        return bool(self.manual_review_conflicts or self.unresolved_fields or self.review_flags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type.value,
            "tenant_id": self.tenant_id,
            "fields": {k: _plain(v) for k, v in self.fields.items()},
            "source_record_ids": list(self.source_record_ids),
            "conflicts": [c.to_dict() for c in self.conflicts],
            "quality_score": self.quality_score,
            "merged_at": self.merged_at.isoformat() if self.merged_at else None,
            "superseded_by": self.superseded_by,
            "version": self.version,
            "previous_version_ids": list(self.previous_version_ids),
            "unresolved_fields": list(self.unresolved_fields),
            "review_flags": list(self.review_flags)
        }
