from typing import Any, Dict, List, Optional, Tuple
import logging

from ..model import (
    ComparisonAnomaly,
    EntityRecord,
    ExplainEntry,
    ExplainKind,
    FieldScore,
    MatchDecision,
    MatchResult,
    ValueKind,
    is_missing,
    value_kind,
)
from .config import STRING_ALGORITHMS, FieldMatchConfig, MatchAlgorithm, MatchRuleConfig
from .similarity import prepare_text, similarity, similarity_upper_bound, to_date, to_number


class FieldMatcher:
    """Base class for field matching implementations."""

    def incompatibility(self, value1: Any, value2: Any) -> Optional[str]:
        """Reason the two values cannot be compared, None if they can."""
        return None

    def compute_similarity(self, value1: Any, value2: Any, field: FieldMatchConfig) -> float:
        """Compute similarity between two present field values."""
        return similarity(value1, value2, field.algorithm, field.options)


class ExactMatcher(FieldMatcher):
    """Matcher for exact comparisons; strings are normalized first."""

    def incompatibility(self, value1: Any, value2: Any) -> Optional[str]:
        kind1, kind2 = value_kind(value1), value_kind(value2)
        if kind1 != kind2:
            return f"cannot compare {kind1.value} with {kind2.value} exactly"
        return None


class TextMatcher(FieldMatcher):
    """Matcher for the string similarity algorithms."""

    def incompatibility(self, value1: Any, value2: Any) -> Optional[str]:
        for value in (value1, value2):
            kind = value_kind(value)
            if kind != ValueKind.STRING:
                return f"string algorithm applied to a {kind.value} value"
        return None


class NumericMatcher(FieldMatcher):
    """Matcher for relative numeric closeness.

    Two values that are both non-numeric fall back to a text comparison
    inside the primitive; only a number against a non-number is reported.
    """

    def incompatibility(self, value1: Any, value2: Any) -> Optional[str]:
        parsed = [to_number(value) is not None for value in (value1, value2)]
        if parsed[0] != parsed[1]:
            value = value2 if parsed[0] else value1
            return f"value {value!r} is not numeric"
        return None


class DateMatcher(FieldMatcher):
    """Matcher for calendar date proximity."""

    def incompatibility(self, value1: Any, value2: Any) -> Optional[str]:
        parsed = [to_date(value) is not None for value in (value1, value2)]
        if parsed[0] != parsed[1]:
            value = value2 if parsed[0] else value1
            return f"value {value!r} is not a date"
        return None


class MatcherFactory:
    """Factory for creating the matcher that fits an algorithm."""

    @staticmethod
    def create_matcher(algorithm: MatchAlgorithm) -> FieldMatcher:
        algorithm = MatchAlgorithm.parse(algorithm)
        if algorithm in STRING_ALGORITHMS:
            return TextMatcher()
        if algorithm == MatchAlgorithm.NUMERIC:
            return NumericMatcher()
        if algorithm == MatchAlgorithm.DATE:
            return DateMatcher()
        return ExactMatcher()


class CompositeScorer:
    """Weighted multi-field comparison of two records.

    Each configured field is scored with its algorithm. Missing values
    score 0 on required fields and are left out of the aggregate
    otherwise. A required field below its own threshold vetoes the pair.
    The scorer holds no mutable state and is safe to share across threads.
    """

    def __init__(self, config: MatchRuleConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.matchers = {
            (f.field_name, f.algorithm): MatcherFactory.create_matcher(f.algorithm)
            for f in config.fields
        }

    def classify(self, aggregate: float) -> MatchDecision:
        """Map an aggregate score to a decision."""
        thresholds = self.config.thresholds
        if aggregate >= thresholds.match:
            return MatchDecision.MATCH
        if aggregate >= thresholds.possible_match:
            return MatchDecision.POSSIBLE_MATCH
        return MatchDecision.NO_MATCH

    def score(self, record_a: EntityRecord, record_b: EntityRecord) -> MatchResult:
        """Compare two records and classify the pair.

        The returned result always lists the lower record id first, so
        ``score(a, b)`` and ``score(b, a)`` are equal.
        """
        if record_b.id < record_a.id:
            record_a, record_b = record_b, record_a

        field_scores: List[FieldScore] = []
        anomalies: List[ComparisonAnomaly] = []
        notes: List[ExplainEntry] = []
        vetoes: List[str] = []

        for field in self.config.fields:
            value_a = record_a.get(field.field_name)
            value_b = record_b.get(field.field_name)
            algorithm = field.algorithm.value

            if is_missing(value_a) or is_missing(value_b):
                if field.required:
                    field_scores.append(FieldScore(field.field_name, algorithm, 0.0, field.weight))
                    if field.threshold > 0.0:
                        vetoes.append(field.field_name)
                        notes.append(ExplainEntry(
                            field.field_name, ExplainKind.VETO, note="required value missing"
                        ))
                else:
                    field_scores.append(FieldScore(
                        field.field_name, algorithm, 0.0, field.weight, included=False
                    ))
                    notes.append(ExplainEntry(
                        field.field_name, ExplainKind.EXCLUDED, note="value missing"
                    ))
                continue

            matcher = self.matchers[(field.field_name, field.algorithm)]
            reason = matcher.incompatibility(value_a, value_b)
            if reason is not None:
                anomaly = ComparisonAnomaly(
                    record_a.id, record_b.id, field.field_name, algorithm, reason
                )
                anomalies.append(anomaly)
                notes.append(ExplainEntry(field.field_name, ExplainKind.ANOMALY, note=reason))
                self.logger.debug(
                    f"Comparison anomaly on {field.field_name} for "
                    f"{record_a.id}/{record_b.id}: {reason}"
                )
                field_score = 0.0
            else:
                field_score = matcher.compute_similarity(value_a, value_b, field)

            field_scores.append(FieldScore(field.field_name, algorithm, field_score, field.weight))
            if field.required and field_score < field.threshold:
                vetoes.append(field.field_name)
                notes.append(ExplainEntry(
                    field.field_name,
                    ExplainKind.VETO,
                    note=f"{field_score:.3f} below required threshold {field.threshold:.3f}"
                ))

        total_weight = sum(s.weight for s in field_scores if s.included)
        if total_weight > 0:
            aggregate = sum(s.score * s.weight for s in field_scores if s.included) / total_weight
        else:
            aggregate = 0.0
        aggregate = max(0.0, min(1.0, aggregate))

        decision = MatchDecision.NO_MATCH if vetoes else self.classify(aggregate)
        explain = self._explain(field_scores, total_weight) + tuple(notes)

        return MatchResult(
            record_id_a=record_a.id,
            record_id_b=record_b.id,
            field_scores=tuple(field_scores),
            aggregate_score=aggregate,
            decision=decision,
            explain=explain,
            anomalies=tuple(anomalies)
        )

    def _explain(self, field_scores: List[FieldScore], total_weight: float) -> Tuple[ExplainEntry, ...]:
        if total_weight <= 0:
            return ()
        thresholds = {(f.field_name, f.algorithm.value): f.threshold for f in self.config.fields}
        contributing = []
        penalizing = []
        for s in field_scores:
            if not s.included:
                continue
            if s.score >= thresholds[(s.field_name, s.algorithm)]:
                contributing.append((s.score * s.weight / total_weight, s))
            else:
                penalizing.append(((1.0 - s.score) * s.weight / total_weight, s))

        top_n = self.config.explain_top_n
        entries = []
        for contribution, s in sorted(contributing, key=lambda x: -x[0])[:top_n]:
            entries.append(ExplainEntry(
                s.field_name, ExplainKind.CONTRIBUTING, contribution,
                f"{s.algorithm} scored {s.score:.3f}"
            ))
        for loss, s in sorted(penalizing, key=lambda x: -x[0])[:top_n]:
            entries.append(ExplainEntry(
                s.field_name, ExplainKind.PENALIZING, loss,
                f"{s.algorithm} scored {s.score:.3f}"
            ))
        return tuple(entries)

    # ------------------------------------------------------------------
    # Pre-filter support
    # ------------------------------------------------------------------

    def length_profile(self, record: EntityRecord) -> Dict[Tuple[str, MatchAlgorithm], Any]:
        """Prepared lengths of a record's configured values.

        Missing values map to None. Non-string values map to -1, which
        gives them no length bound.
        """
        profile = {}
        for field in self.config.fields:
            value = record.get(field.field_name)
            if is_missing(value):
                profile[(field.field_name, field.algorithm)] = None
            elif isinstance(value, str) and field.algorithm in STRING_ALGORITHMS:
                profile[(field.field_name, field.algorithm)] = len(prepare_text(value, field.options))
            else:
                profile[(field.field_name, field.algorithm)] = -1
        return profile

    def upper_bound(self, profile_a: Dict, profile_b: Dict) -> Tuple[float, bool]:
        """Highest aggregate the pair could reach, and whether it is surely vetoed."""
        total_score = 0.0
        total_weight = 0.0
        vetoed = False
        for field in self.config.fields:
            key = (field.field_name, field.algorithm)
            length_a, length_b = profile_a.get(key), profile_b.get(key)
            if length_a is None or length_b is None:
                if field.required:
                    total_weight += field.weight
                    vetoed = vetoed or field.threshold > 0.0
                continue
            if length_a < 0 or length_b < 0:
                bound = 1.0
            else:
                bound = similarity_upper_bound(length_a, length_b, field.algorithm, field.options)
            if field.required and bound < field.threshold:
                vetoed = True
            total_score += bound * field.weight
            total_weight += field.weight
        aggregate = total_score / total_weight if total_weight > 0 else 0.0
        return aggregate, vetoed

    def could_be_candidate(self, profile_a: Dict, profile_b: Dict) -> bool:
        """False only when the pair cannot reach possible_match."""
        aggregate, vetoed = self.upper_bound(profile_a, profile_b)
        return not vetoed and aggregate >= self.config.thresholds.possible_match
