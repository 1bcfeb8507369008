from typing import List, Optional, Tuple
from datetime import datetime, timezone
import logging

from ..match.similarity import to_date
from ..model import EntityRecord, QualityScore, is_missing
from ..utils.validation import check_format
from .config import (
    ConsistencyRule,
    ConsistencyRuleType,
    FieldType,
    QualityConfig,
    QualityDimension
)


class QualityScorer:
    """Scores a single record's quality independent of any other record.

    The score depends only on the record, the configuration and the
    reference time fixed at construction, so a scorer can be shared
    across threads and gives the same answer on every call.
    """

    def __init__(
        self,
        config: Optional[QualityConfig] = None,
        reference_time: Optional[datetime] = None,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize quality scoring.

        Args:
            config: Quality configuration
            reference_time: "Now" for freshness; defaults to the current UTC time
            logger: Optional logger
        """
        self.config = config or QualityConfig()
        self.reference_time = reference_time or datetime.now(timezone.utc)
        if self.reference_time.tzinfo is None:
            self.reference_time = self.reference_time.replace(tzinfo=timezone.utc)
        self.logger = logger or logging.getLogger(__name__)

    def score(self, record: EntityRecord) -> QualityScore:
        """Calculate the quality score of a record."""
        issues: List[str] = []

        completeness = self._calculate_completeness(record, issues)
        validity = self._calculate_validity(record, issues)
        freshness = self._calculate_freshness(record, issues)
        consistency = self._calculate_consistency(record, issues)

        dimensions = {
            QualityDimension.COMPLETENESS: completeness,
            QualityDimension.VALIDITY: validity,
            QualityDimension.FRESHNESS: freshness,
            QualityDimension.CONSISTENCY: consistency,
        }
        weights = self.config.dimension_weights
        total_weight = sum(weights.get(d, 0.0) for d in dimensions)
        overall = sum(score * weights.get(d, 0.0) for d, score in dimensions.items()) / total_weight

        return QualityScore(
            overall=max(0.0, min(1.0, overall)),
            completeness=completeness,
            validity=validity,
            freshness=freshness,
            consistency=consistency,
            issues=tuple(issues)
        )

    def _calculate_completeness(self, record: EntityRecord, issues: List[str]) -> float:
        required = self.config.required_fields
        if not required:
            return 1.0
        missing = [name for name in required if not record.has_value(name)]
        for name in missing:
            issues.append(f"{name}: required value missing")
        return (len(required) - len(missing)) / len(required)

    def _calculate_validity(self, record: EntityRecord, issues: List[str]) -> float:
        checked = 0
        valid = 0
        for name, field_type in self.config.field_types.items():
            if field_type == FieldType.STRING or not record.has_value(name):
                continue
            checked += 1
            problem = check_format(field_type.value, record.get(name), self.config.phone_region)
            if problem is None:
                valid += 1
            else:
                issues.append(f"{name}: {problem}")
        if checked == 0:
            return 1.0
        return valid / checked

    def _calculate_freshness(self, record: EntityRecord, issues: List[str]) -> float:
        if record.observed_at is None:
            issues.append("observation time unknown")
            return 0.0
        age_days = (self.reference_time - record.observed_at).total_seconds() / 86400.0
        if age_days <= 0:
            return 1.0
        return 0.5 ** (age_days / self.config.freshness_half_life_days)

    def _calculate_consistency(self, record: EntityRecord, issues: List[str]) -> float:
        applicable = 0
        violated = 0
        for rule in self.config.consistency_rules:
            checked, broken = self._check_rule(record, rule)
            if not checked:
                continue
            applicable += 1
            if broken:
                violated += 1
                issues.append(rule.description or f"{rule.rule_type.value} violated: {rule.field_a}/{rule.field_b}")
        if applicable == 0:
            return 1.0
        return 1.0 - violated / applicable

    @staticmethod
    def _check_rule(record: EntityRecord, rule: ConsistencyRule) -> Tuple[bool, bool]:
        """Return (rule applies, rule is violated)."""
        has_a, has_b = record.has_value(rule.field_a), record.has_value(rule.field_b)

        if rule.rule_type == ConsistencyRuleType.DATE_ORDER:
            if not (has_a and has_b):
                return False, False
            first, second = to_date(record.get(rule.field_a)), to_date(record.get(rule.field_b))
            if first is None or second is None:
                return False, False
            return True, first > second

        if rule.rule_type == ConsistencyRuleType.DEPENDENCY:
            if not has_a:
                return False, False
            return True, not has_b

        if rule.rule_type == ConsistencyRuleType.MUTUAL_EXCLUSION:
            if not (has_a or has_b):
                return False, False
            return True, has_a and has_b

        return False, False
