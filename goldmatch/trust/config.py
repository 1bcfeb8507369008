"""
Configuration classes for record quality scoring.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from enum import Enum

from ..exceptions import ConfigurationError


class QualityDimension(str, Enum):
    COMPLETENESS = "completeness"
    VALIDITY = "validity"
    FRESHNESS = "freshness"
    CONSISTENCY = "consistency"


class FieldType(str, Enum):
    """Format a field's values are checked against for validity."""
    STRING = "string"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    NUMBER = "number"
    URL = "url"
    POSTAL_CODE = "postal_code"
    VAT_ID = "vat_id"
    EAN = "ean"


class ConsistencyRuleType(str, Enum):
    DATE_ORDER = "date_order"
    DEPENDENCY = "dependency"
    MUTUAL_EXCLUSION = "mutual_exclusion"


DEFAULT_DIMENSION_WEIGHTS = {
    QualityDimension.COMPLETENESS: 0.35,
    QualityDimension.VALIDITY: 0.30,
    QualityDimension.FRESHNESS: 0.20,
    QualityDimension.CONSISTENCY: 0.15,
}


@dataclass(frozen=True)
class ConsistencyRule:
    """Cross-field invariant of a record.

    ``date_order``: field_a must not be later than field_b.
    ``dependency``: if field_a has a value, field_b must have one too.
    ``mutual_exclusion``: field_a and field_b must not both have values.
    """
    rule_type: ConsistencyRuleType
    field_a: str
    field_b: str
    description: str = ""

    def __post_init__(self):
        try:
            object.__setattr__(self, "rule_type", ConsistencyRuleType(self.rule_type))
        except ValueError:
            raise ConfigurationError(f"Unknown consistency rule type: {self.rule_type}")
        if not self.field_a or not self.field_b:
            raise ConfigurationError("Consistency rules need two field names")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsistencyRule":
        return cls(
            rule_type=data.get("rule_type", data.get("type")),
            field_a=data.get("field_a"),
            field_b=data.get("field_b"),
            description=data.get("description", "")
        )


@dataclass(frozen=True)
class QualityConfig:
    """Configuration for record quality scoring."""
    required_fields: Sequence[str] = ()
    field_types: Dict[str, FieldType] = field(default_factory=dict)
    consistency_rules: Sequence[ConsistencyRule] = ()
    dimension_weights: Dict[QualityDimension, float] = field(
        default_factory=lambda: dict(DEFAULT_DIMENSION_WEIGHTS)
    )
    freshness_half_life_days: float = 180.0
    phone_region: str = "DE"

    def __post_init__(self):
        object.__setattr__(self, "required_fields", tuple(self.required_fields))
        object.__setattr__(self, "consistency_rules", tuple(self.consistency_rules))
        try:
            object.__setattr__(self, "field_types", {
                name: FieldType(kind) for name, kind in self.field_types.items()
            })
            weights = {QualityDimension(k): float(v) for k, v in self.dimension_weights.items()}
        except ValueError as e:
            raise ConfigurationError(f"Invalid quality configuration: {e}")
        if any(w < 0 for w in weights.values()):
            raise ConfigurationError("Quality dimension weights must not be negative")
        if sum(weights.values()) <= 0:
            raise ConfigurationError("At least one quality dimension needs a positive weight")
        object.__setattr__(self, "dimension_weights", weights)
        if self.freshness_half_life_days <= 0:
            raise ConfigurationError("Freshness half-life must be positive")

    @property
    def field_names(self) -> List[str]:
        names = list(self.required_fields) + list(self.field_types)
        for rule in self.consistency_rules:
            names.extend([rule.field_a, rule.field_b])
        return names

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "QualityConfig":
        data = data or {}
        return cls(
            required_fields=data.get("required_fields", ()),
            field_types=data.get("field_types", {}),
            consistency_rules=[
                ConsistencyRule.from_dict(r) for r in data.get("consistency_rules", [])
            ],
            dimension_weights=data.get("dimension_weights") or dict(DEFAULT_DIMENSION_WEIGHTS),
            freshness_half_life_days=float(data.get("freshness_half_life_days", 180.0)),
            phone_region=data.get("phone_region", "DE")
        )
