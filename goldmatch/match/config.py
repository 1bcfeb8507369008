from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
from enum import Enum

import phonenumbers

from ..exceptions import ConfigurationError


class MatchAlgorithm(str, Enum):
    EXACT = "exact"
    LEVENSHTEIN = "levenshtein"
    DAMERAU_LEVENSHTEIN = "damerau-levenshtein"
    JARO = "jaro"
    JARO_WINKLER = "jaro-winkler"
    TOKEN_JARO_WINKLER = "token-jaro-winkler"
    PHONETIC = "phonetic"
    TOKEN_PHONETIC = "token-phonetic"
    RATIO = "ratio"
    NUMERIC = "numeric"
    DATE = "date"

    @classmethod
    def parse(cls, value: Union[str, "MatchAlgorithm"]) -> "MatchAlgorithm":
        """Parse an algorithm name; underscores and hyphens are interchangeable.

        Raises:
            ConfigurationError: If the name is not a known algorithm
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().replace("_", "-")
        aliases = {"damerau": "damerau-levenshtein", "token-jaro": "token-jaro-winkler"}
        name = aliases.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ConfigurationError(
                f"Unknown match algorithm: {value}",
                details={"algorithm": value, "known": [a.value for a in cls]}
            )


# Algorithms that only make sense on text
STRING_ALGORITHMS = frozenset({
    MatchAlgorithm.LEVENSHTEIN,
    MatchAlgorithm.DAMERAU_LEVENSHTEIN,
    MatchAlgorithm.JARO,
    MatchAlgorithm.JARO_WINKLER,
    MatchAlgorithm.TOKEN_JARO_WINKLER,
    MatchAlgorithm.PHONETIC,
    MatchAlgorithm.TOKEN_PHONETIC,
    MatchAlgorithm.RATIO,
})


class PhoneticAlgorithm(str, Enum):
    SOUNDEX = "soundex"
    COLOGNE = "cologne"
    METAPHONE = "metaphone"


@dataclass(frozen=True)
class EditCosts:
    """Operation costs for the edit distance family."""
    insert: float = 1.0
    delete: float = 1.0
    substitute: float = 1.0
    transpose: float = 1.0

    def validate(self) -> None:
        for name in ("insert", "delete", "substitute", "transpose"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"Edit cost '{name}' must be positive")


@dataclass(frozen=True)
class MatchOptions:
    """Per-field tuning of a similarity algorithm."""
    normalize: bool = True
    case_sensitive: bool = False
    phonetic_algorithm: PhoneticAlgorithm = PhoneticAlgorithm.SOUNDEX
    phonetic_partial_credit: bool = False
    prefix_scale: float = 0.1
    max_prefix_length: int = 4
    costs: EditCosts = field(default_factory=EditCosts)
    numeric_tolerance: float = 0.0
    # phone numbers are compared in E.164 form when set
    phone_region: Optional[str] = None

    def validate(self) -> None:
        """Validate option ranges.

        Raises:
            ConfigurationError: If an option is out of range
        """
        if not (0.0 <= self.prefix_scale <= 0.25):
            raise ConfigurationError(
                f"Prefix scale must be between 0 and 0.25 (got {self.prefix_scale})"
            )
        if self.max_prefix_length < 0:
            raise ConfigurationError("Maximum prefix length must not be negative")
        if self.prefix_scale * self.max_prefix_length > 1.0:
            raise ConfigurationError(
                "Prefix scale times maximum prefix length must not exceed 1.0"
            )
        if self.numeric_tolerance < 0:
            raise ConfigurationError("Numeric tolerance must not be negative")
        if self.phone_region is not None and self.phone_region not in phonenumbers.SUPPORTED_REGIONS:
            raise ConfigurationError(f"Unknown phone region: {self.phone_region}")
        self.costs.validate()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MatchOptions":
        data = dict(data or {})
        if "phonetic_algorithm" in data:
            try:
                data["phonetic_algorithm"] = PhoneticAlgorithm(str(data["phonetic_algorithm"]).lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unknown phonetic algorithm: {data['phonetic_algorithm']}"
                )
        if data.get("phone_region"):
            data["phone_region"] = str(data["phone_region"]).upper()
        if "costs" in data and isinstance(data["costs"], dict):
            data["costs"] = EditCosts(**data["costs"])
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid match options: {e}")


@dataclass(frozen=True)
class FieldMatchConfig:
    """Configuration for how one field contributes to a pair score."""
    field_name: str
    algorithm: MatchAlgorithm
    weight: float = 1.0
    threshold: float = 0.8
    required: bool = False
    options: MatchOptions = field(default_factory=MatchOptions)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.field_name:
            raise ConfigurationError("Field match configuration needs a field name")
        object.__setattr__(self, "algorithm", MatchAlgorithm.parse(self.algorithm))
        if self.weight is None or self.weight <= 0:
            raise ConfigurationError(
                f"Field weight must be positive (got {self.weight} for {self.field_name})"
            )
        if self.threshold is None or not (0.0 <= self.threshold <= 1.0):
            raise ConfigurationError(
                f"Field threshold must be between 0 and 1 (got {self.threshold} for {self.field_name})"
            )
        self.options.validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldMatchConfig":
        name = data.get("field_name", data.get("field", data.get("name")))
        if "algorithm" not in data:
            raise ConfigurationError(f"Field '{name}' has no algorithm")
        return cls(
            field_name=name,
            algorithm=data["algorithm"],
            weight=float(data.get("weight", 1.0)),
            threshold=float(data.get("threshold", 0.8)),
            required=bool(data.get("required", False)),
            options=MatchOptions.from_dict(data.get("options"))
        )


@dataclass(frozen=True)
class DecisionThresholds:
    """Aggregate score cut-offs for classifying a pair."""
    match: float = 0.90
    possible_match: float = 0.60

    def __post_init__(self):
        if not (0.0 <= self.possible_match <= self.match <= 1.0):
            raise ConfigurationError(
                "Thresholds must satisfy 0 <= possible_match <= match <= 1 "
                f"(got possible_match={self.possible_match}, match={self.match})"
            )


@dataclass(frozen=True)
class MatchRuleConfig:
    """Field comparisons and decision thresholds used by the composite scorer."""
    fields: Sequence[FieldMatchConfig]
    thresholds: DecisionThresholds = field(default_factory=DecisionThresholds)
    explain_top_n: int = 3

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.fields:
            raise ConfigurationError("At least one field must be defined")
        object.__setattr__(self, "fields", tuple(self.fields))

        # Same field may be compared by several algorithms, but only once each
        keys = [(f.field_name, f.algorithm) for f in self.fields]
        if len(keys) != len(set(keys)):
            raise ConfigurationError("Field/algorithm combinations must be unique")

        if self.explain_top_n < 1:
            raise ConfigurationError("explain_top_n must be at least 1")

    @property
    def field_names(self) -> List[str]:
        seen = []
        for f in self.fields:
            if f.field_name not in seen:
                seen.append(f.field_name)
        return seen

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchRuleConfig":
        thresholds = data.get("thresholds") or {}
        return cls(
            fields=[FieldMatchConfig.from_dict(f) for f in data.get("fields", [])],
            thresholds=DecisionThresholds(
                match=float(thresholds.get("match", 0.90)),
                possible_match=float(thresholds.get("possible_match", 0.60))
            ),
            explain_top_n=int(data.get("explain_top_n", 3))
        )
