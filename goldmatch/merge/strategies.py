"""
Per-field merge strategies.

Every resolver sees the usable candidate values of one field across a
cluster and picks the surviving value. Ties are always broken the same
way: higher source quality, then later observation, then earlier input
position.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..exceptions import ConfigurationError
from ..model import FieldValue, value_kind


class MergeStrategyType(str, Enum):
    MOST_RECENT = "most_recent"
    HIGHEST_QUALITY_SOURCE = "highest_quality_source"
    LONGEST_VALUE = "longest_value"
    MOST_FREQUENT_VALUE = "most_frequent_value"
    SOURCE_PRIORITY_LIST = "source_priority_list"
    MANUAL_REVIEW = "manual_review"
    CONCATENATE_UNIQUE = "concatenate_unique"
    MIN_VALUE = "min_value"
    MAX_VALUE = "max_value"


def _names(value) -> Tuple[str, ...]:
    # a single YAML scalar names one source
    if isinstance(value, str):
        return (value,)
    return tuple(value or ())


@dataclass(frozen=True)
class MergeStrategy:
    """Merge rule for one field."""
    field_name: str
    strategy: MergeStrategyType = MergeStrategyType.HIGHEST_QUALITY_SOURCE
    source_priority: Sequence[str] = ()
    separator: str = "; "

    def __post_init__(self):
        if not self.field_name:
            raise ConfigurationError("Merge strategy needs a field name")
        try:
            object.__setattr__(self, "strategy", MergeStrategyType(self.strategy))
        except ValueError:
            raise ConfigurationError(
                f"Unknown merge strategy '{self.strategy}' for field {self.field_name}",
                details={"known": [s.value for s in MergeStrategyType]}
            )
        object.__setattr__(self, "source_priority", _names(self.source_priority))
        if self.strategy == MergeStrategyType.SOURCE_PRIORITY_LIST and not self.source_priority:
            raise ConfigurationError(
                f"Field {self.field_name} uses source_priority_list without a priority list"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MergeStrategy":
        return cls(
            field_name=data.get("field_name", data.get("field")),
            strategy=data.get("strategy", MergeStrategyType.HIGHEST_QUALITY_SOURCE.value),
            source_priority=data.get("source_priority", data.get("source_priority_list", ())),
            separator=data.get("separator", "; ")
        )


@dataclass(frozen=True)
class Candidate:
    """A value offered by one cluster member."""
    value: FieldValue
    record_id: str
    source_system: str
    quality: float
    observed_at: Optional[datetime]
    position: int


@dataclass(frozen=True)
class Resolution:
    value: FieldValue
    requires_manual_review: bool = False


def rank_key(candidate: Candidate) -> Tuple[float, float, int]:
    """Sort key; the maximum is the preferred candidate."""
    observed = candidate.observed_at.timestamp() if candidate.observed_at else float("-inf")
    return (candidate.quality, observed, -candidate.position)


def best(candidates: Sequence[Candidate]) -> Candidate:
    return max(candidates, key=rank_key)


class FieldResolver(ABC):
    """Abstract base class for value resolvers."""

    def __init__(self, rule: MergeStrategy):
        self.rule = rule

    @abstractmethod
    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        """Pick the surviving value from non-empty candidates."""
        pass


class MostRecentResolver(FieldResolver):
    """Value from the latest observation; undated values only if nothing is dated."""

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        dated = [c for c in candidates if c.observed_at is not None]
        if not dated:
            return Resolution(best(candidates).value)
        winner = max(dated, key=lambda c: (c.observed_at, c.quality, -c.position))
        return Resolution(winner.value)


class HighestQualityResolver(FieldResolver):
    """Value from the member with the best quality score."""

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        return Resolution(best(candidates).value)


class LongestValueResolver(FieldResolver):
    """Longest string value."""

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        strings = [c for c in candidates if isinstance(c.value, str)] or list(candidates)
        winner = max(strings, key=lambda c: (len(str(c.value)),) + rank_key(c))
        return Resolution(winner.value)


class MostFrequentResolver(FieldResolver):
    """Modal value; equally frequent values are decided by their best candidate."""

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        groups: "OrderedDict[Any, List[Candidate]]" = OrderedDict()
        for c in candidates:
            groups.setdefault(_group_key(c.value), []).append(c)
        winner = max(groups.values(), key=lambda g: (len(g),) + rank_key(best(g)))
        return Resolution(best(winner).value)


class SourcePriorityResolver(FieldResolver):
    """Value from the highest ranked source system; unlisted sources rank last."""

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        priority = {name: i for i, name in enumerate(self.rule.source_priority)}
        unlisted = len(priority)
        top = min(priority.get(c.source_system, unlisted) for c in candidates)
        ranked = [c for c in candidates if priority.get(c.source_system, unlisted) == top]
        return Resolution(best(ranked).value)


class ManualReviewResolver(FieldResolver):
    """Never resolves automatically."""

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        return Resolution(None, requires_manual_review=True)


class ConcatenateUniqueResolver(FieldResolver):
    """Distinct values joined by the separator, best candidate first."""

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        seen = []
        for c in sorted(candidates, key=rank_key, reverse=True):
            text = str(c.value).strip()
            if text not in seen:
                seen.append(text)
        return Resolution(self.rule.separator.join(seen))


class ExtremeValueResolver(FieldResolver):
    """Smallest or largest value; mixed kinds fall back to the best candidate."""

    def __init__(self, rule: MergeStrategy, largest: bool):
        super().__init__(rule)
        self.largest = largest

    def resolve(self, candidates: Sequence[Candidate]) -> Resolution:
        kinds = {value_kind(c.value) for c in candidates}
        values = [c.value for c in candidates]
        if len(kinds) != 1 or not _comparable(values):
            return Resolution(best(candidates).value)
        ordered = sorted(candidates, key=lambda c: _sortable(c.value))
        extreme = _sortable(ordered[-1 if self.largest else 0].value)
        tied = [c for c in candidates if _sortable(c.value) == extreme]
        return Resolution(best(tied).value)


def _group_key(value: FieldValue) -> Any:
    if isinstance(value, str):
        return ("s", value.strip())
    return (type(value).__name__, value)


def _sortable(value: FieldValue) -> Any:
    # datetimes and dates do not compare with each other
    if isinstance(value, datetime):
        return (value.date(), value.time())
    if isinstance(value, date):
        return (value, datetime.min.time())
    return value


def _comparable(values: List[FieldValue]) -> bool:
    return all(isinstance(v, (int, float)) for v in values) or \
        all(isinstance(v, (date, datetime)) for v in values) or \
        all(isinstance(v, str) for v in values)


class ResolverFactory:
    """Factory for creating the resolver of a merge strategy."""

    @staticmethod
    def create_resolver(rule: MergeStrategy) -> FieldResolver:
        strategy = rule.strategy
        if strategy == MergeStrategyType.MOST_RECENT:
            return MostRecentResolver(rule)
        if strategy == MergeStrategyType.HIGHEST_QUALITY_SOURCE:
            return HighestQualityResolver(rule)
        if strategy == MergeStrategyType.LONGEST_VALUE:
            return LongestValueResolver(rule)
        if strategy == MergeStrategyType.MOST_FREQUENT_VALUE:
            return MostFrequentResolver(rule)
        if strategy == MergeStrategyType.SOURCE_PRIORITY_LIST:
            return SourcePriorityResolver(rule)
        if strategy == MergeStrategyType.MANUAL_REVIEW:
            return ManualReviewResolver(rule)
        if strategy == MergeStrategyType.CONCATENATE_UNIQUE:
            return ConcatenateUniqueResolver(rule)
        if strategy == MergeStrategyType.MIN_VALUE:
            return ExtremeValueResolver(rule, largest=False)
        if strategy == MergeStrategyType.MAX_VALUE:
            return ExtremeValueResolver(rule, largest=True)
        raise ConfigurationError(f"Unsupported merge strategy: {strategy}")


@dataclass(frozen=True)
class MergeConfig:
    """Merge strategies per field plus the fallback for unlisted fields."""
    strategies: Sequence[MergeStrategy] = ()
    default_strategy: MergeStrategyType = MergeStrategyType.HIGHEST_QUALITY_SOURCE
    default_source_priority: Sequence[str] = ()
    required_fields: Sequence[str] = ()

    def __post_init__(self):
        object.__setattr__(self, "strategies", tuple(self.strategies))
        object.__setattr__(self, "required_fields", _names(self.required_fields))
        object.__setattr__(self, "default_source_priority", _names(self.default_source_priority))
        names = [s.field_name for s in self.strategies]
        if len(names) != len(set(names)):
            raise ConfigurationError("Each field may have only one merge strategy")
        try:
            object.__setattr__(self, "default_strategy", MergeStrategyType(self.default_strategy))
        except ValueError:
            raise ConfigurationError(f"Unknown default merge strategy: {self.default_strategy}")
        if (self.default_strategy == MergeStrategyType.SOURCE_PRIORITY_LIST
                and not self.default_source_priority):
            raise ConfigurationError("Default source_priority_list strategy needs a priority list")

    def rule_for(self, field_name: str) -> MergeStrategy:
        for rule in self.strategies:
            if rule.field_name == field_name:
                return rule
        return MergeStrategy(
            field_name=field_name,
            strategy=self.default_strategy,
            source_priority=self.default_source_priority
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MergeConfig":
        data = data or {}
        return cls(
            strategies=[MergeStrategy.from_dict(s) for s in data.get("strategies", [])],
            default_strategy=data.get(
                "default_strategy", MergeStrategyType.HIGHEST_QUALITY_SOURCE.value
            ),
            default_source_priority=data.get("default_source_priority", ()),
            required_fields=data.get("required_fields", ())
        )
