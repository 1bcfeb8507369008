"""
Configuration bundle of a resolution run.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence
import logging

from .exceptions import ConfigurationError
from .match.blocking import BlockingConfig
from .match.config import MatchRuleConfig
from .merge.strategies import MergeConfig
from .model import EntityType
from .trust.config import QualityConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionConfig:
    """Everything a resolution run needs, validated before any record is read.

    Attributes:
        entity_type: Entity type the run resolves
        match: Field comparisons and decision thresholds
        blocking: Blocking passes and bucket limits
        merge: Merge strategies per field
        quality: Record quality scoring
        tenant_id: Tenant of the run; taken from the first record when empty
        fields: Declared field schema; derived from the other sections when empty
        verify_cluster_closure: Score unscored pairs inside clusters before splitting
        max_workers: Worker threads for bucket scoring
    """
    entity_type: EntityType
    match: MatchRuleConfig
    blocking: BlockingConfig
    merge: MergeConfig = field(default_factory=MergeConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    tenant_id: str = ""
    fields: Sequence[str] = ()
    verify_cluster_closure: bool = True
    max_workers: Optional[int] = None

    def __post_init__(self):
        try:
            object.__setattr__(self, "entity_type", EntityType(self.entity_type))
        except ValueError:
            raise ConfigurationError(f"Unknown entity type: {self.entity_type}")
        object.__setattr__(self, "fields", tuple(self.fields))
        if not self.merge.required_fields and self.quality.required_fields:
            object.__setattr__(
                self, "merge", replace(self.merge, required_fields=self.quality.required_fields)
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        self.validate()

    @property
    def known_fields(self) -> List[str]:
        """Declared schema, or every field some section refers to."""
        if self.fields:
            return list(self.fields)
        names: List[str] = []
        for name in (
            self.match.field_names
            + self.blocking.field_names
            + self.quality.field_names
            + list(self.merge.required_fields)
        ):
            if name not in names:
                names.append(name)
        return names

    def validate(self) -> None:
        """Cross-section checks.

        Raises:
            ConfigurationError: If a section refers to an undeclared field
        """
        known = set(self.known_fields)
        unknown = [s.field_name for s in self.merge.strategies if s.field_name not in known]
        if unknown:
            raise ConfigurationError(
                f"Merge strategies reference unknown fields: {', '.join(unknown)}",
                details={"fields": unknown}
            )
        if self.fields:
            undeclared = [n for n in self.match.field_names if n not in known]
            if undeclared:
                raise ConfigurationError(
                    f"Match rules reference unknown fields: {', '.join(undeclared)}",
                    details={"fields": undeclared}
                )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolutionConfig":
        """Create a configuration from its dictionary (YAML) form.

        Raises:
            ConfigurationError: If any section is invalid
        """
        try:
            if "entity_type" not in data:
                raise ConfigurationError("Configuration needs an entity_type")
            if "match" not in data or "blocking" not in data:
                raise ConfigurationError("Configuration needs match and blocking sections")
            workers = data.get("max_workers")
            return cls(
                entity_type=data["entity_type"],
                match=MatchRuleConfig.from_dict(data["match"]),
                blocking=BlockingConfig.from_dict(data["blocking"]),
                merge=MergeConfig.from_dict(data.get("merge")),
                quality=QualityConfig.from_dict(data.get("quality")),
                tenant_id=str(data.get("tenant_id") or ""),
                fields=data.get("fields") or (),
                verify_cluster_closure=bool(data.get("verify_cluster_closure", True)),
                max_workers=int(workers) if workers is not None else None
            )
        except ConfigurationError as e:
            logger.error(f"Invalid resolution configuration: {e.message}")
            raise
        except (TypeError, ValueError, AttributeError) as e:
            logger.error(f"Invalid resolution configuration: {e}")
            raise ConfigurationError(f"Invalid resolution configuration: {e}")
