"""
Entity records consumed by the resolution engine.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from ..exceptions import MalformedRecordError


FieldValue = Union[str, int, float, date, datetime, None]


class EntityType(str, Enum):
    """Kinds of business entities that can be resolved."""
    PERSON = "person"
    COMPANY = "company"
    ADDRESS = "address"
    PRODUCT = "product"
    CONTACT = "contact"


class ValueKind(str, Enum):
    """Tag of a field value; every FieldValue maps to exactly one kind."""
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    NULL = "null"


def value_kind(value: FieldValue) -> ValueKind:
    """Return the tag of a field value.

    Raises:
        TypeError: If the value is not one of the supported types
    """
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        raise TypeError("Boolean field values are not supported")
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, (date, datetime)):
        return ValueKind.DATE
    raise TypeError(f"Unsupported field value type: {type(value).__name__}")


def is_missing(value: FieldValue) -> bool:
    """True for null values and blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a timestamp into a timezone-aware datetime.

    Naive values are taken as UTC. Returns None when the value cannot be
    interpreted.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class EntityRecord:
    """One observation of a business entity from one source system.

    Records are immutable; ``fields`` is exposed as a read-only mapping
    that keeps the insertion order of the source.

    Attributes:
        id: Identifier of the record within the run
        entity_type: Kind of entity the record describes
        source_system: Name of the system the record came from
        fields: Ordered mapping of field name to typed value
        tenant_id: Owning tenant
        observed_at: When the source observed the values
    """
    id: str
    entity_type: EntityType
    source_system: str
    fields: Mapping[str, FieldValue] = field(default_factory=dict)
    tenant_id: str = ""
    observed_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.id:
            raise MalformedRecordError("Record is missing its id")
        if not self.entity_type:
            raise MalformedRecordError(
                "Record is missing its entity type",
                record_id=self.id
            )
        if not isinstance(self.entity_type, EntityType):
            try:
                object.__setattr__(self, "entity_type", EntityType(self.entity_type))
            except ValueError:
                raise MalformedRecordError(
                    f"Unknown entity type: {self.entity_type}",
                    record_id=self.id
                )
        for name, value in self.fields.items():
            try:
                value_kind(value)
            except TypeError as e:
                raise MalformedRecordError(
                    f"Field '{name}': {e}",
                    record_id=self.id,
                    details={"field": name}
                )
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        if self.observed_at is not None:
            object.__setattr__(self, "observed_at", parse_timestamp(self.observed_at))

    def get(self, field_name: str) -> FieldValue:
        """Value of a field, None when absent."""
        return self.fields.get(field_name)

    def has_value(self, field_name: str) -> bool:
        """True if the field is present and non-empty."""
        return not is_missing(self.fields.get(field_name))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityRecord":
        """Create a record from its dictionary form.

        Accepts both snake_case and camelCase envelope keys.

        Raises:
            MalformedRecordError: If id or entity type is missing or a
                field value has an unsupported type
        """
        record_id = data.get("id")
        entity_type = data.get("entity_type", data.get("entityType"))
        if record_id is None or str(record_id) == "":
            raise MalformedRecordError("Record is missing its id", details={"record": data})
        if not entity_type:
            raise MalformedRecordError(
                "Record is missing its entity type",
                record_id=str(record_id)
            )
        observed = data.get("observed_at", data.get("observedAt"))
        return cls(
            id=str(record_id),
            entity_type=entity_type,
            source_system=str(data.get("source_system", data.get("sourceSystem", "")) or ""),
            fields=data.get("fields") or {},
            tenant_id=str(data.get("tenant_id", data.get("tenantId", "")) or ""),
            observed_at=parse_timestamp(observed)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary form of the record."""
        return {
            "id": self.id,
            "entity_type": self.entity_type.value,
            "source_system": self.source_system,
            "fields": dict(self.fields),
            "tenant_id": self.tenant_id,
            "observed_at": self.observed_at.isoformat() if self.observed_at else None
        }
