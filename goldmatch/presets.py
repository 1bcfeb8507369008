"""
Standard configurations per entity type.

Field names follow snake_case; nested source paths such as an address's
postal code are expected to be flattened by ingestion.
"""

from typing import Any, Dict, List, Optional

from .config import ResolutionConfig
from .match.blocking import BlockingConfig, BlockingMethod, BlockingPass, KeyComponent
from .match.config import (
    FieldMatchConfig,
    MatchAlgorithm,
    MatchOptions,
    MatchRuleConfig,
    PhoneticAlgorithm,
)
from .merge.strategies import MergeConfig, MergeStrategy, MergeStrategyType
from .model import EntityType
from .trust.config import ConsistencyRule, ConsistencyRuleType, FieldType, QualityConfig


A = MatchAlgorithm
COLOGNE = MatchOptions(phonetic_algorithm=PhoneticAlgorithm.COLOGNE)
PHONE = MatchOptions(phone_region="DE")


STANDARD_MATCH_FIELDS: Dict[EntityType, List[FieldMatchConfig]] = {
    EntityType.PERSON: [
        FieldMatchConfig("first_name", A.JARO_WINKLER, weight=1.5),
        FieldMatchConfig("last_name", A.JARO_WINKLER, weight=2.0, required=True),
        FieldMatchConfig("last_name", A.PHONETIC, weight=1.0, options=COLOGNE),
        FieldMatchConfig("email", A.EXACT, weight=3.0),
        FieldMatchConfig("phone", A.EXACT, weight=2.0, options=PHONE),
        FieldMatchConfig("date_of_birth", A.DATE, weight=1.5),
        FieldMatchConfig("postal_code", A.EXACT, weight=1.0),
        FieldMatchConfig("city", A.PHONETIC, weight=0.5, options=COLOGNE),
    ],
    EntityType.COMPANY: [
        FieldMatchConfig("name", A.TOKEN_JARO_WINKLER, weight=3.0, required=True),
        FieldMatchConfig("name", A.TOKEN_PHONETIC, weight=1.0, options=COLOGNE),
        FieldMatchConfig("vat_id", A.EXACT, weight=4.0),
        FieldMatchConfig("registration_number", A.EXACT, weight=4.0),
        FieldMatchConfig("email", A.EXACT, weight=2.0),
        FieldMatchConfig("phone", A.EXACT, weight=1.5, options=PHONE),
        FieldMatchConfig("street", A.TOKEN_JARO_WINKLER, weight=1.0),
        FieldMatchConfig("postal_code", A.EXACT, weight=1.0),
        FieldMatchConfig("city", A.PHONETIC, weight=0.5, options=COLOGNE),
    ],
    EntityType.ADDRESS: [
        FieldMatchConfig("street", A.TOKEN_JARO_WINKLER, weight=2.0, required=True),
        FieldMatchConfig("house_number", A.EXACT, weight=1.5),
        FieldMatchConfig("postal_code", A.EXACT, weight=2.0, required=True, threshold=1.0),
        FieldMatchConfig("city", A.PHONETIC, weight=1.5, options=COLOGNE),
        FieldMatchConfig("country", A.EXACT, weight=0.5),
    ],
    EntityType.PRODUCT: [
        FieldMatchConfig("sku", A.EXACT, weight=5.0),
        FieldMatchConfig("ean", A.EXACT, weight=5.0),
        FieldMatchConfig("name", A.TOKEN_JARO_WINKLER, weight=2.0),
        FieldMatchConfig("manufacturer", A.JARO_WINKLER, weight=1.0),
        FieldMatchConfig("category", A.EXACT, weight=0.5),
    ],
    EntityType.CONTACT: [
        FieldMatchConfig("name", A.TOKEN_JARO_WINKLER, weight=2.0, required=True),
        FieldMatchConfig("email", A.EXACT, weight=3.0),
        FieldMatchConfig("phone", A.EXACT, weight=1.5, options=PHONE),
        FieldMatchConfig("company", A.TOKEN_JARO_WINKLER, weight=1.0),
    ],
}


def _pass(name: str, *components) -> BlockingPass:
    return BlockingPass(name, [KeyComponent(f, m, n) for f, m, n in components])


M = BlockingMethod

STANDARD_BLOCKING_PASSES: Dict[EntityType, List[BlockingPass]] = {
    EntityType.PERSON: [
        _pass("last_name_cologne", ("last_name", M.COLOGNE, 3)),
        _pass("last_name_prefix", ("last_name", M.PREFIX, 4)),
        _pass("name_soundex", ("first_name", M.SOUNDEX, 3), ("last_name", M.SOUNDEX, 3)),
        _pass("email_prefix", ("email", M.PREFIX, 5)),
    ],
    EntityType.COMPANY: [
        _pass("name_cologne", ("name", M.COLOGNE, 3)),
        _pass("name_prefix", ("name", M.PREFIX, 5)),
        _pass("vat_id", ("vat_id", M.NORMALIZED, 3)),
        _pass("registration_number", ("registration_number", M.NORMALIZED, 3)),
    ],
    EntityType.ADDRESS: [
        _pass("postal_code", ("postal_code", M.EXACT, 3)),
        _pass("street_cologne", ("street", M.COLOGNE, 3), ("house_number", M.LEADING_DIGITS, 3)),
        _pass("city_street", ("city", M.COLOGNE, 3), ("street", M.PREFIX, 4)),
    ],
    EntityType.PRODUCT: [
        _pass("sku", ("sku", M.NORMALIZED, 3)),
        _pass("ean", ("ean", M.DIGITS_SUFFIX, 13)),
        _pass("name_prefix", ("name", M.PREFIX, 6)),
    ],
    EntityType.CONTACT: [
        _pass("name_cologne", ("name", M.COLOGNE, 3)),
        _pass("email", ("email", M.NORMALIZED, 3)),
        _pass("phone_suffix", ("phone", M.DIGITS_SUFFIX, 6)),
    ],
}


STANDARD_QUALITY: Dict[EntityType, QualityConfig] = {
    EntityType.PERSON: QualityConfig(
        required_fields=("first_name", "last_name"),
        field_types={
            "email": FieldType.EMAIL,
            "phone": FieldType.PHONE,
            "date_of_birth": FieldType.DATE,
            "postal_code": FieldType.POSTAL_CODE,
        },
    ),
    EntityType.COMPANY: QualityConfig(
        required_fields=("name",),
        field_types={
            "vat_id": FieldType.VAT_ID,
            "email": FieldType.EMAIL,
            "phone": FieldType.PHONE,
            "website": FieldType.URL,
            "postal_code": FieldType.POSTAL_CODE,
        },
        consistency_rules=(
            ConsistencyRule(ConsistencyRuleType.DATE_ORDER, "founded_on", "dissolved_on",
                            "company dissolved before it was founded"),
        ),
    ),
    EntityType.ADDRESS: QualityConfig(
        required_fields=("street", "postal_code", "city"),
        field_types={"postal_code": FieldType.POSTAL_CODE},
        consistency_rules=(
            ConsistencyRule(ConsistencyRuleType.DEPENDENCY, "house_number", "street",
                            "house number without street"),
        ),
    ),
    EntityType.PRODUCT: QualityConfig(
        required_fields=("name",),
        field_types={"ean": FieldType.EAN, "price": FieldType.NUMBER},
    ),
    EntityType.CONTACT: QualityConfig(
        required_fields=("name",),
        field_types={"email": FieldType.EMAIL, "phone": FieldType.PHONE},
    ),
}


STANDARD_MERGE: Dict[EntityType, List[MergeStrategy]] = {
    EntityType.PERSON: [
        MergeStrategy("email", MergeStrategyType.MOST_RECENT),
        MergeStrategy("phone", MergeStrategyType.MOST_RECENT),
        MergeStrategy("first_name", MergeStrategyType.MOST_FREQUENT_VALUE),
    ],
    EntityType.COMPANY: [
        MergeStrategy("name", MergeStrategyType.LONGEST_VALUE),
        MergeStrategy("vat_id", MergeStrategyType.MOST_FREQUENT_VALUE),
        MergeStrategy("email", MergeStrategyType.MOST_RECENT),
    ],
    EntityType.ADDRESS: [
        MergeStrategy("street", MergeStrategyType.LONGEST_VALUE),
    ],
    EntityType.PRODUCT: [
        MergeStrategy("name", MergeStrategyType.LONGEST_VALUE),
        MergeStrategy("price", MergeStrategyType.MOST_RECENT),
    ],
    EntityType.CONTACT: [
        MergeStrategy("email", MergeStrategyType.MOST_RECENT),
        MergeStrategy("phone", MergeStrategyType.MOST_RECENT),
    ],
}


def preset_config(
    entity_type: EntityType,
    tenant_id: str = "",
    source_priority: Optional[List[str]] = None,
    **overrides: Any
) -> ResolutionConfig:
    """Standard resolution configuration for an entity type.

    Args:
        entity_type: Entity type to resolve
        tenant_id: Optional tenant of the run
        source_priority: When given, fields without an explicit strategy
            are resolved by this ranked list of source systems
        **overrides: Further ResolutionConfig keyword arguments
    """
    entity_type = EntityType(entity_type)
    quality = STANDARD_QUALITY[entity_type]
    if source_priority:
        merge = MergeConfig(
            strategies=STANDARD_MERGE[entity_type],
            default_strategy=MergeStrategyType.SOURCE_PRIORITY_LIST,
            default_source_priority=source_priority,
        )
    else:
        merge = MergeConfig(strategies=STANDARD_MERGE[entity_type])

    settings = dict(
        entity_type=entity_type,
        match=MatchRuleConfig(fields=STANDARD_MATCH_FIELDS[entity_type]),
        blocking=BlockingConfig(passes=STANDARD_BLOCKING_PASSES[entity_type]),
        merge=merge,
        quality=quality,
        tenant_id=tenant_id,
    )
    settings.update(overrides)
    return ResolutionConfig(**settings)
