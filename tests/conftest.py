import pytest
from datetime import datetime, timezone
from typing import Callable, List

from goldmatch import EntityRecord, ResolutionConfig
from goldmatch.match.blocking import BlockingConfig, BlockingMethod, BlockingPass, KeyComponent
from goldmatch.match.config import DecisionThresholds, FieldMatchConfig, MatchRuleConfig
from goldmatch.merge.strategies import MergeConfig, MergeStrategy, MergeStrategyType
from goldmatch.model import MatchDecision, MatchResult
from goldmatch.trust.config import FieldType, QualityConfig


@pytest.fixture
def reference_time() -> datetime:
    """Fixture providing a fixed "now" for freshness and merge timestamps."""
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record() -> Callable[..., EntityRecord]:
    """Fixture providing a factory for person records of tenant ``acme``."""
    def _make(record_id, source="CRM", observed_at=None, entity_type="person",
              tenant_id="acme", **fields):
        return EntityRecord(
            id=record_id,
            entity_type=entity_type,
            source_system=source,
            fields=fields,
            tenant_id=tenant_id,
            observed_at=observed_at
        )
    return _make


@pytest.fixture
def make_result() -> Callable[..., MatchResult]:
    """Fixture providing a factory for bare match results."""
    def _make(a, b, score, decision):
        if b < a:
            a, b = b, a
        return MatchResult(a, b, (), score, MatchDecision(decision))
    return _make


@pytest.fixture
def person_match_config() -> MatchRuleConfig:
    """Fixture providing person match rules with a hard veto on last name."""
    return MatchRuleConfig(
        fields=[
            FieldMatchConfig("first_name", "jaro-winkler", weight=1.5),
            FieldMatchConfig("last_name", "jaro-winkler", weight=2.0, threshold=0.85, required=True),
            FieldMatchConfig("email", "exact", weight=3.0),
            FieldMatchConfig("date_of_birth", "date", weight=1.0),
        ],
        thresholds=DecisionThresholds(match=0.90, possible_match=0.60)
    )


@pytest.fixture
def person_blocking_config() -> BlockingConfig:
    """Fixture providing blocking on the last name's Cologne code and on email."""
    return BlockingConfig(passes=[
        BlockingPass("last_name_cologne", [KeyComponent("last_name", BlockingMethod.COLOGNE)]),
        BlockingPass("email", [KeyComponent("email", BlockingMethod.NORMALIZED)]),
    ])


@pytest.fixture
def person_config(person_match_config, person_blocking_config) -> ResolutionConfig:
    """Fixture providing a complete person resolution configuration."""
    return ResolutionConfig(
        entity_type="person",
        match=person_match_config,
        blocking=person_blocking_config,
        merge=MergeConfig(strategies=[
            MergeStrategy("email", MergeStrategyType.MOST_RECENT),
            MergeStrategy("first_name", MergeStrategyType.SOURCE_PRIORITY_LIST, ["ERP", "CRM"]),
        ]),
        quality=QualityConfig(
            required_fields=("first_name", "last_name"),
            field_types={"email": FieldType.EMAIL, "date_of_birth": FieldType.DATE}
        ),
        tenant_id="acme",
        max_workers=2
    )


@pytest.fixture
def person_records(make_record) -> List[EntityRecord]:
    """Fixture providing person records from different sources.

    P1 and P2 describe the same person, P3 is someone else and P4 lacks
    a last name but shares P1's email address.
    """
    return [
        make_record(
            "P1", "ERP", datetime(2024, 1, 1, tzinfo=timezone.utc),
            first_name="Hans", last_name="Müller",
            email="hans.mueller@example.com", date_of_birth="1980-04-12"
        ),
        make_record(
            "P2", "CRM", datetime(2024, 3, 1, tzinfo=timezone.utc),
            first_name="Hans", last_name="Mueller",
            email="hans.mueller@example.com", date_of_birth="1980-04-12"
        ),
        make_record(
            "P3", "CRM", datetime(2024, 2, 1, tzinfo=timezone.utc),
            first_name="Anna", last_name="Schmidt",
            email="anna.schmidt@example.org", date_of_birth="1975-09-30"
        ),
        make_record(
            "P4", "WEB", datetime(2024, 4, 1, tzinfo=timezone.utc),
            first_name="Hans", last_name=None,
            email="hans.mueller@example.com", date_of_birth="1980-04-12"
        ),
    ]
