import pytest
from dataclasses import FrozenInstanceError
from datetime import date, datetime, timezone

from goldmatch.exceptions import ConfigurationError, GoldMatchError
from goldmatch.merge import GoldenRecordMerger, MergeConfig, MergeStrategy, MergeStrategyType
from goldmatch.merge.processor import golden_record_id
from goldmatch.trust import FieldType, QualityConfig, QualityScorer


def day(n: int) -> datetime:
    return datetime(2024, 5, n, tzinfo=timezone.utc)


@pytest.fixture
def merger(reference_time):
    """Fixture providing a merger with a quality scorer that types email."""
    def _merger(*strategies, **kwargs):
        scorer = QualityScorer(
            QualityConfig(field_types={"email": FieldType.EMAIL}),
            reference_time
        )
        return GoldenRecordMerger(MergeConfig(strategies=strategies, **kwargs), scorer)
    return _merger


def test_most_recent_takes_latest_observation(merger, make_record):
    """Test that the value observed last survives."""
    records = [
        make_record("A", observed_at=day(1), status="X"),
        make_record("B", observed_at=day(5), status="Y"),
    ]
    golden = merger(MergeStrategy("status", MergeStrategyType.MOST_RECENT)).merge(records)

    assert golden.fields["status"] == "Y"
    conflict = golden.conflicts[0]
    assert conflict.field_name == "status"
    assert conflict.resolved_value == "Y"
    assert conflict.strategy_used == "most_recent"
    assert not conflict.requires_manual_review


def test_source_priority_list(merger, make_record):
    """Test that the higher ranked source wins."""
    records = [
        make_record("A", source="CRM", observed_at=day(9), street="Hauptstr. 5"),
        make_record("B", source="ERP", observed_at=day(1), street="Hauptstraße 5"),
        make_record("C", source="SHOP", observed_at=day(10), street="Hauptstrasse 5a"),
    ]
    rule = MergeStrategy("street", MergeStrategyType.SOURCE_PRIORITY_LIST, ["ERP", "CRM"])
    golden = merger(rule).merge(records)

    assert golden.fields["street"] == "Hauptstraße 5"


def test_source_priority_falls_back_to_unlisted_sources(merger, make_record):
    """Test that unlisted sources are used when no listed source has a value."""
    records = [
        make_record("A", source="ERP", street=None),
        make_record("B", source="SHOP", street="Hauptstr. 5"),
    ]
    rule = MergeStrategy("street", MergeStrategyType.SOURCE_PRIORITY_LIST, ["ERP", "CRM"])
    assert merger(rule).merge(records).fields["street"] == "Hauptstr. 5"


def test_longest_and_most_frequent(merger, make_record):
    """Test value-based strategies."""
    records = [
        make_record("A", name="Acme", city="Berlin"),
        make_record("B", name="Acme Industries GmbH", city="Berlin"),
        make_record("C", name="ACME Ind.", city="Bremen"),
    ]
    golden = merger(
        MergeStrategy("name", MergeStrategyType.LONGEST_VALUE),
        MergeStrategy("city", MergeStrategyType.MOST_FREQUENT_VALUE),
    ).merge(records)

    assert golden.fields["name"] == "Acme Industries GmbH"
    assert golden.fields["city"] == "Berlin"


def test_min_max_and_concatenate(merger, make_record):
    """Test extreme value and concatenation strategies."""
    records = [
        make_record("A", price=19.99, since=date(2020, 1, 1), tags="b2b"),
        make_record("B", price=17.5, since=date(2018, 6, 1), tags="retail"),
        make_record("C", price=21, since=date(2021, 1, 1), tags="b2b"),
    ]
    golden = merger(
        MergeStrategy("price", MergeStrategyType.MAX_VALUE),
        MergeStrategy("since", MergeStrategyType.MIN_VALUE),
        MergeStrategy("tags", MergeStrategyType.CONCATENATE_UNIQUE, separator=", "),
    ).merge(records)

    assert golden.fields["price"] == 21
    assert golden.fields["since"] == date(2018, 6, 1)
    assert sorted(golden.fields["tags"].split(", ")) == ["b2b", "retail"]


def test_highest_quality_source_is_default(merger, make_record, reference_time):
    """Test that the fresher record wins under the default strategy."""
    records = [
        make_record("A", observed_at=datetime(2020, 1, 1, tzinfo=timezone.utc), phone="030 1234"),
        make_record("B", observed_at=reference_time, phone="030 9876"),
    ]
    assert merger().merge(records).fields["phone"] == "030 9876"


def test_manual_review_never_resolves(merger, make_record):
    """Test that manual_review fields are left for a human."""
    records = [
        make_record("A", segment="enterprise"),
        make_record("B", segment="enterprise"),
    ]
    golden = merger(MergeStrategy("segment", MergeStrategyType.MANUAL_REVIEW)).merge(records)

    assert golden.fields["segment"] is None
    assert golden.conflicts[0].requires_manual_review
    assert golden.needs_review
    assert golden.manual_review_conflicts == golden.conflicts


def test_invalid_values_are_logged_but_never_survive(merger, make_record):
    """Test that a malformed value loses but its disagreement is recorded."""
    records = [
        make_record("A", source="CRM", observed_at=day(1), email="anna@example.de"),
        make_record("B", source="ERP", observed_at=day(9), email="anna(at)example"),
    ]
    golden = merger(MergeStrategy("email", MergeStrategyType.MOST_RECENT)).merge(records)

    assert golden.fields["email"] == "anna@example.de"
    conflict = golden.conflicts[0]
    assert conflict.field_name == "email"
    assert conflict.resolved_value == "anna@example.de"
    assert [(c.source_record_id, c.valid) for c in conflict.candidate_values] == [
        ("A", True), ("B", False)
    ]
    assert conflict.to_dict()["candidate_values"][1]["valid"] is False


def test_all_invalid_values_still_conflict(merger, make_record):
    records = [make_record("A", email="broken"), make_record("B", email="also broken")]
    golden = merger(required_fields=("email",)).merge(records)

    assert golden.fields["email"] is None
    assert golden.unresolved_fields == ("email",)
    assert golden.conflicts[0].resolved_value is None
    assert not any(c.valid for c in golden.conflicts[0].candidate_values)


def test_unresolved_required_fields(merger, make_record):
    """Test that required fields without any usable value are reported."""
    records = [make_record("A", name="Jane"), make_record("B", name="Jane", email="broken")]
    golden = merger(required_fields=("email", "birthday")).merge(records)

    assert golden.unresolved_fields == ("email", "birthday")
    assert golden.fields["email"] is None
    assert golden.needs_review


def test_agreeing_values_log_no_conflict(merger, make_record):
    """Test that identical values are not conflicts."""
    records = [make_record("A", city="Berlin "), make_record("B", city="Berlin")]
    golden = merger().merge(records)
    assert golden.conflicts == ()


def test_golden_record_is_immutable(merger, make_record):
    """Test that golden records cannot be modified."""
    golden = merger().merge([make_record("A", city="Berlin")])
    with pytest.raises(FrozenInstanceError):
        golden.quality_score = 1.0
    with pytest.raises(TypeError):
        golden.fields["city"] = "Bremen"


def test_golden_record_id_is_deterministic(merger, make_record):
    """Test id derivation from tenant, type and sources."""
    first = merger().merge([make_record("A", city="Berlin"), make_record("B", city="Berlin")])
    again = merger().merge([make_record("B", city="Berlin"), make_record("A", city="Berlin")])

    assert first.id == again.id
    assert first.id == golden_record_id("acme", "person", ["B", "A"])
    assert first.id.startswith("GOLDEN_")
    assert golden_record_id("acme", "person", ["A", "B"], version=2) != first.id


def test_remerge_creates_new_version(merger, make_record):
    """Test that re-merging supersedes without modifying the old record."""
    records = [make_record("A", observed_at=day(1), city="Berlin")]
    m = merger()
    old = m.merge(records)

    records.append(make_record("B", observed_at=day(3), city="Berlin"))
    new, superseded = m.remerge([old], records)

    assert new.version == 2
    assert new.previous_version_ids == (old.id,)
    assert new.source_record_ids == ("A", "B")
    assert superseded[0].id == old.id
    assert superseded[0].superseded_by == new.id
    assert old.superseded_by is None


def test_merge_of_empty_cluster_fails(merger):
    """Test that merging nothing is an error."""
    with pytest.raises(GoldMatchError):
        merger().merge([])


def test_merge_config_validation():
    """Test rejection of invalid merge configurations."""
    with pytest.raises(ConfigurationError):
        MergeStrategy("street", MergeStrategyType.SOURCE_PRIORITY_LIST)
    with pytest.raises(ConfigurationError):
        MergeStrategy("street", "newest")
    with pytest.raises(ConfigurationError):
        MergeConfig(strategies=[MergeStrategy("a"), MergeStrategy("a")])
    with pytest.raises(ConfigurationError):
        MergeConfig(default_strategy="source_priority_list")


def test_merge_config_from_dict():
    """Test loading merge rules from their dictionary form."""
    config = MergeConfig.from_dict({
        "default_strategy": "source_priority_list",
        "default_source_priority": ["ERP", "CRM"],
        "strategies": [
            {"field": "email", "strategy": "most_recent"},
            {"field": "notes", "strategy": "concatenate_unique", "separator": " | "},
        ]
    })
    assert config.rule_for("email").strategy == MergeStrategyType.MOST_RECENT
    assert config.rule_for("notes").separator == " | "
    fallback = config.rule_for("street")
    assert fallback.strategy == MergeStrategyType.SOURCE_PRIORITY_LIST
    assert fallback.source_priority == ("ERP", "CRM")


def test_single_source_priority_from_yaml_scalar():
    """Test that a scalar priority names one source system."""
    config = MergeConfig.from_dict({
        "default_strategy": "source_priority_list",
        "default_source_priority": "ERP",
        "required_fields": "name",
        "strategies": [
            {"field": "street", "strategy": "source_priority_list", "source_priority": "CRM"},
        ]
    })
    assert config.rule_for("street").source_priority == ("CRM",)
    assert config.rule_for("city").source_priority == ("ERP",)
    assert config.required_fields == ("name",)
