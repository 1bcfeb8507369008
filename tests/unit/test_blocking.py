import pytest

from goldmatch.exceptions import ConfigurationError
from goldmatch.match.blocking import (
    Blocker,
    BlockingConfig,
    BlockingMethod,
    BlockingPass,
    KeyComponent,
    prefilter_pairs,
)
from goldmatch.match.config import DecisionThresholds, FieldMatchConfig, MatchRuleConfig
from goldmatch.match.rules import CompositeScorer


def test_keys_are_namespaced_by_pass(person_blocking_config, person_records):
    """Test key generation across several passes."""
    blocker = Blocker(person_blocking_config)
    keys = blocker.generate_keys(person_records[0])
    assert keys == {"last_name_cologne:657", "email:hans mueller example com"}


def test_record_without_key_values_has_no_keys(person_blocking_config, make_record):
    """Test that missing values produce no key instead of an empty one."""
    blocker = Blocker(person_blocking_config)
    assert blocker.generate_keys(make_record("X", first_name="Nobody")) == frozenset()


@pytest.mark.parametrize("method,length,value,expected", [
    (BlockingMethod.EXACT, 3, " ABC ", ["ABC"]),
    (BlockingMethod.NORMALIZED, 3, "Müller, Hans", ["muller hans"]),
    (BlockingMethod.PREFIX, 4, "Li", ["li__"]),
    (BlockingMethod.SUFFIX, 3, "Hauptstraße", ["sse"]),
    (BlockingMethod.DIGITS_SUFFIX, 4, "DE 123-456-789", ["6789"]),
    (BlockingMethod.FIRST_LETTER, 3, "Ärzte", ["a"]),
    (BlockingMethod.COLOGNE, 3, "Meier", ["67"]),
    (BlockingMethod.SOUNDEX, 3, "Robert", ["R163"]),
    (BlockingMethod.NGRAM, 3, "abcd", ["abc", "bcd"]),
    (BlockingMethod.LEADING_DIGITS, 3, "12a Hauptstr.", ["12"]),
])
def test_key_component_methods(make_record, method, length, value, expected):
    """Test each key derivation method."""
    component = KeyComponent("field", method, length)
    assert component.values(make_record("R", field=value)) == expected


def test_multi_component_pass_joins_fragments(make_record):
    """Test composite keys made of several fields."""
    blocking_pass = BlockingPass("name", [
        KeyComponent("first_name", BlockingMethod.FIRST_LETTER),
        KeyComponent("last_name", BlockingMethod.COLOGNE),
    ])
    record = make_record("R", first_name="Hans", last_name="Meier")
    assert blocking_pass.keys(record) == {"name:h|67"}
    assert blocking_pass.keys(make_record("S", first_name="Hans")) == set()


def test_each_pair_is_planned_once(person_blocking_config, person_records):
    """Test that pairs sharing several keys are scored in one bucket only."""
    blocker = Blocker(person_blocking_config)
    buckets, warnings = blocker.plan(person_records)

    pairs = [pair for bucket in buckets for pair in bucket.pairs]
    assert len(pairs) == len(set(pairs))
    assert ("P1", "P2") in pairs
    assert ("P1", "P4") in pairs
    assert warnings == []


def test_records_without_shared_key_are_never_paired(person_blocking_config, person_records):
    """Test that blocking alone decides candidacy."""
    blocker = Blocker(person_blocking_config)
    buckets, _ = blocker.plan(person_records)

    pairs = {pair for bucket in buckets for pair in bucket.pairs}
    assert all("P3" not in pair for pair in pairs)


def test_bucket_over_hard_cap_is_reported(make_record):
    """Test that oversized keys warn but are still processed."""
    config = BlockingConfig(
        passes=[BlockingPass("city", [KeyComponent("city")])],
        max_bucket_size=2,
        hard_bucket_cap=3
    )
    records = [make_record(f"R{i}", city="Berlin") for i in range(5)]
    buckets, warnings = Blocker(config).plan(records)

    assert len(warnings) == 1
    assert warnings[0].key == "city:berlin"
    assert warnings[0].size == 5
    assert buckets[0].over_cap
    assert len(buckets[0].pairs) == 10


def test_prefilter_prunes_only_hopeless_pairs(make_record):
    """Test length-based pruning inside an oversized bucket."""
    scorer = CompositeScorer(MatchRuleConfig(
        fields=[FieldMatchConfig("name", "levenshtein")],
        thresholds=DecisionThresholds(match=0.9, possible_match=0.6)
    ))
    config = BlockingConfig(
        passes=[BlockingPass("initial", [KeyComponent("name", BlockingMethod.FIRST_LETTER)])],
        max_bucket_size=2
    )
    records = [
        make_record("R1", name="abc"),
        make_record("R2", name="abd"),
        make_record("R3", name="abcdefghijkl"),
    ]
    buckets, _ = Blocker(config).plan(records)
    assert buckets[0].oversized

    kept, pruned = prefilter_pairs(buckets[0], {r.id: r for r in records}, scorer)
    assert kept == [("R1", "R2")]
    assert pruned == 2


def test_small_buckets_are_not_prefiltered(person_blocking_config, person_records, person_match_config):
    """Test that pruning only applies above max_bucket_size."""
    buckets, _ = Blocker(person_blocking_config).plan(person_records)
    scorer = CompositeScorer(person_match_config)
    records_by_id = {r.id: r for r in person_records}
    for bucket in buckets:
        kept, pruned = prefilter_pairs(bucket, records_by_id, scorer)
        assert pruned == 0
        assert kept == list(bucket.pairs)


def test_blocking_config_validation():
    """Test rejection of invalid blocking configurations."""
    with pytest.raises(ConfigurationError):
        BlockingConfig(passes=[])
    with pytest.raises(ConfigurationError):
        KeyComponent("name", "rhymes")
    with pytest.raises(ConfigurationError):
        KeyComponent("name", BlockingMethod.PREFIX, 0)
    with pytest.raises(ConfigurationError):
        BlockingConfig(
            passes=[BlockingPass("a", [KeyComponent("x")])],
            max_bucket_size=100,
            hard_bucket_cap=10
        )


def test_blocking_config_from_dict():
    """Test loading passes from their dictionary form."""
    config = BlockingConfig.from_dict({
        "max_bucket_size": 20,
        "passes": [
            {"name": "zip", "components": [{"field": "postal_code", "method": "exact"}]},
            {"name": "street", "components": [
                {"field": "street", "method": "prefix", "length": 5},
                {"field": "house_number", "method": "leading_digits"},
            ]},
        ]
    })
    assert config.max_bucket_size == 20
    assert config.passes[1].components[0].method == BlockingMethod.PREFIX
    assert config.field_names == ["postal_code", "street", "house_number"]
