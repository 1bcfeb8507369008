import pytest

from goldmatch.exceptions import ConfigurationError
from goldmatch.match.config import (
    DecisionThresholds,
    FieldMatchConfig,
    MatchAlgorithm,
    MatchOptions,
    MatchRuleConfig,
    PhoneticAlgorithm,
)
from goldmatch.match.rules import (
    CompositeScorer,
    DateMatcher,
    ExactMatcher,
    MatcherFactory,
    NumericMatcher,
    TextMatcher,
)
from goldmatch.model import ExplainKind, MatchDecision
from goldmatch.presets import preset_config


def test_matching_pair_is_classified_as_match(person_match_config, person_records):
    """Test scoring two records of the same person."""
    scorer = CompositeScorer(person_match_config)
    result = scorer.score(person_records[0], person_records[1])

    assert result.decision == MatchDecision.MATCH
    assert result.aggregate_score >= 0.9
    assert result.pair == ("P1", "P2")
    assert len(result.field_scores) == 4


def test_score_is_symmetric(person_match_config, person_records):
    """Test that argument order does not change the result."""
    scorer = CompositeScorer(person_match_config)
    p1, p2, p3, _ = person_records
    assert scorer.score(p1, p2) == scorer.score(p2, p1)
    assert scorer.score(p3, p1) == scorer.score(p1, p3)


def test_missing_required_field_vetoes(person_match_config, person_records):
    """Test that a missing required value forces no_match."""
    scorer = CompositeScorer(person_match_config)
    result = scorer.score(person_records[0], person_records[3])

    assert result.decision == MatchDecision.NO_MATCH
    vetoes = [e for e in result.explain if e.kind == ExplainKind.VETO]
    assert [v.field_name for v in vetoes] == ["last_name"]
    last_name = next(s for s in result.field_scores if s.field_name == "last_name")
    assert last_name.score == 0.0
    assert last_name.included


def test_required_field_below_threshold_vetoes(make_record):
    """Test the hard veto on a high aggregate score."""
    config = MatchRuleConfig(fields=[
        FieldMatchConfig("name", "token-jaro-winkler", weight=3.0),
        FieldMatchConfig("vat_id", "exact", weight=1.0, required=True, threshold=1.0),
    ], thresholds=DecisionThresholds(match=0.7, possible_match=0.5))
    scorer = CompositeScorer(config)
    a = make_record("C1", entity_type="company", name="Acme GmbH", vat_id="DE111111111")
    b = make_record("C2", entity_type="company", name="Acme GmbH", vat_id="DE999999999")

    result = scorer.score(a, b)
    assert result.aggregate_score == pytest.approx(0.75)
    assert result.decision == MatchDecision.NO_MATCH


def test_missing_optional_field_is_excluded(person_match_config, make_record):
    """Test that missing non-required values leave the aggregate untouched."""
    scorer = CompositeScorer(person_match_config)
    a = make_record("A", first_name="Hans", last_name="Meier", email="h@example.com")
    b = make_record("B", first_name="Hans", last_name="Meier", email="h@example.com")

    result = scorer.score(a, b)
    dob = next(s for s in result.field_scores if s.field_name == "date_of_birth")
    assert not dob.included
    assert result.aggregate_score == pytest.approx(1.0)
    assert any(e.kind == ExplainKind.EXCLUDED for e in result.explain)


def test_thresholds_classify_possible_match(make_record):
    """Test the possible_match band."""
    config = MatchRuleConfig(fields=[
        FieldMatchConfig("name", "levenshtein"),
    ], thresholds=DecisionThresholds(match=0.9, possible_match=0.6))
    scorer = CompositeScorer(config)

    result = scorer.score(make_record("A", name="abcdefghij"), make_record("B", name="abcdefgxyz"))
    assert result.aggregate_score == pytest.approx(0.7)
    assert result.decision == MatchDecision.POSSIBLE_MATCH


def test_incompatible_values_are_anomalies(make_record):
    """Test that a phonetic rule on a numeric value scores 0 with a note."""
    config = MatchRuleConfig(fields=[
        FieldMatchConfig("city", "phonetic",
                         options=MatchOptions(phonetic_algorithm=PhoneticAlgorithm.COLOGNE)),
        FieldMatchConfig("name", "exact"),
    ])
    scorer = CompositeScorer(config)
    result = scorer.score(
        make_record("A", city=10115, name="Meier"),
        make_record("B", city="Berlin", name="Meier")
    )

    assert len(result.anomalies) == 1
    anomaly = result.anomalies[0]
    assert anomaly.field_name == "city"
    assert anomaly.algorithm == "phonetic"
    city = next(s for s in result.field_scores if s.field_name == "city")
    assert city.score == 0.0
    assert any(e.kind == ExplainKind.ANOMALY for e in result.explain)


def test_explain_lists_contributing_and_penalizing(person_match_config, person_records):
    """Test that the explanation ranks fields by weighted contribution."""
    config = MatchRuleConfig(
        fields=person_match_config.fields,
        thresholds=person_match_config.thresholds,
        explain_top_n=2
    )
    scorer = CompositeScorer(config)
    result = scorer.score(person_records[0], person_records[2])

    penalizing = [e for e in result.explain if e.kind == ExplainKind.PENALIZING]
    assert len(penalizing) == 2
    assert penalizing[0].field_name == "email"
    assert penalizing[0].weighted_contribution >= penalizing[1].weighted_contribution


def test_same_field_with_two_algorithms(make_record):
    """Test that a field may be compared by several algorithms."""
    config = MatchRuleConfig(fields=[
        FieldMatchConfig("last_name", "jaro-winkler", weight=2.0),
        FieldMatchConfig("last_name", "phonetic", weight=1.0,
                         options=MatchOptions(phonetic_algorithm="cologne")),
    ])
    scorer = CompositeScorer(config)
    result = scorer.score(make_record("A", last_name="Meier"), make_record("B", last_name="Mayer"))

    algorithms = [s.algorithm for s in result.field_scores]
    assert algorithms == ["jaro-winkler", "phonetic"]
    assert result.field_scores[1].score == 1.0


def test_matcher_factory():
    """Test matcher selection per algorithm."""
    assert isinstance(MatcherFactory.create_matcher(MatchAlgorithm.JARO), TextMatcher)
    assert isinstance(MatcherFactory.create_matcher("numeric"), NumericMatcher)
    assert isinstance(MatcherFactory.create_matcher("date"), DateMatcher)
    assert isinstance(MatcherFactory.create_matcher("exact"), ExactMatcher)


def test_match_config_validation():
    """Test rejection of invalid rule configurations."""
    with pytest.raises(ConfigurationError):
        MatchRuleConfig(fields=[])
    with pytest.raises(ConfigurationError):
        FieldMatchConfig("name", "jaro", weight=0)
    with pytest.raises(ConfigurationError):
        FieldMatchConfig("name", "jaro", threshold=1.5)
    with pytest.raises(ConfigurationError):
        FieldMatchConfig("name", "jaro-winkler", options=MatchOptions(prefix_scale=0.3))
    with pytest.raises(ConfigurationError):
        FieldMatchConfig("phone", "exact", options=MatchOptions(phone_region="XX"))
    with pytest.raises(ConfigurationError):
        DecisionThresholds(match=0.5, possible_match=0.8)
    with pytest.raises(ConfigurationError):
        MatchRuleConfig(fields=[FieldMatchConfig("a", "jaro"), FieldMatchConfig("a", "jaro")])


def test_match_config_from_dict():
    """Test loading rules from their dictionary form."""
    config = MatchRuleConfig.from_dict({
        "thresholds": {"match": 0.85, "possible_match": 0.5},
        "fields": [
            {"field": "name", "algorithm": "token_jaro_winkler", "weight": 2},
            {"field": "city", "algorithm": "phonetic",
             "options": {"phonetic_algorithm": "Cologne"}},
            {"field": "phone", "algorithm": "exact", "options": {"phone_region": "de"}},
        ]
    })
    assert config.thresholds.match == 0.85
    assert config.fields[0].algorithm == MatchAlgorithm.TOKEN_JARO_WINKLER
    assert config.fields[1].options.phonetic_algorithm == PhoneticAlgorithm.COLOGNE
    assert config.fields[2].options.phone_region == "DE"
    assert config.field_names == ["name", "city"]


def person_with_phone(make_record, record_id, phone):
    return make_record(
        record_id, first_name="Hans", last_name="Müller", email="hans@example.de",
        phone=phone, date_of_birth="1980-04-12", postal_code="10115", city="Berlin"
    )


def test_identical_records_with_formatted_phones_match(make_record):
    """Test that identical person records match under the person preset."""
    scorer = CompositeScorer(preset_config("person").match)
    result = scorer.score(
        person_with_phone(make_record, "A", "030-123-456"),
        person_with_phone(make_record, "B", "030-123-456")
    )

    assert result.anomalies == ()
    assert result.aggregate_score == pytest.approx(1.0)
    assert result.decision == MatchDecision.MATCH


def test_phone_notations_compare_canonically(make_record):
    scorer = CompositeScorer(preset_config("person").match)

    same = scorer.score(
        person_with_phone(make_record, "A", "+49 30 1234567"),
        person_with_phone(make_record, "B", "030/1234567")
    )
    other = scorer.score(
        person_with_phone(make_record, "A", "+49301234567"),
        person_with_phone(make_record, "B", "+49301234568")
    )

    def phone_score(result):
        return next(s.score for s in result.field_scores if s.field_name == "phone")

    assert phone_score(same) == 1.0
    assert phone_score(other) == 0.0


def test_numeric_anomaly_only_for_kind_mismatch(make_record):
    """Test that two non-numeric values fall back to text comparison."""
    scorer = CompositeScorer(MatchRuleConfig(fields=[FieldMatchConfig("code", "numeric")]))

    both_text = scorer.score(make_record("A", code="030-123-456"), make_record("B", code="030-123-456"))
    assert both_text.anomalies == ()
    assert both_text.aggregate_score == pytest.approx(1.0)

    mixed = scorer.score(make_record("A", code=17), make_record("B", code="unknown"))
    assert [a.field_name for a in mixed.anomalies] == ["code"]
    assert "'unknown' is not numeric" in mixed.anomalies[0].reason
