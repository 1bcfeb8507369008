"""
GoldMatch matching package: similarity primitives, blocking and the
composite record scorer.
"""

from .config import (
    MatchAlgorithm,
    PhoneticAlgorithm,
    EditCosts,
    MatchOptions,
    FieldMatchConfig,
    DecisionThresholds,
    MatchRuleConfig
)
from .similarity import (
    normalize,
    similarity,
    distance,
    levenshtein_distance,
    levenshtein_similarity,
    damerau_levenshtein_distance,
    damerau_levenshtein_similarity,
    jaro_similarity,
    jaro_winkler_similarity,
    token_jaro_winkler_similarity,
    phonetic_similarity,
    token_phonetic_similarity,
    ratio_similarity,
    numeric_similarity,
    date_similarity
)
from .phonetic import soundex, cologne_phonetic, metaphone, phonetic_key
from .rules import CompositeScorer, MatcherFactory
from .blocking import (
    BlockingMethod,
    KeyComponent,
    BlockingPass,
    BlockingConfig,
    BucketWarning,
    CandidateBucket,
    Blocker,
    prefilter_pairs
)

__all__ = [
    'MatchAlgorithm',
    'PhoneticAlgorithm',
    'EditCosts',
    'MatchOptions',
    'FieldMatchConfig',
    'DecisionThresholds',
    'MatchRuleConfig',
    'normalize',
    'similarity',
    'distance',
    'levenshtein_distance',
    'levenshtein_similarity',
    'damerau_levenshtein_distance',
    'damerau_levenshtein_similarity',
    'jaro_similarity',
    'jaro_winkler_similarity',
    'token_jaro_winkler_similarity',
    'phonetic_similarity',
    'token_phonetic_similarity',
    'ratio_similarity',
    'numeric_similarity',
    'date_similarity',
    'soundex',
    'cologne_phonetic',
    'metaphone',
    'phonetic_key',
    'CompositeScorer',
    'MatcherFactory',
    'BlockingMethod',
    'KeyComponent',
    'BlockingPass',
    'BlockingConfig',
    'BucketWarning',
    'CandidateBucket',
    'Blocker',
    'prefilter_pairs'
]
