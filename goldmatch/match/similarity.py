"""
String similarity primitives.

Every similarity function returns a float in [0, 1], is symmetric in its
two arguments and never raises on empty or non-ASCII input. Symmetry is
guaranteed by evaluating each pair in a canonical (sorted) argument
order, which also keeps weighted edit costs consistent when the dynamic
programme swaps the strings to save memory.
"""

import re
import unicodedata
from datetime import date, datetime
from typing import List, Optional, Tuple

import jellyfish
from thefuzz import fuzz

from ..utils.validation import canonical_phone
from .config import EditCosts, MatchAlgorithm, MatchOptions, PhoneticAlgorithm
from .phonetic import phonetic_key


_PUNCTUATION = re.compile(r"[^\w\s]|_", re.UNICODE)
_WHITESPACE = re.compile(r"\s+", re.UNICODE)
_NUMERIC_NOISE = re.compile(r"[^\d.\-]")

DEFAULT_COSTS = EditCosts()


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _canonical(a: str, b: str) -> Tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def normalize(text: str, case_sensitive: bool = False) -> str:
    """Normalize a string for comparison.

    Applies Unicode decomposition with diacritic stripping, punctuation
    removal, case folding (unless ``case_sensitive``) and whitespace
    collapsing.
    """
    if not text:
        return ""
    if not case_sensitive:
        text = text.casefold()
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    without_punctuation = _PUNCTUATION.sub(" ", stripped)
    return _WHITESPACE.sub(" ", without_punctuation).strip()


def prepare_text(text: str, options: Optional[MatchOptions] = None) -> str:
    """Apply the normalization a field's options ask for."""
    options = options or MatchOptions()
    text = text or ""
    if options.phone_region and text:
        text = canonical_phone(text, options.phone_region)
    if options.normalize:
        return normalize(text, options.case_sensitive)
    return text if options.case_sensitive else text.casefold()


# ----------------------------------------------------------------------
# Edit distance family
# ----------------------------------------------------------------------

def _levenshtein(source: str, target: str, insert: float, delete: float, substitute: float) -> float:
    # Single rolling row sized by the target string
    previous = [j * insert for j in range(len(target) + 1)]
    for i, source_char in enumerate(source, 1):
        current = [i * delete] + [0.0] * len(target)
        for j, target_char in enumerate(target, 1):
            cost = 0.0 if source_char == target_char else substitute
            current[j] = min(
                previous[j] + delete,
                current[j - 1] + insert,
                previous[j - 1] + cost
            )
        previous = current
    return previous[-1]


def levenshtein_distance(a: str, b: str, costs: Optional[EditCosts] = None) -> float:
    """Weighted Levenshtein distance using O(min(len(a), len(b))) memory.

    >>> levenshtein_distance("kitten", "sitting")
    3.0
    """
    costs = costs or DEFAULT_COSTS
    a, b = _canonical(a or "", b or "")
    if len(b) <= len(a):
        return _levenshtein(a, b, costs.insert, costs.delete, costs.substitute)
    # Transforming b into a turns every insertion into a deletion
    return _levenshtein(b, a, costs.delete, costs.insert, costs.substitute)


def damerau_levenshtein_distance(a: str, b: str, costs: Optional[EditCosts] = None) -> float:
    """Optimal string alignment distance.

    Adjacent transpositions count as a single edit. Needs the full
    matrix because each cell looks back two rows and two columns.
    """
    costs = costs or DEFAULT_COSTS
    a, b = _canonical(a or "", b or "")
    rows, cols = len(a) + 1, len(b) + 1
    matrix = [[0.0] * cols for _ in range(rows)]
    for i in range(rows):
        matrix[i][0] = i * costs.delete
    for j in range(cols):
        matrix[0][j] = j * costs.insert

    for i in range(1, rows):
        for j in range(1, cols):
            cost = 0.0 if a[i - 1] == b[j - 1] else costs.substitute
            best = min(
                matrix[i - 1][j] + costs.delete,
                matrix[i][j - 1] + costs.insert,
                matrix[i - 1][j - 1] + cost
            )
            if i > 1 and j > 1 and a[i - 1] == b[j - 2] and a[i - 2] == b[j - 1]:
                best = min(best, matrix[i - 2][j - 2] + costs.transpose)
            matrix[i][j] = best
    return matrix[-1][-1]


def _edit_similarity(distance: float, a: str, b: str) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return _clamp(1.0 - distance / max(len(a), len(b)))


def levenshtein_similarity(a: str, b: str, costs: Optional[EditCosts] = None) -> float:
    """``1 - distance / max(len)``; 1 for two empty strings, 0 if one is empty."""
    return _edit_similarity(levenshtein_distance(a, b, costs), a or "", b or "")


def damerau_levenshtein_similarity(a: str, b: str, costs: Optional[EditCosts] = None) -> float:
    return _edit_similarity(damerau_levenshtein_distance(a, b, costs), a or "", b or "")


# ----------------------------------------------------------------------
# Jaro family
# ----------------------------------------------------------------------

def jaro_similarity(a: str, b: str) -> float:
    """Jaro similarity with a ``floor(max(len)/2) - 1`` match window."""
    a, b = _canonical(a or "", b or "")
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    return _clamp(jellyfish.jaro_similarity(a, b))


def common_prefix_length(a: str, b: str, limit: int) -> int:
    length = 0
    for char_a, char_b in zip(a, b):
        if length >= limit or char_a != char_b:
            break
        length += 1
    return length


def jaro_winkler_similarity(
    a: str,
    b: str,
    prefix_scale: float = 0.1,
    max_prefix_length: int = 4
) -> float:
    """Jaro-Winkler similarity: ``jaro + p * s * (1 - jaro)``.

    Args:
        a: First string
        b: Second string
        prefix_scale: Bonus per matching prefix character, capped at 0.25
        max_prefix_length: Longest prefix that earns a bonus
    """
    jaro = jaro_similarity(a, b)
    if jaro in (0.0, 1.0):
        return jaro
    scale = min(max(prefix_scale, 0.0), 0.25)
    prefix = common_prefix_length(a, b, max(max_prefix_length, 0))
    return _clamp(jaro + prefix * scale * (1.0 - jaro))


def _greedy_token_pairing(tokens_a: List[str], tokens_b: List[str], score_fn) -> float:
    scored = []
    for i, token_a in enumerate(tokens_a):
        for j, token_b in enumerate(tokens_b):
            scored.append((score_fn(token_a, token_b), i, j))
    scored.sort(key=lambda item: (-item[0], item[1], item[2]))

    used_a, used_b = set(), set()
    total = 0.0
    for score, i, j in scored:
        if i in used_a or j in used_b:
            continue
        used_a.add(i)
        used_b.add(j)
        total += score
    return total / max(len(tokens_a), len(tokens_b))


def token_jaro_winkler_similarity(
    a: str,
    b: str,
    prefix_scale: float = 0.1,
    max_prefix_length: int = 4
) -> float:
    """Jaro-Winkler over whitespace tokens, tolerant of word order.

    Tokens are paired greedily by best score, each used at most once, and
    the matched scores are averaged over the larger token count, so
    "smith john" and "john smith" score 1.0.
    """
    a, b = _canonical(a or "", b or "")
    tokens_a, tokens_b = a.split(), b.split()
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    return _clamp(_greedy_token_pairing(
        tokens_a,
        tokens_b,
        lambda x, y: jaro_winkler_similarity(x, y, prefix_scale, max_prefix_length)
    ))


def ratio_similarity(a: str, b: str) -> float:
    """Indel ratio scaled to [0, 1]."""
    a, b = _canonical(a or "", b or "")
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return _clamp(fuzz.ratio(a, b) / 100.0)


# ----------------------------------------------------------------------
# Phonetic family
# ----------------------------------------------------------------------

def phonetic_similarity(
    a: str,
    b: str,
    algorithm: PhoneticAlgorithm = PhoneticAlgorithm.SOUNDEX,
    partial_credit: bool = False
) -> float:
    """1.0 if both strings share a phonetic code, else 0.0.

    With ``partial_credit`` unequal codes score their Levenshtein
    similarity instead. Strings without letters have no code and are
    compared exactly.
    """
    a, b = _canonical(a or "", b or "")
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    code_a, code_b = phonetic_key(a, algorithm), phonetic_key(b, algorithm)
    if not code_a or not code_b:
        return 1.0 if a == b else 0.0
    if code_a == code_b:
        return 1.0
    if partial_credit:
        return levenshtein_similarity(code_a, code_b)
    return 0.0


def token_phonetic_similarity(
    a: str,
    b: str,
    algorithm: PhoneticAlgorithm = PhoneticAlgorithm.SOUNDEX
) -> float:
    """Share of tokens that pair up one-to-one on equal phonetic codes."""
    a, b = _canonical(a or "", b or "")
    tokens_a, tokens_b = a.split(), b.split()
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    return _clamp(_greedy_token_pairing(
        tokens_a,
        tokens_b,
        lambda x, y: phonetic_similarity(x, y, algorithm)
    ))


# ----------------------------------------------------------------------
# Numbers and dates
# ----------------------------------------------------------------------

def to_number(value) -> Optional[float]:
    """Interpret a value as a number, None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = _NUMERIC_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def to_date(value) -> Optional[date]:
    """Interpret a value as a calendar date, None if it is not one."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        for fmt in ("%d.%m.%Y", "%d/%m/%Y"):
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    return None


def numeric_similarity(a, b, tolerance: float = 0.0) -> float:
    """Relative closeness of two numbers.

    1.0 when equal or within ``tolerance`` relative difference, otherwise
    ``1 - |a - b| / mean(|a|, |b|)`` floored at 0.
    """
    num_a, num_b = to_number(a), to_number(b)
    if num_a is None or num_b is None:
        if num_a is None and num_b is None:
            return 1.0 if normalize(str(a)) == normalize(str(b)) else 0.0
        return 0.0
    if num_a == num_b:
        return 1.0
    diff = abs(num_a - num_b)
    mean = (abs(num_a) + abs(num_b)) / 2.0
    if mean == 0:
        return 0.0
    relative = diff / mean
    if relative <= tolerance:
        return 1.0
    return _clamp(1.0 - relative)


def date_similarity(a, b) -> float:
    """Stepped closeness of two dates: same day 1.0 down to 0.3 beyond a year."""
    date_a, date_b = to_date(a), to_date(b)
    if date_a is None or date_b is None:
        if date_a is None and date_b is None:
            return 1.0 if normalize(str(a)) == normalize(str(b)) else 0.0
        return 0.0
    days = abs((date_a - date_b).days)
    if days == 0:
        return 1.0
    if days <= 7:
        return 0.9
    if days <= 30:
        return 0.7
    if days <= 365:
        return 0.5
    return 0.3


# ----------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------

def similarity(a, b, algorithm: MatchAlgorithm, options: Optional[MatchOptions] = None) -> float:
    """Similarity of two values with the given algorithm.

    Text algorithms normalize both sides identically before comparing.
    """
    options = options or MatchOptions()
    algorithm = MatchAlgorithm.parse(algorithm)

    if algorithm == MatchAlgorithm.NUMERIC:
        return numeric_similarity(a, b, options.numeric_tolerance)
    if algorithm == MatchAlgorithm.DATE:
        return date_similarity(a, b)

    if algorithm == MatchAlgorithm.EXACT and not (isinstance(a, str) and isinstance(b, str)):
        if a is None and b is None:
            return 1.0
        return 1.0 if a == b else 0.0

    text_a = prepare_text(str(a) if a is not None else "", options)
    text_b = prepare_text(str(b) if b is not None else "", options)

    if algorithm == MatchAlgorithm.EXACT:
        return 1.0 if text_a == text_b else 0.0
    if algorithm == MatchAlgorithm.LEVENSHTEIN:
        return levenshtein_similarity(text_a, text_b, options.costs)
    if algorithm == MatchAlgorithm.DAMERAU_LEVENSHTEIN:
        return damerau_levenshtein_similarity(text_a, text_b, options.costs)
    if algorithm == MatchAlgorithm.JARO:
        return jaro_similarity(text_a, text_b)
    if algorithm == MatchAlgorithm.JARO_WINKLER:
        return jaro_winkler_similarity(
            text_a, text_b, options.prefix_scale, options.max_prefix_length
        )
    if algorithm == MatchAlgorithm.TOKEN_JARO_WINKLER:
        return token_jaro_winkler_similarity(
            text_a, text_b, options.prefix_scale, options.max_prefix_length
        )
    if algorithm == MatchAlgorithm.PHONETIC:
        return phonetic_similarity(
            text_a, text_b, options.phonetic_algorithm, options.phonetic_partial_credit
        )
    if algorithm == MatchAlgorithm.TOKEN_PHONETIC:
        return token_phonetic_similarity(text_a, text_b, options.phonetic_algorithm)
    if algorithm == MatchAlgorithm.RATIO:
        return ratio_similarity(text_a, text_b)
    raise ValueError(f"Unsupported match algorithm: {algorithm}")


def distance(a, b, algorithm: MatchAlgorithm, options: Optional[MatchOptions] = None) -> float:
    """Normalized distance, the dual of :func:`similarity`."""
    return 1.0 - similarity(a, b, algorithm, options)


def similarity_upper_bound(
    length_a: int,
    length_b: int,
    algorithm: MatchAlgorithm,
    options: Optional[MatchOptions] = None
) -> float:
    """Best similarity two prepared strings of these lengths could reach.

    Used to prune candidate pairs in oversized blocks without running the
    full comparison. Algorithms without a length bound return 1.0.
    """
    options = options or MatchOptions()
    shortest, longest = sorted((length_a, length_b))
    if longest == 0:
        return 1.0
    if shortest == 0 and algorithm in (
        MatchAlgorithm.LEVENSHTEIN,
        MatchAlgorithm.DAMERAU_LEVENSHTEIN,
        MatchAlgorithm.JARO,
        MatchAlgorithm.JARO_WINKLER,
        MatchAlgorithm.RATIO,
    ):
        return 0.0

    if algorithm in (MatchAlgorithm.LEVENSHTEIN, MatchAlgorithm.DAMERAU_LEVENSHTEIN):
        cheapest_gap = min(options.costs.insert, options.costs.delete)
        return _clamp(1.0 - (longest - shortest) * cheapest_gap / longest)
    if algorithm in (MatchAlgorithm.JARO, MatchAlgorithm.JARO_WINKLER):
        jaro = (shortest / longest + 2.0) / 3.0
        if algorithm == MatchAlgorithm.JARO:
            return _clamp(jaro)
        prefix = min(options.max_prefix_length, shortest)
        return _clamp(jaro + prefix * min(options.prefix_scale, 0.25) * (1.0 - jaro))
    if algorithm == MatchAlgorithm.RATIO:
        # fuzz.ratio rounds to whole percent
        return _clamp(2.0 * shortest / (shortest + longest) + 0.005)
    return 1.0
