"""
Blocking: candidate generation for pairwise scoring.

Records are bucketed by cheap derived keys and only records sharing a
bucket are ever compared. Several passes can be configured; their keys
are namespaced by pass name and unioned, so a pair is compared when it
shares any one key. Each pair is planned exactly once, in the first
bucket (in sorted key order) that contains both records.
"""

import itertools
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from ..exceptions import ConfigurationError
from ..model import EntityRecord, is_missing
from .config import PhoneticAlgorithm
from .phonetic import phonetic_key
from .similarity import normalize


_DIGITS = re.compile(r"\d+")


class BlockingMethod(str, Enum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    DIGITS_SUFFIX = "digits_suffix"
    FIRST_LETTER = "first_letter"
    SOUNDEX = "soundex"
    COLOGNE = "cologne"
    METAPHONE = "metaphone"
    NGRAM = "ngram"
    LEADING_DIGITS = "leading_digits"


_LENGTH_METHODS = {
    BlockingMethod.PREFIX,
    BlockingMethod.SUFFIX,
    BlockingMethod.DIGITS_SUFFIX,
    BlockingMethod.NGRAM,
}

_PHONETIC_METHODS = {
    BlockingMethod.SOUNDEX: PhoneticAlgorithm.SOUNDEX,
    BlockingMethod.COLOGNE: PhoneticAlgorithm.COLOGNE,
    BlockingMethod.METAPHONE: PhoneticAlgorithm.METAPHONE,
}


@dataclass(frozen=True)
class KeyComponent:
    """One field transformation contributing to a blocking key."""
    field_name: str
    method: BlockingMethod = BlockingMethod.NORMALIZED
    length: int = 3

    def __post_init__(self):
        if not self.field_name:
            raise ConfigurationError("Blocking key component needs a field name")
        try:
            object.__setattr__(self, "method", BlockingMethod(self.method))
        except ValueError:
            raise ConfigurationError(
                f"Unknown blocking method: {self.method}",
                details={"known": [m.value for m in BlockingMethod]}
            )
        if self.method in _LENGTH_METHODS and self.length < 1:
            raise ConfigurationError(
                f"Blocking method {self.method.value} needs a positive length"
            )

    def values(self, record: EntityRecord) -> List[str]:
        """Key fragments this component derives from a record; empty if none."""
        value = record.get(self.field_name)
        if is_missing(value):
            return []
        raw = str(value)
        method = self.method

        if method == BlockingMethod.EXACT:
            return [raw.strip()]
        if method in _PHONETIC_METHODS:
            code = phonetic_key(raw, _PHONETIC_METHODS[method])
            return [code] if code else []
        if method == BlockingMethod.DIGITS_SUFFIX:
            digits = "".join(_DIGITS.findall(raw))
            return [digits[-self.length:]] if digits else []
        if method == BlockingMethod.LEADING_DIGITS:
            match = _DIGITS.search(raw)
            return [match.group(0)] if match else []

        text = normalize(raw)
        if not text:
            return []
        if method == BlockingMethod.NORMALIZED:
            return [text]
        if method == BlockingMethod.FIRST_LETTER:
            return [text[0]]

        compact = text.replace(" ", "")
        if method == BlockingMethod.PREFIX:
            return [compact[:self.length].ljust(self.length, "_")]
        if method == BlockingMethod.SUFFIX:
            return [compact[-self.length:].rjust(self.length, "_")]
        if method == BlockingMethod.NGRAM:
            if len(compact) <= self.length:
                return [compact]
            grams = {compact[i:i + self.length] for i in range(len(compact) - self.length + 1)}
            return sorted(grams)
        raise ConfigurationError(f"Unsupported blocking method: {method}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyComponent":
        return cls(
            field_name=data.get("field_name", data.get("field")),
            method=data.get("method", BlockingMethod.NORMALIZED.value),
            length=int(data.get("length", 3))
        )


@dataclass(frozen=True)
class BlockingPass:
    """Named blocking pass; its key joins the fragments of all components."""
    name: str
    components: Sequence[KeyComponent]

    def __post_init__(self):
        if not self.name:
            raise ConfigurationError("Blocking pass needs a name")
        if not self.components:
            raise ConfigurationError(f"Blocking pass '{self.name}' has no key components")
        object.__setattr__(self, "components", tuple(self.components))

    def keys(self, record: EntityRecord) -> Set[str]:
        parts = [component.values(record) for component in self.components]
        if any(not p for p in parts):
            return set()
        return {f"{self.name}:" + "|".join(combo) for combo in itertools.product(*parts)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockingPass":
        return cls(
            name=data.get("name", ""),
            components=[KeyComponent.from_dict(c) for c in data.get("components", [])]
        )


@dataclass(frozen=True)
class BlockingConfig:
    """Blocking passes and bucket size limits."""
    passes: Sequence[BlockingPass]
    max_bucket_size: int = 50
    hard_bucket_cap: int = 1000

    def __post_init__(self):
        if not self.passes:
            raise ConfigurationError("At least one blocking pass must be defined")
        object.__setattr__(self, "passes", tuple(self.passes))
        names = [p.name for p in self.passes]
        if len(names) != len(set(names)):
            raise ConfigurationError("Blocking pass names must be unique")
        if self.max_bucket_size < 2:
            raise ConfigurationError("max_bucket_size must be at least 2")
        if self.hard_bucket_cap < self.max_bucket_size:
            raise ConfigurationError("hard_bucket_cap must not be below max_bucket_size")

    @property
    def field_names(self) -> List[str]:
        return [c.field_name for p in self.passes for c in p.components]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockingConfig":
        return cls(
            passes=[BlockingPass.from_dict(p) for p in data.get("passes", [])],
            max_bucket_size=int(data.get("max_bucket_size", 50)),
            hard_bucket_cap=int(data.get("hard_bucket_cap", 1000))
        )


@dataclass(frozen=True)
class BucketWarning:
    """A bucket so large that its blocking key is probably too coarse."""
    key: str
    size: int
    cap: int


@dataclass(frozen=True)
class CandidateBucket:
    """A bucket and the pairs it is responsible for scoring."""
    key: str
    record_ids: Tuple[str, ...]
    pairs: Tuple[Tuple[str, str], ...]
    oversized: bool = False
    over_cap: bool = False


class Blocker:
    """Generates blocking keys, buckets records and plans candidate pairs."""

    def __init__(self, config: BlockingConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def generate_keys(self, record: EntityRecord) -> FrozenSet[str]:
        """All blocking keys of a record across every pass."""
        keys: Set[str] = set()
        for blocking_pass in self.config.passes:
            keys |= blocking_pass.keys(record)
        return frozenset(keys)

    def bucket(self, records: Iterable[EntityRecord]) -> Dict[str, List[str]]:
        """Map each key to the ids of the records carrying it.

        Keys come out sorted and ids keep input order. Records without
        any key are in no bucket.
        """
        buckets: Dict[str, List[str]] = {}
        for record in records:
            for key in self.generate_keys(record):
                buckets.setdefault(key, []).append(record.id)
        return {key: buckets[key] for key in sorted(buckets)}

    def plan(self, records: Sequence[EntityRecord]) -> Tuple[List[CandidateBucket], List[BucketWarning]]:
        """Distribute every candidate pair to exactly one bucket.

        Returns:
            Tuple of (buckets with at least one pair, oversize warnings)
        """
        seen: Set[Tuple[str, str]] = set()
        planned: List[CandidateBucket] = []
        warnings: List[BucketWarning] = []

        for key, record_ids in self.bucket(records).items():
            size = len(record_ids)
            over_cap = size > self.config.hard_bucket_cap
            if over_cap:
                warnings.append(BucketWarning(key, size, self.config.hard_bucket_cap))
                self.logger.warning(
                    f"Blocking key {key!r} produced {size} records "
                    f"(cap {self.config.hard_bucket_cap}); key is likely too coarse"
                )

            pairs = []
            for id_a, id_b in itertools.combinations(record_ids, 2):
                pair = (id_a, id_b) if id_a < id_b else (id_b, id_a)
                if pair in seen:
                    continue
                seen.add(pair)
                pairs.append(pair)

            if pairs:
                planned.append(CandidateBucket(
                    key=key,
                    record_ids=tuple(record_ids),
                    pairs=tuple(pairs),
                    oversized=size > self.config.max_bucket_size,
                    over_cap=over_cap
                ))

        self.logger.debug(
            f"Planned {len(seen)} candidate pairs across {len(planned)} buckets"
        )
        return planned, warnings


def prefilter_pairs(
    bucket: CandidateBucket,
    records_by_id: Dict[str, EntityRecord],
    scorer
) -> Tuple[List[Tuple[str, str]], int]:
    """Drop pairs of an oversized bucket that cannot reach possible_match.

    Uses the scorer's length-based upper bound, so no pair that could
    score possible_match or better is ever dropped.

    Returns:
        Tuple of (pairs to score, number of pruned pairs)
    """
    if not bucket.oversized:
        return list(bucket.pairs), 0

    profiles = {
        record_id: scorer.length_profile(records_by_id[record_id])
        for record_id in bucket.record_ids
    }
    kept = [
        pair for pair in bucket.pairs
        if scorer.could_be_candidate(profiles[pair[0]], profiles[pair[1]])
    ]
    return kept, len(bucket.pairs) - len(kept)
