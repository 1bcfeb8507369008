"""
Golden record merger.
"""

from dataclasses import replace
from types import MappingProxyType
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import logging

import xxhash

from ..exceptions import GoldMatchError
from ..model import (
    CandidateValue,
    EntityRecord,
    GoldenRecord,
    MergeConflict,
    QualityScore,
    is_missing,
)
from ..trust import FieldType, QualityScorer
from ..utils.validation import check_format
from .strategies import Candidate, MergeConfig, ResolverFactory


def golden_record_id(
    tenant_id: str,
    entity_type: str,
    source_record_ids: Sequence[str],
    version: int = 1
) -> str:
    """Deterministic golden record id for a set of source records and version."""
    parts = [tenant_id, entity_type] + sorted(source_record_ids)
    if version > 1:
        parts.append(f"v{version}")
    key = "|".join(parts)
    return f"GOLDEN_{xxhash.xxh64_hexdigest(key.encode('utf-8'))}"


class GoldenRecordMerger:
    """Fuses a cluster of duplicate records into one golden record.

    Every field present in any member is resolved with its configured
    strategy. Disagreeing values are always logged as conflicts, also
    when a strategy settled them automatically.
    """

    def __init__(
        self,
        config: Optional[MergeConfig] = None,
        quality_scorer: Optional[QualityScorer] = None,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize the merger.

        Args:
            config: Merge strategies per field
            quality_scorer: Scorer used for tie-breaking and the golden record's own score
            logger: Optional logger instance
        """
        self.config = config or MergeConfig()
        self.quality_scorer = quality_scorer or QualityScorer()
        self.logger = logger or logging.getLogger(__name__)
        self.resolvers = {}

    def _resolver(self, field_name: str):
        if field_name not in self.resolvers:
            self.resolvers[field_name] = ResolverFactory.create_resolver(
                self.config.rule_for(field_name)
            )
        return self.resolvers[field_name]

    def _usable(self, field_name: str, value) -> bool:
        if is_missing(value):
            return False
        field_type = self.quality_scorer.config.field_types.get(field_name)
        if field_type is None or field_type == FieldType.STRING:
            return True
        return check_format(
            field_type.value, value, self.quality_scorer.config.phone_region
        ) is None

    def merge(
        self,
        records: Sequence[EntityRecord],
        quality: Optional[Mapping[str, QualityScore]] = None,
        review_flags: Sequence[str] = (),
        merged_at: Optional[datetime] = None
    ) -> GoldenRecord:
        """Merge one cluster into a golden record.

        Args:
            records: Cluster members in input order
            quality: Quality scores by record id; computed when missing
            review_flags: Review notes to carry, e.g. from cluster splitting
            merged_at: Merge timestamp; defaults to the scorer's reference time

        Returns:
            New golden record

        Raises:
            GoldMatchError: If the cluster is empty
        """
        if not records:
            raise GoldMatchError("Cannot merge an empty cluster")
        quality = dict(quality or {})
        for record in records:
            if record.id not in quality:
                quality[record.id] = self.quality_scorer.score(record)

        first = records[0]
        field_names: List[str] = []
        for record in records:
            for name in record.fields:
                if name not in field_names:
                    field_names.append(name)

        fields: Dict[str, object] = {}
        conflicts: List[MergeConflict] = []
        unresolved: List[str] = []

        for name in field_names:
            present = [
                Candidate(
                    value=record.get(name),
                    record_id=record.id,
                    source_system=record.source_system,
                    quality=quality[record.id].overall,
                    observed_at=record.observed_at,
                    position=position
                )
                for position, record in enumerate(records)
                if not is_missing(record.get(name))
            ]
            candidates = [c for c in present if self._usable(name, c.value)]
            valid_ids = {c.record_id for c in candidates}

            resolved = None
            manual_review = False
            if candidates:
                resolution = self._resolver(name).resolve(candidates)
                resolved = resolution.value
                manual_review = resolution.requires_manual_review
            elif name in self.config.required_fields:
                unresolved.append(name)
            fields[name] = resolved

            # Invalid values still count as disagreement
            distinct = {_conflict_key(c.value) for c in present}
            if len(distinct) > 1 or manual_review:
                conflicts.append(MergeConflict(
                    field_name=name,
                    candidate_values=tuple(
                        CandidateValue(c.value, c.record_id, c.quality, c.record_id in valid_ids)
                        for c in present
                    ),
                    resolved_value=resolved,
                    strategy_used=self.config.rule_for(name).strategy.value,
                    requires_manual_review=manual_review
                ))

        for name in self.config.required_fields:
            if name not in fields:
                fields[name] = None
                unresolved.append(name)

        source_ids = tuple(r.id for r in records)
        golden_id = golden_record_id(first.tenant_id, first.entity_type.value, source_ids)
        observed = [r.observed_at for r in records if r.observed_at is not None]
        golden_quality = self.quality_scorer.score(EntityRecord(
            id=golden_id,
            entity_type=first.entity_type,
            source_system="golden",
            fields=fields,
            tenant_id=first.tenant_id,
            observed_at=max(observed) if observed else None
        ))

        if unresolved:
            self.logger.warning(
                f"Golden record {golden_id} has unresolved required fields: {', '.join(unresolved)}"
            )

        return GoldenRecord(
            id=golden_id,
            entity_type=first.entity_type,
            tenant_id=first.tenant_id,
            fields=MappingProxyType(fields),
            source_record_ids=source_ids,
            conflicts=tuple(conflicts),
            quality_score=golden_quality.overall,
            merged_at=merged_at or self.quality_scorer.reference_time,
            unresolved_fields=tuple(unresolved),
            review_flags=tuple(review_flags)
        )

    def remerge(
        self,
        previous: Sequence[GoldenRecord],
        records: Sequence[EntityRecord],
        quality: Optional[Mapping[str, QualityScore]] = None,
        review_flags: Sequence[str] = (),
        merged_at: Optional[datetime] = None
    ) -> Tuple[GoldenRecord, List[GoldenRecord]]:
        """Build a new version that replaces earlier golden records.

        The earlier records are not modified; superseded copies pointing at
        the new id are returned instead.

        Returns:
            Tuple of (new golden record, superseded copies of ``previous``)
        """
        golden = self.merge(records, quality, review_flags, merged_at)
        if not previous:
            return golden, []
        version = max(p.version for p in previous) + 1
        golden = replace(
            golden,
            id=golden_record_id(
                golden.tenant_id, golden.entity_type.value, golden.source_record_ids, version
            ),
            version=version,
            previous_version_ids=tuple(p.id for p in previous)
        )
        superseded = [replace(p, superseded_by=golden.id) for p in previous]
        self.logger.info(
            f"Golden record {golden.id} (version {golden.version}) supersedes "
            f"{', '.join(p.id for p in previous)}"
        )
        return golden, superseded


def _conflict_key(value) -> object:
    if isinstance(value, str):
        return ("s", value.strip())
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (type(value).__name__, value)
