"""
Resolution pipeline: records in, golden records out.

Stages: record intake, blocking, bucket-parallel pair scoring, clustering
(the barrier that waits for every bucket) and merging. Buckets share no
data and are scored by independent worker tasks; cancellation is checked
between buckets and discards everything still in flight.
"""

from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union
import logging
import threading
import time
import uuid

from .config import ResolutionConfig
from .exceptions import MalformedRecordError, ResolutionCancelled
from .match.blocking import Blocker, BucketWarning, CandidateBucket, prefilter_pairs
from .match.rules import CompositeScorer
from .merge.clustering import ClusterReport, DuplicateClusterer, build_match_graph, unscored_pairs
from .merge.processor import GoldenRecordMerger
from .model import (
    ComparisonAnomaly,
    EntityRecord,
    GoldenRecord,
    MatchDecision,
    MatchResult,
    MergeConflict,
    QualityScore,
)
from .trust.scoring import QualityScorer
from .utils.logging import ContextLogger


class CancellationToken:
    """Cooperative cancellation flag shared with a running pipeline."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ResolutionCancelled("Resolution run was cancelled")


@dataclass(frozen=True)
class MalformedRecord:
    """A record excluded from the run, with the reason."""
    record_id: Optional[str]
    reason: str


@dataclass(frozen=True)
class BucketResult:
    """Scored pairs of one bucket."""
    key: str
    results: Tuple[MatchResult, ...]
    pruned: int = 0


@dataclass(frozen=True)
class ResolutionStats:
    records_in: int = 0
    records_accepted: int = 0
    records_malformed: int = 0
    buckets: int = 0
    candidate_pairs: int = 0
    pairs_scored: int = 0
    pairs_pruned: int = 0
    closure_checks: int = 0
    matches: int = 0
    possible_matches: int = 0
    clusters_split: int = 0
    golden_records: int = 0
    superseded: int = 0
    duration_seconds: float = 0.0


@dataclass(frozen=True)
class ResolutionResult:
    """Everything a run produced.

    ``match_results`` holds only blocking-driven comparisons; pairs scored
    while verifying cluster closure are kept in ``closure_checks``.
    """
    golden_records: Tuple[GoldenRecord, ...]
    superseded: Tuple[GoldenRecord, ...]
    match_results: Tuple[MatchResult, ...]
    possible_matches: Tuple[MatchResult, ...]
    review_conflicts: Tuple[MergeConflict, ...]
    malformed_records: Tuple[MalformedRecord, ...]
    anomalies: Tuple[ComparisonAnomaly, ...]
    bucket_warnings: Tuple[BucketWarning, ...]
    cluster_reports: Tuple[ClusterReport, ...]
    closure_checks: Tuple[MatchResult, ...]
    stats: ResolutionStats

    def golden_record_for(self, record_id: str) -> Optional[GoldenRecord]:
        for golden in self.golden_records:
            if record_id in golden.source_record_ids:
                return golden
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "golden_records": [g.to_dict() for g in self.golden_records],
            "superseded": [g.to_dict() for g in self.superseded],
            "match_results": [r.to_dict() for r in self.match_results],
            "possible_matches": [r.to_dict() for r in self.possible_matches],
            "review_conflicts": [c.to_dict() for c in self.review_conflicts],
            "malformed_records": [asdict(m) for m in self.malformed_records],
            "anomalies": [asdict(a) for a in self.anomalies],
            "bucket_warnings": [asdict(w) for w in self.bucket_warnings],
            "cluster_reports": [
                {**asdict(r), "flag": r.flag} for r in self.cluster_reports
            ],
            "closure_checks": [r.to_dict() for r in self.closure_checks],
            "stats": asdict(self.stats)
        }


class ResolutionPipeline:
    """Runs entity resolution for one tenant and one entity type."""

    def __init__(
        self,
        config: ResolutionConfig,
        executor: Optional[Executor] = None,
        reference_time: Optional[datetime] = None,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize the pipeline.

        Args:
            config: Validated resolution configuration
            executor: Caller-owned executor for bucket scoring; a private
                thread pool is used per run when omitted
            reference_time: "Now" for freshness and merge timestamps
            logger: Optional logger instance
        """
        self.config = config
        self.executor = executor
        self.reference_time = reference_time
        self.logger = logger or logging.getLogger(__name__)
        self.scorer = CompositeScorer(config.match, logger=self.logger)
        self.blocker = Blocker(config.blocking, logger=self.logger)
        self.clusterer = DuplicateClusterer(logger=self.logger)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def prepare(
        self,
        records: Iterable[Union[EntityRecord, Dict[str, Any]]]
    ) -> Tuple[List[EntityRecord], List[MalformedRecord]]:
        """Accept well-formed records of the run's tenant and entity type.

        Returns:
            Tuple of (accepted records in input order, excluded records)
        """
        accepted: List[EntityRecord] = []
        malformed: List[MalformedRecord] = []
        seen = set()
        tenant = self.config.tenant_id

        for raw in records:
            try:
                record = raw if isinstance(raw, EntityRecord) else EntityRecord.from_dict(raw)
                if record.entity_type != self.config.entity_type:
                    raise MalformedRecordError(
                        f"Entity type {record.entity_type.value} does not match run "
                        f"type {self.config.entity_type.value}",
                        record_id=record.id
                    )
                if not tenant:
                    tenant = record.tenant_id
                if record.tenant_id != tenant:
                    raise MalformedRecordError(
                        f"Tenant {record.tenant_id!r} does not match run tenant {tenant!r}",
                        record_id=record.id
                    )
                if record.id in seen:
                    raise MalformedRecordError("Duplicate record id", record_id=record.id)
            except MalformedRecordError as e:
                self.logger.warning(f"Excluding record {e.record_id}: {e.message}")
                malformed.append(MalformedRecord(e.record_id, e.message))
                continue
            except (TypeError, AttributeError) as e:
                self.logger.warning(f"Excluding unreadable record: {e}")
                malformed.append(MalformedRecord(None, str(e)))
                continue
            seen.add(record.id)
            accepted.append(record)

        return accepted, malformed

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score_bucket(
        self,
        bucket: CandidateBucket,
        records_by_id: Dict[str, EntityRecord],
        token: Optional[CancellationToken] = None
    ) -> BucketResult:
        """Score every planned pair of one bucket."""
        if token is not None:
            token.raise_if_cancelled()
        pairs, pruned = prefilter_pairs(bucket, records_by_id, self.scorer)
        results = tuple(
            self.scorer.score(records_by_id[a], records_by_id[b]) for a, b in pairs
        )
        self.logger.debug(
            f"Bucket {bucket.key!r}: {len(results)} pairs scored, {pruned} pruned"
        )
        return BucketResult(bucket.key, results, pruned)

    def iter_bucket_results(
        self,
        buckets: Sequence[CandidateBucket],
        records_by_id: Dict[str, EntityRecord],
        token: Optional[CancellationToken] = None
    ) -> Iterator[BucketResult]:
        """Score buckets in parallel and yield each as it completes.

        Raises:
            ResolutionCancelled: If the token is cancelled; pending buckets
                are abandoned and nothing partial is yielded
        """
        if not buckets:
            return
        own_executor = self.executor is None
        executor = self.executor or ThreadPoolExecutor(max_workers=self.config.max_workers)
        futures = []
        try:
            futures = [
                executor.submit(self.score_bucket, bucket, records_by_id, token)
                for bucket in buckets
            ]
            for future in as_completed(futures):
                if token is not None:
                    token.raise_if_cancelled()
                yield future.result()
        finally:
            for future in futures:
                future.cancel()
            if own_executor:
                executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        records: Iterable[Union[EntityRecord, Dict[str, Any]]],
        existing_golden_records: Sequence[GoldenRecord] = (),
        token: Optional[CancellationToken] = None
    ) -> ResolutionResult:
        """Resolve a batch of records into golden records.

        Args:
            records: Records of one tenant and entity type (objects or dicts)
            existing_golden_records: Golden records of earlier runs. Those
                whose sources are re-clustered are superseded by new
                versions; those with no source record in ``records`` are
                returned unchanged. A new record is only matched against
                an earlier golden record when that record's sources are
                supplied again.
            token: Optional cancellation token

        Returns:
            Resolution result

        Raises:
            ResolutionCancelled: If the run was cancelled
        """
        started = time.time()
        records = list(records)
        reference_time = self.reference_time or datetime.now(timezone.utc)
        run_id = uuid.uuid4().hex[:12]

        with ContextLogger(
            self.logger,
            run_id=run_id,
            tenant_id=self.config.tenant_id,
            entity_type=self.config.entity_type.value
        ) as log:
            accepted, malformed = self.prepare(records)
            records_by_id = {r.id: r for r in accepted}
            order = [r.id for r in accepted]

            quality_scorer = QualityScorer(self.config.quality, reference_time, logger=self.logger)
            quality: Dict[str, QualityScore] = {r.id: quality_scorer.score(r) for r in accepted}

            buckets, bucket_warnings = self.blocker.plan(accepted)
            log.info(
                f"Resolving {len(accepted)} records ({len(malformed)} excluded) "
                f"across {len(buckets)} buckets"
            )

            match_results: List[MatchResult] = []
            pruned = 0
            for bucket_result in self.iter_bucket_results(buckets, records_by_id, token):
                match_results.extend(bucket_result.results)
                pruned += bucket_result.pruned
            if token is not None:
                token.raise_if_cancelled()
            match_results.sort(key=lambda r: r.pair)

            # Barrier: every bucket is scored
            closure_checks = self._verify_closure(order, match_results, records_by_id)
            clusters, reports = self.clusterer.cluster(order, match_results + closure_checks)

            flags: Dict[str, List[str]] = {}
            for report in reports:
                for cluster in report.clusters:
                    flags[cluster[0]] = [report.flag]

            merger = GoldenRecordMerger(self.config.merge, quality_scorer, logger=self.logger)
            golden_records, superseded = self._merge_clusters(
                merger,
                clusters,
                flags,
                records_by_id,
                quality,
                existing_golden_records,
                reference_time
            )

            all_results = match_results + closure_checks
            possible = tuple(r for r in all_results if r.decision == MatchDecision.POSSIBLE_MATCH)
            anomalies = tuple(a for r in all_results for a in r.anomalies)
            review_conflicts = tuple(
                c for g in golden_records for c in g.conflicts if c.requires_manual_review
            )

            stats = ResolutionStats(
                records_in=len(records),
                records_accepted=len(accepted),
                records_malformed=len(malformed),
                buckets=len(buckets),
                candidate_pairs=sum(len(b.pairs) for b in buckets),
                pairs_scored=len(match_results),
                pairs_pruned=pruned,
                closure_checks=len(closure_checks),
                matches=sum(1 for r in all_results if r.decision == MatchDecision.MATCH),
                possible_matches=len(possible),
                clusters_split=len(reports),
                golden_records=len(golden_records),
                superseded=len(superseded),
                duration_seconds=round(time.time() - started, 3)
            )
            log.info(
                f"Resolved {stats.records_accepted} records into {stats.golden_records} "
                f"golden records ({stats.pairs_scored} pairs scored, "
                f"{stats.possible_matches} possible matches, {len(review_conflicts)} review conflicts)"
            )

        return ResolutionResult(
            golden_records=tuple(golden_records),
            superseded=tuple(superseded),
            match_results=tuple(match_results),
            possible_matches=possible,
            review_conflicts=review_conflicts,
            malformed_records=tuple(malformed),
            anomalies=anomalies,
            bucket_warnings=tuple(bucket_warnings),
            cluster_reports=tuple(reports),
            closure_checks=tuple(closure_checks),
            stats=stats
        )

    def _verify_closure(
        self,
        order: List[str],
        match_results: List[MatchResult],
        records_by_id: Dict[str, EntityRecord]
    ) -> List[MatchResult]:
        """Score the unscored pairs inside each connected match component."""
        if not self.config.verify_cluster_closure:
            return []
        positions = {record_id: i for i, record_id in enumerate(order)}
        graph = build_match_graph(order, match_results)
        scored = {r.pair for r in match_results}
        checks = []
        for component in self.clusterer.components(graph, positions):
            for a, b in unscored_pairs(component, scored):
                checks.append(self.scorer.score(records_by_id[a], records_by_id[b]))
        checks.sort(key=lambda r: r.pair)
        return checks

    def _merge_clusters(
        self,
        merger: GoldenRecordMerger,
        clusters: List[Tuple[str, ...]],
        flags: Dict[str, List[str]],
        records_by_id: Dict[str, EntityRecord],
        quality: Dict[str, QualityScore],
        existing: Sequence[GoldenRecord],
        merged_at: datetime
    ) -> Tuple[List[GoldenRecord], List[GoldenRecord]]:
        """Merge every cluster, versioning over earlier golden records.

        An earlier golden record is superseded by the new cluster holding
        most of its sources (first such cluster on ties). One whose source
        set is reproduced exactly, or none of whose sources are part of
        this run, is carried over unchanged.
        """
        current = [g for g in existing if g.superseded_by is None]
        successor: Dict[str, int] = {}
        for golden in current:
            sources = set(golden.source_record_ids)
            overlaps = [len(sources & set(cluster)) for cluster in clusters]
            if overlaps and max(overlaps) > 0:
                successor[golden.id] = overlaps.index(max(overlaps))

        golden_records: List[GoldenRecord] = []
        superseded: List[GoldenRecord] = []
        for index, cluster in enumerate(clusters):
            members = [records_by_id[record_id] for record_id in cluster]
            previous = [g for g in current if successor.get(g.id) == index]
            review_flags = flags.get(cluster[0], [])

            unchanged = [g for g in previous if set(g.source_record_ids) == set(cluster)]
            if unchanged and len(previous) == 1 and not review_flags:
                golden_records.append(unchanged[0])
                continue

            golden, replaced = merger.remerge(
                previous,
                members,
                quality=quality,
                review_flags=review_flags,
                merged_at=merged_at
            )
            golden_records.append(golden)
            superseded.extend(replaced)

        untouched = [g for g in current if g.id not in successor]
        if untouched:
            self.logger.info(
                f"Carrying over {len(untouched)} golden records without sources in this run"
            )
        golden_records.extend(untouched)

        return golden_records, superseded
