"""
Duplicate clustering over the match graph.

Pairwise ``match`` decisions are not transitive: A~B and B~C may hold
while A vs C scores ``no_match``. Connected components of the match
graph are therefore split with minimum s-t cuts until no component
contains a scored ``no_match`` pair, and every split is reported.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging

import networkx as nx

from ..model import MatchDecision, MatchResult


Pair = Tuple[str, str]


@dataclass(frozen=True)
class ClusterReport:
    """A component that had to be split because it was not transitive."""
    component: Tuple[str, ...]
    clusters: Tuple[Tuple[str, ...], ...]
    violating_pairs: Tuple[Pair, ...]
    cut_edges: Tuple[Pair, ...]

    @property
    def flag(self) -> str:
        pairs = ", ".join(f"{a}/{b}" for a, b in self.violating_pairs)
        return f"split non-transitive cluster (no_match pairs: {pairs})"


def _pair(a: str, b: str) -> Pair:
    return (a, b) if a < b else (b, a)


def build_match_graph(record_ids: Sequence[str], results: Iterable[MatchResult]) -> nx.Graph:
    """Graph over all record ids with an edge per ``match`` decision.

    Edge capacity is the pair's aggregate score. Nodes and edges are
    inserted in sorted order so graph algorithms behave deterministically.
    """
    graph = nx.Graph()
    graph.add_nodes_from(record_ids)
    edges = sorted(
        (r.record_id_a, r.record_id_b, r.aggregate_score)
        for r in results if r.decision == MatchDecision.MATCH
    )
    for a, b, score in edges:
        graph.add_edge(a, b, capacity=score)
    return graph


class DuplicateClusterer:
    """Turns pairwise decisions into disjoint duplicate clusters."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def components(self, graph: nx.Graph, order: Dict[str, int]) -> List[Tuple[str, ...]]:
        """Connected components, members and components in input order."""
        found = [
            tuple(sorted(component, key=order.__getitem__))
            for component in nx.connected_components(graph)
        ]
        return sorted(found, key=lambda c: order[c[0]])

    def split(
        self,
        graph: nx.Graph,
        component: Sequence[str],
        no_match_pairs: Set[Pair],
        order: Dict[str, int]
    ) -> Tuple[List[Tuple[str, ...]], Optional[ClusterReport]]:
        """Split a component until none of its parts holds a no_match pair.

        Returns:
            Tuple of (resulting clusters, report if a split happened)
        """
        members = set(component)
        violating = sorted(p for p in no_match_pairs if p[0] in members and p[1] in members)
        if not violating:
            return [tuple(component)], None

        pending = [set(component)]
        done: List[Set[str]] = []
        cut_edges: Set[Pair] = set()

        while pending:
            part = pending.pop()
            pair = next(
                (p for p in violating if p[0] in part and p[1] in part),
                None
            )
            if pair is None:
                done.append(part)
                continue

            subgraph = graph.subgraph(sorted(part)).copy()
            _, (source_side, sink_side) = nx.minimum_cut(
                subgraph, pair[0], pair[1], capacity="capacity"
            )
            for a, b in subgraph.edges():
                if (a in source_side) != (b in source_side):
                    cut_edges.add(_pair(a, b))

            # Each side may fall apart once the cut edges are gone
            for side in (source_side, sink_side):
                for piece in nx.connected_components(subgraph.subgraph(side)):
                    pending.append(set(piece))

        clusters = sorted(
            (tuple(sorted(c, key=order.__getitem__)) for c in done),
            key=lambda c: order[c[0]]
        )
        report = ClusterReport(
            component=tuple(component),
            clusters=tuple(clusters),
            violating_pairs=tuple(violating),
            cut_edges=tuple(sorted(cut_edges))
        )
        self.logger.info(
            f"Split non-transitive component of {len(component)} records "
            f"into {len(clusters)} clusters ({len(violating)} no_match pairs)"
        )
        return clusters, report

    def cluster(
        self,
        record_ids: Sequence[str],
        results: Iterable[MatchResult]
    ) -> Tuple[List[Tuple[str, ...]], List[ClusterReport]]:
        """Cluster records from their scored pairs.

        Args:
            record_ids: Every record of the run in input order
            results: All scored pairs, closure checks included

        Returns:
            Tuple of (clusters covering every record once, split reports)
        """
        results = list(results)
        order = {record_id: i for i, record_id in enumerate(record_ids)}
        graph = build_match_graph(record_ids, results)
        no_match_pairs = {
            _pair(r.record_id_a, r.record_id_b)
            for r in results if r.decision == MatchDecision.NO_MATCH
        }

        clusters: List[Tuple[str, ...]] = []
        reports: List[ClusterReport] = []
        for component in self.components(graph, order):
            parts, report = self.split(graph, component, no_match_pairs, order)
            clusters.extend(parts)
            if report is not None:
                reports.append(report)

        clusters.sort(key=lambda c: order[c[0]])
        return clusters, reports


def unscored_pairs(cluster: Sequence[str], scored: Set[Pair]) -> List[Pair]:
    """Pairs inside a cluster that have no score yet."""
    missing = []
    for i, a in enumerate(cluster):
        for b in cluster[i + 1:]:
            pair = _pair(a, b)
            if pair not in scored:
                missing.append(pair)
    return missing
