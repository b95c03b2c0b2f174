"""Filter merged edges and annotate the nodes that remain visible."""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import DefaultDict, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..data.models import FilterSpec, GraphView, MergedEdge, Node
from ..utils.logging import get_logger
from .communities import DEFAULT_MAX_PASSES, detect_communities

LOGGER = get_logger(__name__)


def _passes_sentiment(edge: MergedEdge, filters: FilterSpec) -> bool:
    if filters.negative_only and (edge.avg_polarity is None or edge.avg_polarity >= 0):
        return False
    if not filters.sentiment_range_enforced:
        return True
    if edge.avg_polarity is None:
        return False
    low, high = filters.sentiment_range
    return low <= edge.avg_polarity <= high


def _passes_community(
    edge: MergedEdge,
    filters: FilterSpec,
    communities: Mapping[str, int],
) -> bool:
    if not filters.communities:
        return True
    return (
        communities.get(edge.sender_id) in filters.communities
        or communities.get(edge.recipient_id) in filters.communities
    )


def filter_edges(
    edges: Iterable[MergedEdge],
    filters: FilterSpec,
    communities: Mapping[str, int],
) -> List[MergedEdge]:
    """Apply every active filter in *filters* conjunctively."""
    kept: List[MergedEdge] = []
    for edge in edges:
        if edge.message_count < filters.min_messages:
            continue
        if not _passes_sentiment(edge, filters):
            continue
        if filters.focus_node is not None and not edge.touches(filters.focus_node):
            continue
        if not _passes_community(edge, filters, communities):
            continue
        kept.append(edge)
    return kept


def build_adjacency(edges: Iterable[MergedEdge]) -> Dict[str, Set[str]]:
    """Undirected neighbour sets; a self-edge does not make a node its own neighbour."""
    adjacency: Dict[str, Set[str]] = {}
    for edge in edges:
        sender_neighbours = adjacency.setdefault(edge.sender_id, set())
        recipient_neighbours = adjacency.setdefault(edge.recipient_id, set())
        if edge.sender_id != edge.recipient_id:
            sender_neighbours.add(edge.recipient_id)
            recipient_neighbours.add(edge.sender_id)
    return adjacency


@dataclass(slots=True)
class _NodeTotals:
    total_messages: int = 0
    sent_polarity_terms: List[float] = field(default_factory=list)
    sent_polarity_weight: int = 0

    @property
    def avg_sentiment(self) -> Optional[float]:
        if self.sent_polarity_weight == 0:
            return None
        return math.fsum(self.sent_polarity_terms) / self.sent_polarity_weight


def _accumulate_node_totals(edges: Iterable[MergedEdge]) -> Dict[str, _NodeTotals]:
    totals: DefaultDict[str, _NodeTotals] = defaultdict(_NodeTotals)
    for edge in edges:
        sender = totals[edge.sender_id]
        sender.total_messages += edge.message_count
        if edge.recipient_id != edge.sender_id:
            totals[edge.recipient_id].total_messages += edge.message_count
        # Sentiment is attributed to the speaker only.
        if edge.avg_polarity is not None:
            sender.sent_polarity_terms.append(edge.message_count * edge.avg_polarity)
            sender.sent_polarity_weight += edge.message_count
    return dict(totals)


def is_bridge(
    node_id: str,
    adjacency: Mapping[str, Set[str]],
    communities: Mapping[str, int],
) -> bool:
    """True iff the node's neighbours span at least two communities."""
    neighbour_communities = {
        communities[neighbour]
        for neighbour in adjacency.get(node_id, ())
        if neighbour in communities
    }
    return len(neighbour_communities) >= 2


def annotate_nodes(
    edges: Sequence[MergedEdge],
    communities: Mapping[str, int],
) -> List[Node]:
    adjacency = build_adjacency(edges)
    totals = _accumulate_node_totals(edges)
    return [
        Node(
            id=node_id,
            community_id=communities.get(node_id),
            total_messages=totals[node_id].total_messages,
            avg_sentiment=totals[node_id].avg_sentiment,
            is_bridge=is_bridge(node_id, adjacency, communities),
        )
        for node_id in sorted(totals)
    ]


def build_graph(
    edges: Sequence[MergedEdge],
    communities: Mapping[str, int],
    filters: Optional[FilterSpec] = None,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> GraphView:
    """Build the visible graph for *filters*.

    *communities* is the assignment over the unfiltered edges and is only used
    to evaluate the community selection. Communities for the returned view are
    detected again on the filtered edges.
    """
    filters = filters or FilterSpec()
    visible_edges = filter_edges(edges, filters, communities)
    if not visible_edges:
        LOGGER.info("No edges survived the active filters")
        return GraphView(filters=filters)

    visible_communities = detect_communities(visible_edges, max_passes=max_passes)
    nodes = annotate_nodes(visible_edges, visible_communities)
    LOGGER.info(
        "Built graph with %s nodes, %s edges, %s communities (from %s merged edges)",
        len(nodes),
        len(visible_edges),
        len(set(visible_communities.values())),
        len(edges),
    )
    return GraphView(
        nodes=nodes,
        edges=visible_edges,
        communities=visible_communities,
        filters=filters,
    )


def select_ego_network(view: GraphView, focus_id: str) -> GraphView:
    """Restrict *view* to *focus_id* and its direct neighbours.

    Node annotations and community labels are carried over from *view*.
    """
    ego_edges = [edge for edge in view.edges if edge.touches(focus_id)]
    if not ego_edges:
        LOGGER.info("Focus node %s has no visible edges", focus_id)
        return GraphView(filters=view.filters)

    members = {focus_id}
    for edge in ego_edges:
        members.update((edge.sender_id, edge.recipient_id))
    return GraphView(
        nodes=[node for node in view.nodes if node.id in members],
        edges=ego_edges,
        communities={
            node_id: label for node_id, label in view.communities.items() if node_id in members
        },
        filters=view.filters,
    )
