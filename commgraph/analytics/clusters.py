"""Per-community summaries for cluster panels and the analytics backend."""
from __future__ import annotations

from collections import Counter, defaultdict
from typing import DefaultDict, Dict, List, Mapping, Set

from ..data.models import ClusterSummary, GraphView
from ..graph.communities import group_members
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

UNKNOWN_SENTIMENT = "unknown"


def _summarize_community(
    community_id: int,
    members: Set[str],
    view: GraphView,
    volumes: Mapping[str, int],
) -> ClusterSummary:
    summary = ClusterSummary(community_id=community_id, member_count=len(members))
    sentiment_counts: Counter = Counter()
    polarities: List[float] = []
    cross_edges: Counter = Counter()
    bridges: Set[str] = set()

    for edge in view.edges:
        sender_in = edge.sender_id in members
        recipient_in = edge.recipient_id in members
        if sender_in and recipient_in:
            summary.internal_edges += 1
            summary.internal_messages += edge.message_count
            if edge.avg_polarity is not None:
                polarities.append(edge.avg_polarity)
            label = edge.sentiment_label.value if edge.sentiment_label else UNKNOWN_SENTIMENT
            sentiment_counts[label] += 1
        elif sender_in or recipient_in:
            summary.external_edges += 1
            inside, outside = (
                (edge.sender_id, edge.recipient_id) if sender_in else (edge.recipient_id, edge.sender_id)
            )
            other_community = view.communities.get(outside)
            if other_community is not None and other_community != community_id:
                cross_edges[other_community] += 1
                bridges.add(inside)

    ordered_members = sorted(members, key=lambda member: (-volumes.get(member, 0), member))
    summary.members = [(member, volumes.get(member, 0)) for member in ordered_members]
    summary.avg_sentiment = sum(polarities) / len(polarities) if polarities else None
    summary.sentiment_counts = dict(sentiment_counts)
    if ordered_members and volumes.get(ordered_members[0], 0) > 0:
        summary.top_communicator = ordered_members[0]
    summary.bridge_members = sorted(bridges)
    summary.cross_community_edges = dict(
        sorted(cross_edges.items(), key=lambda item: (-item[1], item[0]))
    )
    return summary


def summarize_clusters(view: GraphView) -> List[ClusterSummary]:
    """One summary per community in *view*, largest first.

    Each request scans the filtered edge set once per community.
    """
    members_by_community: DefaultDict[int, Set[str]] = defaultdict(set)
    for node in view.nodes:
        if node.community_id is not None:
            members_by_community[node.community_id].add(node.id)
    volumes = {node.id: node.total_messages for node in view.nodes}

    summaries = [
        _summarize_community(community_id, members, view, volumes)
        for community_id, members in members_by_community.items()
    ]
    summaries.sort(key=lambda summary: (-summary.member_count, summary.community_id))
    LOGGER.debug("Summarised %s communities", len(summaries))
    return summaries


def community_overview(communities: Mapping[str, int]) -> Dict[str, object]:
    """Community count and sizes, largest first."""
    sizes = sorted(
        ((community_id, len(members)) for community_id, members in group_members(dict(communities)).items()),
        key=lambda item: (-item[1], item[0]),
    )
    overview: Dict[str, object] = {
        "community_count": len(sizes),
        "sizes": [{"community_id": community_id, "members": size} for community_id, size in sizes],
        "largest": None,
        "smallest": None,
    }
    if sizes:
        overview["largest"] = {"community_id": sizes[0][0], "members": sizes[0][1]}
        overview["smallest"] = {"community_id": sizes[-1][0], "members": sizes[-1][1]}
    return overview


def cluster_summary_to_dict(summary: ClusterSummary) -> Dict[str, object]:
    return {
        "community_id": summary.community_id,
        "member_count": summary.member_count,
        "members": [{"id": member, "total_messages": volume} for member, volume in summary.members],
        "internal_edges": summary.internal_edges,
        "external_edges": summary.external_edges,
        "internal_messages": summary.internal_messages,
        "avg_sentiment": summary.avg_sentiment,
        "sentiment_counts": summary.sentiment_counts,
        "top_communicator": summary.top_communicator,
        "bridge_members": summary.bridge_members,
        "cross_community_edges": {str(key): value for key, value in summary.cross_community_edges.items()},
    }
