"""Aggregation helpers producing dashboard-ready metrics."""
from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from itertools import combinations
from statistics import median, quantiles
from typing import Dict, List, Set

from ..data.models import GraphView
from ..graph.builder import build_adjacency
from ..graph.communities import partition_modularity

LOW_CONFIDENCE_SOURCE_EDGES = 3


def _average_clustering(adjacency: Dict[str, Set[str]]) -> float:
    clustering_values: List[float] = []
    for neighbours in adjacency.values():
        degree = len(neighbours)
        if degree < 2:
            continue
        possible_edges = degree * (degree - 1) / 2
        closed_edges = sum(
            1 for left, right in combinations(sorted(neighbours), 2) if right in adjacency[left]
        )
        clustering_values.append(closed_edges / possible_edges)
    if not clustering_values:
        return 0.0
    return sum(clustering_values) / len(clustering_values)


def _connected_components(adjacency: Dict[str, Set[str]]) -> List[Set[str]]:
    components: List[Set[str]] = []
    visited: Set[str] = set()
    for node in sorted(adjacency):
        if node in visited:
            continue
        stack = [node]
        component: Set[str] = set()
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            component.add(current)
            stack.extend(neighbour for neighbour in adjacency[current] if neighbour not in visited)
        components.append(component)
    return components


def compute_graph_metrics(view: GraphView) -> Dict[str, object]:
    """Compute aggregate metrics for a built `GraphView`.

    The returned dictionary is JSON-serialisable and suitable for dashboard consumption.
    """
    num_nodes = len(view.nodes)
    metrics: Dict[str, object] = {
        "metadata": {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "num_nodes": num_nodes,
            "num_edges": len(view.edges),
            "num_communities": len(set(view.communities.values())),
        },
    }

    if not view.edges:
        metrics.update(
            {
                "edge_summary": {
                    "sentiment_label_counts": {},
                    "total_messages": 0,
                    "avg_message_count": 0.0,
                    "low_confidence_edges": 0,
                    "graph_density": 0.0,
                },
                "graph_summary": {},
                "top_nodes_by_volume": [],
            }
        )
        return metrics

    message_counts = [edge.message_count for edge in view.edges]
    label_counter = Counter(
        edge.sentiment_label.value if edge.sentiment_label else "unknown" for edge in view.edges
    )
    density = 0.0
    if num_nodes > 1:
        density = len(view.edges) / (num_nodes * (num_nodes - 1))

    adjacency = build_adjacency(view.edges)
    degree_values = [len(neighbours) for neighbours in adjacency.values()]
    components = _connected_components(adjacency)

    top_nodes = sorted(view.nodes, key=lambda node: (-node.total_messages, node.id))[:10]

    metrics.update(
        {
            "edge_summary": {
                "sentiment_label_counts": dict(label_counter),
                "total_messages": sum(message_counts),
                "avg_message_count": sum(message_counts) / len(message_counts),
                "median_message_count": median(message_counts),
                "max_message_count": max(message_counts),
                "min_message_count": min(message_counts),
                "low_confidence_edges": sum(
                    1 for edge in view.edges if edge.source_edge_count < LOW_CONFIDENCE_SOURCE_EDGES
                ),
                "graph_density": density,
            },
            "graph_summary": {
                "average_degree": sum(degree_values) / num_nodes,
                "max_degree": max(degree_values, default=0),
                "median_degree": median(degree_values),
                "degree_percentile_90": (
                    quantiles(degree_values, n=10, method="inclusive")[8]
                    if len(degree_values) > 1
                    else float(max(degree_values, default=0))
                ),
                "connected_components": len(components),
                "largest_component_size": max((len(component) for component in components), default=0),
                "isolated_nodes": sum(1 for neighbours in adjacency.values() if not neighbours),
                "average_clustering_coefficient": _average_clustering(adjacency),
                "bridge_nodes": sum(1 for node in view.nodes if node.is_bridge),
                "modularity": partition_modularity(view.edges, view.communities),
            },
            "top_nodes_by_volume": [
                {
                    "id": node.id,
                    "total_messages": node.total_messages,
                    "community_id": node.community_id,
                    "avg_sentiment": node.avg_sentiment,
                }
                for node in top_nodes
            ],
        }
    )
    return metrics
