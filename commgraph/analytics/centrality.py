"""Degree and betweenness centrality for ranking influential participants."""
from __future__ import annotations

from collections import deque
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

import numpy as np

from ..data.models import CentralityReport, GraphView, KeyPlayer, MergedEdge
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_BETWEENNESS_NODE_LIMIT = 500
SORT_KEYS = ("degree", "betweenness", "messages", "sentiment")


def _neighbour_lists(
    node_ids: Sequence[str],
    edges: Iterable[MergedEdge],
) -> Tuple[Dict[str, int], List[List[int]]]:
    index = {node_id: position for position, node_id in enumerate(node_ids)}
    neighbour_sets: List[set] = [set() for _ in node_ids]
    for edge in edges:
        source = index.get(edge.sender_id)
        target = index.get(edge.recipient_id)
        if source is None or target is None or source == target:
            continue
        neighbour_sets[source].add(target)
        neighbour_sets[target].add(source)
    # Sorted so that accumulation order is reproducible.
    return index, [sorted(neighbours) for neighbours in neighbour_sets]


def degree_centrality(node_ids: Sequence[str], edges: Iterable[MergedEdge]) -> Dict[str, int]:
    """Number of distinct neighbours in the undirected projection."""
    _, neighbours = _neighbour_lists(node_ids, edges)
    return {node_id: len(neighbours[position]) for position, node_id in enumerate(node_ids)}


def betweenness_centrality(node_ids: Sequence[str], edges: Iterable[MergedEdge]) -> Dict[str, float]:
    """Brandes betweenness, normalised by ``(n-1)(n-2)/2``.

    Direction and weight are ignored. Dependencies are accumulated from every
    source, so each unordered pair contributes from both of its endpoints and
    a path centre in ``a - b - c`` scores 2.0. Graphs with fewer than three
    nodes score zero everywhere.
    """
    n = len(node_ids)
    if n < 3:
        return {node_id: 0.0 for node_id in node_ids}

    _, neighbours = _neighbour_lists(node_ids, edges)
    betweenness = np.zeros(n, dtype=np.float64)
    for source in range(n):
        stack: List[int] = []
        predecessors: List[List[int]] = [[] for _ in range(n)]
        sigma = np.zeros(n, dtype=np.float64)
        distance = np.full(n, -1, dtype=np.int64)
        sigma[source] = 1.0
        distance[source] = 0

        queue = deque([source])
        while queue:
            vertex = queue.popleft()
            stack.append(vertex)
            for neighbour in neighbours[vertex]:
                if distance[neighbour] < 0:
                    queue.append(neighbour)
                    distance[neighbour] = distance[vertex] + 1
                if distance[neighbour] == distance[vertex] + 1:
                    sigma[neighbour] += sigma[vertex]
                    predecessors[neighbour].append(vertex)

        delta = np.zeros(n, dtype=np.float64)
        while stack:
            vertex = stack.pop()
            for predecessor in predecessors[vertex]:
                delta[predecessor] += sigma[predecessor] / sigma[vertex] * (1.0 + delta[vertex])
            if vertex != source:
                betweenness[vertex] += delta[vertex]

    betweenness /= (n - 1) * (n - 2) / 2.0
    return {node_id: float(betweenness[position]) for position, node_id in enumerate(node_ids)}


def analyze_centrality(
    view: GraphView,
    betweenness_node_limit: int = DEFAULT_BETWEENNESS_NODE_LIMIT,
) -> CentralityReport:
    """Score every node of *view*; betweenness is skipped above the node limit."""
    node_ids = [node.id for node in view.nodes]
    degree = degree_centrality(node_ids, view.edges)
    if len(node_ids) > betweenness_node_limit:
        LOGGER.warning(
            "Skipping betweenness for %s nodes (limit %s); ranking falls back to degree",
            len(node_ids),
            betweenness_node_limit,
        )
        return CentralityReport(
            degree=degree,
            betweenness={node_id: 0.0 for node_id in node_ids},
            betweenness_computed=False,
        )
    return CentralityReport(
        degree=degree,
        betweenness=betweenness_centrality(node_ids, view.edges),
        betweenness_computed=True,
    )


def _sort_value(sort_key: str) -> Callable[[KeyPlayer], float]:
    if sort_key == "degree":
        return lambda player: float(player.degree)
    if sort_key == "betweenness":
        return lambda player: player.betweenness
    if sort_key == "messages":
        return lambda player: float(player.messages)
    return lambda player: player.avg_sentiment  # type: ignore[return-value]


def rank_key_players(
    view: GraphView,
    report: CentralityReport,
    sort_key: str = "betweenness",
    ascending: bool = False,
    limit: int | None = 20,
) -> List[KeyPlayer]:
    """Order the nodes of *view* by *sort_key* for a key-player table.

    Nodes without sentiment always sort last when ranking by sentiment; ties
    are broken by node id.
    """
    if sort_key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{sort_key}', expected one of {SORT_KEYS}")
    if sort_key == "betweenness" and not report.betweenness_computed:
        LOGGER.info("Betweenness unavailable; ranking by degree instead")
        sort_key = "degree"

    players = [
        KeyPlayer(
            id=node.id,
            degree=report.degree.get(node.id, 0),
            betweenness=report.betweenness.get(node.id, 0.0),
            messages=node.total_messages,
            avg_sentiment=node.avg_sentiment,
            community_id=node.community_id,
        )
        for node in view.nodes
    ]
    value = _sort_value(sort_key)
    scored = [player for player in players if sort_key != "sentiment" or player.avg_sentiment is not None]
    unscored = sorted(
        (player for player in players if sort_key == "sentiment" and player.avg_sentiment is None),
        key=lambda player: player.id,
    )
    sign = 1.0 if ascending else -1.0
    scored.sort(key=lambda player: (sign * value(player), player.id))
    ranked = scored + unscored
    return ranked[:limit] if limit is not None else ranked
