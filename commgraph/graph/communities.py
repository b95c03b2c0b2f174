"""Single-level greedy modularity optimisation (the Louvain local-move phase).

Both the interactive graph build and the unfiltered analytics call site use
:func:`detect_communities`. Edges are sorted before the node order is fixed,
so two calls over the same edge set produce the same partition regardless of
the order the edges arrived in.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_MAX_PASSES = 20


class WeightedEdge(Protocol):
    sender_id: str
    recipient_id: str
    message_count: Optional[int]


@dataclass(slots=True)
class _UndirectedGraph:
    node_ids: List[str]
    adjacency: List[List[Tuple[int, float]]]
    total_weight: float


@dataclass(slots=True)
class _LocalMoveState:
    """Working arrays for one detection call."""

    degree: np.ndarray
    community: np.ndarray
    community_total_degree: np.ndarray

    @classmethod
    def singletons(cls, graph: _UndirectedGraph) -> "_LocalMoveState":
        degree = np.array(
            [sum(weight for _, weight in neighbours) for neighbours in graph.adjacency],
            dtype=np.float64,
        )
        return cls(
            degree=degree,
            community=np.arange(len(graph.node_ids), dtype=np.int64),
            community_total_degree=degree.copy(),
        )


def _edge_weight(edge: WeightedEdge) -> float:
    count = edge.message_count
    return 1.0 if count is None else float(max(count, 0))


def _build_undirected_graph(edges: Iterable[WeightedEdge]) -> _UndirectedGraph:
    ordered = sorted(
        (edge for edge in edges if edge.sender_id and edge.recipient_id),
        key=lambda edge: (edge.sender_id, edge.recipient_id),
    )
    node_index: Dict[str, int] = {}
    pair_weights: Dict[Tuple[str, str], float] = {}
    for edge in ordered:
        for endpoint in (edge.sender_id, edge.recipient_id):
            if endpoint not in node_index:
                node_index[endpoint] = len(node_index)
        pair = (
            (edge.sender_id, edge.recipient_id)
            if edge.sender_id <= edge.recipient_id
            else (edge.recipient_id, edge.sender_id)
        )
        pair_weights[pair] = pair_weights.get(pair, 0.0) + _edge_weight(edge)

    adjacency: List[List[Tuple[int, float]]] = [[] for _ in node_index]
    total_weight = 0.0
    for (left, right), weight in pair_weights.items():
        left_index = node_index[left]
        right_index = node_index[right]
        adjacency[left_index].append((right_index, weight))
        adjacency[right_index].append((left_index, weight))
        total_weight += weight
    return _UndirectedGraph(list(node_index), adjacency, total_weight)


def _local_move_pass(graph: _UndirectedGraph, state: _LocalMoveState, m2: float) -> int:
    moves = 0
    community = state.community
    totals = state.community_total_degree
    for node in range(len(graph.node_ids)):
        current = int(community[node])
        node_degree = state.degree[node]

        weight_into: Dict[int, float] = {}
        for neighbour, weight in graph.adjacency[node]:
            neighbour_community = int(community[neighbour])
            weight_into[neighbour_community] = weight_into.get(neighbour_community, 0.0) + weight
        weight_to_own = weight_into.get(current, 0.0)

        totals[current] -= node_degree

        best_community = current
        best_gain = 0.0
        for candidate, weight in weight_into.items():
            gain = weight - totals[candidate] * node_degree / m2
            if gain > best_gain:
                best_gain = gain
                best_community = candidate

        # The incumbent community wins exact ties.
        stay_gain = weight_to_own - totals[current] * node_degree / m2
        if stay_gain >= best_gain:
            best_community = current

        community[node] = best_community
        totals[best_community] += node_degree
        if best_community != current:
            moves += 1
    return moves


def _dense_labels(node_ids: Sequence[str], community: np.ndarray) -> Dict[str, int]:
    remap: Dict[int, int] = {}
    result: Dict[str, int] = {}
    for index, node_id in enumerate(node_ids):
        raw_label = int(community[index])
        if raw_label not in remap:
            remap[raw_label] = len(remap)
        result[node_id] = remap[raw_label]
    return result


def detect_communities(
    edges: Iterable[WeightedEdge],
    max_passes: int = DEFAULT_MAX_PASSES,
) -> Dict[str, int]:
    """Partition the undirected projection of *edges* into communities.

    Edge weight between a pair is the summed ``message_count`` of both
    directions. Labels are dense, ``0..k-1``, assigned in node order. With zero
    total weight every node lands in community 0.
    """
    graph = _build_undirected_graph(edges)
    if not graph.node_ids:
        return {}
    if graph.total_weight == 0:
        LOGGER.info("Graph has no weight; assigning %s nodes to one community", len(graph.node_ids))
        return {node_id: 0 for node_id in graph.node_ids}

    state = _LocalMoveState.singletons(graph)
    m2 = 2.0 * graph.total_weight
    passes = 0
    for passes in range(1, max_passes + 1):
        moves = _local_move_pass(graph, state, m2)
        LOGGER.debug("Local move pass %s moved %s nodes", passes, moves)
        if moves == 0:
            break

    communities = _dense_labels(graph.node_ids, state.community)
    LOGGER.info(
        "Detected %s communities across %s nodes in %s passes",
        len(set(communities.values())),
        len(communities),
        passes,
    )
    return communities


def partition_modularity(edges: Iterable[WeightedEdge], communities: Dict[str, int]) -> float:
    """Newman modularity of *communities* over the weighted undirected graph."""
    graph = _build_undirected_graph(edges)
    if graph.total_weight == 0:
        return 0.0
    m2 = 2.0 * graph.total_weight
    internal: Dict[int, float] = defaultdict(float)
    totals: Dict[int, float] = defaultdict(float)
    for index, node_id in enumerate(graph.node_ids):
        label = communities.get(node_id)
        for neighbour, weight in graph.adjacency[index]:
            totals[label] += weight
            if communities.get(graph.node_ids[neighbour]) == label:
                internal[label] += weight
    return sum(internal[label] / m2 - (totals[label] / m2) ** 2 for label in totals)


def group_members(communities: Dict[str, int]) -> Dict[int, List[str]]:
    """Invert a community map into ``{community_id: sorted member ids}``."""
    members: Dict[int, List[str]] = defaultdict(list)
    for node_id, community_id in communities.items():
        members[community_id].append(node_id)
    return {community_id: sorted(ids) for community_id, ids in sorted(members.items())}
