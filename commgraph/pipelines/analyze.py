"""End-to-end pipeline: normalise, merge, detect, build, rank, export."""
from __future__ import annotations

import hashlib
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..analytics.centrality import (
    DEFAULT_BETWEENNESS_NODE_LIMIT,
    analyze_centrality,
    rank_key_players,
)
from ..analytics.clusters import cluster_summary_to_dict, summarize_clusters
from ..analytics.metrics import compute_graph_metrics
from ..data.loader import load_raw_edges
from ..data.models import FilterSpec, GraphView, KeyPlayer, MergedEdge, RawEdge
from ..graph.builder import build_graph, select_ego_network
from ..graph.communities import DEFAULT_MAX_PASSES, detect_communities
from ..graph.identity import IdentityMap, build_identity_map
from ..graph.merge import merge_edges
from ..utils.config import config_section, load_config
from ..utils.io import write_json, write_jsonl
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class PipelineResult:
    """Everything one full recomputation produces."""

    identity_map: IdentityMap
    merged_edges: List[MergedEdge] = field(default_factory=list)
    full_communities: Dict[str, int] = field(default_factory=dict)
    view: GraphView = field(default_factory=GraphView)


def _identity_universe(raw_edges: Sequence[RawEdge]) -> List[str]:
    ids: List[str] = []
    for edge in raw_edges:
        if edge.sender_id and edge.recipient_id:
            ids.extend((edge.sender_id, edge.recipient_id))
    return ids


def _canonical_filters(filters: FilterSpec, identity_map: IdentityMap) -> FilterSpec:
    if filters.focus_node is None:
        return filters
    canonical = identity_map.canonical(filters.focus_node)
    if canonical == filters.focus_node:
        return filters
    LOGGER.debug("Focus node %s resolved to %s", filters.focus_node, canonical)
    return FilterSpec(
        min_messages=filters.min_messages,
        sentiment_range=filters.sentiment_range,
        negative_only=filters.negative_only,
        focus_node=canonical,
        communities=filters.communities,
    )


def analyze_communications(
    raw_edges: Iterable[RawEdge],
    filters: Optional[FilterSpec] = None,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> PipelineResult:
    """Run the whole core from scratch for one dataset and filter spec."""
    raw_edges = list(raw_edges)
    filters = filters or FilterSpec()

    identity_map = build_identity_map(_identity_universe(raw_edges))
    merged = merge_edges(raw_edges, identity_map)
    full_communities = detect_communities(merged, max_passes=max_passes)
    view = build_graph(
        merged,
        full_communities,
        _canonical_filters(filters, identity_map),
        max_passes=max_passes,
    )
    return PipelineResult(
        identity_map=identity_map,
        merged_edges=merged,
        full_communities=full_communities,
        view=view,
    )


def edge_set_fingerprint(edges: Iterable[MergedEdge]) -> str:
    """SHA-256 over the sorted weighted pairs of *edges*."""
    digest = hashlib.sha256()
    for sender, recipient, count in sorted(
        (edge.sender_id, edge.recipient_id, edge.message_count) for edge in edges
    ):
        digest.update(f"{sender}\0{recipient}\0{count}\n".encode("utf-8"))
    return digest.hexdigest()


class CommunityCache:
    """Bounded cache of community maps keyed by edge-set fingerprint.

    Instances are owned by a caller; nothing is shared at module level.
    """

    def __init__(self, max_entries: int = 8) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[tuple[str, int], Dict[str, int]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get_or_detect(self, edges: Sequence[MergedEdge], max_passes: int = DEFAULT_MAX_PASSES) -> Dict[str, int]:
        key = (edge_set_fingerprint(edges), max_passes)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            self._entries.move_to_end(key)
            return dict(cached)
        self.misses += 1
        communities = detect_communities(edges, max_passes=max_passes)
        self._entries[key] = dict(communities)
        if len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return communities

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def detect_full_communities(
    raw_edges: Iterable[RawEdge],
    cache: Optional[CommunityCache] = None,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> Dict[str, int]:
    """Community detection over the whole unfiltered dataset.

    This is the entry point for callers outside the interactive graph build.
    It runs the same normalisation, merge and detection as
    :func:`analyze_communications`, so both produce the same partition.
    """
    raw_edges = list(raw_edges)
    identity_map = build_identity_map(_identity_universe(raw_edges))
    merged = merge_edges(raw_edges, identity_map)
    if cache is None:
        return detect_communities(merged, max_passes=max_passes)
    return cache.get_or_detect(merged, max_passes=max_passes)


def run_pipeline(config_path: str | Path = "config/pipeline.yaml") -> PipelineResult:
    config = load_config(config_path)
    data_cfg = config_section(config, "data")
    edges_path = data_cfg.get("edges_path")
    if not edges_path:
        raise ValueError("data.edges_path must be set in the pipeline configuration")

    raw_edges = load_raw_edges(edges_path)
    filters = FilterSpec.from_mapping(config_section(config, "filters"))
    community_cfg = config_section(config, "community")
    result = analyze_communications(
        raw_edges,
        filters,
        max_passes=int(community_cfg.get("max_passes", DEFAULT_MAX_PASSES)),
    )
    if result.view.is_empty:
        LOGGER.warning("No edges survived the filters; writing empty outputs")

    view = result.view
    ego_cfg = config_section(config, "ego")
    ego_focus: Optional[str] = None
    if ego_cfg.get("focus_node"):
        ego_focus = result.identity_map.canonical(str(ego_cfg["focus_node"]))
        view = select_ego_network(view, ego_focus)

    centrality_cfg = config_section(config, "centrality")
    report = analyze_centrality(
        view,
        betweenness_node_limit=int(
            centrality_cfg.get("betweenness_node_limit", DEFAULT_BETWEENNESS_NODE_LIMIT)
        ),
    )
    key_players = rank_key_players(
        view,
        report,
        sort_key=centrality_cfg.get("sort_key", "betweenness"),
        limit=centrality_cfg.get("top_n", 20),
    )

    output_cfg = config_section(config, "output")
    graph_path = output_cfg.get("graph_path")
    if graph_path:
        write_graph_snapshot(view, graph_path, ego_focus=ego_focus)
    key_players_path = output_cfg.get("key_players_path")
    if key_players_path:
        write_json(
            key_players_path,
            {
                "betweenness_computed": report.betweenness_computed,
                "players": [_key_player_to_dict(player) for player in key_players],
            },
        )
    clusters_path = output_cfg.get("clusters_path")
    if clusters_path:
        write_json(clusters_path, [cluster_summary_to_dict(summary) for summary in summarize_clusters(view)])
    metrics_path = output_cfg.get("metrics_path")
    if metrics_path:
        metrics_payload = compute_graph_metrics(view)
        metadata = metrics_payload["metadata"]
        if isinstance(metadata, dict):
            metadata["merged_identities"] = len(result.identity_map.merged_groups())
            metadata["total_merged_edges"] = len(result.merged_edges)
        write_json(metrics_path, metrics_payload)
    merged_edges_path = output_cfg.get("merged_edges_path")
    if merged_edges_path:
        write_jsonl(merged_edges_path, (edge.to_dict() for edge in result.merged_edges))

    LOGGER.info(
        "Pipeline finished: %s nodes, %s edges visible of %s merged edges",
        len(view.nodes),
        len(view.edges),
        len(result.merged_edges),
    )
    return result


def _key_player_to_dict(player: KeyPlayer) -> Dict[str, object]:
    return {
        "id": player.id,
        "degree": player.degree,
        "betweenness": player.betweenness,
        "messages": player.messages,
        "avg_sentiment": player.avg_sentiment,
        "community_id": player.community_id,
    }


def write_graph_snapshot(view: GraphView, path: str | Path, ego_focus: Optional[str] = None) -> None:
    """Write nodes, edges and the community map of *view* as one JSON document.

    For an ego view, *ego_focus* is recorded and ``communities`` keeps the
    labels of the full view it was cut from, so the labels need not be
    contiguous.
    """
    if not path:
        return
    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "ego_focus": ego_focus,
        "community_labels": "full_view" if ego_focus else "view",
        "nodes": [node.to_dict() for node in view.nodes],
        "edges": [edge.to_dict() for edge in view.edges],
        "communities": dict(sorted(view.communities.items())),
    }
    write_json(path, payload)
    LOGGER.info("Saved graph snapshot to %s", path)
