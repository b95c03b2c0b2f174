import pytest

from commgraph.analytics.clusters import (
    cluster_summary_to_dict,
    community_overview,
    summarize_clusters,
)
from commgraph.data.models import GraphView, MergedEdge
from commgraph.graph.builder import build_graph
from commgraph.graph.communities import detect_communities


def make_edge(sender: str, recipient: str, count: int) -> MergedEdge:
    return MergedEdge(sender, recipient, count, None, None, 1)


def test_summaries_describe_each_team(two_team_edges):
    view = build_graph(two_team_edges, detect_communities(two_team_edges))
    first, second = summarize_clusters(view)

    assert first.community_id == view.communities["alice"]
    assert first.member_count == 3
    assert first.members == [("alice", 20), ("bob", 19), ("carol", 12)]
    assert first.internal_edges == 4
    assert first.internal_messages == 25
    assert first.external_edges == 1
    assert first.avg_sentiment == pytest.approx((0.5 - 0.3 + 0.2) / 3)
    assert first.sentiment_counts == {"positive": 2, "negative": 1, "unknown": 1}
    assert first.top_communicator == "alice"
    assert first.bridge_members == ["carol"]
    assert first.cross_community_edges == {second.community_id: 1}

    assert second.members == [("erin", 17), ("dave", 16), ("frank", 16)]
    assert second.internal_edges == 3
    assert second.internal_messages == 24
    assert second.sentiment_counts == {"neutral": 3}
    assert second.bridge_members == ["dave"]


def test_summaries_are_largest_first():
    edges = [
        make_edge("a", "b", 9),
        make_edge("b", "c", 9),
        make_edge("c", "a", 9),
        make_edge("x", "y", 4),
    ]
    view = build_graph(edges, detect_communities(edges))
    summaries = summarize_clusters(view)
    assert [summary.member_count for summary in summaries] == [3, 2]
    assert summaries[1].avg_sentiment is None
    assert summaries[1].sentiment_counts == {"unknown": 1}


def test_empty_view_has_no_clusters():
    assert summarize_clusters(GraphView()) == []


def test_community_overview_orders_by_size():
    overview = community_overview({"a": 0, "b": 0, "c": 1, "d": 2, "e": 2, "f": 2})
    assert overview["community_count"] == 3
    assert overview["largest"] == {"community_id": 2, "members": 3}
    assert overview["smallest"] == {"community_id": 1, "members": 1}
    assert [entry["community_id"] for entry in overview["sizes"]] == [2, 0, 1]
    assert community_overview({})["largest"] is None


def test_cluster_summary_is_json_ready(two_team_edges):
    view = build_graph(two_team_edges, detect_communities(two_team_edges))
    payload = cluster_summary_to_dict(summarize_clusters(view)[0])
    assert payload["members"][0] == {"id": "alice", "total_messages": 20}
    assert all(isinstance(key, str) for key in payload["cross_community_edges"])
