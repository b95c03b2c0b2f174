import pytest

from commgraph.data.models import FilterSpec, MergedEdge
from commgraph.graph.builder import build_graph, filter_edges, select_ego_network
from commgraph.graph.communities import detect_communities
from commgraph.graph.merge import sentiment_label


def edge(sender: str, recipient: str, count: int = 1, polarity=None) -> MergedEdge:
    return MergedEdge(
        sender_id=sender,
        recipient_id=recipient,
        message_count=count,
        avg_polarity=polarity,
        sentiment_label=sentiment_label(polarity),
        source_edge_count=1,
    )


def sample_edges():
    return [
        edge("alice", "bob", 10, 0.5),
        edge("bob", "alice", 4, -0.3),
        edge("alice", "carol", 6, 0.2),
        edge("bob", "carol", 5, None),
        edge("carol", "dave", 1, -0.8),
        edge("dave", "erin", 8, 0.0),
        edge("erin", "frank", 9, 0.1),
        edge("frank", "dave", 7, -0.05),
    ]


def test_min_messages_filter_is_monotonic():
    edges = sample_edges()
    counts = [
        len(filter_edges(edges, FilterSpec(min_messages=threshold), {}))
        for threshold in range(0, 12)
    ]
    assert counts == sorted(counts, reverse=True)
    assert counts[0] == len(edges)
    assert counts[11] == 0


def test_full_sentiment_range_keeps_null_polarity():
    edges = sample_edges()
    kept = filter_edges(edges, FilterSpec(), {})
    assert edge("bob", "carol", 5, None) in kept


def test_narrow_sentiment_range_excludes_null_polarity():
    kept = filter_edges(sample_edges(), FilterSpec(sentiment_range=(-0.1, 1.0)), {})
    assert all(item.avg_polarity is not None for item in kept)
    assert {(item.sender_id, item.recipient_id) for item in kept} == {
        ("alice", "bob"),
        ("alice", "carol"),
        ("dave", "erin"),
        ("erin", "frank"),
        ("frank", "dave"),
    }


def test_negative_only_keeps_non_null_negative_edges():
    kept = filter_edges(sample_edges(), FilterSpec(negative_only=True), {})
    assert {(item.sender_id, item.recipient_id) for item in kept} == {
        ("bob", "alice"),
        ("carol", "dave"),
        ("frank", "dave"),
    }


def test_focus_node_keeps_touching_edges_only():
    kept = filter_edges(sample_edges(), FilterSpec(focus_node="carol"), {})
    assert kept and all(item.touches("carol") for item in kept)
    assert len(kept) == 3


def test_community_selection_matches_either_endpoint():
    communities = {"alice": 0, "bob": 0, "carol": 0, "dave": 1, "erin": 1, "frank": 1}
    kept = filter_edges(sample_edges(), FilterSpec(communities=frozenset({1})), communities)
    assert edge("carol", "dave", 1, -0.8) in kept
    assert edge("alice", "bob", 10, 0.5) not in kept
    assert len(kept) == 4


def test_filters_are_conjunctive():
    kept = filter_edges(
        sample_edges(),
        FilterSpec(min_messages=5, negative_only=True),
        {},
    )
    assert [(item.sender_id, item.recipient_id) for item in kept] == [("frank", "dave")]


def test_build_graph_annotates_nodes():
    edges = sample_edges()
    view = build_graph(edges, detect_communities(edges))
    nodes = view.node_lookup()

    assert [node.id for node in view.nodes] == sorted(nodes)
    assert nodes["alice"].total_messages == 10 + 4 + 6
    # sender-attributed: alice sent 10 @ 0.5 and 6 @ 0.2
    assert nodes["alice"].avg_sentiment == pytest.approx((10 * 0.5 + 6 * 0.2) / 16)
    # bob sent 4 @ -0.3 and 5 with no polarity
    assert nodes["bob"].avg_sentiment == pytest.approx(-0.3)
    assert set(view.communities) == set(nodes)
    assert all(node.community_id == view.communities[node.id] for node in view.nodes)


def test_recipient_only_node_has_no_sentiment():
    edges = [edge("a", "b", 3, 0.9)]
    view = build_graph(edges, detect_communities(edges))
    assert view.node_lookup()["b"].avg_sentiment is None
    assert view.node_lookup()["b"].total_messages == 3


def test_bridge_flag_matches_neighbour_communities():
    edges = sample_edges()
    view = build_graph(edges, detect_communities(edges))
    neighbours = {node.id: set() for node in view.nodes}
    for item in view.edges:
        if item.sender_id != item.recipient_id:
            neighbours[item.sender_id].add(item.recipient_id)
            neighbours[item.recipient_id].add(item.sender_id)
    for node in view.nodes:
        spanned = {view.communities[other] for other in neighbours[node.id]}
        assert node.is_bridge == (len(spanned) >= 2)


def test_two_groups_have_bridge_at_the_junction():
    edges = sample_edges()
    view = build_graph(edges, detect_communities(edges))
    communities = view.communities
    assert communities["alice"] == communities["bob"] == communities["carol"]
    assert communities["dave"] == communities["erin"] == communities["frank"]
    assert communities["alice"] != communities["dave"]
    lookup = view.node_lookup()
    assert lookup["carol"].is_bridge
    assert lookup["dave"].is_bridge
    assert not lookup["alice"].is_bridge


def test_communities_are_recomputed_on_filtered_edges():
    edges = sample_edges()
    full = detect_communities(edges)
    view = build_graph(edges, full, FilterSpec(min_messages=6))
    assert set(view.communities) == {node.id for node in view.nodes}
    labels = set(view.communities.values())
    assert labels == set(range(len(labels)))
    assert "carol" in view.communities
    assert "bob" in view.communities


def test_empty_result_is_not_an_error():
    edges = sample_edges()
    view = build_graph(edges, detect_communities(edges), FilterSpec(min_messages=1000))
    assert view.is_empty
    assert view.nodes == []
    assert view.communities == {}


def test_ego_network_closure():
    edges = sample_edges()
    view = build_graph(edges, detect_communities(edges))
    ego = select_ego_network(view, "carol")

    assert ego.edges
    assert all(item.touches("carol") for item in ego.edges)
    neighbours = {
        other
        for item in ego.edges
        for other in (item.sender_id, item.recipient_id)
    }
    assert {node.id for node in ego.nodes} == neighbours
    assert {node.id for node in ego.nodes} == {"alice", "bob", "carol", "dave"}
    # annotations are carried over from the parent view
    assert ego.node_lookup()["alice"] == view.node_lookup()["alice"]


def test_ego_network_of_unknown_node_is_empty():
    edges = sample_edges()
    view = build_graph(edges, detect_communities(edges))
    assert select_ego_network(view, "zed").is_empty


def test_filter_spec_from_mapping():
    spec = FilterSpec.from_mapping(
        {
            "min_messages": 3,
            "sentiment_range": [-0.5, 0.5],
            "negative_only": True,
            "focus_node": "alice",
            "communities": [1, 2],
        }
    )
    assert spec == FilterSpec(
        min_messages=3,
        sentiment_range=(-0.5, 0.5),
        negative_only=True,
        focus_node="alice",
        communities=frozenset({1, 2}),
    )
    assert spec.sentiment_range_enforced
    assert FilterSpec.from_mapping(None) == FilterSpec()


def test_filter_spec_rejects_inverted_range():
    with pytest.raises(ValueError):
        FilterSpec(sentiment_range=(0.5, -0.5))


def test_filter_spec_from_mapping_treats_nulls_as_defaults():
    spec = FilterSpec.from_mapping(
        {"min_messages": 2, "sentiment_range": None, "communities": None, "focus_node": None}
    )
    assert spec == FilterSpec(min_messages=2)
    assert not spec.sentiment_range_enforced
