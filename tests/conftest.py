import pytest

from commgraph.data.models import MergedEdge
from commgraph.graph.merge import sentiment_label


def make_edge(sender: str, recipient: str, count: int = 1, polarity=None, sources: int = 1) -> MergedEdge:
    return MergedEdge(
        sender_id=sender,
        recipient_id=recipient,
        message_count=count,
        avg_polarity=polarity,
        sentiment_label=sentiment_label(polarity),
        source_edge_count=sources,
    )


@pytest.fixture
def two_team_edges():
    """Two triangles joined by a single weak carol -> dave message."""
    return [
        make_edge("alice", "bob", 10, 0.5),
        make_edge("bob", "alice", 4, -0.3),
        make_edge("alice", "carol", 6, 0.2),
        make_edge("bob", "carol", 5, None),
        make_edge("carol", "dave", 1, -0.8),
        make_edge("dave", "erin", 8, 0.0),
        make_edge("erin", "frank", 9, 0.1),
        make_edge("frank", "dave", 7, -0.05),
    ]
