"""Dataclasses describing the records that flow through the analytics core."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple


class SentimentLabel(str, Enum):
    """Coarse sentiment bucket attached to a merged edge."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass(frozen=True, slots=True)
class RawEdge:
    """A directed, possibly pre-aggregated sender to recipient record.

    Endpoints may be missing on malformed input; such records are dropped by
    the edge merger rather than rejected here.
    """

    sender_id: Optional[str]
    recipient_id: Optional[str]
    message_count: Optional[int] = None
    avg_polarity: Optional[float] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RawEdge":
        sender = record.get("sender_id")
        recipient = record.get("recipient_id")
        count = record.get("message_count")
        polarity = record.get("avg_polarity")
        return cls(
            sender_id=str(sender).strip() if sender is not None else None,
            recipient_id=str(recipient).strip() if recipient is not None else None,
            message_count=int(count) if count not in (None, "") else None,
            avg_polarity=float(polarity) if polarity not in (None, "") else None,
        )


@dataclass(frozen=True, slots=True)
class MergedEdge:
    """One directed relationship between two canonical ids after merging."""

    sender_id: str
    recipient_id: str
    message_count: int
    avg_polarity: Optional[float]
    sentiment_label: Optional[SentimentLabel]
    source_edge_count: int

    def touches(self, node_id: str) -> bool:
        return self.sender_id == node_id or self.recipient_id == node_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "message_count": self.message_count,
            "avg_polarity": self.avg_polarity,
            "sentiment_label": self.sentiment_label.value if self.sentiment_label else None,
            "source_edge_count": self.source_edge_count,
        }


@dataclass(frozen=True, slots=True)
class Node:
    """A visible participant annotated from the filtered edge set."""

    id: str
    community_id: Optional[int]
    total_messages: int
    avg_sentiment: Optional[float]
    is_bridge: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "community_id": self.community_id,
            "total_messages": self.total_messages,
            "avg_sentiment": self.avg_sentiment,
            "is_bridge": self.is_bridge,
        }


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Immutable filter specification re-supplied in full on every rebuild."""

    min_messages: int = 1
    sentiment_range: Tuple[float, float] = (-1.0, 1.0)
    negative_only: bool = False
    focus_node: Optional[str] = None
    communities: FrozenSet[int] = frozenset()

    def __post_init__(self) -> None:
        low, high = self.sentiment_range
        if low > high:
            raise ValueError(f"Sentiment range is inverted: {self.sentiment_range}")
        if self.min_messages < 0:
            raise ValueError("min_messages must be non-negative")

    @property
    def sentiment_range_enforced(self) -> bool:
        low, high = self.sentiment_range
        return low > -1.0 or high < 1.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "FilterSpec":
        """Build a filter from a configuration section; missing keys keep defaults."""
        if not values:
            return cls()
        sentiment = values.get("sentiment_range") or (-1.0, 1.0)
        if len(sentiment) != 2:
            raise ValueError("sentiment_range must contain exactly two values")
        focus = values.get("focus_node")
        return cls(
            min_messages=int(values.get("min_messages", 1)),
            sentiment_range=(float(sentiment[0]), float(sentiment[1])),
            negative_only=bool(values.get("negative_only", False)),
            focus_node=str(focus) if focus else None,
            communities=frozenset(int(item) for item in values.get("communities") or ()),
        )


@dataclass(slots=True)
class GraphView:
    """The node and edge set visible to a caller plus its community map."""

    nodes: List[Node] = field(default_factory=list)
    edges: List[MergedEdge] = field(default_factory=list)
    communities: Dict[str, int] = field(default_factory=dict)
    filters: FilterSpec = field(default_factory=FilterSpec)

    def node_lookup(self) -> Dict[str, Node]:
        return {node.id: node for node in self.nodes}

    @property
    def is_empty(self) -> bool:
        return not self.edges


@dataclass(slots=True)
class CentralityReport:
    """Per-node degree and normalised betweenness scores."""

    degree: Dict[str, int] = field(default_factory=dict)
    betweenness: Dict[str, float] = field(default_factory=dict)
    betweenness_computed: bool = True


@dataclass(frozen=True, slots=True)
class KeyPlayer:
    """One row of the key player ranking."""

    id: str
    degree: int
    betweenness: float
    messages: int
    avg_sentiment: Optional[float]
    community_id: Optional[int]


@dataclass(slots=True)
class ClusterSummary:
    """Aggregate statistics for one detected community."""

    community_id: int
    member_count: int
    members: List[Tuple[str, int]] = field(default_factory=list)
    internal_edges: int = 0
    external_edges: int = 0
    internal_messages: int = 0
    avg_sentiment: Optional[float] = None
    sentiment_counts: Dict[str, int] = field(default_factory=dict)
    top_communicator: Optional[str] = None
    bridge_members: List[str] = field(default_factory=list)
    cross_community_edges: Dict[int, int] = field(default_factory=dict)
