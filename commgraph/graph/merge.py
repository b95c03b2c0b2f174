"""Fold raw directed edges that share a normalised endpoint pair."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..data.models import MergedEdge, RawEdge, SentimentLabel
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

POSITIVE_THRESHOLD = 0.1
NEGATIVE_THRESHOLD = -0.1


def sentiment_label(polarity: Optional[float]) -> Optional[SentimentLabel]:
    """Bucket a polarity score; ``None`` stays ``None``."""
    if polarity is None:
        return None
    if polarity > POSITIVE_THRESHOLD:
        return SentimentLabel.POSITIVE
    if polarity < NEGATIVE_THRESHOLD:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


@dataclass(slots=True)
class _EdgeAccumulator:
    message_count: int = 0
    polarity_terms: List[float] = field(default_factory=list)
    polarity_weight: int = 0
    source_edge_count: int = 0

    def add(self, edge: RawEdge) -> None:
        count = 1 if edge.message_count is None else edge.message_count
        self.message_count += count
        self.source_edge_count += 1
        if edge.avg_polarity is not None:
            self.polarity_terms.append(count * edge.avg_polarity)
            self.polarity_weight += count

    @property
    def avg_polarity(self) -> Optional[float]:
        if self.polarity_weight == 0:
            return None
        # exactly rounded, independent of input order
        return math.fsum(self.polarity_terms) / self.polarity_weight


def merge_edges(
    raw_edges: Iterable[RawEdge],
    normalize: Callable[[str], str],
) -> List[MergedEdge]:
    """Merge *raw_edges* into one weighted edge per directed canonical pair.

    Records without a sender or recipient are dropped, as are groups whose
    summed volume is zero. The result is sorted by ``(sender, recipient)`` and
    does not depend on input order.
    """
    groups: Dict[Tuple[str, str], _EdgeAccumulator] = {}
    total_raw = 0
    dropped = 0
    for edge in raw_edges:
        total_raw += 1
        if not edge.sender_id or not edge.recipient_id:
            dropped += 1
            continue
        key = (normalize(edge.sender_id), normalize(edge.recipient_id))
        accumulator = groups.get(key)
        if accumulator is None:
            accumulator = groups[key] = _EdgeAccumulator()
        accumulator.add(edge)

    merged: List[MergedEdge] = []
    for (sender, recipient), accumulator in sorted(groups.items()):
        if accumulator.message_count <= 0:
            continue
        polarity = accumulator.avg_polarity
        merged.append(
            MergedEdge(
                sender_id=sender,
                recipient_id=recipient,
                message_count=accumulator.message_count,
                avg_polarity=polarity,
                sentiment_label=sentiment_label(polarity),
                source_edge_count=accumulator.source_edge_count,
            )
        )

    LOGGER.info(
        "Merged %s raw edges into %s edges (%s malformed dropped, %s zero-volume dropped)",
        total_raw,
        len(merged),
        dropped,
        len(groups) - len(merged),
    )
    return merged
