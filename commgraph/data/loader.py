"""Turn already-aggregated edge records into ``RawEdge`` values."""
from __future__ import annotations

import pathlib
from typing import Iterable, Iterator, List, Mapping

from .models import RawEdge
from ..utils.io import read_jsonl
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)


def iter_raw_edges(records: Iterable[Mapping]) -> Iterator[RawEdge]:
    for record in records:
        yield RawEdge.from_record(record)


def load_raw_edges(path: str | pathlib.Path) -> List[RawEdge]:
    """Read one edge record per line from a JSON Lines file."""
    edges = list(iter_raw_edges(read_jsonl(path)))
    if not edges:
        LOGGER.warning("Edge source %s produced no rows", path)
    else:
        LOGGER.info("Loaded %s raw edges from %s", len(edges), path)
    return edges
