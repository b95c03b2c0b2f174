"""JSON and JSON Lines helpers for edge inputs and analytics outputs."""
from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, Iterable, Iterator, Mapping

from .logging import get_logger

LOGGER = get_logger(__name__)


def _output_path(path: str | pathlib.Path) -> pathlib.Path:
    output_path = pathlib.Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def read_jsonl(path: str | pathlib.Path) -> Iterator[Dict[str, Any]]:
    """Yield one object per non-blank line of *path*.

    A malformed line is logged with its line number and the decode error is
    re-raised unchanged.
    """
    source = pathlib.Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Edge file not found: {source}")
    with source.open("r", encoding="utf-8") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            if not raw_line.strip():
                continue
            try:
                yield json.loads(raw_line)
            except json.JSONDecodeError:
                LOGGER.error("Malformed JSON on line %s of %s", line_number, source)
                raise


def write_jsonl(path: str | pathlib.Path, records: Iterable[Mapping[str, Any]]) -> int:
    """Stream *records* to *path*, one per line; returns the number written."""
    output_path = _output_path(path)
    written = 0
    with output_path.open("w", encoding="utf-8") as handle:
        for record in records:
            handle.write(json.dumps(dict(record), ensure_ascii=False))
            handle.write("\n")
            written += 1
    LOGGER.info("Wrote %s records to %s", written, output_path)
    return written


def write_json(path: str | pathlib.Path, payload: Any, indent: int = 2) -> None:
    """Write a single JSON document (object or array)."""
    output_path = _output_path(path)
    output_path.write_text(json.dumps(payload, ensure_ascii=False, indent=indent), encoding="utf-8")
    LOGGER.info("Wrote JSON document to %s", output_path)
