"""Collapse superficially distinct person identifiers onto one canonical id."""
from __future__ import annotations

import re
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

# An honorific is only stripped when something clearly separates it from the
# name that follows ("Dr. Smith", "Dr Smith", "DrSmith"); "Drake" and "drsmith"
# are left alone.
_HONORIFIC_PATTERN = re.compile(r"^(?i:mrs|mr|ms|dr)(?:\.|(?=\s)|(?=[A-Z]))")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_identifier(raw_id: str) -> str:
    """Return the comparison key for *raw_id*.

    The key ignores case, periods, surrounding whitespace and one leading
    honorific. It is only used to group ids; the canonical id handed to callers
    is always one of the original strings.
    """
    if not raw_id:
        return ""
    stripped = _HONORIFIC_PATTERN.sub("", raw_id.strip(), count=1)
    without_periods = stripped.replace(".", "")
    return _WHITESPACE_PATTERN.sub(" ", without_periods).strip().casefold()


class IdentityMap(Mapping[str, str]):
    """Total function from raw ids to canonical ids for one id universe.

    Ids outside the universe map to themselves, so the map can be applied to
    any string without raising.
    """

    def __init__(self, canonical_by_id: Dict[str, str]) -> None:
        self._canonical_by_id = dict(canonical_by_id)
        aliases: Dict[str, List[str]] = defaultdict(list)
        for raw_id, canonical in self._canonical_by_id.items():
            aliases[canonical].append(raw_id)
        self._aliases = {canonical: sorted(ids) for canonical, ids in aliases.items()}

    def __call__(self, raw_id: Optional[str]) -> str:
        return self.canonical(raw_id)

    def canonical(self, raw_id: Optional[str]) -> str:
        if raw_id is None:
            return ""
        return self._canonical_by_id.get(raw_id, raw_id)

    def aliases(self, canonical_id: str) -> List[str]:
        return list(self._aliases.get(canonical_id, [canonical_id]))

    def merged_groups(self) -> Dict[str, List[str]]:
        """Canonical ids that absorbed more than one raw id."""
        return {
            canonical: list(ids)
            for canonical, ids in sorted(self._aliases.items())
            if len(ids) > 1
        }

    def __getitem__(self, raw_id: str) -> str:
        return self._canonical_by_id[raw_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._canonical_by_id)

    def __len__(self) -> int:
        return len(self._canonical_by_id)

    def __repr__(self) -> str:
        return f"IdentityMap(ids={len(self)}, canonical={len(self._aliases)})"


def build_identity_map(raw_ids: Iterable[Optional[str]]) -> IdentityMap:
    """Group *raw_ids* by normalised key and pick one representative per group.

    The representative is the shortest original string, ties broken by lexical
    order, so the result depends only on the set of ids passed in. Callers must
    rebuild the map whenever the id universe changes.
    """
    universe = {raw_id for raw_id in raw_ids if raw_id}
    groups: Dict[str, List[str]] = defaultdict(list)
    for raw_id in universe:
        groups[normalize_identifier(raw_id)].append(raw_id)

    canonical_by_id: Dict[str, str] = {}
    for members in groups.values():
        canonical = min(members, key=lambda candidate: (len(candidate), candidate))
        for raw_id in members:
            canonical_by_id[raw_id] = canonical

    identity_map = IdentityMap(canonical_by_id)
    LOGGER.info(
        "Normalised %s raw identifiers into %s canonical ids",
        len(universe),
        len(groups),
    )
    return identity_map
