"""Byte-range edit application.

Rules never mutate text directly; they record :class:`Edit` objects against a
parsed snapshot and the edits are spliced in one pass. Overlapping edits are
resolved first-come-first-served so an outer rewrite always wins over a
nested one recorded later.
"""

import logging
from typing import Iterable, List

from .models import Edit

logger = logging.getLogger(__name__)


def resolve_conflicts(edits: Iterable[Edit]) -> List[Edit]:
    """Drop edits that overlap an earlier accepted edit.

    Returns the surviving edits sorted by position. Insertions at the same
    offset keep their recording order.
    """
    accepted: List[Edit] = []
    for edit in edits:
        clash = next((kept for kept in accepted if kept.overlaps(edit)), None)
        if clash is not None:
            logger.debug(
                "Dropping edit from %s at %d-%d (overlaps %s)",
                edit.rule_name, edit.start_byte, edit.end_byte, clash.rule_name,
            )
            continue
        accepted.append(edit)
    # sorted() is stable, so same-offset insertions stay in recording order
    return sorted(accepted, key=lambda e: (e.start_byte, e.end_byte))


def apply_edits(source: bytes, edits: Iterable[Edit]) -> str:
    """Splice ``edits`` into ``source`` and return the new text."""
    ordered = resolve_conflicts(edits)
    if not ordered:
        return source.decode("utf-8", errors="replace")

    parts: List[bytes] = []
    cursor = 0
    for edit in ordered:
        parts.append(source[cursor:edit.start_byte])
        parts.append(edit.replacement.encode("utf-8"))
        cursor = max(cursor, edit.end_byte)
    parts.append(source[cursor:])
    return b"".join(parts).decode("utf-8", errors="replace")
