"""Relocate drifted spans by anchor-substring search.

A unit whose stored offsets no longer cover its stored text is searched for
by its first and last ``k`` characters (the head and tail anchors), so edits
anywhere in the middle of the span are tolerated.

Search order for one anchor size:

1. Head-anchor occurrences starting within ``search_radius`` of the stored
   start; if there are none, every occurrence in the document.
2. For each head, the first tail-anchor occurrence inside a window of
   ``stored length + search_radius`` characters.
3. Candidates are scored by how far their normalised length is from the
   stored normalised length.  Anything at or above
   ``max(min_tolerance, tolerance_ratio * stored length)`` is rejected; the
   smallest difference wins and ties go to the earlier candidate.

Anchor sizes are tried largest first; a size is skipped when head and tail
would overlap (``2k`` longer than the stored text).

All search arithmetic runs on normalised text.  The result is mapped back
through ``normalize_with_map`` so offsets and ``new_text`` refer to the
original, unnormalised live text.
"""

from __future__ import annotations

import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from waymark.config import HealingConfig
from waymark.errors import UnitFault
from waymark.healing.normalize import normalize, normalize_with_map
from waymark.models.unit import Relocation

if TYPE_CHECKING:
    from waymark.healing.verify import VerificationReport
    from waymark.models.unit import LogicalUnit, UnitPatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Candidate:
    start: int
    end: int
    diff: int


def _anchor_sizes(stored_len: int, sizes: tuple[int, ...]) -> list[int]:
    """Return the anchor sizes usable for a stored text of *stored_len*."""
    usable = [k for k in sizes if 2 * k <= stored_len]
    if usable:
        return usable
    # Shorter than every configured pair of anchors: split it in half.
    if stored_len >= 2:
        return [stored_len // 2]
    return []


def _find_all(haystack: str, needle: str, start: int, end: int) -> list[int]:
    """Return every index where *needle* lies wholly inside ``haystack[start:end]``."""
    positions: list[int] = []
    pos = haystack.find(needle, start, end)
    while pos != -1:
        positions.append(pos)
        pos = haystack.find(needle, pos + 1, end)
    return positions


def _head_candidates(live: str, head: str, origin: int, radius: int) -> list[int]:
    lo = max(0, origin - radius)
    hi = min(len(live), origin + radius + len(head))
    nearby = _find_all(live, head, lo, hi)
    if nearby:
        return nearby
    return _find_all(live, head, 0, len(live))


def _search_at_size(
    live: str,
    stored: str,
    k: int,
    origin: int,
    radius: int,
    tolerance: float,
) -> _Candidate | None:
    head = stored[:k]
    tail = stored[-k:]
    stored_len = len(stored)

    best: _Candidate | None = None
    for head_pos in _head_candidates(live, head, origin, radius):
        window_end = min(len(live), head_pos + stored_len + radius)
        tail_pos = live.find(tail, head_pos + k, window_end)
        if tail_pos == -1:
            continue
        end = tail_pos + k
        diff = abs((end - head_pos) - stored_len)
        if diff >= tolerance:
            logger.debug(
                "Rejected candidate [%d,%d): length off by %d (tolerance %.0f)",
                head_pos,
                end,
                diff,
                tolerance,
            )
            continue
        if best is None or diff < best.diff:
            best = _Candidate(start=head_pos, end=end, diff=diff)
    return best


def locate_span(
    stored_text: str,
    stored_start: int,
    live_text: str,
    config: HealingConfig | None = None,
) -> Relocation | None:
    """Find where *stored_text* went in *live_text*.

    Args:
        stored_text: The text the span covered when it was last resolved.
        stored_start: The span's stored start offset in the original text,
            used to centre the nearby search.
        live_text: Current flattened container text.
        config: Search tuning; defaults to ``HealingConfig()``.

    Returns:
        Offsets into *live_text* and the live text between them, or None if
        no candidate passes the length tolerance at any anchor size.
    """
    if config is None:
        config = HealingConfig()

    stored = normalize(stored_text)
    live, index_map = normalize_with_map(live_text)
    if not stored or not live:
        return None

    stored_len = len(stored)
    tolerance = max(config.min_tolerance, config.tolerance_ratio * stored_len)
    origin = bisect_left(index_map, stored_start)

    for k in _anchor_sizes(stored_len, config.anchor_sizes):
        best = _search_at_size(
            live, stored, k, origin, config.search_radius, tolerance
        )
        if best is None:
            logger.debug("No candidate at anchor_size=%d", k)
            continue
        start = index_map[best.start]
        end = index_map[best.end - 1] + 1
        logger.debug(
            "Located span at [%d,%d) with anchor_size=%d, length diff %d",
            start,
            end,
            k,
            best.diff,
        )
        return Relocation(start=start, end=end, new_text=live_text[start:end])

    return None


def heal_unit(
    unit: LogicalUnit,
    live_text: str,
    config: HealingConfig | None = None,
) -> Relocation | None:
    """Relocate a flat-offset unit in *live_text* without mutating it."""
    return locate_span(unit.text_content, unit.start_char_index, live_text, config)


@dataclass
class HealReport:
    """Outcome of healing the unhealthy units from one verification pass."""

    healed: list[LogicalUnit] = field(default_factory=list)
    broken: list[tuple[LogicalUnit, UnitFault]] = field(default_factory=list)
    patches: list[UnitPatch] = field(default_factory=list)


def heal_units(
    report: VerificationReport,
    live_text: str,
    config: HealingConfig | None = None,
) -> HealReport:
    """Heal every unhealthy unit in *report*, mutating units in place.

    Anchor-relative units that lost an anchor are marked broken directly;
    the flat-offset search does not apply to them.  Each mutation yields a
    ``UnitPatch`` for persistence.
    """
    result = HealReport()

    for unit, fault in report.unhealthy:
        if fault is UnitFault.ANCHOR_NOT_FOUND:
            result.patches.append(unit.mark_broken())
            result.broken.append((unit, fault))
            logger.warning("[HEAL] Unit %s lost its anchor, marked broken", unit.id)
            continue

        old_start, old_end = unit.start_char_index, unit.end_char_index
        relocation = heal_unit(unit, live_text, config)
        if relocation is None:
            result.patches.append(unit.mark_broken())
            result.broken.append((unit, UnitFault.HEAL_FAILURE))
            logger.warning(
                "[HEAL] Unit %s unrecoverable after %s, marked broken", unit.id, fault
            )
            continue

        result.patches.append(unit.apply_relocation(relocation))
        result.healed.append(unit)
        logger.info(
            "[HEAL] Unit %s relocated [%d,%d) -> [%d,%d)",
            unit.id,
            old_start,
            old_end,
            relocation.start,
            relocation.end,
        )

    return result
