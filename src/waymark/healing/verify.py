"""Verification pass: do stored addresses still point at the stored text?

Flat-offset units are resolved against the live container text and compared
with their ``text_content``, first raw and then normalised.  Anchor-relative
units only need their anchors to exist; anchors are stable ids, so the text
between them is not re-checked.

Units already flagged broken are routed straight into the broken list.  Only
a successful heal or a manual repair clears that flag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from waymark.dom.offsets import resolve_range
from waymark.errors import UnitFault
from waymark.healing.normalize import normalize
from waymark.models.unit import AnchorRelative

if TYPE_CHECKING:
    from collections.abc import Iterable

    from waymark.dom.document import PageDocument
    from waymark.models.unit import FlatOffset, LogicalUnit

logger = logging.getLogger(__name__)


@dataclass
class VerificationReport:
    """Outcome of one verification pass over the unit cache."""

    healthy: list[LogicalUnit] = field(default_factory=list)
    unhealthy: list[tuple[LogicalUnit, UnitFault]] = field(default_factory=list)
    broken: list[LogicalUnit] = field(default_factory=list)


def _verify_flat(
    address: FlatOffset, stored_text: str, doc: PageDocument
) -> UnitFault | None:
    rng = resolve_range(address.start, address.end, doc.text_map)
    if rng is None:
        return UnitFault.RESOLUTION_FAILURE
    live_text = rng.text
    if live_text == stored_text:
        return None
    if normalize(live_text) == normalize(stored_text):
        return None
    return UnitFault.CONTENT_MISMATCH


def _verify_anchored(address: AnchorRelative, doc: PageDocument) -> UnitFault | None:
    for anchor_id in address.anchors:
        if doc.find_anchor(anchor_id) is None:
            logger.debug("Anchor %r missing from page", anchor_id)
            return UnitFault.ANCHOR_NOT_FOUND
    return None


def verify_unit(unit: LogicalUnit, doc: PageDocument) -> UnitFault | None:
    """Check one unit against *doc*.

    Returns:
        None if the unit still resolves to its stored text, otherwise the
        fault that makes it unhealthy.
    """
    address = unit.addressing
    if isinstance(address, AnchorRelative):
        return _verify_anchored(address, doc)
    return _verify_flat(address, unit.text_content, doc)


def verify_units(units: Iterable[LogicalUnit], doc: PageDocument) -> VerificationReport:
    """Sort *units* into healthy, unhealthy and already-broken."""
    report = VerificationReport()
    for unit in units:
        if unit.is_broken:
            report.broken.append(unit)
            continue
        fault = verify_unit(unit, doc)
        if fault is None:
            report.healthy.append(unit)
        else:
            logger.debug("Unit %s unhealthy: %s", unit.id, fault)
            report.unhealthy.append((unit, fault))

    logger.info(
        "[VERIFY] %d healthy, %d unhealthy, %d already broken",
        len(report.healthy),
        len(report.unhealthy),
        len(report.broken),
    )
    return report
