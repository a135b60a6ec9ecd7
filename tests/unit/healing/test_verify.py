"""Tests for the verification pass."""

from __future__ import annotations

from typing import TYPE_CHECKING

from waymark.errors import UnitFault
from waymark.healing.verify import verify_unit, verify_units

if TYPE_CHECKING:
    from collections.abc import Callable

    from waymark.dom.document import PageDocument
    from waymark.models.unit import LogicalUnit

BODY = "<p>Hello world again</p>"


class TestVerifyUnit:
    """Single-unit checks."""

    def test_exact_match_is_healthy(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(BODY)
        assert verify_unit(make_unit(1, "world", 6), doc) is None

    def test_normalised_match_is_healthy(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document("<p>Hello&nbsp;world</p>")
        assert doc.text == "Hello\u00a0world"
        assert verify_unit(make_unit(1, "Hello world", 0), doc) is None

    def test_offsets_past_text_fail_resolution(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(BODY)
        unit = make_unit(1, "gone", 100)
        assert verify_unit(unit, doc) is UnitFault.RESOLUTION_FAILURE

    def test_changed_text_is_mismatch(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(BODY)
        unit = make_unit(1, "earth", 6)
        assert verify_unit(unit, doc) is UnitFault.CONTENT_MISMATCH

    def test_anchor_present_is_healthy(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document('<p id="p1">Anything at all</p>')
        # Text between anchors is not re-checked
        unit = make_unit(1, "stale text", 0, anchor_id="p1")
        assert verify_unit(unit, doc) is None

    def test_missing_connected_anchor(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document('<p id="p1">One</p>')
        unit = make_unit(1, "One", 0, anchor_id="p1", connected_anchors=["p2"])
        assert verify_unit(unit, doc) is UnitFault.ANCHOR_NOT_FOUND


class TestVerifyUnits:
    """Sorting a batch into the report."""

    def test_report_buckets(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(BODY)
        healthy = make_unit(1, "Hello", 0)
        drifted = make_unit(2, "again", 0)
        broken = make_unit(3, "world", 6, broken_index=1)

        report = verify_units([healthy, drifted, broken], doc)

        assert report.healthy == [healthy]
        assert report.unhealthy == [(drifted, UnitFault.CONTENT_MISMATCH)]
        assert report.broken == [broken]

    def test_broken_units_are_not_rechecked(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(BODY)
        # Would verify fine, but the flag wins
        unit = make_unit(1, "Hello", 0, broken_index=1)
        report = verify_units([unit], doc)
        assert report.broken == [unit]
        assert report.healthy == []

    def test_unknown_broken_state_is_checked(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(BODY)
        unit = make_unit(1, "Hello", 0, broken_index=None)
        assert verify_units([unit], doc).healthy == [unit]

    def test_empty_input(self, make_document: Callable[[str], PageDocument]) -> None:
        report = verify_units([], make_document(BODY))
        assert (report.healthy, report.unhealthy, report.broken) == ([], [], [])
