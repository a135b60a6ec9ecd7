"""Tests for anchor-substring relocation.

Texts are built from unique six-character tokens (``<0000>``, ``<0001>``,
...) so every substring of ten or more characters occurs at most once.
"""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING

import pytest

from waymark.config import HealingConfig
from waymark.errors import UnitFault
from waymark.healing.healer import _anchor_sizes, heal_units, locate_span
from waymark.healing.verify import verify_units
from waymark.models.unit import Relocation, UnitPatch

if TYPE_CHECKING:
    from collections.abc import Callable

    from waymark.dom.document import PageDocument
    from waymark.models.unit import LogicalUnit


def _tokens(first: int, count: int) -> str:
    return "".join(f"<{i:04d}>" for i in range(first, first + count))


ORIGINAL = _tokens(0, 100)  # 600 characters
SAFE = html.escape(ORIGINAL)


class TestAnchorSizes:
    """Which anchor sizes apply to a stored text length."""

    def test_all_sizes_for_long_text(self) -> None:
        assert _anchor_sizes(200, (50, 20, 10)) == [50, 20, 10]

    def test_skips_sizes_that_would_overlap(self) -> None:
        assert _anchor_sizes(40, (50, 20, 10)) == [20, 10]

    def test_short_text_falls_back_to_half(self) -> None:
        assert _anchor_sizes(12, (50, 20, 10)) == [6]

    def test_single_char_has_no_sizes(self) -> None:
        assert _anchor_sizes(1, (50, 20, 10)) == []


class TestLocateSpan:
    """locate_span() on flat text."""

    def test_heals_after_insertion_before_span(self) -> None:
        stored = ORIGINAL[100:125]
        live = ORIGINAL[:50] + "X" * 10 + ORIGINAL[50:]

        result = locate_span(stored, 100, live)

        assert result == Relocation(start=110, end=135, new_text=stored)
        assert live[110:135] == stored

    def test_tolerates_edit_inside_span(self) -> None:
        stored = ORIGINAL[200:300]
        live = ORIGINAL[:250] + "edited!" + ORIGINAL[250:]

        result = locate_span(stored, 200, live)

        assert result is not None
        assert (result.start, result.end) == (200, 307)
        assert "edited!" in result.new_text

    def test_rejects_over_large_drift(self) -> None:
        head = _tokens(500, 4)[:20]
        tail = _tokens(600, 4)[:20]
        stored = head + tail
        filler = _tokens(700, 27)[:160]
        live = _tokens(800, 10) + head + filler + tail + _tokens(900, 10)
        assert len(head + filler + tail) == 200

        assert locate_span(stored, 60, live) is None

    def test_falls_back_to_smaller_anchor(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        stored = ORIGINAL[300:340]
        live = ORIGINAL[:100] + "Y" * 30 + ORIGINAL[100:]

        with caplog.at_level(logging.DEBUG, logger="waymark.healing.healer"):
            result = locate_span(stored, 300, live)

        assert result == Relocation(start=330, end=370, new_text=stored)
        assert "anchor_size=20" in caplog.text
        assert "anchor_size=50" not in caplog.text

    def test_short_span_uses_half_length_anchor(self) -> None:
        stored = ORIGINAL[60:72]
        live = "Z" * 5 + ORIGINAL

        assert locate_span(stored, 60, live) == Relocation(65, 77, stored)

    def test_maps_back_through_collapsed_whitespace(self) -> None:
        stored = "alpha beta gamma delta epsilon"
        raw = "alpha  beta\n\ngamma delta epsilon"
        live = "Intro. " + raw + " outro."

        result = locate_span(stored, 0, live)

        assert result is not None
        assert (result.start, result.end) == (7, 7 + len(raw))
        assert result.new_text == raw

    def test_matches_through_quote_differences(self) -> None:
        stored = "He said \u201chello there\u201d and then left the room."
        live = 'Before. He said "hello there" and then left the room. After.'

        result = locate_span(stored, 0, live)

        assert result is not None
        assert result.new_text == 'He said "hello there" and then left the room.'

    def test_prefers_occurrence_near_stored_start(self) -> None:
        stored = _tokens(5000, 5)
        far_filler = _tokens(6000, 200)
        live = _tokens(7000, 5) + stored + far_filler + stored
        config = HealingConfig(search_radius=100)
        near = live.index(stored)
        far = live.rindex(stored)

        assert locate_span(stored, near + 3, live, config).start == near
        assert locate_span(stored, far - 3, live, config).start == far

    def test_searches_whole_document_when_nothing_nearby(self) -> None:
        stored = _tokens(5000, 5)
        live = _tokens(6000, 400) + stored
        config = HealingConfig(search_radius=50)

        result = locate_span(stored, 0, live, config)

        assert result is not None
        assert result.start == len(live) - len(stored)

    def test_missing_text_returns_none(self) -> None:
        assert locate_span(_tokens(9000, 5), 0, ORIGINAL) is None

    def test_empty_inputs_return_none(self) -> None:
        assert locate_span("   ", 0, ORIGINAL) is None
        assert locate_span("something", 0, "") is None


class TestHealUnits:
    """heal_units() over a verification report."""

    def test_heal_success_updates_unit_and_patches(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(f"<p>Inserted text. {SAFE}</p>")
        stored = ORIGINAL[100:125]
        unit = make_unit(7, stored, 100)

        report = verify_units([unit], doc)
        assert report.unhealthy == [(unit, UnitFault.CONTENT_MISMATCH)]

        result = heal_units(report, doc.text)

        assert result.healed == [unit]
        assert unit.start_char_index == 115
        assert unit.end_char_index == 140
        assert unit.text_content == stored
        assert unit.broken_index == 0
        assert result.patches == [
            UnitPatch(
                id=7,
                broken_index=0,
                start_char_index=115,
                end_char_index=140,
                text_content=stored,
            )
        ]

    def test_heal_failure_marks_broken(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(f"<p>{SAFE}</p>")
        unit = make_unit(8, _tokens(9000, 5), 10)

        result = heal_units(verify_units([unit], doc), doc.text)

        assert result.broken == [(unit, UnitFault.HEAL_FAILURE)]
        assert unit.broken_index == 1
        assert result.patches == [UnitPatch(id=8, broken_index=1)]

    def test_missing_anchor_marks_broken_without_search(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        doc = make_document(f"<p>{SAFE}</p>")
        unit = make_unit(9, ORIGINAL[:20], 0, anchor_id="gone")

        result = heal_units(verify_units([unit], doc), doc.text)

        assert result.broken == [(unit, UnitFault.ANCHOR_NOT_FOUND)]
        assert unit.is_broken
        # Offsets untouched even though the text exists in the page
        assert unit.start_char_index == 0

    def test_broken_flag_is_stable_across_passes(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
    ) -> None:
        missing = _tokens(9000, 5)
        unit = make_unit(10, missing, 0)

        first = make_document(f"<p>{SAFE}</p>")
        heal_units(verify_units([unit], first), first.text)
        assert unit.is_broken

        # Even once the text is back, a later pass leaves it broken
        second = make_document(f"<p>{html.escape(missing)}{SAFE}</p>")
        report = verify_units([unit], second)
        result = heal_units(report, second.text)

        assert report.broken == [unit]
        assert result.patches == []
        assert unit.broken_index == 1

    def test_heal_logs_with_prefix(
        self,
        make_document: Callable[[str], PageDocument],
        make_unit: Callable[..., LogicalUnit],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        doc = make_document(f"<p>xx{SAFE}</p>")
        unit = make_unit(11, ORIGINAL[:30], 0)

        with caplog.at_level(logging.INFO, logger="waymark.healing.healer"):
            heal_units(verify_units([unit], doc), doc.text)

        assert "[HEAL] Unit 11 relocated [0,30) -> [2,32)" in caplog.text
