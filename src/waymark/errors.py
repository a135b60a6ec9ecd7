"""Error types.

``UnitFault`` values describe why a single unit could not be used as stored.
They are recorded on verification and heal results, never raised, so one
drifted unit cannot take down the rest of the page.

The exception classes cover configuration and transport problems that the
caller has to deal with.
"""

from __future__ import annotations

from enum import StrEnum


class UnitFault(StrEnum):
    """Why a unit's stored address no longer works."""

    RESOLUTION_FAILURE = "resolution_failure"
    CONTENT_MISMATCH = "content_mismatch"
    ANCHOR_NOT_FOUND = "anchor_not_found"
    HEAL_FAILURE = "heal_failure"


class WaymarkError(Exception):
    """Base class for waymark exceptions."""


class ContainerNotFoundError(WaymarkError):
    """The content container selector matched nothing in the page."""


class StoreError(WaymarkError):
    """The unit store could not be reached or rejected a request."""
