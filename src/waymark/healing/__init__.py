"""Verification and healing of drifted annotation spans."""

from waymark.healing.healer import HealReport, heal_unit, heal_units, locate_span
from waymark.healing.normalize import normalize, normalize_with_map
from waymark.healing.verify import VerificationReport, verify_unit, verify_units

__all__ = [
    "HealReport",
    "VerificationReport",
    "heal_unit",
    "heal_units",
    "locate_span",
    "normalize",
    "normalize_with_map",
    "verify_unit",
    "verify_units",
]
