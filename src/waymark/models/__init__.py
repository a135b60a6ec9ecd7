"""Data models for annotation units and their addresses."""

from waymark.models.unit import (
    Addressing,
    AnchorRelative,
    FlatOffset,
    LogicalUnit,
    Relocation,
    RepairRequest,
    UnitId,
    UnitPatch,
    UnitType,
)

__all__ = [
    "Addressing",
    "AnchorRelative",
    "FlatOffset",
    "LogicalUnit",
    "Relocation",
    "RepairRequest",
    "UnitId",
    "UnitPatch",
    "UnitType",
]
