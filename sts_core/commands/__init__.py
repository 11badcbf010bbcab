"""Command schema, word tables and payload validation."""

from .schema import (
    ActionChoice,
    ActionKind,
    Command,
    CommandLogEntry,
    CreationParams,
    ModifyParams,
    MoveParams,
    PARAMS_FOR_KIND,
    RotateParams,
    ScaleParams,
    SystemParams,
    SystemWord,
)
from .safety import is_allowed

__all__ = [
    "ActionChoice",
    "ActionKind",
    "Command",
    "CommandLogEntry",
    "CreationParams",
    "ModifyParams",
    "MoveParams",
    "PARAMS_FOR_KIND",
    "RotateParams",
    "ScaleParams",
    "SystemParams",
    "SystemWord",
    "is_allowed",
]
