"""Curation operations, breakpoint detection and bulk helpers."""

from .autocut import AutoCutParams, AutoCutResult, Breakpoint, auto_cut, detect_breakpoints
from .batch import BatchResult, auto_cut_contigs
from .engine import CurationEngine, UndoResult, ValidationError, replay_operation
from .scaffolds import Scaffold, ScaffoldManager

__all__ = [
    "AutoCutParams",
    "AutoCutResult",
    "Breakpoint",
    "auto_cut",
    "detect_breakpoints",
    "BatchResult",
    "auto_cut_contigs",
    "CurationEngine",
    "UndoResult",
    "ValidationError",
    "replay_operation",
    "Scaffold",
    "ScaffoldManager",
]
