"""Provenance tracking: curation logs and deterministic replay."""

from .log import (
    CurationLog,
    CurationLogEntry,
    LogFormatError,
    ReplayResult,
    StateSnapshot,
    replay_log,
    snapshots_match,
    take_snapshot,
)

__all__ = [
    "CurationLog",
    "CurationLogEntry",
    "LogFormatError",
    "ReplayResult",
    "StateSnapshot",
    "replay_log",
    "snapshots_match",
    "take_snapshot",
]
