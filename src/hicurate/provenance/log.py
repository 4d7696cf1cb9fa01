"""Curation log: before/after snapshots per operation, JSON export and replay.

The log is the provenance record of a session. Each entry keeps the operation
parameters plus a lightweight snapshot of the contig order and orientations on
either side of it, so a session exported here can be replayed against a fresh
map and checked step by step.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.operations import CurationOperation
from ..core.state import AppState

LOG_FORMAT_VERSION = "1.0.0"
TOOL_NAME = "hicurate"

LOGGER = logging.getLogger(__name__)


class LogFormatError(ValueError):
    """Raised when a curation log document cannot be imported."""


@dataclass(frozen=True)
class ContigState:
    index: int
    name: str
    inverted: bool
    scaffold_id: Optional[int]


@dataclass(frozen=True)
class StateSnapshot:
    contig_order: Tuple[int, ...]
    contig_states: Tuple[ContigState, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contigOrder": list(self.contig_order),
            "contigStates": [
                {"index": item.index, "name": item.name, "inverted": item.inverted, "scaffoldId": item.scaffold_id}
                for item in self.contig_states
            ],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StateSnapshot":
        return cls(
            contig_order=tuple(int(idx) for idx in payload["contigOrder"]),
            contig_states=tuple(
                ContigState(
                    index=int(item["index"]),
                    name=str(item["name"]),
                    inverted=bool(item["inverted"]),
                    scaffold_id=item.get("scaffoldId"),
                )
                for item in payload["contigStates"]
            ),
        )


def take_snapshot(state: AppState) -> StateSnapshot:
    """Project the order and per-contig orientation/scaffold out of ``state``."""

    contigs = state.contigs
    states = []
    for idx in state.contig_order:
        contig = contigs[idx] if 0 <= idx < len(contigs) else None
        states.append(
            ContigState(
                index=idx,
                name=contig.name if contig is not None else f"contig_{idx}",
                inverted=contig.inverted if contig is not None else False,
                scaffold_id=contig.scaffold_id if contig is not None else None,
            )
        )
    return StateSnapshot(contig_order=tuple(state.contig_order), contig_states=tuple(states))


def snapshots_match(a: StateSnapshot, b: StateSnapshot) -> bool:
    if len(a.contig_order) != len(b.contig_order):
        return False
    if any(x != y for x, y in zip(a.contig_order, b.contig_order)):
        return False
    if len(a.contig_states) != len(b.contig_states):
        return False
    return all(x == y for x, y in zip(a.contig_states, b.contig_states))


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CurationLogEntry:
    sequence: int
    timestamp: str
    operation_type: str
    description: str
    parameters: Mapping[str, Any]
    before: StateSnapshot
    after: StateSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "operationType": self.operation_type,
            "description": self.description,
            "parameters": dict(self.parameters),
            "before": self.before.to_dict(),
            "after": self.after.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], sequence: int) -> "CurationLogEntry":
        return cls(
            sequence=sequence,
            timestamp=str(payload.get("timestamp", "")),
            operation_type=str(payload["operationType"]),
            description=str(payload.get("description", "")),
            parameters=dict(payload.get("parameters") or {}),
            before=StateSnapshot.from_dict(payload["before"]),
            after=StateSnapshot.from_dict(payload["after"]),
        )


class CurationLog:
    """Append-only record of the operations applied in a curation session."""

    def __init__(self) -> None:
        self._entries: List[CurationLogEntry] = []
        self.source_file = ""
        self.created_at = _now()
        self.total_contigs = 0

    def initialize(self, state: AppState) -> None:
        self.source_file = state.map.filename if state.map is not None else "unknown"
        self.total_contigs = len(state.contigs)
        self._entries = []
        self.created_at = _now()

    def record(self, operation: CurationOperation, before: StateSnapshot, after: StateSnapshot) -> CurationLogEntry:
        entry = CurationLogEntry(
            sequence=len(self._entries),
            timestamp=_isoformat(operation.timestamp),
            operation_type=operation.kind.value,
            description=operation.description,
            parameters=operation.parameters(),
            before=before,
            after=after,
        )
        self._entries.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[CurationLogEntry, ...]:
        return tuple(self._entries)

    def entry(self, sequence: int) -> Optional[CurationLogEntry]:
        if 0 <= sequence < len(self._entries):
            return self._entries[sequence]
        return None

    def remove_last(self, count: int = 1) -> List[CurationLogEntry]:
        if count <= 0:
            return []
        removed = self._entries[-count:]
        del self._entries[-count:]
        return removed

    def clear(self) -> None:
        self._entries = []

    def export_json(self) -> Dict[str, Any]:
        return {
            "version": LOG_FORMAT_VERSION,
            "sourceFile": self.source_file,
            "createdAt": self.created_at,
            "lastModifiedAt": _now(),
            "tool": TOOL_NAME,
            "totalContigs": self.total_contigs,
            "entries": [entry.to_dict() for entry in self._entries],
        }

    def to_json(self, pretty: bool = True) -> str:
        document = self.export_json()
        if pretty:
            return json.dumps(document, indent=2)
        return json.dumps(document, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "CurationLog":
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LogFormatError(f"Invalid curation log: not valid JSON ({exc})") from exc
        if not isinstance(document, Mapping):
            raise LogFormatError("Invalid curation log: document must be a JSON object")
        if not document.get("version"):
            raise LogFormatError("Invalid curation log: missing version field")
        raw_entries = document.get("entries")
        if not isinstance(raw_entries, list):
            raise LogFormatError("Invalid curation log: missing entries array")
        try:
            entries = [CurationLogEntry.from_dict(item, idx) for idx, item in enumerate(raw_entries)]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise LogFormatError(f"Invalid curation log entry: {exc}") from exc

        log = cls()
        log.source_file = str(document.get("sourceFile", ""))
        log.created_at = str(document.get("createdAt") or log.created_at)
        log.total_contigs = int(document.get("totalContigs") or 0)
        log._entries = entries
        return log

    def save(self, path: str | Path) -> Path:
        target = Path(path)
        target.write_text(self.to_json(), encoding="utf-8")
        LOGGER.debug("Saved curation log entries=%s path=%s", len(self._entries), target)
        return target

    @classmethod
    def load(cls, path: str | Path) -> "CurationLog":
        source = Path(path)
        if not source.exists():
            raise FileNotFoundError(f"Curation log '{source}' not found.")
        return cls.from_json(source.read_text(encoding="utf-8"))


ReplayOperationHandler = Callable[[AppState, CurationLogEntry], AppState]


@dataclass(frozen=True)
class ReplayValidation:
    sequence: int
    operation_type: str
    expected_after: StateSnapshot
    actual_after: StateSnapshot
    matches: bool


@dataclass(frozen=True)
class ReplayResult:
    final_state: AppState
    validation_results: Sequence[ReplayValidation] = field(default_factory=tuple)

    @property
    def all_match(self) -> bool:
        return all(result.matches for result in self.validation_results)

    @property
    def mismatches(self) -> List[ReplayValidation]:
        return [result for result in self.validation_results if not result.matches]


def replay_log(log: CurationLog, initial_state: AppState, apply_operation: ReplayOperationHandler) -> ReplayResult:
    """Re-apply every logged entry and compare each outcome with the recorded one.

    Mismatches are reported, not raised; the caller decides what they mean.
    """

    current = initial_state
    results: List[ReplayValidation] = []
    for entry in log.entries:
        current = apply_operation(current, entry)
        actual = take_snapshot(current)
        matches = snapshots_match(entry.after, actual)
        if not matches:
            LOGGER.warning("Replay mismatch at sequence=%s type=%s", entry.sequence, entry.operation_type)
        results.append(
            ReplayValidation(
                sequence=entry.sequence,
                operation_type=entry.operation_type,
                expected_after=entry.after,
                actual_after=actual,
                matches=matches,
            )
        )
    return ReplayResult(final_state=current, validation_results=tuple(results))


__all__ = [
    "LOG_FORMAT_VERSION",
    "LogFormatError",
    "ContigState",
    "StateSnapshot",
    "take_snapshot",
    "snapshots_match",
    "CurationLogEntry",
    "CurationLog",
    "ReplayOperationHandler",
    "ReplayValidation",
    "ReplayResult",
    "replay_log",
]
