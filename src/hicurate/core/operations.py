"""Curation operation records kept on the undo/redo stacks."""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class OperationKind(str, Enum):
    CUT = "cut"
    JOIN = "join"
    INVERT = "invert"
    MOVE = "move"
    PAINT = "paint"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class CutData:
    """Split of the contig at ``position``; ``left_id`` is first in display order."""

    position: int
    pixel_offset: int
    contig_id: int
    left_id: int
    right_id: int


@dataclass(frozen=True)
class JoinData:
    """Merge of the contigs at ``position`` and ``position + 1``.

    ``healed`` joins put the record a cut split back in place instead of
    appending a new one; ``previous_inverted``/``previous_scaffold_id`` hold
    the restored record's attributes before the join.
    """

    position: int
    first_id: int
    second_id: int
    merged_id: int
    healed: bool = False
    previous_inverted: Optional[bool] = None
    previous_scaffold_id: Optional[int] = None


@dataclass(frozen=True)
class InvertData:
    start: int
    end: int
    contig_ids: Tuple[int, ...]


@dataclass(frozen=True)
class MoveData:
    from_position: int
    to_position: int
    contig_id: int


@dataclass(frozen=True)
class PaintData:
    positions: Tuple[int, ...]
    contig_ids: Tuple[int, ...]
    scaffold_id: Optional[int]
    previous: Tuple[Optional[int], ...]


@dataclass(frozen=True)
class ExcludeData:
    contig_id: int
    position: int
    excluded: bool = True


OperationData = Union[CutData, JoinData, InvertData, MoveData, PaintData, ExcludeData]

PAYLOAD_TYPES: Dict[OperationKind, type] = {
    OperationKind.CUT: CutData,
    OperationKind.JOIN: JoinData,
    OperationKind.INVERT: InvertData,
    OperationKind.MOVE: MoveData,
    OperationKind.PAINT: PaintData,
    OperationKind.EXCLUDE: ExcludeData,
}

_TUPLE_FIELDS = {"contig_ids", "positions", "previous"}


@dataclass(frozen=True)
class CurationOperation:
    """One invertible edit, as pushed onto the undo stack."""

    kind: OperationKind
    description: str
    data: OperationData
    timestamp: float = field(default_factory=time.time)
    batch_id: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES.get(self.kind)
        if expected is None or not isinstance(self.data, expected):
            raise TypeError(
                f"{self.kind!r} operations carry {getattr(expected, '__name__', '?')} payloads, "
                f"got {type(self.data).__name__}"
            )

    def parameters(self) -> Dict[str, Any]:
        """JSON-friendly view of the payload (tuples become lists)."""
        params = {key: list(value) if isinstance(value, tuple) else value for key, value in asdict(self.data).items()}
        if self.batch_id is not None:
            params["batch_id"] = self.batch_id
        if self.metadata:
            params["metadata"] = dict(self.metadata)
        return params

    def restamped(self) -> "CurationOperation":
        return replace(self, timestamp=time.time())


def payload_from_parameters(kind: OperationKind | str, parameters: Mapping[str, Any]) -> OperationData:
    """Rebuild a typed payload from :meth:`CurationOperation.parameters` output."""

    kind = OperationKind(kind)
    payload_type = PAYLOAD_TYPES[kind]
    values: Dict[str, Any] = {}
    for item in fields(payload_type):
        if item.name not in parameters:
            continue
        value = parameters[item.name]
        if item.name in _TUPLE_FIELDS and value is not None:
            value = tuple(value)
        values[item.name] = value
    try:
        return payload_type(**values)
    except TypeError as exc:
        raise ValueError(f"Incomplete {kind.value} parameters: {exc}") from exc


def operation_from_parameters(
    kind: OperationKind | str,
    parameters: Mapping[str, Any],
    *,
    description: str = "",
    timestamp: Optional[float] = None,
) -> CurationOperation:
    kind = OperationKind(kind)
    return CurationOperation(
        kind=kind,
        description=description,
        data=payload_from_parameters(kind, parameters),
        timestamp=time.time() if timestamp is None else timestamp,
        batch_id=parameters.get("batch_id"),
        metadata=dict(parameters.get("metadata") or {}),
    )


__all__ = [
    "OperationKind",
    "CutData",
    "JoinData",
    "InvertData",
    "MoveData",
    "PaintData",
    "ExcludeData",
    "OperationData",
    "PAYLOAD_TYPES",
    "CurationOperation",
    "payload_from_parameters",
    "operation_from_parameters",
]
