"""
Curation engine: cut, join, invert, move, exclude and paint contigs.

Everything that touches the contig order lives here. Each operation is a pure
function of an :class:`AppState` returning the fields to replace plus the
payload needed to undo it; :class:`CurationEngine` wraps those transforms with
validation, undo/redo stacks, the curation log and event publication. Keep the
transforms side-effect free so replay can run them against any state.

Positions are indices into the current contig order. Pixel offsets passed to
``cut`` are coordinates in the contig's own (original) pixel space.
"""
from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple, Union

from ..core.event_bus import EventBus
from ..core.operations import (
    CurationOperation,
    CutData,
    ExcludeData,
    InvertData,
    JoinData,
    MoveData,
    OperationData,
    OperationKind,
    PaintData,
    operation_from_parameters,
)
from ..core.state import AppState, Contig, MapData, StateStore
from ..provenance.log import CurationLog, CurationLogEntry, take_snapshot

LOGGER = logging.getLogger(__name__)

Changes = Dict[str, Any]
Transform = Tuple[Changes, OperationData, str]


class ValidationError(ValueError):
    """Raised when an operation is rejected; the state is left untouched."""


@dataclass(frozen=True)
class UndoResult:
    """Outcome of ``undo``/``redo``; ``applied`` is False on an empty stack."""

    applied: bool
    operation: Optional[CurationOperation] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.applied


def _is_int(value: object) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _require_map(state: AppState) -> None:
    if state.map is None:
        raise ValidationError("No map loaded")


def _require_position(state: AppState, position: object, label: str = "position") -> int:
    size = len(state.contig_order)
    if not _is_int(position) or not 0 <= int(position) < size:
        raise ValidationError(f"Invalid {label}: {position}. Must be an integer in [0, {size - 1}]")
    return int(position)


def _locate(state: AppState, contig_id: int) -> int:
    try:
        return state.contig_order.index(contig_id)
    except ValueError as exc:
        raise ValidationError(f"Contig {contig_id} is not in the current order") from exc


def _patch(contigs: Tuple[Contig, ...], updates: Dict[int, Contig]) -> Tuple[Contig, ...]:
    if not updates:
        return contigs
    return tuple(updates.get(idx, contig) for idx, contig in enumerate(contigs))


_UNUSED_NAME = "<unused>"


def _unused(slot: int) -> Contig:
    return Contig(name=_UNUSED_NAME, original_index=slot, length=0, pixel_start=0, pixel_end=1)


def _reusable(state: AppState, slot: int, record: Contig) -> bool:
    if slot < 0:
        return False
    if slot >= len(state.contigs):
        return True
    if slot in state.contig_order or slot in state.excluded:
        return False
    current = state.contigs[slot]
    if current.name == _UNUSED_NAME:
        return True
    return (current.name, current.pixel_start, current.pixel_end) == (
        record.name,
        record.pixel_start,
        record.pixel_end,
    )


def _allocate(state: AppState, records: Sequence[Contig], wanted: Optional[Sequence[int]]) -> Tuple[int, ...]:
    """Ids for ``records``: the ``wanted`` ones when they hold nothing else, fresh ones otherwise."""

    if wanted is not None and all(_reusable(state, slot, rec) for slot, rec in zip(wanted, records)):
        return tuple(wanted)
    base = len(state.contigs)
    return tuple(range(base, base + len(records)))


def _place(contigs: Tuple[Contig, ...], records: Dict[int, Contig]) -> Tuple[Contig, ...]:
    # gaps left by ids allocated in an undone branch are filled with unused records
    size = max(len(contigs), max(records) + 1)
    padded = contigs + tuple(_unused(slot) for slot in range(len(contigs), size))
    return _patch(padded, {slot: replace(rec, original_index=slot) for slot, rec in records.items()})


# ---------------------------------------------------------------------------
# Forward transforms
# ---------------------------------------------------------------------------


def _cut(state: AppState, position: int, pixel_offset: int, ids: Optional[Tuple[int, int]] = None) -> Transform:
    _require_map(state)
    position = _require_position(state, position)
    contig_id = state.contig_order[position]
    contig = state.contigs[contig_id]
    if not _is_int(pixel_offset) or not contig.pixel_start < int(pixel_offset) < contig.pixel_end:
        raise ValidationError(
            f"Invalid pixel_offset: {pixel_offset}. Must be an integer in "
            f"({contig.pixel_start}, {contig.pixel_end}) for contig {contig.name!r}"
        )
    pixel_offset = int(pixel_offset)

    fraction = (pixel_offset - contig.pixel_start) / contig.pixel_length
    low_bp = int(math.floor(contig.length * fraction + 0.5))
    low = replace(
        contig, name=f"{contig.name}_L", length=low_bp, pixel_end=pixel_offset, parent=contig_id, members=()
    )
    high = replace(
        contig,
        name=f"{contig.name}_R",
        length=contig.length - low_bp,
        pixel_start=pixel_offset,
        parent=contig_id,
        members=(),
    )
    # an inverted contig is displayed high-to-low, so its high half comes first
    first, second = (high, low) if contig.inverted else (low, high)
    left_id, right_id = _allocate(state, (first, second), ids)
    contigs = _place(state.contigs, {left_id: first, right_id: second})
    order = state.contig_order[:position] + (left_id, right_id) + state.contig_order[position + 1 :]
    data = CutData(
        position=position, pixel_offset=pixel_offset, contig_id=contig_id, left_id=left_id, right_id=right_id
    )
    description = f'Cut contig "{contig.name}" at pixel {pixel_offset}'
    return {"contigs": contigs, "contig_order": order}, data, description


def _healable_parent(state: AppState, first: Contig, second: Contig) -> Optional[int]:
    """Return the id of the contig ``first``/``second`` were cut from, if they rebuild it exactly."""

    if first.parent is None or first.parent != second.parent or first.inverted != second.inverted:
        return None
    parent_id = first.parent
    if parent_id in state.contig_order or parent_id in state.excluded:
        return None
    parent = state.contigs[parent_id]
    low, high = (second, first) if first.inverted else (first, second)
    if (
        low.pixel_start == parent.pixel_start
        and low.pixel_end == high.pixel_start
        and high.pixel_end == parent.pixel_end
    ):
        return parent_id
    return None


def _join(state: AppState, position_a: int, position_b: int, merged_id: Optional[int] = None) -> Transform:
    _require_map(state)
    position_a = _require_position(state, position_a, "position_a")
    position_b = _require_position(state, position_b, "position_b")
    lo, hi = sorted((position_a, position_b))
    if hi - lo != 1:
        raise ValidationError(
            f"Cannot join positions {position_a} and {position_b}: contigs are not adjacent in the current order"
        )
    first_id = state.contig_order[lo]
    second_id = state.contig_order[hi]
    first = state.contigs[first_id]
    second = state.contigs[second_id]

    parent_id = _healable_parent(state, first, second)
    if parent_id is not None:
        parent = state.contigs[parent_id]
        restored = replace(parent, inverted=first.inverted, scaffold_id=first.scaffold_id)
        contigs = _patch(state.contigs, {parent_id: restored} if restored != parent else {})
        merged_id = parent_id
        data = JoinData(
            position=lo,
            first_id=first_id,
            second_id=second_id,
            merged_id=merged_id,
            healed=True,
            previous_inverted=parent.inverted,
            previous_scaffold_id=parent.scaffold_id,
        )
        description = f'Joined contigs "{first.name}" and "{second.name}" back into "{parent.name}"'
    else:
        merged = Contig(
            name=f"{first.name}+{second.name}",
            original_index=-1,
            length=first.length + second.length,
            pixel_start=min(first.pixel_start, second.pixel_start),
            pixel_end=max(first.pixel_end, second.pixel_end),
            inverted=False,
            scaffold_id=first.scaffold_id,
            members=(first_id, second_id),
        )
        (merged_id,) = _allocate(state, (merged,), None if merged_id is None else (merged_id,))
        contigs = _place(state.contigs, {merged_id: merged})
        data = JoinData(position=lo, first_id=first_id, second_id=second_id, merged_id=merged_id)
        description = f'Joined contigs "{first.name}" and "{second.name}"'

    order = state.contig_order[:lo] + (merged_id,) + state.contig_order[hi + 1 :]
    return {"contigs": contigs, "contig_order": order}, data, description


def _invert(state: AppState, start: int, end: int) -> Transform:
    _require_map(state)
    start = _require_position(state, start, "start")
    end = _require_position(state, end, "end")
    if end < start:
        raise ValidationError(f"Invalid range: end {end} precedes start {start}")
    ids = state.contig_order[start : end + 1]
    flipped = {cid: replace(state.contigs[cid], inverted=not state.contigs[cid].inverted) for cid in ids}
    changes: Changes = {"contigs": _patch(state.contigs, flipped)}
    if end > start:
        changes["contig_order"] = state.contig_order[:start] + tuple(reversed(ids)) + state.contig_order[end + 1 :]
        description = f"Inverted positions {start}-{end} ({len(ids)} contigs)"
    else:
        contig = flipped[ids[0]]
        description = f'Inverted contig "{contig.name}" (now {"inverted" if contig.inverted else "normal"})'
    return changes, InvertData(start=start, end=end, contig_ids=tuple(ids)), description


def _move(state: AppState, from_position: int, to_position: int) -> Transform:
    _require_map(state)
    from_position = _require_position(state, from_position, "from_position")
    to_position = _require_position(state, to_position, "to_position")
    order = list(state.contig_order)
    contig_id = order.pop(from_position)
    order.insert(to_position, contig_id)
    data = MoveData(from_position=from_position, to_position=to_position, contig_id=contig_id)
    description = f"Moved contig from position {from_position} to {to_position}"
    return {"contig_order": tuple(order)}, data, description


def _exclude(state: AppState, position: int) -> Transform:
    _require_map(state)
    position = _require_position(state, position)
    contig_id = state.contig_order[position]
    changes = {
        "contig_order": state.contig_order[:position] + state.contig_order[position + 1 :],
        "excluded": state.excluded | {contig_id},
    }
    description = f'Excluded contig "{state.contigs[contig_id].name}"'
    return changes, ExcludeData(contig_id=contig_id, position=position, excluded=True), description


def _include(state: AppState, contig_id: int, position: Optional[int] = None) -> Transform:
    _require_map(state)
    if contig_id not in state.excluded:
        raise ValidationError(f"Contig {contig_id} is not excluded")
    size = len(state.contig_order)
    position = size if position is None else position
    if not _is_int(position) or not 0 <= int(position) <= size:
        raise ValidationError(f"Invalid position: {position}. Must be an integer in [0, {size}]")
    position = int(position)
    changes = {
        "contig_order": state.contig_order[:position] + (contig_id,) + state.contig_order[position:],
        "excluded": state.excluded - {contig_id},
    }
    description = f'Re-included contig "{state.contigs[contig_id].name}" at position {position}'
    return changes, ExcludeData(contig_id=contig_id, position=position, excluded=False), description


def _paint(state: AppState, positions: Iterable[int], scaffold_id: Optional[int]) -> Transform:
    _require_map(state)
    if scaffold_id is not None and not _is_int(scaffold_id):
        raise ValidationError(f"Invalid scaffold_id: {scaffold_id}")
    unique: list[int] = []
    for raw in positions:
        position = _require_position(state, raw)
        if position not in unique:
            unique.append(position)
    if not unique:
        raise ValidationError("No contigs to paint")
    ids = tuple(state.contig_order[p] for p in unique)
    previous = tuple(state.contigs[cid].scaffold_id for cid in ids)
    scaffold_id = None if scaffold_id is None else int(scaffold_id)
    painted = {cid: replace(state.contigs[cid], scaffold_id=scaffold_id) for cid in ids}
    data = PaintData(positions=tuple(unique), contig_ids=ids, scaffold_id=scaffold_id, previous=previous)
    if scaffold_id is None:
        description = f"Unpainted {len(ids)} contig(s)"
    else:
        description = f"Painted {len(ids)} contig(s) with scaffold {scaffold_id}"
    return {"contigs": _patch(state.contigs, painted)}, data, description


def _forward(state: AppState, operation: CurationOperation) -> Transform:
    """Re-run ``operation`` from its recorded parameters."""

    kind = operation.kind
    data = operation.data
    if kind is OperationKind.CUT:
        return _cut(state, data.position, data.pixel_offset, (data.left_id, data.right_id))
    if kind is OperationKind.JOIN:
        return _join(state, data.position, data.position + 1, data.merged_id)
    if kind is OperationKind.INVERT:
        return _invert(state, data.start, data.end)
    if kind is OperationKind.MOVE:
        return _move(state, data.from_position, data.to_position)
    if kind is OperationKind.PAINT:
        return _paint(state, data.positions, data.scaffold_id)
    if kind is OperationKind.EXCLUDE:
        if data.excluded:
            return _exclude(state, data.position)
        return _include(state, data.contig_id, data.position)
    raise TypeError(f"Unsupported operation kind: {kind!r}")


def _inverse(state: AppState, operation: CurationOperation) -> Changes:
    """Fields that take ``state`` back to where it was before ``operation``."""

    kind = operation.kind
    data = operation.data
    if kind is OperationKind.CUT:
        position = _locate(state, data.left_id)
        order = state.contig_order[:position] + (data.contig_id,) + state.contig_order[position + 2 :]
        return {"contig_order": order}
    if kind is OperationKind.JOIN:
        position = _locate(state, data.merged_id)
        order = state.contig_order[:position] + (data.first_id, data.second_id) + state.contig_order[position + 1 :]
        if not data.healed:
            return {"contig_order": order}
        parent = state.contigs[data.merged_id]
        previous_inverted = parent.inverted if data.previous_inverted is None else data.previous_inverted
        restored = replace(parent, inverted=previous_inverted, scaffold_id=data.previous_scaffold_id)
        contigs = _patch(state.contigs, {data.merged_id: restored} if restored != parent else {})
        return {"contig_order": order, "contigs": contigs}
    if kind is OperationKind.INVERT:
        changes, _, _ = _invert(state, data.start, data.end)
        return changes
    if kind is OperationKind.MOVE:
        changes, _, _ = _move(state, data.to_position, data.from_position)
        return changes
    if kind is OperationKind.PAINT:
        restored = {
            cid: replace(state.contigs[cid], scaffold_id=previous)
            for cid, previous in zip(data.contig_ids, data.previous)
        }
        return {"contigs": _patch(state.contigs, restored)}
    if kind is OperationKind.EXCLUDE:
        if data.excluded:
            changes, _, _ = _include(state, data.contig_id, data.position)
        else:
            changes, _, _ = _exclude(state, data.position)
        return changes
    raise TypeError(f"Unsupported operation kind: {kind!r}")


def apply_to_state(state: AppState, operation: CurationOperation) -> Tuple[AppState, CurationOperation]:
    """Apply ``operation`` to ``state`` without a store; returns the new state and the applied record."""

    changes, data, description = _forward(state, operation)
    applied = replace(operation, data=data, description=operation.description or description)
    new_state = replace(state, undo_stack=state.undo_stack + (applied,), redo_stack=(), **changes)
    return new_state, applied


def replay_operation(state: AppState, entry: CurationLogEntry) -> AppState:
    """Replay handler for :func:`hicurate.provenance.log.replay_log`."""

    operation = operation_from_parameters(entry.operation_type, entry.parameters, description=entry.description)
    new_state, _ = apply_to_state(state, operation)
    return new_state


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class CurationEngine:
    """Applies curation operations to a :class:`StateStore` with undo/redo and provenance."""

    def __init__(
        self,
        store: Optional[StateStore] = None,
        *,
        log: Optional[CurationLog] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.store = store or StateStore()
        self.log = log
        self.events = events or EventBus()

    @property
    def state(self) -> AppState:
        return self.store.get()

    def load_map(self, map_data: MapData) -> AppState:
        state = self.store.load_map(map_data)
        if self.log is not None:
            self.log.initialize(state)
        self.events.publish(
            "file:loaded",
            {"filename": map_data.filename, "contigs": len(state.contigs), "texture_size": map_data.texture_size},
        )
        return state

    def attach_log(self, log: CurationLog, *, initialize: bool = True) -> CurationLog:
        if initialize:
            log.initialize(self.state)
        self.log = log
        return log

    def detach_log(self) -> Optional[CurationLog]:
        log, self.log = self.log, None
        return log

    def reset(self) -> None:
        self.store.reset()
        if self.log is not None:
            self.log.clear()

    # -- operations ---------------------------------------------------------

    def cut(self, position: int, pixel_offset: int) -> CurationOperation:
        return self._run(OperationKind.CUT, _cut(self.state, position, pixel_offset))

    def join(self, position_a: int, position_b: int) -> CurationOperation:
        return self._run(OperationKind.JOIN, _join(self.state, position_a, position_b))

    def invert(self, target: Union[int, Sequence[int]]) -> CurationOperation:
        """Invert one position, or a ``(start, end)`` inclusive range of positions."""
        if isinstance(target, (tuple, list)):
            if len(target) != 2:
                raise ValidationError(f"Invalid range: {target!r}. Expected (start, end)")
            return self.invert_range(target[0], target[1])
        return self._run(OperationKind.INVERT, _invert(self.state, target, target))

    def invert_range(self, start: int, end: int) -> CurationOperation:
        return self._run(OperationKind.INVERT, _invert(self.state, start, end))

    def move(self, from_position: int, to_position: int) -> Optional[CurationOperation]:
        transform = _move(self.state, from_position, to_position)
        if from_position == to_position:
            return None
        return self._run(OperationKind.MOVE, transform)

    def exclude(self, position: int) -> CurationOperation:
        return self._run(OperationKind.EXCLUDE, _exclude(self.state, position))

    def include(self, contig_id: int, position: Optional[int] = None) -> CurationOperation:
        return self._run(OperationKind.EXCLUDE, _include(self.state, contig_id, position))

    def paint(self, positions: Iterable[int], scaffold_id: Optional[int]) -> CurationOperation:
        return self._run(OperationKind.PAINT, _paint(self.state, positions, scaffold_id))

    def apply_operation(self, operation: CurationOperation) -> CurationOperation:
        """Re-apply a recorded operation (e.g. from a script) as a new history entry."""
        changes, data, description = _forward(self.state, operation)
        before = self.state
        fresh = replace(operation, data=data, description=operation.description or description).restamped()
        stamped = self.store.commit(fresh, **changes)
        self._after_forward(before, stamped)
        return stamped

    @staticmethod
    def replay_handler():
        return replay_operation

    # -- undo / redo --------------------------------------------------------

    def undo(self) -> UndoResult:
        state = self.state
        if not state.undo_stack:
            return UndoResult(False, None, "nothing to undo")
        operation = state.undo_stack[-1]
        changes = _inverse(state, operation)
        self.store.update(
            undo_stack=state.undo_stack[:-1],
            redo_stack=state.redo_stack + (operation,),
            **changes,
        )
        if self.log is not None and len(self.log):
            self.log.remove_last(1)
        LOGGER.debug("undo kind=%s description=%s", operation.kind.value, operation.description)
        self.events.publish("curation:undo", operation.parameters())
        self.events.publish("render:request", {})
        return UndoResult(True, operation, f"Undid: {operation.description}")

    def redo(self) -> UndoResult:
        state = self.state
        if not state.redo_stack:
            return UndoResult(False, None, "nothing to redo")
        operation = state.redo_stack[-1]
        changes, data, _ = _forward(state, operation)
        redone = replace(operation, data=data).restamped()
        self.store.update(
            undo_stack=state.undo_stack + (redone,),
            redo_stack=state.redo_stack[:-1],
            **changes,
        )
        self._after_forward(state, redone)
        self.events.publish("curation:redo", redone.parameters())
        return UndoResult(True, redone, f"Redid: {redone.description}")

    def undo_batch(self, batch_id: str) -> int:
        """Undo consecutive top-of-stack operations tagged with ``batch_id``."""
        count = 0
        while self.state.undo_stack and self.state.undo_stack[-1].batch_id == batch_id:
            self.undo()
            count += 1
        LOGGER.debug("undo_batch batch_id=%s undone=%s", batch_id, count)
        return count

    @property
    def can_undo(self) -> bool:
        return bool(self.state.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.state.redo_stack)

    # -- internals ----------------------------------------------------------

    def _run(self, kind: OperationKind, transform: Transform) -> CurationOperation:
        changes, data, description = transform
        before = self.state
        operation = CurationOperation(kind=kind, description=description, data=data)
        stamped = self.store.commit(operation, **changes)
        self._after_forward(before, stamped)
        return stamped

    def _after_forward(self, before: AppState, operation: CurationOperation) -> None:
        if self.log is not None:
            self.log.record(operation, take_snapshot(before), take_snapshot(self.state))
        LOGGER.debug("%s applied: %s", operation.kind.value, operation.description)
        self.events.publish(f"curation:{operation.kind.value}", operation.parameters())
        self.events.publish("render:request", {})


__all__ = [
    "ValidationError",
    "UndoResult",
    "CurationEngine",
    "apply_to_state",
    "replay_operation",
]
