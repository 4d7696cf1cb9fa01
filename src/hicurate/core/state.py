"""Immutable application state and the store that swaps snapshots.

Every write builds a new :class:`AppState` with ``dataclasses.replace`` so
references handed out earlier stay valid. Changing one contig replaces the
``contigs`` tuple only; ``contig_order`` and the stacks keep their identity,
which is what :meth:`StateStore.select` relies on.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from .invariants import validate_contigs, validate_order
from .operations import CurationOperation

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Contig:
    """One assembled fragment; ``original_index`` is its slot in the contig tuple."""

    name: str
    original_index: int
    length: int
    pixel_start: int
    pixel_end: int
    inverted: bool = False
    scaffold_id: Optional[int] = None
    parent: Optional[int] = None
    members: Tuple[int, ...] = ()

    @property
    def pixel_length(self) -> int:
        return self.pixel_end - self.pixel_start

    def coordinate_at(self, visual_offset: int) -> int:
        """Map an offset along the displayed contig to a pixel coordinate."""
        if self.inverted:
            return self.pixel_end - visual_offset
        return self.pixel_start + visual_offset


@dataclass(frozen=True)
class MapData:
    """What the loader hands over: contigs, optional initial order and contact map."""

    filename: str
    texture_size: int
    contigs: Tuple[Contig, ...]
    contig_order: Optional[Tuple[int, ...]] = None
    contact_map: Optional[np.ndarray] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BatchContext:
    batch_id: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AppState:
    map: Optional[MapData] = None
    contigs: Tuple[Contig, ...] = ()
    contig_order: Tuple[int, ...] = ()
    excluded: FrozenSet[int] = frozenset()
    undo_stack: Tuple[CurationOperation, ...] = ()
    redo_stack: Tuple[CurationOperation, ...] = ()


Listener = Callable[[AppState], None]
Selector = Callable[[AppState], Any]


class _Subscription:
    __slots__ = ("callback", "active")

    def __init__(self, callback: Callable[[AppState, AppState], None]) -> None:
        self.callback = callback
        self.active = True


class StateStore:
    """Holds the current :class:`AppState` and notifies subscribers on every swap."""

    def __init__(self, initial: Optional[AppState] = None) -> None:
        self._state = initial or AppState()
        self._subscriptions: List[_Subscription] = []
        self._batch: Optional[BatchContext] = None

    def get(self) -> AppState:
        return self._state

    @property
    def batch_context(self) -> Optional[BatchContext]:
        return self._batch

    # -- writes -------------------------------------------------------------

    def update(self, **changes: Any) -> AppState:
        """Install a new snapshot with ``changes`` merged in and notify subscribers."""
        new_state = replace(self._state, **changes)
        self._swap(new_state)
        return new_state

    def replace_state(self, new_state: AppState) -> AppState:
        self._swap(new_state)
        return new_state

    def update_contig(self, contig_id: int, **changes: Any) -> AppState:
        return self.update_contigs({contig_id: changes})

    def update_contigs(self, updates: Mapping[int, Mapping[str, Any]]) -> AppState:
        contigs = self._state.contigs
        for contig_id in updates:
            if not 0 <= contig_id < len(contigs):
                raise IndexError(f"Unknown contig id {contig_id}; {len(contigs)} contigs loaded")
        patched = tuple(
            replace(contig, **updates[idx]) if idx in updates else contig for idx, contig in enumerate(contigs)
        )
        return self.update(contigs=patched)

    def append_contigs(self, *contigs: Contig) -> Tuple[int, ...]:
        base = len(self._state.contigs)
        stamped = tuple(replace(contig, original_index=base + idx) for idx, contig in enumerate(contigs))
        self.update(contigs=self._state.contigs + stamped)
        return tuple(range(base, base + len(stamped)))

    def stamp(self, operation: CurationOperation) -> CurationOperation:
        """Merge the active batch context into ``operation``."""
        if self._batch is None:
            return operation
        batch_id = operation.batch_id or self._batch.batch_id
        metadata = {**self._batch.metadata, **operation.metadata}
        return replace(operation, batch_id=batch_id, metadata=metadata)

    def commit(self, operation: CurationOperation, *, clear_redo: bool = True, **changes: Any) -> CurationOperation:
        """Apply ``changes`` and push ``operation`` in a single snapshot swap."""
        stamped = self.stamp(operation)
        changes["undo_stack"] = self._state.undo_stack + (stamped,)
        if clear_redo:
            changes["redo_stack"] = ()
        self.update(**changes)
        return stamped

    def push_operation(self, operation: CurationOperation) -> CurationOperation:
        return self.commit(operation)

    def load_map(self, map_data: MapData) -> AppState:
        contigs = tuple(map_data.contigs)
        order = tuple(map_data.contig_order) if map_data.contig_order is not None else tuple(range(len(contigs)))
        validate_contigs(contigs)
        validate_order(order, contigs)
        LOGGER.debug("load_map filename=%s contigs=%s order=%s", map_data.filename, len(contigs), len(order))
        return self.replace_state(AppState(map=map_data, contigs=contigs, contig_order=order))

    def reset(self) -> AppState:
        self._batch = None
        return self.replace_state(AppState())

    # -- batch context ------------------------------------------------------

    def set_batch_context(self, batch_id: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._batch = BatchContext(batch_id=batch_id, metadata=dict(metadata or {}))

    def clear_batch_context(self) -> None:
        self._batch = None

    @contextmanager
    def batch(self, batch_id: str, **metadata: Any) -> Iterator[BatchContext]:
        self.set_batch_context(batch_id, metadata)
        try:
            yield self._batch
        finally:
            self.clear_batch_context()

    # -- subscriptions ------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._add(lambda new, _old: listener(new))

    def select(self, selector: Selector, callback: Callable[[Any, Any], None]) -> Callable[[], None]:
        """Call ``callback(new, old)`` whenever ``selector`` yields a different object."""

        def _on_change(new: AppState, old: AppState) -> None:
            new_value = selector(new)
            old_value = selector(old)
            if new_value is not old_value:
                callback(new_value, old_value)

        return self._add(_on_change)

    def _add(self, callback: Callable[[AppState, AppState], None]) -> Callable[[], None]:
        subscription = _Subscription(callback)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def _swap(self, new_state: AppState) -> None:
        old_state = self._state
        self._state = new_state
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(new_state, old_state)
            except Exception:
                LOGGER.exception("State subscriber failed")


def contig_at(state: AppState, position: int) -> Contig:
    return state.contigs[state.contig_order[position]]


def ordered_contigs(state: AppState) -> List[Contig]:
    return [state.contigs[idx] for idx in state.contig_order]


def order_positions(state: AppState) -> Dict[int, int]:
    """Map contig id -> position in the current order."""
    return {contig_id: position for position, contig_id in enumerate(state.contig_order)}


__all__ = [
    "Contig",
    "MapData",
    "BatchContext",
    "AppState",
    "StateStore",
    "contig_at",
    "ordered_contigs",
    "order_positions",
]
