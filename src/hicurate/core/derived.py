"""Cached per-order views that invalidate through :meth:`StateStore.select`."""

from __future__ import annotations

from typing import Callable, List, Optional

from .state import AppState, StateStore


class DerivedState:
    """Names, scaffold ids and boundaries in display order, recomputed lazily."""

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._names: Optional[List[str]] = None
        self._scaffold_ids: Optional[List[Optional[int]]] = None
        self._boundaries: Optional[List[float]] = None
        self._unsubscribers: List[Callable[[], None]] = [
            store.select(lambda s: s.contig_order, self._invalidate),
            store.select(lambda s: s.contigs, self._invalidate),
            store.select(lambda s: s.map, self._invalidate),
        ]

    def _invalidate(self, _new, _old) -> None:
        self._names = None
        self._scaffold_ids = None
        self._boundaries = None

    def _state(self) -> AppState:
        return self._store.get()

    def contig_names(self) -> List[str]:
        if self._names is None:
            state = self._state()
            self._names = [state.contigs[idx].name for idx in state.contig_order]
        return self._names

    def scaffold_ids(self) -> List[Optional[int]]:
        if self._scaffold_ids is None:
            state = self._state()
            self._scaffold_ids = [state.contigs[idx].scaffold_id for idx in state.contig_order]
        return self._scaffold_ids

    def boundaries(self) -> List[float]:
        """Cumulative contig ends as fractions of the texture size."""
        if self._boundaries is None:
            state = self._state()
            if state.map is None or state.map.texture_size <= 0:
                return []
            total = float(state.map.texture_size)
            accumulated = 0
            boundaries: List[float] = []
            for idx in state.contig_order:
                accumulated += state.contigs[idx].pixel_length
                boundaries.append(accumulated / total)
            self._boundaries = boundaries
        return self._boundaries

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
