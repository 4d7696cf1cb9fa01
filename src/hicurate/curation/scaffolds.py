"""Scaffold registry: named, coloured contig groups painted through the engine."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from ..core.operations import CurationOperation
from .engine import CurationEngine, ValidationError

LOGGER = logging.getLogger(__name__)

SCAFFOLD_COLORS = (
    "#e6194B", "#3cb44b", "#ffe119", "#4363d8", "#f58231", "#911eb4",
    "#42d4f4", "#f032e6", "#bfef45", "#fabed4", "#469990", "#dcbeff",
    "#9A6324", "#800000", "#aaffc3", "#808000", "#ffd8b1", "#000075",
)


@dataclass(frozen=True)
class Scaffold:
    id: int
    name: str
    color: str


class ScaffoldManager:
    """Creates scaffolds and assigns contigs to them.

    Assignments are ordinary ``paint`` operations, so they share the engine's
    undo history and curation log. The registry itself (names, colours) is
    session metadata and is not part of the undo history.
    """

    def __init__(self, engine: CurationEngine) -> None:
        self.engine = engine
        self._scaffolds: Dict[int, Scaffold] = {}
        self._next_id = 1
        self._active_id: Optional[int] = None

    def create(self, name: Optional[str] = None) -> Scaffold:
        scaffold_id = self._next_id
        self._next_id += 1
        color = SCAFFOLD_COLORS[(scaffold_id - 1) % len(SCAFFOLD_COLORS)]
        scaffold = Scaffold(id=scaffold_id, name=name or f"Scaffold {scaffold_id}", color=color)
        self._scaffolds[scaffold_id] = scaffold
        LOGGER.debug("scaffold created id=%s name=%s", scaffold_id, scaffold.name)
        return scaffold

    def get(self, scaffold_id: int) -> Optional[Scaffold]:
        return self._scaffolds.get(scaffold_id)

    def all(self) -> List[Scaffold]:
        return [self._scaffolds[key] for key in sorted(self._scaffolds)]

    def rename(self, scaffold_id: int, name: str) -> Scaffold:
        scaffold = replace(self._require(scaffold_id), name=name)
        self._scaffolds[scaffold_id] = scaffold
        return scaffold

    def delete(self, scaffold_id: int) -> Optional[CurationOperation]:
        """Remove a scaffold and unpaint the contigs in the current order that carried it.

        Refused while an excluded contig still carries the scaffold.
        """
        self._require(scaffold_id)
        state = self.engine.state
        held = sorted(cid for cid in state.excluded if state.contigs[cid].scaffold_id == scaffold_id)
        if held:
            names = ", ".join(state.contigs[cid].name for cid in held)
            raise ValidationError(
                f"Scaffold {scaffold_id} is still assigned to excluded contig(s): {names}. Include them first"
            )
        positions = self.contigs_in_scaffold(scaffold_id)
        operation = self.engine.paint(positions, None) if positions else None
        del self._scaffolds[scaffold_id]
        if self._active_id == scaffold_id:
            self._active_id = None
        return operation

    @property
    def active_id(self) -> Optional[int]:
        return self._active_id

    def set_active(self, scaffold_id: Optional[int]) -> None:
        if scaffold_id is not None:
            self._require(scaffold_id)
        self._active_id = scaffold_id

    def paint(self, positions: Iterable[int], scaffold_id: Optional[int]) -> CurationOperation:
        if scaffold_id is not None:
            self._require(scaffold_id)
        return self.engine.paint(positions, scaffold_id)

    def paint_active(self, positions: Iterable[int]) -> CurationOperation:
        if self._active_id is None:
            raise ValidationError("No active scaffold")
        return self.engine.paint(positions, self._active_id)

    def contigs_in_scaffold(self, scaffold_id: int) -> List[int]:
        """Positions in the current order whose contig belongs to ``scaffold_id``."""
        state = self.engine.state
        return [
            position
            for position, contig_id in enumerate(state.contig_order)
            if state.contigs[contig_id].scaffold_id == scaffold_id
        ]

    def reset(self) -> None:
        self._scaffolds.clear()
        self._next_id = 1
        self._active_id = None

    def _require(self, scaffold_id: int) -> Scaffold:
        scaffold = self._scaffolds.get(scaffold_id)
        if scaffold is None:
            raise ValidationError(f"Unknown scaffold {scaffold_id}")
        return scaffold


__all__ = ["SCAFFOLD_COLORS", "Scaffold", "ScaffoldManager"]
