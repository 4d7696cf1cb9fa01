"""Bulk curation: AutoCut application, selections, and batched edits.

Every helper that edits the assembly runs inside one store batch context, so
the operations it issues share a ``batch_id`` and can be reverted together
with :meth:`CurationEngine.undo_batch`. Index-changing work runs from the
highest position down so earlier positions stay valid.
"""
from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from ..core.operations import CurationOperation
from ..core.state import AppState
from ..config import resolve_autocut_params
from .autocut import AutoCutParams, auto_cut
from .engine import CurationEngine

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    operations_performed: int
    description: str
    batch_id: Optional[str] = None
    operations: Tuple[CurationOperation, ...] = ()


def _new_batch_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:8]}"


def auto_cut_contigs(engine: CurationEngine, matrix=None, params: Optional[AutoCutParams] = None) -> BatchResult:
    """Detect breakpoints on the current assembly and cut at each one.

    ``matrix`` defaults to the loaded map's contact map and ``params`` to
    :func:`hicurate.config.resolve_autocut_params`, so ``HICURATE_*`` overrides
    apply. A failing cut stops the batch; cuts already made stay applied and
    the error propagates.
    """

    state = engine.state
    if state.map is None:
        return BatchResult(0, "No map loaded")
    if matrix is None:
        matrix = state.map.contact_map
    if matrix is None:
        return BatchResult(0, "No contact map available")

    params = resolve_autocut_params(params)
    result = auto_cut(matrix, state.contigs, state.contig_order, params, texture_size=state.map.texture_size)
    if result.total_breakpoints == 0:
        LOGGER.debug("auto_cut_contigs: no breakpoints (rejected=%s)", result.rejected)
        return BatchResult(0, "No breakpoints detected")

    batch_id = _new_batch_id("autocut")
    applied: List[CurationOperation] = []
    with engine.store.batch(batch_id, algorithm="autocut", algorithmParams=params.to_dict()):
        for position in sorted(result.breakpoints, reverse=True):
            for bp in sorted(result.breakpoints[position], key=lambda item: item.offset, reverse=True):
                # the contig at ``position`` is always the low-offset remainder of earlier cuts
                current = engine.state
                contig = current.contigs[current.contig_order[position]]
                if not 0 < bp.offset < contig.pixel_length:
                    LOGGER.warning(
                        "auto_cut_contigs skipped offset=%s for %s (length %s)", bp.offset, contig.name, contig.pixel_length
                    )
                    continue
                applied.append(engine.cut(position, contig.coordinate_at(bp.offset)))

    LOGGER.info("auto_cut_contigs batch_id=%s cuts=%s rejected=%s", batch_id, len(applied), result.rejected)
    return BatchResult(
        operations_performed=len(applied),
        description=f"Auto cut: {len(applied)} breakpoint(s) detected and applied",
        batch_id=batch_id,
        operations=tuple(applied),
    )


def select_by_pattern(state: AppState, pattern: str) -> List[int]:
    """Positions whose contig name matches the glob ``pattern`` (case-sensitive)."""
    if state.map is None:
        return []
    return [
        position
        for position, contig_id in enumerate(state.contig_order)
        if fnmatch.fnmatchcase(state.contigs[contig_id].name, pattern)
    ]


def select_by_size(state: AppState, min_bp: Optional[int] = None, max_bp: Optional[int] = None) -> List[int]:
    """Positions whose contig length lies in ``[min_bp, max_bp]``; ``None`` leaves a side open."""
    if state.map is None:
        return []
    matches = []
    for position, contig_id in enumerate(state.contig_order):
        length = state.contigs[contig_id].length
        if min_bp is not None and length < min_bp:
            continue
        if max_bp is not None and length > max_bp:
            continue
        matches.append(position)
    return matches


def batch_invert(engine: CurationEngine, positions: Iterable[int]) -> BatchResult:
    targets = sorted(set(positions))
    if engine.state.map is None:
        return BatchResult(0, "No map loaded")
    if not targets:
        return BatchResult(0, "No contigs selected")

    batch_id = _new_batch_id("invert")
    with engine.store.batch(batch_id, algorithm="invert"):
        applied = tuple(engine.invert(position) for position in targets)
    return BatchResult(len(applied), f"Inverted {len(applied)} contig(s)", batch_id, applied)


def _adjacent_runs(positions: List[int]) -> List[List[int]]:
    runs: List[List[int]] = []
    for position in positions:
        if runs and position == runs[-1][-1] + 1:
            runs[-1].append(position)
        else:
            runs.append([position])
    return [run for run in runs if len(run) >= 2]


def batch_join(engine: CurationEngine, positions: Iterable[int]) -> BatchResult:
    """Join every run of adjacent selected positions into one contig.

    Runs and the joins inside them go right to left so positions still to be
    joined do not shift.
    """

    if engine.state.map is None:
        return BatchResult(0, "No map loaded")
    targets = sorted(set(positions))
    if len(targets) < 2:
        return BatchResult(0, "Need at least 2 selected contigs to join")
    runs = _adjacent_runs(targets)
    if not runs:
        return BatchResult(0, "No adjacent selected contigs to join")

    batch_id = _new_batch_id("join")
    applied: List[CurationOperation] = []
    with engine.store.batch(batch_id, algorithm="join"):
        for run in reversed(runs):
            for position in reversed(run[:-1]):
                applied.append(engine.join(position, position + 1))
    return BatchResult(
        len(applied),
        f"Joined {len(applied)} pair(s) in {len(runs)} run(s)",
        batch_id,
        tuple(applied),
    )


def sort_by_length(engine: CurationEngine, descending: bool = False) -> BatchResult:
    """Reorder the assembly by contig length with a selection sort of ``move`` calls."""

    state = engine.state
    if state.map is None:
        return BatchResult(0, "No map loaded")
    working = list(state.contig_order)
    ranked = sorted(working, key=lambda cid: state.contigs[cid].length, reverse=descending)

    batch_id = _new_batch_id("sort")
    applied: List[CurationOperation] = []
    with engine.store.batch(batch_id, algorithm="sort_by_length", descending=descending):
        for target, contig_id in enumerate(ranked):
            current = working.index(contig_id)
            if current == target:
                continue
            applied.append(engine.move(current, target))
            working.insert(target, working.pop(current))

    direction = "descending" if descending else "ascending"
    return BatchResult(
        len(applied),
        f"Sorted {len(working)} contigs by length ({direction}), {len(applied)} move(s)",
        batch_id,
        tuple(applied),
    )


def batch_cut_by_size(engine: CurationEngine, min_length_bp: int) -> BatchResult:
    """Cut every contig longer than ``min_length_bp`` at its visual midpoint."""

    state = engine.state
    if state.map is None:
        return BatchResult(0, "No map loaded")
    targets = [
        position
        for position, contig_id in enumerate(state.contig_order)
        if state.contigs[contig_id].length > min_length_bp
    ]

    batch_id = _new_batch_id("cut-by-size")
    applied: List[CurationOperation] = []
    with engine.store.batch(batch_id, algorithm="cut_by_size", min_length_bp=min_length_bp):
        for position in reversed(targets):
            contig = engine.state.contigs[engine.state.contig_order[position]]
            midpoint = contig.pixel_length // 2
            if not 0 < midpoint < contig.pixel_length:
                LOGGER.warning("batch_cut_by_size skipped %s: %s pixel(s) wide", contig.name, contig.pixel_length)
                continue
            applied.append(engine.cut(position, contig.coordinate_at(midpoint)))

    return BatchResult(
        len(applied),
        f"Cut {len(applied)} contig(s) larger than {min_length_bp} bp at their midpoints",
        batch_id,
        tuple(applied),
    )


__all__ = [
    "BatchResult",
    "auto_cut_contigs",
    "select_by_pattern",
    "select_by_size",
    "batch_invert",
    "batch_join",
    "sort_by_length",
    "batch_cut_by_size",
]
