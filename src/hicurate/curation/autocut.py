"""
AutoCut: breakpoint detection on the diagonal contact signal.

A misjoined contig shows up on a Hi-C map as a sharp loss of near-diagonal
contacts at the junction. For every contig in display order we build a 1D
density curve from the band just off the diagonal, compare it against a local
baseline, and report the deepest point of each sufficiently wide drop as a
candidate cut offset.

Pure functions over numpy arrays; nothing here touches engine state.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.state import Contig

LOGGER = logging.getLogger(__name__)

CONFIDENCE_FLOOR = 0.5
BASELINE_SPAN = 4


@dataclass(frozen=True)
class AutoCutParams:
    """Detector tuning; ``window_size`` and ``min_fragment_size`` are in matrix pixels."""

    cut_threshold: float = 0.30
    window_size: int = 8
    min_fragment_size: int = 16

    def __post_init__(self) -> None:
        if not 0.0 < float(self.cut_threshold) < 1.0:
            raise ValueError(f"cut_threshold must be in (0, 1), got {self.cut_threshold}")
        if int(self.window_size) < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}")
        if int(self.min_fragment_size) < 1:
            raise ValueError(f"min_fragment_size must be >= 1, got {self.min_fragment_size}")

    def to_dict(self) -> Dict[str, float]:
        return {
            "cut_threshold": float(self.cut_threshold),
            "window_size": int(self.window_size),
            "min_fragment_size": int(self.min_fragment_size),
        }


@dataclass(frozen=True)
class Breakpoint:
    offset: int
    confidence: float
    strength: float = 0.0


@dataclass(frozen=True)
class AutoCutResult:
    breakpoints: Dict[int, List[Breakpoint]] = field(default_factory=dict)
    total_breakpoints: int = 0
    rejected: int = 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def as_square_matrix(matrix) -> np.ndarray:
    """Return ``matrix`` as a 2D float array, reshaping a flat ``size * size`` buffer."""

    arr = np.asarray(matrix, dtype=float)
    if arr.ndim == 1:
        size = int(round(math.sqrt(arr.size)))
        if size * size != arr.size:
            raise ValueError(f"Flat contact map of length {arr.size} is not a square")
        arr = arr.reshape(size, size)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise ValueError(f"Contact map must be square, got shape {arr.shape}")
    return arr


def compute_diagonal_density(matrix, start: int, end: int, window_size: int) -> np.ndarray:
    """Mean of the in-bounds values at ``(i+d, i)`` and ``(i, i+d)`` for ``d = 1..window_size``."""

    mat = as_square_matrix(matrix)
    size = mat.shape[0]
    positions = np.arange(start, end)
    total = np.zeros(positions.size, dtype=float)
    count = np.zeros(positions.size, dtype=float)
    inside = (positions >= 0) & (positions < size)
    for d in range(1, int(window_size) + 1):
        shifted = positions + d
        valid = inside & (shifted < size)
        if not valid.any():
            break
        rows = positions[valid]
        cols = shifted[valid]
        total[valid] += mat[cols, rows] + mat[rows, cols]
        count[valid] += 2
    return np.divide(total, count, out=np.zeros_like(total), where=count > 0)


def _windowed_mean(values: np.ndarray, use: np.ndarray, half_window: int) -> np.ndarray:
    n = values.size
    sums = np.concatenate(([0.0], np.cumsum(np.where(use, values, 0.0))))
    counts = np.concatenate(([0], np.cumsum(use.astype(int))))
    idx = np.arange(n)
    lo = np.clip(idx - half_window, 0, n)
    hi = np.clip(idx + half_window + 1, 0, n)
    window_sums = sums[hi] - sums[lo]
    window_counts = counts[hi] - counts[lo]
    return np.divide(window_sums, window_counts, out=np.zeros(n, dtype=float), where=window_counts > 0)


def local_baseline(density, half_window: int, cut_threshold: Optional[float] = None) -> np.ndarray:
    """Windowed mean of the non-zero density over ``[i - half_window, i + half_window]``.

    With ``cut_threshold`` a second pass recomputes the mean without the
    positions the first pass flags as drops, so a deep drop does not pull its
    own baseline down. Positions left without support keep the first-pass value.
    """

    values = np.asarray(density, dtype=float)
    if values.size == 0:
        return values.copy()
    support = values > 0
    first = _windowed_mean(values, support, int(half_window))
    if cut_threshold is None:
        return first
    flagged = (first > 0) & (values < (1.0 - cut_threshold) * first)
    if not flagged.any():
        return first
    second = _windowed_mean(values, support & ~flagged, int(half_window))
    return np.where(second > 0, second, first)


def _runs(mask: np.ndarray) -> List[Tuple[int, int]]:
    """Half-open ``(start, end)`` spans of consecutive True values."""
    if not mask.any():
        return []
    padded = np.concatenate(([False], mask, [False])).astype(np.int8)
    edges = np.flatnonzero(np.diff(padded))
    return [(int(edges[i]), int(edges[i + 1])) for i in range(0, edges.size, 2)]


def _merge_runs(runs: Sequence[Tuple[int, int]], distance: int) -> List[Tuple[int, int]]:
    merged: List[Tuple[int, int]] = []
    for start, end in runs:
        if merged and start - merged[-1][1] <= distance:
            merged[-1] = (merged[-1][0], end)
        else:
            merged.append((start, end))
    return merged


def detect_breakpoints(
    density,
    window_size: int,
    cut_threshold: float,
    min_fragment_size: int,
    include_low_confidence: bool = False,
) -> List[Breakpoint]:
    """Find sharp relative drops in a density curve; offsets index into ``density``."""

    values = np.asarray(density, dtype=float)
    n = values.size
    if n == 0 or n < 2 * min_fragment_size:
        return []

    baseline = local_baseline(values, BASELINE_SPAN * window_size, cut_threshold=cut_threshold)
    low = (baseline > 0) & (values < (1.0 - cut_threshold) * baseline)
    min_width = max(3, window_size // 2)
    runs = [run for run in _runs(low) if run[1] - run[0] >= min_width]
    regions = _merge_runs(runs, window_size)

    results: List[Breakpoint] = []
    for start, end in regions:
        segment = values[start:end]
        ties = np.flatnonzero(segment == segment.min())
        offset = start + int(ties[ties.size // 2])
        if offset < min_fragment_size or n - offset < min_fragment_size:
            continue
        reference = baseline[offset]
        if reference <= 0:
            continue
        confidence = float(min(1.0, (reference - values[offset]) / reference))
        if confidence <= 0:
            continue
        region_base = baseline[start:end]
        deficit = np.divide(
            region_base - segment, region_base, out=np.zeros_like(segment), where=region_base > 0
        )
        strength = float(np.clip(deficit, 0.0, None).sum())
        if confidence > CONFIDENCE_FLOOR or include_low_confidence:
            results.append(Breakpoint(offset=offset, confidence=confidence, strength=strength))
    return results


def auto_cut(
    matrix,
    contigs: Sequence[Contig],
    order: Sequence[int],
    params: Optional[AutoCutParams] = None,
    *,
    texture_size: Optional[int] = None,
    include_low_confidence: bool = False,
) -> AutoCutResult:
    """Run breakpoint detection over every contig in ``order``.

    ``matrix`` may be an overview smaller than the texture; contig spans are
    scaled by ``size / texture_size`` and offsets are scaled back, so the
    returned offsets are visual offsets in contig pixels. Keys of
    ``breakpoints`` are positions in ``order``.
    """

    params = params or AutoCutParams()
    mat = as_square_matrix(matrix)
    size = mat.shape[0]
    texture = float(texture_size or size)
    min_span = 2 * params.min_fragment_size

    breakpoints: Dict[int, List[Breakpoint]] = {}
    total = 0
    rejected = 0
    accumulated = 0
    for position, contig_id in enumerate(order):
        contig = contigs[contig_id]
        pixel_length = contig.pixel_length
        start = _round_half_up(accumulated / texture * size)
        accumulated += pixel_length
        end = _round_half_up(accumulated / texture * size)
        span = end - start
        if span < min_span:
            if LOGGER.isEnabledFor(logging.DEBUG):
                LOGGER.debug("autocut skip position=%s name=%s span=%s", position, contig.name, span)
            continue

        density = compute_diagonal_density(mat, start, end, params.window_size)
        found = detect_breakpoints(
            density,
            params.window_size,
            params.cut_threshold,
            params.min_fragment_size,
            include_low_confidence=True,
        )
        scale = pixel_length / span
        accepted: List[Breakpoint] = []
        for bp in found:
            offset = _round_half_up(bp.offset * scale)
            if not 0 < offset < pixel_length:
                rejected += 1
                continue
            if bp.confidence <= CONFIDENCE_FLOOR and not include_low_confidence:
                rejected += 1
                continue
            accepted.append(replace(bp, offset=offset))
        if accepted:
            breakpoints[position] = accepted
            total += len(accepted)
            LOGGER.debug("autocut position=%s name=%s breakpoints=%s", position, contig.name, len(accepted))

    return AutoCutResult(breakpoints=breakpoints, total_breakpoints=total, rejected=rejected)


__all__ = [
    "CONFIDENCE_FLOOR",
    "AutoCutParams",
    "Breakpoint",
    "AutoCutResult",
    "as_square_matrix",
    "compute_diagonal_density",
    "local_baseline",
    "detect_breakpoints",
    "auto_cut",
]
