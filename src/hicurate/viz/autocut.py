"""AutoCut diagnostics: density curve, local baseline and detected breakpoints."""
from __future__ import annotations

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from ..config import resolve_autocut_params
from ..core.state import AppState
from ..curation.autocut import (
    BASELINE_SPAN,
    AutoCutParams,
    as_square_matrix,
    compute_diagonal_density,
    detect_breakpoints,
    local_baseline,
)
from ._utils import TRACK_COLORS, MapRegion, VizSpec, finalize, region_at, use_style


def plot_density_profile(
    *,
    matrix,
    start: int,
    end: int,
    params: Optional[AutoCutParams] = None,
    region: Optional[MapRegion] = None,
    title: str = "AutoCut density profile",
    save: Optional[str] = None,
    save_viz_spec: Optional[str] = None,
):
    """Plot the diagonal density of ``matrix[start:end]`` with its baseline and cut threshold.

    Low-confidence candidates are drawn dashed; actionable breakpoints solid.
    """
    params = resolve_autocut_params(params)
    use_style()
    density = compute_diagonal_density(matrix, start, end, params.window_size)
    baseline = local_baseline(density, BASELINE_SPAN * params.window_size, cut_threshold=params.cut_threshold)
    candidates = detect_breakpoints(
        density,
        params.window_size,
        params.cut_threshold,
        params.min_fragment_size,
        include_low_confidence=True,
    )
    accepted = detect_breakpoints(density, params.window_size, params.cut_threshold, params.min_fragment_size)
    accepted_offsets = {bp.offset for bp in accepted}

    xs = np.arange(density.size)
    fig, ax = plt.subplots(figsize=(7, 3))
    ax.plot(xs, density, color=TRACK_COLORS["density"], linewidth=1.0, label="density")
    ax.plot(xs, baseline, color=TRACK_COLORS["baseline"], linewidth=1.0, label="baseline")
    ax.plot(
        xs,
        (1.0 - params.cut_threshold) * baseline,
        color=TRACK_COLORS["threshold"],
        linewidth=0.8,
        alpha=0.6,
        label="threshold",
    )
    for bp in candidates:
        if bp.offset in accepted_offsets:
            ax.axvline(bp.offset, color=TRACK_COLORS["accepted"], linestyle="-", linewidth=1.0)
        else:
            ax.axvline(bp.offset, color=TRACK_COLORS["candidate"], linestyle="--", linewidth=1.0)
    ax.set_xlim(0, max(density.size - 1, 1))
    ax.set_xlabel("Offset from contig start (rows)")
    ax.set_ylabel("Mean contact")
    ax.set_title(title)
    ax.legend(loc="upper right", fontsize=8)

    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(baseline > 0, density / baseline, np.nan)
    spec = VizSpec(
        kind="autocut_profile",
        region=region,
        meta={
            "length": int(density.size),
            "window_size": int(params.window_size),
            "cut_threshold": float(params.cut_threshold),
            "min_fragment_size": int(params.min_fragment_size),
        },
        primitives={
            "breakpoints": [int(bp.offset) for bp in accepted],
            "candidates": [int(bp.offset) for bp in candidates],
            "confidences": [round(float(bp.confidence), 4) for bp in accepted],
            "min_ratio": float(np.nanmin(ratio)) if np.isfinite(ratio).any() else 0.0,
        },
    )
    return finalize(fig, spec, save=save, save_viz_spec=save_viz_spec)


def plot_contig_profile(
    state: AppState,
    position: int,
    params: Optional[AutoCutParams] = None,
    *,
    matrix=None,
    save: Optional[str] = None,
    save_viz_spec: Optional[str] = None,
):
    """Profile the contig at ``position`` of the current assembly.

    ``matrix`` defaults to the loaded contact map and must be laid out in the
    current display order, as for :func:`hicurate.curation.autocut.auto_cut`.
    """
    if state.map is None:
        raise ValueError("No map loaded")
    if matrix is None:
        matrix = state.map.contact_map
    if matrix is None:
        raise ValueError("No contact map available")
    mat = as_square_matrix(matrix)
    region = region_at(state, position, mat.shape[0])
    return plot_density_profile(
        matrix=mat,
        start=region.start,
        end=region.end,
        params=params,
        region=region,
        title=f"AutoCut profile: {region.contig}",
        save=save,
        save_viz_spec=save_viz_spec,
    )


__all__ = ["plot_density_profile", "plot_contig_profile"]
