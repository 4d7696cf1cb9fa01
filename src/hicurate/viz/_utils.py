"""Figure plumbing shared by the curation diagnostics.

Every figure is tied to the slice of the contact map it was drawn from: a
:class:`MapRegion` names the map file, the contig and its span in the matrix
the figure read. The region ends up in the footer and in the JSON summary, so
a saved PNG can always be traced back to the assembly state that produced it.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .. import __version__
from ..core.state import AppState

SPEC_VERSION = "2.0"

STYLE = {
    "figure.dpi": 120,
    "savefig.dpi": 150,
    "font.size": 9,
    "axes.grid": True,
    "grid.alpha": 0.3,
    "axes.spines.top": False,
    "axes.spines.right": False,
    "legend.frameon": False,
}

TRACK_COLORS = {
    "density": "#1f77b4",
    "baseline": "#7f7f7f",
    "threshold": "#d62728",
    "accepted": "#ff7f0e",
    "candidate": "#ffbb78",
}


def use_style() -> None:
    matplotlib.rcParams.update(STYLE)


@dataclass(frozen=True)
class MapRegion:
    """Matrix rows ``[start, end)`` holding one contig of a loaded map."""

    filename: str
    contig: str
    start: int
    end: int
    position: Optional[int] = None
    inverted: bool = False

    @property
    def length(self) -> int:
        return self.end - self.start

    def label(self) -> str:
        where = f"{self.filename}:{self.contig} [{self.start}, {self.end})"
        if self.position is not None:
            where += f" @{self.position}"
        return where + (" inverted" if self.inverted else "")


def region_at(state: AppState, position: int, matrix_size: int) -> MapRegion:
    """Region of the contig at ``position`` in a ``matrix_size`` map of the current order.

    Spans are accumulated in display order and scaled from texture pixels to
    matrix rows the same way AutoCut scales them.
    """

    if state.map is None:
        raise ValueError("No map loaded")
    if not 0 <= position < len(state.contig_order):
        raise ValueError(f"Invalid position: {position}")
    scale = matrix_size / float(state.map.texture_size or matrix_size)
    before = sum(state.contigs[cid].pixel_length for cid in state.contig_order[:position])
    contig = state.contigs[state.contig_order[position]]
    return MapRegion(
        filename=state.map.filename,
        contig=contig.name,
        start=int(before * scale + 0.5),
        end=int((before + contig.pixel_length) * scale + 0.5),
        position=position,
        inverted=contig.inverted,
    )


@dataclass(frozen=True)
class VizSpec:
    """What a figure shows, in a form tests and notebooks can compare."""

    kind: str
    region: Optional[MapRegion]
    meta: Dict[str, Any] = field(default_factory=dict)
    primitives: Dict[str, Any] = field(default_factory=dict)
    spec_version: str = SPEC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["generator"] = f"hicurate {__version__}"
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=2)


def footer_text(spec: VizSpec) -> str:
    parts = [f"hicurate {__version__}", spec.kind]
    if spec.region is not None:
        parts.append(spec.region.label())
    params = [f"{key}={spec.meta[key]}" for key in ("window_size", "cut_threshold") if key in spec.meta]
    if params:
        parts.append(" ".join(params))
    return " | ".join(parts)


def finalize(
    fig: plt.Figure,
    spec: VizSpec,
    save: Optional[str] = None,
    save_viz_spec: Optional[str] = None,
) -> Tuple[plt.Figure, Dict[str, Any]]:
    """Stamp the footer, write the requested files and return ``(fig, spec dict)``."""

    fig.text(0.01, 0.005, footer_text(spec), fontsize=7, color="#555555", ha="left", va="bottom")
    if save:
        fig.savefig(save, bbox_inches="tight", facecolor="white")
    if save_viz_spec:
        Path(save_viz_spec).write_text(spec.to_json(), encoding="utf-8")
    return fig, spec.to_dict()


__all__ = ["MapRegion", "region_at", "VizSpec", "footer_text", "finalize", "use_style", "TRACK_COLORS"]
