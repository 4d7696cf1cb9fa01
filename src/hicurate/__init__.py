"""hicurate: contig curation for Hi-C contact maps."""

from importlib import metadata

from . import core, curation, provenance, synthetic
from .core.state import AppState, Contig, MapData, StateStore
from .curation.autocut import AutoCutParams, auto_cut
from .curation.batch import auto_cut_contigs
from .curation.engine import CurationEngine, UndoResult, ValidationError
from .curation.scaffolds import ScaffoldManager
from .provenance.log import CurationLog, replay_log

try:  # pragma: no cover - metadata only at runtime
    __version__ = metadata.version("hicurate")
except metadata.PackageNotFoundError:  # pragma: no cover - source tree / editable installs
    __version__ = "0.0.0"

__all__ = [
    "core",
    "curation",
    "provenance",
    "synthetic",
    "AppState",
    "Contig",
    "MapData",
    "StateStore",
    "AutoCutParams",
    "auto_cut",
    "auto_cut_contigs",
    "CurationEngine",
    "UndoResult",
    "ValidationError",
    "ScaffoldManager",
    "CurationLog",
    "replay_log",
    "__version__",
]
