import sys
from pathlib import Path

import matplotlib
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def pytest_sessionstart(session):  # noqa: D401
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    plt.rcParams.update(
        {
            "figure.dpi": 120,
            "savefig.dpi": 120,
            "font.size": 10,
            "axes.grid": True,
            "axes.facecolor": "white",
        }
    )


@pytest.fixture
def three_contig_map():
    """c0 [0, 1000), c1 [1000, 3000), c2 [3000, 6000); 10 bp per pixel."""
    from hicurate.core.state import Contig, MapData

    contigs = (
        Contig(name="c0", original_index=0, length=10_000, pixel_start=0, pixel_end=1000),
        Contig(name="c1", original_index=1, length=20_000, pixel_start=1000, pixel_end=3000),
        Contig(name="c2", original_index=2, length=30_000, pixel_start=3000, pixel_end=6000),
    )
    return MapData(filename="scenario.hic", texture_size=6000, contigs=contigs)


@pytest.fixture
def engine(three_contig_map):
    from hicurate.curation.engine import CurationEngine
    from hicurate.provenance.log import CurationLog

    eng = CurationEngine(log=CurationLog())
    eng.load_map(three_contig_map)
    return eng
