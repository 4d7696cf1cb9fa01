from __future__ import annotations

import numpy as np
import pytest

from hicurate.curation.autocut import AutoCutParams
from hicurate.curation.batch import (
    auto_cut_contigs,
    batch_cut_by_size,
    batch_invert,
    batch_join,
    select_by_pattern,
    select_by_size,
    sort_by_length,
)
from hicurate.curation.engine import CurationEngine
from hicurate.provenance.log import CurationLog
from hicurate.synthetic import generate_chimeric_map


@pytest.fixture
def chimeric_engine():
    map_data, junction = generate_chimeric_map(size=512, num_chromosomes=6, seed=0)
    eng = CurationEngine(log=CurationLog())
    eng.load_map(map_data)
    return eng, junction


def test_auto_cut_contigs_cuts_the_chimera_in_one_batch(chimeric_engine) -> None:
    engine, junction = chimeric_engine
    before = engine.state
    result = auto_cut_contigs(engine, params=AutoCutParams())

    assert result.operations_performed == 1
    assert result.batch_id.startswith("autocut-")
    op = result.operations[0]
    assert op.batch_id == result.batch_id
    assert op.metadata["algorithm"] == "autocut"
    assert op.metadata["algorithmParams"]["cut_threshold"] == pytest.approx(0.3)
    assert abs(op.data.pixel_offset - junction) <= 2

    state = engine.state
    assert len(state.contig_order) == len(before.contig_order) + 1
    assert state.contigs[state.contig_order[0]].name == "chr1_chr2_L"
    assert engine.store.batch_context is None

    assert engine.undo_batch(result.batch_id) == 1
    assert engine.state.contig_order == before.contig_order


def test_auto_cut_contigs_mirrors_offsets_for_inverted_contigs(chimeric_engine) -> None:
    engine, junction = chimeric_engine
    fused = engine.state.contigs[0]
    matrix = engine.state.map.contact_map
    # contact map as displayed once the first contig is flipped
    perm = np.arange(matrix.shape[0])
    perm[: fused.pixel_end] = perm[: fused.pixel_end][::-1]
    displayed = matrix[np.ix_(perm, perm)]

    engine.invert(0)
    result = auto_cut_contigs(engine, displayed)
    assert result.operations_performed == 1
    cut = result.operations[0].data
    assert abs(cut.pixel_offset - junction) <= 2
    first, second = (engine.state.contigs[idx] for idx in engine.state.contig_order[:2])
    assert first.inverted and second.inverted
    assert first.pixel_start == cut.pixel_offset


def test_auto_cut_contigs_without_signal(engine: CurationEngine) -> None:
    assert auto_cut_contigs(engine).description == "No contact map available"
    assert auto_cut_contigs(CurationEngine()).description == "No map loaded"


def test_selections(engine: CurationEngine) -> None:
    state = engine.state
    assert select_by_pattern(state, "c*") == [0, 1, 2]
    assert select_by_pattern(state, "c1") == [1]
    assert select_by_pattern(state, "C*") == []
    assert select_by_size(state, 15_000) == [1, 2]
    assert select_by_size(state, None, 20_000) == [0, 1]
    assert select_by_size(state, 15_000, 25_000) == [1]


def test_batch_invert_shares_one_batch(engine: CurationEngine) -> None:
    result = batch_invert(engine, [2, 0, 2])
    assert result.operations_performed == 2
    assert {op.batch_id for op in result.operations} == {result.batch_id}
    assert [c.inverted for c in engine.state.contigs] == [True, False, True]
    engine.undo_batch(result.batch_id)
    assert not any(c.inverted for c in engine.state.contigs)
    assert batch_invert(engine, []).operations_performed == 0


def test_sort_by_length(engine: CurationEngine) -> None:
    result = sort_by_length(engine, descending=True)
    assert engine.state.contig_order == (2, 1, 0)
    assert result.operations_performed == 2
    sort_by_length(engine)
    assert engine.state.contig_order == (0, 1, 2)


def test_batch_cut_by_size_cuts_at_midpoints(engine: CurationEngine) -> None:
    result = batch_cut_by_size(engine, 15_000)
    assert result.operations_performed == 2
    assert [op.data.pixel_offset for op in result.operations] == [4500, 2000]
    assert engine.state.contig_order == (0, 5, 6, 3, 4)
    assert engine.undo_batch(result.batch_id) == 2
    assert engine.state.contig_order == (0, 1, 2)


def test_auto_cut_contigs_reads_environment_overrides(chimeric_engine, monkeypatch) -> None:
    engine, _ = chimeric_engine
    monkeypatch.setenv("HICURATE_CUT_THRESHOLD", "0.99")
    monkeypatch.setenv("HICURATE_MIN_FRAGMENT", "200")
    result = auto_cut_contigs(engine)
    assert result.operations_performed == 0
    assert result.description == "No breakpoints detected"
    assert engine.state.undo_stack == ()


def test_auto_cut_contigs_records_resolved_params(chimeric_engine, monkeypatch) -> None:
    engine, _ = chimeric_engine
    monkeypatch.setenv("HICURATE_CUT_THRESHOLD", "0.4")
    result = auto_cut_contigs(engine)
    assert result.operations_performed >= 1
    params = result.operations[0].metadata["algorithmParams"]
    assert params["cut_threshold"] == pytest.approx(0.4)
    assert params["window_size"] == 8
    assert params["min_fragment_size"] == 16


def test_batch_join_merges_adjacent_runs(engine: CurationEngine) -> None:
    engine.cut(2, 4500)
    engine.cut(1, 2000)
    assert engine.state.contig_order == (0, 5, 6, 3, 4)

    result = batch_join(engine, [4, 1, 2, 3])
    assert result.operations_performed == 3
    assert {op.batch_id for op in result.operations} == {result.batch_id}
    assert [op.data.position for op in result.operations] == [3, 2, 1]
    state = engine.state
    assert len(state.contig_order) == 2
    merged = state.contigs[state.contig_order[1]]
    assert merged.name == "c1_L+c1_R+c2"
    assert (merged.pixel_start, merged.pixel_end) == (1000, 6000)

    assert engine.undo_batch(result.batch_id) == 3
    assert engine.state.contig_order == (0, 5, 6, 3, 4)


def test_batch_join_skips_isolated_positions(engine: CurationEngine) -> None:
    assert batch_join(engine, [0]).description == "Need at least 2 selected contigs to join"
    assert batch_join(engine, [0, 2]).description == "No adjacent selected contigs to join"
    result = batch_join(engine, [0, 1, 1])
    assert result.operations_performed == 1
    assert engine.state.contig_order == (3, 2)
    assert batch_join(CurationEngine(), [0, 1]).description == "No map loaded"
