from __future__ import annotations

import numpy as np
import pytest

from hicurate.core.invariants import assert_invariants
from hicurate.core.state import StateStore
from hicurate.curation.engine import CurationEngine, replay_operation
from hicurate.provenance.log import CurationLog, replay_log
from hicurate.synthetic import generate_synthetic_map


def _random_step(engine: CurationEngine, rng: np.random.Generator) -> None:
    state = engine.state
    size = len(state.contig_order)
    choice = int(rng.integers(0, 9))
    if choice == 0:
        position = int(rng.integers(0, size))
        contig = state.contigs[state.contig_order[position]]
        if contig.pixel_length >= 2:
            engine.cut(position, int(rng.integers(contig.pixel_start + 1, contig.pixel_end)))
    elif choice == 1 and size >= 2:
        position = int(rng.integers(0, size - 1))
        engine.join(position, position + 1)
    elif choice == 2:
        start = int(rng.integers(0, size))
        end = int(rng.integers(start, size))
        engine.invert_range(start, end)
    elif choice == 3:
        engine.move(int(rng.integers(0, size)), int(rng.integers(0, size)))
    elif choice == 4 and size >= 2:
        engine.exclude(int(rng.integers(0, size)))
    elif choice == 5 and state.excluded:
        contig_id = sorted(state.excluded)[0]
        engine.include(contig_id, int(rng.integers(0, size + 1)))
    elif choice == 6:
        positions = rng.choice(size, size=min(size, 2), replace=False).tolist()
        scaffold = int(rng.integers(0, 3))
        engine.paint(positions, scaffold if scaffold else None)
    elif choice == 7:
        engine.undo()
    else:
        engine.redo()


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_random_walk_keeps_invariants_and_unwinds(seed: int) -> None:
    map_data = generate_synthetic_map(size=128, num_chromosomes=5, seed=seed)
    engine = CurationEngine(log=CurationLog())
    engine.load_map(map_data)
    initial = engine.state
    rng = np.random.default_rng(seed)

    for _ in range(80):
        _random_step(engine, rng)
        assert_invariants(engine.state)

    while engine.undo():
        assert_invariants(engine.state)
    final = engine.state
    assert final.contig_order == initial.contig_order
    assert final.contigs[: len(initial.contigs)] == initial.contigs
    assert len(final.contigs) >= len(initial.contigs)
    assert final.excluded == initial.excluded
    assert len(engine.log) == 0


@pytest.mark.parametrize("seed", [3, 4])
def test_replay_of_random_session_matches_every_entry(seed: int) -> None:
    map_data = generate_synthetic_map(size=128, num_chromosomes=5, seed=seed)
    engine = CurationEngine(log=CurationLog())
    engine.load_map(map_data)
    rng = np.random.default_rng(seed)
    for _ in range(60):
        _random_step(engine, rng)

    log = CurationLog.from_json(engine.log.to_json())
    assert len(log) == len(engine.state.undo_stack)

    fresh = StateStore().load_map(map_data)
    result = replay_log(log, fresh, replay_operation)
    assert result.all_match, result.mismatches
    assert result.final_state.contig_order == engine.state.contig_order
    replayed = result.final_state
    assert [replayed.contigs[idx] for idx in replayed.contig_order] == [
        engine.state.contigs[idx] for idx in engine.state.contig_order
    ]
    assert {replayed.contigs[idx] for idx in replayed.excluded} == {
        engine.state.contigs[idx] for idx in engine.state.excluded
    }
    assert_invariants(replayed)


def test_undo_redo_round_trip_restores_structure(engine: CurationEngine) -> None:
    engine.cut(1, 1500)
    engine.invert_range(0, 2)
    engine.move(3, 0)
    engine.paint([1, 2], 3)
    applied = engine.state

    for _ in range(4):
        engine.undo()
    for _ in range(4):
        engine.redo()
    restored = engine.state
    assert restored.contigs == applied.contigs
    assert restored.contig_order == applied.contig_order
    assert [op.kind for op in restored.undo_stack] == [op.kind for op in applied.undo_stack]


def test_replay_fills_ids_of_undone_branch(engine: CurationEngine, three_contig_map) -> None:
    engine.cut(2, 4500)
    engine.undo()
    engine.cut(1, 2000)
    engine.join(1, 2)
    assert len(engine.log) == 2
    assert engine.log.entry(0).parameters["left_id"] == 5

    result = replay_log(engine.log, StateStore().load_map(three_contig_map), replay_operation)
    assert result.all_match, result.mismatches
    replayed = result.final_state
    assert replayed.contig_order == engine.state.contig_order == (0, 1, 2)
    assert [replayed.contigs[idx].name for idx in (3, 4)] == ["<unused>", "<unused>"]
    assert replayed.contigs[5].name == "c1_L"
    assert_invariants(replayed)
