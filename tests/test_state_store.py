from __future__ import annotations

import logging

import pytest

from hicurate.core.invariants import DanglingContig, DuplicateContig
from hicurate.core.operations import CurationOperation, InvertData, OperationKind
from hicurate.core.state import Contig, MapData, StateStore, ordered_contigs


def _invert_op(position: int = 0) -> CurationOperation:
    return CurationOperation(
        kind=OperationKind.INVERT,
        description="flip",
        data=InvertData(start=position, end=position, contig_ids=(position,)),
    )


def test_load_map_installs_identity_order(three_contig_map) -> None:
    store = StateStore()
    state = store.load_map(three_contig_map)
    assert state.contig_order == (0, 1, 2)
    assert [c.name for c in ordered_contigs(state)] == ["c0", "c1", "c2"]
    assert state.undo_stack == () and state.redo_stack == ()


def test_load_map_rejects_bad_orders(three_contig_map) -> None:
    store = StateStore()
    with pytest.raises(DuplicateContig):
        store.load_map(MapData("x", 6000, three_contig_map.contigs, contig_order=(0, 0, 1)))
    with pytest.raises(DanglingContig):
        store.load_map(MapData("x", 6000, three_contig_map.contigs, contig_order=(0, 7)))
    assert store.get().map is None


def test_update_is_copy_on_write(three_contig_map) -> None:
    store = StateStore()
    before = store.load_map(three_contig_map)
    after = store.update(contig_order=(2, 1, 0))
    assert before.contig_order == (0, 1, 2)
    assert after.contig_order == (2, 1, 0)
    assert after.contigs is before.contigs


def test_update_rejects_unknown_fields(three_contig_map) -> None:
    store = StateStore()
    before = store.load_map(three_contig_map)
    with pytest.raises(TypeError):
        store.update(selected=(1,))
    assert store.get() is before


def test_update_contig_replaces_only_the_contig_tuple(three_contig_map) -> None:
    store = StateStore()
    before = store.load_map(three_contig_map)
    after = store.update_contig(1, inverted=True)
    assert after.contigs is not before.contigs
    assert after.contig_order is before.contig_order
    assert after.contigs[0] is before.contigs[0]
    assert after.contigs[1].inverted is True
    with pytest.raises(IndexError):
        store.update_contig(9, inverted=True)


def test_append_contigs_stamps_ids(three_contig_map) -> None:
    store = StateStore()
    store.load_map(three_contig_map)
    ids = store.append_contigs(Contig(name="extra", original_index=-1, length=5, pixel_start=0, pixel_end=5))
    assert ids == (3,)
    assert store.get().contigs[3].original_index == 3


def test_select_fires_only_on_reference_change(three_contig_map) -> None:
    store = StateStore()
    store.load_map(three_contig_map)
    seen = []
    store.select(lambda s: s.contig_order, lambda new, old: seen.append((new, old)))

    store.update_contig(0, inverted=True)
    assert seen == []

    store.update(contig_order=(1, 0, 2))
    assert seen == [((1, 0, 2), (0, 1, 2))]


def test_unsubscribe_stops_delivery_and_is_idempotent(three_contig_map) -> None:
    store = StateStore()
    calls = []
    unsubscribe = store.subscribe(lambda state: calls.append(state))
    store.load_map(three_contig_map)
    assert len(calls) == 1
    unsubscribe()
    unsubscribe()
    store.update(contig_order=(2, 1, 0))
    assert len(calls) == 1


def test_failing_listener_does_not_block_others(three_contig_map, caplog) -> None:
    store = StateStore()
    received = []

    def broken(_state):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda state: received.append(state))
    with caplog.at_level(logging.ERROR):
        store.load_map(three_contig_map)
    assert len(received) == 1
    assert "State subscriber failed" in caplog.text


def test_batch_context_is_merged_and_cleared(three_contig_map) -> None:
    store = StateStore()
    store.load_map(three_contig_map)
    with store.batch("autocut-1", algorithm="autocut", threshold=0.3):
        pushed = store.push_operation(_invert_op())
    assert pushed.batch_id == "autocut-1"
    assert pushed.metadata == {"algorithm": "autocut", "threshold": 0.3}
    assert store.batch_context is None

    plain = store.push_operation(_invert_op())
    assert plain.batch_id is None
    assert store.get().undo_stack == (pushed, plain)


def test_batch_context_clears_when_body_raises(three_contig_map) -> None:
    store = StateStore()
    store.load_map(three_contig_map)
    with pytest.raises(RuntimeError):
        with store.batch("b-1"):
            raise RuntimeError("stop")
    assert store.batch_context is None


def test_push_operation_clears_redo_and_reset_drops_everything(three_contig_map) -> None:
    store = StateStore()
    store.load_map(three_contig_map)
    store.update(redo_stack=(_invert_op(),))
    store.push_operation(_invert_op())
    assert store.get().redo_stack == ()

    store.set_batch_context("b-2", {"algorithm": "manual"})
    state = store.reset()
    assert state.map is None and state.contigs == () and state.undo_stack == ()
    assert store.batch_context is None
