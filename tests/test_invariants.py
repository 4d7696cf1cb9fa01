import pytest

from hicurate.core import invariants
from hicurate.core.state import AppState, Contig


def _contigs():
    return (
        Contig(name="a", original_index=0, length=10, pixel_start=0, pixel_end=10),
        Contig(name="b", original_index=1, length=10, pixel_start=10, pixel_end=20),
    )


def test_valid_state_passes():
    invariants.assert_invariants(AppState(contigs=_contigs(), contig_order=(1, 0)))


def test_duplicate_ids_fail():
    with pytest.raises(invariants.DuplicateContig):
        invariants.validate_order((0, 0), _contigs())


def test_dangling_ids_fail():
    with pytest.raises(invariants.DanglingContig):
        invariants.validate_order((0, 2), _contigs())
    with pytest.raises(invariants.DanglingContig):
        invariants.validate_order((-1,), _contigs())


def test_malformed_records_fail():
    a, b = _contigs()
    with pytest.raises(invariants.InvalidContig):
        invariants.validate_contigs((b, a))
    empty = Contig(name="e", original_index=0, length=0, pixel_start=5, pixel_end=5)
    with pytest.raises(invariants.InvalidContig):
        invariants.validate_contigs((empty,))


def test_excluded_contig_must_leave_the_order():
    state = AppState(contigs=_contigs(), contig_order=(0, 1), excluded=frozenset({1}))
    with pytest.raises(invariants.InvariantViolation):
        invariants.assert_invariants(state)
