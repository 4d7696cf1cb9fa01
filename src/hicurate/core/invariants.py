"""Invariant checks for contig tuples and curated orders."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .state import AppState, Contig


class InvariantViolation(RuntimeError):
    """Base error for invariant violations."""


class DuplicateContig(InvariantViolation):
    """Raised when the order lists a contig id twice."""


class DanglingContig(InvariantViolation):
    """Raised when the order references a contig id that does not exist."""


class InvalidContig(InvariantViolation):
    """Raised when a contig record is malformed (bad slot or pixel range)."""


def validate_contigs(contigs: Sequence["Contig"]) -> None:
    """Every record sits at its own ``original_index`` and spans a non-empty range."""

    for slot, contig in enumerate(contigs):
        if contig.original_index != slot:
            raise InvalidContig(f"Contig {contig.name!r} claims index {contig.original_index} but sits at {slot}")
        if contig.pixel_end <= contig.pixel_start:
            raise InvalidContig(
                f"Contig {contig.name!r} has empty pixel range [{contig.pixel_start}, {contig.pixel_end})"
            )
        if contig.length < 0:
            raise InvalidContig(f"Contig {contig.name!r} has negative length {contig.length}")


def validate_order(order: Sequence[int], contigs: Sequence["Contig"]) -> None:
    """Order ids must resolve to contigs and appear at most once."""

    seen = set()
    for position, contig_id in enumerate(order):
        if not 0 <= contig_id < len(contigs):
            raise DanglingContig(f"Position {position} references unknown contig {contig_id}")
        if contig_id in seen:
            raise DuplicateContig(f"Contig {contig_id} appears more than once in the order")
        seen.add(contig_id)


def assert_invariants(state: "AppState") -> None:
    """Run all invariant checks."""

    validate_contigs(state.contigs)
    validate_order(state.contig_order, state.contigs)
    overlap = state.excluded.intersection(state.contig_order)
    if overlap:
        raise DuplicateContig(f"Excluded contigs still present in the order: {sorted(overlap)}")
