from __future__ import annotations

import pytest

from hicurate.core.derived import DerivedState
from hicurate.curation.engine import CurationEngine


def test_views_follow_the_order(engine: CurationEngine) -> None:
    derived = DerivedState(engine.store)
    assert derived.contig_names() == ["c0", "c1", "c2"]
    assert derived.boundaries() == pytest.approx([1000 / 6000, 3000 / 6000, 1.0])

    engine.move(2, 0)
    assert derived.contig_names() == ["c2", "c0", "c1"]
    assert derived.boundaries() == pytest.approx([0.5, 3000 / 6000 + 1000 / 6000, 1.0])


def test_cached_until_a_selected_field_changes(engine: CurationEngine) -> None:
    derived = DerivedState(engine.store)
    names = derived.contig_names()
    assert derived.contig_names() is names

    engine.paint([1], 3)
    assert derived.scaffold_ids() == [None, 3, None]
    assert derived.contig_names() is not names


def test_close_stops_invalidation(engine: CurationEngine) -> None:
    derived = DerivedState(engine.store)
    names = derived.contig_names()
    derived.close()
    engine.move(0, 2)
    assert derived.contig_names() is names
