"""
Core state utilities for the curation engine.

The core package holds the immutable application state and its store, the
closed set of curation operation records, invariant checks, the event bus,
and cached derived views.
"""

from . import derived, event_bus, invariants, operations, state  # noqa: F401

__all__ = ["state", "operations", "invariants", "event_bus", "derived"]
