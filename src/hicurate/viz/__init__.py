"""Diagnostic plots for hicurate (plots live here to isolate matplotlib)."""
from __future__ import annotations

from . import autocut  # noqa: F401

__all__ = ["autocut"]
