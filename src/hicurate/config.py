"""hicurate runtime configuration helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .curation.autocut import AutoCutParams

_CUT_THRESHOLD_ENV = "HICURATE_CUT_THRESHOLD"
_WINDOW_SIZE_ENV = "HICURATE_WINDOW_SIZE"
_MIN_FRAGMENT_ENV = "HICURATE_MIN_FRAGMENT"

AUTOCUT_CONFIG_KIND = "hicurate.autocut.v1"

LOGGER = logging.getLogger(__name__)


class AutoCutConfigError(ValueError):
    """Raised when an AutoCut parameter file is invalid."""


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Ignoring %s=%r: not a number", name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        LOGGER.warning("Ignoring %s=%r: not an integer", name, raw)
        return default


def resolve_autocut_params(params: Optional[AutoCutParams] = None) -> AutoCutParams:
    """Explicit params win; otherwise defaults overridden by ``HICURATE_*`` env vars."""

    if params is not None:
        return params
    defaults = AutoCutParams()
    cut_threshold = _env_float(_CUT_THRESHOLD_ENV, defaults.cut_threshold)
    window_size = _env_int(_WINDOW_SIZE_ENV, defaults.window_size)
    min_fragment = _env_int(_MIN_FRAGMENT_ENV, defaults.min_fragment_size)
    try:
        resolved = AutoCutParams(
            cut_threshold=cut_threshold, window_size=window_size, min_fragment_size=min_fragment
        )
    except ValueError as exc:
        raise AutoCutConfigError(f"Invalid AutoCut environment override: {exc}") from exc
    LOGGER.debug(
        "resolve_autocut_params cut_threshold=%s window_size=%s min_fragment_size=%s",
        resolved.cut_threshold,
        resolved.window_size,
        resolved.min_fragment_size,
    )
    return resolved


def _parse_autocut_section(section: Dict[str, Any], base: AutoCutParams) -> AutoCutParams:
    changes: Dict[str, Any] = {}
    try:
        if "cut_threshold" in section:
            changes["cut_threshold"] = float(section["cut_threshold"])
        if "window_size" in section:
            changes["window_size"] = int(section["window_size"])
        if "min_fragment_size" in section:
            changes["min_fragment_size"] = int(section["min_fragment_size"])
        return replace(base, **changes)
    except (TypeError, ValueError) as exc:
        raise AutoCutConfigError(f"Invalid 'autocut' section: {exc}") from exc


def load_autocut_params(path: Union[str, Path]) -> AutoCutParams:
    """Load AutoCut parameters from a ``hicurate.autocut.v1`` YAML file.

    Keys missing from the ``autocut`` section keep their environment/default values.
    """

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise AutoCutConfigError(f"AutoCut config '{cfg_path}' not found.")
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise AutoCutConfigError(f"AutoCut config '{cfg_path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise AutoCutConfigError("AutoCut config must be a YAML mapping.")
    kind = str(data.get("kind", "")).strip()
    if kind != AUTOCUT_CONFIG_KIND:
        raise AutoCutConfigError(f"Unknown config kind {kind!r}. Supported kinds: '{AUTOCUT_CONFIG_KIND}'.")
    section = data.get("autocut") or {}
    if not isinstance(section, dict):
        raise AutoCutConfigError("'autocut' must be a mapping.")
    params = _parse_autocut_section(section, resolve_autocut_params())
    LOGGER.debug("load_autocut_params path=%s params=%s", cfg_path, params.to_dict())
    return params


__all__ = [
    "AUTOCUT_CONFIG_KIND",
    "AutoCutConfigError",
    "resolve_autocut_params",
    "load_autocut_params",
    "_CUT_THRESHOLD_ENV",
    "_WINDOW_SIZE_ENV",
    "_MIN_FRAGMENT_ENV",
]
