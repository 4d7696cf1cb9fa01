from __future__ import annotations

from pathlib import Path

import pytest

from hicurate.config import AutoCutConfigError, load_autocut_params, resolve_autocut_params
from hicurate.curation.autocut import AutoCutParams


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_environment(monkeypatch) -> None:
    for name in ("HICURATE_CUT_THRESHOLD", "HICURATE_WINDOW_SIZE", "HICURATE_MIN_FRAGMENT"):
        monkeypatch.delenv(name, raising=False)
    assert resolve_autocut_params() == AutoCutParams()


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("HICURATE_CUT_THRESHOLD", "0.45")
    monkeypatch.setenv("HICURATE_WINDOW_SIZE", "12")
    monkeypatch.setenv("HICURATE_MIN_FRAGMENT", "not-a-number")
    params = resolve_autocut_params()
    assert params.cut_threshold == pytest.approx(0.45)
    assert params.window_size == 12
    assert params.min_fragment_size == 16


def test_explicit_params_win(monkeypatch) -> None:
    monkeypatch.setenv("HICURATE_WINDOW_SIZE", "12")
    explicit = AutoCutParams(window_size=4)
    assert resolve_autocut_params(explicit) is explicit


def test_out_of_range_environment_value(monkeypatch) -> None:
    monkeypatch.setenv("HICURATE_CUT_THRESHOLD", "2")
    with pytest.raises(AutoCutConfigError):
        resolve_autocut_params()


def test_load_yaml_params(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("HICURATE_MIN_FRAGMENT", raising=False)
    path = _write(
        tmp_path / "autocut.yaml",
        "kind: hicurate.autocut.v1\nautocut:\n  cut_threshold: 0.25\n  window_size: 6\n",
    )
    params = load_autocut_params(path)
    assert params == AutoCutParams(cut_threshold=0.25, window_size=6, min_fragment_size=16)


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "kind: something.else\n",
        "kind: hicurate.autocut.v1\nautocut: [1, 2]\n",
        "kind: hicurate.autocut.v1\nautocut:\n  window_size: zero\n",
        "kind: hicurate.autocut.v1\nautocut:\n  cut_threshold: 1.5\n",
        "kind: [unclosed\n",
    ],
)
def test_invalid_yaml_configs(tmp_path: Path, text: str) -> None:
    with pytest.raises(AutoCutConfigError):
        load_autocut_params(_write(tmp_path / "bad.yaml", text))


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(AutoCutConfigError):
        load_autocut_params(tmp_path / "missing.yaml")
