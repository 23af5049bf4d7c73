"""Tests for presets and JSON config helpers."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tacotron.config import ENCODER_CBHG, POSTNET_CBHG, PRESETS, load_config, save_config
from tacotron.modules import CBHG


@pytest.mark.parametrize("preset", sorted(PRESETS))
def test_presets_build_valid_cbhg(preset: str) -> None:
    cfg = PRESETS[preset]
    cbhg = CBHG(**cfg)

    # Residual connection needs the projection to return to the input width
    assert cfg["proj_out_channels"][1] == cfg["in_channels"]
    assert cbhg.output_size == 2 * cfg["in_channels"]


def test_load_config_overlays_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config_cbhg.json"
    path.write_text(json.dumps({"bank_size": 4, "merge_mode": "sum"}))

    cfg = load_config(path, defaults=POSTNET_CBHG)

    assert cfg["bank_size"] == 4
    assert cfg["merge_mode"] == "sum"
    assert cfg["in_channels"] == POSTNET_CBHG["in_channels"]
    assert POSTNET_CBHG["bank_size"] == 8


def test_load_config_missing_file_returns_defaults(tmp_path: Path, caplog) -> None:
    with caplog.at_level("WARNING"):
        cfg = load_config(tmp_path / "missing.json", defaults=ENCODER_CBHG)

    assert cfg == ENCODER_CBHG
    assert cfg is not ENCODER_CBHG
    assert "No config found" in caplog.text


def test_load_config_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("[1, 2, 3]")

    with pytest.raises(ValueError, match="JSON object"):
        load_config(path)


def test_save_config_creates_parents(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "config.json"

    written = save_config(path, ENCODER_CBHG)

    assert written == path
    assert json.loads(path.read_text()) == ENCODER_CBHG
