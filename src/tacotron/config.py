"""Preset module configurations and JSON config helpers."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


# Tacotron encoder CBHG: K=16, conv bank 128, projections 128-128, 4 highway layers
ENCODER_CBHG: Dict[str, Any] = {
	"bank_size": 16,
	"in_channels": 128,
	"conv_channels": 128,
	"proj_out_channels": [128, 128],
	"max_pool_width": 2,
	"max_pool_stride": 1,
	"proj_width": 3,
	"num_highway_layers": 4,
	"merge_mode": "concat",
	"cell_type": "gru",
}

# Post-processing CBHG over mel frames: K=8, projections 256-80
POSTNET_CBHG: Dict[str, Any] = {
	"bank_size": 8,
	"in_channels": 80,
	"conv_channels": 128,
	"proj_out_channels": [256, 80],
	"max_pool_width": 2,
	"max_pool_stride": 1,
	"proj_width": 3,
	"num_highway_layers": 4,
	"merge_mode": "concat",
	"cell_type": "gru",
}

# Encoder pre-net: FC-256-ReLU -> Dropout(0.5) -> FC-128-ReLU -> Dropout(0.5)
ENCODER_PRENET: Dict[str, Any] = {
	"layer_sizes": [[256, 256], [256, 128]],
	"drop_probs": [0.5],
}

PRESETS: Dict[str, Dict[str, Any]] = {
	"encoder": ENCODER_CBHG,
	"postnet": POSTNET_CBHG,
}


def load_config(path: Union[str, Path], defaults: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
	"""
	Load a JSON config and overlay it on defaults.

	Args:
		path: Path to a JSON file
		defaults: Values used for keys missing from the file (or for everything
			if the file does not exist)

	Returns:
		Merged config dict
	"""
	cfg = dict(defaults or {})
	path = Path(path)
	if not path.exists():
		logger.warning(f"No config found at {path}, using defaults.")
		return cfg
	with open(path, "r") as f:
		loaded = json.load(f)
	if not isinstance(loaded, dict):
		raise ValueError(f"Config at {path} must be a JSON object, got {type(loaded).__name__}")
	cfg.update(loaded)
	logger.info(f"Loaded config from {path}")
	return cfg


def save_config(path: Union[str, Path], config: Dict[str, Any]) -> Path:
	"""Write a config dict as JSON, creating parent directories."""
	path = Path(path)
	path.parent.mkdir(parents=True, exist_ok=True)
	with open(path, "w") as f:
		json.dump(config, f, indent=2)
	logger.info(f"Saved config to {path}")
	return path
