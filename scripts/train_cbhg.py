"""Train a CBHG module on synthetic mel -> feature regression."""

import os
os.environ["KERAS_BACKEND"] = "jax"

import argparse
import logging
from pathlib import Path
import numpy as np
from tqdm import tqdm

import keras
import jax.numpy as jnp

from tacotron.config import PRESETS, load_config, save_config
from tacotron.modules import CBHG


logging.basicConfig(
	level=logging.INFO,
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def make_synthetic_batch(rng, projection, batch_size, seq_len):
	"""Random input frames and a fixed nonlinear projection of them as target."""
	in_channels = projection.shape[0]
	x = rng.standard_normal((batch_size, seq_len, in_channels)).astype(np.float32)
	y = np.tanh(x @ projection).astype(np.float32)
	return x, y


def train_cbhg(
	output_dir: str,
	preset: str = "postnet",
	config_path: str = None,
	batch_size: int = 16,
	seq_len: int = 64,
	num_epochs: int = 10,
	steps_per_epoch: int = 50,
	val_steps: int = 5,
	learning_rate: float = 1e-3,
	log_interval: int = 10,
	seed: int = 1337,
):
	output_dir = Path(output_dir)
	ckpt_dir = output_dir / "checkpoints_cbhg"
	ckpt_dir.mkdir(parents=True, exist_ok=True)

	cfg = dict(PRESETS[preset])
	if config_path is not None:
		cfg = load_config(config_path, defaults=cfg)
	save_config(output_dir / "config_cbhg.json", cfg)

	keras.utils.set_random_seed(seed)
	rng = np.random.default_rng(seed)

	logger.info("Building CBHG...")
	model = CBHG(**cfg)
	_ = model(jnp.ones((1, 8, cfg["in_channels"]), dtype="float32"), training=False)
	logger.info(f"CBHG parameters: {model.count_params():,} | output width: {model.output_size}")

	projection = rng.standard_normal((cfg["in_channels"], model.output_size)).astype(np.float32)
	projection /= np.sqrt(cfg["in_channels"])
	val_batches = [make_synthetic_batch(rng, projection, batch_size, seq_len) for _ in range(val_steps)]

	model.compile(
		optimizer=keras.optimizers.Adam(learning_rate=learning_rate),
		loss="mean_absolute_error",
		jit_compile=True,
	)

	best_val = float("inf")
	for epoch in range(num_epochs):
		logger.info(f"\nEpoch {epoch+1}/{num_epochs}")
		train_losses = []
		pbar = tqdm(range(steps_per_epoch), desc=f"train {epoch+1}/{num_epochs}")
		for _ in pbar:
			x, y = make_synthetic_batch(rng, projection, batch_size, seq_len)
			loss = model.train_on_batch(x=x, y=y)
			train_losses.append(float(loss))
			avg = np.mean(train_losses[-log_interval:])
			pbar.set_postfix(loss=f"{float(loss):.4f}", avg=f"{avg:.4f}")

		train_loss = float(np.mean(train_losses)) if train_losses else 0.0

		val_losses = [float(model.test_on_batch(x=x, y=y)) for x, y in val_batches]
		val_loss = float(np.mean(val_losses)) if val_losses else 0.0
		logger.info(f"Epoch {epoch+1} | Train L1: {train_loss:.4f} | Val L1: {val_loss:.4f}")

		if val_loss < best_val:
			best_val = val_loss
			model.save_weights(ckpt_dir / "cbhg_best.weights.h5")
			logger.info(f"Saved best CBHG (val {best_val:.4f})")

	model.save_weights(ckpt_dir / "cbhg_final.weights.h5")
	logger.info("CBHG training complete.")
	return best_val


def main():
	parser = argparse.ArgumentParser(description="Train a CBHG module on synthetic data")
	parser.add_argument("--output_dir", type=str, default="outputs/cbhg")
	parser.add_argument("--preset", type=str, default="postnet", choices=sorted(PRESETS))
	parser.add_argument("--config", type=str, default=None, help="JSON file overriding preset values")
	parser.add_argument("--batch_size", type=int, default=16)
	parser.add_argument("--seq_len", type=int, default=64)
	parser.add_argument("--num_epochs", type=int, default=10)
	parser.add_argument("--steps_per_epoch", type=int, default=50)
	parser.add_argument("--val_steps", type=int, default=5)
	parser.add_argument("--learning_rate", type=float, default=1e-3)
	parser.add_argument("--log_interval", type=int, default=10)
	parser.add_argument("--seed", type=int, default=1337)
	args = parser.parse_args()

	train_cbhg(
		output_dir=args.output_dir,
		preset=args.preset,
		config_path=args.config,
		batch_size=args.batch_size,
		seq_len=args.seq_len,
		num_epochs=args.num_epochs,
		steps_per_epoch=args.steps_per_epoch,
		val_steps=args.val_steps,
		learning_rate=args.learning_rate,
		log_interval=args.log_interval,
		seed=args.seed,
	)


if __name__ == "__main__":
	main()
