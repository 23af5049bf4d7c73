"""Example usage of the Tacotron CBHG encoder."""

import os
os.environ["KERAS_BACKEND"] = "jax"

import numpy as np

from tacotron.config import ENCODER_CBHG, ENCODER_PRENET
from tacotron.modules import CBHG, PreNet


def main():
    """Run character embeddings through the pre-net and encoder CBHG."""
    prenet = PreNet(**ENCODER_PRENET)
    cbhg = CBHG(**ENCODER_CBHG)

    # Embedded characters: [batch, seq_len, 256]
    embeddings = np.random.randn(2, 30, 256).astype("float32")

    features = prenet(embeddings, training=False)  # [2, 30, 128]
    encoded = cbhg(features, training=False)  # [2, 30, 256]

    print(f"PreNet: {embeddings.shape} -> {features.shape}")
    print(f"CBHG:   {features.shape} -> {encoded.shape}")
    print(f"Parameters: {prenet.count_params() + cbhg.count_params():,}")


if __name__ == "__main__":
    main()
