"""Tests for the pre-net."""

from __future__ import annotations

import numpy as np
import pytest

from tacotron.modules import PreNet, create_prenet


@pytest.mark.parametrize(
    "layer_sizes",
    [
        [(8, 16)],
        [(8, 16), (16, 4)],
        [(8, 32), (32, 16), (16, 5)],
    ],
)
def test_output_width_matches_last_layer(rng: np.random.Generator, layer_sizes) -> None:
    prenet = PreNet(layer_sizes=layer_sizes)
    x = rng.standard_normal((2, 7, 8)).astype("float32")

    out = prenet(x, training=False)

    assert tuple(out.shape) == (2, 7, layer_sizes[-1][1])
    assert prenet.output_size == layer_sizes[-1][1]


def test_single_drop_prob_is_shared() -> None:
    prenet = PreNet(layer_sizes=[(4, 4), (4, 4), (4, 2)], drop_probs=[0.3])

    assert prenet.drop_probs == [0.3, 0.3, 0.3]
    assert [d.rate for d in prenet.dropouts] == [0.3, 0.3, 0.3]
    assert len(prenet.denses) == len(prenet.dropouts) == 3


def test_per_layer_drop_probs() -> None:
    prenet = PreNet(layer_sizes=[(4, 4), (4, 2)], drop_probs=[0.1, 0.2])

    assert [d.rate for d in prenet.dropouts] == [0.1, 0.2]


def test_mismatched_drop_probs_fails_construction() -> None:
    with pytest.raises(ValueError, match="drop_probs"):
        PreNet(layer_sizes=[(4, 4), (4, 4), (4, 2)], drop_probs=[0.1, 0.2])


def test_empty_layer_sizes_fails_construction() -> None:
    with pytest.raises(ValueError, match="at least one"):
        PreNet(layer_sizes=[])


def test_input_width_mismatch_fails_build(rng: np.random.Generator) -> None:
    prenet = PreNet(layer_sizes=[(8, 4)])
    with pytest.raises(ValueError, match="input width 8"):
        prenet(rng.standard_normal((1, 3, 5)).astype("float32"))


def test_dropout_is_identity_at_inference(rng: np.random.Generator) -> None:
    prenet = PreNet(layer_sizes=[(6, 6), (6, 6)], drop_probs=[0.9])
    x = rng.standard_normal((3, 4, 6)).astype("float32")

    first = np.asarray(prenet(x, training=False))
    second = np.asarray(prenet(x, training=False))

    np.testing.assert_array_equal(first, second)


def test_dropout_is_stochastic_in_training(rng: np.random.Generator) -> None:
    prenet = PreNet(layer_sizes=[(6, 64)], drop_probs=[0.5], bias_initializer="ones")
    x = rng.standard_normal((4, 8, 6)).astype("float32")

    out = np.asarray(prenet(x, training=True))
    reference = np.asarray(prenet(x, training=False))

    # Dropped units are zeroed, kept units are rescaled by 1 / (1 - rate)
    dropped = out == 0.0
    assert dropped.any()
    np.testing.assert_allclose(out[~dropped], reference[~dropped] * 2.0, rtol=1e-5)


def test_create_prenet_uses_tacotron_layout() -> None:
    prenet = create_prenet()

    assert prenet.layer_sizes == [(256, 256), (256, 128)]
    assert prenet.drop_probs == [0.5, 0.5]
