"""Tacotron building blocks (HighwayNet, PreNet, Bidirectional RNN, CBHG) in Keras 3."""

from tacotron.layers import Bidirectional, MergeMode
from tacotron.modules import CBHG, HighwayNet, PreNet, create_cbhg, create_prenet

__all__ = [
	"Bidirectional",
	"MergeMode",
	"CBHG",
	"HighwayNet",
	"PreNet",
	"create_cbhg",
	"create_prenet",
]
