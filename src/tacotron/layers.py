"""Bidirectional recurrent layer with a configurable merge function."""

import logging
from enum import Enum
from typing import List, Optional, Union

import keras
from keras import layers, ops

logger = logging.getLogger(__name__)


class MergeMode(str, Enum):
	"""How forward and backward hidden states are combined at each step."""
	CONCAT = "concat"
	SUM = "sum"
	MULTIPLY = "mul"
	AVERAGE = "ave"

	@classmethod
	def parse(cls, mode: Union["MergeMode", str]) -> "MergeMode":
		if isinstance(mode, cls):
			return mode
		try:
			return cls(mode)
		except ValueError:
			available = [m.value for m in cls]
			raise ValueError(f"Invalid merge_mode {mode!r}, expected one of {available}") from None


_CELLS = {
	"lstm": layers.LSTMCell,
	"gru": layers.GRUCell,
}


def _make_cell(cell_type: str, units: int, kernel_initializer, recurrent_initializer, bias_initializer, name: str):
	return _CELLS[cell_type](
		units,
		kernel_initializer=kernel_initializer,
		recurrent_initializer=recurrent_initializer,
		bias_initializer=bias_initializer,
		name=name,
	)


class Bidirectional(layers.Layer):
	"""
	Runs a forward cell and a time-reversed backward cell over a sequence
	and merges their hidden states step by step.

	Output step i merges the forward state after inputs[0..i] with the
	backward state after inputs[n-1..n-1-i]. Both cells have the same type
	and width but their weights are initialized independently.
	"""

	def __init__(
		self,
		units: int,
		cell_type: str = "lstm",
		merge_mode: Union[MergeMode, str] = MergeMode.CONCAT,
		kernel_initializer="glorot_uniform",
		recurrent_initializer="orthogonal",
		bias_initializer="zeros",
		name: Optional[str] = None,
		**kwargs
	):
		super().__init__(name=name, **kwargs)
		if cell_type not in _CELLS:
			raise ValueError(f"Invalid cell_type {cell_type!r}, expected one of {sorted(_CELLS)}")
		self.units = units
		self.cell_type = cell_type
		self.merge_mode = MergeMode.parse(merge_mode)
		self.kernel_initializer = kernel_initializer
		self.recurrent_initializer = recurrent_initializer
		self.bias_initializer = bias_initializer

		self.forward_cell = _make_cell(
			cell_type, units, kernel_initializer, recurrent_initializer, bias_initializer, name="forward_cell"
		)
		self.backward_cell = _make_cell(
			cell_type, units, kernel_initializer, recurrent_initializer, bias_initializer, name="backward_cell"
		)
		self.output_size = 2 * units if self.merge_mode is MergeMode.CONCAT else units
		logger.debug(f"Bidirectional {cell_type}: units={units}, merge_mode={self.merge_mode.value}")

	def build(self, input_shape):
		# input_shape is one (batch, features) shape per time step
		if not input_shape:
			raise ValueError("'inputs' must be non-empty.")
		step_shape = tuple(input_shape[0])
		self.forward_cell.build(step_shape)
		self.backward_cell.build(step_shape)

	def merge(self, forward, backward):
		"""Combine forward and backward hidden states according to merge_mode."""
		if self.merge_mode is MergeMode.SUM:
			return forward + backward
		if self.merge_mode is MergeMode.MULTIPLY:
			return forward * backward
		if self.merge_mode is MergeMode.AVERAGE:
			return (forward + backward) / 2
		return ops.concatenate([forward, backward], axis=-1)

	def call(self, inputs: List, training=False):
		"""
		Args:
			inputs: list of [batch, input_dim] tensors, one per time step
		Returns:
			list of [batch, units] tensors ([batch, 2 * units] for concat),
			ordered forward in time
		"""
		if len(inputs) == 0:
			raise ValueError("'inputs' must be non-empty.")
		last = len(inputs) - 1

		forward_state = self.forward_cell.get_initial_state(batch_size=ops.shape(inputs[0])[0])
		backward_state = self.backward_cell.get_initial_state(batch_size=ops.shape(inputs[last])[0])

		outputs = []
		for i in range(len(inputs)):
			forward_out, forward_state = self.forward_cell(inputs[i], forward_state, training=training)
			backward_out, backward_state = self.backward_cell(inputs[last - i], backward_state, training=training)
			outputs.append(self.merge(forward_out, backward_out))
		return outputs

	def get_config(self):
		cfg = super().get_config()
		cfg.update({
			"units": self.units,
			"cell_type": self.cell_type,
			"merge_mode": self.merge_mode.value,
			"kernel_initializer": keras.initializers.serialize(keras.initializers.get(self.kernel_initializer)),
			"recurrent_initializer": keras.initializers.serialize(keras.initializers.get(self.recurrent_initializer)),
			"bias_initializer": keras.initializers.serialize(keras.initializers.get(self.bias_initializer)),
		})
		return cfg
