"""Tacotron encoder modules: HighwayNet, PreNet and CBHG."""

import logging
from typing import Optional, Sequence, Tuple, Union

import keras
from keras import layers, ops

from tacotron.layers import Bidirectional, MergeMode

logger = logging.getLogger(__name__)


class HighwayNet(layers.Layer):
	"""
	Highway network (https://arxiv.org/abs/1505.00387) with configurable dense layers.

	Each block computes:
	  H = relu(W_H x + b_H), T = relu(W_T x + b_T)
	  y = H * T + x * (1 - T)
	where x is the block's own input.
	"""
	def __init__(
		self,
		layer_size: int,
		num_layers: int,
		kernel_initializer="glorot_uniform",
		bias_initializer="zeros",
		name: Optional[str] = None,
		**kwargs
	):
		super().__init__(name=name, **kwargs)
		if num_layers < 1:
			raise ValueError(f"HighwayNet needs at least 1 layer, got num_layers={num_layers}")
		self.layer_size = layer_size
		self.num_layers = num_layers
		self.kernel_initializer = kernel_initializer
		self.bias_initializer = bias_initializer

		self.transforms = [
			layers.Dense(
				layer_size,
				activation="relu",
				kernel_initializer=kernel_initializer,
				bias_initializer=bias_initializer,
				name=f"highway_h_{i}",
			)
			for i in range(num_layers)
		]
		self.gates = [
			layers.Dense(
				layer_size,
				activation="relu",
				kernel_initializer=kernel_initializer,
				bias_initializer=bias_initializer,
				name=f"highway_t_{i}",
			)
			for i in range(num_layers)
		]

	def build(self, input_shape):
		for transform, gate in zip(self.transforms, self.gates):
			transform.build(input_shape)
			gate.build(input_shape)

	def call(self, x, training=False):
		"""
		Args:
			x: [B, T, layer_size]
		Returns:
			[B, T, layer_size]
		"""
		out = x
		for transform, gate in zip(self.transforms, self.gates):
			t = gate(out)
			out = transform(out) * t + out * (1.0 - t)
		return out

	def get_config(self):
		cfg = super().get_config()
		cfg.update({
			"layer_size": self.layer_size,
			"num_layers": self.num_layers,
			"kernel_initializer": keras.initializers.serialize(keras.initializers.get(self.kernel_initializer)),
			"bias_initializer": keras.initializers.serialize(keras.initializers.get(self.bias_initializer)),
		})
		return cfg


class PreNet(layers.Layer):
	"""
	Preprocessing network: a stack of Dense(ReLU) + Dropout pairs.

	drop_probs holds either one rate shared by every layer or one rate per layer.
	"""
	def __init__(
		self,
		layer_sizes: Sequence[Tuple[int, int]],
		drop_probs: Sequence[float] = (0.5,),
		kernel_initializer="glorot_uniform",
		bias_initializer="zeros",
		seed: Optional[int] = None,
		name: Optional[str] = None,
		**kwargs
	):
		super().__init__(name=name, **kwargs)
		if len(layer_sizes) == 0:
			raise ValueError("PreNet needs at least one (input, output) layer size")
		if len(drop_probs) not in (1, len(layer_sizes)):
			raise ValueError(
				f"Invalid length of drop_probs: got {len(drop_probs)}, "
				f"expected 1 or {len(layer_sizes)}"
			)
		self.layer_sizes = [tuple(pair) for pair in layer_sizes]
		self.drop_probs = [float(p) for p in drop_probs]
		if len(self.drop_probs) == 1:
			self.drop_probs = self.drop_probs * len(self.layer_sizes)
		self.kernel_initializer = kernel_initializer
		self.bias_initializer = bias_initializer
		self.seed = seed

		self.denses = [
			layers.Dense(
				out_dim,
				activation="relu",
				kernel_initializer=kernel_initializer,
				bias_initializer=bias_initializer,
				name=f"prenet_dense_{i}",
			)
			for i, (_, out_dim) in enumerate(self.layer_sizes)
		]
		self.dropouts = [
			layers.Dropout(rate, seed=None if seed is None else seed + i, name=f"prenet_dropout_{i}")
			for i, rate in enumerate(self.drop_probs)
		]

	@property
	def output_size(self) -> int:
		return self.layer_sizes[-1][1]

	def build(self, input_shape):
		shape = tuple(input_shape)
		if shape[-1] is not None and shape[-1] != self.layer_sizes[0][0]:
			raise ValueError(
				f"PreNet expects input width {self.layer_sizes[0][0]}, got {shape[-1]}"
			)
		for dense, (_, out_dim) in zip(self.denses, self.layer_sizes):
			dense.build(shape)
			shape = shape[:-1] + (out_dim,)

	def call(self, x, training=False):
		"""
		Args:
			x: [B, T, layer_sizes[0][0]]
		Returns:
			[B, T, layer_sizes[-1][1]]
		"""
		out = x
		for dense, dropout in zip(self.denses, self.dropouts):
			out = dropout(dense(out), training=training)
		return out

	def get_config(self):
		cfg = super().get_config()
		cfg.update({
			"layer_sizes": [list(pair) for pair in self.layer_sizes],
			"drop_probs": self.drop_probs,
			"kernel_initializer": keras.initializers.serialize(keras.initializers.get(self.kernel_initializer)),
			"bias_initializer": keras.initializers.serialize(keras.initializers.get(self.bias_initializer)),
			"seed": self.seed,
		})
		return cfg


class CBHG(keras.Model):
	"""
	CBHG module from Tacotron (https://arxiv.org/abs/1703.10135):
	- Conv bank: K parallel Conv1D(kernel=k) + BatchNorm over the input, concatenated
	- MaxPool1D over time (same padding)
	- Two projection Conv1D + BatchNorm (ReLU, then linear)
	- Residual connection to the input
	- HighwayNet
	- Bidirectional RNN over time

	proj_out_channels[1] must equal the input channel count for the residual add.
	The sequence length may be left as None for symbolic (Functional) use.
	"""
	def __init__(
		self,
		bank_size: int,
		in_channels: int,
		conv_channels: int,
		proj_out_channels: Sequence[int],
		max_pool_width: int = 2,
		max_pool_stride: int = 1,
		proj_width: int = 3,
		num_highway_layers: int = 4,
		merge_mode: Union[MergeMode, str] = MergeMode.CONCAT,
		cell_type: str = "lstm",
		name: Optional[str] = None,
		**kwargs
	):
		super().__init__(name=name, **kwargs)
		if bank_size <= 0:
			raise ValueError(f"Invalid bank size: {bank_size}")
		if len(proj_out_channels) != 2:
			raise ValueError(
				f"proj_out_channels must have exactly 2 entries, got {list(proj_out_channels)}"
			)
		self.bank_size = bank_size
		self.in_channels = in_channels
		self.conv_channels = conv_channels
		self.proj_out_channels = [int(c) for c in proj_out_channels]
		self.max_pool_width = max_pool_width
		self.max_pool_stride = max_pool_stride
		self.proj_width = proj_width
		self.num_highway_layers = num_highway_layers
		self.merge_mode = MergeMode.parse(merge_mode)
		self.cell_type = cell_type

		if self.proj_out_channels[1] != in_channels:
			logger.warning(
				f"CBHG projection width {self.proj_out_channels[1]} != in_channels {in_channels}; "
				"the residual connection will fail"
			)

		# Conv bank, kernel widths 1..K, every branch reads the module input
		self.bank_convs = []
		self.bank_norms = []
		for k in range(1, bank_size + 1):
			self.bank_convs.append(
				layers.Conv1D(
					filters=conv_channels,
					kernel_size=k,
					padding="same",
					activation="relu",
					name=f"bank_conv_{k}",
				)
			)
			self.bank_norms.append(layers.BatchNormalization(name=f"bank_norm_{k}"))

		self.max_pool = layers.MaxPooling1D(
			pool_size=max_pool_width,
			strides=max_pool_stride,
			padding="same",
		)

		self.proj_convs = [
			layers.Conv1D(
				filters=self.proj_out_channels[0],
				kernel_size=proj_width,
				padding="same",
				activation="relu",
				name="proj_conv_0",
			),
			layers.Conv1D(
				filters=self.proj_out_channels[1],
				kernel_size=proj_width,
				padding="same",
				name="proj_conv_1",
			),
		]
		self.proj_norms = [
			layers.BatchNormalization(name="proj_norm_0"),
			layers.BatchNormalization(name="proj_norm_1"),
		]

		width = self.proj_out_channels[1]
		self.highway = HighwayNet(layer_size=width, num_layers=num_highway_layers, name="highway")
		self.bidirectional = Bidirectional(
			units=width,
			cell_type=cell_type,
			merge_mode=self.merge_mode,
			name="bidirectional",
		)
		logger.debug(
			f"CBHG: K={bank_size}, bank width={bank_size * conv_channels}, "
			f"proj={self.proj_out_channels}, highway={num_highway_layers}x{width}, "
			f"rnn={cell_type} ({self.merge_mode.value})"
		)

	@property
	def output_size(self) -> int:
		return self.bidirectional.output_size

	def build(self, input_shape):
		batch, steps, _ = input_shape
		for conv, norm in zip(self.bank_convs, self.bank_norms):
			conv.build(input_shape)
			norm.build((batch, steps, self.conv_channels))
		shape = (batch, steps, self.bank_size * self.conv_channels)
		for conv, norm, channels in zip(self.proj_convs, self.proj_norms, self.proj_out_channels):
			conv.build(shape)
			shape = (batch, steps, channels)
			norm.build(shape)
		self.highway.build(shape)
		self.bidirectional.build([(batch, shape[-1])])

	def compute_output_shape(self, input_shape):
		# The time axis is unstacked in call, so symbolic shapes are resolved here
		batch, steps, _ = input_shape
		return (batch, steps, self.output_size)

	def call(self, inputs, training=False):
		"""
		Args:
			inputs: [B, T, in_channels]
		Returns:
			outputs: [B, T, 2 * in_channels] for concat merge, [B, T, in_channels] otherwise
		"""
		bank = [
			norm(conv(inputs), training=training)
			for conv, norm in zip(self.bank_convs, self.bank_norms)
		]
		h = ops.concatenate(bank, axis=-1)  # [B, T, K * conv_channels]
		h = self.max_pool(h)

		for conv, norm in zip(self.proj_convs, self.proj_norms):
			h = norm(conv(h), training=training)

		# Residual connection
		h = inputs + h
		h = self.highway(h, training=training)

		steps = ops.unstack(h, axis=1)  # T x [B, C]
		outputs = self.bidirectional(steps, training=training)
		return ops.stack(outputs, axis=1)

	def get_config(self):
		cfg = super().get_config()
		cfg.update({
			"bank_size": self.bank_size,
			"in_channels": self.in_channels,
			"conv_channels": self.conv_channels,
			"proj_out_channels": self.proj_out_channels,
			"max_pool_width": self.max_pool_width,
			"max_pool_stride": self.max_pool_stride,
			"proj_width": self.proj_width,
			"num_highway_layers": self.num_highway_layers,
			"merge_mode": self.merge_mode.value,
			"cell_type": self.cell_type,
		})
		return cfg


def create_cbhg(
	bank_size: int = 16,
	in_channels: int = 128,
	conv_channels: int = 128,
	proj_out_channels: Sequence[int] = (128, 128),
	**kwargs
) -> CBHG:
	"""
	Create a CBHG module with the Tacotron encoder defaults.

	Args:
		bank_size: Number of conv bank filters (kernel widths 1..bank_size)
		in_channels: Input feature width
		conv_channels: Output channels of each conv bank branch
		proj_out_channels: Output channels of the two projection convs
		**kwargs: Additional arguments for CBHG

	Returns:
		CBHG instance
	"""
	return CBHG(
		bank_size=bank_size,
		in_channels=in_channels,
		conv_channels=conv_channels,
		proj_out_channels=proj_out_channels,
		**kwargs
	)


def create_prenet(
	layer_sizes: Sequence[Tuple[int, int]] = ((256, 256), (256, 128)),
	drop_probs: Sequence[float] = (0.5,),
	**kwargs
) -> PreNet:
	"""Create a PreNet with the Tacotron FC-256 -> FC-128 layout."""
	return PreNet(layer_sizes=layer_sizes, drop_probs=drop_probs, **kwargs)
