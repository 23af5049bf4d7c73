"""Gradient helpers for Keras models on the JAX backend."""

import logging
from typing import Callable, Optional, Sequence

import jax
import keras

logger = logging.getLogger(__name__)


def value_and_grad(model: keras.Model, loss_fn: Callable, training: bool = True) -> Callable:
	"""
	Build a (loss, grads) function for a built Keras model.

	The returned function has the signature

		((loss, non_trainable_values), grads) = fn(trainable_values, non_trainable_values, x, y)

	where grads matches trainable_values one to one. Updated non-trainable
	values (e.g. BatchNorm moving statistics) are returned alongside the loss.

	Args:
		model: Built Keras model (or layer)
		loss_fn: Callable (y_true, y_pred) -> scalar
		training: Forward pass mode (BatchNorm/Dropout behaviour)

	Returns:
		JAX function computing loss and gradients
	"""
	def compute_loss(trainable_values, non_trainable_values, x, y):
		y_pred, non_trainable_values = model.stateless_call(
			trainable_values, non_trainable_values, x, training=training
		)
		return loss_fn(y, y_pred), non_trainable_values

	return jax.value_and_grad(compute_loss, has_aux=True)


def variable_values(variables: Sequence[keras.Variable]) -> list:
	"""Snapshot the current values of a list of Keras variables."""
	return [v.value for v in variables]


def apply_gradients(
	model: keras.Model,
	optimizer: keras.optimizers.Optimizer,
	grads: Sequence,
	non_trainable_values: Optional[Sequence] = None,
) -> None:
	"""Apply gradients with optimizer and write back non-trainable state."""
	if not optimizer.built:
		optimizer.build(model.trainable_variables)
	trainable_values, optimizer_values = optimizer.stateless_apply(
		variable_values(optimizer.variables),
		list(grads),
		variable_values(model.trainable_variables),
	)
	for variable, value in zip(model.trainable_variables, trainable_values):
		variable.assign(value)
	for variable, value in zip(optimizer.variables, optimizer_values):
		variable.assign(value)
	if non_trainable_values is not None:
		for variable, value in zip(model.non_trainable_variables, non_trainable_values):
			variable.assign(value)


def train_step(model: keras.Model, optimizer: keras.optimizers.Optimizer, loss_fn: Callable, x, y) -> float:
	"""Run one forward/backward pass and update model in place. Returns the loss."""
	grad_fn = value_and_grad(model, loss_fn, training=True)
	(loss, non_trainable_values), grads = grad_fn(
		variable_values(model.trainable_variables),
		variable_values(model.non_trainable_variables),
		x,
		y,
	)
	apply_gradients(model, optimizer, grads, non_trainable_values)
	loss = float(loss)
	logger.debug(f"train step loss={loss:.4f}")
	return loss
