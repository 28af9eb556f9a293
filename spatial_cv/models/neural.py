#!/usr/bin/env python
"""
Feed-forward neural network regressor for tabular covariates.

Weights are initialised and batches shuffled from a numpy generator
seeded per call. Layers are built on the meta device and materialised
without random initialisation, so training never touches torch's global RNG.

Author: najahpokkiri
Date: 2025-06-13
"""

import logging
import math
from typing import Sequence

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from torch.optim.lr_scheduler import CosineAnnealingLR

from .loss_functions import create_loss_function

logger = logging.getLogger(__name__)


class FeedForwardRegressor(nn.Module):
    """Stack of Linear -> LayerNorm -> ReLU blocks with a scalar head."""

    def __init__(self, input_features, hidden_sizes=(64, 32), device=None):
        super(FeedForwardRegressor, self).__init__()

        self.input_features = input_features

        layers = []
        width = input_features
        for size in hidden_sizes:
            layers.extend([nn.Linear(width, size, device=device),
                           nn.LayerNorm(size, device=device), nn.ReLU()])
            width = size
        self.hidden = nn.Sequential(*layers)
        self.head = nn.Linear(width, 1, device=device)

    def forward(self, x):
        x = self.hidden(x)
        x = self.head(x)
        return x.squeeze(1)


def init_weights(model: nn.Module, rng: np.random.Generator) -> None:
    """Uniform fan-in initialisation of every Linear layer from ``rng``.

    LayerNorm layers are reset to unit scale and zero shift.
    """
    with torch.no_grad():
        for module in model.modules():
            if isinstance(module, nn.Linear):
                bound = 1.0 / math.sqrt(module.in_features)
                weight = rng.uniform(-bound, bound, size=tuple(module.weight.shape))
                bias = rng.uniform(-bound, bound, size=tuple(module.bias.shape))
                module.weight.copy_(torch.as_tensor(weight, dtype=torch.float32))
                module.bias.copy_(torch.as_tensor(bias, dtype=torch.float32))
            elif isinstance(module, nn.LayerNorm):
                module.reset_parameters()


class NeuralEstimator:
    """Trained network together with its standardization statistics."""

    def __init__(self, model, x_mean, x_std, y_mean, y_std, history):
        self.model = model
        self.x_mean = x_mean
        self.x_std = x_std
        self.y_mean = y_mean
        self.y_std = y_std
        self.history = history

    def predict(self, features: np.ndarray) -> np.ndarray:
        x = (np.asarray(features, dtype=float) - self.x_mean) / self.x_std
        self.model.eval()
        with torch.no_grad():
            outputs = self.model(torch.as_tensor(x, dtype=torch.float32)).numpy()
        return outputs.astype(float) * self.y_std + self.y_mean


def fit_network(features: np.ndarray, target: np.ndarray, hidden_sizes: Sequence[int] = (64, 32),
                learning_rate: float = 1e-3, weight_decay: float = 1e-4, epochs: int = 200,
                batch_size: int = 32, loss: str = "mse", huber_delta: float = 1.0,
                seed: int = 0) -> NeuralEstimator:
    """Train a FeedForwardRegressor on standardized features and target.

    Args:
        features: Array of shape (n, p)
        target: Array of shape (n,)
        hidden_sizes: Width of each hidden block
        learning_rate: Initial AdamW learning rate
        weight_decay: AdamW weight decay
        epochs: Number of passes over the training data
        batch_size: Mini-batch size
        loss: ``"mse"`` or ``"huber"``
        huber_delta: Delta of the Huber loss
        seed: Seed for weight initialisation and batch order

    Returns:
        NeuralEstimator: Trained network with scaling statistics
    """
    rng = np.random.default_rng(seed)

    x_mean = features.mean(axis=0)
    x_std = features.std(axis=0)
    x_std[x_std == 0] = 1.0
    y_mean = float(target.mean())
    y_std = float(target.std())

    x = torch.as_tensor((features - x_mean) / x_std, dtype=torch.float32)
    y = torch.as_tensor((target - y_mean) / y_std, dtype=torch.float32)

    model = FeedForwardRegressor(features.shape[1], hidden_sizes, device="meta").to_empty(device="cpu")
    init_weights(model, rng)

    optimizer = optim.AdamW(model.parameters(), lr=learning_rate, weight_decay=weight_decay)
    scheduler = CosineAnnealingLR(optimizer, T_max=epochs, eta_min=learning_rate / 10)
    criterion = create_loss_function(loss, huber_delta)

    n = x.shape[0]
    batch_size = max(1, min(batch_size, n))
    train_losses = []

    for epoch in range(epochs):
        model.train()
        running_loss = 0.0

        order = torch.as_tensor(rng.permutation(n))
        for start in range(0, n, batch_size):
            idx = order[start:start + batch_size]
            optimizer.zero_grad()
            batch_loss = criterion(model(x[idx]), y[idx])
            batch_loss.backward()
            optimizer.step()
            running_loss += batch_loss.item() * len(idx)

        scheduler.step()
        train_losses.append(running_loss / n)

        if not math.isfinite(train_losses[-1]):
            logger.debug("Training loss diverged at epoch %d", epoch + 1)
            break

    return NeuralEstimator(model, x_mean, x_std, y_mean, y_std,
                           {"train_losses": train_losses, "epochs_trained": len(train_losses)})
