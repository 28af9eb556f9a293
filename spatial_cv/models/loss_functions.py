#!/usr/bin/env python
"""
Loss functions for the neural network learner.

Author: najahpokkiri
Date: 2025-06-13
"""

import torch
import torch.nn as nn


class HuberLoss(nn.Module):
    """Huber loss function that is less sensitive to outliers."""

    def __init__(self, delta=1.0):
        super(HuberLoss, self).__init__()
        self.delta = delta

    def forward(self, y_pred, y_true):
        abs_error = torch.abs(y_pred - y_true)
        quadratic = torch.clamp(abs_error, max=self.delta)
        linear = abs_error - quadratic
        return torch.mean(0.5 * quadratic.pow(2) + self.delta * linear)


LOSS_FUNCTIONS = ("mse", "huber")


def create_loss_function(loss_type: str, huber_delta: float = 1.0) -> nn.Module:
    """Create a loss function by name."""
    loss_type = loss_type.lower()

    if loss_type == "mse":
        return nn.MSELoss()
    elif loss_type == "huber":
        return HuberLoss(delta=huber_delta)
    else:
        raise ValueError(f"Unsupported loss function: {loss_type}")
