#!/usr/bin/env python
"""
Example usage of levenberg_marquardt

Demonstrates fitting a Gaussian model to synthetic noisy data using the
Levenberg-Marquardt algorithm with parameter constraints.
"""

import logging

import numpy as np

from lmtools import levenberg_marquardt

logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s: %(message)s")

# Generate synthetic Gaussian data
rng = np.random.default_rng(42)
x = np.linspace(-5, 5, 100)

# True parameters: amplitude=2.5, mean=1.0, sigma=0.8
true_params = [2.5, 1.0, 0.8]
y_true = true_params[0] * np.exp(-0.5 * ((x - true_params[1]) / true_params[2])**2)
noise = rng.normal(0, 0.1, len(x))
y = y_true + noise
error = np.ones_like(y) * 0.1

# Initial parameter guesses
p0 = [1.5, 0.5, 1.0]  # Deliberately off from true values

# Parameter bounds
bounds = [
    [0.0, 10.0],   # amplitude: 0 to 10
    [-5.0, 5.0],   # mean: -5 to 5
    [0.1, 5.0]     # sigma: 0.1 to 5
]

# Create parinfo structure
parinfo = [
    {'value': p0[i], 'limits': bounds[i]}
    for i in range(len(p0))
]


def gaussian(p):
    return lambda x: p[0] * np.exp(-0.5 * ((x - p[1]) / p[2])**2)


print("=" * 70)
print("LEVMAR Example: Gaussian Fitting")
print("=" * 70)
print(f"\nData points: {len(x)}")
print(f"Parameters: {len(p0)}")
print(f"\nTrue parameters:    {true_params}")
print(f"Initial guesses:    {p0}")
print(f"Parameter bounds:   {bounds}")

print("\nCalling levenberg_marquardt()...")
result = levenberg_marquardt(
    {'x': x, 'y': y},
    gaussian,
    parinfo=parinfo,
    weights=1.0 / error,
    gradient_difference=1e-4,
    central_difference=True,
    error_tolerance=1e-6,
    max_iterations=200,
)

print("\nResults:")
print("-" * 70)
print(f"State:              {result.state.value}")
print(f"Iterations:         {result.iterations}")
print(f"Initial chi^2:      {result.initial_error:.6e}")
print(f"Final chi^2:        {result.parameter_error:.6e}")
print(f"Final damping:      {result.damping:.3e}")

print("\nBest-fit parameters:")
for i, param in enumerate(result.parameter_values):
    print(f"  p[{i}] = {param:10.6f}")
print("=" * 70)
