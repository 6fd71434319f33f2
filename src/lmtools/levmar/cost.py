"""Cost evaluators.

A cost evaluator is any callable with the signature::

    error_calculation(data, parameters, parameterized_function, weight_square) -> float

where ``data`` holds 1-D arrays under ``'x'`` and ``'y'``, and
``weight_square`` has one entry per data point. It must not modify its
arguments and should return a finite non-negative number.
"""

from collections.abc import Callable

import numpy as np

ErrorCalculation = Callable[[dict, np.ndarray, Callable, np.ndarray], float]


def evaluate_model(parameterized_function, parameters, x):
    """Evaluate ``parameterized_function(parameters)`` on the whole ``x`` array.

    The parameter vector handed to the model is always a fresh copy, and a
    scalar result is broadcast to the shape of ``x``.
    """
    func = parameterized_function(np.array(parameters, dtype=np.float64))
    values = np.asarray(func(x), dtype=np.float64)
    if values.shape != x.shape:
        values = np.broadcast_to(values, x.shape)
    return values


def pointwise(parameterized_function):
    """Wrap a scalar model so it can be evaluated on a whole array."""
    def vectorized_function(parameters):
        func = parameterized_function(parameters)

        def evaluate(x):
            x = np.asarray(x, dtype=np.float64)
            return np.fromiter((func(xi) for xi in x), dtype=np.float64, count=x.size)
        return evaluate

    vectorized_function.__wrapped__ = parameterized_function
    return vectorized_function


def sum_of_weighted_squares(data, parameters, parameterized_function, weight_square):
    """Weighted sum of squared residuals: sum(w^2 * (y - f(x))^2)."""
    x = np.asarray(data['x'], dtype=np.float64)
    y = np.asarray(data['y'], dtype=np.float64)
    residuals = y - evaluate_model(parameterized_function, parameters, x)
    return float(np.sum(weight_square * residuals**2))


__all__ = ['ErrorCalculation', 'evaluate_model', 'pointwise', 'sum_of_weighted_squares']
