"""
Option handling for the Levenberg-Marquardt fitter.

Turns data, a parameterized model and loosely specified options into a
fully resolved :class:`LMOptions` where every vector already has the
length the engine expects.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import numpy as np

from .cost import ErrorCalculation, pointwise, sum_of_weighted_squares
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS = {
    'initial_values': None,
    'parinfo': None,
    'weights': 1,
    'damping': 1e-2,
    'damping_step_up': 11,
    'damping_step_down': 9,
    'improvement_threshold': 1e-3,
    'gradient_difference': 10e-2,
    'central_difference': False,
    'min_values': None,
    'max_values': None,
    'max_iterations': 100,
    'error_tolerance': 10e-3,
    'error_calculation': None,
    'vectorized': True,
}


@dataclass
class LMOptions:
    """Resolved fitter configuration.

    Attributes
    ----------
    parameters : ndarray
        Initial parameter vector, already clipped into the bounds.
    min_values, max_values : ndarray
        Per-parameter box constraints (``-inf``/``+inf`` when unbounded).
    weight_square : ndarray
        Squared weights, one per data point.
    gradient_difference : ndarray
        Finite-difference step, one per parameter.
    parameterized_function : callable
        Model factory, wrapped for array evaluation when ``vectorized`` was False.
    error_calculation : callable
        Cost evaluator.
    """
    data: dict
    parameterized_function: Callable
    parameters: np.ndarray
    min_values: np.ndarray
    max_values: np.ndarray
    weight_square: np.ndarray
    gradient_difference: np.ndarray
    damping: float = 1e-2
    damping_step_up: float = 11
    damping_step_down: float = 9
    improvement_threshold: float = 1e-3
    central_difference: bool = False
    max_iterations: int = 100
    error_tolerance: float = 10e-3
    error_calculation: ErrorCalculation = field(default=sum_of_weighted_squares)

    @property
    def npar(self):
        return len(self.parameters)

    @property
    def nfunc(self):
        return len(self.data['x'])


def _check_data(data):
    if data is None:
        raise ConfigurationError("data must be provided")
    if not isinstance(data, Mapping) or 'x' not in data or 'y' not in data:
        raise ConfigurationError("data must contain 'x' and 'y'")

    x = np.asarray(data['x'], dtype=np.float64)
    y = np.asarray(data['y'], dtype=np.float64)

    if x.ndim != 1 or y.ndim != 1:
        raise ConfigurationError("x and y must be 1D arrays")
    if len(x) != len(y):
        raise ConfigurationError("x and y must have the same length")
    if len(x) < 2:
        raise ConfigurationError("data must contain at least 2 points")
    return {'x': x, 'y': y}


def _from_parinfo(parinfo):
    """Expand a list of ``{'value': v, 'limits': [lo, hi]}`` dicts."""
    npar = len(parinfo)
    p0 = np.zeros(npar, dtype=np.float64)
    lower = np.full(npar, -np.inf)
    upper = np.full(npar, np.inf)

    for i, pinfo in enumerate(parinfo):
        if 'value' not in pinfo:
            raise ConfigurationError(f"parinfo[{i}] must contain 'value'")
        p0[i] = float(pinfo['value'])
        limits = pinfo.get('limits')
        if limits is not None:
            if len(limits) != 2:
                raise ConfigurationError(f"parinfo[{i}]['limits'] must have 2 elements")
            lower[i] = float(limits[0])
            upper[i] = float(limits[1])
    return p0, lower, upper


def _per_parameter(value, npar, name, fill):
    """Broadcast a scalar bound to every parameter, or check a vector's length."""
    if value is None:
        return np.full(npar, fill, dtype=np.float64)
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        return np.full(npar, float(arr))
    if arr.ndim != 1 or len(arr) != npar:
        raise ConfigurationError(
            f"{name} must have one value per parameter ({npar}), got {arr.shape}")
    return arr.copy()


def _fill_vector(value, length, name):
    """Scalars fill the vector; vectors of another length repeat their first value."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        return np.full(length, float(arr))
    if arr.ndim != 1 or arr.size == 0:
        raise ConfigurationError(f"{name} must be a number or a 1D array")
    if len(arr) != length:
        return np.full(length, arr[0])
    return arr.copy()


def check_options(data, parameterized_function, options=None, **kwargs):
    """
    Validate and default-fill fitter options.

    Parameters
    ----------
    data : dict
        Mapping with 'x' and 'y' sequences of equal length (at least 2 points).
    parameterized_function : callable
        ``parameterized_function(parameters)`` returns a function of x.
    options : dict, optional
        Option mapping; ``kwargs`` are merged on top of it.

    Returns
    -------
    LMOptions

    Raises
    ------
    ConfigurationError
        For unknown options, missing initial values or vectors whose
        lengths cannot be reconciled.
    """
    merged = dict(options or {})
    merged.update(kwargs)
    unknown = sorted(set(merged) - set(DEFAULT_OPTIONS))
    if unknown:
        raise ConfigurationError(f"Unknown options: {', '.join(unknown)}")
    opts = dict(DEFAULT_OPTIONS, **merged)

    data = _check_data(data)
    if not callable(parameterized_function):
        raise ConfigurationError("parameterized_function must be callable")

    if opts['parinfo'] is not None:
        if opts['initial_values'] is not None:
            raise ConfigurationError("Pass either parinfo or initial_values, not both")
        parameters, min_values, max_values = _from_parinfo(opts['parinfo'])
    else:
        if opts['initial_values'] is None:
            raise ConfigurationError("initial_values must be provided")
        parameters = np.array(opts['initial_values'], dtype=np.float64)
        if parameters.ndim != 1 or parameters.size == 0:
            raise ConfigurationError("initial_values must be a non-empty 1D array")
        min_values = max_values = None
    npar = len(parameters)

    if opts['min_values'] is not None or min_values is None:
        min_values = _per_parameter(opts['min_values'], npar, 'min_values', -np.inf)
    if opts['max_values'] is not None or max_values is None:
        max_values = _per_parameter(opts['max_values'], npar, 'max_values', np.inf)

    if not np.all(np.isfinite(parameters)):
        raise ConfigurationError("initial_values must be finite")
    if np.any(np.isnan(min_values)) or np.any(np.isnan(max_values)):
        raise ConfigurationError("min_values and max_values must not be NaN")
    for i in range(npar):
        if min_values[i] > max_values[i]:
            raise ConfigurationError(
                f"parameter {i}: min_values must be <= max_values")

    clipped = np.clip(parameters, min_values, max_values)
    if not np.array_equal(clipped, parameters):
        logger.warning(f"Initial values {parameters.tolist()} outside bounds, "
                       f"clipped to {clipped.tolist()}")
        parameters = clipped

    damping = float(opts['damping'])
    if not damping > 0:
        raise ConfigurationError("The damping option must be a positive number")
    for name in ('damping_step_up', 'damping_step_down'):
        if not float(opts[name]) > 0:
            raise ConfigurationError(f"The {name} option must be a positive number")

    max_iterations = opts['max_iterations']
    try:
        valid = int(max_iterations) == max_iterations and max_iterations >= 0
    except (TypeError, ValueError, OverflowError):
        valid = False
    if not valid:
        raise ConfigurationError("max_iterations must be a non-negative integer")
    if not float(opts['error_tolerance']) >= 0:
        raise ConfigurationError("error_tolerance must be non-negative")

    gradient_difference = _fill_vector(opts['gradient_difference'], npar, 'gradient_difference')
    if np.any(gradient_difference == 0) or not np.all(np.isfinite(gradient_difference)):
        raise ConfigurationError("gradient_difference must be finite and non-zero")

    weights = _fill_vector(opts['weights'], len(data['x']), 'weights')
    if not np.all(np.isfinite(weights)):
        raise ConfigurationError("weights must be finite")

    error_calculation = opts['error_calculation'] or sum_of_weighted_squares
    if not callable(error_calculation):
        raise ConfigurationError("error_calculation must be callable")

    if not opts['vectorized']:
        parameterized_function = pointwise(parameterized_function)

    return LMOptions(
        data=data,
        parameterized_function=parameterized_function,
        parameters=parameters,
        min_values=min_values,
        max_values=max_values,
        weight_square=weights**2,
        gradient_difference=gradient_difference,
        damping=damping,
        damping_step_up=float(opts['damping_step_up']),
        damping_step_down=float(opts['damping_step_down']),
        improvement_threshold=float(opts['improvement_threshold']),
        central_difference=bool(opts['central_difference']),
        max_iterations=int(max_iterations),
        error_tolerance=float(opts['error_tolerance']),
        error_calculation=error_calculation,
    )


__all__ = ['LMOptions', 'check_options', 'DEFAULT_OPTIONS']
