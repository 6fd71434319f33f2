"""Top level package for lmtools.

Expose the Levenberg-Marquardt fitter at package level so users can call
`levenberg_marquardt` directly or drive a `LevenbergMarquardt` instance
from their own loop.
"""
from .levmar import (
    LevenbergMarquardt,
    LMResult,
    FitState,
    levenberg_marquardt,
    check_options,
    sum_of_weighted_squares,
    ManualScheduler,
    ImmediateScheduler,
    AsyncioScheduler,
    LevMarError,
    ConfigurationError,
    NumericalDivergenceError,
    SingularSystemError,
)


def curve_fit(parameterized_function, x, y, p0, bounds=None, weights=1, **options):
    """Fit a model with a curve_fit style call signature.

    Parameters:
    - parameterized_function: callable taking a parameter array and returning a function of x
    - x, y: 1D sequences of equal length
    - p0: initial parameter values
    - bounds: optional (lower, upper) pair; each may be a scalar or one value per parameter
    - weights: scalar or per-point weights
    - options: any other `levenberg_marquardt` option

    Returns:
    - (parameter_values, LMResult)

    Examples:
    >>> popt, result = curve_fit(lambda p: lambda x: p[0] * x + p[1], x, y, [0, 0])
    >>> popt, result = curve_fit(model, x, y, [1, 0], bounds=([0, -1], [10, 1]))
    """
    if bounds is not None:
        if len(bounds) != 2:
            raise ConfigurationError(f"bounds must be a (lower, upper) pair, got {len(bounds)} elements")
        options['min_values'], options['max_values'] = bounds

    result = levenberg_marquardt({'x': x, 'y': y}, parameterized_function,
                                 initial_values=p0, weights=weights, **options)
    return result.parameter_values, result


__version__ = "1.0.0"
__all__ = ["levenberg_marquardt", "curve_fit", "LevenbergMarquardt", "LMResult", "FitState",
           "check_options", "sum_of_weighted_squares", "ManualScheduler", "ImmediateScheduler",
           "AsyncioScheduler", "LevMarError", "ConfigurationError", "NumericalDivergenceError",
           "SingularSystemError"]
