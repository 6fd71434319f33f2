"""Exceptions raised by the Levenberg-Marquardt engine.

Exception Hierarchy:
    LevMarError (base)
    ├── ConfigurationError (missing or inconsistent options, also a ValueError)
    ├── NumericalDivergenceError (cost evaluation returned a non-finite or non-real value)
    └── SingularSystemError (damped normal equations could not be solved)

None of these are retried. The best parameters found before a numerical
failure remain available through ``LevenbergMarquardt.get_results()``.
"""


class LevMarError(Exception):
    """Base class for all fitting errors.

    ``result`` holds the best ``LMResult`` found before the failure when the
    error escapes ``levenberg_marquardt()``, otherwise None.
    """
    result = None


class ConfigurationError(LevMarError, ValueError):
    """Options could not be resolved into a consistent configuration."""


class NumericalDivergenceError(LevMarError):
    """The cost evaluator produced NaN, infinity or a non-real value.

    Attributes
    ----------
    error : object
        The offending cost value.
    iteration : int
        Iteration at which the value was produced.
    """
    def __init__(self, error, iteration):
        self.error = error
        self.iteration = iteration
        super().__init__(f"Error should be a real value, got {error!r} "
                         f"at iteration {iteration}")


class SingularSystemError(LevMarError):
    """The damped normal equations are singular or too ill-conditioned.

    Reducing ``gradient_difference``, raising ``damping`` or changing the
    model parameterization usually avoids this.
    """
