"""
levmar: Levenberg-Marquardt least-squares curve fitting

Fits a parameterized model to (x, y) data by damped Gauss-Newton
iterations with finite-difference Jacobians, optional weights and
per-parameter box constraints. Iterations are driven by a pluggable
scheduler so a fit can run inside a host event loop.
"""

import asyncio
import logging
from enum import Enum

import numpy as np

from .cost import ErrorCalculation, evaluate_model, pointwise, sum_of_weighted_squares
from .errors import (ConfigurationError, LevMarError, NumericalDivergenceError,
                     SingularSystemError)
from .options import DEFAULT_OPTIONS, LMOptions, check_options
from .scheduling import AsyncioScheduler, ImmediateScheduler, ManualScheduler, Scheduler
from .step import StepResult, gradient_function, step

logger = logging.getLogger(__name__)

MIN_DAMPING = 1e-7
MAX_DAMPING = 1e7


class FitState(Enum):
    IDLE = 'idle'
    FITTING = 'fitting'
    CONVERGED = 'converged'
    EXHAUSTED = 'exhausted'
    STOPPED = 'stopped'
    FAILED = 'failed'


class LMResult:
    """
    Result object returned by ``LevenbergMarquardt.get_results()``

    Attributes
    ----------
    parameter_values : ndarray
        Best parameters found so far (a copy)
    parameter_error : float
        Cost at ``parameter_values``
    iterations : int
        Number of iterations performed
    initial_error : float
        Cost at the starting parameters
    damping : float
        Current damping factor
    state : FitState
        Fit state at the time the result was taken
    """
    def __init__(self, parameter_values, parameter_error, iterations,
                 initial_error=None, damping=None, state=FitState.IDLE):
        self.parameter_values = parameter_values
        self.parameter_error = parameter_error
        self.iterations = iterations
        self.initial_error = initial_error
        self.damping = damping
        self.state = state

    def __repr__(self):
        return (f"LMResult(state={self.state.value}, iterations={self.iterations}, "
                f"parameter_error={self.parameter_error!r})")


class LevenbergMarquardt:
    """
    Levenberg-Marquardt curve fitter.

    Parameters
    ----------
    data : dict
        Mapping with 'x' and 'y' sequences of equal length.
    parameterized_function : callable
        Takes a parameter array and returns a function of x. The returned
        function receives the whole x array unless ``vectorized=False``.
    options : dict, optional
        Fitter options, see ``check_options``. Keyword arguments are merged
        on top of it.
    scheduler : Scheduler, optional
        Decides when iterations run. Defaults to ``ImmediateScheduler``,
        which makes ``start()`` block until the fit ends.

    Examples
    --------
    >>> import numpy as np
    >>> from lmtools.levmar import LevenbergMarquardt
    >>> data = {'x': [0, 1, 2, 3, 4], 'y': [1, 3, 5, 7, 9]}
    >>> line = lambda p: lambda x: p[0] * x + p[1]
    >>> lm = LevenbergMarquardt(data, line, initial_values=[0, 0])
    >>> lm.start()
    >>> lm.get_results().parameter_values
    """

    def __init__(self, data, parameterized_function, options=None, scheduler=None, **kwargs):
        opts = check_options(data, parameterized_function, options, **kwargs)
        self.options = opts
        self.data = opts.data
        self.parameterized_function = opts.parameterized_function

        self.min_values = opts.min_values
        self.max_values = opts.max_values
        self.parameters = opts.parameters.copy()
        self.weight_square = opts.weight_square
        self.damping = opts.damping
        self.damping_step_up = opts.damping_step_up
        self.damping_step_down = opts.damping_step_down
        self.max_iterations = opts.max_iterations
        self.error_tolerance = opts.error_tolerance
        self.error_calculation = opts.error_calculation
        self.central_difference = opts.central_difference
        self.gradient_difference = opts.gradient_difference
        self.improvement_threshold = opts.improvement_threshold

        self.scheduler = scheduler if scheduler is not None else ImmediateScheduler()
        self.state = FitState.IDLE
        self.exception = None
        self.iteration = 0
        self.error = None
        self.initial_error = None
        self.optimal_error = None
        self.optimal_parameters = self.parameters.copy()
        self._handle = None
        self._done = None

    @property
    def fitting(self):
        return self.state is FitState.FITTING

    def _calculate_error(self):
        error = self.error_calculation(self.data, self.parameters.copy(),
                                       self.parameterized_function, self.weight_square)
        if np.iscomplexobj(error):
            raise NumericalDivergenceError(error, self.iteration)
        try:
            error = float(error)
        except (TypeError, ValueError) as exc:
            raise NumericalDivergenceError(error, self.iteration) from exc
        if not np.isfinite(error):
            raise NumericalDivergenceError(error, self.iteration)
        return error

    def start(self):
        """Begin fitting from the current parameters. No-op while already fitting."""
        if self.fitting:
            return

        self.iteration = 0
        self.exception = None
        try:
            self.error = self._calculate_error()
        except Exception as exc:
            self._fail(exc)
            raise
        self.initial_error = self.error
        self.optimal_error = self.error
        self.optimal_parameters = self.parameters.copy()
        self.state = FitState.FITTING
        logger.info(f"Starting fit: {len(self.parameters)} parameters, "
                    f"{len(self.data['x'])} points, initial error {self.error:.6e}")
        self._schedule()

    def stop(self):
        """Stop fitting. An iteration already running still completes."""
        if self.fitting:
            logger.info(f"Fit stopped after {self.iteration} iterations")
        self._cancel()
        self.state = FitState.STOPPED
        self._wake_waiters()

    def reset(self):
        """Return to the initial parameters and damping, ready for ``start()``."""
        self._cancel()
        self.parameters = self.options.parameters.copy()
        self.damping = self.options.damping
        self.iteration = 0
        self.error = None
        self.initial_error = None
        self.optimal_error = None
        self.optimal_parameters = self.parameters.copy()
        self.exception = None
        self.state = FitState.IDLE
        self._wake_waiters()

    def get_results(self):
        return LMResult(
            parameter_values=self.optimal_parameters.copy(),
            parameter_error=self.optimal_error,
            iterations=self.iteration,
            initial_error=self.initial_error,
            damping=self.damping,
            state=self.state,
        )

    async def wait(self):
        """Await the end of a fit driven by an ``AsyncioScheduler``.

        Any scheduler works as long as something in the running loop keeps
        advancing the fit. Raises the exception that failed the fit, if any.
        """
        if self.fitting:
            if self._done is None or self._done.done():
                self._done = asyncio.get_running_loop().create_future()
            await asyncio.shield(self._done)
        if self.exception is not None:
            raise self.exception
        return self.get_results()

    def _schedule(self):
        self._handle = self.scheduler.schedule(self._scheduled_iteration)

    def _cancel(self):
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None

    def _wake_waiters(self):
        done, self._done = self._done, None
        if done is not None and not done.done():
            done.set_result(None)

    def _scheduled_iteration(self):
        self._handle = None
        if self.iterate():
            self._schedule()

    def _finish(self, state):
        self.state = state
        self._wake_waiters()
        logger.info(f"Fit {state.value} after {self.iteration} iterations, "
                    f"best error {self.optimal_error:.6e}")

    def _fail(self, exc):
        self._cancel()
        self.exception = exc
        self.state = FitState.FAILED
        self._wake_waiters()
        logger.error(f"Fit failed at iteration {self.iteration}: {exc}")

    def iterate(self):
        """
        Run one unit of fitting work.

        Returns
        -------
        bool
            True while more iterations are needed.
        """
        if not self.fitting:
            return False
        try:
            self._iterate()
        except Exception as exc:
            self._fail(exc)
            raise
        return self.fitting

    def _iterate(self):
        if self.error <= self.error_tolerance:
            self._finish(FitState.CONVERGED)
            return
        if self.iteration >= self.max_iterations:
            self._finish(FitState.EXHAUSTED)
            return

        self.iteration += 1
        previous_error = self.error
        damping = self.damping

        perturbations, jacobian_weight_residual_error = step(
            self.data,
            self.parameters.copy(),
            damping,
            self.gradient_difference,
            self.parameterized_function,
            self.central_difference,
            self.weight_square,
        )

        self.parameters = np.clip(self.parameters - perturbations,
                                  self.min_values, self.max_values)

        self.error = self._calculate_error()

        if self.error < self.optimal_error - self.error_tolerance:
            self.optimal_error = self.error
            self.optimal_parameters = self.parameters.copy()

        predicted = float(perturbations @ (damping * perturbations + jacobian_weight_residual_error))
        if predicted > 0 and np.isfinite(predicted):
            improvement_metric = (previous_error - self.error) / predicted
        else:
            # no predicted reduction to compare against
            improvement_metric = -np.inf

        if improvement_metric > self.improvement_threshold:
            self.damping = max(damping / self.damping_step_down, MIN_DAMPING)
        else:
            self.damping = min(damping * self.damping_step_up, MAX_DAMPING)

        logger.debug(f"iteration {self.iteration}: error={self.error:.6e} "
                     f"metric={improvement_metric:.3e} damping={self.damping:.3e}")


def levenberg_marquardt(data, parameterized_function, options=None, **kwargs):
    """
    Fit ``parameterized_function`` to ``data`` and return the result.

    Blocking convenience wrapper around :class:`LevenbergMarquardt` with an
    :class:`ImmediateScheduler`. Options are the same as for the class.

    Returns
    -------
    LMResult

    Raises
    ------
    LevMarError
        When the fit fails. The best result found before the failure is
        attached as ``exc.result``.
    """
    lm = LevenbergMarquardt(data, parameterized_function, options,
                            scheduler=ImmediateScheduler(), **kwargs)
    try:
        lm.start()
    except LevMarError as exc:
        exc.result = lm.get_results()
        raise
    return lm.get_results()


__all__ = [
    'LevenbergMarquardt', 'LMResult', 'FitState', 'levenberg_marquardt',
    'LMOptions', 'check_options', 'DEFAULT_OPTIONS',
    'step', 'gradient_function', 'StepResult',
    'ErrorCalculation', 'evaluate_model', 'pointwise', 'sum_of_weighted_squares',
    'Scheduler', 'ManualScheduler', 'ImmediateScheduler', 'AsyncioScheduler',
    'LevMarError', 'ConfigurationError', 'NumericalDivergenceError', 'SingularSystemError',
    'MIN_DAMPING', 'MAX_DAMPING',
]
