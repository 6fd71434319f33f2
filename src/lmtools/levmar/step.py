"""
Single Levenberg-Marquardt step.

Builds the finite-difference Jacobian at the current parameters, forms
the damped, weighted normal equations and solves them for the parameter
perturbation. The caller's parameter vector is only ever read.
"""

from typing import NamedTuple

import numpy as np

from .cost import evaluate_model
from .errors import SingularSystemError

# Matrices with a larger condition number are treated as singular
MAX_CONDITION = 1.0 / np.finfo(np.float64).eps


class StepResult(NamedTuple):
    perturbations: np.ndarray
    jacobian_weight_residual_error: np.ndarray


def gradient_function(data, evaluated_data, params, gradient_difference,
                      parameterized_function, central_difference=False):
    """
    Finite-difference approximation of the Jacobian.

    Columns are ``(f(p) - f(p + h_k e_k)) / h_k`` for forward differences and
    ``(f(p - h_k e_k) - f(p + h_k e_k)) / (2 h_k)`` for central differences,
    i.e. the derivative of the residual ``y - f`` with respect to each
    parameter.

    Returns
    -------
    ndarray
        Jacobian with shape (npoints, nparams).
    """
    x = data['x']
    npar = len(params)
    jacobian = np.empty((len(x), npar), dtype=np.float64)

    for k in range(npar):
        delta = gradient_difference[k]
        aux_params = np.array(params, dtype=np.float64)
        aux_params[k] += delta
        forward = evaluate_model(parameterized_function, aux_params, x)

        if central_difference:
            aux_params[k] = params[k] - delta
            backward = evaluate_model(parameterized_function, aux_params, x)
            jacobian[:, k] = (backward - forward) / (2 * delta)
        else:
            jacobian[:, k] = (evaluated_data - forward) / delta

    return jacobian


def step(data, params, damping, gradient_difference, parameterized_function,
         central_difference, weight_square):
    """
    Compute one damped Gauss-Newton perturbation.

    Solves ``(J^T W J + damping * I) delta = J^T W r`` with ``W = diag(weight_square)``
    and ``r = y - f(params)``. The update is ``params - delta``.

    Parameters
    ----------
    data : dict
        Resolved dataset with 1D float arrays 'x' and 'y'.
    params : ndarray
        Current parameters (read-only).
    damping : float
        Levenberg-Marquardt damping factor.
    gradient_difference : ndarray
        Finite-difference step per parameter.
    parameterized_function : callable
        Model factory.
    central_difference : bool
        Use central instead of forward differences.
    weight_square : ndarray
        Squared weights, one per data point.

    Returns
    -------
    StepResult
        ``perturbations`` and ``jacobian_weight_residual_error`` (``J^T W r``).

    Raises
    ------
    SingularSystemError
        If the damped normal matrix cannot be solved reliably.
    """
    evaluated_data = evaluate_model(parameterized_function, params, data['x'])
    jacobian = gradient_function(data, evaluated_data, params, gradient_difference,
                                 parameterized_function, central_difference)
    residual_error = data['y'] - evaluated_data

    weighted_jacobian_t = jacobian.T * weight_square
    normal_matrix = weighted_jacobian_t @ jacobian + damping * np.eye(len(params))
    jacobian_weight_residual_error = weighted_jacobian_t @ residual_error

    if not (np.all(np.isfinite(normal_matrix))
            and np.all(np.isfinite(jacobian_weight_residual_error))):
        raise SingularSystemError("Normal equations contain non-finite values; "
                                  "check the model and gradient_difference")
    if not np.linalg.cond(normal_matrix) <= MAX_CONDITION:
        raise SingularSystemError("Normal equations are too ill-conditioned to solve")

    try:
        perturbations = np.linalg.solve(normal_matrix, jacobian_weight_residual_error)
    except np.linalg.LinAlgError as exc:
        raise SingularSystemError(f"Normal equations are singular: {exc}") from exc

    if not np.all(np.isfinite(perturbations)):
        raise SingularSystemError("Solving the normal equations produced non-finite values")

    return StepResult(perturbations, jacobian_weight_residual_error)


__all__ = ['step', 'gradient_function', 'StepResult']
