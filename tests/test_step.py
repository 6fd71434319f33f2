"""Tests for the finite-difference Jacobian and the damped step."""
import numpy as np
import pytest

from lmtools.levmar import step, gradient_function, evaluate_model, SingularSystemError


def exp_decay(p):
    return lambda t: p[0] * np.exp(-p[1] * t)


def exp_decay_jacobian(t, p):
    """Derivative of the residual y - f with respect to (p0, p1)."""
    e = np.exp(-p[1] * t)
    return np.stack((-e, p[0] * t * e), axis=-1)


def line(p):
    return lambda x: p[0] * x + p[1]


@pytest.fixture
def decay_data():
    t = np.linspace(0.0, 4.0, 25)
    return {'x': t, 'y': 3.0 * np.exp(-0.7 * t)}


def test_gradient_function_shape(decay_data):
    p = np.array([2.0, 0.5])
    evaluated = evaluate_model(exp_decay, p, decay_data['x'])
    jac = gradient_function(decay_data, evaluated, p, np.array([1e-4, 1e-4]), exp_decay)
    assert jac.shape == (25, 2)


def test_central_difference_more_accurate(decay_data):
    p = np.array([2.0, 0.5])
    h = np.array([1e-2, 1e-2])
    evaluated = evaluate_model(exp_decay, p, decay_data['x'])
    exact = exp_decay_jacobian(decay_data['x'], p)

    forward = gradient_function(decay_data, evaluated, p, h, exp_decay, False)
    central = gradient_function(decay_data, evaluated, p, h, exp_decay, True)

    forward_err = np.abs(forward - exact).max()
    central_err = np.abs(central - exact).max()
    assert central_err < forward_err
    np.testing.assert_allclose(central, exact, atol=1e-3)
    np.testing.assert_allclose(forward, exact, atol=5e-2)


def test_gradient_function_does_not_mutate_params(decay_data):
    p = np.array([2.0, 0.5])
    evaluated = evaluate_model(exp_decay, p, decay_data['x'])
    gradient_function(decay_data, evaluated, p, np.array([0.1, 0.1]), exp_decay, True)
    np.testing.assert_array_equal(p, [2.0, 0.5])


def test_model_receives_copies(decay_data):
    seen = []

    def recording(p):
        seen.append(p)
        return exp_decay(p)

    p = np.array([2.0, 0.5])
    step(decay_data, p, 1e-2, np.array([0.1, 0.1]), recording, False, np.ones(25))

    assert len(seen) == 3
    assert all(s is not p for s in seen)
    np.testing.assert_array_equal(p, [2.0, 0.5])


def test_step_linear_model_gauss_newton():
    """With negligible damping one step on a linear model lands on the solution"""
    data = {'x': np.arange(5.0), 'y': 2.0 * np.arange(5.0) + 1.0}
    p = np.array([0.0, 0.0])

    result = step(data, p, 1e-12, np.array([0.1, 0.1]), line, False, np.ones(5))

    np.testing.assert_allclose(p - result.perturbations, [2.0, 1.0], atol=1e-8)


def test_step_returns_weighted_jacobian_residual():
    data = {'x': np.arange(5.0), 'y': 2.0 * np.arange(5.0) + 1.0}
    p = np.array([0.0, 0.0])
    weight_square = np.array([1.0, 2.0, 3.0, 4.0, 5.0])

    perturbations, jwr = step(data, p, 0.5, np.array([0.1, 0.1]), line, False, weight_square)

    # residual derivative is -x for the slope and -1 for the intercept
    jacobian = -np.stack((data['x'], np.ones(5)), axis=-1)
    residual = data['y']
    expected_jwr = jacobian.T @ (weight_square * residual)
    np.testing.assert_allclose(jwr, expected_jwr, rtol=1e-10)

    normal = jacobian.T @ (weight_square[:, None] * jacobian) + 0.5 * np.eye(2)
    np.testing.assert_allclose(perturbations, np.linalg.solve(normal, expected_jwr), rtol=1e-10)


def test_step_zero_weight_drops_point():
    x = np.arange(5.0)
    y = 2.0 * x + 1.0
    y_outlier = y.copy()
    y_outlier[2] = 100.0
    weight_square = np.array([1.0, 1.0, 0.0, 1.0, 1.0])
    p = np.array([0.5, 0.5])
    h = np.array([0.1, 0.1])

    with_outlier = step({'x': x, 'y': y_outlier}, p, 1e-2, h, line, False, weight_square)
    clean = step({'x': x, 'y': y}, p, 1e-2, h, line, False, weight_square)

    np.testing.assert_allclose(with_outlier.perturbations, clean.perturbations)


def test_step_singular_matrix():
    """All-zero weights and no damping leave nothing to solve"""
    data = {'x': np.arange(5.0), 'y': np.arange(5.0)}
    with pytest.raises(SingularSystemError):
        step(data, np.array([0.0, 0.0]), 0.0, np.array([0.1, 0.1]), line, False, np.zeros(5))


def test_step_non_finite_model():
    data = {'x': np.arange(5.0), 'y': np.arange(5.0)}

    def blows_up(p):
        return lambda x: x / (p[0] - p[0])

    with pytest.raises(SingularSystemError, match="non-finite"):
        step(data, np.array([1.0, 0.0]), 1e-2, np.array([0.1, 0.1]), blows_up, False, np.ones(5))
