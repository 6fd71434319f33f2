"""Test comparing levenberg_marquardt with scipy.optimize.curve_fit.

Verifies that the fitter lands on the same weighted least-squares optimum
as scipy's curve_fit for Gaussian fitting.
"""
import numpy as np
import pytest
from scipy.optimize import curve_fit

from lmtools import levenberg_marquardt

# Tolerance for parameter comparison
PARAM_RTOL = 1e-3
PARAM_ATOL = 1e-3


def gaussian(x, i0, mu, sigma):
    """Gaussian function: i0 * exp(-((x - mu)^2) / (2 * sigma^2))"""
    return i0 * np.exp(-((x - mu) ** 2) / (2 * sigma**2))


def parameterized_gaussian(p):
    return lambda x: gaussian(x, p[0], p[1], p[2])


def fit_with_scipy(x, y, error, p0, bounds):
    """Fit using scipy.optimize.curve_fit."""
    scipy_bounds = ([b[0] for b in bounds], [b[1] for b in bounds])

    popt, pcov = curve_fit(
        gaussian, x, y, p0=p0, bounds=scipy_bounds,
        sigma=error, absolute_sigma=True
    )
    residuals = y - gaussian(x, *popt)
    chisq = np.sum((residuals / error) ** 2)

    return {
        'params': popt,
        'chisq': chisq
    }


def fit_with_levmar(x, y, error, p0, bounds):
    """Fit using levenberg_marquardt with weights 1/error."""
    result = levenberg_marquardt(
        {'x': x, 'y': y}, parameterized_gaussian,
        parinfo=[{'value': p0[i], 'limits': list(bounds[i])} for i in range(len(p0))],
        weights=1.0 / error,
        gradient_difference=1e-6,
        central_difference=True,
        error_tolerance=1e-9,
        max_iterations=500,
    )

    return {
        'params': result.parameter_values,
        'chisq': result.parameter_error,
        'result': result,
    }


@pytest.mark.parametrize("seed", [42, 123, 456])
def test_levmar_vs_curvefit_single(seed):
    """Test that both fitters reach the same optimum on noisy Gaussians."""
    rng = np.random.default_rng(seed)

    x = np.linspace(-5, 5, 50)
    true_params = [2.5, 1.0, 0.8]
    y = gaussian(x, *true_params) + rng.normal(0, 0.1, len(x))
    error = np.ones_like(y) * 0.1

    p0 = [2.0, 0.8, 1.0]
    bounds = [(0.0, 10.0), (-5.0, 5.0), (0.1, 5.0)]

    scipy_result = fit_with_scipy(x, y, error, p0, bounds)
    levmar_result = fit_with_levmar(x, y, error, p0, bounds)

    np.testing.assert_allclose(
        levmar_result['params'], scipy_result['params'],
        rtol=PARAM_RTOL, atol=PARAM_ATOL,
        err_msg=f"Parameters differ: levmar={levmar_result['params']}, scipy={scipy_result['params']}"
    )
    np.testing.assert_allclose(
        levmar_result['chisq'], scipy_result['chisq'],
        rtol=PARAM_RTOL, atol=max(PARAM_ATOL, 1e-6),
        err_msg=f"Chi-square differs: levmar={levmar_result['chisq']}, scipy={scipy_result['chisq']}"
    )


def test_levmar_vs_curvefit_wellconditioned():
    """Test on a well-conditioned case with low noise - results should be identical."""
    x = np.linspace(-3, 3, 21)
    true_params = [100.0, 0.0, 1.0]

    rng = np.random.default_rng(42)
    y = gaussian(x, *true_params) + rng.normal(0, 1.0, len(x))
    error = np.ones_like(y)

    p0 = [95.0, 0.0, 1.0]
    bounds = [(0.0, 200.0), (-5.0, 5.0), (0.1, 5.0)]

    scipy_result = fit_with_scipy(x, y, error, p0, bounds)
    levmar_result = fit_with_levmar(x, y, error, p0, bounds)

    np.testing.assert_allclose(
        levmar_result['params'], scipy_result['params'],
        rtol=PARAM_RTOL, atol=PARAM_ATOL,
        err_msg=f"Parameters differ: scipy={scipy_result['params']}, levmar={levmar_result['params']}"
    )
    np.testing.assert_allclose(
        levmar_result['chisq'], scipy_result['chisq'],
        rtol=PARAM_RTOL, atol=max(PARAM_ATOL, 1e-6),
    )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
