"""
Tests for the least-squares reference fit.
"""

import itertools

import numpy as np
import pytest

from mpc_drive.errors import DegenerateFit
from mpc_drive.polynomial import ReferencePolynomial, fit_polynomial


@pytest.mark.parametrize(
    "a, b, c, d",
    [
        (0.0, 0.0, 0.0, 0.0),
        (0.001, -0.02, 0.3, 1.5),
        (-0.0005, 0.01, -0.1, -2.0),
        (0.0, 0.05, 0.0, 0.0),
    ],
)
def test_recovers_exact_cubic(a, b, c, d):
    """Noise-free samples of a cubic give back its coefficients."""
    x = np.linspace(-5.0, 60.0, 8)
    y = a * x**3 + b * x**2 + c * x + d

    poly = fit_polynomial(x, y)

    # Coefficients are stored in ascending powers
    np.testing.assert_allclose(poly.coefficients, [d, c, b, a], rtol=1e-6, atol=1e-6)


def test_least_squares_beats_brute_force_grid():
    """With noise, no nearby degree-3 polynomial has a smaller residual."""
    rng = np.random.default_rng(7)
    x = np.linspace(0.0, 4.0, 7)
    y = 0.2 * x**3 - 0.5 * x**2 + x + 0.3 + rng.uniform(-0.05, 0.05, size=x.size)

    fitted = fit_polynomial(x, y)

    def rss(coefficients):
        return float(np.sum((np.polynomial.polynomial.polyval(x, coefficients) - y) ** 2))

    best = rss(fitted.coefficients)
    offsets = np.linspace(-0.02, 0.02, 5)
    for delta in itertools.product(offsets, repeat=4):
        assert best <= rss(fitted.coefficients + np.array(delta)) + 1e-12


def test_evaluate_and_derivative():
    poly = ReferencePolynomial(np.array([1.0, 2.0, 0.0, 0.5]))

    assert poly.degree == 3
    assert poly.evaluate(2.0) == pytest.approx(1.0 + 4.0 + 4.0)
    assert poly.derivative(2.0) == pytest.approx(2.0 + 1.5 * 4.0)
    np.testing.assert_allclose(poly.sample([0.0, 1.0]), [1.0, 3.5])


def test_coefficients_are_read_only():
    poly = fit_polynomial([0.0, 1.0, 2.0, 3.0], [0.0, 1.0, 4.0, 9.0])
    with pytest.raises(ValueError):
        poly.coefficients[0] = 5.0


def test_vertical_line_is_degenerate():
    """All waypoints at the same x cannot define y = f(x)."""
    with pytest.raises(DegenerateFit):
        fit_polynomial([5.0, 5.0, 5.0, 5.0, 5.0], [0.0, 1.0, 2.0, 3.0, 4.0])


def test_too_few_distinct_samples_is_degenerate():
    with pytest.raises(DegenerateFit):
        fit_polynomial([0.0, 1.0, 1.0, 2.0], [0.0, 1.0, 1.1, 2.0])


def test_non_finite_samples_are_degenerate():
    with pytest.raises(DegenerateFit):
        fit_polynomial([0.0, 1.0, 2.0, 3.0], [0.0, np.nan, 1.0, 2.0])


def test_lower_degree_fit():
    poly = fit_polynomial([0.0, 1.0, 2.0], [1.0, 3.0, 5.0], degree=1)
    np.testing.assert_allclose(poly.coefficients, [1.0, 2.0], atol=1e-12)


def test_heading_is_tangent_angle():
    poly = ReferencePolynomial([0.0, 1.0, 0.0, 0.0])
    assert poly.heading(3.0) == pytest.approx(np.pi / 4)
