"""Reference curve fitting for the local-frame waypoints.

The reference trajectory is a low-degree polynomial y = f(x) fitted by least
squares in the vehicle frame. The fit uses a Householder QR factorisation of
the Vandermonde matrix rather than the normal equations, which square the
condition number.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
import numpy.typing as npt

from .errors import DegenerateFit

ArrayLike = Union[float, Sequence[float], npt.NDArray[np.float64]]

RANK_TOLERANCE = 1e-10
"""Relative size below which a diagonal entry of R counts as zero."""

DISTINCT_TOLERANCE = 1e-9
"""Relative spacing below which two x samples count as the same abscissa."""


@dataclass(frozen=True)
class ReferencePolynomial:
    """Polynomial f(x) = c0 + c1 x + c2 x^2 + ... in ascending powers.

    The coefficient array is read-only once the fit is done.
    """

    coefficients: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        coefficients = np.array(self.coefficients, dtype=np.float64).ravel()
        coefficients.setflags(write=False)
        object.__setattr__(self, "coefficients", coefficients)

    @property
    def degree(self) -> int:
        return self.coefficients.size - 1

    def evaluate(self, x: ArrayLike) -> Union[float, npt.NDArray[np.float64]]:
        """Evaluate f(x)."""
        result = np.polynomial.polynomial.polyval(x, self.coefficients)
        return float(result) if np.ndim(result) == 0 else result

    def derivative(self, x: ArrayLike) -> Union[float, npt.NDArray[np.float64]]:
        """Evaluate f'(x)."""
        result = np.polynomial.polynomial.polyval(
            x, np.polynomial.polynomial.polyder(self.coefficients)
        )
        return float(result) if np.ndim(result) == 0 else result

    def heading(self, x: float) -> float:
        """Tangent direction of the reference at x (radians)."""
        return math.atan(self.derivative(x))

    def sample(self, xs: ArrayLike) -> npt.NDArray[np.float64]:
        """Evaluate the curve at several abscissae, for display."""
        return np.asarray(np.polynomial.polynomial.polyval(np.asarray(xs, dtype=np.float64), self.coefficients))


def _count_distinct(x: npt.NDArray[np.float64]) -> int:
    ordered = np.sort(x)
    scale = max(1.0, float(np.max(np.abs(ordered))))
    gaps = np.diff(ordered) > DISTINCT_TOLERANCE * scale
    return int(np.count_nonzero(gaps)) + 1


def fit_polynomial(
    x: Sequence[float],
    y: Sequence[float],
    degree: int = 3,
    condition_limit: float = 1e12,
) -> ReferencePolynomial:
    """Least-squares polynomial fit of y as a function of x.

    Minimises sum((f(x_i) - y_i)^2) over polynomials of the given degree by
    factorising the Vandermonde matrix A = QR and solving R c = Q^T y.

    Args:
        x: Local-frame longitudinal sample positions.
        y: Local-frame lateral sample positions.
        degree: Polynomial degree.
        condition_limit: Largest acceptable condition estimate of R.

    Returns:
        The fitted reference polynomial.

    Raises:
        DegenerateFit: If fewer than degree + 1 distinct x samples exist, or
            the factorisation is rank deficient or ill-conditioned.
        ValueError: If x and y differ in length.
    """
    xs = np.asarray(x, dtype=np.float64).ravel()
    ys = np.asarray(y, dtype=np.float64).ravel()
    if xs.shape != ys.shape:
        raise ValueError(f"Sample x/y lengths differ: {xs.size} != {ys.size}")
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        raise DegenerateFit("Samples contain non-finite values")

    distinct = _count_distinct(xs) if xs.size else 0
    if distinct < degree + 1:
        raise DegenerateFit(
            f"Degree {degree} fit needs {degree + 1} distinct x samples, got {distinct}"
        )

    vandermonde = np.polynomial.polynomial.polyvander(xs, degree)
    q, r = np.linalg.qr(vandermonde, mode="reduced")

    diagonal = np.abs(np.diag(r))
    if diagonal.min() <= RANK_TOLERANCE * diagonal.max():
        raise DegenerateFit("Vandermonde matrix is numerically rank deficient")

    condition = np.linalg.cond(r)
    if not np.isfinite(condition) or condition > condition_limit:
        raise DegenerateFit(f"Fit is ill-conditioned (condition estimate {condition:.3g})")

    coefficients = np.linalg.solve(r, q.T @ ys)
    return ReferencePolynomial(coefficients)
