"""
Position estimation module using lateration.

Two solvers are provided: a closed-form linear solver (homogeneous or
inhomogeneous) and an iterative weighted non-linear solver refining a
position with Levenberg-Marquardt.
"""

import logging
from typing import Optional, Sequence

import numpy as np
from scipy.optimize import least_squares

from .exceptions import NotReadyError, NumericalError, PositionEstimationError
from .utils import as_point, min_required_sources

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-12
DEFAULT_MAX_EVALUATIONS = 1000
MIN_STANDARD_DEVIATION = 1e-12


class LaterationSolver:
    """Shared data handling of the lateration solvers."""

    def __init__(self, positions: Optional[np.ndarray] = None,
                 distances: Optional[Sequence[float]] = None,
                 distance_standard_deviations: Optional[Sequence[float]] = None):
        self.positions = None
        self.distances = None
        self.distance_standard_deviations = None
        self.estimated_position: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None
        if positions is not None:
            self.set_data(positions, distances, distance_standard_deviations)

    def set_data(self, positions, distances, distance_standard_deviations=None) -> None:
        """
        Set the samples to solve for.

        Args:
            positions: N x D array of source positions (D = 2 or 3)
            distances: N measured distances
            distance_standard_deviations: Optional N distance standard deviations
        """
        positions = np.asarray(positions, dtype=float)
        distances = np.asarray(distances, dtype=float).reshape(-1)
        if positions.ndim != 2 or positions.shape[1] not in (2, 3):
            raise ValueError("Positions must be an N x 2 or N x 3 array")
        if len(distances) != len(positions):
            raise ValueError("Number of distances must match number of positions")
        if np.any(distances < 0.0):
            raise ValueError("Distances must be zero or positive")

        if distance_standard_deviations is not None:
            distance_standard_deviations = np.asarray(distance_standard_deviations, dtype=float).reshape(-1)
            if len(distance_standard_deviations) != len(positions):
                raise ValueError("Number of standard deviations must match number of positions")
            if np.any(distance_standard_deviations < 0.0):
                raise ValueError("Distance standard deviations must be zero or positive")

        self.positions = positions
        self.distances = distances
        self.distance_standard_deviations = distance_standard_deviations
        self.estimated_position = None
        self.covariance = None

    @property
    def dimensions(self) -> Optional[int]:
        return None if self.positions is None else self.positions.shape[1]

    @property
    def min_required_positions(self) -> Optional[int]:
        return None if self.positions is None else min_required_sources(self.dimensions)

    @property
    def is_ready(self) -> bool:
        return self.positions is not None and len(self.positions) >= self.min_required_positions

    def _check_ready(self) -> None:
        if not self.is_ready:
            raise NotReadyError("Not enough positions and distances to solve lateration")


class LinearLaterationSolver(LaterationSolver):
    """
    Closed-form lateration.

    Subtracting the circle (or sphere) equation of the first source from the
    others removes the quadratic term and leaves a linear system
    2 (s_i - s_0) . p = |s_i|^2 - |s_0|^2 - d_i^2 + d_0^2. The inhomogeneous
    variant solves it by least squares. The homogeneous variant treats the
    right hand side as an extra unknown scale and takes the null vector of the
    augmented matrix from its SVD.
    """

    def __init__(self, positions=None, distances=None, distance_standard_deviations=None,
                 homogeneous: bool = False):
        super().__init__(positions, distances, distance_standard_deviations)
        self.homogeneous = homogeneous

    def _system(self):
        reference = self.positions[0]
        a = 2.0 * (self.positions[1:] - reference)
        b = (np.sum(self.positions[1:] ** 2, axis=1) - np.dot(reference, reference)
             - self.distances[1:] ** 2 + self.distances[0] ** 2)
        return a, b

    def solve(self) -> np.ndarray:
        """
        Estimate the position.

        Returns:
            Estimated position

        Raises:
            NotReadyError: If there are not enough samples
            PositionEstimationError: If the source geometry is degenerate
        """
        self._check_ready()
        self.estimated_position = None
        self.covariance = None

        a, b = self._system()
        dimensions = self.dimensions
        if np.linalg.matrix_rank(a) < dimensions:
            raise PositionEstimationError("Degenerate source geometry (colinear or coplanar sources)")

        if self.homogeneous:
            m = np.hstack([a, -b[:, np.newaxis]])
            _, _, vt = np.linalg.svd(m, full_matrices=True)
            v = vt[-1]
            scale = v[dimensions]
            if abs(scale) <= np.finfo(float).eps * np.max(np.abs(v)):
                raise PositionEstimationError("Homogeneous solution lies at infinity")
            position = v[:dimensions] / scale
        else:
            position, _, _, _ = np.linalg.lstsq(a, b, rcond=None)

        if not np.all(np.isfinite(position)):
            raise PositionEstimationError("Linear lateration produced a non-finite position")

        self.estimated_position = position
        if self.distance_standard_deviations is not None:
            self.covariance = self._propagate_covariance(a)
        return position

    def _propagate_covariance(self, a: np.ndarray) -> np.ndarray:
        # b depends on every distance: db_i/dd_i = -2 d_i, db_i/dd_0 = 2 d_0
        n = len(self.distances)
        jacobian = np.zeros((n - 1, n))
        jacobian[:, 0] = 2.0 * self.distances[0]
        jacobian[np.arange(n - 1), np.arange(1, n)] = -2.0 * self.distances[1:]

        pseudo_inverse = np.linalg.pinv(a)
        sensitivity = pseudo_inverse @ jacobian
        variances = self.distance_standard_deviations ** 2
        return sensitivity @ np.diag(variances) @ sensitivity.T


class NonLinearLaterationSolver(LaterationSolver):
    """
    Weighted non-linear lateration.

    Minimizes sum(((|p - s_i| - d_i) / sigma_i)^2) with Levenberg-Marquardt,
    starting from an initial position. The covariance of the estimate is the
    inverse of the approximate Fisher information J^T J of the weighted
    residuals at convergence.
    """

    def __init__(self, positions=None, distances=None, distance_standard_deviations=None,
                 initial_position: Optional[Sequence[float]] = None,
                 tolerance: float = DEFAULT_TOLERANCE,
                 max_evaluations: int = DEFAULT_MAX_EVALUATIONS):
        super().__init__(positions, distances, distance_standard_deviations)
        self.initial_position = initial_position
        self.tolerance = tolerance
        self.max_evaluations = max_evaluations
        self.chi_sq: Optional[float] = None

    def _weights(self) -> np.ndarray:
        if self.distance_standard_deviations is None:
            return np.ones(len(self.distances))
        return 1.0 / np.maximum(self.distance_standard_deviations, MIN_STANDARD_DEVIATION)

    def _residuals(self, point: np.ndarray, weights: np.ndarray) -> np.ndarray:
        estimated_distances = np.sqrt(np.sum((self.positions - point) ** 2, axis=1))
        return (estimated_distances - self.distances) * weights

    def _jacobian(self, point: np.ndarray, weights: np.ndarray) -> np.ndarray:
        diff = point - self.positions
        norms = np.maximum(np.sqrt(np.sum(diff ** 2, axis=1)), MIN_STANDARD_DEVIATION)
        return diff * (weights / norms)[:, np.newaxis]

    def _initial_guess(self) -> np.ndarray:
        if self.initial_position is not None:
            return as_point(self.initial_position, self.dimensions)
        try:
            return LinearLaterationSolver(self.positions, self.distances).solve()
        except PositionEstimationError:
            logger.debug("linear initial guess failed, starting from sources centroid")
            return np.mean(self.positions, axis=0)

    def solve(self) -> np.ndarray:
        """
        Estimate the position.

        The estimated position is stored before the covariance is computed, so
        it remains available if only the covariance fails.

        Returns:
            Estimated position

        Raises:
            NotReadyError: If there are not enough samples
            PositionEstimationError: If the optimization does not converge
            NumericalError: If the covariance cannot be computed
        """
        self._check_ready()
        self.estimated_position = None
        self.covariance = None
        self.chi_sq = None

        weights = self._weights()
        result = least_squares(
            self._residuals,
            self._initial_guess(),
            jac=self._jacobian,
            args=(weights,),
            method="lm",
            xtol=self.tolerance,
            ftol=self.tolerance,
            gtol=self.tolerance,
            max_nfev=self.max_evaluations,
        )

        if result.status <= 0 or not np.all(np.isfinite(result.x)):
            raise PositionEstimationError(f"Non-linear lateration did not converge: {result.message}")

        self.estimated_position = result.x
        self.chi_sq = float(2.0 * result.cost)

        information = result.jac.T @ result.jac
        if np.linalg.cond(information) > 1.0 / np.finfo(float).eps:
            raise NumericalError("Singular information matrix")
        try:
            covariance = np.linalg.inv(information)
        except np.linalg.LinAlgError as e:
            raise NumericalError("Singular information matrix") from e
        if not np.all(np.isfinite(covariance)) or np.any(np.diag(covariance) < 0.0):
            raise NumericalError("Covariance is not positive definite")

        self.covariance = covariance
        return result.x
