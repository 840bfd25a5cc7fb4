"""
Robust lateration.

A single sampling loop shared by RANSAC, LMedS, MSAC, PROSAC and PROMedS. Each
iteration fits a preliminary position on a small subset of samples, scores
all samples against it and keeps the best model. The methods differ only in
how subsets are drawn (uniform or progressive by quality) and how a model is
scored (inlier count, truncated residuals or median residual).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .exceptions import (
    NotReadyError,
    NumericalError,
    PositionEstimationError,
    RobustEstimatorError,
)
from .trilateration import LinearLaterationSolver, NonLinearLaterationSolver
from .utils import as_point, min_required_sources, required_iterations

logger = logging.getLogger(__name__)


class RobustEstimatorMethod(Enum):
    RANSAC = "ransac"
    LMEDS = "lmeds"
    MSAC = "msac"
    PROSAC = "prosac"
    PROMEDS = "promeds"

    @property
    def uses_quality_scores(self) -> bool:
        return self in (RobustEstimatorMethod.PROSAC, RobustEstimatorMethod.PROMEDS)

    @property
    def median_based(self) -> bool:
        return self in (RobustEstimatorMethod.LMEDS, RobustEstimatorMethod.PROMEDS)


DEFAULT_ROBUST_METHOD = RobustEstimatorMethod.PROMEDS

# inlier threshold for RANSAC, MSAC and PROSAC, stop threshold for LMedS and PROMedS
DEFAULT_THRESHOLDS = {
    RobustEstimatorMethod.RANSAC: 1e-2,
    RobustEstimatorMethod.MSAC: 1e-2,
    RobustEstimatorMethod.PROSAC: 1e-2,
    RobustEstimatorMethod.LMEDS: 1e-5,
    RobustEstimatorMethod.PROMEDS: 1e-5,
}

DEFAULT_CONFIDENCE = 0.99
DEFAULT_MAX_ITERATIONS = 5000
DEFAULT_PROGRESS_DELTA = 0.05
DEFAULT_REFINE_RESULT = True
DEFAULT_KEEP_COVARIANCE = True
DEFAULT_USE_LINEAR_SOLVER = True
DEFAULT_USE_HOMOGENEOUS_LINEAR_SOLVER = False
DEFAULT_REFINE_PRELIMINARY_SOLUTIONS = True

# LMedS inliers lie within INLIER_FACTOR robust standard deviations
INLIER_FACTOR = 2.5
MEDIAN_TO_STD = 1.4826
# the small-sample correction 1 + 5 / (n - m) is capped at 2
MIN_CORRECTION_DOF = 5
# LMedS breaks down beyond half of the samples being outliers
MEDIAN_BREAKDOWN_RATIO = 0.5


def check_threshold(threshold: float) -> float:
    if threshold <= 0.0:
        raise ValueError("Threshold must be greater than zero")
    return threshold


def check_confidence(confidence: float) -> float:
    if not 0.0 < confidence < 1.0:
        raise ValueError("Confidence must be between 0 and 1 (exclusive)")
    return confidence


def check_max_iterations(max_iterations: int) -> int:
    if max_iterations < 1:
        raise ValueError("Maximum number of iterations must be at least 1")
    return max_iterations


def check_progress_delta(progress_delta: float) -> float:
    if not 0.0 <= progress_delta <= 1.0:
        raise ValueError("Progress delta must be between 0 and 1")
    return progress_delta


@dataclass
class InliersData:
    """
    Inliers of the best model.

    Attributes:
        inliers: Boolean mask, True for samples consistent with the model
        residuals: Absolute distance residual of every sample
        num_inliers: Number of inliers
        threshold: Residual threshold used to classify inliers
    """

    inliers: np.ndarray
    residuals: np.ndarray
    num_inliers: int
    threshold: float


@dataclass
class RobustResult:
    position: np.ndarray
    covariance: Optional[np.ndarray]
    inliers_data: InliersData
    iterations: int


class RobustHooks:
    """Callbacks fired from the sampling loop. Override the ones you need."""

    def on_next_iteration(self, iteration: int) -> None:
        pass

    def on_progress_change(self, progress: float) -> None:
        pass


class UniformSampler:
    """Draws subsets uniformly without replacement."""

    def __init__(self, num_samples: int, subset_size: int, rng: np.random.Generator):
        self.num_samples = num_samples
        self.subset_size = subset_size
        self.rng = rng

    def sample(self) -> np.ndarray:
        return self.rng.choice(self.num_samples, self.subset_size, replace=False)


class ProsacSampler:
    """
    Progressive sampling (Chum and Matas, 2005).

    Samples are ranked by descending quality. Subsets are drawn from the top n
    ranked samples, and n grows following the PROSAC growth function so that the
    sampler degrades into uniform sampling once all samples are in play.
    """

    def __init__(self, quality_scores: Sequence[float], subset_size: int, max_iterations: int,
                 rng: np.random.Generator):
        self.order = np.argsort(-np.asarray(quality_scores, dtype=float), kind="stable")
        self.num_samples = len(self.order)
        self.subset_size = subset_size
        self.rng = rng

        tn = float(max_iterations)
        for i in range(subset_size):
            tn *= (subset_size - i) / (self.num_samples - i)
        self.tn = tn
        self.tn_prime = 1
        self.n = subset_size
        self.t = 0

    def sample(self) -> np.ndarray:
        m = self.subset_size
        self.t += 1
        if self.t > self.tn_prime and self.n < self.num_samples:
            tn_next = self.tn * (self.n + 1) / (self.n + 1 - m)
            self.n += 1
            self.tn_prime += int(math.ceil(tn_next - self.tn))
            self.tn = tn_next

        if self.tn_prime < self.t:
            chosen = self.rng.choice(self.n, m, replace=False)
        else:
            chosen = np.append(self.rng.choice(self.n - 1, m - 1, replace=False), self.n - 1)
        return self.order[chosen]


class RobustLaterationSolver:
    """
    Robust lateration with outlier rejection.

    The threshold is the inlier threshold for RANSAC, MSAC and PROSAC, and the
    stop threshold (median residual below which sampling stops) for LMedS and
    PROMedS.
    """

    def __init__(self,
                 method: RobustEstimatorMethod = DEFAULT_ROBUST_METHOD,
                 threshold: Optional[float] = None,
                 confidence: float = DEFAULT_CONFIDENCE,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 progress_delta: float = DEFAULT_PROGRESS_DELTA,
                 result_refined: bool = DEFAULT_REFINE_RESULT,
                 covariance_kept: bool = DEFAULT_KEEP_COVARIANCE,
                 linear_solver_used: bool = DEFAULT_USE_LINEAR_SOLVER,
                 homogeneous_linear_solver_used: bool = DEFAULT_USE_HOMOGENEOUS_LINEAR_SOLVER,
                 preliminary_solution_refined: bool = DEFAULT_REFINE_PRELIMINARY_SOLUTIONS,
                 preliminary_subset_size: Optional[int] = None,
                 initial_position: Optional[Sequence[float]] = None,
                 random_state=None):
        self.method = RobustEstimatorMethod(method)
        self.threshold = check_threshold(threshold if threshold is not None else DEFAULT_THRESHOLDS[self.method])
        self.confidence = check_confidence(confidence)
        self.max_iterations = check_max_iterations(max_iterations)
        self.progress_delta = check_progress_delta(progress_delta)
        self.result_refined = result_refined
        self.covariance_kept = covariance_kept
        self.linear_solver_used = linear_solver_used
        self.homogeneous_linear_solver_used = homogeneous_linear_solver_used
        self.preliminary_solution_refined = preliminary_solution_refined
        self.preliminary_subset_size = preliminary_subset_size
        self.initial_position = initial_position
        self.rng = np.random.default_rng(random_state)

    def _sampler(self, num_samples: int, subset_size: int, quality_scores):
        if self.method.uses_quality_scores:
            return ProsacSampler(quality_scores, subset_size, self.max_iterations, self.rng)
        return UniformSampler(num_samples, subset_size, self.rng)

    def _preliminary_solution(self, positions, distances, stds) -> np.ndarray:
        position = None
        if self.linear_solver_used:
            position = LinearLaterationSolver(
                positions, distances, homogeneous=self.homogeneous_linear_solver_used).solve()

        if self.preliminary_solution_refined or position is None:
            if position is not None:
                initial = position
            elif self.initial_position is not None:
                initial = as_point(self.initial_position, positions.shape[1])
            else:
                initial = np.mean(positions, axis=0)

            solver = NonLinearLaterationSolver(positions, distances, stds, initial_position=initial)
            try:
                position = solver.solve()
            except NumericalError:
                position = solver.estimated_position
            except PositionEstimationError:
                if position is None:
                    raise
                logger.debug("preliminary refinement failed, keeping linear solution")
        return position

    def _score(self, residuals: np.ndarray, subset_size: int):
        """Returns (score, inliers mask, inlier threshold); lower scores are better."""
        if self.method.median_based:
            median = float(np.median(residuals))
            dof = max(len(residuals) - subset_size, MIN_CORRECTION_DOF)
            robust_std = MEDIAN_TO_STD * (1.0 + 5.0 / dof) * median
            inlier_threshold = max(INLIER_FACTOR * robust_std, self.threshold)
            return median, residuals <= inlier_threshold, inlier_threshold

        inliers = residuals <= self.threshold
        if self.method is RobustEstimatorMethod.MSAC:
            score = float(np.sum(np.minimum(residuals ** 2, self.threshold ** 2)))
        else:
            score = -float(np.count_nonzero(inliers))
        return score, inliers, self.threshold

    def solve(self, positions, distances, distance_standard_deviations=None,
              quality_scores=None, hooks: Optional[RobustHooks] = None) -> RobustResult:
        """
        Robustly estimate a position.

        Args:
            positions: N x D array of source positions
            distances: N measured distances
            distance_standard_deviations: Optional N distance standard deviations,
                used to weight non-linear refinements
            quality_scores: N quality scores, required by PROSAC and PROMedS
            hooks: Optional iteration and progress callbacks

        Returns:
            Best position with its covariance (if refined and kept) and inliers

        Raises:
            NotReadyError: If there are fewer samples than the subset size
            RobustEstimatorError: If no valid model is found
        """
        positions = np.asarray(positions, dtype=float)
        distances = np.asarray(distances, dtype=float)
        num_samples = len(distances)
        dimensions = positions.shape[1]
        stds = (np.asarray(distance_standard_deviations, dtype=float)
                if distance_standard_deviations is not None else np.ones(num_samples))

        subset_size = self.preliminary_subset_size or min_required_sources(dimensions)
        if subset_size < min_required_sources(dimensions):
            raise ValueError("Preliminary subset size is smaller than the minimum number of sources")
        if num_samples < subset_size:
            raise NotReadyError(f"At least {subset_size} samples are required, got {num_samples}")
        if self.method.uses_quality_scores:
            if quality_scores is None or len(quality_scores) != num_samples:
                raise NotReadyError("Quality scores are required for every sample")

        hooks = hooks or RobustHooks()
        sampler = self._sampler(num_samples, subset_size, quality_scores)

        best_score = None
        best_position = None
        best_inliers = None
        bound = self.max_iterations
        iteration = 0
        last_progress = 0.0

        while iteration < bound:
            indices = sampler.sample()
            hooks.on_next_iteration(iteration)
            iteration += 1

            try:
                candidate = self._preliminary_solution(positions[indices], distances[indices], stds[indices])
            except PositionEstimationError as e:
                logger.debug("iteration %d: degenerate subset (%s)", iteration, e)
                candidate = None

            if candidate is not None:
                residuals = np.abs(np.linalg.norm(positions - candidate, axis=1) - distances)
                score, inliers, inlier_threshold = self._score(residuals, subset_size)
                num_inliers = int(np.count_nonzero(inliers))
                if num_inliers > 0 and (best_score is None or score < best_score):
                    best_score = score
                    best_position = candidate
                    best_inliers = InliersData(inliers, residuals, num_inliers, inlier_threshold)
                    inlier_ratio = num_inliers / num_samples
                    if self.method.median_based:
                        inlier_ratio = min(inlier_ratio, MEDIAN_BREAKDOWN_RATIO)
                    bound = required_iterations(self.confidence, inlier_ratio, subset_size,
                                                self.max_iterations)
                    logger.debug("iteration %d: new best model with %d inliers, %d iterations needed",
                                 iteration, num_inliers, bound)

            progress = min(1.0, iteration / bound)
            if progress - last_progress >= self.progress_delta:
                last_progress = progress
                hooks.on_progress_change(progress)

            if self.method.median_based and best_score is not None and best_score <= self.threshold:
                break

        if best_position is None:
            raise RobustEstimatorError(f"No valid model found after {iteration} iterations")

        position, covariance = self._refine(positions, distances, stds, best_position, best_inliers,
                                            subset_size)
        logger.info("%s estimate after %d iterations: %d/%d inliers",
                    self.method.name, iteration, best_inliers.num_inliers, num_samples)
        return RobustResult(position, covariance, best_inliers, iteration)

    def _refine(self, positions, distances, stds, position, inliers_data, subset_size):
        if not self.result_refined:
            return position, None
        if inliers_data.num_inliers < subset_size:
            logger.warning("only %d inliers, result not refined", inliers_data.num_inliers)
            return position, None

        mask = inliers_data.inliers
        solver = NonLinearLaterationSolver(positions[mask], distances[mask], stds[mask],
                                           initial_position=position)
        try:
            refined = solver.solve()
        except NumericalError as e:
            logger.warning("covariance of refined position not available: %s", e)
            return solver.estimated_position, None
        except PositionEstimationError as e:
            logger.warning("refinement failed, keeping preliminary solution: %s", e)
            return position, None

        return refined, solver.covariance if self.covariance_kept else None
