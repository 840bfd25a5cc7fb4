"""
Position estimators.

Estimators bind located sources, a fingerprint and an optional listener, and
dispatch to a linear, non-linear or robust lateration solver. The number of
dimensions (2 or 3) and the accepted reading types are plain parameters.

While ``estimate()`` runs the estimator is locked: every setter and any
nested ``estimate()`` call raise ``LockedError``.
"""

import logging
from enum import Enum
from typing import Iterable, Optional, Sequence

import numpy as np

from .exceptions import LockedError, NotReadyError, PositionEstimationError
from .helper import (
    ALL_READING_TYPES,
    LaterationData,
    build_evenly_distributed_lateration_data,
    build_lateration_data,
)
from .radio import Fingerprint, RangingReading, ReadingType, RssiReading
from .robust import (
    DEFAULT_CONFIDENCE,
    DEFAULT_KEEP_COVARIANCE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_PROGRESS_DELTA,
    DEFAULT_REFINE_PRELIMINARY_SOLUTIONS,
    DEFAULT_REFINE_RESULT,
    DEFAULT_ROBUST_METHOD,
    DEFAULT_THRESHOLDS,
    DEFAULT_USE_HOMOGENEOUS_LINEAR_SOLVER,
    DEFAULT_USE_LINEAR_SOLVER,
    InliersData,
    RobustEstimatorMethod,
    RobustHooks,
    RobustLaterationSolver,
    check_confidence,
    check_max_iterations,
    check_progress_delta,
    check_threshold,
)
from .trilateration import LinearLaterationSolver, NonLinearLaterationSolver
from .utils import as_point, min_required_sources, validate_sources

logger = logging.getLogger(__name__)

FALLBACK_DISTANCE_STANDARD_DEVIATION = 1e-3
DEFAULT_EVENLY_DISTRIBUTE_READINGS = True

RANGING_READINGS = frozenset({ReadingType.RANGING})
RSSI_READINGS = frozenset({ReadingType.RSSI})
RANGING_AND_RSSI_READINGS = frozenset({ReadingType.RANGING_AND_RSSI})
MIXED_READINGS = ALL_READING_TYPES


class EstimatorState(Enum):
    IDLE = "idle"
    ESTIMATING = "estimating"


class EstimatorListener:
    """
    Receives estimation events. All callbacks run synchronously on the thread
    calling ``estimate()``, while the estimator is locked.
    """

    def on_estimate_start(self, estimator) -> None:
        pass

    def on_estimate_end(self, estimator) -> None:
        pass

    def on_estimate_next_iteration(self, estimator, iteration: int) -> None:
        pass

    def on_estimate_progress_change(self, estimator, progress: float) -> None:
        pass


class PositionEstimator:
    """Common state and lifecycle of all position estimators."""

    def __init__(self, dimensions: int = 2, sources: Optional[Sequence] = None,
                 fingerprint: Optional[Fingerprint] = None, listener: Optional[EstimatorListener] = None,
                 reading_types: Iterable[ReadingType] = MIXED_READINGS):
        min_required_sources(dimensions)
        self._dimensions = dimensions
        self._reading_types = frozenset(reading_types)
        self._state = EstimatorState.IDLE
        self._sources = None
        self._fingerprint = None
        self._listener = listener
        self._data: Optional[LaterationData] = None
        self._estimated_position: Optional[np.ndarray] = None
        self._covariance: Optional[np.ndarray] = None

        if sources is not None:
            self._check_sources(sources)
            self._sources = sources
        if fingerprint is not None:
            self._fingerprint = fingerprint

    # --- lock -----------------------------------------------------------------

    @property
    def is_locked(self) -> bool:
        return self._state is EstimatorState.ESTIMATING

    def _check_locked(self) -> None:
        if self.is_locked:
            raise LockedError("Estimator is locked while estimating")

    # --- inputs ---------------------------------------------------------------

    @property
    def number_of_dimensions(self) -> int:
        return self._dimensions

    @property
    def min_required_sources(self) -> int:
        return min_required_sources(self._dimensions)

    @property
    def reading_types(self) -> frozenset:
        return self._reading_types

    def _check_sources(self, sources) -> None:
        if not validate_sources(sources, self._dimensions):
            raise ValueError(
                f"At least {self.min_required_sources} sources with {self._dimensions}D positions are required")

    @property
    def sources(self):
        return self._sources

    @sources.setter
    def sources(self, sources) -> None:
        self._check_locked()
        self._check_sources(sources)
        self._sources = sources
        self._build_data()

    @property
    def fingerprint(self) -> Optional[Fingerprint]:
        return self._fingerprint

    @fingerprint.setter
    def fingerprint(self, fingerprint: Fingerprint) -> None:
        self._check_locked()
        if fingerprint is None:
            raise ValueError("Fingerprint is required")
        self._fingerprint = fingerprint
        self._build_data()

    @property
    def listener(self) -> Optional[EstimatorListener]:
        return self._listener

    @listener.setter
    def listener(self, listener: Optional[EstimatorListener]) -> None:
        self._check_locked()
        self._listener = listener

    # --- derived samples --------------------------------------------------------

    def _build_data(self) -> None:
        if self._sources is None or self._fingerprint is None:
            self._data = None
            return
        self._data = self._make_data()

    def _make_data(self) -> LaterationData:
        raise NotImplementedError

    @property
    def positions(self) -> Optional[np.ndarray]:
        return None if self._data is None else self._data.positions

    @property
    def distances(self) -> Optional[np.ndarray]:
        return None if self._data is None else self._data.distances

    @property
    def distance_standard_deviations(self) -> Optional[np.ndarray]:
        return None if self._data is None else self._data.distance_standard_deviations

    @property
    def sample_sources(self) -> Optional[list]:
        """Source of each position/distance sample."""
        return None if self._data is None else self._data.sources

    @property
    def is_ready(self) -> bool:
        return self._data is not None and len(self._data) >= self.min_required_sources

    # --- results ----------------------------------------------------------------

    @property
    def estimated_position(self) -> Optional[np.ndarray]:
        return self._estimated_position

    @property
    def estimated_position_coordinates(self) -> Optional[tuple]:
        if self._estimated_position is None:
            return None
        return tuple(float(v) for v in self._estimated_position)

    @property
    def covariance(self) -> Optional[np.ndarray]:
        return self._covariance

    def _notify(self, event: str, *args) -> None:
        if self._listener is not None:
            getattr(self._listener, event)(self, *args)

    def estimate(self) -> np.ndarray:
        """
        Estimate the position of the fingerprint.

        Returns:
            Estimated position

        Raises:
            LockedError: If an estimation is already running
            NotReadyError: If sources or fingerprint are missing or insufficient
            PositionEstimationError: If the position cannot be computed
        """
        self._check_locked()
        if not self.is_ready:
            raise NotReadyError("Estimator is not ready")

        self._state = EstimatorState.ESTIMATING
        try:
            self._notify("on_estimate_start")
            try:
                position, covariance = self._solve()
            finally:
                self._notify("on_estimate_end")
        finally:
            self._state = EstimatorState.IDLE

        self._estimated_position = position
        self._covariance = covariance
        logger.debug("%s estimated position %s from %d samples", type(self).__name__, position, len(self._data))
        return position

    def _solve(self):
        raise NotImplementedError


class LinearPositionEstimator(PositionEstimator):
    """
    Closed-form lateration over every usable reading.

    The covariance is the first-order propagation of the distance standard
    deviations through the linear system.
    """

    def __init__(self, dimensions: int = 2, sources=None, fingerprint=None, listener=None,
                 reading_types: Iterable[ReadingType] = MIXED_READINGS,
                 homogeneous_linear_solver_used: bool = DEFAULT_USE_HOMOGENEOUS_LINEAR_SOLVER,
                 fallback_distance_standard_deviation: float = FALLBACK_DISTANCE_STANDARD_DEVIATION):
        super().__init__(dimensions, sources, fingerprint, listener, reading_types)
        if fallback_distance_standard_deviation < 0.0:
            raise ValueError("Fallback distance standard deviation must be zero or positive")
        self._homogeneous = homogeneous_linear_solver_used
        self._fallback_std = fallback_distance_standard_deviation
        self._build_data()

    @property
    def homogeneous_linear_solver_used(self) -> bool:
        return self._homogeneous

    @homogeneous_linear_solver_used.setter
    def homogeneous_linear_solver_used(self, value: bool) -> None:
        self._check_locked()
        self._homogeneous = value

    @property
    def fallback_distance_standard_deviation(self) -> float:
        return self._fallback_std

    @fallback_distance_standard_deviation.setter
    def fallback_distance_standard_deviation(self, value: float) -> None:
        self._check_locked()
        if value < 0.0:
            raise ValueError("Fallback distance standard deviation must be zero or positive")
        self._fallback_std = value
        self._build_data()

    def _make_data(self) -> LaterationData:
        return build_lateration_data(self._sources, self._fingerprint, fallback_std=self._fallback_std,
                                     reading_types=self._reading_types)

    def _solve(self):
        solver = LinearLaterationSolver(self._data.positions, self._data.distances,
                                        self._data.distance_standard_deviations, homogeneous=self._homogeneous)
        position = solver.solve()
        return position, solver.covariance


class NonLinearPositionEstimator(PositionEstimator):
    """Weighted non-linear lateration over every usable reading."""

    def __init__(self, dimensions: int = 2, sources=None, fingerprint=None, listener=None,
                 reading_types: Iterable[ReadingType] = MIXED_READINGS,
                 initial_position: Optional[Sequence[float]] = None,
                 radio_source_position_covariance_used: bool = False,
                 fallback_distance_standard_deviation: float = FALLBACK_DISTANCE_STANDARD_DEVIATION):
        super().__init__(dimensions, sources, fingerprint, listener, reading_types)
        if fallback_distance_standard_deviation < 0.0:
            raise ValueError("Fallback distance standard deviation must be zero or positive")
        if initial_position is not None:
            as_point(initial_position, dimensions)
        self._initial_position = initial_position
        self._position_covariance_used = radio_source_position_covariance_used
        self._fallback_std = fallback_distance_standard_deviation
        self._build_data()

    @property
    def initial_position(self):
        return self._initial_position

    @initial_position.setter
    def initial_position(self, value) -> None:
        self._check_locked()
        if value is not None:
            as_point(value, self._dimensions)
        self._initial_position = value

    @property
    def radio_source_position_covariance_used(self) -> bool:
        return self._position_covariance_used

    @radio_source_position_covariance_used.setter
    def radio_source_position_covariance_used(self, value: bool) -> None:
        self._check_locked()
        self._position_covariance_used = value
        self._build_data()

    @property
    def fallback_distance_standard_deviation(self) -> float:
        return self._fallback_std

    @fallback_distance_standard_deviation.setter
    def fallback_distance_standard_deviation(self, value: float) -> None:
        self._check_locked()
        if value < 0.0:
            raise ValueError("Fallback distance standard deviation must be zero or positive")
        self._fallback_std = value
        self._build_data()

    def _make_data(self) -> LaterationData:
        return build_lateration_data(self._sources, self._fingerprint,
                                     use_position_covariance=self._position_covariance_used,
                                     fallback_std=self._fallback_std, reading_types=self._reading_types)

    def _solve(self):
        solver = NonLinearLaterationSolver(self._data.positions, self._data.distances,
                                           self._data.distance_standard_deviations,
                                           initial_position=self._initial_position)
        position = solver.solve()
        return position, solver.covariance


class _ListenerHooks(RobustHooks):
    """Forwards sampling loop events to the estimator listener."""

    def __init__(self, estimator: "RobustPositionEstimator"):
        self.estimator = estimator

    def on_next_iteration(self, iteration: int) -> None:
        self.estimator._notify("on_estimate_next_iteration", iteration)

    def on_progress_change(self, progress: float) -> None:
        self.estimator._notify("on_estimate_progress_change", progress)


class RobustPositionEstimator(NonLinearPositionEstimator):
    """
    Robust lateration discarding outlier readings.

    Quality scores are only kept by the quality-aware methods (PROSAC and
    PROMedS), for which they are also required to be ready. Other methods
    accept them and ignore them, so call sites can be uniform across methods.
    """

    def __init__(self, method: RobustEstimatorMethod = DEFAULT_ROBUST_METHOD, dimensions: int = 2,
                 sources=None, fingerprint=None, listener=None,
                 reading_types: Iterable[ReadingType] = MIXED_READINGS,
                 source_quality_scores: Optional[Sequence[float]] = None,
                 fingerprint_readings_quality_scores: Optional[Sequence[float]] = None,
                 initial_position: Optional[Sequence[float]] = None,
                 threshold: Optional[float] = None,
                 radio_source_position_covariance_used: bool = True,
                 fallback_distance_standard_deviation: float = FALLBACK_DISTANCE_STANDARD_DEVIATION,
                 random_state=None):
        self._method = RobustEstimatorMethod(method)
        self._source_quality_scores = None
        self._readings_quality_scores = None
        self._threshold = check_threshold(threshold if threshold is not None else DEFAULT_THRESHOLDS[self._method])
        self._confidence = DEFAULT_CONFIDENCE
        self._max_iterations = DEFAULT_MAX_ITERATIONS
        self._progress_delta = DEFAULT_PROGRESS_DELTA
        self._result_refined = DEFAULT_REFINE_RESULT
        self._covariance_kept = DEFAULT_KEEP_COVARIANCE
        self._linear_solver_used = DEFAULT_USE_LINEAR_SOLVER
        self._homogeneous = DEFAULT_USE_HOMOGENEOUS_LINEAR_SOLVER
        self._preliminary_refined = DEFAULT_REFINE_PRELIMINARY_SOLUTIONS
        self._evenly_distribute = DEFAULT_EVENLY_DISTRIBUTE_READINGS
        self._preliminary_subset_size = min_required_sources(dimensions)
        self._random_state = random_state
        self._inliers_data: Optional[InliersData] = None

        if self._method.uses_quality_scores:
            if source_quality_scores is not None:
                self._check_quality_scores(source_quality_scores, dimensions)
            if fingerprint_readings_quality_scores is not None:
                self._check_quality_scores(fingerprint_readings_quality_scores, dimensions)
            self._source_quality_scores = source_quality_scores
            self._readings_quality_scores = fingerprint_readings_quality_scores

        super().__init__(dimensions, sources, fingerprint, listener, reading_types, initial_position,
                         radio_source_position_covariance_used, fallback_distance_standard_deviation)

    @property
    def method(self) -> RobustEstimatorMethod:
        return self._method

    # --- quality scores -----------------------------------------------------

    @staticmethod
    def _check_quality_scores(scores, dimensions: int) -> None:
        if scores is None or len(scores) < min_required_sources(dimensions):
            raise ValueError("Quality scores must have at least one value per required source")

    @property
    def source_quality_scores(self):
        return self._source_quality_scores

    @source_quality_scores.setter
    def source_quality_scores(self, scores) -> None:
        self._check_locked()
        if not self._method.uses_quality_scores:
            return
        self._check_quality_scores(scores, self._dimensions)
        self._source_quality_scores = scores
        self._build_data()

    @property
    def fingerprint_readings_quality_scores(self):
        return self._readings_quality_scores

    @fingerprint_readings_quality_scores.setter
    def fingerprint_readings_quality_scores(self, scores) -> None:
        self._check_locked()
        if not self._method.uses_quality_scores:
            return
        self._check_quality_scores(scores, self._dimensions)
        self._readings_quality_scores = scores
        self._build_data()

    def _quality_scores_ready(self) -> bool:
        if not self._method.uses_quality_scores:
            return True
        if self._source_quality_scores is None or self._readings_quality_scores is None:
            return False
        return (len(self._source_quality_scores) == len(self._sources)
                and len(self._readings_quality_scores) == len(self._fingerprint.readings))

    # --- solver parameters --------------------------------------------------

    @property
    def threshold(self) -> float:
        """Inlier threshold, or stop threshold for median based methods."""
        return self._threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        self._check_locked()
        self._threshold = check_threshold(value)

    @property
    def confidence(self) -> float:
        return self._confidence

    @confidence.setter
    def confidence(self, value: float) -> None:
        self._check_locked()
        self._confidence = check_confidence(value)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @max_iterations.setter
    def max_iterations(self, value: int) -> None:
        self._check_locked()
        self._max_iterations = check_max_iterations(value)

    @property
    def progress_delta(self) -> float:
        return self._progress_delta

    @progress_delta.setter
    def progress_delta(self, value: float) -> None:
        self._check_locked()
        self._progress_delta = check_progress_delta(value)

    @property
    def result_refined(self) -> bool:
        return self._result_refined

    @result_refined.setter
    def result_refined(self, value: bool) -> None:
        self._check_locked()
        self._result_refined = value

    @property
    def covariance_kept(self) -> bool:
        return self._covariance_kept

    @covariance_kept.setter
    def covariance_kept(self, value: bool) -> None:
        self._check_locked()
        self._covariance_kept = value

    @property
    def linear_solver_used(self) -> bool:
        return self._linear_solver_used

    @linear_solver_used.setter
    def linear_solver_used(self, value: bool) -> None:
        self._check_locked()
        self._linear_solver_used = value

    @property
    def homogeneous_linear_solver_used(self) -> bool:
        return self._homogeneous

    @homogeneous_linear_solver_used.setter
    def homogeneous_linear_solver_used(self, value: bool) -> None:
        self._check_locked()
        self._homogeneous = value

    @property
    def preliminary_solution_refined(self) -> bool:
        return self._preliminary_refined

    @preliminary_solution_refined.setter
    def preliminary_solution_refined(self, value: bool) -> None:
        self._check_locked()
        self._preliminary_refined = value

    @property
    def preliminary_subset_size(self) -> int:
        return self._preliminary_subset_size

    @preliminary_subset_size.setter
    def preliminary_subset_size(self, value: int) -> None:
        self._check_locked()
        if value < self.min_required_sources:
            raise ValueError(f"Preliminary subset size must be at least {self.min_required_sources}")
        self._preliminary_subset_size = value
        self._build_data()

    @property
    def evenly_distribute_readings(self) -> bool:
        return self._evenly_distribute

    @evenly_distribute_readings.setter
    def evenly_distribute_readings(self, value: bool) -> None:
        self._check_locked()
        self._evenly_distribute = value
        self._build_data()

    # --- data and results ---------------------------------------------------

    def _make_data(self) -> LaterationData:
        if self._evenly_distribute:
            return build_evenly_distributed_lateration_data(
                self._sources, self._fingerprint, self._source_quality_scores, self._readings_quality_scores,
                self._position_covariance_used, self._fallback_std, self._reading_types)
        return build_lateration_data(
            self._sources, self._fingerprint, self._source_quality_scores, self._readings_quality_scores,
            self._position_covariance_used, self._fallback_std, self._reading_types, with_quality=True)

    def _build_data(self) -> None:
        # quality scores of the wrong size would make the sorter fail, so they
        # only take part once they match sources and readings
        if (self._method.uses_quality_scores and self._sources is not None and self._fingerprint is not None
                and not self._quality_scores_ready()):
            self._data = build_lateration_data(
                self._sources, self._fingerprint, use_position_covariance=self._position_covariance_used,
                fallback_std=self._fallback_std, reading_types=self._reading_types, with_quality=True)
            return
        super()._build_data()

    @property
    def distance_quality_scores(self) -> Optional[np.ndarray]:
        return None if self._data is None else self._data.quality_scores

    @property
    def inliers_data(self) -> Optional[InliersData]:
        return self._inliers_data

    @property
    def is_ready(self) -> bool:
        return (self._data is not None and len(self._data) >= self._preliminary_subset_size
                and self._quality_scores_ready())

    def _solve(self):
        solver = RobustLaterationSolver(
            method=self._method,
            threshold=self._threshold,
            confidence=self._confidence,
            max_iterations=self._max_iterations,
            progress_delta=self._progress_delta,
            result_refined=self._result_refined,
            covariance_kept=self._covariance_kept,
            linear_solver_used=self._linear_solver_used,
            homogeneous_linear_solver_used=self._homogeneous,
            preliminary_solution_refined=self._preliminary_refined,
            preliminary_subset_size=self._preliminary_subset_size,
            initial_position=self._initial_position,
            random_state=self._random_state,
        )
        result = solver.solve(self._data.positions, self._data.distances,
                              self._data.distance_standard_deviations, self._data.quality_scores,
                              hooks=_ListenerHooks(self))
        self._inliers_data = result.inliers_data
        return result.position, result.covariance


def _split_readings(fingerprint: Fingerprint, readings_quality_scores):
    """
    Split readings into an RSSI fingerprint and a ranging fingerprint.

    A ranging and RSSI reading contributes an RSSI reading to the first and a
    ranging reading to the second. Quality scores follow their readings and
    are dropped when they do not match the fingerprint.

    Returns:
        ((rssi fingerprint, rssi scores), (ranging fingerprint, ranging scores))
    """
    if readings_quality_scores is not None and len(readings_quality_scores) != len(fingerprint.readings):
        readings_quality_scores = None

    rssi, rssi_scores = [], []
    ranging, ranging_scores = [], []
    for i, reading in enumerate(fingerprint.readings):
        score = float(readings_quality_scores[i]) if readings_quality_scores is not None else 0.0
        reading_type = reading.reading_type
        if reading_type is ReadingType.RSSI:
            rssi.append(reading)
            rssi_scores.append(score)
        elif reading_type is ReadingType.RANGING:
            ranging.append(reading)
            ranging_scores.append(score)
        else:
            rssi.append(RssiReading(reading.source, reading.rssi, reading.rssi_std))
            rssi_scores.append(score)
            ranging.append(RangingReading(reading.source, reading.distance, reading.distance_std))
            ranging_scores.append(score)

    if readings_quality_scores is None:
        rssi_scores = ranging_scores = None
    else:
        rssi_scores, ranging_scores = np.asarray(rssi_scores), np.asarray(ranging_scores)
    return (Fingerprint(rssi), rssi_scores), (Fingerprint(ranging), ranging_scores)


class _StageListener(EstimatorListener):
    """Forwards the events of one stage, with progress mapped to its half."""

    def __init__(self, estimator: "SequentialRobustPositionEstimator", offset: float):
        self.estimator = estimator
        self.offset = offset

    def on_estimate_next_iteration(self, stage, iteration: int) -> None:
        self.estimator._notify("on_estimate_next_iteration", iteration)

    def on_estimate_progress_change(self, stage, progress: float) -> None:
        self.estimator._notify("on_estimate_progress_change", self.offset + 0.5 * progress)


class SequentialRobustPositionEstimator(PositionEstimator):
    """
    Two stage robust estimation from ranging and RSSI readings.

    A robust estimate over the RSSI readings gives a coarse position, which
    seeds a robust estimate over the ranging readings. Ranging and RSSI
    readings feed both stages. When the RSSI stage is not ready (for instance
    because no source has a known transmitted power) or fails, the ranging
    stage starts from ``initial_position`` instead.

    Positions, distances, inliers and covariance are those of the ranging
    stage. Start and end events fire once per estimation; iteration events of
    both stages are forwarded and their progress is mapped to [0, 0.5] and
    [0.5, 1].
    """

    def __init__(self, dimensions: int = 2, sources=None, fingerprint=None, listener=None,
                 source_quality_scores: Optional[Sequence[float]] = None,
                 fingerprint_readings_quality_scores: Optional[Sequence[float]] = None,
                 rssi_method: RobustEstimatorMethod = DEFAULT_ROBUST_METHOD,
                 ranging_method: RobustEstimatorMethod = DEFAULT_ROBUST_METHOD,
                 rssi_threshold: Optional[float] = None,
                 ranging_threshold: Optional[float] = None,
                 initial_position: Optional[Sequence[float]] = None,
                 random_state=None):
        self._rssi_method = RobustEstimatorMethod(rssi_method)
        self._ranging_method = RobustEstimatorMethod(ranging_method)
        self._rssi_threshold = check_threshold(
            rssi_threshold if rssi_threshold is not None else DEFAULT_THRESHOLDS[self._rssi_method])
        self._ranging_threshold = check_threshold(
            ranging_threshold if ranging_threshold is not None else DEFAULT_THRESHOLDS[self._ranging_method])
        if source_quality_scores is not None:
            RobustPositionEstimator._check_quality_scores(source_quality_scores, dimensions)
        if fingerprint_readings_quality_scores is not None:
            RobustPositionEstimator._check_quality_scores(fingerprint_readings_quality_scores, dimensions)
        if initial_position is not None:
            as_point(initial_position, dimensions)
        self._source_quality_scores = source_quality_scores
        self._readings_quality_scores = fingerprint_readings_quality_scores
        self._initial_position = initial_position
        self._random_state = random_state
        self._rssi_stage: Optional[RobustPositionEstimator] = None
        self._ranging_stage: Optional[RobustPositionEstimator] = None
        self._coarse_position: Optional[np.ndarray] = None

        super().__init__(dimensions, sources, fingerprint, listener, MIXED_READINGS)
        self._build_data()

    @property
    def rssi_method(self) -> RobustEstimatorMethod:
        return self._rssi_method

    @property
    def ranging_method(self) -> RobustEstimatorMethod:
        return self._ranging_method

    @property
    def rssi_threshold(self) -> float:
        return self._rssi_threshold

    @rssi_threshold.setter
    def rssi_threshold(self, value: float) -> None:
        self._check_locked()
        self._rssi_threshold = check_threshold(value)
        self._build_data()

    @property
    def ranging_threshold(self) -> float:
        return self._ranging_threshold

    @ranging_threshold.setter
    def ranging_threshold(self, value: float) -> None:
        self._check_locked()
        self._ranging_threshold = check_threshold(value)
        self._build_data()

    @property
    def source_quality_scores(self):
        return self._source_quality_scores

    @source_quality_scores.setter
    def source_quality_scores(self, scores) -> None:
        self._check_locked()
        RobustPositionEstimator._check_quality_scores(scores, self._dimensions)
        self._source_quality_scores = scores
        self._build_data()

    @property
    def fingerprint_readings_quality_scores(self):
        return self._readings_quality_scores

    @fingerprint_readings_quality_scores.setter
    def fingerprint_readings_quality_scores(self, scores) -> None:
        self._check_locked()
        RobustPositionEstimator._check_quality_scores(scores, self._dimensions)
        self._readings_quality_scores = scores
        self._build_data()

    @property
    def initial_position(self):
        return self._initial_position

    @initial_position.setter
    def initial_position(self, value) -> None:
        self._check_locked()
        if value is not None:
            as_point(value, self._dimensions)
        self._initial_position = value
        self._build_data()

    def _make_stage(self, method, threshold, fingerprint, readings_quality_scores, offset):
        if readings_quality_scores is not None and len(readings_quality_scores) < self.min_required_sources:
            # too few readings for this stage to ever be ready
            readings_quality_scores = None
        return RobustPositionEstimator(
            method, self._dimensions, self._sources, fingerprint, _StageListener(self, offset),
            source_quality_scores=self._source_quality_scores,
            fingerprint_readings_quality_scores=readings_quality_scores,
            initial_position=self._initial_position, threshold=threshold, random_state=self._random_state)

    def _build_data(self) -> None:
        if self._sources is None or self._fingerprint is None:
            self._rssi_stage = self._ranging_stage = None
            self._data = None
            return

        (rssi, rssi_scores), (ranging, ranging_scores) = _split_readings(
            self._fingerprint, self._readings_quality_scores)
        self._rssi_stage = self._make_stage(self._rssi_method, self._rssi_threshold, rssi, rssi_scores, 0.0)
        self._ranging_stage = self._make_stage(self._ranging_method, self._ranging_threshold, ranging,
                                               ranging_scores, 0.5)
        self._data = self._ranging_stage._data

    @property
    def rssi_estimator(self) -> Optional[RobustPositionEstimator]:
        return self._rssi_stage

    @property
    def ranging_estimator(self) -> Optional[RobustPositionEstimator]:
        return self._ranging_stage

    @property
    def coarse_position(self) -> Optional[np.ndarray]:
        """Position found by the RSSI stage of the last estimation, if any."""
        return self._coarse_position

    @property
    def inliers_data(self) -> Optional[InliersData]:
        return None if self._ranging_stage is None else self._ranging_stage.inliers_data

    @property
    def is_ready(self) -> bool:
        return self._ranging_stage is not None and self._ranging_stage.is_ready

    def _solve(self):
        self._coarse_position = None
        if self._rssi_stage.is_ready:
            try:
                self._coarse_position = self._rssi_stage.estimate()
            except PositionEstimationError as e:
                logger.warning("RSSI stage failed, ranging stage starts from the initial position: %s", e)
        else:
            logger.debug("RSSI stage not ready, skipped")

        self._ranging_stage.initial_position = (
            self._coarse_position if self._coarse_position is not None else self._initial_position)
        position = self._ranging_stage.estimate()
        return position, self._ranging_stage.covariance
