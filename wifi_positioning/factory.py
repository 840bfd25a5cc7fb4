"""
Single entry point building any position estimator from a configuration.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence, Union

from .estimators import (
    MIXED_READINGS,
    EstimatorListener,
    LinearPositionEstimator,
    NonLinearPositionEstimator,
    PositionEstimator,
    RobustPositionEstimator,
    SequentialRobustPositionEstimator,
)
from .radio import Fingerprint, ReadingType
from .robust import DEFAULT_ROBUST_METHOD, RobustEstimatorMethod

logger = logging.getLogger(__name__)

LINEAR = "linear"
NON_LINEAR = "nonlinear"
SEQUENTIAL = "sequential"

# robust-only settings assigned through properties after construction
_ROBUST_OPTIONS = (
    "confidence",
    "max_iterations",
    "progress_delta",
    "result_refined",
    "covariance_kept",
    "linear_solver_used",
    "homogeneous_linear_solver_used",
    "preliminary_solution_refined",
    "preliminary_subset_size",
    "evenly_distribute_readings",
)


@dataclass
class EstimatorConfig:
    """
    Configuration of a position estimator.

    Attributes:
        method: Robust method, "linear", "nonlinear" or "sequential"
        dimensions: 2 or 3
        sources: Located sources
        fingerprint: Readings to locate
        listener: Optional estimation listener
        source_quality_scores: One score per source (PROSAC and PROMedS only)
        fingerprint_readings_quality_scores: One score per reading (PROSAC and PROMedS only)
        reading_types: Reading types used by the estimator (the sequential
            estimator splits readings by itself)
        initial_position: Initial guess of the non-linear solvers
        threshold: Robust threshold (of the ranging stage for the sequential
            estimator), method default if None
        options: Any other estimator property, by name
    """

    method: Union[RobustEstimatorMethod, str] = DEFAULT_ROBUST_METHOD
    dimensions: int = 2
    sources: Optional[Sequence] = None
    fingerprint: Optional[Fingerprint] = None
    listener: Optional[EstimatorListener] = None
    source_quality_scores: Optional[Sequence[float]] = None
    fingerprint_readings_quality_scores: Optional[Sequence[float]] = None
    reading_types: Iterable[ReadingType] = MIXED_READINGS
    initial_position: Optional[Sequence[float]] = None
    threshold: Optional[float] = None
    options: Dict[str, Any] = field(default_factory=dict)


def _resolve_method(method) -> Union[RobustEstimatorMethod, str]:
    if isinstance(method, RobustEstimatorMethod):
        return method
    name = str(method).lower().replace("-", "").replace("_", "")
    if name in (LINEAR, NON_LINEAR, SEQUENTIAL):
        return name
    try:
        return RobustEstimatorMethod(name)
    except ValueError:
        raise ValueError(f"Unknown estimation method: {method}") from None


def create_position_estimator(config: Optional[EstimatorConfig] = None, **overrides) -> PositionEstimator:
    """
    Create a position estimator.

    Args:
        config: Estimator configuration, defaults if None
        **overrides: Fields replacing those of the configuration

    Returns:
        Linear, non-linear or robust position estimator
    """
    config = config if config is not None else EstimatorConfig()
    if overrides:
        values = dict(config.__dict__)
        unknown = set(overrides) - set(values)
        if unknown:
            raise ValueError(f"Unknown estimator configuration fields: {', '.join(sorted(unknown))}")
        values.update(overrides)
        config = EstimatorConfig(**values)

    method = _resolve_method(config.method)
    options = dict(config.options)
    common = dict(dimensions=config.dimensions, sources=config.sources, fingerprint=config.fingerprint,
                  listener=config.listener, reading_types=config.reading_types)

    if method == LINEAR:
        estimator = LinearPositionEstimator(**common, **options)
    elif method == NON_LINEAR:
        estimator = NonLinearPositionEstimator(**common, initial_position=config.initial_position, **options)
    elif method == SEQUENTIAL:
        del common["reading_types"]
        estimator = SequentialRobustPositionEstimator(
            **common,
            source_quality_scores=config.source_quality_scores,
            fingerprint_readings_quality_scores=config.fingerprint_readings_quality_scores,
            ranging_threshold=config.threshold,
            initial_position=config.initial_position,
            **options)
    else:
        robust_options = {name: options.pop(name) for name in _ROBUST_OPTIONS if name in options}
        estimator = RobustPositionEstimator(
            method, **common,
            source_quality_scores=config.source_quality_scores,
            fingerprint_readings_quality_scores=config.fingerprint_readings_quality_scores,
            initial_position=config.initial_position,
            threshold=config.threshold,
            **options)
        for name, value in robust_options.items():
            setattr(estimator, name, value)

    logger.debug("created %s estimator for %dD positions", type(estimator).__name__, config.dimensions)
    return estimator
