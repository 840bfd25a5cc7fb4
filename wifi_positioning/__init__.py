"""
Robust Wi-Fi indoor position estimation.
"""

from .estimators import (
    MIXED_READINGS,
    RANGING_AND_RSSI_READINGS,
    RANGING_READINGS,
    RSSI_READINGS,
    EstimatorListener,
    EstimatorState,
    LinearPositionEstimator,
    NonLinearPositionEstimator,
    PositionEstimator,
    RobustPositionEstimator,
    SequentialRobustPositionEstimator,
)
from .exceptions import (
    LockedError,
    NotReadyError,
    NumericalError,
    PositionEstimationError,
    PositioningError,
    RobustEstimatorError,
)
from .factory import EstimatorConfig, create_position_estimator
from .radio import (
    Fingerprint,
    RadioSource,
    RangingAndRssiReading,
    RangingReading,
    ReadingType,
    RssiReading,
)
from .reader import FingerprintReader
from .robust import InliersData, RobustEstimatorMethod
from .sorter import ReadingSorter
