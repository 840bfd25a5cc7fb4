"""
Exceptions raised by the Wi-Fi positioning estimators.

Invalid arguments are reported with the built-in ``ValueError``.
"""


class PositioningError(Exception):
    """Base class for all positioning errors."""


class NotReadyError(PositioningError):
    """Raised when an estimation is requested before its inputs are complete."""


class LockedError(PositioningError):
    """Raised when an estimator is modified or re-entered while estimating."""


class PositionEstimationError(PositioningError):
    """Raised when a position cannot be computed from the provided data."""


class RobustEstimatorError(PositionEstimationError):
    """Raised when a robust estimator finds no valid model."""


class NumericalError(PositionEstimationError):
    """Raised when a covariance or other numerical quantity cannot be obtained."""
