"""
Radio sources, readings and fingerprints.

Sources are located transmitters (Wi-Fi access points, beacons) and readings
are the observations collected at an unknown location. Readings reference
their source by ``id``, so a reading may point to the located source itself
or to any other object carrying the same identifier.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

DEFAULT_FREQUENCY = 2.4e9  # Hz
DEFAULT_PATH_LOSS_EXPONENT = 2.0


class ReadingType(IntEnum):
    """Kind of measurement, ordered by sorting priority."""

    RANGING = 0
    RANGING_AND_RSSI = 1
    RSSI = 2


@dataclass(frozen=True)
class RadioSource:
    """
    A located radio source.

    Attributes:
        id: Identifier shared with the readings of this source (e.g. BSSID)
        position: (x, y) or (x, y, z) coordinates in meters
        position_covariance: Optional DxD covariance of the position
        transmitted_power_dbm: Transmitted power, required to use RSSI readings
        transmitted_power_std_dbm: Optional uncertainty of the transmitted power
        path_loss_exponent: Path loss exponent (2.0 for free space)
        path_loss_exponent_std: Optional uncertainty of the path loss exponent
        frequency: Carrier frequency in Hz
    """

    id: str
    position: Tuple[float, ...]
    position_covariance: Optional[np.ndarray] = field(default=None, compare=False)
    transmitted_power_dbm: Optional[float] = None
    transmitted_power_std_dbm: Optional[float] = None
    path_loss_exponent: float = DEFAULT_PATH_LOSS_EXPONENT
    path_loss_exponent_std: Optional[float] = None
    frequency: float = DEFAULT_FREQUENCY

    def __post_init__(self):
        position = tuple(float(v) for v in self.position)
        if len(position) not in (2, 3):
            raise ValueError("Source position must have 2 or 3 coordinates")
        object.__setattr__(self, "position", position)

        if self.position_covariance is not None:
            covariance = np.asarray(self.position_covariance, dtype=float)
            if covariance.shape != (len(position), len(position)):
                raise ValueError("Position covariance must be a square matrix matching the position size")
            object.__setattr__(self, "position_covariance", covariance)

        if self.frequency <= 0.0:
            raise ValueError("Frequency must be positive")
        if self.transmitted_power_std_dbm is not None and self.transmitted_power_std_dbm < 0.0:
            raise ValueError("Transmitted power standard deviation must be zero or positive")
        if self.path_loss_exponent_std is not None and self.path_loss_exponent_std < 0.0:
            raise ValueError("Path loss exponent standard deviation must be zero or positive")

    @property
    def dimensions(self) -> int:
        return len(self.position)

    @property
    def has_power(self) -> bool:
        """Whether RSSI readings of this source can be turned into distances."""
        return self.transmitted_power_dbm is not None


def _check_std(value: Optional[float], name: str) -> None:
    if value is not None and value < 0.0:
        raise ValueError(f"{name} must be zero or positive")


@dataclass(frozen=True)
class RangingReading:
    """Distance measured to a source."""

    source: Any
    distance: float
    distance_std: Optional[float] = None

    def __post_init__(self):
        if self.distance < 0.0:
            raise ValueError("Distance must be zero or positive")
        _check_std(self.distance_std, "Distance standard deviation")

    @property
    def reading_type(self) -> ReadingType:
        return ReadingType.RANGING


@dataclass(frozen=True)
class RssiReading:
    """Received signal strength (dBm) of a source."""

    source: Any
    rssi: float
    rssi_std: Optional[float] = None

    def __post_init__(self):
        _check_std(self.rssi_std, "RSSI standard deviation")

    @property
    def reading_type(self) -> ReadingType:
        return ReadingType.RSSI


@dataclass(frozen=True)
class RangingAndRssiReading:
    """Distance and received signal strength measured at once."""

    source: Any
    distance: float
    rssi: float
    distance_std: Optional[float] = None
    rssi_std: Optional[float] = None

    def __post_init__(self):
        if self.distance < 0.0:
            raise ValueError("Distance must be zero or positive")
        _check_std(self.distance_std, "Distance standard deviation")
        _check_std(self.rssi_std, "RSSI standard deviation")

    @property
    def reading_type(self) -> ReadingType:
        return ReadingType.RANGING_AND_RSSI


class Fingerprint:
    """Ordered collection of readings collected at one location."""

    def __init__(self, readings: Optional[Sequence] = None):
        self.readings: List = list(readings) if readings is not None else []

    def __len__(self) -> int:
        return len(self.readings)

    def __iter__(self):
        return iter(self.readings)
