"""
RSSI-Distance conversion and RSSI simulation using the log-distance path loss model.
"""

import math
from typing import Optional, Sequence

import numpy as np

from .radio import RadioSource

SPEED_OF_LIGHT = 299792458.0  # m/s


def dbm_to_power(dbm: float) -> float:
    """Convert a power in dBm to mW."""
    return 10.0 ** (dbm / 10.0)


def power_to_dbm(power: float) -> float:
    """Convert a power in mW to dBm."""
    return 10.0 * math.log10(power)


class RSSIConverter:
    """
    Converts received signal strength into distances to a located source.

    The received power follows Pr = Pt * (c / (4 * pi * f))^n / d^n, where Pt is
    the equivalent transmitted power of the source and n its path loss exponent.
    """

    def __init__(self, min_distance: float = 0.0):
        """
        Initialize the converter.

        Args:
            min_distance: Lower bound applied to estimated distances
        """
        if min_distance < 0.0:
            raise ValueError("Minimum distance must be zero or positive")
        self.min_distance = min_distance

    @staticmethod
    def _k(source: RadioSource) -> float:
        return SPEED_OF_LIGHT / (4.0 * math.pi * source.frequency)

    def rssi_to_distance(self, source: RadioSource, rssi_dbm: float) -> float:
        """
        Estimate distance from RSSI.

        Args:
            source: Source with known transmitted power
            rssi_dbm: Received power in dBm

        Returns:
            Distance in meters
        """
        if not source.has_power:
            raise ValueError(f"Source {source.id} has no transmitted power")

        exponent = (source.transmitted_power_dbm - rssi_dbm) / (10.0 * source.path_loss_exponent)
        return max(self._k(source) * 10.0 ** exponent, self.min_distance)

    def distance_standard_deviation(self, source: RadioSource, rssi_dbm: float,
                                    rssi_std: Optional[float] = None) -> Optional[float]:
        """
        Propagate transmitted power, received power and path loss exponent
        uncertainties into the distance obtained from an RSSI value.

        Args:
            source: Source with known transmitted power
            rssi_dbm: Received power in dBm
            rssi_std: Standard deviation of the received power in dB

        Returns:
            Distance standard deviation in meters, or None if no uncertainty is known
        """
        tx_std = source.transmitted_power_std_dbm
        n_std = source.path_loss_exponent_std
        if rssi_std is None and tx_std is None and n_std is None:
            return None

        n = source.path_loss_exponent
        distance = self.rssi_to_distance(source, rssi_dbm)
        derivative_power = distance * math.log(10.0) / (10.0 * n)
        derivative_exponent = -derivative_power * (source.transmitted_power_dbm - rssi_dbm) / n

        variance = derivative_power ** 2 * ((tx_std or 0.0) ** 2 + (rssi_std or 0.0) ** 2)
        variance += derivative_exponent ** 2 * (n_std or 0.0) ** 2
        return math.sqrt(variance)

    def distance_to_rssi(self, source: RadioSource, distance: float) -> float:
        """
        Received power (dBm) expected at a given distance of a source.
        """
        if not source.has_power:
            raise ValueError(f"Source {source.id} has no transmitted power")
        if distance <= 0.0:
            raise ValueError("Distance must be positive")

        received = dbm_to_power(source.transmitted_power_dbm) * \
            (self._k(source) / distance) ** source.path_loss_exponent
        return power_to_dbm(received)

    def simulate_rssi(self, source: RadioSource, device_pos: Sequence[float],
                      shadowing_std_db: float = 0.0,
                      rng: Optional[np.random.Generator] = None) -> float:
        """
        Simulate the RSSI of a source received at a given position.

        Args:
            source: Source with known transmitted power
            device_pos: Receiver coordinates
            shadowing_std_db: Standard deviation of log-normal shadowing
            rng: Random generator used for shadowing

        Returns:
            RSSI in dBm
        """
        distance = float(np.linalg.norm(np.asarray(device_pos, dtype=float) - np.asarray(source.position)))
        distance = max(distance, 0.1)

        rssi = self.distance_to_rssi(source, distance)
        if shadowing_std_db > 0.0:
            rng = rng if rng is not None else np.random.default_rng()
            rssi += rng.normal(0.0, shadowing_std_db)
        return rssi
