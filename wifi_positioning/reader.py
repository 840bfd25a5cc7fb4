"""
Data loading module for located sources and fingerprint readings.
"""

import logging
import os
from types import SimpleNamespace
from typing import List, Optional

import numpy as np
import pandas as pd

from .radio import (
    DEFAULT_FREQUENCY,
    DEFAULT_PATH_LOSS_EXPONENT,
    Fingerprint,
    RadioSource,
    RangingAndRssiReading,
    RangingReading,
    RssiReading,
)

logger = logging.getLogger(__name__)

SOURCES_FILE = "sources.csv"
READINGS_FILE = "readings.csv"

READING_TYPES = ("ranging", "rssi", "ranging_and_rssi")


def _optional(row: pd.Series, column: str) -> Optional[float]:
    if column not in row.index or pd.isna(row[column]):
        return None
    return float(row[column])


class FingerprintReader:
    """
    Loads sources and one fingerprint from CSV files.

    ``sources.csv`` has columns ``id, x, y`` and optionally ``z``,
    ``tx_power``, ``tx_power_std``, ``path_loss_exponent``,
    ``path_loss_exponent_std``, ``frequency`` and ``quality``.

    ``readings.csv`` has columns ``source_id, type`` (ranging, rssi or
    ranging_and_rssi) and, depending on the type, ``distance``,
    ``distance_std``, ``rssi``, ``rssi_std``, plus an optional ``quality``.
    """

    def __init__(self, data_dir: str = "data"):
        """
        Initialize the reader.

        Args:
            data_dir: Directory containing sources.csv and readings.csv
        """
        self.data_dir = data_dir
        self.sources: List[RadioSource] = []
        self.fingerprint: Optional[Fingerprint] = None
        self.source_quality_scores: Optional[np.ndarray] = None
        self.readings_quality_scores: Optional[np.ndarray] = None

    def _read_csv(self, filename: str) -> pd.DataFrame:
        path = os.path.join(self.data_dir, filename)
        if not os.path.exists(path):
            raise FileNotFoundError(f"Missing data file: {path}")
        df = pd.read_csv(path)
        df.columns = df.columns.str.strip()
        return df

    def load_sources(self) -> List[RadioSource]:
        """
        Load located sources.

        Returns:
            List of sources in file order
        """
        df = self._read_csv(SOURCES_FILE)
        missing = {"id", "x", "y"} - set(df.columns)
        if missing:
            raise ValueError(f"{SOURCES_FILE} is missing columns: {', '.join(sorted(missing))}")

        coordinates = ["x", "y", "z"] if "z" in df.columns else ["x", "y"]
        sources = []
        for _, row in df.iterrows():
            exponent = _optional(row, "path_loss_exponent")
            frequency = _optional(row, "frequency")
            sources.append(RadioSource(
                id=str(row["id"]).strip(),
                position=tuple(float(row[c]) for c in coordinates),
                transmitted_power_dbm=_optional(row, "tx_power"),
                transmitted_power_std_dbm=_optional(row, "tx_power_std"),
                path_loss_exponent=exponent if exponent is not None else DEFAULT_PATH_LOSS_EXPONENT,
                path_loss_exponent_std=_optional(row, "path_loss_exponent_std"),
                frequency=frequency if frequency is not None else DEFAULT_FREQUENCY,
            ))

        self.sources = sources
        if "quality" in df.columns:
            self.source_quality_scores = df["quality"].fillna(0.0).astype(float).to_numpy()
        logger.info("loaded %d sources from %s", len(sources), self.data_dir)
        return sources

    def load_fingerprint(self) -> Fingerprint:
        """
        Load the fingerprint readings. Sources must be loaded first so readings
        reference them; readings of unknown sources keep a bare source id.

        Returns:
            Fingerprint with readings in file order
        """
        df = self._read_csv(READINGS_FILE)
        missing = {"source_id", "type"} - set(df.columns)
        if missing:
            raise ValueError(f"{READINGS_FILE} is missing columns: {', '.join(sorted(missing))}")

        by_id = {source.id: source for source in self.sources}
        readings = []
        for _, row in df.iterrows():
            source_id = str(row["source_id"]).strip()
            source = by_id.get(source_id)
            if source is None:
                logger.debug("reading of unknown source %s", source_id)
                source = SimpleNamespace(id=source_id)

            kind = str(row["type"]).strip().lower()
            if kind not in READING_TYPES:
                raise ValueError(f"Unknown reading type: {kind}")

            if kind == "ranging":
                reading = RangingReading(source, float(row["distance"]), _optional(row, "distance_std"))
            elif kind == "rssi":
                reading = RssiReading(source, float(row["rssi"]), _optional(row, "rssi_std"))
            else:
                reading = RangingAndRssiReading(source, float(row["distance"]), float(row["rssi"]),
                                                _optional(row, "distance_std"), _optional(row, "rssi_std"))
            readings.append(reading)

        self.fingerprint = Fingerprint(readings)
        if "quality" in df.columns:
            self.readings_quality_scores = df["quality"].fillna(0.0).astype(float).to_numpy()
        logger.info("loaded %d readings from %s", len(readings), self.data_dir)
        return self.fingerprint

    def load_all_data(self):
        """
        Load sources and fingerprint.

        Returns:
            (sources, fingerprint) tuple
        """
        self.load_sources()
        self.load_fingerprint()
        return self.sources, self.fingerprint
