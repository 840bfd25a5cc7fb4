"""
Conversion of located sources and fingerprint readings into the
(position, distance, distance standard deviation) samples consumed by the
lateration solvers.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .radio import Fingerprint, RadioSource, ReadingType
from .rssi_to_distance import RSSIConverter
from .sorter import ReadingSorter

logger = logging.getLogger(__name__)

ALL_READING_TYPES = frozenset(ReadingType)

_converter = RSSIConverter()


@dataclass
class LaterationData:
    """
    Samples built from sources and readings.

    Attributes:
        positions: N x D array of source positions
        distances: N distances
        distance_standard_deviations: N standard deviations, or None if not requested
        quality_scores: N quality scores, or None if not requested
        sources: Source of each sample
    """

    positions: np.ndarray
    distances: np.ndarray
    distance_standard_deviations: Optional[np.ndarray]
    quality_scores: Optional[np.ndarray]
    sources: List[RadioSource]

    def __len__(self) -> int:
        return len(self.distances)


def _located_sources(sources: Sequence) -> dict:
    located = {}
    for i, source in enumerate(sources):
        if source.id not in located:
            located[source.id] = (i, source)
    return located


def _position_variance(source: RadioSource) -> float:
    covariance = source.position_covariance
    if covariance is None:
        return 0.0
    variance = float(np.trace(covariance))
    if not math.isfinite(variance) or variance < 0.0:
        logger.debug("ignoring invalid position covariance of source %s", source.id)
        return 0.0
    return variance


def _distances(source: RadioSource, reading) -> Iterator[Tuple[float, Optional[float]]]:
    """Yields (distance, standard deviation) pairs provided by a reading."""
    reading_type = reading.reading_type
    if reading_type in (ReadingType.RANGING, ReadingType.RANGING_AND_RSSI):
        yield reading.distance, reading.distance_std
    if reading_type in (ReadingType.RSSI, ReadingType.RANGING_AND_RSSI) and source.has_power:
        distance = _converter.rssi_to_distance(source, reading.rssi)
        std = _converter.distance_standard_deviation(source, reading.rssi, reading.rssi_std)
        yield distance, std


def _standard_deviation(source: RadioSource, std: Optional[float], use_position_covariance: bool,
                        fallback_std: float) -> float:
    if std is None or std <= 0.0:
        std = fallback_std
    variance = std ** 2
    if use_position_covariance:
        variance += _position_variance(source)
    return math.sqrt(variance)


def _empty(sources: Optional[Sequence], with_std: bool, with_quality: bool) -> LaterationData:
    dimensions = sources[0].dimensions if sources else 0
    return LaterationData(
        positions=np.empty((0, dimensions)),
        distances=np.empty(0),
        distance_standard_deviations=np.empty(0) if with_std else None,
        quality_scores=np.empty(0) if with_quality else None,
        sources=[],
    )


def _check_fallback(fallback_std: float) -> None:
    if fallback_std < 0.0:
        raise ValueError("Fallback distance standard deviation must be zero or positive")


def _collect(items: Iterable[Tuple[RadioSource, object, float]], with_std: bool, with_quality: bool,
             use_position_covariance: bool, fallback_std: float, dimensions: int) -> LaterationData:
    positions, distances, stds, scores, owners = [], [], [], [], []
    for source, reading, score in items:
        for distance, std in _distances(source, reading):
            positions.append(source.position)
            distances.append(distance)
            owners.append(source)
            if with_std:
                stds.append(_standard_deviation(source, std, use_position_covariance, fallback_std))
            if with_quality:
                scores.append(score)

    return LaterationData(
        positions=np.asarray(positions, dtype=float).reshape(-1, dimensions),
        distances=np.asarray(distances, dtype=float),
        distance_standard_deviations=np.asarray(stds, dtype=float) if with_std else None,
        quality_scores=np.asarray(scores, dtype=float) if with_quality else None,
        sources=owners,
    )


def build_lateration_data(sources: Optional[Sequence[RadioSource]], fingerprint: Optional[Fingerprint],
                          source_quality_scores: Optional[Sequence[float]] = None,
                          readings_quality_scores: Optional[Sequence[float]] = None,
                          use_position_covariance: bool = False,
                          fallback_std: float = 0.0,
                          reading_types: Iterable[ReadingType] = ALL_READING_TYPES,
                          with_std: bool = True,
                          with_quality: bool = False) -> LaterationData:
    """
    Build lateration samples in fingerprint order.

    Readings whose source is not located, whose type is not accepted, or that
    carry only RSSI from a source without transmitted power are skipped. A
    ranging and RSSI reading produces two samples (ranging first).

    Args:
        sources: Located sources
        fingerprint: Fingerprint containing the readings
        source_quality_scores: One score per source, or None
        readings_quality_scores: One score per reading, or None
        use_position_covariance: Whether source position covariance increases
            the distance uncertainty
        fallback_std: Standard deviation used when a reading carries none
        reading_types: Accepted reading types
        with_std: Whether standard deviations are computed
        with_quality: Whether quality scores are computed

    Returns:
        Lateration samples
    """
    _check_fallback(fallback_std)
    if not sources or fingerprint is None:
        return _empty(sources, with_std, with_quality)

    accepted = frozenset(reading_types)
    located = _located_sources(sources)

    def items():
        for i, reading in enumerate(fingerprint.readings):
            if reading.reading_type not in accepted:
                continue
            match = located.get(reading.source.id)
            if match is None:
                continue
            index, source = match
            score = 0.0
            if source_quality_scores is not None:
                score += float(source_quality_scores[index])
            if readings_quality_scores is not None:
                score += float(readings_quality_scores[i])
            yield source, reading, score

    return _collect(items(), with_std, with_quality, use_position_covariance, fallback_std,
                    sources[0].dimensions)


def build_evenly_distributed_lateration_data(sources: Optional[Sequence[RadioSource]],
                                             fingerprint: Optional[Fingerprint],
                                             source_quality_scores: Optional[Sequence[float]] = None,
                                             readings_quality_scores: Optional[Sequence[float]] = None,
                                             use_position_covariance: bool = False,
                                             fallback_std: float = 0.0,
                                             reading_types: Iterable[ReadingType] = ALL_READING_TYPES
                                             ) -> LaterationData:
    """
    Build lateration samples interleaving readings across sources.

    Sources and readings are first sorted by quality with ReadingSorter. Samples
    are then taken round-robin: the best reading of every source, then the
    second best of every source, and so on. Quality scores are replaced by
    strictly decreasing ranks so progressive samplers draw distinct sources
    before drawing a second reading of any of them.
    """
    _check_fallback(fallback_std)
    if not sources or fingerprint is None:
        return _empty(sources, True, True)

    accepted = frozenset(reading_types)
    sorter = ReadingSorter(sources, fingerprint, source_quality_scores, readings_quality_scores)
    sorted_entries = sorter.sort()

    groups = [[item for item in entry.readings_with_quality_scores if item.reading.reading_type in accepted]
              for entry in sorted_entries]
    depth = max((len(group) for group in groups), default=0)

    def items():
        for level in range(depth):
            for entry, group in zip(sorted_entries, groups):
                if level < len(group):
                    yield entry.source, group[level].reading, 0.0

    data = _collect(items(), True, True, use_position_covariance, fallback_std, sources[0].dimensions)
    data.quality_scores = np.arange(len(data), 0, -1, dtype=float)
    return data


def build_positions_and_distances(sources, fingerprint,
                                  reading_types: Iterable[ReadingType] = ALL_READING_TYPES
                                  ) -> Tuple[np.ndarray, np.ndarray]:
    """Positions and distances of every usable reading."""
    data = build_lateration_data(sources, fingerprint, reading_types=reading_types, with_std=False)
    return data.positions, data.distances


def build_positions_distances_and_standard_deviations(
        sources, fingerprint, use_position_covariance: bool, fallback_std: float,
        reading_types: Iterable[ReadingType] = ALL_READING_TYPES
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Positions, distances and distance standard deviations of every usable reading."""
    data = build_lateration_data(sources, fingerprint, use_position_covariance=use_position_covariance,
                                 fallback_std=fallback_std, reading_types=reading_types)
    return data.positions, data.distances, data.distance_standard_deviations


def build_positions_distances_standard_deviations_and_quality_scores(
        sources, fingerprint, source_quality_scores, readings_quality_scores,
        use_position_covariance: bool, fallback_std: float,
        reading_types: Iterable[ReadingType] = ALL_READING_TYPES
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Same as above, adding the quality score of each sample (source score + reading score)."""
    data = build_lateration_data(sources, fingerprint, source_quality_scores, readings_quality_scores,
                                 use_position_covariance, fallback_std, reading_types, with_quality=True)
    return data.positions, data.distances, data.distance_standard_deviations, data.quality_scores
