"""
Sorting of sources and fingerprint readings by quality.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .radio import Fingerprint

logger = logging.getLogger(__name__)


@dataclass
class ReadingWithQualityScore:
    reading: Any
    quality_score: float


@dataclass
class SourceWithQualityScore:
    source: Any
    quality_score: float
    readings_with_quality_scores: List[ReadingWithQualityScore] = field(default_factory=list)


class ReadingSorter:
    """
    Groups fingerprint readings by source and sorts them by quality.

    Sources are sorted by descending quality score. Within a source, readings
    are sorted by type (ranging first, then ranging and RSSI, then RSSI) and by
    descending quality score within each type. Sorting is stable, so entries
    with equal scores keep their input order.
    """

    def __init__(self, sources: Sequence, fingerprint: Fingerprint,
                 source_quality_scores: Optional[Sequence[float]] = None,
                 fingerprint_readings_quality_scores: Optional[Sequence[float]] = None):
        """
        Initialize the sorter.

        Args:
            sources: Located sources
            fingerprint: Fingerprint whose readings are sorted
            source_quality_scores: One score per source, or None
            fingerprint_readings_quality_scores: One score per reading, or None
        """
        if source_quality_scores is not None and len(source_quality_scores) != len(sources):
            raise ValueError("Source quality scores must have the same length as sources")
        if (fingerprint_readings_quality_scores is not None
                and len(fingerprint_readings_quality_scores) != len(fingerprint.readings)):
            raise ValueError("Reading quality scores must have the same length as fingerprint readings")

        self.sources = sources
        self.fingerprint = fingerprint
        self.source_quality_scores = source_quality_scores
        self.fingerprint_readings_quality_scores = fingerprint_readings_quality_scores
        self.sorted_sources_and_readings: Optional[List[SourceWithQualityScore]] = None

    def sort(self) -> List[SourceWithQualityScore]:
        """
        Sort sources and readings.

        Returns:
            One entry per distinct source, best first, with its sorted readings.
            Sources without readings are kept with an empty list.
        """
        entries = {}
        ordered = []
        for i, source in enumerate(self.sources):
            if source.id in entries:
                continue
            score = float(self.source_quality_scores[i]) if self.source_quality_scores is not None else 0.0
            entry = SourceWithQualityScore(source, score)
            entries[source.id] = entry
            ordered.append(entry)

        skipped = 0
        for i, reading in enumerate(self.fingerprint.readings):
            entry = entries.get(reading.source.id)
            if entry is None:
                skipped += 1
                continue
            score = (float(self.fingerprint_readings_quality_scores[i])
                     if self.fingerprint_readings_quality_scores is not None else 0.0)
            entry.readings_with_quality_scores.append(ReadingWithQualityScore(reading, score))

        if skipped:
            logger.debug("%d readings skipped: their source is not located", skipped)

        result = list(ordered)
        for entry in result:
            entry.readings_with_quality_scores.sort(
                key=lambda item: (item.reading.reading_type, -item.quality_score))
        result.sort(key=lambda entry: -entry.quality_score)

        self.sorted_sources_and_readings = result
        return result
