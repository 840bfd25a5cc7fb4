#!/usr/bin/env python3
"""
Main module for the Wi-Fi indoor positioning system.

Settings are read from the environment:
    DATA_DIR: directory with sources.csv and readings.csv (default "data")
    METHOD: promeds, prosac, lmeds, msac, ransac, linear, nonlinear or sequential
    DIMENSIONS: 2 or 3
    THRESHOLD: robust threshold (method default if unset)
    PLOT_FILE: path of a plot to save (no plot if unset)
    LOG_LEVEL: logging level (default INFO)
"""

import logging
import os
import sys

from wifi_positioning import (
    EstimatorConfig,
    FingerprintReader,
    PositioningError,
    RobustPositionEstimator,
    SequentialRobustPositionEstimator,
    create_position_estimator,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

DATA_DIR = os.getenv("DATA_DIR", "data")
METHOD = os.getenv("METHOD", "promeds")
DIMENSIONS = int(os.getenv("DIMENSIONS", "2"))
THRESHOLD = os.getenv("THRESHOLD")
PLOT_FILE = os.getenv("PLOT_FILE")


def main() -> int:
    reader = FingerprintReader(DATA_DIR)
    try:
        sources, fingerprint = reader.load_all_data()
    except (FileNotFoundError, ValueError) as e:
        logger.error("Cannot load data: %s", e)
        return 1

    config = EstimatorConfig(
        method=METHOD,
        dimensions=DIMENSIONS,
        sources=sources,
        fingerprint=fingerprint,
        source_quality_scores=reader.source_quality_scores,
        fingerprint_readings_quality_scores=reader.readings_quality_scores,
        threshold=float(THRESHOLD) if THRESHOLD else None,
    )

    try:
        estimator = create_position_estimator(config)
        position = estimator.estimate()
    except (PositioningError, ValueError) as e:
        logger.error("Estimation failed: %s", e)
        return 1

    logger.info("Estimated position: %s", ", ".join(f"{v:.3f}" for v in position))
    if estimator.covariance is not None:
        logger.info("Position standard deviations: %s",
                    ", ".join(f"{v:.3f}" for v in estimator.covariance.diagonal() ** 0.5))

    inliers_data = None
    if isinstance(estimator, (RobustPositionEstimator, SequentialRobustPositionEstimator)):
        inliers_data = estimator.inliers_data
        logger.info("Inliers: %d/%d", inliers_data.num_inliers, len(inliers_data.inliers))

    if PLOT_FILE:
        from wifi_positioning.visualize import PositionVisualizer

        visualizer = PositionVisualizer(sources)
        fig = visualizer.plot_estimate(position, estimator.covariance, inliers_data,
                                       sample_sources=estimator.sample_sources)
        fig.savefig(PLOT_FILE)
        logger.info("Plot saved to %s", PLOT_FILE)

    return 0


if __name__ == "__main__":
    sys.exit(main())
