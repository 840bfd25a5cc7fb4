import math

import numpy as np
import pytest

from wifi_positioning.radio import Fingerprint, RadioSource, RangingReading


def make_sources(positions, prefix="ap", **kwargs):
    return [RadioSource(f"{prefix}{i}", tuple(p), **kwargs) for i, p in enumerate(positions)]


def ranging_fingerprint(sources, position, errors=None):
    readings = []
    for i, source in enumerate(sources):
        distance = math.dist(source.position, position)
        if errors is not None:
            distance += errors[i]
        readings.append(RangingReading(source, distance))
    return Fingerprint(readings)


def random_scenario(rng, num_sources, dimensions=2):
    """Random sources in [-50, 50] and a random position inside them."""
    sources = make_sources(rng.uniform(-50.0, 50.0, size=(num_sources, dimensions)))
    position = rng.uniform(-50.0, 50.0, size=dimensions)
    return sources, position


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def triangle_sources():
    return make_sources([(0.0, 0.0), (10.0, 0.0), (0.0, 10.0)])


@pytest.fixture
def triangle_fingerprint(triangle_sources):
    return ranging_fingerprint(triangle_sources, (3.0, 4.0))
