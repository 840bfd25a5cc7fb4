import math

import numpy as np
import pytest

from wifi_positioning.helper import (
    build_evenly_distributed_lateration_data,
    build_lateration_data,
    build_positions_and_distances,
    build_positions_distances_and_standard_deviations,
    build_positions_distances_standard_deviations_and_quality_scores,
)
from wifi_positioning.radio import (
    Fingerprint,
    RadioSource,
    RangingAndRssiReading,
    RangingReading,
    ReadingType,
    RssiReading,
)
from wifi_positioning.rssi_to_distance import RSSIConverter


@pytest.fixture
def sources():
    return [
        RadioSource("a", (0.0, 0.0), transmitted_power_dbm=20.0),
        RadioSource("b", (10.0, 0.0)),
        RadioSource("c", (0.0, 10.0), position_covariance=np.eye(2)),
    ]


def test_ranging_readings_in_fingerprint_order(sources):
    fingerprint = Fingerprint([RangingReading(sources[2], 3.0), RangingReading(sources[0], 1.0)])
    positions, distances = build_positions_and_distances(sources, fingerprint)

    np.testing.assert_array_equal(positions, [[0.0, 10.0], [0.0, 0.0]])
    np.testing.assert_array_equal(distances, [3.0, 1.0])


def test_rssi_needs_transmitted_power(sources):
    converter = RSSIConverter()
    rssi = converter.distance_to_rssi(sources[0], 4.0)
    fingerprint = Fingerprint([RssiReading(sources[0], rssi), RssiReading(sources[1], -50.0)])

    positions, distances = build_positions_and_distances(sources, fingerprint)
    assert positions.shape == (1, 2)
    assert distances[0] == pytest.approx(4.0)


def test_ranging_and_rssi_gives_two_samples(sources):
    converter = RSSIConverter()
    rssi = converter.distance_to_rssi(sources[0], 6.0)
    fingerprint = Fingerprint([RangingAndRssiReading(sources[0], 5.0, rssi)])

    data = build_lateration_data(sources, fingerprint)
    np.testing.assert_allclose(data.distances, [5.0, 6.0])
    assert data.sources == [sources[0], sources[0]]


def test_reading_types_filter(sources):
    fingerprint = Fingerprint([RangingReading(sources[1], 2.0), RangingAndRssiReading(sources[0], 5.0, -40.0)])
    data = build_lateration_data(sources, fingerprint, reading_types={ReadingType.RANGING})
    np.testing.assert_array_equal(data.distances, [2.0])


def test_standard_deviations(sources):
    fingerprint = Fingerprint([
        RangingReading(sources[1], 2.0, distance_std=0.3),
        RangingReading(sources[1], 2.0),
        RangingReading(sources[2], 2.0),
    ])
    _, _, stds = build_positions_distances_and_standard_deviations(sources, fingerprint, True, 0.5)
    # trace of the identity covariance of source c adds a variance of 2
    np.testing.assert_allclose(stds, [0.3, 0.5, 1.5])

    _, _, stds = build_positions_distances_and_standard_deviations(sources, fingerprint, False, 0.5)
    np.testing.assert_allclose(stds, [0.3, 0.5, 0.5])


def test_negative_fallback(sources):
    with pytest.raises(ValueError):
        build_positions_distances_and_standard_deviations(sources, Fingerprint(), False, -1.0)


def test_quality_scores_add_up(sources):
    fingerprint = Fingerprint([RangingReading(sources[0], 1.0), RangingReading(sources[2], 1.0)])
    *_, scores = build_positions_distances_standard_deviations_and_quality_scores(
        sources, fingerprint, [1.0, 2.0, 3.0], [0.5, 0.25], False, 0.0)
    np.testing.assert_allclose(scores, [1.5, 3.25])


def test_missing_inputs_give_empty_data(sources):
    assert len(build_lateration_data(None, Fingerprint())) == 0
    data = build_lateration_data(sources, None)
    assert data.positions.shape == (0, 2)
    assert len(data) == 0


def test_evenly_distributed_round_robin(sources):
    a, b, c = sources
    readings = [
        RangingReading(a, 1.0),
        RangingReading(a, 1.1),
        RangingReading(a, 1.2),
        RangingReading(b, 2.0),
        RangingReading(b, 2.1),
        RangingReading(c, 3.0),
    ]
    data = build_evenly_distributed_lateration_data(sources, Fingerprint(readings), [0.0, 2.0, 1.0])

    assert [source.id for source in data.sources] == ["b", "c", "a", "b", "a", "a"]
    np.testing.assert_array_equal(data.distances, [2.0, 3.0, 1.0, 2.1, 1.1, 1.2])
    assert np.all(np.diff(data.quality_scores) < 0.0)
    assert math.isclose(data.distance_standard_deviations[0], 0.0)
