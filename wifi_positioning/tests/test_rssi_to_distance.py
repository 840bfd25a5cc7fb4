import math

import numpy as np
import pytest

from wifi_positioning.radio import RadioSource
from wifi_positioning.rssi_to_distance import RSSIConverter, dbm_to_power, power_to_dbm


@pytest.fixture
def source():
    return RadioSource("ap", (0.0, 0.0), transmitted_power_dbm=20.0, path_loss_exponent=2.0)


def test_dbm_conversions():
    assert dbm_to_power(0.0) == pytest.approx(1.0)
    assert dbm_to_power(30.0) == pytest.approx(1000.0)
    assert power_to_dbm(100.0) == pytest.approx(20.0)


def test_distance_from_expected_rssi(source):
    converter = RSSIConverter()
    rssi = converter.distance_to_rssi(source, 12.5)
    assert converter.rssi_to_distance(source, rssi) == pytest.approx(12.5)


def test_free_space_loss_at_one_meter(source):
    # free space loss at 1 m and 2.4 GHz is about 40 dB
    rssi = RSSIConverter().distance_to_rssi(source, 1.0)
    assert rssi == pytest.approx(20.0 - 40.05, abs=0.01)


def test_minimum_distance(source):
    converter = RSSIConverter(min_distance=0.5)
    assert converter.rssi_to_distance(source, 10.0) == 0.5


def test_standard_deviation_propagation(source):
    converter = RSSIConverter()
    assert converter.distance_standard_deviation(source, -50.0) is None

    distance = converter.rssi_to_distance(source, -50.0)
    std = converter.distance_standard_deviation(source, -50.0, rssi_std=2.0)
    assert std == pytest.approx(distance * math.log(10.0) / 20.0 * 2.0)


def test_source_without_power():
    source = RadioSource("ap", (0.0, 0.0))
    with pytest.raises(ValueError):
        RSSIConverter().rssi_to_distance(source, -50.0)


def test_simulated_rssi_shadowing(source):
    converter = RSSIConverter()
    exact = converter.simulate_rssi(source, (3.0, 4.0))
    assert exact == pytest.approx(converter.distance_to_rssi(source, 5.0))

    rng = np.random.default_rng(1)
    values = [converter.simulate_rssi(source, (3.0, 4.0), 4.0, rng) for _ in range(200)]
    assert np.std(values) == pytest.approx(4.0, rel=0.2)
