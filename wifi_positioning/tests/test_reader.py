import numpy as np
import pytest

from wifi_positioning.radio import ReadingType
from wifi_positioning.reader import FingerprintReader

SOURCES_CSV = """id,x,y,tx_power,tx_power_std,quality
ap0,0.0,0.0,20.0,0.5,1.0
ap1,10.0,0.0,,,2.0
ap2,0.0,10.0,18.0,,
"""

READINGS_CSV = """source_id,type,distance,distance_std,rssi,rssi_std,quality
ap0,ranging,5.0,0.1,,,0.5
ap1,ranging_and_rssi,8.06,,-60.0,2.0,0.7
ap2,rssi,,,-55.0,,
ghost,ranging,3.0,,,,0.1
"""


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "sources.csv").write_text(SOURCES_CSV)
    (tmp_path / "readings.csv").write_text(READINGS_CSV)
    return tmp_path


def test_load_sources(data_dir):
    reader = FingerprintReader(str(data_dir))
    sources = reader.load_sources()

    assert [source.id for source in sources] == ["ap0", "ap1", "ap2"]
    assert sources[1].position == (10.0, 0.0)
    assert sources[0].transmitted_power_dbm == 20.0
    assert sources[0].transmitted_power_std_dbm == 0.5
    assert not sources[1].has_power
    assert sources[2].path_loss_exponent == 2.0
    np.testing.assert_array_equal(reader.source_quality_scores, [1.0, 2.0, 0.0])


def test_load_fingerprint(data_dir):
    reader = FingerprintReader(str(data_dir))
    sources, fingerprint = reader.load_all_data()

    types = [reading.reading_type for reading in fingerprint.readings]
    assert types == [ReadingType.RANGING, ReadingType.RANGING_AND_RSSI, ReadingType.RSSI, ReadingType.RANGING]
    assert fingerprint.readings[0].source is sources[0]
    assert fingerprint.readings[0].distance_std == 0.1
    assert fingerprint.readings[1].rssi_std == 2.0
    assert fingerprint.readings[1].distance_std is None
    assert fingerprint.readings[3].source.id == "ghost"
    np.testing.assert_array_equal(reader.readings_quality_scores, [0.5, 0.7, 0.0, 0.1])


def test_three_dimensional_sources(tmp_path):
    (tmp_path / "sources.csv").write_text("id,x,y,z\na,0,0,0\nb,1,0,2\n")
    sources = FingerprintReader(str(tmp_path)).load_sources()
    assert sources[1].position == (1.0, 0.0, 2.0)
    assert sources[0].dimensions == 3


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FingerprintReader(str(tmp_path)).load_sources()


def test_missing_columns(tmp_path):
    (tmp_path / "sources.csv").write_text("id,x\na,0\n")
    with pytest.raises(ValueError):
        FingerprintReader(str(tmp_path)).load_sources()


def test_unknown_reading_type(data_dir):
    (data_dir / "readings.csv").write_text("source_id,type,distance\nap0,sonar,1.0\n")
    reader = FingerprintReader(str(data_dir))
    reader.load_sources()
    with pytest.raises(ValueError):
        reader.load_fingerprint()
