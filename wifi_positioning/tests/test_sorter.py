import pytest

from wifi_positioning.radio import (
    Fingerprint,
    RangingAndRssiReading,
    RangingReading,
    ReadingType,
    RssiReading,
)
from wifi_positioning.sorter import ReadingSorter

from .conftest import make_sources


@pytest.fixture
def sources():
    return make_sources([(0.0, 0.0), (10.0, 0.0), (0.0, 10.0)])


@pytest.fixture
def readings(sources):
    a, b, c = sources
    return [
        RssiReading(a, -60.0),
        RangingReading(a, 5.0),
        RangingAndRssiReading(a, 5.1, -61.0),
        RangingReading(b, 8.0),
        RangingReading(b, 8.1),
        RssiReading(c, -70.0),
    ]


def test_sorted_is_none_before_sort(sources, readings):
    sorter = ReadingSorter(sources, Fingerprint(readings))
    assert sorter.sorted_sources_and_readings is None


def test_equal_scores_keep_input_order(sources, readings):
    sorter = ReadingSorter(sources, Fingerprint(readings), [1.0, 1.0, 1.0], [0.5] * len(readings))
    result = sorter.sort()

    assert [entry.source for entry in result] == sources
    assert [item.reading for item in result[0].readings_with_quality_scores] == \
        [readings[1], readings[2], readings[0]]
    assert [item.reading for item in result[1].readings_with_quality_scores] == [readings[3], readings[4]]
    assert sorter.sorted_sources_and_readings is result


def test_sources_and_readings_sorted_by_quality(sources, readings):
    source_scores = [0.1, 0.9, 0.5]
    reading_scores = [0.3, 0.1, 0.2, 0.4, 0.8, 0.0]
    result = ReadingSorter(sources, Fingerprint(readings), source_scores, reading_scores).sort()

    assert [entry.source.id for entry in result] == ["ap1", "ap2", "ap0"]
    assert [entry.quality_score for entry in result] == [0.9, 0.5, 0.1]
    assert [item.reading for item in result[0].readings_with_quality_scores] == [readings[4], readings[3]]

    for entry in result:
        items = entry.readings_with_quality_scores
        for previous, current in zip(items, items[1:]):
            assert previous.reading.reading_type <= current.reading.reading_type
            if previous.reading.reading_type == current.reading.reading_type:
                assert previous.quality_score >= current.quality_score


def test_reading_type_priority(sources, readings):
    result = ReadingSorter(sources, Fingerprint(readings)).sort()
    types = [item.reading.reading_type for item in result[0].readings_with_quality_scores]
    assert types == [ReadingType.RANGING, ReadingType.RANGING_AND_RSSI, ReadingType.RSSI]


def test_missing_scores_count_as_zero(sources, readings):
    result = ReadingSorter(sources, Fingerprint(readings), source_quality_scores=[-1.0, 0.0, 1.0]).sort()
    assert [entry.source.id for entry in result] == ["ap2", "ap1", "ap0"]
    assert all(item.quality_score == 0.0 for entry in result for item in entry.readings_with_quality_scores)


def test_readings_of_unknown_sources_are_skipped(sources):
    other = make_sources([(5.0, 5.0)], prefix="other")[0]
    fingerprint = Fingerprint([RangingReading(other, 1.0), RangingReading(sources[0], 2.0)])
    result = ReadingSorter(sources, fingerprint).sort()

    assert [entry.source for entry in result] == list(sources)
    assert len(result[0].readings_with_quality_scores) == 1
    assert all(not entry.readings_with_quality_scores for entry in result[1:])


def test_score_length_mismatch(sources, readings):
    with pytest.raises(ValueError):
        ReadingSorter(sources, Fingerprint(readings), source_quality_scores=[1.0, 2.0])
    with pytest.raises(ValueError):
        ReadingSorter(sources, Fingerprint(readings), fingerprint_readings_quality_scores=[1.0])


def test_sources_without_readings_are_kept(sources):
    a, b, c = sources
    fingerprint = Fingerprint([RangingReading(a, 5.0), RangingReading(c, 7.0)])
    result = ReadingSorter(sources, fingerprint, source_quality_scores=[1.0, 3.0, 2.0]).sort()

    assert [entry.source for entry in result] == [b, c, a]
    assert result[0].quality_score == 3.0
    assert result[0].readings_with_quality_scores == []
    assert [len(entry.readings_with_quality_scores) for entry in result] == [0, 1, 1]
