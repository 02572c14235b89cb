from datetime import date, datetime, timezone

import pytest

from conftest import at, make_events
from tag_analytics.exceptions import InvalidTagCodeError, SequenceError, TimestampError
from tag_analytics.tag_system import TagCode, build_sequence


def test_events_are_sorted_and_ties_keep_input_order():
    events = make_events(('O', '09:00'), ('G2', '08:00'), ('G3', '08:00'), ('G1', '07:00'))
    sequence = build_sequence(events)

    assert sequence.codes() == [TagCode.G1, TagCode.G2, TagCode.G3, TagCode.O]
    assert sequence.employee_id == 'E001'
    assert sequence.work_date == date(2025, 1, 21)


def test_mapping_input_with_string_timestamps():
    sequence = build_sequence([
        {'employee_id': 1001, 'tag_code': 'o', 'timestamp': '2025-01-21 09:00:00'},
        {'employee_id': 1001, 'code': 'G1', 'timestamp': '2025-01-21 08:00:00'},
    ])

    assert sequence.employee_id == '1001'
    assert sequence.codes() == [TagCode.G1, TagCode.O]
    assert sequence[0].timestamp == at('08:00')


def test_invalid_code_raises_by_default():
    with pytest.raises(InvalidTagCodeError):
        build_sequence([{'employee_id': 'E1', 'tag_code': 'ZZ', 'timestamp': at('08:00')}])


def test_invalid_code_is_recorded_when_skipped():
    sequence = build_sequence([
        {'employee_id': 'E1', 'tag_code': 'G1', 'timestamp': at('08:00')},
        {'employee_id': 'E1', 'tag_code': 'ZZ', 'timestamp': at('08:30')},
    ], on_invalid='skip')

    assert len(sequence) == 1
    assert len(sequence.rejected) == 1
    rejected = sequence.rejected[0]
    assert rejected.index == 1
    assert rejected.raw_code == 'ZZ'


@pytest.mark.parametrize("bad", [None, 'not a timestamp', float('nan')])
def test_unparseable_timestamp_is_a_data_error(bad):
    with pytest.raises(TimestampError):
        build_sequence([{'employee_id': 'E1', 'tag_code': 'G1', 'timestamp': bad}])


def test_strict_order_rejects_out_of_order_input():
    events = make_events(('O', '09:00'), ('G1', '08:00'))
    with pytest.raises(TimestampError):
        build_sequence(events, strict_order=True)


def test_mixed_naive_and_aware_timestamps():
    events = [
        {'employee_id': 'E1', 'tag_code': 'G1', 'timestamp': at('08:00')},
        {'employee_id': 'E1', 'tag_code': 'O', 'timestamp': datetime(2025, 1, 21, 9, tzinfo=timezone.utc)},
    ]
    with pytest.raises(TimestampError):
        build_sequence(events)


def test_events_of_several_employees_are_rejected():
    events = make_events(('G1', '08:00')) + make_events(('O', '09:00'), employee_id='E002')
    with pytest.raises(SequenceError):
        build_sequence(events)
    with pytest.raises(SequenceError):
        build_sequence(make_events(('G1', '08:00')), employee_id='E999')


def test_empty_input_builds_empty_sequence():
    sequence = build_sequence([], employee_id='E1')
    assert sequence.is_empty
    assert sequence.work_date is None
