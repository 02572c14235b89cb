from datetime import datetime

import pytest

from conftest import at, make_sequence
from tag_analytics.analysis import (
    DETECTION_PASSES, AnomalyDetector, AnomalyType, Severity, count_by_severity,
    detect_anomalies, detect_long_absence, detect_missing_tags, detect_no_work,
    detect_shift_overlap, detect_tailgating,
)
from tag_analytics.config import AnomalyConfig, ConfigStore
from tag_analytics.tag_system import TagSequence

CONFIG = AnomalyConfig()


def types(anomalies):
    return [anomaly.type for anomaly in anomalies]


def test_scenario_a_has_no_anomalies(scenario_a):
    result = AnomalyDetector().run(scenario_a)
    assert result.anomalies == ()
    assert result.ok


def test_empty_sequence_yields_no_anomalies():
    assert detect_anomalies([]) == []


@pytest.mark.parametrize("detect", [detect for _, detect in DETECTION_PASSES],
                         ids=[name for name, _ in DETECTION_PASSES])
def test_each_pass_accepts_empty_sequence(detect):
    assert detect(TagSequence('E1', None), CONFIG) == []


class TestTailgating:

    @pytest.mark.parametrize("second, severity", [
        ('08:00:00', Severity.HIGH),
        ('08:00:03', Severity.HIGH),
        ('08:00:05', Severity.HIGH),
        ('08:00:07', Severity.MEDIUM),
        ('08:00:10', Severity.MEDIUM),
    ])
    def test_identical_gates_within_threshold(self, second, severity):
        anomalies = detect_tailgating(make_sequence(('G1', '08:00:00'), ('G1', second)), CONFIG)

        assert len(anomalies) == 1
        assert anomalies[0].severity is severity
        assert anomalies[0].confidence == 0.95
        assert anomalies[0].details['gate'] == 'G1'

    def test_gap_above_threshold_is_not_flagged(self):
        assert detect_tailgating(make_sequence(('G1', '08:00:00'), ('G1', '08:00:11')), CONFIG) == []

    def test_different_gates_are_not_flagged(self):
        assert detect_tailgating(make_sequence(('G1', '08:00:00'), ('G2', '08:00:02')), CONFIG) == []

    def test_non_gate_events_between_gates_are_ignored(self):
        sequence = make_sequence(('G3', '09:00:00'), ('T1', '09:00:02'), ('G3', '09:00:04'))
        anomalies = detect_tailgating(sequence, CONFIG)

        assert len(anomalies) == 1
        assert anomalies[0].details['interval_seconds'] == 4
        assert anomalies[0].details['first_index'] == 0
        assert anomalies[0].details['second_index'] == 2

    def test_threshold_is_configurable(self):
        sequence = make_sequence(('G1', '08:00:00'), ('G1', '08:00:08'))
        assert detect_tailgating(sequence, CONFIG.replace(tailgating_threshold_seconds=5)) == []

    def test_scenario_c(self):
        result = AnomalyDetector().run(make_sequence(('G1', '08:00:00'), ('G1', '08:00:03')))
        tailgating = [a for a in result.anomalies if a.type is AnomalyType.TAILGATING]

        assert len(tailgating) == 1
        assert tailgating[0].severity is Severity.HIGH
        assert tailgating[0].confidence == 0.95
        assert tailgating[0].start_time == at('08:00:00')
        assert tailgating[0].end_time == at('08:00:03')


class TestLongAbsence:

    def test_run_of_non_work_tags_over_threshold(self):
        sequence = make_sequence(('O', '08:00'), ('N1', '09:00'), ('N2', '11:00'),
                                 ('N1', '13:30'), ('O', '14:00'))
        anomalies = detect_long_absence(sequence, CONFIG)

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.severity is Severity.MEDIUM
        assert anomaly.confidence == 0.85
        assert anomaly.duration_minutes == 300
        assert anomaly.start_time == at('09:00')
        assert anomaly.end_time == at('14:00')
        assert anomaly.details['tags'] == ['N1', 'N2', 'N1']
        assert anomaly.details['returned_with'] == 'O'

    def test_six_hours_or_more_is_high(self):
        sequence = make_sequence(('N1', '08:00'), ('O', '14:30'))
        assert detect_long_absence(sequence, CONFIG)[0].severity is Severity.HIGH

    def test_short_absence_is_not_flagged(self):
        sequence = make_sequence(('N1', '09:00'), ('N2', '11:00'), ('O', '12:20'))
        assert detect_long_absence(sequence, CONFIG) == []

    def test_trailing_run_is_measured_to_its_last_tag(self):
        sequence = make_sequence(('O', '08:00'), ('N1', '09:00'), ('N2', '14:00'))
        anomalies = detect_long_absence(sequence, CONFIG)

        assert len(anomalies) == 1
        assert anomalies[0].end_time == at('14:00')
        assert anomalies[0].details['returned_with'] is None


class TestNoWork:

    def test_missing_work_confirm_is_critical(self):
        sequence = make_sequence(('G1', '08:00'), ('T1', '12:00'), ('G1', '18:00'))
        anomalies = detect_no_work(sequence, CONFIG)

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.severity is Severity.CRITICAL
        assert anomaly.confidence == 0.98
        assert anomaly.end_time is None
        assert anomaly.start_time == datetime(2025, 1, 21, 0, 0)
        assert anomaly.details['tag_codes'] == ['G1', 'T1', 'G1']

    def test_long_gap_between_work_confirms(self):
        sequence = make_sequence(('O', '06:00'), ('O', '14:30'), ('O', '15:00'))
        anomalies = detect_no_work(sequence, CONFIG)

        assert len(anomalies) == 1
        assert anomalies[0].severity is Severity.HIGH
        assert anomalies[0].confidence == 0.90
        assert anomalies[0].start_time == at('06:00')
        assert anomalies[0].end_time == at('14:30')
        assert anomalies[0].duration_minutes == 510

    def test_gap_equal_to_threshold_is_not_flagged(self):
        assert detect_no_work(make_sequence(('O', '06:00'), ('O', '14:00')), CONFIG) == []

    def test_scenario_b(self):
        sequence = make_sequence(('T1', '09:00'), ('T2', '10:00'), ('T3', '11:00'),
                                 ('N1', '14:00'), ('N1', '14:30'))
        anomalies = detect_anomalies(sequence)
        no_work = [a for a in anomalies if a.type is AnomalyType.NO_WORK]

        assert len(no_work) == 1
        assert no_work[0].severity is Severity.CRITICAL
        assert no_work[0].end_time is None


class TestShiftOverlap:

    def test_two_primary_gates_in_window(self):
        sequence = make_sequence(('O', '19:50'), ('G1', '20:05'), ('T1', '20:10'), ('G1', '20:25'))
        anomalies = detect_shift_overlap(sequence, CONFIG)

        assert len(anomalies) == 1
        anomaly = anomalies[0]
        assert anomaly.severity is Severity.MEDIUM
        assert anomaly.confidence == 0.70
        assert anomaly.start_time == at('20:05')
        assert anomaly.end_time == at('20:25')
        assert anomaly.details['tags'] == ['G1', 'T1', 'G1']
        assert anomaly.details['window'] == '20:00-20:30'

    def test_window_end_is_inclusive_to_the_minute(self):
        sequence = make_sequence(('G1', '20:00'), ('G1', '20:30:59'))
        assert len(detect_shift_overlap(sequence, CONFIG)) == 1

    def test_gate_outside_window_is_not_counted(self):
        sequence = make_sequence(('G1', '20:05'), ('G1', '20:31'))
        assert detect_shift_overlap(sequence, CONFIG) == []

    def test_single_gate_is_not_flagged(self):
        sequence = make_sequence(('G1', '20:05'), ('O', '20:10'), ('G2', '20:15'))
        assert detect_shift_overlap(sequence, CONFIG) == []


class TestMissingTags:

    def test_no_primary_gate_is_missing_entry(self):
        anomalies = detect_missing_tags(make_sequence(('O', '08:00'), ('T1', '12:00')), CONFIG)

        assert types(anomalies) == [AnomalyType.MISSING_ENTRY]
        assert anomalies[0].severity is Severity.HIGH
        assert anomalies[0].confidence == 0.85
        assert anomalies[0].details['reason'] == 'no_primary_gate'

    def test_late_first_gate_is_missing_entry(self):
        anomalies = detect_missing_tags(make_sequence(('G1', '11:00'), ('O', '11:10')), CONFIG)
        assert types(anomalies) == [AnomalyType.MISSING_ENTRY]
        assert anomalies[0].details['reason'] == 'late_first_gate'

    def test_first_gate_within_ten_o_clock_hour_is_on_time(self):
        assert detect_missing_tags(make_sequence(('G1', '10:30'), ('O', '10:40')), CONFIG) == []

    def test_evening_last_event_without_gate_is_missing_exit(self):
        anomalies = detect_missing_tags(make_sequence(('G1', '08:00'), ('O', '19:00')), CONFIG)

        assert types(anomalies) == [AnomalyType.MISSING_EXIT]
        assert anomalies[0].severity is Severity.MEDIUM
        assert anomalies[0].confidence == 0.80
        assert anomalies[0].start_time == at('19:00')

    def test_last_event_before_evening_is_not_flagged(self):
        assert detect_missing_tags(make_sequence(('G1', '08:00'), ('O', '17:59')), CONFIG) == []


def test_failing_pass_does_not_stop_other_passes():
    def broken(sequence, config, time_normalizer=None):
        raise RuntimeError("boom")

    detector = AnomalyDetector(passes=(('broken', broken),) + DETECTION_PASSES)
    result = detector.run(make_sequence(('G1', '08:00:00'), ('G1', '08:00:03')))

    assert result.failures == {'broken': 'RuntimeError: boom'}
    assert not result.ok
    assert AnomalyType.TAILGATING in types(result.anomalies)
    assert AnomalyType.NO_WORK in types(result.anomalies)


def test_detection_is_idempotent():
    sequence = make_sequence(('G1', '08:00:00'), ('G1', '08:00:03'), ('N1', '09:00'),
                             ('N2', '14:00'), ('T1', '19:00'))
    first = AnomalyDetector().detect(sequence)
    second = AnomalyDetector().detect(sequence)

    assert first == second
    assert [a.to_dict() for a in first] == [a.to_dict() for a in second]
    assert len({a.id for a in first}) == len(first)


def test_detector_reads_current_snapshot_from_store():
    store = ConfigStore()
    detector = AnomalyDetector(store)
    sequence = make_sequence(('G1', '08:00:00'), ('G1', '08:00:08'), ('O', '09:00'))

    assert types(detector.detect(sequence)) == [AnomalyType.TAILGATING]
    store.update(tailgating_threshold_seconds=5)
    assert detector.detect(sequence) == []


def test_count_by_severity():
    sequence = make_sequence(('G1', '08:00:00'), ('G1', '08:00:03'), ('T1', '19:00'))
    summary = count_by_severity(detect_anomalies(sequence))

    # TAILGATING(HIGH), NO_WORK(CRITICAL), MISSING_EXIT(MEDIUM)
    assert summary == {'total': 3, 'critical': 1, 'high': 1, 'medium': 1, 'low': 0}
