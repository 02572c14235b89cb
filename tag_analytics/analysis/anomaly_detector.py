"""
이상 패턴 감지 모듈

직원-일 태그 시퀀스에 대해 서로 독립적인 다섯 가지 감지 규칙을 실행한다.
각 규칙은 (시퀀스, 설정) -> 이상 패턴 목록 형태의 순수 함수이며,
한 규칙의 실패가 다른 규칙의 실행을 막지 않는다.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..config.anomaly_settings import AnomalyConfig, ConfigStore
from ..tag_system.tag_catalog import (
    is_gate, is_non_work, is_primary_gate, is_work_confirm,
)
from ..tag_system.tag_sequence import EventInput, TagEvent, TagSequence, ensure_sequence
from ..utils.time_normalizer import TimeNormalizer, minutes_between, seconds_between

logger = logging.getLogger(__name__)

TAILGATING_HIGH_SECONDS = 5
LONG_ABSENCE_HIGH_MINUTES = 360
MISSING_ENTRY_AFTER_HOUR = 10
MISSING_EXIT_FROM_HOUR = 18


class AnomalyType(Enum):
    """이상 패턴 유형"""
    TAILGATING = "TAILGATING"        # 꼬리물기
    LONG_ABSENCE = "LONG_ABSENCE"    # 장시간 외출
    NO_WORK = "NO_WORK"              # 업무 미수행 (O 태그 부재)
    SHIFT_OVERLAP = "SHIFT_OVERLAP"  # 교대 겹침
    MISSING_ENTRY = "MISSING_ENTRY"  # 출근 누락
    MISSING_EXIT = "MISSING_EXIT"    # 퇴근 누락


class Severity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class Anomaly:
    """감지된 이상 패턴"""
    id: str
    employee_id: Optional[str]
    date: date
    type: AnomalyType
    severity: Severity
    description: str
    start_time: datetime
    confidence: float
    end_time: Optional[datetime] = None
    duration_minutes: Optional[float] = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        """저장용 딕셔너리"""
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'date': self.date.isoformat(),
            'type': self.type.value,
            'severity': self.severity.value,
            'description': self.description,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'duration_minutes': self.duration_minutes,
            'confidence': self.confidence,
            'details': dict(self.details),
        }


@dataclass(frozen=True)
class DetectionResult:
    """감지 실행 결과 (실패한 규칙은 failures에 기록)"""
    anomalies: Tuple[Anomaly, ...] = ()
    failures: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


_default_normalizer = TimeNormalizer()


def _anomaly_id(prefix: str, sequence: TagSequence, n: int) -> str:
    work_date = sequence.work_date.strftime('%Y%m%d') if sequence.work_date else 'nodate'
    return f"{prefix}_{sequence.employee_id or 'unknown'}_{work_date}_{n}"


def _day_start(sequence: TagSequence, normalizer: TimeNormalizer) -> datetime:
    return normalizer.day_start(sequence.work_date, reference=sequence.events[0].timestamp)


def detect_tailgating(sequence: TagSequence, config: AnomalyConfig,
                      time_normalizer: Optional[TimeNormalizer] = None) -> List[Anomaly]:
    """꼬리물기 감지: 같은 게이트 태그가 임계값 이내 간격으로 연속"""
    if sequence.is_empty:
        return []

    anomalies = []
    threshold = config.tailgating_threshold_seconds

    gate_events = [(i, event) for i, event in enumerate(sequence.events) if is_gate(event.code)]
    for (prev_index, prev), (curr_index, curr) in zip(gate_events, gate_events[1:]):
        if prev.code is not curr.code:
            continue
        interval = seconds_between(prev.timestamp, curr.timestamp)
        if interval > threshold:
            continue

        anomalies.append(Anomaly(
            id=_anomaly_id('tailgate', sequence, len(anomalies) + 1),
            employee_id=sequence.employee_id,
            date=sequence.work_date,
            type=AnomalyType.TAILGATING,
            severity=Severity.HIGH if interval <= TAILGATING_HIGH_SECONDS else Severity.MEDIUM,
            description=f"{curr.code.value} 게이트 꼬리물기 감지 ({interval:g}초 간격)",
            start_time=prev.timestamp,
            end_time=curr.timestamp,
            duration_minutes=interval / 60,
            confidence=0.95,
            details={
                'gate': curr.code.value,
                'interval_seconds': interval,
                'threshold_seconds': threshold,
                'first_index': prev_index,
                'second_index': curr_index,
            },
        ))

    return anomalies


def detect_long_absence(sequence: TagSequence, config: AnomalyConfig,
                        time_normalizer: Optional[TimeNormalizer] = None) -> List[Anomaly]:
    """장시간 외출 감지: 연속된 비업무 태그 구간의 길이가 임계값 이상"""
    if sequence.is_empty:
        return []

    anomalies = []
    threshold = config.long_absence_threshold_minutes

    def flag(run: List[TagEvent], returned: Optional[TagEvent]):
        end_time = returned.timestamp if returned else run[-1].timestamp
        span = minutes_between(run[0].timestamp, end_time)
        if span < threshold:
            return
        hours, minutes = divmod(int(span), 60)
        anomalies.append(Anomaly(
            id=_anomaly_id('absence', sequence, len(anomalies) + 1),
            employee_id=sequence.employee_id,
            date=sequence.work_date,
            type=AnomalyType.LONG_ABSENCE,
            severity=Severity.HIGH if span >= LONG_ABSENCE_HIGH_MINUTES else Severity.MEDIUM,
            description=f"장시간 외출 감지 ({hours}시간 {minutes}분)",
            start_time=run[0].timestamp,
            end_time=end_time,
            duration_minutes=span,
            confidence=0.85,
            details={
                'tags': [event.code.value for event in run],
                'tag_count': len(run),
                'span_minutes': span,
                'threshold_minutes': threshold,
                'returned_with': returned.code.value if returned else None,
            },
        ))

    run: List[TagEvent] = []
    for event in sequence.events:
        if is_non_work(event.code):
            run.append(event)
        elif run:
            flag(run, event)
            run = []
    if run:
        flag(run, None)

    return anomalies


def detect_no_work(sequence: TagSequence, config: AnomalyConfig,
                   time_normalizer: Optional[TimeNormalizer] = None) -> List[Anomaly]:
    """업무 미수행 감지: O 태그가 없거나 O 태그 간격이 임계값 초과"""
    if sequence.is_empty:
        return []

    normalizer = time_normalizer or _default_normalizer
    o_events = [event for event in sequence.events if is_work_confirm(event.code)]

    if not o_events:
        return [Anomaly(
            id=_anomaly_id('nowork', sequence, 1),
            employee_id=sequence.employee_id,
            date=sequence.work_date,
            type=AnomalyType.NO_WORK,
            severity=Severity.CRITICAL,
            description="O 태그 완전 누락 - 업무 확인 불가",
            start_time=_day_start(sequence, normalizer),
            confidence=0.98,
            details={
                'tag_count': len(sequence.events),
                'tag_codes': [event.code.value for event in sequence.events],
            },
        )]

    anomalies = []
    threshold_minutes = config.no_work_threshold_hours * 60
    for prev, curr in zip(o_events, o_events[1:]):
        gap = minutes_between(prev.timestamp, curr.timestamp)
        if gap <= threshold_minutes:
            continue
        anomalies.append(Anomaly(
            id=_anomaly_id('nowork_gap', sequence, len(anomalies) + 1),
            employee_id=sequence.employee_id,
            date=sequence.work_date,
            type=AnomalyType.NO_WORK,
            severity=Severity.HIGH,
            description=f"{int(gap // 60)}시간 동안 O 태그 없음",
            start_time=prev.timestamp,
            end_time=curr.timestamp,
            duration_minutes=gap,
            confidence=0.90,
            details={
                'gap_minutes': gap,
                'threshold_minutes': threshold_minutes,
            },
        ))

    return anomalies


def detect_shift_overlap(sequence: TagSequence, config: AnomalyConfig,
                         time_normalizer: Optional[TimeNormalizer] = None) -> List[Anomaly]:
    """교대 겹침 감지: 교대 구간(기본 20:00-20:30)에 G1 태그가 2회 이상"""
    if sequence.is_empty:
        return []

    normalizer = time_normalizer or _default_normalizer
    window_start = int(config.shift_overlap_start_hour * 60)
    window_end = window_start + config.shift_overlap_minutes

    def in_window(event: TagEvent) -> bool:
        minute = normalizer.minute_of_day(event.timestamp)
        if window_end < 24 * 60:
            return window_start <= minute <= window_end
        return minute >= window_start or minute <= window_end - 24 * 60

    window_events = [event for event in sequence.events if in_window(event)]
    gate_events = [event for event in window_events if is_primary_gate(event.code)]
    if len(gate_events) < 2:
        return []

    end_minute = int(window_end) % (24 * 60)
    window_label = (f"{window_start // 60:02d}:{window_start % 60:02d}-"
                    f"{end_minute // 60:02d}:{end_minute % 60:02d}")
    return [Anomaly(
        id=_anomaly_id('overlap', sequence, 1),
        employee_id=sequence.employee_id,
        date=sequence.work_date,
        type=AnomalyType.SHIFT_OVERLAP,
        severity=Severity.MEDIUM,
        description=f"교대 시간 겹침 가능성 ({window_label} G1 {len(gate_events)}회)",
        start_time=window_events[0].timestamp,
        end_time=window_events[-1].timestamp,
        duration_minutes=minutes_between(window_events[0].timestamp, window_events[-1].timestamp),
        confidence=0.70,
        details={
            'tags': [event.code.value for event in window_events],
            'gate_count': len(gate_events),
            'gate_times': [event.timestamp.isoformat() for event in gate_events],
            'window': window_label,
        },
    )]


def detect_missing_tags(sequence: TagSequence, config: AnomalyConfig,
                        time_normalizer: Optional[TimeNormalizer] = None) -> List[Anomaly]:
    """출퇴근 태그 누락 감지"""
    if sequence.is_empty:
        return []

    normalizer = time_normalizer or _default_normalizer
    events = sequence.events
    anomalies = []

    first, last = events[0], events[-1]
    has_gate = any(is_primary_gate(event.code) for event in events)
    late_gate = (is_primary_gate(first.code) and
                 normalizer.hour_of_day(first.timestamp) > MISSING_ENTRY_AFTER_HOUR)

    if not has_gate or late_gate:
        anomalies.append(Anomaly(
            id=_anomaly_id('missing_entry', sequence, 1),
            employee_id=sequence.employee_id,
            date=sequence.work_date,
            type=AnomalyType.MISSING_ENTRY,
            severity=Severity.HIGH,
            description="출근 태그 누락" if not has_gate else "출근 태그 지연 (10시 이후 첫 G1)",
            start_time=_day_start(sequence, normalizer),
            confidence=0.85,
            details={
                'reason': 'no_primary_gate' if not has_gate else 'late_first_gate',
                'first_tag': first.code.value,
                'first_time': first.timestamp.isoformat(),
            },
        ))

    if (not is_primary_gate(last.code) and
            normalizer.hour_of_day(last.timestamp) >= MISSING_EXIT_FROM_HOUR):
        anomalies.append(Anomaly(
            id=_anomaly_id('missing_exit', sequence, 1),
            employee_id=sequence.employee_id,
            date=sequence.work_date,
            type=AnomalyType.MISSING_EXIT,
            severity=Severity.MEDIUM,
            description="퇴근 태그 누락",
            start_time=last.timestamp,
            confidence=0.80,
            details={
                'last_tag': last.code.value,
                'last_time': last.timestamp.isoformat(),
            },
        ))

    return anomalies


DetectionPass = Callable[[TagSequence, AnomalyConfig, Optional[TimeNormalizer]], List[Anomaly]]

DETECTION_PASSES: Tuple[Tuple[str, DetectionPass], ...] = (
    ('tailgating', detect_tailgating),
    ('long_absence', detect_long_absence),
    ('no_work', detect_no_work),
    ('shift_overlap', detect_shift_overlap),
    ('missing_tags', detect_missing_tags),
)


class AnomalyDetector:
    """이상 패턴 감지기

    config에 ConfigStore를 넘기면 실행할 때마다 현재 스냅샷을 한 번 읽는다.
    """

    def __init__(self, config: Union[AnomalyConfig, ConfigStore, None] = None,
                 time_normalizer: Optional[TimeNormalizer] = None,
                 passes: Sequence[Tuple[str, DetectionPass]] = DETECTION_PASSES):
        self._config = config or AnomalyConfig()
        self.time_normalizer = time_normalizer or _default_normalizer
        self.passes = tuple(passes)

    @property
    def config(self) -> AnomalyConfig:
        if isinstance(self._config, ConfigStore):
            return self._config.snapshot()
        return self._config

    def run(self, sequence: Union[TagSequence, Iterable[EventInput]]) -> DetectionResult:
        """모든 감지 규칙 실행 (실패한 규칙은 기록 후 계속 진행)"""
        sequence = ensure_sequence(sequence)
        if sequence.is_empty:
            return DetectionResult()

        config = self.config
        anomalies: List[Anomaly] = []
        failures: Dict[str, str] = {}

        for name, detect in self.passes:
            try:
                found = detect(sequence, config, self.time_normalizer)
            except Exception as e:
                logger.exception(f"이상 감지 규칙 실패: {name} ({sequence.employee_id} {sequence.work_date})")
                failures[name] = f"{type(e).__name__}: {e}"
                continue
            anomalies.extend(found)

        if anomalies:
            logger.debug(f"{sequence.employee_id} {sequence.work_date}: 이상 패턴 {len(anomalies)}건")
        return DetectionResult(anomalies=tuple(anomalies), failures=failures)

    def detect(self, sequence: Union[TagSequence, Iterable[EventInput]]) -> List[Anomaly]:
        return list(self.run(sequence).anomalies)


def detect_anomalies(sequence: Union[TagSequence, Iterable[EventInput]],
                     config: Optional[AnomalyConfig] = None) -> List[Anomaly]:
    """기본 감지기로 이상 패턴 감지"""
    return AnomalyDetector(config).detect(sequence)


def count_by_severity(anomalies: Iterable[Anomaly]) -> Dict[str, int]:
    """심각도별 건수 요약"""
    summary = {'total': 0, 'critical': 0, 'high': 0, 'medium': 0, 'low': 0}
    for anomaly in anomalies:
        summary['total'] += 1
        summary[anomaly.severity.value.lower()] += 1
    return summary
