"""
확정적 규칙 엔진
전환 확률만으로는 판단할 수 없는 문맥 의존 태그(O, G1)의 상태를 결정
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from ..exceptions import ConfigurationError
from ..utils.time_normalizer import TimeNormalizer, minutes_between
from .confidence_state import ActivityState
from .tag_catalog import is_meal, is_primary_gate, is_work_confirm
from .tag_sequence import TagEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleConfig:
    """규칙 설정"""
    # 전환 확률 채택 임계값 (초과해야 채택)
    acceptance_threshold: float = 0.5

    # O 태그 문맥 보정
    meeting_handoff_minutes: float = 5.0    # 식사 태그 직후 O -> 회의 연속
    pre_departure_minutes: float = 10.0     # O 직후 G1 -> 퇴근 준비

    # G1 모호성 해결
    gate_gap_minutes: float = 60.0
    entry_hours: Tuple[int, int] = (6, 10)  # 정수 시 기준, 양 끝 포함
    exit_hours: Tuple[int, int] = (18, 2)   # 자정을 넘는 구간

    # 신뢰도 설정
    critical_confidence: float = 0.98  # O 태그 업무 확정
    high_confidence: float = 0.95      # 회의 연속, 퇴근 준비, 식사
    medium_confidence: float = 0.90    # G1 경계/간격/O 인접 판단
    low_confidence: float = 0.70       # G1 시간대 판단

    def __post_init__(self):
        for name in ('acceptance_threshold', 'critical_confidence', 'high_confidence',
                     'medium_confidence', 'low_confidence'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")
        for name in ('meeting_handoff_minutes', 'pre_departure_minutes', 'gate_gap_minutes'):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")

    def replace(self, **changes) -> 'RuleConfig':
        return replace(self, **changes)


@dataclass(frozen=True)
class RuleDecision:
    """규칙 판단 결과"""
    state: ActivityState
    confidence: float
    rule: str


def _hour_in_range(hour: int, hours: Tuple[int, int]) -> bool:
    start, end = hours
    if start <= end:
        return start <= hour <= end
    return hour >= start or hour <= end


class DeterministicRuleEngine:
    """O 태그 문맥 보정과 G1 출입 판단"""

    def __init__(self, config: Optional[RuleConfig] = None,
                 time_normalizer: Optional[TimeNormalizer] = None):
        self.config = config or RuleConfig()
        self.time_normalizer = time_normalizer or TimeNormalizer()

    def refine_work_confirm(self, events: Sequence[TagEvent], index: int) -> RuleDecision:
        """
        O 태그의 문맥 보정

        - 직전 태그가 식사 그룹이고 간격이 5분 미만이면 회의 연속
        - 직후 태그가 G1이고 간격이 10분 미만이면 퇴근 준비
        - 그 외에는 업무
        """
        current = events[index]
        if not is_work_confirm(current.code):
            raise ValueError(f"O 태그가 아닙니다: {current.code}")

        if index > 0:
            prev = events[index - 1]
            if (is_meal(prev.code) and
                    minutes_between(prev.timestamp, current.timestamp) < self.config.meeting_handoff_minutes):
                return RuleDecision(ActivityState.MEETING, self.config.high_confidence, 'meeting_handoff')

        if index < len(events) - 1:
            nxt = events[index + 1]
            if (is_primary_gate(nxt.code) and
                    minutes_between(current.timestamp, nxt.timestamp) < self.config.pre_departure_minutes):
                return RuleDecision(ActivityState.PREPARATION, self.config.high_confidence, 'pre_departure')

        return RuleDecision(ActivityState.WORK, self.config.critical_confidence, 'work_confirm')

    def resolve_gate_ambiguity(self, events: Sequence[TagEvent], index: int,
                               has_work_confirm: Optional[bool] = None) -> RuleDecision:
        """
        G1(출근/퇴근 겸용) 태그의 출입 방향 판단

        시퀀스 경계 -> 앞뒤 간격 -> 인접 O 태그 -> 시간대 순서로 판단한다.
        하루 중 O 태그가 한 번도 없으면 출근/퇴근을 확정할 수 없으므로 이동으로 본다.

        Args:
            has_work_confirm: 시퀀스에 O 태그가 있는지 (None이면 events에서 계산)
        """
        current = events[index]
        if not is_primary_gate(current.code):
            raise ValueError(f"G1 태그가 아닙니다: {current.code}")
        if has_work_confirm is None:
            has_work_confirm = any(is_work_confirm(event.code) for event in events)
        if not has_work_confirm:
            return RuleDecision(ActivityState.MOVEMENT, self.config.low_confidence, 'gate_no_work_confirm')

        config = self.config
        prev = events[index - 1] if index > 0 else None
        nxt = events[index + 1] if index < len(events) - 1 else None

        if prev is None:
            return RuleDecision(ActivityState.WORK, config.medium_confidence, 'gate_entry')
        if nxt is None:
            return RuleDecision(ActivityState.OFF_WORK, config.medium_confidence, 'gate_exit')

        if minutes_between(prev.timestamp, current.timestamp) > config.gate_gap_minutes:
            return RuleDecision(ActivityState.WORK, config.medium_confidence, 'gate_entry')
        if minutes_between(current.timestamp, nxt.timestamp) > config.gate_gap_minutes:
            return RuleDecision(ActivityState.OFF_WORK, config.medium_confidence, 'gate_exit')

        if is_work_confirm(prev.code):
            return RuleDecision(ActivityState.OFF_WORK, config.medium_confidence, 'gate_exit')
        if is_work_confirm(nxt.code):
            return RuleDecision(ActivityState.WORK, config.medium_confidence, 'gate_entry')

        hour = self.time_normalizer.hour_of_day(current.timestamp)
        if _hour_in_range(hour, config.entry_hours):
            return RuleDecision(ActivityState.WORK, config.low_confidence, 'gate_hour')
        if _hour_in_range(hour, config.exit_hours):
            return RuleDecision(ActivityState.OFF_WORK, config.low_confidence, 'gate_hour')
        return RuleDecision(ActivityState.MOVEMENT, config.low_confidence, 'gate_hour')

    def event_decision(self, events: Sequence[TagEvent], index: int,
                       has_work_confirm: Optional[bool] = None) -> Optional[RuleDecision]:
        """
        강한 문맥 태그의 기본 상태

        O -> 업무, 식사 그룹 -> 식사, G1 -> 출입 판단. 그 외 태그는 None.
        """
        code = events[index].code
        if is_work_confirm(code):
            return RuleDecision(ActivityState.WORK, self.config.critical_confidence, 'work_confirm')
        if is_meal(code):
            return RuleDecision(ActivityState.MEAL, self.config.high_confidence, 'meal')
        if is_primary_gate(code):
            return self.resolve_gate_ambiguity(events, index, has_work_confirm)
        return None
