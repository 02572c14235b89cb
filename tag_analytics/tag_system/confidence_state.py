"""
활동 상태 및 신뢰도 기반 구간 표현
태그 구간마다 판단된 상태, 신뢰도, 적용 규칙을 함께 기록
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from .tag_catalog import TagCode


class ActivityState(Enum):
    """활동 상태 정의"""
    WORK = "업무"
    PREPARATION = "준비"
    MEETING = "회의"
    MEAL = "식사"
    REST = "휴식"
    MOVEMENT = "이동"
    ABSENCE = "부재"
    OFF_WORK = "퇴근"
    HANDOVER = "인수인계"
    LONG_ABSENCE = "장기외출"
    UNKNOWN = "미분류"  # 기본값, 오류 아님


@dataclass(frozen=True)
class ActivitySegment:
    """연속된 두 태그 사이 구간의 활동 상태"""
    state: ActivityState
    start_time: datetime
    end_time: datetime
    from_tag: TagCode
    to_tag: TagCode
    confidence: float  # 0.0 ~ 1.0
    rule: str          # 상태를 결정한 규칙 이름

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be between 0 and 1, got {self.confidence}")

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60

    @property
    def is_confident(self) -> bool:
        """높은 신뢰도 여부 (기본 임계값: 0.8)"""
        return self.confidence >= 0.8

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {
            'state': self.state.name,
            'state_label': self.state.value,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'from_tag': self.from_tag.value,
            'to_tag': self.to_tag.value,
            'duration_minutes': self.duration_minutes,
            'confidence': self.confidence,
            'rule': self.rule,
        }
