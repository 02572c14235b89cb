"""
전환 확률 모델
(이전 태그, 현재 태그) 쌍에 대한 활동 상태와 기본 확률, 시간대별 가중치를 관리
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..exceptions import ConfigurationError
from ..utils.time_normalizer import TimeNormalizer, hour_in_window
from .confidence_state import ActivityState
from .tag_catalog import TagCode, parse_tag_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionRule:
    """전환 규칙"""
    from_tag: TagCode
    to_tag: TagCode
    state: ActivityState
    base_probability: float

    def __post_init__(self):
        # 문자열 코드는 생성 시점에 검증 (조회 시점이 아님)
        object.__setattr__(self, 'from_tag', parse_tag_code(self.from_tag))
        object.__setattr__(self, 'to_tag', parse_tag_code(self.to_tag))
        if not isinstance(self.state, ActivityState):
            object.__setattr__(self, 'state', _parse_state(self.state))
        if not 0.0 <= self.base_probability <= 1.0:
            raise ConfigurationError(
                f"base_probability must be between 0 and 1, got {self.base_probability}"
            )

    @property
    def key(self) -> Tuple[TagCode, TagCode]:
        return self.from_tag, self.to_tag

    def to_dict(self) -> Dict[str, Any]:
        return {
            'from_tag': self.from_tag.value,
            'to_tag': self.to_tag.value,
            'state': self.state.name,
            'base_probability': self.base_probability,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransitionRule':
        return cls(
            from_tag=data['from_tag'],
            to_tag=data['to_tag'],
            state=data['state'],
            base_probability=float(data['base_probability']),
        )


@dataclass(frozen=True)
class TimeWeight:
    """도착 태그의 시간대별 확률 가중치"""
    tag_code: TagCode
    start_hour: float
    end_hour: float
    weight: float

    def __post_init__(self):
        object.__setattr__(self, 'tag_code', parse_tag_code(self.tag_code))
        for hour in (self.start_hour, self.end_hour):
            if not 0.0 <= hour <= 24.0:
                raise ConfigurationError(f"hour must be between 0 and 24, got {hour}")
        if self.weight < 0:
            raise ConfigurationError(f"weight must not be negative, got {self.weight}")

    def contains(self, hour: float) -> bool:
        """자정을 넘는 구간(start > end)도 처리"""
        return hour_in_window(hour, self.start_hour, self.end_hour)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tag_code': self.tag_code.value,
            'start_hour': self.start_hour,
            'end_hour': self.end_hour,
            'weight': self.weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimeWeight':
        return cls(
            tag_code=data['tag_code'],
            start_hour=float(data['start_hour']),
            end_hour=float(data['end_hour']),
            weight=float(data['weight']),
        )


@dataclass(frozen=True)
class TransitionMatch:
    """전환 조회 결과"""
    state: ActivityState
    probability: float
    rule: Optional[TransitionRule] = None
    time_weight: float = 1.0

    @property
    def matched(self) -> bool:
        return self.rule is not None


NO_MATCH = TransitionMatch(state=ActivityState.UNKNOWN, probability=0.0)


def _parse_state(value: Union[str, ActivityState]) -> ActivityState:
    if isinstance(value, ActivityState):
        return value
    try:
        return ActivityState[value]
    except KeyError:
        pass
    try:
        return ActivityState(value)
    except ValueError:
        raise ConfigurationError(f"알 수 없는 활동 상태: {value!r}") from None


def _rule(from_tag: str, to_tag: str, state: ActivityState, probability: float) -> TransitionRule:
    return TransitionRule(from_tag, to_tag, state, probability)


# 기본 전환 규칙 (선언 순서가 동률 처리 순서)
DEFAULT_TRANSITION_RULES: Tuple[TransitionRule, ...] = (
    _rule('G1', 'O', ActivityState.WORK, 0.95),        # 출근 후 업무
    _rule('G1', 'T1', ActivityState.MEAL, 0.85),       # 출근 후 식당
    _rule('G1', 'N1', ActivityState.MOVEMENT, 0.7),
    _rule('O', 'T1', ActivityState.MEAL, 0.9),
    _rule('O', 'T2', ActivityState.REST, 0.8),         # 화장실
    _rule('O', 'M1', ActivityState.MEETING, 0.95),
    _rule('O', 'M2', ActivityState.MEETING, 0.95),
    _rule('T1', 'O', ActivityState.WORK, 0.85),
    _rule('M1', 'O', ActivityState.WORK, 0.9),
    _rule('M2', 'O', ActivityState.WORK, 0.9),
    _rule('O', 'G1', ActivityState.OFF_WORK, 0.95),    # 업무 후 퇴근
    _rule('N2', 'O', ActivityState.WORK, 0.75),
    _rule('N1', 'N1', ActivityState.MOVEMENT, 0.5),
    _rule('N1', 'N2', ActivityState.REST, 0.6),
)

# 시간대별 가중치
DEFAULT_TIME_WEIGHTS: Tuple[TimeWeight, ...] = (
    TimeWeight('T1', 6.5, 9.0, 1.5),      # 조식 06:30-09:00
    TimeWeight('T1', 11.33, 13.33, 1.8),  # 중식 11:20-13:20
    TimeWeight('T1', 17.0, 20.0, 1.6),    # 석식 17:00-20:00
    TimeWeight('T1', 23.5, 1.0, 1.7),     # 야식 23:30-01:00
    TimeWeight('G1', 7.5, 8.5, 1.5),      # 출근 시간대
    TimeWeight('G1', 20.0, 21.0, 1.3),    # 퇴근 시간대
    TimeWeight('G1', 8.0, 9.0, 1.3),
)


class TransitionModel:
    """전환 확률 모델

    규칙은 생성 시점에 (from, to) 키로 색인되며 이후 변경되지 않는다.
    lookup은 순수 함수이므로 여러 스레드에서 동시에 호출해도 된다.
    """

    def __init__(self, rules: Iterable[TransitionRule] = DEFAULT_TRANSITION_RULES,
                 time_weights: Iterable[TimeWeight] = DEFAULT_TIME_WEIGHTS,
                 time_normalizer: Optional[TimeNormalizer] = None):
        self.rules: Tuple[TransitionRule, ...] = tuple(rules)
        self.time_weights: Tuple[TimeWeight, ...] = tuple(time_weights)
        self.time_normalizer = time_normalizer or TimeNormalizer()

        for item in self.rules:
            if not isinstance(item, TransitionRule):
                raise ConfigurationError(f"TransitionRule expected, got {type(item).__name__}")
        for item in self.time_weights:
            if not isinstance(item, TimeWeight):
                raise ConfigurationError(f"TimeWeight expected, got {type(item).__name__}")

        index: Dict[Tuple[TagCode, TagCode], List[TransitionRule]] = {}
        for rule in self.rules:
            index.setdefault(rule.key, []).append(rule)
        self._index = MappingProxyType({key: tuple(value) for key, value in index.items()})

        weights: Dict[TagCode, List[TimeWeight]] = {}
        for weight in self.time_weights:
            weights.setdefault(weight.tag_code, []).append(weight)
        self._weights = MappingProxyType({key: tuple(value) for key, value in weights.items()})

    def candidates(self, from_tag: TagCode, to_tag: TagCode) -> Tuple[TransitionRule, ...]:
        return self._index.get((parse_tag_code(from_tag), parse_tag_code(to_tag)), ())

    def time_weight(self, to_tag: TagCode, timestamp: datetime) -> float:
        """도착 태그와 시각에 맞는 첫 번째 가중치 (없으면 1.0)"""
        hour = self.time_normalizer.local_hour(timestamp)
        for weight in self._weights.get(parse_tag_code(to_tag), ()):
            if weight.contains(hour):
                return weight.weight
        return 1.0

    def lookup(self, from_tag: TagCode, to_tag: TagCode, timestamp: datetime) -> TransitionMatch:
        """
        가장 적합한 전환 규칙 조회

        effective = base_probability x time_weight, 최댓값 선택 후 [0, 1]로 제한.
        동률이면 먼저 선언된 규칙이 선택된다.
        """
        candidates = self.candidates(from_tag, to_tag)
        if not candidates:
            return NO_MATCH

        weight = self.time_weight(to_tag, timestamp)
        best_rule = candidates[0]
        best_probability = best_rule.base_probability * weight
        for rule in candidates[1:]:
            probability = rule.base_probability * weight
            if probability > best_probability:
                best_rule = rule
                best_probability = probability

        return TransitionMatch(
            state=best_rule.state,
            probability=min(max(best_probability, 0.0), 1.0),
            rule=best_rule,
            time_weight=weight,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rules': [rule.to_dict() for rule in self.rules],
            'time_weights': [weight.to_dict() for weight in self.time_weights],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any],
                  time_normalizer: Optional[TimeNormalizer] = None) -> 'TransitionModel':
        """딕셔너리에서 모델 생성 (time_weights가 없으면 기본 가중치 사용)"""
        rules = [TransitionRule.from_dict(item) for item in data.get('rules', [])]
        if 'time_weights' in data:
            weights: Sequence[TimeWeight] = [TimeWeight.from_dict(item) for item in data['time_weights']]
        else:
            weights = DEFAULT_TIME_WEIGHTS
        return cls(rules, weights, time_normalizer)

    @classmethod
    def from_json(cls, path: Union[str, Path],
                  time_normalizer: Optional[TimeNormalizer] = None) -> 'TransitionModel':
        """JSON 규칙 파일에서 모델 로드"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        model = cls.from_dict(data, time_normalizer)
        logger.info(f"전환 규칙 로드: {path} (규칙 {len(model.rules)}개, 가중치 {len(model.time_weights)}개)")
        return model

    def save_json(self, path: Union[str, Path]) -> None:
        """JSON 규칙 파일로 저장"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info(f"전환 규칙 저장: {path}")


_default_model: Optional[TransitionModel] = None


def get_default_model() -> TransitionModel:
    """기본 규칙으로 만든 공유 모델 (불변이므로 공유 가능)"""
    global _default_model
    if _default_model is None:
        _default_model = TransitionModel()
    return _default_model
