"""
태그 시퀀스 기반 상태 분류 엔진
연속된 태그 쌍마다 활동 구간을 만들고 상태를 부여한다
"""

import logging
from typing import Iterable, List, Optional, Union

from ..utils.time_normalizer import TimeNormalizer
from .confidence_state import ActivitySegment, ActivityState
from .rule_engine import DeterministicRuleEngine, RuleConfig, RuleDecision
from .tag_catalog import WORK_CONFIRM, is_work_confirm
from .tag_sequence import EventInput, TagEvent, TagSequence, ensure_sequence
from .transition_model import TransitionModel, get_default_model

logger = logging.getLogger(__name__)

# O 태그가 없는 날에 남길 수 있는 상태
UNCONFIRMED_DAY_STATES = (ActivityState.MOVEMENT, ActivityState.UNKNOWN)


class TagStateClassifier:
    """태그 기반 상태 분류 엔진

    구간 (tags[i-1], tags[i])의 상태 결정 순서:
      1. O 태그 문맥 보정 (식사 -> O 회의 연속, O -> G1 퇴근 준비)
      2. 도착 태그의 문맥 상태 (O 업무, 식사 그룹 식사, G1 출입 판단)
      3. 출발 태그의 문맥 상태
      4. 전환 확률 (임계값 초과 시)
      5. 미분류

    하루 중 O 태그가 없으면 G1은 이동으로, 그 밖의 확정 상태는 미분류로 낮춘다.
    """

    def __init__(self, model: Optional[TransitionModel] = None,
                 rule_config: Optional[RuleConfig] = None,
                 time_normalizer: Optional[TimeNormalizer] = None):
        self.time_normalizer = time_normalizer or (model.time_normalizer if model else TimeNormalizer())
        self.model = model or get_default_model()
        self.rule_engine = DeterministicRuleEngine(rule_config, self.time_normalizer)

    @property
    def rule_config(self) -> RuleConfig:
        return self.rule_engine.config

    def classify(self, sequence: Union[TagSequence, Iterable[EventInput]]) -> List[ActivitySegment]:
        """태그 시퀀스를 활동 구간 목록으로 분류 (태그 2개 미만이면 빈 목록)"""
        sequence = ensure_sequence(sequence)
        events = sequence.events
        if len(events) < 2:
            return []

        # O 태그가 없는 날은 이동/미분류만 남긴다
        has_work_confirm = sequence.has_code(WORK_CONFIRM)

        segments = []
        for i in range(1, len(events)):
            decision = self._classify_pair(events, i, has_work_confirm)
            if not has_work_confirm and decision.state not in UNCONFIRMED_DAY_STATES:
                decision = RuleDecision(ActivityState.UNKNOWN, 0.0, 'no_work_confirm')
            segments.append(ActivitySegment(
                state=decision.state,
                start_time=events[i - 1].timestamp,
                end_time=events[i].timestamp,
                from_tag=events[i - 1].code,
                to_tag=events[i].code,
                confidence=decision.confidence,
                rule=decision.rule,
            ))

        logger.debug(f"{sequence.employee_id} {sequence.work_date}: {len(segments)}개 구간 분류")
        return segments

    def _classify_pair(self, events: List[TagEvent], i: int, has_work_confirm: bool = True) -> RuleDecision:
        prev, curr = events[i - 1], events[i]

        # 1. O 태그 문맥 보정은 해당 연결 구간에만 적용
        if is_work_confirm(curr.code):
            refined = self.rule_engine.refine_work_confirm(events, i)
            if refined.state is ActivityState.MEETING:
                return refined
        if is_work_confirm(prev.code):
            refined = self.rule_engine.refine_work_confirm(events, i - 1)
            if refined.state is ActivityState.PREPARATION:
                return refined

        # 2, 3. 도착 태그 우선, 다음으로 출발 태그
        for index in (i, i - 1):
            decision = self.rule_engine.event_decision(events, index, has_work_confirm)
            if decision is not None:
                return decision

        # 4. 전환 확률
        match = self.model.lookup(prev.code, curr.code, curr.timestamp)
        if not match.matched:
            return RuleDecision(ActivityState.UNKNOWN, 0.0, 'unmatched')
        if match.probability > self.rule_config.acceptance_threshold:
            return RuleDecision(match.state, match.probability, 'transition')
        return RuleDecision(ActivityState.UNKNOWN, 0.0, 'below_threshold')


def classify_sequence(sequence: Union[TagSequence, Iterable[EventInput]],
                      model: Optional[TransitionModel] = None,
                      rule_config: Optional[RuleConfig] = None) -> List[ActivitySegment]:
    """기본 설정으로 시퀀스 분류"""
    return TagStateClassifier(model, rule_config).classify(sequence)
