"""
태그 시스템 모듈

주요 구성 요소:
- 태그 카탈로그: 태그 코드와 기능 그룹
- TransitionModel: 전환 확률과 시간대 가중치
- TagStateClassifier: 태그 시퀀스 -> 활동 구간
"""

from .tag_catalog import (
    TagCode, TagGroup, ALL_TAG_CODES, PRIMARY_GATE, WORK_CONFIRM,
    parse_tag_code, is_valid_tag_code, tag_group, codes_in_group,
)
from .confidence_state import ActivityState, ActivitySegment
from .tag_sequence import TagEvent, TagSequence, RejectedEvent, build_sequence
from .transition_model import (
    TransitionRule, TimeWeight, TransitionMatch, TransitionModel,
    DEFAULT_TRANSITION_RULES, DEFAULT_TIME_WEIGHTS,
)
from .rule_engine import DeterministicRuleEngine, RuleConfig, RuleDecision
from .state_classifier import TagStateClassifier, classify_sequence

__all__ = [
    'TagCode', 'TagGroup', 'ALL_TAG_CODES', 'PRIMARY_GATE', 'WORK_CONFIRM',
    'parse_tag_code', 'is_valid_tag_code', 'tag_group', 'codes_in_group',
    'ActivityState', 'ActivitySegment',
    'TagEvent', 'TagSequence', 'RejectedEvent', 'build_sequence',
    'TransitionRule', 'TimeWeight', 'TransitionMatch', 'TransitionModel',
    'DEFAULT_TRANSITION_RULES', 'DEFAULT_TIME_WEIGHTS',
    'DeterministicRuleEngine', 'RuleConfig', 'RuleDecision',
    'TagStateClassifier', 'classify_sequence',
]
