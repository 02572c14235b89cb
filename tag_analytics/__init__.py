"""
태그 기반 활동 추론 및 이상 패턴 감지 엔진

출입/식사/장비 태그 시퀀스로부터 직원-일 활동 타임라인을 추론하고
꼬리물기, 장시간 외출, 업무 미확인 등 이상 패턴을 감지한다.
"""

from .exceptions import (
    TagAnalyticsError, InvalidTagCodeError, TimestampError, SequenceError, ConfigurationError,
)
from .tag_system import (
    TagCode, TagGroup, ActivityState, ActivitySegment, TagEvent, TagSequence,
    build_sequence, TransitionModel, TagStateClassifier, classify_sequence,
)
from .analysis import (
    Anomaly, AnomalyType, Severity, AnomalyDetector, detect_anomalies, count_by_severity,
    TagBatchProcessor,
)
from .config import AnomalyConfig, ConfigStore, get_config_store

__all__ = [
    'TagAnalyticsError', 'InvalidTagCodeError', 'TimestampError', 'SequenceError', 'ConfigurationError',
    'TagCode', 'TagGroup', 'ActivityState', 'ActivitySegment', 'TagEvent', 'TagSequence',
    'build_sequence', 'TransitionModel', 'TagStateClassifier', 'classify_sequence',
    'Anomaly', 'AnomalyType', 'Severity', 'AnomalyDetector', 'detect_anomalies', 'count_by_severity',
    'TagBatchProcessor',
    'AnomalyConfig', 'ConfigStore', 'get_config_store',
]

__version__ = '1.0.0'
