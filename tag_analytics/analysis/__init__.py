"""
분석 엔진 모듈

주요 구성 요소:
- AnomalyDetector: 직원-일 태그 시퀀스 이상 패턴 감지
- TagBatchProcessor: 직원-일 단위 병렬 배치 처리
"""

from .anomaly_detector import (
    Anomaly, AnomalyType, Severity, DetectionResult, AnomalyDetector,
    DETECTION_PASSES, detect_anomalies, count_by_severity,
    detect_tailgating, detect_long_absence, detect_no_work,
    detect_shift_overlap, detect_missing_tags,
)
from .batch_processor import DailyResult, TagBatchProcessor, timeline_to_frame, anomalies_to_frame

__all__ = [
    'Anomaly', 'AnomalyType', 'Severity', 'DetectionResult', 'AnomalyDetector',
    'DETECTION_PASSES', 'detect_anomalies', 'count_by_severity',
    'detect_tailgating', 'detect_long_absence', 'detect_no_work',
    'detect_shift_overlap', 'detect_missing_tags',
    'DailyResult', 'TagBatchProcessor', 'timeline_to_frame', 'anomalies_to_frame',
]
