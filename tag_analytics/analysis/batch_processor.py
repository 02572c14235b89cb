"""
배치 프로세서 - 직원-일 단위 병렬 분석
태그 DataFrame을 직원/날짜별로 나누어 상태 분류와 이상 감지를 실행한다
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from tqdm import tqdm

from ..config.anomaly_settings import AnomalyConfig, ConfigStore, get_config_store
from ..exceptions import TagAnalyticsError, TimestampError
from ..tag_system.confidence_state import ActivitySegment
from ..tag_system.state_classifier import TagStateClassifier
from ..tag_system.tag_sequence import RejectedEvent, build_sequence, parse_timestamp
from ..utils.time_normalizer import TimeNormalizer
from .anomaly_detector import Anomaly, AnomalyDetector

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('employee_id', 'tag_code', 'timestamp')


@dataclass(frozen=True)
class DailyResult:
    """직원 1명, 1일 분석 결과"""
    employee_id: str
    work_date: Optional[date]
    status: str  # 'success' | 'error'
    timeline: Tuple[ActivitySegment, ...] = ()
    anomalies: Tuple[Anomaly, ...] = ()
    rejected: Tuple[RejectedEvent, ...] = ()
    failures: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == 'success'


class TagBatchProcessor:
    """직원-일 단위 배치 프로세서

    배치 시작 시 설정 스냅샷을 한 번 읽어 모든 작업에 같은 값을 넘긴다.
    한 직원-일의 오류는 해당 결과에만 기록되고 나머지는 계속 처리된다.
    """

    def __init__(self, num_workers: int = 4,
                 classifier: Optional[TagStateClassifier] = None,
                 config_store: Optional[ConfigStore] = None,
                 time_normalizer: Optional[TimeNormalizer] = None,
                 on_invalid: str = 'skip',
                 show_progress: bool = False):
        """
        Args:
            num_workers: 워커 스레드 수
            classifier: 상태 분류기 (None이면 기본 모델)
            config_store: 이상 감지 설정 저장소 (None이면 공용 저장소)
            on_invalid: 잘못된 태그 코드 처리 ('skip'이면 제외 후 기록, 'raise'이면 해당 일 오류)
            show_progress: tqdm 진행률 표시
        """
        self.num_workers = max(1, num_workers)
        self.time_normalizer = time_normalizer or TimeNormalizer()
        self.classifier = classifier or TagStateClassifier(time_normalizer=self.time_normalizer)
        self.config_store = config_store or get_config_store()
        self.on_invalid = on_invalid
        self.show_progress = show_progress

    def _work_date_or_none(self, value) -> Optional[date]:
        try:
            return self.time_normalizer.work_date(parse_timestamp(value))
        except TimestampError:
            return None

    def _split(self, tag_data: pd.DataFrame) -> List[Tuple[str, Optional[date], List[Dict[str, Any]]]]:
        missing = [column for column in REQUIRED_COLUMNS if column not in tag_data.columns]
        if missing:
            raise ValueError(f"DataFrame에 필요한 컬럼이 없습니다: {missing}")

        frame = tag_data.copy()
        frame['employee_id'] = frame['employee_id'].astype(str)
        frame['work_date'] = frame['timestamp'].map(self._work_date_or_none)

        groups = []
        for (employee_id, work_date), group in frame.groupby(['employee_id', 'work_date'],
                                                              sort=False, dropna=False):
            work_date = None if pd.isna(work_date) else work_date
            records = group[list(REQUIRED_COLUMNS)].to_dict('records')
            groups.append((employee_id, work_date, records))
        groups.sort(key=lambda item: (item[0], item[1] or date.min))
        return groups

    def process_day(self, employee_id: str, work_date: Optional[date],
                    records: List[Dict[str, Any]],
                    config: Optional[AnomalyConfig] = None) -> DailyResult:
        """단일 직원-일 분석"""
        config = config or self.config_store.snapshot()
        try:
            sequence = build_sequence(
                records,
                employee_id=employee_id,
                work_date=work_date,
                on_invalid=self.on_invalid,
                time_normalizer=self.time_normalizer,
            )
            timeline = self.classifier.classify(sequence)
            detection = AnomalyDetector(config, self.time_normalizer).run(sequence)
        except TagAnalyticsError as e:
            logger.warning(f"데이터 오류로 분석 제외: {employee_id} {work_date} - {e}")
            return DailyResult(employee_id, work_date, 'error', error=f"{type(e).__name__}: {e}")
        except Exception as e:
            # 예기치 않은 오류도 해당 직원-일 결과에만 기록
            logger.exception(f"분석 중 예기치 않은 오류: {employee_id} {work_date}")
            return DailyResult(employee_id, work_date, 'error', error=f"{type(e).__name__}: {e}")

        return DailyResult(
            employee_id=employee_id,
            work_date=work_date,
            status='success',
            timeline=tuple(timeline),
            anomalies=detection.anomalies,
            rejected=sequence.rejected,
            failures=dict(detection.failures),
        )

    def process_frame(self, tag_data: pd.DataFrame) -> List[DailyResult]:
        """
        태그 DataFrame 일괄 처리

        Args:
            tag_data: employee_id, tag_code, timestamp 컬럼을 가진 DataFrame

        Returns:
            (employee_id, work_date) 순으로 정렬된 DailyResult 목록
        """
        start_time = time.time()
        groups = self._split(tag_data)
        config = self.config_store.snapshot()

        logger.info(f"배치 분석 시작: {len(groups):,}개 직원-일 (워커: {self.num_workers})")

        results: List[DailyResult] = []
        with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
            futures = [
                executor.submit(self.process_day, employee_id, work_date, records, config)
                for employee_id, work_date, records in groups
            ]
            for future in tqdm(as_completed(futures), total=len(futures),
                               desc="직원-일 분석", disable=not self.show_progress):
                results.append(future.result())

        results.sort(key=lambda r: (r.employee_id, r.work_date or date.min))

        errors = sum(1 for r in results if not r.ok)
        elapsed = time.time() - start_time
        logger.info(f"배치 분석 완료: 성공 {len(results) - errors:,}건, 오류 {errors:,}건 ({elapsed:.2f}초)")
        return results


def timeline_to_frame(results: List[DailyResult]) -> pd.DataFrame:
    """활동 구간을 DataFrame으로 변환 (집계 계층 입력용)"""
    rows = []
    for result in results:
        for segment in result.timeline:
            row = segment.to_dict()
            row['employee_id'] = result.employee_id
            row['work_date'] = result.work_date
            rows.append(row)
    columns = ['employee_id', 'work_date', 'state', 'state_label', 'start_time', 'end_time',
               'from_tag', 'to_tag', 'duration_minutes', 'confidence', 'rule']
    return pd.DataFrame(rows, columns=columns)


def anomalies_to_frame(results: List[DailyResult]) -> pd.DataFrame:
    """이상 패턴을 DataFrame으로 변환 (저장용)"""
    rows = [anomaly.to_dict() for result in results for anomaly in result.anomalies]
    columns = ['id', 'employee_id', 'date', 'type', 'severity', 'description', 'start_time',
               'end_time', 'duration_minutes', 'confidence', 'details']
    return pd.DataFrame(rows, columns=columns)
