"""
시간 정규화 모듈
태그 타임스탬프를 로컬 시간 기준의 시각/날짜로 변환
"""

import pytz
from datetime import datetime, date, time
from typing import Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'Asia/Seoul'


class TimeNormalizer:
    """타임존 기반 로컬 시간 변환

    naive datetime은 이미 로컬 시간으로 간주하고, timezone-aware datetime은
    설정된 타임존으로 변환한다.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        self.timezone = pytz.timezone(timezone)

    def to_local(self, timestamp: datetime) -> datetime:
        """로컬 시간으로 변환"""
        if timestamp.tzinfo is None:
            return timestamp
        return timestamp.astimezone(self.timezone)

    def local_hour(self, timestamp: datetime) -> float:
        """시 + 분/60 형태의 시각 (예: 00:15 -> 0.25)"""
        local_time = self.to_local(timestamp)
        return local_time.hour + local_time.minute / 60

    def hour_of_day(self, timestamp: datetime) -> int:
        return self.to_local(timestamp).hour

    def minute_of_day(self, timestamp: datetime) -> int:
        local_time = self.to_local(timestamp)
        return local_time.hour * 60 + local_time.minute

    def work_date(self, timestamp: datetime) -> date:
        """태그가 속한 로컬 날짜"""
        return self.to_local(timestamp).date()

    def day_start(self, work_date: date, reference: Optional[datetime] = None) -> datetime:
        """근무일 00:00

        reference가 timezone-aware이면 같은 타임존의 aware datetime을 반환하여
        시퀀스의 다른 타임스탬프와 비교 가능하게 한다.
        """
        midnight = datetime.combine(work_date, time(0, 0))
        if reference is not None and reference.tzinfo is not None:
            return self.timezone.localize(midnight)
        return midnight


def minutes_between(start: datetime, end: datetime) -> float:
    """두 시각 사이의 분"""
    return (end - start).total_seconds() / 60


def seconds_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds()


def hour_in_window(hour: float, start_hour: float, end_hour: float) -> bool:
    """시간 구간 포함 여부 (양 끝 포함, start > end이면 자정을 넘는 구간)"""
    if start_hour <= end_hour:
        return start_hour <= hour <= end_hour
    return hour >= start_hour or hour <= end_hour
