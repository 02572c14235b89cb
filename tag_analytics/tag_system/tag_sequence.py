"""
태그 이벤트 및 일일 태그 시퀀스
입력 태그를 검증하고 타임스탬프 순으로 정렬한 직원-일 단위 시퀀스를 만든다
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import pandas as pd

from ..exceptions import InvalidTagCodeError, SequenceError, TimestampError
from ..utils.time_normalizer import TimeNormalizer
from .tag_catalog import TagCode, parse_tag_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagEvent:
    """단일 태그 이벤트"""
    employee_id: Optional[str]
    code: TagCode
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            'employee_id': self.employee_id,
            'tag_code': self.code.value,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RejectedEvent:
    """카탈로그에 없는 코드로 제외된 입력 이벤트"""
    index: int
    employee_id: Optional[str]
    raw_code: Any
    timestamp: Optional[datetime]
    reason: str


@dataclass(frozen=True)
class TagSequence:
    """직원 1명, 1일의 정렬된 태그 시퀀스"""
    employee_id: Optional[str]
    work_date: Optional[date]
    events: Tuple[TagEvent, ...] = ()
    rejected: Tuple[RejectedEvent, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[TagEvent]:
        return iter(self.events)

    def __getitem__(self, index):
        return self.events[index]

    @property
    def is_empty(self) -> bool:
        return not self.events

    def codes(self) -> List[TagCode]:
        return [event.code for event in self.events]

    def has_code(self, code: TagCode) -> bool:
        return any(event.code is code for event in self.events)


EventInput = Union[TagEvent, Mapping[str, Any]]


def parse_timestamp(value) -> datetime:
    """datetime, pandas Timestamp, 문자열을 datetime으로 변환"""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        raise TimestampError("타임스탬프가 없습니다")
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = pd.to_datetime(value)
        except (ValueError, TypeError) as e:
            raise TimestampError(f"타임스탬프를 해석할 수 없습니다: {value!r}") from e
        if pd.isna(parsed):
            raise TimestampError(f"타임스탬프를 해석할 수 없습니다: {value!r}")
        return parsed.to_pydatetime()
    raise TimestampError(f"지원하지 않는 타임스탬프 형식: {type(value).__name__}")


def _unpack(raw: EventInput) -> Tuple[Optional[str], Any, Any]:
    if isinstance(raw, TagEvent):
        return raw.employee_id, raw.code, raw.timestamp
    code = raw.get('tag_code', raw.get('code'))
    employee_id = raw.get('employee_id')
    if employee_id is not None and not (isinstance(employee_id, float) and pd.isna(employee_id)):
        employee_id = str(employee_id)
    else:
        employee_id = None
    return employee_id, code, raw.get('timestamp')


def build_sequence(events: Iterable[EventInput],
                   employee_id: Optional[str] = None,
                   work_date: Optional[date] = None,
                   on_invalid: str = 'raise',
                   strict_order: bool = False,
                   time_normalizer: Optional[TimeNormalizer] = None) -> TagSequence:
    """
    입력 이벤트로 TagSequence 생성

    Args:
        events: TagEvent 또는 {'employee_id', 'tag_code', 'timestamp'} 매핑
        employee_id: 직원 ID (없으면 이벤트에서 추출)
        work_date: 근무일 (없으면 첫 태그의 로컬 날짜)
        on_invalid: 'raise'이면 잘못된 코드에서 오류, 'skip'이면 제외하고 rejected에 기록
        strict_order: True이면 시간 역순 입력을 TimestampError로 처리
        time_normalizer: 로컬 날짜 계산용

    Returns:
        타임스탬프 오름차순으로 정렬된 TagSequence (동일 시각은 입력 순서 유지)
    """
    if on_invalid not in ('raise', 'skip'):
        raise ValueError(f"on_invalid must be 'raise' or 'skip', got {on_invalid!r}")

    normalizer = time_normalizer or TimeNormalizer()
    parsed: List[TagEvent] = []
    rejected: List[RejectedEvent] = []
    employee_ids = set()

    for index, raw in enumerate(events):
        event_employee, raw_code, raw_timestamp = _unpack(raw)
        timestamp = parse_timestamp(raw_timestamp)

        try:
            code = parse_tag_code(raw_code)
        except InvalidTagCodeError as e:
            if on_invalid == 'raise':
                raise
            logger.warning(f"잘못된 태그 코드 제외: {raw_code!r} (직원 {event_employee}, {timestamp})")
            rejected.append(RejectedEvent(
                index=index,
                employee_id=event_employee,
                raw_code=raw_code,
                timestamp=timestamp,
                reason=str(e),
            ))
            continue

        if event_employee is not None:
            employee_ids.add(event_employee)
        parsed.append(TagEvent(event_employee, code, timestamp))

    if employee_id is not None:
        employee_id = str(employee_id)
        others = employee_ids - {employee_id}
        if others:
            raise SequenceError(f"다른 직원의 태그가 포함되어 있습니다: {sorted(others)}")
    elif len(employee_ids) > 1:
        raise SequenceError(f"여러 직원의 태그가 한 시퀀스에 있습니다: {sorted(employee_ids)}")
    elif employee_ids:
        employee_id = next(iter(employee_ids))

    try:
        if strict_order:
            for prev, curr in zip(parsed, parsed[1:]):
                if curr.timestamp < prev.timestamp:
                    raise TimestampError(
                        f"시간 순서가 어긋났습니다: {prev.timestamp} -> {curr.timestamp}"
                    )
        ordered = sorted(parsed, key=lambda event: event.timestamp)
    except TypeError as e:
        raise TimestampError("naive/aware 타임스탬프가 섞여 있습니다") from e

    ordered = [event if event.employee_id == employee_id else replace(event, employee_id=employee_id)
               for event in ordered]

    if work_date is None and ordered:
        work_date = normalizer.work_date(ordered[0].timestamp)

    return TagSequence(
        employee_id=employee_id,
        work_date=work_date,
        events=tuple(ordered),
        rejected=tuple(rejected),
    )


def ensure_sequence(events: Union[TagSequence, Iterable[EventInput]]) -> TagSequence:
    """TagSequence가 아니면 build_sequence로 변환"""
    if isinstance(events, TagSequence):
        return events
    return build_sequence(events)
