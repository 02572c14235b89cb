"""
태그 코드 카탈로그
태그 코드를 기능 그룹(게이트, 경유, 비업무, 식사, 업무확인)으로 분류
"""

import logging
from enum import Enum
from typing import Dict, Tuple, Union

from ..exceptions import InvalidTagCodeError

logger = logging.getLogger(__name__)


class TagGroup(Enum):
    """태그 기능 그룹"""
    GATE = "gate"                  # 출입 게이트
    TRANSIT = "transit"            # 식당/화장실 등 경유 지점
    NON_WORK = "non_work"          # 비업무/외부 구역
    MEAL = "meal"                  # 배식 스캔
    WORK_CONFIRM = "work_confirm"  # 실제 업무 수행 로그


class TagCode(Enum):
    """태그 코드 (고정 목록)"""
    G1 = "G1"  # 주 출입 게이트 (출근/퇴근 겸용)
    G2 = "G2"
    G3 = "G3"
    G4 = "G4"
    T1 = "T1"  # 식당
    T2 = "T2"  # 화장실
    T3 = "T3"
    N1 = "N1"
    N2 = "N2"
    M1 = "M1"
    M2 = "M2"
    O = "O"    # 업무 확인 (장비 조작, 시스템 접근 등)

    def __str__(self) -> str:
        return self.value


_TAG_GROUPS: Dict[TagCode, TagGroup] = {
    TagCode.G1: TagGroup.GATE,
    TagCode.G2: TagGroup.GATE,
    TagCode.G3: TagGroup.GATE,
    TagCode.G4: TagGroup.GATE,
    TagCode.T1: TagGroup.TRANSIT,
    TagCode.T2: TagGroup.TRANSIT,
    TagCode.T3: TagGroup.TRANSIT,
    TagCode.N1: TagGroup.NON_WORK,
    TagCode.N2: TagGroup.NON_WORK,
    TagCode.M1: TagGroup.MEAL,
    TagCode.M2: TagGroup.MEAL,
    TagCode.O: TagGroup.WORK_CONFIRM,
}

ALL_TAG_CODES: Tuple[TagCode, ...] = tuple(TagCode)
PRIMARY_GATE = TagCode.G1
WORK_CONFIRM = TagCode.O


def parse_tag_code(value: Union[str, TagCode]) -> TagCode:
    """문자열 또는 TagCode를 TagCode로 변환

    카탈로그에 없는 값은 UNKNOWN 등으로 대체하지 않고 InvalidTagCodeError를 발생시킨다.
    """
    if isinstance(value, TagCode):
        return value
    if not isinstance(value, str):
        raise InvalidTagCodeError(value)

    normalized = value.strip().upper()
    try:
        return TagCode(normalized)
    except ValueError:
        raise InvalidTagCodeError(value) from None


def is_valid_tag_code(value) -> bool:
    """카탈로그에 있는 태그 코드인지 확인"""
    try:
        parse_tag_code(value)
    except InvalidTagCodeError:
        return False
    return True


def tag_group(code: Union[str, TagCode]) -> TagGroup:
    """태그 코드의 기능 그룹 반환"""
    return _TAG_GROUPS[parse_tag_code(code)]


def codes_in_group(group: TagGroup) -> Tuple[TagCode, ...]:
    """그룹에 속한 태그 코드 목록 (선언 순서)"""
    return tuple(code for code in ALL_TAG_CODES if _TAG_GROUPS[code] is group)


def is_gate(code: TagCode) -> bool:
    return _TAG_GROUPS[code] is TagGroup.GATE


def is_primary_gate(code: TagCode) -> bool:
    return code is PRIMARY_GATE


def is_meal(code: TagCode) -> bool:
    return _TAG_GROUPS[code] is TagGroup.MEAL


def is_non_work(code: TagCode) -> bool:
    return _TAG_GROUPS[code] is TagGroup.NON_WORK


def is_work_confirm(code: TagCode) -> bool:
    return code is WORK_CONFIRM
