from datetime import datetime

import pytest

from tag_analytics.tag_system import TagEvent, build_sequence, parse_tag_code

WORK_DATE = (2025, 1, 21)


def at(clock: str) -> datetime:
    """'HH:MM' 또는 'HH:MM:SS'를 기준일 datetime으로 변환"""
    parts = [int(p) for p in clock.split(':')]
    while len(parts) < 3:
        parts.append(0)
    return datetime(*WORK_DATE, *parts)


def make_events(*pairs, employee_id='E001'):
    """('G1', '07:55') 형식의 쌍 목록으로 TagEvent 목록 생성"""
    return [TagEvent(employee_id, parse_tag_code(code), at(clock)) for code, clock in pairs]


def make_sequence(*pairs, employee_id='E001'):
    return build_sequence(make_events(*pairs, employee_id=employee_id))


@pytest.fixture
def scenario_a():
    return make_sequence(
        ('G1', '07:55'), ('O', '08:05'), ('O', '12:00'),
        ('M1', '12:05'), ('O', '13:00'), ('G1', '18:10'),
    )
