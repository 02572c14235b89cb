import pytest

from tag_analytics.exceptions import InvalidTagCodeError
from tag_analytics.tag_system.tag_catalog import (
    ALL_TAG_CODES, PRIMARY_GATE, TagCode, TagGroup, codes_in_group, is_valid_tag_code,
    parse_tag_code, tag_group,
)


def test_catalog_is_closed_set_of_twelve_codes():
    assert len(ALL_TAG_CODES) == 12
    assert codes_in_group(TagGroup.GATE) == (TagCode.G1, TagCode.G2, TagCode.G3, TagCode.G4)
    assert codes_in_group(TagGroup.TRANSIT) == (TagCode.T1, TagCode.T2, TagCode.T3)
    assert codes_in_group(TagGroup.NON_WORK) == (TagCode.N1, TagCode.N2)
    assert codes_in_group(TagGroup.MEAL) == (TagCode.M1, TagCode.M2)
    assert codes_in_group(TagGroup.WORK_CONFIRM) == (TagCode.O,)
    assert PRIMARY_GATE is TagCode.G1


@pytest.mark.parametrize("raw, expected", [
    ("G1", TagCode.G1),
    (" m2 ", TagCode.M2),
    ("o", TagCode.O),
    (TagCode.N1, TagCode.N1),
])
def test_parse_tag_code_accepts_known_codes(raw, expected):
    assert parse_tag_code(raw) is expected


@pytest.mark.parametrize("raw", ["X1", "", "G5", None, 1])
def test_unknown_code_is_rejected_not_coerced(raw):
    with pytest.raises(InvalidTagCodeError) as excinfo:
        parse_tag_code(raw)
    assert excinfo.value.value == raw
    assert not is_valid_tag_code(raw)


def test_tag_group_lookup():
    assert tag_group("T2") is TagGroup.TRANSIT
    assert tag_group(TagCode.O) is TagGroup.WORK_CONFIRM
    with pytest.raises(InvalidTagCodeError):
        tag_group("Z")
