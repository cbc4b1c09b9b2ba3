import pytest

from qbxml.schemas.models import ParamEntry
from qbxml.utils import field_entries, flag, is_numeric, join_list, query_param, to_id


@pytest.mark.parametrize("value,expected", [
    (6, True), ("6", True), (" 12 ", True), (6.0, True), ("42.0", True),
    (6.5, False), ("6.5", False), ("6a", False), ("Status", False), (True, False), (None, False),
])
def test_is_numeric(value, expected):
    assert is_numeric(value) is expected


def test_flag_never_zero():
    assert flag(True) == 1
    assert flag("yes") == 1
    assert flag(False) is None
    assert flag(None) is None


def test_join_list():
    assert join_list([3, 6, 7]) == "3.6.7"
    assert join_list(["a"]) == "a"
    assert join_list([]) is None
    assert join_list(None) is None
    assert join_list([1, 2], sep=",") == "1,2"


def test_query_param_saved_query_id():
    assert query_param(42) == {"qid": 42}
    assert query_param("42") == {"qid": 42}
    assert query_param(42.0) == {"qid": 42}
    assert query_param("42.0") == {"qid": 42}


def test_query_param_fractional_is_a_name():
    assert query_param("4.5") == {"qname": "4.5"}


def test_to_id():
    assert to_id(7) == 7
    assert to_id(7.0) == 7
    assert to_id(" 7.00 ") == 7


def test_query_param_filter_list():
    assert query_param(["{3.EX.5}"]) == {"query": ["{3.EX.5}"]}


def test_query_param_saved_query_name():
    assert query_param("MyQuery") == {"qname": "MyQuery"}


@pytest.mark.parametrize("value", [None, "", []])
def test_query_param_empty(value):
    assert query_param(value) == {}


def test_field_entries_fid_for_numeric_keys_name_otherwise():
    entries = field_entries({6: "Acme", "7": 12.5, "Status": "Open", 8.0: "x"})
    assert entries == [
        ParamEntry("Acme", {"fid": 6}),
        ParamEntry(12.5, {"fid": 7}),
        ParamEntry("Open", {"name": "Status"}),
        ParamEntry("x", {"fid": 8}),
    ]


def test_field_entries_keeps_structured_attributes():
    original = ParamEntry("aGVsbG8=", {"filename": "hello.txt"})
    [entry] = field_entries({"Attachment": original})
    assert entry == ParamEntry("aGVsbG8=", {"filename": "hello.txt", "name": "Attachment"})
    # caller's entry is not mutated
    assert original.attrs == {"filename": "hello.txt"}


def test_field_entries_empty():
    assert field_entries(None) == []
