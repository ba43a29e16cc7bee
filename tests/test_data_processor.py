import pytest

from dse_attendance.transformers.data_processor import (
    format_display_name,
    match_name,
    normalize_name,
    reconcile_names,
)
from dse_attendance.utilities.models import ExtractedLeave


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("S_Ajay-Chaubepur", "ajay-chaubepur"),
        ("W_Mukesh Sahu 2", "mukesh sahu"),
        ("m_Ravi Verma.6392752846", "ravi verma"),
        ("T_Sunil.96-48472721", "sunil"),
        ("Deepak Kumar123", "deepak kumar"),
        ("Anil.", "anil"),
        ("  s_Pooja  ", "pooja"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_name(raw, expected):
    assert normalize_name(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "S_Ajay-Chaubepur",
        "M_S_Double Prefix",
        "abc1.",
        "Name 12 3",
        "W_Mukesh Sahu 2",
        " s_Padded ",
        "x.5y. 7",
    ],
)
def test_normalize_name_is_idempotent(raw):
    once = normalize_name(raw)
    assert normalize_name(once) == once


def test_normalize_strips_prefix_and_index():
    assert not normalize_name("S_Ajay-Chaubepur").startswith("s_")
    cleaned = normalize_name("W_Mukesh Sahu 2")
    assert not cleaned.endswith(" 2")
    assert not cleaned[-1].isdigit()


def test_match_exact_after_normalization():
    result = match_name("S_Rajesh Kumar.9876543210", ["Someone Else", "Rajesh Kumar"])
    assert result.matched
    assert result.canonical_name == "Rajesh Kumar"


def test_match_first_canonical_in_input_order():
    result = match_name("ajay", ["Ajay", "AJAY 2"])
    assert result.canonical_name == "Ajay"


def test_match_ignores_hyphens_and_spaces():
    result = match_name("S_Ajay-Chaubepur", ["Ajay Chaubepur", "Someone Else"])
    assert result.matched
    assert result.canonical_name == "Ajay Chaubepur"


def test_short_names_do_not_match_loosely():
    assert not match_name("Raj", ["Rajesh Kumar"]).matched
    assert not match_name("A-B", ["AB"]).matched


def test_match_by_containment_with_location_suffix():
    result = match_name("Ramesh Yadav", ["Ramesh Yadav KN"])
    assert result.matched
    assert result.canonical_name == "Ramesh Yadav KN"


def test_containment_requires_substantial_overlap():
    assert not match_name("Ramesh", ["Ramesh Yadav Kanpur"]).matched
    assert not match_name("Ajay Chaubepur", ["Ajay Chaubepur Kanpur"]).matched


def test_empty_source_never_matches():
    result = match_name("S_123", ["S_123", "Anyone"])
    assert not result.matched
    assert result.canonical_name is None


def test_reconcile_names_attaches_record_ids():
    records = [
        {"id": "e1", "dse_name": "Ajay Chaubepur"},
        {"id": "e2", "dse_name": None},
        {"id": "e3", "dse_name": "Rajesh Kumar"},
    ]
    entries = [ExtractedLeave("S_Ajay-Chaubepur"), ExtractedLeave("Unknown Person")]

    results = reconcile_names(entries, records)

    assert [r.matched for r in results] == [True, False]
    assert results[0].record_id == "e1"
    assert results[0].source_name == "S_Ajay-Chaubepur"
    assert results[1].record_id is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("S_Ajay Chaubepur.9876543210", "Ajay Chaubepur"),
        ("Mukesh Sahu2", "Mukesh Sahu"),
        ("", "Unknown"),
        (None, "Unknown"),
    ],
)
def test_format_display_name(raw, expected):
    assert format_display_name(raw) == expected
