"""Tests for the component identifier codec."""

import pytest
from hypothesis import given, strategies as st

from libs.introspection.codec import MISSING_INDEX, ComponentKey, canonicalize, decode, encode, is_token, parse


@given(st.integers(min_value=0), st.integers(min_value=0))
def test_decode_inverts_encode(layer, sub_unit):
    """decode(encode(l, h)) == (l, h) for every non-negative pair."""
    assert decode(encode(layer, sub_unit)) == (layer, sub_unit)
    assert parse(encode(layer, sub_unit)) == (layer, sub_unit)


def test_encode_format():
    assert encode(6, 15) == "L6H15"
    assert encode(0, 0) == "L0H0"


@pytest.mark.parametrize("layer,sub_unit", [(-1, 0), (0, -3), (1.5, 2), (True, 1), ("1", 2)])
def test_encode_rejects_invalid_indices(layer, sub_unit):
    with pytest.raises(ValueError):
        encode(layer, sub_unit)


def test_decode_returns_named_pair():
    key = decode("L3H9")
    assert isinstance(key, ComponentKey)
    assert key.layer == 3
    assert key.sub_unit == 9


@pytest.mark.parametrize("token,expected", [
    ("L3HNone", (3, MISSING_INDEX)),
    ("L3Hnone", (3, MISSING_INDEX)),
    ("L3H", (3, MISSING_INDEX)),
    ("L3", (3, MISSING_INDEX)),
    ("LNoneH4", (MISSING_INDEX, 4)),
])
def test_decode_missing_sub_unit_defaults_to_zero(token, expected):
    assert decode(token) == expected


@pytest.mark.parametrize("token", ["", "head-7", "X1Y2", "L1H5 extra", None, 15])
def test_decode_never_raises_on_garbage(token):
    assert decode(token) == (0, 0)


def test_decode_is_lenient_about_case_and_whitespace():
    assert decode("  l2h7 ") == (2, 7)


def test_canonicalize_rewrites_sentinel_tokens():
    assert canonicalize("L3HNone") == "L3H0"
    assert canonicalize("L12H4") == "L12H4"


@pytest.mark.parametrize("token,expected", [
    ("L3H9", (3, 9)),
    ("L3HNone", (3, MISSING_INDEX)),
    ("LNoneH4", (MISSING_INDEX, 4)),
])
def test_parse_accepts_tokens(token, expected):
    assert parse(token) == expected
    assert is_token(token)


@pytest.mark.parametrize("token", ["embedding", "", "L", "LH", "L1H5 extra", None, 7])
def test_parse_rejects_non_tokens(token):
    assert parse(token) is None
    assert not is_token(token)
