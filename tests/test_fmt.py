import pytest
from hypothesis import given
from hypothesis import strategies as st

from toyos.fmt import render, render_console
from toyos.layout import Panic

INT32 = st.integers(min_value=-(2**31), max_value=2**31 - 1)
UINT32 = st.integers(min_value=0, max_value=2**32 - 1)


@given(INT32)
def test_decimal_matches_python(n):
    assert render("%d", n) == str(n)
    assert render_console("%d", n) == str(n)


@given(UINT32)
def test_hex_digit_case(n):
    assert render("%x", n) == format(n, "X")
    assert render_console("%x", n) == format(n, "x")
    assert render("%p", n) == render("%x", n)


def test_negative_hex_is_unsigned_32_bit():
    assert render("%x", -1) == "FFFFFFFF"
    assert render_console("%p", -1) == "ffffffff"


def test_most_negative_int():
    assert render("%d", -(2**31)) == str(-(2**31))


def test_null_string():
    assert render("%s", None) == "(null)"
    assert render_console("%s", None) == "(null)"


def test_strings_are_substituted():
    assert render("%s and %s", "cats", "dogs") == "%s and %s" % ("cats", "dogs")


def test_percent_escape_and_unknown_sequence():
    assert render("100%%") == "100%"
    assert render("%q") == "%q"
    assert render_console("%q") == "%q"


def test_char_only_in_user_printf():
    assert render("%c", ord("z")) == "z"
    assert render("%c", "z") == "z"
    assert render_console("%c", 1) == "%c"


def test_trailing_percent_is_dropped():
    assert render("end%") == "end"
    assert render_console("end%") == "end"


def test_missing_argument():
    with pytest.raises(TypeError):
        render("%d")


def test_console_null_format_panics():
    with pytest.raises(Panic):
        render_console(None)


@given(st.text().filter(lambda t: "%" not in t))
def test_plain_text_unchanged(text):
    assert render(text) == text
    assert render_console(text) == text