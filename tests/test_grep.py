import io
import sys

from hypothesis import given
from hypothesis import strategies as st

from toyos.grep import grep, main, match

LETTERS = st.text(alphabet="abc", max_size=8)


def test_anchored_start():
    assert match("^abc", "abcdef")
    assert not match("^abc", "xabc")


def test_dot_and_star():
    assert match("a.c", "xxabcx")
    assert match("ab*c", "ac")
    assert match("ab*c", "abbbc")
    assert not match("ab*c", "adc")
    assert match("a*", "")


def test_anchored_end():
    assert match("x$", "abx")
    assert not match("x$", "abxy")
    assert match("^$", "")
    assert not match("^$", "a")


def test_empty_pattern_matches_everything():
    assert match("", "")
    assert match("", "anything")


@given(LETTERS, LETTERS)
def test_literal_pattern_is_substring_search(pattern, text):
    assert match(pattern, text) == (pattern in text)
    assert match("^" + pattern, text) == text.startswith(pattern)
    assert match(pattern + "$", text) == text.endswith(pattern)


def test_long_literal_does_not_overflow_stack():
    text = "a" * 2000
    assert match("^" + text + "$", text)


def test_grep_yields_matching_lines():
    stream = io.BytesIO(b"apple\nbanana\ncherry\n")
    assert list(grep("an", stream)) == [b"banana\n"]


def test_final_line_without_newline_is_not_reported():
    stream = io.BytesIO(b"one\ntwo")
    assert list(grep("o", stream)) == [b"one\n"]


class _Chunks:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def read(self, n):
        return self._chunks.pop(0) if self._chunks else b""


def test_read_without_newline_is_discarded():
    assert list(grep("hello", _Chunks([b"hel", b"lo\n"]))) == []
    assert list(grep("hello", _Chunks([b"x\nhel", b"lo\n"]))) == [b"hello\n"]


def test_main_usage(capsys):
    assert main([]) == 1
    assert "usage: grep pattern [file ...]" in capsys.readouterr().err


def test_main_reads_files(tmp_path, capsysbinary):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.write_bytes(b"red\ngreen\n")
    second.write_bytes(b"blue\ngrey\n")
    assert main(["^gr", str(first), str(second)]) == 0
    assert capsysbinary.readouterr().out == b"green\ngrey\n"


def test_main_cannot_open(tmp_path, capsysbinary):
    missing = tmp_path / "missing"
    assert main(["x", str(missing)]) == 1
    assert capsysbinary.readouterr().out == f"grep: cannot open {missing}\n".encode()


def test_main_reads_stdin(monkeypatch, capsysbinary):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"foo\nbar\nfoobar\n")))
    assert main(["bar$"]) == 0
    assert capsysbinary.readouterr().out == b"bar\nfoobar\n"