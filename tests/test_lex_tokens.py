from pathlib import Path

import pytest

from eager_macros.core.errors import TokenLoadError
from eager_macros.core.io.lex_tokens import parse_tokens, read_tokens, render_tokens
from eager_macros.core.model import Group


def test_parse_invocations_and_groups():
    toks = parse_tokens("2 plus_1!() plus_1![x]")
    assert toks == ["2", "plus_1", "!", Group("()", ()), "plus_1", "!", Group("[]", ("x",))]


def test_parse_nested_groups_keep_delimiters():
    toks = parse_tokens("{a (b [c])}")
    assert toks == [Group("{}", ("a", Group("()", ("b", Group("[]", ("c",))))))]


def test_parse_atoms():
    toks = parse_tokens('x != 1u32 => "a \\" b" 1.5 $name :: // trailing comment\n y')
    assert toks == ["x", "!=", "1u32", "=>", '"a \\" b"', "1.5", "$name", "::", "y"]


def test_double_bang_is_two_tokens():
    assert parse_tokens("!!") == ["!", "!"]


def test_unclosed_delimiter_reports_opener():
    with pytest.raises(TokenLoadError) as exc:
        parse_tokens("a\n  (b c")
    assert exc.value.code == "E_UNBALANCED_DELIMITER"
    assert exc.value.path == "2:3"


def test_mismatched_delimiter():
    with pytest.raises(TokenLoadError) as exc:
        parse_tokens("(a]")
    assert exc.value.code == "E_UNBALANCED_DELIMITER"


def test_unterminated_string():
    with pytest.raises(TokenLoadError) as exc:
        parse_tokens('say "hello')
    assert exc.value.code == "E_UNTERMINATED_STRING"


def test_render_tokens():
    assert render_tokens(parse_tokens("add!(2, 3) {x}")) == "add ! (2 , 3) {x}"
    assert render_tokens([]) == ""


def test_read_tokens(tmp_path: Path):
    p = tmp_path / "src.txt"
    p.write_text("a {b}", encoding="utf-8")
    assert read_tokens(p) == ["a", Group("{}", ("b",))]


def test_read_tokens_missing_file():
    with pytest.raises(TokenLoadError) as exc:
        read_tokens("examples/does-not-exist.txt")
    assert exc.value.code == "E_FILE_NOT_FOUND"
