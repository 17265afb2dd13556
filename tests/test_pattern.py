import pytest

from eager_macros.core.errors import RegistryError, TranscriptionError
from eager_macros.core.io.lex_tokens import parse_tokens as p
from eager_macros.core.model import Group
from eager_macros.core.rules.pattern import Lit, Repeat, Var, compile_pattern, match, transcribe, variables


def _expand(pattern: str, template: str, source: str):
    binds = match(compile_pattern(p(pattern)), p(source))
    assert binds is not None
    return transcribe(compile_pattern(p(template), allow_fragments=False), binds)


def test_compile_pattern_elements():
    elements = compile_pattern(p("$a:ident , $($rest:tt),*"))
    assert elements == (
        Var("a", "ident"),
        Lit(","),
        Repeat((Var("rest", "tt"),), ",", "*"),
    )
    assert variables(elements) == {"a", "rest"}


def test_separated_repetition_with_new_separator():
    assert _expand("$($x:ident),*", "[$($x);*]", "a, b, c") == [Group("[]", ("a", ";", "b", ";", "c"))]


def test_fragments_constrain_matches():
    ident = compile_pattern(p("$x:ident"))
    literal = compile_pattern(p("$x:literal"))
    assert match(ident, ["foo"]) == {"x": "foo"}
    assert match(ident, ["1"]) is None
    assert match(literal, ["1"]) == {"x": "1"}
    assert match(literal, ['"s"']) == {"x": '"s"'}
    assert match(literal, ["foo"]) is None


def test_tt_binds_a_whole_group():
    binds = match(compile_pattern(p("$x:tt")), p("(1 2)"))
    assert binds == {"x": Group("()", ("1", "2"))}


def test_group_pattern_checks_delimiter():
    pattern = compile_pattern(p("{$x}"))
    assert match(pattern, p("{1}")) == {"x": "1"}
    assert match(pattern, p("(1)")) is None


def test_optional_repetition():
    pattern = compile_pattern(p("$($x:tt)? end"))
    assert match(pattern, p("end")) == {"x": []}
    assert match(pattern, p("1 end")) == {"x": ["1"]}
    assert match(pattern, p("1 2 end")) is None


def test_one_or_more_needs_one():
    pattern = compile_pattern(p("$($x:tt)+"))
    assert match(pattern, []) is None
    assert match(pattern, p("a b")) == {"x": ["a", "b"]}


def test_greedy_repetition_backtracks():
    assert _expand("$($a:tt)* end", "$($a)*", "x y end") == ["x", "y"]


def test_literal_tokens_must_match_exactly():
    pattern = compile_pattern(p("one"))
    assert match(pattern, ["one"]) == {}
    assert match(pattern, ["two"]) is None
    assert match(pattern, ["one", "one"]) is None


def test_template_fragment_syntax_is_literal():
    assert _expand("$x:tt", "$x : tt", "a") == ["a", ":", "tt"]


def test_repetition_length_mismatch():
    with pytest.raises(TranscriptionError) as exc:
        _expand("$($a:tt)* ; $($b:tt)*", "$($a $b)*", "1 2 ; 3")
    assert exc.value.code == "E_REPETITION_MISMATCH"


def test_repeating_variable_used_outside_repetition():
    binds = match(compile_pattern(p("$($a:tt)*")), p("1 2"))
    with pytest.raises(TranscriptionError) as exc:
        transcribe(compile_pattern(p("$a"), allow_fragments=False), binds)
    assert exc.value.code == "E_REPETITION_DEPTH"


def test_repetition_without_operator_is_invalid():
    with pytest.raises(RegistryError) as exc:
        compile_pattern(p("$(a)"))
    assert exc.value.code == "E_INVALID_PATTERN"


def test_unknown_fragment():
    with pytest.raises(RegistryError) as exc:
        compile_pattern(p("$x:expr"))
    assert exc.value.code == "E_UNKNOWN_FRAGMENT"
