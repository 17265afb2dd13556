from eager_macros.core.io.lex_tokens import parse_tokens
from eager_macros.core.model import Classification, Sentinel, classify, is_identifier, is_literal, opposite


def test_classify_shapes():
    assert classify(parse_tokens("a b")) == Classification(kind="simple")
    assert classify(parse_tokens("[a] b")) == Classification(kind="group", delimiter="[]")
    assert classify(parse_tokens("m!(a)")) == Classification(kind="invocation_head", delimiter="()")
    assert classify(parse_tokens("eager!{a}")) == Classification(kind="mode_keyword", delimiter="{}", mode="expand")
    assert classify(parse_tokens("lazy![a]")) == Classification(kind="mode_keyword", delimiter="[]", mode="restrict")


def test_classify_falls_back_to_simple():
    assert classify([]).kind == "simple"
    assert classify(parse_tokens("m!")).kind == "simple"
    assert classify(parse_tokens("m ! x")).kind == "simple"
    assert classify(parse_tokens("1 ! (x)")).kind == "simple"


def test_classify_custom_keywords():
    toks = parse_tokens("now!{x}")
    assert classify(toks).kind == "invocation_head"
    assert classify(toks, expand_keyword="now").mode == "expand"


def test_token_predicates():
    assert is_identifier("plus_1")
    assert not is_identifier("1x")
    assert not is_identifier(Sentinel("eager_1"))
    assert is_literal("42")
    assert is_literal('"s"')
    assert not is_literal("x")
    assert opposite("expand") == "restrict"
    assert opposite("restrict") == "expand"


def test_sentinel_equality_ignores_resumption():
    assert Sentinel("eager_1", resumption=(1,)) == Sentinel("eager_1", resumption=(2,))
