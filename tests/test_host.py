import pytest

from eager_macros.core.errors import ExpansionDepthError
from eager_macros.core.expand.engine_config import EngineConfig
from eager_macros.core.expand.host import LazyHost
from eager_macros.core.io.lex_tokens import parse_tokens as p
from eager_macros.core.io.load_registry import load_registry
from eager_macros.core.rules.registry import ExpanderDecl, RuleDecl, declare_expanders


def _counting_registry():
    rules = [
        ("1", "+ 1"),
        ("2", "eager!{1 test_macro!(1)}"),
        ("3", "eager!{1 test_macro!(1) test_macro!(1)}"),
        ("4", "test_macro!(2) + test_macro!(2)"),
    ]
    decl = ExpanderDecl(name="test_macro", rules=[RuleDecl(tuple(p(a)), tuple(p(b))) for a, b in rules])
    return declare_expanders("eager_1", [decl])


@pytest.mark.parametrize(
    "arg, expected",
    [
        ("2", "1 + 1"),
        ("3", "1 + 1 + 1"),
        ("4", "1 + 1 + 1 + 1"),
    ],
)
def test_host_hands_entry_regions_to_the_engine(arg, expected):
    host = LazyHost(_counting_registry())
    assert host.call("test_macro", [arg]) == p(expected)


def test_calculate_expands_its_helpers_eagerly():
    host = LazyHost(load_registry("examples/registry.yaml"))
    assert host.call("calculate", p("one plus two")) == p("1 + 2")


def test_host_expands_what_a_restrict_region_left():
    host = LazyHost(load_registry("examples/registry.yaml"))
    assert host.evaluate(p("lazy!{ lazy_macro!{} }")) == p("1 + 1")
    assert host.evaluate(p("lazy_macro!{success}")) == p("1")


def test_host_leaves_unknown_invocations_verbatim():
    host = LazyHost(load_registry("examples/registry.yaml"))
    assert host.evaluate(p("println!(x) [plus_1!()]")) == p("println!(x) [+ 1]")


def test_host_step_limit():
    decl = ExpanderDecl(name="forever", rules=[RuleDecl((), tuple(p("forever!()")))], eager=False)
    host = LazyHost(declare_expanders("eager_1", [decl]), EngineConfig(step_limit=100))
    with pytest.raises(ExpansionDepthError) as exc:
        host.evaluate(p("forever!()"))
    assert exc.value.code == "E_STEP_LIMIT"
