"""Registry constructor: turns declared rule sets into dual-form expanders.

Every declared rule yields two compiled rules:

- a *tagged* rule that only matches when the arguments start with the
  dispatcher's sentinel, and answers with a ``Resume`` continuation so the
  replacement is fed back into the decode engine, and
- a *plain* rule that matches the arguments directly and returns the
  replacement as ordinary output.

All tagged rules come before all plain rules. Otherwise a plain catch-all
like ``$($all:tt)*`` would swallow the sentinel on a dispatched call.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Literal, Mapping, Optional, Sequence, Union

from eager_macros.core.errors import DispatchMisroutedError, NoMatchingRuleError, RegistryError
from eager_macros.core.model import Sentinel, Token, is_identifier
from eager_macros.core.rules.pattern import Element, compile_pattern, match, transcribe, variables


logger = logging.getLogger(__name__)

RuleForm = Literal["tagged", "plain"]


@dataclass(frozen=True)
class RuleDecl:
    pattern: tuple[Token, ...]
    replacement: tuple[Token, ...]


@dataclass(frozen=True)
class ExpanderDecl:
    name: str
    rules: list[RuleDecl]
    metadata: dict[str, Any] = field(default_factory=dict)
    eager: bool = True


@dataclass(frozen=True)
class Resume:
    """Continuation returned by a tagged rule: restore ``frames``, decode ``tokens``."""

    frames: Any
    tokens: list[Token]


@dataclass(frozen=True)
class CompiledRule:
    form: RuleForm
    pattern: tuple[Element, ...]
    template: tuple[Element, ...]
    source: RuleDecl
    metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class Expander:
    name: str
    sentinel: str
    rules: tuple[CompiledRule, ...]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def dispatch_enabled(self) -> bool:
        return any(r.form == "tagged" for r in self.rules)

    @property
    def doc(self) -> Optional[str]:
        doc = self.metadata.get("doc")
        return doc if isinstance(doc, str) else None

    def apply(self, args: Sequence[Token]) -> Union[list[Token], Resume]:
        """Try rules in order; the first match wins."""
        for rule in self.rules:
            if rule.form == "tagged":
                if not args or not isinstance(args[0], Sentinel) or args[0].name != self.sentinel:
                    continue
                binds = match(rule.pattern, args[1:])
                if binds is not None:
                    return Resume(frames=args[0].resumption, tokens=transcribe(rule.template, binds))
            else:
                binds = match(rule.pattern, args)
                if binds is not None:
                    return transcribe(rule.template, binds)

        raise NoMatchingRuleError(
            code="E_NO_MATCHING_RULE",
            message=f"no rules of {self.name} matched this invocation",
            path=self.name,
        )

    def expand_direct(self, args: Sequence[Token]) -> list[Token]:
        result = self.apply(args)
        if isinstance(result, Resume):
            # Only reachable when the caller passes a sentinel by hand.
            return list(result.tokens)
        return result

    def expand_via_dispatch(self, args: Sequence[Token], resumption: Any) -> Resume:
        result = self.apply([Sentinel(self.sentinel, resumption), *args])
        if not isinstance(result, Resume):
            raise DispatchMisroutedError(
                code="E_DISPATCH_MISROUTED",
                message=(
                    f"a plain rule of {self.name} consumed the dispatch sentinel; "
                    "constrain its leading pattern variable or declare the expander with eager enabled"
                ),
                path=self.name,
            )
        return result


class Registry(Mapping[str, Expander]):
    """Read-only mapping of expander name -> Expander."""

    def __init__(self, expanders: Iterable[Expander] = ()) -> None:
        self._by_name: dict[str, Expander] = {}
        for e in expanders:
            self._by_name[e.name] = e

    def __getitem__(self, name: str) -> Expander:
        return self._by_name[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def merged(self, other: "Registry") -> "Registry":
        """Return a registry where ``other`` replaces same-named expanders."""
        merged = dict(self._by_name)
        merged.update(other._by_name)
        return Registry(merged.values())


def build_expander(sentinel: str, decl: ExpanderDecl) -> Expander:
    if not is_identifier(decl.name):
        raise RegistryError(
            code="E_INVALID_NAME",
            message=f"expander name must be an identifier, got {decl.name!r}",
            path=str(decl.name),
        )
    if not decl.rules:
        raise RegistryError(code="E_NO_RULES", message="an expander needs at least one rule", path=decl.name)

    tagged: list[CompiledRule] = []
    plain: list[CompiledRule] = []
    for i, rule in enumerate(decl.rules):
        where = f"{decl.name}.rules[{i}]"
        try:
            pattern = compile_pattern(rule.pattern)
            template = compile_pattern(rule.replacement, allow_fragments=False)
        except RegistryError as e:
            raise RegistryError(code=e.code, message=e.message, path=where) from e

        bound = variables(pattern)
        if sentinel in bound:
            raise RegistryError(
                code="E_SENTINEL_COLLISION",
                message=f"pattern variable ${sentinel} collides with the sentinel identifier",
                path=where,
            )
        unbound = sorted(variables(template) - bound)
        if unbound:
            raise RegistryError(
                code="E_UNBOUND_VARIABLE",
                message=f"replacement uses variables the pattern does not bind: {', '.join('$' + n for n in unbound)}",
                path=where,
            )

        if decl.eager:
            tagged.append(CompiledRule(form="tagged", pattern=pattern, template=template, source=rule))
        plain.append(
            CompiledRule(form="plain", pattern=pattern, template=template, source=rule, metadata=decl.metadata)
        )

    return Expander(name=decl.name, sentinel=sentinel, rules=tuple(tagged + plain), metadata=decl.metadata)


def declare_expanders(sentinel: str, decls: Iterable[ExpanderDecl]) -> Registry:
    """Rewrite declared rule sets into dual-form expanders, one per name."""

    if not is_identifier(sentinel):
        raise RegistryError(
            code="E_INVALID_SENTINEL",
            message=f"sentinel must be an identifier, got {sentinel!r}",
            path="sentinel",
        )

    expanders: list[Expander] = []
    seen: set[str] = set()
    for decl in decls:
        if decl.name in seen:
            raise RegistryError(
                code="E_DUPLICATE_EXPANDER",
                message=f"expander declared twice: {decl.name}",
                path=decl.name,
            )
        seen.add(decl.name)
        expander = build_expander(sentinel, decl)
        logger.debug(
            "declared %s: %d rules (dispatch %s)",
            expander.name,
            len(expander.rules),
            "enabled" if expander.dispatch_enabled else "disabled",
        )
        expanders.append(expander)
    return Registry(expanders)
