"""Rule pattern matching and replacement transcription.

A small interpreter for the rule language used by expander declarations:

- literal atoms and groups match structurally,
- ``$name`` / ``$name:frag`` bind one token tree,
- ``$( ... ) op`` and ``$( ... ) sep op`` repeat (``op`` in ``* + ?``).

Bindings for variables under a repetition are lists (one entry per
iteration, nested once per repetition level).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Union

from eager_macros.core.errors import RegistryError, TranscriptionError
from eager_macros.core.model import Delimiter, Group, Token, is_identifier, is_literal


FRAGMENTS: set[str] = {"tt", "ident", "literal"}
REPEAT_OPS: set[str] = {"*", "+", "?"}


@dataclass(frozen=True)
class Lit:
    token: str


@dataclass(frozen=True)
class Var:
    name: str
    fragment: str = "tt"


@dataclass(frozen=True)
class GroupPat:
    delimiter: Delimiter
    elements: tuple["Element", ...]


@dataclass(frozen=True)
class Repeat:
    elements: tuple["Element", ...]
    separator: Optional[str]
    op: str


Element = Union[Lit, Var, GroupPat, Repeat]
Bindings = dict[str, Any]


def compile_pattern(tokens: Sequence[Token], *, allow_fragments: bool = True) -> tuple[Element, ...]:
    """Compile rule tokens into matcher elements.

    Templates are compiled with ``allow_fragments=False``: there ``$x : tt``
    is just a variable followed by two literal tokens.
    """

    out: list[Element] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if isinstance(tok, Group):
            out.append(GroupPat(tok.delimiter, compile_pattern(tok.tokens, allow_fragments=allow_fragments)))
            i += 1
            continue
        if not isinstance(tok, str):
            raise RegistryError(code="E_INVALID_PATTERN", message=f"unexpected token in rule: {tok!r}")

        if tok == "$" and i + 1 < len(tokens) and isinstance(tokens[i + 1], Group) and tokens[i + 1].delimiter == "()":
            inner = compile_pattern(tokens[i + 1].tokens, allow_fragments=allow_fragments)
            i += 2
            separator: Optional[str] = None
            if i < len(tokens) and tokens[i] not in REPEAT_OPS:
                sep = tokens[i]
                if not isinstance(sep, str):
                    raise RegistryError(code="E_INVALID_PATTERN", message="repetition separator must be a single atom")
                separator = sep
                i += 1
            if i >= len(tokens) or tokens[i] not in REPEAT_OPS:
                raise RegistryError(code="E_INVALID_PATTERN", message="repetition must end with one of * + ?")
            op = tokens[i]
            if op == "?" and separator is not None:
                raise RegistryError(code="E_INVALID_PATTERN", message="the ? repetition does not take a separator")
            out.append(Repeat(inner, separator, str(op)))
            i += 1
            continue

        if len(tok) > 1 and tok.startswith("$"):
            name = tok[1:]
            fragment = "tt"
            if allow_fragments and i + 2 < len(tokens) and tokens[i + 1] == ":" and is_identifier(tokens[i + 2]):
                fragment = str(tokens[i + 2])
                if fragment not in FRAGMENTS:
                    raise RegistryError(
                        code="E_UNKNOWN_FRAGMENT",
                        message=f"unknown fragment ${name}:{fragment} (choose one of: {', '.join(sorted(FRAGMENTS))})",
                    )
                i += 2
            out.append(Var(name, fragment))
            i += 1
            continue

        out.append(Lit(tok))
        i += 1
    return tuple(out)


def variables(elements: Sequence[Element]) -> set[str]:
    names: set[str] = set()
    for e in elements:
        if isinstance(e, Var):
            names.add(e.name)
        elif isinstance(e, (GroupPat, Repeat)):
            names |= variables(e.elements)
    return names


def match(elements: Sequence[Element], tokens: Sequence[Token]) -> Optional[Bindings]:
    """Return bindings for the first full match, or None."""
    for end, binds in _match_seq(elements, 0, tokens, 0, {}):
        if end == len(tokens):
            return binds
    return None


def transcribe(elements: Sequence[Element], binds: Bindings) -> list[Token]:
    out: list[Token] = []
    _transcribe(elements, binds, out)
    return out


def _fragment_ok(fragment: str, tok: Token) -> bool:
    if fragment == "ident":
        return is_identifier(tok)
    if fragment == "literal":
        return is_literal(tok)
    return True


def _match_seq(
    elements: Sequence[Element], i: int, tokens: Sequence[Token], pos: int, binds: Bindings
) -> Iterator[tuple[int, Bindings]]:
    if i == len(elements):
        yield pos, binds
        return

    e = elements[i]
    if isinstance(e, Lit):
        if pos < len(tokens) and isinstance(tokens[pos], str) and tokens[pos] == e.token:
            yield from _match_seq(elements, i + 1, tokens, pos + 1, binds)

    elif isinstance(e, Var):
        if pos < len(tokens) and _fragment_ok(e.fragment, tokens[pos]):
            yield from _match_seq(elements, i + 1, tokens, pos + 1, {**binds, e.name: tokens[pos]})

    elif isinstance(e, GroupPat):
        if pos < len(tokens):
            tok = tokens[pos]
            if isinstance(tok, Group) and tok.delimiter == e.delimiter:
                for end, inner in _match_seq(e.elements, 0, tok.tokens, 0, binds):
                    if end == len(tok.tokens):
                        yield from _match_seq(elements, i + 1, tokens, pos + 1, inner)

    else:
        for end, iterations in _match_repeat(e, tokens, pos, []):
            merged = dict(binds)
            for name in variables(e.elements):
                merged[name] = [it.get(name) for it in iterations]
            yield from _match_seq(elements, i + 1, tokens, end, merged)


def _match_repeat(
    rep: Repeat, tokens: Sequence[Token], pos: int, iterations: list[Bindings]
) -> Iterator[tuple[int, list[Bindings]]]:
    # Greedy: try one more iteration before stopping here.
    if rep.op != "?" or not iterations:
        start: Optional[int] = pos
        if iterations and rep.separator is not None:
            start = pos + 1 if pos < len(tokens) and tokens[pos] == rep.separator else None
        if start is not None:
            for end, inner in _match_seq(rep.elements, 0, tokens, start, {}):
                if end > pos:
                    yield from _match_repeat(rep, tokens, end, iterations + [inner])
    if rep.op != "+" or iterations:
        yield pos, iterations


def _transcribe(elements: Sequence[Element], binds: Bindings, out: list[Token]) -> None:
    for e in elements:
        if isinstance(e, Lit):
            out.append(e.token)
        elif isinstance(e, Var):
            value = binds.get(e.name)
            if isinstance(value, list):
                raise TranscriptionError(
                    code="E_REPETITION_DEPTH",
                    message=f"variable ${e.name} is still repeating at this depth",
                )
            if value is None:
                raise TranscriptionError(code="E_UNBOUND_VARIABLE", message=f"variable ${e.name} is not bound")
            out.append(value)
        elif isinstance(e, GroupPat):
            inner: list[Token] = []
            _transcribe(e.elements, binds, inner)
            out.append(Group(e.delimiter, tuple(inner)))
        else:
            repeated = sorted(name for name in variables(e.elements) if isinstance(binds.get(name), list))
            if not repeated:
                raise TranscriptionError(
                    code="E_REPETITION_MISMATCH",
                    message="repetition in replacement uses no repeating variable",
                )
            counts = {len(binds[name]) for name in repeated}
            if len(counts) != 1:
                raise TranscriptionError(
                    code="E_REPETITION_MISMATCH",
                    message=f"repeating variables have different lengths: {', '.join('$' + n for n in repeated)}",
                )
            for k in range(counts.pop()):
                if k and e.separator is not None:
                    out.append(e.separator)
                _transcribe(e.elements, {**binds, **{name: binds[name][k] for name in repeated}}, out)
