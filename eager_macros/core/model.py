from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Sequence, Union


Delimiter = Literal["{}", "()", "[]"]
Mode = Literal["expand", "restrict"]
TokenKind = Literal["simple", "group", "invocation_head", "mode_keyword"]

DELIMITERS: tuple[Delimiter, ...] = ("{}", "()", "[]")
CALL_MARKER = "!"

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")


@dataclass(frozen=True)
class Group:
    delimiter: Delimiter
    tokens: tuple["Token", ...] = ()


@dataclass(frozen=True)
class Sentinel:
    """Dispatcher-private marker placed in front of an argument list.

    Only the dispatcher creates these; the lexer never does. The resumption
    payload is ignored by equality.
    """

    name: str
    resumption: Any = field(default=None, compare=False, repr=False)


Token = Union[str, Group, Sentinel]


@dataclass(frozen=True)
class Classification:
    kind: TokenKind
    delimiter: Optional[Delimiter] = None
    mode: Optional[Mode] = None


def is_identifier(tok: Any) -> bool:
    return isinstance(tok, str) and _IDENT_RE.match(tok) is not None


def is_literal(tok: Any) -> bool:
    if not isinstance(tok, str) or not tok:
        return False
    return tok[0].isdigit() or (len(tok) >= 2 and tok[0] == '"' and tok[-1] == '"')


def opposite(mode: Mode) -> Mode:
    return "restrict" if mode == "expand" else "expand"


def classify(
    tokens: Sequence[Token],
    *,
    expand_keyword: str = "eager",
    restrict_keyword: str = "lazy",
) -> Classification:
    """Classify the front of a token sequence by structural shape only.

    Never fails: an empty sequence or an unrecognized shape is "simple".
    """

    if not tokens:
        return Classification(kind="simple")

    head = tokens[0]
    if isinstance(head, Group):
        return Classification(kind="group", delimiter=head.delimiter)

    if len(tokens) >= 3 and is_identifier(head) and tokens[1] == CALL_MARKER and isinstance(tokens[2], Group):
        delimiter = tokens[2].delimiter
        if head == expand_keyword:
            return Classification(kind="mode_keyword", delimiter=delimiter, mode="expand")
        if head == restrict_keyword:
            return Classification(kind="mode_keyword", delimiter=delimiter, mode="restrict")
        return Classification(kind="invocation_head", delimiter=delimiter)

    return Classification(kind="simple")
