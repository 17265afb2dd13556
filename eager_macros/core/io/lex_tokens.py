from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from eager_macros.core.errors import TokenLoadError
from eager_macros.core.model import Delimiter, Group, Sentinel, Token


OPEN_TO_DELIMITER: dict[str, Delimiter] = {"{": "{}", "(": "()", "[": "[]"}
CLOSE_TO_DELIMITER: dict[str, Delimiter] = {"}": "{}", ")": "()", "]": "[]"}

# Longest first; anything else is a one-character punctuation token.
MULTI_CHAR_OPERATORS: tuple[str, ...] = ("=>", "->", "::", "==", "!=", "<=", ">=", "&&", "||", "..")


def parse_tokens(text: str, *, file: Optional[str] = None) -> list[Token]:
    """Lex flat text into atoms and delimited groups.

    The grammar is intentionally shallow: it only knows identifiers, numbers,
    strings, pattern variables, punctuation and the three delimiter kinds.
    """

    # Each stack entry: (delimiter, tokens collected so far, line, column of opener)
    stack: list[tuple[Optional[Delimiter], list[Token], int, int]] = [(None, [], 1, 1)]
    i = 0
    line = 1
    line_start = 0
    n = len(text)

    def _loc(pos: int) -> str:
        return f"{line}:{pos - line_start + 1}"

    while i < n:
        ch = text[i]

        if ch == "\n":
            line += 1
            line_start = i + 1
            i += 1
            continue
        if ch.isspace():
            i += 1
            continue
        if text.startswith("//", i):
            while i < n and text[i] != "\n":
                i += 1
            continue

        current = stack[-1][1]

        if ch in OPEN_TO_DELIMITER:
            stack.append((OPEN_TO_DELIMITER[ch], [], line, i - line_start + 1))
            i += 1
            continue

        if ch in CLOSE_TO_DELIMITER:
            delimiter, body, _, _ = stack[-1]
            if delimiter != CLOSE_TO_DELIMITER[ch]:
                raise TokenLoadError(
                    code="E_UNBALANCED_DELIMITER",
                    message=f"unexpected closing delimiter {ch!r}",
                    file=file,
                    path=_loc(i),
                )
            stack.pop()
            stack[-1][1].append(Group(delimiter, tuple(body)))
            i += 1
            continue

        if ch == '"':
            start = i
            start_loc = _loc(i)
            i += 1
            while i < n and text[i] != '"':
                if text[i] == "\\":
                    i += 1
                elif text[i] == "\n":
                    line += 1
                    line_start = i + 1
                i += 1
            if i >= n:
                raise TokenLoadError(
                    code="E_UNTERMINATED_STRING",
                    message="string literal is not terminated",
                    file=file,
                    path=start_loc,
                )
            i += 1
            current.append(text[start:i])
            continue

        if ch.isdigit():
            start = i
            while i < n and (text[i].isalnum() or text[i] == "_" or (text[i] == "." and i + 1 < n and text[i + 1].isdigit())):
                i += 1
            current.append(text[start:i])
            continue

        if ch.isalpha() or ch == "_":
            start = i
            while i < n and (text[i].isalnum() or text[i] == "_"):
                i += 1
            current.append(text[start:i])
            continue

        if ch == "$" and i + 1 < n and (text[i + 1].isalpha() or text[i + 1] == "_"):
            start = i
            i += 1
            while i < n and (text[i].isalnum() or text[i] == "_"):
                i += 1
            current.append(text[start:i])
            continue

        for op in MULTI_CHAR_OPERATORS:
            if text.startswith(op, i):
                current.append(op)
                i += len(op)
                break
        else:
            current.append(ch)
            i += 1

    if len(stack) > 1:
        delimiter, _, open_line, open_col = stack[-1]
        raise TokenLoadError(
            code="E_UNBALANCED_DELIMITER",
            message=f"unclosed delimiter {delimiter[0] if delimiter else '?'!r}",
            file=file,
            path=f"{open_line}:{open_col}",
        )

    return stack[0][1]


def read_tokens(path: str | Path) -> list[Token]:
    p = Path(path)
    if not p.exists():
        raise TokenLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))
    try:
        text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise TokenLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e
    return parse_tokens(text, file=str(p))


def render_tokens(tokens: Iterable[Token]) -> str:
    parts: list[str] = []
    for tok in tokens:
        if isinstance(tok, Group):
            parts.append(tok.delimiter[0] + render_tokens(tok.tokens) + tok.delimiter[1])
        elif isinstance(tok, Sentinel):
            parts.append(f"<sentinel:{tok.name}>")
        else:
            parts.append(tok)
    return " ".join(parts)
