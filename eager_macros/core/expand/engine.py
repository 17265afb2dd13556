"""Frame-stack decode engine.

The engine walks a token stream left to right. Each level of the stack is a
``Frame``::

    mode         expand | restrict
    mode_suffix  input still to decode once the current mode region ends,
                 in the opposite mode
    prefix       tokens already decoded, newest first (reverse order)
    postfix      tokens that followed the group being decoded one level down
    pending      that group (its delimiter, and its decoded content once the
                 child frame has been merged back)

Decoding always happens on the top frame. Simple tokens go to the front of
the prefix. A group pushes a new frame for its contents; when that frame runs
dry it is popped and its content becomes the parent's pending group. If the
parent's prefix then starts with ``! name`` and the parent is in expand
mode, the group was an invocation argument and the named expander is
dispatched with the whole stack as resumption. Its replacement comes back as
new input followed by the saved postfix, so it is decoded before anything
that followed the invocation.

Example, ``1 m!{t} 5`` where ``m!{t}`` expands to ``3 4``::

    [expand [] [! m 1] [5] {t}]    group decoded, prefix holds "! m"
    [expand [] [1] []]             dispatch m, input "3 4 5"
    [expand [] [5 4 3 1] []]       input exhausted, reverse -> 1 3 4 5

A ``lazy!{...}`` region in expand mode parks the rest of the input in
``mode_suffix`` and flips the mode; once the region is exhausted the suffix
is decoded in the enclosing mode again. Same-mode keywords are unwrapped.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from eager_macros.core.errors import ExpansionDepthError, UnresolvedInvocationError
from eager_macros.core.expand.engine_config import DEFAULT_CONFIG, EngineConfig
from eager_macros.core.model import CALL_MARKER, Delimiter, Group, Mode, Token, classify, is_identifier, opposite
from eager_macros.core.rules.registry import Registry, Resume


logger = logging.getLogger(__name__)


@dataclass
class PendingGroup:
    # None marks a mode region whose output is spliced, not wrapped.
    delimiter: Optional[Delimiter]
    tokens: Optional[list[Token]] = None


@dataclass
class Frame:
    mode: Mode
    mode_suffix: list[Token] = field(default_factory=list)
    prefix: deque = field(default_factory=deque)
    postfix: list[Token] = field(default_factory=list)
    pending: Optional[PendingGroup] = None


def reverse_tokens(reversed_tokens: Iterable[Token]) -> list[Token]:
    """Turn a front-inserted (newest first) sequence into forward order."""
    to_reverse = deque(reversed_tokens)
    if not to_reverse:
        return []
    result: deque = deque()
    while len(to_reverse) > 1:
        result.appendleft(to_reverse.popleft())
    result.appendleft(to_reverse.popleft())
    return list(result)


class Engine:
    def __init__(self, registry: Registry, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self.registry = registry
        self.config = config

    def eager(self, tokens: Sequence[Token]) -> list[Token]:
        """Entry invocation: expand every invocation reachable in expand mode."""
        return self.decode([Frame(mode="expand")], tokens)

    def lazy(self, tokens: Sequence[Token]) -> list[Token]:
        """Opt-out invocation: behaves like the entry invocation over a restrict region."""
        wrapped: list[Token] = [self.config.restrict_keyword, CALL_MARKER, Group("{}", tuple(tokens))]
        return self.eager(wrapped)

    def decode(self, stack: list[Frame], tokens: Sequence[Token]) -> list[Token]:
        cfg = self.config
        stack = list(stack)
        pending_input: deque = deque(tokens)
        steps = 0

        while True:
            steps += 1
            if steps > cfg.step_limit:
                raise ExpansionDepthError(
                    code="E_STEP_LIMIT",
                    message=f"expansion exceeded {cfg.step_limit} steps; raise step_limit if this input is legitimate",
                )

            frame = stack[-1]

            if not pending_input:
                if frame.pending is None:
                    if frame.mode_suffix:
                        # Region exhausted: the rest is decoded in the enclosing mode.
                        frame.mode = opposite(frame.mode)
                        pending_input = deque(frame.mode_suffix)
                        frame.mode_suffix = []
                        continue

                    if len(stack) > 1:
                        stack.pop()
                        parent = stack[-1]
                        assert parent.pending is not None
                        parent.pending.tokens = reverse_tokens(frame.prefix)
                        continue

                    return reverse_tokens(frame.prefix)

                pending = frame.pending
                assert pending.tokens is not None
                name = self._invocation_name(frame)
                if name is not None:
                    frame.prefix.popleft()
                    frame.prefix.popleft()
                    frame.pending = None
                    resume = self._dispatch(name, pending.tokens, tuple(stack))
                    stack = list(resume.frames)
                    top = stack[-1]
                    pending_input = deque(resume.tokens)
                    pending_input.extend(top.postfix)
                    top.postfix = []
                    continue

                if pending.delimiter is None:
                    for tok in pending.tokens:
                        frame.prefix.appendleft(tok)
                else:
                    frame.prefix.appendleft(Group(pending.delimiter, tuple(pending.tokens)))
                pending_input = deque(frame.postfix)
                frame.postfix = []
                frame.pending = None
                continue

            c = classify(
                (pending_input[0], pending_input[1], pending_input[2]) if len(pending_input) >= 3 else tuple(pending_input),
                expand_keyword=cfg.expand_keyword,
                restrict_keyword=cfg.restrict_keyword,
            )

            if c.kind == "group":
                group = pending_input.popleft()
                frame.postfix = list(pending_input)
                frame.pending = PendingGroup(delimiter=group.delimiter)
                self._push(stack, Frame(mode=frame.mode))
                pending_input = deque(group.tokens)
                continue

            if c.kind == "mode_keyword":
                assert c.mode is not None
                pending_input.popleft()
                pending_input.popleft()
                body = list(pending_input.popleft().tokens)

                if c.mode == frame.mode:
                    pending_input.extendleft(reversed(body))
                    continue

                logger.debug("entering %s region at depth %d", c.mode, len(stack))
                if not frame.mode_suffix:
                    frame.mode_suffix = list(pending_input)
                    frame.mode = c.mode
                else:
                    # The frame is already inside a region with a parked suffix:
                    # decode this region one level down and splice its output.
                    frame.postfix = list(pending_input)
                    frame.pending = PendingGroup(delimiter=None)
                    self._push(stack, Frame(mode=c.mode))
                pending_input = deque(body)
                continue

            frame.prefix.appendleft(pending_input.popleft())

    def _invocation_name(self, frame: Frame) -> Optional[str]:
        pending = frame.pending
        if frame.mode != "expand" or pending is None or pending.delimiter is None:
            return None
        if len(frame.prefix) < 2 or frame.prefix[0] != CALL_MARKER:
            return None
        head = frame.prefix[1]
        return head if is_identifier(head) else None

    def _dispatch(self, name: str, args: list[Token], resumption: tuple[Frame, ...]) -> Resume:
        expander = self.registry.get(name)
        if expander is None:
            raise UnresolvedInvocationError(
                code="E_UNRESOLVED_INVOCATION",
                message=f"no expander is registered under {name}",
                path=name,
            )
        logger.debug("dispatching %s with %d argument tokens", name, len(args))
        return expander.expand_via_dispatch(args, resumption)

    def _push(self, stack: list[Frame], frame: Frame) -> None:
        if len(stack) >= self.config.recursion_limit:
            raise ExpansionDepthError(
                code="E_RECURSION_LIMIT",
                message=(
                    f"frame depth exceeded recursion_limit={self.config.recursion_limit}; "
                    "raise recursion_limit if this nesting is legitimate"
                ),
            )
        stack.append(frame)


def expand_eager(tokens: Sequence[Token], registry: Registry, config: EngineConfig = DEFAULT_CONFIG) -> list[Token]:
    return Engine(registry, config).eager(tokens)


def expand_lazy(tokens: Sequence[Token], registry: Registry, config: EngineConfig = DEFAULT_CONFIG) -> list[Token]:
    return Engine(registry, config).lazy(tokens)
