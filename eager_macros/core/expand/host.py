from __future__ import annotations

import logging
from collections import deque
from typing import Sequence

from eager_macros.core.errors import ExpansionDepthError
from eager_macros.core.expand.engine import Engine
from eager_macros.core.expand.engine_config import DEFAULT_CONFIG, EngineConfig
from eager_macros.core.model import CALL_MARKER, Group, Token, classify
from eager_macros.core.rules.registry import Registry


logger = logging.getLogger(__name__)


class LazyHost:
    """Call-by-name evaluator: the host's native outside-in expansion order.

    An invocation is replaced by its plain-form expansion before its
    arguments are looked at, and the replacement is scanned again in place.
    The entry and opt-out keywords hand their body to the decode engine.
    Invocations of names the registry does not know are left untouched.
    """

    def __init__(self, registry: Registry, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self.registry = registry
        self.config = config
        self.engine = Engine(registry, config)
        self._steps = 0

    def evaluate(self, tokens: Sequence[Token]) -> list[Token]:
        self._steps = 0
        return self._evaluate(tokens)

    def call(self, name: str, args: Sequence[Token]) -> list[Token]:
        """Invoke one expander directly, then evaluate what it produced."""
        return self.evaluate([name, CALL_MARKER, Group("()", tuple(args))])

    def _evaluate(self, tokens: Sequence[Token]) -> list[Token]:
        cfg = self.config
        work: deque = deque(tokens)
        out: list[Token] = []

        while work:
            self._steps += 1
            if self._steps > cfg.step_limit:
                raise ExpansionDepthError(
                    code="E_STEP_LIMIT",
                    message=f"host evaluation exceeded {cfg.step_limit} steps; raise step_limit if this input is legitimate",
                )

            head = tuple(work[i] for i in range(min(3, len(work))))
            c = classify(head, expand_keyword=cfg.expand_keyword, restrict_keyword=cfg.restrict_keyword)

            if c.kind == "mode_keyword":
                work.popleft()
                work.popleft()
                body = work.popleft().tokens
                replacement = self.engine.eager(body) if c.mode == "expand" else self.engine.lazy(body)
                work.extendleft(reversed(replacement))
                continue

            if c.kind == "invocation_head" and head[0] in self.registry:
                name = work.popleft()
                work.popleft()
                args = work.popleft().tokens
                logger.debug("host expanding %s", name)
                replacement = self.registry[name].expand_direct(args)
                work.extendleft(reversed(replacement))
                continue

            if c.kind == "invocation_head":
                out.append(work.popleft())
                out.append(work.popleft())
                out.append(work.popleft())
                continue

            tok = work.popleft()
            if isinstance(tok, Group):
                out.append(Group(tok.delimiter, tuple(self._evaluate(tok.tokens))))
            else:
                out.append(tok)

        return out
