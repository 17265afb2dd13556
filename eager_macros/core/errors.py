from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExpansionError(Exception):
    """Base error envelope. Every failure carries a stable code."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<tokens>"
        return f"{loc}: {self.code}: {self.message}"


class TokenLoadError(ExpansionError):
    pass


class RegistryError(ExpansionError):
    pass


class UnresolvedInvocationError(ExpansionError):
    pass


class NoMatchingRuleError(ExpansionError):
    pass


class TranscriptionError(ExpansionError):
    pass


class DispatchMisroutedError(ExpansionError):
    pass


class ExpansionDepthError(ExpansionError):
    pass
