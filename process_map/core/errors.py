from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, TypeVar


@dataclass(frozen=True)
class ProcessMapError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

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
        loc = ":".join(parts) if parts else "<state>"
        return f"{loc}: {self.code}: {self.message}"


class StateLoadError(ProcessMapError):
    pass


class StateValidationError(ProcessMapError):
    pass


ErrorT = TypeVar("ErrorT", bound=ProcessMapError)


def sort_errors(errors: Iterable[ErrorT]) -> list[ErrorT]:
    """Stable report order: by file, then record path, then code."""
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
