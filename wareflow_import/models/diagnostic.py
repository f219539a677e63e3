from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Diagnostic model shared by plugin validation, the orchestrator and the loader.

A Diagnostic is a single finding about an input document or an import run.
Diagnostics accumulate in an ordered list; an import is blocked only when at
least one ERROR diagnostic has can_continue=False.
"""

__all__ = [
    "Severity",
    "Diagnostic",
    "is_blocking",
    "has_errors",
]


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Diagnostic:
    """One validation / transform / load finding.

    sheet, row and column are optional locators. row is the 1-based data row
    index within the sheet (header excluded).
    """
    severity: Severity
    message: str
    can_continue: bool = True
    sheet: str | None = None
    row: int | None = None
    column: str | None = None
    suggestion: str | None = None

    @staticmethod
    def error(message: str, *, can_continue: bool = False, **locator: Any) -> Diagnostic:
        return Diagnostic(Severity.ERROR, message, can_continue=can_continue, **locator)

    @staticmethod
    def warning(message: str, **locator: Any) -> Diagnostic:
        return Diagnostic(Severity.WARNING, message, can_continue=True, **locator)

    @staticmethod
    def info(message: str, **locator: Any) -> Diagnostic:
        return Diagnostic(Severity.INFO, message, can_continue=True, **locator)

    @property
    def blocking(self) -> bool:
        return self.severity is Severity.ERROR and not self.can_continue

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the host interface (camelCase keys, optional keys omitted)."""
        data: dict[str, Any] = {
            "severity": self.severity.value,
            "message": self.message,
            "canContinue": self.can_continue,
        }
        for key in ("sheet", "row", "column", "suggestion"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


def is_blocking(diagnostics: Iterable[Diagnostic]) -> bool:
    """True if any diagnostic stops the import."""
    return any(d.blocking for d in diagnostics)


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
    """True if any diagnostic has ERROR severity (continuable or not)."""
    return any(d.severity is Severity.ERROR for d in diagnostics)
