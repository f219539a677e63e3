from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress reporting for import runs.

A progress sink is any callable `(percent: float, message: str) -> None`.

- SafeProgressSink wraps a caller-supplied sink: percentages are clamped to
  0-100 and never go backwards, and an exception raised by the sink is logged
  at WARNING instead of aborting the import.
- ImportProgressBar is a tqdm bar (TTY only) usable as a sink by the CLI.
"""

__all__ = [
    "ProgressSink",
    "SafeProgressSink",
    "ImportProgressBar",
    "is_tty_enabled",
    "scaled",
]

logger = logging.getLogger(__name__)

ProgressSink = Callable[[float, str], None]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


def scaled(sink: ProgressSink, start: float, end: float) -> ProgressSink:
    """Map a sub-stage 0-100 onto [start, end] of the parent sink."""
    span = end - start

    def report(percent: float, message: str) -> None:
        sink(start + max(0.0, min(100.0, percent)) * span / 100.0, message)

    return report


class SafeProgressSink:
    def __init__(self, sink: ProgressSink | None) -> None:
        self._sink = sink
        self.last_percent = 0.0
        self.failures = 0

    def __call__(self, percent: float, message: str) -> None:
        percent = max(self.last_percent, min(100.0, float(percent)))
        self.last_percent = percent
        if self._sink is None:
            return
        try:
            self._sink(percent, message)
        except Exception:
            self.failures += 1
            logger.warning("progress callback failed at %.0f%% (%s)", percent, message, exc_info=True)


class ImportProgressBar:
    """tqdm bar over 0-100 %. Disabled (no output) when stdout is not a TTY."""

    def __init__(self, description: str = "Importing") -> None:
        self.description = description
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=100,
                desc=description,
                unit="%",
                leave=True,
                ncols=80,
                ascii=True,
                bar_format="{desc}: {percentage:3.0f}%|{bar}| {postfix}",
            )
        else:
            self.pbar = None
        self._position = 0.0

    def __call__(self, percent: float, message: str) -> None:
        if self.pbar is None:
            return
        delta = percent - self._position
        if delta > 0:
            self.pbar.update(delta)
            self._position = percent
        self.pbar.set_postfix_str(message)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ImportProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
