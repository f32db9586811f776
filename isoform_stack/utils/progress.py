#!/usr/bin/env python3

"""
Progress reporting for long file scans.

Reporters are passed explicitly to the parser and called synchronously:
once with a message when a scan phase starts and once with a percentage
after every chunk. Calls are fire-and-forget.
"""

import logging
from typing import Callable, Optional


class ProgressReporter:
    """Reporter that ignores every update."""

    def update_message(self, message: str) -> None:
        pass

    def update_percentage(self, percentage: float) -> None:
        pass


class LoggingProgressReporter(ProgressReporter):
    """Writes progress to the log, at most once per ``step`` percent."""

    def __init__(self, step: float = 10.0):
        self.step = step
        self._last_logged = -step

    def update_message(self, message: str) -> None:
        logging.info(message)
        self._last_logged = -self.step

    def update_percentage(self, percentage: float) -> None:
        if percentage >= 100 or percentage - self._last_logged >= self.step:
            logging.info(f"Progress: {percentage:.2f}%")
            self._last_logged = percentage


class CallbackProgressReporter(ProgressReporter):
    """Forwards updates to caller-supplied callables."""

    def __init__(self, on_message: Optional[Callable[[str], None]] = None,
                 on_percentage: Optional[Callable[[float], None]] = None):
        self.on_message = on_message
        self.on_percentage = on_percentage

    def update_message(self, message: str) -> None:
        if self.on_message:
            self.on_message(message)

    def update_percentage(self, percentage: float) -> None:
        if self.on_percentage:
            self.on_percentage(percentage)
