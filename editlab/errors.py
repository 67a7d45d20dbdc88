"""
Base exception for EDITLAB.

Concrete errors live next to the code that raises them
(PlanParseError in planning, ApplyError in applier, ...). They all
derive from EditLabError so the CLI can tell expected failures
apart from bugs.
"""

from __future__ import annotations


class EditLabError(Exception):
    """Base class for all EDITLAB specific errors."""


class FileOperationError(EditLabError):
    """An error tied to one file in a batch. Collected, not raised."""

    def __init__(self, file: str, message: str):
        super().__init__(f"{file}: {message}")
        self.file = file
        self.message = message
