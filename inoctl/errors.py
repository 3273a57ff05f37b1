"""Error types for inoctl."""

from __future__ import annotations


class InoctlError(Exception):
    """Structured error with exit code."""

    exit_code = 1

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code

    def to_dict(self) -> dict:
        return {"error": self.message, "exit_code": self.exit_code}


class NoBoardError(InoctlError):
    """Raised when board discovery finds nothing to target."""
    exit_code = 2

    def __init__(self, message: str = "No board connected"):
        super().__init__(message)


class NoMatchError(InoctlError):
    """Raised when a selection cannot be mapped back to a board."""
    exit_code = 3


class EmptyResultError(InoctlError):
    """Raised when a listing that must offer at least one option is empty."""
    exit_code = 4


class ParseError(InoctlError):
    """Raised when captured output is not valid JSON."""
    exit_code = 5


class FieldError(ParseError):
    """Raised when a parsed tree lacks a required field."""


class ExternalToolError(InoctlError):
    """Raised when arduino-cli is missing, times out, or exits non-zero."""
    exit_code = 6

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["returncode"] = self.returncode
        return data
