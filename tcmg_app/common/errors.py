from __future__ import annotations


class CommanderError(Exception):
    """Base class for errors raised by the commander services."""


class StartFailure(CommanderError):
    """The server backend reported a non-zero start code."""

    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or f"server start failed (code {code})")


class ResourceUnavailable(CommanderError):
    """The keep-alive resource could not be acquired."""


class EnumerationFailure(CommanderError):
    """Listing network interfaces failed."""
