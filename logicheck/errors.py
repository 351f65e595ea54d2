from __future__ import annotations


class LogicheckError(Exception):
    """Base exception for logicheck failures."""


class FileParseError(LogicheckError):
    def __init__(self, file_name: str, message: str) -> None:
        super().__init__(f"Could not read {file_name}: {message}")
        self.file_name = file_name
        self.reason = message


class StoreError(LogicheckError):
    """Raised when the key-value backend cannot read or write a blob."""


class ImportModeError(LogicheckError, ValueError):
    pass
