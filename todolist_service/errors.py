from __future__ import annotations

from typing import List


class StartupError(Exception):
    """Fatal error raised before the server starts serving."""


class ValidationError(StartupError, ValueError):
    pass


class BackendKindError(ValidationError):
    def __init__(self, identifier: str, allowed: List[str]) -> None:
        super().__init__(f"unknown database type {identifier!r}, expected one of {'|'.join(allowed)}")
        self.identifier = identifier


class StoreError(StartupError):
    pass


class LogConfigError(ValueError):
    pass
