from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ProcessError(Exception):
    """Canonical error type for event processing failures.

    A processor raises this (or a subclass) after it has claimed an event and
    failed to apply it. The engine logs it and moves on to the next event.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class DecodeError(ProcessError):
    """Payload is missing a required key or carries a mistyped value."""

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("decode_error", reason, details)


class PersistenceError(ProcessError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("persistence_error", reason, details)


class NoResultsError(LookupError):
    """Distinguished empty-lookup result.

    Raised by persister lookups. Callers treat it as the create branch of a
    create-or-update decision, never as a batch failure.
    """

    def __init__(self, kind: str, key: Any = None) -> None:
        super().__init__(f"no_results:{kind}:{key}" if key is not None else f"no_results:{kind}")
        self.kind = kind
        self.key = key


class ConfigError(ValueError):
    pass


def not_found(reason: str, **details: Any) -> ProcessError:
    return ProcessError("not_found", reason, details or None)


def conflict(reason: str, **details: Any) -> ProcessError:
    return ProcessError("conflict", reason, details or None)
