"""Non-fatal diagnostics emitted while normalizing table options."""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

DEPRECATED_OPTION = 'deprecated-option'
REMOVED_OPTION = 'removed-option'
IGNORED_DEPRECATED_OPTION = 'ignored-deprecated-option'
INVALID_OPTIONS = 'invalid-options'
INVALID_VALUE = 'invalid-value'
INVALID_HOOK = 'invalid-hook'
UNKNOWN_COLUMN = 'unknown-column'


@dataclass(frozen=True)
class Diagnostic:
    """A single advisory message about the user's options."""
    code: str
    key: str
    message: str


class DiagnosticLog:
    """Collects diagnostics and forwards each one to the logging sink.

    Args:
        sink: Logger receiving the messages. Defaults to this module's logger.
    """

    def __init__(self, sink: Optional[logging.Logger] = None):
        self._sink = sink or logger
        self.records: list[Diagnostic] = []

    def emit(self, code: str, key: str, message: str) -> Diagnostic:
        """Record a diagnostic and log it as a warning."""
        diagnostic = Diagnostic(code=code, key=key, message=message)
        self.records.append(diagnostic)
        self._sink.warning(message)
        return diagnostic

    def codes(self) -> list[str]:
        return [d.code for d in self.records]

    def keys(self) -> list[str]:
        return [d.key for d in self.records]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)
