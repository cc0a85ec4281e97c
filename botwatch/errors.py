from __future__ import annotations

from typing import List


class BotwatchError(Exception):
    """Base class for everything raised by botwatch."""


class FormatError(BotwatchError, ValueError):
    """A steamid string did not match either identity format."""


class ParseError(BotwatchError):
    """Persisted or imported data could not be interpreted."""


class PatternCompileError(BotwatchError):
    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class NetworkError(BotwatchError):
    def __init__(self, message: str, steamid: str = "") -> None:
        super().__init__(message)
        self.steamid = steamid


class PartialImportError(BotwatchError):
    """A batch import finished but some entries were unusable."""

    def __init__(self, imported: int, problems: List[str]) -> None:
        super().__init__(
            f"imported {imported} entries, skipped {len(problems)}"
        )
        self.imported = imported
        self.problems = problems
