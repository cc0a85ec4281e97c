from __future__ import annotations

import logging
import re
from pathlib import Path
from re import Pattern
from typing import Iterator, List, Optional, Union

from .errors import ParseError, PatternCompileError

log = logging.getLogger(__name__)


class NamePatterns:
    """Ordered list of compiled bot/cheater name signatures."""

    def __init__(self) -> None:
        self.patterns: List[Pattern[str]] = []

    def __len__(self) -> int:
        return len(self.patterns)

    def __iter__(self) -> Iterator[Pattern[str]]:
        return iter(self.patterns)

    def match(self, name: str) -> Optional[Pattern[str]]:
        """First pattern that matches anywhere in ``name``."""
        return next((p for p in self.patterns if p.search(name)), None)

    def add(self, text: str) -> Pattern[str]:
        try:
            compiled = re.compile(text)
        except re.error as e:
            raise PatternCompileError(text, str(e)) from e
        self.patterns.append(compiled)
        return compiled

    def remove(self, text: str) -> bool:
        for i, p in enumerate(self.patterns):
            if p.pattern == text:
                del self.patterns[i]
                return True
        return False

    def import_text(self, contents: str) -> List[PatternCompileError]:
        """Compile each non-empty line; bad lines are skipped and returned."""
        compiled: List[Pattern[str]] = []
        problems: List[PatternCompileError] = []
        for line in contents.splitlines():
            txt = line.strip()
            if not txt:
                continue
            try:
                compiled.append(re.compile(txt))
            except re.error as e:
                err = PatternCompileError(txt, str(e))
                log.warning("Error reading pattern: %s", err)
                problems.append(err)
        self.patterns.extend(compiled)
        return problems

    def import_file(self, path: Union[str, Path]) -> List[PatternCompileError]:
        try:
            contents = Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"{path}: {e}") from e
        return self.import_text(contents)

    def dumps(self) -> str:
        return "".join(f"{p.pattern}\n" for p in self.patterns)
