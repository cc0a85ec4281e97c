"""Persistent player records and the name patterns used to auto-classify."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from re import Pattern
from typing import Dict, List, Optional, Union

import requests

from .errors import FormatError, NetworkError, ParseError, PartialImportError, PatternCompileError
from .patterns import NamePatterns
from .steamid import STEAMID32_RE, STEAMID64_RE, normalize, to32
from .utils import read_json, write_json

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


class PlayerKind(str, Enum):
    PLAYER = "Player"
    BOT = "Bot"
    CHEATER = "Cheater"
    SUSPICIOUS = "Suspicious"

    def __str__(self) -> str:
        return self.value


@dataclass
class PlayerRecord:
    steamid: str
    player_type: PlayerKind = PlayerKind.PLAYER
    notes: str = ""

    def __post_init__(self) -> None:
        self.player_type = PlayerKind(self.player_type)

    @property
    def is_empty(self) -> bool:
        return self.player_type is PlayerKind.PLAYER and not self.notes

    def to_dict(self) -> Dict[str, str]:
        d = asdict(self)
        d["player_type"] = self.player_type.value
        return d


class RecordStore:
    """User-curated (``players``) and imported (``external_players``) records.

    Only ``players`` is ever written to disk. Lookups prefer ``players``.
    """

    def __init__(self) -> None:
        self.players: Dict[str, PlayerRecord] = {}
        self.external_players: Dict[str, PlayerRecord] = {}
        self.patterns = NamePatterns()

    # ────────────────────────────── Lookup

    def classify_by_name(self, name: str) -> Optional[Pattern[str]]:
        return self.patterns.match(name)

    def lookup(self, steamid: str) -> Optional[PlayerRecord]:
        return self.players.get(steamid) or self.external_players.get(steamid)

    # ────────────────────────────── Mutation

    def upsert(self, record: PlayerRecord) -> None:
        if record.is_empty:
            self.players.pop(record.steamid, None)
        else:
            self.players[record.steamid] = record

    def delete(self, steamid: str) -> bool:
        return self.players.pop(steamid, None) is not None

    def add_pattern(self, text: str) -> Pattern[str]:
        return self.patterns.add(text)

    def remove_pattern(self, text: str) -> bool:
        return self.patterns.remove(text)

    # ────────────────────────────── SteamID lists

    def import_list(
        self,
        contents: str,
        kind: PlayerKind,
        source: str,
        internal: bool = True,
    ) -> int:
        """Scan free text for steamids and record each new one as ``kind``."""
        target = self.players if internal else self.external_players
        note = f"Imported from {source} as {kind.value}"
        found: List[str] = [normalize(m.group("uuid")) for m in STEAMID32_RE.finditer(contents)]
        for m in STEAMID64_RE.finditer(contents):
            try:
                found.append(to32(m.group(0)))
            except FormatError:
                continue

        added = 0
        for sid in found:
            if sid in target:
                continue
            target[sid] = PlayerRecord(steamid=sid, player_type=kind, notes=note)
            added += 1
        log.info("Imported %d steamids from %s as %s", added, source, kind.value)
        return added

    def import_list_file(self, path: PathLike, kind: PlayerKind, internal: bool = True) -> int:
        contents = Path(path).read_text(encoding="utf-8", errors="ignore")
        return self.import_list(contents, kind, str(path), internal=internal)

    def import_list_url(
        self,
        url: str,
        kind: PlayerKind,
        internal: bool = False,
        timeout: float = 25,
    ) -> int:
        try:
            r = requests.get(url, timeout=timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"failed to fetch steamid list {url}: {e}") from e
        return self.import_list(r.text, kind, url, internal=internal)

    # ────────────────────────────── Patterns on disk

    def import_pattern_file(self, path: PathLike) -> List[PatternCompileError]:
        problems = self.patterns.import_file(path)
        log.info("Loaded patterns from %s (%d total)", path, len(self.patterns))
        return problems

    def export_patterns(self, path: PathLike) -> bool:
        p = Path(path)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(self.patterns.dumps(), encoding="utf-8")
        except OSError as e:
            log.error("Failed to save patterns to %s: %s", p, e)
            return False
        return True

    # ────────────────────────────── Records on disk

    def export_records(self, path: PathLike) -> bool:
        data = [r.to_dict() for r in self.players.values()]
        try:
            write_json(Path(path), data)
        except (OSError, TypeError) as e:
            log.error("Failed to save players to %s: %s", path, e)
            return False
        return True

    def import_records(self, path: PathLike, strict: bool = False) -> List[str]:
        """Merge a saved record list into ``players``.

        Bad entries are logged and skipped; the rest of the file still loads.
        Returns the list of problems (raises ``PartialImportError`` with them
        instead when ``strict``).
        """
        try:
            raw = read_json(Path(path))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"{path}: {e}") from e
        if raw is None:
            raw = []
        if not isinstance(raw, list):
            raise ParseError(f"{path}: expected a list of player records")

        problems: List[str] = []
        imported = 0
        for item in raw:
            if not isinstance(item, dict):
                problems.append(f"not a record: {item!r}")
                continue
            steamid = str(item.get("steamid") or "")
            if not steamid:
                continue
            kind_text = str(item.get("player_type") or "")
            try:
                kind = PlayerKind(kind_text)
            except ValueError:
                log.error("Unexpected player type %r for %s", kind_text, steamid)
                problems.append(f"{steamid}: unknown player type {kind_text!r}")
                continue
            notes = item.get("notes") or ""
            self.upsert(PlayerRecord(steamid, kind, str(notes)))
            imported += 1

        if problems and strict:
            raise PartialImportError(imported, problems)
        return problems

    # ────────────────────────────── Startup / shutdown

    def load(self, records_path: PathLike, patterns_path: PathLike) -> None:
        for path, loader in ((records_path, self.import_records), (patterns_path, self.import_pattern_file)):
            try:
                loader(path)
            except FileNotFoundError:
                log.info("%s not found, starting empty", path)
            except (OSError, ParseError) as e:
                log.error("Failed to load %s: %s", path, e)

    def save(self, records_path: PathLike, patterns_path: PathLike) -> bool:
        ok_records = self.export_records(records_path)
        ok_patterns = self.export_patterns(patterns_path)
        return ok_records and ok_patterns
