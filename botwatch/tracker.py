"""Per-refresh wiring of the record store, enrichment and party detection."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .config import Settings
from .enrichment import EnrichmentDispatcher, EnrichmentResponse
from .errors import FormatError
from .parties import RGB, PartyDetector
from .records import PlayerKind, PlayerRecord, RecordStore
from .roster import RosterPlayer
from .steamid import to32

log = logging.getLogger(__name__)


def carry_over(old: RosterPlayer, new: RosterPlayer) -> None:
    """Keep what we learned about a player when the feed hands us a fresh object."""
    new.apply_record(old.get_record())
    if new.account_info is None:
        new.account_info = old.account_info
        new.enrichment_error = old.enrichment_error
        new.avatar = old.avatar


class MatchTracker:
    def __init__(
        self,
        store: RecordStore,
        settings: Settings,
        dispatcher: Optional[EnrichmentDispatcher] = None,
        parties: Optional[PartyDetector] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.dispatcher = dispatcher
        self.parties = parties or PartyDetector()
        self.players: Dict[str, RosterPlayer] = {}
        self.pending_lookup: List[str] = []

    # ────────────────────────────── Refresh cycle

    def refresh(self, roster: Iterable[RosterPlayer]) -> List[Set[str]]:
        current = {p.steamid32: p for p in roster}
        known_names = {p.name: sid for sid, p in self.players.items() if sid in current}

        for sid, p in current.items():
            prev = self.players.get(sid)
            if prev is not None:
                if prev is not p:
                    carry_over(prev, p)
                continue
            self.classify_new(p, known_names)
            known_names.setdefault(p.name, sid)
            if p.steamid64:
                self.pending_lookup.append(p.steamid64)

        self.players = current
        self.dispatch_lookups()
        self.apply_responses()
        return self.parties.rebuild(self.players.values())

    def classify_new(self, p: RosterPlayer, known_names: Dict[str, str]) -> None:
        record = self.store.lookup(p.steamid32)
        if record is not None:
            p.apply_record(record)
            return

        pattern = self.store.classify_by_name(p.name)
        if pattern is not None:
            p.player_type = PlayerKind.BOT
            p.notes = f'Name matched pattern "{pattern.pattern}"'
            self.store.upsert(p.get_record())
            log.info("%s (%s) marked as bot by name", p.name, p.steamid32)
            return

        original = known_names.get(p.name)
        if self.settings.mark_name_stealers and original and original != p.steamid32:
            p.player_type = PlayerKind.BOT
            p.notes = f"Name stealer of {original}"
            self.store.upsert(p.get_record())
            log.info("%s (%s) is stealing the name of %s", p.name, p.steamid32, original)

    # ────────────────────────────── Enrichment

    def dispatch_lookups(self) -> None:
        if self.dispatcher is None or self.dispatcher.closed:
            self.pending_lookup.clear()
            return
        while self.pending_lookup:
            self.dispatcher.submit(self.pending_lookup.pop())

    def request_lookup(self, steamid32: str) -> None:
        p = self.players.get(steamid32)
        if p is not None and p.steamid64:
            self.pending_lookup.append(p.steamid64)

    def apply_responses(self) -> int:
        if self.dispatcher is None:
            return 0
        applied = 0
        for resp in self.dispatcher.poll():
            if self.apply_response(resp):
                applied += 1
        return applied

    def apply_response(self, resp: EnrichmentResponse) -> bool:
        try:
            sid = to32(resp.steamid)
        except FormatError:
            log.warning("Response for malformed steamid %r", resp.steamid)
            return False
        p = self.players.get(sid)
        if p is None:
            return False
        p.account_info = resp.info
        p.enrichment_error = resp.error
        p.avatar = resp.info.avatar if resp.info is not None else None
        return True

    # ────────────────────────────── Classification state

    def set_kind(self, steamid32: str, kind: PlayerKind, notes: Optional[str] = None) -> PlayerRecord:
        p = self.players.get(steamid32)
        prev = self.store.lookup(steamid32)
        if notes is None:
            notes = p.notes if p is not None else (prev.notes if prev else "")
        record = PlayerRecord(steamid32, kind, notes)
        self.store.upsert(record)
        if p is not None:
            p.apply_record(record)
        return record

    def players_of_kind(self, kind: PlayerKind) -> List[RosterPlayer]:
        return [p for p in self.players.values() if p.player_type is kind]

    def indicator_for(self, steamid32: str) -> Optional[Tuple[str, RGB]]:
        return self.parties.indicator_for(steamid32, self.settings.user)
