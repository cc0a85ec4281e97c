from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set, Tuple

import networkx as nx

from .errors import FormatError
from .roster import RosterPlayer
from .steamid import to32

log = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

# https://sashamaps.net/docs/resources/20-colors/
COLOR_PALETTE: Tuple[RGB, ...] = (
    (230, 25, 75),
    (60, 180, 75),
    (255, 225, 25),
    (0, 130, 200),
    (245, 130, 48),
    (145, 30, 180),
    (70, 240, 240),
    (240, 50, 230),
    (210, 245, 60),
    (250, 190, 212),
    (0, 128, 128),
    (220, 190, 255),
    (170, 110, 40),
    (255, 250, 200),
    (128, 0, 0),
    (170, 255, 195),
    (128, 128, 0),
    (255, 215, 180),
    (0, 0, 128),
    (128, 128, 128),
    (255, 255, 255),
)

SELF_PARTY = "★"
OTHER_PARTY = "■"


class PartyDetector:
    """Friend groups among the players currently on the server."""

    def __init__(self) -> None:
        self.graph = nx.Graph()
        self.parties: List[Set[str]] = []

    def clear(self) -> None:
        self.graph.clear()
        self.parties = []

    def rebuild(self, roster: Iterable[RosterPlayer]) -> List[Set[str]]:
        players = list(roster)
        self.graph.clear()
        self.graph.add_nodes_from(p.steamid32 for p in players)

        for p in players:
            friends = p.friends
            if not friends:
                continue
            for f in friends:
                try:
                    fid = to32(f)
                except FormatError:
                    log.debug("Skipping bad friend id %r of %s", f, p.steamid32)
                    continue
                if fid != p.steamid32 and fid in self.graph:
                    self.graph.add_edge(p.steamid32, fid)

        return self.compute_parties()

    def compute_parties(self) -> List[Set[str]]:
        comps = [set(c) for c in nx.connected_components(self.graph) if len(c) > 1]
        comps.sort(key=min)
        self.parties = comps
        return self.parties

    def party_index(self, steamid: str) -> Optional[int]:
        return next((i for i, party in enumerate(self.parties) if steamid in party), None)

    def party_of(self, steamid: str) -> Optional[Set[str]]:
        ind = self.party_index(steamid)
        return None if ind is None else self.parties[ind]

    def indicator_for(self, steamid: str, user: str) -> Optional[Tuple[str, RGB]]:
        ind = self.party_index(steamid)
        if ind is None:
            return None
        symbol = SELF_PARTY if user in self.parties[ind] else OTHER_PARTY
        return symbol, COLOR_PALETTE[ind % len(COLOR_PALETTE)]
