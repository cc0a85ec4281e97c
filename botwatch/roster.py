from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

from .errors import FormatError
from .records import PlayerKind, PlayerRecord
from .steamid import to64

if TYPE_CHECKING:
    from .enrichment import AccountInfo


@dataclass
class RosterPlayer:
    """One player currently on the server, as reported by the roster feed.

    The feed owns these objects; botwatch only writes the classification and
    enrichment fields.
    """

    steamid32: str
    name: str
    team: str = ""
    player_type: PlayerKind = PlayerKind.PLAYER
    notes: str = ""
    account_info: Optional["AccountInfo"] = None
    enrichment_error: Optional[Exception] = None
    avatar: Any = None
    steamid64: str = field(default="", init=False)

    def __post_init__(self) -> None:
        try:
            self.steamid64 = to64(self.steamid32)
        except FormatError:
            self.steamid64 = ""

    @property
    def friends(self) -> Optional[List[str]]:
        if self.account_info is None:
            return None
        return self.account_info.friends

    def get_record(self) -> PlayerRecord:
        return PlayerRecord(self.steamid32, self.player_type, self.notes)

    def apply_record(self, record: PlayerRecord) -> None:
        self.player_type = record.player_type
        self.notes = record.notes
