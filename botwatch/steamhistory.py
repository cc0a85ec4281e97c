"""Client for the SteamHistory SourceBans lookup service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import requests

from .errors import NetworkError

API_URL = "https://steamhistory.net/api/sourcebans"

# Community server whose bans are not treated as serious.
IGNORED_SERVERS = {"Scrap.tf"}
ACTIVE_STATES = {"Permanent", "Temp-Ban"}


@dataclass
class SourceBans:
    bans: List[Dict] = field(default_factory=list)

    @property
    def severity(self) -> str:
        for ban in self.bans:
            if ban.get("CurrentState") in ACTIVE_STATES and ban.get("Server") not in IGNORED_SERVERS:
                return "red"
        return "yellow"

    @property
    def active(self) -> List[Dict]:
        return [b for b in self.bans if b.get("CurrentState") != "Unbanned"]


def describe_state(state: str) -> str:
    return {
        "Permanent": "Permanent",
        "Temp-Ban": "Temp Ban",
        "Expired": "Expired",
        "Unbanned": "Unbanned",
    }.get(state, f'Unknown: "{state}"')


def sourcebans(ids: List[str], api_key: str, timeout: float = 10) -> Dict[str, SourceBans]:
    """Fetch SourceBans records keyed by SteamID64; ids with no bans are absent."""
    try:
        r = requests.get(
            API_URL,
            params={"key": api_key, "steamids": ",".join(ids), "shouldkey": 1},
            timeout=timeout,
        )
        r.raise_for_status()
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        raise NetworkError(f"steamhistory: {e}") from e

    response = data.get("response") if isinstance(data, dict) else None
    if not isinstance(response, dict):
        return {}
    out: Dict[str, SourceBans] = {}
    for sid, bans in response.items():
        out[str(sid)] = SourceBans(bans=[b for b in bans if isinstance(b, dict)] if isinstance(bans, list) else [])
    return out
