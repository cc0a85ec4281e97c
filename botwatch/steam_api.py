from __future__ import annotations

import threading
import time
from collections import deque
from typing import Dict, List, Optional

import requests

from .errors import NetworkError

PUBLIC_VISIBILITY = 3


class RateLimiter:
    def __init__(self, rpm: int = 60) -> None:
        self.window = 60.0
        self.rpm = max(1, rpm)
        self.calls: deque[float] = deque()
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            now = time.monotonic()
            while self.calls and now - self.calls[0] > self.window:
                self.calls.popleft()
            if len(self.calls) >= self.rpm:
                sleep_for = self.window - (now - self.calls[0]) + 0.01
                time.sleep(max(0.0, sleep_for))
            self.calls.append(time.monotonic())


class SteamAPI:
    BASE = "https://api.steampowered.com"

    def __init__(self, key: str, rpm: int = 60, timeout: float = 25) -> None:
        self.key = key
        self.timeout = timeout
        self.session = requests.Session()
        self.rl = RateLimiter(rpm=rpm)

    def _get(self, path: str, params: Dict) -> Dict:
        self.rl.wait()
        p = dict(params)
        p["key"] = self.key
        try:
            r = self.session.get(self.BASE + path, params=p, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"{path}: {e}") from e
        if r.status_code != 200:
            raise NetworkError(f"{path}: HTTP {r.status_code}")
        try:
            return r.json()
        except ValueError as e:
            raise NetworkError(f"{path}: invalid JSON response") from e

    def ensure_steam64(self, id_or_url: str) -> Optional[str]:
        s = id_or_url.strip().rstrip("/")
        if s.isdigit():
            return s
        # vanity name is the last path segment of a profile url
        candidate = s.rsplit("/", 1)[-1]
        if not candidate:
            return None
        try:
            data = self._get("/ISteamUser/ResolveVanityURL/v1/", {"vanityurl": candidate})
        except NetworkError:
            return None
        response = data.get("response", {})
        if response.get("success") == 1:
            return response.get("steamid")
        return None

    def get_player_summary(self, steamid: str) -> Dict:
        players = self.get_player_summaries([steamid])
        if steamid not in players:
            raise NetworkError("account summary returned empty", steamid)
        return players[steamid]

    def get_player_ban(self, steamid: str) -> Dict:
        bans = self.get_player_bans([steamid])
        if steamid not in bans:
            raise NetworkError("account bans returned empty", steamid)
        return bans[steamid]

    def get_friend_list(self, steamid: str) -> List[str]:
        data = self._get(
            "/ISteamUser/GetFriendList/v1/",
            {"steamid": steamid, "relationship": "friend"},
        )
        if "friendslist" not in data:
            return []
        return [f["steamid"] for f in data["friendslist"].get("friends", [])]

    def get_player_summaries(self, ids: List[str]) -> Dict[str, Dict]:
        out: Dict[str, Dict] = {}
        for i in range(0, len(ids), 100):
            sub = ids[i : i + 100]
            data = self._get(
                "/ISteamUser/GetPlayerSummaries/v2/",
                {"steamids": ",".join(sub)},
            )
            for p in data.get("response", {}).get("players", []):
                sid = p.get("steamid")
                if sid:
                    out[sid] = p
        return out

    def get_player_bans(self, ids: List[str]) -> Dict[str, Dict]:
        out: Dict[str, Dict] = {}
        for i in range(0, len(ids), 100):
            sub = ids[i : i + 100]
            data = self._get(
                "/ISteamUser/GetPlayerBans/v1/",
                {"steamids": ",".join(sub)},
            )
            for p in data.get("players", []):
                sid = p.get("SteamId")
                if sid:
                    out[sid] = p
        return out

    def fetch_image(self, url: str) -> bytes:
        try:
            r = self.session.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"avatar {url}: {e}") from e
        return r.content
