"""Background lookup of Steam profile, ban, friend and avatar data.

Callers ``submit`` SteamID64s from the control loop and ``poll`` for finished
``EnrichmentResponse`` tuples. Responses arrive in completion order, so they
must be matched to players by ``steamid``.
"""

from __future__ import annotations

import io
import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional

from PIL import Image

from .errors import NetworkError
from .steam_api import PUBLIC_VISIBILITY, SteamAPI
from .steamhistory import SourceBans, sourcebans

log = logging.getLogger(__name__)

_STOP = object()


@dataclass
class AccountInfo:
    summary: Dict
    bans: Dict
    friends: Optional[List[str]] = None
    sourcebans: Optional[SourceBans] = None
    avatar: Any = None

    @property
    def is_public(self) -> bool:
        return self.summary.get("communityvisibilitystate") == PUBLIC_VISIBILITY

    @property
    def vac_banned(self) -> bool:
        return bool(self.bans.get("VACBanned"))

    @property
    def game_bans(self) -> int:
        return int(self.bans.get("NumberOfGameBans", 0) or 0)


class EnrichmentResponse(NamedTuple):
    info: Optional[AccountInfo]
    error: Optional[Exception]
    steamid: str

    @property
    def ok(self) -> bool:
        return self.error is None


def decode_avatar(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def fetch_account_info(api: SteamAPI, steamid: str, sh_key: str = "") -> AccountInfo:
    """Run one full lookup. Summary and ban failures raise; the rest degrade to None."""
    summary = api.get_player_summary(steamid)
    bans = api.get_player_ban(steamid)
    info = AccountInfo(summary=summary, bans=bans)

    if info.is_public:
        try:
            info.friends = api.get_friend_list(steamid)
        except NetworkError as e:
            log.warning("Could not fetch friends of %s: %s", steamid, e)

    if sh_key:
        try:
            info.sourcebans = sourcebans([steamid], sh_key, timeout=api.timeout).get(steamid)
        except NetworkError as e:
            log.warning("Error while getting SteamHistory bans for %s: %s", steamid, e)

    avatar_url = summary.get("avatarmedium")
    if avatar_url:
        try:
            info.avatar = decode_avatar(api.fetch_image(avatar_url))
        except (NetworkError, OSError) as e:
            log.warning("No avatar for %s: %s", steamid, e)

    return info


class EnrichmentDispatcher:
    def __init__(self, api: SteamAPI, sh_key: str = "", max_workers: int = 16) -> None:
        self.api = api
        self.sh_key = sh_key
        self.requests: "queue.Queue[object]" = queue.Queue()
        self.responses: "queue.Queue[EnrichmentResponse]" = queue.Queue()
        self._pool = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="enrich")
        self._open = True
        self._delivering = True
        self._worker = threading.Thread(target=self._dispatch, name="enrich-dispatch", daemon=True)
        self._worker.start()

    @property
    def closed(self) -> bool:
        return not self._open

    def submit(self, steamid64: str) -> None:
        if not self._open:
            raise RuntimeError("dispatcher is closed")
        self.requests.put(str(steamid64))

    def poll(self) -> List[EnrichmentResponse]:
        out: List[EnrichmentResponse] = []
        while True:
            try:
                out.append(self.responses.get_nowait())
            except queue.Empty:
                return out

    def close(self, wait: bool = False, drop_pending: bool = False) -> None:
        """Stop accepting requests. In-flight lookups still finish.

        With ``drop_pending`` their responses are discarded instead of queued.
        """
        if drop_pending:
            self._delivering = False
        if self._open:
            self._open = False
            self.requests.put(_STOP)
        if wait:
            self._worker.join()

    def _dispatch(self) -> None:
        while True:
            steamid = self.requests.get()
            if steamid is _STOP:
                log.debug("Request queue closed, stopping dispatch worker")
                break
            self._pool.submit(self._run, steamid)
        self._pool.shutdown(wait=True)

    def _run(self, steamid: str) -> None:
        try:
            resp = EnrichmentResponse(fetch_account_info(self.api, steamid, self.sh_key), None, steamid)
        except NetworkError as e:
            log.error("Lookup of %s failed: %s", steamid, e)
            resp = EnrichmentResponse(None, e, steamid)
        except Exception as e:  # keep the one-response-per-request contract
            log.exception("Unexpected error looking up %s", steamid)
            resp = EnrichmentResponse(None, e, steamid)
        if self._delivering:
            self.responses.put(resp)
