from __future__ import annotations

import re
from typing import Union

from .errors import FormatError

STEAMID64_OFFSET = 76561197960265728

STEAMID32_RE = re.compile(r"\[?(?P<uuid>U:\d:\d+)\]?", re.ASCII)
STEAMID64_RE = re.compile(r"7656\d{13}", re.ASCII)

_FULL32 = re.compile(r"^\[?U:(?P<universe>\d):(?P<account>\d+)\]?$", re.ASCII)
_DIGITS = re.compile(r"[0-9]+")


def to64(steamid32: str) -> str:
    """``[U:1:22202]`` / ``U:1:22202`` -> ``76561197960287930``."""
    m = _FULL32.match(steamid32.strip())
    if not m:
        raise FormatError(f"not a SteamID32: {steamid32!r}")
    return str(int(m.group("account")) + STEAMID64_OFFSET)


def to32(steamid64: Union[str, int]) -> str:
    s = str(steamid64).strip()
    if not _DIGITS.fullmatch(s):
        raise FormatError(f"not a SteamID64: {steamid64!r}")
    account = int(s) - STEAMID64_OFFSET
    if account < 0 or account > 0xFFFFFFFF:
        raise FormatError(f"SteamID64 out of range: {steamid64!r}")
    return f"U:1:{account}"


def normalize(identity: Union[str, int]) -> str:
    """Return the canonical SteamID32 for either textual form."""
    s = str(identity).strip()
    if _DIGITS.fullmatch(s):
        return to32(s)
    m = _FULL32.match(s)
    if not m:
        raise FormatError(f"unrecognised steamid: {identity!r}")
    return f"U:{m.group('universe')}:{int(m.group('account'))}"
