from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

log = logging.getLogger(__name__)

DEFAULT_CFG = Path(__file__).parent / "config_default.yaml"
USER_CFG = Path("cfg") / "settings.yaml"
ENV = Path(".env")

SECRET_KEYS = ("steamapi_key", "steamhistory_key")


@dataclass
class Settings:
    user: str = "U:1:XXXXXXX"
    steamapi_key: str = ""
    steamhistory_key: str = ""
    records_path: str = "cfg/playerlist.json"
    patterns_path: str = "cfg/regx.txt"
    refresh_period: float = 10.0
    mark_name_stealers: bool = True
    rate_limit_rpm: int = 100
    request_timeout: float = 25.0
    max_workers: int = 16
    reported_ids_url: str = ""

    def update(self, data: Dict[str, Any]) -> None:
        """Apply known keys whose values have a usable type; ignore the rest."""
        for f in fields(self):
            if f.name not in data or f.name in SECRET_KEYS:
                continue
            value = _coerce(getattr(self, f.name), data[f.name])
            if value is None:
                log.warning("Ignoring setting %s=%r (bad type)", f.name, data[f.name])
                continue
            setattr(self, f.name, value)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for k in SECRET_KEYS:
            d.pop(k, None)
        return d


def _coerce(default: Any, value: Any) -> Optional[Any]:
    if isinstance(default, bool):
        return value if isinstance(value, bool) else None
    if isinstance(default, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return type(default)(value)
    if isinstance(default, str):
        return value if isinstance(value, str) else None
    return value


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        log.error("Could not parse %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def load_settings(
    path: Union[str, Path, None] = None,
    env_file: Union[str, Path, None] = None,
) -> Settings:
    settings = Settings()
    settings.update(_read_yaml(DEFAULT_CFG))

    user_path = Path(path) if path is not None else USER_CFG
    if user_path.exists():
        settings.update(_read_yaml(user_path))

    load_dotenv(dotenv_path=env_file if env_file is not None else ENV)
    settings.steamapi_key = os.getenv("STEAM_API_KEY", "").strip()
    settings.steamhistory_key = os.getenv("STEAMHISTORY_API_KEY", "").strip()
    return settings


def save_settings(settings: Settings, path: Union[str, Path, None] = None) -> Path:
    out = Path(path) if path is not None else USER_CFG
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(yaml.safe_dump(settings.to_dict(), sort_keys=False), encoding="utf-8")
    return out
