from __future__ import annotations

import os
import sys
import time
from pathlib import Path
from typing import List, Optional

import questionary as q
from colorama import Fore, Style as CStyle, init as colorama_init
from dotenv import load_dotenv
from questionary import Style
from rich.console import Console
from rich.table import Table
from rich.theme import Theme
from tqdm import tqdm

from botwatch.config import ENV, Settings, load_settings, save_settings
from botwatch.enrichment import EnrichmentDispatcher, EnrichmentResponse
from botwatch.errors import BotwatchError, FormatError, NetworkError, ParseError
from botwatch.logging_utils import setup_logging
from botwatch.records import PlayerKind, PlayerRecord, RecordStore
from botwatch.steam_api import SteamAPI
from botwatch.steamhistory import describe_state
from botwatch.steamid import normalize, to64
from botwatch.utils import open_folder


# ────────────────────────────── Initialization

colorama_init(autoreset=True)

THEME = Theme({"accent": "cyan", "hint": "cyan", "warn": "yellow", "bad": "red"})
console = Console(theme=THEME)


def resource_path(*parts: str) -> Path:
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        base = Path(sys._MEIPASS)  # type: ignore[attr-defined]
    else:
        base = Path(__file__).parent
    return base.joinpath(*parts)


ASSETS = resource_path("assets")

KIND_STYLE = {
    PlayerKind.PLAYER: "white",
    PlayerKind.BOT: "red",
    PlayerKind.CHEATER: "magenta",
    PlayerKind.SUSPICIOUS: "yellow",
}

# ────────────────────────────── Styles (CMD-Safe)
CUSTOM_STYLE = Style(
    [
        ("qmark", "fg:yellow bold"),
        ("question", "fg:cyan bold"),
        ("answer", "fg:green bold"),
        ("pointer", "fg:yellow bold"),
        ("selected", "fg:black bg:yellow bold"),
        ("highlighted", "fg:black bg:yellow bold"),
        ("instruction", "fg:gray"),
        ("text", ""),
        ("disabled", "fg:gray"),
    ]
)


# ────────────────────────────── Banner

def print_banner() -> None:
    banner_file = ASSETS / "banner.txt"
    if banner_file.exists():
        banner = banner_file.read_text(encoding="utf-8", errors="ignore")
        print(Fore.CYAN + CStyle.BRIGHT + banner + CStyle.RESET_ALL)
    else:
        print(Fore.CYAN + "botwatch")
    print(Fore.CYAN + "-" * 70 + "\n")


# ────────────────────────────── ENV / Config

def _ensure_env(settings: Settings) -> Settings:
    if settings.steamapi_key:
        return settings
    console.print("Get your API key: https://steamcommunity.com/dev/apikey", style="hint")
    key = q.text("Paste your STEAM_API_KEY (empty to skip lookups)", style=CUSTOM_STYLE).ask()
    if not key:
        return settings
    with ENV.open("a", encoding="utf-8") as f:
        f.write(f"STEAM_API_KEY={key.strip()}\n")
    load_dotenv(dotenv_path=ENV, override=True)
    settings.steamapi_key = key.strip()
    return settings


def _is_positive_int(text: str) -> bool:
    return not text or (text.isdecimal() and int(text) > 0)


def _ask_int(label: str, default: int) -> int:
    answer = q.text(
        f"{label} [default {default}]",
        validate=lambda t: _is_positive_int(t.strip()) or "Enter a positive whole number",
        style=CUSTOM_STYLE,
    ).ask()
    return int(answer.strip()) if answer and answer.strip() else default


def _guided_config(settings: Settings) -> Settings:
    console.print("Guided Config (Press Enter for default)", style="accent")
    settings.user = (
        q.text(f"Your SteamID32 [default {settings.user}]", style=CUSTOM_STYLE).ask()
        or settings.user
    )
    settings.rate_limit_rpm = _ask_int("rate_limit_rpm", settings.rate_limit_rpm)
    settings.max_workers = _ask_int("max_workers", settings.max_workers)
    settings.mark_name_stealers = q.confirm(
        f"mark_name_stealers? [default {settings.mark_name_stealers}]",
        default=settings.mark_name_stealers,
        style=CUSTOM_STYLE,
    ).ask()
    path = save_settings(settings)
    console.print(f"Saved {path}", style="accent")
    return settings


# ────────────────────────────── Prompts

def _ask_identity(api: Optional[SteamAPI]) -> Optional[str]:
    s = q.text("SteamID32, SteamID64 or profile URL", style=CUSTOM_STYLE).ask()
    if not s:
        return None
    s = s.strip()
    try:
        return normalize(s)
    except FormatError:
        pass
    if api is not None:
        sid64 = api.ensure_steam64(s)
        if sid64:
            return normalize(sid64)
    console.print("Could not resolve target.", style="warn")
    return None


def _ask_kind(message: str = "Classify as:") -> Optional[PlayerKind]:
    choice = q.select(
        message,
        choices=[k.value for k in PlayerKind] + ["Back"],
        style=CUSTOM_STYLE,
    ).ask()
    if not choice or choice == "Back":
        return None
    return PlayerKind(choice)


# ────────────────────────────── Core logic

def _make_api(settings: Settings) -> Optional[SteamAPI]:
    if not settings.steamapi_key:
        return None
    return SteamAPI(settings.steamapi_key, rpm=settings.rate_limit_rpm, timeout=settings.request_timeout)


def show_record(store: RecordStore, api: Optional[SteamAPI]) -> None:
    sid = _ask_identity(api)
    if not sid:
        return
    record = store.lookup(sid)
    if record is None:
        console.print(f"{sid}: no record", style="accent")
    else:
        style = KIND_STYLE[record.player_type]
        console.print(f"{sid}: [{style}]{record.player_type}[/] {record.notes}")
    choices = ["Change classification"]
    if sid in store.players:
        choices.append("Delete record")
    action = q.select("Action:", choices=choices + ["Back"], style=CUSTOM_STYLE).ask()
    if action == "Delete record":
        store.delete(sid)
        console.print("Deleted.", style="accent")
    elif action == "Change classification":
        kind = _ask_kind()
        if kind is None:
            return
        notes = q.text("Notes", default=record.notes if record else "", style=CUSTOM_STYLE).ask() or ""
        store.upsert(PlayerRecord(sid, kind, notes))
        console.print("Updated.", style="accent")


def import_steamid_list(store: RecordStore, settings: Settings) -> None:
    choice = q.select(
        "Import from:",
        choices=["File", "Reported ids list (remote)", "Back"],
        style=CUSTOM_STYLE,
    ).ask()
    if not choice or choice == "Back":
        return
    kind = _ask_kind("Import as:")
    if kind is None:
        return
    try:
        if choice == "File":
            path = q.path("Steamid list file", style=CUSTOM_STYLE).ask()
            if not path:
                return
            added = store.import_list_file(path, kind, internal=True)
        else:
            added = store.import_list_url(settings.reported_ids_url, kind, internal=False)
    except (OSError, NetworkError) as e:
        console.print(f"Failed to add steamid list: {e}", style="warn")
        return
    console.print(f"Added {added} players as {kind}", style="accent")


def import_patterns(store: RecordStore) -> None:
    path = q.path("Pattern file", style=CUSTOM_STYLE).ask()
    if not path:
        return
    before = len(store.patterns)
    try:
        problems = store.import_pattern_file(path)
    except (OSError, ParseError) as e:
        console.print(f"Failed to import patterns: {e}", style="warn")
        return
    for p in problems:
        console.print(str(p), style="warn")
    console.print(f"Added {len(store.patterns) - before} patterns", style="accent")


def test_name(store: RecordStore) -> None:
    name = q.text("Player name", style=CUSTOM_STYLE).ask()
    if name is None:
        return
    pattern = store.classify_by_name(name)
    if pattern is None:
        console.print("No pattern matches.", style="accent")
    else:
        console.print(f"Matches [bad]{pattern.pattern}[/]")


def _print_info(resp: EnrichmentResponse) -> None:
    if not resp.ok or resp.info is None:
        console.print(f"{resp.steamid}: {resp.error}", style="warn")
        return
    info = resp.info
    table = Table(title=info.summary.get("personaname") or resp.steamid)
    table.add_column("field", style="accent")
    table.add_column("value")
    table.add_row("steamid", resp.steamid)
    table.add_row("profile", info.summary.get("profileurl", ""))
    table.add_row("public", str(info.is_public))
    table.add_row("VAC banned", str(info.vac_banned))
    table.add_row("game bans", str(info.game_bans))
    table.add_row("friends", "private" if info.friends is None else str(len(info.friends)))
    if info.sourcebans is not None:
        table.add_row("active sourcebans", str(len(info.sourcebans.active)))
        for ban in info.sourcebans.bans:
            table.add_row(
                f"[{info.sourcebans.severity}]sourceban[/]",
                f"{ban.get('Server', '')}: {describe_state(str(ban.get('CurrentState', '')))}",
            )
    console.print(table)


def enrich_players(store: RecordStore, settings: Settings) -> None:
    api = _make_api(settings)
    if api is None:
        console.print("No STEAM_API_KEY configured.", style="warn")
        return
    text = q.text("SteamIDs (comma separated)", style=CUSTOM_STYLE).ask()
    if not text:
        return
    ids: List[str] = []
    for part in text.split(","):
        try:
            ids.append(to64(normalize(part)))
        except FormatError:
            console.print(f"Skipping {part.strip()!r}", style="warn")
    if not ids:
        return

    dispatcher = EnrichmentDispatcher(api, settings.steamhistory_key, max_workers=settings.max_workers)
    for sid in ids:
        dispatcher.submit(sid)
    dispatcher.close()

    done: List[EnrichmentResponse] = []
    with tqdm(total=len(ids), desc="looking up", unit="ids") as pbar:
        while len(done) < len(ids):
            got = dispatcher.poll()
            done.extend(got)
            pbar.update(len(got))
            if not got:
                time.sleep(0.1)
    for resp in done:
        _print_info(resp)


def export_all(store: RecordStore, settings: Settings) -> None:
    ok = store.save(settings.records_path, settings.patterns_path)
    style = "accent" if ok else "warn"
    console.print(
        f"Players → {settings.records_path}\nPatterns → {settings.patterns_path}",
        style=style,
    )
    if ok and q.confirm("Open output folder?", default=False, style=CUSTOM_STYLE).ask():
        open_folder(Path(settings.records_path).parent)


# ────────────────────────────── Entry point
def main() -> None:
    if os.name == "nt":
        os.system("chcp 65001 >nul")
    setup_logging(console=console)
    print_banner()
    settings = _ensure_env(load_settings())
    store = RecordStore()
    store.load(settings.records_path, settings.patterns_path)
    console.print(
        f"{len(store.players)} players, {len(store.patterns)} patterns loaded",
        style="accent",
    )

    while True:
        choice = q.select(
            "What do you want to do?",
            choices=[
                "Look up / classify player",
                "Import steamid list",
                "Import name patterns",
                "Test a name",
                "Look up Steam profiles",
                "Save records",
                "Config",
                "Quit",
            ],
            style=CUSTOM_STYLE,
        ).ask()

        try:
            if not choice or choice == "Quit":
                break
            if choice == "Look up / classify player":
                show_record(store, _make_api(settings))
            elif choice == "Import steamid list":
                import_steamid_list(store, settings)
            elif choice == "Import name patterns":
                import_patterns(store)
            elif choice == "Test a name":
                test_name(store)
            elif choice == "Look up Steam profiles":
                enrich_players(store, settings)
            elif choice == "Save records":
                export_all(store, settings)
            elif choice == "Config":
                settings = _guided_config(settings)
        except BotwatchError as e:
            console.print(str(e), style="warn")

    store.save(settings.records_path, settings.patterns_path)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[warn]ctrl-c; bye")
