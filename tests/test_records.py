import json
import logging
from unittest.mock import MagicMock, patch

import pytest
import requests

from botwatch.errors import NetworkError, ParseError, PartialImportError
from botwatch.records import PlayerKind, PlayerRecord, RecordStore


@pytest.fixture
def store():
    return RecordStore()


def test_import_list_mixed_formats(store):
    added = store.import_list("[U:1:111] U:1:222 76561197960265730", PlayerKind.BOT, "test.txt")

    assert added == 3
    assert set(store.players) == {"U:1:111", "U:1:222", "U:1:2"}
    for rec in store.players.values():
        assert rec.player_type is PlayerKind.BOT
        assert rec.notes == "Imported from test.txt as Bot"


def test_import_list_idempotent(store):
    text = "U:1:1 U:1:1 [U:1:2]\n76561197960265731 garbage 1234"
    store.import_list(text, PlayerKind.CHEATER, "a")
    first = {k: v.to_dict() for k, v in store.players.items()}
    assert store.import_list(text, PlayerKind.CHEATER, "a") == 0
    assert {k: v.to_dict() for k, v in store.players.items()} == first
    assert set(first) == {"U:1:1", "U:1:2", "U:1:3"}


def test_import_list_does_not_overwrite(store):
    store.upsert(PlayerRecord("U:1:9", PlayerKind.SUSPICIOUS, "mine"))
    store.import_list("U:1:9", PlayerKind.BOT, "list")
    assert store.lookup("U:1:9").notes == "mine"


def test_import_list_normalizes_leading_zeros(store):
    added = store.import_list("U:1:0111 [U:1:111] U:1:00", PlayerKind.BOT, "list")
    assert added == 2
    assert set(store.players) == {"U:1:111", "U:1:0"}


def test_import_list_external(store):
    store.import_list("U:1:4", PlayerKind.BOT, "remote", internal=False)
    assert "U:1:4" not in store.players
    assert store.lookup("U:1:4").player_type is PlayerKind.BOT


def test_import_list_file(store, tmp_path):
    path = tmp_path / "ids.txt"
    path.write_text("# bots\n[U:1:10]\n[U:1:11]\n")
    assert store.import_list_file(path, PlayerKind.BOT) == 2
    assert store.lookup("U:1:10").notes == f"Imported from {path} as Bot"


def test_import_list_file_missing(store, tmp_path):
    with pytest.raises(OSError):
        store.import_list_file(tmp_path / "nope.txt", PlayerKind.BOT)


def test_internal_overrides_external(store):
    store.external_players["U:1:3"] = PlayerRecord("U:1:3", PlayerKind.BOT, "ext")
    store.upsert(PlayerRecord("U:1:3", PlayerKind.PLAYER, "known friend"))
    assert store.lookup("U:1:3").notes == "known friend"
    assert store.lookup("U:1:404") is None


def test_upsert_empty_player_deletes(store):
    store.upsert(PlayerRecord("U:1:5", PlayerKind.BOT, "caught"))
    store.upsert(PlayerRecord("U:1:5", PlayerKind.PLAYER, ""))

    assert store.lookup("U:1:5") is None
    assert "U:1:5" not in store.players


def test_upsert_never_stores_empty_records(store):
    records = [
        PlayerRecord("U:1:1", PlayerKind.PLAYER, ""),
        PlayerRecord("U:1:2", PlayerKind.PLAYER, "note"),
        PlayerRecord("U:1:3", PlayerKind.CHEATER, ""),
        PlayerRecord("U:1:2", PlayerKind.PLAYER, ""),
    ]
    for r in records:
        store.upsert(r)
        assert not any(rec.is_empty for rec in store.players.values())
    assert set(store.players) == {"U:1:3"}


def test_delete(store):
    store.upsert(PlayerRecord("U:1:5", PlayerKind.CHEATER, "aimbot"))
    store.external_players["U:1:5"] = PlayerRecord("U:1:5", PlayerKind.BOT, "ext")

    assert store.delete("U:1:5")
    assert "U:1:5" not in store.players
    assert store.lookup("U:1:5").notes == "ext"
    assert not store.delete("U:1:5")


def test_upsert_leaves_external_alone(store):
    store.external_players["U:1:7"] = PlayerRecord("U:1:7", PlayerKind.BOT, "ext")
    store.upsert(PlayerRecord("U:1:7", PlayerKind.PLAYER, ""))
    assert store.lookup("U:1:7").player_type is PlayerKind.BOT


def test_record_accepts_kind_string():
    assert PlayerRecord("U:1:1", "Cheater").player_type is PlayerKind.CHEATER


def test_classify_by_name_first_match(store):
    store.add_pattern(r"^\(\d+\)")
    store.add_pattern(r"bot")
    store.add_pattern(r"DoesHotter")

    assert store.classify_by_name("(1)DoesHotter").pattern == r"^\(\d+\)"
    assert store.classify_by_name("xXbotXx").pattern == "bot"
    assert store.classify_by_name("friendly") is None


def test_pattern_file_with_one_bad_line(store, tmp_path, caplog):
    path = tmp_path / "regx.txt"
    path.write_text("m4gic\n\n  DoesHotter  \n([unclosed\n")
    store.add_pattern("existing")

    with caplog.at_level(logging.WARNING):
        problems = store.import_pattern_file(path)

    assert len(problems) == 1
    assert problems[0].pattern == "([unclosed"
    assert [p.pattern for p in store.patterns] == ["existing", "m4gic", "DoesHotter"]
    assert "([unclosed" in caplog.text


def test_pattern_import_keeps_duplicates(store, tmp_path):
    path = tmp_path / "regx.txt"
    path.write_text("a\na\n")
    store.import_pattern_file(path)
    assert len(store.patterns) == 2


def test_export_and_reimport_patterns(store, tmp_path):
    store.add_pattern(r"\bbot\b")
    store.add_pattern("m4gic")
    path = tmp_path / "out" / "regx.txt"
    assert store.export_patterns(path)
    assert path.read_text() == "\\bbot\\b\nm4gic\n"


def test_remove_pattern(store):
    store.add_pattern("a")
    assert store.remove_pattern("a")
    assert not store.remove_pattern("a")


def test_export_records(store, tmp_path):
    store.upsert(PlayerRecord("U:1:1", PlayerKind.BOT, "n"))
    store.external_players["U:1:2"] = PlayerRecord("U:1:2", PlayerKind.BOT, "")
    path = tmp_path / "playerlist.json"

    assert store.export_records(path)
    assert json.loads(path.read_text()) == [
        {"steamid": "U:1:1", "player_type": "Bot", "notes": "n"}
    ]


def test_export_failure_reported(store, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    assert store.export_records(blocker / "sub" / "players.json") is False
    assert store.export_patterns(blocker / "sub" / "regx.txt") is False


def test_import_records_partial(store, tmp_path):
    path = tmp_path / "players.json"
    path.write_text(json.dumps([
        {"steamid": "U:1:1", "player_type": "Bot", "notes": "a"},
        {"steamid": "", "player_type": "Bot", "notes": "no id"},
        {"steamid": "U:1:2", "player_type": "Wizard", "notes": "?"},
        {"steamid": "U:1:3", "player_type": "Suspicious"},
    ]))

    problems = store.import_records(path)

    assert len(problems) == 1
    assert set(store.players) == {"U:1:1", "U:1:3"}
    assert store.lookup("U:1:3").notes == ""


def test_import_records_strict(store, tmp_path):
    path = tmp_path / "players.json"
    path.write_text(json.dumps([
        {"steamid": "U:1:1", "player_type": "Cheater", "notes": ""},
        {"steamid": "U:1:2", "player_type": "bot", "notes": ""},
    ]))
    with pytest.raises(PartialImportError) as exc:
        store.import_records(path, strict=True)
    assert exc.value.imported == 1
    assert "U:1:1" in store.players


@pytest.mark.parametrize("contents", ["{not json", '{"steamid": "U:1:1"}'])
def test_import_records_bad_file(store, tmp_path, contents):
    path = tmp_path / "players.json"
    path.write_text(contents)
    with pytest.raises(ParseError):
        store.import_records(path)


def test_import_records_not_utf8(store, tmp_path):
    path = tmp_path / "players.json"
    path.write_bytes(b'[{"steamid": "U:1:1", "player_type": "Bot", "notes": "\xff"}]')
    with pytest.raises(ParseError):
        store.import_records(path)
    assert store.players == {}


def test_pattern_file_not_utf8(store, tmp_path):
    path = tmp_path / "regx.txt"
    path.write_bytes(b"\xff\xfem4gic\n")
    with pytest.raises(ParseError):
        store.import_pattern_file(path)
    assert len(store.patterns) == 0


def test_load_survives_undecodable_files(store, tmp_path, caplog):
    records = tmp_path / "playerlist.json"
    patterns = tmp_path / "regx.txt"
    records.write_bytes(b"\xff\xfe")
    patterns.write_bytes(b"\xff\xfe")

    with caplog.at_level(logging.ERROR, logger="botwatch.records"):
        store.load(records, patterns)

    assert store.players == {}
    assert len(store.patterns) == 0
    assert sum("Failed to load" in r.getMessage() for r in caplog.records) == 2


def test_save_and_load(store, tmp_path):
    records = tmp_path / "cfg" / "playerlist.json"
    patterns = tmp_path / "cfg" / "regx.txt"
    store.upsert(PlayerRecord("U:1:1", PlayerKind.CHEATER, "spinbot"))
    store.add_pattern("m4gic")
    assert store.save(records, patterns)

    fresh = RecordStore()
    fresh.load(records, patterns)
    assert fresh.lookup("U:1:1") == PlayerRecord("U:1:1", PlayerKind.CHEATER, "spinbot")
    assert [p.pattern for p in fresh.patterns] == ["m4gic"]


def test_load_missing_files(store, tmp_path):
    store.load(tmp_path / "none.json", tmp_path / "none.txt")
    assert store.players == {}
    assert len(store.patterns) == 0


@patch("botwatch.records.requests.get")
def test_import_list_url(mock_get, store):
    mock_get.return_value = MagicMock(text="[U:1:30]\n76561197960265759\n")
    added = store.import_list_url("https://example.com/ids.txt", PlayerKind.BOT)

    assert added == 2
    assert store.players == {}
    assert store.lookup("U:1:30").notes == "Imported from https://example.com/ids.txt as Bot"


@patch("botwatch.records.requests.get", side_effect=requests.ConnectionError("offline"))
def test_import_list_url_network_error(mock_get, store):
    with pytest.raises(NetworkError):
        store.import_list_url("https://example.com/ids.txt", PlayerKind.BOT)
