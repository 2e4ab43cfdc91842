from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from savantctl.core.config import PedalConfig
from savantctl.core.errors import ConfigError
from savantctl.core.profiles import (
    ProfileStore,
    ProgrammingHistory,
    history_path,
    profile_dir,
    validate_profile_name,
)

CONFIG = PedalConfig("cmd+c", "cmd+a", "cmd+v")


def test_default_locations_follow_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert profile_dir() == tmp_path / "savantctl/profiles"
    assert history_path() == tmp_path / "savantctl/history.jsonl"
    assert profile_dir(tmp_path / "other/pedals.conf") == tmp_path / "other/profiles"


@pytest.mark.parametrize("name", ["work", "my-profile_name", "A1"])
def test_valid_profile_names(name: str) -> None:
    assert validate_profile_name(name) == name


@pytest.mark.parametrize("name", ["my profile", "my/profile", "../escape", "", "dots.conf"])
def test_invalid_profile_names(name: str) -> None:
    with pytest.raises(ConfigError, match="Invalid profile name"):
        validate_profile_name(name)


def test_save_list_load_delete(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path / "profiles")
    assert store.list_profiles() == []

    path = store.save("work", CONFIG)

    assert path == tmp_path / "profiles/work.conf"
    assert path.read_text(encoding="utf-8") == "left=cmd+c\nmiddle=cmd+a\nright=cmd+v\n"
    [saved] = store.list_profiles()
    assert saved.name == "work"
    assert saved.complete
    assert store.load("work") == CONFIG

    store.delete("work")
    assert store.list_profiles() == []


def test_duplicate_save_needs_force(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    store.save("work", CONFIG)

    with pytest.raises(ConfigError, match="already exists.*--force"):
        store.save("work", PedalConfig("f1", "f2", "f3"))

    store.save("work", PedalConfig("f1", "f2", "f3"), force=True)
    assert store.load("work").left == "f1"


def test_missing_profile(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    with pytest.raises(ConfigError, match="not found"):
        store.load("ghost")
    with pytest.raises(ConfigError, match="not found"):
        store.delete("ghost")


def test_incomplete_profile_is_listed_but_not_loadable(tmp_path: Path) -> None:
    (tmp_path / "half.conf").write_text("left=cmd+c\n", encoding="utf-8")
    (tmp_path / "bad name.conf").write_text("left=cmd+c\n", encoding="utf-8")
    store = ProfileStore(tmp_path)

    [profile] = store.list_profiles()

    assert profile.name == "half"
    assert not profile.complete
    with pytest.raises(ConfigError, match="missing pedal entries"):
        store.load("half")


def _clock(*stamps: str):
    queue = [datetime.fromisoformat(s).replace(tzinfo=timezone.utc) for s in stamps]
    return lambda: queue.pop(0)


def test_history_is_newest_first(tmp_path: Path) -> None:
    history = ProgrammingHistory(
        tmp_path / "history.jsonl", now=_clock("2026-10-01T09:00:00", "2026-10-02T09:00:00")
    )
    assert history.entries() == []

    history.append(CONFIG)
    history.append(PedalConfig("f1", "f2", "f3"))

    entries = history.entries()
    assert [e.left for e in entries] == ["f1", "cmd+c"]
    assert entries[0].timestamp == "2026-10-02T09:00:00+00:00"


def test_history_is_capped(tmp_path: Path) -> None:
    history = ProgrammingHistory(tmp_path / "history.jsonl", limit=2)
    for key in ("a", "b", "c"):
        history.append(PedalConfig(key, key, key))
    assert [e.left for e in history.entries()] == ["c", "b"]


def test_malformed_history_lines_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "history.jsonl"
    path.write_text(
        'not json\n{"timestamp": "t", "left": "a"}\n'
        '{"timestamp": "t", "left": "a", "middle": "b", "right": "c"}\n',
        encoding="utf-8",
    )
    [entry] = ProgrammingHistory(path).entries()
    assert (entry.left, entry.middle, entry.right) == ("a", "b", "c")
