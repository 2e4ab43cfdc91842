from __future__ import annotations

from pathlib import Path

import pytest

from savantctl.core.config import PedalConfig, check_config_file, config_path
from savantctl.core.errors import ConfigError


def test_config_path_follows_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert config_path() == tmp_path / "savantctl" / "pedals.conf"


def test_save_and_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "pedals.conf"
    PedalConfig("cmd+c", "cmd+a", "cmd+v").save(path)
    assert path.read_text(encoding="utf-8") == "left=cmd+c\nmiddle=cmd+a\nright=cmd+v\n"
    assert PedalConfig.load(path) == PedalConfig("cmd+c", "cmd+a", "cmd+v")


def test_parse_trims_whitespace_and_ignores_noise() -> None:
    content = "# comment\n\n  left =  cmd+c \nmiddle=cmd+a\nbogus=1\nright=cmd+v"
    assert PedalConfig.parse(content) == PedalConfig("cmd+c", "cmd+a", "cmd+v")


def test_partial_config_is_none() -> None:
    assert PedalConfig.parse("left=cmd+c\nright=cmd+v\n") is None
    assert PedalConfig.parse("") is None


def test_missing_file_is_none(tmp_path: Path) -> None:
    assert PedalConfig.load(tmp_path / "absent.conf") is None


@pytest.mark.parametrize("bad", ["cmd+c\nright=x", "cmd+c\r"])
def test_newlines_are_rejected(bad: str, tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="newline"):
        PedalConfig(bad, "cmd+a", "cmd+v").save(tmp_path / "pedals.conf")
    assert not (tmp_path / "pedals.conf").exists()


def test_check_valid_file(tmp_path: Path) -> None:
    path = tmp_path / "pedals.conf"
    path.write_text("left = ctrl+shift+alt+f12\nmiddle=enter\nright=cmd+v\n", encoding="utf-8")
    result = check_config_file(path)
    assert result.valid
    assert result.errors == ()


def test_check_reports_every_problem(tmp_path: Path) -> None:
    path = tmp_path / "pedals.conf"
    path.write_text("left=hyper+c\nright=cmd+nope\n", encoding="utf-8")
    result = check_config_file(path)
    assert not result.valid
    assert len(result.errors) == 3
    assert any("Unknown modifier" in e for e in result.errors)
    assert any("Missing middle" in e for e in result.errors)
    assert any("Unknown key" in e for e in result.errors)


def test_check_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "pedals.conf"
    path.write_text("", encoding="utf-8")
    result = check_config_file(path)
    assert not result.valid
    assert "empty" in result.errors[0]


def test_check_nonexistent_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        check_config_file(tmp_path / "missing.conf")
