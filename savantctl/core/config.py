"""Last-known pedal configuration kept on disk.

The device cannot report what it is programmed with, so the actions of the
last successful session are remembered here for display only.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from savantctl.core.errors import ConfigError, KeyActionError
from savantctl.core.keys import parse_key_action
from savantctl.core.model import PEDAL_NAMES, ConfigCheck

LOGGER = logging.getLogger(__name__)


def config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "savantctl/pedals.conf"


def _parse_lines(content: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key in PEDAL_NAMES:
            values[key] = value.strip()
    return values


@dataclass(frozen=True)
class PedalConfig:
    left: str
    middle: str
    right: str

    @classmethod
    def parse(cls, content: str) -> PedalConfig | None:
        values = _parse_lines(content)
        if not all(values.get(name) for name in PEDAL_NAMES):
            return None
        return cls(left=values["left"], middle=values["middle"], right=values["right"])

    @classmethod
    def load(cls, path: Path | None = None) -> PedalConfig | None:
        path = path or config_path()
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            LOGGER.warning("Could not read %s: %s", path, exc)
            return None
        return cls.parse(content)

    def serialize(self) -> str:
        for name in PEDAL_NAMES:
            value = getattr(self, name)
            if "\n" in value or "\r" in value:
                raise ConfigError(f"Key action for {name} contains invalid newline character")
        return f"left={self.left}\nmiddle={self.middle}\nright={self.right}\n"

    def save(self, path: Path | None = None) -> Path:
        path = path or config_path()
        content = self.serialize()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Could not write {path}: {exc}") from exc
        return path


def check_config_file(path: Path) -> ConfigCheck:
    """Validate a pedals.conf file, collecting every problem found."""
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"Could not read {path}: {exc}") from exc

    errors: list[str] = []
    values = _parse_lines(content)
    if not values:
        errors.append("Config file is empty or has no pedal entries")
    for name in PEDAL_NAMES:
        value = values.get(name)
        if not value:
            if values:
                errors.append(f"Missing {name} pedal entry")
            continue
        try:
            parse_key_action(value)
        except KeyActionError as exc:
            errors.append(f"Invalid {name} pedal action: {exc}")
    return ConfigCheck(path=str(path), errors=tuple(errors))
