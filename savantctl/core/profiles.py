"""Named pedal profiles and the programming history kept beside pedals.conf."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from savantctl.core.config import PedalConfig, config_path
from savantctl.core.errors import ConfigError
from savantctl.core.model import HistoryEntry, SavedProfile

LOGGER = logging.getLogger(__name__)

HISTORY_LIMIT = 50
PROFILE_SUFFIX = ".conf"

_PROFILE_NAME = re.compile(r"[A-Za-z0-9_-]+")


def profile_dir(base: Path | None = None) -> Path:
    return (base or config_path()).parent / "profiles"


def history_path(base: Path | None = None) -> Path:
    return (base or config_path()).parent / "history.jsonl"


def validate_profile_name(name: str) -> str:
    if not _PROFILE_NAME.fullmatch(name):
        raise ConfigError(
            f"Invalid profile name '{name}': use only letters, digits, '-' and '_'"
        )
    return name


class ProfileStore:
    """One ``<name>.conf`` file per profile, in the pedals.conf format."""

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = directory or profile_dir()

    def path_for(self, name: str) -> Path:
        return self.directory / f"{validate_profile_name(name)}{PROFILE_SUFFIX}"

    def list_profiles(self) -> list[SavedProfile]:
        if not self.directory.is_dir():
            return []
        profiles: list[SavedProfile] = []
        for path in sorted(self.directory.glob(f"*{PROFILE_SUFFIX}")):
            if not _PROFILE_NAME.fullmatch(path.stem):
                LOGGER.debug("Ignoring %s: not a valid profile name", path)
                continue
            profiles.append(_summarize(path))
        return profiles

    def load(self, name: str) -> PedalConfig:
        path = self.path_for(name)
        if not path.is_file():
            raise ConfigError(f"Profile '{name}' not found")
        config = PedalConfig.load(path)
        if config is None:
            raise ConfigError(f"Profile '{name}' is missing pedal entries: {path}")
        return config

    def save(self, name: str, config: PedalConfig, *, force: bool = False) -> Path:
        path = self.path_for(name)
        if path.exists() and not force:
            raise ConfigError(f"Profile '{name}' already exists; use --force to overwrite it")
        return config.save(path)

    def delete(self, name: str) -> Path:
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise ConfigError(f"Profile '{name}' not found") from exc
        except OSError as exc:
            raise ConfigError(f"Could not delete {path}: {exc}") from exc
        return path


def _summarize(path: Path) -> SavedProfile:
    config = PedalConfig.load(path)
    if config is None:
        return SavedProfile(name=path.stem, path=str(path))
    return SavedProfile(
        name=path.stem,
        path=str(path),
        left=config.left,
        middle=config.middle,
        right=config.right,
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgrammingHistory:
    """Append-only JSON-lines log of programmed configurations, newest last on disk."""

    def __init__(
        self,
        path: Path | None = None,
        *,
        limit: int = HISTORY_LIMIT,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.path = path or history_path()
        self.limit = limit
        self._now = now

    def _read_lines(self) -> list[str]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise ConfigError(f"Could not read {self.path}: {exc}") from exc
        return [line for line in content.splitlines() if line.strip()]

    def entries(self) -> list[HistoryEntry]:
        """Return recorded entries, newest first; malformed lines are skipped."""
        entries: list[HistoryEntry] = []
        for number, line in enumerate(self._read_lines(), start=1):
            try:
                doc = json.loads(line)
                entries.append(
                    HistoryEntry(
                        timestamp=str(doc["timestamp"]),
                        left=str(doc["left"]),
                        middle=str(doc["middle"]),
                        right=str(doc["right"]),
                    )
                )
            except (ValueError, KeyError, TypeError) as exc:
                LOGGER.warning("Skipping malformed history line %d in %s: %s", number, self.path, exc)
        entries.reverse()
        return entries

    def append(self, config: PedalConfig) -> HistoryEntry:
        entry = HistoryEntry(
            timestamp=self._now().isoformat(timespec="seconds"),
            left=config.left,
            middle=config.middle,
            right=config.right,
        )
        lines = self._read_lines()
        lines.append(
            json.dumps(
                {
                    "timestamp": entry.timestamp,
                    "left": entry.left,
                    "middle": entry.middle,
                    "right": entry.right,
                }
            )
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("\n".join(lines[-self.limit :]) + "\n", encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Could not write {self.path}: {exc}") from exc
        return entry
