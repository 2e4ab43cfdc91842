"""Stable public API for building tooling on top of savantctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from savantctl.core.config import PedalConfig
from savantctl.core.errors import (
    ConfigError,
    DeviceDiscoveryError,
    DeviceNotFoundError,
    DevicePermissionError,
    DisconnectedError,
    EmptyInputError,
    InvalidCommandError,
    KeyActionError,
    MalformedSeparatorError,
    NoAcceptedFormatError,
    PresetLoadError,
    PresetValidationError,
    SavantError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
    UnknownKeyError,
    UnknownModifierError,
    WrongModeError,
)
from savantctl.core.keys import format_key_action, key_catalog, parse_key_action
from savantctl.core.model import (
    ConfigCheck,
    DeviceIdentity,
    DeviceSurvey,
    DoctorCheck,
    DoctorReport,
    HidInterfaceInfo,
    HistoryEntry,
    KeyAction,
    KeyboardEvent,
    PedalOutcome,
    Preset,
    ProgrammingOutcome,
    RawCommandResult,
    SavedProfile,
    Verification,
)
from savantctl.core.service import SavantService
from savantctl.transports.base import HidBackend, UsbBackend

__all__ = [
    "SavantError",
    "KeyActionError",
    "EmptyInputError",
    "MalformedSeparatorError",
    "UnknownKeyError",
    "UnknownModifierError",
    "InvalidCommandError",
    "DeviceDiscoveryError",
    "DeviceNotFoundError",
    "WrongModeError",
    "DevicePermissionError",
    "NoAcceptedFormatError",
    "DisconnectedError",
    "PresetLoadError",
    "PresetValidationError",
    "ConfigError",
    "TransportError",
    "TransportSendError",
    "TransportTimeoutError",
    "ConfigCheck",
    "DeviceIdentity",
    "DeviceSurvey",
    "DoctorCheck",
    "DoctorReport",
    "HidInterfaceInfo",
    "HistoryEntry",
    "KeyAction",
    "KeyboardEvent",
    "PedalConfig",
    "PedalOutcome",
    "Preset",
    "ProgrammingOutcome",
    "RawCommandResult",
    "SavedProfile",
    "Verification",
    "format_key_action",
    "key_catalog",
    "parse_key_action",
    "Client",
]


class Client:
    """Public client for interacting with savantctl core capabilities.

    A `Client` wraps preset loading, device discovery, pedal programming and
    the live report monitor behind a stable API intended for third-party tools
    (GUI/TUI/services/scripts).
    """

    def __init__(
        self,
        *,
        usb_backend: UsbBackend | None = None,
        hid_backend: HidBackend | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._service = SavantService(
            usb_backend=usb_backend,
            hid_backend=hid_backend,
            config_path=config_path,
        )

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def status(self) -> DeviceSurvey:
        return self._service.status()

    def program(
        self,
        left: str,
        middle: str,
        right: str,
        *,
        dry_run: bool = False,
        verify: bool = True,
    ) -> ProgrammingOutcome:
        return self._service.program(left, middle, right, dry_run=dry_run, verify=verify)

    def program_preset(self, name: str, *, dry_run: bool = False, verify: bool = True) -> ProgrammingOutcome:
        return self._service.program_preset(name, dry_run=dry_run, verify=verify)

    def monitor(self, *, duration_s: float | None = None) -> Iterator[KeyboardEvent]:
        return self._service.monitor(duration_s)

    def raw_command(self, opcode_hex: str, data_hex: str = "", *, interface: int = 0) -> RawCommandResult:
        return self._service.raw_command(opcode_hex, data_hex, interface=interface)

    def list_presets(self) -> list[Preset]:
        return self._service.list_presets()

    def get_preset(self, name: str) -> Preset:
        return self._service.preset(name)

    def last_config(self) -> PedalConfig | None:
        return self._service.last_config()

    def check_config(self, path: Path) -> ConfigCheck:
        return self._service.check_config(path)

    def wait_for_play_mode(self, *, timeout_s: float = 60.0) -> bool:
        return self._service.wait_for_play_mode(timeout_s=timeout_s)

    def list_profiles(self) -> list[SavedProfile]:
        return self._service.list_profiles()

    def get_profile(self, name: str) -> PedalConfig:
        return self._service.profile(name)

    def save_profile(self, name: str, *, force: bool = False) -> Path:
        return self._service.save_profile(name, force=force)

    def delete_profile(self, name: str) -> Path:
        return self._service.delete_profile(name)

    def history(self) -> list[HistoryEntry]:
        return self._service.history_entries()

    def doctor(self) -> DoctorReport:
        return self._service.doctor()
