"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from pathlib import Path

from savantctl.core.config import PedalConfig, check_config_file, config_path as default_config_path
from savantctl.core.doctor import run_doctor
from savantctl.core.errors import (
    ConfigError,
    DeviceNotFoundError,
    InvalidCommandError,
    KeyActionError,
    PresetLoadError,
    WrongModeError,
)
from savantctl.core.keys import parse_key_action
from savantctl.core.locator import DeviceLocator
from savantctl.core.model import (
    PEDAL_NAMES,
    ConfigCheck,
    DeviceSurvey,
    DoctorReport,
    HidInterfaceInfo,
    HistoryEntry,
    KeyboardEvent,
    PedalAssignment,
    PedalOutcome,
    Personality,
    Preset,
    ProgrammingOutcome,
    RawCommandResult,
    SavedProfile,
    SessionState,
)
from savantctl.core.monitor import ReportMonitor
from savantctl.core.presets import load_presets
from savantctl.core.profiles import ProfileStore, ProgrammingHistory, history_path, profile_dir
from savantctl.core.protocol import (
    MAX_RAW_DATA_LENGTH,
    NOT_FOUND_GUIDANCE,
    PROGRAM_INTERFACE,
    PROGRAM_MODE_GUIDANCE,
)
from savantctl.core.session import ProgrammingSession
from savantctl.core.transmitter import CommandTransmitter
from savantctl.transports.base import HidBackend, UsbBackend
from savantctl.transports.hidapi import HidApiBackend
from savantctl.transports.pyusb import PyUsbBackend

LOGGER = logging.getLogger(__name__)

PLAY_MODE_WAIT_S = 60.0
PLAY_MODE_POLL_S = 0.5
PLAY_MODE_REMINDER_S = 15.0


class SavantService:
    def __init__(
        self,
        *,
        usb_backend: UsbBackend | None = None,
        hid_backend: HidBackend | None = None,
        transmitter: CommandTransmitter | None = None,
        config_path: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        loaded = load_presets()
        self.presets = loaded.presets
        self.load_warnings = loaded.warnings
        self.usb_backend = usb_backend or PyUsbBackend()
        self.hid_backend = hid_backend or HidApiBackend()
        self.locator = DeviceLocator(self.usb_backend, self.hid_backend)
        self.transmitter = transmitter or CommandTransmitter()
        self.config_path = config_path
        self.profiles = ProfileStore(profile_dir(config_path))
        self.history = ProgrammingHistory(history_path(config_path))
        self._sleep = sleep
        self._clock = clock

    def _session(self, *, interface: int = PROGRAM_INTERFACE, verify: bool = True) -> ProgrammingSession:
        return ProgrammingSession(
            self.locator,
            self.usb_backend,
            self.transmitter,
            interface_number=interface,
            verify=verify,
            sleep=self._sleep,
        )

    def status(self) -> DeviceSurvey:
        return self.locator.survey()

    def keyboard_interface(self) -> HidInterfaceInfo:
        info = self.locator.find_keyboard_interface()
        if info is not None:
            return info
        if self.locator.find(Personality.PROGRAM) is not None:
            raise WrongModeError(PROGRAM_MODE_GUIDANCE)
        raise DeviceNotFoundError(NOT_FOUND_GUIDANCE)

    def resolve_assignments(self, left: str, middle: str, right: str) -> tuple[PedalAssignment, ...]:
        """Parse all three actions before any device I/O happens."""
        assignments: list[PedalAssignment] = []
        for pedal, text in enumerate((left, middle, right)):
            try:
                action = parse_key_action(text)
            except KeyActionError as exc:
                raise KeyActionError(f"Invalid {PEDAL_NAMES[pedal]} pedal action: {exc}") from exc
            assignments.append(PedalAssignment(pedal=pedal, action=action, source=text.strip()))
        return tuple(assignments)

    def program(
        self,
        left: str,
        middle: str,
        right: str,
        *,
        dry_run: bool = False,
        verify: bool = True,
    ) -> ProgrammingOutcome:
        assignments = self.resolve_assignments(left, middle, right)
        if dry_run:
            return ProgrammingOutcome(
                device=None,
                pedals=tuple(PedalOutcome(pedal=a.pedal, action=a.action) for a in assignments),
                eeprom_save_ok=False,
                disconnected_mid_session=False,
                state=SessionState.IDLE,
                dry_run=True,
            )

        outcome = self._session(verify=verify).run(assignments)
        if not outcome.disconnected_mid_session:
            self._remember(assignments)
        return outcome

    def program_preset(self, name: str, *, dry_run: bool = False, verify: bool = True) -> ProgrammingOutcome:
        preset = self.preset(name)
        return self.program(preset.left, preset.middle, preset.right, dry_run=dry_run, verify=verify)

    def _remember(self, assignments: tuple[PedalAssignment, ...]) -> None:
        config = PedalConfig(*(a.source for a in assignments))
        try:
            path = config.save(self.config_path)
        except ConfigError as exc:
            LOGGER.warning("Could not save pedal configuration: %s", exc)
            return
        LOGGER.debug("Saved pedal configuration to %s", path)
        try:
            self.history.append(config)
        except ConfigError as exc:
            LOGGER.warning("Could not record programming history: %s", exc)

    def monitor(self, duration_s: float | None = None) -> Iterator[KeyboardEvent]:
        """Locate the keyboard interface now; the device is opened on first iteration.

        A stream that is closed or dropped before it starts never opens the
        device, and one that has started closes it when it ends.
        """
        info = self.keyboard_interface()
        return self._events(info, duration_s)

    def _events(self, info: HidInterfaceInfo, duration_s: float | None) -> Iterator[KeyboardEvent]:
        device = self.hid_backend.open(info)
        try:
            yield from ReportMonitor(device, sleep=self._sleep).events(duration_s)
        finally:
            device.close()

    def wait_for_play_mode(
        self,
        *,
        timeout_s: float = PLAY_MODE_WAIT_S,
        poll_interval_s: float = PLAY_MODE_POLL_S,
        reminder_interval_s: float = PLAY_MODE_REMINDER_S,
        on_reminder: Callable[[int], None] | None = None,
    ) -> bool:
        """Poll until the keyboard interface appears; False once ``timeout_s`` passes.

        ``on_reminder`` receives the whole seconds left each time another
        ``reminder_interval_s`` goes by without the pedal showing up.
        """
        started = self._clock()
        next_reminder = reminder_interval_s
        while True:
            if self.locator.find_keyboard_interface() is not None:
                return True
            elapsed = self._clock() - started
            if elapsed >= timeout_s:
                LOGGER.debug("Pedal did not appear in play mode within %.0fs", timeout_s)
                return False
            if on_reminder is not None and elapsed >= next_reminder:
                on_reminder(int(timeout_s - elapsed))
                next_reminder += reminder_interval_s
            self._sleep(poll_interval_s)

    def raw_command(
        self,
        opcode_hex: str,
        data_hex: str = "",
        *,
        interface: int = PROGRAM_INTERFACE,
    ) -> RawCommandResult:
        opcode, payload = parse_raw_command(opcode_hex, data_hex)
        return self._session(interface=interface).send_raw(opcode, payload)

    def list_presets(self) -> list[Preset]:
        return sorted(self.presets.values(), key=lambda p: p.name)

    def preset(self, name: str) -> Preset:
        preset = self.presets.get(name)
        if preset is None:
            available = ", ".join(sorted(self.presets))
            raise PresetLoadError(f"Unknown preset '{name}'. Available: {available}")
        return preset

    def last_config(self) -> PedalConfig | None:
        return PedalConfig.load(self.config_path)

    def check_config(self, path: Path) -> ConfigCheck:
        return check_config_file(path)

    def list_profiles(self) -> list[SavedProfile]:
        return self.profiles.list_profiles()

    def profile(self, name: str) -> PedalConfig:
        return self.profiles.load(name)

    def save_profile(self, name: str, *, force: bool = False) -> Path:
        """Copy the last programmed configuration into a named profile."""
        config = self.last_config()
        if config is None:
            raise ConfigError("No current pedal configuration to save; program the pedals first")
        return self.profiles.save(name, config, force=force)

    def delete_profile(self, name: str) -> Path:
        return self.profiles.delete(name)

    def history_entries(self) -> list[HistoryEntry]:
        return self.history.entries()

    def doctor(self) -> DoctorReport:
        return run_doctor(
            self.locator,
            self.usb_backend,
            self.hid_backend,
            config_path=self.config_path or default_config_path(),
            profiles=self.profiles,
        )


def parse_raw_command(opcode_hex: str, data_hex: str = "") -> tuple[int, bytes]:
    text = opcode_hex.strip().lower().removeprefix("0x")
    try:
        opcode = int(text, 16)
    except ValueError as exc:
        raise InvalidCommandError(f"Invalid command byte (use hex, e.g. 'b5'): {opcode_hex!r}") from exc
    if not 0 <= opcode <= 0xFF:
        raise InvalidCommandError(f"Invalid command byte (use hex, e.g. 'b5'): {opcode_hex!r}")

    data = data_hex.strip().replace(" ", "")
    try:
        payload = bytes.fromhex(data)
    except ValueError as exc:
        raise InvalidCommandError(f"Invalid data bytes (use hex): {data_hex!r}") from exc
    if len(payload) > MAX_RAW_DATA_LENGTH:
        raise InvalidCommandError(
            f"Data too long: {len(payload)} bytes exceeds maximum {MAX_RAW_DATA_LENGTH} bytes"
        )
    return opcode, payload
