"""Core data models used across codec, engine, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Personality(str, Enum):
    PLAY = "play"
    PROGRAM = "program"


class ReportKind(str, Enum):
    FEATURE = "feature"
    OUTPUT = "output"
    VENDOR = "vendor"


class ReportIdPlacement(str, Enum):
    NONE = "none"
    LEADING_ZERO = "leading-zero"
    COMMAND_ID_INLINE = "command-id-inline"
    COMMAND_ID = "command-id"


class Verification(str, Enum):
    VERIFIED = "verified"
    MISMATCHED = "mismatched"
    UNSUPPORTED = "unsupported"


class SessionState(str, Enum):
    IDLE = "idle"
    MODE_CHECKED = "mode-checked"
    INTERFACE_LEASED = "interface-leased"
    PROGRAMMING = "programming"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"


class EventKind(str, Enum):
    PRESS = "press"
    RELEASE = "release"


PEDAL_NAMES: tuple[str, ...] = ("left", "middle", "right")


@dataclass(frozen=True)
class KeyAction:
    modifiers: int
    key: int


@dataclass(frozen=True)
class PedalAssignment:
    pedal: int
    action: KeyAction
    source: str = ""

    @property
    def name(self) -> str:
        return PEDAL_NAMES[self.pedal]


@dataclass(frozen=True)
class DeviceIdentity:
    vendor_id: int
    product_id: int
    bus: int
    address: int
    serial: str | None = None


@dataclass(frozen=True)
class HidInterfaceInfo:
    vendor_id: int
    product_id: int
    interface_number: int
    usage_page: int
    usage: int
    path: bytes
    serial: str | None = None


@dataclass(frozen=True)
class DeviceSurvey:
    play: tuple[DeviceIdentity, ...] = ()
    program: tuple[DeviceIdentity, ...] = ()
    hid_play: tuple[HidInterfaceInfo, ...] = ()
    hid_program: tuple[HidInterfaceInfo, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def found_play(self) -> bool:
        return bool(self.play or self.hid_play)

    @property
    def found_program(self) -> bool:
        return bool(self.program or self.hid_program)


@dataclass(frozen=True)
class WireFormat:
    label: str
    kind: ReportKind
    placement: ReportIdPlacement
    length: int


@dataclass(frozen=True)
class ControlTransfer:
    request_type: int
    request: int
    value: int
    index: int
    data: bytes


@dataclass(frozen=True)
class PedalOutcome:
    pedal: int
    action: KeyAction
    attempted: bool = False
    succeeded: bool = False
    format_label: str | None = None
    verification: Verification | None = None
    error: str | None = None

    @property
    def name(self) -> str:
        return PEDAL_NAMES[self.pedal]


@dataclass(frozen=True)
class ProgrammingOutcome:
    device: DeviceIdentity | None
    pedals: tuple[PedalOutcome, ...]
    eeprom_save_ok: bool
    disconnected_mid_session: bool
    state: SessionState
    save_format_label: str | None = None
    dry_run: bool = False

    @property
    def all_pedals_ok(self) -> bool:
        return len(self.pedals) == len(PEDAL_NAMES) and all(p.succeeded for p in self.pedals)

    @property
    def failed_pedals(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.pedals if not p.succeeded)

    @property
    def programmed_before_disconnect(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.pedals if p.succeeded)

    @property
    def changes_lost(self) -> bool:
        return self.disconnected_mid_session and not self.eeprom_save_ok

    @property
    def ok(self) -> bool:
        return self.all_pedals_ok and self.eeprom_save_ok and not self.disconnected_mid_session

    @property
    def next_step(self) -> str:
        if self.dry_run:
            return "Re-run without --dry-run to write the pedals."
        if self.disconnected_mid_session:
            return "Re-plug the USB cable, keep it connected, and re-run the program command."
        if self.ok:
            return "Switch the pedal back to Play mode and replug the USB cable."
        return "Retry the program command; if it keeps failing, replug the pedal first."


@dataclass(frozen=True)
class KeyboardEvent:
    kind: EventKind
    modifiers: int
    keys: tuple[int, ...]
    report: bytes


@dataclass(frozen=True)
class Preset:
    name: str
    description: str
    left: str
    middle: str
    right: str

    @property
    def actions(self) -> tuple[str, str, str]:
        return (self.left, self.middle, self.right)


@dataclass(frozen=True)
class RawCommandResult:
    device: DeviceIdentity
    opcode: int
    payload_hex: str
    format_label: str
    response_hex: str = ""
    read_error: str | None = None


@dataclass(frozen=True)
class ConfigCheck:
    path: str
    errors: tuple[str, ...]

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class SavedProfile:
    name: str
    path: str
    left: str | None = None
    middle: str | None = None
    right: str | None = None

    @property
    def complete(self) -> bool:
        return all(getattr(self, name) for name in PEDAL_NAMES)


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: str
    left: str
    middle: str
    right: str


class CheckStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class DoctorCheck:
    name: str
    status: CheckStatus
    message: str


@dataclass(frozen=True)
class DoctorReport:
    version: str
    platform: str
    arch: str
    checks: tuple[DoctorCheck, ...]

    def _count(self, status: CheckStatus) -> int:
        return sum(1 for check in self.checks if check.status is status)

    @property
    def passed(self) -> int:
        return self._count(CheckStatus.PASS)

    @property
    def warnings(self) -> int:
        return self._count(CheckStatus.WARN)

    @property
    def failed(self) -> int:
        return self._count(CheckStatus.FAIL)

    @property
    def healthy(self) -> bool:
        return self.failed == 0
