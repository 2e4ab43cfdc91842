from __future__ import annotations

import pytest

from fakes import PLAY_DEVICE, PROGRAM_DEVICE, FakeUsbBackend, FakeUsbHandle
from savantctl.core.errors import (
    DeviceNotFoundError,
    NoAcceptedFormatError,
    TransportSendError,
    WrongModeError,
)
from savantctl.core.keys import parse_key_action
from savantctl.core.locator import DeviceLocator
from savantctl.core.model import PedalAssignment, SessionState, Verification
from savantctl.core.protocol import Opcode
from savantctl.core.session import EEPROM_WRITE_S, ProgrammingSession


def _assignments(*actions: str) -> list[PedalAssignment]:
    actions = actions or ("cmd+c", "cmd+a", "cmd+v")
    return [PedalAssignment(pedal=i, action=parse_key_action(a), source=a) for i, a in enumerate(actions)]


class FakeTransmitter:
    def __init__(self, *, failing_pedals: tuple[int, ...] = (), save_fails: bool = False) -> None:
        self.failing_pedals = failing_pedals
        self.save_fails = save_fails
        self.sent: list[tuple[int, bytes]] = []

    def send(self, handle, interface, opcode, payload=b""):
        self.sent.append((opcode, bytes(payload)))
        if opcode == Opcode.SET_KEY_MACRO and payload[0] in self.failing_pedals:
            raise NoAcceptedFormatError(opcode, ("feat-rid0-cmd", "vendor"))
        if opcode == Opcode.SAVE_TO_EEPROM and self.save_fails:
            raise NoAcceptedFormatError(opcode, ("feat-rid0-cmd", "vendor"))
        return "feat-rid0-cmd"

    def read_back(self, handle, interface, pedal, action):
        return Verification.VERIFIED


def _session(backend: FakeUsbBackend, transmitter=None, sleeps: list[float] | None = None, **kwargs):
    recorded = sleeps if sleeps is not None else []
    return ProgrammingSession(
        DeviceLocator(backend),
        backend,
        transmitter,
        sleep=recorded.append,
        **kwargs,
    )


def test_happy_path_programs_and_saves() -> None:
    handle = FakeUsbHandle(kernel_driver_active=True)
    backend = FakeUsbBackend([PROGRAM_DEVICE], handle=handle)
    sleeps: list[float] = []
    session = _session(backend, sleeps=sleeps)

    outcome = session.run(_assignments())

    assert outcome.ok
    assert outcome.all_pedals_ok
    assert outcome.eeprom_save_ok
    assert outcome.save_format_label == "feat-rid0-cmd"
    assert outcome.state is SessionState.DONE
    assert session.state is SessionState.DONE
    assert [p.format_label for p in outcome.pedals] == ["feat-rid0-cmd"] * 3
    assert all(p.verification is Verification.UNSUPPORTED for p in outcome.pedals)
    assert handle.writes[-1][4][0] == Opcode.SAVE_TO_EEPROM
    assert handle.calls[:3] == ["query", "detach", "claim"]
    assert handle.calls[-2:] == ["release", "attach"]
    assert handle.closed
    assert sleeps[-1] == EEPROM_WRITE_S


def test_disconnect_before_third_pedal_aborts_without_save() -> None:
    handle = FakeUsbHandle()
    backend = FakeUsbBackend(
        handle=handle,
        presence=[[PROGRAM_DEVICE], [PROGRAM_DEVICE], []],
    )
    session = _session(backend)

    outcome = session.run(_assignments())

    assert not outcome.all_pedals_ok
    assert not outcome.eeprom_save_ok
    assert outcome.disconnected_mid_session
    assert outcome.changes_lost
    assert outcome.state is SessionState.ABORTED
    assert outcome.programmed_before_disconnect == ("left", "middle")
    assert not outcome.pedals[2].attempted
    assert all(data[:1] != bytes([Opcode.SAVE_TO_EEPROM]) for *_, data in handle.writes)
    assert all(request != Opcode.SAVE_TO_EEPROM for _, request, *_ in handle.writes)
    assert "Re-plug" in outcome.next_step
    assert handle.closed


def test_failed_pedal_does_not_abort_session() -> None:
    transmitter = FakeTransmitter(failing_pedals=(1,))
    backend = FakeUsbBackend([PROGRAM_DEVICE])

    outcome = _session(backend, transmitter).run(_assignments())

    assert outcome.failed_pedals == ("middle",)
    assert outcome.pedals[1].attempted
    assert "No wire format accepted" in outcome.pedals[1].error
    assert outcome.pedals[2].succeeded
    assert outcome.pedals[0].verification is Verification.VERIFIED
    assert outcome.eeprom_save_ok
    assert not outcome.ok
    assert transmitter.sent[-1][0] == Opcode.SAVE_TO_EEPROM


def test_save_failure_with_device_present() -> None:
    transmitter = FakeTransmitter(save_fails=True)
    backend = FakeUsbBackend([PROGRAM_DEVICE])

    outcome = _session(backend, transmitter).run(_assignments())

    assert outcome.all_pedals_ok
    assert not outcome.eeprom_save_ok
    assert not outcome.disconnected_mid_session
    assert outcome.state is SessionState.DONE


def test_save_failure_after_unplug_counts_as_disconnect() -> None:
    transmitter = FakeTransmitter(save_fails=True)
    present = [PROGRAM_DEVICE]
    backend = FakeUsbBackend(presence=[present, present, present, present, present, []])

    outcome = _session(backend, transmitter).run(_assignments())

    assert outcome.disconnected_mid_session
    assert outcome.changes_lost
    assert outcome.state is SessionState.ABORTED


def test_verify_can_be_disabled() -> None:
    handle = FakeUsbHandle()
    backend = FakeUsbBackend([PROGRAM_DEVICE], handle=handle)

    outcome = _session(backend, verify=False).run(_assignments())

    assert all(p.verification is None for p in outcome.pedals)
    assert not any(call.startswith("read:") for call in handle.calls)


def test_play_mode_is_wrong_mode() -> None:
    backend = FakeUsbBackend([PLAY_DEVICE])
    with pytest.raises(WrongModeError, match="Program"):
        _session(backend).run(_assignments())
    assert backend.opened == []


def test_missing_device() -> None:
    backend = FakeUsbBackend([])
    with pytest.raises(DeviceNotFoundError):
        _session(backend).run(_assignments())


def test_requires_one_assignment_per_pedal() -> None:
    backend = FakeUsbBackend([PROGRAM_DEVICE])
    with pytest.raises(ValueError):
        _session(backend).run(_assignments("cmd+c", "cmd+v"))
    assert backend.enumerations == 0


def test_send_raw_uses_lease_and_negotiation() -> None:
    handle = FakeUsbHandle(kernel_driver_active=True)
    backend = FakeUsbBackend([PROGRAM_DEVICE], handle=handle)

    result = _session(backend).send_raw(0xB6, bytes([1, 2]))

    assert result.device == PROGRAM_DEVICE
    assert result.format_label == "feat-rid0-cmd"
    assert result.response_hex == ""
    assert result.read_error is None
    assert handle.writes[0][4][:3] == bytes([0xB6, 1, 2])
    assert handle.calls[-2:] == ["release", "attach"]
    assert handle.closed


def test_send_raw_captures_response_inside_lease() -> None:
    handle = FakeUsbHandle(input_reports=[bytes([0xC1, 0x05, 0xF3])])
    backend = FakeUsbBackend([PROGRAM_DEVICE], handle=handle)

    result = _session(backend).send_raw(0xC1)

    assert result.response_hex == "c105f3"
    assert handle.calls.index("read-input") < handle.calls.index("release")


def test_send_raw_read_failure_is_reported_not_raised() -> None:
    class BrokenReadHandle(FakeUsbHandle):
        def read_input(self, interface, length, *, timeout_ms):
            raise TransportSendError("Interface 0 has no IN endpoint")

    handle = BrokenReadHandle()
    result = _session(FakeUsbBackend([PROGRAM_DEVICE], handle=handle)).send_raw(0xB5)

    assert result.format_label == "feat-rid0-cmd"
    assert result.response_hex == ""
    assert "no IN endpoint" in result.read_error
    assert handle.closed
