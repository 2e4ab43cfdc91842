from __future__ import annotations

import pytest

from fakes import FakeUsbHandle
from savantctl.core.errors import NoAcceptedFormatError
from savantctl.core.model import KeyAction, ReportKind, Verification
from savantctl.core.protocol import Opcode
from savantctl.core.transmitter import WIRE_FORMATS, CommandTransmitter, build_transfer

_FORMATS = {fmt.label: fmt for fmt in WIRE_FORMATS}
_PAYLOAD = bytes([1, 0x08, 0x06])


def test_format_order() -> None:
    assert [fmt.label for fmt in WIRE_FORMATS] == [
        "feat-rid0-cmd",
        "feat-rid0-prefix",
        "feat-ridcmd",
        "feat-ridcmd-payload",
        "out-rid0-cmd",
        "out-rid0-prefix",
        "out-ridcmd",
        "out-ridcmd-payload",
        "36b-out-prefix",
        "36b-out-cmd",
        "36b-feat-prefix",
        "36b-feat-cmd",
        "vendor",
    ]


def test_feature_report_without_id() -> None:
    transfer = build_transfer(_FORMATS["feat-rid0-cmd"], Opcode.SET_KEY_MACRO, _PAYLOAD, 0)
    assert transfer is not None
    assert (transfer.request_type, transfer.request, transfer.value, transfer.index) == (0x21, 0x09, 0x0300, 0)
    assert transfer.data == bytes([0xCC, 1, 0x08, 0x06, 0, 0, 0, 0])


def test_leading_zero_report_id() -> None:
    transfer = build_transfer(_FORMATS["out-rid0-prefix"], Opcode.SET_KEY_MACRO, _PAYLOAD, 0)
    assert transfer is not None
    assert transfer.value == 0x0200
    assert transfer.data == bytes([0, 0xCC, 1, 0x08, 0x06, 0, 0, 0])


def test_command_as_report_id() -> None:
    inline = build_transfer(_FORMATS["feat-ridcmd"], Opcode.SET_KEY_MACRO, _PAYLOAD, 0)
    bare = build_transfer(_FORMATS["feat-ridcmd-payload"], Opcode.SET_KEY_MACRO, _PAYLOAD, 0)
    assert inline is not None and bare is not None
    assert inline.value == bare.value == 0x03CC
    assert inline.data[:4] == bytes([0xCC, 1, 0x08, 0x06])
    assert bare.data[:3] == _PAYLOAD


def test_long_report_is_padded_to_36_bytes() -> None:
    transfer = build_transfer(_FORMATS["36b-out-prefix"], Opcode.SET_KEY_MACRO, _PAYLOAD, 2)
    assert transfer is not None
    assert transfer.index == 2
    assert len(transfer.data) == 36


def test_vendor_request_carries_arguments_in_setup_packet() -> None:
    transfer = build_transfer(_FORMATS["vendor"], Opcode.SET_KEY_MACRO, _PAYLOAD, 0)
    assert transfer is not None
    assert transfer.request_type == 0x40
    assert transfer.request == 0xCC
    assert transfer.value == (0x06 << 8) | 0x08
    assert transfer.index == 1
    assert transfer.data == b""


def test_payload_too_long_for_format_is_skipped() -> None:
    payload = bytes(range(10))
    assert build_transfer(_FORMATS["feat-rid0-cmd"], 0xB5, payload, 0) is None
    assert build_transfer(_FORMATS["vendor"], 0xB5, payload, 0) is None
    assert build_transfer(_FORMATS["36b-out-prefix"], 0xB5, payload, 0) is not None


def test_first_accepted_format_wins() -> None:
    handle = FakeUsbHandle(accepts=lambda rt, req, value, index, data: value & 0xFF00 == 0x0200)
    label = CommandTransmitter().send(handle, 0, Opcode.SET_KEY_MACRO, _PAYLOAD)
    assert label == "out-rid0-cmd"
    assert len(handle.writes) == 5


def test_vendor_is_last_resort() -> None:
    handle = FakeUsbHandle(accepts=lambda rt, *_: rt == 0x40)
    label = CommandTransmitter().send(handle, 0, Opcode.SAVE_TO_EEPROM)
    assert label == "vendor"
    assert len(handle.writes) == len(WIRE_FORMATS)


def test_negotiation_restarts_for_every_command() -> None:
    handle = FakeUsbHandle(accepts=lambda rt, *_: rt == 0x40)
    transmitter = CommandTransmitter()
    transmitter.send(handle, 0, Opcode.SET_KEY_MACRO, _PAYLOAD)
    transmitter.send(handle, 0, Opcode.SET_KEY_MACRO, _PAYLOAD)
    assert len(handle.writes) == 2 * len(WIRE_FORMATS)


def test_no_accepted_format() -> None:
    handle = FakeUsbHandle(accepts=lambda *_: False)
    with pytest.raises(NoAcceptedFormatError) as excinfo:
        CommandTransmitter().send(handle, 0, Opcode.SET_KEY_MACRO, _PAYLOAD)
    assert excinfo.value.opcode == Opcode.SET_KEY_MACRO
    assert excinfo.value.attempts[-1] == "vendor"
    assert len(excinfo.value.attempts) == len(WIRE_FORMATS)


def test_long_raw_payload_only_tries_formats_it_fits() -> None:
    handle = FakeUsbHandle(accepts=lambda *_: False)
    with pytest.raises(NoAcceptedFormatError) as excinfo:
        CommandTransmitter().send(handle, 0, 0xB5, bytes(34))
    assert excinfo.value.attempts == ("36b-out-prefix", "36b-out-cmd", "36b-feat-prefix", "36b-feat-cmd")


def test_read_back_verified_with_command_prefix() -> None:
    handle = FakeUsbHandle(responses={0x03CD: bytes([0xCD, 1, 0x08, 0x06]) + bytes(60)})
    result = CommandTransmitter().read_back(handle, 0, 1, KeyAction(0x08, 0x06))
    assert result is Verification.VERIFIED


def test_read_back_with_report_id_prefix() -> None:
    handle = FakeUsbHandle(responses={0x0300: bytes([0, 0xCD, 2, 0x01, 0x1D])})
    assert CommandTransmitter().read_back(handle, 0, 2, KeyAction(0x01, 0x1D)) is Verification.VERIFIED


def test_read_back_mismatch() -> None:
    handle = FakeUsbHandle(responses={0x0100: bytes([0, 0x08, 0x19, 0])})
    assert CommandTransmitter().read_back(handle, 0, 0, KeyAction(0x08, 0x06)) is Verification.MISMATCHED


def test_read_back_unsupported_when_nothing_answers() -> None:
    handle = FakeUsbHandle()
    assert CommandTransmitter().read_back(handle, 0, 0, KeyAction(0x08, 0x06)) is Verification.UNSUPPORTED
    assert handle.calls == ["read:03cd", "read:0300", "read:01cd", "read:0100"]


def test_vendor_format_kind() -> None:
    assert WIRE_FORMATS[-1].kind is ReportKind.VENDOR
