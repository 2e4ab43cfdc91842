"""Format-negotiating command transmitter.

The programming firmware publishes no report descriptor for its vendor
commands, so the report type, report-ID placement and buffer length it
expects are unknown and differ between firmware revisions. Every logical
command is therefore offered in each candidate wire format in a fixed order,
and the first control transfer the device's USB stack accepts wins. The
firmware never acknowledges a command, so "accepted" means a transport-level
success only.
"""

from __future__ import annotations

import logging

from savantctl.core.errors import NoAcceptedFormatError, TransportError
from savantctl.core.model import (
    ControlTransfer,
    KeyAction,
    ReportIdPlacement,
    ReportKind,
    Verification,
    WireFormat,
)
from savantctl.core.protocol import (
    HID_GET_REPORT,
    HID_SET_REPORT,
    LONG_REPORT_LENGTH,
    REPORT_TYPE_FEATURE,
    REPORT_TYPE_INPUT,
    REPORT_TYPE_OUTPUT,
    REQUEST_TYPE_CLASS_INTERFACE_IN,
    REQUEST_TYPE_CLASS_INTERFACE_OUT,
    REQUEST_TYPE_VENDOR_OUT,
    SHORT_REPORT_LENGTH,
    Opcode,
)
from savantctl.transports.base import UsbHandle

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 500
READ_BACK_TIMEOUT_MS = 200
READ_BACK_LENGTH = 64

# Short buffers first; the long tier mirrors the 36-byte reports of the
# X-keys SDK; the vendor request is the last resort.
WIRE_FORMATS: tuple[WireFormat, ...] = (
    WireFormat("feat-rid0-cmd", ReportKind.FEATURE, ReportIdPlacement.NONE, SHORT_REPORT_LENGTH),
    WireFormat("feat-rid0-prefix", ReportKind.FEATURE, ReportIdPlacement.LEADING_ZERO, SHORT_REPORT_LENGTH),
    WireFormat("feat-ridcmd", ReportKind.FEATURE, ReportIdPlacement.COMMAND_ID_INLINE, SHORT_REPORT_LENGTH),
    WireFormat("feat-ridcmd-payload", ReportKind.FEATURE, ReportIdPlacement.COMMAND_ID, SHORT_REPORT_LENGTH),
    WireFormat("out-rid0-cmd", ReportKind.OUTPUT, ReportIdPlacement.NONE, SHORT_REPORT_LENGTH),
    WireFormat("out-rid0-prefix", ReportKind.OUTPUT, ReportIdPlacement.LEADING_ZERO, SHORT_REPORT_LENGTH),
    WireFormat("out-ridcmd", ReportKind.OUTPUT, ReportIdPlacement.COMMAND_ID_INLINE, SHORT_REPORT_LENGTH),
    WireFormat("out-ridcmd-payload", ReportKind.OUTPUT, ReportIdPlacement.COMMAND_ID, SHORT_REPORT_LENGTH),
    WireFormat("36b-out-prefix", ReportKind.OUTPUT, ReportIdPlacement.LEADING_ZERO, LONG_REPORT_LENGTH),
    WireFormat("36b-out-cmd", ReportKind.OUTPUT, ReportIdPlacement.NONE, LONG_REPORT_LENGTH),
    WireFormat("36b-feat-prefix", ReportKind.FEATURE, ReportIdPlacement.LEADING_ZERO, LONG_REPORT_LENGTH),
    WireFormat("36b-feat-cmd", ReportKind.FEATURE, ReportIdPlacement.NONE, LONG_REPORT_LENGTH),
    WireFormat("vendor", ReportKind.VENDOR, ReportIdPlacement.NONE, 0),
)

_REPORT_TYPES = {
    ReportKind.FEATURE: REPORT_TYPE_FEATURE,
    ReportKind.OUTPUT: REPORT_TYPE_OUTPUT,
}

_READ_BACK_VALUES = (
    REPORT_TYPE_FEATURE | Opcode.GET_KEY_MACRO,
    REPORT_TYPE_FEATURE,
    REPORT_TYPE_INPUT | Opcode.GET_KEY_MACRO,
    REPORT_TYPE_INPUT,
)


def build_transfer(
    fmt: WireFormat,
    opcode: int,
    payload: bytes,
    interface: int,
) -> ControlTransfer | None:
    """Encode one logical command in one wire format.

    Returns ``None`` when the payload does not fit the format.
    """
    if fmt.kind is ReportKind.VENDOR:
        # Arguments ride in the setup packet: wIndex = arg0, wValue = arg2:arg1.
        if len(payload) > 3:
            return None
        args = payload.ljust(3, b"\x00")
        return ControlTransfer(
            request_type=REQUEST_TYPE_VENDOR_OUT,
            request=opcode,
            value=(args[2] << 8) | args[1],
            index=args[0],
            data=b"",
        )

    report_type = _REPORT_TYPES[fmt.kind]
    if fmt.placement is ReportIdPlacement.NONE:
        value, body = report_type, bytes([opcode]) + payload
    elif fmt.placement is ReportIdPlacement.LEADING_ZERO:
        value, body = report_type, bytes([0, opcode]) + payload
    elif fmt.placement is ReportIdPlacement.COMMAND_ID_INLINE:
        value, body = report_type | opcode, bytes([opcode]) + payload
    else:
        value, body = report_type | opcode, bytes(payload)

    if len(body) > fmt.length:
        return None
    return ControlTransfer(
        request_type=REQUEST_TYPE_CLASS_INTERFACE_OUT,
        request=HID_SET_REPORT,
        value=value,
        index=interface,
        data=body.ljust(fmt.length, b"\x00"),
    )


class CommandTransmitter:
    def __init__(
        self,
        formats: tuple[WireFormat, ...] = WIRE_FORMATS,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.formats = formats
        self.timeout_ms = timeout_ms

    def send(self, handle: UsbHandle, interface: int, opcode: int, payload: bytes = b"") -> str:
        """Send a command, returning the label of the first accepted format.

        The whole list is retried for every call; a format accepted for one
        opcode says nothing about the next.
        """
        attempts: list[str] = []
        for fmt in self.formats:
            transfer = build_transfer(fmt, opcode, payload, interface)
            if transfer is None:
                LOGGER.debug("Skipping %s for 0x%02X: payload too long", fmt.label, opcode)
                continue
            attempts.append(fmt.label)
            try:
                handle.control_write(
                    transfer.request_type,
                    transfer.request,
                    transfer.value,
                    transfer.index,
                    transfer.data,
                    timeout_ms=self.timeout_ms,
                )
            except TransportError as exc:
                LOGGER.debug("Format %s rejected for 0x%02X: %s", fmt.label, opcode, exc)
                continue
            LOGGER.debug(
                "Format %s accepted for 0x%02X (wValue=0x%04X data=%s)",
                fmt.label,
                opcode,
                transfer.value,
                transfer.data.hex(),
            )
            return fmt.label
        raise NoAcceptedFormatError(opcode, tuple(attempts))

    def read_back(
        self,
        handle: UsbHandle,
        interface: int,
        pedal: int,
        action: KeyAction,
    ) -> Verification:
        """Best-effort GET_KEY_MACRO read-back of one pedal.

        The response layout is undocumented; the known candidates are
        ``[cmd, pedal, mod, key]``, ``[0, cmd, pedal, mod, key]`` and
        ``[pedal, mod, key]``. The result is advisory only.
        """
        for value in _READ_BACK_VALUES:
            try:
                response = handle.control_read(
                    REQUEST_TYPE_CLASS_INTERFACE_IN,
                    HID_GET_REPORT,
                    value,
                    interface,
                    READ_BACK_LENGTH,
                    timeout_ms=READ_BACK_TIMEOUT_MS,
                )
            except TransportError as exc:
                LOGGER.debug("GET_REPORT wValue=0x%04X failed: %s", value, exc)
                continue

            echoed = _locate_macro(response, pedal)
            if echoed is None:
                continue
            if echoed == (action.modifiers, action.key):
                return Verification.VERIFIED
            LOGGER.warning(
                "Pedal %d read back mod=0x%02X key=0x%02X, expected mod=0x%02X key=0x%02X",
                pedal,
                echoed[0],
                echoed[1],
                action.modifiers,
                action.key,
            )
            return Verification.MISMATCHED
        return Verification.UNSUPPORTED


def _locate_macro(response: bytes, pedal: int) -> tuple[int, int] | None:
    if len(response) < 4:
        return None
    if response[0] == Opcode.GET_KEY_MACRO and response[1] == pedal:
        return response[2], response[3]
    if len(response) >= 5 and response[1] == Opcode.GET_KEY_MACRO and response[2] == pedal:
        return response[3], response[4]
    if response[0] == pedal:
        return response[1], response[2]
    return None
