"""Programming session: assign three pedals, then persist to EEPROM.

SET_KEY_MACRO only changes device RAM. Until SAVE_TO_EEPROM is accepted the
assignments vanish on unplug, so a disconnect anywhere before the save is
reported as lost work, never as success.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace

from savantctl.core.errors import (
    DeviceNotFoundError,
    NoAcceptedFormatError,
    TransportError,
    WrongModeError,
)
from savantctl.core.lease import InterfaceLease
from savantctl.core.locator import DeviceLocator
from savantctl.core.model import (
    PEDAL_NAMES,
    DeviceIdentity,
    PedalAssignment,
    PedalOutcome,
    Personality,
    ProgrammingOutcome,
    RawCommandResult,
    SessionState,
)
from savantctl.core.protocol import (
    NOT_FOUND_GUIDANCE,
    PLAY_MODE_GUIDANCE,
    PROGRAM_INTERFACE,
    Opcode,
)
from savantctl.core.transmitter import CommandTransmitter
from savantctl.transports.base import UsbBackend, UsbHandle

LOGGER = logging.getLogger(__name__)

SETTLE_S = 0.05
EEPROM_WRITE_S = 0.2
RAW_RESPONSE_DELAY_S = 0.1
RAW_RESPONSE_TIMEOUT_MS = 500
RAW_RESPONSE_LENGTH = 64


class ProgrammingSession:
    def __init__(
        self,
        locator: DeviceLocator,
        usb_backend: UsbBackend,
        transmitter: CommandTransmitter | None = None,
        *,
        interface_number: int = PROGRAM_INTERFACE,
        verify: bool = True,
        settle_s: float = SETTLE_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.locator = locator
        self.usb_backend = usb_backend
        self.transmitter = transmitter or CommandTransmitter()
        self.interface_number = interface_number
        self.verify = verify
        self.settle_s = settle_s
        self._sleep = sleep
        self.state = SessionState.IDLE

    def _enter(self, state: SessionState) -> None:
        LOGGER.debug("Session %s -> %s", self.state.value, state.value)
        self.state = state

    def check_mode(self) -> DeviceIdentity:
        identity = self.locator.find(Personality.PROGRAM)
        if identity is None:
            if self.locator.find(Personality.PLAY) is not None:
                raise WrongModeError(PLAY_MODE_GUIDANCE)
            raise DeviceNotFoundError(NOT_FOUND_GUIDANCE)
        self._enter(SessionState.MODE_CHECKED)
        return identity

    def run(self, assignments: Sequence[PedalAssignment]) -> ProgrammingOutcome:
        ordered = sorted(assignments, key=lambda a: a.pedal)
        if [a.pedal for a in ordered] != list(range(len(PEDAL_NAMES))):
            raise ValueError("A programming session needs exactly one assignment per pedal (0, 1, 2)")

        identity = self.check_mode()
        handle = self.usb_backend.open(identity)
        try:
            with InterfaceLease.acquire(handle, self.interface_number):
                self._enter(SessionState.INTERFACE_LEASED)
                return self._program(handle, identity, ordered)
        finally:
            handle.close()

    def send_raw(self, opcode: int, payload: bytes = b"") -> RawCommandResult:
        """Send one arbitrary command under the same mode check and lease.

        Whatever the device answers on its interrupt endpoint shortly after
        is captured; most commands produce no answer at all.
        """
        identity = self.check_mode()
        handle = self.usb_backend.open(identity)
        read_error: str | None = None
        try:
            with InterfaceLease.acquire(handle, self.interface_number):
                self._enter(SessionState.INTERFACE_LEASED)
                label = self.transmitter.send(handle, self.interface_number, opcode, payload)
                self._sleep(RAW_RESPONSE_DELAY_S)
                try:
                    response = handle.read_input(
                        self.interface_number, RAW_RESPONSE_LENGTH, timeout_ms=RAW_RESPONSE_TIMEOUT_MS
                    )
                except TransportError as exc:
                    LOGGER.debug("No response read for 0x%02X: %s", opcode, exc)
                    response, read_error = b"", str(exc)
        finally:
            handle.close()
        self._enter(SessionState.DONE)
        return RawCommandResult(
            device=identity,
            opcode=opcode,
            payload_hex=payload.hex(),
            format_label=label,
            response_hex=response.hex(),
            read_error=read_error,
        )

    def _program(
        self,
        handle: UsbHandle,
        identity: DeviceIdentity,
        assignments: list[PedalAssignment],
    ) -> ProgrammingOutcome:
        outcomes = [PedalOutcome(pedal=a.pedal, action=a.action) for a in assignments]

        self._enter(SessionState.PROGRAMMING)
        for assignment in assignments:
            outcomes[assignment.pedal] = self._program_pedal(handle, assignment)
            self._sleep(self.settle_s)
            if not self.locator.is_still_connected(identity):
                LOGGER.warning(
                    "Device disconnected after the %s pedal; unsaved changes are lost",
                    assignment.name,
                )
                return self._finish(identity, outcomes, SessionState.ABORTED, disconnected=True)

        self._enter(SessionState.PERSISTING)
        if not self.locator.is_still_connected(identity):
            LOGGER.warning("Device disconnected before the EEPROM save")
            return self._finish(identity, outcomes, SessionState.ABORTED, disconnected=True)

        try:
            save_label = self.transmitter.send(
                handle, self.interface_number, Opcode.SAVE_TO_EEPROM
            )
        except NoAcceptedFormatError as exc:
            if not self.locator.is_still_connected(identity):
                LOGGER.warning("Device disconnected during the EEPROM save")
                return self._finish(identity, outcomes, SessionState.ABORTED, disconnected=True)
            LOGGER.warning("EEPROM save failed: %s", exc)
            return self._finish(identity, outcomes, SessionState.DONE)

        self._sleep(EEPROM_WRITE_S)
        return self._finish(identity, outcomes, SessionState.DONE, save_label=save_label)

    def _program_pedal(self, handle: UsbHandle, assignment: PedalAssignment) -> PedalOutcome:
        action = assignment.action
        payload = bytes([assignment.pedal, action.modifiers, action.key])
        try:
            label = self.transmitter.send(
                handle, self.interface_number, Opcode.SET_KEY_MACRO, payload
            )
        except NoAcceptedFormatError as exc:
            LOGGER.warning("Programming the %s pedal failed: %s", assignment.name, exc)
            return PedalOutcome(
                pedal=assignment.pedal,
                action=action,
                attempted=True,
                succeeded=False,
                error=str(exc),
            )

        outcome = PedalOutcome(
            pedal=assignment.pedal,
            action=action,
            attempted=True,
            succeeded=True,
            format_label=label,
        )
        if self.verify:
            self._sleep(self.settle_s)
            verification = self.transmitter.read_back(
                handle, self.interface_number, assignment.pedal, action
            )
            outcome = replace(outcome, verification=verification)
        return outcome

    def _finish(
        self,
        identity: DeviceIdentity,
        outcomes: list[PedalOutcome],
        state: SessionState,
        *,
        disconnected: bool = False,
        save_label: str | None = None,
    ) -> ProgrammingOutcome:
        self._enter(state)
        return ProgrammingOutcome(
            device=identity,
            pedals=tuple(outcomes),
            eeprom_save_ok=save_label is not None,
            disconnected_mid_session=disconnected,
            state=state,
            save_format_label=save_label,
        )
