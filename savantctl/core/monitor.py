"""Live monitor for the pedal's play-mode keyboard reports."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator

from savantctl.core.keys import describe_report
from savantctl.core.model import EventKind, KeyboardEvent
from savantctl.transports.base import HidDevice

LOGGER = logging.getLogger(__name__)

BOOT_REPORT_LENGTH = 8
READ_BUFFER_SIZE = 64


def normalize_boot_keyboard_report(data: bytes) -> bytes | None:
    """Reduce a raw read to the 8-byte boot keyboard layout.

    Some HID backends prepend a report-ID byte (usually 0) or pad reports to
    the endpoint size. A read is treated as prefixed when byte 0 and byte 2
    are zero and anything in bytes 1 or 3..8 is set.
    """
    if len(data) < BOOT_REPORT_LENGTH:
        return None
    prefixed = (
        len(data) >= BOOT_REPORT_LENGTH + 1
        and data[0] == 0
        and data[2] == 0
        and (data[1] != 0 or any(data[3:9]))
    )
    offset = 1 if prefixed else 0
    return bytes(data[offset : offset + BOOT_REPORT_LENGTH])


class ReportMonitor:
    def __init__(
        self,
        device: HidDevice,
        *,
        poll_interval_s: float = 0.01,
        read_timeout_ms: int = 100,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.device = device
        self.poll_interval_s = poll_interval_s
        self.read_timeout_ms = read_timeout_ms
        self._clock = clock
        self._sleep = sleep

    def events(self, duration_s: float | None = None) -> Iterator[KeyboardEvent]:
        """Yield press and release events until ``duration_s`` elapses.

        Runs forever when ``duration_s`` is None; the caller stops it by
        closing the generator or interrupting the process.
        """
        self.device.set_nonblocking(True)
        last = bytes(BOOT_REPORT_LENGTH)
        started = self._clock()

        while duration_s is None or self._clock() - started < duration_s:
            data = self.device.read(READ_BUFFER_SIZE, self.read_timeout_ms)
            report = normalize_boot_keyboard_report(data) if data else None
            if report is not None and report != last:
                last = report
                yield _event_for(report)
            self._sleep(self.poll_interval_s)


def _event_for(report: bytes) -> KeyboardEvent:
    modifiers = report[0]
    keys = tuple(k for k in report[2:] if k)
    # Any non-zero byte, reserved included, means something is held.
    kind = EventKind.PRESS if any(report) else EventKind.RELEASE
    LOGGER.debug("%s %s", kind.value, report.hex())
    return KeyboardEvent(kind=kind, modifiers=modifiers, keys=keys, report=report)


def describe_event(event: KeyboardEvent) -> str:
    if event.kind is EventKind.RELEASE:
        return "release"
    return describe_report(event.modifiers, event.keys) or f"report {event.report.hex()}"
