"""Scoped exclusive ownership of one USB interface."""

from __future__ import annotations

import logging
from types import TracebackType

from savantctl.core.errors import DevicePermissionError, TransportError
from savantctl.core.protocol import PERMISSION_GUIDANCE
from savantctl.transports.base import UsbHandle

LOGGER = logging.getLogger(__name__)


class InterfaceLease:
    """Claimed interface that is handed back to the OS exactly once.

    Teardown releases the claim first and then reattaches the kernel driver,
    but only when this lease was the one that detached it, so the host keeps
    its normal keyboard driver for the pedal after we exit.
    """

    def __init__(self, handle: UsbHandle, interface_number: int) -> None:
        self.handle = handle
        self.interface_number = interface_number
        self.detached_kernel_driver = False
        self.claimed = False
        self._closed = False

    @classmethod
    def acquire(cls, handle: UsbHandle, interface_number: int) -> InterfaceLease:
        lease = cls(handle, interface_number)
        try:
            driver_active = handle.is_kernel_driver_active(interface_number)
        except TransportError as exc:
            LOGGER.debug("Kernel driver query failed on interface %d: %s", interface_number, exc)
            driver_active = False

        if driver_active:
            try:
                handle.detach_kernel_driver(interface_number)
            except TransportError as exc:
                raise DevicePermissionError(
                    f"Failed to detach kernel driver from interface {interface_number}: {exc}. "
                    f"{PERMISSION_GUIDANCE}"
                ) from exc
            lease.detached_kernel_driver = True
            LOGGER.debug("Detached kernel driver from interface %d", interface_number)

        try:
            handle.claim_interface(interface_number)
        except TransportError as exc:
            lease.close()
            raise DevicePermissionError(
                f"Failed to claim interface {interface_number}: {exc}. {PERMISSION_GUIDANCE}"
            ) from exc
        lease.claimed = True
        LOGGER.debug("Claimed interface %d", interface_number)
        return lease

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self.claimed:
            try:
                self.handle.release_interface(self.interface_number)
            except TransportError as exc:
                LOGGER.warning("Releasing interface %d failed: %s", self.interface_number, exc)
            self.claimed = False

        if self.detached_kernel_driver:
            try:
                self.handle.attach_kernel_driver(self.interface_number)
            except TransportError as exc:
                LOGGER.warning(
                    "Reattaching kernel driver to interface %d failed: %s",
                    self.interface_number,
                    exc,
                )

    def __enter__(self) -> InterfaceLease:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
