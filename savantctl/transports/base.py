"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from savantctl.core.model import DeviceIdentity, HidInterfaceInfo


class UsbHandle(Protocol):
    """An opened USB device. Failing calls raise ``TransportError``."""

    def is_kernel_driver_active(self, interface: int) -> bool: ...

    def detach_kernel_driver(self, interface: int) -> None: ...

    def attach_kernel_driver(self, interface: int) -> None: ...

    def claim_interface(self, interface: int) -> None: ...

    def release_interface(self, interface: int) -> None: ...

    def control_write(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        data: bytes,
        *,
        timeout_ms: int,
    ) -> int:
        """Issue an OUT control transfer and return the number of bytes written."""

    def control_read(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        length: int,
        *,
        timeout_ms: int,
    ) -> bytes:
        """Issue an IN control transfer and return the data stage."""

    def read_input(self, interface: int, length: int, *, timeout_ms: int) -> bytes:
        """Read one interrupt IN report, or ``b""`` on timeout."""

    def close(self) -> None: ...

class UsbBackend(Protocol):
    def enumerate(self, vendor_id: int, *, with_serial: bool = False) -> list[DeviceIdentity]:
        """List attached devices for a vendor; raises ``DeviceDiscoveryError``."""

    def open(self, identity: DeviceIdentity) -> UsbHandle: ...


class HidDevice(Protocol):
    def set_nonblocking(self, enabled: bool) -> None: ...

    def read(self, size: int, timeout_ms: int) -> bytes:
        """Return one report, or ``b""`` when nothing arrived before the timeout."""

    def close(self) -> None: ...


class HidBackend(Protocol):
    def enumerate(self, vendor_id: int) -> list[HidInterfaceInfo]: ...

    def open(self, info: HidInterfaceInfo) -> HidDevice: ...
