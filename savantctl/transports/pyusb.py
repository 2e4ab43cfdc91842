"""libusb transport implementation using PyUSB."""

from __future__ import annotations

import logging
from typing import Any

import usb.core
import usb.util

from savantctl.core.errors import (
    DeviceDiscoveryError,
    DisconnectedError,
    DevicePermissionError,
    TransportSendError,
    TransportTimeoutError,
)
from savantctl.core.model import DeviceIdentity
from savantctl.core.protocol import PERMISSION_GUIDANCE

LOGGER = logging.getLogger(__name__)

_EACCES = 13


def _wrap(action: str, exc: usb.core.USBError) -> TransportSendError | TransportTimeoutError:
    if isinstance(exc, usb.core.USBTimeoutError):
        return TransportTimeoutError(f"{action} timed out")
    return TransportSendError(f"{action} failed: {exc}")


class PyUsbHandle:
    def __init__(self, device: Any) -> None:
        self._device = device

    def is_kernel_driver_active(self, interface: int) -> bool:
        try:
            return bool(self._device.is_kernel_driver_active(interface))
        except NotImplementedError:
            # Not available on macOS or Windows; there is nothing to detach.
            return False
        except usb.core.USBError as exc:
            raise _wrap("Kernel driver query", exc) from exc

    def detach_kernel_driver(self, interface: int) -> None:
        try:
            self._device.detach_kernel_driver(interface)
        except usb.core.USBError as exc:
            raise _wrap("Kernel driver detach", exc) from exc

    def attach_kernel_driver(self, interface: int) -> None:
        try:
            self._device.attach_kernel_driver(interface)
        except usb.core.USBError as exc:
            raise _wrap("Kernel driver attach", exc) from exc

    def claim_interface(self, interface: int) -> None:
        try:
            usb.util.claim_interface(self._device, interface)
        except usb.core.USBError as exc:
            raise _wrap("Interface claim", exc) from exc

    def release_interface(self, interface: int) -> None:
        try:
            usb.util.release_interface(self._device, interface)
        except usb.core.USBError as exc:
            raise _wrap("Interface release", exc) from exc

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
        try:
            written = self._device.ctrl_transfer(
                request_type, request, value, index, data or None, timeout_ms
            )
        except usb.core.USBError as exc:
            raise _wrap("Control write", exc) from exc
        return int(written)

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
        try:
            data = self._device.ctrl_transfer(request_type, request, value, index, length, timeout_ms)
        except usb.core.USBError as exc:
            raise _wrap("Control read", exc) from exc
        return bytes(data)

    def read_input(self, interface: int, length: int, *, timeout_ms: int) -> bytes:
        """Read one report from the interface's interrupt IN endpoint.

        Returns ``b""`` when nothing arrives before the timeout.
        """
        endpoint = self._in_endpoint(interface)
        try:
            data = self._device.read(endpoint, length, timeout=timeout_ms)
        except usb.core.USBTimeoutError:
            return b""
        except usb.core.USBError as exc:
            raise _wrap("Interrupt read", exc) from exc
        return bytes(data)

    def _in_endpoint(self, interface: int) -> int:
        try:
            descriptor = self._device.get_active_configuration()[(interface, 0)]
        except (usb.core.USBError, IndexError, KeyError) as exc:
            raise TransportSendError(f"Interface {interface} descriptor unavailable: {exc}") from exc
        for endpoint in descriptor:
            if usb.util.endpoint_direction(endpoint.bEndpointAddress) == usb.util.ENDPOINT_IN:
                return endpoint.bEndpointAddress
        raise TransportSendError(f"Interface {interface} has no IN endpoint")

    def close(self) -> None:
        usb.util.dispose_resources(self._device)


class PyUsbBackend:
    def enumerate(self, vendor_id: int, *, with_serial: bool = False) -> list[DeviceIdentity]:
        """List attached devices.

        Only bus topology is read by default. Reading the serial opens the
        device and issues a string-descriptor request, which must not happen
        while a programming session owns the pedal.
        """
        try:
            devices = list(usb.core.find(find_all=True, idVendor=vendor_id))
        except usb.core.NoBackendError as exc:
            raise DeviceDiscoveryError(
                "No libusb backend is available; install libusb-1.0 for your platform"
            ) from exc
        except usb.core.USBError as exc:
            raise DeviceDiscoveryError(f"USB enumeration failed: {exc}") from exc

        return [
            DeviceIdentity(
                vendor_id=dev.idVendor,
                product_id=dev.idProduct,
                bus=dev.bus,
                address=dev.address,
                serial=_read_serial(dev) if with_serial else None,
            )
            for dev in devices
        ]

    def open(self, identity: DeviceIdentity) -> PyUsbHandle:
        try:
            device = usb.core.find(
                idVendor=identity.vendor_id,
                idProduct=identity.product_id,
                custom_match=lambda d: d.bus == identity.bus and d.address == identity.address,
            )
        except usb.core.NoBackendError as exc:
            raise DeviceDiscoveryError(
                "No libusb backend is available; install libusb-1.0 for your platform"
            ) from exc
        except usb.core.USBError as exc:
            if exc.errno == _EACCES:
                raise DevicePermissionError(f"Cannot open device: {exc}. {PERMISSION_GUIDANCE}") from exc
            raise DeviceDiscoveryError(f"USB enumeration failed: {exc}") from exc

        if device is None:
            raise DisconnectedError(
                f"Device {identity.vendor_id:04X}:{identity.product_id:04X} "
                f"at bus {identity.bus} address {identity.address} is no longer attached"
            )
        return PyUsbHandle(device)


def _read_serial(device: Any) -> str | None:
    index = getattr(device, "iSerialNumber", 0)
    if not index:
        return None
    try:
        return usb.util.get_string(device, index)
    except (usb.core.USBError, ValueError, NotImplementedError) as exc:
        # Reading string descriptors needs device access; unprivileged enumeration still works.
        LOGGER.debug("Serial number unavailable for bus %s address %s: %s", device.bus, device.address, exc)
        return None
    finally:
        usb.util.dispose_resources(device)
