"""HID transport implementation using hidapi."""

from __future__ import annotations

from typing import Any

import hid

from savantctl.core.errors import DeviceDiscoveryError, DevicePermissionError, TransportSendError
from savantctl.core.model import HidInterfaceInfo
from savantctl.core.protocol import PERMISSION_GUIDANCE


class HidApiDevice:
    def __init__(self, device: Any) -> None:
        self._device = device

    def set_nonblocking(self, enabled: bool) -> None:
        try:
            self._device.set_nonblocking(1 if enabled else 0)
        except (OSError, ValueError) as exc:
            raise TransportSendError(f"HID set_nonblocking failed: {exc}") from exc

    def read(self, size: int, timeout_ms: int) -> bytes:
        try:
            data = self._device.read(size, timeout_ms)
        except (OSError, ValueError) as exc:
            raise TransportSendError(f"HID read failed: {exc}") from exc
        return bytes(data) if data else b""

    def close(self) -> None:
        self._device.close()


class HidApiBackend:
    def enumerate(self, vendor_id: int) -> list[HidInterfaceInfo]:
        try:
            entries = hid.enumerate(vendor_id, 0)
        except OSError as exc:
            raise DeviceDiscoveryError(f"HID enumeration failed: {exc}") from exc

        return [
            HidInterfaceInfo(
                vendor_id=entry["vendor_id"],
                product_id=entry["product_id"],
                interface_number=entry.get("interface_number", -1),
                usage_page=entry.get("usage_page", 0),
                usage=entry.get("usage", 0),
                path=entry["path"],
                serial=entry.get("serial_number") or None,
            )
            for entry in entries
        ]

    def open(self, info: HidInterfaceInfo) -> HidApiDevice:
        device = hid.device()
        try:
            device.open_path(info.path)
        except OSError as exc:
            raise DevicePermissionError(
                f"Cannot open HID interface {info.path!r}: {exc}. {PERMISSION_GUIDANCE}"
            ) from exc
        return HidApiDevice(device)
