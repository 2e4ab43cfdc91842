"""Finding the pedal on the bus and telling its two personalities apart."""

from __future__ import annotations

import logging

from savantctl.core.errors import DeviceDiscoveryError
from savantctl.core.model import DeviceIdentity, DeviceSurvey, HidInterfaceInfo, Personality
from savantctl.core.protocol import (
    KEYBOARD_USAGE,
    KEYBOARD_USAGE_PAGE,
    PLAY_PRODUCT_ID,
    PROGRAM_PRODUCT_ID,
    VENDOR_ID,
)
from savantctl.transports.base import HidBackend, UsbBackend

LOGGER = logging.getLogger(__name__)

_PRODUCT_IDS = {
    Personality.PLAY: PLAY_PRODUCT_ID,
    Personality.PROGRAM: PROGRAM_PRODUCT_ID,
}


def personality_for(vendor_id: int, product_id: int) -> Personality | None:
    if vendor_id != VENDOR_ID:
        return None
    for personality, pid in _PRODUCT_IDS.items():
        if pid == product_id:
            return personality
    return None


def is_keyboard_collection(info: HidInterfaceInfo) -> bool:
    return info.usage_page == KEYBOARD_USAGE_PAGE and info.usage == KEYBOARD_USAGE


class DeviceLocator:
    """Re-establishes device identity on every call; nothing is cached.

    Toggling the mode switch re-enumerates the pedal under a different
    product ID, so a previously seen identity says nothing about the present.
    """

    def __init__(self, usb_backend: UsbBackend, hid_backend: HidBackend | None = None) -> None:
        self.usb_backend = usb_backend
        self.hid_backend = hid_backend

    def find(self, personality: Personality) -> DeviceIdentity | None:
        wanted = _PRODUCT_IDS[personality]
        for identity in self.usb_backend.enumerate(VENDOR_ID):
            if identity.product_id == wanted:
                return identity
        return None

    def find_keyboard_interface(self) -> HidInterfaceInfo | None:
        # The play personality also exposes a mouse collection under the same PID.
        if self.hid_backend is None:
            return None
        for info in self.hid_backend.enumerate(VENDOR_ID):
            if info.product_id == PLAY_PRODUCT_ID and is_keyboard_collection(info):
                return info
        return None

    def is_still_connected(self, identity: DeviceIdentity) -> bool:
        try:
            devices = self.usb_backend.enumerate(identity.vendor_id)
        except DeviceDiscoveryError as exc:
            LOGGER.debug("Liveness enumeration failed: %s", exc)
            return False
        return any(d.bus == identity.bus and d.address == identity.address for d in devices)

    def survey(self) -> DeviceSurvey:
        play: list[DeviceIdentity] = []
        program: list[DeviceIdentity] = []
        warnings: list[str] = []
        usb_ok = True

        try:
            for identity in self.usb_backend.enumerate(VENDOR_ID, with_serial=True):
                personality = personality_for(identity.vendor_id, identity.product_id)
                if personality is Personality.PLAY:
                    play.append(identity)
                elif personality is Personality.PROGRAM:
                    program.append(identity)
        except DeviceDiscoveryError as exc:
            usb_ok = False
            warnings.append(f"libusb enumeration failed: {exc}")

        hid_play: list[HidInterfaceInfo] = []
        hid_program: list[HidInterfaceInfo] = []
        if self.hid_backend is not None:
            try:
                for info in self.hid_backend.enumerate(VENDOR_ID):
                    personality = personality_for(info.vendor_id, info.product_id)
                    if personality is Personality.PLAY:
                        hid_play.append(info)
                    elif personality is Personality.PROGRAM:
                        hid_program.append(info)
            except DeviceDiscoveryError as exc:
                warnings.append(f"HID enumeration failed: {exc}")

        if not usb_ok and self.hid_backend is None:
            raise DeviceDiscoveryError(" | ".join(warnings))

        return DeviceSurvey(
            play=tuple(play),
            program=tuple(program),
            hid_play=tuple(hid_play),
            hid_program=tuple(hid_program),
            warnings=tuple(warnings),
        )
