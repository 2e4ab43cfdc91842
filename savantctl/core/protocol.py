"""Device identifiers and the vendor command set.

The command bytes follow the PI Engineering X-keys family, which the Savant
Elite programming personality appears to share. Only SET_KEY_MACRO,
GET_KEY_MACRO and SAVE_TO_EEPROM are exercised by the programming session.
"""

from __future__ import annotations

from enum import IntEnum

VENDOR_ID = 0x05F3
PLAY_PRODUCT_ID = 0x030C
PROGRAM_PRODUCT_ID = 0x0232

KEYBOARD_USAGE_PAGE = 0x01
KEYBOARD_USAGE = 0x06

PROGRAM_INTERFACE = 0

SHORT_REPORT_LENGTH = 8
LONG_REPORT_LENGTH = 36
# 36-byte buffer minus report-id byte and command byte.
MAX_RAW_DATA_LENGTH = LONG_REPORT_LENGTH - 2


class Opcode(IntEnum):
    GENERATE_DATA = 0xB5
    SET_LED = 0xB6
    SET_FLASH_FREQ = 0xB7
    SET_TIMESTAMP = 0xB8
    GET_DESCRIPTOR = 0xC1
    SET_UNIT_ID = 0xC9
    SET_PID = 0xCA
    REBOOT = 0xCB
    SET_KEY_MACRO = 0xCC
    GET_KEY_MACRO = 0xCD
    SAVE_TO_EEPROM = 0xCE


# bmRequestType
REQUEST_TYPE_CLASS_INTERFACE_OUT = 0x21
REQUEST_TYPE_CLASS_INTERFACE_IN = 0xA1
REQUEST_TYPE_VENDOR_OUT = 0x40

# bRequest
HID_GET_REPORT = 0x01
HID_SET_REPORT = 0x09

# wValue high byte
REPORT_TYPE_INPUT = 0x0100
REPORT_TYPE_OUTPUT = 0x0200
REPORT_TYPE_FEATURE = 0x0300

PLAY_MODE_GUIDANCE = (
    "Device is in PLAY mode. To program it: flip the pedal over, use a paperclip to move "
    "the recessed switch near the Kinesis sticker from Play to Program, then unplug and "
    "replug the USB cable."
)
NOT_FOUND_GUIDANCE = (
    "No Savant Elite found. Make sure the pedal is connected via USB, then try unplugging "
    "and replugging the cable."
)
PERMISSION_GUIDANCE = (
    "Re-run with elevated privileges (sudo) or install a udev rule granting access to "
    f"{VENDOR_ID:04x}:{PROGRAM_PRODUCT_ID:04x}."
)
PROGRAM_MODE_GUIDANCE = (
    "Device is in PROGRAM mode and sends no key reports. Flip the switch back to Play, "
    "then unplug and replug the USB cable."
)
