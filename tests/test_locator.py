from __future__ import annotations

from dataclasses import replace

import pytest

from fakes import PLAY_DEVICE, PLAY_KEYBOARD, PLAY_MOUSE, PROGRAM_DEVICE, FakeHidBackend, FakeUsbBackend
from savantctl.core.errors import DeviceDiscoveryError
from savantctl.core.locator import DeviceLocator, personality_for
from savantctl.core.model import DeviceIdentity, Personality


def test_personality_for() -> None:
    assert personality_for(0x05F3, 0x030C) is Personality.PLAY
    assert personality_for(0x05F3, 0x0232) is Personality.PROGRAM
    assert personality_for(0x05F3, 0x00FF) is None
    assert personality_for(0x046D, 0x0232) is None


def test_find_by_personality() -> None:
    locator = DeviceLocator(FakeUsbBackend([PLAY_DEVICE, PROGRAM_DEVICE]))
    assert locator.find(Personality.PROGRAM) == PROGRAM_DEVICE
    assert locator.find(Personality.PLAY) == PLAY_DEVICE


def test_find_ignores_other_vendors() -> None:
    stranger = DeviceIdentity(vendor_id=0x046D, product_id=0x0232, bus=1, address=2)
    locator = DeviceLocator(FakeUsbBackend([stranger]))
    assert locator.find(Personality.PROGRAM) is None


def test_keyboard_interface_skips_mouse_collection() -> None:
    locator = DeviceLocator(FakeUsbBackend([]), FakeHidBackend([PLAY_MOUSE, PLAY_KEYBOARD]))
    assert locator.find_keyboard_interface() == PLAY_KEYBOARD


def test_keyboard_interface_without_hid_backend() -> None:
    assert DeviceLocator(FakeUsbBackend([])).find_keyboard_interface() is None


def test_liveness_compares_bus_and_address() -> None:
    moved = replace(PROGRAM_DEVICE, address=PROGRAM_DEVICE.address + 1)
    locator = DeviceLocator(FakeUsbBackend([moved]))
    assert not locator.is_still_connected(PROGRAM_DEVICE)
    assert locator.is_still_connected(moved)


def test_liveness_enumeration_failure_means_gone() -> None:
    locator = DeviceLocator(FakeUsbBackend(fail=True))
    assert not locator.is_still_connected(PROGRAM_DEVICE)


def test_survey_collects_both_stacks() -> None:
    locator = DeviceLocator(FakeUsbBackend([PLAY_DEVICE]), FakeHidBackend([PLAY_KEYBOARD]))
    survey = locator.survey()
    assert survey.found_play
    assert not survey.found_program
    assert survey.hid_play == (PLAY_KEYBOARD,)
    assert survey.warnings == ()


def test_survey_warns_when_libusb_fails_but_hid_works() -> None:
    locator = DeviceLocator(FakeUsbBackend(fail=True), FakeHidBackend([PLAY_KEYBOARD]))
    survey = locator.survey()
    assert survey.found_play
    assert "libusb enumeration failed" in survey.warnings[0]


def test_survey_raises_without_any_working_stack() -> None:
    with pytest.raises(DeviceDiscoveryError):
        DeviceLocator(FakeUsbBackend(fail=True)).survey()


def test_only_survey_asks_for_serials() -> None:
    backend = FakeUsbBackend([PROGRAM_DEVICE])
    locator = DeviceLocator(backend)

    locator.find(Personality.PROGRAM)
    locator.is_still_connected(PROGRAM_DEVICE)
    assert backend.serial_reads == 0

    locator.survey()
    assert backend.serial_reads == 1
