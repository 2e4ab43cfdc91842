"""Environment health checks behind ``savantctl doctor``."""

from __future__ import annotations

import logging
import platform
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from savantctl.core.config import check_config_file
from savantctl.core.errors import DeviceDiscoveryError, SavantError
from savantctl.core.lease import InterfaceLease
from savantctl.core.locator import DeviceLocator, is_keyboard_collection
from savantctl.core.model import CheckStatus, DeviceSurvey, DoctorCheck, DoctorReport
from savantctl.core.profiles import ProfileStore
from savantctl.core.protocol import PROGRAM_INTERFACE
from savantctl.transports.base import HidBackend, UsbBackend

LOGGER = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("linux", "darwin", "win32")


def package_version() -> str | None:
    try:
        return version("savantctl")
    except PackageNotFoundError:
        return None


def platform_name() -> str:
    return platform.system().lower() or sys.platform


def check_binary() -> DoctorCheck:
    installed = package_version()
    if installed is None:
        return DoctorCheck(
            "binary", CheckStatus.WARN, "savantctl is not installed as a package; running from source"
        )
    return DoctorCheck(
        "binary",
        CheckStatus.PASS,
        f"savantctl {installed} on Python {platform.python_version()} ({sys.executable})",
    )


def check_platform() -> DoctorCheck:
    label = f"{platform_name()} {platform.release()} ({platform.machine() or 'unknown arch'})"
    if sys.platform.startswith(SUPPORTED_PLATFORMS):
        return DoctorCheck("platform", CheckStatus.PASS, label)
    return DoctorCheck("platform", CheckStatus.WARN, f"{label} is untested")


def check_device(survey: DeviceSurvey | None, error: str | None = None) -> DoctorCheck:
    if survey is None:
        return DoctorCheck("device", CheckStatus.FAIL, f"Device discovery failed: {error}")
    if survey.found_program:
        return DoctorCheck("device", CheckStatus.PASS, "Savant Elite attached in program mode")
    if survey.found_play:
        return DoctorCheck("device", CheckStatus.PASS, "Savant Elite attached in play mode")
    if survey.warnings:
        return DoctorCheck("device", CheckStatus.FAIL, "; ".join(survey.warnings))
    return DoctorCheck("device", CheckStatus.WARN, "No Savant Elite attached")


def check_config(path: Path) -> DoctorCheck:
    if not path.exists():
        return DoctorCheck("config", CheckStatus.WARN, f"No pedal configuration saved yet ({path})")
    try:
        result = check_config_file(path)
    except SavantError as exc:
        return DoctorCheck("config", CheckStatus.FAIL, str(exc))
    if result.valid:
        return DoctorCheck("config", CheckStatus.PASS, f"{path} is valid")
    return DoctorCheck("config", CheckStatus.FAIL, f"{path}: {'; '.join(result.errors)}")


def check_profiles(store: ProfileStore) -> DoctorCheck:
    profiles = store.list_profiles()
    broken = [p.name for p in profiles if not p.complete]
    if broken:
        return DoctorCheck(
            "profiles", CheckStatus.WARN, f"Incomplete profiles: {', '.join(broken)}"
        )
    return DoctorCheck("profiles", CheckStatus.PASS, f"{len(profiles)} saved profile(s) in {store.directory}")


def check_permissions(survey: DeviceSurvey | None, usb_backend: UsbBackend, hid_backend: HidBackend) -> DoctorCheck:
    """Open whatever is attached and release it again without sending anything."""
    if survey is None or not (survey.found_program or survey.found_play):
        return DoctorCheck("permissions", CheckStatus.WARN, "No device attached; access not checked")

    try:
        if survey.program:
            handle = usb_backend.open(survey.program[0])
            try:
                with InterfaceLease.acquire(handle, PROGRAM_INTERFACE):
                    pass
            finally:
                handle.close()
            return DoctorCheck(
                "permissions", CheckStatus.PASS, f"Interface {PROGRAM_INTERFACE} can be claimed"
            )

        candidates = survey.hid_play + survey.hid_program
        if not candidates:
            return DoctorCheck(
                "permissions", CheckStatus.WARN, "No HID interface enumerated; access not checked"
            )
        info = next((i for i in candidates if is_keyboard_collection(i)), candidates[0])
        hid_backend.open(info).close()
    except SavantError as exc:
        LOGGER.debug("Permission check failed: %s", exc)
        return DoctorCheck("permissions", CheckStatus.FAIL, str(exc))
    return DoctorCheck("permissions", CheckStatus.PASS, "HID interface can be opened")


def run_doctor(
    locator: DeviceLocator,
    usb_backend: UsbBackend,
    hid_backend: HidBackend,
    *,
    config_path: Path,
    profiles: ProfileStore,
) -> DoctorReport:
    survey: DeviceSurvey | None = None
    error: str | None = None
    try:
        survey = locator.survey()
    except DeviceDiscoveryError as exc:
        error = str(exc)

    checks = (
        check_binary(),
        check_platform(),
        check_device(survey, error),
        check_config(config_path),
        check_profiles(profiles),
        check_permissions(survey, usb_backend, hid_backend),
    )
    for check in checks:
        LOGGER.debug("doctor %s: %s %s", check.name, check.status.value, check.message)
    return DoctorReport(
        version=package_version() or "unknown",
        platform=platform_name(),
        arch=platform.machine() or "unknown",
        checks=checks,
    )
