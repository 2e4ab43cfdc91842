"""Domain-specific errors for savantctl."""


class SavantError(Exception):
    """Base error for savantctl."""


class KeyActionError(SavantError, ValueError):
    """Raised when a pedal action string cannot be parsed."""


class EmptyInputError(KeyActionError):
    """Raised when a pedal action string is empty or whitespace-only."""


class MalformedSeparatorError(KeyActionError):
    """Raised when '+' separators produce an empty component."""


class UnknownModifierError(KeyActionError):
    """Raised when a modifier token is not a known alias."""

    def __init__(self, token: str) -> None:
        super().__init__(f'Unknown modifier: "{token}"')
        self.token = token


class UnknownKeyError(KeyActionError):
    """Raised when the final token does not name a supported key."""

    def __init__(self, token: str) -> None:
        super().__init__(f'Unknown key: "{token}"')
        self.token = token


class InvalidCommandError(SavantError, ValueError):
    """Raised when a raw command opcode or data string is malformed."""


class DeviceDiscoveryError(SavantError):
    """Raised when USB or HID enumeration itself fails."""


class DeviceNotFoundError(SavantError):
    """Raised when no pedal is attached in any mode."""


class WrongModeError(SavantError):
    """Raised when the pedal is attached but in the wrong personality."""


class DevicePermissionError(SavantError):
    """Raised when the interface cannot be detached, claimed, or opened."""


class NoAcceptedFormatError(SavantError):
    """Raised when the firmware rejected every wire-format hypothesis."""

    def __init__(self, opcode: int, attempts: tuple[str, ...]) -> None:
        super().__init__(
            f"No wire format accepted for command 0x{opcode:02X} "
            f"(tried {len(attempts)}: {', '.join(attempts)})"
        )
        self.opcode = opcode
        self.attempts = attempts


class DisconnectedError(SavantError):
    """Raised when the device vanished from the bus mid-operation."""


class PresetLoadError(SavantError):
    """Raised when loading preset sources fails."""


class PresetValidationError(SavantError):
    """Raised when a preset file does not conform to schema or semantics."""


class ConfigError(SavantError):
    """Raised when the last-known pedal configuration cannot be written or checked."""


class TransportError(SavantError):
    """Base transport error."""


class TransportSendError(TransportError):
    """Raised when a USB transfer or HID read fails."""


class TransportTimeoutError(TransportError):
    """Raised when a USB transfer times out."""
