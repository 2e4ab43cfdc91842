"""Parsing and display of pedal key actions such as ``cmd+shift+z``.

Key codes are USB HID keyboard usage IDs (HID Usage Tables, section 10);
modifier bits follow the byte-0 layout of the boot keyboard report.
"""

from __future__ import annotations

from savantctl.core.errors import (
    EmptyInputError,
    MalformedSeparatorError,
    UnknownKeyError,
    UnknownModifierError,
)
from savantctl.core.model import KeyAction

MOD_LEFT_CTRL = 0x01
MOD_LEFT_SHIFT = 0x02
MOD_LEFT_ALT = 0x04
MOD_LEFT_GUI = 0x08
MOD_RIGHT_CTRL = 0x10
MOD_RIGHT_SHIFT = 0x20
MOD_RIGHT_ALT = 0x40
MOD_RIGHT_GUI = 0x80

MODIFIER_ALIASES: dict[str, int] = {
    "cmd": MOD_LEFT_GUI,
    "command": MOD_LEFT_GUI,
    "gui": MOD_LEFT_GUI,
    "meta": MOD_LEFT_GUI,
    "super": MOD_LEFT_GUI,
    "ctrl": MOD_LEFT_CTRL,
    "control": MOD_LEFT_CTRL,
    "shift": MOD_LEFT_SHIFT,
    "alt": MOD_LEFT_ALT,
    "option": MOD_LEFT_ALT,
    "opt": MOD_LEFT_ALT,
}

_MODIFIER_SYMBOLS: dict[int, str] = {
    MOD_LEFT_GUI: "⌘",
    MOD_LEFT_CTRL: "⌃",
    MOD_LEFT_SHIFT: "⇧",
    MOD_LEFT_ALT: "⌥",
}

_MODIFIER_NAMES = (
    (MOD_LEFT_CTRL, "LCtrl"),
    (MOD_LEFT_SHIFT, "LShift"),
    (MOD_LEFT_ALT, "LAlt"),
    (MOD_LEFT_GUI, "LCmd"),
    (MOD_RIGHT_CTRL, "RCtrl"),
    (MOD_RIGHT_SHIFT, "RShift"),
    (MOD_RIGHT_ALT, "RAlt"),
    (MOD_RIGHT_GUI, "RCmd"),
)


def _build_key_codes() -> dict[str, int]:
    codes: dict[str, int] = {}
    for offset, letter in enumerate("abcdefghijklmnopqrstuvwxyz"):
        codes[letter] = 0x04 + offset
    for offset, digit in enumerate("1234567890"):
        codes[digit] = 0x1E + offset
    for number in range(1, 13):
        codes[f"f{number}"] = 0x3A + number - 1
    codes.update(
        {
            "enter": 0x28,
            "return": 0x28,
            "esc": 0x29,
            "escape": 0x29,
            "backspace": 0x2A,
            "tab": 0x2B,
            "space": 0x2C,
            "minus": 0x2D,
            "-": 0x2D,
            "equal": 0x2E,
            "=": 0x2E,
            "leftbracket": 0x2F,
            "[": 0x2F,
            "rightbracket": 0x30,
            "]": 0x30,
            "backslash": 0x31,
            "\\": 0x31,
            "semicolon": 0x33,
            ";": 0x33,
            "quote": 0x34,
            "'": 0x34,
            "grave": 0x35,
            "`": 0x35,
            "comma": 0x36,
            ",": 0x36,
            "period": 0x37,
            ".": 0x37,
            "slash": 0x38,
            "/": 0x38,
            "capslock": 0x39,
            "right": 0x4F,
            "left": 0x50,
            "down": 0x51,
            "up": 0x52,
        }
    )
    return codes


KEY_CODES = _build_key_codes()

# Display names, one per code; first alias wins for the parseable token.
_KEY_DISPLAY: dict[int, str] = {
    0x28: "Enter",
    0x29: "Escape",
    0x2A: "Backspace",
    0x2B: "Tab",
    0x2C: "Space",
    0x2D: "Minus",
    0x2E: "Equal",
    0x2F: "LeftBracket",
    0x30: "RightBracket",
    0x31: "Backslash",
    0x33: "Semicolon",
    0x34: "Quote",
    0x35: "Grave",
    0x36: "Comma",
    0x37: "Period",
    0x38: "Slash",
    0x39: "CapsLock",
    0x4F: "Right",
    0x50: "Left",
    0x51: "Down",
    0x52: "Up",
}

def _build_canonical_tokens() -> dict[int, str]:
    tokens: dict[int, str] = {}
    for name, code in KEY_CODES.items():
        tokens.setdefault(code, name)
    return tokens


_CANONICAL_TOKENS = _build_canonical_tokens()


def parse_key_action(text: str) -> KeyAction:
    """Parse ``mod+mod+key`` into a modifier bitmask and HID usage code.

    Modifiers are OR-ed together, so their order and repetition do not matter.
    """
    stripped = text.strip()
    if not stripped:
        raise EmptyInputError("Key action cannot be empty")
    if stripped.startswith("+") or stripped.endswith("+"):
        raise MalformedSeparatorError(f"Key action cannot start or end with '+': \"{stripped}\"")
    if "++" in stripped:
        raise MalformedSeparatorError(
            f"Key action contains empty modifier (consecutive '+'): \"{stripped}\""
        )

    parts = [part.strip().lower() for part in stripped.split("+")]
    if any(not part for part in parts):
        raise MalformedSeparatorError(f"Key action contains empty component: \"{stripped}\"")

    modifiers = 0
    for token in parts[:-1]:
        bit = MODIFIER_ALIASES.get(token)
        if bit is None:
            raise UnknownModifierError(token)
        modifiers |= bit

    key = KEY_CODES.get(parts[-1])
    if key is None:
        raise UnknownKeyError(parts[-1])
    return KeyAction(modifiers=modifiers, key=key)


def key_name(code: int) -> str:
    if code == 0:
        return "None"
    if code in _KEY_DISPLAY:
        return _KEY_DISPLAY[code]
    token = _CANONICAL_TOKENS.get(code)
    if token is None:
        return "Unknown"
    return token.upper()


def key_token(code: int) -> str | None:
    """Return a token that ``parse_key_action`` maps back to ``code``."""
    return _CANONICAL_TOKENS.get(code)


def modifier_names(mask: int) -> list[str]:
    return [name for bit, name in _MODIFIER_NAMES if mask & bit]


def format_key_action(action: KeyAction | str) -> str:
    """Render an action for display, e.g. ``cmd+c`` -> ``⌘C``.

    Strings are rendered token by token without validation so previews of
    rejected input still show something sensible.
    """
    if isinstance(action, KeyAction):
        symbols = "".join(
            symbol for bit, symbol in _MODIFIER_SYMBOLS.items() if action.modifiers & bit
        )
        token = key_token(action.key) or f"0x{action.key:02X}"
        return symbols + token.upper()

    parts = [part.strip() for part in action.lower().split("+")]
    rendered: list[str] = []
    for part in parts[:-1]:
        bit = MODIFIER_ALIASES.get(part)
        rendered.append(_MODIFIER_SYMBOLS.get(bit, part) if bit is not None else part)
    rendered.append(parts[-1].upper())
    return "".join(rendered)


def describe_report(modifiers: int, keys: tuple[int, ...]) -> str:
    names = modifier_names(modifiers) + [key_name(k) for k in keys]
    return "+".join(names)


def modifier_groups() -> list[tuple[int, list[str]]]:
    """Group modifier aliases by the bit they set, in first-alias order."""
    groups: dict[int, list[str]] = {}
    for alias, bit in MODIFIER_ALIASES.items():
        groups.setdefault(bit, []).append(alias)
    return list(groups.items())


def key_catalog() -> dict[str, list[str]]:
    """Every accepted key token, grouped the way ``savantctl keys`` lists them."""
    catalog: dict[str, list[str]] = {
        "letters": [],
        "numbers": [],
        "function_keys": [],
        "special": [],
        "arrows": [],
    }
    for token, code in KEY_CODES.items():
        if 0x04 <= code <= 0x1D:
            catalog["letters"].append(token)
        elif 0x1E <= code <= 0x27:
            catalog["numbers"].append(token)
        elif 0x3A <= code <= 0x45:
            catalog["function_keys"].append(token)
        elif 0x4F <= code <= 0x52:
            catalog["arrows"].append(token)
        else:
            catalog["special"].append(token)
    return catalog


def modifier_symbol(bit: int) -> str:
    return _MODIFIER_SYMBOLS.get(bit, "")
