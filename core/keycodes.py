"""HID keyboard/keypad usage codes (usage page 0x07) used by the numpad"""
from enum import IntEnum


class KeyCode(IntEnum):
    NONE = 0x00  # no key pressed

    ENTER = 0x28
    ESCAPE = 0x29
    BACKSPACE = 0x2A
    TAB = 0x2B
    SPACE = 0x2C

    NUMLOCK = 0x53
    KP_DIVIDE = 0x54
    KP_MULTIPLY = 0x55
    KP_MINUS = 0x56
    KP_PLUS = 0x57
    KP_ENTER = 0x58
    KP_1 = 0x59  # End
    KP_2 = 0x5A  # Down
    KP_3 = 0x5B  # PageDn
    KP_4 = 0x5C  # Left
    KP_5 = 0x5D
    KP_6 = 0x5E  # Right
    KP_7 = 0x5F  # Home
    KP_8 = 0x60  # Up
    KP_9 = 0x61  # PageUp
    KP_0 = 0x62  # Insert
    KP_PERIOD = 0x63  # Delete


# Modifier masks for byte 0 of the boot keyboard report
KEY_MOD_LCTRL = 0x01
KEY_MOD_LSHIFT = 0x02
KEY_MOD_LALT = 0x04
KEY_MOD_LMETA = 0x08
KEY_MOD_RCTRL = 0x10
KEY_MOD_RSHIFT = 0x20
KEY_MOD_RALT = 0x40
KEY_MOD_RMETA = 0x80


def key_from_name(name):
    """Resolve a profile key ("KP_5", "0x5d" or 93) to its usage code."""
    if isinstance(name, int):
        return int(name)
    text = str(name).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    if text.isdigit():
        return int(text)
    return int(KeyCode[text.upper()])
