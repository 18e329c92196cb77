"""Translation of PC keyboard scan codes into characters."""

from __future__ import annotations

NO = 0

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


_SPECIAL_KEYS = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}


def _table(codes, extras: dict) -> tuple:
    table = [NO] * 256
    for code, value in enumerate(codes):
        table[code] = value
    for code, value in {**extras, **_SPECIAL_KEYS}.items():
        table[code] = value
    return tuple(table)


_KEYPAD = "\0" * 13 + "789-456+1230." + "\0" * 4

_NORMAL_MAP = _table(
    map(
        ord,
        "\0\x1b1234567890-=\b\t"
        + "qwertyuiop[]\n\0as"
        + "dfghjkl;'`\0\\zxcv"
        + "bnm,./\0*\0 "
        + _KEYPAD,
    ),
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_SHIFT_MAP = _table(
    map(
        ord,
        "\0\x1b!@#$%^&*()_+\b\t"
        + "QWERTYUIOP{}\n\0AS"
        + 'DFGHJKL:"~\0|ZXCV'
        + "BNM<>?\0*\0 "
        + _KEYPAD,
    ),
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_CTL_MAP = _table(
    [NO] * 16
    + [_ctl(c) for c in "QWERTYUIOP"]
    + [NO, NO, ord("\r"), NO, _ctl("A"), _ctl("S")]
    + [_ctl(c) for c in "DFGHJKL"]
    + [NO] * 4
    + [_ctl("\\")]
    + [_ctl(c) for c in "ZXCVBNM"]
    + [NO, NO, _ctl("/"), NO, NO],
    {0x9C: ord("\r"), 0xB5: _ctl("/")},
)

_SHIFT_CODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
_TOGGLE_CODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}

_CHAR_CODE = (_NORMAL_MAP, _SHIFT_MAP, _CTL_MAP, _CTL_MAP)


class Keyboard:
    """Tracks modifier state across scan codes."""

    def __init__(self) -> None:
        self.shift = 0

    def translate(self, data: int) -> int:
        """Feed one scan code byte; return the character produced, or 0 for none."""
        data &= 0xFF
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(_SHIFT_CODE.get(data, 0) | E0ESC)
            return 0
        if self.shift & E0ESC:
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= _SHIFT_CODE.get(data, 0)
        self.shift ^= _TOGGLE_CODE.get(data, 0)
        c = _CHAR_CODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c