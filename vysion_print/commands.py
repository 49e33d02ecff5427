"""ESC/POS command bytes for thermal receipt printers."""

ESC = b"\x1b"
GS = b"\x1d"

# Basic
INITIALIZE = ESC + b"\x40"  # ESC @
CODE_PAGE_PC858 = ESC + b"\x74\x13"  # ESC t 19 - Western European with Euro

# Alignment
ALIGN_LEFT = ESC + b"\x61\x00"  # ESC a 0
ALIGN_CENTER = ESC + b"\x61\x01"  # ESC a 1
ALIGN_RIGHT = ESC + b"\x61\x02"  # ESC a 2

# Text formatting
BOLD_ON = ESC + b"\x45\x01"  # ESC E 1
BOLD_OFF = ESC + b"\x45\x00"  # ESC E 0
EMPHASIZE_ON = ESC + b"\x47\x01"  # ESC G 1 - double-strike
EMPHASIZE_OFF = ESC + b"\x47\x00"  # ESC G 0
UNDERLINE_ON = ESC + b"\x2d\x01"  # ESC - 1
UNDERLINE_OFF = ESC + b"\x2d\x00"  # ESC - 0

# Character size, GS ! n (high nibble width, low nibble height)
SIZE_NORMAL = GS + b"\x21\x00"
SIZE_DOUBLE_HEIGHT = GS + b"\x21\x01"
SIZE_DOUBLE_WIDTH = GS + b"\x21\x10"
SIZE_DOUBLE = GS + b"\x21\x11"
SIZE_LARGE = GS + b"\x21\x22"  # triple width and height

# Spacing
LINE_SPACING_NORMAL = ESC + b"\x32"  # ESC 2
LINE_SPACING_WIDE = ESC + b"\x33\x40"  # ESC 3 64
CHAR_SPACING_NORMAL = ESC + b"\x20\x00"  # ESC SP 0
CHAR_SPACING_WIDE = ESC + b"\x20\x01"  # ESC SP 1

# Paper control
LINE_FEED = b"\x0a"
CUT_FULL = GS + b"\x56\x00"  # GS V 0
CUT_PARTIAL = GS + b"\x56\x01"  # GS V 1

# Cash drawer, ESC p m t1 t2 (pulse 25 * 2ms on, 250 * 2ms off)
DRAWER_PIN_2 = ESC + b"\x70\x00\x19\xfa"
DRAWER_PIN_5 = ESC + b"\x70\x01\x19\xfa"

BEEP = ESC + b"\x42\x03\x02"  # ESC B 3 2

# Single byte in code page 858, never UTF-8
EURO = b"\xd5"

TEXT_ENCODING = "cp858"


def feed_lines(n: int) -> bytes:
    """ESC d n - print and feed n lines."""
    if not 0 <= n <= 255:
        raise ValueError(f"Cannot feed {n} lines")
    return ESC + b"\x64" + bytes([n])


def drawer_kick(pin: int = 2) -> bytes:
    """Pulse command for the drawer on connector pin 2 or 5."""
    if pin == 2:
        return DRAWER_PIN_2
    if pin == 5:
        return DRAWER_PIN_5
    raise ValueError(f"Drawer pin must be 2 or 5, not {pin}")


def encode_text(text: str) -> bytes:
    """Encode text in the selected code page; unknown characters print as '?'."""
    return text.encode(TEXT_ENCODING, errors="replace")
