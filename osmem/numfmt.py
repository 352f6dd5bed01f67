"""Number-to-text conversions used by the printf family.

Digits are produced least significant first into a bounded buffer (32
characters), exactly as a fixed-size conversion buffer would, and then written
out reversed with the requested padding.
"""

from __future__ import annotations

import enum
import math
import struct
import sys

BUFFER_SIZE = 32
DEFAULT_FLOAT_PRECISION = 6
MAX_FLOAT = 1e9

_POW10 = (
    1, 10, 100, 1000, 10000, 100000, 1000000, 10000000, 100000000, 1000000000,
)
_UINT64_MASK = (1 << 64) - 1


class Flags(enum.IntFlag):
    """Conversion flags parsed from a format specification."""

    NONE = 0
    ZEROPAD = 1 << 0
    LEFT = 1 << 1
    PLUS = 1 << 2
    SPACE = 1 << 3
    HASH = 1 << 4
    UPPERCASE = 1 << 5
    CHAR = 1 << 6
    SHORT = 1 << 7
    LONG = 1 << 8
    LONG_LONG = 1 << 9
    PRECISION = 1 << 10
    ADAPT_EXP = 1 << 11


def _emit_reversed(rev: list[str], width: int, flags: Flags) -> str:
    """Write the reversed buffer ``rev`` padded to ``width``."""
    pieces: list[str] = []
    if not flags & Flags.LEFT and not flags & Flags.ZEROPAD:
        pieces.append(" " * max(0, width - len(rev)))
    pieces.append("".join(reversed(rev)))
    text = "".join(pieces)
    if flags & Flags.LEFT and len(text) < width:
        text += " " * (width - len(text))
    return text


def _append_sign(rev: list[str], negative: bool, flags: Flags) -> None:
    if len(rev) < BUFFER_SIZE:
        if negative:
            rev.append("-")
        elif flags & Flags.PLUS:
            rev.append("+")
        elif flags & Flags.SPACE:
            rev.append(" ")


def format_integer(value: int, negative: bool, base: int, precision: int,
                   width: int, flags: int) -> str:
    """Format the magnitude ``value`` in ``base``; ``negative`` adds a minus sign."""
    if value < 0:
        raise ValueError("value must be a non-negative magnitude")
    if base < 2 or base > 36:
        raise ValueError(f"unsupported base {base}")
    flags = Flags(flags)

    if not value:
        flags &= ~Flags.HASH

    rev: list[str] = []
    if not flags & Flags.PRECISION or value:
        letter = "A" if flags & Flags.UPPERCASE else "a"
        while True:
            digit = value % base
            rev.append(chr(ord("0") + digit) if digit < 10
                       else chr(ord(letter) + digit - 10))
            value //= base
            if not value or len(rev) >= BUFFER_SIZE:
                break

    if not flags & Flags.LEFT:
        if width and flags & Flags.ZEROPAD and (
                negative or flags & (Flags.PLUS | Flags.SPACE)):
            width -= 1
        while len(rev) < precision and len(rev) < BUFFER_SIZE:
            rev.append("0")
        while flags & Flags.ZEROPAD and len(rev) < width and len(rev) < BUFFER_SIZE:
            rev.append("0")

    if flags & Flags.HASH:
        if not flags & Flags.PRECISION and rev and (
                len(rev) == precision or len(rev) == width):
            rev.pop()
            if rev and base == 16:
                rev.pop()
        if base == 16 and len(rev) < BUFFER_SIZE:
            rev.append("X" if flags & Flags.UPPERCASE else "x")
        elif base == 2 and len(rev) < BUFFER_SIZE:
            rev.append("b")
        if len(rev) < BUFFER_SIZE:
            rev.append("0")

    _append_sign(rev, negative, flags)
    return _emit_reversed(rev, width, flags)


def format_fixed(value: float, precision: int, width: int, flags: int) -> str:
    """Format ``value`` in fixed-point notation (the ``%f`` conversion)."""
    flags = Flags(flags)
    value = float(value)

    if math.isnan(value):
        return _emit_reversed(list("nan"), width, flags)
    if value < -sys.float_info.max:
        return _emit_reversed(list("fni-"), width, flags)
    if value > sys.float_info.max:
        text = "fni+" if flags & Flags.PLUS else "fni"
        return _emit_reversed(list(text), width, flags)

    if value > MAX_FLOAT or value < -MAX_FLOAT:
        return format_exponential(value, precision, width, flags)

    negative = False
    if value < 0:
        negative = True
        value = 0 - value

    if not flags & Flags.PRECISION:
        precision = DEFAULT_FLOAT_PRECISION

    rev: list[str] = []
    # precision above 9 would overflow the fraction; emit the excess as zeros
    while len(rev) < BUFFER_SIZE and precision > 9:
        rev.append("0")
        precision -= 1

    whole = int(value)
    scaled = (value - whole) * _POW10[precision]
    frac = int(scaled)
    diff = scaled - frac

    if diff > 0.5:
        frac += 1
        if frac >= _POW10[precision]:
            frac = 0
            whole += 1
    elif diff < 0.5:
        pass
    elif frac == 0 or frac & 1:
        frac += 1

    if precision == 0:
        diff = value - float(whole)
        if (not diff < 0.5 or diff > 0.5) and whole & 1:
            whole += 1
    else:
        count = precision
        while len(rev) < BUFFER_SIZE:
            count -= 1
            rev.append(chr(48 + frac % 10))
            frac //= 10
            if not frac:
                break
        # a count driven below zero keeps padding until the buffer is full
        while len(rev) < BUFFER_SIZE and count != 0:
            count -= 1
            rev.append("0")
        if len(rev) < BUFFER_SIZE:
            rev.append(".")

    while len(rev) < BUFFER_SIZE:
        rev.append(chr(48 + whole % 10))
        whole //= 10
        if not whole:
            break

    if not flags & Flags.LEFT and flags & Flags.ZEROPAD:
        if width and (negative or flags & (Flags.PLUS | Flags.SPACE)):
            width -= 1
        while len(rev) < width and len(rev) < BUFFER_SIZE:
            rev.append("0")

    _append_sign(rev, negative, flags)
    return _emit_reversed(rev, width, flags)


def _bits(value: float) -> int:
    return struct.unpack("<Q", struct.pack("<d", value))[0]


def _from_bits(bits: int) -> float:
    return struct.unpack("<d", struct.pack("<Q", bits & _UINT64_MASK))[0]


def format_exponential(value: float, precision: int, width: int, flags: int) -> str:
    """Format ``value`` in exponential notation (``%e``; ``%g`` with ADAPT_EXP)."""
    flags = Flags(flags)
    value = float(value)

    if math.isnan(value) or math.isinf(value):
        return format_fixed(value, precision, width, flags)

    negative = value < 0
    if negative:
        value = -value

    if not flags & Flags.PRECISION:
        precision = DEFAULT_FLOAT_PRECISION

    bits = _bits(value)
    exp2 = ((bits >> 52) & 0x7FF) - 1023
    mantissa = _from_bits((bits & ((1 << 52) - 1)) | (1023 << 52))
    # approximate log10 from the binary exponent and an expansion around 1.5
    expval = int(0.1760912590558 + exp2 * 0.301029995663981
                 + (mantissa - 1.5) * 0.289529654602168)
    exp2 = int(expval * 3.321928094887362 + 0.5)
    z = expval * 2.302585092994046 - exp2 * 0.6931471805599453
    z2 = z * z
    scale = _from_bits((exp2 + 1023) << 52)
    scale *= 1 + 2 * z / (2 - z + (z2 / (6 + (z2 / (10 + z2 / 14)))))
    if value < scale:
        expval -= 1
        scale /= 10

    minwidth = 4 if -100 < expval < 100 else 5

    if flags & Flags.ADAPT_EXP:
        if 1e-4 <= value < 1e6:
            precision = precision - expval - 1 if precision > expval else 0
            flags |= Flags.PRECISION
            minwidth = 0
            expval = 0
        elif precision > 0 and flags & Flags.PRECISION:
            precision -= 1

    fwidth = width - minwidth if width > minwidth else 0
    if flags & Flags.LEFT and minwidth:
        fwidth = 0

    if expval:
        value /= scale

    text = format_fixed(-value if negative else value, precision, fwidth,
                        flags & ~Flags.ADAPT_EXP)

    if minwidth:
        text += "E" if flags & Flags.UPPERCASE else "e"
        text += format_integer(abs(expval), expval < 0, 10, 0, minwidth - 1,
                               Flags.ZEROPAD | Flags.PLUS)
        if flags & Flags.LEFT and len(text) < width:
            text += " " * (width - len(text))
    return text