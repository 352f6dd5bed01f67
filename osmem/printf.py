"""A small printf family: format specifications rendered to text.

Supported conversions are ``d i u x X o b f F e E g G c s p %`` with the
flags ``0 - + space #``, a width and a precision (either may be ``*``) and
the length modifiers ``hh h l ll j z t``.  Integer arguments are truncated
to the width of the C type the length modifier names, as on a 64-bit
platform where ``long`` and pointers are 64 bits wide.
"""

from __future__ import annotations

import operator
import re
import sys
from typing import Any, Callable, Iterator

from osmem.numfmt import Flags, format_exponential, format_fixed, format_integer

_FLAG_CHARS = {
    "0": Flags.ZEROPAD,
    "-": Flags.LEFT,
    "+": Flags.PLUS,
    " ": Flags.SPACE,
    "#": Flags.HASH,
}
_DIGITS = re.compile(r"[0-9]*")
_UINT32_MAX = (1 << 32) - 1
_POINTER_DIGITS = 16


def _wrap(value: int, bits: int, signed: bool) -> int:
    """Reduce ``value`` to a C integer of ``bits`` bits."""
    value &= (1 << bits) - 1
    if signed and value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _take(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _take_int(args: Iterator[Any]) -> int:
    return operator.index(_take(args))


def _read_number(fmt: str, pos: int) -> tuple[int, int]:
    match = _DIGITS.match(fmt, pos)
    digits = match.group() if match else ""
    value = int(digits) & _UINT32_MAX if digits else 0
    return value, pos + len(digits)


def _signed_argument(args: Iterator[Any], flags: Flags) -> int:
    value = _take_int(args)
    if flags & (Flags.LONG | Flags.LONG_LONG):
        return _wrap(value, 64, True)
    if flags & Flags.CHAR:
        return _wrap(value, 8, True)
    if flags & Flags.SHORT:
        return _wrap(value, 16, True)
    return _wrap(value, 32, True)


def _unsigned_argument(args: Iterator[Any], flags: Flags) -> int:
    value = _take_int(args)
    if flags & (Flags.LONG | Flags.LONG_LONG):
        return _wrap(value, 64, False)
    if flags & Flags.CHAR:
        return _wrap(value, 8, False)
    if flags & Flags.SHORT:
        return _wrap(value, 16, False)
    return _wrap(value, 32, False)


def _char_argument(args: Iterator[Any]) -> str:
    value = _take(args)
    if isinstance(value, str):
        if len(value) != 1:
            raise TypeError("%c requires a single character")
        return value
    return chr(operator.index(value) & 0xFF)


def _string_argument(args: Iterator[Any]) -> str:
    value = _take(args)
    if value is None:
        raise TypeError("%s requires a string, not None")
    text = value.decode("latin-1") if isinstance(value, (bytes, bytearray)) else str(value)
    return text.split("\0", 1)[0]


def _pad(text: str, width: int, flags: Flags) -> str:
    padding = " " * max(0, width - len(text))
    return text + padding if flags & Flags.LEFT else padding + text


def _render(fmt: str, args: tuple[Any, ...]) -> Iterator[str]:
    """Yield the pieces of output for ``fmt`` applied to ``args``."""
    fmt = fmt.split("\0", 1)[0]
    arguments = iter(args)
    pos, end = 0, len(fmt)

    while pos < end:
        if fmt[pos] != "%":
            stop = fmt.find("%", pos)
            stop = end if stop < 0 else stop
            yield fmt[pos:stop]
            pos = stop
            continue
        pos += 1

        flags = Flags.NONE
        while pos < end and fmt[pos] in _FLAG_CHARS:
            flags |= _FLAG_CHARS[fmt[pos]]
            pos += 1

        width = 0
        if pos < end and fmt[pos] == "*":
            requested = _wrap(_take_int(arguments), 32, True)
            if requested < 0:
                flags |= Flags.LEFT
                width = -requested
            else:
                width = requested
            pos += 1
        else:
            width, pos = _read_number(fmt, pos)

        precision = 0
        if pos < end and fmt[pos] == ".":
            flags |= Flags.PRECISION
            pos += 1
            if pos < end and fmt[pos] == "*":
                precision = max(0, _wrap(_take_int(arguments), 32, True))
                pos += 1
            else:
                precision, pos = _read_number(fmt, pos)

        if fmt.startswith("ll", pos):
            flags |= Flags.LONG | Flags.LONG_LONG
            pos += 2
        elif fmt.startswith("l", pos):
            flags |= Flags.LONG
            pos += 1
        elif fmt.startswith("hh", pos):
            flags |= Flags.SHORT | Flags.CHAR
            pos += 2
        elif fmt.startswith("h", pos):
            flags |= Flags.SHORT
            pos += 1
        elif pos < end and fmt[pos] in "tjz":
            flags |= Flags.LONG
            pos += 1

        if pos >= end:
            return
        spec = fmt[pos]
        pos += 1

        if spec in "diuxXob":
            base = {"x": 16, "X": 16, "o": 8, "b": 2}.get(spec, 10)
            if base == 10:
                flags &= ~Flags.HASH
            if spec == "X":
                flags |= Flags.UPPERCASE
            if spec not in "di":
                flags &= ~(Flags.PLUS | Flags.SPACE)
            if flags & Flags.PRECISION:
                flags &= ~Flags.ZEROPAD
            if spec in "di":
                value = _signed_argument(arguments, flags)
                yield format_integer(abs(value), value < 0, base, precision, width, flags)
            else:
                value = _unsigned_argument(arguments, flags)
                yield format_integer(value, False, base, precision, width, flags)
        elif spec in "fF":
            if spec == "F":
                flags |= Flags.UPPERCASE
            yield format_fixed(float(_take(arguments)), precision, width, flags)
        elif spec in "eEgG":
            if spec in "gG":
                flags |= Flags.ADAPT_EXP
            if spec in "EG":
                flags |= Flags.UPPERCASE
            yield format_exponential(float(_take(arguments)), precision, width, flags)
        elif spec == "c":
            yield _pad(_char_argument(arguments), width, flags)
        elif spec == "s":
            text = _string_argument(arguments)
            if flags & Flags.PRECISION:
                text = text[:precision]
            yield _pad(text, width, flags)
        elif spec == "p":
            flags |= Flags.ZEROPAD | Flags.UPPERCASE
            pointer = _take(arguments)
            address = 0 if pointer is None else _wrap(operator.index(pointer), 64, False)
            yield format_integer(address, False, 16, precision, _POINTER_DIGITS, flags)
        else:
            # "%%" and unknown conversions emit the character itself
            yield spec


def format_string(fmt: str, *args: Any) -> str:
    """Return ``fmt`` formatted with ``args``."""
    return "".join(_render(fmt, args))


def sprintf(fmt: str, *args: Any) -> str:
    """Return ``fmt`` formatted with ``args``, without any length limit."""
    return format_string(fmt, *args)


def snprintf(count: int, fmt: str, *args: Any) -> tuple[str, int]:
    """Format into a buffer of ``count`` characters including the terminator.

    Returns the text that fits (at most ``count - 1`` characters) and the
    length the complete output would have had.
    """
    if count < 0:
        raise ValueError("count must not be negative")
    text = format_string(fmt, *args)
    return text[:max(0, count - 1)], len(text)


def printf(fmt: str, *args: Any) -> int:
    """Write the formatted text to standard output; return its length.

    NUL characters are counted but not written.
    """
    text = format_string(fmt, *args)
    sys.stdout.write(text.replace("\0", ""))
    return len(text)


def fctprintf(out: Callable[[str], Any], fmt: str, *args: Any) -> int:
    """Pass each formatted character to ``out``; return the output length.

    NUL characters are counted but not passed on.
    """
    text = format_string(fmt, *args)
    for character in text:
        if character != "\0":
            out(character)
    return len(text)