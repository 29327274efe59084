"""Kernel-style string formatting, hex parsing and a serial console writer."""

from __future__ import annotations

from typing import Any, Iterator, TextIO

_UINT32_MASK = 0xFFFFFFFF
_DIGITS = "0123456789"
_HEX_DIGITS = "0123456789abcdefABCDEF"


def _uint32(value: Any) -> int:
    return int(value) & _UINT32_MASK


def _next_arg(args: Iterator[Any], conv: str) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise ValueError(f"not enough arguments for %{conv}") from None


def _as_char(value: Any) -> str:
    if isinstance(value, str):
        return value[:1]
    return chr(int(value) & 0xFF)


def _crlf(text: str) -> str:
    return text.replace("\n", "\r\n")


def ksprintf(fmt: str, *args: Any) -> str:
    """Format like the kernel's sprintf.

    Supports ``%d``, ``%u``, ``%x``, ``%s``, ``%c`` and ``%%`` with an optional
    ``0`` flag and a field width for the numeric conversions. Integers are
    treated as unsigned 32-bit values. Unknown conversions are copied through.
    """
    out: list[str] = []
    values = iter(args)
    i, n = 0, len(fmt)
    while i < n:
        ch = fmt[i]
        if ch != "%" or i + 1 >= n:
            out.append(ch)
            i += 1
            continue
        i += 1
        pad = " "
        if fmt[i] == "0":
            pad = "0"
            i += 1
        start = i
        while i < n and fmt[i] in _DIGITS:
            i += 1
        width = int(fmt[start:i]) if i > start else 0
        if i >= n:
            out.append("%")
            break
        conv = fmt[i]
        i += 1
        if conv in "du":
            out.append(str(_uint32(_next_arg(values, conv))).rjust(width, pad))
        elif conv == "x":
            out.append(format(_uint32(_next_arg(values, conv)), "x").rjust(width, pad))
        elif conv == "s":
            value = _next_arg(values, conv)
            out.append("(null)" if value is None else str(value))
        elif conv == "c":
            out.append(_as_char(_next_arg(values, conv)))
        elif conv == "%":
            out.append("%")
        else:
            out.append("%" + conv)
    return "".join(out)


def serial_format(fmt: str, *args: Any) -> str:
    """Render *fmt* exactly as the serial ``printf`` emits it.

    ``%d``/``%u`` print unsigned decimals, ``%x`` prints ``0x`` followed by eight
    upper-case hex digits, and strings given to ``%s`` get ``\\r`` before every
    newline. No flags or widths are understood.
    """
    out: list[str] = []
    values = iter(args)
    i, n = 0, len(fmt)
    while i < n:
        ch = fmt[i]
        if ch != "%" or i + 1 >= n:
            out.append(ch)
            i += 1
            continue
        conv = fmt[i + 1]
        i += 2
        if conv in "du":
            out.append(str(_uint32(_next_arg(values, conv))))
        elif conv == "x":
            out.append("0x" + format(_uint32(_next_arg(values, conv)), "08X"))
        elif conv == "s":
            value = _next_arg(values, conv)
            out.append(_crlf("(null)" if value is None else str(value)))
        elif conv == "c":
            out.append(_as_char(_next_arg(values, conv)))
        elif conv == "%":
            out.append("%")
        else:
            out.append("%" + conv)
    return "".join(out)


def parse_hex_id(text: str) -> tuple[int, int]:
    """Parse the first 16 hex digits of *text* into ``(high, low)`` 32-bit halves."""
    if text is None or len(text) < 16:
        raise ValueError("need at least 16 hex digits")
    head = text[:16]
    if any(ch not in _HEX_DIGITS for ch in head):
        raise ValueError(f"invalid hex digit in {head!r}")
    return int(head[:8], 16), int(head[8:], 16)


def bounded_copy(text: str, limit: int) -> str:
    """Return *text* cut at its first NUL and at most *limit* characters long."""
    return text.split("\0", 1)[0][:limit]


class SerialConsole:
    """Writes to a text stream the way the COM1 serial port does."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def putc(self, ch: str) -> None:
        """Write a single character unchanged."""
        self.stream.write(ch)

    def puts(self, text: str | None) -> None:
        """Write *text*, putting a carriage return before each newline."""
        if text is None:
            return
        self.stream.write(_crlf(text))

    def put_hex(self, value: int) -> None:
        """Write ``0x`` and eight upper-case hex digits."""
        self.stream.write("0x" + format(_uint32(value), "08X"))

    def put_dec(self, value: int) -> None:
        """Write an unsigned 32-bit decimal."""
        self.stream.write(str(_uint32(value)))

    def printf(self, fmt: str, *args: Any) -> None:
        """Write the output of :func:`serial_format`."""
        self.stream.write(serial_format(fmt, *args))