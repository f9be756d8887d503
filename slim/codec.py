"""
Wire codec for the SLIM protocol.

Two layers live here:

    * list serialization: ``[000002:000005:hello:000005:world:]``; item
      lengths count characters, nested lists are serialized first and then
      written as an ordinary item.
    * framing: every message on the socket is ``NNNNNN:<payload>`` where the
      header is the UTF-8 byte length of the payload.
"""

from __future__ import annotations

from typing import Any, BinaryIO, List, Sequence

LENGTH_WIDTH = 6
_MAX_HEADER_DIGITS = 16


class SlimProtocolError(RuntimeError):
    """Raised when a frame or serialized list cannot be decoded."""


class SlimConnectionClosed(SlimProtocolError):
    """Raised when the peer closed the stream before a new frame started."""


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _length(value: int) -> str:
    return f"{value:0{LENGTH_WIDTH}d}"


def _item_text(item: Any) -> str:
    if isinstance(item, (list, tuple)):
        return encode(item)
    if item is None:
        return "null"
    return str(item)


def encode(value: Sequence[Any]) -> str:
    """Serialize a (nested) list into its SLIM text form."""
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"cannot encode {type(value).__name__} as a slim list")
    parts = ["[", _length(len(value)), ":"]
    for item in value:
        text = _item_text(item)
        parts.append(_length(len(text)))
        parts.append(":")
        parts.append(text)
        parts.append(":")
    parts.append("]")
    return "".join(parts)


class _Reader:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def expect(self, char: str) -> None:
        if self.text[self.pos : self.pos + 1] != char:
            found = self.text[self.pos : self.pos + 1] or "end of input"
            raise SlimProtocolError(f"expected {char!r} at {self.pos}, found {found!r}")
        self.pos += 1

    def number(self) -> int:
        start = self.pos
        while self.pos < len(self.text) and _is_digit(self.text[self.pos]):
            self.pos += 1
        digits = self.text[start : self.pos]
        if not digits:
            raise SlimProtocolError(f"expected length at {start}")
        self.expect(":")
        return int(digits)

    def take(self, length: int) -> str:
        end = self.pos + length
        if end > len(self.text):
            raise SlimProtocolError(
                f"item length {length} at {self.pos} exceeds remaining {len(self.text) - self.pos} characters"
            )
        chunk = self.text[self.pos : end]
        self.pos = end
        return chunk


def _looks_like_list(text: str) -> bool:
    return len(text) >= LENGTH_WIDTH + 3 and text[0] == "[" and text[-1] == "]" and _is_digit(text[1])


def _decode_item(text: str) -> Any:
    if not _looks_like_list(text):
        return text
    try:
        return decode(text)
    except SlimProtocolError:
        return text


def decode(text: str) -> List[Any]:
    """Parse the SLIM text form back into nested lists of strings."""
    reader = _Reader(text)
    reader.expect("[")
    count = reader.number()
    items: List[Any] = []
    for _ in range(count):
        length = reader.number()
        items.append(_decode_item(reader.take(length)))
        reader.expect(":")
    reader.expect("]")
    if reader.pos != len(text):
        raise SlimProtocolError(f"trailing data after list at {reader.pos}")
    return items


#
# Framing
#
def write_frame(stream: BinaryIO, payload: str) -> None:
    """Write one length-prefixed frame and flush it."""
    data = payload.encode("utf-8")
    stream.write(_length(len(data)).encode("ascii") + b":" + data)
    stream.flush()


def _read_exact(stream: BinaryIO, length: int) -> bytes:
    chunks = []
    remaining = length
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise SlimProtocolError(f"stream closed with {remaining} of {length} bytes unread")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_frame(stream: BinaryIO) -> str:
    """Read one frame written by :func:`write_frame` and return its payload."""
    digits = b""
    while True:
        char = stream.read(1)
        if not char:
            if not digits:
                raise SlimConnectionClosed("stream closed")
            raise SlimProtocolError("stream closed inside frame header")
        if char == b":":
            break
        if not char.isdigit() or len(digits) >= _MAX_HEADER_DIGITS:
            raise SlimProtocolError(f"invalid frame header byte {char!r}")
        digits += char
    if not digits:
        raise SlimProtocolError("empty frame header")
    data = _read_exact(stream, int(digits))
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SlimProtocolError(f"frame is not valid utf-8: {exc}") from exc
