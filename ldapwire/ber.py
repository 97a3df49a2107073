"""BER (Basic Encoding Rules) packets as used on the LDAP wire."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class BerClass(IntEnum):
    """Class bits of a BER identifier octet."""

    UNIVERSAL = 0x00
    APPLICATION = 0x40
    CONTEXT = 0x80
    PRIVATE = 0xC0


class BerType(IntEnum):
    """Primitive/constructed bit of a BER identifier octet."""

    PRIMITIVE = 0x00
    CONSTRUCTED = 0x20


class BerTag(IntEnum):
    """Tag numbers of the universal class."""

    EOC = 0x00
    BOOLEAN = 0x01
    INTEGER = 0x02
    BIT_STRING = 0x03
    OCTET_STRING = 0x04
    NULL = 0x05
    OBJECT_IDENTIFIER = 0x06
    OBJECT_DESCRIPTOR = 0x07
    EXTERNAL = 0x08
    REAL = 0x09
    ENUMERATED = 0x0A
    EMBEDDED_PDV = 0x0B
    UTF8_STRING = 0x0C
    RELATIVE_OID = 0x0D
    SEQUENCE = 0x10
    SET = 0x11
    NUMERIC_STRING = 0x12
    PRINTABLE_STRING = 0x13
    T61_STRING = 0x14
    VIDEOTEX_STRING = 0x15
    IA5_STRING = 0x16
    UTC_TIME = 0x17
    GENERALIZED_TIME = 0x18
    GRAPHIC_STRING = 0x19
    VISIBLE_STRING = 0x1A
    GENERAL_STRING = 0x1B
    UNIVERSAL_STRING = 0x1C
    CHARACTER_STRING = 0x1D
    BMP_STRING = 0x1E


_STRING_TAGS = frozenset(
    {
        BerTag.OCTET_STRING,
        BerTag.UTF8_STRING,
        BerTag.NUMERIC_STRING,
        BerTag.PRINTABLE_STRING,
        BerTag.T61_STRING,
        BerTag.VIDEOTEX_STRING,
        BerTag.IA5_STRING,
        BerTag.UTC_TIME,
        BerTag.GENERALIZED_TIME,
        BerTag.GRAPHIC_STRING,
        BerTag.VISIBLE_STRING,
        BerTag.GENERAL_STRING,
    }
)


class BerDecodeError(ValueError):
    """Raised when bytes do not form a valid BER packet."""


@dataclass
class Packet:
    """A BER element: identifier, decoded value and either raw data or children."""

    ber_class: BerClass = BerClass.UNIVERSAL
    ber_type: BerType = BerType.PRIMITIVE
    tag: int = 0
    value: Any = None
    description: str = ""
    children: list[Packet] = field(default_factory=list)
    data: bytes = b""
    byte_value: bytes | None = None

    def append_child(self, child: Packet) -> None:
        """Add a child element at the end."""
        self.children.append(child)

    def data_bytes(self) -> bytes:
        """Return the content octets of this element."""
        if self.ber_type == BerType.CONSTRUCTED:
            return b"".join(child.encode() for child in self.children)
        return self.data

    def encode(self) -> bytes:
        """Serialise the element, identifier and length included."""
        content = self.data_bytes()
        return (
            _encode_identifier(self.ber_class, self.ber_type, self.tag)
            + _encode_length(len(content))
            + content
        )


def _encode_identifier(ber_class: int, ber_type: int, tag: int) -> bytes:
    if tag < 0:
        raise ValueError(f"negative tag number: {tag}")
    if tag < 0x1F:
        return bytes([ber_class | ber_type | tag])
    groups = [tag & 0x7F]
    tag >>= 7
    while tag:
        groups.append(0x80 | (tag & 0x7F))
        tag >>= 7
    return bytes([ber_class | ber_type | 0x1F, *reversed(groups)])


def _encode_length(length: int) -> bytes:
    if length < 0x80:
        return bytes([length])
    raw = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(raw)]) + raw


def _encode_integer(value: int) -> bytes:
    magnitude = value if value >= 0 else ~value
    size = magnitude.bit_length() // 8 + 1
    return value.to_bytes(size, "big", signed=True)


def _encode_text(value: str) -> bytes:
    return value.encode("utf-8", "surrogateescape")


def _value_to_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bool):
        return b"\x01" if value else b"\x00"
    if isinstance(value, int):
        return _encode_integer(value)
    if isinstance(value, str):
        return _encode_text(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"cannot BER-encode value of type {type(value).__name__}")


def encode(ber_class: BerClass, ber_type: BerType, tag: int, value: Any, description: str) -> Packet:
    """Create a packet, deriving its content octets from ``value`` when given."""
    return Packet(
        ber_class=BerClass(ber_class),
        ber_type=BerType(ber_type),
        tag=int(tag),
        value=value,
        description=description,
        data=_value_to_bytes(value),
    )


def new_string(ber_class: BerClass, ber_type: BerType, tag: int, value: str, description: str) -> Packet:
    """Create a primitive packet holding a string."""
    data = _encode_text(value)
    return Packet(
        ber_class=BerClass(ber_class),
        ber_type=BerType(ber_type),
        tag=int(tag),
        value=value,
        description=description,
        data=data,
        byte_value=data,
    )


def new_integer(ber_class: BerClass, ber_type: BerType, tag: int, value: int, description: str) -> Packet:
    """Create a primitive packet holding an integer."""
    value = int(value)
    return Packet(
        ber_class=BerClass(ber_class),
        ber_type=BerType(ber_type),
        tag=int(tag),
        value=value,
        description=description,
        data=_encode_integer(value),
    )


def new_boolean(ber_class: BerClass, ber_type: BerType, tag: int, value: bool, description: str) -> Packet:
    """Create a primitive packet holding a boolean."""
    value = bool(value)
    return Packet(
        ber_class=BerClass(ber_class),
        ber_type=BerType(ber_type),
        tag=int(tag),
        value=value,
        description=description,
        data=_encode_integer(int(value)),
    )


def new_sequence(description: str) -> Packet:
    """Create an empty universal SEQUENCE."""
    return Packet(
        ber_class=BerClass.UNIVERSAL,
        ber_type=BerType.CONSTRUCTED,
        tag=BerTag.SEQUENCE,
        description=description,
    )


def decode_string(data: bytes) -> str:
    """Turn content octets into a string; invalid UTF-8 survives a re-encode."""
    return bytes(data).decode("utf-8", "surrogateescape")


def _read_length(buf: bytes, pos: int, limit: int) -> tuple[int, int]:
    if pos >= limit:
        raise BerDecodeError("unexpected end of data while reading length")
    first = buf[pos]
    pos += 1
    if first < 0x80:
        return first, pos
    if first == 0x80:
        raise BerDecodeError("indefinite length is not supported")
    count = first & 0x7F
    if count == 0x7F:
        raise BerDecodeError("reserved length octet")
    if pos + count > limit:
        raise BerDecodeError("unexpected end of data while reading length")
    return int.from_bytes(buf[pos:pos + count], "big"), pos + count


def _decode_value(tag: int, content: bytes) -> Any:
    if tag == BerTag.BOOLEAN:
        return any(content)
    if tag in (BerTag.INTEGER, BerTag.ENUMERATED):
        return int.from_bytes(content, "big", signed=True)
    if tag in _STRING_TAGS:
        return decode_string(content)
    return None


def _read_packet(buf: bytes, pos: int, limit: int) -> tuple[Packet, int]:
    if pos >= limit:
        raise BerDecodeError("unexpected end of data while reading identifier")
    first = buf[pos]
    pos += 1
    ber_class = BerClass(first & 0xC0)
    ber_type = BerType(first & 0x20)
    tag = first & 0x1F
    if tag == 0x1F:
        tag = 0
        while True:
            if pos >= limit:
                raise BerDecodeError("unexpected end of data while reading tag")
            octet = buf[pos]
            pos += 1
            tag = (tag << 7) | (octet & 0x7F)
            if not octet & 0x80:
                break
    length, pos = _read_length(buf, pos, limit)
    end = pos + length
    if end > limit:
        raise BerDecodeError(f"content length {length} exceeds available data")

    packet = Packet(ber_class=ber_class, ber_type=ber_type, tag=tag)
    if ber_type == BerType.CONSTRUCTED:
        while pos < end:
            child, pos = _read_packet(buf, pos, end)
            packet.children.append(child)
    else:
        content = bytes(buf[pos:end])
        packet.data = content
        if ber_class == BerClass.UNIVERSAL:
            packet.value = _decode_value(tag, content)
            if tag == BerTag.OCTET_STRING:
                packet.byte_value = content
    return packet, end


def decode_packet(data: bytes) -> Packet:
    """Parse exactly one BER packet from ``data``."""
    buf = bytes(data)
    packet, end = _read_packet(buf, 0, len(buf))
    if end != len(buf):
        raise BerDecodeError(f"{len(buf) - end} bytes of trailing data after packet")
    return packet