import pytest

from ldapwire.ber import (
    BerClass,
    BerDecodeError,
    BerTag,
    BerType,
    Packet,
    decode_packet,
    decode_string,
    encode,
    new_boolean,
    new_integer,
    new_sequence,
    new_string,
)

TIME_BEFORE_EXPIRATION = bytes(
    [0xa0, 0x29, 0x30, 0x27, 0x4, 0x19, 0x31, 0x2e, 0x33, 0x2e, 0x36, 0x2e, 0x31, 0x2e, 0x34, 0x2e, 0x31,
     0x2e, 0x34, 0x32, 0x2e, 0x32, 0x2e, 0x32, 0x37, 0x2e, 0x38, 0x2e, 0x35, 0x2e, 0x31, 0x4, 0xa, 0x30,
     0x8, 0xa0, 0x6, 0x80, 0x4, 0x7f, 0xff, 0xf6, 0x5c]
)

PASSWORD_EXPIRED = bytes(
    [0xa0, 0x24, 0x30, 0x22, 0x4, 0x19, 0x31, 0x2e, 0x33, 0x2e, 0x36, 0x2e, 0x31, 0x2e, 0x34, 0x2e, 0x31,
     0x2e, 0x34, 0x32, 0x2e, 0x32, 0x2e, 0x32, 0x37, 0x2e, 0x38, 0x2e, 0x35, 0x2e, 0x31, 0x4, 0x5, 0x30,
     0x3, 0x81, 0x1, 0x0]
)


def test_octet_string_wire_bytes():
    packet = new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, "hi", "x")
    assert packet.encode() == b"\x04\x02hi"


def test_empty_sequence_wire_bytes():
    assert new_sequence("seq").encode() == b"\x30\x00"


def test_integer_needs_sign_octet():
    packet = new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.INTEGER, 128, "n")
    assert packet.encode() == b"\x02\x02\x00\x80"


@pytest.mark.parametrize("value", [0, 1, 127, 128, 255, 256, -1, -128, -129, 2**31 - 1, -(2**31)])
def test_integer_round_trip(value):
    packet = new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.INTEGER, value, "n")
    decoded = decode_packet(packet.encode())
    assert decoded.value == value
    assert decoded.tag == BerTag.INTEGER


@pytest.mark.parametrize("flag", [True, False])
def test_boolean_round_trip(flag):
    packet = new_boolean(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.BOOLEAN, flag, "b")
    assert decode_packet(packet.encode()).value is flag


def test_long_string_uses_long_length_form():
    text = "a" * 300
    packet = new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, text, "long")
    encoded = packet.encode()
    assert encoded[1] & 0x80
    decoded = decode_packet(encoded)
    assert decoded.value == text
    assert decoded.byte_value == text.encode()


def test_high_tag_number_round_trip():
    packet = new_string(BerClass.CONTEXT, BerType.PRIMITIVE, 200, "v", "high")
    decoded = decode_packet(packet.encode())
    assert decoded.tag == 200
    assert decoded.ber_class == BerClass.CONTEXT
    assert decoded.data == b"v"


def test_nested_sequence_round_trip():
    outer = new_sequence("outer")
    inner = encode(BerClass.APPLICATION, BerType.CONSTRUCTED, 3, None, "inner")
    inner.append_child(new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, "dc=example", "dn"))
    inner.append_child(new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.ENUMERATED, 2, "scope"))
    outer.append_child(new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.INTEGER, 5, "id"))
    outer.append_child(inner)

    decoded = decode_packet(outer.encode())
    assert decoded.children[0].value == 5
    assert decoded.children[1].ber_class == BerClass.APPLICATION
    assert decoded.children[1].tag == 3
    assert [c.value for c in decoded.children[1].children] == ["dc=example", 2]
    assert decoded.encode() == outer.encode()


def test_constructed_data_is_children_concatenated():
    seq = new_sequence("s")
    first = new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, "a", "a")
    second = new_boolean(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.BOOLEAN, True, "b")
    seq.append_child(first)
    seq.append_child(second)
    assert seq.data_bytes() == first.encode() + second.encode()


def test_context_primitive_keeps_raw_data():
    packet = encode(BerClass.CONTEXT, BerType.PRIMITIVE, 7, "cn", "Present")
    decoded = decode_packet(packet.encode())
    assert decoded.data == b"cn"
    assert decoded.value is None
    assert decoded.tag == 7


@pytest.mark.parametrize("raw", [TIME_BEFORE_EXPIRATION, PASSWORD_EXPIRED])
def test_control_packets_round_trip(raw):
    decoded = decode_packet(raw)
    assert decoded.ber_class == BerClass.CONTEXT
    assert decoded.ber_type == BerType.CONSTRUCTED
    assert decoded.encode() == raw


def test_decode_string_survives_invalid_utf8():
    raw = b"\xfc\xfe\xa3"
    text = decode_string(raw)
    packet = new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, text, "guid")
    assert packet.data == raw


def test_decode_string_utf8():
    assert decode_string("Lučić".encode()) == "Lučić"


def test_truncated_packet_raises():
    encoded = new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, "abc", "x").encode()
    with pytest.raises(BerDecodeError):
        decode_packet(encoded[:-1])


def test_trailing_data_raises():
    encoded = new_sequence("s").encode()
    with pytest.raises(BerDecodeError):
        decode_packet(encoded + encoded)


def test_empty_input_raises():
    with pytest.raises(BerDecodeError):
        decode_packet(b"")


def test_child_longer_than_parent_raises():
    child = new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, "abcd", "x").encode()
    broken = bytes([0x30, len(child) - 2]) + child[:-2]
    with pytest.raises(BerDecodeError):
        decode_packet(broken)


def test_encode_rejects_unsupported_value():
    with pytest.raises(TypeError):
        encode(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, 1.5, "x")


def test_default_packet_is_empty_primitive():
    packet = Packet()
    assert packet.encode() == bytes([0, 0])
    assert packet.children == []