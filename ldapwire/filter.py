"""Compile LDAP search filter strings (RFC 4515) to BER packets and back."""

from __future__ import annotations

from enum import IntEnum

from ldapwire.ber import (
    BerClass,
    BerTag,
    BerType,
    Packet,
    decode_string,
    encode,
    new_boolean,
    new_string,
)
from ldapwire.errors import ERROR_FILTER_COMPILE, ERROR_FILTER_DECOMPILE, LDAPError


class FilterChoice(IntEnum):
    """Context tags of the Filter CHOICE."""

    AND = 0
    OR = 1
    NOT = 2
    EQUALITY_MATCH = 3
    SUBSTRINGS = 4
    GREATER_OR_EQUAL = 5
    LESS_OR_EQUAL = 6
    PRESENT = 7
    APPROX_MATCH = 8
    EXTENSIBLE_MATCH = 9

    @property
    def description(self) -> str:
        """Human readable name of the choice."""
        return FILTER_MAP[self]


class SubstringChoice(IntEnum):
    """Context tags of the parts of a SubstringFilter."""

    INITIAL = 0
    ANY = 1
    FINAL = 2

    @property
    def description(self) -> str:
        """Human readable name of the choice."""
        return SUBSTRINGS_MAP[self]


class MatchingRuleAssertion(IntEnum):
    """Context tags of the fields of a MatchingRuleAssertion."""

    MATCHING_RULE = 1
    TYPE = 2
    MATCH_VALUE = 3
    DN_ATTRIBUTES = 4

    @property
    def description(self) -> str:
        """Human readable name of the field."""
        return MATCHING_RULE_ASSERTION_MAP[self]


FILTER_MAP: dict[int, str] = {
    FilterChoice.AND: "And",
    FilterChoice.OR: "Or",
    FilterChoice.NOT: "Not",
    FilterChoice.EQUALITY_MATCH: "Equality Match",
    FilterChoice.SUBSTRINGS: "Substrings",
    FilterChoice.GREATER_OR_EQUAL: "Greater Or Equal",
    FilterChoice.LESS_OR_EQUAL: "Less Or Equal",
    FilterChoice.PRESENT: "Present",
    FilterChoice.APPROX_MATCH: "Approx Match",
    FilterChoice.EXTENSIBLE_MATCH: "Extensible Match",
}

SUBSTRINGS_MAP: dict[int, str] = {
    SubstringChoice.INITIAL: "Substrings Initial",
    SubstringChoice.ANY: "Substrings Any",
    SubstringChoice.FINAL: "Substrings Final",
}

MATCHING_RULE_ASSERTION_MAP: dict[int, str] = {
    MatchingRuleAssertion.MATCHING_RULE: "Matching Rule Assertion Matching Rule",
    MatchingRuleAssertion.TYPE: "Matching Rule Assertion Type",
    MatchingRuleAssertion.MATCH_VALUE: "Matching Rule Assertion Match Value",
    MatchingRuleAssertion.DN_ATTRIBUTES: "Matching Rule Assertion DN Attributes",
}

_SYMBOL_ANY = b"*"
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_MUST_ESCAPE = frozenset(b"()*\\\x00")

_READING_ATTR = 0
_READING_MATCHING_RULE = 1
_READING_CONDITION = 2


def _compile_error(message: str) -> LDAPError:
    return LDAPError(ERROR_FILTER_COMPILE, message)


def _to_bytes(value: str | bytes | bytearray) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return bytes(value)


def _decode_rune(data: bytes, pos: int) -> tuple[str | None, int]:
    """Decode one UTF-8 character at ``pos``; None marks an invalid one."""
    if pos >= len(data):
        return None, 0
    lead = data[pos]
    if lead < 0x80:
        return chr(lead), 1
    if 0xC2 <= lead <= 0xDF:
        size = 2
    elif 0xE0 <= lead <= 0xEF:
        size = 3
    elif 0xF0 <= lead <= 0xF4:
        size = 4
    else:
        return None, 1
    try:
        char = data[pos:pos + size].decode("utf-8")
    except UnicodeDecodeError:
        return None, 1
    if char == "\ufffd":
        return None, size
    return char, size


def escape_filter(value: str | bytes) -> str:
    """Escape the characters a filter value may not hold literally."""
    return "".join(
        f"\\{octet:02x}" if octet > 0x7F or octet in _MUST_ESCAPE else chr(octet)
        for octet in _to_bytes(value)
    )


def _format_invalid_byte(octet: int) -> str:
    char = chr(octet)
    if char.isprintable():
        return f"U+{octet:04X} '{char}'"
    return f"U+{octet:04X}"


def decode_escaped_symbols(src: str | bytes) -> str:
    """Turn ``\\xx`` escapes into the bytes they name.

    The result holds the raw bytes as a string that encodes back to them.
    """
    data = _to_bytes(src)
    out = bytearray()
    offset = 0
    pos = 0
    while pos < len(data):
        char, size = _decode_rune(data, pos)
        if char is None:
            raise _compile_error(f"ldap: error reading rune at position {offset}")
        pos += size
        if char == "\\":
            pair = data[pos:pos + 2]
            if not pair:
                raise _compile_error("ldap: invalid characters for escape in filter: EOF")
            if len(pair) < 2:
                raise _compile_error("ldap: missing characters for escape in filter")
            pos += 2
            for octet in pair:
                if octet not in _HEX_DIGITS:
                    raise _compile_error(
                        "ldap: invalid characters for escape in filter: "
                        f"encoding/hex: invalid byte: {_format_invalid_byte(octet)}"
                    )
            out.append(int(pair, 16))
        else:
            out += data[pos - size:pos]
        offset += size
    return decode_string(bytes(out))


def compile_filter(filter: str) -> Packet:
    """Compile a filter string into its BER packet."""
    data = _to_bytes(filter)
    if not data or data[0] != ord("("):
        raise _compile_error("ldap: filter does not start with an '('")
    packet, pos = _compile(data, 1)
    if pos > len(data):
        raise _compile_error("ldap: unexpected end of filter")
    if pos < len(data):
        raise _compile_error(
            "ldap: finished compiling filter with extra at end: " + decode_string(data[pos:])
        )
    return packet


def _compile_set(data: bytes, pos: int, parent: Packet) -> int:
    while pos < len(data) and data[pos] == ord("("):
        child, pos = _compile(data, pos + 1)
        parent.append_child(child)
    if pos == len(data):
        raise _compile_error("ldap: unexpected end of filter")
    return pos + 1


def _constructed(choice: FilterChoice) -> Packet:
    return encode(BerClass.CONTEXT, BerType.CONSTRUCTED, choice, None, choice.description)


def _compile(data: bytes, pos: int) -> tuple[Packet, int]:
    char, width = _decode_rune(data, pos)
    if char is None:
        raise _compile_error(f"ldap: error reading rune at position {pos}")
    if char == "(":
        packet, new_pos = _compile(data, pos + width)
        return packet, new_pos + 1
    if char in "&|":
        packet = _constructed(FilterChoice.AND if char == "&" else FilterChoice.OR)
        return packet, _compile_set(data, pos + width, packet)
    if char == "!":
        packet = _constructed(FilterChoice.NOT)
        child, new_pos = _compile(data, pos + width)
        packet.append_child(child)
        return packet, new_pos
    return _compile_item(data, pos)


def _compile_item(data: bytes, pos: int) -> tuple[Packet, int]:
    state = _READING_ATTR
    packet: Packet | None = None
    attribute = bytearray()
    matching_rule = bytearray()
    condition = bytearray()
    dn_attributes = False
    new_pos = pos

    while new_pos < len(data):
        char, width = _decode_rune(data, new_pos)
        if char == ")":
            break
        if char is None:
            raise _compile_error(f"ldap: error reading rune at position {new_pos}")
        chunk = data[new_pos:new_pos + width]

        if state == _READING_ATTR:
            if char == ":" and data.startswith(b":dn:=", new_pos):
                packet = _constructed(FilterChoice.EXTENSIBLE_MATCH)
                dn_attributes = True
                state = _READING_CONDITION
                new_pos += 5
            elif char == ":" and data.startswith(b":dn:", new_pos):
                packet = _constructed(FilterChoice.EXTENSIBLE_MATCH)
                dn_attributes = True
                state = _READING_MATCHING_RULE
                new_pos += 4
            elif char == ":" and data.startswith(b":=", new_pos):
                packet = _constructed(FilterChoice.EXTENSIBLE_MATCH)
                state = _READING_CONDITION
                new_pos += 2
            elif char == ":":
                packet = _constructed(FilterChoice.EXTENSIBLE_MATCH)
                state = _READING_MATCHING_RULE
                new_pos += 1
            elif char == "=":
                packet = _constructed(FilterChoice.EQUALITY_MATCH)
                state = _READING_CONDITION
                new_pos += 1
            elif char == ">" and data.startswith(b">=", new_pos):
                packet = _constructed(FilterChoice.GREATER_OR_EQUAL)
                state = _READING_CONDITION
                new_pos += 2
            elif char == "<" and data.startswith(b"<=", new_pos):
                packet = _constructed(FilterChoice.LESS_OR_EQUAL)
                state = _READING_CONDITION
                new_pos += 2
            elif char == "~" and data.startswith(b"~=", new_pos):
                packet = _constructed(FilterChoice.APPROX_MATCH)
                state = _READING_CONDITION
                new_pos += 2
            else:
                attribute += chunk
                new_pos += width
        elif state == _READING_MATCHING_RULE:
            if char == ":" and data.startswith(b":=", new_pos):
                state = _READING_CONDITION
                new_pos += 2
            else:
                matching_rule += chunk
                new_pos += width
        else:
            condition += chunk
            new_pos += width

    if new_pos == len(data):
        raise _compile_error("ldap: unexpected end of filter")
    if packet is None:
        raise _compile_error("ldap: error parsing filter")

    attr = decode_string(bytes(attribute))
    cond = bytes(condition)

    if packet.tag == FilterChoice.EXTENSIBLE_MATCH:
        if matching_rule:
            packet.append_child(_context_string(MatchingRuleAssertion.MATCHING_RULE,
                                                decode_string(bytes(matching_rule))))
        if attribute:
            packet.append_child(_context_string(MatchingRuleAssertion.TYPE, attr))
        packet.append_child(
            _context_string(MatchingRuleAssertion.MATCH_VALUE, decode_escaped_symbols(cond))
        )
        if dn_attributes:
            packet.append_child(
                new_boolean(
                    BerClass.CONTEXT,
                    BerType.PRIMITIVE,
                    MatchingRuleAssertion.DN_ATTRIBUTES,
                    True,
                    MatchingRuleAssertion.DN_ATTRIBUTES.description,
                )
            )
    elif packet.tag == FilterChoice.EQUALITY_MATCH and cond == _SYMBOL_ANY:
        packet = new_string(
            BerClass.CONTEXT, BerType.PRIMITIVE, FilterChoice.PRESENT, attr,
            FilterChoice.PRESENT.description,
        )
    elif packet.tag == FilterChoice.EQUALITY_MATCH and _SYMBOL_ANY in cond:
        packet.append_child(_universal_string(attr, "Attribute"))
        packet.tag = FilterChoice.SUBSTRINGS
        packet.description = FilterChoice.SUBSTRINGS.description
        seq = encode(BerClass.UNIVERSAL, BerType.CONSTRUCTED, BerTag.SEQUENCE, None, "Substrings")
        parts = cond.split(_SYMBOL_ANY)
        last = len(parts) - 1
        for index, part in enumerate(parts):
            if not part:
                continue
            if index == 0:
                choice = SubstringChoice.INITIAL
            elif index == last:
                choice = SubstringChoice.FINAL
            else:
                choice = SubstringChoice.ANY
            seq.append_child(
                new_string(
                    BerClass.CONTEXT, BerType.PRIMITIVE, choice,
                    decode_escaped_symbols(part), choice.description,
                )
            )
        packet.append_child(seq)
    else:
        value = decode_escaped_symbols(cond)
        packet.append_child(_universal_string(attr, "Attribute"))
        packet.append_child(_universal_string(value, "Condition"))

    return packet, new_pos + 1


def _context_string(field: MatchingRuleAssertion, value: str) -> Packet:
    return new_string(BerClass.CONTEXT, BerType.PRIMITIVE, field, value, field.description)


def _universal_string(value: str, description: str) -> Packet:
    return new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, value, description)


def decompile_filter(packet: Packet) -> str:
    """Turn a filter packet back into its string form."""
    try:
        return _decompile(packet)
    except LDAPError:
        raise
    except (IndexError, AttributeError, TypeError, ValueError) as exc:
        raise LDAPError(ERROR_FILTER_DECOMPILE, "ldap: error decompiling filter") from exc


def _text(packet: Packet) -> str:
    return decode_string(packet.data_bytes())


def _decompile(packet: Packet) -> str:
    tag = packet.tag
    parts: list[str] = ["("]

    if tag == FilterChoice.AND:
        parts.append("&")
        parts.extend(_decompile(child) for child in packet.children)
    elif tag == FilterChoice.OR:
        parts.append("|")
        parts.extend(_decompile(child) for child in packet.children)
    elif tag == FilterChoice.NOT:
        parts.append("!")
        parts.append(_decompile(packet.children[0]))
    elif tag == FilterChoice.SUBSTRINGS:
        parts.append(_text(packet.children[0]))
        parts.append("=")
        for index, child in enumerate(packet.children[1].children):
            if index == 0 and child.tag != SubstringChoice.INITIAL:
                parts.append("*")
            parts.append(escape_filter(child.data_bytes()))
            if child.tag != SubstringChoice.FINAL:
                parts.append("*")
    elif tag in _OPERATORS:
        parts.append(_text(packet.children[0]))
        parts.append(_OPERATORS[tag])
        parts.append(escape_filter(packet.children[1].data_bytes()))
    elif tag == FilterChoice.PRESENT:
        parts.append(_text(packet))
        parts.append("=*")
    elif tag == FilterChoice.EXTENSIBLE_MATCH:
        parts.append(_decompile_extensible(packet))

    parts.append(")")
    return "".join(parts)


_OPERATORS = {
    FilterChoice.EQUALITY_MATCH: "=",
    FilterChoice.GREATER_OR_EQUAL: ">=",
    FilterChoice.LESS_OR_EQUAL: "<=",
    FilterChoice.APPROX_MATCH: "~=",
}


def _decompile_extensible(packet: Packet) -> str:
    attr = ""
    matching_rule = ""
    value = b""
    dn_attributes = False
    for child in packet.children:
        if child.tag == MatchingRuleAssertion.MATCHING_RULE:
            matching_rule = _text(child)
        elif child.tag == MatchingRuleAssertion.TYPE:
            attr = _text(child)
        elif child.tag == MatchingRuleAssertion.MATCH_VALUE:
            value = child.data_bytes()
        elif child.tag == MatchingRuleAssertion.DN_ATTRIBUTES:
            if isinstance(child.value, bool):
                dn_attributes = child.value
            else:
                dn_attributes = any(child.data_bytes())

    text = attr
    if dn_attributes:
        text += ":dn"
    if matching_rule:
        text += ":" + matching_rule
    return text + ":=" + escape_filter(value)