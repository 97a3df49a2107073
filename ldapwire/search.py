"""Search requests, result entries and assembling a search result."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, Mapping

from ldapwire.ber import (
    BerClass,
    BerTag,
    BerType,
    Packet,
    decode_string,
    encode,
    new_boolean,
    new_integer,
    new_string,
)
from ldapwire.errors import ERROR_NETWORK, LDAPError, get_ldap_error
from ldapwire.filter import compile_filter
from ldapwire.message import Application
from ldapwire.modify import _encode_controls


class Scope(IntEnum):
    """How far below the base DN a search reaches."""

    BASE_OBJECT = 0
    SINGLE_LEVEL = 1
    WHOLE_SUBTREE = 2

    @property
    def description(self) -> str:
        """Human readable name of the scope."""
        return SCOPE_MAP[self]


class DerefAliases(IntEnum):
    """When the server dereferences aliases."""

    NEVER = 0
    IN_SEARCHING = 1
    FINDING_BASE_OBJ = 2
    ALWAYS = 3

    @property
    def description(self) -> str:
        """Human readable name of the choice."""
        return DEREF_MAP[self]


SCOPE_MAP: dict[int, str] = {
    Scope.BASE_OBJECT: "Base Object",
    Scope.SINGLE_LEVEL: "Single Level",
    Scope.WHOLE_SUBTREE: "Whole Subtree",
}

DEREF_MAP: dict[int, str] = {
    DerefAliases.NEVER: "NeverDerefAliases",
    DerefAliases.IN_SEARCHING: "DerefInSearching",
    DerefAliases.FINDING_BASE_OBJ: "DerefFindingBaseObj",
    DerefAliases.ALWAYS: "DerefAlways",
}


def _equal_fold(left: str, right: str) -> bool:
    """Case-insensitive comparison using simple per-character folding."""
    if len(left) != len(right):
        return False
    return all(
        a == b or a.lower() == b.lower() or a.upper() == b.upper() for a, b in zip(left, right)
    )


def _format_values(values: list[str]) -> str:
    return "[" + " ".join(values) + "]"


@dataclass
class EntryAttribute:
    """One attribute of an entry with its values as text and as raw bytes."""

    name: str
    values: list[str] = field(default_factory=list)
    byte_values: list[bytes] = field(default_factory=list)

    def pretty_print(self, indent: int) -> None:
        """Print the attribute, indented by ``indent`` spaces."""
        print(f"{' ' * indent}{self.name}: {_format_values(self.values)}")


@dataclass
class Entry:
    """A single search result entry."""

    dn: str
    attributes: list[EntryAttribute] = field(default_factory=list)

    def _find(self, attribute: str, fold: bool) -> EntryAttribute | None:
        for attr in self.attributes:
            if (_equal_fold(attr.name, attribute) if fold else attr.name == attribute):
                return attr
        return None

    def get_attribute_values(self, attribute: str) -> list[str]:
        """Values of the named attribute, or an empty list."""
        attr = self._find(attribute, fold=False)
        return attr.values if attr else []

    def get_equal_fold_attribute_values(self, attribute: str) -> list[str]:
        """Values of the attribute matched case-insensitively, or an empty list."""
        attr = self._find(attribute, fold=True)
        return attr.values if attr else []

    def get_raw_attribute_values(self, attribute: str) -> list[bytes]:
        """Raw values of the named attribute, or an empty list."""
        attr = self._find(attribute, fold=False)
        return attr.byte_values if attr else []

    def get_equal_fold_raw_attribute_values(self, attribute: str) -> list[bytes]:
        """Raw values of the attribute matched case-insensitively, or an empty list."""
        attr = self._find(attribute, fold=True)
        return attr.byte_values if attr else []

    def get_attribute_value(self, attribute: str) -> str:
        """First value of the named attribute, or an empty string."""
        values = self.get_attribute_values(attribute)
        return values[0] if values else ""

    def get_equal_fold_attribute_value(self, attribute: str) -> str:
        """First value of the attribute matched case-insensitively, or an empty string."""
        values = self.get_equal_fold_attribute_values(attribute)
        return values[0] if values else ""

    def get_raw_attribute_value(self, attribute: str) -> bytes:
        """First raw value of the named attribute, or empty bytes."""
        values = self.get_raw_attribute_values(attribute)
        return values[0] if values else b""

    def get_equal_fold_raw_attribute_value(self, attribute: str) -> bytes:
        """First raw value of the attribute matched case-insensitively, or empty bytes."""
        values = self.get_equal_fold_raw_attribute_values(attribute)
        return values[0] if values else b""

    def pretty_print(self, indent: int) -> None:
        """Print the DN and attributes, indented by ``indent`` spaces."""
        print(f"{' ' * indent}DN: {self.dn}")
        for attr in self.attributes:
            attr.pretty_print(indent + 2)


def new_entry_attribute(name: str, values: Iterable[str]) -> EntryAttribute:
    """Build an attribute whose raw values are the UTF-8 form of ``values``."""
    values = list(values)
    return EntryAttribute(
        name=name,
        values=values,
        byte_values=[value.encode("utf-8", "surrogateescape") for value in values],
    )


def new_entry(dn: str, attributes: Mapping[str, Iterable[str]]) -> Entry:
    """Build an entry with attributes ordered by name, so equal input gives equal output."""
    return Entry(
        dn=dn,
        attributes=[new_entry_attribute(name, attributes[name]) for name in sorted(attributes)],
    )


@dataclass
class SearchResult:
    """Entries, referrals and controls a server returned for a search."""

    entries: list[Entry] = field(default_factory=list)
    referrals: list[str] = field(default_factory=list)
    controls: list[Any] = field(default_factory=list)

    def pretty_print(self, indent: int) -> None:
        """Print every entry, indented by ``indent`` spaces."""
        for entry in self.entries:
            entry.pretty_print(indent)


def _octet_string(value: str, description: str) -> Packet:
    return new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, value, description)


@dataclass
class SearchRequest:
    """A search to send to the server."""

    base_dn: str
    scope: Scope = Scope.BASE_OBJECT
    deref_aliases: DerefAliases = DerefAliases.NEVER
    size_limit: int = 0
    time_limit: int = 0
    types_only: bool = False
    filter: str = "(objectClass=*)"
    attributes: list[str] = field(default_factory=list)
    controls: list[Any] = field(default_factory=list)

    def append_to(self, envelope: Packet) -> None:
        """Add the SearchRequest operation and any controls to an LDAPMessage.

        Raises LDAPError when the filter does not compile.
        """
        pkt = encode(
            BerClass.APPLICATION, BerType.CONSTRUCTED, Application.SEARCH_REQUEST, None, "Search Request"
        )
        pkt.append_child(_octet_string(self.base_dn, "Base DN"))
        for tag, value, description in (
            (BerTag.ENUMERATED, self.scope, "Scope"),
            (BerTag.ENUMERATED, self.deref_aliases, "Deref Aliases"),
            (BerTag.INTEGER, self.size_limit, "Size Limit"),
            (BerTag.INTEGER, self.time_limit, "Time Limit"),
        ):
            pkt.append_child(new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, tag, int(value), description))
        pkt.append_child(
            new_boolean(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.BOOLEAN, self.types_only, "Types Only")
        )
        pkt.append_child(compile_filter(self.filter))
        attributes = encode(BerClass.UNIVERSAL, BerType.CONSTRUCTED, BerTag.SEQUENCE, None, "Attributes")
        for attribute in self.attributes:
            attributes.append_child(_octet_string(attribute, "Attribute"))
        pkt.append_child(attributes)
        envelope.append_child(pkt)
        if self.controls:
            envelope.append_child(_encode_controls(self.controls))


def _string_of(packet: Packet) -> str:
    if isinstance(packet.value, str):
        return packet.value
    return decode_string(packet.data_bytes())


def _raw_of(packet: Packet) -> bytes:
    return packet.byte_value if packet.byte_value is not None else packet.data_bytes()


def _entry_from(op: Packet) -> Entry:
    entry = Entry(dn=_string_of(op.children[0]))
    for child in op.children[1].children:
        attr = EntryAttribute(name=_string_of(child.children[0]))
        for value in child.children[1].children:
            attr.values.append(_string_of(value))
            attr.byte_values.append(_raw_of(value))
        entry.attributes.append(attr)
    return entry


def collect_search_result(packets: Iterable[Packet]) -> SearchResult:
    """Assemble the response packets of one search into a result.

    Stops at the SearchResultDone message; raises LDAPError if it reports a
    failure or if the packets end before it arrives. Response controls are
    kept as their packets.
    """
    result = SearchResult()
    for packet in packets:
        op = packet.children[1]
        if op.tag == Application.SEARCH_RESULT_ENTRY:
            result.entries.append(_entry_from(op))
        elif op.tag == Application.SEARCH_RESULT_DONE:
            error = get_ldap_error(packet)
            if error is not None:
                raise error
            if len(packet.children) == 3:
                result.controls.extend(packet.children[2].children)
            return result
        elif op.tag == Application.SEARCH_RESULT_REFERENCE:
            result.referrals.append(_string_of(op.children[0]))
    raise LDAPError(ERROR_NETWORK, "ldap: response channel closed")