"""Modify requests: attribute changes applied to one directory entry."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable

from ldapwire.ber import BerClass, BerTag, BerType, Packet, encode, new_integer, new_string
from ldapwire.message import Application


class ChangeOperation(IntEnum):
    """Operations a change can apply to an attribute."""

    ADD = 0
    DELETE = 1
    REPLACE = 2
    INCREMENT = 3


def _encode_controls(controls: Iterable[Any]) -> Packet:
    """Wrap request controls in the ``[0] Controls`` element of an LDAPMessage.

    Each control is either a ready packet or an object whose ``encode()``
    returns one.
    """
    packet = encode(BerClass.CONTEXT, BerType.CONSTRUCTED, 0, None, "Controls")
    for control in controls:
        packet.append_child(control if isinstance(control, Packet) else control.encode())
    return packet


def _octet_string(value: str, description: str) -> Packet:
    return new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, value, description)


@dataclass
class PartialAttribute:
    """An attribute type with the values a change refers to."""

    type: str
    vals: list[str] = field(default_factory=list)

    def encode(self) -> Packet:
        """Return the PartialAttribute sequence."""
        seq = encode(BerClass.UNIVERSAL, BerType.CONSTRUCTED, BerTag.SEQUENCE, None, "PartialAttribute")
        seq.append_child(_octet_string(self.type, "Type"))
        values = encode(BerClass.UNIVERSAL, BerType.CONSTRUCTED, BerTag.SET, None, "AttributeValue")
        for value in self.vals:
            values.append_child(_octet_string(value, "Vals"))
        seq.append_child(values)
        return seq


@dataclass
class Change:
    """One operation on one attribute."""

    operation: ChangeOperation
    modification: PartialAttribute

    def encode(self) -> Packet:
        """Return the change sequence."""
        change = encode(BerClass.UNIVERSAL, BerType.CONSTRUCTED, BerTag.SEQUENCE, None, "Change")
        change.append_child(
            new_integer(
                BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.ENUMERATED, int(self.operation), "Operation"
            )
        )
        change.append_child(self.modification.encode())
        return change


@dataclass
class ModifyRequest:
    """A request to change the attributes of the entry named by ``dn``."""

    dn: str
    controls: list[Any] = field(default_factory=list)
    changes: list[Change] = field(default_factory=list)

    def _append_change(self, operation: ChangeOperation, attr_type: str, attr_vals: Iterable[str]) -> None:
        self.changes.append(Change(operation, PartialAttribute(attr_type, list(attr_vals))))

    def add(self, attr_type: str, attr_vals: Iterable[str]) -> None:
        """Queue adding values to an attribute."""
        self._append_change(ChangeOperation.ADD, attr_type, attr_vals)

    def delete(self, attr_type: str, attr_vals: Iterable[str]) -> None:
        """Queue deleting values (or the whole attribute when empty)."""
        self._append_change(ChangeOperation.DELETE, attr_type, attr_vals)

    def replace(self, attr_type: str, attr_vals: Iterable[str]) -> None:
        """Queue replacing all values of an attribute."""
        self._append_change(ChangeOperation.REPLACE, attr_type, attr_vals)

    def increment(self, attr_type: str, attr_val: str) -> None:
        """Queue incrementing a numeric attribute by ``attr_val``."""
        self._append_change(ChangeOperation.INCREMENT, attr_type, [attr_val])

    def append_to(self, envelope: Packet) -> None:
        """Add the ModifyRequest operation and any controls to an LDAPMessage."""
        pkt = encode(
            BerClass.APPLICATION, BerType.CONSTRUCTED, Application.MODIFY_REQUEST, None, "Modify Request"
        )
        pkt.append_child(_octet_string(self.dn, "DN"))
        changes = encode(BerClass.UNIVERSAL, BerType.CONSTRUCTED, BerTag.SEQUENCE, None, "Changes")
        for change in self.changes:
            changes.append_child(change.encode())
        pkt.append_child(changes)
        envelope.append_child(pkt)
        if self.controls:
            envelope.append_child(_encode_controls(self.controls))