"""LDAP message envelopes and protocol-operation tags."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, Protocol, Union

from ldapwire.ber import BerClass, BerTag, BerType, Packet, new_integer, new_sequence


class Application(IntEnum):
    """Application-class tags of LDAP protocol operations."""

    BIND_REQUEST = 0
    BIND_RESPONSE = 1
    UNBIND_REQUEST = 2
    SEARCH_REQUEST = 3
    SEARCH_RESULT_ENTRY = 4
    SEARCH_RESULT_DONE = 5
    MODIFY_REQUEST = 6
    MODIFY_RESPONSE = 7
    ADD_REQUEST = 8
    ADD_RESPONSE = 9
    DEL_REQUEST = 10
    DEL_RESPONSE = 11
    MODIFY_DN_REQUEST = 12
    MODIFY_DN_RESPONSE = 13
    COMPARE_REQUEST = 14
    COMPARE_RESPONSE = 15
    ABANDON_REQUEST = 16
    SEARCH_RESULT_REFERENCE = 19
    EXTENDED_REQUEST = 23
    EXTENDED_RESPONSE = 24
    INTERMEDIATE_RESPONSE = 25


class _Request(Protocol):
    def append_to(self, envelope: Packet) -> None: ...


RequestLike = Union[_Request, Callable[[Packet], None]]


def build_request(message_id: int, request: RequestLike) -> Packet:
    """Wrap a request in an LDAPMessage envelope carrying ``message_id``.

    ``request`` is either an object with ``append_to(envelope)`` or a callable
    taking the envelope. Whatever it raises propagates unchanged.
    """
    append = getattr(request, "append_to", None)
    if append is None:
        if not callable(request):
            raise TypeError(f"not a request: {request!r}")
        append = request

    envelope = new_sequence("LDAP Request")
    envelope.append_child(
        new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.INTEGER, message_id, "MessageID")
    )
    append(envelope)
    return envelope