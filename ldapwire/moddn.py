"""Modify DN requests: rename an entry or move it under a new parent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ldapwire.ber import BerClass, BerTag, BerType, Packet, encode, new_boolean, new_string
from ldapwire.message import Application
from ldapwire.modify import _encode_controls


@dataclass
class ModifyDNRequest:
    """Rename ``dn`` to ``new_rdn`` and, if ``new_superior`` is set, move it there.

    To move without renaming, ``new_rdn`` must be the first RDN of ``dn``.
    """

    dn: str
    new_rdn: str
    delete_old_rdn: bool = False
    new_superior: str = ""
    controls: list[Any] = field(default_factory=list)

    def append_to(self, envelope: Packet) -> None:
        """Add the ModifyDNRequest operation and any controls to an LDAPMessage."""
        pkt = encode(
            BerClass.APPLICATION,
            BerType.CONSTRUCTED,
            Application.MODIFY_DN_REQUEST,
            None,
            "Modify DN Request",
        )
        pkt.append_child(
            new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, self.dn, "DN")
        )
        pkt.append_child(
            new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, self.new_rdn, "New RDN")
        )
        if self.delete_old_rdn:
            pkt.append_child(
                Packet(
                    ber_class=BerClass.UNIVERSAL,
                    ber_type=BerType.PRIMITIVE,
                    tag=BerTag.BOOLEAN,
                    value=True,
                    description="Delete old RDN",
                    data=b"\xff",
                )
            )
        else:
            pkt.append_child(
                new_boolean(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.BOOLEAN, False, "Delete old RDN")
            )
        if self.new_superior:
            pkt.append_child(
                new_string(BerClass.CONTEXT, BerType.PRIMITIVE, 0, self.new_superior, "New Superior")
            )
        envelope.append_child(pkt)
        if self.controls:
            envelope.append_child(_encode_controls(self.controls))