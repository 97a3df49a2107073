# ldapwire

Build and read LDAP protocol messages without a server: BER packets,
RFC 4515 search filters, and the search, modify and modify-DN requests of
RFC 4511. Only the standard library is used.

## Install

```
pip install ldapwire
```

The `test` extra pulls in pytest for running the test suite:

```
pip install "ldapwire[test]"
```

## BER packets

`ldapwire.ber` holds the `Packet` dataclass and the helpers that build one:
`encode`, `new_string`, `new_integer`, `new_boolean` and `new_sequence`.
`Packet.encode()` serialises a packet to bytes, `Packet.append_child()` adds
a child element and `Packet.data_bytes()` returns the content octets.

`decode_packet(data)` parses exactly one packet from bytes and raises
`BerDecodeError` (a `ValueError`) on truncated data, indefinite lengths or
trailing bytes. Universal booleans, integers, enumerations and string types
get a decoded `value`; octet strings also keep their raw `byte_value`.

```python
from ldapwire.ber import BerClass, BerTag, BerType, decode_packet, new_string

packet = new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, "cn", "Attribute")
raw = packet.encode()                  # b'\x04\x02cn'
assert decode_packet(raw).value == "cn"
```

## Search filters

```python
from ldapwire.filter import compile_filter, decompile_filter, escape_filter, FilterChoice

packet = compile_filter("(&(sn=Miller)(givenName=Bob))")
assert packet.tag == FilterChoice.AND
assert decompile_filter(packet) == "(&(sn=Miller)(givenName=Bob))"

escape_filter("a(b)*c")          # 'a\\28b\\29\\2ac'
```

All filter forms are handled: and, or, not, equality, substrings, `>=`,
`<=`, presence, `~=` and extensible matches such as `(cn:dn:1.2.3:=Fred)`.
Values are decompiled with non-ASCII bytes and special characters written as
`\xx` escapes. `decode_escaped_symbols` turns such escapes back into bytes.

Malformed filters raise `ldapwire.errors.LDAPError` with result code
`ERROR_FILTER_COMPILE`; a packet that cannot be decompiled raises one with
`ERROR_FILTER_DECOMPILE`.

## Requests

`build_request(message_id, request)` wraps a request in an LDAPMessage
envelope. The request is any object with an `append_to(envelope)` method, or
a callable taking the envelope.

```python
from ldapwire.message import build_request
from ldapwire.search import SearchRequest, Scope, DerefAliases
from ldapwire.modify import ModifyRequest
from ldapwire.moddn import ModifyDNRequest

search = SearchRequest(
    base_dn="dc=example,dc=com",
    scope=Scope.WHOLE_SUBTREE,
    deref_aliases=DerefAliases.ALWAYS,
    filter="(objectClass=*)",
    attributes=["cn", "description"],
)
wire = build_request(1, search).encode()      # bytes ready to send

change = ModifyRequest(dn="uid=someone,dc=example,dc=com")
change.replace("mail", ["someone@example.com"])
change.increment("loginCount", "1")
wire = build_request(2, change).encode()

rename = ModifyDNRequest(dn="uid=user,ou=people,dc=example,dc=org",
                         new_rdn="uid=new", delete_old_rdn=True)
wire = build_request(3, rename).encode()
```

`ModifyRequest` also has `add` and `delete`. `ModifyDNRequest` moves the
entry when `new_superior` is set. Every request takes a `controls` list; each
control is either a ready `Packet` or an object whose `encode()` returns one,
and they are sent in the envelope's controls element.

## Responses

```python
from ldapwire.ber import decode_packet
from ldapwire.errors import get_ldap_error, is_error_with_code
from ldapwire.search import collect_search_result

packets = [decode_packet(raw) for raw in received_messages]
result = collect_search_result(packets)       # raises LDAPError on failure
for entry in result.entries:
    print(entry.dn, entry.get_equal_fold_attribute_value("cn"))
result.pretty_print(2)
```

`collect_search_result` gathers entries and referrals until the
SearchResultDone message. It raises the `LDAPError` that message reports, or
one with `ERROR_NETWORK` if the packets run out first. Response controls are
kept as undecoded packets in `result.controls`.

`get_ldap_error(packet)` returns `None` for a successful LDAPResult and an
`LDAPError` otherwise; `is_error_with_code` and `is_error_any_of` test an
exception against result codes. `str(error)` reads like
`LDAP Result Code 49 "Invalid Credentials": <message>`, and
`RESULT_CODE_MAP` names every code.

## Entries

```python
from ldapwire.search import new_entry

entry = new_entry("cn=test", {"Alpha": ["value"]})
entry.get_attribute_value("Alpha")             # 'value'
entry.get_equal_fold_attribute_value("alpha")  # 'value'
entry.get_raw_attribute_value("Alpha")         # b'value'
```

`new_entry` orders attributes by name, so the same mapping always gives the
same entry.

## What it does not do

ldapwire only builds and reads messages. It opens no connections and has no
bind, TLS, add, delete, compare or paged-search operations: the caller sends
the encoded bytes, reads the replies and passes the decoded packets back in.
Response controls are not interpreted.