import pytest

from ldapwire.ber import (
    BerClass,
    BerTag,
    BerType,
    decode_packet,
    encode,
    new_integer,
    new_sequence,
    new_string,
)
from ldapwire.errors import (
    ERROR_FILTER_COMPILE,
    ERROR_NETWORK,
    LDAP_RESULT_NO_SUCH_OBJECT,
    LDAPError,
)
from ldapwire.filter import FilterChoice, decompile_filter
from ldapwire.message import Application, build_request
from ldapwire.search import (
    DerefAliases,
    Entry,
    EntryAttribute,
    Scope,
    SearchRequest,
    SearchResult,
    collect_search_result,
    new_entry,
    new_entry_attribute,
)


def _octet(value):
    return new_string(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.OCTET_STRING, value, "")


def _message(op, controls=None):
    msg = new_sequence("LDAPMessage")
    msg.append_child(new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.INTEGER, 1, "id"))
    msg.append_child(op)
    if controls is not None:
        msg.append_child(controls)
    return decode_packet(msg.encode())


def _entry_packet(dn, attrs):
    op = encode(BerClass.APPLICATION, BerType.CONSTRUCTED, Application.SEARCH_RESULT_ENTRY, None, "")
    op.append_child(_octet(dn))
    seq = new_sequence("attributes")
    for name, values in attrs.items():
        item = new_sequence("attr")
        item.append_child(_octet(name))
        value_set = encode(BerClass.UNIVERSAL, BerType.CONSTRUCTED, BerTag.SET, None, "")
        for value in values:
            value_set.append_child(_octet(value))
        item.append_child(value_set)
        seq.append_child(item)
    op.append_child(seq)
    return _message(op)


def _done_packet(code=0, matched="", message="", controls=None):
    op = encode(BerClass.APPLICATION, BerType.CONSTRUCTED, Application.SEARCH_RESULT_DONE, None, "")
    op.append_child(new_integer(BerClass.UNIVERSAL, BerType.PRIMITIVE, BerTag.ENUMERATED, code, ""))
    op.append_child(_octet(matched))
    op.append_child(_octet(message))
    return _message(op, controls)


def _referral_packet(url):
    op = encode(BerClass.APPLICATION, BerType.CONSTRUCTED, Application.SEARCH_RESULT_REFERENCE, None, "")
    op.append_child(_octet(url))
    return _message(op)


def test_new_entry_is_deterministic():
    attributes = {
        "alpha": ["value"],
        "beta": ["value"],
        "gamma": ["value"],
        "delta": ["value"],
        "epsilon": ["value"],
    }
    expected = new_entry("testDN", attributes)
    for _ in range(100):
        assert new_entry("testDN", attributes) == expected
    assert [a.name for a in expected.attributes] == ["alpha", "beta", "delta", "epsilon", "gamma"]


def test_get_attribute_value():
    attributes = {
        "Alpha": ["value"],
        "bEta": ["value"],
        "gaMma": ["value"],
        "delTa": ["value"],
        "epsiLon": ["value"],
    }
    entry = new_entry("testDN", attributes)
    assert entry.get_attribute_value("Alpha") == "value"
    assert entry.get_equal_fold_attribute_value("alpha") == "value"
    assert entry.get_attribute_value("alpha") == ""


def test_raw_and_missing_lookups():
    entry = new_entry("cn=x", {"cn": ["Lučić", "b"]})
    assert entry.get_raw_attribute_values("cn") == ["Lučić".encode(), b"b"]
    assert entry.get_raw_attribute_value("cn") == "Lučić".encode()
    assert entry.get_equal_fold_raw_attribute_value("CN") == "Lučić".encode()
    assert entry.get_equal_fold_raw_attribute_values("CN") == ["Lučić".encode(), b"b"]
    assert entry.get_attribute_values("sn") == []
    assert entry.get_raw_attribute_values("sn") == []
    assert entry.get_raw_attribute_value("sn") == b""
    assert entry.get_equal_fold_attribute_values("SN") == []


def test_new_entry_attribute_bytes_follow_values():
    attr = new_entry_attribute("cn", ["a", "b"])
    assert attr.byte_values == [v.encode() for v in attr.values]


def test_pretty_print(capsys):
    result = SearchResult(entries=[Entry("cn=x", [EntryAttribute("cn", ["a", "b"])])])
    result.pretty_print(2)
    assert capsys.readouterr().out == "  DN: cn=x\n    cn: [a b]\n"


def test_enum_lookup_by_protocol_value():
    assert Scope(2) is Scope.WHOLE_SUBTREE
    assert Scope(2).description == "Whole Subtree"
    assert DerefAliases(3) is DerefAliases.ALWAYS
    assert DerefAliases(3).description == "DerefAlways"


def test_search_request_round_trips_through_wire():
    req = SearchRequest(
        "dc=umich,dc=edu",
        Scope.WHOLE_SUBTREE,
        DerefAliases.ALWAYS,
        0,
        0,
        False,
        "(cn=cis-fac)",
        ["cn", "description"],
    )
    envelope = decode_packet(build_request(2, req).encode())
    assert len(envelope.children) == 2
    op = envelope.children[1]
    assert op.ber_class == BerClass.APPLICATION
    assert op.tag == Application.SEARCH_REQUEST
    assert [c.value for c in op.children[:6]] == ["dc=umich,dc=edu", 2, 3, 0, 0, False]
    assert op.children[6].tag == FilterChoice.EQUALITY_MATCH
    assert decompile_filter(op.children[6]) == "(cn=cis-fac)"
    assert [c.value for c in op.children[7].children] == ["cn", "description"]


def test_search_request_with_controls():
    req = SearchRequest("dc=example,dc=org", filter="(objectClass=*)", controls=[new_sequence("c")])
    envelope = decode_packet(build_request(1, req).encode())
    assert envelope.children[2].ber_class == BerClass.CONTEXT
    assert envelope.children[2].tag == 0


def test_search_request_bad_filter_raises():
    req = SearchRequest("dc=example,dc=org", filter="cn=x")
    with pytest.raises(LDAPError) as info:
        build_request(1, req)
    assert info.value.result_code == ERROR_FILTER_COMPILE


def test_collect_search_result():
    control = new_sequence("Controls")
    control.append_child(new_sequence("Control"))
    packets = [
        _entry_packet("cn=a,dc=example,dc=org", {"cn": ["a"], "mail": ["a@example.com", "b@example.com"]}),
        _referral_packet("ldap://localhost/dc=other"),
        _entry_packet("cn=b,dc=example,dc=org", {}),
        _done_packet(controls=control),
        _entry_packet("cn=ignored", {}),
    ]
    result = collect_search_result(packets)
    assert [e.dn for e in result.entries] == ["cn=a,dc=example,dc=org", "cn=b,dc=example,dc=org"]
    first = result.entries[0]
    assert first.get_attribute_values("mail") == ["a@example.com", "b@example.com"]
    assert first.get_raw_attribute_value("cn") == b"a"
    assert result.referrals == ["ldap://localhost/dc=other"]
    assert len(result.controls) == 1


def test_collect_search_result_reports_server_error():
    packets = [_done_packet(LDAP_RESULT_NO_SUCH_OBJECT, "dc=umich,dc=edu", "no such object")]
    with pytest.raises(LDAPError) as info:
        collect_search_result(packets)
    assert info.value.result_code == LDAP_RESULT_NO_SUCH_OBJECT
    assert info.value.matched_dn == "dc=umich,dc=edu"


def test_collect_search_result_requires_done():
    with pytest.raises(LDAPError) as info:
        collect_search_result([_entry_packet("cn=a", {})])
    assert info.value.result_code == ERROR_NETWORK