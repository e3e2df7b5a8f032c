"""
Wire Codec Tests

Queries are built with dnspython and our responses are decoded with it, so
these tests check wire compatibility against an independent implementation.
"""

import struct
from types import SimpleNamespace

import dns.flags
import dns.message
import dns.rcode
import dns.rdatatype
import pytest

from alodek_dns.core.message import (
    ANSWER_FLAGS,
    ERROR_FLAGS,
    HEADER_SIZE,
    DNSClass,
    DNSHeader,
    DNSQuestion,
    DNSRecordType,
    MalformedPacketError,
    UnsupportedRecordTypeError,
    build_answer_response,
    build_error_response,
    decode_name,
    encode_name,
    parse_query,
    record_type_code,
    record_type_name,
)
from alodek_dns.core.records import DNSRecord


def make_query(name: str, rdtype: str = "A", query_id: int = 0x1234) -> bytes:
    query = dns.message.make_query(name, rdtype, use_edns=False)
    query.id = query_id
    return query.to_wire()


def raw_query(questions, query_id: int = 0xBEEF, qdcount=None) -> bytes:
    header = DNSHeader(
        transaction_id=query_id,
        flags=0x0100,
        question_count=len(questions) if qdcount is None else qdcount,
    )
    return header.to_bytes() + b"".join(q.to_bytes() for q in questions)


class TestParseQuery:
    """Test inbound query parsing"""

    def test_parse_dnspython_query(self):
        """A standard recursive A query is parsed field by field"""
        wire = make_query("team1.gis-ctf.local", "A", query_id=0xABCD)

        query = parse_query(wire)

        assert query.transaction_id == 0xABCD
        assert query.domain == "team1.gis-ctf.local"
        assert query.qtype == DNSRecordType.A
        assert query.qclass == DNSClass.IN
        assert query.question_count == 1
        assert query.type_name == "A"
        assert query.raw_header == wire[:HEADER_SIZE]
        assert query.raw_question == wire[HEADER_SIZE:]

    def test_parse_preserves_case(self):
        """Domain case is kept as sent"""
        query = parse_query(make_query("WWW.Example.COM", "AAAA"))

        assert query.domain == "WWW.Example.COM"
        assert query.type_name == "AAAA"

    def test_parse_unknown_type_name(self):
        """Unknown query types still parse"""
        wire = raw_query([DNSQuestion("example.com", 999)])

        query = parse_query(wire)

        assert query.qtype == 999
        assert query.type_name == "TYPE999"

    def test_parse_multiple_questions_interprets_first(self):
        """Only the first question is interpreted, all are preserved"""
        wire = raw_query(
            [
                DNSQuestion("first.local", DNSRecordType.A),
                DNSQuestion("second.local", DNSRecordType.MX),
            ]
        )

        query = parse_query(wire)

        assert query.domain == "first.local"
        assert query.question_count == 2
        assert query.raw_question == wire[HEADER_SIZE:]

    def test_truncated_later_question_is_dropped(self):
        """A readable first question is enough; the broken tail is not echoed"""
        first = DNSQuestion("first.local", DNSRecordType.A).to_bytes()
        second = DNSQuestion("second.local", DNSRecordType.MX).to_bytes()
        wire = raw_query([], qdcount=2) + first + second[:-3]

        query = parse_query(wire)

        assert query.domain == "first.local"
        assert query.question_count == 1
        assert query.raw_question == first

    def test_parse_ignores_trailing_additional_section(self):
        """EDNS OPT records after the question are not part of raw_question"""
        query = dns.message.make_query("example.com", "A", use_edns=0)
        wire = query.to_wire()

        parsed = parse_query(wire)

        assert parsed.domain == "example.com"
        assert parsed.raw_question == DNSQuestion("example.com", 1).to_bytes()

    def test_short_header_is_malformed(self):
        with pytest.raises(MalformedPacketError):
            parse_query(b"\x12\x34\x01\x00")

    def test_empty_datagram_is_malformed(self):
        with pytest.raises(MalformedPacketError):
            parse_query(b"")

    def test_zero_questions_is_malformed(self):
        wire = raw_query([], qdcount=0)

        with pytest.raises(MalformedPacketError):
            parse_query(wire)

    def test_truncated_label_is_malformed(self):
        """A label that runs past the end of the buffer"""
        wire = make_query("example.com")

        with pytest.raises(MalformedPacketError):
            parse_query(wire[:15])

    def test_missing_type_and_class_is_malformed(self):
        wire = make_query("example.com")

        with pytest.raises(MalformedPacketError):
            parse_query(wire[:-3])

    def test_missing_zero_label_is_malformed(self):
        header = DNSHeader(transaction_id=1, flags=0x0100, question_count=1)
        wire = header.to_bytes() + b"\x07example\x03com"

        with pytest.raises(MalformedPacketError):
            parse_query(wire)

    def test_compression_loop_is_malformed(self):
        """A name pointer that points at itself must not hang the parser"""
        header = DNSHeader(transaction_id=1, flags=0x0100, question_count=1)
        wire = header.to_bytes() + b"\xc0\x0c" + b"\x00\x01\x00\x01"

        with pytest.raises(MalformedPacketError):
            parse_query(wire)

    def test_pointer_outside_buffer_is_malformed(self):
        header = DNSHeader(transaction_id=1, flags=0x0100, question_count=1)
        wire = header.to_bytes() + b"\xc0\xff" + b"\x00\x01\x00\x01"

        with pytest.raises(MalformedPacketError):
            parse_query(wire)


class TestNames:
    """Test name encoding and decoding"""

    def test_encode_name(self):
        assert encode_name("example.com") == b"\x07example\x03com\x00"
        assert encode_name("example.com.") == b"\x07example\x03com\x00"
        assert encode_name(".") == b"\x00"

    def test_encode_rejects_long_label(self):
        with pytest.raises(ValueError):
            encode_name("a" * 64 + ".com")

    def test_decode_follows_pointer(self):
        data = b"\x07example\x03com\x00" + b"\x03www\xc0\x00"

        name, end = decode_name(data, 13)

        assert name == "www.example.com"
        assert end == len(data)


class TestAnswerResponse:
    """Test locally answered responses"""

    def test_answer_decodes_with_dnspython(self):
        """The answer carries the stored address, TTL and the query's id"""
        wire = make_query("team1.gis-ctf.local", query_id=0x4242)
        query = parse_query(wire)
        record = DNSRecord(DNSRecordType.A, "192.168.1.101", ttl=300)

        response = dns.message.from_wire(build_answer_response(query, record))

        assert response.id == 0x4242
        assert response.flags & dns.flags.QR
        assert response.rcode() == dns.rcode.NOERROR
        assert len(response.answer) == 1
        rrset = response.answer[0]
        assert rrset.name.to_text(omit_final_dot=True) == "team1.gis-ctf.local"
        assert rrset.rdtype == dns.rdatatype.A
        assert rrset.ttl == 300
        assert [rr.address for rr in rrset] == ["192.168.1.101"]

    def test_answer_layout(self):
        """Header flags, echoed question and compressed answer name"""
        wire = make_query("api.gis-ctf.local")
        query = parse_query(wire)
        record = DNSRecord(DNSRecordType.A, "127.0.0.1", ttl=60)

        response = build_answer_response(query, record)

        tid, flags, qd, an, ns, ar = struct.unpack("!HHHHHH", response[:12])
        assert tid == query.transaction_id
        assert flags == ANSWER_FLAGS
        assert (qd, an, ns, ar) == (1, 1, 0, 0)
        assert response[12 : len(wire)] == query.raw_question

        answer = response[len(wire) :]
        assert answer[:2] == b"\xc0\x0c"
        name_ptr, rtype, rclass, ttl, rdlength = struct.unpack("!HHHIH", answer[:12])
        assert (rtype, rclass, ttl, rdlength) == (1, 1, 60, 4)
        assert answer[12:] == bytes([127, 0, 0, 1])
        assert len(response) == len(wire) + 16

    def test_parse_answer_recovers_question(self):
        """Parsing an answer gives back the original domain and type"""
        query = parse_query(make_query("backend.gis-ctf.local"))
        record = DNSRecord(DNSRecordType.A, "127.0.0.1")

        reparsed = parse_query(build_answer_response(query, record))

        assert reparsed.domain == "backend.gis-ctf.local"
        assert reparsed.qtype == DNSRecordType.A

    def test_answer_echoes_question_case(self):
        query = parse_query(make_query("Team2.GIS-CTF.local"))
        record = DNSRecord(DNSRecordType.A, "192.168.1.102")

        response = build_answer_response(query, record)

        assert b"\x05Team2\x07GIS-CTF\x05local\x00" in response

    def test_non_a_record_is_unsupported(self):
        query = parse_query(make_query("mail.local", "MX"))
        record = DNSRecord(DNSRecordType.MX, "10 mx.mail.local")

        with pytest.raises(UnsupportedRecordTypeError):
            build_answer_response(query, record)

    def test_unknown_mnemonic_is_unsupported(self):
        query = parse_query(make_query("x.local"))
        record = DNSRecord("CAA", "0 issue ca.local")

        with pytest.raises(UnsupportedRecordTypeError):
            build_answer_response(query, record)

    def test_ttl_beyond_32_bits_rejected(self):
        """A TTL that cannot be packed raises ValueError, not struct.error"""
        query = parse_query(make_query("big.local"))
        record = SimpleNamespace(record_type="A", value="10.0.0.1", ttl=2**32)

        with pytest.raises(ValueError, match="TTL out of range"):
            build_answer_response(query, record)

    def test_answer_counts_only_parsed_questions(self):
        first = DNSQuestion("first.local", DNSRecordType.A).to_bytes()
        wire = raw_query([], qdcount=2) + first + b"\x06second"
        query = parse_query(wire)
        record = DNSRecord(DNSRecordType.A, "10.0.0.1")

        response = dns.message.from_wire(build_answer_response(query, record))

        assert len(response.question) == 1
        assert [rr.address for rr in response.answer[0]] == ["10.0.0.1"]

    def test_invalid_ipv4_value(self):
        query = parse_query(make_query("broken.local"))
        record = DNSRecord(DNSRecordType.A, "not-an-address")

        with pytest.raises(ValueError):
            build_answer_response(query, record)

    def test_oversized_response_rejected(self):
        """Responses never exceed the 512 byte UDP limit"""
        labels = ".".join(["a" * 63] * 3)
        questions = [DNSQuestion(labels, DNSRecordType.A)] * 3
        query = parse_query(raw_query(questions))
        record = DNSRecord(DNSRecordType.A, "10.0.0.1")

        with pytest.raises(ValueError):
            build_answer_response(query, record)


class TestErrorResponse:
    """Test synthesized error responses"""

    def test_error_response_only_changes_flags(self):
        wire = make_query("unknown.example", query_id=0x7777)

        response = build_error_response(wire)

        assert len(response) == len(wire)
        assert response[:2] == wire[:2]
        assert struct.unpack("!H", response[2:4])[0] == ERROR_FLAGS
        assert response[4:] == wire[4:]

    def test_error_response_decodes_as_nxdomain(self):
        response = dns.message.from_wire(build_error_response(make_query("x.example")))

        assert response.flags & dns.flags.QR
        assert response.rcode() == dns.rcode.NXDOMAIN

    def test_truncated_query_still_gets_error(self):
        """A datagram too short for a header is padded to one"""
        response = build_error_response(b"\x12\x34\x01")

        assert len(response) == HEADER_SIZE
        assert response[:2] == b"\x12\x34"
        assert struct.unpack("!H", response[2:4])[0] == ERROR_FLAGS
        assert response[4:] == b"\x00" * 8

    def test_empty_datagram_gets_error(self):
        response = build_error_response(b"")

        assert len(response) == HEADER_SIZE
        assert DNSHeader.from_bytes(response).flags & 0x0F == 3


class TestRecordTypes:
    """Test record type helpers"""

    def test_record_type_code_is_case_insensitive(self):
        assert record_type_code("a") == DNSRecordType.A
        assert record_type_code("Aaaa") == DNSRecordType.AAAA
        assert record_type_code(" mx ") == DNSRecordType.MX

    def test_record_type_code_generic_forms(self):
        assert record_type_code("TYPE65") == 65
        assert record_type_code("type257") == 257
        assert record_type_code("99") == 99

    def test_record_type_code_unknown_mnemonic(self):
        with pytest.raises(UnsupportedRecordTypeError, match="CAA"):
            record_type_code("caa")
        with pytest.raises(UnsupportedRecordTypeError):
            record_type_code("TYPE70000")

    def test_record_type_name(self):
        assert record_type_name(1) == "A"
        assert record_type_name(28) == "AAAA"
        assert record_type_name(999) == "TYPE999"

    def test_header_round_trip_fields(self):
        header = DNSHeader.from_bytes(struct.pack("!HHHHHH", 1, ERROR_FLAGS, 1, 0, 0, 0))

        assert header.transaction_id == 1
        assert header.flags == ERROR_FLAGS
        assert header.question_count == 1
        assert header.to_bytes() == struct.pack("!HHHHHH", 1, ERROR_FLAGS, 1, 0, 0, 0)
