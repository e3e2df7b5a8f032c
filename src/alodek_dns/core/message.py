"""
DNS Wire Codec

This module implements the RFC 1035 wire handling the forwarder needs:
- DNS header parsing/construction
- Question section parsing with bounds checking
- Answer construction with a compression pointer back to the question
- Error responses synthesized from the original datagram
"""

import ipaddress
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

HEADER_SIZE = 12
MAX_UDP_SIZE = 512
MAX_LABEL_LENGTH = 63
MAX_POINTER_JUMPS = 16
MAX_TTL = 0xFFFFFFFF

# QR | RD | RA, RCODE 0
ANSWER_FLAGS = 0x8180
# QR | RD | RA, RCODE 3 (name error)
ERROR_FLAGS = 0x8183

# Pointer to the first question name, which always starts right after the header
QUESTION_NAME_POINTER = 0xC000 | HEADER_SIZE


class MalformedPacketError(ValueError):
    """Raised when a datagram cannot be parsed as a DNS query"""


class UnsupportedRecordTypeError(ValueError):
    """Raised when a record type has no resource data encoding"""


class DNSResponseCode(IntEnum):
    """DNS Response Codes"""

    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5


class DNSRecordType(IntEnum):
    """DNS Record Types"""

    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    SRV = 33
    ANY = 255


class DNSClass(IntEnum):
    """DNS Classes"""

    IN = 1
    CS = 2
    CH = 3
    HS = 4
    ANY = 255


def record_type_name(rtype: int) -> str:
    """Get human-readable name for a DNS record type code"""
    try:
        return DNSRecordType(rtype).name
    except ValueError:
        return f"TYPE{rtype}"


def record_type_code(name: str) -> int:
    """Resolve a type mnemonic ("A", "a", "TYPE65", "65") to its code.

    Raises:
        UnsupportedRecordTypeError: for mnemonics without a known code
    """
    mnemonic = str(name).strip().upper()
    if mnemonic in DNSRecordType.__members__:
        return DNSRecordType[mnemonic]

    digits = mnemonic[4:] if mnemonic.startswith("TYPE") else mnemonic
    if digits.isdigit() and int(digits) <= 0xFFFF:
        return int(digits)

    raise UnsupportedRecordTypeError(f"No type code for {mnemonic} records")


@dataclass
class DNSHeader:
    """DNS Message Header"""

    transaction_id: int
    flags: int
    question_count: int = 0
    answer_count: int = 0
    authority_count: int = 0
    additional_count: int = 0

    def to_bytes(self) -> bytes:
        """Convert header to bytes"""
        return struct.pack(
            "!HHHHHH",
            self.transaction_id,
            self.flags,
            self.question_count,
            self.answer_count,
            self.authority_count,
            self.additional_count,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "DNSHeader":
        """Parse header from bytes"""
        if len(data) < HEADER_SIZE:
            raise MalformedPacketError(
                f"Invalid DNS header: {len(data)} bytes, need {HEADER_SIZE}"
            )

        tid, flags, qcount, acount, authcount, addcount = struct.unpack(
            "!HHHHHH", data[:HEADER_SIZE]
        )

        return cls(
            transaction_id=tid,
            flags=flags,
            question_count=qcount,
            answer_count=acount,
            authority_count=authcount,
            additional_count=addcount,
        )


@dataclass
class DNSQuestion:
    """DNS Question Section"""

    name: str
    qtype: int
    qclass: int = DNSClass.IN

    def to_bytes(self) -> bytes:
        """Convert question to bytes"""
        return encode_name(self.name) + struct.pack("!HH", self.qtype, self.qclass)

    @classmethod
    def parse(cls, data: bytes, offset: int) -> Tuple["DNSQuestion", int]:
        """Parse question from bytes at given offset"""
        name, new_offset = decode_name(data, offset)
        if new_offset + 4 > len(data):
            raise MalformedPacketError(
                "Invalid question: not enough data for type and class"
            )

        qtype, qclass = struct.unpack("!HH", data[new_offset : new_offset + 4])
        return cls(name=name, qtype=qtype, qclass=qclass), new_offset + 4


@dataclass
class DNSQuery:
    """A parsed inbound query; only the first question is interpreted"""

    transaction_id: int
    flags: int
    domain: str
    qtype: int
    qclass: int
    question_count: int
    raw_header: bytes
    raw_question: bytes

    @property
    def type_name(self) -> str:
        return record_type_name(self.qtype)


def encode_name(name: str) -> bytes:
    """Encode domain name using DNS label encoding"""
    if name in ("", "."):
        return b"\x00"

    result = b""
    for label in name.rstrip(".").split("."):
        label_bytes = label.encode("ascii")
        if not label_bytes or len(label_bytes) > MAX_LABEL_LENGTH:
            raise ValueError(f"Invalid label length in name: {name}")
        result += struct.pack("!B", len(label_bytes)) + label_bytes
    return result + b"\x00"


def decode_name(data: bytes, offset: int) -> Tuple[str, int]:
    """Decode a DNS name, following compression pointers.

    Returns the dotted name (no trailing dot, empty string for the root) and
    the offset just past the name as it appears at ``offset``.
    """
    labels = []
    end_offset = None
    jumps = 0

    while True:
        if offset >= len(data):
            raise MalformedPacketError("Invalid name: no terminating zero label")

        length = data[offset]

        if length == 0:
            offset += 1
            break
        elif (length & 0xC0) == 0xC0:
            if offset + 1 >= len(data):
                raise MalformedPacketError("Invalid compression pointer")
            jumps += 1
            if jumps > MAX_POINTER_JUMPS:
                raise MalformedPacketError("Invalid name: compression loop")
            pointer = ((length & 0x3F) << 8) | data[offset + 1]
            if end_offset is None:
                end_offset = offset + 2
            offset = pointer
        elif length > MAX_LABEL_LENGTH:
            raise MalformedPacketError(f"Invalid label length: {length}")
        else:
            if offset + length + 1 > len(data):
                raise MalformedPacketError("Invalid label: length exceeds data")
            label = data[offset + 1 : offset + 1 + length]
            labels.append(label.decode("ascii", errors="replace"))
            offset += length + 1

    return ".".join(labels), end_offset if end_offset is not None else offset


def parse_query(data: bytes) -> DNSQuery:
    """Parse a raw query datagram.

    Only the first question has to be readable. Later questions are kept
    while they parse; the first unreadable one ends the question section and
    ``question_count`` reflects what was kept.

    Raises:
        MalformedPacketError: if the header or first question is truncated
            or otherwise unreadable
    """
    header = DNSHeader.from_bytes(data)
    if header.question_count == 0:
        raise MalformedPacketError("Query carries no question")

    first, offset = DNSQuestion.parse(data, HEADER_SIZE)
    question_count = 1
    while question_count < header.question_count:
        try:
            _, offset = DNSQuestion.parse(data, offset)
        except MalformedPacketError:
            break
        question_count += 1

    return DNSQuery(
        transaction_id=header.transaction_id,
        flags=header.flags,
        domain=first.name,
        qtype=first.qtype,
        qclass=first.qclass,
        question_count=question_count,
        raw_header=bytes(data[:HEADER_SIZE]),
        raw_question=bytes(data[HEADER_SIZE:offset]),
    )


def encode_rdata(record_type: int, value: str) -> bytes:
    """Encode resource data; only A records have an encoding"""
    if record_type != DNSRecordType.A:
        raise UnsupportedRecordTypeError(
            f"No resource data encoding for {record_type_name(record_type)} records"
        )

    try:
        return ipaddress.IPv4Address(value).packed
    except ValueError:
        raise ValueError(f"Invalid IPv4 address for A record: {value!r}") from None


def build_answer_response(query: DNSQuery, record) -> bytes:
    """Build a single-answer response for a locally known record.

    The parsed question section is echoed verbatim and the answer name is a
    pointer back to it.
    """
    rtype = record_type_code(record.record_type)
    rdata = encode_rdata(rtype, record.value)
    if not 0 <= record.ttl <= MAX_TTL:
        raise ValueError(f"TTL out of range: {record.ttl}")

    header = bytearray(query.raw_header)
    # ANCOUNT=1; authority and additional sections are not echoed
    struct.pack_into(
        "!HHHHH", header, 2, ANSWER_FLAGS, query.question_count, 1, 0, 0
    )

    answer = struct.pack(
        "!HHHIH",
        QUESTION_NAME_POINTER,
        rtype,
        DNSClass.IN,
        record.ttl,
        len(rdata),
    )

    response = bytes(header) + query.raw_question + answer + rdata
    if len(response) > MAX_UDP_SIZE:
        raise ValueError(
            f"Response of {len(response)} bytes exceeds {MAX_UDP_SIZE} byte limit"
        )
    return response


def build_error_response(data: bytes) -> bytes:
    """Flip the flags of the original datagram to a name-error response.

    Everything but the flags is preserved. Datagrams too short to hold a
    header are padded so the client still receives a well-formed reply.
    """
    if len(data) >= HEADER_SIZE:
        response = bytearray(data)
    else:
        response = bytearray(bytes(data[:2]).ljust(HEADER_SIZE, b"\x00"))
    struct.pack_into("!H", response, 2, ERROR_FLAGS)
    return bytes(response)
