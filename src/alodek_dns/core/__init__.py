"""
DNS Server Core Module

This module exports the wire codec, record store, upstream forwarder and
query dispatcher.
"""

from .forwarder import (
    ForwardOutcome,
    ForwardResult,
    UpstreamForwarder,
    UpstreamServer,
)
from .message import (
    DNSClass,
    DNSHeader,
    DNSQuery,
    DNSQuestion,
    DNSRecordType,
    DNSResponseCode,
    MalformedPacketError,
    UnsupportedRecordTypeError,
    build_answer_response,
    build_error_response,
    parse_query,
    record_type_code,
)
from .records import DNSRecord, RecordStore
from .server import DNSServer, ServerBindError

__all__ = [
    # Main server
    "DNSServer",
    "ServerBindError",
    # Records
    "DNSRecord",
    "RecordStore",
    # Forwarding
    "UpstreamForwarder",
    "UpstreamServer",
    "ForwardOutcome",
    "ForwardResult",
    # Message components
    "DNSQuery",
    "DNSQuestion",
    "DNSHeader",
    "MalformedPacketError",
    "UnsupportedRecordTypeError",
    # Enums
    "DNSRecordType",
    "DNSClass",
    "DNSResponseCode",
    # Codec functions
    "parse_query",
    "record_type_code",
    "build_answer_response",
    "build_error_response",
]
