"""
DNS Request/Response Logging

This module provides DNS-specific logging: one line per inbound query and one
per response, request ID tracking with timing, and a bounded history of recent
requests for the admin API.
"""

import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import dns.exception
import dns.message
import dns.rcode
import dns.rdatatype

from .logger import get_logger


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DNSRequestLogger:
    """DNS request/response logger with structured output."""

    def __init__(self):
        """Initialize DNS logger."""
        self.logger = get_logger("dns_requests")

    def log_query(
        self,
        request_id: str,
        client_address: Tuple[str, int],
        query_type: str,
        domain: str,
    ) -> None:
        """Log an inbound query.

        Args:
            request_id: Unique request identifier
            client_address: (ip, port) of the requester
            query_type: DNS query type (A, AAAA, CNAME, etc.)
            domain: Domain name being queried
        """
        self.logger.info(
            "DNS query",
            direction="in",
            request_id=request_id,
            domain=domain,
            query_type=query_type,
            peer=f"{client_address[0]}:{client_address[1]}",
        )

    def log_response(
        self,
        request_id: str,
        client_address: Tuple[str, int],
        query_type: str,
        domain: str,
        outcome: str,
        response_code: str,
        response_time_ms: float,
        upstream_server: Optional[str] = None,
        response_data: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> None:
        """Log the datagram sent back for a query.

        Args:
            request_id: Unique request identifier
            client_address: (ip, port) of the requester
            query_type: DNS query type
            domain: Domain name being queried
            outcome: local_hit, relayed, timeout, send_failed or malformed
            response_code: DNS response code (NOERROR, NXDOMAIN, etc.)
            response_time_ms: Response time in milliseconds
            upstream_server: Upstream server used (if any)
            response_data: Answer data (IP addresses, etc.)
            error: Error message (if any)
        """
        log_entry = {
            "direction": "out",
            "request_id": request_id,
            "domain": domain,
            "query_type": query_type,
            "peer": f"{client_address[0]}:{client_address[1]}",
            "outcome": outcome,
            "response_code": response_code,
            "response_time_ms": round(response_time_ms, 2),
            "upstream_server": upstream_server,
            "response_data": response_data or [],
        }

        if error:
            log_entry["error"] = error
            self.logger.warning("DNS response", **log_entry)
        else:
            self.logger.info("DNS response", **log_entry)


class DNSRequestTracker:
    """Tracks DNS requests for timing, logging and recent-history queries."""

    def __init__(self, max_recent_requests: int = 1000, log_requests: bool = True):
        """Initialize request tracker.

        Args:
            max_recent_requests: Maximum number of recent requests kept in memory
            log_requests: Emit a log line per query and per response
        """
        self.active_requests: Dict[str, float] = {}
        self.log_requests = log_requests
        self.dns_logger = DNSRequestLogger() if log_requests else None

        self.recent_requests = deque(maxlen=max_recent_requests)
        self.max_recent_requests = max_recent_requests
        self.outcome_counts: Dict[str, int] = {}

    def start_request(
        self,
        client_address: Tuple[str, int],
        query_type: str,
        domain: str,
        request_id: Optional[str] = None,
    ) -> str:
        """Start tracking a DNS request.

        Returns:
            Request ID for tracking
        """
        if request_id is None:
            request_id = str(uuid.uuid4())

        self.active_requests[request_id] = time.time()
        if self.dns_logger:
            self.dns_logger.log_query(request_id, client_address, query_type, domain)
        return request_id

    def end_request(
        self,
        request_id: str,
        client_address: Tuple[str, int],
        query_type: str,
        domain: str,
        outcome: str,
        response_code: str,
        upstream_server: Optional[str] = None,
        response_data: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> float:
        """End tracking a DNS request and log the result.

        Returns:
            Response time in milliseconds
        """
        start_time = self.active_requests.pop(request_id, time.time())
        response_time_ms = (time.time() - start_time) * 1000

        request_record = {
            "timestamp": _utc_timestamp(),
            "request_id": request_id,
            "client_ip": client_address[0],
            "client_port": client_address[1],
            "query_type": query_type,
            "domain": domain,
            "outcome": outcome,
            "response_code": response_code,
            "response_time_ms": round(response_time_ms, 2),
            "upstream_server": upstream_server,
            "response_data": response_data or [],
        }
        if error:
            request_record["error"] = error

        self.recent_requests.appendleft(request_record)
        self.outcome_counts[outcome] = self.outcome_counts.get(outcome, 0) + 1

        if self.dns_logger:
            self.dns_logger.log_response(
                request_id=request_id,
                client_address=client_address,
                query_type=query_type,
                domain=domain,
                outcome=outcome,
                response_code=response_code,
                response_time_ms=response_time_ms,
                upstream_server=upstream_server,
                response_data=response_data,
                error=error,
            )

        return response_time_ms

    def get_recent_requests(
        self, limit: int = 50, offset: int = 0, domain: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get recent DNS requests, newest first.

        Args:
            limit: Maximum number of requests to return
            offset: Number of requests to skip
            domain: Optional case-insensitive substring filter on the domain
        """
        requests_list = list(self.recent_requests)

        if domain:
            needle = domain.lower()
            requests_list = [
                request
                for request in requests_list
                if needle in request.get("domain", "").lower()
            ]

        return requests_list[offset : offset + limit]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "recent_requests": len(self.recent_requests),
            "active_requests": len(self.active_requests),
            "outcomes": dict(self.outcome_counts),
        }


def extract_dns_info(wire: bytes) -> Dict[str, Any]:
    """Extract response code and answers from a raw DNS message for logging.

    Args:
        wire: DNS message in wire format, usually an upstream reply

    Returns:
        Dictionary with domain, query_type, response_code and response_data
    """
    info = {
        "domain": "",
        "query_type": "",
        "response_code": "UNKNOWN",
        "response_data": [],
    }

    try:
        dns_message = dns.message.from_wire(wire)
    except (dns.exception.DNSException, ValueError) as e:
        logger = get_logger("dns_parser")
        logger.warning("Failed to parse DNS message", error=str(e))
        return info

    if dns_message.question:
        question = dns_message.question[0]
        info["domain"] = question.name.to_text(omit_final_dot=True)
        info["query_type"] = dns.rdatatype.to_text(question.rdtype)

    info["response_code"] = dns.rcode.to_text(dns_message.rcode())

    info["response_data"] = [
        rr.to_text() for rrset in dns_message.answer for rr in rrset
    ]

    return info
