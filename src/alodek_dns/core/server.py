"""
DNS Server Core

This module implements the query dispatcher and server loop:
- Async UDP listener using asyncio.DatagramProtocol
- One task per datagram so slow upstreams never hold up other queries
- Local answers from the record store, everything else forwarded upstream
- Malformed packets answered with an error response instead of crashing
"""

import asyncio
import errno
import logging
import socket
import struct
import time
from typing import Any, Dict, Optional, Tuple

from ..dns_logging import DNSRequestTracker, extract_dns_info
from .forwarder import ForwardOutcome, UpstreamForwarder
from .message import (
    DNSQuery,
    DNSResponseCode,
    MalformedPacketError,
    build_answer_response,
    build_error_response,
    parse_query,
)
from .records import DNSRecord, RecordStore

logger = logging.getLogger(__name__)

ERROR_RESPONSE_CODE = DNSResponseCode.NXDOMAIN.name


class ServerBindError(RuntimeError):
    """The listening socket could not be bound"""


def describe_bind_error(exc: OSError, bind_address: str, dns_port: int) -> str:
    """Turn a bind failure into an actionable diagnostic"""
    if exc.errno in (errno.EACCES, errno.EPERM):
        return (
            f"Permission denied: cannot bind to {bind_address}:{dns_port}. "
            f"Run with elevated privileges or use a port above 1024 "
            f"(for example --port 5353)."
        )
    if exc.errno == errno.EADDRINUSE:
        return (
            f"Address {bind_address}:{dns_port} is already in use. "
            f"Stop the other DNS service or choose another port with --port."
        )
    if exc.errno == errno.EADDRNOTAVAIL:
        return (
            f"Address {bind_address} is not available on this host. "
            f"Check server.bind_address."
        )
    return f"Cannot bind to {bind_address}:{dns_port}: {exc}"


class DNSUDPProtocol(asyncio.DatagramProtocol):
    """Async UDP protocol handler for DNS queries"""

    def __init__(self, server: "DNSServer"):
        self.server = server
        self.transport = None

    def connection_made(self, transport):
        """Called when UDP socket is ready"""
        self.transport = transport
        logger.info(
            f"DNS UDP server listening on {transport.get_extra_info('sockname')}"
        )

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Handle incoming UDP DNS queries"""
        if not self.server.is_accepting:
            logger.debug(f"Dropping datagram from {addr[0]} during shutdown")
            return

        task = asyncio.create_task(self._handle_request(data, addr))

        # Store task reference to prevent garbage collection
        self.server._background_tasks.add(task)
        task.add_done_callback(self.server._background_tasks.discard)

    async def _handle_request(self, data: bytes, addr: Tuple[str, int]):
        """Process DNS query and send response"""
        try:
            response_data = await self.server.handle_dns_request(data, addr)
            self.transport.sendto(response_data, addr)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error handling UDP request from {addr[0]}: {e}")

    def error_received(self, exc):
        """Handle UDP errors"""
        logger.error(f"DNS UDP protocol error: {exc}")


class DNSServer:
    """Query dispatcher owning the listening socket"""

    def __init__(
        self,
        config,
        store: RecordStore,
        forwarder: Optional[UpstreamForwarder] = None,
        tracker: Optional[DNSRequestTracker] = None,
    ):
        self.config = config
        self.store = store
        self.forwarder = forwarder or UpstreamForwarder(
            config.upstream_servers, timeout=config.server.upstream_timeout
        )
        self.tracker = tracker or DNSRequestTracker(
            log_requests=config.logging.enable_request_logging
        )

        # Server state
        self._transport = None
        self._background_tasks = set()
        self._is_running = False
        self._accepting = False

        self._stats = {
            "total_queries": 0,
            "local_hits": 0,
            "forwarded": 0,
            "upstream_replies": 0,
            "upstream_timeouts": 0,
            "upstream_failures": 0,
            "malformed": 0,
            "errors": 0,
            "start_time": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_accepting(self) -> bool:
        return self._accepting

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")

    async def start(self) -> None:
        """Bind the UDP listener.

        Raises:
            ServerBindError: if the address cannot be bound
        """
        if self._is_running:
            logger.warning("Server is already running")
            return

        bind_address = self.config.server.bind_address
        dns_port = self.config.server.dns_port

        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: DNSUDPProtocol(self),
                local_addr=(bind_address, dns_port),
                family=socket.AF_INET,
            )
        except OSError as e:
            message = describe_bind_error(e, bind_address, dns_port)
            logger.error(f"Failed to start DNS server: {message}")
            raise ServerBindError(message) from e

        self._transport = transport
        self._stats["start_time"] = time.time()
        self._is_running = True
        self._accepting = True

        upstreams = ", ".join(str(s) for s in self.forwarder.upstream_servers)
        logger.info(f"DNS server started on {bind_address}:{dns_port}")
        logger.info(f"Serving {len(self.store)} local domains, upstream DNS: {upstreams}")

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the DNS server.

        New datagrams are ignored; requests already in flight get up to
        ``timeout`` seconds (default ``server.shutdown_timeout``) to finish
        before they are cancelled.
        """
        if not self._is_running:
            return

        logger.info("Stopping DNS server...")
        self._accepting = False

        if timeout is None:
            timeout = self.config.server.shutdown_timeout

        if self._background_tasks:
            _, pending = await asyncio.wait(
                set(self._background_tasks), timeout=timeout
            )
            if pending:
                logger.warning(
                    f"Cancelling {len(pending)} in-flight requests at shutdown"
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        if self._transport:
            self._transport.close()
            self._transport = None

        self._is_running = False
        logger.info("DNS server stopped")

    async def handle_dns_request(
        self, data: bytes, client_address: Tuple[str, int]
    ) -> bytes:
        """Produce the datagram to send back for one inbound datagram.

        Every path returns a response: a local answer, the upstream reply, or
        an error response for malformed queries and failed forwards.
        """
        self._stats["total_queries"] += 1

        try:
            query = parse_query(data)
        except MalformedPacketError as e:
            logger.warning(
                f"Malformed DNS packet from {client_address[0]}:{client_address[1]}: {e}"
            )
            self._stats["malformed"] += 1
            request_id = self.tracker.start_request(client_address, "UNKNOWN", "")
            self.tracker.end_request(
                request_id=request_id,
                client_address=client_address,
                query_type="UNKNOWN",
                domain="",
                outcome="malformed",
                response_code=ERROR_RESPONSE_CODE,
                error=str(e),
            )
            return build_error_response(data)

        request_id = self.tracker.start_request(
            client_address, query.type_name, query.domain
        )

        record = self.store.lookup(query.domain)
        if record is not None:
            return self._answer_locally(request_id, data, client_address, query, record)

        return await self._forward(request_id, data, client_address, query)

    def _answer_locally(
        self,
        request_id: str,
        data: bytes,
        client_address: Tuple[str, int],
        query: DNSQuery,
        record: DNSRecord,
    ) -> bytes:
        try:
            response = build_answer_response(query, record)
        except (ValueError, struct.error) as e:
            logger.error(
                f"Cannot answer {query.domain} from local "
                f"{record.record_type} record: {e}"
            )
            self._stats["errors"] += 1
            self.tracker.end_request(
                request_id=request_id,
                client_address=client_address,
                query_type=query.type_name,
                domain=query.domain,
                outcome="local_error",
                response_code=ERROR_RESPONSE_CODE,
                error=str(e),
            )
            return build_error_response(data)

        self._stats["local_hits"] += 1
        self.tracker.end_request(
            request_id=request_id,
            client_address=client_address,
            query_type=query.type_name,
            domain=query.domain,
            outcome="local_hit",
            response_code=DNSResponseCode.NOERROR.name,
            response_data=[record.value],
        )
        return response

    async def _forward(
        self,
        request_id: str,
        data: bytes,
        client_address: Tuple[str, int],
        query: DNSQuery,
    ) -> bytes:
        self._stats["forwarded"] += 1
        result = await self.forwarder.forward(data, client_address, query)

        if result.outcome is ForwardOutcome.RELAYED:
            self._stats["upstream_replies"] += 1
            info = extract_dns_info(result.response)
            self.tracker.end_request(
                request_id=request_id,
                client_address=client_address,
                query_type=query.type_name,
                domain=query.domain,
                outcome=result.outcome.value,
                response_code=info["response_code"],
                upstream_server=result.upstream,
                response_data=info["response_data"],
            )
        else:
            if result.outcome is ForwardOutcome.TIMEOUT:
                self._stats["upstream_timeouts"] += 1
            else:
                self._stats["upstream_failures"] += 1
            self.tracker.end_request(
                request_id=request_id,
                client_address=client_address,
                query_type=query.type_name,
                domain=query.domain,
                outcome=result.outcome.value,
                response_code=ERROR_RESPONSE_CODE,
                upstream_server=result.upstream,
                error=result.error,
            )

        return result.response

    def get_stats(self) -> Dict[str, Any]:
        """Get server statistics"""
        uptime = (
            time.time() - self._stats["start_time"] if self._stats["start_time"] else 0
        )

        return {
            "uptime_seconds": round(uptime, 2),
            "total_queries": self._stats["total_queries"],
            "local_hits": self._stats["local_hits"],
            "forwarded": self._stats["forwarded"],
            "upstream_replies": self._stats["upstream_replies"],
            "upstream_timeouts": self._stats["upstream_timeouts"],
            "upstream_failures": self._stats["upstream_failures"],
            "malformed": self._stats["malformed"],
            "errors": self._stats["errors"],
            "in_flight": len(self.forwarder.pending),
            "local_records": len(self.store),
            "is_running": self._is_running,
        }
