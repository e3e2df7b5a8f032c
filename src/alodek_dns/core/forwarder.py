"""
Upstream Forwarder

This module relays queries the local record store cannot answer:
- One upstream resolver picked uniformly at random per query
- A fresh datagram endpoint per query, never pooled or reused
- First of reply-or-deadline wins; the loser is a no-op
- Send failures and timeouts become a synthesized error response
"""

import asyncio
import logging
import random
import socket
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .message import DNSQuery, build_error_response

logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_PORT = 53
DEFAULT_UPSTREAM_TIMEOUT = 5.0


@dataclass
class UpstreamServer:
    """Upstream DNS server address"""

    address: str
    port: int = DEFAULT_UPSTREAM_PORT

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass
class PendingForward:
    """Correlation state for one in-flight forwarded query"""

    client_address: Tuple[str, int]
    transaction_id: int
    upstream: UpstreamServer
    deadline: float


class ForwardOutcome(Enum):
    """How a forwarded query ended"""

    RELAYED = "relayed"
    TIMEOUT = "timeout"
    SEND_FAILED = "send_failed"


@dataclass
class ForwardResult:
    """Datagram to send back to the client plus what produced it"""

    response: bytes
    upstream: str
    outcome: ForwardOutcome
    error: Optional[str] = None


class UpstreamReplyProtocol(asyncio.DatagramProtocol):
    """Resolves a future with the first datagram (or error) on the endpoint"""

    def __init__(self, future: asyncio.Future):
        self.future = future

    def datagram_received(self, data: bytes, addr):
        if not self.future.done():
            self.future.set_result(data)

    def error_received(self, exc):
        if not self.future.done():
            self.future.set_exception(exc)

    def connection_lost(self, exc):
        if exc is not None and not self.future.done():
            self.future.set_exception(exc)


def parse_upstream_servers(server_addresses: List[str]) -> List[UpstreamServer]:
    """Parse ``host`` or ``host:port`` entries into upstream servers"""
    servers = []
    for addr in server_addresses:
        if addr.count(":") == 1:
            host, port = addr.rsplit(":", 1)
            servers.append(UpstreamServer(address=host, port=int(port)))
        else:
            servers.append(UpstreamServer(address=addr))
    return servers


class UpstreamForwarder:
    """Relays raw queries to upstream resolvers with a fixed deadline"""

    def __init__(
        self,
        upstream_servers: List[str],
        timeout: float = DEFAULT_UPSTREAM_TIMEOUT,
    ):
        if not upstream_servers:
            raise ValueError("At least one upstream server must be configured")

        self.upstream_servers = parse_upstream_servers(upstream_servers)
        self.timeout = timeout
        self.pending: Dict[str, PendingForward] = {}

    def choose_upstream(self) -> UpstreamServer:
        return random.choice(self.upstream_servers)

    async def forward(
        self, data: bytes, client_address: Tuple[str, int], query: DNSQuery
    ) -> ForwardResult:
        """Relay ``data`` unmodified to one upstream and wait for its reply.

        Always produces a datagram for the client: the upstream reply verbatim,
        or an error response when the upstream is unreachable or too slow.
        """
        upstream = self.choose_upstream()
        loop = asyncio.get_running_loop()
        forward_id = str(uuid.uuid4())
        self.pending[forward_id] = PendingForward(
            client_address=client_address,
            transaction_id=query.transaction_id,
            upstream=upstream,
            deadline=loop.time() + self.timeout,
        )

        reply_future = loop.create_future()
        transport = None

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: UpstreamReplyProtocol(reply_future),
                remote_addr=(upstream.address, upstream.port),
                family=socket.AF_INET,
            )
            transport.sendto(data)

            reply = await asyncio.wait_for(reply_future, timeout=self.timeout)

            logger.debug(
                f"Relayed upstream reply for {query.domain} from {upstream} "
                f"to {client_address[0]}:{client_address[1]}"
            )
            return ForwardResult(
                response=reply,
                upstream=str(upstream),
                outcome=ForwardOutcome.RELAYED,
            )

        except asyncio.TimeoutError:
            logger.warning(
                f"Upstream {upstream} timed out after {self.timeout}s "
                f"for {query.domain}"
            )
            return ForwardResult(
                response=build_error_response(data),
                upstream=str(upstream),
                outcome=ForwardOutcome.TIMEOUT,
                error=f"Upstream {upstream} timed out after {self.timeout}s",
            )

        except OSError as e:
            logger.error(
                f"Error forwarding {query.domain} to upstream {upstream}: "
                f"{type(e).__name__}: {e}"
            )
            return ForwardResult(
                response=build_error_response(data),
                upstream=str(upstream),
                outcome=ForwardOutcome.SEND_FAILED,
                error=f"{type(e).__name__}: {e}",
            )

        finally:
            if transport is not None:
                transport.close()
            self.pending.pop(forward_id, None)
