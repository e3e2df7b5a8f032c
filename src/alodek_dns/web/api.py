"""
DNS Server Web API

Provides REST API endpoints for:
- Server status and statistics
- Local record management
- Recent query history
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict

import psutil
from aiohttp import web
from aiohttp.web import Request, Response

from ..config.validators import validate_domain, validate_ttl
from ..core.records import DEFAULT_TTL, normalize_domain

MAX_QUERY_LOG_LIMIT = 1000


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def setup_api_routes(app: web.Application, dns_server_app: Callable) -> None:
    """Setup API routes.

    Args:
        app: aiohttp application
        dns_server_app: Callable returning the running DNS server application
            (a weak reference), or None once it is gone
    """
    api = APIHandler(dns_server_app)

    # Server status and stats
    app.router.add_get("/api/status", api.get_server_status)

    # Local records
    app.router.add_get("/api/records", api.list_records)
    app.router.add_post("/api/records", api.add_record)
    app.router.add_delete("/api/records/{domain}", api.delete_record)

    # Query logs and history
    app.router.add_get("/api/queries", api.get_query_logs)


class APIHandler:
    """Handles all API endpoints."""

    def __init__(self, dns_server_app: Callable):
        self._dns_server_app = dns_server_app

    def get_dns_server_app(self):
        """Get DNS server application instance."""
        return self._dns_server_app()

    def _unavailable(self) -> Response:
        return web.json_response({"error": "DNS server not available"}, status=503)

    async def get_server_status(self, request: Request) -> Response:
        """Get basic server status and statistics."""
        dns_app = self.get_dns_server_app()
        if not dns_app or not dns_app.dns_server:
            return self._unavailable()

        dns_stats = dns_app.dns_server.get_stats()
        tracker_stats = dns_app.dns_server.tracker.get_stats()

        process = psutil.Process()

        return web.json_response(
            {
                "server": {
                    "status": "running" if dns_stats["is_running"] else "stopped",
                    "uptime_seconds": dns_stats["uptime_seconds"],
                    "dns_port": dns_app.config.server.dns_port,
                    "web_port": dns_app.config.server.web_port,
                    "bind_address": dns_app.config.server.bind_address,
                    "upstream_servers": list(dns_app.config.upstream_servers),
                },
                "dns": dns_stats,
                "requests": tracker_stats,
                "system": {
                    "memory_mb": round(process.memory_info().rss / (1024 * 1024), 2),
                },
                "timestamp": _timestamp(),
            }
        )

    async def list_records(self, request: Request) -> Response:
        """List all locally served records."""
        dns_app = self.get_dns_server_app()
        if not dns_app:
            return self._unavailable()

        records = [
            {"domain": domain, **record.to_dict()}
            for domain, record in sorted(dns_app.store.list())
        ]

        return web.json_response(
            {"records": records, "total": len(records), "timestamp": _timestamp()}
        )

    async def add_record(self, request: Request) -> Response:
        """Add or replace a local record."""
        dns_app = self.get_dns_server_app()
        if not dns_app:
            return self._unavailable()

        try:
            body = await request.json()
        except ValueError:
            return web.json_response({"error": "Request body must be JSON"}, status=400)

        if not isinstance(body, dict):
            return web.json_response(
                {"error": "Request body must be a JSON object"}, status=400
            )

        domain = body.get("domain")
        record_type = body.get("type", "A")
        value = body.get("value")
        ttl = body.get("ttl", DEFAULT_TTL)

        if not validate_domain(domain):
            return web.json_response({"error": f"Invalid domain: {domain}"}, status=400)
        if not isinstance(value, str) or not value:
            return web.json_response({"error": "Record value is required"}, status=400)
        if not validate_ttl(ttl):
            return web.json_response({"error": f"Invalid TTL: {ttl}"}, status=400)

        try:
            record = dns_app.store.add(domain, record_type, value, ttl)
        except ValueError as ex:
            return web.json_response({"error": str(ex)}, status=400)

        return web.json_response(
            {"domain": normalize_domain(domain), **record.to_dict()}, status=201
        )

    async def delete_record(self, request: Request) -> Response:
        """Remove a local record."""
        dns_app = self.get_dns_server_app()
        if not dns_app:
            return self._unavailable()

        domain = request.match_info["domain"]
        if not dns_app.store.remove(domain):
            return web.json_response(
                {"error": f"No DNS record for {domain}"}, status=404
            )

        return web.json_response({"removed": domain, "timestamp": _timestamp()})

    async def get_query_logs(self, request: Request) -> Response:
        """Get recent DNS query logs."""
        dns_app = self.get_dns_server_app()
        if not dns_app or not dns_app.dns_server:
            return self._unavailable()

        try:
            limit = int(request.query.get("limit", 100))
            offset = int(request.query.get("offset", 0))
        except ValueError as ex:
            return web.json_response(
                {"error": f"Invalid query parameters: {str(ex)}"}, status=400
            )

        if limit < 0 or offset < 0:
            return web.json_response(
                {"error": "limit and offset must be non-negative"}, status=400
            )

        # Limit the maximum number of logs to prevent abuse
        limit = min(limit, MAX_QUERY_LOG_LIMIT)
        domain_filter = request.query.get("domain")

        logs = dns_app.dns_server.tracker.get_recent_requests(
            limit=limit, offset=offset, domain=domain_filter
        )

        response: Dict[str, Any] = {
            "logs": logs,
            "total": len(logs),
            "limit": limit,
            "offset": offset,
            "timestamp": _timestamp(),
        }
        if domain_filter:
            response["domain"] = domain_filter

        return web.json_response(response)
