"""
DNS Server Web Interface

This module provides the admin HTTP server using aiohttp for:
- REST API endpoints for monitoring and record management
- CORS for browser-based tools
"""

import asyncio
import weakref
from typing import Optional

import aiohttp_cors
from aiohttp import web
from aiohttp.web import Application

from ..config.schema import DNSServerConfig
from ..dns_logging import get_logger
from .api import setup_api_routes


class WebServer:
    """DNS Server admin HTTP interface"""

    def __init__(self, config: DNSServerConfig, dns_server_app):
        """Initialize web server.

        Args:
            config: Server configuration (web section plus bind address and port)
            dns_server_app: Reference to main DNS server application
        """
        self.config = config
        self.dns_server_app = weakref.ref(
            dns_server_app
        )  # Weak reference to avoid circular references
        self.logger = get_logger("web_server")

        self.app: Optional[Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None

    def setup_application(self) -> Application:
        """Setup aiohttp application with routes and middleware."""
        app = web.Application(
            middlewares=[
                self._create_logging_middleware(),
                self._create_error_middleware(),
            ]
        )

        setup_api_routes(app, self.dns_server_app)

        if self.config.web.cors_enabled:
            self._setup_cors(app)

        return app

    def _setup_cors(self, app: Application):
        """Attach CORS handling to every registered route."""
        cors = aiohttp_cors.setup(
            app,
            defaults={
                origin: aiohttp_cors.ResourceOptions(
                    allow_credentials=False,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
                for origin in self.config.web.cors_origins
            },
        )

        for route in list(app.router.routes()):
            cors.add(route)

    def _create_logging_middleware(self):
        """Create logging middleware."""
        logger = self.logger

        @web.middleware
        async def logging_middleware(request, handler):
            """Log HTTP requests."""
            loop = asyncio.get_running_loop()
            start_time = loop.time()

            try:
                response = await handler(request)
            except web.HTTPException as ex:
                logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.path,
                    remote=request.remote,
                    status=ex.status,
                    response_time_ms=round((loop.time() - start_time) * 1000, 2),
                )
                raise

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.path,
                remote=request.remote,
                status=response.status,
                response_time_ms=round((loop.time() - start_time) * 1000, 2),
            )
            return response

        return logging_middleware

    def _create_error_middleware(self):
        """Create error handling middleware."""
        logger = self.logger

        @web.middleware
        async def error_middleware(request, handler):
            """Handle HTTP errors gracefully."""
            try:
                return await handler(request)
            except web.HTTPException:
                # Re-raise HTTP exceptions as they are handled properly by aiohttp
                raise
            except Exception as ex:
                logger.error(
                    "Unhandled error in web server",
                    method=request.method,
                    path=request.path,
                    error=str(ex),
                )

                return web.json_response(
                    {
                        "error": "Internal server error",
                        "message": "An unexpected error occurred",
                    },
                    status=500,
                )

        return error_middleware

    async def start(self) -> None:
        """Start the web server."""
        if self.runner:
            self.logger.warning("Web server is already running")
            return

        host = self.config.server.bind_address
        port = self.config.server.web_port

        try:
            self.app = self.setup_application()

            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            self.site = web.TCPSite(self.runner, host=host, port=port)
            await self.site.start()

            self.logger.info("Web server started", host=host, port=port)

        except OSError as ex:
            self.logger.error("Failed to start web server", error=str(ex))
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the web server."""
        if not self.runner:
            return

        self.logger.info("Stopping web server")

        if self.site:
            await self.site.stop()
            self.site = None

        await self.runner.cleanup()
        self.runner = None
        self.app = None

        self.logger.info("Web server stopped")
