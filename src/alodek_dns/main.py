"""
DNS Server Main Entry Point

This script provides the main entry point for running the DNS server.
"""

import argparse
import asyncio
import platform
import signal
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

import yaml

from .config.loader import ConfigLoader
from .console import AdminConsole
from .core import DNSServer, RecordStore, ServerBindError
from .dns_logging import get_logger, log_exception, setup_logging
from .web import WebServer


class DNSServerApp:
    """DNS Server Application"""

    def __init__(
        self,
        config_path: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        console_enabled: bool = True,
    ):
        self.config_path = config_path
        self.overrides = overrides or {}
        self.console_enabled = console_enabled
        self.config = None
        self.store = None
        self.dns_server = None
        self.web_server = None
        self.console = None
        self._console_task = None
        self._shutdown_event = asyncio.Event()
        self.logger = get_logger("dns_server_app")

    def initialize(self):
        """Load configuration and build the server components"""
        result = ConfigLoader(self.config_path).load()
        self.config = self._apply_overrides(result.config)

        setup_logging(self.config.logging)
        self.logger = get_logger("dns_server_app")

        if result.uses_defaults:
            self.logger.warning("Using default DNS configuration", reason=result.reason)
        else:
            self.logger.info("Loaded DNS configuration", path=result.path)

        self.store = RecordStore.from_config(self.config.records)
        self.logger.info("Loaded DNS records", count=len(self.store))

        self.dns_server = DNSServer(self.config, self.store)

        if self.config.web.enabled:
            self.web_server = WebServer(self.config, self)

        if self.console_enabled and self.config.server.console_enabled:
            self.console = AdminConsole(self.store, on_quit=self.request_shutdown)

    def _apply_overrides(self, config):
        """Apply command line overrides on top of the loaded configuration"""
        server_overrides = {
            key: value
            for key, value in self.overrides.items()
            if key in ("bind_address", "dns_port") and value is not None
        }
        if server_overrides:
            config = replace(config, server=replace(config.server, **server_overrides))

        log_level = self.overrides.get("log_level")
        if log_level:
            config = replace(
                config, logging=replace(config.logging, level=log_level.upper())
            )

        return config

    async def start(self):
        """Start the DNS server and serve until a shutdown is requested"""
        if not self.dns_server:
            self.initialize()

        try:
            await self.dns_server.start()

            if self.web_server:
                await self.web_server.start()

            self.logger.info(
                "Alodek DNS server started successfully",
                bind_address=self.config.server.bind_address,
                dns_port=self.config.server.dns_port,
                local_domains=len(self.store),
                upstream_servers=self.config.upstream_servers,
                web_enabled=self.web_server is not None,
            )

            # Setup signal handlers
            loop = asyncio.get_running_loop()
            for sig in [signal.SIGTERM, signal.SIGINT]:
                loop.add_signal_handler(sig, self.request_shutdown)

            if self.console:
                await self._start_console()

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        finally:
            await self.stop()

    async def _start_console(self):
        try:
            reader = await AdminConsole.attach_stdin()
        except (OSError, ValueError) as e:
            self.logger.warning("Admin console unavailable", error=str(e))
            return

        self._console_task = asyncio.create_task(self.console.run(reader))

    async def stop(self):
        """Stop the DNS server"""
        self.logger.info("Shutting down DNS server")

        if self._console_task:
            self._console_task.cancel()
            try:
                await self._console_task
            except asyncio.CancelledError:
                pass
            self._console_task = None

        if self.web_server:
            await self.web_server.stop()

        if self.dns_server:
            await self.dns_server.stop()
            self.logger.info("Final statistics", **self.dns_server.get_stats())

        self.logger.info("Alodek DNS server stopped")

    def request_shutdown(self):
        """Handle shutdown signals and the console quit command"""
        self.logger.info("Received shutdown signal")
        self._shutdown_event.set()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Alodek DNS Server")
    parser.add_argument(
        "--config", "-c", default=None, help="Configuration file path (YAML or JSON)"
    )
    parser.add_argument("--host", default=None, help="Address to bind the DNS listener")
    parser.add_argument("--port", "-p", type=int, default=None, help="DNS port")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override the configured log level",
    )
    parser.add_argument(
        "--no-console", action="store_true", help="Disable the admin console on stdin"
    )
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    args = build_parser().parse_args(argv)

    app = DNSServerApp(
        args.config,
        overrides={
            "bind_address": args.host,
            "dns_port": args.port,
            "log_level": args.log_level,
        },
        console_enabled=not args.no_console,
    )

    try:
        app.initialize()
    except (ValueError, yaml.YAMLError) as e:
        log_exception(app.logger, "Invalid configuration", e)
        return 1

    try:
        await app.start()
    except ServerBindError as e:
        app.logger.error("Failed to start Alodek DNS server", error=str(e))
        return 1

    return 0


def run():
    """Console script entry point"""
    # Try to use uvloop for better performance on Unix systems
    try:
        import uvloop
    except ImportError:
        uvloop = None

    try:
        if uvloop is not None and platform.system() != "Windows":
            exit_code = uvloop.run(main())
        else:
            exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\nDNS server interrupted")
        exit_code = 0

    sys.exit(exit_code)


if __name__ == "__main__":
    run()
