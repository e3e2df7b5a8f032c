"""
DNS Server Web Interface Module

This module provides the admin HTTP API for the DNS server:
- Status and statistics
- Local record management
- Recent query history
"""

from .api import APIHandler, setup_api_routes
from .server import WebServer

__all__ = ["WebServer", "APIHandler", "setup_api_routes"]
