"""Basic import tests to verify all dependencies are installed correctly."""

import sys

import pytest


def test_core_dns_imports():
    """Test that core DNS and networking libraries can be imported."""
    import aiohttp  # noqa: F401
    import aiohttp_cors  # noqa: F401
    import dns.message
    import yaml  # noqa: F401

    # Basic functionality test for dnspython
    assert hasattr(dns.message, "from_wire")


def test_monitoring_imports():
    """Test that monitoring and logging libraries can be imported."""
    import psutil
    import structlog

    assert hasattr(psutil, "Process")
    assert hasattr(structlog, "get_logger")


@pytest.mark.skipif(sys.platform == "win32", reason="uvloop is not available on Windows")
def test_event_loop_imports():
    import uvloop

    assert hasattr(uvloop, "run")


def test_package_imports():
    """Test that every package module imports cleanly."""
    from alodek_dns import config, console, core, dns_logging, main, web

    assert core.DNSServer is not None
    assert config.ConfigLoader is not None
    assert console.AdminConsole is not None
    assert dns_logging.DNSRequestTracker is not None
    assert web.WebServer is not None
    assert callable(main.run)
