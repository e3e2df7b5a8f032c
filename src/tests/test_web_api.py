"""Tests for the admin HTTP API."""

import pytest
from aiohttp import test_utils, web

from alodek_dns.config.schema import DNSServerConfig, LoggingConfig, WebConfig
from alodek_dns.core.records import RecordStore
from alodek_dns.core.server import DNSServer
from alodek_dns.dns_logging import DNSRequestTracker
from alodek_dns.web import WebServer, setup_api_routes


class FakeApp:
    """Stands in for the running application the API reads from"""

    def __init__(self, web_config=None):
        self.config = DNSServerConfig(
            logging=LoggingConfig(enable_request_logging=False),
            web=web_config or WebConfig(enabled=True),
        )
        self.store = RecordStore.from_config(self.config.records)
        self.dns_server = DNSServer(
            self.config, self.store, tracker=DNSRequestTracker(log_requests=False)
        )


def make_client(fake_app):
    app = web.Application()
    setup_api_routes(app, lambda: fake_app)
    return test_utils.TestClient(test_utils.TestServer(app))


class TestRecordsAPI:
    """Test record management endpoints"""

    @pytest.mark.asyncio
    async def test_list_records(self):
        async with make_client(FakeApp()) as client:
            resp = await client.get("/api/records")
            assert resp.status == 200
            body = await resp.json()

        assert body["total"] == 8
        team1 = next(r for r in body["records"] if r["domain"] == "team1.gis-ctf.local")
        assert team1 == {
            "domain": "team1.gis-ctf.local",
            "type": "A",
            "value": "192.168.1.101",
            "ttl": 300,
        }

    @pytest.mark.asyncio
    async def test_add_record(self):
        fake_app = FakeApp()
        async with make_client(fake_app) as client:
            resp = await client.post(
                "/api/records",
                json={"domain": "Svc.Local", "type": "A", "value": "10.0.0.7", "ttl": 60},
            )
            assert resp.status == 201
            body = await resp.json()

        assert body == {"domain": "svc.local", "type": "A", "value": "10.0.0.7", "ttl": 60}
        assert fake_app.store.lookup("svc.local").value == "10.0.0.7"

    @pytest.mark.asyncio
    async def test_add_record_defaults(self):
        fake_app = FakeApp()
        async with make_client(fake_app) as client:
            resp = await client.post(
                "/api/records", json={"domain": "svc.local", "value": "10.0.0.7"}
            )
            assert resp.status == 201

        record = fake_app.store.lookup("svc.local")
        assert record.ttl == 300
        assert record.record_type == "A"

    @pytest.mark.asyncio
    async def test_add_record_any_type(self):
        fake_app = FakeApp()
        async with make_client(fake_app) as client:
            resp = await client.post(
                "/api/records",
                json={"domain": "x.local", "type": "caa", "value": "0 issue ca.local"},
            )
            assert resp.status == 201
            body = await resp.json()

        assert body["type"] == "CAA"
        assert fake_app.store.lookup("x.local").value == "0 issue ca.local"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"domain": "bad domain", "value": "10.0.0.7"},
            {"domain": "svc.local"},
            {"domain": "svc.local", "value": "10.0.0.7", "ttl": -1},
            {"domain": "svc.local", "value": "10.0.0.7", "type": ""},
            {"domain": "svc.local", "value": "10.0.0.7", "ttl": 2**32},
            ["not", "an", "object"],
        ],
    )
    async def test_add_record_rejects_invalid_input(self, payload):
        fake_app = FakeApp()
        async with make_client(fake_app) as client:
            resp = await client.post("/api/records", json=payload)
            assert resp.status == 400
            body = await resp.json()

        assert "error" in body
        assert "svc.local" not in fake_app.store

    @pytest.mark.asyncio
    async def test_add_record_rejects_non_json(self):
        async with make_client(FakeApp()) as client:
            resp = await client.post("/api/records", data="domain=svc.local")
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_delete_record(self):
        fake_app = FakeApp()
        async with make_client(fake_app) as client:
            resp = await client.delete("/api/records/team2.gis-ctf.local")
            assert resp.status == 200

            missing = await client.delete("/api/records/team2.gis-ctf.local")
            assert missing.status == 404

        assert "team2.gis-ctf.local" not in fake_app.store


class TestStatusAPI:
    """Test status and query history endpoints"""

    @pytest.mark.asyncio
    async def test_status(self):
        async with make_client(FakeApp()) as client:
            resp = await client.get("/api/status")
            assert resp.status == 200
            body = await resp.json()

        assert body["server"]["status"] == "stopped"
        assert body["server"]["dns_port"] == 53
        assert body["server"]["upstream_servers"] == ["8.8.8.8", "1.1.1.1"]
        assert body["dns"]["total_queries"] == 0
        assert body["dns"]["local_records"] == 8
        assert body["system"]["memory_mb"] > 0

    @pytest.mark.asyncio
    async def test_unavailable_when_app_is_gone(self):
        app = web.Application()
        setup_api_routes(app, lambda: None)

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            resp = await client.get("/api/status")
            assert resp.status == 503

    @pytest.mark.asyncio
    async def test_query_history(self):
        fake_app = FakeApp()
        tracker = fake_app.dns_server.tracker
        for domain in ("a.gis-ctf.local", "example.com", "b.gis-ctf.local"):
            request_id = tracker.start_request(("127.0.0.1", 5000), "A", domain)
            tracker.end_request(
                request_id=request_id,
                client_address=("127.0.0.1", 5000),
                query_type="A",
                domain=domain,
                outcome="local_hit",
                response_code="NOERROR",
            )

        async with make_client(fake_app) as client:
            resp = await client.get("/api/queries", params={"limit": "2"})
            body = await resp.json()

            filtered = await client.get("/api/queries", params={"domain": "example"})
            filtered_body = await filtered.json()

            bad = await client.get("/api/queries", params={"limit": "many"})
            assert bad.status == 400

        assert body["total"] == 2
        assert body["logs"][0]["domain"] == "b.gis-ctf.local"
        assert [log["domain"] for log in filtered_body["logs"]] == ["example.com"]


class TestWebServer:
    """Test the aiohttp application wiring"""

    @pytest.mark.asyncio
    async def test_cors_headers(self):
        fake_app = FakeApp(WebConfig(enabled=True, cors_origins=["http://localhost:3000"]))
        server = WebServer(fake_app.config, fake_app)

        async with test_utils.TestClient(
            test_utils.TestServer(server.setup_application())
        ) as client:
            resp = await client.get(
                "/api/records", headers={"Origin": "http://localhost:3000"}
            )

            assert resp.status == 200
            assert (
                resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
            )

    @pytest.mark.asyncio
    async def test_cors_disabled(self):
        fake_app = FakeApp(WebConfig(enabled=True, cors_enabled=False))
        server = WebServer(fake_app.config, fake_app)

        async with test_utils.TestClient(
            test_utils.TestServer(server.setup_application())
        ) as client:
            resp = await client.get(
                "/api/records", headers={"Origin": "http://localhost:3000"}
            )

            assert resp.status == 200
            assert "Access-Control-Allow-Origin" not in resp.headers

    @pytest.mark.asyncio
    async def test_unhandled_errors_become_500(self):
        fake_app = FakeApp()
        server = WebServer(fake_app.config, fake_app)
        fake_app.store = None

        async with test_utils.TestClient(
            test_utils.TestServer(server.setup_application())
        ) as client:
            resp = await client.get("/api/records")
            assert resp.status == 500
            body = await resp.json()

        assert body["error"] == "Internal server error"
