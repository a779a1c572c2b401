import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from matrix_live.api.routes import require_poller
from matrix_live.jobs.poller import Poller
from matrix_live.main import app
from matrix_live.providers.base import MessageProvider, ProviderError
from matrix_live.series.aggregator import SnapshotAggregator
from matrix_live.state import get_aggregator, get_snapshots
from matrix_live.storage.snapshot_file import SnapshotFileStore

BODY = "<br/>".join(
    [
        "Matrix alert",
        "@ES 5 Min 4,500.25 12 4490.00 4495.00 4510.00 4515.00",
        "@ES Daily 4500.25 -4 4490.00 4495.00 4510.00 4515.00",
    ]
)


class FakeProvider(MessageProvider):
    def __init__(self):
        self.message_id = "m1"
        self.error = None

    def fetch_latest_message(self):
        if self.error is not None:
            raise self.error
        return {"messageId": self.message_id, "sent": "2026-10-19T10:00:00Z"}

    def fetch_message_body(self, message_id):
        return BODY


class TestRoutes(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.snapshots = SnapshotFileStore(Path(self.tmp.name) / "latest.json")
        self.aggregator = SnapshotAggregator(max_length=10)
        self.provider = FakeProvider()
        self.poller = Poller(self.provider, self.aggregator, self.snapshots, "<br/>", "@ES")

        app.dependency_overrides[get_snapshots] = lambda: self.snapshots
        app.dependency_overrides[get_aggregator] = lambda: self.aggregator
        app.dependency_overrides[require_poller] = lambda: self.poller
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.tmp.cleanup()

    def test_data_before_first_poll(self):
        resp = self.client.get("/api/data")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {"items": [], "lastUpdated": None, "messageId": None, "sent": None},
        )

    def test_poll_then_data(self):
        resp = self.client.get("/api/poll-gaggle")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "count": 2, "absorbed": True})

        data = self.client.get("/api/data").json()
        self.assertEqual(data["messageId"], "m1")
        self.assertEqual(
            data["items"][0],
            {
                "symbol": "@ES",
                "timeframe": "5 Min",
                "price": 4500.25,
                "count": 12.0,
                "levels": [4490.0, 4495.0, 4510.0, 4515.0],
            },
        )

    def test_poll_failure(self):
        self.provider.error = ProviderError("Gaggle API failed status=500")

        resp = self.client.get("/api/poll-gaggle")

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Gaggle API failed status=500"})

    def test_gaggle_direct_absorbs_without_persisting(self):
        resp = self.client.get("/api/gaggle-direct")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["messageId"], "m1")
        self.assertEqual(len(resp.json()["items"]), 2)
        self.assertEqual(len(self.aggregator.all()), 2)
        self.assertIsNone(self.snapshots.load())

    def test_gaggle_direct_failure_returns_empty_payload(self):
        self.provider.error = ProviderError("Gaggle API rate limit exceeded")

        resp = self.client.get("/api/gaggle-direct")

        self.assertEqual(resp.status_code, 500)
        body = resp.json()
        self.assertEqual(body["error"], "Gaggle API rate limit exceeded")
        self.assertEqual(body["items"], [])
        self.assertIsNone(body["messageId"])

    def test_series_listing_and_single_key(self):
        self.client.get("/api/poll-gaggle")
        self.provider.message_id = "m2"
        self.client.get("/api/poll-gaggle")

        listing = self.client.get("/api/series").json()
        self.assertEqual(listing["maxLength"], 10)
        self.assertEqual(
            [(s["symbol"], s["timeframe"]) for s in listing["series"]],
            [("@ES", "5 Min"), ("@ES", "Daily")],
        )

        one = self.client.get("/api/series", params={"symbol": "@ES", "timeframe": "Daily"}).json()
        self.assertEqual([p["messageId"] for p in one["points"]], ["m1", "m2"])
        self.assertEqual(one["points"][0]["count"], -4.0)

        unknown = self.client.get("/api/series", params={"symbol": "@NQ", "timeframe": "Daily"})
        self.assertEqual(unknown.json()["points"], [])

        half = self.client.get("/api/series", params={"symbol": "@ES"})
        self.assertEqual(half.status_code, 400)

    def test_max_length_rebounds(self):
        for mid in ("m1", "m2", "m3"):
            self.provider.message_id = mid
            self.client.get("/api/poll-gaggle")

        resp = self.client.put("/api/series/max-length", params={"value": 1})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"ok": True, "maxLength": 1, "dropped": 4})
        one = self.client.get("/api/series", params={"symbol": "@ES", "timeframe": "5 Min"}).json()
        self.assertEqual([p["messageId"] for p in one["points"]], ["m3"])

    def test_max_length_must_be_positive(self):
        resp = self.client.put("/api/series/max-length", params={"value": 0})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(self.aggregator.max_length, 10)

    def test_raw_matrix(self):
        self.assertEqual(self.client.get("/api/raw").text, "")

        self.client.get("/api/poll-gaggle")
        resp = self.client.get("/api/raw")

        self.assertTrue(resp.headers["content-type"].startswith("text/plain"))
        self.assertEqual(
            resp.text,
            "@ES 5 Min 4500.25 12.00 4490.00 4495.00 4510.00 4515.00\n"
            "@ES Daily 4500.25 -4.00 4490.00 4495.00 4510.00 4515.00",
        )

    def test_corrupt_snapshot_is_reported_not_raised(self):
        self.snapshots.path.write_text('{"items": [{"symbol": "@ES"', encoding="utf-8")

        raw = self.client.get("/api/raw")
        self.assertEqual(raw.status_code, 500)
        self.assertTrue(raw.text.startswith("Snapshot unavailable"))

        self.assertEqual(self.client.get("/api/data").status_code, 500)

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")
