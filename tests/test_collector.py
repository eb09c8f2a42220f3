"""Tests for the collector HTTP service."""

import copy


class TestHealthEndpoint:
    def test_health_returns_ok(self, collector_client):
        resp = collector_client.get("/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "healthy"
        assert data["total_events"] == 0
        assert data["current_sessions"] == 0


class TestEventCollection:
    def test_valid_envelope_accepted(self, collector_client, sample_envelope):
        resp = collector_client.post("/analytics/events", json=sample_envelope)
        assert resp.status_code == 201
        assert resp.get_json() == {"status": "accepted", "eventsRecorded": 2}

    def test_invalid_envelope_rejected(self, collector_client, sample_envelope):
        del sample_envelope["events"]
        resp = collector_client.post("/analytics/events", json=sample_envelope)
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["status"] == "invalid"
        assert len(data["errors"]) > 0

    def test_non_json_body_rejected(self, collector_client):
        resp = collector_client.post(
            "/analytics/events", data="not json", content_type="application/json"
        )
        assert resp.status_code == 400
        assert resp.get_json()["status"] == "invalid"

    def test_counts_accumulate(self, collector_client, sample_envelope):
        for _ in range(3):
            collector_client.post("/analytics/events", json=sample_envelope)
        data = collector_client.get("/health").get_json()
        assert data["total_events"] == 6
        assert data["current_sessions"] == 3


class TestSessionsAndMetrics:
    def test_recent_sessions_newest_first(self, collector_client, sample_envelope):
        second = copy.deepcopy(sample_envelope)
        second["sessionId"] = "sess_2"
        collector_client.post("/analytics/events", json=sample_envelope)
        collector_client.post("/analytics/events", json=second)

        resp = collector_client.get("/analytics/sessions?limit=1")
        assert resp.status_code == 200
        sessions = resp.get_json()
        assert [s["sessionId"] for s in sessions] == ["sess_2"]

    def test_metrics_summary(self, collector_client, sample_envelope):
        collector_client.post("/analytics/events", json=sample_envelope)
        collector_client.post("/analytics/events", json=sample_envelope)

        data = collector_client.get("/analytics/metrics").get_json()
        assert data["total_envelopes"] == 2
        assert data["total_events"] == 4
        assert data["unique_sessions"] == 1
        assert data["events_by_type"] == {"session": 2, "interaction": 2}
        assert data["envelopes_by_device"] == {"desktop": 2}
        assert data["top_events"][0]["count"] == 2
        assert data["validation"]["valid"] == 2

    def test_store_is_bounded(self, collector_app, sample_envelope):
        client = collector_app.test_client()
        for _ in range(60):
            client.post("/analytics/events", json=sample_envelope)
        store = collector_app.config["components"]["store"]
        assert store.current_size == 50
        assert store.total_events == 120
