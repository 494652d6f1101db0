"""
Integration tests for the dashboard HTTP API.

Runs the FastAPI app against the seeded in-memory store.
"""
import pytest

SCENARIO_PARAMS = {"period": "custom", "startDate": "2026-01-01", "endDate": "2026-01-09"}


class TestChannelStatsEndpoint:
    """Tests for GET /api/dashboard/channel-stats."""

    def test_scenario(self, api_client):
        response = api_client.get(
            "/api/dashboard/channel-stats", params={**SCENARIO_PARAMS, "channelIds": "ch-c"}
        )

        assert response.status_code == 200
        stats = response.json()["stats"]
        assert list(stats) == ["ch-c"]
        card = stats["ch-c"]
        assert card["accessCount"] == 90
        assert card["completedCount"] == 35
        assert card["completionRate"] == 38.9
        assert card["ctaRate"] == 85.7
        assert card["cpd"] == 257
        assert card["dailyCost"] == 1000
        assert card["accessByDate"][0] == {"date": "2026-01-09", "count": 10}

    def test_defaults_to_active_channels_and_all_time(self, api_client):
        response = api_client.get("/api/dashboard/channel-stats")

        assert response.status_code == 200
        stats = response.json()["stats"]
        assert set(stats) == {"ch-c", "ch-empty"}
        assert stats["ch-c"]["accessCount"] == 138

    def test_ad_keys_omitted_without_budget(self, api_client):
        response = api_client.get(
            "/api/dashboard/channel-stats", params={**SCENARIO_PARAMS, "channelIds": "ch-empty"}
        )

        card = response.json()["stats"]["ch-empty"]
        assert card["accessCount"] == 0
        assert "adBudget" not in card
        assert "cpa" not in card

    def test_explicit_empty_channel_list(self, api_client):
        response = api_client.get("/api/dashboard/channel-stats", params={"channelIds": ","})

        assert response.status_code == 200
        assert response.json() == {"stats": {}}

    def test_invalid_period(self, api_client):
        response = api_client.get("/api/dashboard/channel-stats", params={"period": "decade"})

        assert response.status_code == 400
        assert "period" in response.json()["detail"]

    def test_reversed_custom_range(self, api_client):
        response = api_client.get(
            "/api/dashboard/channel-stats",
            params={"period": "custom", "startDate": "2026-01-09", "endDate": "2026-01-01"},
        )

        assert response.status_code == 400
        assert "date_range" in response.json()["detail"]

    def test_invalid_channel_id(self, api_client):
        response = api_client.get("/api/dashboard/channel-stats", params={"channelIds": "ch-c,bad id"})
        assert response.status_code == 400


class TestOverallStatsEndpoint:
    """Tests for GET /api/dashboard/stats."""

    def test_scenario(self, api_client):
        response = api_client.get("/api/dashboard/stats", params=SCENARIO_PARAMS)

        assert response.status_code == 200
        body = response.json()
        stats = body["stats"]
        assert stats["accessCount"] == 90
        assert stats["cpa"] == 100
        assert stats["trends"]["accessCount"] == {"value": 100.0, "isNew": False}
        assert stats["trends"]["completedCount"] == {"isNew": True}
        assert stats["prevPeriod"] == {"accessCount": 45, "completedCount": 0, "ctaCount": 0}
        assert stats["categoryStats"]["caution"]["ctaRate"] == 66.7
        assert body["period"]["from"] == "2026-01-01T00:00:00+09:00"

    def test_conversion_fields(self, api_client):
        response = api_client.get("/api/dashboard/stats", params=SCENARIO_PARAMS)

        stats = response.json()["stats"]
        assert stats["clinicPageViews"] == 10
        assert stats["ctaFromResult"] == 30
        assert stats["ctaFromClinicPage"] == 0
        assert stats["resultConversionRate"] == 85.7
        assert stats["clinicPageConversionRate"] == 0.0

    def test_channel_list(self, api_client):
        response = api_client.get("/api/dashboard/stats", params=SCENARIO_PARAMS)

        assert response.json()["channels"] == [
            {"id": "ch-c", "name": "Station poster", "channelType": "diagnosis"},
            {"id": "ch-empty", "name": "Flyer", "channelType": "diagnosis"},
        ]

    def test_all_period(self, api_client):
        response = api_client.get("/api/dashboard/stats", params={"period": "all"})

        stats = response.json()["stats"]
        assert stats["prevPeriod"] is None
        assert all(t == {"isNew": True} for t in stats["trends"].values())

    def test_default_period_is_month(self, api_client):
        response = api_client.get("/api/dashboard/stats")
        assert response.status_code == 200


class TestLocationEndpoints:
    """Tests for the location endpoints."""

    def test_locations(self, api_client):
        response = api_client.get("/api/dashboard/locations", params=SCENARIO_PARAMS)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 35
        assert body["places"][0]["town"] == "神南"
        assert body["hotspot"]["count"] == 15
        assert body["clinicCenter"] == {"latitude": 35.658, "longitude": 139.7016}

    def test_location_demographics(self, api_client):
        response = api_client.get(
            "/api/dashboard/location-demographics",
            params={**SCENARIO_PARAMS, "region": "東京都", "city": "新宿区"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 10
        assert body["genderByType"] == {"male": 5, "female": 5, "other": 0}
        assert len(body["ageRanges"]) == 9

    def test_location_demographics_requires_city(self, api_client):
        response = api_client.get(
            "/api/dashboard/location-demographics", params={"region": "東京都"}
        )

        assert response.status_code == 400
        assert "city" in response.json()["detail"]


class TestHealthEndpoints:
    """Tests for health and metrics endpoints."""

    def test_health(self, api_client):
        response = api_client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["store"]["status"] == "connected"
        assert body["store"]["cta_clicks"] == 30
        assert body["cache"]["enabled"] is False

    def test_metrics(self, api_client):
        api_client.get("/api/dashboard/stats", params=SCENARIO_PARAMS)
        response = api_client.get("/api/metrics")

        assert response.status_code == 200
        body = response.json()
        assert "GET /api/dashboard/stats" in body["requests"]
        assert body["system"]["threads"] >= 1

    def test_request_id_echoed(self, api_client):
        response = api_client.get("/api/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Response-Time" in response.headers
