"""
Unit tests for the HTTP layer.

Covers:
- POST /api/match: validation, not found, response shape, AI status
- POST /api/ner: validation, quota denial (429), extraction failure
- GET /api/ner: read-only quota snapshot
"""

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_extractor, get_item_store, get_policy_source, get_quota_guard
from itemradar_match.common.errors import ExtractionError
from itemradar_match.common.schemas import ExtractedAttributes, ItemType, RateLimitPolicy
from itemradar_match.store.memory import StaticPolicySource

from tests.conftest import FakeExtractor


class BrokenStore:
    def get_item(self, item_type, item_id):
        raise RuntimeError("firestore unavailable")

    def list_items(self, item_type, statuses=None):
        return []


@pytest.fixture
def overrides(item_store, policy_source, guard, extractor):
    deps = {
        get_item_store: lambda: item_store,
        get_policy_source: lambda: policy_source,
        get_quota_guard: lambda: guard,
        get_extractor: lambda: extractor,
    }
    app.dependency_overrides.update(deps)
    yield app.dependency_overrides
    app.dependency_overrides.clear()


@pytest.fixture
def client(overrides):
    return TestClient(app)


@pytest.mark.unit
class TestMatchEndpoint:

    def test_returns_ranked_matches(self, client):
        response = client.post("/api/match", json={"type": "lost", "itemId": "lost_001"})
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["useAI"] is False
        assert body["aiApplied"] is False
        assert body["aiStatus"] == "not_requested"

        match = body["matches"][0]
        assert match["id"] == "found_001"
        assert match["lostId"] == "lost_001"
        assert match["foundId"] == "found_001"
        assert match["confidence"] == "high"
        assert match["scorePercentage"] == round(match["score"] * 100)
        assert match["itemType"] == "found"
        assert "Same location" in match["reasons"]
        assert set(match["breakdown"]) == {"text", "category", "location", "temporal"}

    def test_use_ai_reports_applied(self, client, extractor):
        response = client.post("/api/match",
                               json={"type": "lost", "itemId": "lost_001", "useAI": True, "userId": "alice"})
        body = response.json()
        assert body["aiApplied"] is True
        assert body["aiStatus"] == "applied"
        assert len(extractor.calls) == 1

    def test_use_ai_rate_limited_still_matches(self, client, overrides):
        overrides[get_policy_source] = lambda: StaticPolicySource(RateLimitPolicy(per_user_per_minute=1))
        payload = {"type": "lost", "itemId": "lost_001", "useAI": True, "userId": "alice"}
        client.post("/api/match", json=payload)
        response = client.post("/api/match", json=payload)
        assert response.status_code == 200
        assert response.json()["aiStatus"] == "rate_limited"
        assert response.json()["total"] == 1

    @pytest.mark.parametrize("payload,error", [
        ({"type": "stolen", "itemId": "lost_001"}, "invalid_type"),
        ({"itemId": "lost_001"}, "invalid_type"),
        ({"type": "lost"}, "missing_item_id"),
        ({"type": "lost", "itemId": "   "}, "missing_item_id"),
        ({"type": "lost", "itemId": "lost_001", "limit": 0}, "invalid_request"),
    ])
    def test_bad_requests(self, client, payload, error):
        response = client.post("/api/match", json=payload)
        assert response.status_code == 400
        assert response.json()["error"] == error

    def test_unknown_item(self, client):
        response = client.post("/api/match", json={"type": "found", "itemId": "nope"})
        assert response.status_code == 404
        assert response.json() == {"error": "item_not_found", "message": "Found item not found"}

    def test_store_failure_is_internal_error(self, client, overrides):
        overrides[get_item_store] = lambda: BrokenStore()
        response = client.post("/api/match", json={"type": "lost", "itemId": "lost_001"})
        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"


@pytest.mark.unit
class TestExtractionEndpoint:

    def test_returns_camel_case_attributes(self, client, overrides):
        overrides[get_extractor] = lambda: FakeExtractor(result=ExtractedAttributes(
            item="phone", contact="0812345678", contact_type="phone", target=ItemType.FOUND))
        response = client.post("/api/ner",
                               json={"text": "found a phone, call 0812345678", "type": "found", "userId": "alice"})
        assert response.status_code == 200
        body = response.json()
        assert body["item"] == "phone"
        assert body["contactType"] == "phone"
        assert body["target"] == "found"

    def test_missing_text(self, client):
        response = client.post("/api/ner", json={"text": "  ", "type": "lost"})
        assert response.status_code == 400
        assert response.json()["error"] == "missing_text"

    def test_invalid_type(self, client):
        response = client.post("/api/ner", json={"text": "wallet", "type": "other"})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_type"

    def test_quota_exceeded(self, client, extractor):
        payload = {"text": "lost my wallet", "type": "lost", "userId": "alice"}
        for _ in range(5):
            assert client.post("/api/ner", json=payload).status_code == 200

        response = client.post("/api/ner", json=payload)

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["reason"] == "user_minute"
        assert body["userRemainingMinute"] == 0
        assert body["resetMinute"].startswith("2024-01-10T12:01:00")
        assert len(extractor.calls) == 5

    def test_anonymous_calls_skip_quota(self, client, usage_store):
        for _ in range(7):
            assert client.post("/api/ner", json={"text": "wallet", "type": "lost"}).status_code == 200
        assert usage_store.records == []

    def test_extraction_failure(self, client, overrides):
        overrides[get_extractor] = lambda: FakeExtractor(error=ExtractionError("bad json"))
        response = client.post("/api/ner", json={"text": "wallet", "type": "lost"})
        assert response.status_code == 500
        assert response.json()["error"] == "extraction_failed"

    def test_no_extractor_configured(self, client, overrides):
        overrides[get_extractor] = lambda: None
        response = client.post("/api/ner", json={"text": "wallet", "type": "lost"})
        assert response.status_code == 500
        assert response.json()["error"] == "extraction_failed"


@pytest.mark.unit
class TestQuotaEndpoint:

    def test_requires_user_id(self, client):
        response = client.get("/api/ner")
        assert response.status_code == 400
        assert response.json()["error"] == "missing_user_id"

    def test_snapshot_is_read_only(self, client, usage_store):
        for _ in range(3):
            body = client.get("/api/ner", params={"userId": "alice"}).json()
        assert body["enabled"] is True
        assert body["userRemainingMinute"] == 5
        assert body["userLimitPerHour"] == 30
        assert body["systemRemainingHour"] == 100
        assert usage_store.records == []

    def test_snapshot_after_use(self, client):
        client.post("/api/ner", json={"text": "wallet", "type": "lost", "userId": "alice"})
        body = client.get("/api/ner", params={"userId": "alice"}).json()
        assert body["userRemainingMinute"] == 4
        assert body["userRemainingHour"] == 29


@pytest.mark.unit
class TestExtractionQuotaOrder:

    def test_missing_extractor_does_not_spend_quota(self, client, overrides, usage_store):
        overrides[get_extractor] = lambda: None
        response = client.post("/api/ner", json={"text": "wallet", "type": "lost", "userId": "alice"})
        assert response.status_code == 500
        assert response.json()["error"] == "extraction_failed"
        assert usage_store.records == []
