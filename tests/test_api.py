import pytest
from fastapi.testclient import TestClient

from main import create_app

WSEI = "0x3894085Ef7Ff0f0aeDf52E2A2704928d259C2fc7"


@pytest.fixture
def client(mock_service):
    with TestClient(create_app(mock_service)) as c:
        yield c


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_recent_transactions(client):
    resp = client.get("/whales/transactions", params={"limit": 5})
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 5
    assert len(body["transactions"]) == 5
    assert "mock data" in body["summary"]
    assert all(t["is_whale"] for t in body["transactions"])


@pytest.mark.parametrize("limit", [0, 501, "lots"])
def test_transactions_limit_validated(client, limit):
    assert client.get("/whales/transactions", params={"limit": limit}).status_code == 422


def test_thresholds_roundtrip(client):
    assert client.get("/whales/thresholds").json()["small"] == 50_000

    resp = client.put("/whales/thresholds", json={"small": 60_000})
    assert resp.status_code == 200
    assert resp.json()["small"] == 60_000
    assert client.get("/whales/thresholds").json()["small"] == 60_000


def test_invalid_thresholds_rejected(client):
    before = client.get("/whales/thresholds").json()
    resp = client.put("/whales/thresholds", json={"small": 5_000_000})
    assert resp.status_code == 422
    assert client.get("/whales/thresholds").json() == before


def test_status(client):
    body = client.get("/whales/status").json()
    assert body["mode"] == "forced_mock"
    assert body["using_mock_data"] is True
    assert body["api_key_status"] == "API Key Missing"
    assert set(body["rate_limit"]) == {"requests_used", "requests_remaining", "resets_in"}


def test_token_analysis_and_holders(client):
    analysis = client.get(f"/whales/tokens/{WSEI}").json()
    assert analysis["token_address"] == WSEI.lower()
    assert analysis["price_impact_risk"] in ("critical", "high", "medium", "low")

    holders = client.get(f"/whales/tokens/{WSEI}/holders").json()
    assert [h["whale_rank"] for h in holders] == list(range(1, len(holders) + 1))


def test_insights_and_alerts(client):
    assert isinstance(client.get("/whales/insights").json(), list)
    alerts = client.get("/whales/alerts").json()
    assert set(alerts) == {"large_transfers", "new_whales", "unusual_activity", "risk_alerts"}


def test_summary_uses_template_without_openai_key(client):
    body = client.get("/whales/summary", params={"limit": 10}).json()
    assert body["generated_by"] == "template"
    assert body["transaction_count"] == 10
    assert body["summary"]


def test_scan(client):
    body = client.get("/whales/scan", params={"scan_limit": 100, "whale_limit": 5}).json()
    assert body["whales_found"] == len(body["transactions"]) == 5
    assert body["total_scanned"] <= 100
