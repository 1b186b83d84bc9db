import httpx
import pytest

from whale_tracker.rate_limiter import RateLimiter
from whale_tracker.upstream import TRANSFERS, UpstreamClient, UpstreamFailure


def make_client(handler, clock, api_key="test-key"):
    limiter = RateLimiter(max_per_window=45, min_interval=0, clock=clock, sleep=clock.sleep)
    client = UpstreamClient(
        api_key=api_key,
        limiter=limiter,
        base_url="https://explorer.test/api/v2",
        chain_id="pacific-1",
        transport=httpx.MockTransport(handler),
    )
    return client, limiter


@pytest.mark.asyncio
async def test_success_returns_payload_and_sends_key(clock):
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["key"] = request.headers.get("X-Api-Key")
        return httpx.Response(200, json={"items": [{"tx_hash": "0x1"}], "next_page_params": None})

    client, limiter = make_client(handler, clock)
    result = await client.request(TRANSFERS, {"contract_address": "0xabc", "limit": 50, "offset": None})

    assert result == {"items": [{"tx_hash": "0x1"}], "next_page_params": None}
    assert seen["path"] == "/api/v2/token/erc20/transfers"
    assert seen["params"] == {"chain_id": "pacific-1", "contract_address": "0xabc", "limit": "50"}
    assert seen["key"] == "test-key"
    assert limiter.status().requests_used == 1


@pytest.mark.asyncio
async def test_non_2xx_is_a_failure(clock):
    client, _ = make_client(lambda request: httpx.Response(503, text="down"), clock)
    result = await client.request(TRANSFERS)
    assert isinstance(result, UpstreamFailure)
    assert result.status_code == 503
    assert result.endpoint == TRANSFERS


@pytest.mark.asyncio
async def test_timeout_is_a_failure(clock):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client, _ = make_client(handler, clock)
    result = await client.request(TRANSFERS)
    assert isinstance(result, UpstreamFailure)
    assert "ReadTimeout" in result.reason


@pytest.mark.asyncio
async def test_malformed_json_is_a_failure(clock):
    client, _ = make_client(lambda request: httpx.Response(200, content=b"<html>oops"), clock)
    result = await client.request(TRANSFERS)
    assert isinstance(result, UpstreamFailure)
    assert result.reason == "malformed JSON"


@pytest.mark.asyncio
async def test_non_object_payload_is_a_failure(clock):
    client, _ = make_client(lambda request: httpx.Response(200, json=[1, 2, 3]), clock)
    assert isinstance(await client.request(TRANSFERS), UpstreamFailure)


@pytest.mark.asyncio
async def test_failures_are_not_retried(clock):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client, _ = make_client(handler, clock)
    await client.request(TRANSFERS)
    assert len(calls) == 1
