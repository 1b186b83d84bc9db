from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from whale_tracker.insights import InsightEngine
from whale_tracker.narrator import InsightNarrator, template_summary


def fake_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


@pytest.fixture
def batch(thresholds, make_tx):
    txs = [make_tx(200_000, sender=f"0xs{i}", receiver="0xwhale", hours_ago=i, impact="medium") for i in range(3)]
    return InsightEngine(thresholds).analyze(txs), txs


@pytest.mark.asyncio
async def test_openai_summary(batch):
    insights, txs = batch
    create = AsyncMock(return_value=completion("  Steady accumulation into one wallet.  "))
    narrator = InsightNarrator(api_key="sk-test", model="test-model", client=fake_client(create))

    result = await narrator.summarize(insights, txs)

    assert result.generated_by == "openai"
    assert result.summary == "Steady accumulation into one wallet."
    assert result.insight_count == len(insights)
    assert result.transaction_count == 3
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "test-model"
    assert "Accumulation by 0xwhale" in kwargs["messages"][1]["content"]


@pytest.mark.asyncio
async def test_falls_back_on_openai_error(batch):
    insights, txs = batch
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
    narrator = InsightNarrator(api_key="sk-test", client=fake_client(create))

    result = await narrator.summarize(insights, txs)

    assert result.generated_by == "template"
    assert result.summary == template_summary(insights, txs)


@pytest.mark.asyncio
async def test_falls_back_on_empty_reply(batch):
    insights, txs = batch
    narrator = InsightNarrator(api_key="sk-test", client=fake_client(AsyncMock(return_value=completion(None))))
    assert (await narrator.summarize(insights, txs)).generated_by == "template"


@pytest.mark.asyncio
async def test_no_key_uses_template(batch):
    insights, txs = batch
    result = await InsightNarrator(api_key=None).summarize(insights, txs)
    assert result.generated_by == "template"
    assert "3 whale transfers worth $600,000" in result.summary
    assert "accumulation by 0xwhale" in result.summary


def test_template_without_transfers():
    assert template_summary([], []) == "No recent whale transfers to summarize."
