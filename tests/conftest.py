import random
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from whale_tracker.config import Settings, WhaleThresholds
from whale_tracker.rate_limiter import RateLimiter
from whale_tracker.schemas import WhaleTransaction
from whale_tracker.whale_service import WhaleTrackerService


class FakeClock:
    """Monotonic clock whose sleep() just moves time forward."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def thresholds():
    return WhaleThresholds(mega=10_000_000, large=1_000_000, medium=100_000, small=50_000)


@pytest.fixture
def mock_settings(thresholds):
    return Settings(api_key=None, thresholds=thresholds, min_request_interval=0)


@pytest.fixture
def live_settings(thresholds):
    return Settings(
        api_key="test-key",
        base_url="https://explorer.test/api/v2",
        thresholds=thresholds,
        min_request_interval=0,
    )


@pytest.fixture
def mock_service(mock_settings):
    return WhaleTrackerService(mock_settings, rng=random.Random(42))


@pytest.fixture
def make_live_service(live_settings, clock):
    def build(handler, settings=None):
        settings = settings or live_settings
        limiter = RateLimiter(
            max_per_window=settings.requests_per_minute,
            min_interval=settings.min_request_interval,
            clock=clock,
            sleep=clock.sleep,
        )
        return WhaleTrackerService(
            settings,
            limiter=limiter,
            rng=random.Random(7),
            transport=httpx.MockTransport(handler),
        )

    return build


@pytest.fixture
def make_raw_transfer():
    counter = {"n": 0}

    def build(usd=None, sender=None, receiver=None, when=None, price=None, amount="1000",
              symbol="WSEI", contract="0x3894085Ef7Ff0f0aeDf52E2A2704928d259C2fc7", decimals="18"):
        counter["n"] += 1
        when = when or datetime.now(timezone.utc)
        return {
            "tx_hash": f"0x{counter['n']:064x}",
            "amount": amount,
            "raw_amount": None,
            "token_usd_price": None if price is None else str(price),
            "total_usd_value": None if usd is None else str(usd),
            "from": {"address_hash": sender or f"0x{counter['n'] + 1000:040x}"},
            "to": {"address_hash": receiver or f"0x{counter['n'] + 2000:040x}"},
            "timestamp": when.isoformat(),
            "block_height": str(150_000_000 + counter["n"]),
            "action": "transfer",
            "token_info": {
                "token_contract": contract,
                "token_symbol": symbol,
                "token_name": "Wrapped SEI",
                "token_decimals": decimals,
            },
        }

    return build


@pytest.fixture
def make_tx():
    counter = {"n": 0}

    def build(usd, sender="0xsender", receiver="0xreceiver", hours_ago=0.0, impact="low",
              tx_type="transfer", whale_type="small", confidence=80, symbol="WSEI"):
        counter["n"] += 1
        return WhaleTransaction(
            hash=f"0x{counter['n']:064x}",
            from_address=sender,
            to_address=receiver,
            amount=usd,
            amount_usd=usd,
            timestamp=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
            token_symbol=symbol,
            type=tx_type,
            impact=impact,
            is_whale=True,
            whale_type=whale_type,
            confidence_score=confidence,
        )

    return build
