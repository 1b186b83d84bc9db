import asyncio

import pytest

from whale_tracker.rate_limiter import RateLimiter


def make_limiter(clock, **kwargs):
    return RateLimiter(clock=clock, sleep=clock.sleep, **kwargs)


@pytest.mark.asyncio
async def test_first_request_is_not_delayed(clock):
    limiter = make_limiter(clock, max_per_window=45, min_interval=1.5)
    await limiter.acquire()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_enforces_min_spacing_between_requests(clock):
    limiter = make_limiter(clock, max_per_window=45, min_interval=1.5)
    start = clock.now
    await limiter.acquire()
    await limiter.acquire()
    await limiter.acquire()
    assert clock.now - start == pytest.approx(3.0)


@pytest.mark.asyncio
async def test_no_spacing_wait_when_requests_are_far_apart(clock):
    limiter = make_limiter(clock, max_per_window=45, min_interval=1.5)
    await limiter.acquire()
    clock.advance(5)
    await limiter.acquire()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_exhausted_budget_waits_for_window_reset(clock):
    budget, n = 5, 12
    limiter = make_limiter(clock, max_per_window=budget, min_interval=0, window=60)
    start = clock.now
    for _ in range(n):
        await limiter.acquire()
    elapsed = clock.now - start
    # every request completes, none is dropped, and the overflow costs real time
    assert elapsed >= ((n - budget) / budget) * 60
    assert limiter.status().requests_used == n - 2 * budget


@pytest.mark.asyncio
async def test_window_is_fixed_from_first_request(clock):
    limiter = make_limiter(clock, max_per_window=3, min_interval=0, window=60)
    for _ in range(3):
        await limiter.acquire()
    clock.advance(61)
    await limiter.acquire()
    assert clock.sleeps == []
    assert limiter.status().requests_used == 1


@pytest.mark.asyncio
async def test_concurrent_callers_are_serialized(clock):
    limiter = make_limiter(clock, max_per_window=45, min_interval=2)
    order = []

    async def call(i):
        await limiter.acquire()
        order.append((i, clock.now))

    await asyncio.gather(*(call(i) for i in range(4)))
    assert [i for i, _ in order] == [0, 1, 2, 3]
    stamps = [t for _, t in order]
    assert all(b - a >= 2 for a, b in zip(stamps, stamps[1:]))


@pytest.mark.asyncio
async def test_status_reports_budget(clock):
    limiter = make_limiter(clock, max_per_window=10, min_interval=0, window=60)
    assert limiter.status().requests_remaining == 10
    await limiter.acquire()
    await limiter.acquire()
    clock.advance(15)
    status = limiter.status()
    assert status.requests_used == 2
    assert status.requests_remaining == 8
    assert status.resets_in == pytest.approx(45)


def test_rejects_empty_budget():
    with pytest.raises(ValueError):
        RateLimiter(max_per_window=0)
