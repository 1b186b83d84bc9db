from whale_tracker.cache import ResponseCache, make_key


def test_hit_within_ttl(clock):
    cache = ResponseCache(ttl=60, clock=clock)
    cache.set("k", {"items": [1]})
    clock.advance(59)
    assert cache.get("k") == {"items": [1]}


def test_miss_after_ttl(clock):
    cache = ResponseCache(ttl=60, clock=clock)
    cache.set("k", {"items": [1]})
    clock.advance(60)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_unknown_key_is_a_miss(clock):
    assert ResponseCache(clock=clock).get("nope") is None


def test_set_refreshes_timestamp(clock):
    cache = ResponseCache(ttl=60, clock=clock)
    cache.set("k", 1)
    clock.advance(50)
    cache.set("k", 2)
    clock.advance(50)
    assert cache.get("k") == 2


def test_clear_drops_everything(clock):
    cache = ResponseCache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_key_ignores_parameter_order():
    a = make_key("/token/erc20/transfers", {"limit": 50, "contract_address": "0xabc", "offset": 0})
    b = make_key("/token/erc20/transfers", {"offset": 0, "contract_address": "0xabc", "limit": 50})
    assert a == b


def test_key_distinguishes_endpoint_and_values():
    assert make_key("/a", {"x": 1}) != make_key("/b", {"x": 1})
    assert make_key("/a", {"x": 1}) != make_key("/a", {"x": 2})


def test_key_drops_none_params():
    assert make_key("/a", {"x": 1, "y": None}) == make_key("/a", {"x": 1})
    assert make_key("/a") == make_key("/a", {})
