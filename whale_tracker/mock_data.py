"""
Synthetic SeiTrace payloads.

Used when the explorer is unreachable or no API key is configured. Records
come out in the same JSON shape the explorer returns, so they go through
the same decoding and classification as live data. Values are random,
shapes are not: pass a seeded `random.Random` to get repeatable output.
"""
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .config import WhaleThresholds
from .upstream import ADDRESS_TRANSFERS, ADDRESSES, HOLDERS, TOKEN_INFO, TRANSFERS

# (tier, probability) for the amount draw
TIER_WEIGHTS = (("mega", 0.05), ("large", 0.15), ("medium", 0.30), ("small", 0.50))

MOCK_TOKENS = [
    {"symbol": "SEI", "name": "Sei", "denom": "usei", "contract": None, "decimals": 6, "price": 0.42},
    {"symbol": "WSEI", "name": "Wrapped SEI", "contract": "0x3894085Ef7Ff0f0aeDf52E2A2704928d259C2fc7",
     "decimals": 18, "price": 0.42},
    {"symbol": "USDC", "name": "USD Coin", "contract": "0x1234567890123456789012345678901234567890",
     "decimals": 6, "price": 1.0},
    {"symbol": "WETH", "name": "Wrapped Ether", "contract": "0x160345fc359604fc6e70e3c5facbde5f7a9342d8",
     "decimals": 18, "price": 3150.0},
]

WINDOW = timedelta(hours=24)


class MockDataGenerator:
    def __init__(self, rng: Optional[random.Random] = None, whale_pool_size: int = 8):
        self.rng = rng or random.Random()
        # recurring addresses so patterns (accumulation etc.) can show up
        self.whale_pool = [self.address() for _ in range(whale_pool_size)]

    # -----------------------------
    # Primitives
    # -----------------------------
    def address(self) -> str:
        return f"0x{self.rng.getrandbits(160):040x}"

    def tx_hash(self) -> str:
        return f"0x{self.rng.getrandbits(256):064x}"

    def timestamp(self, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return now - timedelta(seconds=self.rng.uniform(0, WINDOW.total_seconds()))

    def whale_amount_usd(self, thresholds: WhaleThresholds) -> float:
        """USD value drawn from a random tier, inside that tier's band."""
        tier = self.rng.choices(
            [t for t, _ in TIER_WEIGHTS], weights=[w for _, w in TIER_WEIGHTS]
        )[0]
        bands = {
            "mega": (thresholds.mega, thresholds.mega * 2),
            "large": (thresholds.large, thresholds.mega),
            "medium": (thresholds.medium, thresholds.large),
            "small": (thresholds.small, thresholds.medium),
        }
        low, high = bands[tier]
        # never drop under the floor, even with degenerate (equal) thresholds
        low = max(low, thresholds.small, thresholds.min_whale_transaction)
        if high <= low:
            return low
        return self.rng.uniform(low, high)

    def _token(self, contract_address: Optional[str] = None) -> Dict[str, Any]:
        if contract_address:
            for token in MOCK_TOKENS:
                if token["contract"] and token["contract"].lower() == contract_address.lower():
                    return token
            return {"symbol": "UNK", "name": "Unknown Token", "contract": contract_address,
                    "decimals": 18, "price": round(self.rng.uniform(0.01, 100), 4)}
        return self.rng.choice(MOCK_TOKENS)

    # -----------------------------
    # Records
    # -----------------------------
    def transfer(
        self,
        thresholds: WhaleThresholds,
        contract_address: Optional[str] = None,
        sender: Optional[str] = None,
        receiver: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        token = self._token(contract_address)
        usd = self.whale_amount_usd(thresholds)
        amount = usd / token["price"]
        from_whale = self.rng.random() < 0.4
        return {
            "tx_hash": self.tx_hash(),
            "amount": f"{amount:.6f}",
            "raw_amount": str(int(amount * 10 ** token["decimals"])),
            "token_usd_price": str(token["price"]),
            "total_usd_value": f"{usd:.2f}",
            "from": {"address_hash": sender or (self.rng.choice(self.whale_pool) if from_whale else self.address())},
            "to": {"address_hash": receiver or (self.address() if from_whale else self.rng.choice(self.whale_pool))},
            "timestamp": self.timestamp(now).isoformat(),
            "block_height": str(150_000_000 + self.rng.randint(0, 1_000_000)),
            "action": "transfer",
            "token_info": {
                "token_contract": token["contract"],
                "token_denom": token.get("denom"),
                "token_symbol": token["symbol"],
                "token_name": token["name"],
                "token_decimals": str(token["decimals"]),
                "token_type": "ERC-20" if token["contract"] else "native",
            },
        }

    def transfers(self, thresholds: WhaleThresholds, count: int,
                  contract_address: Optional[str] = None) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        items = [self.transfer(thresholds, contract_address, now=now) for _ in range(count)]
        items.sort(key=lambda t: datetime.fromisoformat(t["timestamp"]), reverse=True)
        return {"items": items, "next_page_params": None}

    def recent_whale_transactions(self, thresholds: WhaleThresholds, count: int) -> List[Dict[str, Any]]:
        return self.transfers(thresholds, count)["items"]

    def holders(self, thresholds: WhaleThresholds, contract_address: str, count: int = 10) -> Dict[str, Any]:
        token = self._token(contract_address)
        addresses = self.whale_pool[: max(1, count // 2)]
        addresses += [self.address() for _ in range(max(0, count - len(addresses)))]
        items = []
        for address in addresses:
            if address in self.whale_pool:
                usd = self.whale_amount_usd(thresholds)
            else:
                usd = self.rng.uniform(0, thresholds.medium)
            items.append({
                "wallet_address": {"address_hash": address},
                "amount": f"{usd / token['price']:.6f}",
                "token_usd_price": str(token["price"]),
                "total_usd_value": f"{usd:.2f}",
                "token_contract": token["contract"],
                "token_symbol": token["symbol"],
                "token_name": token["name"],
            })
        items.sort(key=lambda h: float(h["total_usd_value"]), reverse=True)
        return {"items": items}

    def address_info(self, thresholds: WhaleThresholds, address: str) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        is_whale = address in self.whale_pool or self.rng.random() < 0.5
        usd = self.whale_amount_usd(thresholds) if is_whale else self.rng.uniform(0, thresholds.small)
        return {
            "address": address,
            "balance": f"{usd / 0.42:.4f}",
            "balance_usd": f"{usd:.2f}",
            "token_count": self.rng.randint(15, 45) if is_whale else self.rng.randint(1, 10),
            "tx_count": self.rng.randint(200, 5200) if is_whale else self.rng.randint(5, 105),
            "first_tx_date": (now - timedelta(days=self.rng.uniform(30, 730))).isoformat(),
            "last_tx_date": (now - timedelta(hours=self.rng.uniform(0, 168))).isoformat(),
            "is_contract": self.rng.random() > 0.8,
            "tags": ["whale", "high-volume"] if is_whale else [],
        }

    def token_info(self, contract_address: str) -> Dict[str, Any]:
        token = self._token(contract_address)
        supply = self.rng.randint(50_000_000, 10_000_000_000)
        return {
            "token_contract": contract_address,
            "token_symbol": token["symbol"],
            "token_name": token["name"],
            "token_decimals": str(token["decimals"]),
            "total_supply": str(supply),
            "holders_count": self.rng.randint(100, 10_000),
            "token_usd_price": str(token["price"]),
        }

    def payload_for(self, endpoint: str, params: Dict[str, Any], thresholds: WhaleThresholds) -> Dict[str, Any]:
        """Answer an explorer request with synthetic data of the same shape."""
        limit = int(params.get("limit") or 50)
        contract = params.get("contract_address")
        if endpoint == TRANSFERS:
            return self.transfers(thresholds, limit, contract)
        if endpoint == HOLDERS:
            return self.holders(thresholds, contract or self.address(), limit)
        if endpoint == ADDRESSES:
            return self.address_info(thresholds, params.get("address") or self.address())
        if endpoint == ADDRESS_TRANSFERS:
            address = params.get("address") or self.address()
            now = datetime.now(timezone.utc)
            items = [self.transfer(thresholds, sender=address, now=now) for _ in range(limit)]
            return {"items": items, "next_page_params": None}
        if endpoint == TOKEN_INFO:
            return self.token_info(contract or self.address())
        return {"items": []}
