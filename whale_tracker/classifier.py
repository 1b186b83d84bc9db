import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .config import WhaleThresholds
from .schemas import Impact, RawHolder, RawTransfer, WhaleTier, WhaleTransaction

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40
NATIVE_SYMBOLS = {"SEI", "USEI"}


def whale_tier(amount_usd: float, thresholds: WhaleThresholds) -> WhaleTier:
    if amount_usd >= thresholds.mega:
        return "mega"
    if amount_usd >= thresholds.large:
        return "large"
    if amount_usd >= thresholds.medium:
        return "medium"
    return "small"


def impact_level(amount_usd: float, thresholds: WhaleThresholds) -> Impact:
    if amount_usd >= thresholds.mega:
        return "critical"
    if amount_usd >= thresholds.large:
        return "high"
    if amount_usd >= thresholds.medium:
        return "medium"
    return "low"


def is_whale(amount_usd: float, thresholds: WhaleThresholds) -> bool:
    return amount_usd >= thresholds.small


def decode_items(payload: Dict[str, Any], model=RawTransfer) -> List[Any]:
    """Parse `payload["items"]` leniently; items that still don't fit are skipped."""
    items = payload.get("items") or []
    decoded = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            decoded.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed %s item: %s", model.__name__, e.errors()[:1])
    return decoded


def decode_holders(payload: Dict[str, Any]) -> List[RawHolder]:
    return decode_items(payload, RawHolder)


class TransactionClassifier:
    """
    Turns raw explorer transfers into WhaleTransaction records.

    Bound to one thresholds snapshot so a whole batch is classified
    against the same boundaries.
    """

    def __init__(self, thresholds: WhaleThresholds, rng: Optional[random.Random] = None, jitter: int = 3):
        self.thresholds = thresholds
        self.rng = rng or random.Random()
        self.jitter = jitter

    def _decimals(self, raw: RawTransfer) -> int:
        info = raw.token_info
        if info.token_decimals is not None:
            return info.token_decimals
        native = (info.token_denom and not info.token_contract) or (
            (info.token_symbol or "").upper() in NATIVE_SYMBOLS
        )
        return 6 if native else 18

    def _amount(self, raw: RawTransfer, decimals: int) -> float:
        if raw.amount is not None:
            return raw.amount
        if raw.raw_amount is not None:
            return raw.raw_amount / (10 ** decimals)
        return 0.0

    def resolve_usd(self, raw: RawTransfer, amount: float):
        """(usd value, source). Falls back to an estimate inside the whale range."""
        if raw.total_usd_value is not None:
            return raw.total_usd_value, "reported"
        if raw.token_usd_price is not None:
            return amount * raw.token_usd_price, "derived"
        t = self.thresholds
        high = t.medium if t.medium > t.small else t.small * 2 or 1.0
        return self.rng.uniform(t.small, high), "estimated"

    def confidence(self, tier: WhaleTier) -> int:
        bonus = {"mega": 25, "large": 20, "medium": 15}.get(tier, 10)
        score = 70 + bonus + self.rng.randint(-self.jitter, self.jitter)
        return max(60, min(100, score))

    @staticmethod
    def transaction_type(sender: str, receiver: str) -> str:
        if sender.lower() == ZERO_ADDRESS:
            return "buy"
        if receiver.lower() == ZERO_ADDRESS:
            return "sell"
        return "transfer"

    def classify(self, raw: RawTransfer) -> WhaleTransaction:
        decimals = self._decimals(raw)
        amount = self._amount(raw, decimals)
        amount_usd, source = self.resolve_usd(raw, amount)
        tier = whale_tier(amount_usd, self.thresholds)
        info = raw.token_info

        return WhaleTransaction(
            hash=raw.tx_hash,
            from_address=raw.sender.address_hash,
            to_address=raw.receiver.address_hash,
            amount=amount,
            raw_amount=raw.raw_amount,
            amount_usd=amount_usd,
            price_source=source,
            timestamp=raw.timestamp or datetime.now(timezone.utc),
            block_number=raw.block_height or 0,
            token_address=info.token_contract or info.token_denom or "",
            token_symbol=info.token_symbol or "UNKNOWN",
            token_name=info.token_name or "Unknown Token",
            token_decimals=decimals,
            type=self.transaction_type(raw.sender.address_hash, raw.receiver.address_hash),
            impact=impact_level(amount_usd, self.thresholds),
            is_whale=is_whale(amount_usd, self.thresholds),
            whale_type=tier,
            confidence_score=self.confidence(tier),
        )

    def classify_all(self, raws: Iterable[RawTransfer]) -> List[WhaleTransaction]:
        return [self.classify(raw) for raw in raws]
