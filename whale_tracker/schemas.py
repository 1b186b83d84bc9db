from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import WhaleThresholds


Impact = Literal["critical", "high", "medium", "low"]
WhaleTier = Literal["mega", "large", "medium", "small"]
TxType = Literal["buy", "sell", "transfer"]
Severity = Literal["critical", "warning", "info"]
InsightType = Literal["accumulation", "distribution", "manipulation", "liquidity_event", "smart_money"]
TradingSignal = Literal["buy", "sell", "hold", "caution"]
PriceSource = Literal["reported", "derived", "estimated"]

IMPACT_RANK = {"critical": 3, "high": 2, "medium": 1, "low": 0}


class DataMode(str, Enum):
    LIVE = "live"
    DEGRADED = "degraded"
    FORCED_MOCK = "forced_mock"


# -----------------------------
# Raw upstream payloads
# -----------------------------
def _lenient_number(value: Any) -> Any:
    if value is None or isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RawAddressRef(_Raw):
    address_hash: str = ""


class RawTokenInfo(_Raw):
    token_contract: Optional[str] = None
    token_denom: Optional[str] = None
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None
    token_decimals: Optional[int] = None
    token_type: Optional[str] = None

    @field_validator("token_decimals", mode="before")
    @classmethod
    def _decimals(cls, v):
        v = _lenient_number(v)
        return int(v) if v is not None else None


class RawTransfer(_Raw):
    """One item of `/token/erc20/transfers` or `/addresses/token-transfers`."""

    tx_hash: str = ""
    amount: Optional[float] = None
    raw_amount: Optional[float] = None
    token_usd_price: Optional[float] = None
    total_usd_value: Optional[float] = None
    sender: RawAddressRef = Field(default_factory=RawAddressRef, alias="from")
    receiver: RawAddressRef = Field(default_factory=RawAddressRef, alias="to")
    timestamp: Optional[datetime] = None
    block_height: Optional[int] = None
    action: Optional[str] = None
    token_info: RawTokenInfo = Field(default_factory=RawTokenInfo)

    @field_validator("amount", "raw_amount", "token_usd_price", "total_usd_value", mode="before")
    @classmethod
    def _numbers(cls, v):
        return _lenient_number(v)

    @field_validator("block_height", mode="before")
    @classmethod
    def _block(cls, v):
        v = _lenient_number(v)
        return int(v) if v is not None else None

    @field_validator("sender", "receiver", mode="before")
    @classmethod
    def _address(cls, v):
        if v is None:
            return {}
        if isinstance(v, str):
            return {"address_hash": v}
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, v):
        if v in (None, ""):
            return None
        if isinstance(v, str):
            try:
                return datetime.fromisoformat(v.replace("Z", "+00:00"))
            except ValueError:
                return None
        return v

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v):
        return _as_utc(v)

    @field_validator("token_info", mode="before")
    @classmethod
    def _token_info(cls, v):
        return v or {}


class RawHolder(_Raw):
    """One item of `/token/erc20/holders`."""

    wallet_address: RawAddressRef = Field(default_factory=RawAddressRef)
    amount: Optional[float] = None
    token_usd_price: Optional[float] = None
    total_usd_value: Optional[float] = None
    token_contract: Optional[str] = None
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None

    @field_validator("amount", "token_usd_price", "total_usd_value", mode="before")
    @classmethod
    def _numbers(cls, v):
        return _lenient_number(v)

    @field_validator("wallet_address", mode="before")
    @classmethod
    def _address(cls, v):
        if v is None:
            return {}
        if isinstance(v, str):
            return {"address_hash": v}
        return v


class RawAddress(_Raw):
    """Payload of `/addresses`."""

    address: str = ""
    balance: Optional[float] = None
    balance_usd: Optional[float] = None
    token_count: int = 0
    tx_count: int = 0
    first_tx_date: Optional[datetime] = None
    last_tx_date: Optional[datetime] = None
    is_contract: bool = False
    tags: List[str] = Field(default_factory=list)

    @field_validator("balance", "balance_usd", mode="before")
    @classmethod
    def _numbers(cls, v):
        return _lenient_number(v)

    @field_validator("token_count", "tx_count", mode="before")
    @classmethod
    def _counts(cls, v):
        v = _lenient_number(v)
        return int(v) if v is not None else 0

    @field_validator("first_tx_date", "last_tx_date")
    @classmethod
    def _utc(cls, v):
        return _as_utc(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v):
        return v or []


# -----------------------------
# Domain records
# -----------------------------
class WhaleTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    from_address: str
    to_address: str
    amount: float
    raw_amount: Optional[float] = None  # base units, as reported
    amount_usd: float
    price_source: PriceSource = "reported"
    timestamp: datetime
    block_number: int = 0
    token_address: str = ""
    token_symbol: str = "UNKNOWN"
    token_name: str = "Unknown Token"
    token_decimals: int = 18
    type: TxType = "transfer"
    impact: Impact = "low"
    is_whale: bool = False
    whale_type: WhaleTier = "small"
    confidence_score: int = 60


class WhaleAddress(BaseModel):
    address: str
    balance: float = 0.0
    balance_usd: float = 0.0
    token_count: int = 0
    transaction_count: int = 0
    first_seen: Optional[datetime] = None
    last_active: Optional[datetime] = None
    is_contract: bool = False
    whale_rank: int = 0
    tags: List[str] = Field(default_factory=list)
    risk_level: Impact = "low"
    activity_pattern: Literal["accumulator", "distributor", "trader", "holder"] = "holder"
    influence: float = 0.0


class TokenWhaleAnalysis(BaseModel):
    token_address: str
    token_symbol: str = "UNKNOWN"
    token_name: str = "Unknown Token"
    whale_concentration: float = 0.0
    whale_count: int = 0
    average_whale_holding: float = 0.0
    recent_whale_activity: List[WhaleTransaction] = Field(default_factory=list)
    price_impact_risk: Impact = "low"
    manipulation_risk: int = 0
    liquidity_health: Literal["poor", "fair", "good", "excellent"] = "poor"
    top_whales: List[WhaleAddress] = Field(default_factory=list)
    used_baseline: bool = False


class WhaleInsight(BaseModel):
    id: str
    type: InsightType
    title: str
    description: str
    severity: Severity
    confidence: int
    trading_signal: Optional[TradingSignal] = None
    reasoning: str
    expected_impact: str
    timeframe: Optional[Literal["short", "medium", "long"]] = None
    related_addresses: List[str] = Field(default_factory=list)
    related_tokens: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WhaleAlerts(BaseModel):
    large_transfers: List[WhaleTransaction] = Field(default_factory=list)
    new_whales: List[WhaleAddress] = Field(default_factory=list)
    unusual_activity: List[WhaleInsight] = Field(default_factory=list)
    risk_alerts: List[WhaleInsight] = Field(default_factory=list)


class ScanResult(BaseModel):
    total_scanned: int
    whales_found: int
    transactions: List[WhaleTransaction]


class RateLimitStatus(BaseModel):
    requests_used: int
    requests_remaining: int
    resets_in: float


# -----------------------------
# HTTP payloads
# -----------------------------
class WhaleTransactionList(BaseModel):
    transactions: List[WhaleTransaction]
    count: int
    summary: Optional[str] = None


class ThresholdsUpdate(BaseModel):
    mega: Optional[float] = None
    large: Optional[float] = None
    medium: Optional[float] = None
    small: Optional[float] = None
    min_whale_transaction: Optional[float] = None


class ServiceStatus(BaseModel):
    mode: DataMode
    using_mock_data: bool
    api_key_status: str
    rate_limit: RateLimitStatus
    thresholds: WhaleThresholds


class InsightSummary(BaseModel):
    summary: str
    insight_count: int
    transaction_count: int
    generated_by: Literal["openai", "template"]
