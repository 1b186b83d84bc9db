import asyncio
import logging
import math
import random
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from .cache import ResponseCache, make_key
from .classifier import TransactionClassifier, decode_holders, decode_items, impact_level
from .config import Settings, WhaleThresholds
from .insights import InsightEngine
from .mock_data import MockDataGenerator
from .rate_limiter import RateLimiter
from .schemas import (
    IMPACT_RANK,
    DataMode,
    RateLimitStatus,
    RawAddress,
    ScanResult,
    ServiceStatus,
    TokenWhaleAnalysis,
    WhaleAddress,
    WhaleAlerts,
    WhaleInsight,
    WhaleTransaction,
)
from .upstream import ADDRESS_TRANSFERS, ADDRESSES, HOLDERS, TRANSFERS, UpstreamClient, UpstreamFailure

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
RECENT_MAX_PAGES = 4
SCAN_MAX_PAGES = 20
INSIGHT_BATCH = 100
ALERT_BATCH = 50


def sort_whales(transactions: Iterable[WhaleTransaction]) -> List[WhaleTransaction]:
    """Impact level first (critical .. low), newest first within a level."""
    return sorted(
        transactions,
        key=lambda t: (IMPACT_RANK[t.impact], t.timestamp),
        reverse=True,
    )


def price_impact_risk(concentration: float, transactions: Sequence[WhaleTransaction]) -> str:
    critical = sum(1 for t in transactions if t.impact == "critical")
    if concentration > 70 and len(transactions) > 5:
        return "critical"
    if concentration > 50 or critical > 2:
        return "high"
    if concentration > 30 or len(transactions) > 3:
        return "medium"
    return "low"


def manipulation_risk(transactions: Sequence[WhaleTransaction]) -> int:
    """0-100 score from activity count, burstiness and sender concentration."""
    risk = min(50, len(transactions) * 5)
    if len(transactions) > 1:
        stamps = [t.timestamp for t in transactions]
        span = (max(stamps) - min(stamps)).total_seconds()
    else:
        span = 86400.0
    if span < 3600 and len(transactions) > 3:
        risk += 30
    senders = {t.from_address for t in transactions}
    if len(senders) < 3 and len(transactions) > 5:
        risk += 25
    return min(100, risk)


def liquidity_health(total_usd: float, transaction_count: int) -> str:
    score = math.log10(total_usd + 1) * 10 + transaction_count
    if score > 100:
        return "excellent"
    if score > 60:
        return "good"
    if score > 30:
        return "fair"
    return "poor"


def activity_pattern(address: str, transactions: Iterable[WhaleTransaction]) -> str:
    address = address.lower()
    received = sent = 0
    for t in transactions:
        if t.to_address.lower() == address:
            received += 1
        if t.from_address.lower() == address:
            sent += 1
    if not received and not sent:
        return "holder"
    if received > 2 * sent:
        return "accumulator"
    if sent > 2 * received:
        return "distributor"
    return "trader"


class WhaleTrackerService:
    """
    Answers whale queries from the SeiTrace explorer, or from synthetic data
    once the explorer is unavailable.

    Mode starts as FORCED_MOCK when no API key is configured (or mock data is
    forced), else LIVE. The first upstream failure moves LIVE to DEGRADED for
    the lifetime of the instance; there is no automatic recovery.
    """

    def __init__(
        self,
        settings: Settings,
        limiter: Optional[RateLimiter] = None,
        cache: Optional[ResponseCache] = None,
        mock: Optional[MockDataGenerator] = None,
        rng: Optional[random.Random] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._rng = rng or random.Random()
        self.limiter = limiter or RateLimiter(
            max_per_window=settings.requests_per_minute,
            min_interval=settings.min_request_interval,
        )
        self.cache = cache or ResponseCache(ttl=settings.cache_ttl)
        self.client = UpstreamClient(
            api_key=settings.api_key,
            limiter=self.limiter,
            base_url=settings.base_url,
            chain_id=settings.chain_id,
            timeout=settings.request_timeout,
            transport=transport,
        )
        self.mock = mock or MockDataGenerator(self._rng)
        self._thresholds = settings.thresholds
        self._thresholds_lock = threading.Lock()

        if settings.force_mock or not settings.api_key:
            self._mode = DataMode.FORCED_MOCK
            logger.warning(
                "SeiTrace %s, serving synthetic whale data",
                "mock mode forced" if settings.force_mock else "API key missing",
            )
        else:
            self._mode = DataMode.LIVE

    # -----------------------------
    # Mode / introspection
    # -----------------------------
    @property
    def mode(self) -> DataMode:
        return self._mode

    def is_using_mock_data(self) -> bool:
        return self._mode is not DataMode.LIVE

    def get_api_key_status(self) -> str:
        if not self.settings.api_key:
            return "API Key Missing"
        if self.is_using_mock_data():
            return "Using Mock Data"
        return "Connected to SeiTrace"

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self.limiter.status()

    def status(self) -> ServiceStatus:
        return ServiceStatus(
            mode=self._mode,
            using_mock_data=self.is_using_mock_data(),
            api_key_status=self.get_api_key_status(),
            rate_limit=self.get_rate_limit_status(),
            thresholds=self.thresholds,
        )

    def _degrade(self, failure: UpstreamFailure) -> None:
        if self._mode is DataMode.LIVE:
            logger.warning(
                "SeiTrace unavailable (%s on %s), switching to mock data for this session",
                failure.reason, failure.endpoint,
            )
            self._mode = DataMode.DEGRADED

    # -----------------------------
    # Thresholds
    # -----------------------------
    @property
    def thresholds(self) -> WhaleThresholds:
        return self._thresholds

    def get_whale_thresholds(self) -> WhaleThresholds:
        return self._thresholds

    def set_whale_thresholds(self, **changes: Optional[float]) -> WhaleThresholds:
        """
        Apply a partial update. Raises InvalidThresholdsError (and keeps the
        current values) if the result breaks mega >= large >= medium >= small >= 0.
        """
        with self._thresholds_lock:
            updated = self._thresholds.merged(**changes)
            self._thresholds = updated
        self.cache.clear()
        logger.info("Whale thresholds updated to %s, cache cleared", updated.model_dump())
        return updated

    def get_min_whale_transaction(self) -> float:
        t = self._thresholds
        return max(t.small, t.min_whale_transaction)

    # -----------------------------
    # Data access
    # -----------------------------
    async def _fetch(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        key = make_key(endpoint, params)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        thresholds = self._thresholds
        payload = None
        if self._mode is DataMode.LIVE:
            result = await self.client.request(endpoint, params)
            if isinstance(result, UpstreamFailure):
                self._degrade(result)
            else:
                payload = result
        if payload is None:
            payload = self.mock.payload_for(endpoint, params, thresholds)

        self._cache_unless_stale(key, payload, thresholds)
        return payload

    def _cache_unless_stale(self, key: str, value: Any, thresholds: WhaleThresholds) -> None:
        # a threshold update while this query was in flight already cleared the cache
        if self._thresholds is thresholds:
            self.cache.set(key, value)

    def _classifier(self, thresholds: WhaleThresholds) -> TransactionClassifier:
        return TransactionClassifier(thresholds, rng=self._rng)

    @staticmethod
    def _qualifies(tx: WhaleTransaction, thresholds: WhaleThresholds) -> bool:
        return tx.is_whale and tx.amount_usd >= thresholds.min_whale_transaction

    async def _scan(
        self,
        thresholds: WhaleThresholds,
        want: int,
        scan_limit: int,
        max_pages: int,
    ) -> Tuple[int, List[WhaleTransaction]]:
        """Page through tracked token transfers until `want` whales or `scan_limit` records."""
        classifier = self._classifier(thresholds)
        scanned = 0
        found: Dict[str, WhaleTransaction] = {}

        for contract in self.settings.tracked_tokens:
            for page in range(max_pages):
                page_limit = min(PAGE_SIZE, scan_limit - scanned)
                if page_limit <= 0:
                    break
                payload = await self._fetch(
                    TRANSFERS,
                    {"contract_address": contract, "limit": page_limit, "offset": page * PAGE_SIZE},
                )
                raws = decode_items(payload)
                scanned += len(raws)
                for tx in classifier.classify_all(raws):
                    if self._qualifies(tx, thresholds):
                        found.setdefault(tx.hash, tx)
                if len(raws) < page_limit or len(found) >= want:
                    break
            if len(found) >= want or scanned >= scan_limit:
                break

        return scanned, list(found.values())

    async def _recent(self, limit: int, thresholds: WhaleThresholds) -> List[WhaleTransaction]:
        scan_limit = PAGE_SIZE * RECENT_MAX_PAGES * max(1, len(self.settings.tracked_tokens))
        _, whales = await self._scan(thresholds, limit, scan_limit, RECENT_MAX_PAGES)

        if whales:
            seen = {tx.hash for tx in whales}
            known = list(dict.fromkeys(tx.from_address for tx in whales if tx.from_address))[:3]
            for tx in await self._by_address(known, thresholds):
                if tx.hash not in seen:
                    seen.add(tx.hash)
                    whales.append(tx)
        else:
            logger.info("No whale transfers found upstream, generating sample data")
            classifier = self._classifier(thresholds)
            raws = decode_items({"items": self.mock.recent_whale_transactions(thresholds, limit)})
            whales = [tx for tx in classifier.classify_all(raws) if self._qualifies(tx, thresholds)]

        return sort_whales(whales)[:limit]

    async def _by_address(self, addresses: Sequence[str], thresholds: WhaleThresholds) -> List[WhaleTransaction]:
        classifier = self._classifier(thresholds)
        payloads = await asyncio.gather(*(
            self._fetch(ADDRESS_TRANSFERS, {"address": address, "limit": 10})
            for address in addresses[:3]
        ))
        found = []
        for payload in payloads:
            found.extend(
                tx for tx in classifier.classify_all(decode_items(payload))
                if self._qualifies(tx, thresholds)
            )
        found.sort(key=lambda t: t.timestamp, reverse=True)
        return found[:20]

    # -----------------------------
    # Public queries
    # -----------------------------
    async def get_recent_whale_transactions(self, limit: int = 20) -> List[WhaleTransaction]:
        limit = max(1, limit)
        return await self._recent(limit, self._thresholds)

    async def get_whales_by_address(self, addresses: Sequence[str]) -> List[WhaleTransaction]:
        return await self._by_address(addresses, self._thresholds)

    async def scan_for_whale_transactions(self, scan_limit: int = 1000, whale_limit: int = 50) -> ScanResult:
        thresholds = self._thresholds
        max_pages = min(math.ceil(max(scan_limit, 1) / PAGE_SIZE), SCAN_MAX_PAGES)
        scanned, whales = await self._scan(thresholds, whale_limit, scan_limit, max_pages)
        whales.sort(key=lambda t: (t.amount_usd, t.timestamp), reverse=True)
        whales = whales[:whale_limit]
        logger.info("Scan complete: %d transfers scanned, %d whales found", scanned, len(whales))
        return ScanResult(total_scanned=scanned, whales_found=len(whales), transactions=whales)

    async def get_token_holders(self, token_address: str) -> List[WhaleAddress]:
        thresholds = self._thresholds
        payload = await self._fetch(HOLDERS, {"contract_address": token_address, "limit": PAGE_SIZE})
        holders = []
        for raw in decode_holders(payload):
            usd = raw.total_usd_value
            if usd is None and raw.amount is not None and raw.token_usd_price is not None:
                usd = raw.amount * raw.token_usd_price
            usd = usd or 0.0
            if usd < thresholds.small or not raw.wallet_address.address_hash:
                continue
            holders.append(WhaleAddress(
                address=raw.wallet_address.address_hash,
                balance=raw.amount or 0.0,
                balance_usd=usd,
                token_count=1,
                risk_level=impact_level(usd, thresholds),
                activity_pattern="holder",
                influence=self._influence(usd, thresholds),
            ))
        holders.sort(key=lambda h: h.balance_usd, reverse=True)
        return [h.model_copy(update={"whale_rank": i + 1}) for i, h in enumerate(holders)]

    async def get_address_profile(
        self,
        address: str,
        transactions: Iterable[WhaleTransaction] = (),
    ) -> WhaleAddress:
        thresholds = self._thresholds
        payload = await self._fetch(ADDRESSES, {"address": address})
        try:
            raw = RawAddress.model_validate(payload)
        except ValidationError as e:
            logger.warning("Malformed address payload for %s: %s", address, e.errors()[:1])
            raw = RawAddress(address=address)

        balance = raw.balance or 0.0
        usd = raw.balance_usd if raw.balance_usd is not None else balance * self.settings.native_token_price_usd
        return WhaleAddress(
            address=raw.address or address,
            balance=balance,
            balance_usd=usd,
            token_count=raw.token_count,
            transaction_count=raw.tx_count,
            first_seen=raw.first_tx_date,
            last_active=raw.last_tx_date,
            is_contract=raw.is_contract,
            tags=raw.tags,
            risk_level=impact_level(usd, thresholds),
            activity_pattern=activity_pattern(address, transactions),
            influence=self._influence(usd, thresholds),
        )

    @staticmethod
    def _influence(usd: float, thresholds: WhaleThresholds) -> float:
        if thresholds.mega <= 0:
            return 100.0
        return round(min(100.0, usd / thresholds.mega * 100), 1)

    async def get_token_whale_analysis(self, token_address: str) -> TokenWhaleAnalysis:
        token_address = token_address.lower()
        key = make_key("token_analysis", {"token": token_address})
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        thresholds = self._thresholds
        classifier = self._classifier(thresholds)
        payload, holders = await asyncio.gather(
            self._fetch(TRANSFERS, {"contract_address": token_address, "limit": PAGE_SIZE, "offset": 0}),
            self.get_token_holders(token_address),
        )
        activity = [
            tx for tx in classifier.classify_all(decode_items(payload))
            if self._qualifies(tx, thresholds)
        ]
        used_baseline = not activity
        if used_baseline:
            logger.info("No whale activity for %s, using mainnet baseline", token_address)
            activity = await self._recent(20, thresholds)

        volume = sum(t.amount_usd for t in activity)
        large_volume = sum(t.amount_usd for t in activity if t.whale_type in ("mega", "large"))
        concentration = large_volume / volume * 100 if volume > 0 else 0.0

        if holders:
            holdings = sum(h.balance_usd for h in holders)
            whale_count = len(holders)
            average = holdings / whale_count
        else:
            holdings = volume
            whale_count = len({t.from_address for t in activity} | {t.to_address for t in activity})
            average = volume / max(1, len(activity))

        token = activity[0] if activity and not used_baseline else None
        analysis = TokenWhaleAnalysis(
            token_address=token_address,
            token_symbol=token.token_symbol if token else "UNKNOWN",
            token_name=token.token_name if token else "Unknown Token",
            whale_concentration=round(concentration, 2),
            whale_count=whale_count,
            average_whale_holding=average,
            recent_whale_activity=sort_whales(activity)[:10],
            price_impact_risk=price_impact_risk(concentration, activity),
            manipulation_risk=manipulation_risk(activity),
            liquidity_health=liquidity_health(holdings, len(activity)),
            top_whales=holders[:10],
            used_baseline=used_baseline,
        )
        self._cache_unless_stale(key, analysis, thresholds)
        return analysis

    async def get_whale_insights(self) -> List[WhaleInsight]:
        thresholds = self._thresholds
        transactions = await self._recent(INSIGHT_BATCH, thresholds)
        return InsightEngine(thresholds).analyze(transactions)

    async def get_whale_alerts(self) -> WhaleAlerts:
        thresholds = self._thresholds
        batch = await self._recent(INSIGHT_BATCH, thresholds)
        recent = batch[:ALERT_BATCH]
        insights = InsightEngine(thresholds).analyze(batch)

        large = [t for t in recent if t.impact in ("critical", "high")][:10]

        top = sorted(recent, key=lambda t: t.amount_usd, reverse=True)[:5]
        candidates = list(dict.fromkeys(t.to_address for t in top if t.to_address))
        profiles = await asyncio.gather(*(self.get_address_profile(a, batch) for a in candidates))
        new_whales = sorted(
            (p for p in profiles if p.balance_usd > thresholds.medium),
            key=lambda p: p.balance_usd,
            reverse=True,
        )
        new_whales = [p.model_copy(update={"whale_rank": i + 1}) for i, p in enumerate(new_whales)]

        return WhaleAlerts(
            large_transfers=large,
            new_whales=new_whales,
            unusual_activity=[i for i in insights if i.type in ("manipulation", "liquidity_event")],
            risk_alerts=[i for i in insights if i.severity in ("critical", "warning")],
        )

    async def aclose(self) -> None:
        await self.client.aclose()
