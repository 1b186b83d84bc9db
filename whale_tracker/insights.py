"""
Pattern detection over a batch of classified whale transactions.

Four independent passes, each emitting zero or more WhaleInsight records:
  - accumulation: one address repeatedly receiving within a week
  - distribution: one address fanning out to several receivers
  - smart money: large, high-confidence moves
  - manipulation: a burst of critical-impact plain transfers
Text is assembled from templates out of the counted evidence.
"""
import uuid
from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from .config import WhaleThresholds
from .schemas import WhaleInsight, WhaleTransaction

ACCUMULATION_WINDOW = timedelta(days=7)
ACCUMULATION_MIN_TXS = 3
DISTRIBUTION_MIN_TXS = 2
DISTRIBUTION_MIN_RECEIVERS = 2
SMART_MONEY_MIN_CONFIDENCE = 80
MANIPULATION_MIN_TXS = 3  # strictly more than this many


def _short(address: str) -> str:
    if len(address) <= 12:
        return address
    return address[:6] + "..." + address[-4:]


def _usd(value: float) -> str:
    return f"${value:,.0f}"


def _span(txs: Sequence[WhaleTransaction]) -> str:
    stamps = [t.timestamp for t in txs]
    hours = (max(stamps) - min(stamps)).total_seconds() / 3600
    if hours < 1:
        return "under an hour"
    if hours < 48:
        return f"{hours:.0f} hours"
    return f"{hours / 24:.1f} days"


def _tokens(txs: Iterable[WhaleTransaction]) -> List[str]:
    return sorted({t.token_symbol for t in txs})


def _new_id(kind: str) -> str:
    return f"{kind}_{uuid.uuid4().hex[:12]}"


class InsightEngine:
    def __init__(self, thresholds: WhaleThresholds):
        self.thresholds = thresholds

    def analyze(self, transactions: Sequence[WhaleTransaction]) -> List[WhaleInsight]:
        insights: List[WhaleInsight] = []
        insights.extend(self.accumulation(transactions))
        insights.extend(self.distribution(transactions))
        insights.extend(self.smart_money(transactions))
        insights.extend(self.manipulation(transactions))
        insights.sort(key=lambda i: i.confidence, reverse=True)
        return insights

    # -----------------------------
    # Passes
    # -----------------------------
    def accumulation(self, transactions: Sequence[WhaleTransaction]) -> List[WhaleInsight]:
        by_receiver: Dict[str, List[WhaleTransaction]] = defaultdict(list)
        for tx in transactions:
            if tx.to_address:
                by_receiver[tx.to_address].append(tx)

        found = []
        for address, txs in by_receiver.items():
            window = self._accumulation_window(txs)
            if window is None:
                continue

            total = sum(t.amount_usd for t in window)
            senders = {t.from_address for t in window}
            tokens = _tokens(window)
            found.append(WhaleInsight(
                id=_new_id("accumulation"),
                type="accumulation",
                title=f"Accumulation by {_short(address)}",
                description=(
                    f"{_short(address)} received {len(window)} whale transfers "
                    f"worth {_usd(total)} over {_span(window)}."
                ),
                severity="critical" if total >= self.thresholds.large else "warning",
                confidence=min(95, 60 + 5 * len(window)),
                trading_signal="buy",
                reasoning=(
                    f"{len(window)} inbound transfers from {len(senders)} source address(es) "
                    f"in {', '.join(tokens)} within a 7-day window add up to {_usd(total)}, "
                    f"above the {_usd(self.thresholds.medium)} medium-whale threshold."
                ),
                expected_impact="Sustained buying pressure; reduced circulating supply if held.",
                timeframe="medium",
                related_addresses=[address] + sorted(senders)[:4],
                related_tokens=tokens,
            ))
        return found

    def _accumulation_window(self, txs: Sequence[WhaleTransaction]) -> Optional[List[WhaleTransaction]]:
        """
        Slide a 7-day window over one receiver's transfers and return the
        qualifying run with the largest total (the newest one on ties), or None.
        """
        ordered = sorted(txs, key=lambda t: t.timestamp)
        best: Optional[List[WhaleTransaction]] = None
        best_total = 0.0
        start = 0
        for end, tx in enumerate(ordered):
            while tx.timestamp - ordered[start].timestamp > ACCUMULATION_WINDOW:
                start += 1
            window = ordered[start:end + 1]
            total = sum(t.amount_usd for t in window)
            if len(window) < ACCUMULATION_MIN_TXS or total < self.thresholds.medium:
                continue
            if best is None or total >= best_total:
                best, best_total = window, total
        return best

    def distribution(self, transactions: Sequence[WhaleTransaction]) -> List[WhaleInsight]:
        by_sender: Dict[str, List[WhaleTransaction]] = defaultdict(list)
        for tx in transactions:
            if tx.from_address:
                by_sender[tx.from_address].append(tx)

        found = []
        for address, txs in by_sender.items():
            receivers = {t.to_address for t in txs}
            total = sum(t.amount_usd for t in txs)
            if (len(txs) < DISTRIBUTION_MIN_TXS or len(receivers) < DISTRIBUTION_MIN_RECEIVERS
                    or total < self.thresholds.medium):
                continue

            tokens = _tokens(txs)
            found.append(WhaleInsight(
                id=_new_id("distribution"),
                type="distribution",
                title=f"Distribution from {_short(address)}",
                description=(
                    f"{_short(address)} sent {len(txs)} whale transfers worth {_usd(total)} "
                    f"to {len(receivers)} different addresses."
                ),
                severity="critical" if total >= self.thresholds.large else "warning",
                confidence=min(90, 50 + 10 * len(receivers)),
                trading_signal="sell",
                reasoning=(
                    f"Outflows of {', '.join(tokens)} spread across {len(receivers)} receivers "
                    f"over {_span(txs)} are typical of a holder unwinding a position or "
                    f"routing funds to exchanges."
                ),
                expected_impact="Possible selling pressure as tokens reach new hands.",
                timeframe="short",
                related_addresses=[address] + sorted(receivers)[:4],
                related_tokens=tokens,
            ))
        return found

    def smart_money(self, transactions: Sequence[WhaleTransaction]) -> List[WhaleInsight]:
        picks = [
            t for t in transactions
            if t.amount_usd > self.thresholds.large and t.confidence_score > SMART_MONEY_MIN_CONFIDENCE
        ]
        if not picks:
            return []

        total = sum(t.amount_usd for t in picks)
        tokens = _tokens(picks)
        addresses = sorted({t.from_address for t in picks})
        return [WhaleInsight(
            id=_new_id("smart_money"),
            type="smart_money",
            title="Smart money on the move",
            description=(
                f"{len(picks)} high-confidence transfers above {_usd(self.thresholds.large)} "
                f"totalling {_usd(total)}."
            ),
            severity="info",
            confidence=85,
            trading_signal="hold",
            reasoning=(
                f"Transfers of this size in {', '.join(tokens)} with confidence scores above "
                f"{SMART_MONEY_MIN_CONFIDENCE} usually come from funds, market makers or early holders."
            ),
            expected_impact="Worth following; direction of the next moves matters more than size.",
            timeframe="medium",
            related_addresses=addresses[:5],
            related_tokens=tokens,
        )]

    def manipulation(self, transactions: Sequence[WhaleTransaction]) -> List[WhaleInsight]:
        flagged = [t for t in transactions if t.impact == "critical" and t.type == "transfer"]
        if len(flagged) <= MANIPULATION_MIN_TXS:
            return []

        total = sum(t.amount_usd for t in flagged)
        tokens = _tokens(flagged)
        return [WhaleInsight(
            id=_new_id("manipulation"),
            type="manipulation",
            title="Possible market manipulation",
            description=(
                f"{len(flagged)} critical-impact transfers worth {_usd(total)} "
                f"within {_span(flagged)}."
            ),
            severity="critical",
            confidence=75,
            trading_signal="caution",
            reasoning=(
                f"A cluster of {len(flagged)} transfers above {_usd(self.thresholds.mega)} that are "
                f"neither mints nor burns can be used to move thin order books or fake activity."
            ),
            expected_impact="High potential for short-term volatility.",
            timeframe="short",
            related_addresses=sorted({t.from_address for t in flagged})[:5],
            related_tokens=tokens,
        )]
