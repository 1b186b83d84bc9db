import logging
from typing import Optional, Sequence

import openai
from openai import AsyncOpenAI

from .schemas import InsightSummary, WhaleInsight, WhaleTransaction

logger = logging.getLogger(__name__)

SYSTEM_MSG = (
    "You are an on-chain crypto analyst. "
    "You summarize whale activity on the Sei network for a PM or trader. "
    "Use the pre-computed findings and example transfers to reason carefully. "
    "Say whether flows look like accumulation, distribution, exchange routing "
    "or benign internal transfers. "
    "If you don't have enough evidence, say so."
)


def _short(address: str) -> str:
    return (address or "")[:6] + "..." + (address or "")[-4:]


def _findings_text(insights: Sequence[WhaleInsight]) -> str:
    if not insights:
        return "- none"
    return "\n".join(
        f"- [{i.severity}] {i.title} (confidence {i.confidence}%): {i.description}" for i in insights
    )


def _transfers_text(transactions: Sequence[WhaleTransaction], limit: int = 15) -> str:
    lines = []
    for t in transactions[:limit]:
        lines.append(
            f"- ${t.amount_usd:,.0f} {t.token_symbol} {t.type} from {_short(t.from_address)} "
            f"to {_short(t.to_address)} ({t.impact} impact, block {t.block_number})"
        )
    return "\n".join(lines)


def template_summary(insights: Sequence[WhaleInsight], transactions: Sequence[WhaleTransaction]) -> str:
    if not transactions:
        return "No recent whale transfers to summarize."
    total = sum(t.amount_usd for t in transactions)
    largest = max(transactions, key=lambda t: t.amount_usd)
    critical = sum(1 for t in transactions if t.impact == "critical")
    parts = [
        f"{len(transactions)} whale transfers worth ${total:,.0f} in total; "
        f"the largest moved ${largest.amount_usd:,.0f} {largest.token_symbol}."
    ]
    if insights:
        top = insights[0]
        parts.append(f"Strongest signal: {top.title.lower()} ({top.confidence}% confidence).")
    else:
        parts.append("No accumulation, distribution or manipulation patterns stood out.")
    if critical > 3:
        parts.append("High potential for market volatility.")
    return " ".join(parts)


class InsightNarrator:
    """
    Turns computed insights into a short narrative.
    Uses the OpenAI chat API when a key is configured, a template otherwise.
    """

    def __init__(self, api_key: Optional[str], model: str = "gpt-4.1-mini",
                 client: Optional[AsyncOpenAI] = None):
        self.model = model
        self._client = client or (AsyncOpenAI(api_key=api_key) if api_key else None)

    async def summarize(
        self,
        insights: Sequence[WhaleInsight],
        transactions: Sequence[WhaleTransaction],
    ) -> InsightSummary:
        fallback = InsightSummary(
            summary=template_summary(insights, transactions),
            insight_count=len(insights),
            transaction_count=len(transactions),
            generated_by="template",
        )
        if self._client is None or not transactions:
            return fallback

        user_msg = (
            "Here is a snapshot of recent whale activity on Sei.\n\n"
            f"Findings (pre-computed):\n{_findings_text(insights)}\n\n"
            f"Example transfers:\n{_transfers_text(transactions)}\n\n"
            "In 3-5 sentences, summarize the main patterns and what a trader should watch."
        )
        try:
            chat = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_MSG},
                    {"role": "user", "content": user_msg},
                ],
                temperature=0.4,
            )
        except openai.OpenAIError as e:
            logger.info("OpenAI summary unavailable (%s), using template", e)
            return fallback

        text = (chat.choices[0].message.content or "").strip()
        if not text:
            return fallback
        return fallback.model_copy(update={"summary": text, "generated_by": "openai"})
