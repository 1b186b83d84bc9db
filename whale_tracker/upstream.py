import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from .config import DEFAULT_BASE_URL, DEFAULT_CHAIN_ID
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

TRANSFERS = "/token/erc20/transfers"
HOLDERS = "/token/erc20/holders"
TOKEN_INFO = "/token/erc20"
ADDRESSES = "/addresses"
ADDRESS_TRANSFERS = "/addresses/token-transfers"


@dataclass(frozen=True)
class UpstreamFailure:
    endpoint: str
    reason: str
    status_code: Optional[int] = None


UpstreamResult = Union[Dict[str, Any], UpstreamFailure]


class UpstreamClient:
    """
    Thin SeiTrace explorer client.
    Every call waits on the shared RateLimiter first. Failures are returned,
    never raised, and never retried.
    """

    def __init__(
        self,
        api_key: Optional[str],
        limiter: RateLimiter,
        base_url: str = DEFAULT_BASE_URL,
        chain_id: str = DEFAULT_CHAIN_ID,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.limiter = limiter
        self.chain_id = chain_id
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json", "X-Api-Key": api_key or ""},
            timeout=timeout,
            transport=transport,
        )

    async def request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> UpstreamResult:
        query = {"chain_id": self.chain_id}
        query.update({k: v for k, v in (params or {}).items() if v is not None})

        await self.limiter.acquire()
        try:
            res = await self._http.get(endpoint, params=query)
            res.raise_for_status()
            data = res.json()
        except httpx.HTTPStatusError as e:
            logger.warning("SeiTrace %s returned HTTP %s", endpoint, e.response.status_code)
            return UpstreamFailure(endpoint, f"HTTP {e.response.status_code}", e.response.status_code)
        except httpx.HTTPError as e:
            logger.warning("SeiTrace %s request failed: %s", endpoint, e)
            return UpstreamFailure(endpoint, f"{type(e).__name__}: {e}")
        except ValueError as e:
            logger.warning("SeiTrace %s returned malformed JSON: %s", endpoint, e)
            return UpstreamFailure(endpoint, "malformed JSON")

        if not isinstance(data, dict):
            return UpstreamFailure(endpoint, "unexpected payload type")
        logger.debug("SeiTrace %s -> %d items", endpoint, len(data.get("items") or []))
        return data

    async def aclose(self) -> None:
        await self._http.aclose()
