import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

load_dotenv()

DEFAULT_BASE_URL = "https://seitrace.com/insights/api/v2"
DEFAULT_CHAIN_ID = "pacific-1"


class InvalidThresholdsError(ValueError):
    """Raised when a threshold update breaks mega >= large >= medium >= small >= 0."""


class WhaleThresholds(BaseModel):
    """USD boundaries for the whale tiers. Immutable; replace, don't mutate."""

    model_config = ConfigDict(frozen=True)

    mega: float = 10_000_000
    large: float = 1_000_000
    medium: float = 100_000
    small: float = 50_000
    min_whale_transaction: float = 0.0

    @model_validator(mode="after")
    def _check_ordering(self):
        if not (self.mega >= self.large >= self.medium >= self.small >= 0):
            raise ValueError(
                "thresholds must satisfy mega >= large >= medium >= small >= 0 "
                f"(got mega={self.mega}, large={self.large}, "
                f"medium={self.medium}, small={self.small})"
            )
        if self.min_whale_transaction < 0:
            raise ValueError("min_whale_transaction must be >= 0")
        return self

    def merged(self, **changes) -> "WhaleThresholds":
        """
        Return a new snapshot with `changes` applied.
        Raises InvalidThresholdsError instead of pydantic's ValidationError.
        """
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise InvalidThresholdsError(f"unknown threshold(s): {', '.join(sorted(unknown))}")
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        try:
            return WhaleThresholds(**data)
        except ValidationError as e:
            raise InvalidThresholdsError(str(e)) from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    chain_id: str = DEFAULT_CHAIN_ID
    force_mock: bool = False

    requests_per_minute: int = 45
    min_request_interval: float = 1.5
    cache_ttl: float = 60.0
    request_timeout: float = 10.0

    thresholds: WhaleThresholds = WhaleThresholds()
    # used when the explorer reports a native balance without its USD value
    native_token_price_usd: float = 0.42

    # token contracts scanned for whale transfers
    tracked_tokens: tuple[str, ...] = (
        "0x3894085Ef7Ff0f0aeDf52E2A2704928d259C2fc7",  # WSEI
        "0x0c78d371EB4F8c082E8CD23c2Fa321b915E1BBfA",
    )

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4.1-mini"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = WhaleThresholds()
        thresholds = WhaleThresholds(
            mega=_env_float("WHALE_THRESHOLD_MEGA", defaults.mega),
            large=_env_float("WHALE_THRESHOLD_LARGE", defaults.large),
            medium=_env_float("WHALE_THRESHOLD_MEDIUM", defaults.medium),
            small=_env_float("WHALE_THRESHOLD_SMALL", defaults.small),
            min_whale_transaction=_env_float("WHALE_MIN_TRANSACTION", 0.0),
        )
        return cls(
            api_key=os.getenv("SEITRACE_API_KEY") or None,
            base_url=os.getenv("SEITRACE_BASE_URL", DEFAULT_BASE_URL),
            chain_id=os.getenv("SEI_CHAIN_ID", DEFAULT_CHAIN_ID),
            force_mock=_env_bool("WHALE_FORCE_MOCK"),
            requests_per_minute=int(_env_float("WHALE_REQUESTS_PER_MINUTE", 45)),
            min_request_interval=_env_float("WHALE_MIN_REQUEST_INTERVAL", 1.5),
            cache_ttl=_env_float("WHALE_CACHE_TTL", 60.0),
            request_timeout=_env_float("WHALE_REQUEST_TIMEOUT", 10.0),
            thresholds=thresholds,
            native_token_price_usd=_env_float("WHALE_NATIVE_PRICE_USD", 0.42),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4.1-mini"),
        )
