# config.py
import json
import os
from dataclasses import dataclass, field
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv()

# IPL-style step table: (threshold, increment), smallest currency unit.
DEFAULT_INCREMENT_TIERS: List[Tuple[int, int]] = [
    (0, 100_000),
    (5_000_000, 250_000),
    (10_000_000, 500_000),
    (20_000_000, 1_000_000),
    (50_000_000, 2_500_000),
    (100_000_000, 5_000_000),
    (150_000_000, 10_000_000),
]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _tiers_env(name: str) -> List[Tuple[int, int]]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(DEFAULT_INCREMENT_TIERS)
    try:
        parsed = json.loads(raw)
        return [(int(threshold), int(increment)) for threshold, increment in parsed]
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a JSON list of [threshold, increment] pairs") from e


def _parse_origins(value: str) -> List[str]:
    origins = [origin.strip() for origin in value.split(",") if origin.strip()]
    return origins or ["http://localhost:5173"]


@dataclass(frozen=True)
class AuctionSettings:
    default_purse: int = 120_000_000
    default_base_price: int = 2_000_000
    default_roster_size: int = 25
    initial_timer_ms: int = 15_000
    bid_timer_ms: int = 10_000
    increment_tiers: List[Tuple[int, int]] = field(
        default_factory=lambda: list(DEFAULT_INCREMENT_TIERS)
    )
    bid_lock_timeout_ms: int = 1_000
    bid_lock_max_waiters: int = 32
    control_lock_timeout_ms: int = 3_000
    timer_grace_ms: int = 500
    queue_preview: int = 5
    log_limit: int = 50

    def __post_init__(self):
        if self.bid_timer_ms <= 0:
            raise ValueError("AUCTION_BID_TIMER_MS must be positive")
        if self.initial_timer_ms <= self.bid_timer_ms:
            raise ValueError("AUCTION_INITIAL_TIMER_MS must be greater than AUCTION_BID_TIMER_MS")
        if self.default_purse < 0:
            raise ValueError("AUCTION_DEFAULT_PURSE cannot be negative")
        if self.default_roster_size <= 0:
            raise ValueError("AUCTION_DEFAULT_ROSTER_SIZE must be positive")
        for name in ("bid_lock_timeout_ms", "control_lock_timeout_ms", "bid_lock_max_waiters"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    @classmethod
    def from_env(cls) -> "AuctionSettings":
        return cls(
            default_purse=_int_env("AUCTION_DEFAULT_PURSE", 120_000_000),
            default_base_price=_int_env("AUCTION_DEFAULT_BASE_PRICE", 2_000_000),
            default_roster_size=_int_env("AUCTION_DEFAULT_ROSTER_SIZE", 25),
            initial_timer_ms=_int_env("AUCTION_INITIAL_TIMER_MS", 15_000),
            bid_timer_ms=_int_env("AUCTION_BID_TIMER_MS", 10_000),
            increment_tiers=_tiers_env("AUCTION_INCREMENT_TIERS"),
            bid_lock_timeout_ms=_int_env("AUCTION_BID_LOCK_TIMEOUT_MS", 1_000),
            bid_lock_max_waiters=_int_env("AUCTION_BID_LOCK_MAX_WAITERS", 32),
            control_lock_timeout_ms=_int_env("AUCTION_CONTROL_LOCK_TIMEOUT_MS", 3_000),
            timer_grace_ms=_int_env("AUCTION_TIMER_GRACE_MS", 500),
            queue_preview=_int_env("AUCTION_QUEUE_PREVIEW", 5),
            log_limit=_int_env("AUCTION_LOG_LIMIT", 50),
        )


CORS_ORIGINS = _parse_origins(os.environ.get("CORS_ORIGINS", "http://localhost:5173"))

settings = AuctionSettings.from_env()
