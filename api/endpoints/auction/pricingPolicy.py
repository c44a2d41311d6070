# endpoints/auction/pricingPolicy.py
from bisect import bisect_right
from typing import Iterable, List, Tuple


class PricingPolicy:
    """
    Minimum-raise step table.

    tiers: (threshold, increment) pairs. A bid at or above `threshold` must be
    raised by at least `increment`. Must include a tier at 0 and increments may
    not shrink as thresholds grow.
    """

    def __init__(self, tiers: Iterable[Tuple[int, int]]):
        ordered = sorted((int(t), int(i)) for t, i in tiers)

        if not ordered:
            raise ValueError("Increment tier table is empty")
        if ordered[0][0] != 0:
            raise ValueError("Increment tier table needs a tier at threshold 0")

        previous = 0
        seen = set()
        for threshold, increment in ordered:
            if threshold in seen:
                raise ValueError(f"Duplicate increment tier threshold {threshold}")
            if increment <= 0:
                raise ValueError(f"Increment for tier {threshold} must be positive")
            if increment < previous:
                raise ValueError("Increments must not shrink as bids grow")
            seen.add(threshold)
            previous = increment

        self.tiers: List[Tuple[int, int]] = ordered
        self._thresholds = [t for t, _ in ordered]

    @classmethod
    def from_settings(cls, settings) -> "PricingPolicy":
        return cls(settings.increment_tiers)

    def increment(self, current_bid: int) -> int:
        if current_bid < 0:
            raise ValueError("Bid cannot be negative")
        idx = bisect_right(self._thresholds, current_bid) - 1
        return self.tiers[idx][1]

    def next_bid(self, current_bid: int, base_price: int) -> int:
        # The opening bid lands on the floor, not floor + increment.
        if current_bid == 0:
            return base_price
        return current_bid + self.increment(current_bid)
