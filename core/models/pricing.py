"""Tiered unit-price tables used to compute a month's expected invoice amount.

The tier is selected by the month's total count across all sizes, never by a
single size's count. A tier carries either one flat unit price or one unit
price per size category.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field

from core.models.canonical import CanonicalBase, SizeCategory, SizeCounts


# (min_count, max_count) pairs, max None meaning unbounded
DEFAULT_TIER_BOUNDS = ((1, 8), (9, 13), (14, None))


class PriceTier(CanonicalBase):
    """One count range of the price table."""
    min_count: int
    max_count: Optional[int] = None
    unit_price: Optional[int] = None
    size_prices: Optional[Dict[SizeCategory, int]] = None

    def contains(self, total_count: int) -> bool:
        if total_count < self.min_count:
            return False
        return self.max_count is None or total_count <= self.max_count

    @property
    def label(self) -> str:
        upper = "" if self.max_count is None else str(self.max_count)
        return f"{self.min_count}-{upper}"

    def amount_for(self, counts: SizeCounts) -> int:
        if self.size_prices is not None:
            return sum(
                counts.get(size) * int(self.size_prices.get(size, 0))
                for size in SizeCategory
            )
        return counts.total * int(self.unit_price or 0)


class PriceTable(CanonicalBase):
    """Ordered list of tiers; the first tier containing the count wins."""
    tiers: List[PriceTier] = Field(default_factory=list)

    @property
    def is_size_based(self) -> bool:
        return any(t.size_prices is not None for t in self.tiers)

    def select_tier(self, total_count: int) -> Optional[PriceTier]:
        """Return the tier for total_count, or None when nothing was ordered."""
        if total_count <= 0:
            return None
        for tier in self.tiers:
            if tier.contains(total_count):
                return tier
        return None

    def amount_for(self, counts: SizeCounts) -> int:
        tier = self.select_tier(counts.total)
        if tier is None:
            return 0
        return tier.amount_for(counts)

    @classmethod
    def flat(cls, prices) -> "PriceTable":
        """Build a table from one unit price per default tier."""
        prices = list(prices)
        if len(prices) != len(DEFAULT_TIER_BOUNDS):
            raise ValueError(f"Expected {len(DEFAULT_TIER_BOUNDS)} tier prices, got {len(prices)}")
        return cls(tiers=[
            PriceTier(min_count=lo, max_count=hi, unit_price=int(price))
            for (lo, hi), price in zip(DEFAULT_TIER_BOUNDS, prices)
        ])

    @classmethod
    def by_size(cls, prices) -> "PriceTable":
        """Build a table from one {size: price} mapping per default tier."""
        prices = list(prices)
        if len(prices) != len(DEFAULT_TIER_BOUNDS):
            raise ValueError(f"Expected {len(DEFAULT_TIER_BOUNDS)} tier price maps, got {len(prices)}")
        return cls(tiers=[
            PriceTier(
                min_count=lo,
                max_count=hi,
                size_prices={SizeCategory(k): int(v) for k, v in size_map.items()},
            )
            for (lo, hi), size_map in zip(DEFAULT_TIER_BOUNDS, prices)
        ])
