"""Stepped water tier lookup.

A volume falls into exactly one tier; the charge is that tier's flat amount
(plus its per-unit excess when the tier defines one). Charges are never
summed across tiers.
"""

from decimal import Decimal

from condoledger.money import ZERO, to_money
from condoledger.services.errors import ValidationError
from condoledger.services.rate_schedule import WaterTier, validate_tier_table


class TierCalculator:
    """Water charge calculator over one 7-tier table."""

    def __init__(self, tiers: tuple[WaterTier, ...] | list[WaterTier]):
        """Initialize with a tier table (validated and ordered)."""
        self.tiers = validate_tier_table(tiers)

    def tier_for(self, volume: Decimal) -> WaterTier:
        """Return the tier covering ``volume``.

        Tier k covers [bound(k-1), bound(k)); the last tier is open-ended.

        Raises:
            ValidationError: If volume is negative
        """
        volume = Decimal(str(volume))
        if volume < 0:
            raise ValidationError(f"Water consumption cannot be negative: {volume}")

        for tier in self.tiers:
            if tier.upper_bound is None or volume < tier.upper_bound:
                return tier
        return self.tiers[-1]

    def charge(self, volume: Decimal) -> Decimal:
        """Water charge for ``volume`` cu.m, rounded to cents."""
        volume = Decimal(str(volume))
        tier = self.tier_for(volume)
        amount = tier.base_amount
        if tier.excess_rate:
            amount += tier.excess_rate * max(ZERO, volume - tier.excess_from)
        return to_money(amount)
