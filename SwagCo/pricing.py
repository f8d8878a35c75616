# pricing.py
"""
Pricing calculator.

Pure functions over a `PricingCatalog` snapshot (tiers, print pricing,
garment costs, deposit percentage). Nothing here touches the database or
the network: `quotes.py` loads the catalog and the client core only ever
sees the resulting `Quote`.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from schemas import DiscountType, GarmentBreakdown, PrintConfig, Quote
from settings import settings

log = logging.getLogger(__name__)

FALLBACK_MARKUP_MULTIPLIER = 1.5
FALLBACK_PRINT_COST_PER_COLOR = 0.50
FALLBACK_SETUP_FEE_PER_SCREEN = 25.00


class PricingError(ValueError):
    """Raised when a quote cannot be computed from the given input."""


class GarmentNotFoundError(PricingError):
    pass


# ===================================================================
# Catalog snapshot
# ===================================================================

@dataclass
class PrintPrice:
    num_colors: int
    cost_per_shirt: float
    setup_fee_per_screen: float


@dataclass
class Tier:
    name: str
    min_qty: int
    max_qty: Optional[int]
    garment_markup_percentage: float
    print_prices: Dict[int, PrintPrice] = field(default_factory=dict)

    def covers(self, quantity: int) -> bool:
        return self.min_qty <= quantity and (self.max_qty is None or quantity <= self.max_qty)

    @property
    def setup_fee_per_screen(self) -> float:
        if not self.print_prices:
            return FALLBACK_SETUP_FEE_PER_SCREEN
        return self.print_prices[min(self.print_prices)].setup_fee_per_screen


@dataclass
class PricedGarment:
    id: str
    name: str
    base_cost: float
    customer_price: Optional[float] = None


@dataclass
class PricingCatalog:
    tiers: List[Tier]
    garments: Dict[str, PricedGarment]
    deposit_percentage: float = settings.DEFAULT_DEPOSIT_PERCENTAGE

    def tier_for(self, quantity: int) -> Optional[Tier]:
        """Highest tier whose quantity range covers `quantity`."""
        matching = [tier for tier in self.tiers if tier.covers(quantity)]
        if not matching:
            return None
        return max(matching, key=lambda tier: tier.min_qty)

    def garment(self, garment_id: str) -> PricedGarment:
        try:
            return self.garments[str(garment_id)]
        except KeyError:
            raise GarmentNotFoundError(f"Garment {garment_id} not found") from None


def default_tiers() -> List[Tier]:
    """Tier table used when the store has no pricing configured yet."""
    rows = [
        ("Tier 1: 24-47", 24, 47, 50.0, 1.50),
        ("Tier 2: 48-71", 48, 71, 45.0, 1.25),
        ("Tier 3: 72-143", 72, 143, 40.0, 1.00),
        ("Tier 4: 144+", 144, None, 35.0, 0.75),
    ]
    tiers = []
    for name, min_qty, max_qty, markup, rate in rows:
        prices = {
            n: PrintPrice(num_colors=n, cost_per_shirt=round(n * rate, 2), setup_fee_per_screen=25.0)
            for n in range(1, 5)
        }
        tiers.append(Tier(name, min_qty, max_qty, markup, prices))
    return tiers


# ===================================================================
# Building blocks
# ===================================================================

def round_currency(amount: float) -> float:
    return round(amount + 0.0, 2)


def total_screens(print_config: PrintConfig) -> int:
    """One screen per ink color per enabled location."""
    return sum(print_config.colors_for(loc) for loc in print_config.enabled_locations())


def garment_unit_price(garment: PricedGarment, tier: Optional[Tier]) -> float:
    if garment.customer_price is not None:
        return garment.customer_price
    if tier is None:
        log.warning(f"No pricing tier for garment {garment.id}; using fallback markup.")
        return garment.base_cost * FALLBACK_MARKUP_MULTIPLIER
    return garment.base_cost * (1 + tier.garment_markup_percentage / 100)


def print_cost_per_shirt(print_config: PrintConfig, tier: Optional[Tier]) -> float:
    cost = 0.0
    for loc in print_config.enabled_locations():
        colors = print_config.colors_for(loc)
        price = tier.print_prices.get(colors) if tier else None
        if price is None:
            cost += colors * FALLBACK_PRINT_COST_PER_COLOR
        else:
            cost += price.cost_per_shirt
    return cost


def setup_fees(print_config: PrintConfig, tier: Optional[Tier]) -> float:
    fee = tier.setup_fee_per_screen if tier else FALLBACK_SETUP_FEE_PER_SCREEN
    return total_screens(print_config) * fee


def split_deposit(
    total: float,
    deposit_percentage: float = settings.DEFAULT_DEPOSIT_PERCENTAGE,
    minimum_charge: float = settings.MINIMUM_CHARGE,
) -> Tuple[float, float]:
    """
    Returns (deposit, balance) for `total`.

    A positive deposit below the processor's minimum charge is raised to
    `min(minimum_charge, total)`.
    """
    deposit = round_currency(total * deposit_percentage / 100)
    if 0 < deposit < minimum_charge:
        deposit = min(minimum_charge, round_currency(total))
    balance = round_currency(total - deposit)
    return deposit, balance


# ===================================================================
# Quotes
# ===================================================================

def calculate_quote(
    catalog: PricingCatalog,
    lines: Iterable[Tuple[str, int]],
    print_config: PrintConfig,
) -> Quote:
    """
    Quote for one or more (garment_id, quantity) lines sharing one print config.

    The tier is picked from the combined quantity; print cost and setup fees
    are computed once for the whole order.
    """
    lines = [(str(garment_id), int(qty)) for garment_id, qty in lines if qty]
    if not lines:
        raise PricingError("Quote needs at least one garment with a positive quantity")
    if any(qty < 0 for _, qty in lines):
        raise PricingError("Quantities cannot be negative")

    quantity = sum(qty for _, qty in lines)
    tier = catalog.tier_for(quantity)

    breakdown = []
    garment_cost = 0.0
    for garment_id, qty in lines:
        garment = catalog.garment(garment_id)
        unit = garment_unit_price(garment, tier)
        cost = unit * qty
        garment_cost += cost
        breakdown.append(GarmentBreakdown(
            garment_id=garment_id,
            garment_name=garment.name,
            quantity=qty,
            unit_price=round_currency(unit),
            garment_cost=round_currency(cost),
        ))

    per_shirt_print = print_cost_per_shirt(print_config, tier)
    print_cost = per_shirt_print * quantity
    setup = setup_fees(print_config, tier)
    total = garment_cost + print_cost + setup
    deposit, balance = split_deposit(total, catalog.deposit_percentage)

    quote = Quote(
        garment_cost=round_currency(garment_cost),
        garment_cost_per_shirt=round_currency(garment_cost / quantity),
        print_cost=round_currency(print_cost),
        print_cost_per_shirt=round_currency(per_shirt_print),
        setup_fees=round_currency(setup),
        total_screens=total_screens(print_config),
        subtotal=round_currency(total),
        total=round_currency(total),
        per_shirt_price=round_currency(total / quantity),
        deposit_amount=deposit,
        balance_due=balance,
    )
    if len(lines) > 1:
        quote.garment_breakdown = breakdown
        quote.total_quantity = quantity
    return quote


def campaign_price(
    catalog: PricingCatalog,
    garment_id: str,
    print_config: PrintConfig,
    quantity: int = settings.CAMPAIGN_PRICING_QUANTITY,
) -> float:
    """Per-shirt campaign price: garment + print cost at `quantity`, no setup fee."""
    tier = catalog.tier_for(quantity)
    garment = catalog.garment(garment_id)
    return round_currency(garment_unit_price(garment, tier) + print_cost_per_shirt(print_config, tier))


# ===================================================================
# Discounts
# ===================================================================

def discount_amount(discount_type: DiscountType, value: float, subtotal: float) -> float:
    if discount_type == DiscountType.PERCENTAGE:
        return round_currency(subtotal * value / 100)
    return min(value, subtotal)


@dataclass(frozen=True)
class DiscountedTotals:
    total: float
    deposit: float
    balance: float


def apply_discount(
    quote: Quote,
    amount: float,
    minimum_charge: float = settings.MINIMUM_CHARGE,
) -> DiscountedTotals:
    """
    Re-splits a quote after a discount, keeping the quote's deposit/total ratio.

    deposit + balance always equals the discounted total.
    """
    total = max(0.0, round_currency(quote.total - amount))
    ratio = quote.deposit_amount / quote.total if quote.total > 0 else 0.0
    deposit = round_currency(total * ratio)
    if 0 < deposit < minimum_charge:
        deposit = min(minimum_charge, total)
    balance = max(0.0, round_currency(total - deposit))
    return DiscountedTotals(total=total, deposit=deposit, balance=balance)
