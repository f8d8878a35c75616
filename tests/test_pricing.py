import pytest

from pricing import (
    PricedGarment, PricingCatalog, PricingError, GarmentNotFoundError, apply_discount, calculate_quote,
    campaign_price, default_tiers, discount_amount, split_deposit, total_screens,
)
from schemas import DiscountType, LocationConfig, PrintConfig, PrintLocation, Quote

TEE = "tee"
HOODIE = "hoodie"


@pytest.fixture
def catalog():
    return PricingCatalog(
        tiers=default_tiers(),
        garments={
            TEE: PricedGarment(TEE, "Classic Tee", 4.0),
            HOODIE: PricedGarment(HOODIE, "Pullover Hoodie", 10.0),
        },
        deposit_percentage=50.0,
    )


def config(**locations):
    return PrintConfig(locations={
        PrintLocation(loc): LocationConfig(enabled=True, num_colors=n) for loc, n in locations.items()
    })


def make_quote(total, deposit):
    return Quote(
        garment_cost=0, garment_cost_per_shirt=0, print_cost=0, print_cost_per_shirt=0, setup_fees=0,
        total_screens=0, subtotal=total, total=total, per_shirt_price=0,
        deposit_amount=deposit, balance_due=round(total - deposit, 2),
    )


def test_single_garment_quote(catalog):
    quote = calculate_quote(catalog, [(TEE, 24)], config(front=1))

    assert quote.garment_cost == 144.0          # 4.00 * 1.5 * 24
    assert quote.print_cost == 36.0             # 1.50 per shirt
    assert quote.setup_fees == 25.0
    assert quote.total_screens == 1
    assert quote.total == 205.0
    assert quote.per_shirt_price == 8.54
    assert quote.deposit_amount == 102.5
    assert quote.balance_due == 102.5
    assert quote.garment_breakdown is None


def test_multi_garment_quote_uses_combined_tier(catalog):
    quote = calculate_quote(catalog, [(TEE, 30), (HOODIE, 30)], config(front=1))

    # 60 shirts land in the 48-71 tier (45% markup, 1.25 per color)
    assert quote.total_quantity == 60
    assert [line.unit_price for line in quote.garment_breakdown] == [5.8, 14.5]
    assert quote.garment_cost == 609.0
    assert quote.print_cost == 75.0
    assert quote.total == 709.0


def test_customer_price_overrides_markup(catalog):
    catalog.garments[TEE].customer_price = 7.25
    quote = calculate_quote(catalog, [(TEE, 24)], config(front=1))
    assert quote.garment_cost_per_shirt == 7.25


def test_zero_quantity_lines_are_ignored(catalog):
    quote = calculate_quote(catalog, [(TEE, 24), (HOODIE, 0)], config(front=1))
    assert quote.garment_breakdown is None


def test_quote_rejects_empty_and_unknown(catalog):
    with pytest.raises(PricingError):
        calculate_quote(catalog, [(TEE, 0)], config(front=1))
    with pytest.raises(GarmentNotFoundError):
        calculate_quote(catalog, [("missing", 24)], config(front=1))


def test_print_cost_and_screens_grow_with_locations_and_colors(catalog):
    previous_cost, previous_screens = -1.0, -1
    steps = [{}, {"front": 1}, {"front": 2}, {"front": 2, "back": 1}, {"front": 4, "back": 3},
             {"front": 4, "back": 4, "left_chest": 1}]
    for step in steps:
        quote = calculate_quote(catalog, [(TEE, 50)], config(**step))
        assert quote.print_cost >= previous_cost
        assert quote.total_screens >= previous_screens
        previous_cost, previous_screens = quote.print_cost, quote.total_screens


def test_disabled_location_adds_nothing():
    cfg = config(front=2)
    cfg.locations[PrintLocation.BACK] = LocationConfig(enabled=False, num_colors=4)
    assert total_screens(cfg) == 2


def test_campaign_price_has_no_setup_fee(catalog):
    assert campaign_price(catalog, TEE, config(front=2)) == 9.0   # 6.00 garment + 3.00 print


def test_split_deposit_floors_small_deposits():
    assert split_deposit(0.60, 50.0) == (0.5, 0.1)
    assert split_deposit(0.40, 50.0) == (0.4, 0.0)
    assert split_deposit(200.0, 50.0) == (100.0, 100.0)


def test_discount_amounts():
    assert discount_amount(DiscountType.PERCENTAGE, 10, 500) == 50.0
    assert discount_amount(DiscountType.PERCENTAGE, 15, 99.99) == 15.0
    assert discount_amount(DiscountType.FIXED, 75, 50) == 50


def test_apply_discount_keeps_deposit_ratio():
    totals = apply_discount(make_quote(500.0, 250.0), 50.0)
    assert (totals.total, totals.deposit, totals.balance) == (450.0, 225.0, 225.0)


@pytest.mark.parametrize("amount", [0.0, 12.34, 99.99, 250.0, 499.5, 500.0])
def test_deposit_plus_balance_is_discounted_total(amount):
    totals = apply_discount(make_quote(500.0, 250.0), amount)
    assert round(totals.deposit + totals.balance, 2) == totals.total
    if totals.total > 0:
        assert totals.deposit >= min(0.5, totals.total)
