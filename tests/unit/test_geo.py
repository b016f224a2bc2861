import pytest

from storefront.domain.geo import (
    Coordinate,
    PricingConfig,
    delivery_fee,
    distance,
    format_currency,
    quote,
    within_radius,
)

SHOP = Coordinate(6.2357, 80.0534)
CONFIG = PricingConfig(free_threshold=5000, base_fee=100, per_km_fee=40, express_fee=150, max_radius_km=5)

POINTS = [
    SHOP,
    Coordinate(6.2400, 80.0550),
    Coordinate(6.9271, 79.8612),
    Coordinate(-33.8688, 151.2093),
    Coordinate(51.5074, -0.1278),
    Coordinate(0.0, 0.0),
]


@pytest.mark.parametrize("point", POINTS)
def test_distance_to_self_is_zero(point):
    assert distance(point, point) == 0


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_distance_is_symmetric_and_non_negative(a, b):
    assert distance(a, b) == distance(b, a)
    assert distance(a, b) >= 0


def test_distance_one_degree_of_latitude():
    assert distance(Coordinate(0, 0), Coordinate(1, 0)) == 111.19


def test_distance_rounded_to_two_decimals():
    d = distance(SHOP, Coordinate(6.9271, 79.8612))
    assert d == round(d, 2)
    assert 70 < d < 85


def test_distance_antipodal_points_do_not_raise():
    assert distance(Coordinate(0, 0), Coordinate(0, 180)) == pytest.approx(20015.09, abs=0.01)


def test_shop_to_itself_is_within_radius():
    result = within_radius(SHOP, SHOP, 5)
    assert result.within_radius is True
    assert result.distance_km == 0


def test_radius_boundary_is_inclusive():
    customer = Coordinate(6.2800, 80.0534)
    d = distance(SHOP, customer)
    assert within_radius(SHOP, customer, d).within_radius is True
    assert within_radius(SHOP, customer, d - 0.01).within_radius is False


def test_far_location_is_outside_radius():
    result = within_radius(SHOP, Coordinate(6.9271, 79.8612), 5)
    assert result.within_radius is False
    assert result.distance_km > 5


def test_fee_is_base_plus_per_km_below_threshold():
    assert delivery_fee(3, 4000, False, CONFIG) == 220


def test_fee_waived_at_threshold():
    assert delivery_fee(3, 5000, False, CONFIG) == 0


def test_express_applies_even_when_delivery_is_free():
    assert delivery_fee(3, 5000, True, CONFIG) == 150


def test_express_added_to_distance_fee():
    assert delivery_fee(3, 4000, True, CONFIG) == 370


def test_zero_distance_costs_base_fee():
    assert delivery_fee(0, 1000, False, CONFIG) == 100
    assert delivery_fee(0, 1000, True, CONFIG) == 250


def test_fee_rounds_half_up_to_whole_units():
    config = PricingConfig(free_threshold=5000, base_fee=100, per_km_fee=41, express_fee=150)
    assert delivery_fee(2.5, 1000, False, config) == 203
    assert delivery_fee(1.23, 1000, False, CONFIG) == 149


def test_fee_is_integer():
    assert isinstance(delivery_fee(1.37, 100, False, CONFIG), int)


def test_quote_delivery_inside_radius():
    customer = Coordinate(6.2400, 80.0550)
    result = quote("delivery", 1200, False, CONFIG, shop=SHOP, customer=customer)
    d = distance(SHOP, customer)
    assert result.within_radius is True
    assert result.distance_km == d
    assert result.delivery_fee == delivery_fee(d, 1200, False, CONFIG)
    assert result.total == 1200 + result.delivery_fee
    assert result.free_delivery is False


def test_quote_free_delivery_flag():
    result = quote("delivery", 6000, False, CONFIG, shop=SHOP, customer=Coordinate(6.2400, 80.0550))
    assert result.delivery_fee == 0
    assert result.free_delivery is True


def test_quote_outside_radius_has_no_fee():
    result = quote("delivery", 1200, True, CONFIG, shop=SHOP, customer=Coordinate(6.9271, 79.8612))
    assert result.within_radius is False
    assert result.delivery_fee == 0
    assert result.total == 1200


def test_quote_pickup_is_free():
    result = quote("pickup", 800, True, CONFIG, shop=SHOP)
    assert result.distance_km == 0
    assert result.delivery_fee == 0
    assert result.total == 800


def test_format_currency():
    assert format_currency(1234.5) == "LKR 1,234.50"
    assert format_currency(0) == "LKR 0.00"
