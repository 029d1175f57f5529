from datetime import date
from decimal import Decimal

import pytest

from camphub.core.exceptions import BusinessRuleError
from camphub.core.money import (
    percent_of, round_cents, dollars_to_cents, format_dollars, ratio_percent, round_half_up
)
from camphub.models.camp import Addon, Camp
from camphub.models.registration import DiscountType, PromoCode
from camphub.services.pricing import assign_addons, camp_price_cents, price_checkout

TODAY = date(2026, 5, 1)


def _camp(**kwargs) -> Camp:
    values = dict(name="Camp", price_cents=10000)
    values.update(kwargs)
    return Camp(**values)


def _addon(addon_id: str, price_cents: int, taxable: bool = False, max_quantity: int = 2) -> Addon:
    return Addon(id=addon_id, name=addon_id, price_cents=price_cents, is_taxable=taxable, max_quantity=max_quantity)


def test_money_helpers():
    assert round_cents(Decimal("10.5")) == 11
    assert percent_of(10000, 10) == 1000
    assert percent_of(2500, Decimal("8.25")) == 206
    assert dollars_to_cents(12.34) == 1234
    assert format_dollars(123456) == "$1,234.56"


def test_percentages_round_halves_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert ratio_percent(1, 8) == 13
    assert ratio_percent(1, 16, places=1) == 6.3
    assert ratio_percent(3, 0) == 0


def test_early_bird_price_until_deadline():
    camp = _camp(early_bird_price_cents=8000, early_bird_deadline=date(2026, 5, 10))
    assert camp_price_cents(camp, date(2026, 5, 9)) == 8000
    assert camp_price_cents(camp, date(2026, 5, 10)) == 10000


def test_sibling_discount_applies_from_second_camper():
    prices = price_checkout(camp=_camp(), camper_count=3, today=TODAY, sibling_discount_percent=10)
    assert [p.discount_cents for p in prices] == [0, 1000, 1000]
    assert [p.total_price_cents for p in prices] == [10000, 9000, 9000]


def test_promo_only_on_first_camper():
    promo = PromoCode(code="SAVE20", discount_type=DiscountType.PERCENTAGE, discount_value=20)
    prices = price_checkout(camp=_camp(), camper_count=2, promo=promo, today=TODAY, sibling_discount_percent=10)
    assert prices[0].promo_discount_cents == 2000
    assert prices[1].promo_discount_cents == 0


def test_fixed_promo_capped_at_base_price():
    promo = PromoCode(code="BIG", discount_type=DiscountType.FIXED, discount_value=50000)
    prices = price_checkout(camp=_camp(), camper_count=1, promo=promo, today=TODAY)
    assert prices[0].promo_discount_cents == 10000
    assert prices[0].total_price_cents == 0


def test_tax_only_on_taxable_addons():
    shirt = _addon("shirt", 2500, taxable=True)
    lunch = _addon("lunch", 4000, taxable=False)
    promo = PromoCode(code="SAVE20", discount_type=DiscountType.PERCENTAGE, discount_value=20)
    per_camper = assign_addons([(0, "shirt", 1)], {"shirt": shirt, "lunch": lunch}, 1)

    prices = price_checkout(
        camp=_camp(), camper_count=1, addons_by_camper=per_camper, promo=promo,
        tax_rate_percent=Decimal("8.25"), today=TODAY,
    )
    assert prices[0].addons_total_cents == 2500
    assert prices[0].tax_cents == 206
    assert prices[0].total_price_cents == 10706

    per_camper = assign_addons([(0, "lunch", 1)], {"shirt": shirt, "lunch": lunch}, 1)
    prices = price_checkout(
        camp=_camp(), camper_count=1, addons_by_camper=per_camper, tax_rate_percent=Decimal("8.25"), today=TODAY,
    )
    assert prices[0].tax_cents == 0


def test_assign_addons_defaults_to_first_camper():
    shirt = _addon("shirt", 2500)
    per_camper = assign_addons([(None, "shirt", 2), (1, "shirt", 1)], {"shirt": shirt}, 2)
    assert per_camper[0][0].total_cents == 5000
    assert per_camper[1][0].quantity == 1


@pytest.mark.parametrize("selection", [
    (0, "missing", 1),
    (0, "shirt", 3),
    (5, "shirt", 1),
])
def test_assign_addons_rejects_bad_selections(selection):
    with pytest.raises(BusinessRuleError):
        assign_addons([selection], {"shirt": _addon("shirt", 2500)}, 2)
