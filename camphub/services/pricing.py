"""
Checkout price calculation.

Pure functions over already-loaded rows; nothing here touches the session.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.config import settings
from ..core.exceptions import BusinessRuleError
from ..core.money import percent_of
from ..models.camp import Addon, Camp
from ..models.registration import DiscountType, PromoCode


@dataclass
class AddonLine:
    addon: Addon
    quantity: int

    @property
    def total_cents(self) -> int:
        return self.addon.price_cents * self.quantity


@dataclass
class CamperPrice:
    base_price_cents: int
    discount_cents: int = 0
    promo_discount_cents: int = 0
    addons: List[AddonLine] = field(default_factory=list)
    addons_total_cents: int = 0
    tax_cents: int = 0

    @property
    def total_price_cents(self) -> int:
        return (
            self.base_price_cents
            - self.discount_cents
            - self.promo_discount_cents
            + self.addons_total_cents
            + self.tax_cents
        )


def camp_price_cents(camp: Camp, today: date) -> int:
    """Early-bird price while it is set and the deadline has not passed, else the list price."""
    if camp.early_bird_price_cents is not None and camp.early_bird_deadline and today < camp.early_bird_deadline:
        return camp.early_bird_price_cents
    return camp.price_cents or 0


def promo_discount_cents(promo: Optional[PromoCode], base_cents: int) -> int:
    if not promo:
        return 0
    if promo.discount_type == DiscountType.PERCENTAGE:
        return percent_of(base_cents, promo.discount_value)
    return min(promo.discount_value, base_cents)


def assign_addons(
    selections: Sequence[Tuple[Optional[int], str, int]],
    addons: Dict[str, Addon],
    camper_count: int,
) -> Dict[int, List[AddonLine]]:
    """Group ``(camper_index, addon_id, quantity)`` selections per camper.

    Selections without a camper index go to the first camper.
    """
    per_camper: Dict[int, List[AddonLine]] = {i: [] for i in range(camper_count)}
    for camper_index, addon_id, quantity in selections:
        addon = addons.get(addon_id)
        if addon is None:
            raise BusinessRuleError("Selected add-on is not available for this camp")
        if addon.max_quantity and quantity > addon.max_quantity:
            raise BusinessRuleError(f"At most {addon.max_quantity} of '{addon.name}' may be purchased")
        index = camper_index or 0
        if index >= camper_count or index < 0:
            raise BusinessRuleError("Add-on selection refers to an unknown camper")
        per_camper[index].append(AddonLine(addon=addon, quantity=quantity))
    return per_camper


def price_checkout(
    *,
    camp: Camp,
    camper_count: int,
    addons_by_camper: Optional[Dict[int, List[AddonLine]]] = None,
    promo: Optional[PromoCode] = None,
    tax_rate_percent: Decimal = Decimal(0),
    today: date,
    sibling_discount_percent: Optional[int] = None,
) -> List[CamperPrice]:
    """Price every camper in a checkout.

    Sibling discount applies from the second camper on, the promo code to
    the first camper only, and tax to taxable add-ons only.
    """
    if sibling_discount_percent is None:
        sibling_discount_percent = settings.SIBLING_DISCOUNT_PERCENT
    addons_by_camper = addons_by_camper or {}
    rate = Decimal(str(tax_rate_percent or 0))
    base = camp_price_cents(camp, today)

    prices: List[CamperPrice] = []
    for index in range(camper_count):
        price = CamperPrice(base_price_cents=base)
        if index > 0:
            price.discount_cents = percent_of(base, sibling_discount_percent)
        else:
            price.promo_discount_cents = promo_discount_cents(promo, base)

        price.addons = list(addons_by_camper.get(index, []))
        price.addons_total_cents = sum(line.total_cents for line in price.addons)

        taxable = sum(line.total_cents for line in price.addons if line.addon.is_taxable)
        if rate > 0 and taxable > 0:
            price.tax_cents = percent_of(taxable, rate)
        prices.append(price)
    return prices
