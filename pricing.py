from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

import config
from schemas import CartTotals


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; prices round .5 up
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def resale_price(original_price: float) -> int:
    return round_half_up(original_price * config.RESALE_RATE)


def checkout_totals(prices: Iterable[int]) -> CartTotals:
    items_total = sum(prices)
    platform_fee = round_half_up(items_total * config.PLATFORM_FEE_RATE)
    delivery_fee = config.DELIVERY_FEE
    return CartTotals(
        items_total=items_total,
        platform_fee=platform_fee,
        delivery_fee=delivery_fee,
        final_total=items_total + platform_fee + delivery_fee,
    )


def format_price(amount: float) -> str:
    return f"{config.CURRENCY_SYMBOL}{int(amount):,}"
