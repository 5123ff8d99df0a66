from __future__ import annotations

import math

from burnshop.errors import PriceCalculationError

FIB = (0, 1, 1, 2, 3, 5, 8, 13, 21, 34, 55, 89, 144, 233, 377, 610)
INITIAL_SUPPLY = 1_000_000_000
MAX_ENGAGE_TIER = 4


def _fib(index: int) -> int:
    if 0 <= index < len(FIB):
        return FIB[index]
    return 0


def calculate_price(tier: int, current_supply: float, initial_supply: int = INITIAL_SUPPLY) -> int:
    return math.floor(_fib(tier) * current_supply / initial_supply)


def apply_discount(price: int, engage_tier: int) -> int:
    return math.floor(price * (1 - _fib(engage_tier) / 100))


def can_access_tier(shop_tier: int, engage_tier: int) -> bool:
    if shop_tier <= 2:
        return True
    required = min(shop_tier - 2, MAX_ENGAGE_TIER)
    return engage_tier >= required


def clamp_engage_tier(value: int) -> int:
    return max(0, min(MAX_ENGAGE_TIER, int(value)))


def purchase_price(
    tier: int,
    current_supply: float,
    engage_tier: int,
    initial_supply: int = INITIAL_SUPPLY,
) -> int:
    price = apply_discount(calculate_price(tier, current_supply, initial_supply), engage_tier)
    if price <= 0:
        raise PriceCalculationError("Price calculation error")
    return price
