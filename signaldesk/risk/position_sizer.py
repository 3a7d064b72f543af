"""Position sizing — pure math, no I/O.

Calculates the whole number of units to buy or sell from the available
cash, the per-position allocation cap, and the entry price.
"""

import math


def calculate_quantity(
    cash: float,
    max_position_pct: float,
    price: float,
) -> int:
    """Calculate position size in whole units.

    Formula::

        allocation = min(cash × (max_position_pct / 100), cash)
        quantity   = floor(allocation / price)

    Args:
        cash: Cash currently available (e.g. 100_000.0).
        max_position_pct: Share of cash a single position may use, in
            percent (e.g. 10.0).
        price: Entry price per unit.

    Returns:
        Whole units, ``0`` when there is no cash left or the price exceeds
        the allocation.

    Raises:
        ValueError: If *price* is non-positive or *max_position_pct* is
            outside (0, 100].
    """
    if price <= 0:
        raise ValueError(f"price must be positive, got {price}")
    if not 0 < max_position_pct <= 100:
        raise ValueError(
            f"max_position_pct must be within (0, 100], got {max_position_pct}"
        )
    if cash <= 0:
        return 0

    allocation = min(cash * (max_position_pct / 100.0), cash)
    return int(math.floor(allocation / price))
