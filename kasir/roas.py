"""
Break-even ROAS (return on ad spend) for a single product.

With an admin fee expressed as a percentage of the selling price::

    margin_bep   = price - cogs - fee
    margin_ideal = margin_bep - target_profit
    roas         = price / margin      (0 when the margin is not positive)

The margin is also the most that can be spent on ads per unit sold before
the sale stops covering its costs (break-even) or the target profit (ideal).
"""
from dataclasses import asdict, dataclass
from typing import Dict


@dataclass(frozen=True)
class RoasResult:
    roas_break_even: float
    roas_ideal: float
    max_ad_budget: float
    ideal_ad_budget: float
    target_profit_per_unit: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def _roas(price: float, margin: float) -> float:
    return round(price / margin, 2) if margin > 0 else 0.0


def calculate_roas(
    selling_price: float,
    cogs: float,
    admin_fee_pct: float = 0.0,
    target_profit_pct: float = 0.0,
) -> RoasResult:
    admin_fee = admin_fee_pct / 100 * selling_price
    target_profit = target_profit_pct / 100 * selling_price

    margin_bep = selling_price - cogs - admin_fee
    margin_ideal = margin_bep - target_profit

    return RoasResult(
        roas_break_even=_roas(selling_price, margin_bep),
        roas_ideal=_roas(selling_price, margin_ideal),
        max_ad_budget=round(max(margin_bep, 0.0), 2),
        ideal_ad_budget=round(max(margin_ideal, 0.0), 2),
        target_profit_per_unit=round(target_profit, 2),
    )
