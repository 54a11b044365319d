"""
Budget and cost accounting.

Spending is a read-side aggregate: the sum of stored job costs compared
against a ceiling (the user's manual budget, or the configured default).
Jobs are never blocked for exceeding it.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class BudgetSummary:
    ceiling: float
    manual_budget: Optional[float]
    spent: float
    remaining: float

    @property
    def has_manual_budget(self) -> bool:
        return self.manual_budget is not None

    @property
    def is_exceeded(self) -> bool:
        return self.remaining < 0

    def to_dict(self) -> dict:
        return {
            "budget": round(self.ceiling, 3),
            "manualBudget": self.manual_budget,
            "spent": round(self.spent, 3),
            "remaining": round(self.remaining, 3),
            "hasManualBudget": self.has_manual_budget,
            "exceeded": self.is_exceeded,
        }


def summarize_budget(
    spent: float,
    manual_budget: Optional[float],
    default_ceiling: float,
) -> BudgetSummary:
    ceiling = manual_budget if manual_budget is not None else default_ceiling
    return BudgetSummary(
        ceiling=ceiling,
        manual_budget=manual_budget,
        spent=spent,
        remaining=ceiling - spent,
    )


def parse_budget(value: Any) -> Optional[float]:
    """
    Validate a manual budget update. None clears the override.

    Raises:
        ValueError: If the value is not a non-negative number
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Invalid budget amount")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError("Invalid budget amount") from None
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        raise ValueError("Invalid budget amount")
    return amount
