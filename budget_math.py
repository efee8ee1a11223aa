"""Budget arithmetic: derived budget fields and alert classification.

Everything here is a pure function of decimal inputs. Ratios are rounded to
four decimal places (half-up) before being scaled to a percentage, so the
alert thresholds compare against the same value that is shown to the owner.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from models import AlertType
from money import ZERO

HUNDRED = Decimal("100")
RATIO_QUANTUM = Decimal("0.0001")

WARNING_THRESHOLD = 80.0
LIMIT_THRESHOLD = 100.0


@dataclass(frozen=True)
class BudgetFigures:
    remaining_amount: Decimal
    percentage_used: float


@dataclass(frozen=True)
class BudgetAlert:
    category_id: int
    category_name: str
    budget_amount: Decimal
    spent_amount: Decimal
    percentage_used: float
    alert_type: AlertType
    message: str


def percentage_of(part: Optional[Decimal], whole: Optional[Decimal]) -> float:
    """Return ``part / whole`` as a percentage, 0.0 when ``whole`` is not positive."""
    if whole is None or whole <= 0:
        return 0.0
    ratio = ((part or ZERO) / whole).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)
    return float(ratio * HUNDRED)


def derive_budget_figures(
    budget_amount: Decimal, spent_amount: Optional[Decimal]
) -> BudgetFigures:
    spent = spent_amount if spent_amount is not None else ZERO
    return BudgetFigures(
        remaining_amount=budget_amount - spent,
        percentage_used=percentage_of(spent, budget_amount),
    )


def classify_budget(
    category_id: int,
    category_name: str,
    budget_amount: Decimal,
    spent_amount: Optional[Decimal],
    *,
    currency_symbol: str = "",
) -> Optional[BudgetAlert]:
    spent = spent_amount if spent_amount is not None else ZERO
    percentage_used = percentage_of(spent, budget_amount)

    if percentage_used > LIMIT_THRESHOLD:
        alert_type = AlertType.exceeded
        excess = spent - budget_amount
        message = (
            f"You have exceeded your {category_name} budget by "
            f"{currency_symbol}{excess:.2f}"
        )
    elif percentage_used == LIMIT_THRESHOLD:
        alert_type = AlertType.limit_reached
        message = f"You have reached your {category_name} budget limit"
    elif percentage_used >= WARNING_THRESHOLD:
        alert_type = AlertType.warning
        message = (
            f"You have used {percentage_used:.1f}% of your {category_name} budget"
        )
    else:
        return None

    return BudgetAlert(
        category_id=category_id,
        category_name=category_name,
        budget_amount=budget_amount,
        spent_amount=spent,
        percentage_used=percentage_used,
        alert_type=alert_type,
        message=message,
    )
