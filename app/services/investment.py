from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from app.schemas.investment import InvestmentCalculation, InvestmentCalculationRequest
from app.services.email import format_naira

WITHHOLDING_TAX_RATE = Decimal("0.10")
_CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate(request: InvestmentCalculationRequest) -> InvestmentCalculation:
    """Simple monthly interest, less withholding tax on the interest."""
    principal = request.investment_amount
    monthly_rate = request.interest_rate_per_month / Decimal(100)
    total_interest = principal * monthly_rate * request.tenure_months
    withholding_tax = total_interest * WITHHOLDING_TAX_RATE
    actual_payout = total_interest - withholding_tax
    total_amount = principal + actual_payout

    return InvestmentCalculation(
        principal_amount=_money(principal),
        interest_rate_per_month=request.interest_rate_per_month,
        tenure_months=request.tenure_months,
        total_interest=_money(total_interest),
        withholding_tax=_money(withholding_tax),
        actual_payout=_money(actual_payout),
        total_amount=_money(total_amount),
        formatted_principal=format_naira(principal),
        formatted_total_interest=format_naira(total_interest),
        formatted_withholding_tax=format_naira(withholding_tax),
        formatted_actual_payout=format_naira(actual_payout),
        formatted_total_amount=format_naira(total_amount),
    )
