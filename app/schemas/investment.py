from decimal import Decimal

from pydantic import Field

from app.schemas.common import CamelModel, Money


class InvestmentCalculationRequest(CamelModel):
    investment_amount: Decimal = Field(gt=0)
    interest_rate_per_month: Decimal = Field(gt=0, le=100)
    tenure_months: int = Field(gt=0)


class InvestmentCalculation(CamelModel):
    principal_amount: Money
    interest_rate_per_month: Money
    tenure_months: int
    total_interest: Money
    withholding_tax: Money
    actual_payout: Money
    total_amount: Money
    formatted_principal: str
    formatted_total_interest: str
    formatted_withholding_tax: str
    formatted_actual_payout: str
    formatted_total_amount: str


class InvestmentCalculationResponse(CamelModel):
    calculation: InvestmentCalculation
