from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.schemas.investment import InvestmentCalculationRequest
from app.services import investment
from app.services.email import format_naira

client = TestClient(app)


def test_calculation_applies_withholding_tax_to_interest():
    result = investment.calculate(
        InvestmentCalculationRequest(
            investment_amount=Decimal("1000000"),
            interest_rate_per_month=Decimal("2"),
            tenure_months=6,
        )
    )

    assert result.total_interest == Decimal("120000.00")
    assert result.withholding_tax == Decimal("12000.00")
    assert result.actual_payout == Decimal("108000.00")
    assert result.total_amount == Decimal("1108000.00")
    assert result.formatted_total_amount == "₦1,108,000.00"


def test_calculation_rounds_half_up_to_kobo():
    result = investment.calculate(
        InvestmentCalculationRequest(
            investment_amount=Decimal("1000"),
            interest_rate_per_month=Decimal("1.5"),
            tenure_months=1,
        )
    )

    assert result.total_interest == Decimal("15.00")
    assert result.withholding_tax == Decimal("1.50")
    assert result.actual_payout == Decimal("13.50")


def test_format_naira():
    assert format_naira(Decimal("1234.5")) == "₦1,234.50"
    assert format_naira(None) == "₦0.00"


def test_calculator_endpoint():
    response = client.post(
        "/api/v1/investment-calculator",
        json={"investmentAmount": 500000, "interestRatePerMonth": 3, "tenureMonths": 12},
    )

    assert response.status_code == 200
    calculation = response.json()["data"]["calculation"]
    assert calculation["principalAmount"] == 500000
    assert calculation["totalInterest"] == 180000
    assert calculation["withholdingTax"] == 18000
    assert calculation["actualPayout"] == 162000
    assert calculation["totalAmount"] == 662000
    assert calculation["formattedActualPayout"] == "₦162,000.00"


@pytest.mark.parametrize(
    "body",
    [
        {"investmentAmount": 0, "interestRatePerMonth": 3, "tenureMonths": 12},
        {"investmentAmount": 1000, "interestRatePerMonth": -1, "tenureMonths": 12},
        {"investmentAmount": 1000, "interestRatePerMonth": 3, "tenureMonths": 0},
        {"investmentAmount": 1000, "interestRatePerMonth": 3},
    ],
)
def test_calculator_rejects_invalid_input(body):
    response = client.post("/api/v1/investment-calculator", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
