from fastapi import APIRouter

from app.schemas.investment import InvestmentCalculationRequest, InvestmentCalculationResponse
from app.services import investment

router = APIRouter(tags=["investment"])


@router.post(
    "/investment-calculator",
    response_model=InvestmentCalculationResponse,
    summary="Project returns for a fixed-rate investment",
)
async def calculate_investment(
    payload: InvestmentCalculationRequest,
) -> InvestmentCalculationResponse:
    return InvestmentCalculationResponse(calculation=investment.calculate(payload))
