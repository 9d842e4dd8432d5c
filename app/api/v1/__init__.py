from fastapi import APIRouter

from app.api.v1.routers import (
    auth,
    documents,
    health,
    investment,
    loan_admin,
    loan_applications,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(loan_applications.router)
api_router.include_router(loan_admin.router)
api_router.include_router(documents.router)
api_router.include_router(investment.router)

__all__ = ["api_router"]
