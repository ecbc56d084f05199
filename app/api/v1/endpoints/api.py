from fastapi import APIRouter

from app.api.v1.endpoints import discounts, pricing

api_router = APIRouter()

# Registering specialized controllers
api_router.include_router(discounts.router, tags=["Discounts"])
api_router.include_router(pricing.router, tags=["Pricing"])
