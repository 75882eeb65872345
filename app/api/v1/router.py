from fastapi import APIRouter

from app.api.v1.ai import router as ai_router
from app.api.v1.delivery import router as delivery_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(ai_router)
api_v1_router.include_router(delivery_router)
