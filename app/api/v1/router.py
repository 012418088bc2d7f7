from fastapi import APIRouter

from app.api.v1.prompts import router as prompts_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(prompts_router)
