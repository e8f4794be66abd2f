# app/api/v1/router.py
from fastapi import APIRouter

from .endpoints import health, slot_configurations

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(
    slot_configurations.router,
    prefix="/slot-configurations",
    tags=["slot-configurations"],
)
