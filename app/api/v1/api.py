from fastapi import APIRouter

from app.api.v1.endpoints import custom_domains, origins

api_router = APIRouter()
api_router.include_router(custom_domains.router, prefix="/custom-domains", tags=["custom-domains"])
api_router.include_router(origins.router, prefix="/origins", tags=["origins"])
