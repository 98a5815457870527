from fastapi import APIRouter
from .endpoints.upload import router as upload_router

api_router = APIRouter()
api_router.include_router(upload_router, tags=["Upload"])
