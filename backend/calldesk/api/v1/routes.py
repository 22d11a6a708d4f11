"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from calldesk.api.v1.endpoints import worklist

api_router = APIRouter()

api_router.include_router(worklist.router)
