from fastapi import APIRouter
from lease_agent.api.v1.endpoints import lease_requests

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(lease_requests.router, prefix="/lease-requests", tags=["Lease Requests"])

__all__ = ["api_router"]
