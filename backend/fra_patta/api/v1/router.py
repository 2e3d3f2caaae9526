from fastapi import APIRouter
from fra_patta.api.v1.endpoints import auth, patta, assignment, ngo, policy, health

api_router = APIRouter()

api_router.include_router(health.router)


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancers"""
    return {"status": "healthy", "service": "fra-patta-backend"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(patta.router, prefix="/patta", tags=["Patta"])
api_router.include_router(assignment.router, prefix="/assignment", tags=["Assignments"])
api_router.include_router(ngo.router, prefix="/ngo", tags=["NGO"])
api_router.include_router(policy.router, prefix="/policy", tags=["Policy"])
