from fastapi import APIRouter, Depends

from cidco_records.api.deps import get_current_user
from cidco_records.api.endpoints import auth, users, registry, records

api_router = APIRouter()

# Credential flow is public
api_router.include_router(auth.router, tags=["Authentication"])

api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(
    registry.router,
    tags=["Registry"],
    dependencies=[Depends(get_current_user)],
)
api_router.include_router(
    records.router,
    tags=["Records"],
    dependencies=[Depends(get_current_user)],
)
