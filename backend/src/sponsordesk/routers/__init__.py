from fastapi import APIRouter

from sponsordesk.routers.conflicts import router as conflicts_router
from sponsordesk.routers.deals import router as deals_router
from sponsordesk.routers.deliverables import router as deliverables_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(deliverables_router)
api_router.include_router(conflicts_router)
api_router.include_router(deals_router)
