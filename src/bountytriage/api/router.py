"""Master API router mounted at /api."""

from fastapi import APIRouter

from bountytriage.api.routes import bounties, cve_webhooks, github_webhooks, health

api_router = APIRouter(prefix="/api")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(github_webhooks.router)
api_router.include_router(cve_webhooks.router)
api_router.include_router(bounties.router)
