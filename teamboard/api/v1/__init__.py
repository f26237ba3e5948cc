from fastapi import APIRouter
from teamboard.api.v1.auth import router as auth_router
from teamboard.api.v1.kanban import router as kanban_router
from teamboard.api.v1.tasks import router as tasks_router
from teamboard.api.v1.teams import router as teams_router

# Routes are served from the root, as the web client expects
api_router = APIRouter()

# Include routers
api_router.include_router(auth_router)
api_router.include_router(kanban_router)
api_router.include_router(tasks_router)
api_router.include_router(teams_router)
