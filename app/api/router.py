from fastapi import APIRouter

from app.api.routes.admin import router as admin_router
from app.api.routes.notes import router as notes_router
from app.api.routes.premium import router as premium_router
from app.api.routes.questions import router as questions_router

api_router = APIRouter()
api_router.include_router(admin_router)
api_router.include_router(notes_router)
api_router.include_router(premium_router)
api_router.include_router(questions_router)
