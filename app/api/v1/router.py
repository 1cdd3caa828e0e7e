from fastapi import APIRouter

from app.api.v1.endpoints import auth, messages, realtime

router = APIRouter()

router.include_router(auth.router, prefix="/auth")
router.include_router(messages.router, prefix="/messages")
router.include_router(realtime.router)
