from fastapi import APIRouter
from .routes import chats
from .routes import input_state
from .routes import public_config

router = APIRouter()
router.include_router(chats.router, prefix="/api")
router.include_router(input_state.router, prefix="/api")
router.include_router(public_config.router, prefix="/api")
