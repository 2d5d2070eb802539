from fastapi import Request

from ..core.config import Settings
from ..services.chat_sync import ChatSync

def get_sync(request: Request) -> ChatSync:
    return request.app.state.sync

def get_settings(request: Request) -> Settings:
    return request.app.state.settings
