from typing import List
from fastapi import APIRouter, Depends, HTTPException
from ...errors import FetchError
from ...schemas import ChatCreate, ChatEdit, ChatPatch, ChatRecord, MutationOut, QueryStatusOut
from ...services.chat_sync import CHATS_QUERY_KEY, ChatSync
from ..deps import get_sync

router = APIRouter()

async def _loaded(sync: ChatSync) -> None:
    # first render waits for the initial load
    if sync.loaded:
        return
    try:
        await sync.fetch_all()
    except FetchError as e:
        raise HTTPException(status_code=502, detail=e.message)

@router.get("/chats", response_model=List[ChatRecord])
async def list_chats(sync: ChatSync = Depends(get_sync)):
    await _loaded(sync)
    return sync.chats

@router.get("/chats/status", response_model=QueryStatusOut)
def chats_status(sync: ChatSync = Depends(get_sync)):
    state = sync.cache.get_state(CHATS_QUERY_KEY)
    return {
        "status": state.status,
        "error": state.error,
        "fetchCount": state.fetch_count,
        "count": len(state.data or []),
        "dataUpdatedAt": state.data_updated_at,
        "isInvalidated": state.is_invalidated,
    }

@router.get("/rooms/{roomId}/chats", response_model=List[ChatRecord])
async def list_room_chats(roomId: str, sync: ChatSync = Depends(get_sync)):
    await _loaded(sync)
    return sync.chats_in_room(roomId)

@router.post("/chats", response_model=MutationOut)
async def create_chat(payload: ChatCreate, sync: ChatSync = Depends(get_sync)):
    created = await sync.create(payload)
    return {"ok": created is not None, "chat": created, "chats": sync.chats}

@router.patch("/chats/{chatId}", response_model=MutationOut)
async def patch_chat(chatId: str, payload: ChatPatch, sync: ChatSync = Depends(get_sync)):
    updated = await sync.update(ChatEdit(id=chatId, title=payload.title))
    return {"ok": updated is not None, "chat": updated, "chats": sync.chats}

@router.delete("/chats/{chatId}", response_model=MutationOut)
async def delete_chat(chatId: str, sync: ChatSync = Depends(get_sync)):
    deleted = await sync.delete(chatId)
    return {"ok": deleted, "chat": None, "chats": sync.chats}
