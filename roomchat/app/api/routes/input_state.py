from fastapi import APIRouter, Depends
from ...schemas import InputStateIn, InputStateOut
from ...services.chat_sync import ChatSync
from ..deps import get_sync

router = APIRouter()

@router.get("/input", response_model=InputStateOut)
def read_input(sync: ChatSync = Depends(get_sync)):
    return {"value": sync.input_state.get()}

@router.put("/input", response_model=InputStateOut)
def write_input(payload: InputStateIn, sync: ChatSync = Depends(get_sync)):
    sync.input_state.set(payload.value)
    return {"value": sync.input_state.get()}
