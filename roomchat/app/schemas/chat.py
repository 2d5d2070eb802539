from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, Field

class ChatCreate(BaseModel):
    title: str
    roomId: str = Field(validation_alias=AliasChoices("roomId", "room_id"))
    userId: str = Field(validation_alias=AliasChoices("userId", "user_id"))
    published: bool = False

    def to_row(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "room_id": self.roomId,
            "user_id": self.userId,
            "published": self.published,
        }

class ChatEdit(BaseModel):
    id: str
    title: str

class ChatPatch(BaseModel):
    title: str

class ChatRecord(BaseModel):
    id: str
    title: str
    roomId: str = Field(validation_alias=AliasChoices("roomId", "room_id"))
    userId: str = Field(validation_alias=AliasChoices("userId", "user_id"))
    createdAt: str
    updatedAt: str
    published: bool = False

class MutationOut(BaseModel):
    ok: bool
    chat: Optional[ChatRecord] = None
    chats: List[ChatRecord]

class QueryStatusOut(BaseModel):
    status: str
    error: Optional[str] = None
    fetchCount: int
    count: int
    dataUpdatedAt: Optional[float] = None
    isInvalidated: bool = False
