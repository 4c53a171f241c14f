from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional, Union


class WireModel(BaseModel):
    # camelCase on the wire, snake_case in python; numeric ids are accepted as strings
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class JoinEvent(WireModel):
    order_id: Optional[str] = Field(None, alias="orderId")
    user_id: Optional[str] = Field(None, alias="userId")
    platform: Optional[str] = None
    type: Optional[str] = None

class SendEvent(WireModel):
    message: Any = None

class SendMessageRequest(WireModel):
    order_id: Optional[str] = Field(None, alias="orderId")
    user_id: Optional[str] = Field(None, alias="userId")
    message: Any = None
    platform: Optional[str] = "server"
    type: Optional[str] = "chat-message"

class Message(WireModel):
    id: Union[int, str]
    sender_id: str = Field(alias="senderId")
    type: str
    payload: Any
    timestamp: int
    platform: str
    room: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

class SendMessageResponse(BaseModel):
    success: bool
    message: str
    data: dict

class HealthResponse(BaseModel):
    status: str
    timestamp: str
