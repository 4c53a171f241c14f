from pydantic import BaseModel, ConfigDict

from constants import DEFAULT_PLATFORM, DEFAULT_MESSAGE_TYPE


class Session(BaseModel):
    # Fixed at join; a later join replaces the whole session
    model_config = ConfigDict(frozen=True)

    connection_id: str
    room_id: str
    order_id: str
    user_id: str
    platform: str = DEFAULT_PLATFORM
    message_type: str = DEFAULT_MESSAGE_TYPE
