from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from schemas.messages import SendMessageRequest, SendMessageResponse, HealthResponse
from sessions import inject_message
from logging_config import get_logger

logger = get_logger(__name__)

messages_router = APIRouter(tags=["messages"])

MISSING_FIELDS = "Order ID, User ID, and message are required"


def _parse_send_request(body: Any):
    # A missing body, a non-object body or unusable field types all count as missing fields
    if not isinstance(body, dict):
        return None
    try:
        return SendMessageRequest.model_validate(body)
    except ValidationError:
        return None


@messages_router.post("/api/send-message", response_model=SendMessageResponse)
@messages_router.post("/api/send-order-message", response_model=SendMessageResponse, include_in_schema=False)
async def send_message(request: Request, body: Any = Body(None)):
    # Body: { "orderId": "42", "userId": "u1", "message": "hi", "platform": "server", "type": "chat-message" }
    # Response 200: { "success": true, "message": "...", "data": { "id": "1700000000000", "senderId": "u1", ... } }
    client_host = request.client.host if request.client else "unknown"
    send_request = _parse_send_request(body)
    if send_request is None or not send_request.order_id or not send_request.user_id or not send_request.message:
        logger.warning(f"Send message rejected from {client_host}: missing orderId, userId or message")
        return JSONResponse(status_code=400, content={"error": MISSING_FIELDS})

    logger.info(f"Send message request from {client_host} for order {send_request.order_id}, user {send_request.user_id}")
    message = await inject_message(
        send_request.order_id,
        send_request.user_id,
        send_request.message,
        platform=send_request.platform,
        message_type=send_request.type,
    )
    return SendMessageResponse(
        success=True,
        message="Order message sent successfully",
        data=message.to_wire(),
    )


@messages_router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="OK", timestamp=datetime.now(timezone.utc).isoformat())
