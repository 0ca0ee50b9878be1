"""Message routes: read the latest message, submit a new one."""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from constants import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT
from core.container import container
from core.logging import get_logger
from models.database import Message
from services.messages import MessageService

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["messages"])


class MessageSubmitRequest(BaseModel):
    text: str


class MessageSubmitResponse(BaseModel):
    id: int


class LatestMessageResponse(BaseModel):
    message: str


class MessageListResponse(BaseModel):
    total: int
    messages: List[Message]


def get_message_service() -> MessageService:
    return container.message_service()


@router.get("/message", response_model=LatestMessageResponse)
async def get_latest_message(service: MessageService = Depends(get_message_service)):
    """Latest message, cached."""
    return {"message": await service.get_latest_message()}


@router.post("/message", response_model=MessageSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_message(
    request: MessageSubmitRequest,
    service: MessageService = Depends(get_message_service)
):
    """Store a message and invalidate the cached latest value."""
    message_id = await service.submit_message(request.text)
    logger.info("Message submitted", message_id=message_id)
    return {"id": message_id}


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(
    limit: int = Query(default=DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    service: MessageService = Depends(get_message_service)
):
    """Newest-first message history, uncached."""
    return {
        "total": await service.message_count(),
        "messages": await service.recent_messages(limit),
    }
