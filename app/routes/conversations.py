from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from app.database import get_db
from app.middlewares.auth_middleware import get_current_user
from app.models.user import User
from app.schemas.message_schemas import (
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    PaginatedMessages,
)
from app.schemas.pagination import Pagination
from app.schemas.response import BaseResponse, ErrorBody, error_response
from app.schemas.user_schemas import UserPublic
from app.services.message_service import MessageService
from app.services.user_service import UserService

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.get("", response_model=BaseResponse[List[ConversationResponse]])
async def list_conversations(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    conversations = await MessageService.list_conversations(db, current_user)
    return BaseResponse(success=True, message="Conversations fetched", data=conversations)


@router.post(
    "",
    response_model=BaseResponse[ConversationResponse],
    status_code=201,
    responses={400: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def start_conversation(
    data: ConversationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        conversation = await MessageService.get_or_create_conversation(db, current_user, data.participant_id)
        other = await UserService.get_or_404(db, data.participant_id)
        return BaseResponse(
            success=True,
            message="Conversation ready",
            data=ConversationResponse(
                id=conversation.id,
                other_participant=UserPublic.model_validate(other),
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
            ),
        )
    except HTTPException as e:
        return error_response(e)


@router.get(
    "/{conversation_id}/messages",
    response_model=BaseResponse[PaginatedMessages],
    responses={403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def list_messages(
    conversation_id: UUID,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        pagination = Pagination(page=page, size=size)
        messages, total = await MessageService.list_messages(
            db, current_user, conversation_id, pagination.offset, pagination.size
        )
        return BaseResponse(
            success=True,
            message="Messages fetched",
            data=PaginatedMessages(
                total=total,
                page=page,
                size=size,
                items=[MessageResponse.model_validate(m) for m in messages],
            ),
        )
    except HTTPException as e:
        return error_response(e)


@router.post(
    "/{conversation_id}/messages",
    response_model=BaseResponse[MessageResponse],
    status_code=201,
    responses={400: {"model": ErrorBody}, 403: {"model": ErrorBody}, 404: {"model": ErrorBody}},
)
async def send_message(
    conversation_id: UUID,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        message = await MessageService.send_message(db, current_user, conversation_id, data.content)
        return BaseResponse(success=True, message="Message sent", data=MessageResponse.model_validate(message))
    except HTTPException as e:
        return error_response(e)
