from __future__ import annotations

from fastapi import APIRouter, Response, status

from marketplace_chat.api.deps import CurrentPrincipal, OnlineCheckDep, UoWDep
from marketplace_chat.api.v1.schemas.conversation import (
    ConversationHistoryResponse,
    ConversationSummaryResponse,
    CreateConversationRequest,
    CreateConversationResponse,
    DeleteConversationResponse,
)
from marketplace_chat.infrastructure.db.guard import store_boundary
from marketplace_chat.services import conversation_service

router = APIRouter(prefix="/api/messages/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationSummaryResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    is_online: OnlineCheckDep,
) -> list[ConversationSummaryResponse]:
    async with store_boundary():
        summaries = await conversation_service.list_user_conversations(
            principal.user_id, uow, is_online,
        )
    return [ConversationSummaryResponse.from_dto(s) for s in summaries]


@router.get("/{conversation_id}", response_model=ConversationHistoryResponse)
async def get_conversation(
    conversation_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    is_online: OnlineCheckDep,
) -> ConversationHistoryResponse:
    async with store_boundary():
        history = await conversation_service.get_conversation_history(
            conversation_id, principal.user_id, uow, is_online,
        )
    return ConversationHistoryResponse.from_dto(history)


@router.post("", response_model=CreateConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    body: CreateConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    response: Response,
) -> CreateConversationResponse:
    async with store_boundary():
        conversation, created = await conversation_service.get_or_create_conversation(
            principal.user_id, body.target_user_id, uow,
        )
    if not created:
        response.status_code = status.HTTP_200_OK
    return CreateConversationResponse(
        conversation_id=conversation.id,
        created=created,
        message="Conversation created successfully" if created else "Conversation already exists",
    )


@router.delete("/{conversation_id}", response_model=DeleteConversationResponse)
async def delete_conversation(
    conversation_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> DeleteConversationResponse:
    async with store_boundary():
        removed = await conversation_service.delete_conversation(
            conversation_id, principal.user_id, uow,
        )
    return DeleteConversationResponse(
        message="Conversation deleted successfully",
        deleted_messages=removed,
    )
