from __future__ import annotations

import base64
from typing import Annotated

from fastapi import APIRouter, File, Form, UploadFile, status

from marketplace_chat.api.deps import CurrentPrincipal, NotifierDep, UoWDep
from marketplace_chat.api.v1.schemas.message import (
    MarkReadResponse,
    MessageResponse,
    SendMessageRequest,
)
from marketplace_chat.application.exceptions import PayloadTooLargeError, ValidationError
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.db.guard import store_boundary
from marketplace_chat.services import message_service, read_state_service

router = APIRouter(prefix="/api/messages/conversations", tags=["messages"])


async def _read_image(upload: UploadFile) -> str:
    """Validate an uploaded image and encode it as a ``data:`` URL."""
    content_type = (upload.content_type or "").lower()
    if content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only image files are allowed")

    raw = await upload.read(settings.MAX_IMAGE_BYTES + 1)
    if len(raw) > settings.MAX_IMAGE_BYTES:
        raise PayloadTooLargeError(
            f"Image exceeds {settings.MAX_IMAGE_BYTES // (1024 * 1024)}MB limit"
        )
    if not raw:
        raise ValidationError("Image file is empty")
    return f"data:{content_type};base64,{base64.b64encode(raw).decode('ascii')}"


@router.post(
    "/{conversation_id}/send",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: int,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    notifier: NotifierDep,
) -> MessageResponse:
    outbound = await message_service.send_message(
        conversation_id, principal.user_id, body.content, None, uow, notifier,
        store_scope=store_boundary,
    )
    return MessageResponse.from_outbound(outbound)


@router.post(
    "/with-image/{conversation_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message_with_image(
    conversation_id: int,
    image: Annotated[UploadFile, File()],
    principal: CurrentPrincipal,
    uow: UoWDep,
    notifier: NotifierDep,
    content: Annotated[str | None, Form()] = None,
) -> MessageResponse:
    data_url = await _read_image(image)
    outbound = await message_service.send_message(
        conversation_id, principal.user_id, content, data_url, uow, notifier,
        store_scope=store_boundary,
    )
    return MessageResponse.from_outbound(outbound)


@router.api_route(
    "/{conversation_id}/read",
    methods=["PUT", "POST"],
    response_model=MarkReadResponse,
)
async def mark_as_read(
    conversation_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    notifier: NotifierDep,
) -> MarkReadResponse:
    updated = await read_state_service.mark_read(
        conversation_id, principal.user_id, uow, notifier,
        store_scope=store_boundary,
    )
    return MarkReadResponse(message="Messages marked as read", updated=updated)
